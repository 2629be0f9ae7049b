import hmac
import logging

from ...application.ports.otp_provider import OTPProvider

logger = logging.getLogger(__name__)


class FixedCodeOTPProvider(OTPProvider):
    """Development/test provider: nothing is sent and one configured code is accepted."""

    def __init__(self, code: str):
        if not code:
            raise ValueError("FixedCodeOTPProvider needs a non-empty code")
        self.code = code

    def send(self, phone: str) -> str:
        logger.info("[MOCK OTP] Skipping SMS delivery, the configured code will be accepted")
        return "pending"

    def verify(self, phone: str, code: str) -> bool:
        return hmac.compare_digest(code.encode(), self.code.encode())
