import logging
from typing import Optional

from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ...application.ports.otp_provider import OTPProvider
from ...core.config import Settings
from ...exceptions import OTPProviderError

logger = logging.getLogger(__name__)

MAX_CHECK_ATTEMPTS_REACHED = 60202


class TwilioOTPProvider(OTPProvider):
    """Twilio Verify v2 backed OTP provider.

    Twilio owns the whole code lifecycle (generation, expiry, attempt
    counting); nothing about pending codes is stored locally.
    """

    def __init__(self, client: Optional[Client], verify_sid: str, account_sid: str = "", auth_token: str = "", timeout: int = 15):
        self._client = client
        self.verify_sid = verify_sid
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[Client] = None) -> "TwilioOTPProvider":
        return cls(
            client,
            settings.TWILIO_VERIFY_SERVICE_SID,
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            timeout=settings.TWILIO_TIMEOUT_SECONDS,
        )

    @property
    def client(self) -> Client:
        # Built on first use so the app starts without Twilio credentials
        if self._client is None:
            if not self._account_sid or not self._auth_token:
                raise OTPProviderError("SMS verification is not configured")
            http_client = TwilioHttpClient(timeout=self._timeout, max_retries=2)
            self._client = Client(self._account_sid, self._auth_token, http_client=http_client)
            logger.info("Twilio client initialized successfully")
        return self._client

    def _service(self):
        if not self.verify_sid:
            raise OTPProviderError("SMS verification is not configured")
        return self.client.verify.v2.services(self.verify_sid)

    def send(self, phone: str) -> str:
        service = self._service()
        try:
            verification = service.verifications.create(to=phone, channel="sms")
        except Exception as e:
            logger.error(f"Twilio send OTP error: {e}")
            raise OTPProviderError() from e
        logger.info(f"Twilio verification sent, SID: {verification.sid}")
        return verification.status

    def verify(self, phone: str, code: str) -> bool:
        service = self._service()
        try:
            check = service.verification_checks.create(to=phone, code=code)
        except TwilioRestException as e:
            if e.status == 404:
                # No pending verification: expired or already approved
                logger.info("Twilio verification check found no pending verification")
                return False
            if e.status == 429 or e.code == MAX_CHECK_ATTEMPTS_REACHED:
                logger.info("Twilio verification locked after too many wrong codes")
                return False
            logger.error(f"Twilio verify OTP error: {e}")
            raise OTPProviderError() from e
        except Exception as e:
            logger.error(f"Twilio verify OTP error: {e}")
            raise OTPProviderError() from e
        logger.info(f"Twilio verification check status: {check.status}")
        return check.status == "approved"
