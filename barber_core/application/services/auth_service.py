import logging
from dataclasses import dataclass
from typing import Optional

from ..ports.audit_logger import AuditLogger
from ..ports.otp_provider import OTPProvider
from ..ports.password_hasher import PasswordHasher
from ..ports.rate_limiter import RateLimiter
from ..ports.user_repo import ADMINISTRATOR, CUSTOMER, NewUser, UserDto, UserRepository
from .customer_sync import CustomerSyncService
from .token_service import AccessGrant, TokenPair, TokenService
from ...core.phone import is_email, normalize_phone
from ...exceptions import (
    Conflict,
    Forbidden,
    InvalidCredentials,
    InvalidInput,
    InvalidOrExpiredOTP,
    NotFound,
    RateLimited,
)

logger = logging.getLogger(__name__)


@dataclass
class RegisterCommand:
    phone_number: str
    first_name: str
    last_name: str
    password: str
    email: Optional[str] = None


@dataclass
class VerifyOtpForLogin:
    phone_number: str
    code: str


@dataclass
class VerifyOtpForPhoneChange:
    caller_id: str
    new_phone_number: str
    code: str


@dataclass
class AuthResult:
    user: UserDto
    tokens: TokenPair
    message: str = ""


@dataclass
class AuthService:
    """Registration, login, OTP and token flows.

    Two OTP flows share the provider: ``verify_login_otp`` finds the account by
    the submitted phone, ``verify_phone_change_otp`` moves the authenticated
    caller to a new phone. Nothing about pending OTPs is stored locally.
    """

    user_repo: UserRepository
    otp_provider: OTPProvider
    tokens: TokenService
    customer_sync: CustomerSyncService
    password_hasher: PasswordHasher
    audit: AuditLogger
    rate_limiter: Optional[RateLimiter] = None
    default_region: str = "AU"
    min_password_length: int = 8
    otp_max_requests: int = 3
    otp_window_seconds: int = 3600

    # ------------------------
    # Helpers
    # ------------------------
    def _normalize(self, phone_number: str) -> str:
        return normalize_phone(phone_number, self.default_region)

    def _normalize_email(self, email: Optional[str]) -> Optional[str]:
        return email.strip().lower() if email else None

    def _check_password(self, password: str) -> None:
        if not password or len(password) < self.min_password_length:
            raise InvalidInput(f"Password must be at least {self.min_password_length} characters")

    def _check_otp_quota(self, phone: str) -> None:
        if self.rate_limiter is None:
            return
        if not self.rate_limiter.allow(f"otp:{phone}", self.otp_max_requests, self.otp_window_seconds):
            self.audit.log("rate_limit_exceeded", phone, success=False)
            raise RateLimited()

    def _send_otp(self, phone: str, action: str, user_id: Optional[str] = None) -> None:
        status = self.otp_provider.send(phone)
        self.audit.log(action, phone, user_id, details={"status": status})

    def _existing_customer(self, phone: str) -> UserDto:
        user = self.user_repo.get_by_phone(phone)
        if not user:
            raise NotFound()
        if user.role != CUSTOMER:
            raise Forbidden("OTP not available for this user type")
        return user

    # ------------------------
    # Registration
    # ------------------------
    def register(self, cmd: RegisterCommand) -> AuthResult:
        phone = self._normalize(cmd.phone_number)
        email = self._normalize_email(cmd.email)
        self._check_password(cmd.password)
        self._check_otp_quota(phone)

        if self.user_repo.get_by_phone(phone):
            raise Conflict(Conflict.PHONE_TAKEN)
        if email and self.user_repo.get_by_email(email):
            raise Conflict(Conflict.EMAIL_TAKEN)

        user = self.user_repo.create(NewUser(
            phone_number=phone,
            first_name=cmd.first_name,
            last_name=cmd.last_name,
            email=email,
            password_hash=self.password_hasher.hash(cmd.password),
            role=CUSTOMER,
            is_verified=False,
        ))
        logger.info(f"Registered customer {user.id}")

        self.customer_sync.ensure_external_customer(user)
        self._send_otp(phone, "register_otp_sent", user.id)

        return AuthResult(
            user=user,
            tokens=self.tokens.issue_pair(user),
            message="Registration successful. OTP sent.",
        )

    def register_admin(self, cmd: RegisterCommand) -> UserDto:
        """Create an administrator; the caller has already passed the admin secret check."""
        phone = self._normalize(cmd.phone_number)
        self._check_password(cmd.password)
        email = self._normalize_email(cmd.email)
        if not email:
            raise InvalidInput("Email is required for administrators")

        admin = self.user_repo.create(NewUser(
            phone_number=phone,
            first_name=cmd.first_name,
            last_name=cmd.last_name,
            email=email,
            password_hash=self.password_hasher.hash(cmd.password),
            role=ADMINISTRATOR,
            is_verified=True,
        ))
        self.audit.log("admin_registered", phone, admin.id)
        return admin

    # ------------------------
    # OTP requests
    # ------------------------
    def request_login_otp(self, phone_number: str) -> None:
        phone = self._normalize(phone_number)
        user = self._existing_customer(phone)
        self._check_otp_quota(phone)
        self._send_otp(phone, "login_otp_sent", user.id)

    def request_phone_change_otp(self, caller_id: str, new_phone_number: str) -> None:
        phone = self._normalize(new_phone_number)
        owner = self.user_repo.get_by_phone(phone)
        if owner and owner.id != caller_id:
            raise Conflict(Conflict.PHONE_TAKEN, "Phone number already in use")
        self._check_otp_quota(phone)
        self._send_otp(phone, "phone_change_otp_sent", caller_id)

    def forgot_password(self, phone_number: str) -> None:
        phone = self._normalize(phone_number)
        user = self._existing_customer(phone)
        self._check_otp_quota(phone)
        self._send_otp(phone, "password_recovery_otp_sent", user.id)

    # ------------------------
    # OTP verification
    # ------------------------
    def verify_login_otp(self, cmd: VerifyOtpForLogin) -> AuthResult:
        phone = self._normalize(cmd.phone_number)
        user = self._existing_customer(phone)

        if not self.otp_provider.verify(phone, cmd.code):
            self.audit.log("otp_verify_failed", phone, user.id, success=False)
            raise InvalidOrExpiredOTP()

        if not user.is_verified:
            user = self.user_repo.mark_verified(user.id)
        self.audit.log("otp_verified", phone, user.id)
        return AuthResult(user=user, tokens=self.tokens.issue_pair(user), message="OTP verified successfully")

    def verify_phone_change_otp(self, cmd: VerifyOtpForPhoneChange) -> AuthResult:
        phone = self._normalize(cmd.new_phone_number)
        caller = self.user_repo.get_by_id(cmd.caller_id)
        if not caller:
            raise NotFound()

        owner = self.user_repo.get_by_phone(phone)
        if owner and owner.id != caller.id:
            raise Conflict(Conflict.PHONE_TAKEN, "Phone number already in use")

        if not self.otp_provider.verify(phone, cmd.code):
            self.audit.log("otp_verify_failed", phone, caller.id, success=False)
            raise InvalidOrExpiredOTP()

        user = self.user_repo.update_phone(caller.id, phone)
        user = self.user_repo.mark_verified(user.id)
        self.audit.log("phone_changed", phone, user.id)
        return AuthResult(user=user, tokens=self.tokens.issue_pair(user), message="Phone number updated")

    # ------------------------
    # Passwords
    # ------------------------
    def login(self, email_or_phone: str, password: str) -> AuthResult:
        identifier = (email_or_phone or "").strip()
        if is_email(identifier):
            user = self.user_repo.get_by_email(identifier.lower())
        else:
            user = self.user_repo.get_by_phone(self._normalize(identifier))

        if not user or not user.password_hash:
            # Same work and same answer whether or not the account exists
            self.password_hasher.dummy_verify()
            self.audit.log("login_failed", None if not user else user.phone_number, success=False)
            raise InvalidCredentials()

        if not self.password_hasher.verify(password, user.password_hash):
            self.audit.log("login_failed", user.phone_number, user.id, success=False)
            raise InvalidCredentials()

        # Unverified accounts may log in; the client shows the verification prompt
        self.audit.log("login_succeeded", user.phone_number, user.id)
        return AuthResult(user=user, tokens=self.tokens.issue_pair(user), message="Login successful")

    def change_password(self, user_id: str, new_password: str) -> None:
        self._check_password(new_password)
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFound()
        self.user_repo.set_password(user.id, self.password_hasher.hash(new_password))
        self.audit.log("password_changed", user.phone_number, user.id)

    # ------------------------
    # Tokens
    # ------------------------
    def refresh(self, refresh_token: str) -> AccessGrant:
        return self.tokens.refresh(refresh_token)

    def get_me(self, user_id: str) -> UserDto:
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFound()
        return user
