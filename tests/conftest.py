import uuid
from datetime import datetime
from typing import Dict, List, Optional

import pytest

from barber_core.application.ports.booking_platform import Booking, BookingPlatform
from barber_core.application.ports.otp_provider import OTPProvider
from barber_core.application.ports.user_repo import CUSTOMER, NewUser, UserDto, UserRepository
from barber_core.application.services.auth_service import AuthService
from barber_core.application.services.customer_sync import CustomerSyncService
from barber_core.application.services.token_service import TokenService
from barber_core.exceptions import BookingPlatformError, Conflict, NotFound
from barber_core.infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
OTP_CODE = "123456"


class FakeUserRepo(UserRepository):
    def __init__(self):
        self.users: Dict[str, UserDto] = {}
        self.verify_calls = 0

    def add(self, phone_number: str, role: str = CUSTOMER, password_hash: Optional[str] = None, email: Optional[str] = None, is_verified: bool = False) -> UserDto:
        return self.create(NewUser(
            phone_number=phone_number,
            first_name="Alice",
            last_name="Smith",
            role=role,
            email=email,
            password_hash=password_hash,
            is_verified=is_verified,
        ))

    def get_by_phone(self, phone_number: str) -> Optional[UserDto]:
        for u in self.users.values():
            if u.phone_number == phone_number:
                return u
        return None

    def get_by_email(self, email: str) -> Optional[UserDto]:
        for u in self.users.values():
            if u.email == email:
                return u
        return None

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        return self.users.get(user_id)

    def _load(self, user_id: str) -> UserDto:
        user = self.users.get(user_id)
        if not user:
            raise NotFound()
        return user

    def create(self, draft: NewUser) -> UserDto:
        if self.get_by_phone(draft.phone_number):
            raise Conflict(Conflict.PHONE_TAKEN)
        if draft.email and self.get_by_email(draft.email):
            raise Conflict(Conflict.EMAIL_TAKEN)
        now = datetime.utcnow()
        user = UserDto(
            id=str(uuid.uuid4()),
            phone_number=draft.phone_number,
            first_name=draft.first_name,
            last_name=draft.last_name,
            role=draft.role,
            is_verified=draft.is_verified,
            created_at=now,
            updated_at=now,
            email=draft.email,
            password_hash=draft.password_hash,
        )
        self.users[user.id] = user
        return user

    def mark_verified(self, user_id: str) -> UserDto:
        user = self._load(user_id)
        if not user.is_verified:
            self.verify_calls += 1
            user.is_verified = True
        return user

    def update_phone(self, user_id: str, phone_number: str) -> UserDto:
        user = self._load(user_id)
        owner = self.get_by_phone(phone_number)
        if owner and owner.id != user_id:
            raise Conflict(Conflict.PHONE_TAKEN, "Phone number already in use")
        user.phone_number = phone_number
        return user

    def set_password(self, user_id: str, password_hash: str) -> None:
        self._load(user_id).password_hash = password_hash

    def set_external_customer_id(self, user_id: str, external_customer_id: str) -> str:
        user = self._load(user_id)
        if user.external_customer_id is None:
            user.external_customer_id = external_customer_id
        return user.external_customer_id

    def update_profile(self, user_id: str, first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> UserDto:
        user = self._load(user_id)
        if email is not None:
            owner = self.get_by_email(email)
            if owner and owner.id != user_id:
                raise Conflict(Conflict.EMAIL_TAKEN)
            user.email = email
        if first_name is not None:
            user.first_name = first_name
        if last_name is not None:
            user.last_name = last_name
        return user


class FakeOTP(OTPProvider):
    def __init__(self, code: str = OTP_CODE):
        self.code = code
        self.sent: List[str] = []
        self.checked: List[str] = []

    def send(self, phone: str) -> str:
        self.sent.append(phone)
        return "pending"

    def verify(self, phone: str, code: str) -> bool:
        self.checked.append(phone)
        return code == self.code


class FakeAudit:
    def __init__(self):
        self.entries = []

    def log(self, action, phone, user_id=None, success=True, details=None):
        self.entries.append({"action": action, "phone": phone, "user_id": user_id, "success": success})

    @property
    def actions(self) -> List[str]:
        return [e["action"] for e in self.entries]


class FakeBookingPlatform(BookingPlatform):
    def __init__(self):
        self.created = []
        self.updated = []
        self.list_calls = []
        self.bookings: List[Booking] = []
        self.fail = False

    def create_customer(self, idempotency_key, given_name, family_name, phone_number, email):
        if self.fail:
            raise BookingPlatformError("Square is down", status_code=503)
        self.created.append(idempotency_key)
        return f"SQ-{len(self.created)}"

    def update_customer(self, customer_id, given_name, family_name, email):
        if self.fail:
            raise BookingPlatformError("Square is down", status_code=503)
        self.updated.append((customer_id, given_name, family_name, email))

    def list_bookings(self, customer_id, location_id=None, start_at_min=None, start_at_max=None):
        if self.fail:
            raise BookingPlatformError("Square is down", status_code=503)
        self.list_calls.append((customer_id, location_id))
        return list(self.bookings)


class PlainHasher:
    def __init__(self):
        self.dummy_calls = 0

    def hash(self, password):
        return f"hashed:{password}"

    def verify(self, password, password_hash):
        return password_hash == f"hashed:{password}"

    def dummy_verify(self):
        self.dummy_calls += 1


@pytest.fixture
def user_repo():
    return FakeUserRepo()


@pytest.fixture
def otp():
    return FakeOTP()


@pytest.fixture
def audit():
    return FakeAudit()


@pytest.fixture
def platform():
    return FakeBookingPlatform()


@pytest.fixture
def hasher():
    return PlainHasher()


@pytest.fixture
def tokens(user_repo):
    return TokenService(user_repo=user_repo, access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


@pytest.fixture
def customer_sync(user_repo, platform, audit):
    return CustomerSyncService(user_repo=user_repo, platform=platform, audit=audit)


@pytest.fixture
def auth_service(user_repo, otp, tokens, customer_sync, hasher, audit):
    return AuthService(
        user_repo=user_repo,
        otp_provider=otp,
        tokens=tokens,
        customer_sync=customer_sync,
        password_hasher=hasher,
        audit=audit,
        rate_limiter=InMemoryRateLimiter(),
    )
