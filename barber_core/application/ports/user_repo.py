from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

CUSTOMER = "CUSTOMER"
ADMINISTRATOR = "ADMINISTRATOR"


@dataclass
class UserDto:
    id: str
    phone_number: str
    first_name: str
    last_name: str
    role: str
    is_verified: bool
    created_at: datetime
    updated_at: datetime
    email: Optional[str] = None
    password_hash: Optional[str] = None
    external_customer_id: Optional[str] = None

    @property
    def is_customer(self) -> bool:
        return self.role == CUSTOMER


@dataclass
class NewUser:
    phone_number: str
    first_name: str
    last_name: str
    role: str = CUSTOMER
    email: Optional[str] = None
    password_hash: Optional[str] = None
    is_verified: bool = False


class UserRepository(Protocol):
    def get_by_phone(self, phone_number: str) -> Optional[UserDto]:
        ...

    def get_by_email(self, email: str) -> Optional[UserDto]:
        ...

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        ...

    def create(self, draft: NewUser) -> UserDto:
        """Raises Conflict(phone_taken) or Conflict(email_taken)."""
        ...

    def mark_verified(self, user_id: str) -> UserDto:
        ...

    def update_phone(self, user_id: str, phone_number: str) -> UserDto:
        """Raises Conflict(phone_taken) when the number belongs to another user."""
        ...

    def set_password(self, user_id: str, password_hash: str) -> None:
        ...

    def set_external_customer_id(self, user_id: str, external_customer_id: str) -> str:
        """Returns the id that ends up stored; an existing id is never replaced."""
        ...

    def update_profile(self, user_id: str, first_name: Optional[str], last_name: Optional[str], email: Optional[str]) -> UserDto:
        ...
