# barber_core/schemas/users/user.py
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from ...application.ports.user_repo import UserDto


class UserResponse(BaseModel):
    id: str
    phone_number: str
    email: Optional[str] = None
    first_name: str
    last_name: str
    role: str
    is_verified: bool
    external_customer_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_dto(cls, user: UserDto) -> "UserResponse":
        return cls(
            id=user.id,
            phone_number=user.phone_number,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            is_verified=user.is_verified,
            external_customer_id=user.external_customer_id,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UpdateProfileRequest(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, v):
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError('Name cannot be blank')
        return v

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower() if v else v
