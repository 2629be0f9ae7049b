# barber_core/schemas/auth/auth.py
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional

from ..users.user import UserResponse


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError('Name cannot be blank')
    return v


class RegisterRequest(BaseModel):
    phone_number: str = Field(..., description="Phone number, local or international format")
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    password: str = Field(..., description="Account password")
    email: Optional[EmailStr] = None

    @field_validator('first_name', 'last_name')
    @classmethod
    def validate_name(cls, v):
        return _clean_name(v)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.lower() if v else v


class AdminRegisterRequest(RegisterRequest):
    email: EmailStr


class LoginRequest(BaseModel):
    email_or_phone: str = Field(..., min_length=1, description="Email address or phone number")
    password: str = Field(..., min_length=1)


class RequestOTPRequest(BaseModel):
    phone_number: str = Field(..., description="Phone number the code is sent to")


class VerifyOTPRequest(BaseModel):
    phone_number: str
    code: str = Field(..., description="Code received by SMS")

    @field_validator('code')
    @classmethod
    def validate_code(cls, v):
        v = v.strip()
        if not v.isdigit() or not 4 <= len(v) <= 10:
            raise ValueError('Code must be 4 to 10 digits')
        return v


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    new_password: str


class TokenData(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class AuthData(BaseModel):
    user: UserResponse
    tokens: TokenData


class AuthResponse(BaseModel):
    success: bool = True
    message: str
    data: AuthData


class UserEnvelope(BaseModel):
    success: bool = True
    message: str
    data: UserResponse


class AccessTokenData(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class RefreshResponse(BaseModel):
    success: bool = True
    message: str
    data: AccessTokenData
