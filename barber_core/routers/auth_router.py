from typing import Optional
from fastapi import APIRouter, Depends
import logging

from .deps import (
    admin_only,
    get_auth_service,
    get_current_claims,
    get_optional_claims,
    require_admin_secret,
)
from ..application.services.auth_service import (
    AuthResult,
    AuthService,
    RegisterCommand,
    VerifyOtpForLogin,
    VerifyOtpForPhoneChange,
)
from ..application.services.token_service import AccessClaims
from ..schemas import (
    AccessTokenData,
    AdminRegisterRequest,
    AuthData,
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RequestOTPRequest,
    TokenData,
    UserEnvelope,
    UserResponse,
    VerifyOTPRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        message=result.message,
        data=AuthData(
            user=UserResponse.from_dto(result.user),
            tokens=TokenData(
                access_token=result.tokens.access_token,
                refresh_token=result.tokens.refresh_token,
                token_type=result.tokens.token_type,
                expires_in=result.tokens.expires_in,
            ),
        ),
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(body: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    result = auth_service.register(RegisterCommand(
        phone_number=body.phone_number,
        first_name=body.first_name,
        last_name=body.last_name,
        password=body.password,
        email=body.email,
    ))
    return _auth_response(result)


@router.post("/register-admin", response_model=UserEnvelope, status_code=201, dependencies=[Depends(require_admin_secret)])
def register_admin(body: AdminRegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    admin = auth_service.register_admin(RegisterCommand(
        phone_number=body.phone_number,
        first_name=body.first_name,
        last_name=body.last_name,
        password=body.password,
        email=body.email,
    ))
    return UserEnvelope(message="Administrator registered successfully", data=UserResponse.from_dto(admin))


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    return _auth_response(auth_service.login(body.email_or_phone, body.password))


@router.post("/request-otp", response_model=MessageResponse)
def request_otp(
    body: RequestOTPRequest,
    claims: Optional[AccessClaims] = Depends(get_optional_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    # An authenticated caller is asking to move to a new number
    if claims:
        auth_service.request_phone_change_otp(claims.sub, body.phone_number)
    else:
        auth_service.request_login_otp(body.phone_number)
    return MessageResponse(message="OTP sent successfully")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(body: RequestOTPRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.forgot_password(body.phone_number)
    return MessageResponse(message="Password recovery code sent successfully")


@router.post("/verify-otp", response_model=AuthResponse)
def verify_otp(
    body: VerifyOTPRequest,
    claims: Optional[AccessClaims] = Depends(get_optional_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    if claims:
        result = auth_service.verify_phone_change_otp(VerifyOtpForPhoneChange(
            caller_id=claims.sub,
            new_phone_number=body.phone_number,
            code=body.code,
        ))
    else:
        result = auth_service.verify_login_otp(VerifyOtpForLogin(phone_number=body.phone_number, code=body.code))
    return _auth_response(result)


@router.post("/refresh", response_model=RefreshResponse)
def refresh(body: RefreshRequest, auth_service: AuthService = Depends(get_auth_service)):
    grant = auth_service.refresh(body.refresh_token)
    return RefreshResponse(
        message="Token refreshed successfully",
        data=AccessTokenData(
            access_token=grant.access_token,
            token_type=grant.token_type,
            expires_in=grant.expires_in,
        ),
    )


@router.get("/me", response_model=UserEnvelope)
def get_me(
    claims: AccessClaims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    return UserEnvelope(message="OK", data=UserResponse.from_dto(auth_service.get_me(claims.sub)))


@router.put("/password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    claims: AccessClaims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.change_password(claims.sub, body.new_password)
    return MessageResponse(message="Password updated successfully")


@router.get("/users/{user_id}", response_model=UserEnvelope)
def get_user(
    user_id: str,
    admin: AccessClaims = Depends(admin_only),
    auth_service: AuthService = Depends(get_auth_service),
):
    logger.info(f"Administrator {admin.sub} looked up user {user_id}")
    return UserEnvelope(message="OK", data=UserResponse.from_dto(auth_service.get_me(user_id)))
