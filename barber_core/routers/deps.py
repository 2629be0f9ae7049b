import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from ..application.ports.user_repo import ADMINISTRATOR, CUSTOMER
from ..application.services.auth_service import AuthService
from ..application.services.customer_service import CustomerService
from ..application.services.customer_sync import CustomerSyncService
from ..application.services.token_service import AccessClaims, TokenService, authorize
from ..core.config import Settings
from ..database import get_session
from ..exceptions import Unauthorized
from ..infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository

logger = logging.getLogger(__name__)

oauth2_scheme = HTTPBearer()
optional_oauth2_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_repo(session: Session = Depends(get_session)) -> SqlUserRepository:
    return SqlUserRepository(session)


def get_token_service(
    settings: Settings = Depends(get_app_settings),
    user_repo: SqlUserRepository = Depends(get_user_repo),
) -> TokenService:
    return TokenService.from_settings(settings, user_repo)


def get_customer_sync(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    user_repo: SqlUserRepository = Depends(get_user_repo),
) -> CustomerSyncService:
    return CustomerSyncService(
        user_repo=user_repo,
        platform=request.app.state.booking_platform,
        audit=request.app.state.audit_logger,
        bucket_minutes=settings.CUSTOMER_IDEMPOTENCY_BUCKET_MINUTES,
    )


def get_auth_service(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    user_repo: SqlUserRepository = Depends(get_user_repo),
    tokens: TokenService = Depends(get_token_service),
    customer_sync: CustomerSyncService = Depends(get_customer_sync),
) -> AuthService:
    state = request.app.state
    return AuthService(
        user_repo=user_repo,
        otp_provider=state.otp_provider,
        tokens=tokens,
        customer_sync=customer_sync,
        password_hasher=state.password_hasher,
        audit=state.audit_logger,
        rate_limiter=state.rate_limiter,
        default_region=settings.DEFAULT_PHONE_REGION,
        min_password_length=settings.MIN_PASSWORD_LENGTH,
        otp_max_requests=settings.OTP_RATE_LIMIT_MAX_REQUESTS,
        otp_window_seconds=settings.OTP_RATE_LIMIT_WINDOW_SECONDS,
    )


def get_customer_service(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    user_repo: SqlUserRepository = Depends(get_user_repo),
    customer_sync: CustomerSyncService = Depends(get_customer_sync),
) -> CustomerService:
    return CustomerService(
        user_repo=user_repo,
        platform=request.app.state.booking_platform,
        customer_sync=customer_sync,
        location_id=settings.SQUARE_LOCATION_ID,
    )


def get_current_claims(
    credentials: HTTPAuthorizationCredentials = Depends(oauth2_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> AccessClaims:
    return tokens.verify_access(credentials.credentials)


def get_optional_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_oauth2_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> Optional[AccessClaims]:
    """Claims when a bearer token is present; a bad token is an error, not an anonymous call."""
    if credentials is None:
        return None
    return tokens.verify_access(credentials.credentials)


def customer_only(claims: AccessClaims = Depends(get_current_claims)) -> AccessClaims:
    return authorize(claims, [CUSTOMER])


def admin_only(claims: AccessClaims = Depends(get_current_claims)) -> AccessClaims:
    return authorize(claims, [ADMINISTRATOR])


def require_admin_secret(
    x_secret_key: Optional[str] = Header(None),
    settings: Settings = Depends(get_app_settings),
) -> None:
    expected = settings.ADMIN_SECRET_KEY
    if not expected or not x_secret_key or not hmac.compare_digest(x_secret_key.encode(), expected.encode()):
        logger.warning("Rejected admin registration: bad or missing x-secret-key")
        raise Unauthorized("Unauthorized")
