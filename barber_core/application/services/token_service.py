import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

import jwt

from ..ports.user_repo import UserDto, UserRepository
from ...core.config import Settings
from ...exceptions import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"
TOKEN_TYPE = "Bearer"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = TOKEN_TYPE


@dataclass
class AccessGrant:
    access_token: str
    expires_in: int
    token_type: str = TOKEN_TYPE


@dataclass
class AccessClaims:
    sub: str
    role: str
    phone_number: str
    email: Optional[str]
    first_name: str
    last_name: str
    is_verified: bool


class TokenService:
    """Issues and validates access and refresh tokens.

    The two token kinds are signed with independent secrets and carry
    different audiences, so neither secret can be used to forge the other kind.
    Refresh tokens are stateless and are not rotated: deleting the user is the
    only way to revoke one before it expires.
    """

    def __init__(
        self,
        user_repo: UserRepository,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        issuer: str = "barber-core-api",
        audience: str = "barber-web",
        refresh_audience: str = "barber-web-refresh",
        access_ttl: timedelta = timedelta(days=1),
        refresh_ttl: timedelta = timedelta(days=90),
    ):
        if access_secret == refresh_secret:
            raise ValueError("Access and refresh tokens must use different secrets")
        self.user_repo = user_repo
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.refresh_audience = refresh_audience
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings: Settings, user_repo: UserRepository) -> "TokenService":
        return cls(
            user_repo=user_repo,
            access_secret=settings.JWT_SECRET_KEY,
            refresh_secret=settings.JWT_REFRESH_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            refresh_audience=settings.JWT_REFRESH_AUDIENCE,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    @property
    def access_expires_in(self) -> int:
        return int(self.access_ttl.total_seconds())

    def _encode(self, claims: Dict[str, Any], secret: str, audience: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = dict(claims)
        to_encode.update({"iss": self.issuer, "aud": audience, "iat": now, "exp": now + ttl})
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: str, audience: str, expected_type: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                audience=audience,
                issuer=self.issuer,
                options={"require": ["exp", "sub", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info(f"Rejected {expected_type} token: expired")
            raise Unauthorized()
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected {expected_type} token: {e}")
            raise Unauthorized()

        if payload.get("type") != expected_type:
            logger.warning(f"Rejected {expected_type} token: wrong token type {payload.get('type')!r}")
            raise Unauthorized()
        return payload

    def _access_token_for(self, user: UserDto) -> str:
        return self._encode(
            {
                "sub": user.id,
                "type": ACCESS,
                "role": user.role,
                "phone_number": user.phone_number,
                "email": user.email,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "is_verified": user.is_verified,
            },
            self.access_secret,
            self.audience,
            self.access_ttl,
        )

    def issue_pair(self, user: UserDto) -> TokenPair:
        refresh_token = self._encode(
            {"sub": user.id, "type": REFRESH},
            self.refresh_secret,
            self.refresh_audience,
            self.refresh_ttl,
        )
        return TokenPair(
            access_token=self._access_token_for(user),
            refresh_token=refresh_token,
            expires_in=self.access_expires_in,
        )

    def verify_access(self, token: str) -> AccessClaims:
        payload = self._decode(token, self.access_secret, self.audience, ACCESS)
        return AccessClaims(
            sub=payload["sub"],
            role=payload.get("role", ""),
            phone_number=payload.get("phone_number", ""),
            email=payload.get("email"),
            first_name=payload.get("first_name", ""),
            last_name=payload.get("last_name", ""),
            is_verified=bool(payload.get("is_verified", False)),
        )

    def refresh(self, refresh_token: str) -> AccessGrant:
        payload = self._decode(refresh_token, self.refresh_secret, self.refresh_audience, REFRESH)
        user = self.user_repo.get_by_id(payload["sub"])
        if not user:
            logger.warning("Rejected refresh token: user no longer exists")
            raise Unauthorized()
        # Claims come from the current record, not from whatever the old access token said
        return AccessGrant(access_token=self._access_token_for(user), expires_in=self.access_expires_in)


def authorize(claims: AccessClaims, allowed_roles: Iterable[str]) -> AccessClaims:
    allowed = tuple(allowed_roles)
    if claims.role not in allowed:
        raise Forbidden(f"This action requires one of these roles: {', '.join(allowed)}")
    return claims
