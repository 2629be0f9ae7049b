# barber_core/core/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    APP_NAME: str = "Barber Core API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True
    API_PREFIX: str = "/api/v1"

    # Database Settings
    DATABASE_URL: str = "sqlite:///./barber_core.db"

    # Token Settings (access and refresh tokens use independent secrets)
    JWT_SECRET_KEY: str = "change-me-in-prod"
    JWT_REFRESH_SECRET_KEY: str = "change-me-refresh-in-prod"
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "barber-core-api"
    JWT_AUDIENCE: str = "barber-web"
    JWT_REFRESH_AUDIENCE: str = "barber-web-refresh"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 90

    # Password Settings
    BCRYPT_ROUNDS: int = 10
    MIN_PASSWORD_LENGTH: int = 8

    # Admin self-registration gate (x-secret-key header)
    ADMIN_SECRET_KEY: Optional[str] = None

    # Twilio Settings
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_VERIFY_SERVICE_SID: str = ""
    TWILIO_TIMEOUT_SECONDS: int = 15
    # When set, OTPs are never sent and this code is always accepted
    MOCK_OTP: Optional[str] = None

    # Phone Settings
    DEFAULT_PHONE_REGION: str = "AU"

    # Square Settings
    SQUARE_ACCESS_TOKEN: str = ""
    SQUARE_ENVIRONMENT: str = "sandbox"
    SQUARE_LOCATION_ID: str = ""
    SQUARE_API_VERSION: str = "2024-12-18"
    SQUARE_TIMEOUT_SECONDS: float = 10.0
    CUSTOMER_IDEMPOTENCY_BUCKET_MINUTES: int = 60

    # OTP Rate Limiting
    OTP_RATE_LIMIT_MAX_REQUESTS: int = 3
    OTP_RATE_LIMIT_WINDOW_SECONDS: int = 3600
    REDIS_URL: Optional[str] = None

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # CORS Settings (comma-separated)
    ALLOWED_ORIGINS: str = "http://localhost:5173"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def square_base_url(self) -> str:
        if self.SQUARE_ENVIRONMENT == "production":
            return "https://connect.squareup.com/v2"
        return "https://connect.squareupsandbox.com/v2"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
