import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from .application.ports.booking_platform import BookingPlatform
from .application.ports.otp_provider import OTPProvider
from .core.config import Settings, get_settings
from .database import build_engine, create_db_and_tables
from .exceptions import AppError, app_error_handler, http_exception_handler, validation_exception_handler
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.booking.square_client import SquareBookingClient
from .infrastructure.otp.fixed_code_provider import FixedCodeOTPProvider
from .infrastructure.otp.twilio_provider import TwilioOTPProvider
from .infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from .infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter
from .infrastructure.security.password_hasher import PasslibPasswordHasher
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, SecurityMiddleware
from .routers import auth_router, customers_router
from .schemas import HealthResponse

logger = logging.getLogger(__name__)


def _build_otp_provider(settings: Settings) -> OTPProvider:
    if settings.MOCK_OTP:
        logger.warning("MOCK_OTP is set: SMS codes are not sent and the fixed code is accepted")
        return FixedCodeOTPProvider(settings.MOCK_OTP)
    return TwilioOTPProvider.from_settings(settings)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    otp_provider: Optional[OTPProvider] = None,
    booking_platform: Optional[BookingPlatform] = None,
) -> FastAPI:
    settings = settings or get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}...")
        app.state.db_init_ok = True
        try:
            create_db_and_tables(app.state.engine)
            logger.info("Database initialized successfully")
        except Exception:
            # Do not crash the app; report via health endpoint
            app.state.db_init_ok = False
            logger.exception("Database initialization failed")
        yield
        # Shutdown
        logger.info(f"Shutting down {settings.APP_NAME}...")
        close = getattr(app.state.booking_platform, "close", None)
        if close:
            close()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None)
    )

    # Long-lived collaborators, shared by every request
    app.state.settings = settings
    app.state.engine = engine if engine is not None else build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    app.state.otp_provider = otp_provider or _build_otp_provider(settings)
    app.state.booking_platform = booking_platform or SquareBookingClient.from_settings(settings)
    app.state.password_hasher = PasslibPasswordHasher(rounds=settings.BCRYPT_ROUNDS)
    app.state.audit_logger = StdAuditLogger()
    if settings.REDIS_URL:
        app.state.rate_limiter = RedisRateLimiter.from_url(settings.REDIS_URL)
    else:
        app.state.rate_limiter = InMemoryRateLimiter()

    # Add custom exception handlers
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Add middleware
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.DEBUG)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityMiddleware)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router, prefix=settings.API_PREFIX)
    app.include_router(customers_router.router, prefix=settings.API_PREFIX)

    # Health check endpoint
    @app.get(f"{settings.API_PREFIX}/health", response_model=HealthResponse, tags=["Health"])
    def health_check():
        return HealthResponse(
            status="healthy" if getattr(app.state, "db_init_ok", True) else "degraded",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            timestamp=datetime.utcnow(),
        )

    return app


app = create_app()
