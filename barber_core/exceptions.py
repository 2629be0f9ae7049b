import logging
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto a user-facing HTTP response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


class InvalidInput(AppError):
    status_code = 400
    code = "INVALID_INPUT"
    message = "Invalid input"


class InvalidPhoneNumber(InvalidInput):
    code = "INVALID_PHONE_NUMBER"

    def __init__(self, category: str, reason: str):
        self.category = category
        self.reason = reason
        super().__init__(reason)


class Conflict(AppError):
    status_code = 409
    code = "CONFLICT"

    PHONE_TAKEN = "phone_taken"
    EMAIL_TAKEN = "email_taken"

    _messages = {
        PHONE_TAKEN: "Phone number already registered",
        EMAIL_TAKEN: "Email already registered",
    }

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        self.code = reason.upper()
        super().__init__(message or self._messages.get(reason, "Resource already exists"))


class InvalidCredentials(AppError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials"


class InvalidOrExpiredOTP(AppError):
    status_code = 400
    code = "INVALID_OTP"
    message = "The verification code is incorrect or has expired. Please check and try again."


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "User not found"


class Unauthorized(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    message = "Invalid or expired token"


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    message = "You do not have permission to perform this action"


class RateLimited(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    message = "Too many OTP requests. Please try again later."


class OTPProviderError(AppError):
    status_code = 502
    code = "OTP_PROVIDER_ERROR"
    message = "We could not reach the SMS verification service. Please try again."


class ExternalServiceUnavailable(AppError):
    status_code = 503
    code = "BOOKING_PLATFORM_UNAVAILABLE"
    message = "The booking platform is temporarily unavailable. Please try again later."


class BookingPlatformError(Exception):
    """Raised by booking platform adapters; never returned to HTTP callers directly."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def create_error_response(error_message: str, code: Optional[str] = None) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": {"error": code} if code else None,
        "error": error_message
    }


def create_success_response(data, message: str = "OK") -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "message": message,
        "data": data
    }


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.code)
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", Unauthorized.code)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(str(exc.detail))
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    return JSONResponse(
        status_code=400,
        content=create_error_response(message, InvalidInput.code)
    )
