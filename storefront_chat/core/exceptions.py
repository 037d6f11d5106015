"""Application exception classes and handlers."""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


# --- Authentication (401) ---


class AuthenticationError(AppException):
    """Base authentication error."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message=message, code="AUTHENTICATION_ERROR", status_code=401)


class TokenExpiredError(AppException):
    """Token has expired."""

    def __init__(self) -> None:
        super().__init__(
            message="Token has expired",
            code="TOKEN_EXPIRED",
            status_code=401,
        )


class TokenBlacklistedError(AppException):
    """Token has been revoked."""

    def __init__(self) -> None:
        super().__init__(
            message="Token has been revoked",
            code="TOKEN_BLACKLISTED",
            status_code=401,
        )


class InvalidTokenError(AppException):
    """Token is invalid."""

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(
            message=message,
            code="INVALID_TOKEN",
            status_code=401,
        )


# --- Authorization (403) ---


class AuthorizationError(AppException):
    """Insufficient permissions."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message=message, code="AUTHORIZATION_ERROR", status_code=403)


# --- Not Found (404) ---


class SessionNotFoundError(AppException):
    """Chat session does not exist."""

    def __init__(self, session_id: str | None = None) -> None:
        message = "Chat session not found"
        if session_id is not None:
            message = f"Chat session '{session_id}' not found"
        super().__init__(
            message=message,
            code="SESSION_NOT_FOUND",
            status_code=404,
        )


# --- Conflict (409) ---


class SessionAlreadyExistsError(AppException):
    """A chat session with this id already exists."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            message=f"Chat session '{session_id}' already exists",
            code="SESSION_ALREADY_EXISTS",
            status_code=409,
        )


# --- Validation (422) ---


class MessageValidationError(AppException):
    """Inbound chat payload failed validation."""

    def __init__(self, message: str = "Invalid chat message") -> None:
        super().__init__(message=message, code="VALIDATION_ERROR", status_code=422)


class MalformedEventError(AppException):
    """WebSocket frame is not a recognised envelope."""

    def __init__(self, message: str = "Malformed event") -> None:
        super().__init__(message=message, code="MALFORMED_EVENT", status_code=400)


# --- Service Unavailable (503) ---


class StoreUnavailableError(AppException):
    """The chat store failed; the caller may retry."""

    def __init__(self, message: str = "Chat store unavailable") -> None:
        super().__init__(message=message, code="STORE_UNAVAILABLE", status_code=503)


# --- Exception Handlers ---


def error_body(exc: AppException) -> dict:
    """Shared error payload for HTTP responses and socket error events."""
    return {
        "status": exc.status_code,
        "message": exc.message,
        "code": exc.code,
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Central exception handler for AppException."""
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def store_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Render database failures as 503 STORE_UNAVAILABLE."""
    error = StoreUnavailableError()
    return JSONResponse(status_code=error.status_code, content=error_body(error))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures in the ErrorResponse shape."""
    errors = exc.errors()
    detail = errors[0].get("msg", "Validation error") if errors else "Validation error"
    return JSONResponse(
        status_code=422,
        content={
            "status": 422,
            "message": str(detail),
            "code": "VALIDATION_ERROR",
        },
    )
