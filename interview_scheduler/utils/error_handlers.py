"""
Centralized error handling and user-friendly error messages.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Validation error."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppError):
    """Resource not found error."""
    def __init__(self, message: str = "Resource not found", details: dict | None = None):
        super().__init__(message, status_code=404, details=details)


class UnauthorizedError(AppError):
    """Unauthorized access error."""
    def __init__(self, message: str = "Unauthorized access", details: dict | None = None):
        super().__init__(message, status_code=401, details=details)


class ForbiddenError(AppError):
    """Forbidden access error."""
    def __init__(self, message: str = "Access forbidden", details: dict | None = None):
        super().__init__(message, status_code=403, details=details)


class ConflictStateError(AppError):
    """Operation not allowed in the record's current state."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=409, details=details)


# User-friendly error messages
ERROR_MESSAGES = {
    # Authentication
    "invalid_credentials": "Invalid email or password. Please try again.",
    "email_exists": "An account with this email already exists. Please login instead.",
    "weak_password": "Password must be at least 6 characters long.",
    "session_expired": "Your session has expired. Please login again.",

    # Employers / candidates
    "employer_not_found": "Employer not found.",
    "candidate_not_found": "Candidate not found.",
    "application_not_found": "Application not found. It may have been withdrawn.",

    # Interviews
    "interview_not_found": "Interview not found.",
    "invalid_schedule": "Invalid interview schedule. Please check the date and time.",
    "schedule_in_past": "Interviews cannot be scheduled in the past.",
    "invalid_duration": "Interview duration is out of range.",
    "not_reschedulable": "Only scheduled interviews can be rescheduled.",
    "not_completable": "Only scheduled interviews can be marked completed.",
    "conflict_log_not_found": "Conflict record not found.",

    # General
    "unauthorized": "Please login to access this feature.",
    "forbidden": "You don't have permission to access this resource.",
    "not_found": "The requested resource was not found.",
    "server_error": "Something went wrong on our end. Please try again later.",
    "database_error": "Database connection issue. Please try again later.",
    "validation_error": "Please check your input and try again.",
}


def get_error_message(error_key: str, default: str | None = None) -> str:
    """Get a user-friendly error message."""
    return ERROR_MESSAGES.get(error_key, default or ERROR_MESSAGES["server_error"])


def handle_database_error(error: Exception, operation: str = "") -> HTTPException:
    """Handle database errors with user-friendly messages."""
    logger.error(f"Database error during {operation}: {error}")

    error_str = str(error).lower()

    if "duplicate" in error_str or "unique" in error_str:
        return HTTPException(
            status_code=409,
            detail="This record already exists. Please check your input."
        )

    if "foreign key" in error_str:
        return HTTPException(
            status_code=400,
            detail="Invalid reference. The related record may have been deleted."
        )

    if "connection" in error_str or "operational" in error_str:
        return HTTPException(
            status_code=503,
            detail=get_error_message("database_error")
        )

    return HTTPException(
        status_code=500,
        detail=get_error_message("server_error")
    )


def create_error_response(
    status_code: int,
    message: str,
    details: dict | None = None
) -> JSONResponse:
    """Create a standardized error response."""
    content = {
        "success": False,
        "error": message,
    }

    if details:
        content["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map application, HTTP and database errors to the `{"success": false, ...}` envelope."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("AppError: %s", exc.message)
        return create_error_response(exc.status_code, exc.message, exc.details or None)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTPException with user-friendly messages."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": exc.detail,
                "status_code": exc.status_code,
            },
        )

    @app.exception_handler(OperationalError)
    async def sqlalchemy_operational_error_handler(request: Request, exc: OperationalError):
        """Database unreachable: surfaced as a hard failure, never retried here."""
        logger.exception("Database OperationalError: %s", exc)
        return create_error_response(503, get_error_message("database_error"))

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database SQLAlchemyError: %s", exc)
        return create_error_response(500, get_error_message("database_error"))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.warning("ValueError: %s", exc)
        return create_error_response(400, str(exc) or get_error_message("validation_error"))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return create_error_response(500, get_error_message("server_error"))
