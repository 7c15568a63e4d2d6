"""Error handlers for the FastAPI application.

Every failure leaves the service as a JSON body of the form
``{"error": {"message": ..., "status_code": ..., "details": ...}}`` so the
upload UI can show a generic notice and offer a retry.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from core.exceptions import AppException
from core.logger import get_logger
from typing import Any, Dict, Optional

logger = get_logger("core.error_handlers")


def create_error_response(
    message: str,
    status_code: int = 500,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        message: Error message.
        status_code: HTTP status code.
        details: Optional error details dictionary.

    Returns:
        JSONResponse with error details.
    """
    error_body: Dict[str, Any] = {
        "error": {
            "message": message,
            "status_code": status_code,
        }
    }
    if details:
        error_body["error"]["details"] = details

    return JSONResponse(status_code=status_code, content=error_body)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render an `AppException` with its own status code and details."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Application error: %s %s [%s %s]",
        exc.message,
        exc.details,
        request.method,
        request.url.path,
    )
    return create_error_response(
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Render pydantic/FastAPI request validation errors as a 422 with per-field details."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    logger.warning("Validation error on %s %s: %s", request.method, request.url.path, errors)

    return create_error_response(
        message="Validation error",
        status_code=422,
        details={"validation_errors": errors},
    )


async def sqlalchemy_exception_handler(
    request: Request,
    exc: SQLAlchemyError
) -> JSONResponse:
    """Render database errors without leaking driver messages to the client."""
    logger.error(
        "Database error on %s %s: %s",
        request.method,
        request.url.path,
        str(exc),
        exc_info=True,
    )
    return create_error_response(
        message="A database error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        details={"type": "database_error"},
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Catch-all for exceptions nothing else handled."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        str(exc),
        exc_info=True,
    )
    return create_error_response(
        message="An internal server error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        details={"type": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.debug("Exception handlers registered")
