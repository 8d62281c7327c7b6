from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from transit_api.core.config import request_logger
from transit_api.core.exceptions.types import (
    AppException,
    AuthenticationException,
    DatabaseException,
)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_response(
    status_code: int, message: str, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Build the ``{"success": false, "error": ...}`` envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException):
    """
    Handles application exceptions by returning the envelope with the exception message.

    Args:
        request: The request object.
        exc (AppException): The exception instance.

    Returns:
        JSONResponse: The error envelope with the exception's status code.
    """
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        request_logger.error(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
        )
    else:
        request_logger.warning(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
        )
    return error_response(exc.status_code, exc.message)


async def authentication_exception_handler(
    request: Request, exc: AuthenticationException
):
    """
    Handles authentication exceptions (401) and advertises the Bearer scheme.

    Args:
        request: The request object.
        exc (AuthenticationException): The authentication exception instance.

    Returns:
        JSONResponse: The error envelope with status 401.
    """
    request_logger.warning(
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
    )
    return error_response(
        exc.status_code, exc.message, headers={"WWW-Authenticate": "Bearer"}
    )


async def database_exception_handler(request: Request, exc: DatabaseException):
    """
    Handles storage failures. The driver error is logged, never returned.

    Args:
        request: The request object.
        exc (DatabaseException): The database exception instance.

    Returns:
        JSONResponse: A generic 500 envelope.
    """
    request_logger.error(
        f"DatabaseException on {request.method} {request.url.path}: {exc}"
    )
    return error_response(exc.status_code, INTERNAL_ERROR_MESSAGE)


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """
    Maps body/query validation failures to a 400 envelope carrying the first error.

    Input values are not echoed back, so a rejected password never appears
    in a response.
    """
    errors = exc.errors()
    message = "Validation failed."
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = str(first.get("msg", "invalid value"))
        message = f"{field}: {detail}" if field else detail
    request_logger.warning(
        f"RequestValidationError on {request.method} {request.url.path}: {message}"
    )
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last-resort handler: log the failure, answer with a detail-free 500."""
    request_logger.exception(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}"
    )
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE
    )


def _example(description: str, message: str) -> dict:
    return {
        "description": description,
        "content": {
            "application/json": {
                "example": {"success": False, "error": message},
            }
        },
    }


exception_schema = {
    status.HTTP_400_BAD_REQUEST: _example("Validation Error", "email: field required"),
    status.HTTP_401_UNAUTHORIZED: _example("Authentication Error", "Invalid token"),
    status.HTTP_500_INTERNAL_SERVER_ERROR: _example(
        "Internal Server Error", INTERNAL_ERROR_MESSAGE
    ),
}


__all__ = [
    "error_response",
    "app_exception_handler",
    "authentication_exception_handler",
    "database_exception_handler",
    "request_validation_exception_handler",
    "unhandled_exception_handler",
    "exception_schema",
    "INTERNAL_ERROR_MESSAGE",
]
