"""Exception handlers mapping domain errors to HTTP responses"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from domain.exceptions import (
    DomainError, InvalidArgumentError, NotFoundError, ConflictError,
    CapacityExceededError, UnauthorizedError, ForbiddenError,
)

logger = logging.getLogger(__name__)

# Most specific class first
ERROR_STATUS = (
    (InvalidArgumentError, status.HTTP_400_BAD_REQUEST),
    (CapacityExceededError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
)


def status_for(exc: DomainError) -> int:
    for error_class, code in ERROR_STATUS:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_400_BAD_REQUEST


def error_body(message: str, error_code: str, details=None) -> dict:
    body = {"message": message, "error_code": error_code}
    if details:
        body["details"] = details
    return body


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    code = status_for(exc)
    logger.warning(
        "%s %s -> %s %s: %s",
        request.method, request.url.path, code, exc.error_code, exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(
        status_code=code,
        content=error_body(exc.message, exc.error_code, exc.details),
        headers=headers,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework-raised errors (missing token, unknown route) in the same body shape"""
    error_code = {
        status.HTTP_401_UNAUTHORIZED: "UnauthorizedError",
        status.HTTP_403_FORBIDDEN: "ForbiddenError",
        status.HTTP_404_NOT_FOUND: "NotFoundError",
    }.get(exc.status_code, "HTTPError")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), error_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    logger.warning("%s %s -> 400 validation: %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, "InvalidArgumentError"),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", "InternalError"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
