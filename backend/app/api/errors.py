"""
Map the domain error taxonomy to HTTP responses.

Body shape for every handled error:
    {"error": <code>, "message": <text>, "retryable": <bool>}
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    ConcurrencyError,
    LifecycleError,
    NotFoundError,
    PermissionDenied,
    StateConflictError,
    ValidationError,
)
from app.core.logging import get_logger

logger = get_logger(__name__)

STATUS_CODES = (
    (ValidationError, 422),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (ConcurrencyError, status.HTTP_409_CONFLICT),
)


def status_code_for(exc: LifecycleError) -> int:
    for error_class, code in STATUS_CODES:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_400_BAD_REQUEST


def error_body(code: str, message: str, retryable: bool = False) -> dict:
    return {"error": code, "message": message, "retryable": retryable}


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    status_code = status_code_for(exc)
    logger.warning("request_rejected", error=exc.code, message=exc.message, status_code=status_code)
    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.code, exc.message, exc.retryable),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = error_body(ValidationError.code, "Request validation failed")
    body["details"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=422, content=body)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("internal_error", "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LifecycleError, lifecycle_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
