"""
Error handler middleware and custom exceptions.

Provides consistent error responses for API-level exceptions and maps
the data-access error taxonomy onto HTTP status codes.
"""
import logging
from typing import Optional, Dict, Any
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from kmerbeauty.lib.cancellation import OperationCancelled
from kmerbeauty.lib.errors import DataAccessError, ErrorKind
from kmerbeauty.lib.logging import get_logger

logger = get_logger(__name__)


# Status code per data-access error kind
DATA_ERROR_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.NETWORK: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.UNKNOWN: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# Custom exception classes
class AppException(Exception):
    """Base application exception."""
    
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""
    
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class ForbiddenException(AppException):
    """Forbidden access exception."""
    
    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    content: Dict[str, Any] = {
        "error": message,
        "correlation_id": correlation_id,
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


# Exception handlers
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handler for custom application exceptions.
    
    Returns consistent error response with correlation ID.
    """
    log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"Application error: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
        },
    )
    return _error_response(request, exc.status_code, exc.message, exc.details)


async def data_access_exception_handler(request: Request, exc: DataAccessError) -> JSONResponse:
    """
    Handler for data-access failures that reached the API layer.
    
    NotFound -> 404, Network -> 503, Validation -> 422, Unknown -> 500.
    """
    status_code = DATA_ERROR_STATUS.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    log_level = logging.WARNING if status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"Data access error: {exc.message}",
        extra={
            "kind": exc.kind.value,
            "status_code": status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    details = {"kind": exc.kind.value, **exc.details}
    return _error_response(request, status_code, exc.message, details)


async def cancelled_exception_handler(request: Request, exc: OperationCancelled) -> JSONResponse:
    """Handler for aggregations abandoned after their deadline."""
    logger.warning(
        f"Request cancelled: {exc.operation}",
        extra={"path": request.url.path, "method": request.method},
    )
    return _error_response(
        request,
        status.HTTP_504_GATEWAY_TIMEOUT,
        "Request timed out",
        {"operation": exc.operation},
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handler for Pydantic validation errors.
    
    Formats validation errors in a consistent way.
    """
    errors = []
    for error in exc.errors():
        errors.append({
            "loc": list(error["loc"]),
            "msg": error["msg"],
            "type": error["type"],
        })
    
    logger.warning(
        "Validation error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "errors": errors,
        },
    )
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        {"errors": errors},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Handler for Starlette HTTP exceptions.
    
    Provides consistent format for HTTP errors.
    """
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return _error_response(request, exc.status_code, exc.detail)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handler for unhandled exceptions.
    
    Logs full stack trace and returns generic error message.
    """
    logger.error(
        f"Unhandled exception: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
