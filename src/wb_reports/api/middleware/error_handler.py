"""
Error handling for the HTTP API.

Domain exceptions are mapped to status codes by an exception handler; the
middleware logs every request and turns unexpected failures into 500s.
"""

import time

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from wb_reports.utils.logger import get_logger
from wb_reports.utils.exceptions import (
    APIError,
    BadRequestError,
    ConfigurationError,
    DatabaseError,
    InvalidCredentialError,
    JobCreationFailedError,
    JobTimeoutError,
    NotFoundError,
    SheetsAPIError,
    TooManyPagesError,
    UpstreamJobFailedError,
    ValidationError,
    WBReportsError,
)

logger = get_logger(__name__)

# first match wins, subclasses before their bases
ERROR_STATUS = [
    (InvalidCredentialError, status.HTTP_401_UNAUTHORIZED, "Invalid Credential"),
    (BadRequestError, status.HTTP_400_BAD_REQUEST, "Bad Request"),
    (ValidationError, status.HTTP_400_BAD_REQUEST, "Validation Error"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "Not Found"),
    (JobTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT, "Upstream Timeout"),
    (TooManyPagesError, status.HTTP_504_GATEWAY_TIMEOUT, "Upstream Timeout"),
    (APIError, status.HTTP_502_BAD_GATEWAY, "Upstream Error"),
    (JobCreationFailedError, status.HTTP_502_BAD_GATEWAY, "Upstream Error"),
    (UpstreamJobFailedError, status.HTTP_502_BAD_GATEWAY, "Upstream Error"),
    (SheetsAPIError, status.HTTP_502_BAD_GATEWAY, "Sheets Error"),
    (DatabaseError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Database Error"),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Configuration Error"),
]


def status_for(exc: WBReportsError):
    """(status code, error label) for a domain exception."""
    for exc_type, status_code, label in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code, label
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Error"


async def wb_reports_error_handler(request: Request, exc: WBReportsError) -> JSONResponse:
    status_code, label = status_for(exc)

    if status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {label}: {exc}")
    else:
        logger.warning(f"⚠️ {request.method} {request.url.path}: {label}: {exc}")

    content = {"error": label, "message": exc.message}
    if status_code < 500 and exc.details:
        content["details"] = jsonable_encoder(exc.details)
    elif isinstance(exc, DatabaseError):
        content["message"] = "A database error occurred"
    return JSONResponse(status_code=status_code, content=content)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request logging and last-resort error handling.
    """

    async def dispatch(self, request: Request, call_next):
        """Process request with error handling."""
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {e}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Internal Server Error",
                    "message": "An unexpected error occurred"
                }
            )

        duration = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - {response.status_code} - {duration:.3f}s"
        )
        return response


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WBReportsError, wb_reports_error_handler)
    app.add_middleware(ErrorHandlerMiddleware)
