"""
Custom exceptions for WB Reports.

Defines the error taxonomy for upstream transport failures, asynchronous
report job failures, pagination safety bounds and local validation.
"""

from typing import Optional, Dict, Any


class WBReportsError(Exception):
    """Base exception for all WB Reports errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception with message and optional details.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(WBReportsError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(WBReportsError):
    """Raised when request or record validation fails."""

    def __init__(self, message: str, field: Optional[str] = None,
                 value: Optional[Any] = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details)
        self.field = field
        self.value = value


class NotFoundError(WBReportsError):
    """Raised when a stored entity (token, cost price) does not exist."""
    pass


class APIError(WBReportsError):
    """Base class for upstream API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 response_data: Optional[Any] = None,
                 endpoint: Optional[str] = None):
        """
        Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: Upstream response payload or text
            endpoint: Endpoint that failed
        """
        details = {}
        if status_code:
            details["status_code"] = status_code
        if response_data:
            details["response_data"] = response_data
        if endpoint:
            details["endpoint"] = endpoint

        super().__init__(message, details)
        self.status_code = status_code
        self.response_data = response_data
        self.endpoint = endpoint


class InvalidCredentialError(APIError):
    """Raised on 401/403: the API key is wrong, expired or lacks a category."""
    pass


class BadRequestError(APIError):
    """Raised on 400: the upstream rejected request parameters."""
    pass


class RateLimitError(APIError):
    """Base for throttling (429) failures; retry_after is the last upstream hint."""

    def __init__(self, message: str, retry_after: Optional[float] = None,
                 endpoint: Optional[str] = None):
        super().__init__(message, 429, None, endpoint)
        self.retry_after = retry_after
        if retry_after is not None:
            self.details["retry_after"] = retry_after


class RetryBudgetExhaustedError(RateLimitError):
    """Raised when throttling persists past the retry budget."""

    def __init__(self, message: str, attempts: int, retry_after: Optional[float] = None,
                 endpoint: Optional[str] = None):
        super().__init__(message, retry_after, endpoint)
        self.attempts = attempts
        self.details["attempts"] = attempts


class UpstreamUnavailableError(APIError):
    """Raised when 5xx responses or network failures outlast the retry budget."""
    pass


class MalformedResponseError(APIError):
    """Raised when a response body cannot be parsed or has the wrong shape."""
    pass


class JobCreationFailedError(WBReportsError):
    """Raised when an async report job could not be created."""

    def __init__(self, message: str, job_name: Optional[str] = None,
                 response_data: Optional[Any] = None):
        details = {}
        if job_name:
            details["job"] = job_name
        if response_data is not None:
            details["response_data"] = response_data

        super().__init__(message, details)
        self.job_name = job_name
        self.response_data = response_data


class UpstreamJobFailedError(WBReportsError):
    """Raised when the upstream reports a terminal job error."""

    def __init__(self, message: str, task_id: Optional[str] = None,
                 status: Optional[str] = None):
        details = {}
        if task_id:
            details["task_id"] = task_id
        if status:
            details["status"] = status

        super().__init__(message, details)
        self.task_id = task_id
        self.status = status


class JobTimeoutError(WBReportsError):
    """Raised when an async job stays pending for the whole poll budget."""

    def __init__(self, message: str, task_id: Optional[str] = None,
                 polls: Optional[int] = None):
        """
        Initialize job timeout error.

        Args:
            message: Error message
            task_id: ID of timed out task
            polls: Number of status calls made
        """
        details = {}
        if task_id:
            details["task_id"] = task_id
        if polls is not None:
            details["polls"] = polls

        super().__init__(message, details)
        self.task_id = task_id
        self.polls = polls


class TooManyPagesError(WBReportsError):
    """Raised when a paginated fetch would exceed its page bound."""

    def __init__(self, message: str, max_pages: int, records: int = 0):
        super().__init__(message, {"max_pages": max_pages, "records": records})
        self.max_pages = max_pages
        self.records = records


class DataIntegrityError(WBReportsError):
    """Raised when an upstream record lacks a field the merge depends on."""
    pass


class SheetsAPIError(WBReportsError):
    """Raised when Google Sheets export fails."""
    pass


class DatabaseError(WBReportsError):
    """Raised when database operations fail."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 table: Optional[str] = None):
        details = {}
        if operation:
            details["operation"] = operation
        if table:
            details["table"] = table

        super().__init__(message, details=details)
        self.operation = operation
        self.table = table


def _error_message(response_data: Any, fallback: str) -> str:
    """Extract a human readable message from an upstream error envelope."""
    if isinstance(response_data, dict):
        for key in ("detail", "errorText", "message", "error", "title"):
            value = response_data.get(key)
            if value and isinstance(value, str):
                return value
    if isinstance(response_data, str) and response_data.strip():
        return response_data.strip()[:300]
    return fallback


def handle_api_error(response, endpoint: Optional[str] = None) -> None:
    """
    Handle a non-retryable HTTP response and raise the matching API error.

    Args:
        response: HTTP response object
        endpoint: API endpoint that was called

    Raises:
        InvalidCredentialError: On 401/403
        BadRequestError: On 400
        APIError: On any other status
    """
    status_code = getattr(response, 'status_code', None)

    try:
        response_data = response.json()
    except ValueError:
        response_data = getattr(response, 'text', None)

    if status_code == 401:
        raise InvalidCredentialError(
            "API authentication failed - check your API key",
            status_code=status_code, endpoint=endpoint
        )
    elif status_code == 403:
        raise InvalidCredentialError(
            "API access forbidden - check API key permissions",
            status_code=status_code, endpoint=endpoint
        )
    elif status_code == 400:
        raise BadRequestError(
            _error_message(response_data, "Bad request parameters"),
            status_code=status_code,
            response_data=response_data,
            endpoint=endpoint
        )
    raise APIError(
        f"API request failed: {status_code}",
        status_code=status_code,
        response_data=response_data,
        endpoint=endpoint
    )
