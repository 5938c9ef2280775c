# logguard/client/errors.py
"""
Error taxonomy for the LogGuard workflow

- Configuration errors: caught before any network call, not retriable
- Capacity errors: retriable once running analyses finish
- Validation errors: not retriable from the review workflow
- Transient errors: retriable, never retried automatically
"""

from typing import Dict, Optional

PROCESSING_LIMIT_MARKER = "Processing limit reached"


class LogGuardError(Exception):
    """Base exception for all LogGuard errors."""

    retriable: bool = False

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(LogGuardError):
    """Raised when an AI provider is not configured or not available."""


class OperationInProgressError(LogGuardError):
    """Raised when an operation is submitted again while still running."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} is already running", {"operation": operation})


class UploadValidationError(LogGuardError):
    """Raised when a file fails client-side upload checks."""


class APIError(LogGuardError):
    """Base exception for backend errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict] = None
    ):
        self.status_code = status_code
        super().__init__(message, details)

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.status_code}: {self.message}"
        return self.message


class AuthenticationError(APIError):
    """Raised when the session is missing or rejected."""

    def __init__(self, status_code: int = 401, details: Optional[Dict] = None):
        super().__init__(
            "Authentication failed. Please sign in again or check your session cookie.",
            status_code,
            details
        )


class BadRequestError(APIError):
    """Raised when the backend rejects the request as invalid."""


class NotFoundError(APIError):
    """Raised when the requested resource does not exist."""


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded."""

    retriable = True

    def __init__(
        self,
        retry_after: Optional[int] = None,
        details: Optional[Dict] = None
    ):
        self.retry_after = retry_after
        message = "Rate limit exceeded."
        if retry_after:
            message += f" Retry after {retry_after} seconds."
        super().__init__(message, 429, details)


class ProcessingLimitError(APIError):
    """Raised when the backend's concurrent-processing cap is reached."""

    retriable = True


class NetworkError(APIError):
    """Raised on timeouts and transport failures."""

    retriable = True
