# logguard/client/__init__.py
"""
Backend access for LogGuard.

The backend owns anomalies, log files and detection runs; this package
speaks its JSON/HTTP contract and maps failures onto the error taxonomy.
"""

from .api import LogGuardClient
from .errors import (
    LogGuardError,
    ConfigurationError,
    OperationInProgressError,
    UploadValidationError,
    APIError,
    AuthenticationError,
    BadRequestError,
    NotFoundError,
    RateLimitError,
    ProcessingLimitError,
    NetworkError,
)

__all__ = [
    "LogGuardClient",
    "LogGuardError",
    "ConfigurationError",
    "OperationInProgressError",
    "UploadValidationError",
    "APIError",
    "AuthenticationError",
    "BadRequestError",
    "NotFoundError",
    "RateLimitError",
    "ProcessingLimitError",
    "NetworkError",
]
