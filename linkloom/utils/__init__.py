"""
Utility modules for LinkLoom.

This package contains the exception hierarchy, logging setup and the
request rate limiter used by HTTP categorizer backends.
"""

from .error_handler import (
    APIClientError,
    AuthenticationError,
    BookmarkImportError,
    CategorizationError,
    ConfigurationError,
    DataError,
    LinkLoomError,
    RateLimitError,
    ServiceUnavailableError,
)
from .rate_limiter import RateLimiter

__all__ = [
    "LinkLoomError",
    "ConfigurationError",
    "CategorizationError",
    "APIClientError",
    "RateLimitError",
    "AuthenticationError",
    "ServiceUnavailableError",
    "DataError",
    "BookmarkImportError",
    "RateLimiter",
]
