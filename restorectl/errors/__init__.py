"""Error handling framework for restorectl.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions raised by services and the HTTP client
- Error formatting utilities

Error categories:
- E-1xxx: Settings and naming-rule errors
- E-2xxx: Restore request validation errors
- E-3xxx: Restore server errors
- E-4xxx: System/internal errors
"""

from restorectl.errors.domain import (
    DomainError,
    PatternError,
    PatternImportFailure,
    ProtocolFailure,
    SettingsStoreError,
    TransportFailure,
    ValidationFailure,
)
from restorectl.errors.formatter import format_error, format_error_summary
from restorectl.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    # Domain exceptions
    "DomainError",
    "TransportFailure",
    "ProtocolFailure",
    "ValidationFailure",
    "PatternImportFailure",
    "PatternError",
    "SettingsStoreError",
    # Formatter
    "format_error",
    "format_error_summary",
]
