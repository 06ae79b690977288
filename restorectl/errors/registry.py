"""Error code registry with E-XXXX format codes.

This module defines the error code system for restorectl, organizing errors
into categories:
- E-1xxx: Settings and naming-rule errors
- E-2xxx: Restore request validation errors
- E-3xxx: Restore server errors
- E-4xxx: System/internal errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    SETTINGS = "settings"  # E-1xxx: Settings and naming-rule errors
    VALIDATION = "validation"  # E-2xxx: Request validation errors
    SERVER = "server"  # E-3xxx: Restore server errors
    SYSTEM = "system"  # E-4xxx: System/internal errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str  # E-XXXX format
    category: ErrorCategory
    title: str  # Short title for display
    message_template: str  # Message with {placeholders}
    remediation: str  # Action user should take
    is_retryable: bool = False  # Can be retried without user action


# Error registry - all defined error codes
ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Settings errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.SETTINGS,
        title="Missing Settings Separator",
        message_template="Invalid settings format. Semicolon must separate fields.",
        remediation="Paste the text produced by 'restorectl settings export' unchanged.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.SETTINGS,
        title="Invalid Preferred Destination",
        message_template="First field must contain integer number, got '{value}'.",
        remediation="Use the destination index shown by 'restorectl destinations'.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.SETTINGS,
        title="Negative Preferred Destination",
        message_template="First field must contain positive number, got {value}.",
        remediation="Use the destination index shown by 'restorectl destinations'.",
    ),
    "E-1004": ErrorCode(
        code="E-1004",
        category=ErrorCategory.SETTINGS,
        title="Invalid Name Pattern List",
        message_template="Second field must contain valid JSON array: {detail}",
        remediation="Each entry needs 'pathPattern', 'replacePattern' and an optional 'changeCase'.",
    ),
    "E-1005": ErrorCode(
        code="E-1005",
        category=ErrorCategory.SETTINGS,
        title="Invalid Path Pattern",
        message_template="Path pattern '{pattern}' is not a valid regular expression: {detail}",
        remediation="Fix the pattern with 'restorectl pattern remove' and 'restorectl pattern add'.",
    ),
    # Validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Missing Destination",
        message_template="No destination selected.",
        remediation="Pass --destination or store one with 'restorectl settings set-destination'.",
    ),
    "E-2002": ErrorCode(
        code="E-2002",
        category=ErrorCategory.VALIDATION,
        title="Empty Backup Source",
        message_template="Backup path or URL is empty.",
        remediation="Pass the path or URL of the backup to restore.",
    ),
    "E-2003": ErrorCode(
        code="E-2003",
        category=ErrorCategory.VALIDATION,
        title="Empty Database Name",
        message_template="Database name is empty and could not be inferred from '{backup}'.",
        remediation="Pass --database-name or add a naming rule with 'restorectl pattern add'.",
    ),
    "E-2004": ErrorCode(
        code="E-2004",
        category=ErrorCategory.VALIDATION,
        title="Empty Object List",
        message_template="Partial restore requires at least one schema or table name.",
        remediation="Name at least one object with --tables or --schemas, or read them from SQL with --tables-from.",
    ),
    # Server errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.SERVER,
        title="Transport Failure",
        message_template="Request to the restore server failed: {detail}",
        remediation="Check that the restore server is reachable and re-run the command.",
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.SERVER,
        title="Server Rejected Request",
        message_template="{detail}",
        remediation="Review the server message and re-submit.",
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Settings Store Unreadable",
        message_template="Settings file '{path}' could not be read: {detail}",
        remediation="Fix or delete the settings file; it is recreated on the next write.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)
