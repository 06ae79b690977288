"""Error formatting utilities.

Renders DomainError instances for terminal display, optionally with the
remediation hint from the registry.
"""

from restorectl.errors.domain import DomainError, ValidationFailure


def format_error(error: DomainError, include_remediation: bool = True) -> str:
    """Format error for display to user.

    Args:
        error: The DomainError to format.
        include_remediation: Whether to include remediation steps.

    Returns:
        Multi-line formatted string suitable for user display.
    """
    lines = [f"{error.code}: {error.message}"]

    if isinstance(error, ValidationFailure):
        lines.append(f"  Field: {error.field}")

    if include_remediation:
        lines.append(f"  Action: {error.remediation}")

    return "\n".join(lines)


def format_error_summary(errors: list[DomainError]) -> str:
    """Format a list of errors for display, collapsing duplicate codes.

    Args:
        errors: List of DomainError objects.

    Returns:
        User-friendly summary suitable for terminal display.
    """
    if not errors:
        return "No errors."

    unique: dict[str, DomainError] = {}
    for error in errors:
        unique.setdefault(f"{error.code}|{error.message}", error)

    if len(unique) == 1:
        return format_error(next(iter(unique.values())))

    lines = [f"{len(unique)} error(s) found:\n"]
    for i, error in enumerate(unique.values(), 1):
        lines.append(f"{i}. {format_error(error)}")
        lines.append("")
    return "\n".join(lines)
