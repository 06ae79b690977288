"""Typed domain exceptions for the restore client.

Every exception carries an E-XXXX code from the registry so the CLI
can render the same message and remediation regardless of where the
failure was raised.

Usage:
    # In service layer
    raise ValidationFailure("E-2002", field="backup")

    # In CLI command
    try:
        request = builder.build()
    except DomainError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
"""

from restorectl.errors.registry import get_error


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, code: str, **context: object) -> None:
        error_def = get_error(code)
        if error_def is None:
            message = f"Unknown error: {code}"
            remediation = "Re-run with --verbose and report the log."
            is_retryable = False
        else:
            message = error_def.message_template
            try:
                message = message.format(**context)
            except KeyError:
                # Keep template if some placeholders are missing
                pass
            remediation = error_def.remediation
            is_retryable = error_def.is_retryable
        self.code = code
        self.message = message
        self.remediation = remediation
        self.is_retryable = is_retryable
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class TransportFailure(DomainError):
    """The request could not complete (network, HTTP status, bad body)."""

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__("E-3001", detail=detail)
        self.status_code = status_code


class ProtocolFailure(DomainError):
    """The server answered with an envelope carrying success=false."""

    def __init__(self, detail: str) -> None:
        super().__init__("E-3002", detail=detail)


class ValidationFailure(DomainError):
    """A restore request failed pre-submission validation."""

    def __init__(self, code: str, field: str, **context: object) -> None:
        super().__init__(code, **context)
        self.field = field


class PatternImportFailure(DomainError):
    """Imported settings text is malformed; nothing was written."""


class PatternError(DomainError):
    """A stored naming rule holds an invalid regular expression."""

    def __init__(self, pattern: str, detail: str) -> None:
        super().__init__("E-1005", pattern=pattern, detail=detail)
        self.pattern = pattern


class SettingsStoreError(DomainError):
    """The settings file exists but cannot be parsed."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__("E-4001", path=path, detail=detail)
