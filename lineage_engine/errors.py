"""
Lineage engine errors.

Three families, kept distinct so callers can decide what to do:
- Precondition violations: programming errors, never retried.
- Validation errors: bad caller-supplied configuration.
- Persistence errors: the storage collaborator failed, safe to retry.

Conflicts between sources are NOT errors; they are reported on the
reconciled field.
"""

from typing import Iterable, Optional


class LineageError(Exception):
    """Base class for every error raised by the lineage engine."""
    pass


class PreconditionError(LineageError):
    """Raised when an operation is called with input that breaks its contract."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class EmptySourceSetError(PreconditionError):
    """Raised when reconciliation or scoring is asked to work on zero records."""

    def __init__(self, field: Optional[str] = None):
        target = f" for field '{field}'" if field else ""
        super().__init__(f"Cannot reconcile an empty source set{target}", field=field)


class UnknownSourceError(PreconditionError):
    """Raised when a data source has no registered reliability weight."""

    def __init__(self, sources: Iterable[object], field: Optional[str] = None):
        self.sources = [getattr(s, "value", s) for s in sources]
        super().__init__(
            f"No reliability registered for source(s): {', '.join(map(str, self.sources))}",
            field=field,
        )


class InvalidFieldStateError(PreconditionError):
    """Raised when an existing reconciled field is malformed."""
    pass


class ConfigValidationError(LineageError, ValueError):
    """Raised when caller-supplied configuration is out of range."""

    def __init__(self, field: str, message: str):
        super().__init__(f"Invalid configuration for '{field}': {message}")
        self.field = field


class PersistenceError(LineageError):
    """Raised when the history storage collaborator fails. Retrying is safe."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class ValueEncodingError(LineageError, ValueError):
    """Raised when a field value cannot be stored without changing it."""

    def __init__(self, field: str, message: str):
        super().__init__(f"Cannot store value of '{field}': {message}")
        self.field = field
