"""
Structured error hierarchy for rowmap.

Every failure raised by rowmap extends :class:`RowmapError`, which carries a
category, a retry flag, structured context and an optional cause. Callers
can catch one base class, route by category, and serialize any error with
``to_dict()`` for structured logging.

Manifesto:
    Mapping code fails in three distinct ways and each needs different
    handling:

    - **Structure:** the entity type itself is malformed (no marker, no
      identifier field, unsupported field type). The type must be fixed.
    - **Marshalling:** one instance or one row cannot be converted. The DAO
      reports it as an ``Err`` and keeps going.
    - **Storage:** the engine rejected a statement. Engine exceptions
      (``sqlite3.Error``, ``sqlalchemy.exc.SQLAlchemyError``) propagate
      untranslated; rowmap only adds its own lifecycle errors here.

Architecture:
    ::

        RowmapError
        ├── SchemaStructureError    (VALIDATION)  inspection failures
        ├── MarshallingError        (PARSE)       object <-> row conversion
        ├── DatabaseError           (DATABASE)
        │   ├── StoreNotOpenError                 CRUD without open()
        │   ├── ColumnNotFoundError               cursor lookup by name
        │   └── SchemaVersionError                downgrade / bad version
        └── ConfigError             (CONFIG)
            ├── MissingConfigError
            └── InvalidConfigError

Guardrails:
    ❌ DON'T: Wrap storage engine exceptions in DatabaseError
    ✅ DO: Let them propagate; callers may depend on the driver's types

    ❌ DON'T: Raise MarshallingError out of the DAO
    ✅ DO: Return it inside an ``Err`` after logging

Tags:
    error-handling, exception-hierarchy, error-context, rowmap
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    DATABASE = "DATABASE"         # Store lifecycle, cursor access
    PARSE = "PARSE"               # Value conversion failures
    VALIDATION = "VALIDATION"     # Entity structure violations
    CONFIG = "CONFIG"             # Missing config, invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover what rowmap knows when something fails: the entity
    type, the table, the field being converted and the row id. Anything else
    goes into ``metadata``.

    Attributes:
        entity: Qualified name of the entity type
        table: Table the operation targeted
        field_name: Field being marshalled when the error occurred
        column: Column name being read or written
        row_id: Row identifier, when known
        metadata: Additional key-value pairs
    """

    entity: str | None = None
    table: str | None = None
    field_name: str | None = None
    column: str | None = None
    row_id: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["entity", "table", "field_name", "column", "row_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RowmapError(Exception):
    """
    Base exception for all rowmap errors.

    Subclasses set ``default_category`` and ``default_retryable``; instances
    may override both. ``cause`` is chained as ``__cause__`` so tracebacks
    keep the original failure.

    Examples:
        >>> error = RowmapError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(entity="app.models.Item", table="items")
        RowmapError('Something went wrong', category=INTERNAL)
        >>> error.to_dict()["context"]
        {'entity': 'app.models.Item', 'table': 'items'}
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RowmapError:
        """
        Add context to this error (fluent API).

        Usage:
            raise MarshallingError("bad value").with_context(
                entity="app.models.Item",
                field_name="weight",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# MAPPING ERRORS
# =============================================================================


class SchemaStructureError(RowmapError):
    """
    The inspected type violates entity requirements.

    Raised by the schema inspector when a type lacks the entity marker, has
    no (or more than one) identifier field, or declares a field whose type
    cannot be stored. Never retryable: the class definition must change.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(self, message: str, *, entity: type | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.entity = entity
        if entity is not None:
            self.context.entity = f"{entity.__module__}.{entity.__qualname__}"


class MarshallingError(RowmapError):
    """Failure converting one field between an object and a column value."""

    default_category = ErrorCategory.PARSE
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        if field is not None:
            self.context.field_name = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(RowmapError):
    """Store lifecycle or cursor access error raised by rowmap itself."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class StoreNotOpenError(DatabaseError):
    """A CRUD call was made without a currently open store."""

    def __init__(self, table: str):
        super().__init__(f"Store is not open for table {table!r}; call open() first")
        self.context.table = table


class ColumnNotFoundError(DatabaseError):
    """A cursor was asked for a column it does not carry."""

    def __init__(self, column: str, available: list[str] | None = None):
        self.column = column
        self.available = available or []
        super().__init__(f"Column not found in result set: {column}")
        self.context.column = column


class SchemaVersionError(DatabaseError):
    """Stored schema version cannot be reconciled with the requested one."""

    def __init__(self, stored: int, requested: int):
        self.stored = stored
        self.requested = requested
        super().__init__(
            f"Cannot downgrade database from version {stored} to {requested}"
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(RowmapError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, RowmapError):
        return error.category
    if isinstance(error, (TypeError, ValueError)):
        return ErrorCategory.PARSE
    if isinstance(error, (KeyError, AttributeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RowmapError",
    "SchemaStructureError",
    "MarshallingError",
    "DatabaseError",
    "StoreNotOpenError",
    "ColumnNotFoundError",
    "SchemaVersionError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "categorize_error",
]
