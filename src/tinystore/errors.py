"""
Exception hierarchy for TinyStore.

All TinyStore exceptions inherit from TinyStoreError, allowing callers to
catch all TinyStore-specific exceptions with a single except clause.

Exception Categories:
    - SchemaError: Record type cannot be mapped onto a table
    - DatabaseError: Handle lifecycle or statement failure
    - QueryError: Degenerate input to a store operation
    - BlobError: Filesystem operation of the blob store failed

Only SchemaError is ever raised to callers (at store construction).
The others are created at the asynchronous boundary, logged, and turned
into a boolean failure delivered through the completion callback.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Schema errors: 1xxx
ERROR_SCHEMA_INVALID = 1001
ERROR_SCHEMA_NO_TEMPLATE = 1002
ERROR_SCHEMA_UNSUPPORTED_VALUE = 1003
ERROR_SCHEMA_FIELD_MISMATCH = 1004

# Database errors: 2xxx
ERROR_DATABASE_NOT_OPEN = 2001
ERROR_DATABASE_ALREADY_OPEN = 2002
ERROR_DATABASE_CLOSED = 2003
ERROR_DATABASE_OPEN_FAILED = 2004
ERROR_DATABASE_STATEMENT = 2005

# Query errors: 3xxx
ERROR_QUERY_INVALID_VALUE = 3001
ERROR_QUERY_EMPTY_BATCH = 3002
ERROR_QUERY_VALUE_OUT_OF_RANGE = 3003

# Blob errors: 4xxx
ERROR_BLOB_READ = 4001
ERROR_BLOB_WRITE = 4002
ERROR_BLOB_DELETE = 4003


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class TinyStoreError(Exception):
    """
    Base exception for all TinyStore errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Schema Errors
# =============================================================================


@dataclass
class SchemaError(TinyStoreError):
    """
    Raised when a record type cannot be turned into a table schema.

    A store whose schema cannot be derived is never constructed.

    Attributes:
        record_type: Name of the record class
    """

    record_type: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot derive table schema for {self.record_type}"
        if self.code == 0:
            self.code = ERROR_SCHEMA_INVALID
        self.context["record_type"] = self.record_type


@dataclass
class TemplateMissingError(SchemaError):
    """Raised when a record type declares neither column kinds nor a template."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.record_type} has no column_kinds and no template()"
        if self.code == 0:
            self.code = ERROR_SCHEMA_NO_TEMPLATE
        if not self.suggestion:
            self.suggestion = "Declare column_kinds or override Record.template()"
        super().__post_init__()


@dataclass
class UnsupportedValueError(SchemaError):
    """Raised when a template value has no column kind."""

    field_name: str = ""
    value_type: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Template field {self.field_name!r} of {self.record_type} "
                f"has unsupported value type {self.value_type}"
            )
        if self.code == 0:
            self.code = ERROR_SCHEMA_UNSUPPORTED_VALUE
        if not self.suggestion:
            self.suggestion = "Give every template field a non-null value"
        super().__post_init__()
        self.context.update({
            "field_name": self.field_name,
            "value_type": self.value_type,
        })


@dataclass
class FieldCountMismatchError(SchemaError):
    """Raised when the number of column kinds differs from the declared fields."""

    declared: list[str] = field(default_factory=list)
    inferred: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            missing = sorted(set(self.declared) - set(self.inferred))
            extra = sorted(set(self.inferred) - set(self.declared))
            self.message = (
                f"{self.record_type} declares {len(self.declared)} fields "
                f"but {len(self.inferred)} column kinds "
                f"(missing={missing}, unknown={extra})"
            )
        if self.code == 0:
            self.code = ERROR_SCHEMA_FIELD_MISMATCH
        super().__post_init__()
        self.context.update({
            "declared": self.declared,
            "inferred": self.inferred,
        })


# =============================================================================
# Database Errors
# =============================================================================


@dataclass
class DatabaseError(TinyStoreError):
    """
    Base class for handle and statement errors.

    Attributes:
        db_path: Path of the database file
        operation: The engine operation that failed
    """

    db_path: str = ""
    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "db_path": self.db_path,
            "operation": self.operation,
        })


@dataclass
class DatabaseNotOpenError(DatabaseError):
    """Raised when an operation runs before configure()."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database is not open: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_DATABASE_NOT_OPEN
        if not self.suggestion:
            self.suggestion = "Call Database.configure() before issuing operations"
        super().__post_init__()


@dataclass
class DatabaseAlreadyOpenError(DatabaseError):
    """Raised when configure() is called on an open handle."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database is already open: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_DATABASE_ALREADY_OPEN
        super().__post_init__()


@dataclass
class DatabaseClosedError(DatabaseError):
    """Raised when work is submitted after close()."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database is closed: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_DATABASE_CLOSED
        if not self.suggestion:
            self.suggestion = "Create a new Database; closed handles are never reopened"
        super().__post_init__()


@dataclass
class DatabaseOpenError(DatabaseError):
    """Raised when the engine fails to open the database file."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to open database {self.db_path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_DATABASE_OPEN_FAILED
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StatementError(DatabaseError):
    """Raised when a statement fails to prepare or execute."""

    statement: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Statement failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_DATABASE_STATEMENT
        super().__post_init__()
        self.context.update({
            "statement": self.statement,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Query Errors
# =============================================================================


@dataclass
class QueryError(TinyStoreError):
    """
    Base class for degenerate store input.

    Attributes:
        table: Table the operation targeted
    """

    table: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["table"] = self.table


@dataclass
class InvalidFilterValueError(QueryError):
    """Raised when a filter value has no deterministic text form."""

    key: str = ""
    value_type: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot use {self.value_type} value for {self.key!r} in a filter"
        if self.code == 0:
            self.code = ERROR_QUERY_INVALID_VALUE
        super().__post_init__()
        self.context.update({
            "key": self.key,
            "value_type": self.value_type,
        })


@dataclass
class EmptyBatchError(QueryError):
    """Raised when a batch operation receives nothing to work on."""

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.operation} on {self.table} received an empty batch"
        if self.code == 0:
            self.code = ERROR_QUERY_EMPTY_BATCH
        super().__post_init__()
        self.context["operation"] = self.operation


@dataclass
class ValueOutOfRangeError(QueryError):
    """Raised when a record value does not fit its column kind."""

    column: str = ""
    kind: str = ""
    value: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Value {self.value} of {self.table}.{self.column} "
                f"does not fit column kind {self.kind}"
            )
        if self.code == 0:
            self.code = ERROR_QUERY_VALUE_OUT_OF_RANGE
        if not self.suggestion:
            self.suggestion = "Use a wider column kind for this field"
        super().__post_init__()
        self.context.update({
            "column": self.column,
            "kind": self.kind,
            "value": self.value,
        })


# =============================================================================
# Blob Errors
# =============================================================================


@dataclass
class BlobError(TinyStoreError):
    """
    Base class for blob store errors.

    Attributes:
        path: File the operation targeted
        underlying_error: Error reported by the filesystem
    """

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })


@dataclass
class BlobReadError(BlobError):
    """Raised when a blob cannot be read or decoded."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to read {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_BLOB_READ
        super().__post_init__()


@dataclass
class BlobWriteError(BlobError):
    """Raised when a blob cannot be serialized or written."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to write {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_BLOB_WRITE
        super().__post_init__()


@dataclass
class BlobDeleteError(BlobError):
    """Raised when a blob cannot be removed."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to delete {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_BLOB_DELETE
        super().__post_init__()
