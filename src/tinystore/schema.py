"""
Schema definitions for TinyStore.

This module defines the Pydantic models used throughout TinyStore:
- ColumnKind: The closed set of primitive kinds a column can hold
- Record: Base class for every storable entity
- TableSchema: The derived mapping of a record type onto a table
- StoreConfig: Settings for databases, blob roots and the scheduler

Design Decisions:
    - Records are plain Pydantic models; their own validation decides
      which fields are required
    - Column kinds are declared explicitly where possible; inference from a
      template instance remains available for quick prototypes
    - Every column is stored as text, the kind only drives conversion
"""

from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class ColumnKind(str, Enum):
    """
    Primitive kind of a record field.

    Every field of a record maps to exactly one kind. The kind decides
    how the field is stringified on write and parsed on read.
    """

    STRING = "string"
    INT = "int"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT = "uint"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"
    BOOL = "bool"
    OBJECT = "object"

    @property
    def is_number(self) -> bool:
        """Whether the column must be compared arithmetically."""
        return self not in (ColumnKind.STRING, ColumnKind.OBJECT)


# =============================================================================
# Records
# =============================================================================


class Record(BaseModel):
    """
    Base class for storable entities.

    Subclasses add their own fields and describe their columns in one of
    two ways:

    - column_kinds: explicit mapping of every field (including ``id``) to
      a ColumnKind. Required for integer widths other than int64 and for
      single-precision floats.
    - template(): a throwaway instance whose values are inspected to infer
      the kinds. Never persisted.

    Attributes:
        id: Stable unique identifier, used as the table's primary key

    Example:
        class Note(Record):
            column_kinds = {"id": ColumnKind.STRING, "text": ColumnKind.STRING}
            text: str
    """

    model_config = ConfigDict(extra="ignore")

    column_kinds: ClassVar[dict[str, ColumnKind] | None] = None

    id: str = Field(..., description="Stable unique identifier")

    @classmethod
    def field_names(cls) -> list[str]:
        """Declared field names in declaration order."""
        return list(cls.model_fields)

    @classmethod
    def template(cls) -> "Record":
        """Return a throwaway instance used only for schema inference."""
        raise NotImplementedError(f"{cls.__name__} does not provide a template")


class TableSchema(BaseModel):
    """
    The mapping of one record type onto one table.

    Computed once when a RecordStore is constructed and never changed
    afterwards.

    Attributes:
        name: Table name
        kinds: Field name to ColumnKind, in declaration order
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Table name")
    kinds: dict[str, ColumnKind] = Field(..., description="Field name to kind")

    @property
    def columns(self) -> list[str]:
        """Declared columns other than ``id``."""
        return [name for name in self.kinds if name != "id"]

    def kind_of(self, column: str) -> ColumnKind | None:
        """Kind of a column, or None for columns the record does not declare."""
        return self.kinds.get(column)

    def is_numeric(self, column: str) -> bool:
        """Whether sorting on this column needs arithmetic coercion."""
        kind = self.kinds.get(column)
        return kind is not None and kind.is_number


# =============================================================================
# Configuration
# =============================================================================


DEFAULT_PRAGMAS: dict[str, str | int] = {
    "foreign_keys": "ON",
    "journal_mode": "WAL",
    "busy_timeout": 5000,
}


class StoreConfig(BaseModel):
    """
    Settings for a TinyStore deployment.

    Attributes:
        database_path: SQLite file, or ":memory:" for a private in-memory database
        blob_root: Directory relative blob paths are resolved against
        scheduler_workers: Worker threads of the admission layer (None = executor default)
        pragmas: PRAGMA statements applied when the handle is opened
        log_level: Level for the ``tinystore`` logger when the CLI configures logging
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    database_path: str = Field(
        default=":memory:",
        description="SQLite database file",
    )
    blob_root: str | None = Field(
        default=None,
        description="Root directory for relative blob paths",
    )
    scheduler_workers: int | None = Field(
        default=None,
        description="Worker threads of the task scheduler",
        ge=1,
    )
    pragmas: dict[str, str | int] = Field(
        default_factory=lambda: dict(DEFAULT_PRAGMAS),
        description="PRAGMA name to value, applied on open",
    )
    log_level: str = Field(
        default="WARNING",
        description="Log level for the tinystore logger",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            msg = f"Invalid log level: {v}"
            raise ValueError(msg)
        return level

    @field_validator("pragmas")
    @classmethod
    def validate_pragma_names(cls, v: dict[str, str | int]) -> dict[str, str | int]:
        """Pragma names are interpolated into SQL, so keep them to identifiers."""
        for name in v:
            if not name.replace("_", "").isalnum():
                msg = f"Invalid pragma name: {name}"
                raise ValueError(msg)
        return v


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> StoreConfig:
    """
    Load a store configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated StoreConfig object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return StoreConfig.model_validate(data or {})


def load_config_from_string(content: str) -> StoreConfig:
    """Load a store configuration from a YAML string."""
    data: Any = yaml.safe_load(content)
    return StoreConfig.model_validate(data or {})
