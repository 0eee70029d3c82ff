"""
Record codec for TinyStore.

Bridges typed records and text-only column storage:
- derive_schema: map a Record subclass onto a TableSchema
- Codec.encode: record -> {column: text}
- Codec.decode: {column: text} -> record, or None when the record rejects it
- stringify: deterministic text form of a single value

Every ColumnKind has exactly one encoder and one decoder. Adding a kind
means extending both tables; the module refuses to import otherwise.
"""

import json
import logging
import re
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError

from tinystore.errors import (
    FieldCountMismatchError,
    SchemaError,
    TemplateMissingError,
    UnsupportedValueError,
    ValueOutOfRangeError,
)
from tinystore.schema import ColumnKind, Record, TableSchema

logger = logging.getLogger(__name__)

# Inclusive value ranges of the integer kinds
INTEGER_RANGES: dict[ColumnKind, tuple[int, int]] = {
    ColumnKind.INT: (-(2**63), 2**63 - 1),
    ColumnKind.INT8: (-(2**7), 2**7 - 1),
    ColumnKind.INT16: (-(2**15), 2**15 - 1),
    ColumnKind.INT32: (-(2**31), 2**31 - 1),
    ColumnKind.INT64: (-(2**63), 2**63 - 1),
    ColumnKind.UINT: (0, 2**64 - 1),
    ColumnKind.UINT8: (0, 2**8 - 1),
    ColumnKind.UINT16: (0, 2**16 - 1),
    ColumnKind.UINT32: (0, 2**32 - 1),
    ColumnKind.UINT64: (0, 2**64 - 1),
}

_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")


# =============================================================================
# Value Stringification
# =============================================================================


def to_json_text(value: Any) -> str:
    """Compact JSON text, as stored in object columns."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def stringify(value: Any) -> str | None:
    """
    Deterministic, locale-independent text form of a value.

    Args:
        value: Scalar, enum member, or JSON-compatible container

    Returns:
        The text, or None if the value has no deterministic text form
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return stringify(value.value)
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        try:
            return to_json_text(value)
        except (TypeError, ValueError):
            return None
    return None


# =============================================================================
# Encoders (value -> text, ValueError when the value does not fit its kind)
# =============================================================================


def _encode_string(value: Any) -> str | None:
    return value if isinstance(value, str) else stringify(value)


def _check_range(value: int, kind: ColumnKind) -> int:
    low, high = INTEGER_RANGES[kind]
    if not low <= value <= high:
        msg = f"{value} out of range for {kind.value}"
        raise ValueError(msg)
    return value


def _integer_encoder(kind: ColumnKind) -> Callable[[Any], str | None]:
    def encode(value: Any) -> str | None:
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return str(_check_range(value, kind))

    return encode


def _encode_real(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return repr(float(value))
    except OverflowError as e:
        msg = f"{value} out of range for a double"
        raise ValueError(msg) from e


def _encode_bool(value: Any) -> str | None:
    if not isinstance(value, bool):
        return None
    return "1" if value else "0"


def _encode_object(value: Any) -> str | None:
    try:
        return to_json_text(value)
    except (TypeError, ValueError):
        return None


_ENCODERS: dict[ColumnKind, Callable[[Any], str | None]] = {
    ColumnKind.STRING: _encode_string,
    ColumnKind.INT: _integer_encoder(ColumnKind.INT),
    ColumnKind.INT8: _integer_encoder(ColumnKind.INT8),
    ColumnKind.INT16: _integer_encoder(ColumnKind.INT16),
    ColumnKind.INT32: _integer_encoder(ColumnKind.INT32),
    ColumnKind.INT64: _integer_encoder(ColumnKind.INT64),
    ColumnKind.UINT: _integer_encoder(ColumnKind.UINT),
    ColumnKind.UINT8: _integer_encoder(ColumnKind.UINT8),
    ColumnKind.UINT16: _integer_encoder(ColumnKind.UINT16),
    ColumnKind.UINT32: _integer_encoder(ColumnKind.UINT32),
    ColumnKind.UINT64: _integer_encoder(ColumnKind.UINT64),
    ColumnKind.FLOAT: _encode_real,
    ColumnKind.DOUBLE: _encode_real,
    ColumnKind.BOOL: _encode_bool,
    ColumnKind.OBJECT: _encode_object,
}


# =============================================================================
# Decoders (text -> value, ValueError when the text does not parse)
# =============================================================================


def parse_integer(text: str, kind: ColumnKind = ColumnKind.INT64) -> int:
    """
    Strictly parse an integer of the given kind.

    Only an optional sign followed by decimal digits is accepted, and the
    value must fit the kind's width.

    Raises:
        ValueError: If the text is not an integer or is out of range
    """
    if not _INTEGER_TEXT.fullmatch(text):
        msg = f"Not an integer: {text!r}"
        raise ValueError(msg)
    return _check_range(int(text), kind)


def _integer_decoder(kind: ColumnKind) -> Callable[[str], Any]:
    return lambda text: parse_integer(text, kind)


def _decode_real(text: str) -> float:
    return float(text)


def _decode_bool(text: str) -> bool:
    return parse_integer(text) == 1


def _decode_object(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


_DECODERS: dict[ColumnKind, Callable[[str], Any]] = {
    ColumnKind.STRING: str,
    ColumnKind.INT: _integer_decoder(ColumnKind.INT),
    ColumnKind.INT8: _integer_decoder(ColumnKind.INT8),
    ColumnKind.INT16: _integer_decoder(ColumnKind.INT16),
    ColumnKind.INT32: _integer_decoder(ColumnKind.INT32),
    ColumnKind.INT64: _integer_decoder(ColumnKind.INT64),
    ColumnKind.UINT: _integer_decoder(ColumnKind.UINT),
    ColumnKind.UINT8: _integer_decoder(ColumnKind.UINT8),
    ColumnKind.UINT16: _integer_decoder(ColumnKind.UINT16),
    ColumnKind.UINT32: _integer_decoder(ColumnKind.UINT32),
    ColumnKind.UINT64: _integer_decoder(ColumnKind.UINT64),
    ColumnKind.FLOAT: _decode_real,
    ColumnKind.DOUBLE: _decode_real,
    ColumnKind.BOOL: _decode_bool,
    ColumnKind.OBJECT: _decode_object,
}

_uncovered = (set(ColumnKind) ^ set(_ENCODERS)) | (set(ColumnKind) ^ set(_DECODERS))
if _uncovered:
    raise RuntimeError(f"Column kinds without codec: {sorted(k.value for k in _uncovered)}")


# =============================================================================
# Schema Derivation
# =============================================================================


def _infer_kind(value: Any) -> ColumnKind | None:
    """Kind of a JSON-mode template value; None for nulls."""
    if value is None:
        return None
    if isinstance(value, bool):
        return ColumnKind.BOOL
    if isinstance(value, int):
        return ColumnKind.INT64
    if isinstance(value, float):
        return ColumnKind.DOUBLE
    if isinstance(value, str):
        return ColumnKind.STRING
    if isinstance(value, (dict, list)):
        return ColumnKind.OBJECT
    raise TypeError(type(value).__name__)


def infer_kinds(record_type: type[Record]) -> dict[str, ColumnKind]:
    """
    Infer column kinds from the record type's template instance.

    Fields whose template value is None get no kind, which derive_schema
    then reports as a field count mismatch.
    """
    name = record_type.__name__
    try:
        template = record_type.template()
    except NotImplementedError as e:
        raise TemplateMissingError(record_type=name) from e
    except (ValidationError, TypeError, ValueError) as e:
        raise SchemaError(
            record_type=name,
            message=f"Template of {name} could not be built: {e}",
        ) from e

    if not isinstance(template, record_type):
        raise SchemaError(
            record_type=name,
            message=f"Template of {name} is a {type(template).__name__}",
        )

    kinds: dict[str, ColumnKind] = {}
    for field_name, value in template.model_dump(mode="json").items():
        try:
            kind = _infer_kind(value)
        except TypeError as e:
            raise UnsupportedValueError(
                record_type=name,
                field_name=field_name,
                value_type=str(e),
            ) from e
        if kind is not None:
            kinds[field_name] = kind
    return kinds


def derive_schema(record_type: type[Record], table_name: str | None = None) -> TableSchema:
    """
    Build the table schema of a record type.

    Explicit column_kinds win over template inference. Either way every
    declared field must end up with exactly one kind.

    Args:
        record_type: Record subclass to map
        table_name: Table name (defaults to the class name)

    Returns:
        The immutable TableSchema

    Raises:
        SchemaError: If the record type cannot be mapped
    """
    declared = record_type.field_names()

    if record_type.column_kinds is not None:
        try:
            kinds = {
                field_name: ColumnKind(kind)
                for field_name, kind in record_type.column_kinds.items()
            }
        except ValueError as e:
            raise SchemaError(record_type=record_type.__name__, message=str(e)) from e
    else:
        kinds = infer_kinds(record_type)

    if len(kinds) != len(declared) or set(kinds) != set(declared):
        raise FieldCountMismatchError(
            record_type=record_type.__name__,
            declared=declared,
            inferred=list(kinds),
        )

    return TableSchema(
        name=table_name or record_type.__name__,
        kinds={field_name: kinds[field_name] for field_name in declared},
    )


# =============================================================================
# Codec
# =============================================================================


class Codec:
    """
    Converts records of one type to and from text rows.

    Usage:
        codec = Codec(Note, derive_schema(Note))
        row = codec.encode(note)
        assert codec.decode({"id": note.id, **row}) == note
    """

    def __init__(self, record_type: type[Record], schema: TableSchema) -> None:
        self.record_type = record_type
        self.schema = schema

    def encode(self, record: Record) -> dict[str, str]:
        """
        Encode every non-null declared field except ``id``.

        Fields whose value has the wrong type for their kind are logged and
        left out.

        Raises:
            ValueOutOfRangeError: If a number does not fit its column kind
        """
        data = record.model_dump(mode="json")
        encoded: dict[str, str] = {}
        for column in self.schema.columns:
            value = data.get(column)
            if value is None:
                continue
            kind = self.schema.kinds[column]
            try:
                text = _ENCODERS[kind](value)
            except ValueError as e:
                raise ValueOutOfRangeError(
                    table=self.schema.name,
                    column=column,
                    kind=kind.value,
                    value=repr(value),
                ) from e
            if text is None:
                logger.warning(
                    "Unsupported value for %s.%s (%s): %r",
                    self.schema.name,
                    column,
                    kind.value,
                    value,
                )
                continue
            encoded[column] = text
        return encoded

    def decode(self, row: dict[str, str]) -> Record | None:
        """
        Rebuild a record from a text row.

        Empty cells and cells that do not parse as their kind are left out so
        the record's own defaults apply.

        Returns:
            The record, or None if the record's validation rejects the row
        """
        values: dict[str, Any] = {}
        for column, text in row.items():
            if not text:
                continue
            if column == "id":
                values["id"] = text
                continue
            kind = self.schema.kind_of(column)
            if kind is None:
                continue
            try:
                values[column] = _DECODERS[kind](text)
            except ValueError:
                logger.debug(
                    "Dropping unparsable %s value for %s.%s: %r",
                    kind.value,
                    self.schema.name,
                    column,
                    text,
                )

        try:
            return self.record_type.model_validate(values)
        except ValidationError as e:
            logger.debug(
                "Row %r of %s rejected by %s: %s",
                row.get("id"),
                self.schema.name,
                self.record_type.__name__,
                e,
            )
            return None
