"""
Column value codec: a closed set of value kinds and their column encodings.

Manifesto:
    A stored field holds one of six kinds of value. Each kind has exactly
    one column encoding and one decoding, defined here and nowhere else.
    The DAO never branches on Python types: it boxes a field value into the
    variant for the field's kind and asks the variant for its column form.

Architecture:
    ::

        ┌──────────────┬──────────────────┬────────────────────────────┐
        │ ValueKind    │ Variant          │ Column encoding            │
        ├──────────────┼──────────────────┼────────────────────────────┤
        │ INTEGER      │ IntegerValue     │ decimal text (int64)       │
        │ FLOAT        │ FloatValue       │ shortest round-trip repr   │
        │ BOOLEAN      │ BooleanValue     │ "#t" / "#f"                │
        │ TEXT         │ TextValue        │ as-is                      │
        │ TEMPORAL     │ TemporalValue    │ epoch ms, aware datetimes  │
        │ ENUM         │ EnumValue        │ member name                │
        └──────────────┴──────────────────┴────────────────────────────┘

        box(kind, python_value)      → ColumnValue      (write path)
        unbox(kind, raw, enum_type)  → ColumnValue|None (read path)
        ColumnValue.to_column()      → str
        ColumnValue.value            → python value

Guardrails:
    ❌ DON'T: Store booleans as 0/1 or temporals as ISO strings
    ✅ DO: Keep "#t"/"#f" and epoch milliseconds; existing databases depend on them

    ❌ DON'T: Add a kind without extending box(), unbox() and the DDL mapping
    ✅ DO: Let the ``case _`` arms raise so a missing branch fails loudly

Tags:
    codec, column-value, tagged-union, marshalling, rowmap
"""

from __future__ import annotations

import types
import typing
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from rowmap.core.errors import MarshallingError, SchemaStructureError

BOOLEAN_TRUE_VALUE = "#t"
BOOLEAN_FALSE_VALUE = "#f"

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class ValueKind(str, Enum):
    """Semantic kind of a stored field."""

    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TEXT = "text"
    TEMPORAL = "temporal"
    ENUM = "enum"


# =============================================================================
# VARIANTS
# =============================================================================


@dataclass(frozen=True, slots=True)
class IntegerValue:
    value: int

    def to_column(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class FloatValue:
    value: float

    def to_column(self) -> str:
        return repr(self.value)


@dataclass(frozen=True, slots=True)
class BooleanValue:
    value: bool

    def to_column(self) -> str:
        return BOOLEAN_TRUE_VALUE if self.value else BOOLEAN_FALSE_VALUE


@dataclass(frozen=True, slots=True)
class TextValue:
    value: str

    def to_column(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class TemporalValue:
    """An instant; always timezone-aware."""

    value: datetime

    def to_column(self) -> str:
        return str(to_epoch_millis(self.value))


@dataclass(frozen=True, slots=True)
class EnumValue:
    value: Enum

    def to_column(self) -> str:
        return self.value.name


ColumnValue = IntegerValue | FloatValue | BooleanValue | TextValue | TemporalValue | EnumValue


# =============================================================================
# TEMPORAL HELPERS
# =============================================================================


def to_epoch_millis(value: datetime) -> int:
    """Milliseconds since the Unix epoch for an aware datetime, exact (no float rounding)."""
    return (value - _EPOCH) // _ONE_MS


def from_epoch_millis(millis: int) -> datetime:
    """Aware UTC datetime for an epoch-millisecond offset."""
    return _EPOCH + timedelta(milliseconds=millis)


# =============================================================================
# BOX / UNBOX
# =============================================================================


def box(kind: ValueKind, value: Any, enum_type: type[Enum] | None = None) -> ColumnValue:
    """Wrap a Python field value in the variant for ``kind``.

    Raises:
        MarshallingError: ``value`` is ``None``, not of the kind's type, an
            integer outside the signed 64-bit range or a datetime without
            a timezone.
    """
    if value is None:
        raise MarshallingError(f"{kind.value} field is None", value=value)

    match kind:
        case ValueKind.INTEGER if _is_int(value) and not INT64_MIN <= value <= INT64_MAX:
            raise MarshallingError(f"Integer {value} is outside the signed 64-bit range", value=value)
        case ValueKind.TEMPORAL if isinstance(value, datetime) and value.utcoffset() is None:
            raise MarshallingError(
                f"Datetime {value.isoformat()} has no timezone; attach one (e.g. tzinfo=UTC)", value=value
            )
        case ValueKind.INTEGER if _is_int(value):
            return IntegerValue(int(value))
        case ValueKind.FLOAT if _is_int(value) or isinstance(value, float):
            return FloatValue(float(value))
        case ValueKind.BOOLEAN if isinstance(value, bool):
            return BooleanValue(value)
        case ValueKind.TEXT if isinstance(value, str):
            return TextValue(value)
        case ValueKind.TEMPORAL if isinstance(value, datetime):
            return TemporalValue(value)
        case ValueKind.ENUM if enum_type is not None and isinstance(value, enum_type):
            return EnumValue(value)
        case ValueKind.ENUM if enum_type is None and isinstance(value, Enum):
            return EnumValue(value)
        case _:
            raise MarshallingError(
                f"Cannot store {type(value).__name__} as {kind.value}", value=value
            )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def unbox(kind: ValueKind, raw: Any, enum_type: type[Enum] | None = None) -> ColumnValue | None:
    """Decode a raw column value into the variant for ``kind``.

    Returns ``None`` for SQL NULL on nullable kinds (integer, float, text,
    enum). Booleans compare case-insensitively against ``#t``; anything else
    reads as False.

    Raises:
        MarshallingError: the raw value cannot be converted.
        SchemaStructureError: ``kind`` is not a known value kind.
    """
    try:
        match kind:
            case ValueKind.INTEGER:
                return None if raw is None else IntegerValue(int(raw))
            case ValueKind.FLOAT:
                return None if raw is None else FloatValue(float(raw))
            case ValueKind.BOOLEAN:
                if raw is None:
                    raise MarshallingError("NULL in boolean column", value=raw)
                return BooleanValue(str(raw).lower() == BOOLEAN_TRUE_VALUE)
            case ValueKind.TEXT:
                return None if raw is None else TextValue(str(raw))
            case ValueKind.TEMPORAL:
                if raw is None:
                    raise MarshallingError("NULL in temporal column", value=raw)
                return TemporalValue(from_epoch_millis(int(raw)))
            case ValueKind.ENUM:
                if raw is None:
                    return None
                if enum_type is None:
                    raise MarshallingError("Enum field has no enum type", value=raw)
                return EnumValue(enum_type[str(raw)])
            case _:
                raise SchemaStructureError(f"Unknown field kind: {kind!r}")
    except (TypeError, ValueError, KeyError, OverflowError) as e:
        raise MarshallingError(
            f"Cannot read {raw!r} as {kind.value}", value=raw, cause=e
        ) from e


# =============================================================================
# ANNOTATION HELPERS
# =============================================================================


def unwrap_optional(annotation: Any) -> Any:
    """Strip ``Annotated[...]`` and a ``| None`` from an annotation.

    ``int | None`` and ``Optional[int]`` become ``int``; unions of several
    non-None types are returned unchanged.
    """
    if typing.get_origin(annotation) is typing.Annotated:
        annotation = typing.get_args(annotation)[0]
    if typing.get_origin(annotation) in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return unwrap_optional(args[0])
    return annotation


def kind_for(annotation: Any) -> ValueKind | None:
    """Value kind for a field annotation, or ``None`` if it is not storable."""
    tp = unwrap_optional(annotation)
    if not isinstance(tp, type):
        return None
    # Enum first: IntEnum is also an int
    if issubclass(tp, Enum):
        return ValueKind.ENUM
    if issubclass(tp, bool):
        return ValueKind.BOOLEAN
    if issubclass(tp, int):
        return ValueKind.INTEGER
    if issubclass(tp, float):
        return ValueKind.FLOAT
    if issubclass(tp, str):
        return ValueKind.TEXT
    if issubclass(tp, datetime):
        return ValueKind.TEMPORAL
    return None


__all__ = [
    "BOOLEAN_TRUE_VALUE",
    "BOOLEAN_FALSE_VALUE",
    "ValueKind",
    "IntegerValue",
    "FloatValue",
    "BooleanValue",
    "TextValue",
    "TemporalValue",
    "EnumValue",
    "ColumnValue",
    "box",
    "unbox",
    "to_epoch_millis",
    "from_epoch_millis",
    "unwrap_optional",
    "kind_for",
]
