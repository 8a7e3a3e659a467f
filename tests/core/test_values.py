"""Tests for rowmap.core.values: the column value codec."""

from datetime import UTC, datetime, timedelta, timezone
from enum import Enum, IntEnum
from typing import Optional

import pytest

from rowmap.core.errors import MarshallingError, SchemaStructureError
from rowmap.core.values import (
    BOOLEAN_FALSE_VALUE,
    BOOLEAN_TRUE_VALUE,
    BooleanValue,
    EnumValue,
    FloatValue,
    IntegerValue,
    TemporalValue,
    TextValue,
    ValueKind,
    box,
    from_epoch_millis,
    kind_for,
    to_epoch_millis,
    unbox,
    unwrap_optional,
)


class Shade(Enum):
    LIGHT = 1
    DARK = 2


class Level(IntEnum):
    LOW = 1
    HIGH = 2


class TestBoxing:
    """Python value -> variant -> column text."""

    def test_integer(self):
        assert box(ValueKind.INTEGER, 42) == IntegerValue(42)
        assert box(ValueKind.INTEGER, -7).to_column() == "-7"

    def test_float_accepts_int(self):
        assert box(ValueKind.FLOAT, 3) == FloatValue(3.0)
        assert box(ValueKind.FLOAT, 2.5).to_column() == "2.5"

    def test_boolean_tokens(self):
        assert box(ValueKind.BOOLEAN, True).to_column() == BOOLEAN_TRUE_VALUE == "#t"
        assert box(ValueKind.BOOLEAN, False).to_column() == BOOLEAN_FALSE_VALUE == "#f"

    def test_text_as_is(self):
        assert box(ValueKind.TEXT, "bolt, M8").to_column() == "bolt, M8"

    def test_temporal_epoch_millis(self):
        value = datetime(1970, 1, 1, 0, 0, 1, 500000, tzinfo=UTC)
        assert box(ValueKind.TEMPORAL, value).to_column() == "1500"

    def test_temporal_without_timezone_rejected(self):
        with pytest.raises(MarshallingError, match="no timezone"):
            box(ValueKind.TEMPORAL, datetime(2024, 1, 1, 10, 0))

    @pytest.mark.parametrize("value", [2**63 - 1, -(2**63)])
    def test_integer_64_bit_bounds(self, value):
        assert box(ValueKind.INTEGER, value).to_column() == str(value)

    @pytest.mark.parametrize("value", [2**63, 2**63 + 5, -(2**63) - 1])
    def test_integer_outside_64_bits_rejected(self, value):
        with pytest.raises(MarshallingError, match="64-bit"):
            box(ValueKind.INTEGER, value)

    def test_enum_member_name(self):
        assert box(ValueKind.ENUM, Shade.DARK, Shade).to_column() == "DARK"

    def test_none_is_rejected(self):
        with pytest.raises(MarshallingError):
            box(ValueKind.TEXT, None)

    def test_bool_is_not_an_integer(self):
        with pytest.raises(MarshallingError):
            box(ValueKind.INTEGER, True)

    def test_type_mismatch(self):
        with pytest.raises(MarshallingError, match="Cannot store str as float"):
            box(ValueKind.FLOAT, "heavy")

    def test_enum_of_wrong_type(self):
        with pytest.raises(MarshallingError):
            box(ValueKind.ENUM, Level.LOW, Shade)


class TestUnboxing:
    """Raw column value -> variant."""

    def test_integer_from_text(self):
        assert unbox(ValueKind.INTEGER, "12") == IntegerValue(12)

    def test_float(self):
        assert unbox(ValueKind.FLOAT, 2.5) == FloatValue(2.5)

    @pytest.mark.parametrize("raw", ["#t", "#T"])
    def test_boolean_true_case_insensitive(self, raw):
        assert unbox(ValueKind.BOOLEAN, raw) == BooleanValue(True)

    @pytest.mark.parametrize("raw", ["#f", "#F", "true", "1"])
    def test_boolean_anything_else_is_false(self, raw):
        assert unbox(ValueKind.BOOLEAN, raw) == BooleanValue(False)

    def test_temporal(self):
        value = unbox(ValueKind.TEMPORAL, "1500")
        assert value == TemporalValue(datetime(1970, 1, 1, 0, 0, 1, 500000, tzinfo=UTC))

    def test_text(self):
        assert unbox(ValueKind.TEXT, "bolt") == TextValue("bolt")

    def test_enum_by_name(self):
        assert unbox(ValueKind.ENUM, "LIGHT", Shade) == EnumValue(Shade.LIGHT)

    @pytest.mark.parametrize("kind", [ValueKind.INTEGER, ValueKind.FLOAT, ValueKind.TEXT, ValueKind.ENUM])
    def test_null_reads_as_none(self, kind):
        assert unbox(kind, None, Shade) is None

    @pytest.mark.parametrize("kind", [ValueKind.BOOLEAN, ValueKind.TEMPORAL])
    def test_null_not_allowed(self, kind):
        with pytest.raises(MarshallingError):
            unbox(kind, None)

    def test_unknown_enum_member(self):
        with pytest.raises(MarshallingError) as exc_info:
            unbox(ValueKind.ENUM, "PURPLE", Shade)
        assert isinstance(exc_info.value.cause, KeyError)

    def test_bad_integer(self):
        with pytest.raises(MarshallingError):
            unbox(ValueKind.INTEGER, "twelve")

    def test_unknown_kind(self):
        with pytest.raises(SchemaStructureError):
            unbox("complex", "1+2j")


class TestEpochMillis:
    def test_other_timezone(self):
        plus_two = datetime(2024, 1, 1, 2, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_epoch_millis(plus_two) == 1704067200000

    def test_millisecond_precision(self):
        value = datetime(2024, 1, 1, 0, 0, 0, 123999, tzinfo=UTC)
        restored = from_epoch_millis(to_epoch_millis(value))
        assert restored == datetime(2024, 1, 1, 0, 0, 0, 123000, tzinfo=UTC)

    def test_before_epoch(self):
        value = datetime(1969, 12, 31, 23, 59, 59, tzinfo=UTC)
        assert to_epoch_millis(value) == -1000
        assert from_epoch_millis(-1000) == value


class TestAnnotations:
    @pytest.mark.parametrize(
        "annotation, expected",
        [
            (int, ValueKind.INTEGER),
            (float, ValueKind.FLOAT),
            (bool, ValueKind.BOOLEAN),
            (str, ValueKind.TEXT),
            (datetime, ValueKind.TEMPORAL),
            (Shade, ValueKind.ENUM),
            (Level, ValueKind.ENUM),
            (int | None, ValueKind.INTEGER),
            (Optional[str], ValueKind.TEXT),
        ],
    )
    def test_kind_for(self, annotation, expected):
        assert kind_for(annotation) is expected

    @pytest.mark.parametrize("annotation", [list[str], bytes, dict, int | str])
    def test_unsupported(self, annotation):
        assert kind_for(annotation) is None

    def test_unwrap_optional(self):
        assert unwrap_optional(int | None) is int
        assert unwrap_optional(Optional[Shade]) is Shade
        assert unwrap_optional(int | str) == int | str
