"""
Tests for schema/types.py - field type decoding and annotation inference.

Partition values reach the decoder as raw strings ("2021", "true",
"2024-01-15"), while stored columns arrive as native Python values. Every
scalar type must accept both.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Optional

import pytest

from hivestream.errors import DecodeError
from hivestream.schema import Types, ValueCodecConfiguration, infer_type

CODEC = ValueCodecConfiguration()


class TestScalarDecoding:
    def test_int_from_partition_string(self):
        assert Types.Int().decode("2021", CODEC) == 2021

    def test_int_from_integral_float(self):
        assert Types.Int().decode(3.0, CODEC) == 3

    def test_int_rejects_fractional_float(self):
        with pytest.raises(DecodeError):
            Types.Int().decode(1.5, CODEC)

    def test_int_rejects_garbage(self):
        with pytest.raises(DecodeError, match="'abc'"):
            Types.Int().decode("abc", CODEC)

    def test_float_from_string_and_int(self):
        assert Types.Float().decode("1.25", CODEC) == 1.25
        assert Types.Float().decode(2, CODEC) == 2.0

    @pytest.mark.parametrize("raw,expected", [("true", True), ("FALSE", False), ("1", True), (False, False)])
    def test_bool_literals(self, raw, expected):
        assert Types.Bool().decode(raw, CODEC) is expected

    def test_string_from_bytes(self):
        assert Types.String().decode(b"abc", CODEC) == "abc"

    def test_string_rejects_numbers(self):
        with pytest.raises(DecodeError):
            Types.String().decode(5, CODEC)

    def test_binary_from_string(self):
        assert Types.Binary().decode("ab", CODEC) == b"ab"

    def test_date_from_string_and_datetime(self):
        assert Types.Date().decode("2024-01-15", CODEC) == date(2024, 1, 15)
        assert Types.Date().decode(datetime(2024, 1, 15, 8), CODEC) == date(2024, 1, 15)

    def test_any_passes_values_through(self):
        value = {"nested": [1, 2]}
        assert Types.Any().decode(value, CODEC) is value


class TestTimestamps:
    def test_naive_string_gets_codec_timezone(self):
        warsaw_winter = timezone(timedelta(hours=1))
        codec = ValueCodecConfiguration(timezone=warsaw_winter)

        decoded = Types.Timestamp().decode("2024-01-15T10:00:00", codec)

        assert decoded == datetime(2024, 1, 15, 10, tzinfo=warsaw_winter)

    def test_zulu_suffix(self):
        decoded = Types.Timestamp().decode("2024-01-15T10:00:00Z", CODEC)
        assert decoded == datetime(2024, 1, 15, 10, tzinfo=timezone.utc)

    def test_aware_datetime_kept(self):
        aware = datetime(2024, 1, 15, tzinfo=timezone(timedelta(hours=5)))
        assert Types.Timestamp().decode(aware, CODEC) is aware


class TestNullsAndContainers:
    def test_null_for_nullable(self):
        assert Types.Int(nullable=True).decode(None, CODEC) is None

    def test_null_for_non_nullable(self):
        with pytest.raises(DecodeError, match="non-nullable"):
            Types.Int(nullable=False).decode(None, CODEC)

    def test_list_decodes_elements(self):
        assert Types.List(Types.Int()).decode(["1", 2], CODEC) == [1, 2]

    def test_list_rejects_string(self):
        with pytest.raises(DecodeError):
            Types.List(Types.String()).decode("abc", CODEC)

    def test_struct_without_target_is_dict(self):
        struct = Types.Struct({"a": Types.Int(), "b": Types.String()})
        assert struct.decode({"a": "1"}, CODEC) == {"a": 1, "b": None}

    def test_struct_error_names_field(self):
        struct = Types.Struct({"a": Types.Int()})
        with pytest.raises(DecodeError, match="field 'a'"):
            struct.decode({"a": "x"}, CODEC)


class TestInference:
    def test_scalars_are_not_nullable(self):
        assert infer_type(int) == Types.Int(nullable=False)
        assert infer_type(bool) == Types.Bool(nullable=False)
        assert infer_type(datetime) == Types.Timestamp(nullable=False)
        assert infer_type(date) == Types.Date(nullable=False)

    def test_optional_is_nullable(self):
        assert infer_type(Optional[str]) == Types.String(nullable=True)
        assert infer_type(int | None) == Types.Int(nullable=True)

    def test_list_annotation(self):
        assert infer_type(List[float]) == Types.List(Types.Float(nullable=False), nullable=False)

    def test_any_annotation(self):
        assert isinstance(infer_type(Any), Types.Any)

    def test_unsupported_annotation(self):
        with pytest.raises(TypeError, match="unsupported"):
            infer_type(complex)
