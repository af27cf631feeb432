"""
Unit tests for value normalization and rate conversion.
"""

import pytest

from netapp_exporter.normalizer import to_float, to_rate
from netapp_exporter.exceptions import (
    MalformedValueError, UnsupportedValueTypeError, ValueNormalizationError
)


class TestToFloat:
    """Test cases for to_float."""

    def test_float_is_returned_unchanged(self):
        assert to_float(3.5) == 3.5
        assert to_float(-0.25) == -0.25

    def test_int_is_converted_exactly(self):
        result = to_float(1048576)
        assert result == 1048576.0
        assert isinstance(result, float)

    @pytest.mark.parametrize("raw,expected", [
        ("1000", 1000.0),
        ("0", 0.0),
        ("-42", -42.0),
        ("+7", 7.0),
        ("007", 7.0),
    ])
    def test_integer_strings(self, raw, expected):
        assert to_float(raw) == expected

    @pytest.mark.parametrize("raw", ["abc", "", "12.5", "1e3", " 12", "12 ", "-", "0x10", "55%"])
    def test_malformed_strings(self, raw):
        with pytest.raises(MalformedValueError) as exc_info:
            to_float(raw)
        assert exc_info.value.invalid_value == raw

    @pytest.mark.parametrize("raw", [None, [], {}, {"value": 1}, (1,), True, False])
    def test_unsupported_types(self, raw):
        with pytest.raises(UnsupportedValueTypeError):
            to_float(raw)

    def test_errors_share_a_base_class(self):
        with pytest.raises(ValueNormalizationError):
            to_float("abc")
        with pytest.raises(ValueNormalizationError):
            to_float(None)

    def test_large_values_survive(self):
        assert to_float("9007199254740992") == 9007199254740992.0


class TestToRate:
    """Test cases for to_rate."""

    def test_percent_becomes_fraction(self):
        assert to_rate(55) == pytest.approx(0.55)
        assert to_rate("100") == 1.0
        assert to_rate(0.0) == 0.0

    def test_values_above_hundred_are_not_clamped(self):
        assert to_rate("150") == 1.5

    def test_propagates_normalization_errors(self):
        with pytest.raises(MalformedValueError):
            to_rate("n/a")
        with pytest.raises(UnsupportedValueTypeError):
            to_rate(None)
