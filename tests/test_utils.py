"""Tests for API input parsing helpers."""

from decimal import Decimal

import pytest

from marketplace.errors import ValidationError
from marketplace.utils import MAX_AMOUNT, MAX_QUANTITY, parse_amount, parse_optional_int, parse_quantity


class TestParseAmount:
    def test_comma_decimal(self):
        assert parse_amount("12,50", "price") == Decimal("12.50")

    @pytest.mark.parametrize("value", [None, "", "  ", True])
    def test_empty_is_none(self, value):
        assert parse_amount(value, "price") is None

    def test_storage_limit(self):
        assert parse_amount(str(MAX_AMOUNT), "price") == MAX_AMOUNT
        with pytest.raises(ValidationError) as exc:
            parse_amount("1e30", "price")
        assert exc.value.message == "price is too large"

    def test_negative_limit(self):
        with pytest.raises(ValidationError):
            parse_amount("-1e30", "delta", allow_negative=True)

    @pytest.mark.parametrize("value", ["abc", "nan", "inf", "-3"])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value, "price")


class TestParseQuantity:
    def test_limits(self):
        assert parse_quantity(str(MAX_QUANTITY)) == MAX_QUANTITY
        with pytest.raises(ValidationError):
            parse_quantity(MAX_QUANTITY + 1)
        with pytest.raises(ValidationError):
            parse_quantity(0)

    def test_optional_int_rejects_bool(self):
        with pytest.raises(ValidationError):
            parse_optional_int(True)
