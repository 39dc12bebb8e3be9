"""Tests for the price calculator."""

from decimal import Decimal

import pytest

from marketplace.pricing import (
    MarkupType,
    client_price,
    market_price,
    parse_markup_type,
    platform_price,
    to_decimal,
)


class TestClientPrice:
    def test_flat_markup(self):
        result = client_price(100, 10, MarkupType.FLAT)
        assert result.client_price == Decimal("110.00")
        assert result.profit == Decimal("10.00")
        assert result.commission == Decimal("0.00")

    def test_percentage_markup(self):
        result = client_price(100, 15, "percentage")
        assert result.commission == Decimal("15.00")
        assert result.client_price == Decimal("115.00")
        assert result.profit == Decimal("15.00")

    def test_percentage_markup_from_enum(self):
        result = client_price(100, 15, MarkupType.PERCENTAGE)
        assert result.commission == Decimal("15.00")
        assert result.client_price == Decimal("115.00")

    def test_percentage_rounds_half_up(self):
        result = client_price("10.05", 10, "percentage")
        # 1.005 -> 1.01
        assert result.commission == Decimal("1.01")
        assert result.client_price == Decimal("11.06")

    def test_unknown_type_is_flat(self):
        assert client_price(50, 5, "bogus").client_price == Decimal("55.00")

    def test_negative_inputs_clamp_to_zero(self):
        result = client_price(-20, -5, "flat")
        assert result.supplier_price == Decimal("0.00")
        assert result.client_price == Decimal("0.00")
        assert result.profit == Decimal("0.00")

    def test_garbage_never_raises(self):
        assert client_price("abc", 10).client_price == Decimal("10.00")

    def test_to_dict_keys(self):
        assert set(client_price(1, 1).to_dict()) == {"supplierPrice", "clientPrice", "commission", "profit"}


class TestPlatformPrice:
    def test_discounted_market_price(self):
        result = platform_price(100, 60)
        assert result.platform_price == Decimal("95.00")
        assert result.profit == Decimal("35.00")

    def test_commission_adds_to_profit(self):
        assert platform_price(100, 90, 5).profit == Decimal("10.00")

    def test_loss_clamps_to_zero(self):
        result = platform_price(100, 120)
        assert result.platform_price == Decimal("95.00")
        assert result.profit == Decimal("0.00")

    def test_negative_market_clamps(self):
        assert platform_price(-10, 0).platform_price == Decimal("0.00")

    def test_missing_market_is_zero(self):
        result = platform_price(None, 10)
        assert result.platform_price == Decimal("0.00")
        assert result.profit == Decimal("0.00")


class TestHelpers:
    def test_market_price_midpoint(self):
        assert market_price(90, 110) == Decimal("100.00")
        assert market_price("10", "15") == Decimal("12.50")

    @pytest.mark.parametrize("lo,hi", [(None, 10), (10, None), (None, None)])
    def test_market_price_needs_both_bounds(self, lo, hi):
        assert market_price(lo, hi) is None

    def test_parse_markup_type(self):
        assert parse_markup_type("PERCENTAGE") is MarkupType.PERCENTAGE
        assert parse_markup_type(None) is MarkupType.FLAT
        assert parse_markup_type(MarkupType.PERCENTAGE) is MarkupType.PERCENTAGE

    def test_to_decimal(self):
        assert to_decimal("12,5") == Decimal("12.5")
        assert to_decimal("nan") == Decimal("0.00")
        assert to_decimal(None) == Decimal("0.00")
