"""
marketplace/pricing.py

Price calculator.

Two independent formulas, used by different flows:

1) Markup-based client pricing (final quotation):
   - flat:        client = supplier + markup           profit = markup
   - percentage:  commission = markup% * supplier
                  client = supplier + commission        profit = commission

2) Platform-price estimate (catalog estimates, ignores markup settings):
   platform = market * (1 - 0.05)
   profit   = max(0, platform - supplier + supplier_commission)

IMPORTANT:
- Nothing here raises on odd numeric input. Negative results clamp to 0.
- Money is Decimal; results are quantized to cents (ROUND_HALF_UP).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum

DISCOUNT_RATE = Decimal("0.05")
ZERO = Decimal("0.00")


class MarkupType(str, Enum):
    FLAT = "flat"
    PERCENTAGE = "percentage"


def to_decimal(value) -> Decimal:
    """Convert Numeric/None/str/float to Decimal; unreadable input becomes 0."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        return ZERO
    if not result.is_finite():
        return ZERO
    return result


def money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _clamp(x: Decimal) -> Decimal:
    return x if x > ZERO else ZERO


@dataclass(frozen=True)
class ClientPrice:
    supplier_price: Decimal
    client_price: Decimal
    commission: Decimal
    profit: Decimal

    def to_dict(self) -> dict:
        return {
            "supplierPrice": self.supplier_price,
            "clientPrice": self.client_price,
            "commission": self.commission,
            "profit": self.profit,
        }


@dataclass(frozen=True)
class PlatformEstimate:
    platform_price: Decimal
    profit: Decimal

    def to_dict(self) -> dict:
        return {"platformPrice": self.platform_price, "profit": self.profit}


def parse_markup_type(value) -> MarkupType:
    """Unknown markup types fall back to flat (the settings default)."""
    if isinstance(value, MarkupType):
        return value
    try:
        return MarkupType(str(value or "").strip().lower())
    except ValueError:
        return MarkupType.FLAT


def client_price(supplier_price, markup, markup_type=MarkupType.FLAT) -> ClientPrice:
    """Convert a supplier unit price into what the client pays."""
    supplier = _clamp(to_decimal(supplier_price))
    markup = _clamp(to_decimal(markup))

    if parse_markup_type(markup_type) is MarkupType.PERCENTAGE:
        commission = money(markup / Decimal("100") * supplier)
        price = money(supplier + commission)
        return ClientPrice(money(supplier), price, commission, commission)

    price = money(supplier + markup)
    profit = money(price - supplier)
    return ClientPrice(money(supplier), price, ZERO, profit)


def platform_price(market_price, supplier_price, supplier_commission=None) -> PlatformEstimate:
    """Platform price estimate: market price less the fixed 5% discount."""
    market = to_decimal(market_price)
    supplier = to_decimal(supplier_price)
    commission = to_decimal(supplier_commission)

    platform = market * (Decimal("1") - DISCOUNT_RATE)
    profit = platform - supplier + commission

    return PlatformEstimate(
        platform_price=money(_clamp(platform)),
        profit=money(_clamp(profit)),
    )


def market_price(min_price, max_price) -> Decimal | None:
    """Midpoint of a material's market band; None unless both bounds exist."""
    if min_price is None or max_price is None:
        return None
    return money((to_decimal(min_price) + to_decimal(max_price)) / Decimal("2"))
