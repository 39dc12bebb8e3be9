"""
marketplace/price_record.py

Typed multi-supplier price record for a request line.

In memory a line carries five optional slots plus suppliers_to_show.
The storage format is a JSON text column with the exact shape consumed by the UI:

    {
      "supplier1": {"supplierId": 3, "unitPrice": 12.5, "totalPrice": 125.0},
      "supplier2": {...},            # absent when the slot is empty
      "suppliersToShow": 2
    }

Serialization happens only at the persistence edge (RequestLine.price_record).
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterator, Optional

SLOT_COUNT = 5
MIN_SUPPLIERS_TO_SHOW = 1
MAX_SUPPLIERS_TO_SHOW = SLOT_COUNT


def slot_key(slot: int) -> str:
    """Storage key for a slot number: 1 -> 'supplier1'."""
    return f"supplier{slot}"


def _money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _number(value: Decimal) -> float | int:
    """JSON number for a money value (integers stay integers)."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


@dataclass(frozen=True)
class SlotOffer:
    """One supplier's offer in one slot of a request line."""

    supplier_id: int
    unit_price: Decimal
    total_price: Decimal

    @classmethod
    def for_quantity(cls, supplier_id: int, unit_price: Decimal, quantity: int) -> "SlotOffer":
        unit_price = Decimal(str(unit_price))
        return cls(
            supplier_id=int(supplier_id),
            unit_price=unit_price,
            total_price=_money(unit_price * Decimal(int(quantity))),
        )

    def to_dict(self) -> dict:
        return {
            "supplierId": self.supplier_id,
            "unitPrice": _number(self.unit_price),
            "totalPrice": _number(self.total_price),
        }

    @classmethod
    def from_dict(cls, data) -> Optional["SlotOffer"]:
        """Read a stored slot; malformed entries are treated as empty."""
        if not isinstance(data, dict):
            return None
        try:
            supplier_id = int(data["supplierId"])
            unit_price = Decimal(str(data["unitPrice"]))
            total_price = Decimal(str(data.get("totalPrice", 0)))
        except (KeyError, TypeError, ValueError, InvalidOperation):
            return None
        return cls(supplier_id=supplier_id, unit_price=unit_price, total_price=total_price)


@dataclass
class SupplierPriceRecord:
    """Fixed-size optional-slot structure (slots 1..5)."""

    slots: list = field(default_factory=lambda: [None] * SLOT_COUNT)
    suppliers_to_show: int = MIN_SUPPLIERS_TO_SHOW

    def __post_init__(self):
        if len(self.slots) != SLOT_COUNT:
            raise ValueError(f"a price record has exactly {SLOT_COUNT} slots")

    def get(self, slot: int) -> SlotOffer | None:
        return self.slots[slot - 1]

    def set(self, slot: int, offer: SlotOffer | None) -> None:
        if not 1 <= slot <= SLOT_COUNT:
            raise ValueError(f"slot must be between 1 and {SLOT_COUNT}")
        self.slots[slot - 1] = offer

    @property
    def primary(self) -> SlotOffer | None:
        return self.slots[0]

    def populated(self) -> Iterator[tuple[int, SlotOffer]]:
        """Yield (slot number, offer) for every filled slot, in slot order."""
        for idx, offer in enumerate(self.slots, start=1):
            if offer is not None:
                yield idx, offer

    def to_dict(self) -> dict:
        data = {slot_key(idx): offer.to_dict() for idx, offer in self.populated()}
        data["suppliersToShow"] = self.suppliers_to_show
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict) -> "SupplierPriceRecord":
        record = cls()
        for idx in range(1, SLOT_COUNT + 1):
            record.set(idx, SlotOffer.from_dict(data.get(slot_key(idx))))
        try:
            show = int(data.get("suppliersToShow") or MIN_SUPPLIERS_TO_SHOW)
        except (TypeError, ValueError):
            show = MIN_SUPPLIERS_TO_SHOW
        record.suppliers_to_show = min(max(show, MIN_SUPPLIERS_TO_SHOW), MAX_SUPPLIERS_TO_SHOW)
        return record

    @classmethod
    def from_json(cls, raw: str | None) -> Optional["SupplierPriceRecord"]:
        """Parse the stored column. Empty or unreadable text means 'no quotation yet'."""
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        return cls.from_dict(data)
