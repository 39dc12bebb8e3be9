"""
marketplace/quotes.py

Multi-supplier quote builder.

A submission carries, per request line, up to five supplier offers:

    {
      "items": [
        {"itemId": 7,
         "supplierPrices": {"supplier1": {"supplierId": 3, "unitPrice": 12.5},
                            "supplier2": {"supplierId": 4, "unitPrice": 13}},
         "suppliersToShow": 2}
      ],
      "deliveryFee": 20, "taxRate": 16, "taxAmount": ..., "profit": ..., "totalAmount": ...
    }

Validation is all-or-nothing and happens before any write:
- every line of the request must be present and carry a valid slot 1
  (supplierId set, unitPrice > 0)
- slots 2-5 are optional; an incomplete or non-positive slot is not counted
- every counted slot must name an existing supplier
- suppliersToShow must be within 1..5 (absent means 1)

Commit (single transaction):
1. append one QuoteLogEntry per counted slot (history is never rewritten)
2. overwrite each line's price record
3. store aggregate totals on the request and mark it quoted
4. advance the linked Lead to quotes_received
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .audit import log_action, serialize_model
from .errors import ValidationError
from .extensions import db
from .leads import advance_lead_on_quote
from .lifecycle import get_request, request_log_fields
from .models import MarkupSettings, QuoteLogEntry, Request, RequestLine, RequestStatus, Supplier
from .price_record import (
    MAX_SUPPLIERS_TO_SHOW,
    MIN_SUPPLIERS_TO_SHOW,
    SLOT_COUNT,
    SlotOffer,
    SupplierPriceRecord,
    slot_key,
)
from .pricing import ZERO, client_price, money
from .utils import MAX_AMOUNT, parse_amount, parse_optional_int, transaction

log = logging.getLogger(__name__)

SLOT1_REQUIRED = "All materials must have at least Supplier 1 with a valid price"


@dataclass(frozen=True)
class QuoteTotals:
    subtotal: Decimal
    delivery_fee: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    profit: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "deliveryFee": self.delivery_fee,
            "taxRate": self.tax_rate,
            "taxAmount": self.tax_amount,
            "profit": self.profit,
            "totalAmount": self.total_amount,
        }


@dataclass
class QuoteResult:
    request: Request
    totals: QuoteTotals
    log_entries: int


# ---------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------
def _slot_number(key) -> int | None:
    """Accept 'supplier3', '3' or 3."""
    raw = str(key).strip().lower()
    if raw.startswith("supplier"):
        raw = raw[len("supplier"):]
    try:
        number = int(raw)
    except ValueError:
        return None
    return number if 1 <= number <= SLOT_COUNT else None


def _parse_slots(raw) -> dict[int, dict]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValidationError("supplierPrices must be an object")
    slots = {}
    for key, value in raw.items():
        number = _slot_number(key)
        if number is not None and isinstance(value, dict):
            slots[number] = value
    return slots


def _valid_offer(entry: dict | None) -> tuple[int, Decimal] | None:
    """(supplier_id, unit_price) when the slot is complete and priced above zero."""
    if not entry:
        return None
    try:
        supplier_id = int(entry.get("supplierId") or 0)
        unit_price = Decimal(str(entry.get("unitPrice") or 0))
    except (TypeError, ValueError, InvalidOperation):
        return None
    if supplier_id <= 0 or not unit_price.is_finite() or unit_price <= 0:
        return None
    if unit_price > MAX_AMOUNT:
        raise ValidationError(f"unitPrice {entry.get('unitPrice')} is too large")
    return supplier_id, unit_price


def parse_suppliers_to_show(value) -> int:
    count = parse_optional_int(value)
    if count is None:
        return MIN_SUPPLIERS_TO_SHOW
    if not MIN_SUPPLIERS_TO_SHOW <= count <= MAX_SUPPLIERS_TO_SHOW:
        raise ValidationError(
            f"suppliersToShow must be between {MIN_SUPPLIERS_TO_SHOW} and {MAX_SUPPLIERS_TO_SHOW}"
        )
    return count


def build_line_record(line: RequestLine, item: dict) -> SupplierPriceRecord:
    """Typed price record for one line; raises when slot 1 is not valid."""
    slots = _parse_slots(item.get("supplierPrices"))
    record = SupplierPriceRecord(suppliers_to_show=parse_suppliers_to_show(item.get("suppliersToShow")))

    for number in range(1, SLOT_COUNT + 1):
        offer = _valid_offer(slots.get(number))
        if offer is None:
            if number == 1:
                raise ValidationError(SLOT1_REQUIRED)
            continue
        supplier_id, unit_price = offer
        record.set(number, SlotOffer.for_quantity(supplier_id, unit_price, line.quantity))
    return record


def build_quotation(rfq: Request, items) -> list[tuple[RequestLine, SupplierPriceRecord]]:
    """Validate a whole submission against the request. No writes."""
    if not isinstance(items, list) or not items:
        raise ValidationError("items are required")

    lines_by_id = {line.id: line for line in rfq.lines}
    if not lines_by_id:
        raise ValidationError("Request has no lines to quote")

    records: dict[int, SupplierPriceRecord] = {}
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        line_id = parse_optional_int(item.get("itemId"))
        line = lines_by_id.get(line_id)
        if line is None:
            raise ValidationError(f"Item {item.get('itemId')} does not belong to request {rfq.number}")
        if line_id in records:
            raise ValidationError(f"Item {line_id} appears more than once")
        records[line_id] = build_line_record(line, item)

    if set(records) != set(lines_by_id):
        raise ValidationError(SLOT1_REQUIRED)

    supplier_ids = {offer.supplier_id for record in records.values() for _, offer in record.populated()}
    known = {s.id for s in Supplier.query.filter(Supplier.id.in_(supplier_ids)).all()}
    unknown = sorted(supplier_ids - known)
    if unknown:
        raise ValidationError(f"Unknown supplier(s): {', '.join(str(s) for s in unknown)}")

    return [(lines_by_id[line_id], records[line_id]) for line_id in sorted(records)]


# ---------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------
def _given(payload: dict, key: str) -> Decimal | None:
    return parse_amount(payload.get(key), key)


def compute_totals(
    quotation: list[tuple[RequestLine, SupplierPriceRecord]],
    settings: MarkupSettings,
    payload: dict,
) -> QuoteTotals:
    """
    Aggregate totals from the slot-1 offers.

    Caller-supplied deliveryFee / taxRate / taxAmount / profit / totalAmount win;
    missing values are derived:
      taxAmount   = subtotal * taxRate / 100   (taxRate defaults to settings)
      profit      = sum of markup profit on each slot-1 unit price * quantity
      totalAmount = subtotal + deliveryFee + taxAmount
    """
    subtotal = money(sum((record.primary.total_price for _, record in quotation), ZERO))

    delivery_fee = _given(payload, "deliveryFee")
    if delivery_fee is None:
        delivery_fee = ZERO

    tax_rate = _given(payload, "taxRate")
    if tax_rate is None:
        tax_rate = settings.tax_percent

    tax_amount = _given(payload, "taxAmount")
    if tax_amount is None:
        tax_amount = subtotal * tax_rate / Decimal("100")

    profit = _given(payload, "profit")
    if profit is None:
        profit = sum(
            (
                client_price(record.primary.unit_price, settings.markup, settings.markup_kind).profit
                * Decimal(line.quantity)
                for line, record in quotation
            ),
            ZERO,
        )

    total_amount = _given(payload, "totalAmount")
    if total_amount is None:
        total_amount = subtotal + delivery_fee + tax_amount

    return QuoteTotals(
        subtotal=subtotal,
        delivery_fee=money(delivery_fee),
        tax_rate=tax_rate,
        tax_amount=money(tax_amount),
        profit=money(profit),
        total_amount=money(total_amount),
    )


# ---------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------
def submit_quote(request_id: int, payload: dict) -> QuoteResult:
    """Validate and commit a full multi-supplier quotation for a request."""
    rfq = get_request(request_id)

    try:
        quotation = build_quotation(rfq, payload.get("items"))
        totals = compute_totals(quotation, MarkupSettings.current(), payload)
    except ValidationError as exc:
        log.warning(
            "quote for %s rejected: %s", rfq.number, exc.message, extra=request_log_fields(rfq)
        )
        raise

    entries = 0
    with transaction("submit quote"):
        before = serialize_model(rfq)

        for line, record in quotation:
            for number, offer in record.populated():
                db.session.add(
                    QuoteLogEntry(
                        request_id=rfq.id,
                        supplier_id=offer.supplier_id,
                        price=offer.unit_price,
                        notes=f"{slot_key(number).capitalize()} price for item {line.id}",
                    )
                )
                entries += 1
            line.price_record = record

        rfq.delivery_fee = totals.delivery_fee
        rfq.tax_amount = totals.tax_amount
        rfq.profit = totals.profit
        rfq.total_amount = totals.total_amount
        rfq.status = RequestStatus.QUOTED.value

        advance_lead_on_quote(rfq)

        db.session.flush()
        log_action(rfq, "QUOTE", before=before, after=serialize_model(rfq))

    log.info(
        "request %s quoted: %s offer(s), total %s",
        rfq.number,
        entries,
        totals.total_amount,
        extra=request_log_fields(rfq),
    )
    return QuoteResult(request=rfq, totals=totals, log_entries=entries)


def quote_log(request_id: int) -> list[QuoteLogEntry]:
    rfq = get_request(request_id)
    return QuoteLogEntry.query.filter_by(request_id=rfq.id).order_by(QuoteLogEntry.id.asc()).all()
