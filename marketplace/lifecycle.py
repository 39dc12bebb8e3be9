"""
marketplace/lifecycle.py

Request (RFQ) lifecycle.

Transitions:
- create          -> status pending, version 1, lines at price version 1, Lead created
- submit quote    -> status quoted (see quotes.py)
- refresh prices  -> version + 1, market prices re-read, every line re-stamped,
                     status forced back to pending
- status edit     -> any text; pending/quoted/completed propagate to the Lead
- delete          -> quote log, leads, lines, request (in that order)

Every operation is one transaction (utils.transaction): it commits as a whole
or leaves the database untouched.

Request numbers come from RequestCounter, incremented with a single UPDATE
so two concurrent creations can never read the same value. The unique
constraint on Request.number is the last line of defence: a collision is
retried, then reported as ConflictError rather than stored twice.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from .audit import log_action, serialize_model
from .errors import ConflictError, NotFoundError, ValidationError
from .extensions import db
from .leads import create_lead_for_request, sync_status_to_lead
from .models import (
    Client,
    Lead,
    Material,
    QuoteLogEntry,
    Request,
    RequestCounter,
    RequestLine,
    RequestStatus,
)
from .utils import clean_str, parse_amount, parse_optional_int, parse_quantity, transaction

log = logging.getLogger(__name__)

NUMBER_ATTEMPTS = 3

# Constraint names as reported by SQLite ("table.column") and by
# PostgreSQL/MySQL (index or primary key name).
_COLLISION_MARKERS = (
    "requests.number",
    "ix_requests_number",
    "request_counters.prefix",
    "request_counters_pkey",
)


# ---------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------
def format_request_number(prefix: str, sequence: int) -> str:
    """<PREFIX>-RFQ-NNNN, zero padded to 4 digits and widening past 9999."""
    return f"{prefix}-RFQ-{sequence:04d}"


def parse_request_number(number: str | None, prefix: str) -> int | None:
    """Numeric suffix of a request number with the given prefix."""
    if not number:
        return None
    match = re.fullmatch(rf"{re.escape(prefix)}-RFQ-(\d+)", number)
    return int(match.group(1)) if match else None


def next_request_number(last_number: str | None, prefix: str) -> str:
    """The number following `last_number` (first number when there is none)."""
    last = parse_request_number(last_number, prefix) or 0
    return format_request_number(prefix, last + 1)


def _is_number_collision(exc: IntegrityError) -> bool:
    """True when the insert lost a race on the request number or the counter row."""
    message = str(exc.orig).lower()
    return any(marker in message for marker in _COLLISION_MARKERS)


def _highest_existing_sequence(prefix: str) -> int:
    numbers = db.session.execute(
        select(Request.number).where(Request.number.like(f"{prefix}-RFQ-%"))
    ).scalars()
    return max((parse_request_number(n, prefix) or 0 for n in numbers), default=0)


def allocate_request_number(prefix: str | None = None, *, resync: bool = False) -> str:
    """
    Reserve the next number inside the current transaction.

    The counter row is created on first use, seeded from the highest number
    already stored, so existing data keeps increasing. `resync` first lifts a
    counter that fell behind the stored numbers (used after a collision).
    """
    prefix = prefix or current_app.config["RFQ_NUMBER_PREFIX"]

    if resync:
        floor = _highest_existing_sequence(prefix)
        db.session.execute(
            update(RequestCounter)
            .where(RequestCounter.prefix == prefix, RequestCounter.value < floor)
            .values(value=floor)
            .execution_options(synchronize_session=False)
        )

    result = db.session.execute(
        update(RequestCounter)
        .where(RequestCounter.prefix == prefix)
        .values(value=RequestCounter.value + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.add(RequestCounter(prefix=prefix, value=_highest_existing_sequence(prefix) + 1))
        db.session.flush()

    value = db.session.execute(
        select(RequestCounter.value).where(RequestCounter.prefix == prefix)
    ).scalar_one()
    return format_request_number(prefix, value)


# ---------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------
def request_log_fields(rfq: Request, **more) -> dict:
    """`extra=` fields picked up by the JSON log formatter."""
    return {"request_id": rfq.id, "request_number": rfq.number, "version": rfq.version, **more}


def get_request(request_id: int) -> Request:
    rfq = db.session.get(Request, request_id)
    if rfq is None:
        raise NotFoundError.for_entity("Request", request_id)
    return rfq


def _materials_by_id(material_ids) -> dict[int, Material]:
    """One query for all referenced materials (a single consistent snapshot)."""
    ids = {mid for mid in material_ids if mid is not None}
    if not ids:
        return {}
    return {m.id: m for m in Material.query.filter(Material.id.in_(ids)).all()}


# ---------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------
def _parse_lines(items) -> list[dict]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")

    parsed = []
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("Each item must be an object")
        parsed.append(
            {
                "material_id": parse_optional_int(raw.get("materialId")),
                "material_name": clean_str(raw.get("materialName")),
                "quantity": parse_quantity(raw.get("quantity")),
                "unit": clean_str(raw.get("unit")),
                "market_price": parse_amount(raw.get("marketPrice"), "marketPrice"),
            }
        )
    return parsed


def _build_line(item: dict, materials: dict[int, Material], price_version: int) -> RequestLine:
    material = None
    if item["material_id"] is not None:
        material = materials.get(item["material_id"])
        if material is None:
            raise ValidationError(f"Material {item['material_id']} not found")

    name = item["material_name"] or (material.name if material else None)
    if not name:
        raise ValidationError("Each item needs a materialId or a materialName")

    market_price = item["market_price"]
    if market_price is None and material is not None:
        market_price = material.market_price

    return RequestLine(
        material_id=material.id if material else None,
        material_name=name,
        quantity=item["quantity"],
        unit=item["unit"] or (material.unit if material else None),
        market_price=market_price,
        price_version=price_version,
    )


def create_request(data: dict) -> Request:
    """
    Create a request with its lines and its pipeline Lead, atomically.

    Expected keys: clientId, projectName, projectDetails?, notes?, items[]
    (each: materialId? | materialName?, quantity, unit?, marketPrice?),
    totalAmount?.
    """
    client_id = parse_optional_int(data.get("clientId"))
    if client_id is None:
        raise ValidationError("clientId is required")
    project_name = clean_str(data.get("projectName"))
    if not project_name:
        raise ValidationError("projectName is required")

    line_specs = _parse_lines(data.get("items"))
    total_amount = parse_amount(data.get("totalAmount"), "totalAmount")

    collided = False
    for attempt in range(1, NUMBER_ATTEMPTS + 1):
        client = db.session.get(Client, client_id)
        if client is None:
            raise NotFoundError.for_entity("Client", client_id)
        materials = _materials_by_id(item["material_id"] for item in line_specs)
        lines = [_build_line(item, materials, price_version=1) for item in line_specs]

        try:
            with transaction("create request"):
                rfq = Request(
                    number=allocate_request_number(resync=collided),
                    client_id=client.id,
                    project_name=project_name,
                    project_details=clean_str(data.get("projectDetails")),
                    notes=clean_str(data.get("notes")),
                    status=RequestStatus.PENDING.value,
                    total_amount=total_amount,
                    version=1,
                )
                rfq.client = client
                rfq.lines.extend(lines)
                db.session.add(rfq)
                db.session.flush()

                lead = create_lead_for_request(rfq)
                db.session.flush()
                log_action(rfq, "CREATE", before=None, after=serialize_model(rfq))
        except IntegrityError as exc:
            if not _is_number_collision(exc):
                raise
            log.warning("request number collision (attempt %s/%s)", attempt, NUMBER_ATTEMPTS)
            collided = True
            continue

        log.info(
            "request %s created with %s line(s), lead %s",
            rfq.number,
            len(lines),
            lead.id,
            extra=request_log_fields(rfq, lead_id=lead.id),
        )
        return rfq

    raise ConflictError("Could not allocate a unique request number, please retry")


# ---------------------------------------------------------------------
# Refresh prices
# ---------------------------------------------------------------------
def refresh_prices(request_id: int) -> Request:
    """
    Start a new price round.

    - version += 1
    - lines linked to a material take the material's current midpoint price
      (unchanged when the material has no complete min/max band)
    - every line's price_version becomes the new version
    - status goes back to pending whatever it was
    """
    rfq = get_request(request_id)

    with transaction("refresh prices"):
        before = serialize_model(rfq)
        new_version = (rfq.version or 1) + 1
        materials = _materials_by_id(line.material_id for line in rfq.lines)

        for line in rfq.lines:
            material = materials.get(line.material_id)
            if material is not None:
                fresh = material.market_price
                if fresh is not None:
                    line.market_price = fresh
            line.price_version = new_version

        now = datetime.utcnow()
        rfq.version = new_version
        rfq.status = RequestStatus.PENDING.value
        rfq.last_edited_at = now
        rfq.updated_at = now

        db.session.flush()
        log_action(rfq, "REFRESH_PRICES", before=before, after=serialize_model(rfq))

    log.info(
        "request %s prices refreshed to version %s", rfq.number, rfq.version, extra=request_log_fields(rfq)
    )
    return rfq


# ---------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------
def _require_primary_offers(rfq: Request) -> None:
    """A request can only read "quoted" while every line carries a priced slot-1 offer."""
    if not rfq.lines:
        raise ValidationError("Request has no lines to quote")
    for line in rfq.lines:
        record = line.price_record
        primary = record.primary if record else None
        if primary is None or primary.supplier_id <= 0 or primary.unit_price <= 0:
            raise ValidationError(
                f"Line {line.id} has no Supplier 1 price; submit a quotation first"
            )


def update_request(request_id: int, data: dict) -> Request:
    """
    Manual edit of status and descriptive fields.

    A known status (pending/quoted/completed) is pushed forward into the Lead;
    other status text is stored as-is and does not sync. "quoted" is refused
    until every line has a Supplier 1 price.
    """
    rfq = get_request(request_id)

    status_given = "status" in data
    status = clean_str(data.get("status")) if status_given else None
    if status_given and not status:
        raise ValidationError("status cannot be empty")
    if status_given and RequestStatus.parse(status) is RequestStatus.QUOTED:
        _require_primary_offers(rfq)

    with transaction("update request"):
        before = serialize_model(rfq)

        if "projectName" in data:
            project_name = clean_str(data.get("projectName"))
            if not project_name:
                raise ValidationError("projectName cannot be empty")
            rfq.project_name = project_name
        if "projectDetails" in data:
            rfq.project_details = clean_str(data.get("projectDetails"))
        if "notes" in data:
            rfq.notes = clean_str(data.get("notes"))

        lead = None
        if status_given:
            rfq.status = status
            lead = sync_status_to_lead(rfq)

        db.session.flush()
        log_action(rfq, "UPDATE", before=before, after=serialize_model(rfq))

    if lead is not None:
        log.info(
            "request %s status %s moved lead %s to %s",
            rfq.number,
            rfq.status,
            lead.id,
            lead.stage,
            extra=request_log_fields(rfq, lead_id=lead.id),
        )
    return rfq


def add_line(request_id: int, data: dict) -> RequestLine:
    """Append a catalog material to an existing request. Totals are left for the next quotation."""
    rfq = get_request(request_id)

    material_id = parse_optional_int(data.get("materialId"))
    if material_id is None:
        raise ValidationError("Material ID and quantity are required")
    quantity = parse_quantity(data.get("quantity"))

    material = db.session.get(Material, material_id)
    if material is None:
        raise NotFoundError.for_entity("Material", material_id)

    with transaction("add request line"):
        line = RequestLine(
            material_id=material.id,
            material_name=material.name,
            quantity=quantity,
            unit=material.unit,
            market_price=material.market_price,
            price_version=rfq.version or 1,
        )
        rfq.lines.append(line)
        db.session.flush()
        log_action(line, "CREATE", before=None, after=serialize_model(line))

    return line


# ---------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------
def delete_request(request_id: int) -> None:
    """Cascade delete in dependency order; all of it or none of it."""
    rfq = get_request(request_id)
    number = rfq.number
    fields = request_log_fields(rfq)

    with transaction("delete request"):
        before = serialize_model(rfq)
        QuoteLogEntry.query.filter_by(request_id=rfq.id).delete(synchronize_session="fetch")
        Lead.query.filter_by(request_id=rfq.id).delete(synchronize_session="fetch")
        RequestLine.query.filter_by(request_id=rfq.id).delete(synchronize_session="fetch")
        log_action(rfq, "DELETE", before=before, after=None)
        db.session.delete(rfq)

    log.info("request %s deleted", number, extra=fields)


# ---------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------
def statistics() -> dict:
    """Counters shown on the admin dashboard."""
    total = Request.query.count()
    pending = Request.query.filter_by(status=RequestStatus.PENDING.value).count()
    quoted = Request.query.filter_by(status=RequestStatus.QUOTED.value).count()
    completed = Request.query.filter_by(status=RequestStatus.COMPLETED.value).count()
    profit = db.session.execute(
        select(db.func.coalesce(db.func.sum(Request.profit), 0)).where(
            Request.status == RequestStatus.COMPLETED.value
        )
    ).scalar_one()
    return {
        "totalClients": Client.query.count(),
        "totalRequests": total,
        "pendingQuotes": pending,
        "quotedRequests": quoted,
        "completedOrders": completed,
        "totalProfit": profit,
    }
