"""
marketplace/leads.py

Request -> Lead synchronizer.

The edge is one-directional:
- Request creation creates exactly one Lead (source from_request, stage new_request).
- A manual Request status edit maps the status onto a Lead stage.
- Quote submission forces quotes_received and refreshes estimated_value.

Lead stage edits never touch Request.status (see update_lead()).

The sync helpers only add/modify rows in the current session; the caller owns
the transaction. Pipeline-side edits (manual leads) run their own.
"""

from __future__ import annotations

import json
import logging

from .audit import log_action, serialize_model
from .errors import NotFoundError, ValidationError
from .extensions import db
from .models import Lead, LeadSource, LeadStage, Request, RequestStatus
from .utils import parse_amount, parse_optional_int, transaction

log = logging.getLogger(__name__)

_STATUS_TO_STAGE = {
    RequestStatus.PENDING: LeadStage.NEW_REQUEST,
    RequestStatus.QUOTED: LeadStage.CONTRACTOR_REVIEW,
    RequestStatus.COMPLETED: LeadStage.COMPLETED,
}


def stage_for_status(status) -> LeadStage | None:
    """Lead stage for a request status; None for statuses that do not sync."""
    known = status if isinstance(status, RequestStatus) else RequestStatus.parse(status)
    if known is None:
        return None
    return _STATUS_TO_STAGE[known]


def lead_for_request(request_id: int) -> Lead | None:
    """The pipeline Lead linked to a request (oldest first if several exist)."""
    return Lead.query.filter_by(request_id=request_id).order_by(Lead.id.asc()).first()


def create_lead_for_request(rfq: Request) -> Lead:
    """Build the Lead that accompanies a newly created request."""
    client = rfq.client
    names = [line.material_name for line in rfq.lines]

    lead = Lead(
        request_id=rfq.id,
        client_id=rfq.client_id,
        source=LeadSource.FROM_REQUEST.value,
        stage=LeadStage.NEW_REQUEST.value,
        contractor_name=client.name if client else None,
        contractor_whatsapp=client.whatsapp if client else None,
        project_name=rfq.project_name,
        location=client.district if client else None,
        materials=json.dumps(names) if names else None,
        estimated_value=rfq.total_amount,
        notes=f"Auto-created from RFQ {rfq.number}",
    )
    db.session.add(lead)
    return lead


def _move(lead: Lead, stage: LeadStage) -> bool:
    if lead.stage == stage.value:
        return False
    log.info("lead %s stage %s -> %s", lead.id, lead.stage, stage.value)
    lead.stage = stage.value
    return True


def sync_status_to_lead(rfq: Request) -> Lead | None:
    """
    Push a manually edited request status forward into its Lead.

    Returns the Lead when its stage was changed, otherwise None.
    """
    stage = stage_for_status(rfq.status)
    if stage is None:
        return None
    lead = lead_for_request(rfq.id)
    if lead is None:
        return None
    return lead if _move(lead, stage) else None


def advance_lead_on_quote(rfq: Request) -> Lead | None:
    """Quote submitted: the Lead moves to quotes_received and takes the new total."""
    lead = lead_for_request(rfq.id)
    if lead is None:
        return None
    _move(lead, LeadStage.QUOTES_RECEIVED)
    lead.estimated_value = rfq.total_amount
    return lead


# ---------------------------------------------------------------------
# Pipeline-side edits (never write to Request)
# ---------------------------------------------------------------------
LEAD_EDITABLE_FIELDS = {
    "stage": "stage",
    "contractorName": "contractor_name",
    "contractorWhatsapp": "contractor_whatsapp",
    "projectName": "project_name",
    "location": "location",
    "selectedSupplier": "selected_supplier",
    "notes": "notes",
    "assignedTo": "assigned_to",
    "estimatedValue": "estimated_value",
}


def parse_stage(value) -> LeadStage:
    try:
        return LeadStage(str(value or "").strip())
    except ValueError:
        allowed = ", ".join(s.value for s in LeadStage)
        raise ValidationError(f"Invalid stage. Allowed stages: {allowed}") from None


def apply_lead_fields(lead: Lead, data: dict) -> None:
    """Copy editable camelCase fields from API input onto a Lead."""
    for key, attr in LEAD_EDITABLE_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if key == "stage":
            value = parse_stage(value).value
        elif key == "estimatedValue":
            value = parse_amount(value, "estimatedValue")
        elif key == "assignedTo":
            value = parse_optional_int(value)
        setattr(lead, attr, value)


def parse_materials(value) -> str | None:
    """Material names for a manual lead, stored as a JSON list."""
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(name, str) for name in value):
        raise ValidationError("materials must be a list of material names")
    names = [name.strip() for name in value if name.strip()]
    return json.dumps(names) if names else None


def create_manual_lead(data: dict) -> Lead:
    lead = Lead(source=LeadSource.MANUAL.value, stage=LeadStage.NEW_REQUEST.value)
    apply_lead_fields(lead, data)
    lead.materials = parse_materials(data.get("materials"))
    lead.client_id = parse_optional_int(data.get("clientId"))

    with transaction("create lead"):
        db.session.add(lead)
        db.session.flush()
        log_action(lead, "CREATE", before=None, after=serialize_model(lead))

    log.info("manual lead %s created", lead.id, extra={"lead_id": lead.id})
    return lead


def _get_lead(lead_id: int) -> Lead:
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError.for_entity("Lead", lead_id)
    return lead


def update_lead(lead_id: int, data: dict) -> Lead:
    """Sales moves leads freely; the linked request is intentionally left alone."""
    lead = _get_lead(lead_id)

    with transaction("update lead"):
        before = serialize_model(lead)
        apply_lead_fields(lead, data)
        if "materials" in data:
            lead.materials = parse_materials(data.get("materials"))
        log_action(lead, "UPDATE", before=before, after=serialize_model(lead))

    return lead


def delete_lead(lead_id: int) -> None:
    lead = _get_lead(lead_id)

    with transaction("delete lead"):
        log_action(lead, "DELETE", before=serialize_model(lead), after=None)
        db.session.delete(lead)
