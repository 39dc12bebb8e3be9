"""
Sales pipeline (Leads).

Leads are created automatically with each request, or manually here.
Editing a lead never changes the linked request.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...errors import NotFoundError
from ...extensions import db
from ...leads import create_manual_lead, delete_lead, parse_stage, update_lead
from ...models import Lead
from ...security import admin_required, staff_required
from ...utils import clean_str, get_json_body, parse_optional_int

leads_bp = Blueprint("leads", __name__, url_prefix="/api/leads")


@leads_bp.route("", methods=["GET"])
@login_required
def list_leads():
    """Filters: ?stage=, ?requestId=."""
    query = Lead.query

    stage = clean_str(request.args.get("stage"))
    if stage:
        query = query.filter(Lead.stage == parse_stage(stage).value)

    request_id = parse_optional_int(request.args.get("requestId"))
    if request_id is not None:
        query = query.filter(Lead.request_id == request_id)

    leads = query.order_by(Lead.created_at.desc(), Lead.id.desc()).all()
    return jsonify([lead.to_dict() for lead in leads])


@leads_bp.route("/<int:lead_id>", methods=["GET"])
@login_required
def get_lead(lead_id: int):
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError.for_entity("Lead", lead_id)
    return jsonify(lead.to_dict())


@leads_bp.route("", methods=["POST"])
@login_required
@staff_required
def create_lead():
    lead = create_manual_lead(get_json_body())
    return jsonify(lead.to_dict()), 201


@leads_bp.route("/<int:lead_id>", methods=["PATCH"])
@login_required
@staff_required
def patch_lead(lead_id: int):
    lead = update_lead(lead_id, get_json_body())
    return jsonify(lead.to_dict())


@leads_bp.route("/<int:lead_id>", methods=["DELETE"])
@login_required
@admin_required
def remove_lead(lead_id: int):
    delete_lead(lead_id)
    return jsonify({"success": True})
