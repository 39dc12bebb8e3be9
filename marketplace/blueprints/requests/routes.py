"""
Request (RFQ) routes.

Thin HTTP layer over lifecycle.py and quotes.py: parse the body, call the
service, serialize. Services own the transactions and raise domain errors
that the app factory turns into JSON responses.

Access:
- Reads: any authenticated user.
- Create / edit / quote / refresh / add line: admin + staff roles.
- Delete: admin only.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ... import lifecycle, quotes
from ...models import Request
from ...security import admin_required, staff_required
from ...utils import clean_str, get_json_body, parse_optional_int

requests_bp = Blueprint("requests", __name__, url_prefix="/api")


# ---------------------------------------------------------------------
# LIST + READ
# ---------------------------------------------------------------------

@requests_bp.route("/requests", methods=["GET"])
@login_required
def list_requests():
    """List requests, newest first. Filters: ?status=, ?clientId=."""
    query = Request.query

    status = clean_str(request.args.get("status"))
    if status:
        query = query.filter(Request.status == status)

    client_id = parse_optional_int(request.args.get("clientId"))
    if client_id is not None:
        query = query.filter(Request.client_id == client_id)

    rows = query.order_by(Request.created_at.desc(), Request.id.desc()).all()
    return jsonify([r.to_dict(with_lines=False) for r in rows])


@requests_bp.route("/requests/<int:request_id>", methods=["GET"])
@login_required
def get_request(request_id: int):
    return jsonify(lifecycle.get_request(request_id).to_dict())


# ---------------------------------------------------------------------
# CREATE / EDIT / DELETE
# ---------------------------------------------------------------------

@requests_bp.route("/requests", methods=["POST"])
@login_required
@staff_required
def create_request():
    rfq = lifecycle.create_request(get_json_body())
    return jsonify(rfq.to_dict()), 201


@requests_bp.route("/requests/<int:request_id>", methods=["PATCH"])
@login_required
@staff_required
def update_request(request_id: int):
    rfq = lifecycle.update_request(request_id, get_json_body())
    return jsonify(rfq.to_dict())


@requests_bp.route("/requests/<int:request_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_request(request_id: int):
    lifecycle.delete_request(request_id)
    return jsonify({"success": True})


@requests_bp.route("/requests/<int:request_id>/lines", methods=["POST"])
@login_required
@staff_required
def add_line(request_id: int):
    line = lifecycle.add_line(request_id, get_json_body())
    return jsonify(line.to_dict()), 201


@requests_bp.route("/requests/<int:request_id>/refresh-prices", methods=["POST"])
@login_required
@staff_required
def refresh_prices(request_id: int):
    rfq = lifecycle.refresh_prices(request_id)
    return jsonify(rfq.to_dict())


# ---------------------------------------------------------------------
# QUOTES
# ---------------------------------------------------------------------

@requests_bp.route("/requests/<int:request_id>/quotes", methods=["POST"])
@login_required
@staff_required
def submit_quote(request_id: int):
    result = quotes.submit_quote(request_id, get_json_body())
    return jsonify(
        {
            "request": result.request.to_dict(),
            "totals": result.totals.to_dict(),
            "logEntries": result.log_entries,
        }
    )


@requests_bp.route("/requests/<int:request_id>/quote-log", methods=["GET"])
@login_required
def quote_log(request_id: int):
    return jsonify([entry.to_dict() for entry in quotes.quote_log(request_id)])


# ---------------------------------------------------------------------
# DASHBOARD
# ---------------------------------------------------------------------

@requests_bp.route("/statistics", methods=["GET"])
@login_required
def statistics():
    return jsonify(lifecycle.statistics())
