"""
Client routes.

Clients are identified by their WhatsApp handle (unique). register-or-find
is what the public request form calls: it returns the existing client for a
handle or creates one.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...audit import log_action, serialize_model
from ...errors import NotFoundError, ValidationError
from ...extensions import db
from ...models import Client
from ...proximity import is_known_district
from ...security import staff_required
from ...utils import clean_str, get_json_body, transaction

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


def _get_client(client_id: int) -> Client:
    client = db.session.get(Client, client_id)
    if client is None:
        raise NotFoundError.for_entity("Client", client_id)
    return client


def _district(value):
    district = clean_str(value)
    if district is not None and not is_known_district(district):
        raise ValidationError(f"Unknown district: {district}")
    return district


def _whatsapp_taken(whatsapp: str, exclude_id: int | None = None) -> bool:
    existing = Client.query.filter_by(whatsapp=whatsapp).first()
    return existing is not None and existing.id != exclude_id


@clients_bp.route("", methods=["GET"])
@login_required
def list_clients():
    query = Client.query
    q = clean_str(request.args.get("q"))
    if q:
        like = f"%{q}%"
        query = query.filter(
            db.or_(Client.name.ilike(like), Client.whatsapp.ilike(like), Client.company.ilike(like))
        )
    clients = query.order_by(Client.created_at.desc()).all()
    return jsonify([c.to_dict() for c in clients])


@clients_bp.route("/<int:client_id>", methods=["GET"])
@login_required
def get_client(client_id: int):
    return jsonify(_get_client(client_id).to_dict())


@clients_bp.route("", methods=["POST"])
@login_required
@staff_required
def create_client():
    data = get_json_body()
    name = clean_str(data.get("name"))
    whatsapp = clean_str(data.get("whatsapp"))
    if not name or not whatsapp:
        raise ValidationError("Name and WhatsApp number are required")
    if _whatsapp_taken(whatsapp):
        raise ValidationError("A client with this WhatsApp number already exists")

    client = Client(
        name=name,
        whatsapp=whatsapp,
        company=clean_str(data.get("company")),
        district=_district(data.get("district")),
    )

    with transaction("create client"):
        db.session.add(client)
        db.session.flush()
        log_action(client, "CREATE", before=None, after=serialize_model(client))

    return jsonify(client.to_dict()), 201


@clients_bp.route("/register-or-find", methods=["POST"])
@login_required
@staff_required
def register_or_find():
    """
    Return the client owning this WhatsApp handle, creating it when absent.

    An existing client is returned as-is (200); a new one is created (201).
    """
    data = get_json_body()
    whatsapp = clean_str(data.get("whatsapp"))
    if not whatsapp:
        raise ValidationError("WhatsApp number is required")

    existing = Client.query.filter_by(whatsapp=whatsapp).first()
    if existing is not None:
        return jsonify({"client": existing.to_dict(), "created": False})

    name = clean_str(data.get("name"))
    if not name:
        raise ValidationError("Name is required for a new client")

    client = Client(
        name=name,
        whatsapp=whatsapp,
        company=clean_str(data.get("company")),
        district=_district(data.get("district")),
    )
    with transaction("register client"):
        db.session.add(client)
        db.session.flush()
        log_action(client, "CREATE", before=None, after=serialize_model(client))

    return jsonify({"client": client.to_dict(), "created": True}), 201


@clients_bp.route("/<int:client_id>", methods=["PATCH"])
@login_required
@staff_required
def update_client(client_id: int):
    client = _get_client(client_id)
    data = get_json_body()

    with transaction("update client"):
        before = serialize_model(client)
        if "name" in data:
            name = clean_str(data.get("name"))
            if not name:
                raise ValidationError("Name cannot be empty")
            client.name = name
        if "whatsapp" in data:
            whatsapp = clean_str(data.get("whatsapp"))
            if not whatsapp:
                raise ValidationError("WhatsApp number cannot be empty")
            if _whatsapp_taken(whatsapp, exclude_id=client.id):
                raise ValidationError("A client with this WhatsApp number already exists")
            client.whatsapp = whatsapp
        if "company" in data:
            client.company = clean_str(data.get("company"))
        if "district" in data:
            client.district = _district(data.get("district"))
        log_action(client, "UPDATE", before=before, after=serialize_model(client))

    return jsonify(client.to_dict())
