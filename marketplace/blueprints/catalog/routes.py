"""
Catalog routes: materials, suppliers and the offers linking them.

Access:
- Reads: any authenticated user (inactive materials are hidden from viewers).
- Materials/suppliers mutations: admin + procurement.
- Offers (material <-> supplier prices): admin + procurement.

Ranking endpoints order a material's offers by district proximity to the
client, then by price, and attach the platform-price estimate for each offer.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required
from sqlalchemy.exc import IntegrityError

from ...audit import log_action, serialize_model
from ...errors import ConflictError, NotFoundError, ValidationError
from ...extensions import db
from ...models import Material, MaterialSupplier, RequestLine, Supplier
from ...pricing import platform_price
from ...proximity import best_supplier, is_known_district, rank_suppliers
from ...security import is_viewer, roles_required
from ...utils import clean_str, get_json_body, parse_amount, parse_optional_int, transaction

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")

catalog_editor_required = roles_required("procurement")

SUPPLIER_STATUSES = ("active", "inactive")


def _get_material(material_id: int) -> Material:
    material = db.session.get(Material, material_id)
    if material is None:
        raise NotFoundError.for_entity("Material", material_id)
    return material


def _get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError.for_entity("Supplier", supplier_id)
    return supplier


def _district(value) -> str | None:
    district = clean_str(value)
    if district is not None and not is_known_district(district):
        raise ValidationError(f"Unknown district: {district}")
    return district


def _apply_material_fields(material: Material, data: dict) -> None:
    if "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            raise ValidationError("Material name is required")
        material.name = name
    if "unit" in data:
        material.unit = clean_str(data.get("unit"))
    if "category" in data:
        material.category = clean_str(data.get("category")) or "general"
    if "description" in data:
        material.description = clean_str(data.get("description"))
    if "active" in data:
        material.active = bool(data.get("active"))
    if "minPrice" in data:
        material.min_price = parse_amount(data.get("minPrice"), "minPrice")
    if "maxPrice" in data:
        material.max_price = parse_amount(data.get("maxPrice"), "maxPrice")
    if "deliveryDays" in data:
        material.delivery_days = parse_optional_int(data.get("deliveryDays"))

    if (
        material.min_price is not None
        and material.max_price is not None
        and material.min_price > material.max_price
    ):
        raise ValidationError("minPrice cannot be greater than maxPrice")


def _apply_supplier_fields(supplier: Supplier, data: dict) -> None:
    if "name" in data:
        name = clean_str(data.get("name"))
        if not name:
            raise ValidationError("Supplier name is required")
        supplier.name = name
    for key, attr in (
        ("company", "company"),
        ("contact", "contact"),
        ("whatsapp", "whatsapp"),
        ("email", "email"),
        ("category", "category"),
    ):
        if key in data:
            setattr(supplier, attr, clean_str(data.get(key)))
    if "district" in data:
        supplier.district = _district(data.get("district"))
    if "status" in data:
        status = (clean_str(data.get("status")) or "").lower()
        if status not in SUPPLIER_STATUSES:
            raise ValidationError("Supplier status must be active or inactive")
        supplier.status = status


def _priced_offers(material: Material) -> list[tuple[MaterialSupplier, object]]:
    """Offers of active suppliers that carry a price (unpriced offers cannot be ranked)."""
    return [
        (offer, offer.supplier_price)
        for offer in material.supplier_offers
        if offer.supplier is not None
        and offer.supplier.is_active
        and offer.supplier_price is not None
    ]


class _OfferView:
    """Adapter so rank_suppliers can read the supplier district off an offer."""

    __slots__ = ("offer", "district")

    def __init__(self, offer: MaterialSupplier):
        self.offer = offer
        self.district = offer.supplier.district


def _ranked_payload(material: Material, ranked) -> dict:
    market = material.market_price
    estimate = platform_price(market, ranked.price)
    return {
        **ranked.supplier.offer.to_dict(),
        "supplier": ranked.supplier.offer.supplier.to_dict(),
        "distance": ranked.distance,
        "platformPrice": estimate.platform_price if market is not None else None,
        "estimatedProfit": estimate.profit if market is not None else None,
    }


# ---------------------------------------------------------------------
# MATERIALS
# ---------------------------------------------------------------------

@catalog_bp.route("/materials", methods=["GET"])
@login_required
def list_materials():
    """List materials; viewers and ?active=1 only see active ones."""
    query = Material.query
    if is_viewer() or request.args.get("active") in {"1", "true"}:
        query = query.filter(Material.active.is_(True))

    category = clean_str(request.args.get("category"))
    if category:
        query = query.filter(Material.category == category)

    materials = query.order_by(Material.name.asc()).all()
    return jsonify([m.to_dict() for m in materials])


@catalog_bp.route("/materials/<int:material_id>", methods=["GET"])
@login_required
def get_material(material_id: int):
    return jsonify(_get_material(material_id).to_dict())


@catalog_bp.route("/materials", methods=["POST"])
@login_required
@catalog_editor_required
def create_material():
    data = get_json_body()
    if not clean_str(data.get("name")):
        raise ValidationError("Material name is required")

    material = Material(category="general", active=True)
    _apply_material_fields(material, data)

    with transaction("create material"):
        db.session.add(material)
        db.session.flush()
        log_action(material, "CREATE", before=None, after=serialize_model(material))

    return jsonify(material.to_dict()), 201


@catalog_bp.route("/materials/<int:material_id>", methods=["PATCH"])
@login_required
@catalog_editor_required
def update_material(material_id: int):
    material = _get_material(material_id)
    data = get_json_body()

    with transaction("update material"):
        before = serialize_model(material)
        _apply_material_fields(material, data)
        log_action(material, "UPDATE", before=before, after=serialize_model(material))

    return jsonify(material.to_dict())


@catalog_bp.route("/materials/<int:material_id>", methods=["DELETE"])
@login_required
@catalog_editor_required
def delete_material(material_id: int):
    """
    Materials referenced by request lines are deactivated instead of deleted,
    so past requests keep their line history.
    """
    material = _get_material(material_id)

    with transaction("delete material"):
        before = serialize_model(material)
        in_use = db.session.query(RequestLine.id).filter_by(material_id=material.id).first() is not None
        if in_use:
            material.active = False
            log_action(material, "DEACTIVATE", before=before, after=serialize_model(material))
        else:
            MaterialSupplier.query.filter_by(material_id=material.id).delete(synchronize_session="fetch")
            log_action(material, "DELETE", before=before, after=None)
            db.session.delete(material)

    return jsonify({"success": True, "deactivated": in_use})


# ---------------------------------------------------------------------
# OFFERS + RANKING
# ---------------------------------------------------------------------

@catalog_bp.route("/materials/<int:material_id>/suppliers", methods=["GET"])
@login_required
def material_suppliers(material_id: int):
    """Offers for a material ranked by proximity to ?district=, then price."""
    material = _get_material(material_id)
    district = clean_str(request.args.get("district"))

    candidates = [(_OfferView(offer), price) for offer, price in _priced_offers(material)]
    ranked = rank_suppliers(candidates, district)

    return jsonify([_ranked_payload(material, r) for r in ranked])


@catalog_bp.route("/materials/<int:material_id>/best-supplier", methods=["GET"])
@login_required
def material_best_supplier(material_id: int):
    material = _get_material(material_id)
    district = clean_str(request.args.get("district"))

    candidates = [(_OfferView(offer), price) for offer, price in _priced_offers(material)]
    best = best_supplier(candidates, district)

    return jsonify(_ranked_payload(material, best) if best else None)


@catalog_bp.route("/materials/<int:material_id>/suppliers", methods=["POST"])
@login_required
@catalog_editor_required
def add_material_supplier(material_id: int):
    """Attach a supplier price to a material (one offer per pair)."""
    material = _get_material(material_id)
    data = get_json_body()

    supplier_id = parse_optional_int(data.get("supplierId"))
    if supplier_id is None:
        raise ValidationError("supplierId is required")
    supplier = _get_supplier(supplier_id)

    offer = MaterialSupplier(
        material_id=material.id,
        supplier_id=supplier.id,
        supplier_price=parse_amount(data.get("supplierPrice"), "supplierPrice"),
        supplier_position=parse_optional_int(data.get("supplierPosition")) or 1,
    )

    try:
        with transaction("add material supplier"):
            db.session.add(offer)
            db.session.flush()
            log_action(offer, "CREATE", before=None, after=serialize_model(offer))
    except IntegrityError:
        raise ConflictError("This supplier already has an offer for this material") from None

    return jsonify(offer.to_dict()), 201


@catalog_bp.route("/material-suppliers/<int:offer_id>", methods=["DELETE"])
@login_required
@catalog_editor_required
def delete_material_supplier(offer_id: int):
    offer = db.session.get(MaterialSupplier, offer_id)
    if offer is None:
        raise NotFoundError.for_entity("Material supplier", offer_id)

    with transaction("delete material supplier"):
        log_action(offer, "DELETE", before=serialize_model(offer), after=None)
        db.session.delete(offer)

    return jsonify({"success": True})


# ---------------------------------------------------------------------
# SUPPLIERS
# ---------------------------------------------------------------------

@catalog_bp.route("/suppliers", methods=["GET"])
@login_required
def list_suppliers():
    query = Supplier.query
    status = clean_str(request.args.get("status"))
    if status:
        query = query.filter(Supplier.status == status)
    suppliers = query.order_by(Supplier.name.asc()).all()
    return jsonify([s.to_dict() for s in suppliers])


@catalog_bp.route("/suppliers/<int:supplier_id>", methods=["GET"])
@login_required
def get_supplier(supplier_id: int):
    return jsonify(_get_supplier(supplier_id).to_dict())


@catalog_bp.route("/suppliers/district/<district>", methods=["GET"])
@login_required
def suppliers_by_district(district: str):
    """Active suppliers located in one district, by name."""
    suppliers = (
        Supplier.query.filter(Supplier.district == district, Supplier.status == "active")
        .order_by(Supplier.name.asc())
        .all()
    )
    return jsonify([s.to_dict() for s in suppliers])


@catalog_bp.route("/suppliers", methods=["POST"])
@login_required
@catalog_editor_required
def create_supplier():
    data = get_json_body()
    if not clean_str(data.get("name")):
        raise ValidationError("Supplier name is required")

    supplier = Supplier(status="active")
    _apply_supplier_fields(supplier, data)

    with transaction("create supplier"):
        db.session.add(supplier)
        db.session.flush()
        log_action(supplier, "CREATE", before=None, after=serialize_model(supplier))

    return jsonify(supplier.to_dict()), 201


@catalog_bp.route("/suppliers/<int:supplier_id>", methods=["PATCH"])
@login_required
@catalog_editor_required
def update_supplier(supplier_id: int):
    supplier = _get_supplier(supplier_id)
    data = get_json_body()

    with transaction("update supplier"):
        before = serialize_model(supplier)
        _apply_supplier_fields(supplier, data)
        log_action(supplier, "UPDATE", before=before, after=serialize_model(supplier))

    return jsonify(supplier.to_dict())
