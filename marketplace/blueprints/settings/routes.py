"""
Markup settings (single row).

- GET: any authenticated user (the quote screen needs the markup).
- PUT: admin only.
- POST /preview: show what a client would pay for a given supplier price,
  either with the stored settings or with values being edited.

Audit:
- Logged as UPDATE with before/after snapshots.
"""

from decimal import Decimal

from flask import Blueprint, jsonify
from flask_login import login_required

from ...audit import log_action, serialize_model
from ...errors import ValidationError
from ...extensions import db
from ...models import MarkupSettings
from ...pricing import MarkupType, client_price
from ...security import admin_required
from ...utils import clean_str, get_json_body, parse_amount, transaction

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")

PREVIEW_SUPPLIER_PRICE = Decimal("100")


def _markup_type(value) -> str:
    raw = (clean_str(value) or "").lower()
    allowed = [t.value for t in MarkupType]
    if raw not in allowed:
        raise ValidationError("markupType must be one of: " + ", ".join(allowed))
    return raw


@settings_bp.route("/markup", methods=["GET"])
@login_required
def get_markup():
    return jsonify(MarkupSettings.current().to_dict())


@settings_bp.route("/markup", methods=["PUT"])
@login_required
@admin_required
def update_markup():
    """
    Update the global markup settings.

    Only keys present in the body are changed. Creates the row on first save.
    """
    data = get_json_body()

    settings = MarkupSettings.query.order_by(MarkupSettings.id.asc()).first()
    with transaction("update markup settings"):
        if settings is None:
            settings = MarkupSettings.current()
            db.session.add(settings)
            db.session.flush()
        before = serialize_model(settings)

        if "defaultMarkup" in data:
            markup = parse_amount(data.get("defaultMarkup"), "defaultMarkup")
            if markup is None:
                raise ValidationError("defaultMarkup is required")
            settings.default_markup = markup
        if "markupType" in data:
            settings.markup_type = _markup_type(data.get("markupType"))
        if "taxRate" in data:
            settings.tax_rate = parse_amount(data.get("taxRate"), "taxRate") or Decimal("0")
        if "companyName" in data:
            settings.company_name = clean_str(data.get("companyName"))

        log_action(settings, "UPDATE", before=before, after=serialize_model(settings))

    return jsonify(settings.to_dict())


@settings_bp.route("/markup/preview", methods=["POST"])
@login_required
def preview_markup():
    """Client price example; body values override the stored settings."""
    data = get_json_body()
    settings = MarkupSettings.current()

    supplier_price = parse_amount(data.get("supplierPrice"), "supplierPrice")
    if supplier_price is None:
        supplier_price = PREVIEW_SUPPLIER_PRICE

    markup = parse_amount(data.get("markup"), "markup")
    if markup is None:
        markup = settings.markup

    markup_type = settings.markup_kind.value
    if data.get("markupType") is not None:
        markup_type = _markup_type(data.get("markupType"))

    result = client_price(supplier_price, markup, markup_type)
    return jsonify({"markup": markup, "markupType": markup_type, **result.to_dict()})
