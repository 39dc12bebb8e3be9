"""
Procurement Marketplace – Domain Models

Collaborator master data (read-only for the quoting engine):
- Client, Material, Supplier, MaterialSupplier (catalog offers), MarkupSettings

Quoting engine entities (mutated only inside lifecycle/quote transactions):
- Request (RFQ), RequestLine, QuoteLogEntry, Lead, RequestCounter

Support:
- User (session login, role based), AuditLog

IMPORTANT:
- API input is never trusted. Validation lives in the services, not here.
- Request.lines / quote_log / leads use passive_deletes="all": the cascade
  delete is performed explicitly, in dependency order, by lifecycle.delete_request().
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db
from .price_record import SupplierPriceRecord
from .pricing import MarkupType, market_price, parse_markup_type, to_decimal


# ---------------------------------------------------------------------
# Enumerations (stored as plain strings)
# ---------------------------------------------------------------------
class RequestStatus(str, Enum):
    PENDING = "pending"
    QUOTED = "quoted"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value) -> "RequestStatus | None":
        """Known status or None (free-text statuses are legal but inert)."""
        try:
            return cls(str(value or "").strip())
        except ValueError:
            return None


class LeadStage(str, Enum):
    NEW_REQUEST = "new_request"
    RFQ_SENT = "rfq_sent"
    QUOTES_RECEIVED = "quotes_received"
    CONTRACTOR_REVIEW = "contractor_review"
    IN_DELIVERY = "in_delivery"
    COMPLETED = "completed"


class LeadSource(str, Enum):
    FROM_REQUEST = "from_request"
    MANUAL = "manual"


USER_ROLES = ("admin", "assistant", "sales", "procurement", "logistics", "viewer")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ---------------------------------------------------------------------
# Users & audit
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(50), nullable=False, default="viewer", index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def has_role(self, *roles: str) -> bool:
        return self.is_admin or self.role in roles

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.email}>"


class AuditLog(db.Model):
    """Who changed which entity, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(255), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(30), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))


# ---------------------------------------------------------------------
# Collaborator master data
# ---------------------------------------------------------------------
class Client(db.Model):
    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    whatsapp = db.Column(db.String(50), nullable=False, unique=True, index=True)
    company = db.Column(db.String(255))
    district = db.Column(db.String(100), index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "whatsapp": self.whatsapp,
            "company": self.company,
            "district": self.district,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<Client {self.whatsapp} - {self.name}>"


class Material(db.Model):
    __tablename__ = "materials"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(50))
    category = db.Column(db.String(100), nullable=False, default="general")
    description = db.Column(db.Text)

    active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    min_price = db.Column(db.Numeric(10, 2))
    max_price = db.Column(db.Numeric(10, 2))
    delivery_days = db.Column(db.Integer)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    @property
    def market_price(self) -> Decimal | None:
        """Midpoint of the min/max band (None unless both bounds are set)."""
        return market_price(self.min_price, self.max_price)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "category": self.category,
            "description": self.description,
            "active": self.active,
            "minPrice": self.min_price,
            "maxPrice": self.max_price,
            "marketPrice": self.market_price,
            "deliveryDays": self.delivery_days,
        }

    def __repr__(self):
        return f"<Material {self.name}>"


class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    company = db.Column(db.String(255))
    contact = db.Column(db.String(255))
    whatsapp = db.Column(db.String(50))
    email = db.Column(db.String(255))
    category = db.Column(db.String(100))
    district = db.Column(db.String(100), index=True)

    status = db.Column(db.String(50), nullable=False, default="active", index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "company": self.company,
            "contact": self.contact,
            "whatsapp": self.whatsapp,
            "email": self.email,
            "category": self.category,
            "district": self.district,
            "status": self.status,
        }

    def __repr__(self):
        return f"<Supplier {self.id} - {self.name}>"


class MaterialSupplier(db.Model):
    """Catalog offer: a supplier's standing price for a material."""

    __tablename__ = "material_suppliers"

    id = db.Column(db.Integer, primary_key=True)

    material_id = db.Column(
        db.Integer,
        db.ForeignKey("materials.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    supplier_price = db.Column(db.Numeric(10, 2))
    supplier_position = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    material = db.relationship("Material", backref=db.backref("supplier_offers", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("material_offers", lazy=True))

    __table_args__ = (
        db.UniqueConstraint("material_id", "supplier_id", name="uq_material_supplier"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "materialId": self.material_id,
            "supplierId": self.supplier_id,
            "supplierPrice": self.supplier_price,
            "supplierPosition": self.supplier_position,
            "supplierName": self.supplier.name if self.supplier else None,
        }


class MarkupSettings(db.Model):
    """Global pricing settings (single row)."""

    __tablename__ = "settings"

    DEFAULT_MARKUP = Decimal("15")
    DEFAULT_MARKUP_TYPE = MarkupType.PERCENTAGE.value
    DEFAULT_TAX_RATE = Decimal("0")

    id = db.Column(db.Integer, primary_key=True)

    company_name = db.Column(db.String(255))
    default_markup = db.Column(db.Numeric(5, 2))
    markup_type = db.Column(db.String(20), default=MarkupType.FLAT.value)
    tax_rate = db.Column(db.Numeric(5, 2))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def current(cls) -> "MarkupSettings":
        """The stored settings row, or an unsaved row carrying the defaults."""
        row = cls.query.order_by(cls.id.asc()).first()
        if row:
            return row
        return cls(
            default_markup=cls.DEFAULT_MARKUP,
            markup_type=cls.DEFAULT_MARKUP_TYPE,
            tax_rate=cls.DEFAULT_TAX_RATE,
        )

    @property
    def markup(self) -> Decimal:
        if self.default_markup is None:
            return self.DEFAULT_MARKUP
        return to_decimal(self.default_markup)

    @property
    def markup_kind(self) -> MarkupType:
        return parse_markup_type(self.markup_type)

    @property
    def tax_percent(self) -> Decimal:
        return to_decimal(self.tax_rate)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyName": self.company_name,
            "defaultMarkup": self.markup,
            "markupType": self.markup_kind.value,
            "taxRate": self.tax_percent,
        }


# ---------------------------------------------------------------------
# Quoting engine
# ---------------------------------------------------------------------
class RequestCounter(db.Model):
    """Atomic allocator for request numbers (one row per prefix)."""

    __tablename__ = "request_counters"

    prefix = db.Column(db.String(20), primary_key=True)
    value = db.Column(db.Integer, nullable=False, default=0)


class Request(db.Model):
    """Client request for quotation (RFQ)."""

    __tablename__ = "requests"

    id = db.Column(db.Integer, primary_key=True)

    number = db.Column(db.String(50), nullable=False, unique=True, index=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)

    project_name = db.Column(db.String(255), nullable=False)
    project_details = db.Column(db.Text)
    notes = db.Column(db.Text)

    # Free text at storage level; see RequestStatus for the values that drive sync.
    status = db.Column(db.String(50), nullable=False, default=RequestStatus.PENDING.value, index=True)

    total_amount = db.Column(db.Numeric(12, 2))
    delivery_fee = db.Column(db.Numeric(10, 2))
    tax_amount = db.Column(db.Numeric(10, 2))
    profit = db.Column(db.Numeric(12, 2))

    version = db.Column(db.Integer, nullable=False, default=1)
    last_edited_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = db.relationship("Client", backref=db.backref("requests", lazy=True))

    lines = db.relationship(
        "RequestLine",
        back_populates="request",
        order_by="RequestLine.id",
        passive_deletes="all",
    )
    quote_log = db.relationship(
        "QuoteLogEntry",
        back_populates="request",
        order_by="QuoteLogEntry.id",
        passive_deletes="all",
    )
    leads = db.relationship(
        "Lead",
        back_populates="request",
        order_by="Lead.id",
        passive_deletes="all",
    )

    def to_dict(self, with_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "number": self.number,
            "clientId": self.client_id,
            "client": self.client.to_dict() if self.client else None,
            "projectName": self.project_name,
            "projectDetails": self.project_details,
            "notes": self.notes,
            "status": self.status,
            "totalAmount": self.total_amount,
            "deliveryFee": self.delivery_fee,
            "taxAmount": self.tax_amount,
            "profit": self.profit,
            "version": self.version,
            "lastEditedAt": _iso(self.last_edited_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        if with_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data

    def __repr__(self):
        return f"<Request {self.number}>"


class RequestLine(db.Model):
    """One material line of a request, carrying its multi-supplier price record."""

    __tablename__ = "request_lines"

    id = db.Column(db.Integer, primary_key=True)

    request_id = db.Column(db.Integer, db.ForeignKey("requests.id"), nullable=False, index=True)
    material_id = db.Column(db.Integer, db.ForeignKey("materials.id"), nullable=True, index=True)

    material_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(50))

    # JSON text, see price_record.SupplierPriceRecord
    supplier_prices = db.Column(db.Text)

    market_price = db.Column(db.Numeric(10, 2))
    price_version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    request = db.relationship("Request", back_populates="lines")
    material = db.relationship("Material")

    @property
    def price_record(self) -> SupplierPriceRecord | None:
        return SupplierPriceRecord.from_json(self.supplier_prices)

    @price_record.setter
    def price_record(self, record: SupplierPriceRecord | None) -> None:
        self.supplier_prices = record.to_json() if record is not None else None

    def to_dict(self) -> dict:
        record = self.price_record
        return {
            "id": self.id,
            "requestId": self.request_id,
            "materialId": self.material_id,
            "materialName": self.material_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "supplierPrices": record.to_dict() if record else None,
            "marketPrice": self.market_price,
            "priceVersion": self.price_version,
        }


class QuoteLogEntry(db.Model):
    """Append-only audit record of one supplier price offered for a request line."""

    __tablename__ = "quote_log"

    id = db.Column(db.Integer, primary_key=True)

    request_id = db.Column(db.Integer, db.ForeignKey("requests.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    price = db.Column(db.Numeric(10, 2), nullable=False)
    lead_time = db.Column(db.Integer)
    logistics = db.Column(db.Text)
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    request = db.relationship("Request", back_populates="quote_log")
    supplier = db.relationship("Supplier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requestId": self.request_id,
            "supplierId": self.supplier_id,
            "price": self.price,
            "leadTime": self.lead_time,
            "logistics": self.logistics,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
        }


class Lead(db.Model):
    """Sales-pipeline record. Its stage never writes back to Request.status."""

    __tablename__ = "leads"

    id = db.Column(db.Integer, primary_key=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    request_id = db.Column(db.Integer, db.ForeignKey("requests.id"), nullable=True, index=True)

    stage = db.Column(db.String(100), nullable=False, default=LeadStage.NEW_REQUEST.value, index=True)
    source = db.Column(db.String(50), nullable=False, default=LeadSource.FROM_REQUEST.value)

    contractor_name = db.Column(db.String(255))
    contractor_whatsapp = db.Column(db.String(50))
    project_name = db.Column(db.String(255))
    location = db.Column(db.String(255))
    materials = db.Column(db.Text)  # JSON list of material names

    selected_supplier = db.Column(db.String(255))
    notes = db.Column(db.Text)

    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    estimated_value = db.Column(db.Numeric(12, 2))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    request = db.relationship("Request", back_populates="leads")
    client = db.relationship("Client")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clientId": self.client_id,
            "requestId": self.request_id,
            "stage": self.stage,
            "source": self.source,
            "contractorName": self.contractor_name,
            "contractorWhatsapp": self.contractor_whatsapp,
            "projectName": self.project_name,
            "location": self.location,
            "materials": self.materials,
            "selectedSupplier": self.selected_supplier,
            "notes": self.notes,
            "assignedTo": self.assigned_to,
            "estimatedValue": self.estimated_value,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
