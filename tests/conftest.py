"""
Shared pytest fixtures for the marketplace test suite.

Every test gets a fresh in-memory SQLite database. Fixtures that create rows
return plain ids (not ORM objects) so tests can use them from any app context.
"""
import pytest

from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import Client, Material, MaterialSupplier, Supplier, User
from marketplace.seed import seed_default_settings

PASSWORD = "secret-pass"


# ── App + database ────────────────────────────────────────────────────────────

@pytest.fixture
def app():
    """Flask app on an empty in-memory database with default markup settings."""
    app = create_app("config.TestConfig")
    with app.app_context():
        db.create_all()
        seed_default_settings()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """App context for tests that call services directly."""
    with app.app_context():
        yield app
        db.session.remove()


# ── Users ─────────────────────────────────────────────────────────────────────

def _make_user(email, role, active=True):
    user = User(name=email.split("@")[0].title(), email=email, role=role, is_active=active)
    user.set_password(PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user.id


@pytest.fixture
def users(app):
    with app.app_context():
        return {
            "admin": _make_user("admin@example.com", "admin"),
            "sales": _make_user("sales@example.com", "sales"),
            "procurement": _make_user("buyer@example.com", "procurement"),
            "viewer": _make_user("viewer@example.com", "viewer"),
            "disabled": _make_user("gone@example.com", "sales", active=False),
        }


def login(client, email, password=PASSWORD):
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def admin_client(app, users):
    return login(app.test_client(), "admin@example.com")


@pytest.fixture
def sales_client(app, users):
    return login(app.test_client(), "sales@example.com")


@pytest.fixture
def viewer_client(app, users):
    return login(app.test_client(), "viewer@example.com")


# ── Catalog ───────────────────────────────────────────────────────────────────

@pytest.fixture
def catalog(app):
    """
    Two clients, four suppliers in different districts, two materials with
    market bands, and catalog offers for cement.
    """
    with app.app_context():
        hodan_client = Client(name="Abdi Builders", whatsapp="+252610000001", company="Abdi Co", district="Hodan")
        remote_client = Client(name="No District", whatsapp="+252610000002")

        near = Supplier(name="Hodan Cement", district="Hodan", status="active")
        next_door = Supplier(name="Wadajir Depot", district="Wadajir", status="active")
        far = Supplier(name="Daynile Yard", district="Daynile", status="active")
        closed = Supplier(name="Closed Shop", district="Hodan", status="inactive")

        cement = Material(name="Cement 50kg", unit="bag", category="cement",
                          min_price=90, max_price=110, active=True)
        rebar = Material(name="Rebar 12mm", unit="piece", category="steel",
                         min_price=None, max_price=None, active=True)

        db.session.add_all([hodan_client, remote_client, near, next_door, far, closed, cement, rebar])
        db.session.flush()

        db.session.add_all([
            MaterialSupplier(material_id=cement.id, supplier_id=near.id, supplier_price=80),
            MaterialSupplier(material_id=cement.id, supplier_id=next_door.id, supplier_price=70),
            MaterialSupplier(material_id=cement.id, supplier_id=far.id, supplier_price=60),
            MaterialSupplier(material_id=cement.id, supplier_id=closed.id, supplier_price=10),
        ])
        db.session.commit()

        return {
            "client": hodan_client.id,
            "client_no_district": remote_client.id,
            "near": near.id,
            "next_door": next_door.id,
            "far": far.id,
            "closed": closed.id,
            "cement": cement.id,
            "rebar": rebar.id,
        }
