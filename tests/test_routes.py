"""
HTTP-level tests: auth, role enforcement, JSON error bodies and the main
request -> quote -> pipeline flow through the API.

Money values come back from jsonify as strings (Decimal), so assertions
compare through Decimal.
"""

from decimal import Decimal

import pytest


def create_rfq(client, catalog, **overrides):
    body = {
        "clientId": catalog["client"],
        "projectName": "Clinic extension",
        "items": [
            {"materialId": catalog["cement"], "quantity": 10},
            {"materialId": catalog["rebar"], "quantity": 5},
        ],
    }
    body.update(overrides)
    resp = client.post("/api/requests", json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def quote_body(rfq, supplier_id, price=40):
    return {
        "items": [
            {"itemId": item["id"], "supplierPrices": {"supplier1": {"supplierId": supplier_id, "unitPrice": price}}}
            for item in rfq["items"]
        ]
    }


# ═══════════════════════════════════════════════════════════════════════
# Auth + roles
# ═══════════════════════════════════════════════════════════════════════

class TestAuth:
    def test_anonymous_gets_401_json(self, app):
        resp = app.test_client().get("/api/requests")
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Authentication required"}

    def test_health_is_public(self, app):
        resp = app.test_client().get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_wrong_password(self, app, users):
        resp = app.test_client().post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})
        assert resp.status_code == 401

    def test_disabled_user(self, app, users):
        resp = app.test_client().post("/api/auth/login", json={"email": "gone@example.com", "password": "secret-pass"})
        assert resp.status_code == 403

    def test_missing_credentials(self, app):
        resp = app.test_client().post("/api/auth/login", json={})
        assert resp.status_code == 400

    def test_me_and_logout(self, sales_client):
        me = sales_client.get("/api/auth/me").get_json()
        assert me["user"]["email"] == "sales@example.com"
        assert "csrfToken" in me

        assert sales_client.post("/api/auth/logout").status_code == 200
        assert sales_client.get("/api/auth/me").status_code == 401


class TestRoles:
    def test_viewer_reads_but_cannot_write(self, viewer_client, catalog):
        assert viewer_client.get("/api/materials").status_code == 200
        resp = viewer_client.post("/api/requests", json={"clientId": catalog["client"]})
        assert resp.status_code == 403
        assert resp.get_json() == {"error": "Insufficient permissions"}

    def test_viewer_can_logout(self, viewer_client):
        assert viewer_client.post("/api/auth/logout").status_code == 200

    def test_users_admin_only(self, sales_client, admin_client):
        assert sales_client.get("/api/users").status_code == 403
        assert admin_client.get("/api/users").status_code == 200

    def test_delete_request_admin_only(self, sales_client, admin_client, catalog):
        rfq = create_rfq(sales_client, catalog)
        assert sales_client.delete(f"/api/requests/{rfq['id']}").status_code == 403
        assert admin_client.delete(f"/api/requests/{rfq['id']}").status_code == 200
        assert admin_client.get(f"/api/requests/{rfq['id']}").status_code == 404

    def test_markup_update_admin_only(self, sales_client):
        assert sales_client.put("/api/settings/markup", json={"defaultMarkup": 20}).status_code == 403


# ═══════════════════════════════════════════════════════════════════════
# Request flow
# ═══════════════════════════════════════════════════════════════════════

class TestRequestFlow:
    def test_create_read_list(self, sales_client, catalog):
        rfq = create_rfq(sales_client, catalog)
        assert rfq["number"] == "TEST-RFQ-0001"
        assert rfq["status"] == "pending"
        assert rfq["client"]["name"] == "Abdi Builders"
        assert Decimal(rfq["items"][0]["marketPrice"]) == Decimal("100")

        listed = sales_client.get("/api/requests?status=pending").get_json()
        assert [r["id"] for r in listed] == [rfq["id"]]
        assert "items" not in listed[0]

    def test_validation_error_is_400_json(self, sales_client, catalog):
        resp = sales_client.post("/api/requests", json={"clientId": catalog["client"]})
        assert resp.status_code == 400
        assert "projectName" in resp.get_json()["error"]

    def test_unknown_client_is_404(self, sales_client, catalog):
        resp = sales_client.post("/api/requests", json={"clientId": 999, "projectName": "x"})
        assert resp.status_code == 404

    def test_quote_then_pipeline(self, sales_client, catalog):
        rfq = create_rfq(sales_client, catalog)

        resp = sales_client.post(f"/api/requests/{rfq['id']}/quotes", json=quote_body(rfq, catalog["near"]))
        assert resp.status_code == 200, resp.get_json()
        body = resp.get_json()
        assert body["logEntries"] == 2
        assert body["request"]["status"] == "quoted"
        assert Decimal(body["totals"]["totalAmount"]) == Decimal("600")
        assert body["request"]["items"][0]["supplierPrices"] == {
            "supplier1": {"supplierId": catalog["near"], "unitPrice": 40, "totalPrice": 400},
            "suppliersToShow": 1,
        }

        log = sales_client.get(f"/api/requests/{rfq['id']}/quote-log").get_json()
        assert len(log) == 2

        leads = sales_client.get(f"/api/leads?requestId={rfq['id']}").get_json()
        assert len(leads) == 1
        assert leads[0]["stage"] == "quotes_received"

    def test_rejected_quote_is_400(self, sales_client, catalog):
        rfq = create_rfq(sales_client, catalog)
        body = quote_body(rfq, catalog["near"])
        body["items"][0]["supplierPrices"]["supplier1"]["unitPrice"] = 0
        resp = sales_client.post(f"/api/requests/{rfq['id']}/quotes", json=body)
        assert resp.status_code == 400
        assert sales_client.get(f"/api/requests/{rfq['id']}").get_json()["status"] == "pending"

    def test_refresh_and_add_line(self, sales_client, catalog):
        rfq = create_rfq(sales_client, catalog)
        refreshed = sales_client.post(f"/api/requests/{rfq['id']}/refresh-prices").get_json()
        assert refreshed["version"] == 2
        assert {item["priceVersion"] for item in refreshed["items"]} == {2}

        resp = sales_client.post(f"/api/requests/{rfq['id']}/lines", json={"materialId": catalog["cement"], "quantity": 2})
        assert resp.status_code == 201
        assert resp.get_json()["priceVersion"] == 2

    def test_status_patch_moves_lead_but_lead_patch_does_not_move_request(self, sales_client, catalog):
        rfq = create_rfq(sales_client, catalog)
        resp = sales_client.patch(f"/api/requests/{rfq['id']}", json={"status": "quoted"})
        assert resp.status_code == 400

        sales_client.post(f"/api/requests/{rfq['id']}/quotes", json=quote_body(rfq, catalog["near"]))
        resp = sales_client.patch(f"/api/requests/{rfq['id']}", json={"status": "quoted"})
        assert resp.get_json()["status"] == "quoted"

        lead = sales_client.get(f"/api/leads?requestId={rfq['id']}").get_json()[0]
        assert lead["stage"] == "contractor_review"

        sales_client.patch(f"/api/leads/{lead['id']}", json={"stage": "completed"})
        assert sales_client.get(f"/api/requests/{rfq['id']}").get_json()["status"] == "quoted"

    def test_statistics(self, sales_client, catalog):
        create_rfq(sales_client, catalog)
        stats = sales_client.get("/api/statistics").get_json()
        assert stats["totalRequests"] == 1
        assert stats["pendingQuotes"] == 1


# ═══════════════════════════════════════════════════════════════════════
# Catalog + ranking
# ═══════════════════════════════════════════════════════════════════════

class TestCatalog:
    def test_ranked_suppliers(self, sales_client, catalog):
        resp = sales_client.get(f"/api/materials/{catalog['cement']}/suppliers?district=Hodan")
        ranked = resp.get_json()
        # inactive supplier excluded; distance first, then price
        assert [r["supplierId"] for r in ranked] == [catalog["near"], catalog["next_door"], catalog["far"]]
        assert [r["distance"] for r in ranked] == [0, 1, 10]
        assert Decimal(ranked[0]["platformPrice"]) == Decimal("95.00")
        assert Decimal(ranked[0]["estimatedProfit"]) == Decimal("15.00")

    def test_without_district_cheapest_first(self, sales_client, catalog):
        ranked = sales_client.get(f"/api/materials/{catalog['cement']}/suppliers").get_json()
        assert ranked[0]["supplierId"] == catalog["far"]
        assert ranked[0]["distance"] == 999

    def test_best_supplier(self, sales_client, catalog):
        best = sales_client.get(f"/api/materials/{catalog['cement']}/best-supplier?district=Wadajir").get_json()
        assert best["supplierId"] == catalog["next_door"]

    def test_best_supplier_without_offers_is_null(self, sales_client, catalog):
        resp = sales_client.get(f"/api/materials/{catalog['rebar']}/best-supplier?district=Hodan")
        assert resp.status_code == 200
        assert resp.get_json() is None

    def test_best_supplier_unknown_material(self, sales_client, catalog):
        assert sales_client.get("/api/materials/9999/best-supplier").status_code == 404

    def test_suppliers_by_district(self, sales_client, catalog):
        listed = sales_client.get("/api/suppliers/district/Hodan").get_json()
        assert [s["name"] for s in listed] == ["Hodan Cement"]

    def test_offer_lifecycle(self, admin_client, catalog):
        resp = admin_client.post(
            f"/api/materials/{catalog['rebar']}/suppliers",
            json={"supplierId": catalog["near"], "supplierPrice": 12},
        )
        assert resp.status_code == 201
        offer_id = resp.get_json()["id"]

        dup = admin_client.post(
            f"/api/materials/{catalog['rebar']}/suppliers",
            json={"supplierId": catalog["near"], "supplierPrice": 13},
        )
        assert dup.status_code == 409

        assert admin_client.delete(f"/api/material-suppliers/{offer_id}").status_code == 200

    def test_material_validation(self, admin_client):
        resp = admin_client.post("/api/materials", json={"name": "Sand", "minPrice": 10, "maxPrice": 5})
        assert resp.status_code == 400

    def test_sales_cannot_edit_catalog(self, sales_client):
        assert sales_client.post("/api/materials", json={"name": "Sand"}).status_code == 403

    def test_supplier_district_validated(self, admin_client):
        resp = admin_client.post("/api/suppliers", json={"name": "Moon Depot", "district": "Atlantis"})
        assert resp.status_code == 400
        resp = admin_client.post("/api/suppliers", json={"name": "Kaxda Depot", "district": "Kaxda"})
        assert resp.status_code == 201


# ═══════════════════════════════════════════════════════════════════════
# Clients + settings
# ═══════════════════════════════════════════════════════════════════════

class TestClientsAndSettings:
    def test_register_or_find(self, sales_client, catalog):
        found = sales_client.post("/api/clients/register-or-find", json={"whatsapp": "+252610000001"})
        assert found.status_code == 200
        assert found.get_json()["created"] is False

        created = sales_client.post(
            "/api/clients/register-or-find",
            json={"whatsapp": "+252619999999", "name": "New Contractor", "district": "Karan"},
        )
        assert created.status_code == 201
        assert created.get_json()["client"]["district"] == "Karan"

    def test_duplicate_whatsapp(self, sales_client, catalog):
        resp = sales_client.post("/api/clients", json={"name": "Dup", "whatsapp": "+252610000001"})
        assert resp.status_code == 400

    def test_markup_roundtrip_and_preview(self, admin_client):
        current = admin_client.get("/api/settings/markup").get_json()
        assert current["markupType"] == "percentage"

        resp = admin_client.put("/api/settings/markup", json={"defaultMarkup": 10, "markupType": "flat"})
        assert resp.status_code == 200
        assert resp.get_json()["markupType"] == "flat"

        preview = admin_client.post("/api/settings/markup/preview", json={"supplierPrice": 100}).get_json()
        assert Decimal(preview["clientPrice"]) == Decimal("110.00")
        assert Decimal(preview["profit"]) == Decimal("10.00")

    @pytest.mark.parametrize("body", [{"markupType": "ratio"}, {"defaultMarkup": -1}])
    def test_markup_validation(self, admin_client, body):
        assert admin_client.put("/api/settings/markup", json=body).status_code == 400

    def test_default_percentage_preview(self, sales_client):
        preview = sales_client.post("/api/settings/markup/preview", json={"supplierPrice": 200}).get_json()
        assert Decimal(preview["commission"]) == Decimal("30.00")
        assert Decimal(preview["clientPrice"]) == Decimal("230.00")


class TestLeads:
    def test_manual_lead_materials_validated(self, sales_client):
        resp = sales_client.post("/api/leads", json={"contractorName": "Walk-in", "materials": 5})
        assert resp.status_code == 400
        assert "materials" in resp.get_json()["error"]

        resp = sales_client.post("/api/leads", json={"contractorName": "Walk-in", "materials": ["Sand"]})
        assert resp.status_code == 201
        assert resp.get_json()["source"] == "manual"
