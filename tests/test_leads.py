"""Tests for the request -> lead synchronizer and the pipeline-side edits."""

import json
from decimal import Decimal

import pytest

from marketplace.errors import NotFoundError, ValidationError
from marketplace.extensions import db
from marketplace.leads import (
    create_manual_lead,
    delete_lead,
    lead_for_request,
    stage_for_status,
    update_lead,
)
from marketplace.lifecycle import create_request, get_request, update_request
from marketplace.models import AuditLog, Lead, LeadStage, RequestStatus


@pytest.fixture
def rfq(catalog, ctx):
    return create_request({
        "clientId": catalog["client"],
        "projectName": "School block",
        "totalAmount": "1200.50",
        "items": [
            {"materialId": catalog["cement"], "quantity": 40},
            {"materialName": "Roof sheets", "quantity": 12},
        ],
    })


class TestStageForStatus:
    @pytest.mark.parametrize("status,stage", [
        ("pending", LeadStage.NEW_REQUEST),
        ("quoted", LeadStage.CONTRACTOR_REVIEW),
        ("completed", LeadStage.COMPLETED),
        (RequestStatus.QUOTED, LeadStage.CONTRACTOR_REVIEW),
    ])
    def test_mapping(self, status, stage):
        assert stage_for_status(status) is stage

    @pytest.mark.parametrize("status", ["on hold", "", None, "Pending"])
    def test_unmapped_status_is_noop(self, status):
        assert stage_for_status(status) is None

    def test_total_over_known_statuses(self):
        assert all(stage_for_status(s) is not None for s in RequestStatus)


class TestLeadOnCreation:
    def test_fields_copied_from_request(self, rfq):
        lead = lead_for_request(rfq.id)
        assert lead.source == "from_request"
        assert lead.stage == "new_request"
        assert lead.contractor_name == "Abdi Builders"
        assert lead.contractor_whatsapp == "+252610000001"
        assert lead.location == "Hodan"
        assert lead.project_name == "School block"
        assert lead.estimated_value == Decimal("1200.50")
        assert lead.notes == f"Auto-created from RFQ {rfq.number}"
        assert json.loads(lead.materials) == ["Cement 50kg", "Roof sheets"]

    def test_exactly_one_lead(self, rfq):
        assert Lead.query.filter_by(request_id=rfq.id).count() == 1


class TestLeadEditsNeverTouchRequest:
    def test_stage_edit_keeps_request_status(self, rfq):
        lead = lead_for_request(rfq.id)
        update_lead(lead.id, {"stage": "in_delivery", "notes": "truck booked"})

        assert get_request(rfq.id).status == "pending"
        lead = lead_for_request(rfq.id)
        assert lead.stage == "in_delivery"
        assert lead.notes == "truck booked"

    def test_request_status_overrides_lead_stage(self, rfq):
        lead = lead_for_request(rfq.id)
        update_lead(lead.id, {"stage": "rfq_sent"})
        update_request(rfq.id, {"status": "completed"})
        assert lead_for_request(rfq.id).stage == "completed"

    def test_invalid_stage(self, rfq):
        lead = lead_for_request(rfq.id)
        with pytest.raises(ValidationError):
            update_lead(lead.id, {"stage": "won"})

    def test_invalid_estimated_value(self, rfq):
        lead = lead_for_request(rfq.id)
        with pytest.raises(ValidationError):
            update_lead(lead.id, {"estimatedValue": "lots"})


class TestManualLeads:
    def test_create(self, catalog, ctx):
        lead = create_manual_lead({
            "contractorName": "Walk-in",
            "materials": ["Sand"],
            "clientId": str(catalog["client"]),
            "estimatedValue": 300,
        })
        assert lead.source == "manual"
        assert lead.stage == "new_request"
        assert lead.request_id is None
        assert lead.client_id == catalog["client"]
        assert json.loads(lead.materials) == ["Sand"]

    def test_delete(self, ctx):
        lead = create_manual_lead({"contractorName": "Temp"})
        delete_lead(lead.id)
        with pytest.raises(NotFoundError):
            delete_lead(lead.id)

    def test_update_unknown(self, ctx):
        with pytest.raises(NotFoundError):
            update_lead(555, {"notes": "x"})

    @pytest.mark.parametrize("materials", [5, "Sand", ["Sand", 3], {"name": "Sand"}])
    def test_materials_must_be_a_list_of_names(self, ctx, materials):
        with pytest.raises(ValidationError):
            create_manual_lead({"contractorName": "Walk-in", "materials": materials})
        assert Lead.query.count() == 0

    def test_update_materials(self, ctx):
        lead = create_manual_lead({"contractorName": "Walk-in", "materials": ["Sand"]})
        update_lead(lead.id, {"materials": ["Gravel", " "]})
        assert json.loads(db.session.get(Lead, lead.id).materials) == ["Gravel"]

    def test_every_edit_is_audited(self, ctx):
        lead = create_manual_lead({"contractorName": "Walk-in"})
        lead_id = lead.id
        update_lead(lead_id, {"stage": "rfq_sent"})
        delete_lead(lead_id)

        actions = [
            row.action
            for row in AuditLog.query.filter_by(entity_type="Lead", entity_id=lead_id).order_by(AuditLog.id)
        ]
        assert actions == ["CREATE", "UPDATE", "DELETE"]

    def test_rejected_edit_leaves_lead_unchanged(self, ctx):
        lead = create_manual_lead({"contractorName": "Walk-in", "notes": "first call"})
        with pytest.raises(ValidationError):
            update_lead(lead.id, {"notes": "second call", "stage": "won"})

        assert db.session.get(Lead, lead.id).notes == "first call"
        assert AuditLog.query.filter_by(entity_type="Lead", action="UPDATE").count() == 0
