"""
Document checklist tests: construction, batch LINK / REQUEST / SKIP, client
upload, staff review and the REQUEST_DOCUMENTS hand-off to the workflow.
"""

import pytest

from practiceflow.core.actor import Actor
from practiceflow.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from practiceflow.models import db
from practiceflow.models.document_slot import ServiceDocumentSlot, document_code
from practiceflow.models.service import Service
from practiceflow.models.status_history import ServiceStatusHistory
from practiceflow.services import document_slot_service as slots


@pytest.fixture()
def checklist(make_service, actors, staff):
    """IN_PROGRESS service held by tm-1 with three required slots and one optional."""
    svc = make_service("IN_PROGRESS", assignee=staff["tm"])
    created = slots.create_slots_from_requirements(svc.id, actors["tm"], [
        {"name": "Form 16", "category": "Income"},
        {"name": "PAN Card", "category": "Identity"},
        {"name": "Bank Statement"},
        {"name": "Rent Receipts", "is_required": False},
    ])
    return svc, {s["document_name"]: s["id"] for s in created}


class TestChecklist:
    def test_document_code(self):
        assert document_code("Form 16") == "FORM_16"
        assert document_code("  bank   statement ") == "BANK_STATEMENT"

    def test_slots_start_not_started(self, checklist, actors):
        svc, ids = checklist
        listed = slots.list_slots(svc.id, actors["tm"])
        assert len(listed) == 4
        assert {s["status"] for s in listed} == {"NOT_STARTED"}
        # Required slots first
        assert listed[-1]["document_name"] == "Rent Receipts"

    def test_add_slot_requires_name(self, checklist, actors):
        svc, _ = checklist
        with pytest.raises(ValidationError):
            slots.add_slot(svc.id, actors["tm"], {"name": "  "})

    def test_client_cannot_build_checklist(self, checklist, actors):
        svc, _ = checklist
        with pytest.raises(PermissionDeniedError):
            slots.add_slot(svc.id, actors["client"], {"name": "Aadhaar"})

    def test_requirements_all_or_nothing(self, make_service, actors):
        svc = make_service("PENDING")
        with pytest.raises(ValidationError):
            slots.create_slots_from_requirements(svc.id, actors["pm"], [
                {"name": "Form 16"}, {"name": ""},
            ])
        assert ServiceDocumentSlot.query.filter_by(service_id=svc.id).count() == 0

    def test_client_view_hides_not_started(self, checklist, actors):
        svc, ids = checklist
        slots.process_slot_actions(svc.id, actors["tm"], [
            {"slot_id": ids["Form 16"], "action": "REQUEST"},
        ])
        visible = slots.list_client_slots(svc.id, actors["client"])
        assert [s["document_name"] for s in visible] == ["Form 16"]

    def test_other_client_cannot_view(self, checklist):
        svc, _ = checklist
        stranger = Actor(id="cl-999", name="Stranger", role="CLIENT")
        with pytest.raises(PermissionDeniedError):
            slots.list_client_slots(svc.id, stranger)

    def test_staff_view_limited_to_readers(self, checklist, actors):
        svc, _ = checklist
        assert len(slots.list_slots(svc.id, actors["pm"])) == 4
        with pytest.raises(PermissionDeniedError):
            slots.list_slots(svc.id, actors["tm2"])
        with pytest.raises(PermissionDeniedError):
            slots.list_slots(svc.id, actors["client"])


class TestBatchActions:
    def test_mixed_batch(self, checklist, actors):
        svc, ids = checklist
        result = slots.process_slot_actions(svc.id, actors["tm"], [
            {"slot_id": ids["Form 16"], "action": "REQUEST", "priority": "HIGH",
             "deadline": "31/07/2025", "instructions": "Both employers please"},
            {"slot_id": ids["PAN Card"], "action": "LINK", "linked_document_id": "doc-77"},
            {"slot_id": ids["Bank Statement"], "action": "SKIP"},
        ], global_message="Needed for ITR")

        assert result["linked"] == 1
        assert result["requested"] == 1
        assert result["skipped"] == 1
        assert result["errors"] == []
        assert result["status_changed"] is True
        assert result["service_status"] == "WAITING_FOR_CLIENT"

        form16 = db.session.get(ServiceDocumentSlot, ids["Form 16"])
        assert form16.status == "REQUESTED"
        assert form16.priority == "HIGH"
        assert form16.deadline.isoformat() == "2025-07-31"
        assert form16.request_message == "Both employers please"
        assert db.session.get(ServiceDocumentSlot, ids["PAN Card"]).status == "LINKED"
        assert db.session.get(ServiceDocumentSlot, ids["Bank Statement"]).status == "NOT_STARTED"

    def test_request_transition_written_to_history(self, checklist, actors):
        svc, ids = checklist
        slots.process_slot_actions(svc.id, actors["tm"], [
            {"slot_id": ids["Form 16"], "action": "REQUEST"},
            {"slot_id": ids["PAN Card"], "action": "REQUEST"},
        ])
        entry = (
            ServiceStatusHistory.query
            .filter_by(service_id=svc.id, action="REQUEST_DOCUMENTS")
            .one()
        )
        assert entry.from_status == "IN_PROGRESS"
        assert entry.to_status == "WAITING_FOR_CLIENT"
        assert entry.extra_metadata["document_list"] == ["Form 16", "PAN Card"]

    def test_link_only_keeps_status(self, checklist, actors):
        svc, ids = checklist
        result = slots.process_slot_actions(svc.id, actors["tm"], [
            {"slot_id": ids["Form 16"], "action": "LINK", "existing_document_id": 42},
        ])
        assert result["status_changed"] is False
        assert result["service_status"] == "IN_PROGRESS"
        assert db.session.get(ServiceDocumentSlot, ids["Form 16"]).linked_document_id == "42"

    def test_request_outside_in_progress_does_not_transition(self, make_service, actors, staff):
        svc = make_service("ASSIGNED", assignee=staff["tm"])
        slot = slots.add_slot(svc.id, actors["tm"], {"name": "Form 16"})
        result = slots.process_slot_actions(svc.id, actors["tm"], [
            {"slot_id": slot["id"], "action": "REQUEST"},
        ])
        assert result["requested"] == 1
        assert result["status_changed"] is False
        assert db.session.get(Service, svc.id).status == "ASSIGNED"

    def test_per_slot_errors_do_not_stop_batch(self, checklist, actors):
        svc, ids = checklist
        result = slots.process_slot_actions(svc.id, actors["tm"], [
            {"slot_id": ids["Form 16"], "action": "LINK"},
            {"slot_id": "missing", "action": "REQUEST"},
            {"slot_id": ids["PAN Card"], "action": "SHRED"},
            {"slot_id": ids["Bank Statement"], "action": "REQUEST", "priority": "CRITICAL"},
            {"slot_id": ids["Rent Receipts"], "action": "LINK", "linked_document_id": "doc-1"},
        ])
        assert result["linked"] == 1
        assert result["requested"] == 0
        assert len(result["errors"]) == 4
        assert {e["slot_id"] for e in result["errors"]} == {
            ids["Form 16"], "missing", ids["PAN Card"], ids["Bank Statement"],
        }

    def test_malformed_entries_collected_as_errors(self, checklist, actors):
        svc, ids = checklist
        result = slots.process_slot_actions(svc.id, actors["tm"], [
            "LINK",
            None,
            {"slot_id": ["not", "an", "id"], "action": "SKIP"},
            {"slot_id": ids["Form 16"], "action": 7},
            {"slot_id": ids["PAN Card"], "action": "skip"},
        ])
        assert result["skipped"] == 1
        assert len(result["errors"]) == 4
        assert result["errors"][0] == {"slot_id": None, "error": "Each action must be an object"}

    def test_slot_from_other_service_rejected(self, checklist, make_service, actors, staff):
        svc, _ = checklist
        other = make_service("IN_PROGRESS", assignee=staff["tm"], title="GST Return Q1")
        foreign = slots.add_slot(other.id, actors["tm"], {"name": "GSTR-1"})
        result = slots.process_slot_actions(svc.id, actors["tm"], [
            {"slot_id": foreign["id"], "action": "REQUEST"},
        ])
        assert result["requested"] == 0
        assert result["errors"][0]["slot_id"] == foreign["id"]

    def test_non_assignee_team_member_denied(self, checklist, actors):
        svc, ids = checklist
        with pytest.raises(PermissionDeniedError):
            slots.process_slot_actions(svc.id, actors["tm2"], [
                {"slot_id": ids["Form 16"], "action": "REQUEST"},
            ])
        assert db.session.get(ServiceDocumentSlot, ids["Form 16"]).status == "NOT_STARTED"


class TestUploadAndReview:
    @pytest.fixture()
    def requested_slot(self, checklist, actors):
        svc, ids = checklist
        slots.process_slot_actions(svc.id, actors["tm"], [
            {"slot_id": ids["Form 16"], "action": "REQUEST"},
        ])
        return ids["Form 16"]

    def test_upload_approve(self, requested_slot, actors):
        uploaded = slots.client_upload(requested_slot, "doc-500", actors["client"])
        assert uploaded["status"] == "UPLOADED"
        approved = slots.approve_slot(requested_slot, actors["tm"], notes="Looks good")
        assert approved["status"] == "APPROVED"
        assert approved["review_notes"] == "Looks good"

    def test_reject_then_reupload(self, requested_slot, actors):
        slots.client_upload(requested_slot, "doc-500", actors["client"])
        rejected = slots.reject_slot(requested_slot, actors["pm"], "Blurry scan")
        assert rejected["status"] == "REJECTED"
        assert rejected["rejection_reason"] == "Blurry scan"

        again = slots.client_upload(requested_slot, "doc-501", actors["client"])
        assert again["status"] == "UPLOADED"
        assert again["rejection_reason"] is None

    def test_reject_requires_reason(self, requested_slot, actors):
        slots.client_upload(requested_slot, "doc-500", actors["client"])
        with pytest.raises(ValidationError):
            slots.reject_slot(requested_slot, actors["pm"], "  ")

    def test_upload_into_not_started_slot_invalid(self, checklist, actors):
        _, ids = checklist
        with pytest.raises(InvalidTransitionError):
            slots.client_upload(ids["PAN Card"], "doc-1", actors["client"])

    def test_other_client_cannot_upload(self, requested_slot):
        stranger = Actor(id="cl-999", name="Stranger", role="CLIENT")
        with pytest.raises(PermissionDeniedError):
            slots.client_upload(requested_slot, "doc-1", stranger)

    def test_approve_before_upload_invalid(self, requested_slot, actors):
        with pytest.raises(InvalidTransitionError):
            slots.approve_slot(requested_slot, actors["tm"])

    def test_slot_on_trashed_service_not_found(self, checklist, requested_slot, actors):
        svc, _ = checklist
        db.session.get(Service, svc.id).soft_delete()
        db.session.commit()
        with pytest.raises(NotFoundError):
            slots.client_upload(requested_slot, "doc-1", actors["client"])


class TestSummary:
    def test_summary_counts_required_only(self, checklist, actors):
        svc, ids = checklist
        slots.process_slot_actions(svc.id, actors["tm"], [
            {"slot_id": ids["Form 16"], "action": "REQUEST"},
            {"slot_id": ids["PAN Card"], "action": "LINK", "linked_document_id": "doc-1"},
            {"slot_id": ids["Rent Receipts"], "action": "LINK", "linked_document_id": "doc-2"},
        ])
        slots.client_upload(ids["Form 16"], "doc-9", actors["client"])

        summary = slots.slot_summary(svc.id, actors["pm"])
        assert summary == {
            "total": 3,
            "approved": 1,
            "pending": 1,
            "uploaded": 1,
            "rejected": 0,
            "all_approved": False,
            "ready_for_review": True,
        }

    def test_summary_requires_read_access(self, checklist, actors, other_client):
        svc, _ = checklist
        assert slots.slot_summary(svc.id, actors["client"])["total"] == 3
        stranger = Actor(id=other_client.id, name=other_client.name, role="CLIENT")
        with pytest.raises(PermissionDeniedError):
            slots.slot_summary(svc.id, stranger)
        with pytest.raises(PermissionDeniedError):
            slots.slot_summary(svc.id, actors["tm2"])

    def test_empty_checklist_is_not_all_approved(self, make_service, actors):
        svc = make_service("PENDING")
        assert slots.slot_summary(svc.id, actors["pm"])["all_approved"] is False
