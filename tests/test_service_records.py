"""
Service records: create, edit, role-scoped reads and the trash lifecycle.
"""

import pytest

from practiceflow.core.exceptions import (
    ConcurrencyConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from practiceflow.models import db
from practiceflow.models.service import Service, ServiceAssignment
from practiceflow.models.status_history import ServiceStatusHistory
from practiceflow.services import service_records
from practiceflow.services.service_workflow import execute_action


@pytest.fixture()
def new_service_data(client_record):
    return {
        "client_id": client_record.id,
        "title": "GST Return Q1 FY 2025-26",
        "service_type": "GST_RETURN",
        "fee_amount": "1500.50",
        "due_date": "2025-07-20",
        "period": "Q1",
    }


class TestCreate:
    def test_create_pending_with_history(self, actors, new_service_data):
        svc = service_records.create_service(actors["pm"], new_service_data)
        assert svc["status"] == "PENDING"
        assert svc["origin"] == "FIRM_CREATED"
        assert svc["fee_amount"] == 1500.5
        assert svc["version"] == 1
        entry = ServiceStatusHistory.query.filter_by(service_id=svc["id"]).one()
        assert entry.action == "CREATE"
        assert entry.from_status is None
        assert entry.notes == "Service created"

    def test_create_and_assign(self, actors, new_service_data):
        new_service_data.update(assign_to_id="tm-1", assign_to_type="TEAM_MEMBER")
        svc = service_records.create_service(actors["pm"], new_service_data)
        assert svc["status"] == "ASSIGNED"
        assert svc["current_assignee_id"] == "tm-1"
        actions = [
            e.action for e in
            ServiceStatusHistory.query.filter_by(service_id=svc["id"]).order_by(ServiceStatusHistory.id)
        ]
        assert actions == ["CREATE", "ASSIGN"]

    def test_bad_assignee_rolls_back_creation(self, actors, new_service_data):
        new_service_data.update(assign_to_id="tm-9", assign_to_type="TEAM_MEMBER")
        with pytest.raises(ValidationError):
            service_records.create_service(actors["pm"], new_service_data)
        assert Service.query.count() == 0
        assert ServiceStatusHistory.query.count() == 0

    def test_largest_fee_accepted(self, actors, new_service_data):
        new_service_data["fee_amount"] = "9999999999.99"
        svc = service_records.create_service(actors["pm"], new_service_data)
        assert svc["fee_amount"] == 9999999999.99

    def test_recurring_origin(self, actors, new_service_data):
        new_service_data["origin"] = "RECURRING"
        assert service_records.create_service(actors["admin"], new_service_data)["origin"] == "RECURRING"

    def test_team_member_cannot_create(self, actors, new_service_data):
        with pytest.raises(PermissionDeniedError):
            service_records.create_service(actors["tm"], new_service_data)

    @pytest.mark.parametrize("field,value", [
        ("client_id", "cl-404"),
        ("title", "   "),
        ("service_type", "HOROSCOPE"),
        ("fee_amount", "abc"),
        ("fee_amount", "1e30"),
        ("fee_amount", "10000000000"),
        ("fee_amount", "9999999999.999"),
        ("fee_amount", "-5"),
        ("due_date", "32/13/2025"),
    ])
    def test_invalid_input(self, actors, new_service_data, field, value):
        new_service_data[field] = value
        with pytest.raises(ValidationError):
            service_records.create_service(actors["pm"], new_service_data)


class TestUpdate:
    def test_update_descriptive_fields(self, make_service, actors):
        svc = make_service()
        version = svc.version
        updated = service_records.update_service(svc.id, actors["pm"], {
            "title": "ITR Filing FY 2024-25 (revised)", "internal_notes": "Check HRA",
        })
        assert updated["title"] == "ITR Filing FY 2024-25 (revised)"
        assert updated["internal_notes"] == "Check HRA"
        assert updated["version"] == version + 1

    def test_lifecycle_fields_rejected(self, make_service, actors):
        svc = make_service()
        with pytest.raises(ValidationError) as exc:
            service_records.update_service(svc.id, actors["pm"], {
                "status": "CLOSED", "current_assignee_id": "tm-1",
            })
        assert exc.value.details == {"current_assignee_id": "read_only", "status": "read_only"}
        assert db.session.get(Service, svc.id).status == "PENDING"

    def test_stale_expected_version(self, make_service, actors):
        svc = make_service()
        with pytest.raises(ConcurrencyConflictError):
            service_records.update_service(svc.id, actors["pm"], {
                "title": "x", "expected_version": svc.version + 1,
            })

    def test_empty_title_rejected(self, make_service, actors):
        svc = make_service()
        with pytest.raises(ValidationError):
            service_records.update_service(svc.id, actors["pm"], {"title": ""})


class TestReads:
    def test_role_scoped_listing(self, make_service, actors, staff, other_client):
        mine = make_service("IN_PROGRESS", assignee=staff["tm"])
        make_service("PENDING", title="Audit FY 2024-25", service_type="AUDIT", client=other_client)

        assert service_records.list_services(actors["admin"])["total"] == 2
        assert [s["id"] for s in service_records.list_services(actors["tm"])["items"]] == [mine.id]
        assert service_records.list_services(actors["tm2"])["total"] == 0
        assert service_records.list_services(actors["pm"])["total"] == 1
        assert service_records.list_services(actors["pm2"])["total"] == 1
        assert service_records.list_services(actors["client"])["total"] == 1

    def test_filters(self, make_service, actors, staff):
        make_service("IN_PROGRESS", assignee=staff["tm"])
        make_service("PENDING", title="GST Registration", service_type="GST_REGISTRATION")

        admin = actors["admin"]
        assert service_records.list_services(admin, {"status": "PENDING"})["total"] == 1
        assert service_records.list_services(admin, {"assignee_id": "tm-1"})["total"] == 1
        assert service_records.list_services(admin, {"service_type": "GST_REGISTRATION"})["total"] == 1
        assert service_records.list_services(admin, {"search": "registration"})["total"] == 1
        with pytest.raises(ValidationError):
            service_records.list_services(admin, {"status": "DONE"})

    def test_get_service_access(self, make_service, actors, staff):
        svc = make_service("IN_PROGRESS", assignee=staff["tm"])
        assert service_records.get_service(svc.id, actors["tm"])["id"] == svc.id
        assert service_records.get_service(svc.id, actors["client"])["progress"]["order"] == 3
        with pytest.raises(PermissionDeniedError):
            service_records.get_service(svc.id, actors["tm2"])

    def test_trashed_service_hidden(self, make_service, actors):
        svc = make_service()
        service_records.soft_delete_service(svc.id, actors["pm"])
        with pytest.raises(NotFoundError):
            service_records.get_service(svc.id, actors["admin"])
        assert service_records.list_services(actors["admin"])["total"] == 0


class TestTrash:
    def test_soft_delete_keeps_status_and_history(self, make_service, actors, staff):
        svc = make_service("IN_PROGRESS", assignee=staff["tm"])
        deleted = service_records.soft_delete_service(svc.id, actors["pm"])
        assert deleted["status"] == "IN_PROGRESS"
        assert deleted["deleted_at"] is not None
        assert ServiceStatusHistory.query.filter_by(service_id=svc.id).count() == 1
        assert service_records.list_trash(actors["admin"])["total"] == 1

    def test_restore_resets_to_pending(self, make_service, actors, staff):
        svc = make_service("UNDER_REVIEW", assignee=staff["tm"])
        service_records.soft_delete_service(svc.id, actors["pm"])
        restored = service_records.restore_service(svc.id, actors["pm"])

        assert restored["status"] == "PENDING"
        assert restored["current_assignee_id"] is None
        assert restored["deleted_at"] is None
        assert ServiceAssignment.query.filter_by(service_id=svc.id, status="ACTIVE").count() == 0
        # Restore writes no history
        assert ServiceStatusHistory.query.filter_by(service_id=svc.id).count() == 1

        result = execute_action(svc.id, "ASSIGN", actors["pm"], {
            "assignee_id": "tm-2", "assignee_type": "TEAM_MEMBER",
        })
        assert result["new_status"] == "ASSIGNED"

    def test_restore_live_service_not_found(self, make_service, actors):
        svc = make_service()
        with pytest.raises(NotFoundError):
            service_records.restore_service(svc.id, actors["pm"])

    def test_purge_requires_trash_and_admin(self, make_service, actors, staff):
        svc = make_service("IN_PROGRESS", assignee=staff["tm"])
        with pytest.raises(NotFoundError):
            service_records.purge_service(svc.id, actors["admin"])

        service_records.soft_delete_service(svc.id, actors["pm"])
        with pytest.raises(PermissionDeniedError):
            service_records.purge_service(svc.id, actors["pm"])

        service_records.purge_service(svc.id, actors["super_admin"])
        assert db.session.get(Service, svc.id) is None
        assert ServiceStatusHistory.query.filter_by(service_id=svc.id).count() == 0
        assert ServiceAssignment.query.filter_by(service_id=svc.id).count() == 0
