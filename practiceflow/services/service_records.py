"""
Service records: everything about a service except its status.

Create, edit descriptive fields, read, list, and the trash lifecycle
(soft delete → restore | permanent delete).  Status and assignee columns
are owned by ``service_workflow``; the only exception is restore, which
puts a trashed service back at PENDING with no assignee.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.orm.exc import StaleDataError

from practiceflow.core.actor import Actor
from practiceflow.core.exceptions import (
    ConcurrencyConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from practiceflow.models import db
from practiceflow.models.directory import (
    ROLE_ADMIN,
    ROLE_PROJECT_MANAGER,
    ROLE_SUPER_ADMIN,
    ROLE_TEAM_MEMBER,
    Client,
)
from practiceflow.models.service import (
    ASSIGNMENT_ACTIVE,
    ASSIGNMENT_REVOKED,
    ORIGIN_FIRM_CREATED,
    ORIGIN_RECURRING,
    SERVICE_TYPES,
    Service,
    ServiceAssignment,
)
from practiceflow.models.status_registry import PENDING, is_valid_status
from practiceflow.services.service_workflow import (
    apply_action,
    record_creation,
    require_read_access,
)
from practiceflow.utils.helpers import parse_amount, parse_date_input

logger = logging.getLogger(__name__)

# Editable through update_service; lifecycle columns are not
_TEXT_FIELDS = (
    "title", "description", "category", "sub_type", "financial_year",
    "assessment_year", "period", "notes", "internal_notes",
)
_LIFECYCLE_FIELDS = frozenset({
    "status", "current_assignee_id", "current_assignee_type", "current_assignee_name",
    "start_date", "completed_at", "origin", "client_id", "deleted_at", "version",
})
_PURGE_ROLES = frozenset({ROLE_SUPER_ADMIN, ROLE_ADMIN})


def _require_manager(actor: Actor, action: str) -> None:
    if not actor.is_manager:
        raise PermissionDeniedError(actor.id, action, "project managers and admins only")


def _get(service_id: str, *, deleted: bool = False) -> Service:
    service = db.session.get(Service, service_id)
    if service is None or service.is_deleted != deleted:
        raise NotFoundError(resource="Service", resource_id=service_id)
    return service


def _commit(service_id: str) -> None:
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConcurrencyConflictError("Service", service_id) from None


def _paginate(q, page: int, per_page: int) -> dict:
    paginated = q.paginate(page=max(1, page), per_page=min(200, max(1, per_page)), error_out=False)
    return {
        "items": [s.to_dict() for s in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Create / update
# ═════════════════════════════════════════════════════════════════════════════

def create_service(actor: Actor, data: dict) -> dict:
    """
    Create a firm-initiated service at PENDING and log CREATE.

    When ``assign_to_id`` and ``assign_to_type`` are given the service is
    assigned straight away, in the same transaction.
    """
    _require_manager(actor, "create service")

    client = db.session.get(Client, data.get("client_id"))
    if client is None or client.is_deleted:
        raise ValidationError("Client not found or invalid", details={"client_id": "invalid"})
    title = str(data.get("title") or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})
    service_type = data.get("service_type")
    if service_type not in SERVICE_TYPES:
        raise ValidationError(
            f"service_type must be one of {', '.join(SERVICE_TYPES)}",
            details={"service_type": "invalid"},
        )
    origin = ORIGIN_RECURRING if data.get("origin") == ORIGIN_RECURRING else ORIGIN_FIRM_CREATED

    try:
        service = Service(
            client_id=client.id,
            project_manager_id=client.managed_by_id,
            service_type=service_type,
            category=data.get("category") or None,
            sub_type=data.get("sub_type") or None,
            title=title,
            description=data.get("description") or None,
            due_date=parse_date_input(data.get("due_date"), field="due_date"),
            fee_amount=parse_amount(data.get("fee_amount"), field="fee_amount"),
            financial_year=data.get("financial_year") or None,
            assessment_year=data.get("assessment_year") or None,
            period=data.get("period") or None,
            notes=data.get("notes") or None,
            internal_notes=data.get("internal_notes") or None,
            status=PENDING,
            origin=origin,
            created_by_id=actor.id,
            created_by_name=actor.name,
            created_by_role=actor.role,
        )
        db.session.add(service)
        record_creation(service, actor, action="CREATE", notes="Service created")

        if data.get("assign_to_id") and data.get("assign_to_type"):
            apply_action(service, "ASSIGN", actor, {
                "assignee_id": data["assign_to_id"],
                "assignee_type": data["assign_to_type"],
            })
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Service created",
                extra={"service_id": service.id, "client_id": client.id, "actor_id": actor.id})
    return service.to_dict()


def update_service(service_id: str, actor: Actor, data: dict) -> dict:
    """Edit descriptive fields; lifecycle columns are rejected."""
    _require_manager(actor, "update service")
    service = _get(service_id)

    blocked = sorted(_LIFECYCLE_FIELDS & set(data))
    if blocked:
        raise ValidationError(
            "Lifecycle fields change only through workflow actions",
            details={field: "read_only" for field in blocked},
        )
    expected_version = data.get("expected_version")
    if expected_version is not None and expected_version != service.version:
        raise ConcurrencyConflictError(
            "Service", service_id,
            expected_version=expected_version, actual_version=service.version,
        )

    changes = {}
    for field in _TEXT_FIELDS:
        if field in data:
            value = data[field]
            if isinstance(value, str):
                value = value.strip()
            changes[field] = value or None
    if "title" in changes and not changes["title"]:
        raise ValidationError("title cannot be empty", details={"title": "required"})
    if "service_type" in data:
        if data["service_type"] not in SERVICE_TYPES:
            raise ValidationError("Invalid service_type", details={"service_type": "invalid"})
        changes["service_type"] = data["service_type"]
    if "due_date" in data:
        changes["due_date"] = parse_date_input(data["due_date"], field="due_date")
    if "fee_amount" in data:
        changes["fee_amount"] = parse_amount(data["fee_amount"], field="fee_amount")

    for field, value in changes.items():
        setattr(service, field, value)
    _commit(service_id)
    return service.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════

def get_service(service_id: str, actor: Actor) -> dict:
    service = _get(service_id)
    require_read_access(service, actor)
    return service.to_dict()


def list_services(actor: Actor, filters: dict | None = None,
                  page: int = 1, per_page: int = 50) -> dict:
    """
    Role-scoped, filterable service list (newest first).

    Filters: status, client_id, assignee_id, service_type, search (title).
    """
    filters = filters or {}
    q = Service.query_active()

    if actor.role == ROLE_PROJECT_MANAGER:
        q = q.filter(or_(
            Service.project_manager_id == actor.id,
            Service.current_assignee_id == actor.id,
        ))
    elif actor.role == ROLE_TEAM_MEMBER:
        q = q.filter(Service.current_assignee_id == actor.id)
    elif actor.is_client:
        q = q.filter(Service.client_id == actor.id)
    elif actor.role not in (ROLE_SUPER_ADMIN, ROLE_ADMIN):
        raise PermissionDeniedError(actor.id, "list services")

    status = filters.get("status")
    if status:
        if not is_valid_status(status):
            raise ValidationError(f"Unknown status: {status}", details={"status": "invalid"})
        q = q.filter(Service.status == status)
    if filters.get("client_id"):
        q = q.filter(Service.client_id == filters["client_id"])
    if filters.get("assignee_id"):
        q = q.filter(Service.current_assignee_id == filters["assignee_id"])
    if filters.get("service_type"):
        q = q.filter(Service.service_type == filters["service_type"])
    if filters.get("search"):
        q = q.filter(Service.title.ilike(f"%{filters['search']}%"))

    q = q.order_by(Service.created_at.desc(), Service.id.desc())
    return _paginate(q, page, per_page)


# ═════════════════════════════════════════════════════════════════════════════
# Trash lifecycle
# ═════════════════════════════════════════════════════════════════════════════

def soft_delete_service(service_id: str, actor: Actor) -> dict:
    """Move a service to trash; status and history are kept."""
    _require_manager(actor, "delete service")
    service = _get(service_id)
    service.soft_delete()
    _commit(service_id)
    logger.info("Service moved to trash", extra={"service_id": service_id, "actor_id": actor.id})
    return service.to_dict()


def list_trash(actor: Actor, page: int = 1, per_page: int = 50) -> dict:
    _require_manager(actor, "list trash")
    q = Service.query_deleted().order_by(Service.deleted_at.desc(), Service.id.desc())
    if actor.role == ROLE_PROJECT_MANAGER:
        q = q.filter(Service.project_manager_id == actor.id)
    return _paginate(q, page, per_page)


def restore_service(service_id: str, actor: Actor) -> dict:
    """
    Bring a service back from trash at PENDING with no assignee.

    Any still-active assignment is revoked so the service can be assigned
    afresh.  No status-history entry is written.
    """
    _require_manager(actor, "restore service")
    service = _get(service_id, deleted=True)
    previous_status = service.status

    now = datetime.now(timezone.utc)
    active = ServiceAssignment.query.filter_by(service_id=service.id, status=ASSIGNMENT_ACTIVE).all()
    for assignment in active:
        assignment.status = ASSIGNMENT_REVOKED
        assignment.revoked_at = now
        assignment.revoked_by_id = actor.id
        assignment.revoked_reason = "Service restored from trash"

    service.restore()
    service.status = PENDING
    service.current_assignee_id = None
    service.current_assignee_type = None
    service.current_assignee_name = None
    service.completed_at = None
    _commit(service_id)

    logger.info(
        "Service restored",
        extra={"service_id": service_id, "actor_id": actor.id, "from_status": previous_status},
    )
    return service.to_dict()


def purge_service(service_id: str, actor: Actor) -> None:
    """Permanently delete a trashed service with its history, assignments and slots."""
    if actor.role not in _PURGE_ROLES:
        raise PermissionDeniedError(actor.id, "permanently delete service", "admins only")
    service = _get(service_id, deleted=True)
    db.session.delete(service)
    db.session.commit()
    logger.warning("Service permanently deleted", extra={"service_id": service_id, "actor_id": actor.id})
