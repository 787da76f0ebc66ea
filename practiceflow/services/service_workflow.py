"""
Service Workflow Engine

The only mutating entry point for a service's status.  Every transition
runs as one unit:

  1. Load the service under a row lock (SELECT … FOR UPDATE)
  2. Ask the transition policy whether the action is legal and permitted
  3. Check required input (reason, document list, assignee)
  4. Mutate status and side fields, plus the assignment chain
  5. Append exactly one status-history row
  6. Commit once

Any failure rolls the whole unit back, so status and history never
diverge.  ``Service.version`` is the optimistic-lock column; losing a race
surfaces as ``ConcurrencyConflictError``.

Usage:
    from practiceflow.services.service_workflow import execute_action

    result = execute_action(
        service_id="abc",
        action="ASSIGN",
        actor=Actor(id="pm-1", name="Priya", role="PROJECT_MANAGER"),
        payload={"assignee_id": "tm-1", "assignee_type": "TEAM_MEMBER"},
    )
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from practiceflow.core.actor import Actor
from practiceflow.core.exceptions import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from practiceflow.models import db
from practiceflow.models.directory import (
    ASSIGNEE_TYPES,
    ROLE_ADMIN,
    ROLE_PROJECT_MANAGER,
    ROLE_SUPER_ADMIN,
    ROLE_TEAM_MEMBER,
    StaffMember,
)
from practiceflow.models.service import (
    ASSIGNMENT_ACTIVE,
    ASSIGNMENT_COMPLETED,
    ASSIGNMENT_DELEGATED,
    ASSIGNMENT_DELEGATION,
    ASSIGNMENT_INITIAL,
    ASSIGNMENT_REVOKED,
    Service,
    ServiceAssignment,
)
from practiceflow.models.status_history import ServiceStatusHistory, write_status_history
from practiceflow.models.status_registry import PENDING
from practiceflow.services import transition_policy as policy

logger = logging.getLogger(__name__)


_DEFAULT_NOTES = {
    "START_WORK": "Work started",
    "REQUEST_DOCUMENTS": "Documents requested from client",
    "PUT_ON_HOLD": "Service put on hold",
    "RESUME_WORK": "Work resumed",
    "SUBMIT_FOR_REVIEW": "Submitted for review",
    "APPROVE": "Work approved",
    "REQUEST_CHANGES": "Changes requested",
    "START_FIXING": "Started fixing requested changes",
    "MARK_COMPLETE": "Marked as complete",
    "DELIVER": "Delivered to client",
    "GENERATE_INVOICE": "Invoice generated",
    "CLOSE": "Service closed",
    "CANCEL": "Service cancelled",
    "REOPEN": "Service reopened",
}


def _utcnow():
    return datetime.now(timezone.utc)


def _clean(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ═════════════════════════════════════════════════════════════════════════════
# Loading
# ═════════════════════════════════════════════════════════════════════════════

def load_service_for_update(service_id: str) -> Service:
    """Fetch a live service and lock its row for the rest of the transaction.

    ``populate_existing`` refreshes an instance already in the identity map
    so the status and version checked below are the committed ones.

    Raises:
        NotFoundError: absent or soft-deleted.
    """
    stmt = (
        select(Service)
        .where(Service.id == service_id, Service.deleted_at.is_(None))
        .with_for_update(of=Service)
        .execution_options(populate_existing=True)
    )
    service = db.session.execute(stmt).scalar_one_or_none()
    if service is None:
        raise NotFoundError(resource="Service", resource_id=service_id)
    return service


def can_access_service(service: Service, actor: Actor) -> bool:
    """Read access: admins see all, PMs what they manage or hold, TMs what they hold."""
    if actor.role in (ROLE_SUPER_ADMIN, ROLE_ADMIN):
        return True
    if actor.role == ROLE_PROJECT_MANAGER:
        return actor.id in (service.project_manager_id, service.current_assignee_id)
    if actor.role == ROLE_TEAM_MEMBER:
        return service.current_assignee_id == actor.id
    if actor.is_client:
        return service.client_id == actor.id
    return False


def require_read_access(service: Service, actor: Actor) -> None:
    if not can_access_service(service, actor):
        raise PermissionDeniedError(actor.id, "view service")


def get_live_service(service_id: str, actor: Actor | None = None) -> Service:
    """Read-only fetch of a non-deleted service.

    With ``actor`` the caller must also pass ``can_access_service``.
    """
    service = db.session.get(Service, service_id)
    if service is None or service.is_deleted:
        raise NotFoundError(resource="Service", resource_id=service_id)
    if actor is not None:
        require_read_access(service, actor)
    return service


# ═════════════════════════════════════════════════════════════════════════════
# Validation helpers
# ═════════════════════════════════════════════════════════════════════════════

def _check_permission(service: Service, spec: policy.ActionSpec, actor: Actor) -> None:
    is_assignee = service.current_assignee_id == actor.id
    verdict = policy.classify(spec.action, service.status, actor.role, is_assignee)
    if verdict == policy.INVALID_TRANSITION:
        raise InvalidTransitionError(
            "service", service.id, spec.action, service.status,
            f"allowed from {', '.join(spec.from_statuses)}",
        )
    if verdict == policy.NOT_PERMITTED:
        if actor.role not in spec.allowed_roles:
            reason = f"role {actor.role} may not perform this action"
        else:
            reason = "only the current assignee or a manager may perform this action"
        raise PermissionDeniedError(actor.id, spec.action, reason)


def _document_list(payload: dict) -> list[str]:
    raw = payload.get("document_list") or []
    if isinstance(raw, str):
        raw = raw.splitlines()
    if not isinstance(raw, (list, tuple)):
        raise ValidationError(
            "document_list must be a list of document names",
            details={"document_list": "invalid"},
        )
    return [name for name in (_clean(item) for item in raw) if name]


def _require_input(spec: policy.ActionSpec, payload: dict) -> None:
    if not spec.requires_input:
        return
    if spec.input_kind == policy.INPUT_REASON and not _clean(payload.get("reason")):
        raise ValidationError(
            f"reason is required for {spec.action}", details={"reason": "required"},
        )
    if spec.input_kind == policy.INPUT_DOCUMENT_LIST and not _document_list(payload):
        raise ValidationError(
            f"document_list is required for {spec.action}",
            details={"document_list": "required"},
        )
    if spec.input_kind == policy.INPUT_ASSIGNEE and not _clean(payload.get("assignee_id")):
        raise ValidationError(
            f"assignee_id is required for {spec.action}",
            details={"assignee_id": "required"},
        )


def _resolve_assignee(payload: dict) -> StaffMember:
    """The new holder must be an active PM or TM matching ``assignee_type``."""
    assignee_id = _clean(payload.get("assignee_id"))
    assignee_type = _clean(payload.get("assignee_type"))
    if assignee_type not in ASSIGNEE_TYPES:
        raise ValidationError(
            f"assignee_type must be one of {', '.join(sorted(ASSIGNEE_TYPES))}",
            details={"assignee_type": "invalid"},
        )
    staff = db.session.get(StaffMember, assignee_id)
    if staff is None or staff.is_deleted or not staff.is_active:
        raise ValidationError(
            f"Assignee {assignee_id} is not an active staff member",
            details={"assignee_id": "invalid"},
        )
    if staff.role != assignee_type:
        raise ValidationError(
            f"Assignee {assignee_id} is a {staff.role}, not a {assignee_type}",
            details={"assignee_type": "mismatch"},
        )
    return staff


# ═════════════════════════════════════════════════════════════════════════════
# Assignment chain
# ═════════════════════════════════════════════════════════════════════════════

def _active_assignment(service_id: str) -> ServiceAssignment | None:
    return (
        ServiceAssignment.query
        .filter_by(service_id=service_id, status=ASSIGNMENT_ACTIVE)
        .order_by(ServiceAssignment.id.desc())
        .first()
    )


def _open_assignment(service: Service, staff: StaffMember, actor: Actor, *,
                     assignment_type: str, previous: ServiceAssignment | None,
                     reason: str | None) -> ServiceAssignment:
    assignment = ServiceAssignment(
        service_id=service.id,
        assignee_id=staff.id,
        assignee_type=staff.role,
        assignee_name=staff.name,
        assigned_by_id=actor.id,
        assigned_by_name=actor.name,
        assigned_by_role=actor.role,
        delegation_level=(previous.delegation_level + 1) if previous else 1,
        previous_assignment_id=previous.id if previous else None,
        delegation_reason=reason,
        assignment_type=assignment_type,
        status=ASSIGNMENT_ACTIVE,
    )
    db.session.add(assignment)
    return assignment


def _set_assignee(service: Service, staff: StaffMember | None) -> None:
    service.current_assignee_id = staff.id if staff else None
    service.current_assignee_type = staff.role if staff else None
    service.current_assignee_name = staff.name if staff else None


# ═════════════════════════════════════════════════════════════════════════════
# Transition
# ═════════════════════════════════════════════════════════════════════════════

def _apply_side_effects(service: Service, action: str, actor: Actor, payload: dict,
                        now: datetime) -> tuple[str | None, dict]:
    """Mutate side fields for ``action``; return (default notes, metadata)."""
    notes = _DEFAULT_NOTES.get(action)
    metadata = {}

    if action == "ASSIGN":
        staff = _resolve_assignee(payload)
        stale = _active_assignment(service.id)
        if stale is not None:
            stale.status = ASSIGNMENT_REVOKED
            stale.revoked_at = now
            stale.revoked_by_id = actor.id
            stale.revoked_reason = "Superseded by new assignment"
        _open_assignment(service, staff, actor, assignment_type=ASSIGNMENT_INITIAL,
                         previous=None, reason=None)
        _set_assignee(service, staff)
        notes = f"Assigned to {staff.name} ({staff.role})"
        metadata = {"assignee_id": staff.id, "assignee_type": staff.role}

    elif action == "DELEGATE":
        staff = _resolve_assignee(payload)
        if staff.id == service.current_assignee_id:
            raise ValidationError(
                "Service is already assigned to this staff member",
                details={"assignee_id": "unchanged"},
            )
        previous = _active_assignment(service.id)
        if previous is not None:
            previous.status = ASSIGNMENT_DELEGATED
        assignment = _open_assignment(
            service, staff, actor, assignment_type=ASSIGNMENT_DELEGATION,
            previous=previous, reason=_clean(payload.get("reason")),
        )
        notes = (
            f"Delegated from {service.current_assignee_name or 'Unknown'} "
            f"to {staff.name}"
        )
        metadata = {
            "previous_assignee_id": service.current_assignee_id,
            "new_assignee_id": staff.id,
            "delegation_level": assignment.delegation_level,
        }
        _set_assignee(service, staff)

    elif action == "START_WORK":
        if service.start_date is None:
            service.start_date = now

    elif action == "REQUEST_DOCUMENTS":
        metadata = {"document_list": _document_list(payload)}

    elif action in ("APPROVE", "MARK_COMPLETE"):
        service.completed_at = now
        active = _active_assignment(service.id)
        if active is not None:
            active.status = ASSIGNMENT_COMPLETED
            active.completed_at = now

    elif action == "CANCEL":
        active = _active_assignment(service.id)
        if active is not None:
            active.status = ASSIGNMENT_REVOKED
            active.revoked_at = now
            active.revoked_by_id = actor.id
            active.revoked_reason = _clean(payload.get("reason"))

    elif action == "REOPEN":
        service.completed_at = None
        if service.current_assignee_id:
            metadata = {"previous_assignee_id": service.current_assignee_id}
        _set_assignee(service, None)

    return notes, metadata


def apply_action(service: Service, action: str, actor: Actor,
                 payload: dict | None = None) -> tuple[str, ServiceStatusHistory]:
    """
    Validate and apply one transition to an already-locked service.

    Flushes but does **not** commit; callers that batch other writes into
    the same unit (document-slot requests) use this directly.

    Returns:
        (previous_status, history_entry)

    Raises:
        ValidationError, InvalidTransitionError, PermissionDeniedError
    """
    payload = payload or {}
    spec = policy.get_action_spec(action)
    if spec is None:
        if action in policy.CREATION_ACTIONS:
            raise ValidationError(f"{action} is recorded when a service is created")
        raise ValidationError(f"Unknown action: {action}", details={"action": "invalid"})

    _check_permission(service, spec, actor)
    _require_input(spec, payload)

    now = _utcnow()
    previous_status = service.status
    default_notes, metadata = _apply_side_effects(service, action, actor, payload, now)
    service.status = spec.resulting_status

    extra = payload.get("metadata")
    if isinstance(extra, dict):
        metadata = {**extra, **metadata}

    reason = _clean(payload.get("reason"))
    notes = _clean(payload.get("notes")) or _clean(payload.get("message")) or default_notes

    entry = write_status_history(
        service_id=service.id,
        from_status=previous_status,
        to_status=service.status,
        action=action,
        changed_by_id=actor.id,
        changed_by_name=actor.name,
        changed_by_role=actor.role,
        reason=reason,
        notes=notes,
        metadata=metadata,
    )
    return previous_status, entry


def execute_action(
    service_id: str,
    action: str,
    actor: Actor,
    payload: dict | None = None,
    expected_version: int | None = None,
) -> dict:
    """
    Execute one workflow transition atomically and commit it.

    Args:
        service_id: UUID of the service
        action: One of ``transition_policy.WORKFLOW_ACTIONS``
        actor: Who is acting
        payload: notes, reason, assignee_id, assignee_type, document_list, metadata
        expected_version: Version the caller last saw; mismatch is a conflict

    Returns:
        {"service_id", "previous_status", "new_status", "action",
         "history_entry", "service"}

    Raises:
        NotFoundError, ValidationError, InvalidTransitionError,
        PermissionDeniedError, ConcurrencyConflictError
    """
    try:
        service = load_service_for_update(service_id)
        if expected_version is not None and service.version != expected_version:
            raise ConcurrencyConflictError(
                "Service", service_id,
                expected_version=expected_version, actual_version=service.version,
            )
        previous_status, entry = apply_action(service, action, actor, payload)
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        logger.warning(
            "Service transition lost a concurrent update",
            extra={"service_id": service_id, "action": action, "actor_id": actor.id},
        )
        raise ConcurrencyConflictError("Service", service_id) from None
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Service transition",
        extra={
            "service_id": service.id,
            "action": action,
            "from_status": previous_status,
            "to_status": service.status,
            "actor_id": actor.id,
            "actor_role": actor.role,
        },
    )
    return {
        "service_id": service.id,
        "previous_status": previous_status,
        "new_status": service.status,
        "action": action,
        "history_entry": entry.to_dict(),
        "service": service.to_dict(),
    }


def record_creation(service: Service, actor: Actor, action: str = "CREATE",
                    notes: str | None = None, metadata: dict | None = None) -> ServiceStatusHistory:
    """Write the CREATE / CREATE_FROM_REQUEST entry for a new service (no commit)."""
    if action not in policy.CREATION_ACTIONS:
        raise ValueError(f"Not a creation action: {action}")
    db.session.flush()
    return write_status_history(
        service_id=service.id,
        from_status=None,
        to_status=service.status or PENDING,
        action=action,
        changed_by_id=actor.id,
        changed_by_name=actor.name,
        changed_by_role=actor.role,
        notes=notes,
        metadata=metadata,
    )


def get_available_actions(service_id: str, actor: Actor) -> dict:
    """Action buttons for ``actor`` on a persisted service (read-only)."""
    service = get_live_service(service_id)
    is_assignee = service.current_assignee_id == actor.id
    specs = policy.available_actions(service.status, actor.role, is_assignee)
    return {
        "service_id": service.id,
        "status": service.status,
        "version": service.version,
        "is_assignee": is_assignee,
        "actions": [spec.to_dict() for spec in specs],
    }


def list_assignments(service_id: str, actor: Actor) -> list[dict]:
    """Delegation chain of a service, oldest first."""
    service = get_live_service(service_id, actor)
    return [a.to_dict() for a in service.assignments]
