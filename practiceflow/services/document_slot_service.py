"""
Document Slot Service

Per-service document checklist handling:
  - Staff build the checklist (add_slot / create_slots_from_requirements)
  - Staff process it in one batch: LINK a document already on file,
    REQUEST it from the client, or SKIP it for now
  - The client uploads into REQUESTED / REJECTED slots
  - Staff approve or reject what was uploaded

Slots never gate the parent service's transitions.  When a batch requests
at least one document from an IN_PROGRESS service, the workflow engine
applies REQUEST_DOCUMENTS in the same transaction.
"""

import logging
from datetime import datetime, timezone

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
from practiceflow.models.document_slot import (
    CLIENT_VISIBLE_STATUSES,
    SLOT_PRIORITIES,
    SLOT_TRANSITIONS,
    ServiceDocumentSlot,
    document_code,
)
from practiceflow.models.service import Service
from practiceflow.models.status_registry import IN_PROGRESS
from practiceflow.services.service_workflow import (
    apply_action,
    get_live_service,
    load_service_for_update,
)
from practiceflow.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

SLOT_ACTIONS = ("LINK", "REQUEST", "SKIP")


def _utcnow():
    return datetime.now(timezone.utc)


def _require_staff(actor: Actor, action: str) -> None:
    if not actor.is_staff:
        raise PermissionDeniedError(actor.id, action, "staff only")


def _require_service_worker(service: Service, actor: Actor, action: str) -> None:
    """Staff who hold the service, or manager tier."""
    _require_staff(actor, action)
    if not actor.is_manager and service.current_assignee_id != actor.id:
        raise PermissionDeniedError(
            actor.id, action, "only the current assignee or a manager may manage documents",
        )


def _get_slot(slot_id: str) -> ServiceDocumentSlot:
    slot = db.session.get(ServiceDocumentSlot, slot_id)
    if slot is None or slot.service is None or slot.service.is_deleted:
        raise NotFoundError(resource="DocumentSlot", resource_id=slot_id)
    return slot


def _check_slot_transition(slot: ServiceDocumentSlot, action: str) -> str:
    rule = SLOT_TRANSITIONS[action]
    if slot.status not in rule["from"]:
        raise InvalidTransitionError(
            "document slot", slot.id, action, slot.status,
            f"allowed from {', '.join(rule['from'])}",
        )
    return rule["to"]


def _commit(service_id: str | None = None) -> None:
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConcurrencyConflictError("Service", service_id or "?") from None


# ═════════════════════════════════════════════════════════════════════════════
# Checklist construction
# ═════════════════════════════════════════════════════════════════════════════

def _new_slot(service: Service, data: dict) -> ServiceDocumentSlot:
    name = str(data.get("name") or data.get("document_name") or "").strip()
    if not name:
        raise ValidationError("Document name is required", details={"name": "required"})
    slot = ServiceDocumentSlot(
        service_id=service.id,
        client_id=service.client_id,
        document_name=name,
        document_code=document_code(name),
        category=data.get("category") or None,
        is_required=bool(data.get("is_required", True)),
        is_custom=bool(data.get("is_custom", False)),
        status="NOT_STARTED",
    )
    db.session.add(slot)
    return slot


def add_slot(service_id: str, actor: Actor, data: dict) -> dict:
    """Add one checklist item to an existing service."""
    _require_staff(actor, "add_document_slot")
    service = get_live_service(service_id)
    slot = _new_slot(service, data)
    db.session.commit()
    return slot.to_dict()


def create_slots_from_requirements(service_id: str, actor: Actor, requirements: list[dict]) -> list[dict]:
    """Build the checklist from a catalog's required-document list."""
    _require_staff(actor, "create_document_slots")
    if not isinstance(requirements, list):
        raise ValidationError("requirements must be a list", details={"requirements": "invalid"})
    service = get_live_service(service_id)
    try:
        slots = [_new_slot(service, item or {}) for item in requirements]
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return [s.to_dict() for s in slots]


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════

def list_slots(service_id: str, actor: Actor) -> list[dict]:
    """Staff view: required first, then creation order."""
    _require_staff(actor, "view_document_slots")
    get_live_service(service_id, actor)
    slots = (
        ServiceDocumentSlot.query
        .filter_by(service_id=service_id)
        .order_by(
            ServiceDocumentSlot.is_required.desc(),
            ServiceDocumentSlot.created_at.asc(),
            ServiceDocumentSlot.id.asc(),
        )
        .all()
    )
    return [s.to_dict() for s in slots]


def list_client_slots(service_id: str, actor: Actor) -> list[dict]:
    """Client portal view: only slots that have been actioned."""
    service = get_live_service(service_id)
    if actor.is_client and service.client_id != actor.id:
        raise PermissionDeniedError(actor.id, "view_document_slots", "not your service")
    slots = (
        ServiceDocumentSlot.query
        .filter(
            ServiceDocumentSlot.service_id == service_id,
            ServiceDocumentSlot.status.in_(CLIENT_VISIBLE_STATUSES),
        )
        .order_by(
            ServiceDocumentSlot.is_required.desc(),
            ServiceDocumentSlot.status.asc(),
            ServiceDocumentSlot.created_at.asc(),
        )
        .all()
    )
    return [s.to_dict() for s in slots]


def slot_summary(service_id: str, actor: Actor) -> dict:
    """Counts over the required slots of a service."""
    get_live_service(service_id, actor)
    slots = ServiceDocumentSlot.query.filter_by(service_id=service_id, is_required=True).all()

    total = len(slots)
    approved = sum(1 for s in slots if s.status in ("APPROVED", "LINKED"))
    pending = sum(1 for s in slots if s.status in ("REQUESTED", "NOT_STARTED"))
    uploaded = sum(1 for s in slots if s.status == "UPLOADED")
    rejected = sum(1 for s in slots if s.status == "REJECTED")

    return {
        "total": total,
        "approved": approved,
        "pending": pending,
        "uploaded": uploaded,
        "rejected": rejected,
        "all_approved": total > 0 and approved == total,
        "ready_for_review": uploaded > 0,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Batch processing
# ═════════════════════════════════════════════════════════════════════════════

def _link(slot: ServiceDocumentSlot, item: dict, actor: Actor, now: datetime) -> None:
    document_id = str(item.get("linked_document_id") or item.get("existing_document_id") or "").strip()
    if not document_id:
        raise ValidationError("No document id provided for linking")
    slot.status = _check_slot_transition(slot, "link")
    slot.linked_document_id = document_id
    slot.linked_at = now
    slot.linked_by_id = actor.id
    slot.linked_by_name = actor.name
    slot.rejection_reason = None


def _request(slot: ServiceDocumentSlot, item: dict, actor: Actor, now: datetime,
             global_message: str | None) -> None:
    priority = item.get("priority") or "NORMAL"
    if priority not in SLOT_PRIORITIES:
        raise ValidationError(f"Invalid priority: {priority}")
    deadline = parse_date_input(item.get("deadline"), field="deadline")
    slot.status = _check_slot_transition(slot, "request")
    slot.requested_at = now
    slot.requested_by_id = actor.id
    slot.requested_by_name = actor.name
    slot.deadline = deadline
    slot.request_message = item.get("instructions") or global_message or None
    slot.priority = priority


def process_slot_actions(service_id: str, actor: Actor, actions: list[dict],
                         global_message: str | None = None) -> dict:
    """
    Apply a batch of LINK / REQUEST / SKIP actions to a service's slots.

    Per-slot failures are collected in ``errors`` and do not stop the
    batch.  Everything else, including the REQUEST_DOCUMENTS transition,
    commits as one unit.

    Returns:
        {"linked", "requested", "skipped", "errors", "status_changed", "service_status"}
    """
    if not isinstance(actions, list):
        raise ValidationError("actions must be a list", details={"actions": "invalid"})

    results = {"linked": 0, "requested": 0, "skipped": 0, "errors": []}
    requested_names = []
    now = _utcnow()

    try:
        service = load_service_for_update(service_id)
        _require_service_worker(service, actor, "process_document_slots")

        for item in actions:
            if not isinstance(item, dict):
                results["errors"].append({"slot_id": None, "error": "Each action must be an object"})
                continue
            slot_id = item.get("slot_id")
            kind = str(item.get("action") or "").strip().upper()
            if kind not in SLOT_ACTIONS:
                results["errors"].append({"slot_id": slot_id, "error": f"Unknown slot action: {kind or None}"})
                continue
            slot = None
            if isinstance(slot_id, str) and slot_id:
                slot = db.session.get(ServiceDocumentSlot, slot_id)
            if slot is None or slot.service_id != service.id:
                results["errors"].append({"slot_id": slot_id, "error": "Slot not found on this service"})
                continue
            try:
                if kind == "LINK":
                    _link(slot, item, actor, now)
                    results["linked"] += 1
                elif kind == "REQUEST":
                    _request(slot, item, actor, now, global_message)
                    results["requested"] += 1
                    requested_names.append(slot.document_name)
                else:
                    results["skipped"] += 1
            except (ValidationError, InvalidTransitionError) as exc:
                results["errors"].append({"slot_id": slot_id, "error": str(exc)})

        status_changed = False
        if results["requested"] and service.status == IN_PROGRESS:
            apply_action(service, "REQUEST_DOCUMENTS", actor, {
                "document_list": requested_names,
                "notes": (
                    f"Requested {results['requested']} document(s) from client. "
                    f"{results['linked']} document(s) linked from repository."
                ),
                "metadata": {"global_message": global_message},
            })
            status_changed = True

        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConcurrencyConflictError("Service", service_id) from None
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Document slots processed",
        extra={
            "service_id": service_id,
            "actor_id": actor.id,
            "linked": results["linked"],
            "requested": results["requested"],
            "skipped": results["skipped"],
            "error_count": len(results["errors"]),
        },
    )
    results["status_changed"] = status_changed
    results["service_status"] = service.status
    return results


# ═════════════════════════════════════════════════════════════════════════════
# Client upload & staff review
# ═════════════════════════════════════════════════════════════════════════════

def client_upload(slot_id: str, document_id: str, actor: Actor) -> dict:
    """Client supplies a document for a REQUESTED or REJECTED slot."""
    slot = _get_slot(slot_id)
    if not actor.is_client or slot.client_id != actor.id:
        raise PermissionDeniedError(actor.id, "upload_document", "slot belongs to a different client")
    document_id = str(document_id or "").strip()
    if not document_id:
        raise ValidationError("document_id is required", details={"document_id": "required"})

    slot.status = _check_slot_transition(slot, "upload")
    slot.uploaded_document_id = document_id
    slot.uploaded_at = _utcnow()
    slot.rejection_reason = None
    _commit(slot.service_id)

    logger.info("Document uploaded to slot", extra={"slot_id": slot.id, "service_id": slot.service_id})
    return slot.to_dict()


def approve_slot(slot_id: str, actor: Actor, notes: str | None = None) -> dict:
    slot = _get_slot(slot_id)
    _require_staff(actor, "approve_document")

    slot.status = _check_slot_transition(slot, "approve")
    slot.reviewed_at = _utcnow()
    slot.reviewed_by_id = actor.id
    slot.reviewed_by_name = actor.name
    slot.review_notes = str(notes or "").strip() or None
    _commit(slot.service_id)
    return slot.to_dict()


def reject_slot(slot_id: str, actor: Actor, reason: str) -> dict:
    """Send an upload back to the client; a reason is mandatory."""
    slot = _get_slot(slot_id)
    _require_staff(actor, "reject_document")
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError("reason is required to reject a document", details={"reason": "required"})

    slot.status = _check_slot_transition(slot, "reject")
    slot.reviewed_at = _utcnow()
    slot.reviewed_by_id = actor.id
    slot.reviewed_by_name = actor.name
    slot.rejection_reason = reason
    _commit(slot.service_id)
    return slot.to_dict()
