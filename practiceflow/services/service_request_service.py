"""
Service Request Lifecycle Service

Manages client service requests with:
  - Transition validation (REQUEST_TRANSITIONS)
  - Role checks: clients create and cancel their own requests, the
    manager tier reviews, approves and rejects
  - Approval converts the request into exactly one Service
    (origin=CLIENT_REQUEST) with a CREATE_FROM_REQUEST history entry

Usage:
    from practiceflow.services.service_request_service import approve_request

    result = approve_request(request_id, actor, {"quoted_fee": 2500})
"""

import logging
from datetime import datetime, timezone

from practiceflow.core.actor import Actor
from practiceflow.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from practiceflow.models import db
from practiceflow.models.directory import ROLE_PROJECT_MANAGER, Client
from practiceflow.models.service import ORIGIN_CLIENT_REQUEST, SERVICE_TYPES, Service
from practiceflow.models.service_request import (
    REQUEST_STATUSES,
    REQUEST_TRANSITIONS,
    REQUEST_URGENCIES,
    ServiceRequest,
)
from practiceflow.models.status_registry import PENDING
from practiceflow.services.service_workflow import record_creation
from practiceflow.utils.helpers import parse_amount, parse_date_input

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


def validate_transition(req: ServiceRequest, action: str) -> dict:
    """
    Validate whether an action is valid for the request's current state.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    rule = REQUEST_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": req.status, "to": None,
                "reason": f"Unknown action: {action}"}
    if req.status not in rule["from"]:
        return {"valid": False, "from": req.status, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{req.status}'"}
    return {"valid": True, "from": req.status, "to": rule["to"], "reason": None}


def _get_request(request_id: str) -> ServiceRequest:
    req = db.session.get(ServiceRequest, request_id)
    if req is None:
        raise NotFoundError(resource="ServiceRequest", resource_id=request_id)
    return req


def _manages_client(actor: Actor, client: Client | None) -> bool:
    if actor.role != ROLE_PROJECT_MANAGER:
        return actor.is_manager
    return client is not None and client.managed_by_id == actor.id


def _require_reviewer(req: ServiceRequest, actor: Actor, action: str) -> None:
    if not actor.is_manager:
        raise PermissionDeniedError(actor.id, f"{action} service request",
                                    "only project managers or admins may review requests")
    if not _manages_client(actor, req.client):
        raise PermissionDeniedError(actor.id, f"{action} service request",
                                    "client is managed by another project manager")


def _check(req: ServiceRequest, action: str) -> str:
    validation = validate_transition(req, action)
    if not validation["valid"]:
        raise InvalidTransitionError("service request", req.id, action, req.status,
                                     validation["reason"])
    return validation["to"]


def _stamp_review(req: ServiceRequest, actor: Actor) -> None:
    req.reviewed_by_id = actor.id
    req.reviewed_by_name = actor.name
    req.reviewed_by_role = actor.role
    req.reviewed_at = _utcnow()


# ═════════════════════════════════════════════════════════════════════════════
# Create / read
# ═════════════════════════════════════════════════════════════════════════════

def create_request(actor: Actor, data: dict) -> dict:
    """A client asks the firm for a service."""
    if not actor.is_client:
        raise PermissionDeniedError(actor.id, "create service request", "clients only")
    client = db.session.get(Client, actor.id)
    if client is None or client.is_deleted:
        raise NotFoundError(resource="Client", resource_id=actor.id)

    title = str(data.get("title") or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})
    service_type = data.get("service_type")
    if service_type not in SERVICE_TYPES:
        raise ValidationError(
            f"service_type must be one of {', '.join(SERVICE_TYPES)}",
            details={"service_type": "invalid"},
        )
    urgency = data.get("urgency") or "NORMAL"
    if urgency not in REQUEST_URGENCIES:
        raise ValidationError(
            f"urgency must be one of {', '.join(REQUEST_URGENCIES)}",
            details={"urgency": "invalid"},
        )

    req = ServiceRequest(
        client_id=client.id,
        service_type=service_type,
        title=title,
        description=data.get("description") or None,
        urgency=urgency,
        preferred_due_date=parse_date_input(data.get("preferred_due_date"), field="preferred_due_date"),
        financial_year=data.get("financial_year") or None,
        assessment_year=data.get("assessment_year") or None,
        status="PENDING",
    )
    db.session.add(req)
    db.session.commit()

    logger.info("Service request created",
                extra={"service_request_id": req.id, "client_id": client.id, "service_type": service_type})
    return req.to_dict()


def list_requests(actor: Actor, *, status: str | None = None,
                  page: int = 1, per_page: int = 50) -> dict:
    """
    Role-scoped request list.

    CLIENT sees its own; PROJECT_MANAGER sees requests of clients it
    manages; ADMIN / SUPER_ADMIN see all.  Team members see none.
    """
    q = ServiceRequest.query
    if actor.is_client:
        q = q.filter(ServiceRequest.client_id == actor.id)
    elif actor.role == ROLE_PROJECT_MANAGER:
        q = q.join(Client, Client.id == ServiceRequest.client_id).filter(
            Client.managed_by_id == actor.id,
        )
    elif not actor.is_manager:
        raise PermissionDeniedError(actor.id, "list service requests")

    if status:
        if status not in REQUEST_STATUSES:
            raise ValidationError(f"Unknown status: {status}", details={"status": "invalid"})
        q = q.filter(ServiceRequest.status == status)

    q = q.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
    paginated = q.paginate(page=max(1, page), per_page=min(200, max(1, per_page)), error_out=False)
    return {
        "items": [r.to_dict() for r in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    }


def get_request(request_id: str, actor: Actor) -> dict:
    req = _get_request(request_id)
    if actor.is_client:
        if req.client_id != actor.id:
            raise NotFoundError(resource="ServiceRequest", resource_id=request_id)
    elif not (actor.is_manager and _manages_client(actor, req.client)):
        raise PermissionDeniedError(actor.id, "view service request")
    return req.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════════

def review_request(request_id: str, actor: Actor) -> dict:
    """Mark a PENDING request as picked up for review."""
    req = _get_request(request_id)
    _require_reviewer(req, actor, "review")
    req.status = _check(req, "review")
    _stamp_review(req, actor)
    db.session.commit()
    return req.to_dict()


def approve_request(request_id: str, actor: Actor, data: dict | None = None) -> dict:
    """
    Approve a request and convert it into a new PENDING service.

    Args:
        data: approval_notes, quoted_fee, due_date (all optional)

    Returns:
        {"request": {...}, "service": {...}}
    """
    data = data or {}
    req = _get_request(request_id)
    _require_reviewer(req, actor, "approve")
    new_status = _check(req, "approve")
    if req.converted_to_service is not None:
        raise ConflictError("Service", "service_request_id", req.id)

    quoted_fee = parse_amount(data.get("quoted_fee"), field="quoted_fee")
    due_date = parse_date_input(data.get("due_date"), field="due_date") or req.preferred_due_date

    try:
        service = Service(
            client_id=req.client_id,
            project_manager_id=req.client.managed_by_id if req.client else None,
            service_request_id=req.id,
            service_type=req.service_type,
            title=req.title,
            description=req.description,
            due_date=due_date,
            fee_amount=quoted_fee if quoted_fee is not None else req.quoted_fee,
            status=PENDING,
            origin=ORIGIN_CLIENT_REQUEST,
            financial_year=req.financial_year,
            assessment_year=req.assessment_year,
            created_by_id=actor.id,
            created_by_name=actor.name,
            created_by_role=actor.role,
        )
        db.session.add(service)

        req.status = new_status
        req.approval_notes = str(data.get("approval_notes") or "").strip() or None
        if quoted_fee is not None:
            req.quoted_fee = quoted_fee
        _stamp_review(req, actor)

        record_creation(
            service, actor, action="CREATE_FROM_REQUEST",
            notes=f"Created from service request: {req.title}",
            metadata={"request_id": req.id},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Service request converted",
                extra={"service_request_id": req.id, "service_id": service.id, "actor_id": actor.id})
    return {"request": req.to_dict(), "service": service.to_dict()}


def reject_request(request_id: str, actor: Actor, reason: str) -> dict:
    req = _get_request(request_id)
    _require_reviewer(req, actor, "reject")
    new_status = _check(req, "reject")
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError("rejection_reason is required", details={"rejection_reason": "required"})

    req.status = new_status
    req.rejection_reason = reason
    _stamp_review(req, actor)
    db.session.commit()

    logger.info("Service request rejected", extra={"service_request_id": req.id, "actor_id": actor.id})
    return req.to_dict()


def cancel_request(request_id: str, actor: Actor) -> dict:
    """The owning client withdraws an open request."""
    req = _get_request(request_id)
    if not actor.is_client or req.client_id != actor.id:
        raise PermissionDeniedError(actor.id, "cancel service request",
                                    "only the requesting client may cancel")
    req.status = _check(req, "cancel")
    db.session.commit()
    return req.to_dict()
