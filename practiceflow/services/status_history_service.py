"""
Status history reads.

Writes go through ``practiceflow.models.status_history.write_status_history``
from the workflow engine only; this module is the read side.  Canonical
order is chronological: ``changed_at`` then ``id`` ascending.
"""

from flask import current_app

from practiceflow.core.actor import Actor
from practiceflow.core.exceptions import NotFoundError, ValidationError
from practiceflow.models import db
from practiceflow.models.service import Service
from practiceflow.models.status_history import ServiceStatusHistory
from practiceflow.services.service_workflow import require_read_access


def _ensure_service(service_id: str, include_deleted: bool) -> Service:
    service = db.session.get(Service, service_id)
    if service is None or (service.is_deleted and not include_deleted):
        raise NotFoundError(resource="Service", resource_id=service_id)
    return service


def _ordered(query, order: str):
    if order == "asc":
        return query.order_by(ServiceStatusHistory.changed_at.asc(), ServiceStatusHistory.id.asc())
    if order == "desc":
        return query.order_by(ServiceStatusHistory.changed_at.desc(), ServiceStatusHistory.id.desc())
    raise ValidationError("order must be 'asc' or 'desc'", details={"order": "invalid"})


def list_for_service(
    service_id: str,
    actor: Actor,
    page: int = 1,
    per_page: int | None = None,
    order: str = "asc",
    *,
    include_deleted: bool = False,
) -> dict:
    """
    One page of a service's history, visible to actors who can read the
    service itself.

    Returns:
        {"items", "total", "page", "per_page", "pages"}
    """
    require_read_access(_ensure_service(service_id, include_deleted), actor)

    max_per_page = current_app.config.get("HISTORY_MAX_PAGE_SIZE", 200)
    if per_page is None:
        per_page = current_app.config.get("HISTORY_PAGE_SIZE", 50)
    page = max(1, page)
    per_page = min(max_per_page, max(1, per_page))

    q = _ordered(ServiceStatusHistory.query.filter_by(service_id=service_id), order)
    paginated = q.paginate(page=page, per_page=per_page, error_out=False)

    return {
        "items": [entry.to_dict() for entry in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    }


def iter_history(service_id: str, batch_size: int = 100, after_id: int | None = None):
    """
    Lazily yield a service's history entries, oldest first.

    Keyset pagination on ``id`` (ids grow with ``changed_at`` for one
    service), so a consumer can resume from the last id it saw by passing
    it as ``after_id``.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    _ensure_service(service_id, include_deleted=True)

    last_id = after_id
    while True:
        q = ServiceStatusHistory.query.filter_by(service_id=service_id)
        if last_id is not None:
            q = q.filter(ServiceStatusHistory.id > last_id)
        batch = q.order_by(ServiceStatusHistory.id.asc()).limit(batch_size).all()
        if not batch:
            return
        yield from batch
        if len(batch) < batch_size:
            return
        last_id = batch[-1].id

