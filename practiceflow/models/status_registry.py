"""
Service status registry.

Single source of truth for every service status: display label,
description, lifecycle phase, main-path order (progress bar only) and the
terminal flag.  Pure lookup data, consulted by the workflow engine, the
transition policy and every read-only caller; holds no behaviour.

Main path (order):
    PENDING(1) → ASSIGNED(2) → IN_PROGRESS(3) → UNDER_REVIEW(4)
    → COMPLETED(5) → DELIVERED(6) → INVOICED(7) → CLOSED(8)

WAITING_FOR_CLIENT and ON_HOLD share IN_PROGRESS's position,
CHANGES_REQUESTED shares UNDER_REVIEW's, CANCELLED is out-of-band.
"""

PENDING = "PENDING"
ASSIGNED = "ASSIGNED"
IN_PROGRESS = "IN_PROGRESS"
WAITING_FOR_CLIENT = "WAITING_FOR_CLIENT"
ON_HOLD = "ON_HOLD"
UNDER_REVIEW = "UNDER_REVIEW"
CHANGES_REQUESTED = "CHANGES_REQUESTED"
COMPLETED = "COMPLETED"
DELIVERED = "DELIVERED"
INVOICED = "INVOICED"
CLOSED = "CLOSED"
CANCELLED = "CANCELLED"


SERVICE_STATUS_REGISTRY = {
    PENDING: {
        "label": "Pending",
        "description": "Service created, awaiting assignment",
        "phase": "creation",
        "order": 1,
        "terminal": False,
    },
    ASSIGNED: {
        "label": "Assigned",
        "description": "Assigned to a staff member, work not started",
        "phase": "assignment",
        "order": 2,
        "terminal": False,
    },
    IN_PROGRESS: {
        "label": "In Progress",
        "description": "Work is actively being done",
        "phase": "execution",
        "order": 3,
        "terminal": False,
    },
    WAITING_FOR_CLIENT: {
        "label": "Waiting for Client",
        "description": "Waiting for client input or documents",
        "phase": "execution",
        "order": 3,
        "terminal": False,
    },
    ON_HOLD: {
        "label": "On Hold",
        "description": "Work temporarily paused",
        "phase": "execution",
        "order": 3,
        "terminal": False,
    },
    UNDER_REVIEW: {
        "label": "Under Review",
        "description": "Submitted for quality check",
        "phase": "review",
        "order": 4,
        "terminal": False,
    },
    CHANGES_REQUESTED: {
        "label": "Changes Requested",
        "description": "Reviewer found issues, needs rework",
        "phase": "review",
        "order": 4,
        "terminal": False,
    },
    COMPLETED: {
        "label": "Completed",
        "description": "All work done and approved",
        "phase": "completion",
        "order": 5,
        "terminal": False,
    },
    DELIVERED: {
        "label": "Delivered",
        "description": "Sent to client",
        "phase": "completion",
        "order": 6,
        "terminal": False,
    },
    INVOICED: {
        "label": "Invoiced",
        "description": "Invoice generated",
        "phase": "billing",
        "order": 7,
        "terminal": False,
    },
    CLOSED: {
        "label": "Closed",
        "description": "Fully completed and paid",
        "phase": "final",
        "order": 8,
        "terminal": True,
    },
    CANCELLED: {
        "label": "Cancelled",
        "description": "Service cancelled",
        "phase": "final",
        "order": None,
        "terminal": True,
    },
}

SERVICE_STATUSES = tuple(SERVICE_STATUS_REGISTRY)

TERMINAL_STATUSES = frozenset(
    s for s, info in SERVICE_STATUS_REGISTRY.items() if info["terminal"]
)

# A service in any of these must have a current assignee
ASSIGNEE_REQUIRED_STATUSES = frozenset({
    ASSIGNED, IN_PROGRESS, WAITING_FOR_CLIENT, ON_HOLD, UNDER_REVIEW, CHANGES_REQUESTED,
})

# Work still open on the firm's side (kanban "active" column)
ACTIVE_STATUSES = frozenset({PENDING}) | ASSIGNEE_REQUIRED_STATUSES

_MAIN_PATH = (PENDING, ASSIGNED, IN_PROGRESS, UNDER_REVIEW, COMPLETED, DELIVERED, INVOICED, CLOSED)


def is_valid_status(status: str | None) -> bool:
    return status in SERVICE_STATUS_REGISTRY


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def get_status(status: str) -> dict:
    """Return registry metadata for *status* (with the status key included).

    Raises:
        KeyError: unknown status.
    """
    info = SERVICE_STATUS_REGISTRY[status]
    return {"status": status, **info}


def main_path() -> list[dict]:
    """Ordered progress-bar steps; one entry per main-path position."""
    return [get_status(s) for s in _MAIN_PATH]


def progress(status: str) -> dict:
    """Progress-bar position for *status*.

    CANCELLED has no position: ``order`` and ``percent`` are ``None`` and
    ``off_path`` is True.
    """
    info = SERVICE_STATUS_REGISTRY[status]
    total = len(_MAIN_PATH)
    order = info["order"]
    return {
        "status": status,
        "order": order,
        "total_steps": total,
        "percent": round(order * 100 / total) if order is not None else None,
        "off_path": order is None,
    }


def registry_as_list() -> list[dict]:
    """All statuses in declaration order, for the read-only API."""
    return [get_status(s) for s in SERVICE_STATUSES]
