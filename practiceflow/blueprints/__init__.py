"""
Blueprint registry and shared request helpers.

The actor is taken from the ``X-User-Id`` / ``X-User-Name`` /
``X-User-Role`` headers set by the upstream auth gateway.
"""

from flask import request

from practiceflow.core.actor import Actor
from practiceflow.core.exceptions import PermissionDeniedError


def current_actor() -> Actor:
    """Build the acting user from request headers.

    Raises:
        PermissionDeniedError: headers missing or role unknown.
    """
    actor_id = (request.headers.get("X-User-Id") or "").strip()
    role = (request.headers.get("X-User-Role") or "").strip().upper()
    name = (request.headers.get("X-User-Name") or "").strip() or None
    if not actor_id or not role:
        raise PermissionDeniedError(actor_id or None, "call the API",
                                    "X-User-Id and X-User-Role headers are required")
    actor = Actor(id=actor_id, name=name, role=role)
    if not actor.is_known_role:
        raise PermissionDeniedError(actor_id, "call the API", f"unknown role {role}")
    return actor


def page_args(default_per_page=50, max_per_page=200):
    """Read ``page`` / ``per_page`` query params.

    Returns:
        (page, per_page) — page ≥ 1, 1 ≤ per_page ≤ max_per_page
    """
    page = max(1, request.args.get("page", 1, type=int))
    per_page = request.args.get("per_page", default_per_page, type=int)
    return page, min(max_per_page, max(1, per_page))


def json_body() -> dict:
    """Request JSON as a dict (empty dict for a missing or non-object body)."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
