"""
Service workflow blueprint.

Endpoints:
    GET  /api/v1/services/<id>/actions      — action buttons for the caller
    POST /api/v1/services/<id>/actions      — execute one transition
    GET  /api/v1/services/<id>/history      — paginated status history
    GET  /api/v1/services/<id>/assignments  — delegation chain
    GET  /api/v1/service-statuses           — status registry (read-only)

The workflow engine owns validation and commits; views only translate
HTTP to service calls.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from practiceflow.blueprints import current_actor, json_body
from practiceflow.core.exceptions import ValidationError
from practiceflow.models.status_registry import main_path, registry_as_list
from practiceflow.services import service_workflow, status_history_service
from practiceflow.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

service_workflow_bp = Blueprint("service_workflow", __name__, url_prefix="/api/v1")
register_error_handlers(service_workflow_bp)

# Body keys forwarded to the engine as action input
_PAYLOAD_KEYS = (
    "notes", "reason", "message", "assignee_id", "assignee_type", "document_list", "metadata",
)


@service_workflow_bp.route("/services/<service_id>/actions", methods=["GET"])
def list_available_actions(service_id):
    return jsonify(service_workflow.get_available_actions(service_id, current_actor()))


@service_workflow_bp.route("/services/<service_id>/actions", methods=["POST"])
def execute_action(service_id):
    """
    Body:
        action            — required, e.g. "START_WORK"
        notes / reason    — free text (reason required by some actions)
        assignee_id, assignee_type — ASSIGN / DELEGATE
        document_list     — REQUEST_DOCUMENTS
        expected_version  — optimistic-lock guard
        metadata          — extra JSON stored on the history entry
    """
    actor = current_actor()
    data = json_body()
    action = data.get("action")
    if action is not None and not isinstance(action, str):
        raise ValidationError("action must be a string", details={"action": "invalid"})
    action = (action or "").strip().upper()
    if not action:
        raise ValidationError("action is required", details={"action": "required"})

    expected_version = data.get("expected_version")
    if expected_version is not None and not isinstance(expected_version, int):
        raise ValidationError("expected_version must be an integer",
                              details={"expected_version": "invalid"})

    payload = {k: data[k] for k in _PAYLOAD_KEYS if k in data}
    result = service_workflow.execute_action(
        service_id, action, actor, payload=payload, expected_version=expected_version,
    )
    return jsonify(result), 200


@service_workflow_bp.route("/services/<service_id>/history", methods=["GET"])
def get_history(service_id):
    """
    Query params:
        page      — page number (default 1)
        per_page  — items per page (default HISTORY_PAGE_SIZE)
        order     — asc (default) | desc
    """
    actor = current_actor()
    page = max(1, request.args.get("page", 1, type=int))
    per_page = request.args.get(
        "per_page", current_app.config.get("HISTORY_PAGE_SIZE", 50), type=int,
    )
    order = request.args.get("order", "asc").lower()
    return jsonify(status_history_service.list_for_service(
        service_id, actor, page=page, per_page=per_page, order=order,
    ))


@service_workflow_bp.route("/services/<service_id>/assignments", methods=["GET"])
def get_assignments(service_id):
    return jsonify({"assignments": service_workflow.list_assignments(service_id, current_actor())})


@service_workflow_bp.route("/service-statuses", methods=["GET"])
def list_statuses():
    return jsonify({"statuses": registry_as_list(), "main_path": main_path()})
