"""
Document slot blueprint.

Endpoints:
    GET  /api/v1/services/<id>/document-slots           — checklist (clients see actioned slots only)
    POST /api/v1/services/<id>/document-slots           — add one slot, or many via "requirements"
    POST /api/v1/services/<id>/document-slots/actions   — batch LINK / REQUEST / SKIP
    GET  /api/v1/services/<id>/document-slots/summary   — required-slot counts
    POST /api/v1/document-slots/<slot_id>/upload        — client upload
    POST /api/v1/document-slots/<slot_id>/approve
    POST /api/v1/document-slots/<slot_id>/reject        — reason required
"""

from flask import Blueprint, jsonify

from practiceflow.blueprints import current_actor, json_body
from practiceflow.services import document_slot_service as slots
from practiceflow.utils.errors import register_error_handlers

document_slot_bp = Blueprint("document_slots", __name__, url_prefix="/api/v1")
register_error_handlers(document_slot_bp)


@document_slot_bp.route("/services/<service_id>/document-slots", methods=["GET"])
def list_slots(service_id):
    actor = current_actor()
    if actor.is_client:
        return jsonify({"slots": slots.list_client_slots(service_id, actor)})
    return jsonify({"slots": slots.list_slots(service_id, actor)})


@document_slot_bp.route("/services/<service_id>/document-slots", methods=["POST"])
def add_slots(service_id):
    """Body: {name, category?, is_required?, is_custom?} or {requirements: [...]}"""
    actor = current_actor()
    data = json_body()
    if "requirements" in data:
        created = slots.create_slots_from_requirements(service_id, actor, data["requirements"])
        return jsonify({"slots": created}), 201
    return jsonify(slots.add_slot(service_id, actor, data)), 201


@document_slot_bp.route("/services/<service_id>/document-slots/actions", methods=["POST"])
def process_actions(service_id):
    """
    Body:
        actions         — [{slot_id, action: LINK|REQUEST|SKIP,
                            linked_document_id?, deadline?, instructions?, priority?}]
        global_message  — default request message for REQUEST actions
    """
    data = json_body()
    result = slots.process_slot_actions(
        service_id, current_actor(), data.get("actions") or [], data.get("global_message"),
    )
    return jsonify(result)


@document_slot_bp.route("/services/<service_id>/document-slots/summary", methods=["GET"])
def slot_summary(service_id):
    return jsonify(slots.slot_summary(service_id, current_actor()))


@document_slot_bp.route("/document-slots/<slot_id>/upload", methods=["POST"])
def upload(slot_id):
    data = json_body()
    return jsonify(slots.client_upload(slot_id, data.get("document_id"), current_actor()))


@document_slot_bp.route("/document-slots/<slot_id>/approve", methods=["POST"])
def approve(slot_id):
    return jsonify(slots.approve_slot(slot_id, current_actor(), json_body().get("notes")))


@document_slot_bp.route("/document-slots/<slot_id>/reject", methods=["POST"])
def reject(slot_id):
    return jsonify(slots.reject_slot(slot_id, current_actor(), json_body().get("reason")))
