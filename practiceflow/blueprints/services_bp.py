"""
Service records blueprint.

Endpoints:
    GET    /api/v1/services                      — role-scoped list
    POST   /api/v1/services                      — create (PENDING)
    GET    /api/v1/services/trash                — soft-deleted services
    GET    /api/v1/services/<id>                 — detail
    PUT    /api/v1/services/<id>                 — edit descriptive fields
    DELETE /api/v1/services/<id>                 — move to trash
    POST   /api/v1/services/<id>/restore         — restore at PENDING
    DELETE /api/v1/services/<id>/permanent       — hard delete (admins)
"""

from flask import Blueprint, jsonify, request

from practiceflow.blueprints import current_actor, json_body, page_args
from practiceflow.services import service_records
from practiceflow.utils.errors import register_error_handlers

services_bp = Blueprint("services", __name__, url_prefix="/api/v1")
register_error_handlers(services_bp)


@services_bp.route("/services", methods=["GET"])
def list_services():
    """
    Query params:
        status, client_id, assignee_id, service_type, search
        page, per_page
    """
    page, per_page = page_args()
    filters = {
        key: request.args.get(key)
        for key in ("status", "client_id", "assignee_id", "service_type", "search")
        if request.args.get(key)
    }
    return jsonify(service_records.list_services(current_actor(), filters, page, per_page))


@services_bp.route("/services", methods=["POST"])
def create_service():
    return jsonify(service_records.create_service(current_actor(), json_body())), 201


@services_bp.route("/services/trash", methods=["GET"])
def list_trash():
    page, per_page = page_args()
    return jsonify(service_records.list_trash(current_actor(), page, per_page))


@services_bp.route("/services/<service_id>", methods=["GET"])
def get_service(service_id):
    return jsonify(service_records.get_service(service_id, current_actor()))


@services_bp.route("/services/<service_id>", methods=["PUT"])
def update_service(service_id):
    return jsonify(service_records.update_service(service_id, current_actor(), json_body()))


@services_bp.route("/services/<service_id>", methods=["DELETE"])
def delete_service(service_id):
    service_records.soft_delete_service(service_id, current_actor())
    return jsonify({"message": "Service moved to trash", "id": service_id})


@services_bp.route("/services/<service_id>/restore", methods=["POST"])
def restore_service(service_id):
    return jsonify(service_records.restore_service(service_id, current_actor()))


@services_bp.route("/services/<service_id>/permanent", methods=["DELETE"])
def purge_service(service_id):
    service_records.purge_service(service_id, current_actor())
    return jsonify({"message": "Service permanently deleted", "id": service_id})
