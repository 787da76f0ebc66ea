"""
Service request blueprint.

Endpoints:
    GET  /api/v1/service-requests                 — role-scoped list
    POST /api/v1/service-requests                 — client submits
    GET  /api/v1/service-requests/<id>
    POST /api/v1/service-requests/<id>/review     — PENDING → UNDER_REVIEW
    POST /api/v1/service-requests/<id>/approve    — convert to a service
    POST /api/v1/service-requests/<id>/reject     — reason required
    POST /api/v1/service-requests/<id>/cancel     — owning client only
"""

from flask import Blueprint, jsonify, request

from practiceflow.blueprints import current_actor, json_body, page_args
from practiceflow.services import service_request_service as srs
from practiceflow.utils.errors import register_error_handlers

service_request_bp = Blueprint("service_requests", __name__, url_prefix="/api/v1")
register_error_handlers(service_request_bp)


@service_request_bp.route("/service-requests", methods=["GET"])
def list_requests():
    page, per_page = page_args()
    return jsonify(srs.list_requests(
        current_actor(), status=request.args.get("status"), page=page, per_page=per_page,
    ))


@service_request_bp.route("/service-requests", methods=["POST"])
def create_request():
    return jsonify(srs.create_request(current_actor(), json_body())), 201


@service_request_bp.route("/service-requests/<request_id>", methods=["GET"])
def get_request(request_id):
    return jsonify(srs.get_request(request_id, current_actor()))


@service_request_bp.route("/service-requests/<request_id>/review", methods=["POST"])
def review_request(request_id):
    return jsonify(srs.review_request(request_id, current_actor()))


@service_request_bp.route("/service-requests/<request_id>/approve", methods=["POST"])
def approve_request(request_id):
    """Body: approval_notes?, quoted_fee?, due_date?"""
    return jsonify(srs.approve_request(request_id, current_actor(), json_body())), 201


@service_request_bp.route("/service-requests/<request_id>/reject", methods=["POST"])
def reject_request(request_id):
    data = json_body()
    reason = data.get("rejection_reason") or data.get("reason")
    return jsonify(srs.reject_request(request_id, current_actor(), reason))


@service_request_bp.route("/service-requests/<request_id>/cancel", methods=["POST"])
def cancel_request(request_id):
    return jsonify(srs.cancel_request(request_id, current_actor()))
