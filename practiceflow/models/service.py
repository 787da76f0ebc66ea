"""
Service engagement models.

Models:
    - Service: one compliance engagement (ITR filing, GST return, audit …)
      for one client, driven through the status workflow.
    - ServiceAssignment: one row per assignment / delegation, forming the
      delegation chain of a service.

``Service.status`` and ``Service.current_assignee_*`` are written only by
``practiceflow.services.service_workflow`` (and by restore, which resets to
PENDING).  ``version`` is the optimistic-lock column: every UPDATE of a
service row is issued as ``... WHERE id = :id AND version = :seen`` and a
lost race surfaces as ``StaleDataError``.
"""

import uuid
from datetime import datetime, timezone

from practiceflow.models import db
from practiceflow.models.soft_delete import SoftDeleteMixin
from practiceflow.models.status_registry import PENDING, get_status, progress


__all__ = [
    "SERVICE_TYPES",
    "SERVICE_ORIGINS",
    "ASSIGNMENT_TYPES",
    "ASSIGNMENT_STATUSES",
    "Service",
    "ServiceAssignment",
]


# ── Constants ────────────────────────────────────────────────────────────────

SERVICE_TYPES = {
    "ITR_FILING": "ITR Filing",
    "GST_REGISTRATION": "GST Registration",
    "GST_RETURN": "GST Return",
    "TDS_RETURN": "TDS Return",
    "TDS_COMPLIANCE": "TDS Compliance",
    "ROC_FILING": "ROC Filing",
    "AUDIT": "Audit",
    "BOOK_KEEPING": "Book Keeping",
    "PAYROLL": "Payroll",
    "CONSULTATION": "Consultation",
    "OTHER": "Other",
}

ORIGIN_CLIENT_REQUEST = "CLIENT_REQUEST"
ORIGIN_FIRM_CREATED = "FIRM_CREATED"
ORIGIN_RECURRING = "RECURRING"
SERVICE_ORIGINS = frozenset({ORIGIN_CLIENT_REQUEST, ORIGIN_FIRM_CREATED, ORIGIN_RECURRING})

ASSIGNMENT_INITIAL = "INITIAL"
ASSIGNMENT_DELEGATION = "DELEGATION"
ASSIGNMENT_TYPES = frozenset({ASSIGNMENT_INITIAL, ASSIGNMENT_DELEGATION})

ASSIGNMENT_ACTIVE = "ACTIVE"
ASSIGNMENT_DELEGATED = "DELEGATED"
ASSIGNMENT_COMPLETED = "COMPLETED"
ASSIGNMENT_REVOKED = "REVOKED"
ASSIGNMENT_STATUSES = frozenset({
    ASSIGNMENT_ACTIVE, ASSIGNMENT_DELEGATED, ASSIGNMENT_COMPLETED, ASSIGNMENT_REVOKED,
})


# ── Helpers ──────────────────────────────────────────────────────────────────

def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
# Service
# ═════════════════════════════════════════════════════════════════════════════

class Service(SoftDeleteMixin, db.Model):
    """
    One compliance engagement for one client.

    Lifecycle columns (status, start_date, completed_at, current_assignee_*)
    move only through workflow transitions; descriptive columns are edited
    freely by staff forms.
    """

    __tablename__ = "services"
    __table_args__ = (
        db.Index("idx_service_status", "status"),
        db.Index("idx_service_assignee", "current_assignee_id"),
        db.Index("idx_service_client_status", "client_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(
        db.String(36),
        db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_manager_id = db.Column(
        db.String(36),
        db.ForeignKey("staff_members.id", ondelete="SET NULL"),
        nullable=True,
        comment="PM managing the client when the service was created",
    )
    service_request_id = db.Column(
        db.String(36),
        db.ForeignKey("service_requests.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    # Catalog classification
    service_type = db.Column(db.String(30), nullable=False, comment="ITR_FILING | GST_RETURN | …")
    category = db.Column(db.String(100), nullable=True)
    sub_type = db.Column(db.String(100), nullable=True)

    # Lifecycle
    status = db.Column(db.String(30), nullable=False, default=PENDING)
    origin = db.Column(
        db.String(20), nullable=False, default=ORIGIN_FIRM_CREATED,
        comment="CLIENT_REQUEST | FIRM_CREATED | RECURRING",
    )
    start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Current holder (denormalised name for list views)
    current_assignee_id = db.Column(db.String(36), nullable=True)
    current_assignee_type = db.Column(
        db.String(20), nullable=True, comment="PROJECT_MANAGER | TEAM_MEMBER",
    )
    current_assignee_name = db.Column(db.String(200), nullable=True)

    # Descriptive
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    fee_amount = db.Column(db.Numeric(12, 2), nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    financial_year = db.Column(db.String(9), nullable=True, comment="e.g. 2024-25")
    assessment_year = db.Column(db.String(9), nullable=True)
    period = db.Column(db.String(30), nullable=True, comment="e.g. Q1, APR-2025")
    notes = db.Column(db.Text, nullable=True, comment="Client-visible")
    internal_notes = db.Column(db.Text, nullable=True, comment="Staff-only")

    # Creator snapshot
    created_by_id = db.Column(db.String(36), nullable=True)
    created_by_name = db.Column(db.String(200), nullable=True)
    created_by_role = db.Column(db.String(30), nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    __mapper_args__ = {"version_id_col": version}

    client = db.relationship("Client")
    service_request = db.relationship("ServiceRequest", back_populates="converted_to_service")
    status_history = db.relationship(
        "ServiceStatusHistory",
        back_populates="service",
        cascade="all",
        passive_deletes=True,
        order_by="ServiceStatusHistory.id",
    )
    assignments = db.relationship(
        "ServiceAssignment",
        back_populates="service",
        cascade="all",
        passive_deletes=True,
        order_by="ServiceAssignment.id",
    )
    document_slots = db.relationship(
        "ServiceDocumentSlot",
        back_populates="service",
        cascade="all",
        passive_deletes=True,
    )

    def to_dict(self) -> dict:
        status_info = get_status(self.status)
        return {
            "id": self.id,
            "client_id": self.client_id,
            "client": self.client.to_dict() if self.client else None,
            "project_manager_id": self.project_manager_id,
            "service_request_id": self.service_request_id,
            "service_type": self.service_type,
            "service_type_label": SERVICE_TYPES.get(self.service_type, self.service_type),
            "category": self.category,
            "sub_type": self.sub_type,
            "status": self.status,
            "status_label": status_info["label"],
            "progress": progress(self.status),
            "origin": self.origin,
            "start_date": _iso(self.start_date),
            "completed_at": _iso(self.completed_at),
            "current_assignee_id": self.current_assignee_id,
            "current_assignee_type": self.current_assignee_type,
            "current_assignee_name": self.current_assignee_name,
            "title": self.title,
            "description": self.description,
            "fee_amount": float(self.fee_amount) if self.fee_amount is not None else None,
            "due_date": _iso(self.due_date),
            "financial_year": self.financial_year,
            "assessment_year": self.assessment_year,
            "period": self.period,
            "notes": self.notes,
            "internal_notes": self.internal_notes,
            "created_by_id": self.created_by_id,
            "created_by_name": self.created_by_name,
            "created_by_role": self.created_by_role,
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "deleted_at": _iso(self.deleted_at),
        }

    def __repr__(self):
        return f"<Service {self.id}: {self.title} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# ServiceAssignment: delegation chain
# ═════════════════════════════════════════════════════════════════════════════

class ServiceAssignment(db.Model):
    """
    One hand-over of a service to a PM or TM.

    Exactly one ACTIVE row per assigned service.  DELEGATE marks the active
    row DELEGATED and links the new row through ``previous_assignment_id``
    with ``delegation_level`` incremented.
    """

    __tablename__ = "service_assignments"

    id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(
        db.String(36),
        db.ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    assignee_id = db.Column(db.String(36), nullable=False)
    assignee_type = db.Column(db.String(20), nullable=False)
    assignee_name = db.Column(db.String(200), nullable=True)

    assigned_by_id = db.Column(db.String(36), nullable=False)
    assigned_by_name = db.Column(db.String(200), nullable=True)
    assigned_by_role = db.Column(db.String(30), nullable=True)

    delegation_level = db.Column(db.Integer, nullable=False, default=1)
    previous_assignment_id = db.Column(
        db.Integer,
        db.ForeignKey("service_assignments.id", ondelete="SET NULL"),
        nullable=True,
    )
    delegation_reason = db.Column(db.Text, nullable=True)
    assignment_type = db.Column(db.String(20), nullable=False, default=ASSIGNMENT_INITIAL)
    status = db.Column(db.String(20), nullable=False, default=ASSIGNMENT_ACTIVE)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_by_id = db.Column(db.String(36), nullable=True)
    revoked_reason = db.Column(db.Text, nullable=True)

    service = db.relationship("Service", back_populates="assignments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_id": self.service_id,
            "assignee_id": self.assignee_id,
            "assignee_type": self.assignee_type,
            "assignee_name": self.assignee_name,
            "assigned_by_id": self.assigned_by_id,
            "assigned_by_name": self.assigned_by_name,
            "assigned_by_role": self.assigned_by_role,
            "delegation_level": self.delegation_level,
            "previous_assignment_id": self.previous_assignment_id,
            "delegation_reason": self.delegation_reason,
            "assignment_type": self.assignment_type,
            "status": self.status,
            "assigned_at": _iso(self.assigned_at),
            "completed_at": _iso(self.completed_at),
            "revoked_at": _iso(self.revoked_at),
            "revoked_by_id": self.revoked_by_id,
            "revoked_reason": self.revoked_reason,
        }

    def __repr__(self):
        return f"<ServiceAssignment {self.id}: {self.service_id} → {self.assignee_id} [{self.status}]>"
