"""
Client service requests.

A client asks for a service; a project manager (or admin) reviews it and
either converts it into a Service or rejects it.  The client may cancel
while it is still open.

    PENDING ──review──▶ UNDER_REVIEW
       │                    │
       ├──approve───────────┴──▶ CONVERTED   (APPROVED is transient)
       ├──reject────────────┴──▶ REJECTED
       └──cancel────────────┴──▶ CANCELLED
"""

import uuid
from datetime import datetime, timezone

from practiceflow.models import db


# ── Constants ────────────────────────────────────────────────────────────────

REQUEST_STATUSES = ("PENDING", "UNDER_REVIEW", "APPROVED", "REJECTED", "CANCELLED", "CONVERTED")

REQUEST_URGENCIES = ("LOW", "NORMAL", "HIGH", "URGENT")

REQUEST_TRANSITIONS = {
    "review": {"from": ["PENDING"], "to": "UNDER_REVIEW"},
    "approve": {"from": ["PENDING", "UNDER_REVIEW"], "to": "CONVERTED"},
    "reject": {"from": ["PENDING", "UNDER_REVIEW"], "to": "REJECTED"},
    "cancel": {"from": ["PENDING", "UNDER_REVIEW"], "to": "CANCELLED"},
}


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class ServiceRequest(db.Model):
    """A client-submitted ask for a service, before it becomes a Service."""

    __tablename__ = "service_requests"
    __table_args__ = (
        db.Index("idx_request_client_status", "client_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(
        db.String(36),
        db.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    service_type = db.Column(db.String(30), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    urgency = db.Column(db.String(10), nullable=False, default="NORMAL")
    preferred_due_date = db.Column(db.Date, nullable=True)
    financial_year = db.Column(db.String(9), nullable=True)
    assessment_year = db.Column(db.String(9), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="PENDING")

    # Review outcome
    reviewed_by_id = db.Column(db.String(36), nullable=True)
    reviewed_by_name = db.Column(db.String(200), nullable=True)
    reviewed_by_role = db.Column(db.String(30), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    approval_notes = db.Column(db.Text, nullable=True)
    quoted_fee = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    client = db.relationship("Client")
    converted_to_service = db.relationship(
        "Service", back_populates="service_request", uselist=False,
    )

    def to_dict(self) -> dict:
        converted = self.converted_to_service
        return {
            "id": self.id,
            "client_id": self.client_id,
            "client": self.client.to_dict() if self.client else None,
            "service_type": self.service_type,
            "title": self.title,
            "description": self.description,
            "urgency": self.urgency,
            "preferred_due_date": _iso(self.preferred_due_date),
            "financial_year": self.financial_year,
            "assessment_year": self.assessment_year,
            "status": self.status,
            "reviewed_by_id": self.reviewed_by_id,
            "reviewed_by_name": self.reviewed_by_name,
            "reviewed_by_role": self.reviewed_by_role,
            "reviewed_at": _iso(self.reviewed_at),
            "rejection_reason": self.rejection_reason,
            "approval_notes": self.approval_notes,
            "quoted_fee": float(self.quoted_fee) if self.quoted_fee is not None else None,
            "converted_to_service": (
                {"id": converted.id, "title": converted.title, "status": converted.status}
                if converted else None
            ),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<ServiceRequest {self.id}: {self.title} [{self.status}]>"
