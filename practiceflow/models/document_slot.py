"""
Per-service document checklist.

Each ServiceDocumentSlot is one document the client must (``is_required``)
or may supply for a service.  Slots move independently of the service's
own status and never gate its transitions.

Slot transitions:
    NOT_STARTED ─LINK────▶ LINKED     (document already on file)
    NOT_STARTED ─REQUEST─▶ REQUESTED  (client-actionable)
    REQUESTED / REJECTED ─upload─▶ UPLOADED
    UPLOADED / LINKED ─approve─▶ APPROVED
    UPLOADED ─reject─▶ REJECTED       (client-actionable again)
"""

import uuid
from datetime import datetime, timezone

from practiceflow.models import db


# ── Constants ────────────────────────────────────────────────────────────────

SLOT_STATUSES = ("NOT_STARTED", "REQUESTED", "LINKED", "UPLOADED", "APPROVED", "REJECTED")
SLOT_PRIORITIES = ("LOW", "NORMAL", "HIGH")

SLOT_TRANSITIONS = {
    "link": {"from": ["NOT_STARTED", "REQUESTED", "REJECTED"], "to": "LINKED"},
    "request": {"from": ["NOT_STARTED", "REQUESTED"], "to": "REQUESTED"},
    "upload": {"from": ["REQUESTED", "REJECTED"], "to": "UPLOADED"},
    "approve": {"from": ["UPLOADED", "LINKED"], "to": "APPROVED"},
    "reject": {"from": ["UPLOADED"], "to": "REJECTED"},
}

# Statuses the client portal shows (NOT_STARTED slots are staff-only)
CLIENT_VISIBLE_STATUSES = frozenset(SLOT_STATUSES) - {"NOT_STARTED"}


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


def document_code(name: str) -> str:
    """``"Form 16"`` → ``"FORM_16"``."""
    return "_".join(name.upper().split())


class ServiceDocumentSlot(db.Model):
    """One checklist item of a service's document requirements."""

    __tablename__ = "service_document_slots"
    __table_args__ = (
        db.Index("idx_slot_service_status", "service_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    service_id = db.Column(
        db.String(36),
        db.ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    client_id = db.Column(db.String(36), nullable=False, index=True)

    document_name = db.Column(db.String(255), nullable=False)
    document_code = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    is_required = db.Column(db.Boolean, nullable=False, default=True)
    is_custom = db.Column(db.Boolean, nullable=False, default=False)

    status = db.Column(db.String(20), nullable=False, default="NOT_STARTED")
    priority = db.Column(db.String(10), nullable=False, default="NORMAL")
    deadline = db.Column(db.Date, nullable=True)
    request_message = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    review_notes = db.Column(db.Text, nullable=True)

    # Opaque references into the document store (out of scope here)
    linked_document_id = db.Column(db.String(64), nullable=True)
    uploaded_document_id = db.Column(db.String(64), nullable=True)

    requested_at = db.Column(db.DateTime(timezone=True), nullable=True)
    requested_by_id = db.Column(db.String(36), nullable=True)
    requested_by_name = db.Column(db.String(200), nullable=True)
    linked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    linked_by_id = db.Column(db.String(36), nullable=True)
    linked_by_name = db.Column(db.String(200), nullable=True)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by_id = db.Column(db.String(36), nullable=True)
    reviewed_by_name = db.Column(db.String(200), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow, onupdate=_utcnow,
    )

    service = db.relationship("Service", back_populates="document_slots")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_id": self.service_id,
            "client_id": self.client_id,
            "document_name": self.document_name,
            "document_code": self.document_code,
            "category": self.category,
            "is_required": self.is_required,
            "is_custom": self.is_custom,
            "status": self.status,
            "priority": self.priority,
            "deadline": _iso(self.deadline),
            "request_message": self.request_message,
            "rejection_reason": self.rejection_reason,
            "review_notes": self.review_notes,
            "linked_document_id": self.linked_document_id,
            "uploaded_document_id": self.uploaded_document_id,
            "requested_at": _iso(self.requested_at),
            "requested_by_name": self.requested_by_name,
            "linked_at": _iso(self.linked_at),
            "linked_by_name": self.linked_by_name,
            "uploaded_at": _iso(self.uploaded_at),
            "reviewed_at": _iso(self.reviewed_at),
            "reviewed_by_name": self.reviewed_by_name,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<ServiceDocumentSlot {self.id}: {self.document_name} [{self.status}]>"
