"""
Service status history: the workflow audit trail.

Models:
    - ServiceStatusHistory: immutable, append-only record of every
      transition (from → to, action verb, actor snapshot, reason / notes,
      structured metadata, timestamp).

Rows are written only through ``write_status_history`` inside the workflow
engine's transaction, never updated, and removed only when the whole
service is permanently deleted.
"""

from datetime import datetime, timezone

from sqlalchemy import event

from practiceflow.models import db


# ── Constants ────────────────────────────────────────────────────────────────

HISTORY_ACTIONS = (
    "CREATE",
    "CREATE_FROM_REQUEST",
    "ASSIGN",
    "DELEGATE",
    "START_WORK",
    "REQUEST_DOCUMENTS",
    "PUT_ON_HOLD",
    "RESUME_WORK",
    "START_FIXING",
    "SUBMIT_FOR_REVIEW",
    "APPROVE",
    "REQUEST_CHANGES",
    "MARK_COMPLETE",
    "DELIVER",
    "GENERATE_INVOICE",
    "CLOSE",
    "CANCEL",
    "REOPEN",
)


def _utcnow():
    return datetime.now(timezone.utc)


class ServiceStatusHistory(db.Model):
    """
    One row per successful transition.

    ``from_status`` is NULL for the CREATE / CREATE_FROM_REQUEST entry.
    ``changed_by_name`` and ``changed_by_role`` are snapshots so the trail
    stays readable after staff records change.
    """

    __tablename__ = "service_status_history"
    __table_args__ = (
        db.Index("idx_history_service_changed", "service_id", "changed_at"),
        db.Index("idx_history_action", "action"),
        db.Index("idx_history_actor", "changed_by_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(
        db.String(36),
        db.ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
    )

    from_status = db.Column(db.String(30), nullable=True)
    to_status = db.Column(db.String(30), nullable=False)
    action = db.Column(db.String(30), nullable=False, comment="ASSIGN | START_WORK | …")

    changed_by_id = db.Column(db.String(36), nullable=False, default="system")
    changed_by_name = db.Column(db.String(200), nullable=True)
    changed_by_role = db.Column(db.String(30), nullable=True)

    reason = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    extra_metadata = db.Column(
        "metadata", db.JSON, nullable=True,
        comment="e.g. {documentList: [...]} or {previousAssigneeId, newAssigneeId}",
    )

    changed_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow,
    )

    service = db.relationship("Service", back_populates="status_history")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_id": self.service_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "action": self.action,
            "changed_by_id": self.changed_by_id,
            "changed_by_name": self.changed_by_name,
            "changed_by_role": self.changed_by_role,
            "reason": self.reason,
            "notes": self.notes,
            "metadata": self.extra_metadata,
            "changed_at": self.changed_at.isoformat() if self.changed_at else None,
        }

    def __repr__(self):
        return (
            f"<ServiceStatusHistory {self.id}: {self.action} "
            f"{self.from_status}→{self.to_status} on {self.service_id}>"
        )


@event.listens_for(ServiceStatusHistory, "before_update")
def _reject_history_update(mapper, connection, target):
    raise RuntimeError(f"ServiceStatusHistory {target.id} is append-only")


# ── Convenience writer ───────────────────────────────────────────────────────

def write_status_history(
    *,
    service_id: str,
    from_status: str | None,
    to_status: str,
    action: str,
    changed_by_id: str,
    changed_by_name: str | None = None,
    changed_by_role: str | None = None,
    reason: str | None = None,
    notes: str | None = None,
    metadata: dict | None = None,
) -> ServiceStatusHistory:
    """Add a history row to the current session and flush it.

    Does **not** commit: the caller owns the transaction so the status
    change and its history row land together or not at all.
    """
    if action not in HISTORY_ACTIONS:
        raise ValueError(f"Unknown history action: {action}")
    entry = ServiceStatusHistory(
        service_id=service_id,
        from_status=from_status,
        to_status=to_status,
        action=action,
        changed_by_id=changed_by_id,
        changed_by_name=changed_by_name,
        changed_by_role=changed_by_role,
        reason=reason,
        notes=notes,
        extra_metadata=metadata or None,
    )
    db.session.add(entry)
    db.session.flush()
    return entry
