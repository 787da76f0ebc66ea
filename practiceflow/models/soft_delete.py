"""
Soft delete mixin for services and collaborator records.

Adds a ``deleted_at`` timestamp; soft delete is a flag orthogonal to any
status column, so trashed services keep their workflow state and history.

Usage:
    class Service(SoftDeleteMixin, db.Model):
        ...

    service.soft_delete()
    Service.query_active().all()    # excludes trash
    Service.query_deleted().all()   # trash only
    service.restore()
"""

from datetime import datetime, timezone

from practiceflow.models import db


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)

    def soft_delete(self):
        """Mark this record as deleted."""
        self.deleted_at = datetime.now(timezone.utc)

    def restore(self):
        """Clear the deleted flag."""
        self.deleted_at = None

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.deleted_at.is_(None))

    @classmethod
    def query_deleted(cls):
        """Return only soft-deleted records."""
        return cls.query.filter(cls.deleted_at.isnot(None))
