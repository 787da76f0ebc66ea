"""
Client & staff directory models.

The workflow only needs enough of the firm's people to validate assignees,
denormalise their names onto services and route service requests to the
project manager who manages a client.

Models:
    - Client: a customer of the firm.
    - StaffMember: super-admin, admin, project manager or team member.
"""

import uuid
from datetime import datetime, timezone

from practiceflow.models import db
from practiceflow.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_ADMIN = "ADMIN"
ROLE_PROJECT_MANAGER = "PROJECT_MANAGER"
ROLE_TEAM_MEMBER = "TEAM_MEMBER"
ROLE_CLIENT = "CLIENT"
ROLE_SYSTEM = "SYSTEM"

STAFF_ROLES = frozenset({ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_PROJECT_MANAGER, ROLE_TEAM_MEMBER})
MANAGER_ROLES = frozenset({ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_PROJECT_MANAGER})
ALL_ROLES = STAFF_ROLES | {ROLE_CLIENT, ROLE_SYSTEM}

# Who may hold a service
ASSIGNEE_TYPES = frozenset({ROLE_PROJECT_MANAGER, ROLE_TEAM_MEMBER})


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class Client(SoftDeleteMixin, db.Model):
    """A firm's client; owns services and service requests."""

    __tablename__ = "clients"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    managed_by_id = db.Column(
        db.String(36),
        db.ForeignKey("staff_members.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Project manager responsible for this client",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "managed_by_id": self.managed_by_id,
        }

    def __repr__(self):
        return f"<Client {self.id}: {self.name}>"


class StaffMember(SoftDeleteMixin, db.Model):
    """Firm staff. ``role`` doubles as the assignee type for PMs and TMs."""

    __tablename__ = "staff_members"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    role = db.Column(
        db.String(30), nullable=False,
        comment="SUPER_ADMIN | ADMIN | PROJECT_MANAGER | TEAM_MEMBER",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<StaffMember {self.id}: {self.name} ({self.role})>"
