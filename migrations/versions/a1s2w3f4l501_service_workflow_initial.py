"""Service workflow: directory, services, requests, history, assignments, document slots

Revision ID: a1s2w3f4l501
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "a1s2w3f4l501"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "staff_members",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), index=True),
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(30)),
        sa.Column("managed_by_id", sa.String(36), sa.ForeignKey("staff_members.id", ondelete="SET NULL"), index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), index=True),
    )

    op.create_table(
        "service_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("service_type", sa.String(30), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("urgency", sa.String(10), nullable=False, server_default="NORMAL"),
        sa.Column("preferred_due_date", sa.Date()),
        sa.Column("financial_year", sa.String(9)),
        sa.Column("assessment_year", sa.String(9)),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("reviewed_by_id", sa.String(36)),
        sa.Column("reviewed_by_name", sa.String(200)),
        sa.Column("reviewed_by_role", sa.String(30)),
        sa.Column("reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("approval_notes", sa.Text()),
        sa.Column("quoted_fee", sa.Numeric(12, 2)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_request_client_status", "service_requests", ["client_id", "status"])

    op.create_table(
        "services",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("client_id", sa.String(36), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("project_manager_id", sa.String(36), sa.ForeignKey("staff_members.id", ondelete="SET NULL")),
        sa.Column("service_request_id", sa.String(36), sa.ForeignKey("service_requests.id", ondelete="SET NULL"), unique=True),
        sa.Column("service_type", sa.String(30), nullable=False),
        sa.Column("category", sa.String(100)),
        sa.Column("sub_type", sa.String(100)),
        sa.Column("status", sa.String(30), nullable=False, server_default="PENDING"),
        sa.Column("origin", sa.String(20), nullable=False, server_default="FIRM_CREATED"),
        sa.Column("start_date", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("current_assignee_id", sa.String(36)),
        sa.Column("current_assignee_type", sa.String(20)),
        sa.Column("current_assignee_name", sa.String(200)),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("fee_amount", sa.Numeric(12, 2)),
        sa.Column("due_date", sa.Date()),
        sa.Column("financial_year", sa.String(9)),
        sa.Column("assessment_year", sa.String(9)),
        sa.Column("period", sa.String(30)),
        sa.Column("notes", sa.Text()),
        sa.Column("internal_notes", sa.Text()),
        sa.Column("created_by_id", sa.String(36)),
        sa.Column("created_by_name", sa.String(200)),
        sa.Column("created_by_role", sa.String(30)),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), index=True),
    )
    op.create_index("idx_service_status", "services", ["status"])
    op.create_index("idx_service_assignee", "services", ["current_assignee_id"])
    op.create_index("idx_service_client_status", "services", ["client_id", "status"])

    op.create_table(
        "service_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("service_id", sa.String(36), sa.ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("assignee_id", sa.String(36), nullable=False),
        sa.Column("assignee_type", sa.String(20), nullable=False),
        sa.Column("assignee_name", sa.String(200)),
        sa.Column("assigned_by_id", sa.String(36), nullable=False),
        sa.Column("assigned_by_name", sa.String(200)),
        sa.Column("assigned_by_role", sa.String(30)),
        sa.Column("delegation_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("previous_assignment_id", sa.Integer(), sa.ForeignKey("service_assignments.id", ondelete="SET NULL")),
        sa.Column("delegation_reason", sa.Text()),
        sa.Column("assignment_type", sa.String(20), nullable=False, server_default="INITIAL"),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("revoked_at", sa.DateTime(timezone=True)),
        sa.Column("revoked_by_id", sa.String(36)),
        sa.Column("revoked_reason", sa.Text()),
    )

    op.create_table(
        "service_status_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("service_id", sa.String(36), sa.ForeignKey("services.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_status", sa.String(30)),
        sa.Column("to_status", sa.String(30), nullable=False),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("changed_by_id", sa.String(36), nullable=False, server_default="system"),
        sa.Column("changed_by_name", sa.String(200)),
        sa.Column("changed_by_role", sa.String(30)),
        sa.Column("reason", sa.Text()),
        sa.Column("notes", sa.Text()),
        sa.Column("metadata", sa.JSON()),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_history_service_changed", "service_status_history", ["service_id", "changed_at"])
    op.create_index("idx_history_action", "service_status_history", ["action"])
    op.create_index("idx_history_actor", "service_status_history", ["changed_by_id"])

    op.create_table(
        "service_document_slots",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("service_id", sa.String(36), sa.ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("client_id", sa.String(36), nullable=False, index=True),
        sa.Column("document_name", sa.String(255), nullable=False),
        sa.Column("document_code", sa.String(255)),
        sa.Column("category", sa.String(100)),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_custom", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="NOT_STARTED"),
        sa.Column("priority", sa.String(10), nullable=False, server_default="NORMAL"),
        sa.Column("deadline", sa.Date()),
        sa.Column("request_message", sa.Text()),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("review_notes", sa.Text()),
        sa.Column("linked_document_id", sa.String(64)),
        sa.Column("uploaded_document_id", sa.String(64)),
        sa.Column("requested_at", sa.DateTime(timezone=True)),
        sa.Column("requested_by_id", sa.String(36)),
        sa.Column("requested_by_name", sa.String(200)),
        sa.Column("linked_at", sa.DateTime(timezone=True)),
        sa.Column("linked_by_id", sa.String(36)),
        sa.Column("linked_by_name", sa.String(200)),
        sa.Column("uploaded_at", sa.DateTime(timezone=True)),
        sa.Column("reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("reviewed_by_id", sa.String(36)),
        sa.Column("reviewed_by_name", sa.String(200)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_slot_service_status", "service_document_slots", ["service_id", "status"])


def downgrade():
    op.drop_index("idx_slot_service_status", table_name="service_document_slots")
    op.drop_table("service_document_slots")
    op.drop_index("idx_history_actor", table_name="service_status_history")
    op.drop_index("idx_history_action", table_name="service_status_history")
    op.drop_index("idx_history_service_changed", table_name="service_status_history")
    op.drop_table("service_status_history")
    op.drop_table("service_assignments")
    op.drop_index("idx_service_client_status", table_name="services")
    op.drop_index("idx_service_assignee", table_name="services")
    op.drop_index("idx_service_status", table_name="services")
    op.drop_table("services")
    op.drop_index("idx_request_client_status", table_name="service_requests")
    op.drop_table("service_requests")
    op.drop_table("clients")
    op.drop_table("staff_members")
