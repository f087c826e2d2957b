"""Initial schema: crm and obs tables for sequence progression.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS crm")
    op.execute("CREATE SCHEMA IF NOT EXISTS obs")

    # ─── CRM Schema ──────────────────────────────────────────────────────────

    op.create_table(
        "sequences",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("name", sa.Text, nullable=False, server_default=""),
        sa.Column("steps", sa.JSON, nullable=False),
        sa.Column("owner_id", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        schema="crm",
    )

    # No FK to sequences: a membership may outlive its sequence
    op.create_table(
        "sequence_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("sequence_id", sa.Text, nullable=False),
        sa.Column("target_id", sa.Text, nullable=False),
        sa.Column("target_type", sa.Text, nullable=False, server_default="people"),
        sa.Column("owner_id", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("sequence_id", "target_id", name="uq_sequence_member_target"),
        schema="crm",
    )
    op.create_index(
        "ix_crm_sequence_members_sequence_id", "sequence_members", ["sequence_id"], schema="crm"
    )

    op.create_table(
        "people",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column("last_name", sa.Text, nullable=True),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("company", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("linkedin_url", sa.Text, nullable=True),
        sa.Column("owner_id", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        schema="crm",
    )

    op.create_table(
        "contacts",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column("last_name", sa.Text, nullable=True),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("company_name", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        schema="crm",
    )

    op.create_table(
        "emails",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("type", sa.Text, nullable=False, server_default="scheduled"),
        sa.Column("status", sa.Text, nullable=True),
        sa.Column("sequence_id", sa.Text, nullable=True),
        sa.Column("sequence_name", sa.Text, nullable=True),
        sa.Column("contact_id", sa.Text, nullable=True),
        sa.Column("contact_name", sa.Text, nullable=True),
        sa.Column("contact_company", sa.Text, nullable=True),
        sa.Column("to_address", sa.Text, nullable=True),
        sa.Column("step_index", sa.Integer, nullable=True),
        sa.Column("total_steps", sa.Integer, nullable=True),
        sa.Column("scheduled_send_time", sa.BigInteger, nullable=True),
        sa.Column("ai_prompt", sa.Text, nullable=True),
        sa.Column("ai_mode", sa.Text, nullable=True),
        sa.Column("owner_id", sa.Text, nullable=True),
        sa.Column("assigned_to", sa.Text, nullable=True),
        sa.Column("created_by", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        schema="crm",
    )
    op.create_index(
        "ix_emails_sequence_contact", "emails", ["sequence_id", "contact_id"], schema="crm"
    )

    op.create_table(
        "tasks",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("title", sa.Text, nullable=True),
        sa.Column("contact", sa.Text, nullable=True),
        sa.Column("contact_id", sa.Text, nullable=True),
        sa.Column("account", sa.Text, nullable=True),
        sa.Column("type", sa.Text, nullable=True),
        sa.Column("priority", sa.Text, nullable=True),
        sa.Column("due_date", sa.Text, nullable=True),
        sa.Column("due_time", sa.Text, nullable=True),
        sa.Column("due_timestamp", sa.BigInteger, nullable=True),
        sa.Column("status", sa.Text, nullable=True, server_default="pending"),
        sa.Column("sequence_id", sa.Text, nullable=True),
        sa.Column("sequence_name", sa.Text, nullable=True),
        sa.Column("step_id", sa.Text, nullable=True),
        sa.Column("step_index", sa.Integer, nullable=True),
        sa.Column("is_sequence_task", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("owner_id", sa.Text, nullable=True),
        sa.Column("assigned_to", sa.Text, nullable=True),
        sa.Column("created_by", sa.Text, nullable=True),
        sa.Column("backfilled", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("next_step_created", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("next_step_type", sa.Text, nullable=True),
        sa.Column("next_step_id", sa.Text, nullable=True),
        sa.Column("next_step_index", sa.Integer, nullable=True),
        sa.Column("next_step_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("step_index IS NULL OR step_index >= 0", name="ck_task_step_index"),
        schema="crm",
    )
    op.create_index(
        "ix_tasks_sequence_contact", "tasks", ["sequence_id", "contact_id"], schema="crm"
    )
    op.create_index("ix_crm_tasks_is_sequence_task", "tasks", ["is_sequence_task"], schema="crm")
    op.create_index("ix_crm_tasks_owner_id", "tasks", ["owner_id"], schema="crm")
    op.create_index("ix_crm_tasks_assigned_to", "tasks", ["assigned_to"], schema="crm")
    op.create_index("ix_crm_tasks_created_by", "tasks", ["created_by"], schema="crm")

    # ─── OBS Schema ──────────────────────────────────────────────────────────

    op.create_table(
        "job_run_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("job_name", sa.Text, nullable=False),
        sa.Column("dry_run", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer, nullable=True),
        sa.Column("success", sa.Boolean, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("summary", sa.JSON, nullable=True),
        schema="obs",
    )


def downgrade() -> None:
    op.drop_table("job_run_log", schema="obs")
    op.drop_index("ix_crm_tasks_created_by", table_name="tasks", schema="crm")
    op.drop_index("ix_crm_tasks_assigned_to", table_name="tasks", schema="crm")
    op.drop_index("ix_crm_tasks_owner_id", table_name="tasks", schema="crm")
    op.drop_index("ix_crm_tasks_is_sequence_task", table_name="tasks", schema="crm")
    op.drop_index("ix_tasks_sequence_contact", table_name="tasks", schema="crm")
    op.drop_table("tasks", schema="crm")
    op.drop_index("ix_emails_sequence_contact", table_name="emails", schema="crm")
    op.drop_table("emails", schema="crm")
    op.drop_table("contacts", schema="crm")
    op.drop_table("people", schema="crm")
    op.drop_index("ix_crm_sequence_members_sequence_id", table_name="sequence_members", schema="crm")
    op.drop_table("sequence_members", schema="crm")
    op.drop_table("sequences", schema="crm")
