"""SQLAlchemy 2.0 ORM models for the sequence progression service.

Covers 7 tables across 2 schemas:
  - crm: sequences, sequence_members, people, contacts (legacy),
         emails, tasks
  - obs: job_run_log

Epoch-millisecond columns (scheduled_send_time, due_timestamp) are kept as
BIGINT because every producer and consumer of those records works in ms.
Email and task ids are deterministic strings (see progression.records).
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    UUID,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    JSON,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    def to_dict(self) -> dict[str, Any]:
        """Column-key dict of this row, values left as their Python types."""
        return {c.key: getattr(self, c.key) for c in self.__mapper__.column_attrs}


# ===========================================================================
# Schema: crm
# ===========================================================================


class OutreachSequence(Base):
    """crm.sequences: reusable outreach workflow definitions.

    steps is the ordered list of step dicts as authored in the sequence
    builder (camelCase keys: id, type, delayMinutes, paused, data).
    """

    __tablename__ = "sequences"
    __table_args__ = {"schema": "crm"}

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    steps: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    owner_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SequenceMember(Base):
    """crm.sequence_members: enrollment of one contact in one sequence."""

    __tablename__ = "sequence_members"
    __table_args__ = (
        UniqueConstraint("sequence_id", "target_id", name="uq_sequence_member_target"),
        {"schema": "crm"},
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Loose references: a membership may outlive its sequence
    sequence_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    target_id: Mapped[str] = mapped_column(Text, nullable=False)
    target_type: Mapped[str] = mapped_column(Text, nullable=False, server_default="people")
    owner_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Person(Base):
    """crm.people: primary person records."""

    __tablename__ = "people"
    __table_args__ = {"schema": "crm"}

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    linkedin_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    owner_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class LegacyContact(Base):
    """crm.contacts: legacy person records, consulted when people has no match."""

    __tablename__ = "contacts"
    __table_args__ = {"schema": "crm"}

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class ScheduledEmail(Base):
    """crm.emails: sequence emails awaiting generation/sending.

    status is owned by the external send pipeline once the row exists.
    """

    __tablename__ = "emails"
    __table_args__ = (
        Index("ix_emails_sequence_contact", "sequence_id", "contact_id"),
        {"schema": "crm"},
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    type: Mapped[str] = mapped_column(Text, nullable=False, server_default="scheduled")
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sequence_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sequence_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_company: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    to_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    step_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_steps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    scheduled_send_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    ai_prompt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_mode: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    owner_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_to: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Task(Base):
    """crm.tasks: human tasks, including sequence steps.

    Legacy rows may carry only due_date/due_time strings and no
    due_timestamp; readers must go through progression.timeparse.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(
            "step_index IS NULL OR step_index >= 0",
            name="ck_task_step_index",
        ),
        Index("ix_tasks_sequence_contact", "sequence_id", "contact_id"),
        {"schema": "crm"},
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    account: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    due_date: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    due_time: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    due_timestamp: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True, server_default="pending")
    sequence_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sequence_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    step_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    step_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_sequence_task: Mapped[bool] = mapped_column(
        Boolean, server_default="false", nullable=False, index=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    owner_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    assigned_to: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    created_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    backfilled: Mapped[bool] = mapped_column(Boolean, server_default="false", nullable=False)
    next_step_created: Mapped[bool] = mapped_column(
        Boolean, server_default="false", nullable=False
    )
    next_step_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    next_step_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    next_step_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    next_step_created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# ===========================================================================
# Schema: obs
# ===========================================================================


class JobRunLog(Base):
    """obs.job_run_log: one row per maintenance/batch job invocation."""

    __tablename__ = "job_run_log"
    __table_args__ = {"schema": "obs"}

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    job_name: Mapped[str] = mapped_column(Text, nullable=False)
    dry_run: Mapped[bool] = mapped_column(Boolean, server_default="false", nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    success: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    summary: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "Base",
    # crm
    "OutreachSequence",
    "SequenceMember",
    "Person",
    "LegacyContact",
    "ScheduledEmail",
    "Task",
    # obs
    "JobRunLog",
]
