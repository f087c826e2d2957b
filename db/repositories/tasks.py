"""Task repository: the task sink plus the scans used by backfill, dedup and reports."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Task

logger = logging.getLogger(__name__)


def step_key(sequence_id: str, contact_id: str, step_index: int) -> str:
    return f"{sequence_id}_{contact_id}_{step_index}"


async def get_by_id(session: AsyncSession, task_id: str) -> Optional[dict]:
    """Return the task as a dict, or None."""
    row = await session.get(Task, task_id)
    return row.to_dict() if row is not None else None


async def get_sequence_task_keys(session: AsyncSession) -> set[str]:
    """Return 'sequenceId_contactId_stepIndex' for every sequence task, any status."""
    result = await session.execute(
        select(Task.sequence_id, Task.contact_id, Task.step_index)
        .where(Task.is_sequence_task == True)  # noqa: E712
    )
    return {
        step_key(seq_id, contact_id, step_index)
        for seq_id, contact_id, step_index in result.all()
        if seq_id and contact_id and step_index is not None
    }


async def list_tasks(session: AsyncSession, only_flagged: bool = False) -> list[dict]:
    """Return all tasks, or only those flagged is_sequence_task."""
    stmt = select(Task)
    if only_flagged:
        stmt = stmt.where(Task.is_sequence_task == True)  # noqa: E712
    result = await session.execute(stmt)
    return [row.to_dict() for row in result.scalars().all()]


async def list_for_user(session: AsyncSession, user_email: str) -> list[dict]:
    """Return tasks owned by, assigned to, or created by this user (deduplicated)."""
    email = user_email.strip().lower()
    result = await session.execute(
        select(Task).where(
            or_(Task.owner_id == email, Task.assigned_to == email, Task.created_by == email)
        )
    )
    return [row.to_dict() for row in result.scalars().unique().all()]


async def create_task(session: AsyncSession, data: dict) -> bool:
    """Insert a task unless one with the same id already exists.

    Returns True if a row was written, False if the id was already taken.
    """
    stmt = (
        pg_insert(Task)
        .values(**data)
        .on_conflict_do_nothing(index_elements=["id"])
        .returning(Task.id)
    )
    result = await session.execute(stmt)
    await session.flush()
    created = result.scalar_one_or_none() is not None
    if not created:
        logger.info(
            "Task %s already exists for step %s", data.get("id"), data.get("step_index")
        )
    return created


async def create_tasks(session: AsyncSession, rows: list[dict]) -> int:
    """Bulk-insert tasks, skipping ids that already exist. Returns rows written."""
    if not rows:
        return 0
    stmt = (
        pg_insert(Task)
        .values(rows)
        .on_conflict_do_nothing(index_elements=["id"])
        .returning(Task.id)
    )
    result = await session.execute(stmt)
    await session.flush()
    return len(result.fetchall())


async def delete_by_ids(session: AsyncSession, task_ids: list[str]) -> int:
    """Hard-delete tasks by id. Returns the count deleted."""
    if not task_ids:
        return 0
    result = await session.execute(
        delete(Task).where(Task.id.in_(task_ids)).returning(Task.id)
    )
    await session.flush()
    return len(result.fetchall())


async def mark_next_step_created(
    session: AsyncSession,
    task_id: str,
    next_step_type: str,
    next_step_id: str,
    next_step_index: int,
) -> bool:
    """Record on a completed task which step it produced.

    Best effort: runs in a savepoint so a failure here cannot undo the
    record that was just created. Returns False (and logs) on failure.
    """
    try:
        async with session.begin_nested():
            await session.execute(
                update(Task)
                .where(Task.id == task_id)
                .values(
                    next_step_created=True,
                    next_step_type=next_step_type,
                    next_step_id=next_step_id,
                    next_step_index=next_step_index,
                    next_step_created_at=datetime.now(timezone.utc),
                )
            )
        return True
    except SQLAlchemyError as e:
        logger.warning(
            "Failed to persist next-step metadata on task %s: %s", task_id, e, exc_info=True
        )
        return False
