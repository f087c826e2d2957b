"""Scheduled sequence email repository: history reads and the email sink."""
import logging
from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ScheduledEmail

logger = logging.getLogger(__name__)


def member_key(sequence_id: str, contact_id: str) -> str:
    return f"{sequence_id}_{contact_id}"


async def get_for_member(
    session: AsyncSession, sequence_id: str, contact_id: str
) -> list[dict]:
    """Return every email record for one (sequence, contact) pair."""
    result = await session.execute(
        select(ScheduledEmail)
        .where(ScheduledEmail.sequence_id == sequence_id)
        .where(ScheduledEmail.contact_id == contact_id)
    )
    return [row.to_dict() for row in result.scalars().all()]


async def get_scheduled_by_member(session: AsyncSession) -> dict[str, list[dict]]:
    """Return all scheduled-type emails indexed by 'sequenceId_contactId'."""
    result = await session.execute(
        select(ScheduledEmail).where(ScheduledEmail.type == "scheduled")
    )
    by_member: dict[str, list[dict]] = defaultdict(list)
    for row in result.scalars().all():
        if row.sequence_id and row.contact_id:
            by_member[member_key(row.sequence_id, row.contact_id)].append(row.to_dict())
    return dict(by_member)


async def create_scheduled(session: AsyncSession, data: dict) -> bool:
    """Insert a scheduled email unless one with the same id already exists.

    Returns True if a row was written, False if the id was already taken.
    """
    stmt = (
        pg_insert(ScheduledEmail)
        .values(**data)
        .on_conflict_do_nothing(index_elements=["id"])
        .returning(ScheduledEmail.id)
    )
    result = await session.execute(stmt)
    await session.flush()
    created = result.scalar_one_or_none() is not None
    if not created:
        logger.info(
            "Email %s already exists for step %s", data.get("id"), data.get("step_index")
        )
    return created
