"""Sequence membership repository: enrollment and the still-active check."""
import logging
from typing import Iterable, Optional

from sqlalchemy import delete, select, tuple_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import SequenceMember
from schemas import Membership

logger = logging.getLogger(__name__)


async def get_membership(
    session: AsyncSession, sequence_id: str, target_id: str
) -> Optional[Membership]:
    """Return the membership of target_id in sequence_id, or None if removed."""
    result = await session.execute(
        select(SequenceMember)
        .where(SequenceMember.sequence_id == sequence_id)
        .where(SequenceMember.target_id == target_id)
        .limit(1)
    )
    row = result.scalar_one_or_none()
    return Membership.model_validate(row) if row is not None else None


async def get_all(session: AsyncSession) -> list[Membership]:
    """Return every membership, oldest enrollment first."""
    result = await session.execute(
        select(SequenceMember).order_by(SequenceMember.created_at, SequenceMember.id)
    )
    return [Membership.model_validate(row) for row in result.scalars().all()]


async def get_active_pairs(
    session: AsyncSession, pairs: Iterable[tuple[str, str]]
) -> set[tuple[str, str]]:
    """Return the subset of (sequence_id, target_id) pairs still enrolled."""
    pairs = list(set(pairs))
    if not pairs:
        return set()
    result = await session.execute(
        select(SequenceMember.sequence_id, SequenceMember.target_id).where(
            tuple_(SequenceMember.sequence_id, SequenceMember.target_id).in_(pairs)
        )
    )
    return {(row[0], row[1]) for row in result.all()}


async def enroll(
    session: AsyncSession,
    sequence_id: str,
    target_id: str,
    owner_id: Optional[str] = None,
) -> tuple[Membership, bool]:
    """Enroll a contact. Idempotent; returns (membership, newly_created)."""
    stmt = (
        pg_insert(SequenceMember)
        .values(sequence_id=sequence_id, target_id=target_id, owner_id=owner_id)
        .on_conflict_do_nothing(index_elements=["sequence_id", "target_id"])
        .returning(SequenceMember)
    )
    result = await session.execute(stmt)
    await session.flush()
    row = result.scalar_one_or_none()
    if row is not None:
        return Membership.model_validate(row), True
    # Already enrolled, fetch the existing row
    existing = await get_membership(session, sequence_id, target_id)
    return existing, False


async def remove(session: AsyncSession, sequence_id: str, target_id: str) -> int:
    """Remove a contact from a sequence. Returns the number of rows deleted."""
    result = await session.execute(
        delete(SequenceMember)
        .where(SequenceMember.sequence_id == sequence_id)
        .where(SequenceMember.target_id == target_id)
        .returning(SequenceMember.id)
    )
    await session.flush()
    count = len(result.fetchall())
    if count:
        logger.info("Removed %s from sequence %s", target_id, sequence_id)
    return count
