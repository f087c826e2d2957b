"""Sequence definition repository (read side)."""
import logging
from typing import Optional, Union

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import OutreachSequence
from progression.errors import MalformedSequenceError
from schemas import SequenceDefinition

logger = logging.getLogger(__name__)


def to_definition(row: OutreachSequence) -> SequenceDefinition:
    """Validate a stored sequence; raise MalformedSequenceError on bad steps."""
    try:
        return SequenceDefinition.model_validate(row)
    except ValidationError as exc:
        raise MalformedSequenceError(row.id, str(exc)) from exc


async def get_by_id(session: AsyncSession, sequence_id: str) -> Optional[SequenceDefinition]:
    """Return the sequence definition, or None if it does not exist."""
    row = await session.get(OutreachSequence, sequence_id)
    if row is None:
        return None
    return to_definition(row)


async def get_all(
    session: AsyncSession,
) -> dict[str, Union[SequenceDefinition, MalformedSequenceError]]:
    """Return every sequence keyed by id.

    A sequence whose steps fail validation maps to its MalformedSequenceError
    instead of raising, so one bad definition cannot stop a full scan.
    """
    result = await session.execute(select(OutreachSequence))
    sequences: dict[str, Union[SequenceDefinition, MalformedSequenceError]] = {}
    for row in result.scalars().all():
        try:
            sequences[row.id] = to_definition(row)
        except MalformedSequenceError as exc:
            logger.warning("Sequence %s is malformed: %s", row.id, exc)
            sequences[row.id] = exc
    return sequences
