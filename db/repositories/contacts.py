"""Contact directory: one lookup over the people table and the legacy contacts table."""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import LegacyContact, Person
from schemas import ContactRecord

logger = logging.getLogger(__name__)


async def resolve(session: AsyncSession, contact_id: str) -> Optional[ContactRecord]:
    """Return the contact with this id from people, else legacy contacts, else None."""
    if not contact_id:
        return None

    person = await session.get(Person, contact_id)
    if person is not None:
        return ContactRecord(
            id=person.id,
            first_name=person.first_name,
            last_name=person.last_name,
            name=person.name,
            company=person.company,
            email=person.email,
        )

    legacy = await session.get(LegacyContact, contact_id)
    if legacy is not None:
        logger.debug("Contact %s resolved from legacy contacts table", contact_id)
        return ContactRecord(
            id=legacy.id,
            first_name=legacy.first_name,
            last_name=legacy.last_name,
            name=legacy.name,
            company=legacy.company_name,
            email=legacy.email,
        )
    return None
