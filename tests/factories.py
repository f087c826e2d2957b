"""Builders for the schema objects the progression tests pass around."""
from datetime import datetime, timezone

from schemas import ContactRecord, Membership, SequenceDefinition

ENROLLED_AT = datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)
ENROLLED_MS = int(ENROLLED_AT.timestamp() * 1000)


def make_sequence(steps, sequence_id="seq-abc", name="Q1 Outreach") -> SequenceDefinition:
    return SequenceDefinition(id=sequence_id, name=name, steps=steps)


def make_membership(
    target_id="p1", sequence_id="seq-abc", owner_id="Rep@Acme.com", member_id="m1"
) -> Membership:
    return Membership(
        id=member_id,
        sequence_id=sequence_id,
        target_id=target_id,
        owner_id=owner_id,
        created_at=ENROLLED_AT,
    )


def make_contact(contact_id="p1", email="ada@acme.com") -> ContactRecord:
    return ContactRecord(
        id=contact_id,
        first_name="Ada",
        last_name="Lovelace",
        company="Acme",
        email=email,
    )
