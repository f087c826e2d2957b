"""Backfill reconciler: creates the missing next task for every enrollment.

Walks all memberships, works out where each contact stands from its email
history, and queues the next task step that has no task yet. Email steps are
never created here: a member whose next step is an unsent email is reported
as waiting on it.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.contacts as contact_repo
import db.repositories.emails as email_repo
import db.repositories.members as member_repo
import db.repositories.sequences as sequence_repo
import db.repositories.tasks as task_repo
import sequence_config
from schemas import BackfillReport, DelayAnchor, Membership, SkipEntry, WalkOutcome

from .errors import MalformedSequenceError
from .records import build_task_payload, resolve_ownership
from .resolver import email_step_indexes, resolve_current_step
from .timeparse import now_ms as _now_ms
from .walker import find_next_step, resolve_base_ms

logger = logging.getLogger(__name__)

MAX_REPORTED_SKIPS = 10


@dataclass
class _QueuedTask:
    membership: Membership
    payload: dict


def _skip(membership: Membership, reason: str) -> SkipEntry:
    return SkipEntry(
        reason=reason,
        member_id=str(membership.id) if membership.id is not None else None,
        contact_id=membership.target_id,
        sequence_id=membership.sequence_id,
    )


async def _plan_member(
    session: AsyncSession,
    membership: Membership,
    sequence,
    emails: list[dict],
    seen: set[str],
    *,
    anchor: DelayAnchor,
    now_ms: int,
    priority: str,
) -> tuple[Optional[dict], Optional[str]]:
    """Return (task payload, None) or (None, skip reason) for one membership."""
    if isinstance(sequence, MalformedSequenceError):
        return None, f"Malformed sequence: {sequence.detail}"
    if sequence is None or not sequence.steps:
        return None, "Sequence not found or has no steps"

    current = resolve_current_step(emails, now_ms, step_count=len(sequence.steps))
    plan = find_next_step(sequence.steps, current, email_step_indexes(emails), tasks_only=True)
    if plan.outcome == WalkOutcome.BLOCKED:
        return None, f"Waiting for email step {plan.step_index} to be created"
    if plan.outcome == WalkOutcome.COMPLETE:
        return None, "No pending task steps"

    key = task_repo.step_key(membership.sequence_id, membership.target_id, plan.step_index)
    if key in seen:
        return None, "Task already exists"

    try:
        contact = await contact_repo.resolve(session, membership.target_id)
    except SQLAlchemyError as e:
        logger.warning("Failed to load contact %s: %s", membership.target_id, e)
        contact = None
    if contact is None:
        return None, "Contact not found"

    seen.add(key)
    scheduled = resolve_base_ms(anchor, membership, now_ms) + plan.cumulative_delay_ms
    payload = build_task_payload(
        sequence=sequence,
        step=plan.step,
        step_index=plan.step_index,
        contact=contact,
        scheduled_ms=scheduled,
        ownership=resolve_ownership(membership.owner_id),
        default_priority=priority,
        tz=sequence_config.crm_timezone(),
        backfilled=True,
    )
    return payload, None


async def run_backfill(
    session: AsyncSession,
    *,
    dry_run: bool = False,
    anchor: DelayAnchor = DelayAnchor.AT_ENROLLMENT,
    now_ms: Optional[int] = None,
) -> BackfillReport:
    """Reconcile every membership against its tasks.

    Writes go out in chunks, each committed before the next starts. Right
    before a chunk is written its memberships are re-read, and any contact
    removed in the meantime is skipped instead of written.
    """
    now = _now_ms() if now_ms is None else now_ms
    priority = sequence_config.backfill_task_priority()

    sequences = await sequence_repo.get_all(session)
    memberships = await member_repo.get_all(session)
    emails_by_member = await email_repo.get_scheduled_by_member(session)
    seen = await task_repo.get_sequence_task_keys(session)
    logger.info(
        "Backfill scanning %s memberships across %s sequences (%s existing sequence tasks)",
        len(memberships), len(sequences), len(seen),
    )

    queued: list[_QueuedTask] = []
    skipped: list[SkipEntry] = []
    for membership in memberships:
        emails = emails_by_member.get(
            email_repo.member_key(membership.sequence_id, membership.target_id), []
        )
        try:
            payload, reason = await _plan_member(
                session,
                membership,
                sequences.get(membership.sequence_id),
                emails,
                seen,
                anchor=anchor,
                now_ms=now,
                priority=priority,
            )
        except Exception as e:
            logger.warning("Backfill failed for member %s: %s", membership.id, e, exc_info=True)
            payload, reason = None, str(e)
        if payload is None:
            skipped.append(_skip(membership, reason))
        else:
            queued.append(_QueuedTask(membership, payload))

    created = 0
    if not dry_run:
        batch_size = sequence_config.backfill_batch_size()
        for start in range(0, len(queued), batch_size):
            chunk = queued[start:start + batch_size]
            active = await member_repo.get_active_pairs(
                session, [(q.membership.sequence_id, q.membership.target_id) for q in chunk]
            )
            rows = []
            for q in chunk:
                if (q.membership.sequence_id, q.membership.target_id) in active:
                    rows.append(q.payload)
                else:
                    skipped.append(_skip(q.membership, "Membership removed before write"))
            created += await task_repo.create_tasks(session, rows)
            await session.commit()
            logger.info("Created batch %s (%s tasks)", start // batch_size + 1, len(rows))

    message = (
        f"Dry run complete. Would create {len(queued)} tasks."
        if dry_run
        else f"Backfill complete. Created {created} tasks."
    )
    logger.info(message)
    return BackfillReport(
        dry_run=dry_run,
        tasks_to_create=len(queued),
        created=created,
        skipped=len(skipped),
        skipped_reasons=skipped[:MAX_REPORTED_SKIPS],
        message=message,
    )
