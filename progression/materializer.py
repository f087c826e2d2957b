"""Turns the next step of a sequence into a real email or task record.

Two entry points drive it:
- advance_after_completion: a sequence task was completed, create what follows
- activate_sequence: contacts were just enrolled, create their first step(s)

Every write goes through a deterministic id with ON CONFLICT DO NOTHING, so
replays and concurrent callers are harmless.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.contacts as contact_repo
import db.repositories.emails as email_repo
import db.repositories.members as member_repo
import db.repositories.sequences as sequence_repo
import db.repositories.tasks as task_repo
import sequence_config
from schemas import (
    ActivationReport,
    AdvanceResult,
    DelayAnchor,
    SequenceDefinition,
    SkipEntry,
    StepPlan,
    WalkOutcome,
)

from .errors import (
    ContactNotFoundError,
    SequenceNotFoundError,
    TaskNotFoundError,
)
from .records import build_email_payload, build_task_payload, resolve_ownership
from .resolver import email_step_indexes
from .timeparse import now_ms as _now_ms
from .walker import find_next_step, resolve_base_ms

logger = logging.getLogger(__name__)

MSG_NOT_SEQUENCE_TASK = "Not a sequence task, no next step to create"
MSG_ALREADY_CREATED = "Next step already created"
MSG_MEMBER_REMOVED = "Contact removed from sequence - no next step created"
MSG_UNRESOLVED_INDEX = "Could not resolve current step index - no next step created"
MSG_SEQUENCE_COMPLETE = "Sequence completed - no more steps"
MSG_NO_EMAIL = "Contact has no email, email step skipped"


def resolve_task_step_index(task: dict, sequence: SequenceDefinition) -> Optional[int]:
    """Index of the step a task was created for, or None if out of range.

    A step_id that matches a step wins over the stored step_index, which wins
    over the numeric suffix of the task id.
    """
    index = None
    step_id = task.get("step_id")
    if step_id:
        for i, step in enumerate(sequence.steps):
            if step.id == step_id:
                index = i
                break

    if index is None and task.get("step_index") is not None:
        try:
            index = int(task["step_index"])
        except (TypeError, ValueError):
            index = None

    if index is None:
        suffix = str(task.get("id", "")).rsplit("-", 1)[-1]
        if suffix.isdigit():
            index = int(suffix)

    if index is None or not 0 <= index < len(sequence.steps):
        return None
    return index


async def materialize_step(
    session: AsyncSession,
    *,
    sequence: SequenceDefinition,
    plan: StepPlan,
    contact_id: str,
    anchor: DelayAnchor,
    now_ms: int,
    task_owner: Optional[str] = None,
    task_assignee: Optional[str] = None,
    default_priority: Optional[str] = None,
) -> AdvanceResult:
    """Create the record for plan's target step.

    The membership is re-read first: if the contact left the sequence since
    the plan was made, nothing is written.

    Raises:
        ContactNotFoundError: neither people nor legacy contacts has the id.
    """
    membership = await member_repo.get_membership(session, sequence.id, contact_id)
    if membership is None:
        logger.info(
            "Contact %s is no longer a member of sequence %s, skipping next step creation",
            contact_id, sequence.id,
        )
        return AdvanceResult(message=MSG_MEMBER_REMOVED)

    contact = await contact_repo.resolve(session, contact_id)
    if contact is None:
        raise ContactNotFoundError(contact_id)

    step = plan.step
    scheduled = resolve_base_ms(anchor, membership, now_ms) + plan.cumulative_delay_ms
    ownership = resolve_ownership(membership.owner_id, task_owner, task_assignee)

    if step.is_email_like:
        if not contact.email:
            logger.info("Contact %s has no email, skipping email step", contact_id)
            return AdvanceResult(message=MSG_NO_EMAIL)
        payload = build_email_payload(
            sequence=sequence,
            step=step,
            step_index=plan.step_index,
            contact=contact,
            scheduled_ms=scheduled,
            ownership=ownership,
        )
        created = await email_repo.create_scheduled(session, payload)
        logger.info("Email %s for step %s (created=%s)", payload["id"], plan.step_index, created)
        return AdvanceResult(
            next_step_type="email",
            email_id=payload["id"],
            scheduled_time=scheduled,
            step_index=plan.step_index,
            created=created,
        )

    payload = build_task_payload(
        sequence=sequence,
        step=step,
        step_index=plan.step_index,
        contact=contact,
        scheduled_ms=scheduled,
        ownership=ownership,
        default_priority=default_priority or sequence_config.sequence_task_priority(),
        tz=sequence_config.crm_timezone(),
    )
    created = await task_repo.create_task(session, payload)
    logger.info("Task %s for step %s (created=%s)", payload["id"], plan.step_index, created)
    return AdvanceResult(
        next_step_type="task",
        task_id=payload["id"],
        scheduled_time=scheduled,
        step_index=plan.step_index,
        created=created,
    )


async def advance_after_completion(
    session: AsyncSession,
    task_id: str,
    *,
    now_ms: Optional[int] = None,
    anchor: DelayAnchor = DelayAnchor.AT_COMPLETION,
) -> AdvanceResult:
    """Create the step that follows a completed sequence task.

    Raises:
        TaskNotFoundError: no task with this id.
        SequenceNotFoundError: the task points at a sequence that is gone.
        MalformedSequenceError: the sequence's steps do not validate.
        ContactNotFoundError: the task's contact cannot be resolved.
    """
    now = _now_ms() if now_ms is None else now_ms
    logger.info("Processing completed task: %s", task_id)

    task = await task_repo.get_by_id(session, task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    sequence_id = task.get("sequence_id")
    if not task.get("is_sequence_task") or not sequence_id or task.get("step_index") is None:
        return AdvanceResult(message=MSG_NOT_SEQUENCE_TASK)

    if task.get("next_step_created") and task.get("next_step_type") and task.get("next_step_id"):
        is_email = task["next_step_type"] == "email"
        return AdvanceResult(
            message=MSG_ALREADY_CREATED,
            next_step_type=task["next_step_type"],
            email_id=task["next_step_id"] if is_email else None,
            task_id=None if is_email else task["next_step_id"],
            step_index=task.get("next_step_index"),
        )

    contact_id = task.get("contact_id")
    if contact_id:
        membership = await member_repo.get_membership(session, sequence_id, contact_id)
        if membership is None:
            logger.info(
                "Contact %s is no longer a member of sequence %s, skipping next step creation",
                contact_id, sequence_id,
            )
            return AdvanceResult(message=MSG_MEMBER_REMOVED)

    sequence = await sequence_repo.get_by_id(session, sequence_id)
    if sequence is None:
        raise SequenceNotFoundError(sequence_id)

    current_index = resolve_task_step_index(task, sequence)
    if current_index is None:
        logger.warning(
            "Could not resolve current step index for task %s (step_index=%s, step_id=%s)",
            task_id, task.get("step_index"), task.get("step_id"),
        )
        return AdvanceResult(message=MSG_UNRESOLVED_INDEX)

    if not contact_id:
        raise ContactNotFoundError("")

    emails = await email_repo.get_for_member(session, sequence_id, contact_id)
    plan = find_next_step(sequence.steps, current_index, email_step_indexes(emails))
    if plan.outcome == WalkOutcome.COMPLETE:
        logger.info("No more steps in sequence %s for task %s", sequence_id, task_id)
        return AdvanceResult(message=MSG_SEQUENCE_COMPLETE)

    logger.info(
        "Next step found: index %s, type %s, delay %sms",
        plan.step_index, plan.step.type, plan.cumulative_delay_ms,
    )
    result = await materialize_step(
        session,
        sequence=sequence,
        plan=plan,
        contact_id=contact_id,
        anchor=anchor,
        now_ms=now,
        task_owner=task.get("owner_id"),
        task_assignee=task.get("assigned_to"),
    )
    if result.next_step_type is not None:
        await task_repo.mark_next_step_created(
            session,
            task_id,
            result.next_step_type,
            result.email_id or result.task_id,
            result.step_index,
        )
    return result


@dataclass
class _ContactActivation:
    newly_enrolled: bool = False
    emails_created: int = 0
    tasks_created: int = 0
    skip_reason: Optional[str] = None


async def _activate_contact(
    session: AsyncSession,
    sequence: SequenceDefinition,
    contact_id: str,
    owner: Optional[str],
    anchor: DelayAnchor,
    now_ms: int,
) -> _ContactActivation:
    """Enroll one contact and create its first step(s).

    Counts are returned rather than added to the report so that a savepoint
    rollback leaves no trace of writes that did not survive.
    """
    _, created = await member_repo.enroll(session, sequence.id, contact_id, owner)
    outcome = _ContactActivation(newly_enrolled=created)

    emails = await email_repo.get_for_member(session, sequence.id, contact_id)
    email_steps = email_step_indexes(emails)
    plan = find_next_step(sequence.steps, -1, email_steps)
    if plan.outcome == WalkOutcome.COMPLETE:
        outcome.skip_reason = "No steps to create"
        return outcome

    result = await materialize_step(
        session,
        sequence=sequence,
        plan=plan,
        contact_id=contact_id,
        anchor=anchor,
        now_ms=now_ms,
        task_owner=owner,
    )
    if result.next_step_type is None:
        outcome.skip_reason = result.message
        return outcome
    if result.next_step_type == "task":
        outcome.tasks_created += int(bool(result.created))
        return outcome

    outcome.emails_created += int(bool(result.created))
    # The first task runs alongside the opening email rather than after it
    email_steps.add(plan.step_index)
    task_plan = find_next_step(sequence.steps, -1, email_steps, tasks_only=True)
    if task_plan.outcome == WalkOutcome.TARGET:
        task_result = await materialize_step(
            session,
            sequence=sequence,
            plan=task_plan,
            contact_id=contact_id,
            anchor=anchor,
            now_ms=now_ms,
            task_owner=owner,
        )
        outcome.tasks_created += int(bool(task_result.created))
    return outcome


async def activate_sequence(
    session: AsyncSession,
    sequence_id: str,
    contact_ids: Iterable[str],
    owner_id: Optional[str] = None,
    *,
    now_ms: Optional[int] = None,
    anchor: DelayAnchor = DelayAnchor.AT_ENROLLMENT,
) -> ActivationReport:
    """Enroll contacts and create the first step for each.

    When the first step is an email, the first task step after it is
    created as well. Each contact runs in its own savepoint; a failure is
    recorded as a skip and never stops the rest of the batch.

    Raises:
        SequenceNotFoundError: no sequence with this id.
        MalformedSequenceError: the sequence's steps do not validate.
    """
    now = _now_ms() if now_ms is None else now_ms
    sequence = await sequence_repo.get_by_id(session, sequence_id)
    if sequence is None:
        raise SequenceNotFoundError(sequence_id)

    report = ActivationReport(sequence_id=sequence_id)
    owner = owner_id.strip().lower() if owner_id and owner_id.strip() else None

    for contact_id in dict.fromkeys(c for c in contact_ids if c):
        try:
            async with session.begin_nested():
                outcome = await _activate_contact(
                    session, sequence, contact_id, owner, anchor, now
                )
        except (ContactNotFoundError, SQLAlchemyError) as e:
            logger.warning("Activation skipped contact %s: %s", contact_id, e, exc_info=True)
            report.skipped.append(SkipEntry(
                reason=str(e), contact_id=contact_id, sequence_id=sequence_id,
            ))
            continue

        if outcome.newly_enrolled:
            report.enrolled += 1
        else:
            report.already_enrolled += 1
        report.emails_created += outcome.emails_created
        report.tasks_created += outcome.tasks_created
        if outcome.skip_reason:
            report.skipped.append(SkipEntry(
                reason=outcome.skip_reason, contact_id=contact_id, sequence_id=sequence_id,
            ))

    logger.info(
        "Activated sequence %s: enrolled=%s already=%s emails=%s tasks=%s skipped=%s",
        sequence_id, report.enrolled, report.already_enrolled,
        report.emails_created, report.tasks_created, len(report.skipped),
    )
    return report
