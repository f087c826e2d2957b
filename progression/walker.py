"""Forward walk over a sequence's steps to find the next thing to create."""
import logging
from typing import Collection, Optional, Sequence

from schemas import DelayAnchor, Membership, SequenceStep, StepPlan, WalkOutcome

from .timeparse import to_millis

logger = logging.getLogger(__name__)


def find_next_step(
    steps: Sequence[SequenceStep],
    current_index: int,
    email_steps: Collection[int] = (),
    *,
    tasks_only: bool = False,
) -> StepPlan:
    """Walk forward from current_index + 1 to the next step to materialize.

    Paused steps are skipped without adding their delay. Email steps that
    already have a record are walked past. An email step without one is the
    target in live mode, and blocks the walk in tasks_only mode because only
    the email pipeline may create it.
    """
    cumulative_delay_ms = 0
    for index in range(max(current_index + 1, 0), len(steps)):
        step = steps[index]
        if step.paused:
            continue
        cumulative_delay_ms += step.delay_ms

        if step.is_task_like:
            return StepPlan(
                outcome=WalkOutcome.TARGET,
                step_index=index,
                step=step,
                cumulative_delay_ms=cumulative_delay_ms,
            )
        if step.is_email_like:
            if index in email_steps:
                continue
            outcome = WalkOutcome.BLOCKED if tasks_only else WalkOutcome.TARGET
            return StepPlan(
                outcome=outcome,
                step_index=index,
                step=step,
                cumulative_delay_ms=cumulative_delay_ms,
            )
        logger.debug("Walking past step %s of unknown type %r", index, step.type)

    return StepPlan(outcome=WalkOutcome.COMPLETE, cumulative_delay_ms=cumulative_delay_ms)


def resolve_base_ms(
    anchor: DelayAnchor, membership: Optional[Membership], now_ms: int
) -> int:
    """Moment the cumulative delay is added to."""
    if anchor == DelayAnchor.AT_ENROLLMENT and membership is not None:
        enrolled = to_millis(membership.created_at)
        if enrolled is not None:
            return enrolled
    return now_ms
