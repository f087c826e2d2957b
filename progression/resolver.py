"""Where a contact currently stands in a sequence, read from its email history.

Progress is never stored: it is recomputed from the email records each time
it is needed, so it cannot drift from what was actually sent or scheduled.
"""
from typing import Iterable, Optional

from .timeparse import now_ms as _now_ms
from .timeparse import to_millis

CANCELLED_EMAIL_STATUSES = frozenset({"rejected", "cancelled"})


def _step_index(email: dict) -> int:
    raw = email.get("step_index")
    try:
        return int(raw) if raw is not None else 0
    except (TypeError, ValueError):
        return 0


def is_step_reached(email: dict, now_ms: int) -> bool:
    status = email.get("status")
    if status == "sent":
        return True
    scheduled = to_millis(email.get("scheduled_send_time")) or 0
    return scheduled <= now_ms and status not in CANCELLED_EMAIL_STATUSES


def resolve_current_step(
    emails: Iterable[dict],
    now_ms: Optional[int] = None,
    step_count: Optional[int] = None,
) -> int:
    """Highest step index reached by any email, or -1 when none is.

    With step_count, the result never points past the last step, so a
    sequence that was shortened after emails went out reads as finished.
    """
    now = _now_ms() if now_ms is None else now_ms
    current = -1
    for email in emails:
        if is_step_reached(email, now):
            current = max(current, _step_index(email))
    if step_count is not None:
        current = min(current, step_count - 1)
    return current


def email_step_indexes(emails: Iterable[dict]) -> set[int]:
    """Step indexes that already have an email record, whatever its status."""
    return {_step_index(email) for email in emails}
