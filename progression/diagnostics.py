"""Read-only task report for spotting hidden or misowned tasks."""
import logging
from collections import Counter
from datetime import tzinfo
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.tasks as task_repo
import sequence_config
from schemas import DiagnosticReport, TaskPreview

from .timeparse import now_ms as _now_ms
from .timeparse import scheduled_ms, to_millis

logger = logging.getLogger(__name__)

ADMIN_DEFAULT_LIMIT = 1000
USER_DEFAULT_LIMIT = 500
PREVIEW_SIZE = 50
RECENT_WINDOW_MS = 30 * 24 * 60 * 60 * 1000
_NOT_PENDING = frozenset({"completed", "deleted", "cancelled", "canceled"})


def normalize_status(task: dict) -> str:
    raw = str(task.get("status") or "pending").strip().lower()
    if not raw:
        return "pending"
    return "completed" if raw == "done" else raw


def owner_key(task: dict) -> str:
    return str(
        task.get("owner_id") or task.get("assigned_to") or task.get("created_by") or ""
    ).strip().lower()


def _activity_ms(task: dict) -> int:
    for field in ("updated_at", "timestamp", "created_at"):
        ms = to_millis(task.get(field))
        if ms is not None:
            return ms
    return 0


def _counts(values) -> dict[str, int]:
    return dict(Counter(v or "unknown" for v in values).most_common())


def build_report(
    tasks: list[dict],
    *,
    admin: bool,
    user_email: Optional[str] = None,
    limit: Optional[int] = None,
    now_ms: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> DiagnosticReport:
    """Summarize tasks, most recently touched first. limit=0 means all."""
    now = _now_ms() if now_ms is None else now_ms
    tz = tz or sequence_config.crm_timezone()
    if limit is None:
        limit = ADMIN_DEFAULT_LIMIT if admin else USER_DEFAULT_LIMIT
    limit = max(0, limit)

    ordered = sorted(tasks, key=_activity_ms, reverse=True)
    limited = ordered[:limit] if limit > 0 else ordered
    statuses = [normalize_status(t) for t in limited]

    completed = [t for t, s in zip(limited, statuses) if s == "completed"]
    pending_count = sum(1 for s in statuses if s not in _NOT_PENDING)
    recently = [
        t for t in completed
        if _activity_ms(t) > 0 and now - _activity_ms(t) <= RECENT_WINDOW_MS
    ]
    future = []
    for t in completed:
        due = scheduled_ms(t, tz)
        if due is not None and due > now:
            future.append(t)

    preview = [
        TaskPreview(
            id=str(t.get("id", "")),
            title=t.get("title") or "",
            type=t.get("type") or "",
            status=status,
            owner_id=t.get("owner_id") or "",
            assigned_to=t.get("assigned_to") or "",
            created_by=t.get("created_by") or "",
            due_date=t.get("due_date") or "",
            due_time=t.get("due_time") or "",
            due_timestamp=scheduled_ms(t, tz),
            updated_at=to_millis(t.get("updated_at")),
            timestamp=to_millis(t.get("timestamp")),
            created_at=to_millis(t.get("created_at")),
        )
        for t, status in list(zip(limited, statuses))[:PREVIEW_SIZE]
    ]

    return DiagnosticReport(
        mode="admin" if admin else "user",
        user_email=user_email,
        limit=limit,
        total_fetched=len(tasks),
        total_reported=len(limited),
        status_counts=_counts(statuses),
        type_counts=_counts(str(t.get("type") or "task").strip().lower() for t in limited),
        owner_counts=_counts(owner_key(t) for t in limited) if admin else None,
        pending_count=pending_count,
        completed_count=len(completed),
        completed_recently_count=len(recently),
        future_completed_count=len(future),
        missing_owner_count=sum(1 for t in limited if not owner_key(t)),
        preview=preview,
    )


async def run_report(
    session: AsyncSession,
    *,
    user_email: Optional[str] = None,
    admin: bool = False,
    limit: Optional[int] = None,
) -> DiagnosticReport:
    """Fetch tasks for the user (or everyone, for admin) and summarize them."""
    if not admin and not (user_email and user_email.strip()):
        raise ValueError("Provide a user email or use admin mode")

    if admin:
        tasks = await task_repo.list_tasks(session)
    else:
        tasks = await task_repo.list_for_user(session, user_email)
    logger.info("Fetched %s tasks for %s", len(tasks), "admin" if admin else user_email)
    return build_report(tasks, admin=admin, user_email=user_email, limit=limit)
