"""Dedup guard: removes duplicate pending sequence tasks per contact.

Each contact should have at most one pending sequence task. When several
exist, the earliest scheduled one is kept and later-or-equal ones are
deleted. A duplicate scheduled before the kept task cannot exist, because the
kept task is the first in sort order.
"""
import logging
import math
from dataclasses import dataclass
from datetime import tzinfo
from typing import Callable, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

import db.repositories.tasks as task_repo
import sequence_config
from schemas import DedupPreviewGroup, DedupPreviewItem, DedupReport

from .timeparse import iso_or_empty, scheduled_ms, to_millis

logger = logging.getLogger(__name__)

DONE_STATUSES = frozenset({"completed", "done", "cancelled", "canceled", "deleted"})
PREVIEW_GROUPS = 40
PREVIEW_DELETES_PER_GROUP = 10


@dataclass
class _Candidate:
    task: dict
    doc_id: str
    scheduled_ms: float
    created_ms: int

    @property
    def sort_key(self):
        return (self.scheduled_ms, self.created_ms, self.doc_id)


@dataclass
class DuplicateGroup:
    contact_key: str
    keep: _Candidate
    delete: list[_Candidate]


def _norm(value) -> str:
    return str(value or "").strip().lower()


def looks_like_sequence_task(task: dict) -> bool:
    if task.get("is_sequence_task") is True:
        return True
    if task.get("sequence_id"):
        return True
    return _norm(task.get("priority")) == "sequence"


def is_pending(task: dict) -> bool:
    return _norm(task.get("status") or "pending") not in DONE_STATUSES


def contact_key(task: dict) -> str:
    """Contact id when present, else name|company|owner of whatever is known."""
    contact_id = _norm(task.get("contact_id") or task.get("target_id"))
    if contact_id:
        return contact_id
    parts = [
        _norm(task.get("contact") or task.get("contact_name")),
        _norm(
            task.get("account")
            or task.get("contact_company")
            or task.get("company")
            or task.get("company_name")
        ),
        _norm(task.get("owner_id") or task.get("assigned_to") or task.get("created_by")),
    ]
    return "|".join(p for p in parts if p)


def plan_dedup(tasks: Iterable[dict], tz: tzinfo) -> list[DuplicateGroup]:
    """Group pending sequence tasks by contact and pick what to delete.

    Groups come back ordered by number of deletions, largest first.
    """
    by_contact: dict[str, list[_Candidate]] = {}
    for task in tasks:
        if not looks_like_sequence_task(task) or not is_pending(task):
            continue
        key = contact_key(task)
        if not key:
            continue
        scheduled = scheduled_ms(task, tz)
        created = to_millis(task.get("created_at"))
        if created is None:
            created = to_millis(task.get("timestamp")) or 0
        by_contact.setdefault(key, []).append(_Candidate(
            task=task,
            doc_id=str(task.get("id", "")),
            scheduled_ms=math.inf if scheduled is None else scheduled,
            created_ms=created,
        ))

    groups = []
    for key, items in by_contact.items():
        if len(items) <= 1:
            continue
        items.sort(key=lambda c: c.sort_key)
        keep = items[0]
        delete = [c for c in items[1:] if c.scheduled_ms >= keep.scheduled_ms]
        if delete:
            groups.append(DuplicateGroup(key, keep, delete))

    groups.sort(key=lambda g: len(g.delete), reverse=True)
    return groups


def _preview_item(candidate: _Candidate) -> DedupPreviewItem:
    finite = math.isfinite(candidate.scheduled_ms)
    return DedupPreviewItem(
        doc_id=candidate.doc_id,
        sequence_id=candidate.task.get("sequence_id") or "",
        step_index=candidate.task.get("step_index"),
        due_timestamp=int(candidate.scheduled_ms) if finite else None,
        due_iso=iso_or_empty(candidate.scheduled_ms) if finite else "",
        type=candidate.task.get("type") or "",
        title=candidate.task.get("title") or "",
    )


def build_preview(groups: list[DuplicateGroup]) -> list[DedupPreviewGroup]:
    return [
        DedupPreviewGroup(
            contact_id=g.contact_key,
            keep=_preview_item(g.keep),
            delete=[_preview_item(c) for c in g.delete[:PREVIEW_DELETES_PER_GROUP]],
        )
        for g in groups[:PREVIEW_GROUPS]
    ]


async def run_dedup(
    session: AsyncSession,
    *,
    apply: bool = False,
    only_flagged: bool = False,
    max_deletes: int = 0,
    on_plan: Optional[Callable[[DedupReport], None]] = None,
    on_progress: Optional[Callable[[int], None]] = None,
) -> DedupReport:
    """Find duplicates and, with apply, delete them in committed chunks.

    max_deletes > 0 caps the total number of deletions. on_plan receives the
    report once duplicates are known and before anything is deleted.
    on_progress is called with the running deleted count after every
    committed chunk.
    """
    tasks = await task_repo.list_tasks(session, only_flagged=only_flagged)
    groups = plan_dedup(tasks, sequence_config.crm_timezone())

    report = DedupReport(
        mode="apply" if apply else "dry-run",
        scanned_docs=len(tasks),
        contacts_with_duplicates=len(groups),
        tasks_to_delete=sum(len(g.delete) for g in groups),
        preview=build_preview(groups),
    )
    logger.info(
        "Dedup %s: scanned=%s contacts=%s to_delete=%s",
        report.mode, report.scanned_docs, report.contacts_with_duplicates, report.tasks_to_delete,
    )
    if on_plan is not None:
        on_plan(report)
    if not apply:
        return report

    doomed = [c.doc_id for g in groups for c in g.delete]
    if max_deletes > 0:
        doomed = doomed[:max_deletes]

    batch_size = sequence_config.dedup_batch_size()
    for start in range(0, len(doomed), batch_size):
        chunk = doomed[start:start + batch_size]
        report.deleted += await task_repo.delete_by_ids(session, chunk)
        await session.commit()
        logger.info("Deleted %s duplicate tasks so far", report.deleted)
        if on_progress is not None:
            on_progress(report.deleted)
    return report
