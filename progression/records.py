"""Builders for the email and task rows a materialized step becomes."""
import re
from datetime import tzinfo
from typing import Optional

import sequence_config
from schemas import ContactRecord, SequenceDefinition, SequenceStep

from .timeparse import format_due

_UNSAFE_ID_CHARS = re.compile(r"[^a-z0-9_-]")
_MAX_ID_PART = 120

# step type -> (task type, default title)
TASK_TYPES = {
    "phone-call": ("phone-call", "Call contact"),
    "li-connect": ("linkedin-connect", "Connect on LinkedIn"),
    "li-message": ("linkedin-message", "Send LinkedIn message"),
    "li-view-profile": ("linkedin-view", "View LinkedIn profile"),
    "li-interact-post": ("linkedin-interact", "Interact with LinkedIn post"),
}
_GENERIC_TASK = ("task", "Complete task")


def _safe_id_part(value) -> str:
    return _UNSAFE_ID_CHARS.sub("_", str(value or "").strip().lower())[:_MAX_ID_PART]


def make_step_record_id(prefix: str, sequence_id: str, contact_id: str, step_index: int) -> str:
    """Deterministic id for the record one step produces for one contact.

    Two writers racing on the same (sequence, contact, step) compute the same
    id, so the second insert is a no-op instead of a duplicate.
    """
    seq = re.sub(r"^seq[-_]", "", _safe_id_part(sequence_id))
    return f"{prefix}-seq-{seq}-{_safe_id_part(contact_id)}-{int(step_index)}"


def task_type_and_title(step: SequenceStep) -> tuple[str, str]:
    task_type, default_title = TASK_TYPES.get(step.type, _GENERIC_TASK)
    title = step.data.note or step.name or step.label or default_title
    return task_type, title


def _normalize_owner(*candidates: Optional[str]) -> str:
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip().lower()
    return sequence_config.default_owner()


def resolve_ownership(
    member_owner: Optional[str] = None,
    task_owner: Optional[str] = None,
    task_assignee: Optional[str] = None,
) -> dict[str, str]:
    """owner_id/assigned_to/created_by for a new record.

    Membership owner wins, then the owner of the task that triggered the
    step, then the configured default.
    """
    owner = _normalize_owner(member_owner, task_owner)
    assignee = owner if member_owner else _normalize_owner(task_assignee, task_owner)
    return {"owner_id": owner, "assigned_to": assignee, "created_by": owner}


def build_task_payload(
    *,
    sequence: SequenceDefinition,
    step: SequenceStep,
    step_index: int,
    contact: ContactRecord,
    scheduled_ms: int,
    ownership: dict[str, str],
    default_priority: str,
    tz: tzinfo,
    backfilled: bool = False,
) -> dict:
    task_type, title = task_type_and_title(step)
    due_date, due_time = format_due(scheduled_ms, tz)
    return {
        "id": make_step_record_id("task", sequence.id, contact.id, step_index),
        "title": title,
        "contact": contact.display_name,
        "contact_id": contact.id,
        "account": contact.company or "",
        "type": task_type,
        "priority": step.data.priority or default_priority,
        "due_date": due_date,
        "due_time": due_time,
        "due_timestamp": scheduled_ms,
        "status": "pending",
        "sequence_id": sequence.id,
        "sequence_name": sequence.name,
        "step_id": step.id,
        "step_index": step_index,
        "is_sequence_task": True,
        "notes": step.data.note or "",
        "backfilled": backfilled,
        **ownership,
    }


def build_email_payload(
    *,
    sequence: SequenceDefinition,
    step: SequenceStep,
    step_index: int,
    contact: ContactRecord,
    scheduled_ms: int,
    ownership: dict[str, str],
) -> dict:
    return {
        "id": make_step_record_id("email", sequence.id, contact.id, step_index),
        "type": "scheduled",
        "status": "not_generated",
        "scheduled_send_time": scheduled_ms,
        "contact_id": contact.id,
        "contact_name": contact.display_name,
        "contact_company": contact.company or "",
        "to_address": contact.email,
        "sequence_id": sequence.id,
        "sequence_name": sequence.name,
        "step_index": step_index,
        "total_steps": len(sequence.steps) or 1,
        "ai_prompt": step.ai_prompt or sequence_config.DEFAULT_EMAIL_AI_PROMPT,
        "ai_mode": step.ai_mode or sequence_config.DEFAULT_EMAIL_AI_MODE,
        **ownership,
    }
