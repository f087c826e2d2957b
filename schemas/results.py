"""Step plans and job result schemas.

Results are serialized with camelCase aliases because the HTTP and CLI
surfaces return the same JSON shapes the CRM front end already consumes.
"""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .sequence import SequenceStep


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class WalkOutcome(str, Enum):
    TARGET = "target"
    BLOCKED = "blocked"
    COMPLETE = "complete"


class DelayAnchor(str, Enum):
    """Where the cumulative delay of the next step starts counting from."""

    AT_COMPLETION = "anchor-at-completion"
    AT_ENROLLMENT = "anchor-at-enrollment"


class StepPlan(BaseModel):
    outcome: WalkOutcome
    step_index: int = -1
    step: Optional[SequenceStep] = None
    cumulative_delay_ms: int = 0


class AdvanceResult(_CamelModel):
    success: bool = True
    message: Optional[str] = None
    next_step_type: Optional[Literal["task", "email"]] = None
    task_id: Optional[str] = None
    email_id: Optional[str] = None
    scheduled_time: Optional[int] = None
    step_index: Optional[int] = None
    created: Optional[bool] = None


class SkipEntry(_CamelModel):
    reason: str
    member_id: Optional[str] = None
    contact_id: Optional[str] = None
    sequence_id: Optional[str] = None


class BackfillReport(_CamelModel):
    success: bool = True
    dry_run: bool = False
    tasks_to_create: int = 0
    created: int = 0
    skipped: int = 0
    skipped_reasons: List[SkipEntry] = Field(default_factory=list)
    message: str = ""


class DedupPreviewItem(_CamelModel):
    doc_id: str
    sequence_id: str = ""
    step_index: Optional[int] = None
    due_timestamp: Optional[int] = None
    due_iso: str = Field(default="", alias="dueISO")
    type: str = ""
    title: str = ""


class DedupPreviewGroup(_CamelModel):
    contact_id: str
    keep: DedupPreviewItem
    delete: List[DedupPreviewItem]


class DedupReport(_CamelModel):
    mode: Literal["apply", "dry-run"] = "dry-run"
    scanned_docs: int = 0
    contacts_with_duplicates: int = 0
    tasks_to_delete: int = 0
    deleted: int = 0
    preview: List[DedupPreviewGroup] = Field(default_factory=list)


class TaskPreview(_CamelModel):
    id: str
    title: str = ""
    type: str = ""
    status: str = ""
    owner_id: str = ""
    assigned_to: str = ""
    created_by: str = ""
    due_date: str = ""
    due_time: str = ""
    due_timestamp: Optional[int] = None
    updated_at: Optional[int] = None
    timestamp: Optional[int] = None
    created_at: Optional[int] = None


class DiagnosticReport(_CamelModel):
    mode: Literal["admin", "user"]
    user_email: Optional[str] = None
    limit: int
    total_fetched: int
    total_reported: int
    status_counts: Dict[str, int]
    type_counts: Dict[str, int]
    owner_counts: Optional[Dict[str, int]] = None
    pending_count: int
    completed_count: int
    completed_recently_count: int
    future_completed_count: int
    missing_owner_count: int
    preview: List[TaskPreview]


class ActivationReport(_CamelModel):
    sequence_id: str
    enrolled: int = 0
    already_enrolled: int = 0
    emails_created: int = 0
    tasks_created: int = 0
    skipped: List[SkipEntry] = Field(default_factory=list)
