"""Sequence definition, membership and contact schemas."""
from datetime import datetime
from typing import Any, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TASK_STEP_TYPES = frozenset({
    "phone-call",
    "li-connect",
    "li-message",
    "li-view-profile",
    "li-interact-post",
    "task",
})
EMAIL_STEP_TYPES = frozenset({"auto-email", "manual-email"})


class StepData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    note: Optional[str] = None
    priority: Optional[str] = None
    ai_prompt: Optional[str] = None
    ai_mode: Optional[str] = None


class SequenceStep(BaseModel):
    """One step as authored in the sequence builder (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    type: str = ""
    delay_minutes: int = Field(default=0, ge=0)
    paused: bool = False
    data: StepData = Field(default_factory=StepData)
    name: Optional[str] = None
    label: Optional[str] = None
    email_settings: Optional[dict[str, Any]] = None

    @field_validator("delay_minutes", mode="before")
    @classmethod
    def _missing_delay_is_zero(cls, value):
        return 0 if value is None or value == "" else value

    @field_validator("data", mode="before")
    @classmethod
    def _missing_data_is_empty(cls, value):
        return {} if value is None else value

    @property
    def is_task_like(self) -> bool:
        return self.type in TASK_STEP_TYPES

    @property
    def is_email_like(self) -> bool:
        return self.type in EMAIL_STEP_TYPES

    @property
    def delay_ms(self) -> int:
        return self.delay_minutes * 60 * 1000

    @property
    def ai_prompt(self) -> Optional[str]:
        settings = self.email_settings or {}
        return settings.get("aiPrompt") or self.data.ai_prompt

    @property
    def ai_mode(self) -> Optional[str]:
        return self.data.ai_mode or (self.email_settings or {}).get("aiMode")


class SequenceDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str = ""
    steps: List[SequenceStep] = Field(default_factory=list)

    @field_validator("steps", mode="before")
    @classmethod
    def _missing_steps_is_empty(cls, value):
        return [] if value is None else value


class Membership(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[Union[UUID, str]] = None
    sequence_id: str
    target_id: str
    owner_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ContactRecord(BaseModel):
    """Person as resolved by the contact directory, whichever table it came from."""

    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.first_name:
            return f"{self.first_name} {self.last_name or ''}".strip()
        return self.name or ""
