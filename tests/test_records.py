"""Unit tests for record ids, titles, ownership and payload builders."""
from datetime import timezone

import pytest

from progression.records import (
    build_email_payload,
    build_task_payload,
    make_step_record_id,
    resolve_ownership,
    task_type_and_title,
)
from progression.timeparse import format_due
from schemas import SequenceStep
from tests.factories import make_contact, make_sequence


class TestMakeStepRecordId:
    def test_strips_seq_prefix_and_sanitizes(self):
        assert make_step_record_id("task", "seq-ABC 1", "P/9", 3) == "task-seq-abc_1-p_9-3"

    def test_strips_underscore_prefix(self):
        assert make_step_record_id("email", "seq_xyz", "p1", 0) == "email-seq-xyz-p1-0"

    def test_unprefixed_sequence_id(self):
        assert make_step_record_id("task", "Nurture", "p1", 2) == "task-seq-nurture-p1-2"

    def test_parts_truncated(self):
        record_id = make_step_record_id("task", "s", "c" * 300, 1)
        assert record_id == f"task-seq-s-{'c' * 120}-1"

    def test_same_inputs_same_id(self):
        assert make_step_record_id("task", "seq-1", "p1", 4) == make_step_record_id("task", "seq-1", "p1", 4)


class TestTaskTypeAndTitle:
    @pytest.mark.parametrize("step_type, expected", [
        ("phone-call", ("phone-call", "Call contact")),
        ("li-connect", ("linkedin-connect", "Connect on LinkedIn")),
        ("li-message", ("linkedin-message", "Send LinkedIn message")),
        ("li-view-profile", ("linkedin-view", "View LinkedIn profile")),
        ("li-interact-post", ("linkedin-interact", "Interact with LinkedIn post")),
        ("task", ("task", "Complete task")),
    ])
    def test_mapping(self, step_type, expected):
        assert task_type_and_title(SequenceStep(type=step_type)) == expected

    def test_note_then_name_then_label_override_title(self):
        step = SequenceStep.model_validate(
            {"type": "phone-call", "data": {"note": "Ask about renewal"}, "name": "n", "label": "l"}
        )
        assert task_type_and_title(step) == ("phone-call", "Ask about renewal")
        assert task_type_and_title(SequenceStep(type="task", name="n", label="l"))[1] == "n"
        assert task_type_and_title(SequenceStep(type="task", label="l"))[1] == "l"


class TestResolveOwnership:
    def test_membership_owner_wins(self):
        assert resolve_ownership(" Rep@Acme.com ", "other@acme.com", "third@acme.com") == {
            "owner_id": "rep@acme.com",
            "assigned_to": "rep@acme.com",
            "created_by": "rep@acme.com",
        }

    def test_task_owner_and_assignee(self):
        assert resolve_ownership(None, "Owner@Acme.com", "Helper@Acme.com") == {
            "owner_id": "owner@acme.com",
            "assigned_to": "helper@acme.com",
            "created_by": "owner@acme.com",
        }

    def test_configured_default(self, monkeypatch):
        assert resolve_ownership()["owner_id"] == "unassigned"
        monkeypatch.setenv("SEQUENCE_DEFAULT_OWNER", " Ops@Acme.com ")
        assert resolve_ownership(None, "  ")["owner_id"] == "ops@acme.com"


class TestPayloads:
    def test_task_payload(self):
        sequence = make_sequence([
            {"id": "s0", "type": "auto-email"},
            {"id": "s1", "type": "li-connect", "data": {"note": "Say hi", "priority": "high"}},
        ])
        ownership = resolve_ownership("rep@acme.com")
        payload = build_task_payload(
            sequence=sequence,
            step=sequence.steps[1],
            step_index=1,
            contact=make_contact(),
            scheduled_ms=1704200400000,
            ownership=ownership,
            default_priority="normal",
            tz=timezone.utc,
            backfilled=True,
        )
        assert payload["id"] == "task-seq-abc-p1-1"
        assert payload["type"] == "linkedin-connect"
        assert payload["title"] == "Say hi"
        assert payload["notes"] == "Say hi"
        assert payload["priority"] == "high"
        assert payload["contact"] == "Ada Lovelace"
        assert payload["account"] == "Acme"
        assert (payload["due_date"], payload["due_time"]) == format_due(1704200400000, timezone.utc)
        assert payload["due_timestamp"] == 1704200400000
        assert payload["status"] == "pending"
        assert payload["step_id"] == "s1"
        assert payload["is_sequence_task"] is True
        assert payload["backfilled"] is True
        assert payload["owner_id"] == "rep@acme.com"

    def test_task_payload_default_priority(self):
        sequence = make_sequence([{"type": "phone-call"}])
        payload = build_task_payload(
            sequence=sequence,
            step=sequence.steps[0],
            step_index=0,
            contact=make_contact(),
            scheduled_ms=0,
            ownership=resolve_ownership(),
            default_priority="sequence",
            tz=timezone.utc,
        )
        assert payload["priority"] == "sequence"
        assert payload["backfilled"] is False

    def test_email_payload(self):
        sequence = make_sequence([
            {"type": "auto-email", "emailSettings": {"aiPrompt": "Intro", "aiMode": "html"}},
            {"type": "manual-email"},
        ])
        email = build_email_payload(
            sequence=sequence,
            step=sequence.steps[0],
            step_index=0,
            contact=make_contact(),
            scheduled_ms=5000,
            ownership=resolve_ownership("rep@acme.com"),
        )
        assert email["id"] == "email-seq-abc-p1-0"
        assert email["status"] == "not_generated"
        assert email["type"] == "scheduled"
        assert email["to_address"] == "ada@acme.com"
        assert email["scheduled_send_time"] == 5000
        assert email["total_steps"] == 2
        assert email["ai_prompt"] == "Intro"
        assert email["ai_mode"] == "html"

    def test_email_payload_defaults(self):
        sequence = make_sequence([{"type": "manual-email"}])
        email = build_email_payload(
            sequence=sequence,
            step=sequence.steps[0],
            step_index=0,
            contact=make_contact(),
            scheduled_ms=5000,
            ownership=resolve_ownership(),
        )
        assert email["ai_prompt"] == "Write a professional email"
        assert email["ai_mode"] == "standard"
