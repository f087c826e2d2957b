"""Command line parsing and job bookkeeping."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

import sequencer
from progression import jobs


class TestArgParser:
    def test_complete_defaults_to_completion_anchor(self):
        args = sequencer._build_arg_parser().parse_args(["complete", "--task-id", "t1"])
        assert args.task_id == "t1"
        assert args.anchor == "anchor-at-completion"

    def test_backfill_defaults_to_enrollment_anchor(self):
        args = sequencer._build_arg_parser().parse_args(["backfill", "--dry-run"])
        assert args.dry_run is True
        assert args.anchor == "anchor-at-enrollment"

    def test_activate_collects_contacts(self):
        args = sequencer._build_arg_parser().parse_args([
            "activate", "--sequence-id", "seq-abc", "--contact-id", "p1", "--contact-id", "p2",
        ])
        assert args.contact_id == ["p1", "p2"]
        assert args.owner == ""

    def test_unknown_anchor_rejected(self):
        with pytest.raises(SystemExit):
            sequencer._build_arg_parser().parse_args(["backfill", "--anchor", "whenever"])


class TestRecordJobRun:
    @pytest.mark.asyncio
    async def test_failure_to_log_is_swallowed(self):
        with patch.object(jobs, "get_db", side_effect=RuntimeError("db down")):
            await jobs.record_job_run("backfill-sequence-tasks", started_at=datetime.now(timezone.utc))

    @pytest.mark.asyncio
    async def test_backfill_failure_is_recorded_and_raised(self):
        with patch.object(sequencer, "ensure_store", AsyncMock()), \
                patch.object(sequencer, "get_db", side_effect=RuntimeError("boom")), \
                patch.object(sequencer, "record_job_run", AsyncMock()) as record:
            with pytest.raises(RuntimeError):
                await sequencer.run_backfill_job(False, sequencer.DelayAnchor.AT_ENROLLMENT)
        assert record.call_args.kwargs["success"] is False
        assert record.call_args.kwargs["error_message"] == "boom"
