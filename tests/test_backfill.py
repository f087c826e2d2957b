"""Unit tests for the backfill reconciler (repositories mocked)."""
import pytest

from db.repositories.tasks import step_key
from progression.backfill import run_backfill
from progression.errors import MalformedSequenceError
from tests.factories import ENROLLED_MS, make_contact, make_membership, make_sequence

NOW = 1_736_200_000_000
MINUTE_MS = 60_000


def active_pairs(session, pairs):
    return set(pairs)


def wire(repos, sequences, memberships, emails=None):
    repos.sequences.get_all.return_value = {s.id: s for s in sequences}
    repos.members.get_all.return_value = memberships
    repos.emails.get_scheduled_by_member.return_value = emails or {}
    repos.members.get_active_pairs.side_effect = active_pairs
    repos.tasks.create_tasks.side_effect = lambda session, rows: len(rows)
    repos.contacts.resolve.side_effect = lambda session, cid: make_contact(cid)


def reasons(report):
    return [s.reason for s in report.skipped_reasons]


@pytest.mark.asyncio
async def test_creates_first_pending_task(session, repos):
    wire(
        repos,
        [make_sequence([{"type": "phone-call", "delayMinutes": 60}, {"type": "task"}])],
        [make_membership()],
    )
    report = await run_backfill(session, now_ms=NOW)

    assert report.created == 1
    assert report.tasks_to_create == 1
    assert report.message == "Backfill complete. Created 1 tasks."
    rows = repos.tasks.create_tasks.call_args.args[1]
    assert len(rows) == 1
    assert rows[0]["id"] == "task-seq-abc-p1-0"
    assert rows[0]["backfilled"] is True
    assert rows[0]["priority"] == "normal"
    assert rows[0]["due_timestamp"] == ENROLLED_MS + 60 * MINUTE_MS
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_sent_email_moves_member_forward(session, repos):
    wire(
        repos,
        [make_sequence([
            {"type": "auto-email", "delayMinutes": 0},
            {"type": "li-message", "delayMinutes": 120},
        ])],
        [make_membership()],
        emails={"seq-abc_p1": [{"step_index": 0, "status": "sent", "scheduled_send_time": NOW - 1}]},
    )
    report = await run_backfill(session, now_ms=NOW)

    rows = repos.tasks.create_tasks.call_args.args[1]
    assert report.created == 1
    assert rows[0]["step_index"] == 1
    assert rows[0]["type"] == "linkedin-message"


@pytest.mark.asyncio
async def test_unwritten_email_blocks_member(session, repos):
    wire(repos, [make_sequence([{"type": "auto-email"}, {"type": "phone-call"}])], [make_membership()])
    report = await run_backfill(session, now_ms=NOW)

    assert report.created == 0
    assert reasons(report) == ["Waiting for email step 0 to be created"]
    assert report.skipped_reasons[0].member_id == "m1"


@pytest.mark.asyncio
async def test_second_run_creates_nothing(session, repos):
    wire(repos, [make_sequence([{"type": "phone-call"}])], [make_membership()])
    first = await run_backfill(session, now_ms=NOW)
    assert first.created == 1

    written = repos.tasks.create_tasks.call_args.args[1]
    repos.tasks.get_sequence_task_keys.return_value = {
        step_key(r["sequence_id"], r["contact_id"], r["step_index"]) for r in written
    }
    repos.tasks.create_tasks.reset_mock()
    report = await run_backfill(session, now_ms=NOW)

    assert report.created == 0
    assert report.tasks_to_create == 0
    assert reasons(report) == ["Task already exists"]
    repos.tasks.create_tasks.assert_not_called()


@pytest.mark.asyncio
async def test_duplicate_memberships_queue_one_task(session, repos):
    wire(
        repos,
        [make_sequence([{"type": "phone-call"}])],
        [make_membership(member_id="m1"), make_membership(member_id="m2")],
    )
    report = await run_backfill(session, now_ms=NOW)

    assert report.created == 1
    assert reasons(report) == ["Task already exists"]


@pytest.mark.asyncio
async def test_dry_run_writes_nothing(session, repos):
    wire(repos, [make_sequence([{"type": "phone-call"}])], [make_membership()])
    report = await run_backfill(session, dry_run=True, now_ms=NOW)

    assert report.dry_run is True
    assert report.tasks_to_create == 1
    assert report.created == 0
    assert report.message == "Dry run complete. Would create 1 tasks."
    repos.tasks.create_tasks.assert_not_called()
    repos.members.get_active_pairs.assert_not_called()
    session.commit.assert_not_called()


@pytest.mark.asyncio
async def test_member_removed_before_write(session, repos):
    wire(
        repos,
        [make_sequence([{"type": "phone-call"}])],
        [make_membership(target_id="p1"), make_membership(target_id="p2", member_id="m2")],
    )
    repos.members.get_active_pairs.side_effect = lambda session, pairs: {("seq-abc", "p2")}
    report = await run_backfill(session, now_ms=NOW)

    rows = repos.tasks.create_tasks.call_args.args[1]
    assert [r["contact_id"] for r in rows] == ["p2"]
    assert report.created == 1
    assert reasons(report) == ["Membership removed before write"]


@pytest.mark.asyncio
async def test_sequence_problems_are_skipped(session, repos):
    wire(repos, [make_sequence([], sequence_id="seq-empty")], [
        make_membership(sequence_id="seq-bad", member_id="m1"),
        make_membership(sequence_id="seq-gone", member_id="m2"),
        make_membership(sequence_id="seq-empty", member_id="m3"),
    ])
    repos.sequences.get_all.return_value["seq-bad"] = MalformedSequenceError(
        "seq-bad", "delayMinutes must be >= 0"
    )
    report = await run_backfill(session, now_ms=NOW)

    assert report.created == 0
    assert report.skipped == 3
    assert reasons(report) == [
        "Malformed sequence: delayMinutes must be >= 0",
        "Sequence not found or has no steps",
        "Sequence not found or has no steps",
    ]


@pytest.mark.asyncio
async def test_missing_contact_is_skipped(session, repos):
    wire(repos, [make_sequence([{"type": "phone-call"}])], [make_membership()])
    repos.contacts.resolve.side_effect = None
    repos.contacts.resolve.return_value = None
    report = await run_backfill(session, now_ms=NOW)

    assert reasons(report) == ["Contact not found"]


@pytest.mark.asyncio
async def test_member_failure_does_not_stop_the_run(session, repos):
    wire(
        repos,
        [make_sequence([{"type": "phone-call"}])],
        [make_membership(target_id="p1"), make_membership(target_id="p2", member_id="m2")],
    )

    def resolve(session, contact_id):
        if contact_id == "p1":
            raise RuntimeError("boom")
        return make_contact(contact_id)

    repos.contacts.resolve.side_effect = resolve
    report = await run_backfill(session, now_ms=NOW)

    assert report.created == 1
    assert reasons(report) == ["boom"]


@pytest.mark.asyncio
async def test_writes_are_chunked_and_committed(session, repos):
    members = [make_membership(target_id=f"p{i}", member_id=f"m{i}") for i in range(30)]
    wire(repos, [make_sequence([{"type": "phone-call"}])], members)
    report = await run_backfill(session, now_ms=NOW)

    assert report.created == 30
    sizes = [len(c.args[1]) for c in repos.tasks.create_tasks.call_args_list]
    assert sizes == [25, 5]
    assert session.commit.await_count == 2


@pytest.mark.asyncio
async def test_batch_size_from_environment(session, repos, monkeypatch):
    monkeypatch.setenv("BACKFILL_BATCH_SIZE", "10")
    members = [make_membership(target_id=f"p{i}", member_id=f"m{i}") for i in range(25)]
    wire(repos, [make_sequence([{"type": "phone-call"}])], members)
    await run_backfill(session, now_ms=NOW)

    assert [len(c.args[1]) for c in repos.tasks.create_tasks.call_args_list] == [10, 10, 5]


@pytest.mark.asyncio
async def test_reported_skips_are_capped(session, repos):
    members = [make_membership(target_id=f"p{i}", member_id=f"m{i}") for i in range(12)]
    wire(repos, [make_sequence([{"type": "auto-email"}])], members)
    report = await run_backfill(session, now_ms=NOW)

    assert report.skipped == 12
    assert len(report.skipped_reasons) == 10
