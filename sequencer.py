"""Sequence progression command line.

Usage:
    python sequencer.py complete --task-id task-seq-abc-p1-2
    python sequencer.py backfill --dry-run
    python sequencer.py backfill --anchor anchor-at-completion
    python sequencer.py activate --sequence-id seq-abc --contact-id p1 --contact-id p2 --owner rep@example.com

Every command checks the store once up front and exits 1 if it is unavailable.
"""
import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone

from db.connection import StoreUnavailableError, dispose_engine, ensure_store, get_db
from progression.backfill import run_backfill
from progression.errors import SequenceProgressionError
from progression.jobs import record_job_run
from progression.materializer import activate_sequence, advance_after_completion
from schemas import DelayAnchor

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def run_complete(task_id: str, anchor: DelayAnchor) -> dict:
    await ensure_store()
    async with get_db() as session:
        result = await advance_after_completion(session, task_id, anchor=anchor)
    return result.to_json_dict()


async def run_backfill_job(dry_run: bool, anchor: DelayAnchor) -> dict:
    started_at = datetime.now(timezone.utc)
    await ensure_store()
    try:
        async with get_db() as session:
            report = await run_backfill(session, dry_run=dry_run, anchor=anchor)
    except Exception as e:
        await record_job_run(
            "backfill-sequence-tasks",
            started_at=started_at,
            dry_run=dry_run,
            success=False,
            error_message=str(e),
        )
        raise
    summary = report.to_json_dict()
    await record_job_run(
        "backfill-sequence-tasks", started_at=started_at, dry_run=dry_run, summary=summary
    )
    return summary


async def run_activate(
    sequence_id: str, contact_ids: list[str], owner_id: str, anchor: DelayAnchor
) -> dict:
    started_at = datetime.now(timezone.utc)
    await ensure_store()
    async with get_db() as session:
        report = await activate_sequence(
            session, sequence_id, contact_ids, owner_id or None, anchor=anchor
        )
    summary = report.to_json_dict()
    await record_job_run("process-sequence-activation", started_at=started_at, summary=summary)
    return summary


async def _main(args: argparse.Namespace) -> dict:
    try:
        if args.command == "complete":
            return await run_complete(args.task_id, DelayAnchor(args.anchor))
        if args.command == "backfill":
            return await run_backfill_job(args.dry_run, DelayAnchor(args.anchor))
        return await run_activate(
            args.sequence_id, args.contact_id, args.owner, DelayAnchor(args.anchor)
        )
    finally:
        await dispose_engine()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Outreach sequence progression")
    sub = parser.add_subparsers(dest="command")
    anchors = [a.value for a in DelayAnchor]

    complete = sub.add_parser("complete", help="Create the next step after a completed task")
    complete.add_argument("--task-id", required=True)
    complete.add_argument(
        "--anchor",
        choices=anchors,
        default=DelayAnchor.AT_COMPLETION.value,
        help="Where step delays count from (default: completion time)",
    )

    backfill = sub.add_parser("backfill", help="Create missing next tasks for all enrollments")
    backfill.add_argument("--dry-run", action="store_true", default=False)
    backfill.add_argument(
        "--anchor",
        choices=anchors,
        default=DelayAnchor.AT_ENROLLMENT.value,
        help="Where step delays count from (default: enrollment time)",
    )

    activate = sub.add_parser("activate", help="Enroll contacts and create their first steps")
    activate.add_argument("--sequence-id", required=True)
    activate.add_argument(
        "--contact-id", action="append", required=True, help="Repeat for each contact"
    )
    activate.add_argument("--owner", default="", help="Owner email stamped on new records")
    activate.add_argument(
        "--anchor",
        choices=anchors,
        default=DelayAnchor.AT_ENROLLMENT.value,
    )

    return parser


if __name__ == "__main__":
    parser = _build_arg_parser()
    args = parser.parse_args()

    if args.command not in ("complete", "backfill", "activate"):
        parser.print_help()
        sys.exit(1)

    try:
        _print_json(asyncio.run(_main(args)))
    except StoreUnavailableError as e:
        logger.error("Store unavailable: %s", e)
        sys.exit(1)
    except SequenceProgressionError as e:
        logger.error("%s", e)
        sys.exit(1)
