"""Delete duplicate pending sequence tasks, keeping the earliest per contact.

Dry run by default; nothing is deleted without --apply:

    python scripts/dedupe_sequence_tasks.py
    python scripts/dedupe_sequence_tasks.py --only-flagged
    python scripts/dedupe_sequence_tasks.py --apply --max-deletes=200

Without --only-flagged every task is scanned and filtered to the ones that
look like sequence tasks, which also catches legacy rows missing the flag.
"""
import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Resolve project root so imports work when run from any cwd
_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_ROOT))

from db.connection import StoreUnavailableError, dispose_engine, ensure_store, get_db
from progression.dedup import run_dedup
from progression.jobs import record_job_run
from schemas import DedupReport

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, indent=2))


def _print_plan(report: DedupReport) -> None:
    summary = report.to_json_dict()
    _print_json({k: summary[k] for k in ("mode", "scannedDocs", "contactsWithDuplicates", "tasksToDelete")})
    _print_json({"preview": summary.get("preview", [])})


async def main(apply: bool, only_flagged: bool, max_deletes: int) -> None:
    started_at = datetime.now(timezone.utc)
    try:
        await ensure_store()
        async with get_db() as session:
            report = await run_dedup(
                session,
                apply=apply,
                only_flagged=only_flagged,
                max_deletes=max_deletes,
                on_plan=_print_plan,
                on_progress=lambda n: _print_json({"deleted": n}),
            )

        if apply:
            summary = report.to_json_dict()
            await record_job_run(
                "dedupe-sequence-tasks",
                started_at=started_at,
                summary={k: v for k, v in summary.items() if k != "preview"},
            )
    finally:
        await dispose_engine()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Remove duplicate pending sequence tasks")
    parser.add_argument("--apply", action="store_true", default=False, help="Actually delete")
    parser.add_argument(
        "--only-flagged",
        action="store_true",
        default=False,
        help="Scan only tasks flagged as sequence tasks",
    )
    parser.add_argument(
        "--max-deletes",
        type=int,
        default=0,
        help="Cap on total deletions (0 = no cap)",
    )
    return parser


if __name__ == "__main__":
    args = _build_arg_parser().parse_args()
    try:
        asyncio.run(main(args.apply, args.only_flagged, max(0, args.max_deletes)))
    except StoreUnavailableError as e:
        logger.error("Store unavailable: %s", e)
        sys.exit(1)
