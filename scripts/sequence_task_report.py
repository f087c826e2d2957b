"""Print a diagnostic JSON report of tasks for one user or for everyone.

    python scripts/sequence_task_report.py --user=rep@example.com
    python scripts/sequence_task_report.py --admin --limit=0

Useful when a rep reports tasks "disappearing": check status counts, owner
spread, and tasks completed with a due date still in the future.
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Resolve project root so imports work when run from any cwd
_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_ROOT))

from db.connection import StoreUnavailableError, dispose_engine, ensure_store, get_db
from progression.diagnostics import run_report

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)


async def main(user_email, admin: bool, limit) -> dict:
    try:
        await ensure_store()
        async with get_db() as session:
            report = await run_report(session, user_email=user_email, admin=admin, limit=limit)
        return report.to_json_dict()
    finally:
        await dispose_engine()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sequence task diagnostic report")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--user", default="", help="Report on tasks visible to this user")
    group.add_argument("--admin", action="store_true", default=False, help="Report on all tasks")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Tasks to include, most recent first (default 1000 admin / 500 user, 0 = all)",
    )
    args = parser.parse_args()

    user_email = args.user.strip().lower() or None
    try:
        report = asyncio.run(main(user_email, args.admin, args.limit))
    except StoreUnavailableError as e:
        logger.error("Store unavailable: %s", e)
        sys.exit(1)
    print(json.dumps(report, indent=2))
