"""Job run bookkeeping shared by the CLI, the HTTP handlers and the ops scripts."""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import db.repositories.observability as obs_repo
from db.connection import get_db

logger = logging.getLogger(__name__)


async def record_job_run(
    job_name: str,
    *,
    started_at: datetime,
    dry_run: bool = False,
    success: bool = True,
    error_message: Optional[str] = None,
    summary: Optional[dict[str, Any]] = None,
) -> None:
    """Write one obs.job_run_log row in its own session.

    Best effort: a failure here is logged and never fails the job.
    """
    try:
        async with get_db() as session:
            await obs_repo.log_job_run(
                session,
                job_name,
                dry_run=dry_run,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
                success=success,
                error_message=error_message,
                summary=summary,
            )
    except Exception as e:
        logger.warning("Failed to log job run %s: %s", job_name, e, exc_info=True)
