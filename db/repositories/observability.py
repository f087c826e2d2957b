"""Observability repository: batch job run logging."""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from db.models import JobRunLog

logger = logging.getLogger(__name__)


async def log_job_run(
    session: AsyncSession,
    job_name: str,
    *,
    dry_run: bool = False,
    started_at: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
    success: Optional[bool] = None,
    error_message: Optional[str] = None,
    summary: Optional[dict[str, Any]] = None,
) -> JobRunLog:
    """Log a completed (or failed) batch job run."""
    completed_at = completed_at or datetime.now(timezone.utc)
    started_at = started_at or completed_at
    run = JobRunLog(
        job_name=job_name,
        dry_run=dry_run,
        started_at=started_at,
        completed_at=completed_at,
        duration_ms=int((completed_at - started_at).total_seconds() * 1000),
        success=success,
        error_message=error_message,
        summary=summary,
    )
    session.add(run)
    await session.flush()
    return run
