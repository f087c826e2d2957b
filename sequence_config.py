"""Runtime settings for sequence progression.

All values come from the environment (a local .env is loaded first) and are
read at call time, so jobs and tests can change them without re-importing.

Usage:
    from sequence_config import default_owner, crm_timezone
    owner = task_owner or default_owner()
"""
import logging
import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

DEFAULT_OWNER = "unassigned"
DEFAULT_TIMEZONE = "America/Chicago"
DEFAULT_SEQUENCE_TASK_PRIORITY = "sequence"
DEFAULT_BACKFILL_TASK_PRIORITY = "normal"
DEFAULT_EMAIL_AI_PROMPT = "Write a professional email"
DEFAULT_EMAIL_AI_MODE = "standard"

# Write-count limits per committed batch
BACKFILL_BATCH_SIZE = 25
DEDUP_BATCH_SIZE = 450


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


def default_owner() -> str:
    """Owner stamped on generated records when neither membership nor task has one."""
    owner = os.environ.get("SEQUENCE_DEFAULT_OWNER", DEFAULT_OWNER).strip().lower()
    return owner or DEFAULT_OWNER


def crm_timezone() -> ZoneInfo:
    """Time zone used to render and parse human-readable due dates."""
    name = os.environ.get("CRM_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown CRM_TIMEZONE %r, falling back to %s", name, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE)


def sequence_task_priority() -> str:
    return os.environ.get("SEQUENCE_TASK_PRIORITY", DEFAULT_SEQUENCE_TASK_PRIORITY)


def backfill_task_priority() -> str:
    return os.environ.get("BACKFILL_TASK_PRIORITY", DEFAULT_BACKFILL_TASK_PRIORITY)


def backfill_batch_size() -> int:
    return _int_env("BACKFILL_BATCH_SIZE", BACKFILL_BATCH_SIZE)


def dedup_batch_size() -> int:
    """Never above 450 deletes per commit."""
    return min(DEDUP_BATCH_SIZE, _int_env("DEDUP_BATCH_SIZE", DEDUP_BATCH_SIZE))
