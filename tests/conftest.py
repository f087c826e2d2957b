"""Shared fixtures: a mock session and patched repository functions."""
from types import SimpleNamespace
from unittest.mock import DEFAULT, AsyncMock, MagicMock, patch

import pytest

ENV_KEYS = (
    "SEQUENCE_DEFAULT_OWNER",
    "CRM_TIMEZONE",
    "SEQUENCE_TASK_PRIORITY",
    "BACKFILL_TASK_PRIORITY",
    "BACKFILL_BATCH_SIZE",
    "DEDUP_BATCH_SIZE",
)


@pytest.fixture(autouse=True)
def _clean_config_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def session():
    s = MagicMock()
    s.commit = AsyncMock()
    # Let exceptions raised inside `async with session.begin_nested()` propagate
    s.begin_nested.return_value.__aexit__.return_value = False
    return s


@pytest.fixture
def repos():
    """Patch every async repository function the progression core calls."""
    with patch.multiple(
        "db.repositories.tasks",
        get_by_id=DEFAULT,
        get_sequence_task_keys=DEFAULT,
        list_tasks=DEFAULT,
        list_for_user=DEFAULT,
        create_task=DEFAULT,
        create_tasks=DEFAULT,
        delete_by_ids=DEFAULT,
        mark_next_step_created=DEFAULT,
    ) as tasks, patch.multiple(
        "db.repositories.emails",
        get_for_member=DEFAULT,
        get_scheduled_by_member=DEFAULT,
        create_scheduled=DEFAULT,
    ) as emails, patch.multiple(
        "db.repositories.members",
        get_membership=DEFAULT,
        get_all=DEFAULT,
        get_active_pairs=DEFAULT,
        enroll=DEFAULT,
    ) as members, patch.multiple(
        "db.repositories.sequences",
        get_by_id=DEFAULT,
        get_all=DEFAULT,
    ) as sequences, patch.multiple(
        "db.repositories.contacts",
        resolve=DEFAULT,
    ) as contacts:
        tasks["create_task"].return_value = True
        tasks["get_sequence_task_keys"].return_value = set()
        tasks["mark_next_step_created"].return_value = True
        emails["get_for_member"].return_value = []
        emails["get_scheduled_by_member"].return_value = {}
        emails["create_scheduled"].return_value = True
        yield SimpleNamespace(
            tasks=SimpleNamespace(**tasks),
            emails=SimpleNamespace(**emails),
            members=SimpleNamespace(**members),
            sequences=SimpleNamespace(**sequences),
            contacts=SimpleNamespace(**contacts),
        )

