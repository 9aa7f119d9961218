"""Shared test fixtures and configuration.

Provides in-memory stores and a fully wired application so tests never touch
the real filesystem, network or user config.
"""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import patch

import pytest
import pytest_asyncio

from todosync.adapters.auth import InMemoryAuthProvider
from todosync.adapters.documents import InMemoryDocumentStore
from todosync.adapters.local_store import LocalTaskStore
from todosync.adapters.remote_store import RemoteTaskStore
from todosync.adapters.storage import MemoryKeyValueStorage
from todosync.models import AppConfig, StorageConfig, Task
from todosync.services.container import build_app

EMAIL = "ana@example.com"
PASSWORD = "correct horse"


def make_task(
    task_id: str = "t1",
    title: str = "Write tests",
    created_at: datetime | None = None,
    **fields,
) -> Task:
    """Build a task with fixed timestamps."""
    created_at = created_at or datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
    fields.setdefault("updated_at", created_at)
    return Task(id=task_id, title=title, created_at=created_at, **fields)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture()
def storage():
    return MemoryKeyValueStorage()


@pytest.fixture()
def documents():
    return InMemoryDocumentStore()


@pytest.fixture()
def local_store(storage):
    return LocalTaskStore(storage)


@pytest.fixture()
def remote_store(documents):
    return RemoteTaskStore(documents)


@pytest.fixture()
def auth_provider():
    provider = InMemoryAuthProvider()
    provider.register(EMAIL, PASSWORD, "Ana")
    return provider


# ---------------------------------------------------------------------------
# Wired application
# ---------------------------------------------------------------------------


@pytest.fixture()
def app_config():
    return AppConfig(storage=StorageConfig(backend="memory"))


@pytest_asyncio.fixture()
async def app(app_config, storage, documents, auth_provider):
    """Started application over in-memory stores, in local mode."""
    application = build_app(
        app_config, storage=storage, documents=documents, auth_provider=auth_provider
    )
    await application.start()
    yield application
    await application.close()


# ---------------------------------------------------------------------------
# Config isolation
# ---------------------------------------------------------------------------


@pytest.fixture()
def tmp_config(tmp_path):
    """Provide a real ConfigService backed by a temporary directory.

    Patches the platform config dir so config files land in *tmp_path* only,
    and clears the lru_cache so each test gets a fresh service instance.
    """
    from todosync.services.config_service import get_config_service

    get_config_service.cache_clear()
    with patch("todosync.services.config_service.user_config_dir", return_value=str(tmp_path)):
        yield get_config_service()
    get_config_service.cache_clear()


@pytest.fixture()
def cli_backend(tmp_config, tmp_path):
    """Point CLI invocations at a JSON store in *tmp_path* and in-memory cloud services.

    The document store and auth provider outlive each invocation, the way the
    real backend and a persisted session would.
    """
    from todosync.services.container import open_app

    tmp_config.set("storage.backend", "json")
    tmp_config.set("storage.path", str(tmp_path / "storage.json"))
    documents = InMemoryDocumentStore()
    provider = InMemoryAuthProvider()
    provider.register(EMAIL, PASSWORD, "Ana")

    def open_with_fakes(config):
        return open_app(config, documents=documents, auth_provider=provider)

    with patch("todosync.commands.session.open_app", side_effect=open_with_fakes):
        yield documents, provider
