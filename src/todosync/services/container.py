"""Wiring of stores, providers and services from the configuration."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx

from todosync.adapters.auth import RestAuthProvider
from todosync.adapters.documents import RestDocumentStore
from todosync.adapters.local_store import LocalSettingsStore, LocalTaskStore
from todosync.adapters.remote_store import RemoteTaskStore
from todosync.adapters.storage import (
    JsonFileKeyValueStorage,
    MemoryKeyValueStorage,
    SqliteKeyValueStorage,
)
from todosync.models import AppConfig, StorageConfig, UserSettings
from todosync.repositories import AuthProvider, DocumentStore, KeyValueStorage
from todosync.services.api.client import APIClient
from todosync.services.auth_service import AuthService
from todosync.services.category_service import CategoryService
from todosync.services.mode_controller import ModeController
from todosync.services.profile_service import ProfileService
from todosync.services.sync_service import SyncService
from todosync.services.sync_state import SyncState
from todosync.services.task_service import TaskService


def create_storage(config: StorageConfig) -> KeyValueStorage:
    """Key-value storage for the configured backend."""
    if config.backend == "memory":
        return MemoryKeyValueStorage()
    if config.backend == "json":
        return JsonFileKeyValueStorage(config.path)
    return SqliteKeyValueStorage(config.path)


@dataclass
class App:
    """Fully wired application services."""

    config: AppConfig
    storage: KeyValueStorage
    documents: DocumentStore
    auth_provider: AuthProvider
    local_store: LocalTaskStore
    remote_store: RemoteTaskStore
    sync_service: SyncService
    profile_service: ProfileService
    category_service: CategoryService
    local_settings: LocalSettingsStore
    mode_controller: ModeController
    task_service: TaskService
    auth_service: AuthService
    api_client: APIClient | None = None

    async def start(self) -> None:
        """Restore a persisted session, then load the task list."""
        if isinstance(self.auth_provider, RestAuthProvider):
            await self.auth_provider.restore()
        await self.mode_controller.start()
        await self.task_service.start()

    async def current_settings(self) -> UserSettings:
        """Account settings when signed in, device settings otherwise."""
        identity = self.mode_controller.identity
        if identity is not None:
            return await self.profile_service.get_settings(identity.uid)
        return await self.local_settings.load()

    async def close(self) -> None:
        await self.task_service.close()
        self.mode_controller.close()
        if self.api_client is not None:
            await self.api_client.close()
        if isinstance(self.storage, SqliteKeyValueStorage):
            self.storage.close()


def build_app(
    config: AppConfig | None = None,
    *,
    storage: KeyValueStorage | None = None,
    documents: DocumentStore | None = None,
    auth_provider: AuthProvider | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> App:
    """Build the service graph.

    Args:
        config: Application configuration (defaults when omitted)
        storage: Device storage; created from ``config.storage`` if omitted
        documents: Document store; the HTTP backend if omitted
        auth_provider: Auth provider; the HTTP backend if omitted
        transport: httpx transport for the backend client (tests)
    """
    config = config or AppConfig()
    storage = storage or create_storage(config.storage)

    api_client: APIClient | None = None
    if documents is None or auth_provider is None:
        api_client = APIClient(config.remote, transport=transport)
    if auth_provider is None:
        auth_provider = RestAuthProvider(api_client, storage)
        api_client.token_provider = auth_provider.token
    if documents is None:
        documents = RestDocumentStore(api_client)

    local_store = LocalTaskStore(storage)
    remote_store = RemoteTaskStore(documents)
    sync_service = SyncService(local_store, remote_store, SyncState(storage), config.sync)
    profile_service = ProfileService(documents)
    category_service = CategoryService(documents)
    mode_controller = ModeController(auth_provider, local_store, sync_service, profile_service)
    task_service = TaskService(mode_controller, local_store, remote_store)
    auth_service = AuthService(auth_provider, mode_controller, profile_service)

    return App(
        config=config,
        storage=storage,
        documents=documents,
        auth_provider=auth_provider,
        local_store=local_store,
        remote_store=remote_store,
        sync_service=sync_service,
        profile_service=profile_service,
        category_service=category_service,
        local_settings=LocalSettingsStore(storage),
        mode_controller=mode_controller,
        task_service=task_service,
        auth_service=auth_service,
        api_client=api_client,
    )


@asynccontextmanager
async def open_app(config: AppConfig | None = None, **overrides) -> AsyncIterator[App]:
    """Build, start and finally close the application."""
    app = build_app(config, **overrides)
    try:
        await app.start()
        yield app
    finally:
        await app.close()
