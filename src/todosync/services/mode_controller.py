"""Session mode state machine.

Local mode (no identity) and remote mode (signed in) are mutually
exclusive. Transitions are driven by the auth provider's state callbacks:

- LOCAL -> REMOTE: ensure the profile, migrate the local snapshot once,
  then switch and notify listeners. The mode stays LOCAL until the
  migration is over
- REMOTE -> LOCAL: forget the identity and notify listeners; nothing is
  copied back to the device
- REMOTE -> REMOTE with another uid: handled as sign-out followed by
  sign-in
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from todosync.adapters.local_store import LocalTaskStore
from todosync.errors import StoreIOError, SyncError
from todosync.models import Identity, SessionMode
from todosync.repositories import AuthProvider, Unsubscribe
from todosync.services.profile_service import ProfileService
from todosync.services.sync_service import SyncResult, SyncService
from todosync.utils.logger import get_logger

ModeListener = Callable[[SessionMode, Identity | None], Awaitable[None] | None]

logger = get_logger("mode")


class ModeController:
    """Owns the current session mode and identity."""

    def __init__(
        self,
        auth_provider: AuthProvider,
        local_store: LocalTaskStore,
        sync_service: SyncService,
        profile_service: ProfileService | None = None,
    ):
        """Initialize the controller in local mode.

        Args:
            auth_provider: Source of auth state changes
            local_store: Device-local task store (snapshot source for migration)
            sync_service: Migration engine
            profile_service: Creates the profile on first sign-in, if given
        """
        self.auth_provider = auth_provider
        self.local_store = local_store
        self.sync_service = sync_service
        self.profile_service = profile_service

        self._mode = SessionMode.LOCAL
        self._identity: Identity | None = None
        self._listeners: list[ModeListener] = []
        self._unsubscribe_auth: Unsubscribe | None = None
        self._lock = asyncio.Lock()
        self.last_sync_result: SyncResult | None = None
        self._migrated_ids: dict[str, str] = {}

    @property
    def current_mode(self) -> SessionMode:
        return self._mode

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def is_local_mode(self) -> bool:
        return self._mode is SessionMode.LOCAL

    def migrated_id(self, local_id: str) -> str:
        """Remote id a local task was uploaded as in this session, else *local_id*."""
        return self._migrated_ids.get(local_id, local_id)

    @asynccontextmanager
    async def settled(self) -> AsyncIterator[None]:
        """Hold off transitions while the caller works against the current mode.

        Must not be entered from a mode listener.
        """
        async with self._lock:
            yield

    async def start(self) -> None:
        """Follow the auth provider, applying its current identity first."""
        if self._unsubscribe_auth is None:
            self._unsubscribe_auth = self.auth_provider.on_auth_state_changed(
                self.handle_auth_state
            )
        identity = self.auth_provider.current_identity
        if identity is not None:
            await self.handle_auth_state(identity)

    def close(self) -> None:
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None

    def on_mode_change(self, listener: ModeListener) -> Unsubscribe:
        """Register *listener*, called with ``(mode, identity)`` after each transition."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def handle_auth_state(self, identity: Identity | None) -> None:
        """Apply an auth state change reported by the provider."""
        async with self._lock:
            if identity is None:
                if self._mode is SessionMode.LOCAL:
                    return
                await self._enter_local()
                return

            if self._mode is SessionMode.LOCAL:
                await self._enter_remote(identity)
                return

            if self._identity is not None and identity.uid == self._identity.uid:
                self._identity = identity
                return

            logger.warning(
                "Signed-in account changed from %s to %s; switching sessions",
                self._identity.uid if self._identity else None,
                identity.uid,
            )
            await self._enter_local()
            await self._enter_remote(identity)

    async def _enter_local(self) -> None:
        logger.info("Leaving remote mode for %s", self._identity.uid if self._identity else None)
        self._mode = SessionMode.LOCAL
        self._identity = None
        self._migrated_ids = {}
        await self._notify()

    async def _enter_remote(self, identity: Identity) -> None:
        logger.info("Entering remote mode for %s", identity.uid)
        if self.profile_service is not None:
            try:
                await self.profile_service.ensure_profile(identity)
            except Exception as e:  # profile is cosmetic; sign-in proceeds
                logger.warning("Could not ensure profile for %s: %s", identity.uid, e)

        await self._migrate(identity)
        self._mode = SessionMode.REMOTE
        self._identity = identity
        await self._notify()

    async def _migrate(self, identity: Identity) -> None:
        try:
            local_tasks = await self.local_store.load_all()
        except StoreIOError as e:
            logger.warning("Could not read local tasks for migration: %s", e)
            return
        if not local_tasks:
            return
        try:
            self.last_sync_result = await self.sync_service.migrate(local_tasks, identity.uid)
            self._migrated_ids = dict(self.last_sync_result.remote_ids)
        except SyncError as e:
            self.last_sync_result = e.result
            logger.warning("Local tasks were not migrated to %s: %s", identity.uid, e)

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(self._mode, self._identity)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:  # the transition already happened
                logger.error("Mode listener %r failed: %s", listener, e, exc_info=True)
