"""Auth provider adapters.

- ``InMemoryAuthProvider``: accounts held in process memory, for tests and
  offline development
- ``RestAuthProvider``: the todosync HTTP backend (``/auth/login``,
  ``/auth/register``, ``/auth/logout``), with the session persisted in the
  device key-value storage

Both notify registered callbacks after every sign-in and sign-out.
"""

from __future__ import annotations

import inspect
import json
import uuid

import httpx

from todosync.errors import AuthError
from todosync.models import Identity
from todosync.repositories import AuthProvider, AuthStateCallback, KeyValueStorage, Unsubscribe
from todosync.services.api.client import APIClient
from todosync.utils.logger import get_logger

SESSION_KEY = "@auth_session"

logger = get_logger("auth")


class _AuthStateEmitter(AuthProvider):
    """Callback bookkeeping shared by the providers."""

    def __init__(self):
        self._callbacks: list[AuthStateCallback] = []
        self._identity: Identity | None = None

    def on_auth_state_changed(self, callback: AuthStateCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    @property
    def current_identity(self) -> Identity | None:
        return self._identity

    async def _emit(self, identity: Identity | None) -> None:
        self._identity = identity
        for callback in list(self._callbacks):
            result = callback(identity)
            if inspect.isawaitable(result):
                await result


class InMemoryAuthProvider(_AuthStateEmitter):
    """Email/password accounts kept in memory."""

    def __init__(self):
        super().__init__()
        self._accounts: dict[str, tuple[str, Identity]] = {}

    def register(self, email: str, password: str, full_name: str | None = None) -> Identity:
        """Create an account without signing in."""
        if email in self._accounts:
            raise AuthError(f"An account already exists for {email}")
        identity = Identity(uid=uuid.uuid4().hex, email=email, display_name=full_name)
        self._accounts[email] = (password, identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        account = self._accounts.get(email)
        if account is None or account[0] != password:
            raise AuthError("Invalid email or password")
        await self._emit(account[1])
        return account[1]

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> Identity:
        identity = self.register(email, password, full_name)
        await self._emit(identity)
        return identity

    async def sign_out(self) -> None:
        await self._emit(None)

    async def switch_identity(self, identity: Identity | None) -> None:
        """Report *identity* directly, as a provider does on a token swap."""
        await self._emit(identity)


def _identity_from_payload(payload: dict) -> Identity:
    user = payload.get("user") or {}
    return Identity(
        uid=str(user["uid"]),
        email=user.get("email"),
        display_name=user.get("displayName"),
        photo_url=user.get("photoURL"),
    )


class RestAuthProvider(_AuthStateEmitter):
    """Auth against the todosync HTTP backend."""

    def __init__(self, client: APIClient, storage: KeyValueStorage):
        """Initialize the provider.

        Args:
            client: API client; its token provider should be ``self.token``
            storage: Device storage holding the persisted session
        """
        super().__init__()
        self.client = client
        self.storage = storage
        self._token: str | None = None

    def token(self) -> str | None:
        """Bearer token of the current session."""
        return self._token

    async def restore(self) -> Identity | None:
        """Load a persisted session without notifying callbacks."""
        raw = await self.storage.get(SESSION_KEY)
        if not raw:
            return None
        try:
            session = json.loads(raw)
            self._token = session["token"]
            self._identity = Identity.model_validate(session["identity"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable auth session: %s", e)
            await self.storage.remove(SESSION_KEY)
            self._token = None
            self._identity = None
        return self._identity

    async def _start_session(self, payload: dict) -> Identity:
        identity = _identity_from_payload(payload)
        self._token = payload["token"]
        await self.storage.set(
            SESSION_KEY,
            json.dumps({"token": self._token, "identity": identity.model_dump()}),
        )
        await self._emit(identity)
        return identity

    async def _post(self, path: str, body: dict) -> dict:
        try:
            response = await self.client.post(path, json=body, skip_auth=True)
        except httpx.HTTPStatusError as e:
            raise AuthError(f"{path} failed with HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise AuthError(f"{path} failed: {e}") from e
        return response.json()

    async def sign_in(self, email: str, password: str) -> Identity:
        payload = await self._post("/auth/login", {"email": email, "password": password})
        return await self._start_session(payload)

    async def sign_up(self, email: str, password: str, full_name: str | None = None) -> Identity:
        payload = await self._post(
            "/auth/register", {"email": email, "password": password, "fullName": full_name}
        )
        return await self._start_session(payload)

    async def sign_out(self) -> None:
        token = self._token
        self._token = None
        await self.storage.remove(SESSION_KEY)
        await self._emit(None)
        if token is None:
            return
        try:
            await self.client.request(
                "POST", "/auth/logout", skip_auth=True, json={"token": token}
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Server logout failed: {e}") from e
