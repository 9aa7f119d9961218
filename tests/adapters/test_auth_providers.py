"""Unit tests for the auth provider adapters."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import EMAIL, PASSWORD
from todosync.adapters.auth import SESSION_KEY, RestAuthProvider
from todosync.adapters.storage import MemoryKeyValueStorage
from todosync.errors import AuthError
from todosync.models import RemoteConfig
from todosync.services.api.client import APIClient

# ---------------------------------------------------------------------------
# InMemoryAuthProvider
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sign_in_notifies_callbacks(auth_provider):
    seen = []
    auth_provider.on_auth_state_changed(seen.append)

    identity = await auth_provider.sign_in(EMAIL, PASSWORD)

    assert seen == [identity]
    assert auth_provider.current_identity == identity
    assert identity.display_name == "Ana"


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited(auth_provider):
    callback = AsyncMock()
    auth_provider.on_auth_state_changed(callback)

    await auth_provider.sign_in(EMAIL, PASSWORD)
    await auth_provider.sign_out()

    assert callback.await_count == 2
    callback.assert_awaited_with(None)


@pytest.mark.asyncio
async def test_wrong_password_raises_auth_error(auth_provider):
    with pytest.raises(AuthError):
        await auth_provider.sign_in(EMAIL, "wrong")
    assert auth_provider.current_identity is None


@pytest.mark.asyncio
async def test_sign_up_rejects_existing_account(auth_provider):
    with pytest.raises(AuthError):
        await auth_provider.sign_up(EMAIL, "other")


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications(auth_provider):
    seen = []
    unsubscribe = auth_provider.on_auth_state_changed(seen.append)
    unsubscribe()
    unsubscribe()

    await auth_provider.sign_in(EMAIL, PASSWORD)

    assert seen == []


# ---------------------------------------------------------------------------
# RestAuthProvider
# ---------------------------------------------------------------------------

LOGIN_REPLY = {
    "token": "tok-1",
    "user": {"uid": "u1", "email": EMAIL, "displayName": "Ana", "photoURL": None},
}


def make_rest_provider(handler, storage=None) -> RestAuthProvider:
    client = APIClient(
        RemoteConfig(endpoint="http://backend.test/api"), transport=httpx.MockTransport(handler)
    )
    provider = RestAuthProvider(client, storage or MemoryKeyValueStorage())
    client.token_provider = provider.token
    return provider


@pytest.mark.asyncio
async def test_rest_sign_in_persists_session_and_restores_it():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=LOGIN_REPLY)

    storage = MemoryKeyValueStorage()
    provider = make_rest_provider(handler, storage)
    seen = []
    provider.on_auth_state_changed(seen.append)

    identity = await provider.sign_in(EMAIL, PASSWORD)

    assert requests[0].url.path == "/api/auth/login"
    assert json.loads(requests[0].content) == {"email": EMAIL, "password": PASSWORD}
    assert "Authorization" not in requests[0].headers
    assert identity.uid == "u1"
    assert seen == [identity]
    assert provider.token() == "tok-1"

    restored = make_rest_provider(handler, storage)
    assert await restored.restore() == identity
    assert restored.token() == "tok-1"
    await provider.client.close()


@pytest.mark.asyncio
async def test_rest_sign_up_sends_full_name():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=LOGIN_REPLY)

    provider = make_rest_provider(handler)
    await provider.sign_up(EMAIL, PASSWORD, "Ana Lima")

    assert bodies[0]["fullName"] == "Ana Lima"
    await provider.client.close()


@pytest.mark.asyncio
async def test_rest_rejected_credentials_raise_auth_error():
    provider = make_rest_provider(lambda request: httpx.Response(401))

    with pytest.raises(AuthError):
        await provider.sign_in(EMAIL, "wrong")
    assert provider.current_identity is None
    await provider.client.close()


@pytest.mark.asyncio
async def test_rest_sign_out_clears_session_even_if_server_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/auth/logout"):
            return httpx.Response(500)
        return httpx.Response(200, json=LOGIN_REPLY)

    storage = MemoryKeyValueStorage()
    provider = make_rest_provider(handler, storage)
    await provider.sign_in(EMAIL, PASSWORD)
    seen = []
    provider.on_auth_state_changed(seen.append)

    with pytest.raises(AuthError):
        await provider.sign_out()

    assert seen == [None]
    assert provider.token() is None
    assert await storage.get(SESSION_KEY) is None
    await provider.client.close()


@pytest.mark.asyncio
async def test_rest_restore_discards_corrupted_session():
    storage = MemoryKeyValueStorage({SESSION_KEY: "{broken"})
    provider = make_rest_provider(lambda request: httpx.Response(500), storage)

    assert await provider.restore() is None
    assert await storage.get(SESSION_KEY) is None
    await provider.client.close()
