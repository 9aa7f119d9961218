"""Tests for AuthService."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from conftest import EMAIL, PASSWORD
from todosync.errors import AuthError
from todosync.models import SessionMode


@pytest.mark.asyncio
async def test_sign_in_strips_email(app):
    identity = await app.auth_service.sign_in(f"  {EMAIL} ", PASSWORD)

    assert identity.email == EMAIL
    assert app.auth_service.identity == identity


@pytest.mark.asyncio
async def test_sign_in_with_bad_password_stays_local(app):
    with pytest.raises(AuthError):
        await app.auth_service.sign_in(EMAIL, "wrong")

    assert app.mode_controller.current_mode is SessionMode.LOCAL


@pytest.mark.asyncio
async def test_sign_up_stores_full_name_in_profile(app):
    identity = await app.auth_service.sign_up("bo@example.com", "secret", "Bo Silva")

    assert app.mode_controller.current_mode is SessionMode.REMOTE
    profile = await app.profile_service.get_profile(identity.uid)
    assert profile.name == "Bo Silva"


@pytest.mark.asyncio
async def test_sign_up_profile_failure_is_not_fatal(app):
    app.profile_service.update_profile = AsyncMock(side_effect=ConnectionError("offline"))
    app.auth_provider.sign_up = AsyncMock(
        return_value=app.auth_provider.register("bo@example.com", "secret")
    )

    identity = await app.auth_service.sign_up("bo@example.com", "secret", "Bo Silva")

    assert identity.email == "bo@example.com"
    app.profile_service.update_profile.assert_awaited_once_with(identity.uid, name="Bo Silva")


@pytest.mark.asyncio
async def test_sign_out_enters_local_mode_before_provider_call(app):
    await app.auth_service.sign_in(EMAIL, PASSWORD)
    modes_at_call = []

    async def provider_sign_out():
        modes_at_call.append(app.mode_controller.current_mode)

    app.auth_provider.sign_out = provider_sign_out

    await app.auth_service.sign_out()

    assert modes_at_call == [SessionMode.LOCAL]


@pytest.mark.asyncio
async def test_sign_out_wraps_provider_failures(app):
    await app.auth_service.sign_in(EMAIL, PASSWORD)
    app.auth_provider.sign_out = AsyncMock(side_effect=RuntimeError("boom"))

    with pytest.raises(AuthError):
        await app.auth_service.sign_out()

    assert app.mode_controller.current_mode is SessionMode.LOCAL
    assert app.task_service.list_tasks() == []
