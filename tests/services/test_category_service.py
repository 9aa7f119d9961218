"""Unit tests for CategoryService."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from todosync.errors import TaskValidationError
from todosync.services.category_service import CategoryService


@pytest.fixture()
def category_service(documents):
    return CategoryService(documents)


@pytest.mark.asyncio
async def test_create_category_stores_document(category_service, documents):
    category = await category_service.create_category("u1", "  Errands ", "#ff9800", icon="cart")

    stored = (await documents.get("categories", category.id)).data
    assert stored == {"userId": "u1", "name": "Errands", "color": "#ff9800", "icon": "cart"}
    assert category.name == "Errands"
    assert category.user_id == "u1"


@pytest.mark.asyncio
async def test_create_category_omits_missing_icon(category_service, documents):
    category = await category_service.create_category("u1", "Errands", "#ff9800")

    assert "icon" not in (await documents.get("categories", category.id)).data
    assert category.icon is None


@pytest.mark.asyncio
async def test_blank_name_is_rejected_before_writing(category_service, documents):
    documents.add = AsyncMock()

    with pytest.raises(TaskValidationError):
        await category_service.create_category("u1", "   ", "#000000")

    documents.add.assert_not_called()


@pytest.mark.asyncio
async def test_list_categories_only_returns_the_users_own(category_service):
    await category_service.create_category("u1", "Errands", "#ff9800")
    await category_service.create_category("u1", "Garden", "#4caf50")
    await category_service.create_category("u2", "Someone else's", "#000000")

    categories = await category_service.list_categories("u1")

    assert sorted(c.name for c in categories) == ["Errands", "Garden"]


@pytest.mark.asyncio
async def test_malformed_documents_are_skipped(category_service, documents):
    await documents.add("categories", {"userId": "u1", "color": "#fff"})
    await category_service.create_category("u1", "Errands", "#ff9800")

    assert [c.name for c in await category_service.list_categories("u1")] == ["Errands"]


@pytest.mark.asyncio
async def test_read_failure_returns_no_categories(documents):
    documents.query = AsyncMock(side_effect=ConnectionError("offline"))

    assert await CategoryService(documents).list_categories("u1") == []
