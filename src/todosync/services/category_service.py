"""User-defined categories in the ``categories`` collection.

Each document carries ``userId``, ``name``, ``color`` and an optional
``icon``. Categories are only available to signed-in users.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from todosync.errors import TaskValidationError
from todosync.models import Category
from todosync.repositories import DocumentSnapshot, DocumentStore, Query
from todosync.utils.logger import get_logger

CATEGORIES_COLLECTION = "categories"

logger = get_logger("categories")


def document_to_category(snapshot: DocumentSnapshot) -> Category:
    data = snapshot.data
    return Category(
        id=snapshot.id,
        user_id=data["userId"],
        name=data["name"],
        color=data.get("color") or "",
        icon=data.get("icon"),
    )


class CategoryService:
    """Lists and creates a user's categories."""

    def __init__(self, documents: DocumentStore, collection: str = CATEGORIES_COLLECTION):
        self.documents = documents
        self.collection = collection

    async def list_categories(self, user_id: str) -> list[Category]:
        """Categories owned by *user_id*; empty when the read fails."""
        try:
            snapshots = await self.documents.query(Query(self.collection).where("userId", user_id))
        except Exception as e:  # categories are optional; show none
            logger.warning("Could not read categories for %s: %s", user_id, e)
            return []

        categories = []
        for snapshot in snapshots:
            try:
                categories.append(document_to_category(snapshot))
            except (KeyError, ValidationError) as e:
                logger.warning("Skipping malformed category %s: %s", snapshot.id, e)
        return categories

    async def create_category(
        self, user_id: str, name: str, color: str, icon: str | None = None
    ) -> Category:
        """Store a new category; the store assigns the id.

        Raises:
            TaskValidationError: Blank name; nothing was written
        """
        name = name.strip()
        if not name:
            raise TaskValidationError("Invalid category: name must not be empty")

        data: dict[str, Any] = {"userId": user_id, "name": name, "color": color}
        if icon:
            data["icon"] = icon
        snapshot = await self.documents.add(self.collection, data)
        logger.info("Created category %s for %s", snapshot.id, user_id)
        return document_to_category(snapshot)
