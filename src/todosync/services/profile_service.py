"""User profile and settings stored in the ``users`` collection.

One document per account (id = uid) holding two maps, ``profile`` and
``settings``. All writes merge so the two maps never clobber each other.
"""

from __future__ import annotations

from typing import Any

from todosync.models import Identity, UserProfile, UserSettings
from todosync.repositories import SERVER_TIMESTAMP, DocumentStore, Timestamp
from todosync.utils.logger import get_logger
from todosync.utils.timeutils import now_utc

USERS_COLLECTION = "users"

logger = get_logger("profile")


def _profile_from_data(data: dict[str, Any]) -> UserProfile:
    created_at = data.get("createdAt")
    return UserProfile(
        name=data.get("name") or "User",
        email=data.get("email") or "",
        photo_url=data.get("photoURL"),
        created_at=created_at.to_datetime() if isinstance(created_at, Timestamp) else now_utc(),
    )


class ProfileService:
    """Reads and writes per-user profile and settings."""

    def __init__(self, documents: DocumentStore, collection: str = USERS_COLLECTION):
        self.documents = documents
        self.collection = collection

    async def get_profile(self, uid: str) -> UserProfile | None:
        """Stored profile for *uid*, or None if none was created yet."""
        snapshot = await self.documents.get(self.collection, uid)
        if snapshot is None or not isinstance(snapshot.data.get("profile"), dict):
            return None
        return _profile_from_data(snapshot.data["profile"])

    async def create_profile(
        self,
        uid: str,
        name: str | None = None,
        email: str | None = None,
        photo_url: str | None = None,
    ) -> UserProfile:
        """Write a fresh profile; ``createdAt`` is assigned by the store."""
        profile: dict[str, Any] = {
            "name": name or "User",
            "email": email or "",
            "createdAt": SERVER_TIMESTAMP,
        }
        if photo_url:
            profile["photoURL"] = photo_url
        await self.documents.set(self.collection, uid, {"profile": profile}, merge=True)
        logger.info("Created profile for %s", uid)
        return UserProfile(
            name=profile["name"], email=profile["email"], photo_url=photo_url, created_at=now_utc()
        )

    async def ensure_profile(self, identity: Identity) -> UserProfile:
        """Return the profile for *identity*, creating it on first sign-in."""
        profile = await self.get_profile(identity.uid)
        if profile is not None:
            return profile
        return await self.create_profile(
            identity.uid,
            name=identity.display_name,
            email=identity.email,
            photo_url=identity.photo_url,
        )

    async def update_profile(
        self,
        uid: str,
        *,
        name: str | None = None,
        email: str | None = None,
        photo_url: str | None = None,
    ) -> None:
        """Merge the given profile fields; others (``createdAt``) are kept."""
        changes: dict[str, Any] = {}
        if name is not None:
            changes["name"] = name
        if email is not None:
            changes["email"] = email
        if photo_url is not None:
            changes["photoURL"] = photo_url
        if not changes:
            return
        await self.documents.set(self.collection, uid, {"profile": changes}, merge=True)

    async def get_settings(self, uid: str) -> UserSettings:
        """Stored settings, or defaults when absent or unreadable."""
        try:
            snapshot = await self.documents.get(self.collection, uid)
        except Exception as e:  # settings are optional; fall back to defaults
            logger.warning("Could not read settings for %s: %s", uid, e)
            return UserSettings()
        if snapshot is None or not isinstance(snapshot.data.get("settings"), dict):
            return UserSettings()
        return UserSettings.model_validate(snapshot.data["settings"])

    async def update_settings(self, uid: str, settings: UserSettings) -> None:
        await self.documents.set(
            self.collection, uid, {"settings": settings.model_dump()}, merge=True
        )
