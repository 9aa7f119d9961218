"""Core domain models for todosync."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from todosync.utils.timeutils import ensure_utc

Priority = Literal["high", "medium", "low"]

PRIORITY_ORDER: dict[str, int] = {"high": 3, "medium": 2, "low": 1}

TASK_CATEGORIES = ("Personal", "Work", "Shopping", "Health", "Other")


class SessionMode(str, Enum):
    """Which store is authoritative for the active session."""

    LOCAL = "local"
    REMOTE = "remote"


def _clean_title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("title must not be empty")
    return value


class Task(BaseModel):
    """Task model representing a complete task entity.

    Attributes:
        id: Unique identifier within the owning store
        title: Short task title (non-empty)
        description: Optional detailed description
        completed: Completion status
        priority: "high", "medium" or "low"
        category: Free-form category name
        due_date: Optional due date
        created_at: Creation timestamp, immutable
        updated_at: Last mutation timestamp
        user_id: Owning account (remote tasks only)
        synced_remote_id: Remote document id once a local task was uploaded
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str | None = None
    completed: bool = False
    priority: Priority = "medium"
    category: str = "Other"
    due_date: datetime | None = None
    created_at: datetime
    updated_at: datetime
    user_id: str | None = None
    synced_remote_id: str | None = None

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        return _clean_title(value)

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def _normalize_time(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class TaskCreate(BaseModel):
    """Model for creating a new task.

    Attributes:
        title: Task title (required, non-empty)
        description: Optional detailed description
        completed: Initial completion status
        priority: Priority level
        category: Category name
        due_date: Optional due date
    """

    model_config = ConfigDict(extra="forbid")

    title: str
    description: str | None = None
    completed: bool = False
    priority: Priority = "medium"
    category: str = "Other"
    due_date: datetime | None = None

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str) -> str:
        return _clean_title(value)

    @field_validator("due_date")
    @classmethod
    def _normalize_due(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class TaskUpdate(BaseModel):
    """Model for a partial task update.

    Only fields the caller passed explicitly are part of the update
    (``model_fields_set``); passing ``due_date=None`` clears the due date,
    omitting it leaves the due date alone.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    description: str | None = None
    completed: bool | None = None
    priority: Priority | None = None
    category: str | None = None
    due_date: datetime | None = None

    @field_validator("title")
    @classmethod
    def _validate_title(cls, value: str | None) -> str | None:
        return _clean_title(value) if value is not None else None

    @field_validator("due_date")
    @classmethod
    def _normalize_due(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _reject_null_required(self) -> TaskUpdate:
        for name in ("title", "completed", "priority", "category"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> dict:
        """Return only the explicitly supplied fields."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class Identity(BaseModel):
    """Authenticated identity reported by the auth provider."""

    model_config = ConfigDict(frozen=True)

    uid: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None


class UserProfile(BaseModel):
    """Profile stored alongside the user's remote data."""

    name: str = "User"
    email: str = ""
    photo_url: str | None = None
    created_at: datetime


class UserSettings(BaseModel):
    """Per-user application settings."""

    theme: Literal["light", "dark", "system"] = "system"
    notifications: bool = Field(default=True)


class Category(BaseModel):
    """User-defined task category stored in the ``categories`` collection."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    name: str
    color: str
    icon: str | None = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value
