"""todosync domain models.

Pydantic models for the task entity, the partial-update payload, the
authenticated identity and the user's profile/settings.
"""

from .config_models import AppConfig, RemoteConfig, StorageConfig, SyncConfig
from .core import (
    PRIORITY_ORDER,
    TASK_CATEGORIES,
    Category,
    Identity,
    Priority,
    SessionMode,
    Task,
    TaskCreate,
    TaskUpdate,
    UserProfile,
    UserSettings,
)

__all__ = [
    # Task models
    "Task",
    "TaskCreate",
    "TaskUpdate",
    "Priority",
    "PRIORITY_ORDER",
    "TASK_CATEGORIES",
    "Category",
    # Session/user models
    "SessionMode",
    "Identity",
    "UserProfile",
    "UserSettings",
    # Config models
    "AppConfig",
    "RemoteConfig",
    "StorageConfig",
    "SyncConfig",
]
