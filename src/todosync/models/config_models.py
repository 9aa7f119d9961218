"""Configuration models for todosync."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class RemoteConfig(BaseModel):
    """Cloud document store configuration."""

    endpoint: str = Field(default="http://127.0.0.1:8080/api")
    timeout: int = Field(default=30)
    retry: int = Field(default=3)
    poll_interval: float = Field(default=5.0, gt=0)


class StorageConfig(BaseModel):
    """Device-local storage configuration."""

    backend: Literal["sqlite", "json", "memory"] = Field(default="sqlite")
    path: str | None = Field(
        default=None, description="Storage file; defaults to the user data dir"
    )


class SyncConfig(BaseModel):
    """Sign-in migration configuration."""

    dedup_window_seconds: float = Field(default=60.0, gt=0)
    clear_local_after_sync: bool = Field(default=True)
    reconcile_before_upload: bool = Field(default=False)


class AppConfig(BaseModel):
    """Main todosync configuration."""

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
