"""Unit tests for ConfigService."""

from __future__ import annotations

import stat

import pytest

from todosync.errors import ConfigError
from todosync.models import AppConfig
from todosync.services.config_service import ConfigService


@pytest.fixture()
def service(tmp_path):
    return ConfigService(config_dir=tmp_path)


def test_defaults_when_file_missing(service):
    assert service.config == AppConfig()


def test_corrupted_file_yields_defaults(service, tmp_path):
    (tmp_path / "config.json").write_text("{broken", encoding="utf-8")

    assert service.load_config() == AppConfig()


def test_set_validates_and_persists(service, tmp_path):
    service.set("storage.backend", "json")
    service.set("sync.dedup_window_seconds", "90")

    reloaded = ConfigService(config_dir=tmp_path)
    assert reloaded.get("storage.backend") == "json"
    assert reloaded.get("sync.dedup_window_seconds") == 90.0
    mode = stat.S_IMODE((tmp_path / "config.json").stat().st_mode)
    assert mode == 0o600


def test_set_rejects_invalid_value(service, tmp_path):
    with pytest.raises(ConfigError):
        service.set("storage.backend", "floppy")

    assert service.get("storage.backend") == "sqlite"
    assert not (tmp_path / "config.json").exists()


def test_unknown_key_raises(service):
    with pytest.raises(ConfigError):
        service.get("remote.nope")
    with pytest.raises(ConfigError):
        service.set("nope", 1)


def test_get_section_returns_model(service):
    assert service.get("sync").clear_local_after_sync is True


def test_reset_removes_file(service, tmp_path):
    service.set("remote.timeout", 5)

    service.reset_config()

    assert service.config == AppConfig()
    assert not (tmp_path / "config.json").exists()


def test_as_dict_is_json_compatible(service):
    data = service.as_dict()

    assert data["storage"]["backend"] == "sqlite"
    assert data["remote"]["poll_interval"] == 5.0


def test_cached_service_uses_patched_dir(tmp_config, tmp_path):
    tmp_config.set("storage.backend", "memory")

    assert (tmp_path / "config.json").exists()
