import json
from pathlib import Path

import pytest

from fieldsync.config import (
    FieldSyncConfig,
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
    write_config_file,
)


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_rejects_non_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="must be an object"):
        read_config_file(config_path)


def test_write_then_read_config(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "config.json"
    written = write_config_file({"remote_url": "https://example.co"}, config_path)
    assert written == config_path
    assert read_config_file(config_path) == {"remote_url": "https://example.co"}


def test_config_path_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FIELDSYNC_CONFIG", str(tmp_path / "other.json"))
    assert get_config_path() == tmp_path / "other.json"


def test_load_config_defaults() -> None:
    cfg = load_config()
    assert cfg == FieldSyncConfig()
    assert cfg.auto_sync_on_reconnect is False
    assert cfg.stuck_after_s == 300


def test_load_config_file_values(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {
                "remote_url": "https://example.co",
                "user_id": "u1",
                "auto_sync_on_reconnect": True,
                "http_timeout_s": 3,
                "stuck_after_s": "60",
                "unknown_key": "ignored",
            }
        )
    )

    cfg = load_config(config_path)

    assert cfg.remote_url == "https://example.co"
    assert cfg.user_id == "u1"
    assert cfg.auto_sync_on_reconnect is True
    assert cfg.http_timeout_s == 3.0
    assert cfg.stuck_after_s == 60


def test_env_overrides_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"user_id": "from-file", "watch_interval_s": 30}))
    monkeypatch.setenv("FIELDSYNC_USER_ID", "from-env")
    monkeypatch.setenv("FIELDSYNC_AUTO_SYNC", "yes")
    monkeypatch.setenv("FIELDSYNC_DB_PATH", str(tmp_path / "q.sqlite"))

    assert get_env_overrides()["user_id"] == "from-env"
    cfg = load_config(config_path)

    assert cfg.user_id == "from-env"
    assert cfg.auto_sync_on_reconnect is True
    assert cfg.watch_interval_s == 30.0
    assert cfg.db_path == str(tmp_path / "q.sqlite")


def test_invalid_values_warn_and_keep_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FIELDSYNC_STUCK_AFTER_S", "soon")
    monkeypatch.setenv("FIELDSYNC_HTTP_TIMEOUT_S", "fast")

    with pytest.warns(RuntimeWarning, match="stuck_after_s"):
        cfg = load_config()

    assert cfg.stuck_after_s == 300
    assert cfg.http_timeout_s == 10.0
