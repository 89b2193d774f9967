from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .db import DEFAULT_DB_PATH

DEFAULT_CONFIG_PATH = Path("~/.config/fieldsync/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "db_path": "FIELDSYNC_DB_PATH",
    "remote_url": "FIELDSYNC_REMOTE_URL",
    "api_key": "FIELDSYNC_API_KEY",
    "access_token": "FIELDSYNC_ACCESS_TOKEN",
    "user_id": "FIELDSYNC_USER_ID",
    "http_timeout_s": "FIELDSYNC_HTTP_TIMEOUT_S",
    "auto_sync_on_reconnect": "FIELDSYNC_AUTO_SYNC",
    "reconnect_grace_s": "FIELDSYNC_RECONNECT_GRACE_S",
    "watch_interval_s": "FIELDSYNC_WATCH_INTERVAL_S",
    "stuck_after_s": "FIELDSYNC_STUCK_AFTER_S",
}

_INT_KEYS = {"stuck_after_s"}
_FLOAT_KEYS = {"http_timeout_s", "reconnect_grace_s", "watch_interval_s"}
_BOOL_KEYS = {"auto_sync_on_reconnect"}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("FIELDSYNC_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class FieldSyncConfig:
    db_path: str = str(DEFAULT_DB_PATH)
    remote_url: str | None = None
    api_key: str | None = None
    access_token: str | None = None
    # Scans queued from this device are attributed to this user.
    user_id: str | None = None
    http_timeout_s: float = 10.0
    # Reconnecting does not start a sync unless this is turned on.
    auto_sync_on_reconnect: bool = False
    reconnect_grace_s: float = 5.0
    watch_interval_s: float = 15.0
    stuck_after_s: int = 300


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    if value.lower() in {"1", "true", "yes", "on"}:
        return True
    if value.lower() in {"0", "false", "off", "no"}:
        return False
    return default


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid number for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_bool(value: object, default: bool, *, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return _parse_bool(value, default)
    warnings.warn(f"Invalid bool for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def load_config(path: Path | None = None) -> FieldSyncConfig:
    cfg = FieldSyncConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: FieldSyncConfig, data: dict[str, Any]) -> FieldSyncConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key in _FLOAT_KEYS:
            setattr(cfg, key, _parse_float(value, getattr(cfg, key), key=key))
            continue
        if key in _BOOL_KEYS:
            setattr(cfg, key, _coerce_bool(value, getattr(cfg, key), key=key))
            continue
        if value is not None and not isinstance(value, str):
            warnings.warn(f"Invalid string for {key}: {value!r}", RuntimeWarning, stacklevel=2)
            continue
        if key == "db_path":
            setattr(cfg, key, value or cfg.db_path)
            continue
        setattr(cfg, key, value or None)
    return cfg
