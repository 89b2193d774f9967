from __future__ import annotations

import logging
from typing import Any

import typer
from rich import print
from rich.logging import RichHandler

from fieldsync.config import FieldSyncConfig, read_config_file, write_config_file
from fieldsync.errors import StorageUnavailable
from fieldsync.remote import RestRemoteStore
from fieldsync.store import QueueStore


def configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    root = logging.getLogger("fieldsync")
    if any(isinstance(handler, RichHandler) for handler in root.handlers):
        return
    root.addHandler(RichHandler(show_path=False, rich_tracebacks=True))
    root.setLevel(logging.DEBUG)


def read_config_or_exit() -> dict[str, Any]:
    try:
        return read_config_file()
    except ValueError as exc:
        print(f"[red]Invalid config file: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def write_config_or_exit(data: dict[str, Any]) -> None:
    try:
        write_config_file(data)
    except OSError as exc:
        print(f"[red]Failed to write config: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def open_store_or_exit(db_path: str | None, cfg: FieldSyncConfig) -> QueueStore:
    try:
        return QueueStore(db_path or cfg.db_path)
    except StorageUnavailable as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def remote_from_config(cfg: FieldSyncConfig) -> RestRemoteStore:
    if not cfg.remote_url:
        print("[red]Remote URL not configured (set remote_url or FIELDSYNC_REMOTE_URL)[/red]")
        raise typer.Exit(code=1)
    return RestRemoteStore(
        cfg.remote_url,
        api_key=cfg.api_key,
        access_token=cfg.access_token,
        timeout_s=cfg.http_timeout_s,
    )
