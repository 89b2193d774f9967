from __future__ import annotations

import typer
from rich import print

from . import __version__
from .commands.common import (
    configure_logging,
    open_store_or_exit,
    read_config_or_exit,
    remote_from_config,
    write_config_or_exit,
)
from .commands.queue_cmds import (
    delete_cmd,
    edit_cmd,
    queue_clear_cmd,
    queue_list_cmd,
    queue_retry_cmd,
    queue_status_cmd,
    row_cmd,
    scan_cmd,
)
from .commands.sync_cmds import sync_run_cmd, sync_watch_cmd
from .config import FieldSyncConfig, get_config_path, load_config
from .remote import RemoteStore
from .store import QueueStore
from .sync import ConnectivityMonitor, SyncController
from .utils import now_iso

app = typer.Typer(help="fieldsync: offline barcode scan queue and sync")
queue_app = typer.Typer(help="Inspect and manage the local mutation queue")
sync_app = typer.Typer(help="Push queued scans to the remote store")
config_app = typer.Typer(help="Show or change settings")
app.add_typer(queue_app, name="queue")
app.add_typer(sync_app, name="sync")
app.add_typer(config_app, name="config")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the console"),
) -> None:
    configure_logging(verbose)


def _config() -> FieldSyncConfig:
    return load_config()


def _store(db_path: str | None, cfg: FieldSyncConfig) -> QueueStore:
    return open_store_or_exit(db_path, cfg)


def _remote(cfg: FieldSyncConfig) -> RemoteStore:
    return remote_from_config(cfg)


def _controller(store: QueueStore, remote: RemoteStore, cfg: FieldSyncConfig) -> SyncController:
    monitor = ConnectivityMonitor(reconnect_grace_s=cfg.reconnect_grace_s)
    return SyncController(
        store,
        remote,
        monitor,
        auto_sync_on_reconnect=cfg.auto_sync_on_reconnect,
        stuck_after_s=cfg.stuck_after_s,
    )


@app.command()
def version() -> None:
    """Print the installed version."""

    print(__version__)


@app.command()
def scan(
    code: str = typer.Argument(..., help="Scanned barcode"),
    row_id: str = typer.Option(..., "--row", help="Row the barcode belongs to"),
    order_in_row: int = typer.Option(..., "--order", help="Position within the row"),
    user_id: str | None = typer.Option(None, "--user", help="Scanning user (default from config)"),
    timestamp: str | None = typer.Option(None, help="ISO-8601 scan time (default now)"),
    latitude: float | None = typer.Option(None, "--lat", help="Latitude"),
    longitude: float | None = typer.Option(None, "--lon", help="Longitude"),
    db_path: str = typer.Option(None, help="Path to queue database"),
) -> None:
    """Queue a scanned barcode."""

    cfg = _config()
    store = _store(db_path, cfg)
    try:
        scan_cmd(
            store,
            code=code,
            row_id=row_id,
            order_in_row=order_in_row,
            user_id=user_id or cfg.user_id,
            timestamp=timestamp,
            latitude=latitude,
            longitude=longitude,
        )
    finally:
        store.close()


@app.command()
def edit(
    record_id: str = typer.Argument(..., help="Barcode record id"),
    new_code: str = typer.Argument(..., help="Corrected barcode"),
    row_id: str = typer.Option(..., "--row", help="Row the barcode belongs to"),
    old_code: str = typer.Option("", "--old-code", help="Barcode being replaced"),
    timestamp: str | None = typer.Option(None, help="ISO-8601 edit time (default now)"),
    user_id: str | None = typer.Option(None, "--user", help="Editing user (default from config)"),
    db_path: str = typer.Option(None, help="Path to queue database"),
) -> None:
    """Queue a code correction for an existing barcode."""

    cfg = _config()
    store = _store(db_path, cfg)
    try:
        edit_cmd(
            store,
            record_id=record_id,
            row_id=row_id,
            old_code=old_code,
            new_code=new_code,
            timestamp=timestamp or now_iso(),
            user_id=user_id or cfg.user_id,
        )
    finally:
        store.close()


@app.command()
def delete(
    record_id: str = typer.Argument(..., help="Barcode record id"),
    row_id: str = typer.Option(..., "--row", help="Row the barcode belongs to"),
    code: str = typer.Option("", "--code", help="Barcode being removed"),
    timestamp: str | None = typer.Option(None, help="ISO-8601 delete time (default now)"),
    user_id: str | None = typer.Option(None, "--user", help="Deleting user (default from config)"),
    db_path: str = typer.Option(None, help="Path to queue database"),
) -> None:
    """Queue removal of a barcode."""

    cfg = _config()
    store = _store(db_path, cfg)
    try:
        delete_cmd(
            store,
            record_id=record_id,
            row_id=row_id,
            code=code,
            timestamp=timestamp or now_iso(),
            user_id=user_id or cfg.user_id,
        )
    finally:
        store.close()


@app.command()
def row(
    row_id: str = typer.Argument(..., help="Row id"),
    offline: bool = typer.Option(False, "--offline", help="Skip the remote snapshot"),
    json_output: bool = typer.Option(False, "--json", help="Print records as JSON"),
    db_path: str = typer.Option(None, help="Path to queue database"),
) -> None:
    """Show a row merged with its queued changes."""

    cfg = _config()
    remote = None if offline else _remote(cfg)
    store = _store(db_path, cfg)
    try:
        row_cmd(store, remote, row_id=row_id, as_json=json_output)
    finally:
        store.close()
        if remote is not None:
            remote.close()


@queue_app.command("status")
def queue_status(db_path: str = typer.Option(None, help="Path to queue database")) -> None:
    """Show queued mutation counts."""

    store = _store(db_path, _config())
    try:
        queue_status_cmd(store)
    finally:
        store.close()


@queue_app.command("list")
def queue_list(
    row_id: str | None = typer.Option(None, "--row", help="Only this row"),
    json_output: bool = typer.Option(False, "--json", help="Print mutations as JSON"),
    db_path: str = typer.Option(None, help="Path to queue database"),
) -> None:
    """List queued mutations in replay order."""

    store = _store(db_path, _config())
    try:
        queue_list_cmd(store, row_id=row_id, as_json=json_output)
    finally:
        store.close()


@queue_app.command("retry")
def queue_retry(db_path: str = typer.Option(None, help="Path to queue database")) -> None:
    """Return failed mutations to pending."""

    store = _store(db_path, _config())
    try:
        queue_retry_cmd(store)
    finally:
        store.close()


@queue_app.command("clear")
def queue_clear(
    yes: bool = typer.Option(False, "--yes", help="Confirm discarding unsynced scans"),
    db_path: str = typer.Option(None, help="Path to queue database"),
) -> None:
    """Discard every queued mutation."""

    store = _store(db_path, _config())
    try:
        queue_clear_cmd(store, yes=yes)
    finally:
        store.close()


@sync_app.command("run")
def sync_run(db_path: str = typer.Option(None, help="Path to queue database")) -> None:
    """Run one sync pass now."""

    cfg = _config()
    remote = _remote(cfg)
    store = _store(db_path, cfg)
    controller = _controller(store, remote, cfg)
    try:
        sync_run_cmd(controller)
    finally:
        controller.close()
        store.close()
        remote.close()


@sync_app.command("watch")
def sync_watch(
    interval: float = typer.Option(None, help="Seconds between connectivity probes"),
    db_path: str = typer.Option(None, help="Path to queue database"),
) -> None:
    """Watch connectivity; sync on reconnect when auto sync is enabled."""

    cfg = _config()
    remote = _remote(cfg)
    store = _store(db_path, cfg)
    controller = _controller(store, remote, cfg)
    try:
        sync_watch_cmd(
            controller,
            interval_s=interval or cfg.watch_interval_s,
        )
    finally:
        controller.close()
        store.close()
        remote.close()


@config_app.command("show")
def config_show() -> None:
    """Print the effective settings."""

    cfg = _config()
    print(f"config: {get_config_path()}")
    for key, value in vars(cfg).items():
        if key in {"api_key", "access_token"} and value:
            value = "***"
        print(f"  {key} = {value}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Store a setting in the config file."""

    if key not in FieldSyncConfig.__dataclass_fields__:
        print(f"[red]Unknown setting: {key}[/red]")
        raise typer.Exit(code=1)
    data = read_config_or_exit()
    data[key] = value
    write_config_or_exit(data)
    print(f"[green]Saved {key}[/green]")
