from __future__ import annotations

import threading

import typer
from rich import print

from fieldsync.store import SyncState
from fieldsync.sync import SyncController, run_sync_watch


def sync_run_cmd(controller: SyncController) -> None:
    """Run one sync pass and report the outcome."""

    before = controller.last_result
    if not controller.monitor.probe(controller.remote):
        print("[yellow]Remote store unreachable; scans stay queued[/yellow]")
        raise typer.Exit(code=1)

    def on_progress(state: SyncState) -> None:
        if state.is_syncing and state.total:
            print(f"  synced {state.progress}/{state.total}")

    # Coming online may already have run a pass (auto sync on reconnect).
    result = controller.last_result
    if result is None or result is before:
        if not controller.can_sync():
            print("Nothing to sync")
            return
        result = controller.start_sync(on_progress)
    if result.skipped:
        print(f"[yellow]{result.error}[/yellow]")
        raise typer.Exit(code=1)
    if not result.success:
        print(
            f"[red]Sync failed: {result.error}[/red] "
            f"(synced {result.synced_count}, still queued {result.failed_count})"
        )
        raise typer.Exit(code=1)
    print(f"[green]Synced {result.synced_count} changes[/green]")
    remaining = controller.pending_count()
    if remaining:
        print(f"[yellow]{remaining} mutations still queued (see `fieldsync queue list`)[/yellow]")


def sync_watch_cmd(
    controller: SyncController,
    *,
    interval_s: float,
    stop_event: threading.Event | None = None,
) -> None:
    """Poll connectivity and report transitions until interrupted."""

    def on_change(online: bool) -> None:
        if online:
            print(f"[green]online[/green] ({controller.pending_count()} queued)")
        else:
            print("[yellow]offline[/yellow]")

    unsubscribe = controller.monitor.subscribe(on_change)
    mode = "auto sync on reconnect" if controller.auto_sync_on_reconnect else "manual sync"
    print(f"Watching connectivity every {interval_s:g}s ({mode}); Ctrl-C to stop")
    try:
        run_sync_watch(controller, interval_s=interval_s, stop_event=stop_event)
    except KeyboardInterrupt:
        print("Stopped")
    finally:
        unsubscribe()
