"""
Snapshot commands for vsnap

create, list, restore and drop, registered at the top level.
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import typer

from vsnap.cores.docker_runtime import DockerRuntime
from vsnap.cores.snapshot_manager import SnapshotManager
from vsnap.helpers import ui_utils as utils
from vsnap.helpers.config import Config
from vsnap.helpers.errors import VsnapError


def get_manager(ctx: typer.Context) -> SnapshotManager:
    """Build the manager from the callback's config (or an injected runtime)."""
    obj = ctx.ensure_object(dict)
    cfg = obj.get("config") or Config()
    runtime = obj.get("runtime") or DockerRuntime(base_url=cfg.docker_base_url)
    return SnapshotManager(runtime, config=cfg, show_progress=obj.get("show_progress", True))


@contextmanager
def handle_errors(ctx: typer.Context) -> Iterator[None]:
    """Turn VsnapError into an error line and exit code 1."""
    try:
        yield
    except VsnapError as e:
        utils.print_error(str(e))
        if (ctx.obj or {}).get("debug"):
            raise
        raise typer.Exit(1)


def create(
    ctx: typer.Context,
    source_volume: str = typer.Argument(..., help="Volume to snapshot"),
    snapshot_name: str = typer.Argument(..., help="Name of the new snapshot"),
    compress: Optional[bool] = typer.Option(
        None, "--compress/--no-compress", help="Compress the snapshot with zstd (default from config)"
    ),
):
    """Create a snapshot of a volume"""
    with handle_errors(ctx):
        manager = get_manager(ctx)
        if compress is None:
            compress = manager.config.compress_by_default
        info = manager.create_snapshot(source_volume, snapshot_name, compress=compress)
    utils.print_success(f"Snapshot {info.name} created ({info.volume_name})")


def list_snapshots(
    ctx: typer.Context,
    size: bool = typer.Option(False, "--size", "-s", help="Show snapshot sizes"),
):
    """List all snapshots"""
    with handle_errors(ctx):
        snapshots = get_manager(ctx).list_snapshots(include_size=size)

    if not snapshots:
        utils.console.print("No snapshots found.")
        return

    columns = [("Snapshot", "cyan", None), ("Created", "white", None)]
    if size:
        columns.append(("Size", "green", None))
    columns.append(("Volume", "dim", None))
    table = utils.create_table("", columns)

    for snap in snapshots:
        row = [snap.name, snap.identity.created_at.strftime("%Y-%m-%d %H:%M:%S")]
        if size:
            row.append(utils.format_size(snap.size_bytes))
        row.append(snap.volume_name)
        table.add_row(*row)

    utils.console.print(table)


def restore(
    ctx: typer.Context,
    snapshot_name: str = typer.Argument(..., help="Snapshot to restore"),
    restore_volume: str = typer.Argument(..., help="Volume to restore into"),
    drop: bool = typer.Option(False, "--drop", help="Drop the snapshot after a successful restore"),
    replace: bool = typer.Option(False, "--replace", help="Replace the target volume if it exists"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Restore a snapshot into a new volume"""
    with handle_errors(ctx):
        manager = get_manager(ctx)
        if replace and not yes and manager.volumes.volume_exists(restore_volume):
            if not utils.prompt_confirm(f"Volume {restore_volume} exists. Replace it?"):
                utils.print_warning("Restore cancelled")
                raise typer.Exit(1)
        manager.restore_snapshot(
            snapshot_name, restore_volume, replace_existing=replace, drop_snapshot=drop
        )
    utils.print_success(f"Snapshot {snapshot_name} restored into {restore_volume}")
    if drop:
        utils.print_info(f"Snapshot {snapshot_name} dropped")


def drop(
    ctx: typer.Context,
    snapshot_name: str = typer.Argument(..., help="Snapshot to drop"),
):
    """Drop a snapshot"""
    with handle_errors(ctx):
        volume = get_manager(ctx).drop_snapshot(snapshot_name)
    utils.print_success(f"Snapshot {snapshot_name} dropped ({volume})")


def register_to_main_app(main_app: typer.Typer):
    """Register snapshot commands to main CLI app"""
    main_app.command(name="create")(create)
    main_app.command(name="list")(list_snapshots)
    main_app.command(name="restore")(restore)
    main_app.command(name="drop")(drop)
