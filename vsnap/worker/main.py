"""
Worker entrypoint (``vsnap-worker``).

Runs inside the worker container. Standard output carries progress records
only; all logging goes to standard error.
"""

import os
import sys
from pathlib import Path

import typer

from ..helpers.constants import VERSION, WORKER_EXIT_FAILED
from ..helpers.errors import VsnapError
from ..helpers.logging import get_logger, log_manager
from . import archiver

app = typer.Typer(
    name="vsnap-worker",
    help="vsnap worker - archives and restores volume contents inside a container.",
    add_completion=False,
)

logger = get_logger(__name__)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        os.environ.get("VSNAP_LOG_LEVEL", "INFO"),
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR).",
    ),
):
    """Configure stderr logging before any command runs."""
    log_manager.configure(level=log_level, stream=sys.stderr)


@app.command()
def snapshot(
    source_path: Path = typer.Argument(..., help="Directory to snapshot (read-only mount)."),
    snapshot_path: Path = typer.Argument(..., help="Snapshot storage directory."),
    compress: bool = typer.Option(False, "--compress", "-c", help="Compress the archive with zstd."),
):
    """Archive SOURCE_PATH into SNAPSHOT_PATH."""
    try:
        archiver.snapshot(source_path, snapshot_path, compress, progress_stream=sys.stdout)
    except VsnapError as e:
        logger.error(f"Snapshot failed: {e}")
        raise typer.Exit(WORKER_EXIT_FAILED)


@app.command()
def restore(
    snapshot_path: Path = typer.Argument(..., help="Snapshot storage directory (read-only mount)."),
    restore_path: Path = typer.Argument(..., help="Directory to restore into."),
):
    """Extract the snapshot in SNAPSHOT_PATH into RESTORE_PATH."""
    try:
        archiver.restore(snapshot_path, restore_path, progress_stream=sys.stdout)
    except VsnapError as e:
        logger.error(f"Restore failed: {e}")
        raise typer.Exit(WORKER_EXIT_FAILED)


@app.command()
def version():
    """Show worker version"""
    typer.echo(f"vsnap-worker v{VERSION}", err=True)


def cli_main():
    """Console script entry point for the worker."""
    app()


if __name__ == "__main__":
    cli_main()
