"""
Main CLI application using Typer

Entry point for the vsnap host CLI.
"""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape

from vsnap.cli import config
from vsnap.cli import snapshot
from vsnap.helpers import ui_utils as utils
from vsnap.helpers.config import Config
from vsnap.helpers.constants import VERSION
from vsnap.helpers.errors import ConfigError, VsnapError
from vsnap.helpers.logging import log_manager

# Create Typer app
app = typer.Typer(
    name="vsnap",
    help="vsnap - snapshot and restore Docker volumes",
    add_completion=False,
)

# Register sub-commands
snapshot.register_to_main_app(app)
config.register_to_main_app(app)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        help="Path to configuration file",
        envvar="VSNAP_CONFIG",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output and tracebacks",
    ),
):
    """
    vsnap - Docker volume snapshots

    Snapshots are stored as volumes named <prefix>-<timestamp>-<name>.
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    try:
        cfg = Config(config_path)
    except ConfigError as e:
        utils.print_error(str(e))
        raise typer.Exit(1)
    ctx.obj["config"] = cfg

    level = "DEBUG" if debug else (log_level or cfg.get("logging", "level", "WARNING"))
    try:
        log_manager.configure(
            level=level,
            log_file=cfg.get("logging", "file") or None,
            max_size_mb=cfg.getint("logging", "max_size_mb", 100),
            backup_count=cfg.getint("logging", "backup_count", 5),
        )
    except (ValueError, OSError, ConfigError) as e:
        utils.print_error(f"Cannot configure logging: {e}")
        raise typer.Exit(1)

    if debug:
        utils.console.print("[dim]Debug mode enabled[/dim]")


@app.command()
def version():
    """Show version information"""
    utils.console.print(f"[cyan]vsnap[/cyan] v{VERSION}")


def cli_main():
    """
    Entry point for CLI

    This function is called by the console script entry point.
    """
    try:
        app()
    except KeyboardInterrupt:
        utils.console.print("\n[yellow]Cancelled by user[/yellow]")
        sys.exit(1)
    except VsnapError as e:
        utils.err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        if "--debug" in sys.argv:
            raise
        sys.exit(1)


if __name__ == "__main__":
    cli_main()
