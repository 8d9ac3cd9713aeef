"""
Configuration commands for vsnap

Show the effective configuration or write the defaults to disk.
"""

from pathlib import Path
from typing import Optional

import typer

from vsnap.helpers import ui_utils as utils
from vsnap.helpers.config import Config, create_default_config

# Create sub-app for config commands
app = typer.Typer(
    help="Configuration management commands",
    no_args_is_help=True,
)


@app.command(name="show")
def config_show(ctx: typer.Context):
    """Show the effective configuration"""
    cfg: Config = (ctx.obj or {}).get("config") or Config()

    source = str(cfg.config_file) if cfg.config_file and cfg.config_file.exists() else "built-in defaults"
    utils.print_header("vsnap Configuration", source)

    table = utils.create_status_table()
    for section, options in cfg.sections().items():
        for option, value in options.items():
            table.add_row(f"{section}.{option}", value or "[dim]<empty>[/dim]")
    utils.console.print(table)

    for problem in cfg.validate():
        utils.print_warning(problem)


@app.command(name="init")
def config_init(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Where to write the file"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write a configuration file with the default settings"""
    target = Path(path).expanduser() if path else None
    if target is not None and target.exists() and not force:
        utils.print_warning(f"Configuration already exists at {target} (use --force to overwrite)")
        raise typer.Exit(1)

    try:
        written = create_default_config(target, force=force)
    except OSError as e:
        utils.print_error(f"Cannot write configuration: {e}")
        raise typer.Exit(1)
    utils.print_success(f"Configuration written to {written}")


def register_to_main_app(main_app: typer.Typer):
    """Register config commands to main CLI app"""
    main_app.add_typer(app, name="config")
