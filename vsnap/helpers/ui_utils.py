"""
CLI Utilities for vsnap

Rich-based helpers for CLI output.
Provides consistent UI components across all commands.
"""

from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.prompt import Confirm
from rich.spinner import SPINNERS
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

# Spinner tick strings
SPINNERS.setdefault(
    "vsnap",
    {
        "interval": 100,
        "frames": ["▹▹▹▹▹", "▸▹▹▹▹", "▹▸▹▹▹", "▹▹▸▹▹", "▹▹▹▸▹", "▹▹▹▹▸", "▪▪▪▪▪"],
    },
)


def print_header(title: str, subtitle: str = ""):
    """Print styled header with optional subtitle"""
    content = f"[bold cyan]{title}[/bold cyan]"
    if subtitle:
        content += f"\n[dim]{subtitle}[/dim]"

    panel = Panel(content, border_style="cyan")
    console.print(panel)


def print_success(message: str):
    """Print success message with green checkmark"""
    console.print(f"[green]✓[/green] {escape(message)}")


def print_error(message: str):
    """Print error message with red X"""
    err_console.print(f"[red]✗[/red] {escape(message)}")


def print_warning(message: str):
    """Print warning message with yellow warning symbol"""
    console.print(f"[yellow]⚠[/yellow]  {escape(message)}")


def print_info(message: str):
    """Print info message with cyan arrow"""
    console.print(f"[cyan]→[/cyan] {escape(message)}")


def create_table(title: str, columns: List[tuple]) -> Table:
    """
    Create a styled Rich table

    Args:
        title: Table title (empty for none)
        columns: List of (name, style, width) tuples; width may be None

    Returns:
        Rich Table instance
    """
    table = Table(title=title or None, show_header=True, header_style="bold green")
    for name, style, width in columns:
        table.add_column(name, style=style, width=width)
    return table


def create_status_table(title: str = "") -> Table:
    """Pre-configured Property | Value table."""
    table = Table(title=title or None, show_header=False)
    table.add_column("Property", style="cyan", width=20)
    table.add_column("Value", style="white")
    return table


def prompt_confirm(message: str, default: bool = False) -> bool:
    """Prompt user for yes/no confirmation"""
    return Confirm.ask(message, default=default, console=console)


def create_spinner() -> Progress:
    """Indeterminate spinner used while waiting on the runtime."""
    return Progress(
        SpinnerColumn(spinner_name="vsnap", style="green"),
        TextColumn("{task.description}"),
        console=console,
        transient=True,
    )


def create_progress_bar() -> Progress:
    """Byte progress bar driven by worker progress records."""
    return Progress(
        SpinnerColumn(style="green"),
        TimeElapsedColumn(),
        BarColumn(complete_style="cyan", finished_style="blue"),
        DownloadColumn(),
        TimeRemainingColumn(),
        console=console,
    )


def format_size(size_bytes: Optional[int]) -> str:
    """Sizes in the listing are shown in MB."""
    if size_bytes is None or size_bytes < 0:
        return "Unavailable"
    return f"{size_bytes // 1024 // 1024} MB"
