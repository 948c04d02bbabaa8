"""Output formatting utilities using Rich.

Command results go to stdout through ``console``; messages and progress go
to stderr through ``err_console`` so results stay machine readable.
"""

import json
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import yaml
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.prompt import Prompt
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def print_error(msg: str) -> None:
    """Print an error message to stderr.

    Args:
        msg: The error message to display.
    """
    err_console.print(f"[bold red]Error:[/bold red] {msg}")


def print_success(msg: str) -> None:
    """Print a success message.

    Args:
        msg: The success message to display.
    """
    err_console.print(f"[bold green]✓[/bold green] {msg}")


def print_warning(msg: str) -> None:
    err_console.print(f"[bold yellow]Warning:[/bold yellow] {msg}")


def print_info(msg: str) -> None:
    err_console.print(f"[cyan]{msg}[/cyan]")


def print_cancelled(msg: str = "Cancelled") -> None:
    err_console.print(f"[yellow]{msg}[/yellow]")


def print_data(data: Any, json_output: bool = False) -> None:
    """Print a result as JSON or YAML on stdout.

    Args:
        data: Plain data (dicts, lists, scalars)
        json_output: JSON instead of YAML
    """
    if json_output:
        console.print_json(json.dumps(data, default=str))
    else:
        console.print(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=False).rstrip(),
            markup=False,
            highlight=False,
        )


def create_table(
    title: str | None = None,
    columns: list[tuple[str, str]] | None = None,
    rows: list[list[str]] | None = None,
    show_header: bool = True,
) -> Table:
    """Create a Rich table.

    Args:
        title: Optional table title.
        columns: List of (column_name, column_style) tuples.
        rows: List of row data.
        show_header: Whether to show the header row.

    Returns:
        A configured Rich Table instance.
    """
    table = Table(title=title, show_header=show_header, header_style="bold cyan")

    if columns:
        for col_name, col_style in columns:
            table.add_column(col_name, style=col_style)

    if rows:
        for row in rows:
            table.add_row(*row)

    return table


def prompt(message: str, default: str | None = None, password: bool = False) -> str:
    """Prompt user for text input.

    Args:
        message: The prompt message to display.
        default: Default value if user just presses enter.
        password: Hide the input.

    Returns:
        The user's input string.
    """
    if default is None:
        return Prompt.ask(message, password=password, console=err_console)
    return Prompt.ask(message, default=default, password=password, console=err_console)


def format_bytes(bytes_value: float) -> str:
    """Format bytes to human-readable string.

    Args:
        bytes_value: The number of bytes.

    Returns:
        Formatted string (e.g., '1.5 GB').
    """
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if bytes_value < 1024.0:
            return f"{bytes_value:.1f} {unit}"
        bytes_value /= 1024.0
    return f"{bytes_value:.1f} PB"


def usage_bar(percent: float, width: int = 10, label: str = "") -> str:
    """Format a usage bar with color coding.

    Args:
        percent: Usage percentage (0-100)
        width: Bar width in characters
        label: Extra label after the bar
    """
    percent = max(0.0, min(100.0, percent))
    filled = round(percent / 100 * width)
    empty = width - filled
    color = "green" if percent < 60 else "yellow" if percent < 85 else "red"
    bar = f"[{color}]{'━' * filled}[/{color}][dim]{'━' * empty}[/dim]"
    pct = f"{percent:.0f}%"
    if label:
        return f"{bar} {pct} {label}"
    return f"{bar} {pct}"


def get_status_color(status: str) -> str:
    """Get the Rich color name for a status string.

    Args:
        status: The status string (e.g., 'up', 'ACTIVE').

    Returns:
        Rich color name ('green', 'red', 'yellow', or 'white').
    """
    status_lower = status.lower()
    if status_lower in ["up", "enabled", "active", "running"]:
        return "green"
    elif status_lower in ["down", "disabled", "error", "shutdown"]:
        return "red"
    elif status_lower in ["paused", "suspended", "maintenance"]:
        return "yellow"
    else:
        return "white"


@contextmanager
def spinner(description: str) -> Iterator[None]:
    """Show a spinner on stderr while the block runs."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=err_console,
        transient=True,
    ) as progress:
        progress.add_task(description=description, total=None)
        yield


@contextmanager
def transfer_progress() -> Iterator[Callable[[str, int], Callable[[int], None]]]:
    """Byte progress bars for uploads and downloads.

    Yields a factory: call it with a label and the total size to add a bar,
    then call the returned function with the size of each chunk.
    """
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=err_console,
    ) as progress:

        def start(label: str, total: int) -> Callable[[int], None]:
            task = progress.add_task(description=label, total=total or None)
            return lambda size: progress.advance(task, size)

        yield start
