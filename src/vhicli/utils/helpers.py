"""Helper utilities."""

import asyncio
from functools import wraps
from typing import Any, Callable

import typer
from typer.core import TyperGroup

from .output import print_cancelled

# Conventional exit status for a command stopped with Ctrl-C.
INTERRUPTED_EXIT_CODE = 130


def async_to_sync(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator to run async command callbacks synchronously.

    Ctrl-C ends the command with a short notice and exit status 130
    instead of a traceback.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return asyncio.run(func(*args, **kwargs))
        except KeyboardInterrupt:
            print_cancelled("Interrupted")
            raise typer.Exit(INTERRUPTED_EXIT_CODE)

    return wrapper


def ordered_group(order: list[str]) -> type[TyperGroup]:
    """Create a TyperGroup subclass listing *order* first, then the rest by name."""

    class _OrderedGroup(TyperGroup):
        def list_commands(self, ctx: Any) -> list[str]:
            commands = super().list_commands(ctx)
            rank = {n: i for i, n in enumerate(order)}
            return sorted(commands, key=lambda n: (rank.get(n, len(order)), n))

    return _OrderedGroup
