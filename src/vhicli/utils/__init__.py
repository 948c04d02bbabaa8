"""Utility functions and helpers."""

from .helpers import (
    async_to_sync,
    ordered_group,
)
from .menu import select_menu, select_resource
from .output import (
    console,
    create_table,
    err_console,
    format_bytes,
    get_status_color,
    print_cancelled,
    print_data,
    print_error,
    print_info,
    print_success,
    print_warning,
    prompt,
    spinner,
    transfer_progress,
    usage_bar,
)

__all__ = [
    "async_to_sync",
    "console",
    "create_table",
    "err_console",
    "format_bytes",
    "get_status_color",
    "ordered_group",
    "print_cancelled",
    "print_data",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "prompt",
    "select_menu",
    "select_resource",
    "spinner",
    "transfer_progress",
    "usage_bar",
]
