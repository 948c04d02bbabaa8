"""Logging setup for CLI commands.

Workflow modules log through ``logging.getLogger(__name__)``; progress and
warnings go to stderr so that command results on stdout stay parseable.
"""

import logging

from rich.logging import RichHandler

from .output import err_console


def setup_cli_logging(verbose: bool = False) -> None:
    """Configure the root logger with a Rich handler on stderr.

    Args:
        verbose: Log at DEBUG instead of INFO
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = RichHandler(
        console=err_console,
        show_time=verbose,
        show_path=verbose,
        markup=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.captureWarnings(True)
