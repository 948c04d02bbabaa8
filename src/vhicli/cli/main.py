"""Main CLI application."""

from pathlib import Path

import typer

from .. import __version__
from ..utils import console
from ..utils.helpers import ordered_group
from ..utils.logging import setup_cli_logging
from . import compute, config, create, download, migrate, validate
from ._shared import CliState

_CMD_ORDER = [
    "auth", "config",
    "create", "migrate", "download",
    "pause", "unpause",
    "hosts", "usage",
    "validate",
]

app = typer.Typer(
    name="vhicli",
    help="CLI for the Virtuozzo Hybrid Infrastructure compute API",
    no_args_is_help=True,
    cls=ordered_group(_CMD_ORDER),
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command("auth")(config.auth)
app.add_typer(config.app, name="config")
app.add_typer(create.app, name="create")
app.add_typer(migrate.app, name="migrate")
app.add_typer(download.app, name="download")
app.command("hosts")(compute.hosts)
app.command("usage")(compute.usage)
app.command("pause")(compute.pause)
app.command("unpause")(compute.unpause)
app.command("validate")(validate.validate)


def version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: Whether version flag was set
    """
    if value:
        console.print(f"vhicli version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Path = typer.Option(
        None, "--config", help="Config file (default: $VHICMD_RCDIR/.vhirc or ~/.vhirc)"
    ),
    host: str = typer.Option(None, "--host", "-H", help="VHI host to connect to"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    version: bool = typer.Option(
        None,
        "--version",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """vhicli - provision and migrate VMs on Virtuozzo Hybrid Infrastructure.

    Get started:
        vhicli config set host vhi.example.com
        vhicli auth                      # Cache a token for the host
        vhicli create vm --help          # Create a VM
    """
    setup_cli_logging(verbose)
    ctx.obj = CliState(config_file=config_file, host=host, verbose=verbose)


if __name__ == "__main__":
    app()
