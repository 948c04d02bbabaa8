"""Download commands."""

from pathlib import Path

import typer

from ..api.exceptions import VHICliError
from ..utils import print_error, print_success, transfer_progress
from ..utils.helpers import async_to_sync
from ..workflows import storage
from ._shared import get_state

app = typer.Typer(help="Download images and volumes", no_args_is_help=True)


@app.command("image")
@async_to_sync
async def download_image_command(
    ctx: typer.Context,
    image: str = typer.Argument(..., help="Image name or ID"),
    output: Path = typer.Argument(..., help="Output file path"),
) -> None:
    """Download an image to a local file."""
    state = get_state(ctx)

    try:
        async with state.client() as client:
            with transfer_progress() as progress:
                await storage.download_image(client, image, output, progress=progress)
        print_success(f"Image downloaded to {output}")

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("volume")
@async_to_sync
async def download_volume_command(
    ctx: typer.Context,
    volume: str = typer.Argument(..., help="Volume name or ID"),
    output: Path = typer.Argument(..., help="Output file path"),
) -> None:
    """Download a volume through a temporary image."""
    state = get_state(ctx)

    try:
        async with state.client() as client:
            with transfer_progress() as progress:
                await storage.download_volume(client, volume, output, progress=progress)
        print_success(f"Volume downloaded to {output}")

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)
