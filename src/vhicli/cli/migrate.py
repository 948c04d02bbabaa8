"""VMDK migration commands."""

import time
from pathlib import Path

import typer

from ..api.exceptions import VHICliError
from ..models.vm import MigrationJob
from ..utils import console, print_data, print_error, print_info, transfer_progress
from ..utils.helpers import async_to_sync
from ..workflows.migrate import VMDK_ROOT, find_disk_images, migrate_vm
from ..workflows.networks import split_csv
from ._shared import get_state

app = typer.Typer(help="Migrate VMDK disks into new VMs", no_args_is_help=True)


@app.command("vm")
@async_to_sync
async def migrate_vm_command(
    ctx: typer.Context,
    name: str = typer.Option(None, "--name", help="Name of the VM"),
    vmdk: Path = typer.Option(None, "--vmdk", help="Local path to the VMDK file"),
    flavor: str = typer.Option(None, "--flavor", help="Flavor name or ID"),
    networks: str = typer.Option(None, "--networks", help="Comma-separated network names or IDs (default: config networks)"),
    mac: str = typer.Option(None, "--mac", "--macaddr", help="Comma-separated MAC addresses (one per network)"),
    size: int = typer.Option(None, "--size", help="Boot volume size in GB if extending the image"),
    disk_bus: str = typer.Option("sata", "--disk-bus", help="Disk bus for the root volume (sata, scsi, virtio)"),
    shutdown: bool = typer.Option(False, "--shutdown", help="Shut down the new VM after creation"),
    i440fx: bool = typer.Option(False, "--i440fx", help="Set i440fx machine type on the image (CentOS 6)"),
    secondary_vmdk: Path = typer.Option(None, "--secondary-vmdk", help="Secondary VMDK to attach as an extra volume"),
) -> None:
    """Create a VM from a VMDK file.

    The source VM should be powered off before migrating.
    """
    state = get_state(ctx)

    try:
        config = state.config
        job = MigrationJob(
            name=name or "",
            flavor=flavor or config.flavor_id,
            primary_disk_path=vmdk,
            secondary_disk_path=secondary_vmdk,
            networks=split_csv(networks) or split_csv(config.networks) or [],
            macs=split_csv(mac),
            size_gib=size,
            disk_bus=disk_bus.lower(),
            shutdown=shutdown,
            i440fx=i440fx,
        )

        async with state.client() as client:
            with transfer_progress() as progress:
                summary = await migrate_vm(client, job, progress=progress)

        print_data(summary, json_output=True)

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("find")
def find_command(
    pattern: str = typer.Argument(..., help="Substring of the VMDK path"),
    single: bool = typer.Option(False, "--single", help="Require exactly one match"),
    root: Path = typer.Option(Path(VMDK_ROOT), "--root", help="Directory to search"),
) -> None:
    """Find VMDK descriptor files matching a pattern."""
    print_info(f"Searching for VMDK files matching '{pattern}' in {root}...")
    start = time.monotonic()

    try:
        matches = find_disk_images(pattern, root=root, single=single)
    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_info(f"Search completed in {time.monotonic() - start:.2f}s")
    if not matches:
        print_info("No matching VMDK files found.")
        return
    for match in matches:
        console.print(str(match), markup=False, highlight=False)
