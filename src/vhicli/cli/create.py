"""Resource creation commands."""

from pathlib import Path

import typer

from ..api.exceptions import ValidationError, VHICliError
from ..models.vm import DEFAULT_VOLUME_TYPE, VMSpec
from ..utils import (
    console,
    print_data,
    print_error,
    print_info,
    print_success,
    transfer_progress,
)
from ..utils.helpers import async_to_sync, ordered_group
from ..workflows import storage
from ..workflows.networks import split_csv
from ..workflows.provision import console_url, create_vm
from ._shared import get_state, read_ci_data

app = typer.Typer(
    help="Create VMs, volumes, images and ports",
    no_args_is_help=True,
    cls=ordered_group(["vm", "volume", "image", "port"]),
)


@app.command("vm")
@async_to_sync
async def create_vm_command(
    ctx: typer.Context,
    name: str = typer.Option(None, "--name", help="Name of the virtual machine"),
    flavor: str = typer.Option(None, "--flavor", help="Flavor name or ID (default: flavor_id from config)"),
    image: str = typer.Option(None, "--image", help="Image name or ID (default: image_id from config)"),
    networks: str = typer.Option(None, "--networks", help="Comma-separated network names or IDs"),
    ips: str = typer.Option(None, "--ips", help="Comma-separated IPs per network ('none' for unmanaged, 'auto' for DHCP)"),
    macaddr: str = typer.Option(None, "--macaddr", help="Comma-separated MACs per network ('auto' is valid)"),
    ports: str = typer.Option(None, "--ports", help="Comma-separated pre-created port IDs"),
    size: int = typer.Option(None, "--size", help="Boot volume size in GB (minimum 10)"),
    netboot: bool = typer.Option(False, "--netboot", help="Boot from network with a blank volume"),
    user_data: Path = typer.Option(None, "--user-data", help="Cloud-init user data file, templated with {{%var%}}"),
    ci_data: str = typer.Option(None, "--ci-data", help="Template variables as key:value,key:value"),
    ci_data_file: Path = typer.Option(None, "--ci-data-file", help="File with template variables"),
    volume_type: str = typer.Option(DEFAULT_VOLUME_TYPE, "--volume-type", help="Boot volume type"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format (default: YAML)"),
) -> None:
    """Create a virtual machine."""
    state = get_state(ctx)

    try:
        config = state.config
        port_list = split_csv(ports) or []
        network_list = split_csv(networks)
        if network_list is None and not port_list:
            network_list = split_csv(config.networks)

        spec = VMSpec(
            name=name or "",
            flavor=flavor or config.flavor_id,
            image=image or config.image_id,
            networks=network_list or [],
            ips=split_csv(ips),
            macs=split_csv(macaddr),
            ports=port_list,
            size_gib=size,
            netboot=netboot,
            user_data=user_data,
            ci_data=read_ci_data(ci_data, ci_data_file),
            volume_type=volume_type,
        )

        async with state.client() as client:
            view = await create_vm(client, spec)

        print_data(view.to_display(), json_output)

        if netboot:
            print_info("Go to VHI console to complete machine boot/install.")
            print_info(f"VHI console: {console_url(state.resolve_host(), view.id)}")

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("volume")
@async_to_sync
async def create_volume_command(
    ctx: typer.Context,
    name: str = typer.Option(None, "--name", help="Name of the volume"),
    size: int = typer.Option(None, "--size", help="Size in GB (not needed when creating from an image)"),
    description: str = typer.Option(None, "--description", help="Description of the volume"),
    volume_type: str = typer.Option(DEFAULT_VOLUME_TYPE, "--type", help="Volume type: nvme_ec7_2, replica3"),
    image: str = typer.Option(None, "--image", help="Image name or ID to create the volume from"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
) -> None:
    """Create a blank volume or a volume from an image."""
    state = get_state(ctx)

    try:
        async with state.client() as client:
            volume = await storage.create_volume(
                client,
                name or "",
                size=size,
                description=description,
                volume_type=volume_type,
                image=image,
            )

        if json_output:
            print_data(volume, json_output=True)
        else:
            print_success(
                f"Volume created: ID: {volume.get('id')}, Name: {volume.get('name')}, "
                f"Size: {volume.get('size')} GB"
            )

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("image")
@async_to_sync
async def create_image_command(
    ctx: typer.Context,
    file: Path = typer.Option(None, "--file", help="Path to the image file"),
    name: str = typer.Option(None, "--name", help="Name of the image"),
    disk_format: str = typer.Option(None, "--format", help="Disk format (qcow2, raw, vmdk, iso)"),
    instance: str = typer.Option(None, "--instance", help="VM name or ID whose boot volume to copy"),
) -> None:
    """Create an image from a local file or from a VM's boot volume."""
    state = get_state(ctx)

    try:
        if bool(file) == bool(instance):
            raise ValidationError("specify exactly one of --file or --instance")

        async with state.client() as client:
            if instance:
                result = await storage.create_image_from_instance(client, instance, name)
            else:
                with transfer_progress() as progress:
                    result = await storage.create_image_from_file(
                        client, file, name, disk_format, progress=progress
                    )

        print_success(f"Image created: ID: {result['id']}, Name: {result['name']}")

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)


@app.command("port")
@async_to_sync
async def create_port_command(
    ctx: typer.Context,
    network: str = typer.Option(None, "--network", help="Network name or ID"),
    mac: str = typer.Option(None, "--mac", help="MAC address"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
) -> None:
    """Create a network port."""
    state = get_state(ctx)

    try:
        async with state.client() as client:
            port = await storage.create_port(client, network or "", mac)

        if json_output:
            print_data(port, json_output=True)
            return

        print_success("Port created successfully")
        console.print(f"  ID: {port.get('id')}")
        console.print(f"  MAC: {port.get('mac_address')}")
        console.print(f"  Network: {port.get('network_id')}")
        console.print(f"  Status: {port.get('status')}")

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)
