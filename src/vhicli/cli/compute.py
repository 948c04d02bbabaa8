"""Compute host, usage and VM power commands."""

from typing import Any

import typer

from ..api.client import VHIClient
from ..api.exceptions import VHICliError
from ..models.resource import Hypervisor
from ..utils import (
    console,
    create_table,
    format_bytes,
    get_status_color,
    print_cancelled,
    print_data,
    print_error,
    print_info,
    print_success,
    select_resource,
    spinner,
    usage_bar,
)
from ..utils.helpers import async_to_sync
from ._shared import get_state


def _format_key(key: str) -> str:
    return key.replace("_", " ").title()


def _format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def _usage(used: float, limit: float | None) -> str:
    if not limit or limit <= 0:
        return "-"
    return usage_bar(used / limit * 100)


async def _list_hosts(client: VHIClient) -> list[Hypervisor]:
    """Hypervisors with their VHI resource details."""
    hosts = []
    for summary in await client.list_hypervisors():
        name = summary.get("hypervisor_hostname", "")
        try:
            details = await client.get_hypervisor(name)
        except VHICliError:
            details = summary
        hosts.append(Hypervisor(**{**summary, **details}))
    return hosts


async def _select_server(client: VHIClient) -> str | None:
    servers = await client.list_servers()
    if not servers:
        print_info("No VMs found")
        return None
    server_id = select_resource(servers, "  Select VM:")
    if server_id is None:
        print_cancelled()
    return server_id


@async_to_sync
async def hosts(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
) -> None:
    """List compute hosts and their details."""
    state = get_state(ctx)

    try:
        async with state.client() as client:
            with spinner("Fetching hosts..."):
                host_list = await _list_hosts(client)

        if json_output:
            print_data([h.model_dump(mode="json") for h in host_list], json_output=True)
            return

        for host in host_list:
            service = host.service.get("host") if isinstance(host.service, dict) else host.service
            status = host.status or ""
            state_ = host.state or ""
            console.print(f"[bold]Host:[/bold] {host.hypervisor_hostname}")
            console.print(f"  Service: {service}")
            console.print(f"  Zone: {host.zone}")
            console.print(f"  Status: [{get_status_color(status)}]{status}[/]")
            console.print(f"  State: [{get_status_color(state_)}]{state_}[/]")
            console.print(f"  Updated: {host.updated_at}")
            if host.resources:
                table = create_table(columns=[("Resource", "cyan"), ("Value", "white")])
                for key in sorted(host.resources):
                    table.add_row(_format_key(key), _format_value(host.resources[key]))
                console.print(table)
            console.print()

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)


@async_to_sync
async def usage(
    ctx: typer.Context,
    tenant_id: str = typer.Option(None, "--tenant-id", help="Show usage for a specific tenant (admin only)"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
) -> None:
    """Show resource usage statistics."""
    state = get_state(ctx)

    try:
        async with state.client() as client:
            limits = await client.get_limits(reserved=True, tenant_id=tenant_id)
            project = client.token.project

        if json_output:
            print_data({"limits": limits}, json_output=True)
            return

        absolute = limits.get("absolute")
        if not absolute:
            raise VHICliError("no absolute limits found in response")

        table = create_table(
            title=f"{project} resource summary",
            columns=[("Resource", "cyan"), ("Used", "green"), ("Limit", "white"), ("Usage", "white")],
        )
        ram = absolute.get("totalRAMUsed")
        if ram is not None:
            max_ram = absolute.get("maxTotalRAMSize")
            table.add_row(
                "RAM",
                format_bytes(ram * 1024 * 1024),
                format_bytes(max_ram * 1024 * 1024) if max_ram and max_ram > 0 else "-",
                _usage(ram, max_ram),
            )
        for label, used_key, max_key in (
            ("Cores", "totalCoresUsed", "maxTotalCores"),
            ("Instances", "totalInstancesUsed", "maxTotalInstances"),
        ):
            used = absolute.get(used_key)
            if used is None:
                continue
            limit = absolute.get(max_key)
            table.add_row(
                label, str(used), str(limit) if limit and limit > 0 else "-", _usage(used, limit)
            )
        console.print(table)

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)


async def _power_action(ctx: typer.Context, vm: str | None, action: str) -> None:
    state = get_state(ctx)

    try:
        async with state.client() as client:
            if vm is None:
                server_id = await _select_server(client)
                if server_id is None:
                    return
            else:
                server_id = await client.find_server_id(vm)

            if action == "pause":
                await client.pause_server(server_id)
            else:
                await client.unpause_server(server_id)

        print_success(f"VM {vm or server_id} {action}d")

    except VHICliError as e:
        print_error(str(e))
        raise typer.Exit(1)


@async_to_sync
async def pause(
    ctx: typer.Context,
    vm: str = typer.Argument(None, help="VM name or ID (interactive selection if omitted)"),
) -> None:
    """Pause a VM."""
    await _power_action(ctx, vm, "pause")


@async_to_sync
async def unpause(
    ctx: typer.Context,
    vm: str = typer.Argument(None, help="VM name or ID (interactive selection if omitted)"),
) -> None:
    """Unpause a VM."""
    await _power_action(ctx, vm, "unpause")
