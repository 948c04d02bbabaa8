"""VM provisioning workflow."""

import asyncio
import base64
import logging
from typing import Any

from ..api.client import VHIClient
from ..api.exceptions import ValidationError
from ..models.resource import NetworkAttachment
from ..models.vm import (
    DEFAULT_BOOT_SIZE_GIB,
    FromImage,
    FromVolume,
    ServerCreateRequest,
    ServerView,
    VMSpec,
)
from ..utils.template import extract_variables, render_template
from . import poller
from .networks import (
    build_plan_from_ports,
    check_exclusive_paths,
    plan_attachments,
    resolve_networks,
)
from .refs import resolve_ref

logger = logging.getLogger(__name__)

CONSOLE_PORT = 8800


def boot_size_gib(requested: int | None) -> int:
    """Boot volume size for a new VM: at least the default size."""
    return max(requested or 0, DEFAULT_BOOT_SIZE_GIB)


def console_url(host: str, server_id: str) -> str:
    """Web console address used to finish a network install."""
    return f"{host}:{CONSOLE_PORT}/compute/servers/instances/{server_id}/console"


def validate_spec(spec: VMSpec) -> None:
    """Check the request for missing or contradictory options.

    Raises:
        ValidationError: If the request cannot be submitted
    """
    if not spec.name:
        raise ValidationError("VM name is required (--name)")
    if not spec.flavor:
        raise ValidationError(
            "no flavor specified; provide --flavor or set 'flavor_id' in config"
        )
    check_exclusive_paths(spec.ports, spec.networks, spec.ips, spec.macs)
    if not spec.ports and not spec.networks:
        raise ValidationError(
            "no networks specified; use --networks, --ports, or set 'networks' in config"
        )
    if spec.ci_data is not None and spec.user_data is None:
        raise ValidationError("--ci-data requires --user-data")


def render_user_data(spec: VMSpec) -> str | None:
    """Read the user-data file, apply template values and base64 encode it.

    Returns:
        Encoded user data, or ``None`` without a user-data file

    Raises:
        ValidationError: If the file is unreadable or its variables do not
            match the provided values exactly
    """
    if spec.user_data is None:
        return None
    try:
        content = spec.user_data.read_text()
    except OSError as e:
        raise ValidationError(f"failed to read user-data file: {e}")

    if spec.ci_data is not None:
        content = render_template(content, spec.ci_data)
    elif extract_variables(content):
        logger.warning(
            "User-data contains template variables but no --ci-data was given; sending as is"
        )
    return base64.b64encode(content.encode()).decode()


def plan_networks(spec: VMSpec) -> list[NetworkAttachment]:
    """Build the unresolved attachment plan for *spec* without remote calls."""
    if spec.ports:
        return build_plan_from_ports(spec.ports)
    return plan_attachments(spec.networks, spec.ips, spec.macs)


async def _blank_boot_volume(
    client: VHIClient, spec: VMSpec, sleep: poller.Sleep
) -> FromVolume:
    name = f"{spec.name}-boot"
    logger.info("Creating blank boot volume %s...", name)
    volume = await client.create_volume(
        name,
        size=boot_size_gib(spec.size_gib),
        volume_type=spec.volume_type,
    )
    volume_id = volume["id"]
    await poller.wait_for(client, poller.volume_available(volume_id), sleep=sleep)
    await client.set_volume_bootable(volume_id)
    return FromVolume(volume_id=volume_id)


async def create_vm(
    client: VHIClient, spec: VMSpec, sleep: poller.Sleep = asyncio.sleep
) -> ServerView:
    """Create a VM and wait for it to become active.

    All input is validated before the first remote call. A failure after
    that aborts immediately; a blank boot volume created by this call is
    left in place.

    Args:
        client: Connected API client
        spec: Request built from the command line and configuration
        sleep: Coroutine used between poll attempts

    Returns:
        The created server joined with its network details
    """
    validate_spec(spec)
    plan = plan_networks(spec)
    user_data = render_user_data(spec)

    if not spec.ports:
        plan = await resolve_networks(client, plan)

    image_ref = None
    if spec.image and not spec.netboot:
        image_ref = (await resolve_ref(client.find_image_id, spec.image)).id
    flavor_ref = (await resolve_ref(client.find_flavor_id, spec.flavor or "")).id

    metadata: dict[str, str] | None = None
    if spec.netboot:
        metadata = {"network_install": "true"}

    if image_ref:
        boot_source: FromImage | FromVolume = FromImage(
            image_id=image_ref,
            size_gib=boot_size_gib(spec.size_gib),
            disk_bus=spec.disk_bus,
            volume_type=spec.volume_type,
        )
    else:
        boot_source = await _blank_boot_volume(client, spec, sleep)

    request = ServerCreateRequest(
        name=spec.name,
        flavor_ref=flavor_ref,
        networks=plan,
        boot_source=boot_source,
        metadata=metadata,
        user_data=user_data,
        config_drive=True if user_data else None,
    )

    logger.info("Creating VM %s...", spec.name)
    server: dict[str, Any] = await client.create_server(request)
    server_id = server["id"]
    await poller.wait_for(client, poller.server_active(server_id), sleep=sleep)

    view = ServerView.from_server(await client.get_server(server_id))
    logger.info("VM %s (%s) is active", view.name, view.id)
    return view
