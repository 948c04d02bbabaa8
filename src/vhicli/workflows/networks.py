"""Resolve network, IP and MAC policies into NIC attachments."""

import ipaddress
import logging
import re
from typing import Protocol

from ..api.exceptions import ValidationError
from ..models.resource import NetworkAttachment
from .refs import resolve_ref

logger = logging.getLogger(__name__)

NONE = "none"
AUTO = "auto"

_MAC_RE = re.compile(r"^[0-9a-fA-F]{2}([:-])[0-9a-fA-F]{2}(\1[0-9a-fA-F]{2}){4}$")


class NetworkLookup(Protocol):
    async def find_network_id(self, ref: str) -> str: ...


def split_csv(value: str | None) -> list[str] | None:
    """Split a comma separated flag value, trimming each item.

    Returns ``None`` when the flag was not given at all.
    """
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def _keyword(value: str) -> str:
    lowered = value.strip().lower()
    return lowered if lowered in (NONE, AUTO) else value.strip()


def is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_valid_mac(value: str) -> bool:
    return bool(_MAC_RE.match(value))


def validate_macs(macs: list[str]) -> list[str]:
    """Normalize MAC policies and reject malformed addresses."""
    normalized = [_keyword(mac) for mac in macs]
    for mac in normalized:
        if mac not in (NONE, AUTO) and not is_valid_mac(mac):
            raise ValidationError(f"Invalid MAC address: {mac}")
    return normalized


def check_exclusive_paths(
    ports: list[str] | None,
    networks: list[str] | None,
    ips: list[str] | None,
    macs: list[str] | None,
) -> None:
    """Reject pre-created ports combined with network, IP or MAC lists."""
    if ports and (networks or ips or macs):
        raise ValidationError(
            "--ports cannot be combined with --networks, --ips or --macaddr"
        )


def plan_attachments(
    networks: list[str],
    ips: list[str] | None,
    macs: list[str] | None,
) -> list[NetworkAttachment]:
    """Apply IP and MAC policies position by position.

    Network tokens are kept as given; :func:`build_plan` resolves them. The
    IP policy of a position is decided before its MAC is checked: a network
    with ``ip != none`` is managed and assigns its own MAC, so an explicit
    MAC there is rejected.

    Args:
        networks: Network names or IDs
        ips: Per-network ``none``, ``auto`` or an address (``None`` if omitted)
        macs: Per-network ``none``, ``auto`` or a MAC (``None`` if omitted)

    Returns:
        One attachment per network, in order

    Raises:
        ValidationError: On any malformed or contradictory input
    """
    if not networks:
        raise ValidationError("at least one network is required")
    if ips is None and macs is None:
        raise ValidationError(
            "--ips or --macaddr must be given with --networks; use 'none' or 'auto'"
        )
    if ips is None:
        ips = [NONE] * len(networks)
    if macs is None:
        macs = [NONE] * len(networks)
    if len(ips) != len(networks) or len(macs) != len(networks):
        raise ValidationError(
            f"networks ({len(networks)}), ips ({len(ips)}) and macs ({len(macs)}) "
            "must have the same number of entries"
        )

    ips = [_keyword(ip) for ip in ips]
    for ip in ips:
        if ip not in (NONE, AUTO) and not is_valid_ip(ip):
            raise ValidationError(f"Invalid IP address: {ip}")
    macs = validate_macs(macs)

    plan = []
    for network, ip, mac in zip(networks, ips, macs):
        managed = ip != NONE
        explicit_mac = mac not in (NONE, AUTO)
        if managed and explicit_mac:
            raise ValidationError(
                f"network '{network}' is managed (ip={ip}); it assigns its own MAC, "
                f"so --macaddr must be 'none' or 'auto' there (got {mac})"
            )
        plan.append(
            NetworkAttachment(
                network_id=network,
                fixed_ip=ip if managed and ip != AUTO else None,
                mac_address=mac if explicit_mac else None,
            )
        )
    return plan


async def build_plan(
    client: NetworkLookup,
    networks: list[str],
    ips: list[str] | None,
    macs: list[str] | None,
) -> list[NetworkAttachment]:
    """Validate the policies, then resolve each network name to its ID.

    Validation completes before the first lookup is made.
    """
    plan = plan_attachments(networks, ips, macs)
    return await resolve_networks(client, plan)


async def resolve_networks(
    client: NetworkLookup, plan: list[NetworkAttachment]
) -> list[NetworkAttachment]:
    """Replace network names in a validated plan with their IDs."""
    for attachment in plan:
        if attachment.port_id:
            continue
        ref = await resolve_ref(client.find_network_id, attachment.network_id or "")
        attachment.network_id = ref.id
    logger.debug("Network plan: %s", [a.to_request() for a in plan])
    return plan


def build_plan_from_ports(port_ids: list[str]) -> list[NetworkAttachment]:
    """Attach pre-created ports as given."""
    return [NetworkAttachment(port_id=port_id) for port_id in port_ids]
