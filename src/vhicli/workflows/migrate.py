"""Import external VMDK disks as a new VM.

Migrated guests keep the device names of their source hypervisor, so the
boot disk is attached with a configurable bus (SATA by default, so the guest
still sees ``/dev/sda``) and NICs are attached one port at a time after the
VM is running.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

from ..api.client import VHIClient
from ..api.exceptions import (
    CleanupError,
    ResourceNotFoundError,
    ValidationError,
    VHICliError,
)
from ..models.vm import (
    DISK_BUSES,
    FromImage,
    MigrationJob,
    ServerCreateRequest,
    power_state_name,
    size_gib_from_bytes,
)
from . import poller
from .cleanup import CleanupLog, Compensation
from .networks import AUTO, NONE, validate_macs
from .refs import resolve_ref
from .storage import (
    PreRead,
    UploadProgress,
    delete_image_with_retry,
    upload_file,
    warm_up_source,
)

logger = logging.getLogger(__name__)

VMDK_ROOT = "/mnt/vmdk"
EXTENT_SUFFIXES = ("-flat.vmdk", "-delta.vmdk", "-ctk.vmdk")
MACHINE_TYPE_PROPERTY = "hw_machine_type"
I440FX_MACHINE_TYPE = "pc"


def _source_path(job: MigrationJob) -> Path:
    if job.primary_disk_path is None:
        raise ValidationError("source disk path is required (--vmdk)")
    return job.primary_disk_path


def validate_job(job: MigrationJob) -> list[str]:
    """Check a migration request before anything is uploaded.

    Returns:
        The normalized MAC policy per network

    Raises:
        ValidationError: If a required option is missing or inconsistent
    """
    if not job.name:
        raise ValidationError("VM name is required (--name)")
    if not job.flavor:
        raise ValidationError("no flavor specified; provide --flavor or set 'flavor_id' in config")
    source = _source_path(job)
    if not source.is_file():
        raise ValidationError(f"VMDK file not found: {source}")
    if job.secondary_disk_path is not None and not job.secondary_disk_path.is_file():
        raise ValidationError(f"secondary VMDK file not found: {job.secondary_disk_path}")
    if job.disk_bus not in DISK_BUSES:
        raise ValidationError(
            f"invalid disk bus '{job.disk_bus}', must be one of {', '.join(DISK_BUSES)}"
        )

    if not job.networks:
        raise ValidationError(
            "no networks specified; provide --networks or set 'networks' in config"
        )

    macs = job.macs if job.macs is not None else [AUTO] * len(job.networks)
    if len(macs) != len(job.networks):
        raise ValidationError(
            f"number of networks ({len(job.networks)}) must match "
            f"number of MAC addresses ({len(macs)})"
        )
    return validate_macs(macs)


async def _upload_temp_image(
    client: VHIClient,
    job: MigrationJob,
    log: CleanupLog,
    path: Path,
    name: str,
    progress: UploadProgress | None,
    pre_read: PreRead | None,
    sleep: poller.Sleep,
) -> tuple[str, Compensation]:
    """Upload a disk as a temporary image, registered for deletion before any data is sent."""
    image_id = await client.create_image(name, "vmdk")
    job.record_image(image_id)
    cleanup = log.add(
        f"delete image {image_id}",
        lambda: delete_image_with_retry(client, image_id, sleep),
    )
    await upload_file(client, image_id, path, progress, pre_read, label=name)
    logger.info("Image created: %s (%s)", name, image_id)
    await poller.wait_for(client, poller.image_active(image_id), sleep=sleep)
    return image_id, cleanup


async def _attach_secondary(
    client: VHIClient,
    job: MigrationJob,
    log: CleanupLog,
    path: Path,
    progress: UploadProgress | None,
    pre_read: PreRead | None,
    sleep: poller.Sleep,
) -> tuple[str, Compensation]:
    """Turn the secondary disk into a volume; returns the volume and its cleanup."""
    image_id, image_cleanup = await _upload_temp_image(
        client, job, log, path, f"Secondary-{job.name}",
        progress, pre_read, sleep,
    )

    image_bytes = await poller.retry(
        lambda: client.get_image_size(image_id),
        sleep=sleep,
        description="fetching secondary image size",
    )
    logger.info("Creating volume from secondary image...")
    volume = await client.create_volume(
        f"secondary-{job.name}",
        size=max(size_gib_from_bytes(image_bytes), 1),
        volume_type=job.volume_type,
        image_id=image_id,
    )
    volume_id = volume["id"]
    job.record_volume(volume_id)
    volume_cleanup = log.add(
        f"delete volume {volume_id}", lambda: client.delete_volume(volume_id)
    )
    await poller.wait_for(client, poller.volume_available(volume_id), sleep=sleep)

    logger.info("Deleting temporary secondary image %s...", image_id)
    try:
        await log.execute(image_cleanup)
    except VHICliError as e:
        logger.warning("Failed to delete temporary secondary image %s: %s", image_id, e)
    return volume_id, volume_cleanup


async def _attach_networks(
    client: VHIClient,
    server_id: str,
    job: MigrationJob,
    macs: list[str],
    log: CleanupLog,
) -> list[dict[str, Any]]:
    attached = []
    for network, mac in zip(job.networks, macs):
        network_id = (await resolve_ref(client.find_network_id, network)).id
        mac_address = None if mac in (NONE, AUTO) else mac
        logger.info(
            "Attaching network '%s' to VM '%s' with MAC '%s'...",
            network_id, server_id, mac_address or "auto",
        )
        port = await client.create_port(network_id, mac_address=mac_address)
        port_id = port["id"]
        cleanup = log.add(f"delete port {port_id}", lambda p=port_id: client.delete_port(p))
        await client.attach_port(server_id, port_id)
        log.release(cleanup)
        attached.append(
            {
                "network_id": network_id,
                "port_id": port_id,
                "mac_address": port.get("mac_address"),
            }
        )
    return attached


async def migrate_vm(
    client: VHIClient,
    job: MigrationJob,
    sleep: poller.Sleep = asyncio.sleep,
    progress: UploadProgress | None = None,
    pre_read: PreRead | None = warm_up_source,
) -> dict[str, Any]:
    """Create a VM from uploaded VMDK files.

    Every temporary image and volume is registered for cleanup as soon as
    it exists. On failure the pending cleanups run newest first and the
    original error is re-raised. Temporary images are deleted at most once.

    Args:
        client: Connected API client
        job: Migration request; its ID lists are filled in as the job runs
        sleep: Coroutine used between poll attempts and retries
        progress: Upload progress factory
        pre_read: Warm-up hook for files on the VMDK share

    Returns:
        Summary with ``vm_id``, ``vm_name``, ``power_state`` and ``networks``

    Raises:
        ValidationError: Before any remote call, on bad input
        CleanupError: If the primary temporary image cannot be deleted
    """
    macs = validate_job(job)
    source = _source_path(job)

    flavor_ref = (await resolve_ref(client.find_flavor_id, job.flavor or "")).id
    log = CleanupLog()

    try:
        image_id, primary_cleanup = await _upload_temp_image(
            client, job, log, source, f"Migrated-{job.name}",
            progress, pre_read, sleep,
        )

        size_gib = job.size_gib
        if not size_gib:
            image_bytes = await poller.retry(
                lambda: client.get_image_size(image_id),
                sleep=sleep,
                description="fetching image size",
            )
            size_gib = size_gib_from_bytes(image_bytes)

        if job.i440fx:
            logger.info("Setting i440fx machine type for image %s...", image_id)
            await client.set_image_properties(
                image_id, {MACHINE_TYPE_PROPERTY: I440FX_MACHINE_TYPE}
            )

        secondary = None
        if job.secondary_disk_path is not None:
            secondary = await _attach_secondary(
                client, job, log, job.secondary_disk_path, progress, pre_read, sleep
            )

        request = ServerCreateRequest(
            name=job.name,
            flavor_ref=flavor_ref,
            image_ref=image_id,
            networks="none",
            boot_source=FromImage(
                image_id=image_id,
                size_gib=size_gib,
                disk_bus=job.disk_bus,
                volume_type=job.volume_type,
            ),
        )
        logger.info("Creating VM '%s'...", job.name)
        server = await client.create_server(request)
        server_id = server["id"]
        await poller.wait_for(client, poller.server_active(server_id), sleep=sleep)

        if secondary is not None:
            volume_id, volume_cleanup = secondary
            logger.info("Attaching secondary volume to VM...")
            await client.attach_volume(server_id, volume_id)
            log.release(volume_cleanup)

        networks = await _attach_networks(client, server_id, job, macs, log)

        try:
            await client.reboot_server(server_id, "HARD")
        except VHICliError as e:
            logger.warning("Hard reboot of %s failed: %s", server_id, e)

        if job.shutdown:
            # os-stop is a soft ACPI request; guests without acpid may take minutes
            logger.info("Shutting down VM '%s'...", server_id)
            await client.stop_server(server_id)

        logger.info("Deleting temporary image %s...", image_id)
        try:
            await log.execute(primary_cleanup)
        except VHICliError as e:
            raise CleanupError(f"failed to delete temporary image {image_id} after retries: {e}")
        await log.unwind()

        details = await client.get_server(server_id)
    except Exception:
        failed = await log.unwind()
        if failed:
            logger.warning("%d cleanup action(s) failed; remove them manually", len(failed))
        raise

    state = details.get("OS-EXT-STS:power_state")
    return {
        "vm_id": details.get("id", server_id),
        "vm_name": details.get("name", job.name),
        "power_state": f"{state} ({power_state_name(state)})",
        "networks": networks,
    }


def _is_descriptor(name: str) -> bool:
    lowered = name.lower()
    return lowered.endswith(".vmdk") and not lowered.endswith(EXTENT_SUFFIXES)


def find_disk_images(pattern: str, root: str | Path = VMDK_ROOT, single: bool = False) -> list[Path]:
    """Find VMDK descriptor files whose path contains *pattern*.

    Matching is case-insensitive. Extent files (``-flat``, ``-delta``,
    ``-ctk``) are skipped.

    Args:
        pattern: Substring to look for in the file path
        root: Directory to search
        single: Require exactly one match

    Raises:
        ValidationError: If *root* is not a directory or *single* matches more than one file
        ResourceNotFoundError: If *single* matches nothing
    """
    root = Path(root)
    if not root.is_dir():
        raise ValidationError(f"search directory not found: {root}")

    needle = pattern.lower()
    matches = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            if not _is_descriptor(filename):
                continue
            path = Path(dirpath) / filename
            if needle in str(path).lower():
                matches.append(path)
    matches.sort()

    if single:
        if not matches:
            raise ResourceNotFoundError("VMDK file matching", pattern)
        if len(matches) > 1:
            listing = "\n".join(str(m) for m in matches)
            raise ValidationError(
                f"multiple VMDK files match '{pattern}', be more specific:\n{listing}"
            )
    return matches
