"""Image, volume and port workflows."""

import asyncio
import logging
import shutil
import warnings
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from ..api.client import ProgressCallback, VHIClient
from ..api.exceptions import CleanupWarning, ValidationError, VHICliError
from ..models.vm import DEFAULT_VOLUME_TYPE, size_gib_from_bytes
from . import poller
from .cleanup import CleanupLog
from .networks import NONE, AUTO, validate_macs
from .refs import resolve_ref

logger = logging.getLogger(__name__)

IMAGE_FORMATS = ("qcow2", "raw", "vmdk", "iso")
WARM_UP_PREFIX = "/mnt/vmdk/"
WARM_UP_TIMEOUT = 2.0

# Called with (label, total bytes); returns the per-chunk callback.
UploadProgress = Callable[[str, int], ProgressCallback]
PreRead = Callable[[Path], Any]


def timestamp() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S")


def detect_disk_format(path: Path, disk_format: str | None = None) -> str:
    """Pick the image disk format from the flag or the file extension.

    Raises:
        ValidationError: If the format is not supported
    """
    if disk_format:
        disk_format = disk_format.lower()
        if disk_format not in IMAGE_FORMATS:
            raise ValidationError(
                f"unsupported format {disk_format}, must be {', '.join(IMAGE_FORMATS)}"
            )
        return disk_format
    ext = path.suffix.lower().lstrip(".")
    if ext == "img":
        return "raw"
    if ext not in IMAGE_FORMATS:
        raise ValidationError(f"unsupported image format '{ext}', specify --format")
    return ext


async def _dd_head(path: Path, timeout: float) -> int | None:
    """Read the first block of *path* with ``dd``; None when it had to be killed."""
    proc = await asyncio.create_subprocess_exec(
        "dd", f"if={path}", "of=/dev/null", "bs=1M", "count=1",
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        return await asyncio.wait_for(proc.wait(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        try:
            await asyncio.wait_for(proc.wait(), timeout)
        except asyncio.TimeoutError:
            logger.debug("dd (pid %d) still running after kill", proc.pid)
        return None


async def warm_up_source(path: Path, timeout: float = WARM_UP_TIMEOUT) -> None:
    """Read the first block of a file on the VMDK share before uploading it.

    Reads on the share can hang on first access. The read runs in a ``dd``
    child process that is killed after *timeout* and tried once more; the
    upload goes ahead whatever the outcome.
    """
    try:
        status = await _dd_head(path, timeout)
        if status is None:
            logger.info("Warm-up read of %s stuck, retrying", path)
            status = await _dd_head(path, timeout)
    except OSError as e:
        logger.warning("Warm-up read of %s failed: %s", path, e)
        return
    if status is None:
        logger.warning("Warm-up read of %s did not finish within %ss", path, timeout)
    elif status:
        logger.warning("Warm-up read of %s failed (dd exit status %d)", path, status)
    else:
        logger.debug("Warm-up read of %s done", path)


def needs_warm_up(path: Path) -> bool:
    return str(path).startswith(WARM_UP_PREFIX)


async def delete_image_with_retry(
    client: VHIClient, image_id: str, sleep: poller.Sleep = asyncio.sleep
) -> None:
    await poller.retry(
        lambda: client.delete_image(image_id),
        sleep=sleep,
        description=f"deleting image {image_id}",
    )


async def upload_file(
    client: VHIClient,
    image_id: str,
    path: Path,
    progress: UploadProgress | None = None,
    pre_read: PreRead | None = warm_up_source,
    label: str | None = None,
) -> None:
    """Send a local file into an existing image record.

    Raises:
        VHICliError: If the file cannot be read or the upload fails
    """
    if pre_read is not None and needs_warm_up(path):
        await pre_read(path)
    try:
        size = path.stat().st_size
        logger.info("Starting upload of %s (%d MB)", path, size // (1024 * 1024))
        callback = progress(label or path.name, size) if progress else None
        await client.upload_image_data(image_id, path, callback)
    except OSError as e:
        raise VHICliError(f"failed to read {path}: {e}")


async def upload_image(
    client: VHIClient,
    path: Path,
    name: str,
    disk_format: str,
    progress: UploadProgress | None = None,
    pre_read: PreRead | None = warm_up_source,
) -> str:
    """Create an image and upload *path* into it.

    Returns:
        The new image ID
    """
    image_id = await client.create_image(name, disk_format)
    await upload_file(client, image_id, path, progress, pre_read, label=name)
    logger.info("Image created: %s (%s)", name, image_id)
    return image_id


async def create_image_from_file(
    client: VHIClient,
    path: Path,
    name: str | None = None,
    disk_format: str | None = None,
    progress: UploadProgress | None = None,
    pre_read: PreRead | None = warm_up_source,
) -> dict[str, str]:
    """Upload a local disk file as a new image.

    Raises:
        ValidationError: If the file is missing or its format unsupported
    """
    if not path.is_file():
        raise ValidationError(f"image file not found: {path}")
    disk_format = detect_disk_format(path, disk_format)
    name = name or f"{path.stem}-{timestamp()}"
    image_id = await upload_image(
        client, path, name, disk_format, progress=progress, pre_read=pre_read
    )
    return {"id": image_id, "name": name, "disk_format": disk_format}


async def create_image_from_instance(
    client: VHIClient,
    instance: str,
    name: str | None = None,
    sleep: poller.Sleep = asyncio.sleep,
) -> dict[str, str]:
    """Copy the boot volume of a VM into a new image and wait for it."""
    server_id = await client.find_server_id(instance)
    if not name:
        server = await client.get_server(server_id)
        name = f"{server.get('name', server_id)}-{timestamp()}"

    logger.info("Getting boot volume for instance %s...", server_id)
    volume_id = await client.get_boot_volume_id(server_id)
    logger.info("Boot volume ID: %s", volume_id)

    image_id = await client.upload_volume_to_image(volume_id, name)
    logger.info("Image creation started with ID: %s", image_id)
    await poller.wait_for(client, poller.image_active(image_id), sleep=sleep)
    return {"id": image_id, "name": name, "volume_id": volume_id}


async def create_volume(
    client: VHIClient,
    name: str,
    size: int | None = None,
    description: str | None = None,
    volume_type: str = DEFAULT_VOLUME_TYPE,
    image: str | None = None,
) -> dict[str, Any]:
    """Create a blank volume, or one populated from an image.

    A volume made from an image is at least as large as the image,
    rounded up to whole GiB.

    Raises:
        ValidationError: If neither a size nor an image is given
    """
    if not name:
        raise ValidationError("volume name is required (--name)")
    image_id = None
    if image:
        image_id = (await resolve_ref(client.find_image_id, image)).id
        image_size = size_gib_from_bytes(await client.get_image_size(image_id))
        size = max(size or 0, image_size, 1)
    elif not size:
        raise ValidationError("--size is required when not creating from an image")

    volume = await client.create_volume(
        name,
        size=size,
        description=description,
        volume_type=volume_type,
        image_id=image_id,
    )
    logger.info(
        "Volume created: ID: %s, Name: %s, Size: %s GB",
        volume.get("id"), volume.get("name"), volume.get("size"),
    )
    return volume


async def create_port(
    client: VHIClient, network: str, mac: str | None = None
) -> dict[str, Any]:
    """Create a port on a network, optionally with a fixed MAC."""
    if not network:
        raise ValidationError("network is required: specify with --network")
    mac_address = None
    if mac:
        (mac,) = validate_macs([mac])
        if mac not in (NONE, AUTO):
            mac_address = mac
    network_id = (await resolve_ref(client.find_network_id, network)).id
    return await client.create_port(network_id, mac_address=mac_address)


async def download_image(
    client: VHIClient,
    image: str,
    output: Path,
    progress: UploadProgress | None = None,
) -> Path:
    """Download image data to *output*."""
    image_id = (await resolve_ref(client.find_image_id, image)).id
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ValidationError(f"failed to create output directory: {e}")
    callback = None
    if progress:
        callback = progress(output.name, await client.get_image_size(image_id))
    await client.download_image(image_id, output, callback)
    logger.info("Image downloaded to %s", output)
    return output


def check_free_space(directory: Path, size_gib: int) -> None:
    """Raise ValidationError unless *directory* has room for *size_gib*."""
    try:
        available = shutil.disk_usage(directory).free
    except OSError as e:
        raise ValidationError(f"failed to check disk space: {e}")
    needed = size_gib * 1024 * 1024 * 1024
    if available < needed:
        raise ValidationError(
            f"not enough disk space: need {size_gib} GB, "
            f"have {available // (1024 * 1024 * 1024)} GB available"
        )


async def download_volume(
    client: VHIClient,
    volume: str,
    output: Path,
    progress: UploadProgress | None = None,
    sleep: poller.Sleep = asyncio.sleep,
) -> Path:
    """Download a volume by converting it into a temporary image first.

    The temporary image is deleted afterwards; a failed deletion is only a
    warning.
    """
    volume_id = (await resolve_ref(client.find_volume_id, volume)).id
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ValidationError(f"failed to create output directory: {e}")

    details = await client.get_volume(volume_id)
    check_free_space(output.parent, int(details.get("size") or 0))

    log = CleanupLog()
    logger.info("Converting volume to image...")
    image_id = await client.upload_volume_to_image(volume_id, f"temp-download-{volume_id}")
    cleanup = log.add(f"delete temporary image {image_id}", lambda: client.delete_image(image_id))
    try:
        await poller.wait_for(client, poller.image_active(image_id), sleep=sleep)
        callback = None
        if progress:
            callback = progress(output.name, await client.get_image_size(image_id))
        await client.download_image(image_id, output, callback)
    except Exception:
        await log.unwind()
        raise

    try:
        await log.execute(cleanup)
    except VHICliError as e:
        warnings.warn(f"failed to delete temporary image {image_id}: {e}", CleanupWarning)
    logger.info("Volume downloaded to %s", output)
    return output
