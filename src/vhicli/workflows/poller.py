"""Bounded status polling and retry helpers."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from ..api.exceptions import FatalStatusError, PollTimeoutError, VHICliError
from ..models.resource import PollTarget

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[Any]]

DEFAULT_INTERVAL = 5.0


class StatusSource(Protocol):
    async def get_status(self, kind: str, resource_id: str) -> str: ...


def server_active(server_id: str) -> PollTarget:
    return PollTarget(
        resource_kind="server",
        id=server_id,
        target_status="ACTIVE",
        error_status="ERROR",
        max_attempts=120,
        interval=DEFAULT_INTERVAL,
    )


def volume_available(volume_id: str) -> PollTarget:
    return PollTarget(
        resource_kind="volume",
        id=volume_id,
        target_status="available",
        error_status="error",
        max_attempts=120,
        interval=DEFAULT_INTERVAL,
    )


def image_active(image_id: str) -> PollTarget:
    return PollTarget(
        resource_kind="image",
        id=image_id,
        target_status="active",
        error_status="killed",
        max_attempts=60,
        interval=DEFAULT_INTERVAL,
    )


async def wait_for(
    client: StatusSource, target: PollTarget, sleep: Sleep = asyncio.sleep
) -> str:
    """Poll a resource until it reaches its target status.

    A failed status fetch is logged and counts as a normal attempt. There is
    no sleep after the last attempt.

    Args:
        client: Anything with an async ``get_status(kind, id)``
        target: What to wait for
        sleep: Coroutine used between attempts

    Returns:
        The target status

    Raises:
        FatalStatusError: If the resource reports the error status
        PollTimeoutError: If ``max_attempts`` is exhausted
    """
    kind = target.resource_kind
    last_status: str | None = None

    for attempt in range(1, target.max_attempts + 1):
        try:
            status = await client.get_status(kind, target.id)
        except VHICliError as e:
            logger.warning(
                "Failed to get %s %s status (attempt %d/%d): %s",
                kind, target.id, attempt, target.max_attempts, e,
            )
        else:
            if status != last_status:
                logger.info("%s %s status: %s", kind.capitalize(), target.id, status)
                last_status = status
            if status == target.target_status:
                return status
            if target.error_status is not None and status == target.error_status:
                raise FatalStatusError(kind, target.id, status)

        if attempt < target.max_attempts:
            await sleep(target.interval)

    raise PollTimeoutError(kind, target.id, target.target_status, last_status)


async def retry(
    call: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay: float = DEFAULT_INTERVAL,
    sleep: Sleep = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Run *call* up to *attempts* times, sleeping *delay* between failures.

    Raises:
        VHICliError: The last error once all attempts failed
    """
    for attempt in range(1, attempts + 1):
        try:
            return await call()
        except VHICliError as e:
            if attempt == attempts:
                raise
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %ss",
                description.capitalize(), attempt, attempts, e, delay,
            )
            await sleep(delay)
    raise ValueError("attempts must be at least 1")
