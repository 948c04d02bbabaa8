"""Opportunistic name to ID resolution."""

import logging
from typing import Awaitable, Callable

from ..api.exceptions import VHICliError
from ..models.resource import ResourceRef

logger = logging.getLogger(__name__)


async def resolve_ref(lookup: Callable[[str], Awaitable[str]], value: str) -> ResourceRef:
    """Resolve *value* through *lookup*, falling back to the literal token.

    Users may pass either a name or an ID, so a failed lookup is not an
    error: the token is assumed to already be an ID and the remote call
    that uses it will reject it if it is not.
    """
    try:
        resource_id = await lookup(value)
    except VHICliError as e:
        logger.debug("Could not resolve '%s', using it as an ID: %s", value, e)
        return ResourceRef(id=value)
    return ResourceRef(id=resource_id, name=value, resolved=True)
