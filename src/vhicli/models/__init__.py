"""Data models."""

from .config import Config, Token
from .resource import Hypervisor, NetworkAttachment, PollTarget, ResourceRef
from .vm import (
    BlockDeviceMapping,
    BootSource,
    FromImage,
    FromVolume,
    MigrationJob,
    ServerCreateRequest,
    ServerView,
    VMSpec,
)

__all__ = [
    "BlockDeviceMapping",
    "BootSource",
    "Config",
    "FromImage",
    "FromVolume",
    "Hypervisor",
    "MigrationJob",
    "NetworkAttachment",
    "PollTarget",
    "ResourceRef",
    "ServerCreateRequest",
    "ServerView",
    "Token",
    "VMSpec",
]
