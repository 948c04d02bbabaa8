"""Multi-step provisioning and migration workflows."""

from .cleanup import CleanupLog
from .migrate import find_disk_images, migrate_vm
from .networks import build_plan, build_plan_from_ports, plan_attachments
from .poller import retry, wait_for
from .provision import create_vm

__all__ = [
    "CleanupLog",
    "build_plan",
    "build_plan_from_ports",
    "create_vm",
    "find_disk_images",
    "migrate_vm",
    "plan_attachments",
    "retry",
    "wait_for",
]
