"""Generic remote resource models."""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

ResourceKind = Literal["server", "volume", "image"]


class ResourceRef(BaseModel):
    """A remote resource identity as resolved from a user supplied token."""

    id: str
    name: str | None = None
    resolved: bool = False


class PollTarget(BaseModel):
    """What a status poll waits for and how long it may wait."""

    resource_kind: ResourceKind
    id: str
    target_status: str
    error_status: str | None = None
    max_attempts: int = Field(default=60, gt=0)
    interval: float = Field(default=5.0, ge=0)


class NetworkAttachment(BaseModel):
    """One resolved NIC for a server creation request.

    Either ``network_id`` or ``port_id`` is set. A network attachment carries
    at most one of ``fixed_ip`` and ``mac_address``; a port attachment
    carries neither.
    """

    network_id: str | None = None
    port_id: str | None = None
    fixed_ip: str | None = None
    mac_address: str | None = None

    @model_validator(mode="after")
    def check_shape(self) -> "NetworkAttachment":
        if (self.network_id is None) == (self.port_id is None):
            raise ValueError("exactly one of network_id and port_id is required")
        if self.fixed_ip and self.mac_address:
            raise ValueError("an attachment cannot carry both a fixed IP and a custom MAC")
        if self.port_id and (self.fixed_ip or self.mac_address):
            raise ValueError("a port attachment cannot carry a fixed IP or MAC")
        return self

    def to_request(self) -> dict[str, str]:
        """Render the compute API ``networks`` entry."""
        if self.port_id:
            return {"port": self.port_id}
        entry = {"uuid": self.network_id or ""}
        if self.fixed_ip:
            entry["fixed_ip"] = self.fixed_ip
        if self.mac_address:
            entry["mac_address"] = self.mac_address
        return entry


class Hypervisor(BaseModel):
    """Compute host as reported by ``os-hypervisors``."""

    model_config = {"extra": "allow"}

    hypervisor_hostname: str = ""
    service: Any = None
    zone: str | None = None
    status: str | None = None
    state: str | None = None
    updated_at: str | None = None
    resources: dict[str, Any] = Field(default_factory=dict)
