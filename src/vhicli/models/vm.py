"""VM creation, boot source and migration models."""

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_serializer

from .resource import NetworkAttachment

GIB = 1024 * 1024 * 1024
DEFAULT_BOOT_SIZE_GIB = 10
DEFAULT_VOLUME_TYPE = "nvme_ec7_2"
DISK_BUSES = ("sata", "scsi", "virtio")

POWER_STATES = {
    0: "NOSTATE",
    1: "RUNNING",
    3: "PAUSED",
    4: "SHUTDOWN",
    6: "CRASHED",
    7: "SUSPENDED",
}


def size_gib_from_bytes(size_bytes: int) -> int:
    """Convert a byte count to whole GiB, rounding up."""
    return (size_bytes + GIB - 1) // GIB


def power_state_name(state: int | None) -> str:
    """Map a numeric power state to its name."""
    if state is None:
        return "UNKNOWN"
    return POWER_STATES.get(state, "UNKNOWN")


class BlockDeviceMapping(BaseModel):
    """One ``block_device_mapping_v2`` entry."""

    boot_index: int = 0
    uuid: str
    source_type: Literal["image", "volume", "blank"]
    destination_type: Literal["volume", "local"] = "volume"
    volume_size: int | None = None
    delete_on_termination: bool = True
    volume_type: str | None = None
    disk_bus: str | None = None


class FromImage(BaseModel):
    """Boot from a fresh volume cloned from an image."""

    kind: Literal["image"] = "image"
    image_id: str
    size_gib: int = Field(..., gt=0)
    disk_bus: str = "scsi"
    volume_type: str | None = DEFAULT_VOLUME_TYPE

    def block_device_mapping(self) -> BlockDeviceMapping:
        return BlockDeviceMapping(
            uuid=self.image_id,
            source_type="image",
            volume_size=self.size_gib,
            volume_type=self.volume_type,
            disk_bus=self.disk_bus,
        )


class FromVolume(BaseModel):
    """Boot from an existing bootable volume."""

    kind: Literal["volume"] = "volume"
    volume_id: str

    def block_device_mapping(self) -> BlockDeviceMapping:
        return BlockDeviceMapping(uuid=self.volume_id, source_type="volume")


BootSource = Annotated[FromImage | FromVolume, Field(discriminator="kind")]


class ServerCreateRequest(BaseModel):
    """Structured ``POST /servers`` body.

    ``networks`` is either a list of attachments or the literal ``"none"``
    to create the server without NICs.
    """

    name: str
    flavor_ref: str = Field(serialization_alias="flavorRef")
    image_ref: str | None = Field(default=None, serialization_alias="imageRef")
    networks: list[NetworkAttachment] | Literal["none", "auto"]
    boot_source: BootSource = Field(exclude=True)
    metadata: dict[str, str] | None = None
    user_data: str | None = None
    config_drive: bool | None = None

    @field_serializer("networks")
    def serialize_networks(self, networks: Any) -> Any:
        if isinstance(networks, str):
            return networks
        return [attachment.to_request() for attachment in networks]

    def to_body(self) -> dict[str, Any]:
        """Render the full request body."""
        server = self.model_dump(by_alias=True, exclude_none=True)
        server["block_device_mapping_v2"] = [
            self.boot_source.block_device_mapping().model_dump(exclude_none=True)
        ]
        return {"server": server}


class VMSpec(BaseModel):
    """Everything ``create vm`` needs, built once per invocation."""

    name: str
    flavor: str | None = None
    image: str | None = None
    networks: list[str] = Field(default_factory=list)
    ips: list[str] | None = None
    macs: list[str] | None = None
    ports: list[str] = Field(default_factory=list)
    size_gib: int | None = None
    netboot: bool = False
    user_data: Path | None = None
    ci_data: dict[str, str] | None = None
    volume_type: str = DEFAULT_VOLUME_TYPE
    disk_bus: str = "scsi"


class MigrationJob(BaseModel):
    """State of one ``migrate vm`` run.

    ``temp_image_ids`` and ``created_volume_ids`` only grow while the job
    runs; they record what cleanup has to reach.
    """

    name: str
    flavor: str | None = None
    primary_disk_path: Path | None = None
    secondary_disk_path: Path | None = None
    networks: list[str] = Field(default_factory=list)
    macs: list[str] | None = None
    size_gib: int | None = None
    disk_bus: str = "sata"
    volume_type: str = DEFAULT_VOLUME_TYPE
    shutdown: bool = False
    i440fx: bool = False
    temp_image_ids: list[str] = Field(default_factory=list)
    created_volume_ids: list[str] = Field(default_factory=list)

    def record_image(self, image_id: str) -> None:
        if image_id not in self.temp_image_ids:
            self.temp_image_ids.append(image_id)

    def record_volume(self, volume_id: str) -> None:
        if volume_id not in self.created_volume_ids:
            self.created_volume_ids.append(volume_id)


class NetworkDetail(BaseModel):
    """One NIC of a created server, for display."""

    mac: str | None = None
    network_id: str | None = None
    network_label: str | None = None
    ips: list[str] = Field(default_factory=list)


class ServerView(BaseModel):
    """Display view of a server joined with its network information."""

    id: str
    name: str | None = None
    status: str | None = None
    power_state: str = "UNKNOWN"
    metadata: dict[str, Any] = Field(default_factory=dict)
    network_details: list[NetworkDetail] = Field(default_factory=list)

    @classmethod
    def from_server(cls, server: dict[str, Any]) -> "ServerView":
        """Build a view from a ``GET /servers/{id}`` body.

        VHI reports NICs under ``hci_info.network``; plain OpenStack
        deployments only have ``addresses``.
        """
        details = []
        hci_networks = (server.get("hci_info") or {}).get("network") or []
        for iface in hci_networks:
            network = iface.get("network") or {}
            details.append(
                NetworkDetail(
                    mac=iface.get("mac"),
                    network_id=network.get("id"),
                    network_label=network.get("label"),
                    ips=[ip for ip in iface.get("ips") or [] if isinstance(ip, str)],
                )
            )
        if not details:
            for label, addresses in (server.get("addresses") or {}).items():
                macs = {a.get("OS-EXT-IPS-MAC:mac_addr") for a in addresses}
                for mac in sorted(m for m in macs if m):
                    details.append(
                        NetworkDetail(
                            mac=mac,
                            network_label=label,
                            ips=[
                                a["addr"]
                                for a in addresses
                                if a.get("OS-EXT-IPS-MAC:mac_addr") == mac and a.get("addr")
                            ],
                        )
                    )

        return cls(
            id=server["id"],
            name=server.get("name"),
            status=server.get("status"),
            power_state=power_state_name(server.get("OS-EXT-STS:power_state")),
            metadata=server.get("metadata") or {},
            network_details=details,
        )

    def to_display(self) -> dict[str, Any]:
        """Flatten into the mapping printed by ``create vm``."""
        data: dict[str, Any] = {
            "power_state": self.power_state,
            "name": self.name,
            "id": self.id,
            "metadata": self.metadata,
        }
        if self.network_details:
            data["network_details"] = [
                d.model_dump(exclude_defaults=True) for d in self.network_details
            ]
        return data
