"""Shared pytest fixtures for all test modules."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from vhicli.api.exceptions import ResourceNotFoundError
from vhicli.models.config import Token
from vhicli.models.vm import GIB

DEFAULT_STATUS = {"server": "ACTIVE", "volume": "available", "image": "active"}


class FakeClient:
    """In-memory stand-in for VHIClient.

    Every call is recorded in ``calls`` as ``(method, *args)``.

    Args:
        statuses: ``{(kind, id): [status, ...]}``; the last status repeats
        names: ``{"network": {"name": "id"}, ...}``; unknown names raise
            ResourceNotFoundError, like a failed lookup
        image_size: Size in bytes reported for every image
        fail: ``{method: exception}`` raised on every call, or
            ``{method: [exception | None, ...]}`` consumed one per call
    """

    def __init__(self, statuses=None, names=None, image_size=GIB, fail=None):
        self.calls = []
        self.statuses = {key: list(value) for key, value in (statuses or {}).items()}
        self.names = names or {}
        self.image_size = image_size
        self.fail = dict(fail or {})
        self.server_requests = []
        self._ids = itertools.count(1)

    def _record(self, method, *args):
        self.calls.append((method, *args))
        failure = self.fail.get(method)
        if isinstance(failure, list):
            if failure:
                exc = failure.pop(0)
                if exc is not None:
                    raise exc
        elif failure is not None:
            raise failure

    def _new_id(self, prefix):
        return f"{prefix}-{next(self._ids)}"

    def _lookup(self, kind, ref):
        try:
            return self.names[kind][ref]
        except KeyError:
            raise ResourceNotFoundError(kind, ref)

    def called(self, method):
        return [call[1:] for call in self.calls if call[0] == method]

    def method_names(self):
        return [call[0] for call in self.calls]

    # Lookups

    async def find_network_id(self, ref):
        self._record("find_network_id", ref)
        return self._lookup("network", ref)

    async def find_image_id(self, ref):
        self._record("find_image_id", ref)
        return self._lookup("image", ref)

    async def find_flavor_id(self, ref):
        self._record("find_flavor_id", ref)
        return self._lookup("flavor", ref)

    async def find_server_id(self, ref):
        self._record("find_server_id", ref)
        return self._lookup("server", ref)

    async def find_volume_id(self, ref):
        self._record("find_volume_id", ref)
        return self._lookup("volume", ref)

    # Status

    async def get_status(self, kind, resource_id):
        self._record("get_status", kind, resource_id)
        sequence = self.statuses.get((kind, resource_id))
        if not sequence:
            return DEFAULT_STATUS[kind]
        if len(sequence) > 1:
            return sequence.pop(0)
        return sequence[0]

    # Compute

    async def create_server(self, request):
        self._record("create_server", request.name)
        self.server_requests.append(request.to_body())
        return {"id": self._new_id("srv")}

    async def get_server(self, server_id):
        self._record("get_server", server_id)
        return {
            "id": server_id,
            "name": "vm1",
            "status": "ACTIVE",
            "OS-EXT-STS:power_state": 1,
            "metadata": {},
        }

    async def reboot_server(self, server_id, kind="HARD"):
        self._record("reboot_server", server_id, kind)

    async def stop_server(self, server_id):
        self._record("stop_server", server_id)

    async def attach_volume(self, server_id, volume_id):
        self._record("attach_volume", server_id, volume_id)
        return {"volumeId": volume_id}

    async def attach_port(self, server_id, port_id):
        self._record("attach_port", server_id, port_id)
        return {"port_id": port_id}

    async def get_boot_volume_id(self, server_id):
        self._record("get_boot_volume_id", server_id)
        return "boot-vol"

    # Images

    async def create_image(self, name, disk_format, container_format="bare", visibility="shared"):
        self._record("create_image", name, disk_format)
        return self._new_id("img")

    async def upload_image_data(self, image_id, path, progress=None):
        self._record("upload_image_data", image_id, str(path))

    async def get_image_size(self, image_id):
        self._record("get_image_size", image_id)
        return self.image_size

    async def set_image_properties(self, image_id, properties):
        self._record("set_image_properties", image_id, properties)

    async def delete_image(self, image_id):
        self._record("delete_image", image_id)

    async def download_image(self, image_id, destination, progress=None):
        self._record("download_image", image_id, str(destination))
        destination.write_bytes(b"data")

    # Volumes

    async def create_volume(self, name, size=None, description=None, volume_type=None, image_id=None):
        self._record("create_volume", name, size, image_id)
        return {"id": self._new_id("vol"), "name": name, "size": size}

    async def get_volume(self, volume_id):
        self._record("get_volume", volume_id)
        return {"id": volume_id, "size": 1, "status": "available"}

    async def set_volume_bootable(self, volume_id, bootable=True):
        self._record("set_volume_bootable", volume_id)

    async def delete_volume(self, volume_id):
        self._record("delete_volume", volume_id)

    async def upload_volume_to_image(self, volume_id, image_name, disk_format="qcow2"):
        self._record("upload_volume_to_image", volume_id, image_name)
        return self._new_id("img")

    # Network

    async def create_port(self, network_id, mac_address=None, name=None):
        self._record("create_port", network_id, mac_address)
        return {
            "id": self._new_id("port"),
            "network_id": network_id,
            "mac_address": mac_address or "fa:16:3e:00:00:01",
        }

    async def delete_port(self, port_id):
        self._record("delete_port", port_id)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def sleeps():
    """Delays requested through ``fake_sleep``."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def token():
    return Token(
        value="tok-123",
        host="vhi.example.com",
        project="proj",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        endpoints={
            "compute": "https://vhi.example.com:8774/v2.1",
            "image": "https://vhi.example.com:9292",
            "network": "https://vhi.example.com:9696",
            "volumev3": "https://vhi.example.com:8776/v3/proj-id",
        },
    )
