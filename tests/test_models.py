"""Tests for data models."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from vhicli.api.exceptions import ConfigError
from vhicli.models import (
    BootSource,
    FromImage,
    FromVolume,
    MigrationJob,
    NetworkAttachment,
    ServerCreateRequest,
    ServerView,
    Token,
)
from vhicli.models.vm import GIB, power_state_name, size_gib_from_bytes


@pytest.mark.parametrize(
    "size_bytes,expected",
    [(1, 1), (GIB, 1), (GIB + 1, 2), (10 * GIB, 10), (0, 0)],
)
def test_size_gib_rounds_up(size_bytes, expected):
    assert size_gib_from_bytes(size_bytes) == expected


def test_power_state_name():
    assert power_state_name(1) == "RUNNING"
    assert power_state_name(4) == "SHUTDOWN"
    assert power_state_name(99) == "UNKNOWN"
    assert power_state_name(None) == "UNKNOWN"


class TestBootSource:
    def test_discriminator(self):
        adapter = TypeAdapter(BootSource)

        image = adapter.validate_python({"kind": "image", "image_id": "i1", "size_gib": 20})
        volume = adapter.validate_python({"kind": "volume", "volume_id": "v1"})

        assert isinstance(image, FromImage)
        assert image.disk_bus == "scsi"
        assert isinstance(volume, FromVolume)

    def test_unknown_kind(self):
        with pytest.raises(PydanticValidationError):
            TypeAdapter(BootSource).validate_python({"kind": "snapshot", "id": "x"})

    def test_size_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            FromImage(image_id="i1", size_gib=0)


class TestServerCreateRequest:
    def test_body_from_image(self):
        request = ServerCreateRequest(
            name="vm1",
            flavor_ref="flv-1",
            networks=[
                NetworkAttachment(network_id="net-a"),
                NetworkAttachment(network_id="net-b", mac_address="aa:bb:cc:dd:ee:ff"),
            ],
            boot_source=FromImage(image_id="img-1", size_gib=20),
        )

        body = request.to_body()["server"]

        assert body["name"] == "vm1"
        assert body["flavorRef"] == "flv-1"
        assert "imageRef" not in body
        assert "boot_source" not in body
        assert body["networks"] == [
            {"uuid": "net-a"},
            {"uuid": "net-b", "mac_address": "aa:bb:cc:dd:ee:ff"},
        ]
        assert body["block_device_mapping_v2"] == [
            {
                "boot_index": 0,
                "uuid": "img-1",
                "source_type": "image",
                "destination_type": "volume",
                "volume_size": 20,
                "delete_on_termination": True,
                "volume_type": "nvme_ec7_2",
                "disk_bus": "scsi",
            }
        ]

    def test_body_without_networks(self):
        request = ServerCreateRequest(
            name="vm1",
            flavor_ref="flv-1",
            image_ref="img-1",
            networks="none",
            boot_source=FromImage(image_id="img-1", size_gib=5, disk_bus="sata"),
        )

        body = request.to_body()["server"]

        assert body["networks"] == "none"
        assert body["imageRef"] == "img-1"
        assert body["block_device_mapping_v2"][0]["disk_bus"] == "sata"

    def test_body_from_volume(self):
        request = ServerCreateRequest(
            name="vm1",
            flavor_ref="flv-1",
            networks=[NetworkAttachment(port_id="p1")],
            boot_source=FromVolume(volume_id="vol-1"),
            metadata={"network_install": "true"},
            user_data="I2Nsb3VkLWNvbmZpZw==",
            config_drive=True,
        )

        body = request.to_body()["server"]

        assert body["networks"] == [{"port": "p1"}]
        assert body["metadata"] == {"network_install": "true"}
        assert body["config_drive"] is True
        assert body["block_device_mapping_v2"] == [
            {
                "boot_index": 0,
                "uuid": "vol-1",
                "source_type": "volume",
                "destination_type": "volume",
                "delete_on_termination": True,
            }
        ]


class TestServerView:
    def test_hci_network_info(self):
        server = {
            "id": "srv-1",
            "name": "vm1",
            "status": "ACTIVE",
            "OS-EXT-STS:power_state": 1,
            "hci_info": {
                "network": [
                    {
                        "mac": "fa:16:3e:00:00:01",
                        "network": {"id": "net-a", "label": "public"},
                        "ips": ["10.0.0.5"],
                    }
                ]
            },
        }

        view = ServerView.from_server(server)

        assert view.power_state == "RUNNING"
        assert view.network_details[0].network_label == "public"
        assert view.to_display()["network_details"] == [
            {
                "mac": "fa:16:3e:00:00:01",
                "network_id": "net-a",
                "network_label": "public",
                "ips": ["10.0.0.5"],
            }
        ]

    def test_addresses_fallback(self):
        server = {
            "id": "srv-1",
            "addresses": {
                "private": [
                    {"addr": "192.168.0.4", "OS-EXT-IPS-MAC:mac_addr": "fa:16:3e:00:00:02"},
                ]
            },
        }

        view = ServerView.from_server(server)

        assert view.network_details[0].mac == "fa:16:3e:00:00:02"
        assert view.network_details[0].ips == ["192.168.0.4"]
        assert view.power_state == "UNKNOWN"

    def test_display_without_networks(self):
        view = ServerView.from_server({"id": "srv-1", "name": "vm1"})
        assert "network_details" not in view.to_display()


def test_migration_job_records_once():
    job = MigrationJob(name="vm1", primary_disk_path=Path("/mnt/vmdk/a.vmdk"))

    job.record_image("img-1")
    job.record_image("img-1")
    job.record_volume("vol-1")

    assert job.temp_image_ids == ["img-1"]
    assert job.created_volume_ids == ["vol-1"]
    assert job.disk_bus == "sata"


class TestToken:
    def _token(self, expires_at, endpoints=None):
        return Token(value="t", host="h", expires_at=expires_at, endpoints=endpoints or {})

    def test_expiry(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        token = self._token(now + timedelta(minutes=5))

        assert not token.is_expired(now)
        assert token.is_expired(now + timedelta(minutes=5))

    def test_naive_expiry_is_utc(self):
        token = self._token(datetime(2024, 1, 1, 12, 0))
        assert token.is_expired(datetime(2024, 1, 1, 12, 1, tzinfo=timezone.utc))

    def test_endpoint(self):
        token = self._token(datetime.now(timezone.utc), {"compute": "https://h:8774/v2.1/"})

        assert token.endpoint("compute") == "https://h:8774/v2.1"
        with pytest.raises(ConfigError, match="image"):
            token.endpoint("image")
