"""Tests for image, volume and port workflows."""

import asyncio
import os
import shutil
import time
from collections import namedtuple
from pathlib import Path

import pytest

from conftest import FakeClient
from vhicli.api.exceptions import APIError, CleanupWarning, ValidationError
from vhicli.models.vm import GIB
from vhicli.workflows import storage
from vhicli.workflows.storage import (
    create_image_from_file,
    create_port,
    create_volume,
    detect_disk_format,
    download_volume,
    needs_warm_up,
)

DiskUsage = namedtuple("DiskUsage", "total used free")


@pytest.mark.parametrize(
    "name,flag,expected",
    [
        ("disk.qcow2", None, "qcow2"),
        ("disk.IMG", None, "raw"),
        ("disk.vmdk", None, "vmdk"),
        ("installer.iso", None, "iso"),
        ("disk.bin", "RAW", "raw"),
    ],
)
def test_detect_disk_format(name, flag, expected):
    assert detect_disk_format(Path(name), flag) == expected


@pytest.mark.parametrize("name,flag", [("disk.vhd", None), ("disk.qcow2", "vdi")])
def test_unsupported_disk_format(name, flag):
    with pytest.raises(ValidationError):
        detect_disk_format(Path(name), flag)


def test_needs_warm_up():
    assert needs_warm_up(Path("/mnt/vmdk/web/web.vmdk"))
    assert not needs_warm_up(Path("/var/tmp/web.vmdk"))


class TestCreateVolume:
    def test_blank(self):
        client = FakeClient()

        asyncio.run(create_volume(client, "data", size=20))

        assert client.called("create_volume") == [("data", 20, None)]

    def test_blank_requires_size(self):
        with pytest.raises(ValidationError, match="--size"):
            asyncio.run(create_volume(FakeClient(), "data"))

    def test_requires_name(self):
        with pytest.raises(ValidationError, match="name"):
            asyncio.run(create_volume(FakeClient(), "", size=5))

    @pytest.mark.parametrize(
        "size,image_bytes,expected",
        [(None, GIB + 1, 2), (1, 5 * GIB, 5), (50, 5 * GIB, 50), (None, 1, 1)],
    )
    def test_from_image_at_least_image_size(self, size, image_bytes, expected):
        client = FakeClient(names={"image": {"ubuntu": "img-9"}}, image_size=image_bytes)

        asyncio.run(create_volume(client, "root", size=size, image="ubuntu"))

        assert client.called("create_volume") == [("root", expected, "img-9")]


class TestCreatePort:
    def test_with_mac(self):
        client = FakeClient(names={"network": {"public": "net-1"}})

        asyncio.run(create_port(client, "public", "AA:BB:CC:DD:EE:FF"))

        assert client.called("create_port") == [("net-1", "AA:BB:CC:DD:EE:FF")]

    def test_auto_mac(self):
        client = FakeClient()

        asyncio.run(create_port(client, "net-1", "auto"))

        assert client.called("create_port") == [("net-1", None)]

    def test_invalid_mac(self):
        client = FakeClient()

        with pytest.raises(ValidationError):
            asyncio.run(create_port(client, "net-1", "zz"))
        assert client.calls == []


class TestCreateImageFromFile:
    def test_default_name_and_format(self, tmp_path, monkeypatch):
        monkeypatch.setattr(storage, "timestamp", lambda: "20240101-120000")
        disk = tmp_path / "ubuntu.qcow2"
        disk.write_bytes(b"QFI")
        client = FakeClient()

        result = asyncio.run(create_image_from_file(client, disk, pre_read=None))

        assert result == {"id": "img-1", "name": "ubuntu-20240101-120000", "disk_format": "qcow2"}
        assert client.called("upload_image_data") == [("img-1", str(disk))]

    def test_progress_factory(self, tmp_path):
        disk = tmp_path / "disk.raw"
        disk.write_bytes(b"0123456789")
        started = []

        def progress(label, total):
            started.append((label, total))
            return lambda size: None

        asyncio.run(create_image_from_file(FakeClient(), disk, name="d", progress=progress))

        assert started == [("d", 10)]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="not found"):
            asyncio.run(create_image_from_file(FakeClient(), tmp_path / "nope.qcow2"))


class TestDownloadVolume:
    @pytest.fixture(autouse=True)
    def plenty_of_space(self, monkeypatch):
        monkeypatch.setattr(
            storage.shutil, "disk_usage", lambda path: DiskUsage(100 * GIB, 0, 100 * GIB)
        )

    def test_temp_image_deleted(self, tmp_path, fake_sleep):
        client = FakeClient(names={"volume": {"data": "vol-7"}})
        output = tmp_path / "out" / "data.qcow2"

        asyncio.run(download_volume(client, "data", output, sleep=fake_sleep))

        assert output.read_bytes() == b"data"
        assert client.called("upload_volume_to_image") == [("vol-7", "temp-download-vol-7")]
        assert client.called("delete_image") == [("img-1",)]

    def test_download_failure_still_deletes(self, tmp_path, fake_sleep):
        client = FakeClient(fail={"download_image": APIError("reset")})

        with pytest.raises(APIError, match="reset"):
            asyncio.run(download_volume(client, "vol-7", tmp_path / "x.qcow2", sleep=fake_sleep))

        assert client.called("delete_image") == [("img-1",)]

    def test_delete_failure_is_a_warning(self, tmp_path, fake_sleep):
        client = FakeClient(fail={"delete_image": APIError("busy")})

        with pytest.warns(CleanupWarning, match="img-1"):
            asyncio.run(download_volume(client, "vol-7", tmp_path / "x.qcow2", sleep=fake_sleep))

    def test_not_enough_space(self, tmp_path, fake_sleep, monkeypatch):
        monkeypatch.setattr(storage.shutil, "disk_usage", lambda path: DiskUsage(GIB, GIB, 0))
        client = FakeClient()

        with pytest.raises(ValidationError, match="not enough disk space"):
            asyncio.run(download_volume(client, "vol-7", tmp_path / "x.qcow2", sleep=fake_sleep))

        assert client.called("upload_volume_to_image") == []


def test_warm_up_failure_is_ignored(tmp_path, caplog):
    asyncio.run(storage.warm_up_source(tmp_path / "missing.vmdk"))
    assert "Warm-up read" in caplog.text


@pytest.mark.skipif(
    shutil.which("dd") is None or not hasattr(os, "mkfifo"), reason="needs dd and FIFOs"
)
def test_stuck_warm_up_read_is_killed(tmp_path, caplog):
    # opening a FIFO with no writer blocks until the reader is killed
    fifo = tmp_path / "stuck.vmdk"
    os.mkfifo(fifo)

    start = time.monotonic()
    asyncio.run(storage.warm_up_source(fifo, timeout=0.2))

    assert time.monotonic() - start < 5
    assert "did not finish within 0.2s" in caplog.text
