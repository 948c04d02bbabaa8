"""Tests for network plan building."""

import asyncio

import pytest
from pydantic import ValidationError as PydanticValidationError

from conftest import FakeClient
from vhicli.api.exceptions import ValidationError
from vhicli.models.resource import NetworkAttachment
from vhicli.workflows.networks import (
    build_plan,
    build_plan_from_ports,
    check_exclusive_paths,
    is_valid_mac,
    plan_attachments,
    split_csv,
)


def _requests(plan):
    return [attachment.to_request() for attachment in plan]


class TestSplitCsv:
    def test_missing_flag(self):
        assert split_csv(None) is None

    def test_trims_and_drops_empty(self):
        assert split_csv(" netA, netB ,,") == ["netA", "netB"]


class TestPlanAttachments:
    @pytest.mark.parametrize(
        "networks,ips,macs",
        [
            (["a", "b"], ["auto"], ["none", "none"]),
            (["a"], ["auto"], ["none", "none"]),
            (["a", "b"], ["auto", "auto", "auto"], None),
            (["a", "b"], None, ["none"]),
        ],
    )
    def test_length_mismatch(self, networks, ips, macs):
        with pytest.raises(ValidationError, match="same number"):
            plan_attachments(networks, ips, macs)

    def test_requires_networks(self):
        with pytest.raises(ValidationError):
            plan_attachments([], ["auto"], None)

    def test_requires_ip_or_mac_policy(self):
        with pytest.raises(ValidationError, match="'none' or 'auto'"):
            plan_attachments(["a"], None, None)

    @pytest.mark.parametrize("ip", ["auto", "10.0.0.5"])
    def test_managed_network_rejects_custom_mac(self, ip):
        with pytest.raises(ValidationError, match="managed"):
            plan_attachments(["a"], [ip], ["aa:bb:cc:dd:ee:ff"])

    def test_unmanaged_network_with_mac(self):
        (attachment,) = plan_attachments(["a"], ["none"], ["aa:bb:cc:dd:ee:ff"])
        assert attachment.mac_address == "aa:bb:cc:dd:ee:ff"
        assert attachment.fixed_ip is None

    def test_auto_ip_sets_nothing(self):
        (attachment,) = plan_attachments(["a"], ["auto"], ["auto"])
        assert attachment.fixed_ip is None
        assert attachment.mac_address is None
        assert attachment.to_request() == {"uuid": "a"}

    def test_fixed_ip(self):
        (attachment,) = plan_attachments(["a"], ["192.168.1.10"], None)
        assert attachment.to_request() == {"uuid": "a", "fixed_ip": "192.168.1.10"}

    def test_ipv6_fixed_ip(self):
        (attachment,) = plan_attachments(["a"], ["fd00::10"], None)
        assert attachment.fixed_ip == "fd00::10"

    def test_missing_list_padded_with_none(self):
        plan = plan_attachments(["a", "b"], None, ["aa:bb:cc:dd:ee:01", "none"])
        assert _requests(plan) == [
            {"uuid": "a", "mac_address": "aa:bb:cc:dd:ee:01"},
            {"uuid": "b"},
        ]

    def test_keywords_are_case_insensitive(self):
        plan = plan_attachments(["a", "b"], ["AUTO", "None"], ["Auto", "NONE"])
        assert _requests(plan) == [{"uuid": "a"}, {"uuid": "b"}]

    def test_invalid_ip(self):
        with pytest.raises(ValidationError, match="Invalid IP"):
            plan_attachments(["a"], ["10.0.0.300"], None)

    def test_invalid_mac(self):
        with pytest.raises(ValidationError, match="Invalid MAC"):
            plan_attachments(["a"], ["none"], ["aa:bb:cc"])


class TestBuildPlan:
    def test_resolves_names_with_literal_fallback(self):
        client = FakeClient(names={"network": {"netA": "id-a"}})

        plan = asyncio.run(build_plan(client, ["netA", "netB"], ["auto", "none"], None))

        assert _requests(plan) == [{"uuid": "id-a"}, {"uuid": "netB"}]
        assert client.called("find_network_id") == [("netA",), ("netB",)]

    def test_mixed_policies(self):
        client = FakeClient()

        plan = asyncio.run(
            build_plan(
                client,
                ["netA", "netB"],
                ["auto", "none"],
                ["none", "aa:bb:cc:dd:ee:ff"],
            )
        )

        assert _requests(plan) == [
            {"uuid": "netA"},
            {"uuid": "netB", "mac_address": "aa:bb:cc:dd:ee:ff"},
        ]

    def test_validation_before_lookup(self):
        client = FakeClient()

        with pytest.raises(ValidationError):
            asyncio.run(build_plan(client, ["netA", "netB"], ["auto"], ["none", "none"]))

        assert client.calls == []

    def test_from_ports(self):
        plan = build_plan_from_ports(["p1", "p2"])
        assert _requests(plan) == [{"port": "p1"}, {"port": "p2"}]


class TestExclusivePaths:
    @pytest.mark.parametrize(
        "networks,ips,macs",
        [(["a"], None, None), (None, ["auto"], None), (None, None, ["none"])],
    )
    def test_ports_conflict(self, networks, ips, macs):
        with pytest.raises(ValidationError, match="--ports"):
            check_exclusive_paths(["p1"], networks, ips, macs)

    def test_ports_alone(self):
        check_exclusive_paths(["p1"], None, None, None)

    def test_no_ports(self):
        check_exclusive_paths([], ["a"], ["auto"], None)


@pytest.mark.parametrize(
    "mac,valid",
    [
        ("aa:bb:cc:dd:ee:ff", True),
        ("AA-BB-CC-DD-EE-FF", True),
        ("aa:bb-cc:dd:ee:ff", False),
        ("aa:bb:cc:dd:ee", False),
        ("gg:bb:cc:dd:ee:ff", False),
    ],
)
def test_is_valid_mac(mac, valid):
    assert is_valid_mac(mac) is valid


class TestNetworkAttachment:
    def test_requires_exactly_one_target(self):
        with pytest.raises(PydanticValidationError):
            NetworkAttachment()
        with pytest.raises(PydanticValidationError):
            NetworkAttachment(network_id="n", port_id="p")

    def test_ip_and_mac_exclusive(self):
        with pytest.raises(PydanticValidationError):
            NetworkAttachment(network_id="n", fixed_ip="10.0.0.1", mac_address="aa:bb:cc:dd:ee:ff")

    def test_port_carries_no_address(self):
        with pytest.raises(PydanticValidationError):
            NetworkAttachment(port_id="p", fixed_ip="10.0.0.1")
