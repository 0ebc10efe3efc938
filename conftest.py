"""Shared pytest fixtures for k3snode tests.

This module provides common fixtures used across test files:
- k3snode_root: Sets K3SNODE_ROOT environment variable
- pulumi_mocks: Recording Pulumi mock class for resource tests
- k3s_node: K3sNode with sensible defaults, no YAML on disk
- write_node_config: Writes a k3snode.yaml below K3SNODE_ROOT
"""

import pathlib
import typing

import pulumi
import pytest
import yaml

import k3snode.node

# ============================================================================
# Environment Setup Fixtures
# ============================================================================


@pytest.fixture
def k3snode_root(monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path) -> pathlib.Path:
    """Set K3SNODE_ROOT environment variable to a temporary directory.

    Usage:
        def test_something(k3snode_root):
            paths = Paths()
            assert paths.root == k3snode_root
    """
    monkeypatch.setenv("K3SNODE_ROOT", str(tmp_path))
    monkeypatch.setenv("K3SNODE_CACHE", str(tmp_path / ".cache"))
    return tmp_path


@pytest.fixture
def write_node_config(k3snode_root: pathlib.Path) -> typing.Callable[..., pathlib.Path]:
    """Return a function writing ``__nodes__/<name>/k3snode.yaml``.

    Usage:
        def test_something(write_node_config):
            write_node_config("site01-prod", {"domain": "example.com"})
            node = K3sNode("site01-prod")
    """

    def write(
        name: str,
        spec: dict[str, typing.Any],
        kind: str = "K3sNodeConfig",
        api_version: str = k3snode.node.API_VERSION,
    ) -> pathlib.Path:
        d = k3snode_root / "__nodes__" / name
        d.mkdir(parents=True, exist_ok=True)
        path = d / "k3snode.yaml"
        path.write_text(yaml.safe_dump({"apiVersion": api_version, "kind": kind, "spec": spec}))
        return path

    return write


# ============================================================================
# Pulumi Mock Fixtures
# ============================================================================


class RecordingPulumiMocks(pulumi.runtime.Mocks):
    """Pulumi mocks that echo inputs back as outputs and remember every resource.

    Resource IDs are the resource names with an ``-id`` suffix. Elastic IPs get
    a fixed ``publicIp`` so outputs derived from it resolve in tests. Invokes
    return a fake AMI id and hosted zone id.
    """

    PUBLIC_IP = "203.0.113.10"

    def __init__(self) -> None:
        self.resources: list[pulumi.runtime.MockResourceArgs] = []
        self.calls: list[pulumi.runtime.MockCallArgs] = []

    def new_resource(self, args: pulumi.runtime.MockResourceArgs) -> tuple[str | None, dict[typing.Any, typing.Any]]:
        self.resources.append(args)
        outputs = dict(args.inputs)
        if args.typ == "aws:ec2/eip:Eip":
            outputs["publicIp"] = self.PUBLIC_IP
        return f"{args.name}-id", outputs

    def call(
        self, args: pulumi.runtime.MockCallArgs
    ) -> dict[typing.Any, typing.Any] | tuple[dict[typing.Any, typing.Any], list[tuple[str, str]] | None]:
        self.calls.append(args)
        if args.token == "aws:ec2/getAmi:getAmi":
            return {"id": "ami-0123456789abcdef0", "imageId": "ami-0123456789abcdef0"}
        if args.token == "aws:route53/getZone:getZone":
            return {"id": "Z0LOOKEDUP", "zoneId": "Z0LOOKEDUP", "name": args.args.get("name")}
        return {}

    def of_type(self, typ: str) -> list[pulumi.runtime.MockResourceArgs]:
        return [r for r in self.resources if r.typ == typ]


@pytest.fixture
def pulumi_mocks() -> RecordingPulumiMocks:
    """Install and return a fresh RecordingPulumiMocks instance.

    Usage:
        @pulumi.runtime.test
        def test_my_resource(pulumi_mocks):
            ...  # create resources
            assert pulumi_mocks.of_type("aws:ec2/instance:Instance")
    """
    mocks = RecordingPulumiMocks()
    pulumi.runtime.set_mocks(mocks, preview=False)
    return mocks


# ============================================================================
# Node Fixtures
# ============================================================================


@pytest.fixture
def k3s_node(k3snode_root: pathlib.Path) -> k3snode.node.K3sNode:
    """Create a K3sNode with sensible defaults for testing.

    The node is "shop01-prod" serving "shop.example.com", with a fixed hosted
    zone so no Route53 lookup is needed, and "k3s-node-1" as node hostname.
    """
    node = k3snode.node.K3sNode(name="shop01-prod", paths=None, load_yaml=False)
    node.cfg = k3snode.node.K3sNodeConfig(
        domain="shop.example.com",
        environment="prod",
        true_name="shop01",
        key_name="shop01-key",
        hosted_zone_id="Z0FIXTURE",
        node_hostname="k3s-node-1",
        resource_tags={"team": "web"},
    )
    return node
