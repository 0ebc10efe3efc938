from __future__ import annotations

import dataclasses
import ipaddress
import pathlib
import typing

import deepmerge  # type: ignore
import yaml

import k3snode
import k3snode.paths
from k3snode.pulumi_resources.lib import validate_aws_tags

API_VERSION = "k3snode/v1"

DEFAULT_PACKAGES = (
    "curl",
    "wget",
    "git",
    "unzip",
    "jq",
    "htop",
    "docker.io",
    "docker-compose",
)


@dataclasses.dataclass(frozen=True)
class K3sNodeConfig:
    domain: str
    environment: str
    true_name: str

    region: str = "us-east-1"
    instance_type: str = "t3.large"
    key_name: str | None = None
    root_volume_size: int = 50
    root_volume_type: str = "gp3"
    ssh_cidr: str = "0.0.0.0/0"
    hosted_zone_id: str | None = None
    namespace_prefix: str = k3snode.DEFAULT_NAMESPACE_PREFIX
    node_user: str = k3snode.DEFAULT_NODE_USER
    data_root: str = k3snode.DATA_ROOT
    k3s_ready_wait_seconds: int = 30
    k3s_disabled_components: list[str] = dataclasses.field(default_factory=lambda: ["traefik", "servicelb"])
    packages: list[str] = dataclasses.field(default_factory=lambda: list(DEFAULT_PACKAGES))
    docker_network: str = k3snode.DOCKER_NETWORK
    manifests_dir: str | None = None
    volume_capacities: dict[str, str] = dataclasses.field(default_factory=dict)
    # only used when volumes are managed from outside the node
    node_hostname: str | None = None
    kubeconfig: str | None = None
    resource_tags: dict[str, str] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.domain or not self.domain.strip():
            msg = "domain must not be empty"
            raise ValueError(msg)

        if self.environment not in {str(e) for e in k3snode.Environments}:
            msg = f"Environment {self.environment!r} is not supported"
            raise ValueError(msg)

        try:
            ipaddress.ip_network(self.ssh_cidr)
        except ValueError as e:
            msg = f"ssh_cidr {self.ssh_cidr!r} is not a valid CIDR: {e}"
            raise ValueError(msg) from e

        if self.k3s_ready_wait_seconds < 0:
            msg = f"k3s_ready_wait_seconds must not be negative, got {self.k3s_ready_wait_seconds}"
            raise ValueError(msg)

        known_kinds = {kind.name for kind in k3snode.VOLUME_KINDS}
        unknown_kinds = set(self.volume_capacities) - known_kinds
        if unknown_kinds:
            msg = (
                f"Unknown volume kinds in volume_capacities: {sorted(unknown_kinds)}. "
                f"Valid kinds are: {sorted(known_kinds)}"
            )
            raise ValueError(msg)

        validate_aws_tags(self.resource_tags)

    @property
    def home_dir(self) -> str:
        return f"/home/{self.node_user}"

    @property
    def kubeconfig_path(self) -> str:
        return f"{self.home_dir}/.kube/config"

    @property
    def k8s_manifests_dir(self) -> str:
        return self.manifests_dir or f"{self.home_dir}/k8s-manifests"

    @property
    def volume_kinds(self) -> list[k3snode.VolumeKind]:
        return [
            dataclasses.replace(kind, capacity=self.volume_capacities.get(kind.name, kind.capacity))
            for kind in k3snode.VOLUME_KINDS
        ]

    def namespace(self, environment: str) -> str:
        return k3snode.namespace_name(environment, self.namespace_prefix)


class K3sNode:
    d: pathlib.Path
    cfg: K3sNodeConfig
    spec: dict[str, typing.Any]

    def __init__(self, name: str, paths: k3snode.paths.Paths | None = None, *, load_yaml=True):
        self.d = (paths or k3snode.paths.Paths()).nodes / name

        if not load_yaml:
            return

        if not self.k3snode_yaml.exists():
            msg = f"node config not found: {str(self.k3snode_yaml)!r}"
            raise ValueError(msg)

        self.load_config()

    @property
    def k3snode_yaml(self) -> pathlib.Path:
        return self.d / "k3snode.yaml"

    @property
    def compound_name(self) -> str:
        return f"{self.cfg.true_name}-{self.cfg.environment}"

    @property
    def required_tags(self) -> dict[str, str]:
        return self.cfg.resource_tags | {
            str(k3snode.TagKeys.K3SNODE_TRUE_NAME): self.cfg.true_name,
            str(k3snode.TagKeys.K3SNODE_ENVIRONMENT): self.cfg.environment,
        }

    def load_config(self) -> None:
        true_name, environment = self.d.name.rsplit("-", maxsplit=1)

        if environment not in {str(e) for e in k3snode.Environments}:
            msg = f"Environment {environment!r} is not supported"
            raise ValueError(msg)

        cfg_dict = yaml.safe_load(self.k3snode_yaml.read_text())
        if not isinstance(cfg_dict, dict):
            msg = f"node config {str(self.k3snode_yaml)!r} must be a mapping, got {type(cfg_dict).__name__}"
            raise ValueError(msg)

        if cfg_dict.get("kind") != K3sNodeConfig.__name__ or cfg_dict.get("apiVersion") != API_VERSION:
            msg = (
                f"mismatched node config kind={cfg_dict.get('kind')!r} "
                f"apiVersion={cfg_dict.get('apiVersion')!r} in {str(self.k3snode_yaml)!r}"
            )
            raise ValueError(msg)

        spec: dict[str, typing.Any] = {
            "environment": environment,
            "true_name": true_name,
        }

        user_spec = cfg_dict.get("spec") or {}
        if not isinstance(user_spec, dict):
            msg = f"spec in {str(self.k3snode_yaml)!r} must be a mapping, got {type(user_spec).__name__}"
            raise ValueError(msg)

        user_spec = {str(key).replace("-", "_"): value for key, value in user_spec.items()}

        known_keys = {field.name for field in dataclasses.fields(K3sNodeConfig)}
        unknown_keys = set(user_spec) - known_keys
        if unknown_keys:
            msg = f"Unknown keys in {str(self.k3snode_yaml)!r}: {sorted(unknown_keys)}"
            raise ValueError(msg)

        if "domain" not in user_spec:
            msg = f"domain is required in {str(self.k3snode_yaml)!r}"
            raise ValueError(msg)

        deepmerge.always_merger.merge(spec, user_spec)

        # the directory name is authoritative
        spec["environment"] = environment
        spec["true_name"] = true_name

        self.spec = spec
        self.cfg = K3sNodeConfig(**spec)
