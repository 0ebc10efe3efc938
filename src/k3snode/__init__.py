from __future__ import annotations

import dataclasses
import enum
import typing

import boto3

CANONICAL_ACCOUNT_ID = "099720109477"
DATA_ROOT = "/mnt/k3s-data"
DEFAULT_NAMESPACE_PREFIX = "ubiqus"
DEFAULT_NODE_USER = "ubuntu"
DOCKER_NETWORK = "service-tier"
HOSTNAME_LABEL = "kubernetes.io/hostname"
K3S_INSTALL_URL = "https://get.k3s.io"
K3S_KUBECONFIG = "/etc/rancher/k3s/k3s.yaml"
KUBECTL_RELEASE_URL = "https://dl.k8s.io/release"
LOCAL_STORAGE_CLASS = "local-storage"
NO_PROVISIONER = "kubernetes.io/no-provisioner"
UBUNTU_AMI_NAME = "ubuntu/images/hvm-ssd/ubuntu-jammy-22.04-amd64-server-*"

# deployments rolled out by k3s-deploy.sh, in order
DEPLOYMENTS = ("flowlb", "mysql", "drupal", "frontend")

KUBECTL_ALIASES = {
    "k": "kubectl",
    "kgp": "kubectl get pods",
    "kgs": "kubectl get svc",
    "kgn": "kubectl get nodes",
    "kaf": "kubectl apply -f",
    "kdel": "kubectl delete",
}


class Environments(enum.StrEnum):
    dev = "dev"
    staging = "staging"
    prod = "prod"


class TagKeys(enum.StrEnum):
    K3SNODE_BOOTSTRAP_SIGNATURE = "k3snode/bootstrap-signature"
    K3SNODE_ENVIRONMENT = "k3snode/environment"
    K3SNODE_MANAGED_BY = "k3snode/managed-by"
    K3SNODE_TRUE_NAME = "k3snode/true-name"


class Layers(enum.StrEnum):
    NODE = "node"
    VOLUMES = "volumes"


@dataclasses.dataclass(frozen=True)
class VolumeKind:
    name: str
    capacity: str


# PV-backed data directories; flowlb-html is a plain directory without a PV
VOLUME_KINDS = (
    VolumeKind(name="mysql", capacity="10Gi"),
    VolumeKind(name="drupal-files", capacity="5Gi"),
    VolumeKind(name="flowlb-certs", capacity="1Gi"),
    VolumeKind(name="flowlb-vhost", capacity="1Gi"),
)

DATA_DIRECTORIES = (*[kind.name for kind in VOLUME_KINDS], "flowlb-html")


@dataclasses.dataclass(frozen=True)
class IngressRule:
    description: str
    from_port: int
    to_port: int
    protocol: str = "tcp"

    @property
    def port_range(self) -> str:
        if self.from_port == self.to_port:
            return f"{self.from_port}/{self.protocol}"

        return f"{self.from_port}-{self.to_port}/{self.protocol}"


INGRESS_RULES = (
    IngressRule("ssh", 22, 22),
    IngressRule("http", 80, 80),
    IngressRule("https", 443, 443),
    IngressRule("k3s api server", 6443, 6443),
    IngressRule("flannel vxlan", 8472, 8472, protocol="udp"),
    IngressRule("kubelet metrics", 10250, 10250),
    IngressRule("nodeport services", 30000, 32767),
)

# hostnames served per environment, relative to the node domain
ENVIRONMENT_HOSTS: dict[Environments, tuple[str, ...]] = {
    Environments.prod: ("", "www"),
    Environments.staging: ("staging", "www.staging"),
    Environments.dev: ("dev", "www.dev"),
}


def namespace_name(environment: str, prefix: str = DEFAULT_NAMESPACE_PREFIX) -> str:
    return f"{prefix}-{environment}"


def environment_hostnames(domain: str) -> dict[str, Environments]:
    hostnames: dict[str, Environments] = {}
    for environment, hosts in ENVIRONMENT_HOSTS.items():
        for host in hosts:
            hostnames[f"{host}.{domain}" if host else domain] = environment

    return hostnames


class AWSCallerIdentity(typing.TypedDict):
    UserId: str
    Account: str
    Arn: str


def aws_whoami(exe_env: dict[str, str] | None = None) -> tuple[AWSCallerIdentity, bool]:
    session = boto3.Session(
        aws_access_key_id=exe_env.get("AWS_ACCESS_KEY_ID") if exe_env else None,
        aws_secret_access_key=exe_env.get("AWS_SECRET_ACCESS_KEY") if exe_env else None,
        aws_session_token=exe_env.get("AWS_SESSION_TOKEN") if exe_env else None,
        profile_name=exe_env.get("AWS_PROFILE") if exe_env else None,
    )
    sts_client = session.client("sts")

    try:
        response = sts_client.get_caller_identity()
    except Exception:
        return typing.cast(AWSCallerIdentity, {}), False
    else:
        return response, True
