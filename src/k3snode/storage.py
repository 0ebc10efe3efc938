"""Namespace, StorageClass and local PersistentVolume manifests.

Every environment gets exactly one PersistentVolume per volume kind, backed by
``<data_root>/<environment>/<kind>`` and pinned to a single node hostname. The
manifests are plain dicts so they can be dumped into the bootstrap script for
``kubectl apply -f -`` or mapped onto ``pulumi_kubernetes`` resources.
"""

from __future__ import annotations

import typing

import yaml

import k3snode

if typing.TYPE_CHECKING:
    import k3snode.node

Manifest = dict[str, typing.Any]


def data_directory(environment: str, directory: str, data_root: str = k3snode.DATA_ROOT) -> str:
    return f"{data_root}/{environment}/{directory}"


def data_directories(data_root: str = k3snode.DATA_ROOT) -> list[str]:
    return [
        data_directory(environment, directory, data_root)
        for environment in k3snode.Environments
        for directory in k3snode.DATA_DIRECTORIES
    ]


def persistent_volume_name(kind: str, environment: str) -> str:
    return f"{kind}-pv-{environment}"


def namespace_manifest(name: str) -> Manifest:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": name},
    }


def storage_class_manifest(name: str = k3snode.LOCAL_STORAGE_CLASS) -> Manifest:
    return {
        "apiVersion": "storage.k8s.io/v1",
        "kind": "StorageClass",
        "metadata": {"name": name},
        "provisioner": k3snode.NO_PROVISIONER,
        "volumeBindingMode": "WaitForFirstConsumer",
        "allowVolumeExpansion": True,
    }


def node_affinity(hostname: str) -> Manifest:
    return {
        "required": {
            "nodeSelectorTerms": [
                {
                    "matchExpressions": [
                        {
                            "key": k3snode.HOSTNAME_LABEL,
                            "operator": "In",
                            "values": [hostname],
                        }
                    ]
                }
            ]
        }
    }


def persistent_volume_manifest(
    kind: k3snode.VolumeKind,
    environment: str,
    hostname: str,
    data_root: str = k3snode.DATA_ROOT,
    storage_class: str = k3snode.LOCAL_STORAGE_CLASS,
) -> Manifest:
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolume",
        "metadata": {"name": persistent_volume_name(kind.name, environment)},
        "spec": {
            "capacity": {"storage": kind.capacity},
            "accessModes": ["ReadWriteOnce"],
            "persistentVolumeReclaimPolicy": "Retain",
            "storageClassName": storage_class,
            "local": {"path": data_directory(environment, kind.name, data_root)},
            "nodeAffinity": node_affinity(hostname),
        },
    }


def persistent_volume_manifests(
    hostname: str,
    kinds: typing.Sequence[k3snode.VolumeKind] = k3snode.VOLUME_KINDS,
    data_root: str = k3snode.DATA_ROOT,
) -> list[Manifest]:
    return [
        persistent_volume_manifest(kind, environment, hostname, data_root)
        for environment in k3snode.Environments
        for kind in kinds
    ]


def cluster_manifests(cfg: k3snode.node.K3sNodeConfig, hostname: str) -> list[Manifest]:
    """All cluster objects the bootstrap declares, in apply order."""
    return [
        *[namespace_manifest(cfg.namespace(environment)) for environment in k3snode.Environments],
        storage_class_manifest(),
        *persistent_volume_manifests(hostname, cfg.volume_kinds, cfg.data_root),
    ]


def dump(manifest: Manifest) -> str:
    return yaml.safe_dump(manifest, sort_keys=False, default_flow_style=False)


def dump_all(manifests: typing.Iterable[Manifest]) -> str:
    return yaml.safe_dump_all(manifests, sort_keys=False, default_flow_style=False)
