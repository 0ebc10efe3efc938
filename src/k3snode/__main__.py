"""Pulumi program for a k3snode stack.

The stack name is the node directory name (``<true_name>-<environment>``).
``k3snode:layer`` selects what the stack declares: ``node`` (default) for the
AWS instance, Elastic IP, security group and DNS records, ``volumes`` for the
cluster-side namespaces, StorageClass and PersistentVolumes.
"""

import pulumi

import k3snode
from k3snode.pulumi_resources.k3s_node import K3sNodeInstance
from k3snode.pulumi_resources.k3s_volumes import K3sVolumes


def main() -> None:
    layer = pulumi.Config("k3snode").get("layer") or str(k3snode.Layers.NODE)

    if layer not in {str(name) for name in k3snode.Layers}:
        msg = f"unsupported layer {layer!r}, expected one of {', '.join(k3snode.Layers)}"
        raise ValueError(msg)

    if layer == k3snode.Layers.VOLUMES:
        volumes = K3sVolumes.autoload()
        pulumi.export("namespaces", sorted(volumes.namespaces))
        pulumi.export("persistent_volumes", sorted(volumes.persistent_volumes))
        return

    node = K3sNodeInstance.autoload()
    pulumi.export("instance_id", node.instance.id)
    pulumi.export("instance_ip", node.eip.public_ip)
    pulumi.export("ssh_command", node.ssh_command)
    pulumi.export("dns_records", node.dns_records)


main()
