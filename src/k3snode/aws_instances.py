from __future__ import annotations

import typing

import boto3

from k3snode.pulumi_resources.lib import ssh_command

LIVE_INSTANCE_STATES = ("pending", "running", "stopping", "stopped")


class NodeInstance(typing.TypedDict):
    InstanceId: str
    State: str
    PublicIpAddress: str | None
    PrivateIpAddress: str | None
    SshCommand: str | None


def find_node_instance(
    compound_name: str,
    region: str,
    key_name: str | None = None,
    user: str = "ubuntu",
    session: boto3.Session | None = None,
) -> NodeInstance | None:
    """Look up the EC2 instance provisioned for a node by its Name tag.

    Terminated instances are ignored. Returns None when no live instance
    carries the tag; more than one match raises ValueError since a node is
    exactly one instance.
    """
    session = session or boto3.Session()
    ec2 = session.client("ec2", region_name=region)

    paginator = ec2.get_paginator("describe_instances")
    pages = paginator.paginate(
        Filters=[
            {"Name": "tag:Name", "Values": [f"{compound_name}-k3s"]},
            {"Name": "instance-state-name", "Values": list(LIVE_INSTANCE_STATES)},
        ]
    )

    instances = [
        instance for page in pages for reservation in page["Reservations"] for instance in reservation["Instances"]
    ]

    if not instances:
        return None

    if len(instances) > 1:
        ids = sorted(instance["InstanceId"] for instance in instances)
        msg = f"expected one instance for {compound_name!r}, found {len(ids)}: {', '.join(ids)}"
        raise ValueError(msg)

    instance = instances[0]
    public_ip = instance.get("PublicIpAddress")

    return {
        "InstanceId": instance["InstanceId"],
        "State": instance["State"]["Name"],
        "PublicIpAddress": public_ip,
        "PrivateIpAddress": instance.get("PrivateIpAddress"),
        "SshCommand": ssh_command(public_ip, key_name, user) if public_ip else None,
    }
