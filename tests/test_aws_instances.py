from unittest.mock import MagicMock

import pytest

from k3snode.aws_instances import find_node_instance


def _session(*reservations):
    session = MagicMock()
    paginator = session.client.return_value.get_paginator.return_value
    paginator.paginate.return_value = [{"Reservations": list(reservations)}]
    return session


def _instance(instance_id, public_ip="203.0.113.10"):
    instance = {
        "InstanceId": instance_id,
        "State": {"Name": "running"},
        "PrivateIpAddress": "10.0.0.5",
    }
    if public_ip:
        instance["PublicIpAddress"] = public_ip
    return instance


def test_find_node_instance():
    session = _session({"Instances": [_instance("i-0abc")]})

    instance = find_node_instance("shop01-prod", "us-east-1", key_name="shop01-key", session=session)

    assert instance == {
        "InstanceId": "i-0abc",
        "State": "running",
        "PublicIpAddress": "203.0.113.10",
        "PrivateIpAddress": "10.0.0.5",
        "SshCommand": "ssh -i ~/.ssh/shop01-key.pem ubuntu@203.0.113.10",
    }
    session.client.assert_called_once_with("ec2", region_name="us-east-1")
    session.client.return_value.get_paginator.assert_called_once_with("describe_instances")

    filters = session.client.return_value.get_paginator.return_value.paginate.call_args.kwargs["Filters"]
    assert {"Name": "tag:Name", "Values": ["shop01-prod-k3s"]} in filters


def test_find_node_instance_without_public_ip():
    session = _session({"Instances": [_instance("i-0abc", public_ip=None)]})

    instance = find_node_instance("shop01-prod", "us-east-1", session=session)

    assert instance is not None
    assert instance["PublicIpAddress"] is None
    assert instance["SshCommand"] is None


def test_find_node_instance_missing():
    assert find_node_instance("shop01-prod", "us-east-1", session=_session()) is None


def test_find_node_instance_ambiguous():
    session = _session({"Instances": [_instance("i-0b")]}, {"Instances": [_instance("i-0a")]})

    with pytest.raises(ValueError, match="expected one instance for 'shop01-prod', found 2: i-0a, i-0b"):
        find_node_instance("shop01-prod", "us-east-1", session=session)
