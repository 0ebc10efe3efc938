import dataclasses

import pulumi

import k3snode.bootstrap
from k3snode.pulumi_resources.k3s_node import K3sNodeInstance, ingress_args


def _resource_ids(node: K3sNodeInstance) -> list[pulumi.Output]:
    return [node.sg.id, node.instance.id, node.eip.id, *[record.id for record in node.records.values()]]


def test_ingress_args_restricts_only_ssh() -> None:
    rules = ingress_args("198.51.100.0/24")

    assert len(rules) == 7
    by_port = {rule.from_port: rule for rule in rules}
    assert by_port[22].cidr_blocks == ["198.51.100.0/24"]
    assert by_port[443].cidr_blocks == ["0.0.0.0/0"]
    assert by_port[8472].protocol == "udp"
    assert by_port[30000].to_port == 32767


@pulumi.runtime.test
def test_k3s_node_resources(pulumi_mocks, k3s_node):
    node = K3sNodeInstance(node=k3s_node)

    def check(_):
        assert len(pulumi_mocks.of_type("aws:ec2/securityGroup:SecurityGroup")) == 1
        assert len(pulumi_mocks.of_type("aws:ec2/instance:Instance")) == 1
        assert len(pulumi_mocks.of_type("aws:ec2/eip:Eip")) == 1
        assert len(pulumi_mocks.of_type("aws:route53/record:Record")) == 6
        assert not [c for c in pulumi_mocks.calls if c.token == "aws:route53/getZone:getZone"]

    return pulumi.Output.all(*_resource_ids(node)).apply(check)


@pulumi.runtime.test
def test_k3s_node_dns_records(pulumi_mocks, k3s_node):
    node = K3sNodeInstance(node=k3s_node)

    assert sorted(node.records) == [
        "dev.shop.example.com",
        "shop.example.com",
        "staging.shop.example.com",
        "www.dev.shop.example.com",
        "www.shop.example.com",
        "www.staging.shop.example.com",
    ]

    def check(args):
        dns_records, records, zone_id, ttl, record_type = args
        assert set(dns_records.values()) == {"203.0.113.10"}
        assert records == ["203.0.113.10"]
        assert zone_id == "Z0FIXTURE"
        assert ttl == 300
        assert record_type == "A"

    record = node.records["www.staging.shop.example.com"]
    return pulumi.Output.all(
        node.dns_records,
        record.records,
        record.zone_id,
        record.ttl,
        record.type,
    ).apply(check)


@pulumi.runtime.test
def test_k3s_node_looks_up_zone(pulumi_mocks, k3s_node):
    k3s_node.cfg = dataclasses.replace(k3s_node.cfg, hosted_zone_id=None)
    node = K3sNodeInstance(node=k3s_node)

    def check(zone_id):
        assert zone_id == "Z0LOOKEDUP"
        lookups = [c for c in pulumi_mocks.calls if c.token == "aws:route53/getZone:getZone"]
        assert len(lookups) == 1
        assert lookups[0].args["name"] == "shop.example.com"

    return node.records["shop.example.com"].zone_id.apply(check)


@pulumi.runtime.test
def test_k3s_node_instance(pulumi_mocks, k3s_node):
    node = K3sNodeInstance(node=k3s_node)

    assert node.user_data == k3snode.bootstrap.render_user_data(k3s_node.cfg)

    def check(args):
        ami, instance_type, key_name, user_data, tags = args
        assert ami == "ami-0123456789abcdef0"
        assert instance_type == "t3.large"
        assert key_name == "shop01-key"
        assert user_data == node.user_data
        assert tags["Name"] == "shop01-prod-k3s"
        assert tags["team"] == "web"
        assert tags["k3snode/environment"] == "prod"
        assert tags["k3snode/true-name"] == "shop01"
        assert len(tags["k3snode/bootstrap-signature"]) == 64

    return pulumi.Output.all(
        node.instance.ami,
        node.instance.instance_type,
        node.instance.key_name,
        node.instance.user_data,
        node.instance.tags,
    ).apply(check)


@pulumi.runtime.test
def test_k3s_node_ssh_command(pulumi_mocks, k3s_node):
    node = K3sNodeInstance(node=k3s_node)

    def check(command):
        assert command == "ssh -i ~/.ssh/shop01-key.pem ubuntu@203.0.113.10"

    return node.ssh_command.apply(check)


@pulumi.runtime.test
def test_k3s_node_pins_region(pulumi_mocks, k3s_node):
    k3s_node.cfg = dataclasses.replace(k3s_node.cfg, region="eu-west-1", hosted_zone_id=None)
    node = K3sNodeInstance(node=k3s_node)

    def check(_):
        providers = pulumi_mocks.of_type("pulumi:providers:aws")
        assert len(providers) == 1
        assert providers[0].inputs["region"] == "eu-west-1"

        for typ in (
            "aws:ec2/securityGroup:SecurityGroup",
            "aws:ec2/instance:Instance",
            "aws:ec2/eip:Eip",
            "aws:route53/record:Record",
        ):
            for resource in pulumi_mocks.of_type(typ):
                assert "shop01-prod-aws" in resource.provider

        lookups = [c for c in pulumi_mocks.calls if c.token.startswith("aws:")]
        assert {c.token for c in lookups} == {"aws:ec2/getAmi:getAmi", "aws:route53/getZone:getZone"}
        for call in lookups:
            assert "shop01-prod-aws" in call.provider

    return pulumi.Output.all(node.provider.id, *_resource_ids(node)).apply(check)
