import pulumi
import pulumi_aws as aws

import k3snode
import k3snode.bootstrap
import k3snode.junkdrawer
import k3snode.node
from k3snode.pulumi_resources.lib import ssh_command


def ingress_args(ssh_cidr: str) -> list[aws.ec2.SecurityGroupIngressArgs]:
    return [
        aws.ec2.SecurityGroupIngressArgs(
            description=rule.description,
            from_port=rule.from_port,
            to_port=rule.to_port,
            protocol=rule.protocol,
            cidr_blocks=[ssh_cidr if rule.from_port == 22 else "0.0.0.0/0"],  # noqa: PLR2004
        )
        for rule in k3snode.INGRESS_RULES
    ]


class K3sNodeInstance(pulumi.ComponentResource):
    node: k3snode.node.K3sNode
    name: str
    tags: dict[str, str]
    user_data: str

    provider: aws.Provider
    sg: aws.ec2.SecurityGroup
    instance: aws.ec2.Instance
    eip: aws.ec2.Eip
    records: dict[str, aws.route53.Record]

    dns_records: pulumi.Output[dict[str, str]]
    ssh_command: pulumi.Output[str]

    @classmethod
    def autoload(cls) -> "K3sNodeInstance":
        return cls(node=k3snode.node.K3sNode(pulumi.get_stack()))

    def __init__(
        self,
        node: k3snode.node.K3sNode,
        *args,
        **kwargs,
    ):
        super().__init__(
            f"k3snode:{self.__class__.__name__}",
            node.compound_name,
            *args,
            **kwargs,
        )

        self.node = node
        self.name = node.compound_name
        self.user_data = k3snode.bootstrap.render_user_data(node.cfg)
        self.tags = node.required_tags | {
            str(k3snode.TagKeys.K3SNODE_MANAGED_BY): __name__,
        }

        self._define_provider()
        self._define_security_group()
        self._define_instance()
        self._define_eip()
        self._define_dns_records()

        self.ssh_command = self.eip.public_ip.apply(
            lambda ip: ssh_command(ip, self.node.cfg.key_name, self.node.cfg.node_user)
        )

        self.register_outputs(
            {
                "instance_id": self.instance.id,
                "instance_ip": self.eip.public_ip,
                "ssh_command": self.ssh_command,
                "dns_records": self.dns_records,
            }
        )

    def _define_provider(self):
        self.provider = aws.Provider(
            f"{self.name}-aws",
            region=self.node.cfg.region,
            opts=pulumi.ResourceOptions(parent=self),
        )

    def _opts(self, **kwargs) -> pulumi.ResourceOptions:
        return pulumi.ResourceOptions(provider=self.provider, **kwargs)

    def _define_security_group(self):
        self.sg = aws.ec2.SecurityGroup(
            f"{self.name}-k3s",
            description=f"K3s node {self.name}",
            ingress=ingress_args(self.node.cfg.ssh_cidr),
            egress=[
                aws.ec2.SecurityGroupEgressArgs(
                    from_port=0,
                    to_port=0,
                    protocol="-1",
                    cidr_blocks=["0.0.0.0/0"],
                )
            ],
            tags=self.tags | {"Name": f"{self.name}-k3s"},
            opts=self._opts(parent=self),
        )

    def _define_instance(self):
        ami = aws.ec2.get_ami(
            most_recent=True,
            owners=[k3snode.CANONICAL_ACCOUNT_ID],
            filters=[
                aws.ec2.GetAmiFilterArgs(
                    name="name",
                    values=[k3snode.UBUNTU_AMI_NAME],
                ),
                aws.ec2.GetAmiFilterArgs(
                    name="virtualization-type",
                    values=["hvm"],
                ),
            ],
            opts=pulumi.InvokeOptions(provider=self.provider),
        )

        self.instance = aws.ec2.Instance(
            f"{self.name}-k3s",
            aws.ec2.InstanceArgs(
                ami=ami.id,
                instance_type=self.node.cfg.instance_type,
                key_name=self.node.cfg.key_name,
                vpc_security_group_ids=[self.sg.id],
                user_data=self.user_data,
                root_block_device=aws.ec2.InstanceRootBlockDeviceArgs(
                    volume_size=self.node.cfg.root_volume_size,
                    volume_type=self.node.cfg.root_volume_type,
                    encrypted=True,
                ),
                tags=self.tags
                | {
                    "Name": f"{self.name}-k3s",
                    str(k3snode.TagKeys.K3SNODE_BOOTSTRAP_SIGNATURE): k3snode.junkdrawer.text_signature(
                        self.user_data
                    ),
                },
            ),
            opts=self._opts(parent=self),
        )

    def _define_eip(self):
        self.eip = aws.ec2.Eip(
            f"{self.name}-k3s",
            aws.ec2.EipArgs(
                domain="vpc",
                instance=self.instance.id,
                tags=self.tags | {"Name": f"{self.name}-k3s"},
            ),
            opts=self._opts(parent=self.instance),
        )

    def _zone_id(self) -> str:
        if self.node.cfg.hosted_zone_id:
            return self.node.cfg.hosted_zone_id

        pulumi.log.info(f"hosted_zone_id not set, looking up Route53 zone for {self.node.cfg.domain}")
        return aws.route53.get_zone(
            name=self.node.cfg.domain,
            opts=pulumi.InvokeOptions(provider=self.provider),
        ).zone_id

    def _define_dns_records(self):
        zone_id = self._zone_id()
        self.records = {}

        for hostname in k3snode.environment_hostnames(self.node.cfg.domain):
            self.records[hostname] = aws.route53.Record(
                f"{self.name}-{hostname}-A",
                args=aws.route53.RecordArgs(
                    zone_id=zone_id,
                    name=hostname,
                    type="A",
                    ttl=300,
                    records=[self.eip.public_ip],
                ),
                opts=self._opts(parent=self),
            )

        hostnames = list(self.records)
        self.dns_records = self.eip.public_ip.apply(lambda ip: {hostname: ip for hostname in hostnames})
