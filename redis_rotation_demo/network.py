from aws_cdk import (
    aws_ec2 as ec2,
    aws_elasticache as elasticache,
)
from constructs import Construct

REDIS_PORT = 6379


class RedisDemoNetwork(Construct):
    """VPC, security groups and cache subnet group shared by both demos."""

    def __init__(self, scope: Construct, construct_id: str) -> None:
        super().__init__(scope, construct_id)

        # Private subnets route out through NAT so the rotators can reach
        # the ElastiCache management API
        self.vpc = ec2.Vpc(
            self,
            "elasticache-demo-vpc",
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="Private",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=24,
                ),
                ec2.SubnetConfiguration(
                    name="Public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24,
                ),
            ],
        )

        self.secrets_manager_endpoint = ec2.InterfaceVpcEndpoint(
            self,
            "SecretsManagerEndpoint",
            vpc=self.vpc,
            service=ec2.InterfaceVpcEndpointAwsService.SECRETS_MANAGER,
            subnets=ec2.SubnetSelection(
                subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
            ),
            private_dns_enabled=True,
        )

        self.elasticache_security_group = ec2.SecurityGroup(
            self,
            "ElastiCacheSG",
            vpc=self.vpc,
            description="SecurityGroup associated with the ElastiCache Redis Cluster",
        )
        self.elasticache_security_group.add_ingress_rule(
            peer=ec2.Peer.any_ipv4(),
            connection=ec2.Port.tcp(REDIS_PORT),
            description=f"Redis ingress {REDIS_PORT}",
        )

        self.rotator_security_group = ec2.SecurityGroup(
            self,
            "RotatorSG",
            vpc=self.vpc,
            description="SecurityGroup for rotator function",
        )
        self.rotator_security_group.add_ingress_rule(
            peer=ec2.Peer.any_ipv4(),
            connection=ec2.Port.all_traffic(),
            description="All port inbound",
        )

        self.subnet_group = elasticache.CfnSubnetGroup(
            self,
            "ElastiCacheSubnetGroup",
            description="Elasticache Subnet Group",
            subnet_ids=[subnet.subnet_id for subnet in self.vpc.private_subnets],
        )

    @property
    def rotator_security_groups(self) -> list:
        """Security groups attached to every rotator and tester function."""
        return [self.elasticache_security_group, self.rotator_security_group]
