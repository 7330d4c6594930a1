from typing import Optional

from aws_cdk import (
    CfnOutput,
    Duration,
    Stack,
    Tags,
)
from constructs import Construct

from redis_rotation_demo.config import DemoConfig, load_demo_config
from redis_rotation_demo.network import RedisDemoNetwork
from redis_rotation_demo.redis_rotator import (
    RedisRbacRotation,
    RedisSingleAuthRotation,
)


class RedisAuthRotationDemoStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: Optional[DemoConfig] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        if config is None:
            config = load_demo_config()
        rotation_schedule = Duration.days(config.rotation_days)

        self.network = RedisDemoNetwork(self, "Network")
        network = self.network
        elasticache_security_group_ids = [
            network.elasticache_security_group.security_group_id
        ]

        if config.deploy_single_auth:
            single_auth = RedisSingleAuthRotation(
                self,
                "SingleAuth",
                replication_group_id=config.replication_group_id,
                elasticache_subnet_group=network.subnet_group,
                elasticache_security_group_ids=elasticache_security_group_ids,
                rotator_function_security_groups=network.rotator_security_groups,
                rotation_schedule=rotation_schedule,
                rotator_vpc=network.vpc,
                engine_version=config.engine_version,
            )
            CfnOutput(
                self,
                "SingleAuthReplicationGroupId",
                value=single_auth.replication_group.ref,
            )
            CfnOutput(
                self,
                "SingleAuthSecretArn",
                value=single_auth.auth_secret.secret.secret_arn,
            )
            CfnOutput(
                self,
                "ConnectionTestFunctionName",
                value=single_auth.connection_test_function.function_name,
            )

        if config.deploy_rbac:
            redis_rbac = RedisRbacRotation(
                self,
                "RbacRotate",
                replication_group_id=config.rbac_replication_group_id,
                elasticache_subnet_group_name=network.subnet_group.ref,
                elasticache_security_group_ids=elasticache_security_group_ids,
                rotator_function_security_groups=network.rotator_security_groups,
                rotation_schedule=rotation_schedule,
                rotator_vpc=network.vpc,
                engine_version=config.engine_version,
            )
            redis_rbac.node.add_dependency(network.subnet_group)
            redis_rbac.node.add_dependency(network.elasticache_security_group)
            redis_rbac.node.add_dependency(network.vpc)

            CfnOutput(
                self,
                "RbacReplicationGroupId",
                value=redis_rbac.replication_group.ref,
            )
            for user in redis_rbac.users:
                CfnOutput(
                    self,
                    f"{user.node.id}SecretArn",
                    value=user.secret.secret_arn,
                )

        Tags.of(self).add("Project", "RedisSecretRotationDemo")
        Tags.of(self).add("Environment", "Demo")

        CfnOutput(self, "VpcId", value=network.vpc.vpc_id)
