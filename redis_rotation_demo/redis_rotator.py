from typing import Sequence

from aws_cdk import (
    ArnFormat,
    Duration,
    Stack,
    aws_ec2 as ec2,
    aws_elasticache as elasticache,
    aws_iam as iam,
    aws_lambda as lambda_,
)
from constructs import Construct

from redis_rotation_demo.assets import (
    EXCLUDE_CHARACTERS,
    FUNCTION_RUNTIME,
    asset_path,
    lambda_role,
    redis_py_layer,
    secrets_manager_endpoint,
)
from redis_rotation_demo.redis_rbac_user import RedisRbacUser, RotatorOptions
from redis_rotation_demo.redis_secret import RedisAuthSecret

TEST_USER_ACCESS_STRING = "on ~* -@all +SET"
USER_GROUP_ID = "rotation-test-group"


def _replication_group(
    scope: Construct,
    construct_id: str,
    description: str,
    replication_group_id: str,
    cache_node_type: str,
    cache_subnet_group_name: str,
    security_group_ids: Sequence[str],
    engine_version: str,
    **kwargs,
) -> elasticache.CfnReplicationGroup:
    # One shard with one replica, encrypted at rest and in transit
    return elasticache.CfnReplicationGroup(
        scope,
        construct_id,
        replication_group_description=description,
        replication_group_id=replication_group_id,
        at_rest_encryption_enabled=True,
        transit_encryption_enabled=True,
        multi_az_enabled=True,
        automatic_failover_enabled=True,
        cache_node_type=cache_node_type,
        cache_subnet_group_name=cache_subnet_group_name,
        engine="redis",
        engine_version=engine_version,
        num_node_groups=1,
        replicas_per_node_group=1,
        security_group_ids=list(security_group_ids),
        **kwargs,
    )


class RedisRbacRotation(Construct):
    """Replication group secured by RBAC users with per-user rotation."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        replication_group_id: str,
        elasticache_subnet_group_name: str,
        elasticache_security_group_ids: Sequence[str],
        rotator_function_security_groups: Sequence[ec2.ISecurityGroup],
        rotation_schedule: Duration,
        rotator_vpc: ec2.IVpc,
        engine_version: str = "6.x",
    ) -> None:
        super().__init__(scope, construct_id)

        self.redis_py_layer = redis_py_layer(self, "redispy_Layer")
        rotator = RotatorOptions(
            layers=[self.redis_py_layer],
            vpc=rotator_vpc,
            security_groups=rotator_function_security_groups,
            rotation_schedule=rotation_schedule,
        )

        self.test_user_role = lambda_role(
            self, "rotationtestuserRole", "Role to be assumed by producer lambda"
        )

        test_user = RedisRbacUser(
            self,
            "TestUser",
            redis_user_name="rotator-demo/rotationtestuser",
            redis_user_id="rotationtestuser",
            access_string=TEST_USER_ACCESS_STRING,
            principals=[self.test_user_role],
            rotator=rotator,
        )
        another_user = RedisRbacUser(
            self,
            "AnotherUser",
            redis_user_name="rotator-demo/anothertestuser",
            redis_user_id="anotherrotationtestuser",
            access_string=TEST_USER_ACCESS_STRING,
            principals=[self.test_user_role],
            rotator=rotator,
        )
        # Every user group needs a user named "default"
        default_user = RedisRbacUser(
            self,
            "groupDefaultUser",
            redis_user_name="default",
            redis_user_id="rotatordemodefaultuser",
        )
        self.users = [test_user, another_user, default_user]

        self.user_group = elasticache.CfnUserGroup(
            self,
            "rotationTestUserGroup",
            engine="redis",
            user_group_id=USER_GROUP_ID,
            user_ids=[user.user_id for user in self.users],
        )
        for user in self.users:
            self.user_group.node.add_dependency(user.user)

        self.replication_group = _replication_group(
            self,
            "RBACRotator-Demo",
            description="RBACRotator-Demo",
            replication_group_id=replication_group_id,
            cache_node_type="cache.m6g.large",
            cache_subnet_group_name=elasticache_subnet_group_name,
            security_group_ids=elasticache_security_group_ids,
            engine_version=engine_version,
            user_group_ids=[self.user_group.user_group_id],
        )
        self.replication_group.node.add_dependency(self.user_group)


class RedisSingleAuthRotation(Construct):
    """Replication group secured by one AUTH token rotated from Secrets Manager."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        replication_group_id: str,
        elasticache_subnet_group: elasticache.CfnSubnetGroup,
        elasticache_security_group_ids: Sequence[str],
        rotator_function_security_groups: Sequence[ec2.ISecurityGroup],
        rotation_schedule: Duration,
        rotator_vpc: ec2.IVpc,
        engine_version: str = "6.x",
    ) -> None:
        super().__init__(scope, construct_id)

        stack = Stack.of(self)
        private_subnets = ec2.SubnetSelection(
            subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
        )

        self.auth_secret = RedisAuthSecret(
            self,
            "RedisAuth",
            cluster_id=replication_group_id,
            secret_key="authToken",
            template_key="replicationGroupId",
        )

        self.replication_group = _replication_group(
            self,
            "RedisReplicationGroup",
            description="RedisReplicationGroup-SingleAuth-Demo",
            replication_group_id=replication_group_id,
            cache_node_type="cache.m4.large",
            cache_subnet_group_name=elasticache_subnet_group.ref,
            security_group_ids=elasticache_security_group_ids,
            engine_version=engine_version,
            auth_token=self.auth_secret.password_value(),
        )

        rotator_role = lambda_role(
            self, "rotatorRole", "Role to be assumed by the AUTH token rotator lambda"
        )
        self.auth_secret.grant_rotate_secret(rotator_role)
        # ElastiCache lowercases replication group ids
        rotator_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "elasticache:DescribeReplicationGroups",
                    "elasticache:ModifyReplicationGroup",
                ],
                resources=[
                    stack.format_arn(
                        service="elasticache",
                        resource="replicationgroup",
                        resource_name=replication_group_id.lower(),
                        arn_format=ArnFormat.COLON_RESOURCE_NAME,
                    )
                ],
            )
        )
        rotator_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["secretsmanager:GetRandomPassword"],
                resources=["*"],
            )
        )

        self.redis_py_layer = redis_py_layer(self, "redispy_Layer")

        redis_environment = {
            "replicationGroupId": self.replication_group.ref,
            "redis_endpoint": self.replication_group.attr_primary_end_point_address,
            "redis_port": self.replication_group.attr_primary_end_point_port,
        }

        self.rotator_function = lambda_.Function(
            self,
            "function",
            runtime=FUNCTION_RUNTIME,
            handler="single_auth.lambda_handler",
            code=lambda_.Code.from_asset(asset_path("rotator")),
            layers=[self.redis_py_layer],
            role=rotator_role,
            timeout=Duration.seconds(300),
            vpc=rotator_vpc,
            vpc_subnets=private_subnets,
            security_groups=list(rotator_function_security_groups),
            environment={
                **redis_environment,
                "EXCLUDE_CHARACTERS": EXCLUDE_CHARACTERS,
                "SECRETS_MANAGER_ENDPOINT": secrets_manager_endpoint(self),
            },
        )
        self.rotator_function.grant_invoke(
            iam.ServicePrincipal("secretsmanager.amazonaws.com")
        )

        self.auth_secret.secret.add_rotation_schedule(
            "RotationSchedule",
            rotation_lambda=self.rotator_function,
            automatically_after=rotation_schedule,
        )

        tester_role = lambda_role(
            self, "testerRole", "Role to be assumed by the connection test lambda"
        )
        self.auth_secret.grant_read_secret(tester_role)

        self.connection_test_function = lambda_.Function(
            self,
            "connectionTestFunction",
            runtime=FUNCTION_RUNTIME,
            handler="lambda_tester.lambda_handler_single_auth",
            code=lambda_.Code.from_asset(asset_path("tester")),
            layers=[self.redis_py_layer],
            role=tester_role,
            timeout=Duration.seconds(30),
            vpc=rotator_vpc,
            vpc_subnets=private_subnets,
            security_groups=list(rotator_function_security_groups),
            environment={
                **redis_environment,
                "secret_arn": self.auth_secret.secret.secret_arn,
            },
        )
