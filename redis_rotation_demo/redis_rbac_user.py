from dataclasses import dataclass
from typing import Optional, Sequence

from aws_cdk import (
    Duration,
    aws_ec2 as ec2,
    aws_elasticache as elasticache,
    aws_iam as iam,
    aws_kms as kms,
    aws_lambda as lambda_,
)
from constructs import Construct

from redis_rotation_demo.assets import (
    EXCLUDE_CHARACTERS,
    FUNCTION_RUNTIME,
    asset_path,
    lambda_role,
    secrets_manager_endpoint,
)
from redis_rotation_demo.redis_secret import SecretAccessGrants, generated_secret

DEFAULT_ACCESS_STRING = "off +get ~keys*"


@dataclass
class RotatorOptions:
    """Everything a user's rotator function needs.

    Rotation is provisioned only when all of the fields are set and the
    layer and security group lists are non-empty.
    """

    layers: Optional[Sequence[lambda_.ILayerVersion]] = None
    vpc: Optional[ec2.IVpc] = None
    security_groups: Optional[Sequence[ec2.ISecurityGroup]] = None
    rotation_schedule: Optional[Duration] = None

    @property
    def enabled(self) -> bool:
        return (
            bool(self.layers)
            and bool(self.security_groups)
            and self.vpc is not None
            and self.rotation_schedule is not None
        )


class RedisRbacUser(Construct):
    """An ElastiCache RBAC user whose password lives in Secrets Manager."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        redis_user_name: str,
        redis_user_id: str,
        access_string: Optional[str] = None,
        kms_key: Optional[kms.IKey] = None,
        principals: Optional[Sequence[iam.IPrincipal]] = None,
        rotator: Optional[RotatorOptions] = None,
    ) -> None:
        super().__init__(scope, construct_id)

        self.user_name = redis_user_name
        self.user_id = redis_user_id
        self.rotator_function: Optional[lambda_.Function] = None

        if kms_key is None:
            kms_key = kms.Key(
                self,
                "kmsForSecret",
                alias=redis_user_name,
                enable_key_rotation=True,
            )
        self.kms_key = kms_key

        self.secret = generated_secret(
            self,
            "secret",
            template={"username": redis_user_name},
            secret_key="password",
            kms_key=self.kms_key,
        )
        self.grants = SecretAccessGrants(self.secret, self.kms_key)

        self.user = elasticache.CfnUser(
            self,
            "redisuser",
            engine="redis",
            user_name=redis_user_name,
            user_id=redis_user_id,
            access_string=access_string or DEFAULT_ACCESS_STRING,
            passwords=[
                self.secret.secret_value_from_json("password").unsafe_unwrap()
            ],
        )
        self.user.node.add_dependency(self.secret.node.default_child)

        for principal in principals or []:
            self.grant_read_secret(principal)

        if rotator is not None and rotator.enabled:
            self.rotator_function = self._add_rotation(rotator)

    def grant_read_secret(self, principal: iam.IPrincipal) -> None:
        self.grants.grant_read(principal)

    def _add_rotation(self, rotator: RotatorOptions) -> lambda_.Function:
        rotator_role = lambda_role(
            self, "rotatorRole", "Role to be assumed by the RBAC user rotator lambda"
        )
        self.grants.grant_rotate(rotator_role)
        rotator_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["secretsmanager:GetRandomPassword"],
                resources=["*"],
            )
        )
        rotator_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "elasticache:DescribeUsers",
                    "elasticache:ModifyUser",
                ],
                resources=[self.user.attr_arn],
            )
        )

        rotator_function = lambda_.Function(
            self,
            "RotatorFunction",
            runtime=FUNCTION_RUNTIME,
            handler="rbac_user.lambda_handler",
            code=lambda_.Code.from_asset(asset_path("rotator")),
            layers=list(rotator.layers),
            role=rotator_role,
            vpc=rotator.vpc,
            vpc_subnets=ec2.SubnetSelection(
                subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS
            ),
            security_groups=list(rotator.security_groups),
            timeout=Duration.seconds(300),
            environment={
                "secret_arn": self.secret.secret_arn,
                "user_id": self.user_id,
                "EXCLUDE_CHARACTERS": EXCLUDE_CHARACTERS,
                "SECRETS_MANAGER_ENDPOINT": secrets_manager_endpoint(self),
            },
        )
        rotator_function.grant_invoke(
            iam.ServicePrincipal("secretsmanager.amazonaws.com")
        )

        self.secret.add_rotation_schedule(
            "RotationSchedule",
            rotation_lambda=rotator_function,
            automatically_after=rotator.rotation_schedule,
        )
        return rotator_function
