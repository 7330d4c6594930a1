import json
from typing import Optional, Sequence

from aws_cdk import (
    aws_iam as iam,
    aws_kms as kms,
    aws_secretsmanager as sm,
)
from constructs import Construct

from redis_rotation_demo.assets import EXCLUDE_CHARACTERS

READ_ACTIONS = [
    "secretsmanager:DescribeSecret",
    "secretsmanager:GetSecretValue",
]

ROTATE_ACTIONS = READ_ACTIONS + [
    "secretsmanager:PutSecretValue",
    "secretsmanager:UpdateSecretVersionStage",
]


class SecretAccessGrants:
    """Grants read or rotate access on an encrypted secret.

    Each access level owns a single statement on the secret's resource
    policy; the first grant creates it and later grants append their
    principal to it. Identity policies and the KMS key are granted too.
    """

    def __init__(self, secret: sm.Secret, kms_key: kms.IKey) -> None:
        self.secret = secret
        self.kms_key = kms_key
        self.read_statement: Optional[iam.PolicyStatement] = None
        self.rotate_statement: Optional[iam.PolicyStatement] = None

    def _statement(self, actions, principal) -> iam.PolicyStatement:
        statement = iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=actions,
            resources=[self.secret.secret_arn],
            principals=[principal],
        )
        self.secret.add_to_resource_policy(statement)
        return statement

    def grant_read(self, principal: iam.IPrincipal) -> None:
        if self.read_statement is None:
            self.read_statement = self._statement(READ_ACTIONS, principal)
        else:
            self.read_statement.add_principals(principal)
        self.kms_key.grant_decrypt(principal)
        self.secret.grant_read(principal)

    def grant_rotate(self, principal: iam.IPrincipal) -> None:
        if self.rotate_statement is None:
            self.rotate_statement = self._statement(ROTATE_ACTIONS, principal)
        else:
            self.rotate_statement.add_principals(principal)
        self.kms_key.grant_encrypt_decrypt(principal)
        self.secret.grant_read(principal)
        self.secret.grant_write(principal)


def generated_secret(
    scope: Construct,
    construct_id: str,
    template: dict,
    secret_key: str,
    kms_key: kms.IKey,
    exclude_characters: Optional[str] = None,
) -> sm.Secret:
    return sm.Secret(
        scope,
        construct_id,
        generate_secret_string=sm.SecretStringGenerator(
            secret_string_template=json.dumps(template),
            generate_string_key=secret_key,
            exclude_characters=exclude_characters or EXCLUDE_CHARACTERS,
        ),
        encryption_key=kms_key,
    )


class RedisAuthSecret(Construct):
    """A KMS-encrypted secret holding the password of a Redis cluster.

    The generated value is a JSON document carrying the cluster id under
    ``template_key`` and the password under ``secret_key``. A key is created
    when none is supplied.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        cluster_id: str,
        kms_key: Optional[kms.IKey] = None,
        exclude_characters: Optional[str] = None,
        principals: Optional[Sequence[iam.IPrincipal]] = None,
        secret_key: str = "password",
        template_key: str = "clusterId",
    ) -> None:
        super().__init__(scope, construct_id)

        if kms_key is None:
            kms_key = kms.Key(
                self,
                "kmsForSecret",
                alias=f"redisSecret/{cluster_id}",
                enable_key_rotation=True,
            )
        self.kms_key = kms_key
        self.secret_key = secret_key

        self.secret = generated_secret(
            self,
            "secret",
            template={template_key: cluster_id},
            secret_key=secret_key,
            kms_key=self.kms_key,
            exclude_characters=exclude_characters,
        )
        self.grants = SecretAccessGrants(self.secret, self.kms_key)

        for principal in principals or []:
            self.grant_read_secret(principal)

    def password_value(self) -> str:
        """CloudFormation dynamic reference to the generated password."""
        return self.secret.secret_value_from_json(self.secret_key).unsafe_unwrap()

    def grant_read_secret(self, principal: iam.IPrincipal) -> None:
        self.grants.grant_read(principal)

    def grant_rotate_secret(self, principal: iam.IPrincipal) -> None:
        self.grants.grant_rotate(principal)
