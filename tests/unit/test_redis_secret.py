import aws_cdk.assertions as assertions
from aws_cdk import aws_iam as iam, aws_kms as kms
from aws_cdk.assertions import Match

from redis_rotation_demo.assets import EXCLUDE_CHARACTERS
from redis_rotation_demo.redis_secret import RedisAuthSecret


def lambda_role(stack, construct_id):
    return iam.Role(
        stack, construct_id, assumed_by=iam.ServicePrincipal("lambda.amazonaws.com")
    )


def resource_policy_statements(template):
    (policy,) = template.find_resources("AWS::SecretsManager::ResourcePolicy").values()
    return policy["Properties"]["ResourcePolicy"]["Statement"]


def test_creates_key_when_none_supplied(stack):
    RedisAuthSecret(stack, "Auth", cluster_id="demoCluster")
    template = assertions.Template.from_stack(stack)

    template.resource_count_is("AWS::KMS::Key", 1)
    template.has_resource_properties("AWS::KMS::Key", {"EnableKeyRotation": True})
    template.has_resource_properties(
        "AWS::KMS::Alias", {"AliasName": "alias/redisSecret/demoCluster"}
    )
    template.has_resource_properties(
        "AWS::SecretsManager::Secret",
        {
            "GenerateSecretString": {
                "SecretStringTemplate": '{"clusterId": "demoCluster"}',
                "GenerateStringKey": "password",
                "ExcludeCharacters": EXCLUDE_CHARACTERS,
            },
            "KmsKeyId": Match.any_value(),
        },
    )


def test_uses_supplied_key_and_secret_key(stack):
    key = kms.Key(stack, "SharedKey")
    auth = RedisAuthSecret(
        stack, "Auth", cluster_id="demoCluster", kms_key=key, secret_key="authToken"
    )
    template = assertions.Template.from_stack(stack)

    assert auth.kms_key is key
    template.resource_count_is("AWS::KMS::Key", 1)
    template.resource_count_is("AWS::KMS::Alias", 0)
    template.has_resource_properties(
        "AWS::SecretsManager::Secret",
        {"GenerateSecretString": Match.object_like({"GenerateStringKey": "authToken"})},
    )


def test_read_grants_share_one_statement(stack):
    first = lambda_role(stack, "First")
    second = lambda_role(stack, "Second")
    auth = RedisAuthSecret(stack, "Auth", cluster_id="demoCluster", principals=[first])
    auth.grant_read_secret(second)
    template = assertions.Template.from_stack(stack)

    template.resource_count_is("AWS::SecretsManager::ResourcePolicy", 1)
    (statement,) = resource_policy_statements(template)
    assert statement["Action"] == [
        "secretsmanager:DescribeSecret",
        "secretsmanager:GetSecretValue",
    ]
    assert len(statement["Principal"]["AWS"]) == 2

    template.has_resource_properties(
        "AWS::IAM::Policy",
        {
            "PolicyDocument": {
                "Statement": Match.array_with(
                    [Match.object_like({"Action": "kms:Decrypt", "Effect": "Allow"})]
                )
            },
            "Roles": [{"Ref": Match.string_like_regexp("Second")}],
        },
    )


def test_rotate_grant_adds_write_statement(stack):
    reader = lambda_role(stack, "Reader")
    rotator = lambda_role(stack, "Rotator")
    auth = RedisAuthSecret(stack, "Auth", cluster_id="demoCluster")
    auth.grant_read_secret(reader)
    auth.grant_rotate_secret(rotator)
    template = assertions.Template.from_stack(stack)

    statements = resource_policy_statements(template)
    assert len(statements) == 2
    rotate_actions = statements[1]["Action"]
    assert "secretsmanager:PutSecretValue" in rotate_actions
    assert "secretsmanager:UpdateSecretVersionStage" in rotate_actions

    template.has_resource_properties(
        "AWS::IAM::Policy",
        {
            "PolicyDocument": {
                "Statement": Match.array_with(
                    [
                        Match.object_like(
                            {
                                "Action": Match.array_with(
                                    ["kms:Decrypt", "kms:Encrypt"]
                                ),
                                "Effect": "Allow",
                            }
                        )
                    ]
                )
            },
            "Roles": [{"Ref": Match.string_like_regexp("Rotator")}],
        },
    )
