import os

from aws_cdk import (
    BundlingOptions,
    Stack,
    aws_iam as iam,
    aws_lambda as lambda_,
)
from constructs import Construct

LAMBDA_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "lambda"
)

# Characters the generated Redis passwords and AUTH tokens must not contain
EXCLUDE_CHARACTERS = "@%*()_+=`~{}|[]\\:\";'?,./"

FUNCTION_RUNTIME = lambda_.Runtime.PYTHON_3_12


def asset_path(name: str) -> str:
    return os.path.join(LAMBDA_DIR, name)


def secrets_manager_endpoint(scope: Construct) -> str:
    return f"https://secretsmanager.{Stack.of(scope).region}.amazonaws.com"


def redis_py_layer(scope: Construct, construct_id: str) -> lambda_.LayerVersion:
    """Layer with redis-py installed under python/, built in the runtime image."""
    return lambda_.LayerVersion(
        scope,
        construct_id,
        code=lambda_.Code.from_asset(
            asset_path("layer"),
            bundling=BundlingOptions(
                image=FUNCTION_RUNTIME.bundling_image,
                command=[
                    "bash",
                    "-c",
                    "pip install -r requirements.txt -t /asset-output/python",
                ],
            ),
        ),
        compatible_runtimes=[
            lambda_.Runtime.PYTHON_3_11,
            lambda_.Runtime.PYTHON_3_12,
        ],
        description="A layer that contains the redispy module",
        license="MIT License",
    )


def lambda_role(scope: Construct, construct_id: str, description: str) -> iam.Role:
    return iam.Role(
        scope,
        construct_id,
        assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
        description=description,
        managed_policies=[
            iam.ManagedPolicy.from_aws_managed_policy_name(
                "service-role/AWSLambdaBasicExecutionRole"
            ),
            iam.ManagedPolicy.from_aws_managed_policy_name(
                "service-role/AWSLambdaVPCAccessExecutionRole"
            ),
        ],
    )
