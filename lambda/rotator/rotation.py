import json
import logging
import os

import boto3

logger = logging.getLogger()
logger.setLevel(logging.INFO)

PASSWORD_LENGTH = 32


def secrets_manager_client():
    return boto3.client(
        "secretsmanager", endpoint_url=os.environ["SECRETS_MANAGER_ENDPOINT"]
    )


class SecretRotator:
    """Secrets Manager rotation protocol for a Redis credential.

    Secrets Manager invokes the rotation function four times per rotation,
    once per step, with the secret ARN and the token of the version being
    rotated in. Subclasses decide how a pending password is pushed to Redis
    and how it is tested; generating the password and moving the version
    stages is common to both strategies.
    """

    password_key = "password"

    def __init__(self, secrets_manager, exclude_characters=None):
        self.secrets_manager = secrets_manager
        if exclude_characters is None:
            exclude_characters = os.environ.get("EXCLUDE_CHARACTERS", "")
        self.exclude_characters = exclude_characters

    def handle(self, event):
        arn = event["SecretId"]
        token = event["ClientRequestToken"]
        step = event["Step"]

        metadata = self.secrets_manager.describe_secret(SecretId=arn)
        if "RotationEnabled" in metadata and not metadata["RotationEnabled"]:
            raise ValueError(f"Secret {arn} is not enabled for rotation.")
        versions = metadata["VersionIdsToStages"]
        if token not in versions:
            raise ValueError(
                f"Secret version {token} has no stage for rotation of secret {arn}."
            )
        if "AWSCURRENT" in versions[token]:
            logger.info(
                "Secret version %s is already set as AWSCURRENT for secret %s.",
                token,
                arn,
            )
            return
        if "AWSPENDING" not in versions[token]:
            raise ValueError(
                f"Secret version {token} is not set as AWSPENDING for rotation of secret {arn}."
            )

        steps = {
            "createSecret": self.create_secret,
            "setSecret": self.set_secret,
            "testSecret": self.test_secret,
            "finishSecret": self.finish_secret,
        }
        if step not in steps:
            raise ValueError(f"Invalid step parameter {step} for secret {arn}.")
        steps[step](arn, token)

    def get_secret_dict(self, arn, stage, token=None):
        kwargs = {"SecretId": arn, "VersionStage": stage}
        if token:
            kwargs["VersionId"] = token
        response = self.secrets_manager.get_secret_value(**kwargs)
        secret = json.loads(response["SecretString"])
        if self.password_key not in secret:
            raise KeyError(f"{self.password_key} key is missing from secret JSON")
        return secret

    def create_secret(self, arn, token):
        current = self.get_secret_dict(arn, "AWSCURRENT")
        try:
            self.get_secret_dict(arn, "AWSPENDING", token)
            logger.info("create_secret: Successfully retrieved secret for %s.", arn)
            return
        except self.secrets_manager.exceptions.ResourceNotFoundException:
            pass

        password = self.secrets_manager.get_random_password(
            PasswordLength=PASSWORD_LENGTH,
            ExcludeCharacters=self.exclude_characters,
        )
        current[self.password_key] = password["RandomPassword"]
        self.secrets_manager.put_secret_value(
            SecretId=arn,
            ClientRequestToken=token,
            SecretString=json.dumps(current),
            VersionStages=["AWSPENDING"],
        )
        logger.info(
            "create_secret: Successfully put secret for ARN %s and version %s.",
            arn,
            token,
        )

    def set_secret(self, arn, token):
        raise NotImplementedError

    def test_secret(self, arn, token):
        raise NotImplementedError

    def retire_current(self, arn, token):
        """Called before the pending version becomes AWSCURRENT."""

    def finish_secret(self, arn, token):
        metadata = self.secrets_manager.describe_secret(SecretId=arn)
        current_version = None
        for version, stages in metadata["VersionIdsToStages"].items():
            if "AWSCURRENT" in stages:
                if version == token:
                    logger.info(
                        "finish_secret: Version %s already marked as AWSCURRENT for %s.",
                        version,
                        arn,
                    )
                    return
                current_version = version
                break

        self.retire_current(arn, token)
        self.secrets_manager.update_secret_version_stage(
            SecretId=arn,
            VersionStage="AWSCURRENT",
            MoveToVersionId=token,
            RemoveFromVersionId=current_version,
        )
        logger.info(
            "finish_secret: Successfully set AWSCURRENT stage to version %s for secret %s.",
            token,
            arn,
        )
