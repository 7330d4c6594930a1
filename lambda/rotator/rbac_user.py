"""Rotates the password of a single ElastiCache RBAC user.

A user may hold two passwords at once: setSecret adds the pending password
next to the current one and finishSecret drops the old one.
"""
import os
import time

import boto3

from rotation import SecretRotator, logger, secrets_manager_client

POLL_SECONDS = 10
MAX_POLLS = 25


class RbacUserRotator(SecretRotator):

    def __init__(
        self,
        secrets_manager,
        elasticache,
        user_id,
        exclude_characters=None,
        sleep=time.sleep,
    ):
        super().__init__(secrets_manager, exclude_characters)
        self.elasticache = elasticache
        self.user_id = user_id
        self.sleep = sleep

    def set_secret(self, arn, token):
        current = self.get_secret_dict(arn, "AWSCURRENT")
        pending = self.get_secret_dict(arn, "AWSPENDING", token)
        self.set_passwords(
            [current[self.password_key], pending[self.password_key]]
        )
        logger.info("set_secret: Added pending password to user %s.", self.user_id)

    def test_secret(self, arn, token):
        if not self.wait_until_active():
            raise ValueError(
                f"test_secret: User {self.user_id} is not active for secret ARN {arn}."
            )

    def retire_current(self, arn, token):
        pending = self.get_secret_dict(arn, "AWSPENDING", token)
        self.set_passwords([pending[self.password_key]])
        logger.info(
            "finish_secret: Removed previous password from user %s.", self.user_id
        )

    def set_passwords(self, passwords):
        if not self.wait_until_active():
            raise ValueError(f"User {self.user_id} is not active.")
        self.elasticache.modify_user(UserId=self.user_id, Passwords=passwords)
        if not self.wait_until_active():
            raise ValueError(f"User {self.user_id} did not become active.")

    def wait_until_active(self):
        for _ in range(MAX_POLLS):
            response = self.elasticache.describe_users(UserId=self.user_id)
            if response["Users"][0]["Status"] == "active":
                return True
            self.sleep(POLL_SECONDS)
        return False


def lambda_handler(event, context):
    rotator = RbacUserRotator(
        secrets_manager_client(),
        boto3.client("elasticache"),
        user_id=os.environ["user_id"],
    )
    rotator.handle(event)
