"""Rotates the AUTH token shared by every client of a replication group.

The new token is added next to the old one with the ROTATE strategy during
setSecret, so clients holding the old token keep working until finishSecret
replaces both with the new token alone using the SET strategy.
"""
import os
import time

import boto3
from redis import Redis, RedisError

from rotation import SecretRotator, logger, secrets_manager_client

POLL_SECONDS = 10
MAX_POLLS = 25


class ReplicationGroupAuthRotator(SecretRotator):
    password_key = "authToken"

    def __init__(
        self,
        secrets_manager,
        elasticache,
        replication_group_id,
        host,
        port,
        exclude_characters=None,
        sleep=time.sleep,
    ):
        super().__init__(secrets_manager, exclude_characters)
        self.elasticache = elasticache
        self.replication_group_id = replication_group_id
        self.host = host
        self.port = int(port)
        self.sleep = sleep

    def ping(self, auth_token):
        try:
            with Redis(
                host=self.host,
                port=self.port,
                password=auth_token,
                ssl=True,
                ssl_cert_reqs=None,
                socket_timeout=5,
            ) as client:
                return client.ping()
        except RedisError:
            logger.info("Unable to ping %s with the given token.", self.host)
            return False

    def set_secret(self, arn, token):
        pending = self.get_secret_dict(arn, "AWSPENDING", token)
        if self.ping(pending[self.password_key]):
            logger.info(
                "set_secret: AWSPENDING secret is already set as auth token for secret %s.",
                arn,
            )
            return
        self.update_auth_token(pending[self.password_key], "ROTATE")
        logger.info(
            "set_secret: Added pending auth token to %s.", self.replication_group_id
        )

    def test_secret(self, arn, token):
        pending = self.get_secret_dict(arn, "AWSPENDING", token)
        if not self.ping(pending[self.password_key]):
            raise ValueError(
                f"test_secret: Unable to ping redis with pending secret of secret ARN {arn}."
            )

    def retire_current(self, arn, token):
        pending = self.get_secret_dict(arn, "AWSPENDING", token)
        self.update_auth_token(pending[self.password_key], "SET")
        logger.info(
            "finish_secret: Removed previous auth token from %s.",
            self.replication_group_id,
        )

    def update_auth_token(self, auth_token, strategy):
        self.elasticache.modify_replication_group(
            ReplicationGroupId=self.replication_group_id,
            AuthToken=auth_token,
            AuthTokenUpdateStrategy=strategy,
            ApplyImmediately=True,
        )
        self.wait_until_available()

    def wait_until_available(self):
        # ApplyImmediately still takes a while to reach every node
        for _ in range(MAX_POLLS):
            response = self.elasticache.describe_replication_groups(
                ReplicationGroupId=self.replication_group_id
            )
            group = response["ReplicationGroups"][0]
            pending = group.get("PendingModifiedValues", {})
            if group["Status"] == "available" and "AuthTokenStatus" not in pending:
                return
            self.sleep(POLL_SECONDS)
        raise ValueError(
            f"Replication group {self.replication_group_id} did not become available."
        )


def lambda_handler(event, context):
    rotator = ReplicationGroupAuthRotator(
        secrets_manager_client(),
        boto3.client("elasticache"),
        replication_group_id=os.environ["replicationGroupId"],
        host=os.environ["redis_endpoint"],
        port=os.environ["redis_port"],
    )
    rotator.handle(event)
