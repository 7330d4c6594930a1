import json
import logging
import os
from datetime import datetime, timezone

import boto3
from redis import Redis

logger = logging.getLogger()
logger.setLevel(logging.INFO)

TEST_KEY = "rotation-demo:last-connection-test"


def connect(secret, host, port):
    return Redis(
        host=host,
        port=int(port),
        password=secret["authToken"],
        ssl=True,
        ssl_cert_reqs=None,
        socket_timeout=5,
    )


def lambda_handler_single_auth(event, context, secrets_manager=None):
    """Write and read back a key with the current AUTH token."""
    if secrets_manager is None:
        secrets_manager = boto3.client("secretsmanager")
    response = secrets_manager.get_secret_value(SecretId=os.environ["secret_arn"])
    secret = json.loads(response["SecretString"])

    value = datetime.now(timezone.utc).isoformat()
    with connect(secret, os.environ["redis_endpoint"], os.environ["redis_port"]) as client:
        client.set(TEST_KEY, value)
        stored = client.get(TEST_KEY)

    logger.info(
        "Connection test against %s wrote %s", os.environ["replicationGroupId"], value
    )
    return {
        "replicationGroupId": os.environ["replicationGroupId"],
        "written": value,
        "read": stored.decode() if stored is not None else None,
    }
