#!/usr/bin/env python3
import aws_cdk as cdk

from redis_rotation_demo.redis_rotation_demo_stack import RedisAuthRotationDemoStack


app = cdk.App()
RedisAuthRotationDemoStack(
    app,
    "RedisSecretRotationDemo",
)

app.synth()
