import aws_cdk as core
import pytest


@pytest.fixture
def app():
    # Skip docker bundling of the redis-py layer during synthesis
    return core.App(context={"aws:cdk:bundling-stacks": []})


@pytest.fixture
def stack(app):
    return core.Stack(app, "test-stack")
