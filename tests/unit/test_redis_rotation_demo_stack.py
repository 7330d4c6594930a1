import aws_cdk.assertions as assertions
from aws_cdk.assertions import Match

from redis_rotation_demo.config import DemoConfig
from redis_rotation_demo.redis_rotation_demo_stack import RedisAuthRotationDemoStack


def synth(app, config):
    stack = RedisAuthRotationDemoStack(app, "redis-rotation-demo", config=config)
    return assertions.Template.from_stack(stack)


def test_default_config_deploys_rbac_demo_only(app):
    template = synth(app, DemoConfig())

    template.resource_count_is("AWS::ElastiCache::ReplicationGroup", 1)
    template.resource_count_is("AWS::ElastiCache::User", 3)
    template.resource_count_is("AWS::ElastiCache::UserGroup", 1)
    template.has_resource_properties(
        "AWS::ElastiCache::ReplicationGroup",
        {"ReplicationGroupId": "redisRbacRotatorDemo"},
    )
    template.has_output("RbacReplicationGroupId", {})
    template.has_output("TestUserSecretArn", {})
    template.has_output("VpcId", {})


def test_single_auth_demo_only(app):
    template = synth(app, DemoConfig(deploy_single_auth=True, deploy_rbac=False))

    template.resource_count_is("AWS::ElastiCache::ReplicationGroup", 1)
    template.resource_count_is("AWS::ElastiCache::User", 0)
    template.has_resource_properties(
        "AWS::ElastiCache::ReplicationGroup",
        {"ReplicationGroupId": "redisSingleAuthDemo", "AuthToken": Match.any_value()},
    )
    template.has_output("SingleAuthSecretArn", {})
    template.has_output("ConnectionTestFunctionName", {})


def test_both_demos(app):
    config = DemoConfig(
        deploy_single_auth=True, engine_version="7.0", rotation_days=7
    )
    template = synth(app, config)

    template.resource_count_is("AWS::ElastiCache::ReplicationGroup", 2)
    template.resource_count_is("AWS::ElastiCache::SubnetGroup", 1)
    template.resource_count_is("AWS::SecretsManager::RotationSchedule", 3)
    template.all_resources_properties(
        "AWS::ElastiCache::ReplicationGroup", {"EngineVersion": "7.0"}
    )


def test_rbac_demo_waits_for_network(app):
    stack = RedisAuthRotationDemoStack(app, "redis-rotation-demo", config=DemoConfig())
    template = assertions.Template.from_stack(stack)

    network = stack.network
    subnet_group_id = stack.get_logical_id(network.subnet_group)
    security_group_id = stack.get_logical_id(
        network.elasticache_security_group.node.default_child
    )
    (group,) = template.find_resources("AWS::ElastiCache::UserGroup").values()
    assert subnet_group_id in group["DependsOn"]
    assert security_group_id in group["DependsOn"]


def test_stack_is_tagged(app):
    template = synth(app, DemoConfig())

    template.has_resource_properties(
        "AWS::EC2::VPC",
        {
            "Tags": Match.array_with(
                [
                    {"Key": "Environment", "Value": "Demo"},
                    {"Key": "Project", "Value": "RedisSecretRotationDemo"},
                ]
            )
        },
    )


def test_rotation_interval_follows_config(app):
    template = synth(app, DemoConfig(deploy_single_auth=True, rotation_days=7))

    template.all_resources_properties(
        "AWS::SecretsManager::RotationSchedule",
        {"RotationRules": {"ScheduleExpression": "rate(7 days)"}},
    )
