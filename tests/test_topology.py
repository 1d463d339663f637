"""Resources of the blue/green topology and the logical IDs they receive."""
import aws_cdk as cdk
import pytest
from aws_cdk import assertions
from aws_cdk.assertions import Match

from lib.builders.topology import TopologyBuilder
from lib.props import BlueGreenServiceProps, HealthCheckProps

from conftest import synth


@pytest.mark.parametrize(
    "props",
    [
        BlueGreenServiceProps(),
        BlueGreenServiceProps(desired_count=7, container_port=8080, listener_port=8080, max_azs=2),
        BlueGreenServiceProps(image="public.ecr.aws/nginx/nginx", image_tag="stable", cpu=1024),
    ],
)
def test_entity_counts_do_not_depend_on_input(props):
    _, template = synth(props)
    template.resource_count_is("AWS::EC2::VPC", 1)
    template.resource_count_is("AWS::ElasticLoadBalancingV2::LoadBalancer", 1)
    template.resource_count_is("AWS::ElasticLoadBalancingV2::Listener", 1)
    template.resource_count_is("AWS::ElasticLoadBalancingV2::TargetGroup", 2)
    template.resource_count_is("AWS::ECS::Cluster", 1)
    template.resource_count_is("AWS::ECS::Service", 1)
    template.resource_count_is("AWS::ECS::TaskDefinition", 1)
    template.resource_count_is("AWS::ECS::TaskSet", 1)
    template.resource_count_is("AWS::ECS::PrimaryTaskSet", 1)


def test_logical_ids_are_pairwise_distinct(stack):
    ids = stack.topology.logical_ids().as_dict()
    assert len(set(ids.values())) == len(ids)


def test_logical_ids_name_real_resources(stack, template):
    resources = template.to_json()["Resources"]
    ids = stack.topology.logical_ids()
    expected_types = {
        ids.vpc: "AWS::EC2::VPC",
        ids.load_balancer: "AWS::ElasticLoadBalancingV2::LoadBalancer",
        ids.listener: "AWS::ElasticLoadBalancingV2::Listener",
        ids.blue_target_group: "AWS::ElasticLoadBalancingV2::TargetGroup",
        ids.green_target_group: "AWS::ElasticLoadBalancingV2::TargetGroup",
        ids.cluster: "AWS::ECS::Cluster",
        ids.service: "AWS::ECS::Service",
        ids.task_definition: "AWS::ECS::TaskDefinition",
        ids.task_set: "AWS::ECS::TaskSet",
    }
    for logical_id, resource_type in expected_types.items():
        assert resources[logical_id]["Type"] == resource_type


class TestTargetGroups:
    def test_blue_and_green_naming(self, template):
        for color in ("blue", "green"):
            template.has_resource_properties(
                "AWS::ElasticLoadBalancingV2::TargetGroup",
                {"Name": f"nginx-{color}", "TargetType": "ip", "Port": 80, "Protocol": "HTTP"},
            )

    def test_health_check_tuning(self, template):
        template.has_resource_properties(
            "AWS::ElasticLoadBalancingV2::TargetGroup",
            {
                "HealthCheckPath": "/",
                "HealthCheckIntervalSeconds": 5,
                "HealthCheckTimeoutSeconds": 2,
                "HealthyThresholdCount": 2,
                "UnhealthyThresholdCount": 4,
                "Matcher": {"HttpCode": "200-399"},
                "TargetGroupAttributes": Match.array_with(
                    [{"Key": "deregistration_delay.timeout_seconds", "Value": "0"}]
                ),
            },
        )

    def test_custom_health_check(self):
        props = BlueGreenServiceProps(
            health_check=HealthCheckProps(path="/health", interval_seconds=30, timeout_seconds=5)
        )
        _, template = synth(props)
        template.has_resource_properties(
            "AWS::ElasticLoadBalancingV2::TargetGroup",
            {"HealthCheckPath": "/health", "HealthCheckIntervalSeconds": 30, "HealthCheckTimeoutSeconds": 5},
        )


def test_listener_forwards_everything_to_blue(stack, template):
    ids = stack.topology.logical_ids()
    template.has_resource_properties(
        "AWS::ElasticLoadBalancingV2::Listener",
        {
            "Port": 80,
            "Protocol": "HTTP",
            "DefaultActions": [
                Match.object_like(
                    {
                        "Type": "forward",
                        "ForwardConfig": Match.object_like(
                            {"TargetGroups": [{"TargetGroupArn": {"Ref": ids.blue_target_group}, "Weight": 1}]}
                        ),
                    }
                )
            ],
        },
    )


def test_load_balancer_is_internet_facing_with_its_own_security_group(template):
    template.has_resource_properties(
        "AWS::ElasticLoadBalancingV2::LoadBalancer", {"Scheme": "internet-facing", "Type": "application"}
    )
    template.has_resource_properties(
        "AWS::EC2::SecurityGroup",
        {
            "SecurityGroupIngress": Match.array_with(
                [Match.object_like({"CidrIp": "0.0.0.0/0", "FromPort": 80, "ToPort": 80, "IpProtocol": "tcp"})]
            )
        },
    )


def test_service_is_externally_controlled(template):
    template.has_resource_properties(
        "AWS::ECS::Service", {"DesiredCount": 2, "DeploymentController": {"Type": "EXTERNAL"}}
    )


def test_blue_task_set_runs_the_task_definition_behind_blue(stack, template):
    ids = stack.topology.logical_ids()
    template.has_resource_properties(
        "AWS::ECS::TaskSet",
        {
            "LaunchType": "FARGATE",
            "Service": {"Ref": ids.service},
            "Scale": {"Unit": "PERCENT", "Value": 100},
            "LoadBalancers": [
                {"ContainerName": "nginx", "ContainerPort": 80, "TargetGroupArn": {"Ref": ids.blue_target_group}}
            ],
            "NetworkConfiguration": {
                "AwsVpcConfiguration": Match.object_like({"AssignPublicIp": "DISABLED"})
            },
        },
    )
    template.has_resource_properties(
        "AWS::ECS::PrimaryTaskSet", {"TaskSetId": {"Fn::GetAtt": [ids.task_set, "Id"]}}
    )


def test_task_set_waits_for_the_listener(stack, template):
    ids = stack.topology.logical_ids()
    task_set = template.to_json()["Resources"][ids.task_set]
    assert ids.listener in task_set.get("DependsOn", [])


def test_workload_definition(template):
    template.has_resource_properties(
        "AWS::ECS::TaskDefinition",
        {
            "Family": "nginx",
            "Cpu": "512",
            "Memory": "2048",
            "NetworkMode": "awsvpc",
            "RequiresCompatibilities": ["FARGATE"],
            "ContainerDefinitions": [
                Match.object_like(
                    {
                        "Name": "nginx",
                        "Image": "nginxdemos/hello:latest",
                        "PortMappings": [Match.object_like({"ContainerPort": 80})],
                        "LogConfiguration": Match.object_like({"LogDriver": "awslogs"}),
                    }
                )
            ],
        },
    )
    template.has_resource_properties(
        "AWS::Logs::LogGroup", {"LogGroupName": "/aws/ecs/nginx", "RetentionInDays": 1}
    )


def test_builder_can_target_a_bare_stack():
    app = cdk.App()
    stack = cdk.Stack(app, "Bare")
    topology = TopologyBuilder(stack, BlueGreenServiceProps(service_name="web")).build()
    template = assertions.Template.from_stack(stack)
    template.has_resource_properties("AWS::ElasticLoadBalancingV2::TargetGroup", {"Name": "web-green"})
    assert topology.task.container.container_name == "web"
