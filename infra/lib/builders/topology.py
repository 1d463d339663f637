# -*- coding: utf-8 -*-
"""Network, load balancer and ECS resources of a blue/green Fargate service.

Resources are created in dependency order: VPC, load balancer security group,
load balancer, both target groups, the listener forwarding to blue, the
cluster, the externally controlled service, then the blue task definition and
the task set that runs it.
"""
import logging
from dataclasses import asdict, dataclass

from aws_cdk import (
    Duration,
    RemovalPolicy,
    Stack,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_logs as logs,
)

from lib.common.fargate_task_bundle import FargateTaskBundle
from lib.common.load_balancer_resources import LoadBalancerResources
from lib.props import BlueGreenServiceProps

logger = logging.getLogger(__name__)

BLUE = "blue"
GREEN = "green"


@dataclass(frozen=True)
class TopologyIds:
    """Logical IDs assigned to the topology in the synthesized template."""

    vpc: str
    load_balancer: str
    listener: str
    blue_target_group: str
    green_target_group: str
    cluster: str
    service: str
    task_definition: str
    task_set: str

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class Topology:
    vpc: ec2.Vpc
    load_balancer: LoadBalancerResources
    service_security_group: ec2.SecurityGroup
    cluster: ecs.Cluster
    service: ecs.CfnService
    task: FargateTaskBundle
    primary_task_set: ecs.CfnPrimaryTaskSet

    def logical_ids(self) -> TopologyIds:
        stack = Stack.of(self.service)
        return TopologyIds(
            vpc=stack.get_logical_id(self.vpc.node.default_child),
            load_balancer=stack.get_logical_id(self.load_balancer.load_balancer.node.default_child),
            listener=stack.get_logical_id(self.load_balancer.listener.node.default_child),
            blue_target_group=stack.get_logical_id(self.load_balancer.blue_target_group.node.default_child),
            green_target_group=stack.get_logical_id(self.load_balancer.green_target_group.node.default_child),
            cluster=stack.get_logical_id(self.cluster.node.default_child),
            service=stack.get_logical_id(self.service),
            task_definition=stack.get_logical_id(self.task.task_definition.node.default_child),
            task_set=stack.get_logical_id(self.task.task_set),
        )


class TopologyBuilder:
    def __init__(self, stack: Stack, props: BlueGreenServiceProps) -> None:
        self.stack = stack
        self.props = props

    def build(self) -> Topology:
        props = self.props
        vpc = ec2.Vpc(self.stack, "Vpc", max_azs=props.max_azs, nat_gateways=props.nat_gateways)
        logger.debug("VPC created with max_azs=%d", props.max_azs)

        load_balancer = self._make_load_balancer(vpc)

        cluster = ecs.Cluster(self.stack, "EcsCluster", vpc=vpc)
        service = ecs.CfnService(
            self.stack,
            "FargateService",
            cluster=cluster.cluster_name,
            desired_count=props.desired_count,
            deployment_controller=ecs.CfnService.DeploymentControllerProperty(type="EXTERNAL"),
        )

        # Tasks only accept traffic coming through the load balancer
        service_sg = ec2.SecurityGroup(self.stack, "ServiceSg", vpc=vpc, allow_all_outbound=True)
        service_sg.add_ingress_rule(
            load_balancer.load_balancer_security_group,
            ec2.Port.tcp(props.container_port),
            "Allow ALB to reach tasks",
        )

        task = self._make_task(BLUE, vpc, cluster, service, service_sg, load_balancer)
        primary_task_set = ecs.CfnPrimaryTaskSet(
            self.stack,
            "PrimaryTaskSet",
            cluster=cluster.cluster_name,
            service=service.ref,
            task_set_id=task.task_set.attr_id,
        )
        logger.info(
            "Topology for %s built: image=%s desired_count=%d port=%d",
            props.service_name,
            props.image_reference,
            props.desired_count,
            props.container_port,
        )
        return Topology(
            vpc=vpc,
            load_balancer=load_balancer,
            service_security_group=service_sg,
            cluster=cluster,
            service=service,
            task=task,
            primary_task_set=primary_task_set,
        )

    def _make_load_balancer(self, vpc: ec2.Vpc) -> LoadBalancerResources:
        props = self.props
        alb_sg = ec2.SecurityGroup(self.stack, "AlbSg", vpc=vpc, allow_all_outbound=True)
        alb_sg.add_ingress_rule(ec2.Peer.any_ipv4(), ec2.Port.tcp(props.listener_port), "HTTP")

        alb = elbv2.ApplicationLoadBalancer(
            self.stack, "ALB", vpc=vpc, internet_facing=True, security_group=alb_sg
        )

        blue_tg, green_tg = [self._make_target_group(color, vpc) for color in (BLUE, GREEN)]

        # Only blue receives traffic; CodeDeploy rewrites the weights on cutover
        listener = elbv2.ApplicationListener(
            self.stack,
            "PublicListener",
            load_balancer=alb,
            port=props.listener_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            open=False,
            default_action=elbv2.ListenerAction.weighted_forward(
                [elbv2.WeightedTargetGroup(target_group=blue_tg, weight=1)]
            ),
        )
        logger.debug("Load balancer listening on port %d", props.listener_port)
        return LoadBalancerResources(
            load_balancer=alb,
            listener=listener,
            load_balancer_security_group=alb_sg,
            blue_target_group=blue_tg,
            green_target_group=green_tg,
        )

    def _make_target_group(self, color: str, vpc: ec2.Vpc) -> elbv2.ApplicationTargetGroup:
        props = self.props
        health_check = props.health_check
        return elbv2.ApplicationTargetGroup(
            self.stack,
            f"TargetGroup{color}",
            vpc=vpc,
            target_group_name=f"{props.service_name}-{color}",
            target_type=elbv2.TargetType.IP,
            port=props.container_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            deregistration_delay=Duration.seconds(props.deregistration_delay_seconds),
            health_check=elbv2.HealthCheck(
                path=health_check.path,
                healthy_http_codes=health_check.healthy_http_codes,
                interval=Duration.seconds(health_check.interval_seconds),
                timeout=Duration.seconds(health_check.timeout_seconds),
                healthy_threshold_count=health_check.healthy_threshold_count,
                unhealthy_threshold_count=health_check.unhealthy_threshold_count,
            ),
        )

    def _make_task(
        self,
        color: str,
        vpc: ec2.Vpc,
        cluster: ecs.Cluster,
        service: ecs.CfnService,
        service_sg: ec2.SecurityGroup,
        load_balancer: LoadBalancerResources,
    ) -> FargateTaskBundle:
        props = self.props
        task_definition = ecs.FargateTaskDefinition(
            self.stack,
            f"TaskDef{color}",
            family=props.service_name,
            cpu=props.cpu,
            memory_limit_mib=props.memory_limit_mib,
        )
        log_group = logs.LogGroup(
            self.stack,
            f"ContainerLogGroup{color}",
            log_group_name=f"/aws/ecs/{props.service_name}",
            retention=logs.RetentionDays[props.log_retention],
            removal_policy=RemovalPolicy.DESTROY,
        )
        container = task_definition.add_container(
            props.service_name,
            image=ecs.ContainerImage.from_registry(props.image_reference),
            logging=ecs.LogDrivers.aws_logs(
                stream_prefix=f"{props.service_name}-{color}", log_group=log_group
            ),
        )
        container.add_port_mappings(ecs.PortMapping(container_port=props.container_port))

        subnets = vpc.select_subnets(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS)
        task_set = ecs.CfnTaskSet(
            self.stack,
            f"TaskSet{color.capitalize()}",
            cluster=cluster.cluster_name,
            service=service.ref,
            launch_type="FARGATE",
            platform_version="LATEST",
            task_definition=task_definition.task_definition_arn,
            scale=ecs.CfnTaskSet.ScaleProperty(unit="PERCENT", value=props.task_set_scale_percent),
            network_configuration=ecs.CfnTaskSet.NetworkConfigurationProperty(
                aws_vpc_configuration=ecs.CfnTaskSet.AwsVpcConfigurationProperty(
                    subnets=subnets.subnet_ids,
                    security_groups=[service_sg.security_group_id],
                    assign_public_ip="DISABLED",
                )
            ),
            load_balancers=[
                ecs.CfnTaskSet.LoadBalancerProperty(
                    container_name=container.container_name,
                    container_port=props.container_port,
                    target_group_arn=load_balancer.blue_target_group.target_group_arn,
                )
            ],
        )
        # The target group must be attached to the load balancer before tasks register
        task_set.node.add_dependency(load_balancer.listener)
        logger.debug("Task definition %s%s uses image %s", props.service_name, color, props.image_reference)
        return FargateTaskBundle(task_definition=task_definition, container=container, task_set=task_set)
