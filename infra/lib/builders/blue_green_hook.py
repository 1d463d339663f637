# -*- coding: utf-8 -*-
"""CodeDeploy blue/green hook for the CloudFormation ``AWS::CodeDeployBlueGreen`` transform.

The hook only names resources by logical ID. The green task definition and
task set do not exist in the template: the transform creates them during a
deployment under the placeholder IDs below, so they must never collide with a
real logical ID of the stack.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from aws_cdk import (
    CfnCodeDeployBlueGreenAdditionalOptions,
    CfnCodeDeployBlueGreenApplication,
    CfnCodeDeployBlueGreenApplicationTarget,
    CfnCodeDeployBlueGreenEcsAttributes,
    CfnCodeDeployBlueGreenHook,
    CfnCodeDeployBlueGreenLifecycleEventHooks,
    CfnTrafficRoute,
    CfnTrafficRouting,
    CfnTrafficRoutingConfig,
    CfnTrafficRoutingTimeBasedCanary,
    CfnTrafficRoutingTimeBasedLinear,
    CfnTrafficRoutingType,
    Stack,
)
from constructs import Construct

from lib.builders.topology import Topology
from lib.errors import TopologyOrderError
from lib.props import (
    ALL_AT_ONCE,
    TIME_BASED_CANARY,
    TIME_BASED_LINEAR,
    TrafficRoutingProps,
)

logger = logging.getLogger(__name__)

TRANSFORM = "AWS::CodeDeployBlueGreen"
SERVICE_TARGET_TYPE = "AWS::ECS::Service"
LISTENER_ROUTE_TYPE = "AWS::ElasticLoadBalancingV2::Listener"

GREEN_TASK_DEFINITION = "TaskDefGreen"
GREEN_TASK_SET = "TaskSetGreen"

_ROUTING_TYPES = {
    ALL_AT_ONCE: CfnTrafficRoutingType.ALL_AT_ONCE,
    TIME_BASED_CANARY: CfnTrafficRoutingType.TIME_BASED_CANARY,
    TIME_BASED_LINEAR: CfnTrafficRoutingType.TIME_BASED_LINEAR,
}


@dataclass(frozen=True)
class BlueGreenHookDescriptor:
    """Logical IDs the hook pairs together, blue first."""

    service: str
    task_definitions: Tuple[str, str]
    task_sets: Tuple[str, str]
    target_groups: Tuple[str, str]
    prod_traffic_route: str
    test_traffic_route: str


def traffic_routing_config(routing: TrafficRoutingProps) -> CfnTrafficRoutingConfig:
    if routing.type == TIME_BASED_CANARY:
        return CfnTrafficRoutingConfig(
            type=_ROUTING_TYPES[routing.type],
            time_based_canary=CfnTrafficRoutingTimeBasedCanary(
                step_percentage=routing.step_percentage, bake_time_mins=routing.bake_time_mins
            ),
        )
    if routing.type == TIME_BASED_LINEAR:
        return CfnTrafficRoutingConfig(
            type=_ROUTING_TYPES[routing.type],
            time_based_linear=CfnTrafficRoutingTimeBasedLinear(
                step_percentage=routing.step_percentage, bake_time_mins=routing.bake_time_mins
            ),
        )
    return CfnTrafficRoutingConfig(type=_ROUTING_TYPES[routing.type])


def _logical_id(stack: Stack, name: str, element) -> str:
    if element is None:
        raise TopologyOrderError(f"{name} must be created before the blue/green hook")
    owner = Stack.of(element)
    if owner.node.addr != stack.node.addr:
        raise TopologyOrderError(f"{name} belongs to {owner.stack_name}, not {stack.stack_name}")
    return stack.get_logical_id(element)


def describe(stack: Stack, topology: Topology) -> BlueGreenHookDescriptor:
    """Resolve the blue logical IDs of ``topology`` and pair them with their green counterparts."""
    if topology is None:
        raise TopologyOrderError("the topology must be built before the blue/green hook")
    resources = topology.load_balancer
    if resources is None or topology.task is None:
        raise TopologyOrderError("load balancer and task resources must be built before the blue/green hook")

    def child(name, construct):
        return _logical_id(stack, name, construct.node.default_child if construct is not None else None)

    listener = child("listener", resources.listener)
    return BlueGreenHookDescriptor(
        service=_logical_id(stack, "service", topology.service),
        task_definitions=(child("task definition", topology.task.task_definition), GREEN_TASK_DEFINITION),
        task_sets=(_logical_id(stack, "task set", topology.task.task_set), GREEN_TASK_SET),
        target_groups=(
            child("blue target group", resources.blue_target_group),
            child("green target group", resources.green_target_group),
        ),
        # A single listener serves both routes; there is no separate test port
        prod_traffic_route=listener,
        test_traffic_route=listener,
    )


class CloudFormationBlueGreenHook(Construct):
    def __init__(
        self,
        scope: Stack,
        construct_id: str,
        topology: Topology,
        routing: TrafficRoutingProps,
        service_role: str = "AWSCodeDeployRoleForECS",
        after_allow_test_traffic: Optional[str] = None,
    ) -> None:
        descriptor = describe(scope, topology)
        super().__init__(scope, construct_id)
        self.descriptor = descriptor

        scope.add_transform(TRANSFORM)
        self.hook = CfnCodeDeployBlueGreenHook(
            self,
            "Hook",
            service_role=service_role,
            traffic_routing_config=traffic_routing_config(routing),
            additional_options=(
                CfnCodeDeployBlueGreenAdditionalOptions(
                    termination_wait_time_in_minutes=routing.termination_wait_time_in_minutes
                )
                if routing.termination_wait_time_in_minutes is not None
                else None
            ),
            lifecycle_event_hooks=(
                CfnCodeDeployBlueGreenLifecycleEventHooks(after_allow_test_traffic=after_allow_test_traffic)
                if after_allow_test_traffic
                else None
            ),
            applications=[
                CfnCodeDeployBlueGreenApplication(
                    target=CfnCodeDeployBlueGreenApplicationTarget(
                        type=SERVICE_TARGET_TYPE, logical_id=descriptor.service
                    ),
                    ecs_attributes=CfnCodeDeployBlueGreenEcsAttributes(
                        task_definitions=list(descriptor.task_definitions),
                        task_sets=list(descriptor.task_sets),
                        traffic_routing=CfnTrafficRouting(
                            prod_traffic_route=CfnTrafficRoute(
                                type=LISTENER_ROUTE_TYPE, logical_id=descriptor.prod_traffic_route
                            ),
                            test_traffic_route=CfnTrafficRoute(
                                type=LISTENER_ROUTE_TYPE, logical_id=descriptor.test_traffic_route
                            ),
                            target_groups=list(descriptor.target_groups),
                        ),
                    ),
                )
            ],
        )
        logger.info(
            "Blue/green hook pairs %s with %s using %s routing",
            descriptor.task_definitions[0],
            descriptor.task_definitions[1],
            routing.type,
        )
