import logging
from typing import Optional

from aws_cdk import (
    Stack,
    CfnOutput,
)
from constructs import Construct

from lib.builders.blue_green_hook import CloudFormationBlueGreenHook
from lib.builders.test_traffic_hook import AfterAllowTestTrafficHook
from lib.builders.topology import TopologyBuilder
from lib.props import BlueGreenServiceProps

logger = logging.getLogger(__name__)


class EcsBlueGreenStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        props: Optional[BlueGreenServiceProps] = None,
        **kwargs,
    ) -> None:
        props = props or BlueGreenServiceProps()
        # Reject bad input before the stack joins the construct tree
        props.validate()
        super().__init__(scope, construct_id, **kwargs)
        self.props = props

        # Networking, ALB with blue/green target groups, ECS service and blue task set
        self.topology = TopologyBuilder(self, props).build()
        resources = self.topology.load_balancer

        # Lambda hook to validate test traffic (AfterAllowTestTraffic)
        self.test_traffic_hook = None
        if props.validate_test_traffic:
            self.test_traffic_hook = AfterAllowTestTrafficHook(
                self,
                "AfterAllowTestTrafficHook",
                service_name=props.service_name,
                load_balancer=resources,
                listener_port=props.listener_port,
            )

        # Must come last: it references the logical IDs of everything above
        self.blue_green_hook = CloudFormationBlueGreenHook(
            self,
            "BlueGreen",
            topology=self.topology,
            routing=props.traffic_routing,
            service_role=props.service_role,
            after_allow_test_traffic=(
                self.test_traffic_hook.function_name if self.test_traffic_hook else None
            ),
        )

        CfnOutput(self, "LoadBalancerDnsName", value=resources.load_balancer.load_balancer_dns_name)
        CfnOutput(self, "ClusterName", value=self.topology.cluster.cluster_name)
        CfnOutput(self, "ServiceName", value=self.topology.service.attr_name)
        logger.info("Stack %s assembled for %s", construct_id, props.image_reference)
