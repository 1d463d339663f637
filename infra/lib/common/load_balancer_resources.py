# -*- coding: utf-8 -*-
from dataclasses import dataclass

from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_elasticloadbalancingv2 as elbv2


@dataclass
class LoadBalancerResources:
    load_balancer: elbv2.ApplicationLoadBalancer
    listener: elbv2.ApplicationListener
    load_balancer_security_group: ec2.SecurityGroup
    blue_target_group: elbv2.ApplicationTargetGroup
    green_target_group: elbv2.ApplicationTargetGroup
