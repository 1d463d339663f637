# -*- coding: utf-8 -*-
from dataclasses import dataclass

from aws_cdk import aws_ecs as ecs


@dataclass
class FargateTaskBundle:
    """The blue workload: its task definition and the task set running it."""

    task_definition: ecs.FargateTaskDefinition
    container: ecs.ContainerDefinition
    task_set: ecs.CfnTaskSet
