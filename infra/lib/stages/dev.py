# -*- coding: utf-8 -*-
from aws_cdk import Environment, Stage, Tags
from constructs import Construct
from lib.props import BlueGreenServiceProps
from lib.stacks.ecs_bluegreen_stack import EcsBlueGreenStack


class DevStage(Stage):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        env: Environment,
        project_name: str,
        app_tags: list[tuple[str, str]],
        service_props: BlueGreenServiceProps,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        deploy_environment = "dev"

        self.ecs_bg_stack = EcsBlueGreenStack(
            self,
            f"{project_name}-{env.region or 'local'}-ecs-blue-green",
            props=service_props,
            env=Environment(account=env.account, region=env.region),
        )

        Tags.of(self).add("Environment", deploy_environment)
        for key, value in app_tags:
            Tags.of(self).add(key, value)
