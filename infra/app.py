#!/usr/bin/env python3
import logging
import os

import aws_cdk as cdk

from lib.props import BlueGreenServiceProps
from lib.stages.dev import DevStage

DEFAULT_PROJECT_NAME = "ecs-cicd"


def main() -> cdk.App:
    app = cdk.App()

    env = cdk.Environment(
        account=os.getenv("CDK_DEFAULT_ACCOUNT"),
        region=os.getenv("CDK_DEFAULT_REGION"),
    )
    project_name = app.node.try_get_context("project-name") or DEFAULT_PROJECT_NAME

    DevStage(
        app,
        "Dev",
        env=env,
        project_name=project_name,
        app_tags=[("Project", project_name)],
        service_props=BlueGreenServiceProps.from_context(app.node),
    )
    app.synth()
    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    main()
