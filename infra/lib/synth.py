# -*- coding: utf-8 -*-
import json
import logging
from pathlib import Path
from typing import Optional, Union

from aws_cdk import App

from lib.props import BlueGreenServiceProps
from lib.stacks.ecs_bluegreen_stack import EcsBlueGreenStack

logger = logging.getLogger(__name__)

DEFAULT_STACK_NAME = "EcsCicdServiceStack"


def synthesize_template(
    props: Optional[BlueGreenServiceProps] = None,
    stack_name: str = DEFAULT_STACK_NAME,
    out_file: Optional[Union[str, Path]] = None,
) -> str:
    """Synthesize the blue/green stack on its own and return the template as JSON.

    When ``out_file`` is given the document is also written there.
    """
    app = App()
    stack = EcsBlueGreenStack(app, stack_name, props=props)
    assembly = app.synth()
    template = assembly.get_stack_artifact(stack.artifact_id).template
    document = json.dumps(template, indent=2)

    if out_file is not None:
        path = Path(out_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(document + "\n", encoding="utf-8")
        logger.info("Template for %s written to %s", stack_name, path)
    return document
