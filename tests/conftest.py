import aws_cdk as cdk
import pytest
from aws_cdk import assertions

from lib.props import BlueGreenServiceProps
from lib.stacks.ecs_bluegreen_stack import EcsBlueGreenStack


def synth(props=None, construct_id="TestBlueGreenStack"):
    app = cdk.App()
    stack = EcsBlueGreenStack(app, construct_id, props=props)
    return stack, assertions.Template.from_stack(stack)


def single_hook(template_json):
    hooks = template_json.get("Hooks", {})
    assert len(hooks) == 1, hooks
    (logical_id, hook), = hooks.items()
    assert hook["Type"] == "AWS::CodeDeploy::BlueGreen"
    return logical_id, hook["Properties"]


@pytest.fixture
def props():
    return BlueGreenServiceProps(image="nginxdemos/hello", image_tag="latest", desired_count=2, container_port=80)


@pytest.fixture
def stack_and_template(props):
    return synth(props)


@pytest.fixture
def stack(stack_and_template):
    return stack_and_template[0]


@pytest.fixture
def template(stack_and_template):
    return stack_and_template[1]
