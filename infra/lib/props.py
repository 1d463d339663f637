# -*- coding: utf-8 -*-
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

from aws_cdk import aws_logs as logs
from constructs import Node

from lib.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_IMAGE = "nginxdemos/hello"
DEFAULT_IMAGE_TAG = "latest"

FARGATE_CPU_UNITS = (256, 512, 1024, 2048, 4096, 8192, 16384)

# Target group names are capped at 32 characters and get a "-green" suffix
SERVICE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]{0,25}$")

ALL_AT_ONCE = "AllAtOnce"
TIME_BASED_CANARY = "TimeBasedCanary"
TIME_BASED_LINEAR = "TimeBasedLinear"
TRAFFIC_ROUTING_TYPES = (ALL_AT_ONCE, TIME_BASED_CANARY, TIME_BASED_LINEAR)

# (context key, environment variable)
_IMAGE_KEYS = ("image", "IMAGE")
_IMAGE_TAG_KEYS = ("image-tag", "IMAGE_TAG")
_DESIRED_COUNT_KEYS = ("desired-count", "DESIRED_COUNT")
_CONTAINER_PORT_KEYS = ("container-port", "CONTAINER_PORT")
_VALIDATE_TEST_TRAFFIC_KEYS = ("validate-test-traffic", "VALIDATE_TEST_TRAFFIC")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class HealthCheckProps:
    path: str = "/"
    interval_seconds: int = 5
    timeout_seconds: int = 2
    healthy_threshold_count: int = 2
    unhealthy_threshold_count: int = 4
    healthy_http_codes: str = "200-399"

    def validate(self) -> None:
        if not self.path or not self.path.startswith("/"):
            raise ConfigurationError(f"health check path must start with '/': {self.path!r}")
        for name in ("interval_seconds", "timeout_seconds"):
            value = getattr(self, name)
            if not _is_int(value) or value < 1:
                raise ConfigurationError(f"health check {name} must be a positive integer: {value!r}")
        if self.timeout_seconds >= self.interval_seconds:
            raise ConfigurationError(
                "health check timeout must be lower than the interval "
                f"({self.timeout_seconds}s >= {self.interval_seconds}s)"
            )
        for name in ("healthy_threshold_count", "unhealthy_threshold_count"):
            value = getattr(self, name)
            if not _is_int(value) or not 2 <= value <= 10:
                raise ConfigurationError(f"health check {name} must be between 2 and 10: {value!r}")


@dataclass
class TrafficRoutingProps:
    """How CodeDeploy shifts production traffic to the green task set.

    ``step_percentage`` and ``bake_time_mins`` only apply to the time based
    routing types.
    """

    type: str = ALL_AT_ONCE
    step_percentage: int = 10
    bake_time_mins: int = 5
    termination_wait_time_in_minutes: Optional[int] = None

    def validate(self) -> None:
        if self.type not in TRAFFIC_ROUTING_TYPES:
            raise ConfigurationError(
                f"unknown traffic routing type {self.type!r}, expected one of {', '.join(TRAFFIC_ROUTING_TYPES)}"
            )
        if self.type != ALL_AT_ONCE:
            if not _is_int(self.step_percentage) or not 1 <= self.step_percentage <= 99:
                raise ConfigurationError(f"step percentage must be between 1 and 99: {self.step_percentage!r}")
            if not _is_int(self.bake_time_mins) or self.bake_time_mins < 1:
                raise ConfigurationError(f"bake time must be at least one minute: {self.bake_time_mins!r}")
        wait = self.termination_wait_time_in_minutes
        if wait is not None and (not _is_int(wait) or not 0 <= wait <= 2880):
            raise ConfigurationError(f"termination wait time must be between 0 and 2880 minutes: {wait!r}")


@dataclass
class BlueGreenServiceProps:
    image: str = DEFAULT_IMAGE
    image_tag: str = DEFAULT_IMAGE_TAG
    service_name: str = "nginx"
    desired_count: int = 1
    container_port: int = 80
    listener_port: int = 80
    cpu: int = 512
    memory_limit_mib: int = 2048
    max_azs: int = 3
    nat_gateways: int = 1
    deregistration_delay_seconds: int = 0
    task_set_scale_percent: float = 100.0
    log_retention: str = "ONE_DAY"
    service_role: str = "AWSCodeDeployRoleForECS"
    validate_test_traffic: bool = False
    health_check: HealthCheckProps = field(default_factory=HealthCheckProps)
    traffic_routing: TrafficRoutingProps = field(default_factory=TrafficRoutingProps)

    @property
    def image_reference(self) -> str:
        return f"{self.image}:{self.image_tag}"

    def validate(self) -> None:
        if not isinstance(self.image, str) or not self.image.strip():
            raise ConfigurationError("image reference must not be empty")
        if "@" in self.image or ":" in self.image.rsplit("/", 1)[-1]:
            raise ConfigurationError(f"image must not carry a tag or digest, use image_tag: {self.image!r}")
        if not isinstance(self.image_tag, str) or not self.image_tag.strip():
            raise ConfigurationError("image tag must not be empty")
        if not isinstance(self.service_name, str) or not SERVICE_NAME_PATTERN.match(self.service_name):
            raise ConfigurationError(
                "service name must be 1-26 letters, digits or hyphens and start with a letter or digit: "
                f"{self.service_name!r}"
            )
        if not _is_int(self.desired_count) or self.desired_count < 1:
            raise ConfigurationError(f"desired count must be a positive integer: {self.desired_count!r}")
        for name in ("container_port", "listener_port"):
            value = getattr(self, name)
            if not _is_int(value) or not 1 <= value <= 65535:
                raise ConfigurationError(f"{name} must be an integer between 1 and 65535: {value!r}")
        if self.cpu not in FARGATE_CPU_UNITS:
            raise ConfigurationError(f"unsupported Fargate cpu value: {self.cpu!r}")
        if not _is_int(self.memory_limit_mib) or self.memory_limit_mib < 512:
            raise ConfigurationError(f"memory limit must be at least 512 MiB: {self.memory_limit_mib!r}")
        if not _is_int(self.max_azs) or self.max_azs < 1:
            raise ConfigurationError(f"max_azs must be a positive integer: {self.max_azs!r}")
        if not _is_int(self.nat_gateways) or self.nat_gateways < 1:
            raise ConfigurationError("private subnets need at least one NAT gateway to pull the image")
        scale = self.task_set_scale_percent
        if not isinstance(scale, (int, float)) or isinstance(scale, bool) or not 0 < scale <= 100:
            raise ConfigurationError(f"task set scale must be within (0, 100]: {self.task_set_scale_percent!r}")
        if self.log_retention not in logs.RetentionDays.__members__:
            raise ConfigurationError(f"unknown log retention {self.log_retention!r}")
        self.health_check.validate()
        self.traffic_routing.validate()

    @classmethod
    def from_context(
        cls, node: Node, environ: Optional[Mapping[str, str]] = None, **overrides
    ) -> "BlueGreenServiceProps":
        """Build props from CDK context, falling back to environment variables.

        Context wins over the environment, which wins over the defaults.
        ``overrides`` are applied last and are not looked up anywhere.
        """
        environ = os.environ if environ is None else environ

        def lookup(keys, default):
            context_key, env_key = keys
            value = node.try_get_context(context_key)
            if value is None:
                value = environ.get(env_key)
            if value is None:
                return default
            logger.debug("%s resolved to %r", context_key, value)
            return value

        kwargs = dict(
            image=lookup(_IMAGE_KEYS, DEFAULT_IMAGE),
            image_tag=lookup(_IMAGE_TAG_KEYS, DEFAULT_IMAGE_TAG),
            desired_count=_to_int("desired-count", lookup(_DESIRED_COUNT_KEYS, 1)),
            container_port=_to_int("container-port", lookup(_CONTAINER_PORT_KEYS, 80)),
            validate_test_traffic=_to_bool(lookup(_VALIDATE_TEST_TRAFFIC_KEYS, False)),
        )
        kwargs.update(overrides)
        return cls(**kwargs)


def _to_int(name: str, value) -> int:
    if _is_int(value):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer: {value!r}") from None


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")
