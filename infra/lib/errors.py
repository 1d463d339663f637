# -*- coding: utf-8 -*-


class BlueGreenError(Exception):
    """Base class for errors raised while assembling the blue/green stack."""


class ConfigurationError(BlueGreenError, ValueError):
    """Raised when the service configuration is missing or malformed."""


class TopologyOrderError(BlueGreenError, RuntimeError):
    """Raised when a resource is referenced before it exists in the stack."""
