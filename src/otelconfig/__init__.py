# src/otelconfig/__init__.py
"""Declarative configuration for the OpenTelemetry Python SDK.

Turns a YAML or JSON document into ready-to-use tracer, meter and logger
providers plus a text map propagator.

Usage:
    from otelconfig import create_sdk, load_file

    sdk = create_sdk(load_file("otel.yaml"))
    tracer = sdk.tracer_provider.get_tracer(__name__)
    sdk.shutdown()
"""

__version__ = "0.1.0"

from otelconfig.errors import (
    ConfigurationError,
    ConfigurationErrors,
    DecodeError,
    ShutdownError,
    ShutdownTimeoutError,
)
from otelconfig.loader import dump, load_file, parse, parse_json, parse_yaml
from otelconfig.model import OpenTelemetryConfiguration
from otelconfig.sdk import SDK, SDKState, configure_from_environment, create_sdk, install_global
from otelconfig.substitution import substitute_env_vars

__all__ = [
    "SDK",
    "ConfigurationError",
    "ConfigurationErrors",
    "DecodeError",
    "OpenTelemetryConfiguration",
    "SDKState",
    "ShutdownError",
    "ShutdownTimeoutError",
    "__version__",
    "configure_from_environment",
    "create_sdk",
    "dump",
    "install_global",
    "load_file",
    "parse",
    "parse_json",
    "parse_yaml",
    "substitute_env_vars",
]
