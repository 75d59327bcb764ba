# src/otelconfig/sdk.py
"""The SDK facade: build every provider from one document and own their lifetime.

Lifecycle:
    UNBUILT -> BUILDING -> BUILT -> SHUTTING_DOWN -> SHUTDOWN

``create_sdk`` either returns a BUILT SDK or raises ConfigurationErrors after
releasing everything it had started. ``SDK.shutdown`` runs once; later calls
are ignored with a warning.

Usage:
    from otelconfig import create_sdk, load_file

    sdk = create_sdk(load_file("otel.yaml"))
    tracer = sdk.tracer_provider.get_tracer(__name__)
    ...
    sdk.shutdown(timeout_millis=5000)
"""

from __future__ import annotations

import os
import threading
import time
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

import structlog
from opentelemetry import _logs, metrics, propagate, trace
from opentelemetry._logs import NoOpLoggerProvider
from opentelemetry.metrics import NoOpMeterProvider
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk.resources import Resource
from opentelemetry.trace import NoOpTracerProvider

from otelconfig.errors import (
    ConfigurationError,
    ShutdownError,
    ShutdownTimeoutError,
    join_errors,
)
from otelconfig.loader import load_file
from otelconfig.logs import build_logger_provider
from otelconfig.metric import build_meter_provider
from otelconfig.model import OpenTelemetryConfiguration
from otelconfig.propagation import build_propagator
from otelconfig.provider import ProviderResult
from otelconfig.resource import build_resource
from otelconfig.trace import build_tracer_provider

logger = structlog.get_logger(__name__)

CONFIG_FILE_ENV_VAR = "OTEL_EXPERIMENTAL_CONFIG_FILE"


class SDKState(StrEnum):
    UNBUILT = "unbuilt"
    BUILDING = "building"
    BUILT = "built"
    SHUTTING_DOWN = "shutting_down"
    SHUTDOWN = "shutdown"


class SDK:
    """Providers and propagator built from one configuration document.

    Attributes:
        resource: Resource shared by every provider
        disabled: True when the document set ``disabled: true``
    """

    def __init__(self) -> None:
        self._state = SDKState.UNBUILT
        self._lock = threading.Lock()
        self.resource: Resource = Resource.get_empty()
        self.disabled = False
        self._signals: dict[str, ProviderResult[Any]] = {
            "traces": ProviderResult.noop(NoOpTracerProvider()),
            "metrics": ProviderResult.noop(NoOpMeterProvider()),
            "logs": ProviderResult.noop(NoOpLoggerProvider()),
        }
        self._propagator: TextMapPropagator = CompositePropagator([])

    @property
    def state(self) -> SDKState:
        return self._state

    @property
    def tracer_provider(self) -> Any:
        return self._signals["traces"].provider

    @property
    def meter_provider(self) -> Any:
        return self._signals["metrics"].provider

    @property
    def logger_provider(self) -> Any:
        return self._signals["logs"].provider

    @property
    def propagator(self) -> TextMapPropagator:
        return self._propagator

    def signal(self, name: str) -> ProviderResult[Any]:
        """ProviderResult for ``traces``, ``metrics`` or ``logs``."""
        return self._signals[name]

    def _build(self, document: OpenTelemetryConfiguration, resource_defaults: Resource | None) -> None:
        if self._state is not SDKState.UNBUILT:
            raise RuntimeError(f"SDK can only be built once (state: {self._state})")
        self._state = SDKState.BUILDING

        if document.disabled:
            self.disabled = True
            self._state = SDKState.BUILT
            logger.info("sdk_disabled", file_format=document.file_format)
            return

        errors: list[ConfigurationError] = []
        try:
            self.resource = build_resource(document.resource, defaults=resource_defaults)
        except ConfigurationError as e:
            e.add_note("at resource")
            errors.append(e)
            self.resource = resource_defaults if resource_defaults is not None else Resource.create()

        self._signals = {
            "traces": build_tracer_provider(document.tracer_provider, self.resource, document.attribute_limits),
            "metrics": build_meter_provider(document.meter_provider, self.resource),
            "logs": build_logger_provider(document.logger_provider, self.resource),
        }
        errors.extend(result.error for result in self._signals.values() if result.error is not None)

        propagator_result = build_propagator(document.propagator)
        self._propagator = propagator_result.propagator
        if propagator_result.error is not None:
            errors.append(propagator_result.error)

        aggregate = join_errors(errors)
        if aggregate is not None:
            self._release()
            logger.warning("sdk_build_failed", error_count=len(aggregate))
            raise aggregate

        self._state = SDKState.BUILT
        logger.info(
            "sdk_built",
            file_format=document.file_format,
            signals=[name for name, result in self._signals.items() if not result.is_noop],
        )

    def _release(self) -> None:
        """Shut down whatever a failed build had already started."""
        for name, result in self._signals.items():
            try:
                result.shutdown(None)
            except Exception as e:
                logger.warning("provider_release_failed", signal=name, error=str(e))
        self._state = SDKState.SHUTDOWN

    def shutdown(self, timeout_millis: float | None = None) -> None:
        """Flush and stop every provider.

        Each signal shuts down in its own thread so one slow exporter cannot
        hold up the others. All of them share one deadline.

        Args:
            timeout_millis: Overall deadline; None waits indefinitely

        Raises:
            ShutdownError: One or more providers raised or missed the
                deadline (ShutdownTimeoutError entries)
        """
        with self._lock:
            if self._state in (SDKState.SHUTTING_DOWN, SDKState.SHUTDOWN):
                logger.warning("sdk_shutdown_repeated", state=str(self._state))
                return
            self._state = SDKState.SHUTTING_DOWN

        deadline = None if timeout_millis is None else time.monotonic() + timeout_millis / 1000
        failures: dict[str, BaseException] = {}
        threads: dict[str, threading.Thread] = {}

        for name, result in self._signals.items():
            if result.is_noop:
                continue

            def run(name: str = name, result: ProviderResult[Any] = result) -> None:
                try:
                    result.shutdown(timeout_millis)
                except Exception as e:
                    failures[name] = e

            thread = threading.Thread(target=run, name=f"otelconfig-shutdown-{name}", daemon=True)
            threads[name] = thread
            thread.start()

        errors: list[BaseException] = []
        for name, thread in threads.items():
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
            if thread.is_alive():
                errors.append(ShutdownTimeoutError(name, timeout_millis or 0))
            elif name in failures:
                errors.append(failures[name])

        self._state = SDKState.SHUTDOWN
        if errors:
            logger.warning("sdk_shutdown_failed", errors=[str(e) for e in errors])
            raise ShutdownError(errors)
        logger.info("sdk_shutdown_complete", signals=sorted(threads))


def create_sdk(document: OpenTelemetryConfiguration, *, resource_defaults: Resource | None = None) -> SDK:
    """Build an SDK from a parsed document.

    Args:
        document: Parsed configuration
        resource_defaults: Resource the declared one is merged over;
            ``Resource.create()`` when omitted

    Returns:
        A BUILT SDK. With ``disabled: true`` every provider is a no-op.

    Raises:
        ConfigurationErrors: Every problem found while building, after
            everything already started has been shut down
    """
    sdk = SDK()
    sdk._build(document, resource_defaults)
    return sdk


def install_global(sdk: SDK) -> None:
    """Register the SDK's providers and propagator as the API globals.

    No-op providers are skipped so the API keeps its own defaults.
    """
    if not sdk.signal("traces").is_noop:
        trace.set_tracer_provider(sdk.tracer_provider)
    if not sdk.signal("metrics").is_noop:
        metrics.set_meter_provider(sdk.meter_provider)
    if not sdk.signal("logs").is_noop:
        _logs.set_logger_provider(sdk.logger_provider)
    propagate.set_global_textmap(sdk.propagator)
    logger.debug("sdk_installed_globally")


def configure_from_environment(environ: Mapping[str, str] | None = None) -> SDK | None:
    """Build and install an SDK from the file named by OTEL_EXPERIMENTAL_CONFIG_FILE.

    Returns:
        The installed SDK, or None when the variable is unset or empty

    Raises:
        DecodeError: The file cannot be read or parsed
        ConfigurationErrors: The document does not build
    """
    env = os.environ if environ is None else environ
    path = env.get(CONFIG_FILE_ENV_VAR, "")
    if not path:
        logger.debug("config_file_env_var_unset", variable=CONFIG_FILE_ENV_VAR)
        return None

    sdk = create_sdk(load_file(path, environ=env))
    install_global(sdk)
    return sdk
