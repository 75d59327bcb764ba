# src/otelconfig/metric.py
"""Meter provider construction: readers, exporters and views."""

from __future__ import annotations

import threading
from typing import Any, NamedTuple

import structlog
from opentelemetry.metrics import NoOpMeterProvider
from opentelemetry.sdk.metrics import (
    Counter,
    Histogram,
    MeterProvider,
    ObservableCounter,
    ObservableGauge,
    ObservableUpDownCounter,
    UpDownCounter,
)
from opentelemetry.sdk.metrics.export import (
    AggregationTemporality,
    ConsoleMetricExporter,
    MetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.metrics.view import (
    Aggregation,
    ExplicitBucketHistogramAggregation,
    ExponentialBucketHistogramAggregation,
    View,
)
from opentelemetry.sdk.resources import Resource

from otelconfig.errors import (
    ComponentUnavailableError,
    ConfigurationError,
    InvalidPortError,
    InvalidTuningParameterError,
    MissingHostError,
    MissingPortError,
    UnsupportedAggregationError,
    UnsupportedTemporalityError,
)
from otelconfig.model import (
    MeterProviderDeclaration,
    MetricReaderDeclaration,
    OTLPMetricExporterDeclaration,
    PeriodicMetricReaderDeclaration,
    PrometheusExporterDeclaration,
    PullMetricReaderDeclaration,
    PushMetricExporterDeclaration,
)
from otelconfig.otlp import Signal, build_otlp_exporter
from otelconfig.provider import ProviderResult, build_each, fail, release
from otelconfig.views import compile_view

logger = structlog.get_logger(__name__)

_CUMULATIVE = AggregationTemporality.CUMULATIVE
_DELTA = AggregationTemporality.DELTA

TEMPORALITY_PREFERENCES: dict[str, dict[type, AggregationTemporality]] = {
    "cumulative": {
        Counter: _CUMULATIVE,
        UpDownCounter: _CUMULATIVE,
        Histogram: _CUMULATIVE,
        ObservableCounter: _CUMULATIVE,
        ObservableUpDownCounter: _CUMULATIVE,
        ObservableGauge: _CUMULATIVE,
    },
    "delta": {
        Counter: _DELTA,
        UpDownCounter: _CUMULATIVE,
        Histogram: _DELTA,
        ObservableCounter: _DELTA,
        ObservableUpDownCounter: _CUMULATIVE,
        ObservableGauge: _CUMULATIVE,
    },
    "low_memory": {
        Counter: _DELTA,
        UpDownCounter: _CUMULATIVE,
        Histogram: _DELTA,
        ObservableCounter: _CUMULATIVE,
        ObservableUpDownCounter: _CUMULATIVE,
        ObservableGauge: _CUMULATIVE,
    },
}

_HISTOGRAM_AGGREGATIONS: dict[str, type[Aggregation]] = {
    "explicit_bucket_histogram": ExplicitBucketHistogramAggregation,
    "base2_exponential_bucket_histogram": ExponentialBucketHistogramAggregation,
}


def temporality_preference(value: str) -> dict[type, AggregationTemporality]:
    """Per-instrument temporality for a preference name.

    ``lowmemory`` is accepted as a spelling of ``low_memory``.

    Raises:
        UnsupportedTemporalityError: Unknown preference
    """
    key = "low_memory" if value == "lowmemory" else value
    try:
        return dict(TEMPORALITY_PREFERENCES[key])
    except KeyError:
        raise UnsupportedTemporalityError(value) from None


def default_histogram_aggregation(value: str) -> dict[type, Aggregation]:
    """Histogram aggregation override for an OTLP metric exporter.

    Raises:
        UnsupportedAggregationError: Unknown aggregation name
    """
    try:
        return {Histogram: _HISTOGRAM_AGGREGATIONS[value]()}
    except KeyError:
        raise UnsupportedAggregationError(value) from None


def build_otlp_metric_exporter(declaration: OTLPMetricExporterDeclaration) -> MetricExporter:
    extra: dict[str, Any] = {}
    if declaration.temporality_preference is not None:
        extra["preferred_temporality"] = temporality_preference(declaration.temporality_preference)
    if declaration.default_histogram_aggregation is not None:
        extra["preferred_aggregation"] = default_histogram_aggregation(declaration.default_histogram_aggregation)
    return build_otlp_exporter(declaration, Signal.METRICS, **extra)  # type: ignore[no-any-return]


def build_push_metric_exporter(declaration: PushMetricExporterDeclaration) -> MetricExporter:
    """Construct the one exporter a periodic reader declares."""
    selected = declaration.variant()
    if isinstance(selected, OTLPMetricExporterDeclaration):
        return build_otlp_metric_exporter(selected)
    return ConsoleMetricExporter()


def build_periodic_reader(declaration: PeriodicMetricReaderDeclaration) -> PeriodicExportingMetricReader:
    """Construct a periodic reader.

    Raises:
        InvalidTuningParameterError: Negative interval or timeout
        ConfigurationError: Any exporter problem
    """
    kwargs: dict[str, int] = {}
    for parameter, value, keyword in (
        ("interval", declaration.interval, "export_interval_millis"),
        ("timeout", declaration.timeout, "export_timeout_millis"),
    ):
        if value is None:
            continue
        if value < 0:
            raise InvalidTuningParameterError(parameter, value)
        if value > 0:
            kwargs[keyword] = value
    exporter = build_push_metric_exporter(declaration.exporter)
    return PeriodicExportingMetricReader(exporter, **kwargs)


class PrometheusEndpoint:
    """Scrape endpoint started once the meter provider is built."""

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self._server: Any = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Serve the default prometheus_client registry.

        Raises:
            ConfigurationError: The address cannot be bound
        """
        from prometheus_client import start_http_server

        try:
            server, thread = start_http_server(self.port, addr=self.host)
        except (OSError, OverflowError) as e:
            raise ConfigurationError(f"could not start prometheus endpoint on {self.host}:{self.port}: {e}") from e
        self._server, self._thread = server, thread
        logger.info("prometheus_endpoint_started", host=self.host, port=self.port)

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join()
        self._server, self._thread = None, None
        logger.debug("prometheus_endpoint_stopped", host=self.host, port=self.port)


class BuiltReader(NamedTuple):
    reader: MetricReader
    endpoint: PrometheusEndpoint | None = None


def build_prometheus_reader(declaration: PrometheusExporterDeclaration) -> BuiltReader:
    """Construct a Prometheus reader; its endpoint is started later.

    Raises:
        MissingHostError: host not declared
        MissingPortError: port not declared
        InvalidPortError: port outside 0-65535
        ComponentUnavailableError: opentelemetry-exporter-prometheus is missing
    """
    if declaration.host is None:
        raise MissingHostError()
    if declaration.port is None:
        raise MissingPortError()
    if not 0 <= declaration.port <= 65535:
        raise InvalidPortError(declaration.port)

    unsupported = {
        name: getattr(declaration, name)
        for name in ("without_units", "without_type_suffix", "without_scope_info", "with_resource_constant_labels")
        if getattr(declaration, name)
    }
    if unsupported:
        logger.warning("prometheus_options_unsupported", options=sorted(unsupported))

    try:
        from opentelemetry.exporter.prometheus import PrometheusMetricReader
    except ImportError as e:
        raise ComponentUnavailableError("Prometheus metric reader", "opentelemetry-exporter-prometheus", e) from e

    reader = PrometheusMetricReader(disable_target_info=bool(declaration.without_target_info))
    return BuiltReader(reader, PrometheusEndpoint(host=declaration.host, port=declaration.port))


def build_pull_reader(declaration: PullMetricReaderDeclaration) -> BuiltReader:
    return build_prometheus_reader(declaration.exporter.variant())


def build_metric_reader(declaration: MetricReaderDeclaration) -> BuiltReader:
    """Construct the reader a reader block selects.

    Raises:
        MultipleProcessorTypesError: Both periodic and pull declared
        UnsupportedProcessorTypeError: Neither declared
        ConfigurationError: Any exporter or tuning problem
    """
    selected = declaration.variant()
    if isinstance(selected, PeriodicMetricReaderDeclaration):
        return BuiltReader(build_periodic_reader(selected))
    return build_pull_reader(selected)


def build_views(declaration: MeterProviderDeclaration) -> tuple[list[View], list[ConfigurationError]]:
    """Compile every view, collecting errors per view."""
    return build_each(
        declaration.views or (),
        lambda view: compile_view(view).to_view(),
        "meter_provider.views",
    )


def build_meter_provider(declaration: MeterProviderDeclaration | None, resource: Resource) -> ProviderResult[Any]:
    """Build the meter provider for a document.

    Returns:
        ProviderResult holding an SDK MeterProvider, or the no-op provider
        with the collected reader and view errors. A missing block yields the
        no-op provider and no error.
    """
    if declaration is None:
        return ProviderResult.noop(NoOpMeterProvider())

    built, errors = build_each(declaration.readers, build_metric_reader, "meter_provider.readers")
    views, view_errors = build_views(declaration)
    errors.extend(view_errors)

    endpoints = [entry.endpoint for entry in built if entry.endpoint is not None]
    if not errors:
        for endpoint in endpoints:
            try:
                endpoint.start()
            except ConfigurationError as e:
                errors.append(e)
                break

    if errors:
        for endpoint in endpoints:
            endpoint.stop()
        release([entry.reader for entry in built], "metrics")
        return fail(NoOpMeterProvider(), errors, "metrics")

    provider = MeterProvider(metric_readers=[entry.reader for entry in built], resource=resource, views=views)
    logger.info("meter_provider_built", readers=len(built), views=len(views))

    def shutdown(timeout_millis: float | None = None) -> None:
        try:
            if timeout_millis is None:
                provider.shutdown()
            else:
                provider.shutdown(timeout_millis=timeout_millis)
        finally:
            for endpoint in endpoints:
                endpoint.stop()

    return ProviderResult(provider=provider, shutdown=shutdown)
