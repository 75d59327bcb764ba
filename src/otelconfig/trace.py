# src/otelconfig/trace.py
"""Tracer provider construction: exporters, processors, samplers, limits."""

from __future__ import annotations

from typing import Any

import structlog
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanLimits, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_OFF, ALWAYS_ON, ParentBased, Sampler, TraceIdRatioBased
from opentelemetry.trace import NoOpTracerProvider

from otelconfig.errors import ComponentUnavailableError, ConfigurationError, InvalidTuningParameterError
from otelconfig.model import (
    AlwaysOffSamplerDeclaration,
    AlwaysOnSamplerDeclaration,
    AttributeLimitsDeclaration,
    BatchSpanProcessorDeclaration,
    JaegerRemoteSamplerDeclaration,
    OTLPExporterDeclaration,
    ParentBasedSamplerDeclaration,
    SamplerDeclaration,
    SpanExporterDeclaration,
    SpanLimitsDeclaration,
    SpanProcessorDeclaration,
    TraceIdRatioBasedSamplerDeclaration,
    TracerProviderDeclaration,
    ZipkinExporterDeclaration,
)
from otelconfig.otlp import Signal, build_otlp_exporter, parse_endpoint
from otelconfig.provider import ProviderResult, batch_kwargs, build_each, fail, release

logger = structlog.get_logger(__name__)

DEFAULT_SAMPLER: Sampler = ParentBased(ALWAYS_ON)


def build_zipkin_exporter(declaration: ZipkinExporterDeclaration) -> SpanExporter:
    """Construct the Zipkin JSON exporter.

    Raises:
        InvalidEndpointError: The endpoint is not an http(s) URI
        ComponentUnavailableError: opentelemetry-exporter-zipkin-json is missing
    """
    kwargs: dict[str, Any] = {}
    if declaration.endpoint is not None:
        kwargs["endpoint"] = parse_endpoint(declaration.endpoint).geturl()
    if declaration.timeout is not None:
        if declaration.timeout < 0:
            raise InvalidTuningParameterError("timeout", declaration.timeout)
        if declaration.timeout > 0:
            kwargs["timeout"] = declaration.timeout / 1000
    try:
        from opentelemetry.exporter.zipkin.json import ZipkinExporter
    except ImportError as e:
        raise ComponentUnavailableError("Zipkin span exporter", "opentelemetry-exporter-zipkin-json", e) from e
    return ZipkinExporter(**kwargs)  # type: ignore[no-any-return]


def build_span_exporter(declaration: SpanExporterDeclaration) -> SpanExporter:
    """Construct the one exporter a span exporter block selects."""
    selected = declaration.variant()
    if isinstance(selected, OTLPExporterDeclaration):
        return build_otlp_exporter(selected, Signal.TRACES)  # type: ignore[no-any-return]
    if isinstance(selected, ZipkinExporterDeclaration):
        return build_zipkin_exporter(selected)
    return ConsoleSpanExporter()


def build_span_processor(declaration: SpanProcessorDeclaration) -> BatchSpanProcessor | SimpleSpanProcessor:
    """Construct a span processor and its exporter.

    Raises:
        MultipleProcessorTypesError: Both batch and simple declared
        UnsupportedProcessorTypeError: Neither declared
        InvalidTuningParameterError: Bad batch tuning
        ConfigurationError: Any exporter problem
    """
    selected = declaration.variant()
    if isinstance(selected, BatchSpanProcessorDeclaration):
        kwargs = batch_kwargs(selected)
        exporter = build_span_exporter(selected.exporter)
        try:
            return BatchSpanProcessor(exporter, **kwargs)
        except ValueError as e:
            exporter.shutdown()
            raise InvalidTuningParameterError(
                "batch size", kwargs.get("max_export_batch_size", 0), str(e)
            ) from e
    return SimpleSpanProcessor(build_span_exporter(selected.exporter))


def build_sampler(declaration: SamplerDeclaration | None) -> Sampler:
    """Construct a sampler tree.

    No declaration means ParentBased(AlwaysOn). A trace_id_ratio_based
    sampler without a ratio samples everything.

    Raises:
        InvalidSamplerError: A block selects zero or several sampler kinds
    """
    if declaration is None:
        return DEFAULT_SAMPLER
    selected = declaration.variant()

    if isinstance(selected, AlwaysOnSamplerDeclaration):
        return ALWAYS_ON
    if isinstance(selected, AlwaysOffSamplerDeclaration):
        return ALWAYS_OFF
    if isinstance(selected, TraceIdRatioBasedSamplerDeclaration):
        return TraceIdRatioBased(selected.ratio if selected.ratio is not None else 1.0)
    if isinstance(selected, ParentBasedSamplerDeclaration):
        return _parent_based(selected)
    return _jaeger_remote_fallback(selected)  # type: ignore[arg-type]


def _parent_based(declaration: ParentBasedSamplerDeclaration) -> Sampler:
    branches: dict[str, Sampler] = {}
    for branch in (
        "remote_parent_sampled",
        "remote_parent_not_sampled",
        "local_parent_sampled",
        "local_parent_not_sampled",
    ):
        nested = getattr(declaration, branch)
        if nested is not None:
            branches[branch] = build_sampler(nested)
    root = build_sampler(declaration.root) if declaration.root is not None else ALWAYS_ON
    return ParentBased(root, **branches)


def _jaeger_remote_fallback(declaration: JaegerRemoteSamplerDeclaration) -> Sampler:
    logger.warning(
        "jaeger_remote_sampler_unsupported",
        endpoint=declaration.endpoint,
        fallback="initial_sampler" if declaration.initial_sampler is not None else "default",
    )
    return build_sampler(declaration.initial_sampler)


def build_span_limits(
    limits: SpanLimitsDeclaration | None,
    attribute_limits: AttributeLimitsDeclaration | None,
) -> SpanLimits | None:
    """Combine span limits with the global attribute limits.

    Returns:
        SpanLimits, or None when neither block sets anything (the SDK then
        reads its OTEL_* environment defaults)
    """
    kwargs: dict[str, int] = {}
    if attribute_limits is not None:
        if attribute_limits.attribute_count_limit is not None:
            kwargs["max_attributes"] = attribute_limits.attribute_count_limit
        if attribute_limits.attribute_value_length_limit is not None:
            kwargs["max_attribute_length"] = attribute_limits.attribute_value_length_limit
    if limits is not None:
        mapping = {
            "attribute_count_limit": "max_span_attributes",
            "attribute_value_length_limit": "max_span_attribute_length",
            "event_count_limit": "max_events",
            "link_count_limit": "max_links",
            "event_attribute_count_limit": "max_event_attributes",
            "link_attribute_count_limit": "max_link_attributes",
        }
        for field_name, keyword in mapping.items():
            value = getattr(limits, field_name)
            if value is not None:
                kwargs[keyword] = value
    if not kwargs:
        return None
    return SpanLimits(**kwargs)


def build_tracer_provider(
    declaration: TracerProviderDeclaration | None,
    resource: Resource,
    attribute_limits: AttributeLimitsDeclaration | None = None,
) -> ProviderResult[Any]:
    """Build the tracer provider for a document.

    Args:
        declaration: The ``tracer_provider`` block
        resource: Resource shared by every provider
        attribute_limits: The document's global ``attribute_limits``

    Returns:
        ProviderResult holding an SDK TracerProvider, or the no-op provider
        with the collected errors. A missing block yields the no-op provider
        and no error.
    """
    if declaration is None:
        return ProviderResult.noop(NoOpTracerProvider())

    errors: list[ConfigurationError] = []
    sampler = DEFAULT_SAMPLER
    try:
        sampler = build_sampler(declaration.sampler)
    except ConfigurationError as e:
        e.add_note("at tracer_provider.sampler")
        errors.append(e)

    processors, processor_errors = build_each(declaration.processors, build_span_processor, "tracer_provider.processors")
    errors.extend(processor_errors)
    if errors:
        release(processors, "traces")
        return fail(NoOpTracerProvider(), errors, "traces")

    provider = TracerProvider(
        sampler=sampler,
        resource=resource,
        span_limits=build_span_limits(declaration.limits, attribute_limits),
    )
    for processor in processors:
        provider.add_span_processor(processor)

    logger.info("tracer_provider_built", processors=len(processors), sampler=sampler.get_description())

    def shutdown(timeout_millis: float | None = None) -> None:
        provider.shutdown()

    return ProviderResult(provider=provider, shutdown=shutdown)
