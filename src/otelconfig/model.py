# src/otelconfig/model.py
"""Typed declarations for a configuration document.

Every class here mirrors one object of the configuration file and is a frozen
pydantic model. The models are deliberately permissive about *which*
alternative a block selects: a document declaring both ``batch`` and
``simple`` for one processor still parses. Choosing exactly one alternative is
the job of ``variant()``, which raises the structural ConfigurationError that
the provider builders collect.

Presence matters for the marker alternatives (``console``, ``always_on``,
``drop`` ...). In YAML these are written as a bare key with a null value, so
"declared" is tracked through ``model_fields_set`` rather than ``is not None``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from otelconfig.errors import (
    InvalidSamplerError,
    InvalidViewError,
    MultipleExportersError,
    MultipleProcessorTypesError,
    NoValidExporterError,
    UnsupportedProcessorTypeError,
)

AttributeType = Literal[
    "string",
    "bool",
    "int",
    "double",
    "string_array",
    "bool_array",
    "int_array",
    "double_array",
]


class _Declaration(BaseModel):
    """Base for every declaration: immutable, unknown keys ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)


class _AlternativesDeclaration(_Declaration):
    """A declaration whose keys are mutually exclusive alternatives.

    Subclasses list their alternative field names in ALTERNATIVES. Fields that
    are written as bare keys (``console:``) are listed in MARKERS together with
    the class instantiated when the key is present with a null value.
    """

    ALTERNATIVES: ClassVar[tuple[str, ...]] = ()
    MARKERS: ClassVar[Mapping[str, type[_Declaration]]] = {}

    def declared_alternatives(self) -> list[_Declaration]:
        """Return every alternative the document declared, in field order."""
        chosen: list[_Declaration] = []
        for name in self.ALTERNATIVES:
            value = getattr(self, name)
            if value is None and name in self.MARKERS and name in self.model_fields_set:
                value = self.MARKERS[name]()
            if value is not None:
                chosen.append(value)
        return chosen


# === Shared leaves ===


class NameStringValuePair(_Declaration):
    """One entry of a structured header list."""

    name: str = Field(description="Header name")
    value: str | None = Field(description="Header value; null entries are skipped")


class IncludeExcludeDeclaration(_Declaration):
    """Include/exclude lists used for attribute keys and label filters."""

    included: list[str] | None = Field(default=None, description="Keys to keep; absent means all")
    excluded: list[str] | None = Field(default=None, description="Keys to drop; applied after included")


class AttributeNameValue(_Declaration):
    """One typed resource attribute."""

    name: str = Field(description="Attribute key")
    value: Any = Field(default=None, description="Attribute value")
    type: AttributeType | None = Field(default=None, description="Declared value type; inferred when absent")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("attribute name must not be empty")
        return v

    @model_validator(mode="after")
    def validate_value_present(self) -> AttributeNameValue:
        if self.value is None:
            raise ValueError(f"attribute {self.name!r} must have a non-null value")
        return self


class ResourceDeclaration(_Declaration):
    """Resource attributes and schema URL merged over the process defaults."""

    attributes: list[AttributeNameValue] | None = Field(default=None, description="Typed attributes")
    attributes_list: str | None = Field(
        default=None,
        description="Delimited k=v,k2=v2 attributes; structured attributes win per key",
    )
    schema_url: str | None = Field(default=None, description="Resource schema URL")


class AttributeLimitsDeclaration(_Declaration):
    """Global attribute limits applied where a signal has none of its own."""

    attribute_value_length_limit: int | None = Field(default=None, ge=0)
    attribute_count_limit: int | None = Field(default=None, ge=0)


# === Exporters ===


class ConsoleExporterDeclaration(_Declaration):
    """Marker for the console exporter of any signal."""


class OTLPExporterDeclaration(_Declaration):
    """OTLP exporter settings shared by traces, metrics and logs."""

    protocol: str | None = Field(default=None, description="http/protobuf, grpc or grpc/protobuf")
    endpoint: str | None = Field(default=None, description="Collector endpoint")
    certificate: str | None = Field(default=None, description="Path to the CA certificate")
    client_key: str | None = Field(default=None, description="Path to the client private key")
    client_certificate: str | None = Field(default=None, description="Path to the client certificate")
    headers: list[NameStringValuePair] | None = Field(default=None, description="Structured headers")
    headers_list: str | None = Field(default=None, description="Delimited k=v,k2=v2 headers")
    compression: str | None = Field(default=None, description="gzip or none")
    timeout: int | None = Field(default=None, description="Export timeout in milliseconds")
    insecure: bool | None = Field(default=None, description="Disable TLS for gRPC endpoints without a scheme")


class OTLPMetricExporterDeclaration(OTLPExporterDeclaration):
    """OTLP exporter settings with the metric-only preferences."""

    temporality_preference: str | None = Field(default=None, description="cumulative, delta or low_memory")
    default_histogram_aggregation: str | None = Field(
        default=None,
        description="explicit_bucket_histogram or base2_exponential_bucket_histogram",
    )


class ZipkinExporterDeclaration(_Declaration):
    """Zipkin span exporter settings."""

    endpoint: str | None = Field(default=None, description="Zipkin collector URL")
    timeout: int | None = Field(default=None, description="Export timeout in milliseconds")


class PrometheusExporterDeclaration(_Declaration):
    """Prometheus pull exporter settings."""

    host: str | None = Field(default=None, description="Interface to bind the scrape endpoint to")
    port: int | None = Field(default=None, description="Port of the scrape endpoint")
    without_units: bool | None = None
    without_type_suffix: bool | None = None
    without_scope_info: bool | None = None
    without_target_info: bool | None = None
    with_resource_constant_labels: IncludeExcludeDeclaration | None = None


class SpanExporterDeclaration(_AlternativesDeclaration):
    """Exactly one of console, otlp or zipkin."""

    ALTERNATIVES: ClassVar[tuple[str, ...]] = ("console", "otlp", "zipkin")
    MARKERS: ClassVar[Mapping[str, type[_Declaration]]] = {"console": ConsoleExporterDeclaration}

    console: ConsoleExporterDeclaration | None = None
    otlp: OTLPExporterDeclaration | None = None
    zipkin: ZipkinExporterDeclaration | None = None

    def variant(self) -> ConsoleExporterDeclaration | OTLPExporterDeclaration | ZipkinExporterDeclaration:
        """Return the selected exporter.

        Raises:
            NoValidExporterError: Nothing selected
            MultipleExportersError: More than one alternative selected
        """
        return _exactly_one_exporter(self, "span")  # type: ignore[return-value]


class LogRecordExporterDeclaration(_AlternativesDeclaration):
    """Exactly one of console or otlp."""

    ALTERNATIVES: ClassVar[tuple[str, ...]] = ("console", "otlp")
    MARKERS: ClassVar[Mapping[str, type[_Declaration]]] = {"console": ConsoleExporterDeclaration}

    console: ConsoleExporterDeclaration | None = None
    otlp: OTLPExporterDeclaration | None = None

    def variant(self) -> ConsoleExporterDeclaration | OTLPExporterDeclaration:
        return _exactly_one_exporter(self, "log")  # type: ignore[return-value]


class PushMetricExporterDeclaration(_AlternativesDeclaration):
    """Exactly one of console or otlp, for periodic readers."""

    ALTERNATIVES: ClassVar[tuple[str, ...]] = ("console", "otlp")
    MARKERS: ClassVar[Mapping[str, type[_Declaration]]] = {"console": ConsoleExporterDeclaration}

    console: ConsoleExporterDeclaration | None = None
    otlp: OTLPMetricExporterDeclaration | None = None

    def variant(self) -> ConsoleExporterDeclaration | OTLPMetricExporterDeclaration:
        return _exactly_one_exporter(self, "metric")  # type: ignore[return-value]


class PullMetricExporterDeclaration(_AlternativesDeclaration):
    """Pull exporters; prometheus is the only one defined."""

    ALTERNATIVES: ClassVar[tuple[str, ...]] = ("prometheus",)

    prometheus: PrometheusExporterDeclaration | None = None

    def variant(self) -> PrometheusExporterDeclaration:
        return _exactly_one_exporter(self, "metric")  # type: ignore[return-value]


def _exactly_one_exporter(declaration: _AlternativesDeclaration, signal: str) -> _Declaration:
    chosen = declaration.declared_alternatives()
    if len(chosen) > 1:
        raise MultipleExportersError()
    if not chosen:
        raise NoValidExporterError(signal)
    return chosen[0]


# === Processors and readers ===


class BatchTuningDeclaration(_Declaration):
    """Tuning shared by the batch span and log record processors.

    All values are milliseconds or counts. Zero or absent means the SDK
    default; negative values are rejected when the processor is built.
    """

    schedule_delay: int | None = Field(default=None, description="Delay between exports (ms)")
    export_timeout: int | None = Field(default=None, description="Maximum export duration (ms)")
    max_queue_size: int | None = Field(default=None, description="Queue capacity")
    max_export_batch_size: int | None = Field(default=None, description="Records per export")


class BatchSpanProcessorDeclaration(BatchTuningDeclaration):
    exporter: SpanExporterDeclaration = Field(default_factory=SpanExporterDeclaration)


class SimpleSpanProcessorDeclaration(_Declaration):
    exporter: SpanExporterDeclaration = Field(default_factory=SpanExporterDeclaration)


class SpanProcessorDeclaration(_AlternativesDeclaration):
    """Exactly one of batch or simple."""

    ALTERNATIVES: ClassVar[tuple[str, ...]] = ("batch", "simple")

    batch: BatchSpanProcessorDeclaration | None = None
    simple: SimpleSpanProcessorDeclaration | None = None

    def variant(self) -> BatchSpanProcessorDeclaration | SimpleSpanProcessorDeclaration:
        return _exactly_one_processor(self, "span processor", "simple or batch")  # type: ignore[return-value]


class BatchLogRecordProcessorDeclaration(BatchTuningDeclaration):
    exporter: LogRecordExporterDeclaration = Field(default_factory=LogRecordExporterDeclaration)


class SimpleLogRecordProcessorDeclaration(_Declaration):
    exporter: LogRecordExporterDeclaration = Field(default_factory=LogRecordExporterDeclaration)


class LogRecordProcessorDeclaration(_AlternativesDeclaration):
    """Exactly one of batch or simple."""

    ALTERNATIVES: ClassVar[tuple[str, ...]] = ("batch", "simple")

    batch: BatchLogRecordProcessorDeclaration | None = None
    simple: SimpleLogRecordProcessorDeclaration | None = None

    def variant(self) -> BatchLogRecordProcessorDeclaration | SimpleLogRecordProcessorDeclaration:
        return _exactly_one_processor(self, "log processor", "simple or batch")  # type: ignore[return-value]


class PeriodicMetricReaderDeclaration(_Declaration):
    """Push reader exporting on a fixed interval."""

    interval: int | None = Field(default=None, description="Export interval (ms)")
    timeout: int | None = Field(default=None, description="Export timeout (ms)")
    exporter: PushMetricExporterDeclaration = Field(default_factory=PushMetricExporterDeclaration)


class PullMetricReaderDeclaration(_Declaration):
    """Reader collected on demand by a scraper."""

    exporter: PullMetricExporterDeclaration = Field(default_factory=PullMetricExporterDeclaration)


class MetricReaderDeclaration(_AlternativesDeclaration):
    """Exactly one of periodic or pull."""

    ALTERNATIVES: ClassVar[tuple[str, ...]] = ("periodic", "pull")

    periodic: PeriodicMetricReaderDeclaration | None = None
    pull: PullMetricReaderDeclaration | None = None

    def variant(self) -> PeriodicMetricReaderDeclaration | PullMetricReaderDeclaration:
        return _exactly_one_processor(self, "metric reader", "periodic or pull")  # type: ignore[return-value]


def _exactly_one_processor(declaration: _AlternativesDeclaration, component: str, choices: str) -> _Declaration:
    chosen = declaration.declared_alternatives()
    if len(chosen) > 1:
        raise MultipleProcessorTypesError(component)
    if not chosen:
        raise UnsupportedProcessorTypeError(component, choices)
    return chosen[0]


# === Samplers ===


class AlwaysOnSamplerDeclaration(_Declaration):
    """Marker: sample everything."""


class AlwaysOffSamplerDeclaration(_Declaration):
    """Marker: sample nothing."""


class TraceIdRatioBasedSamplerDeclaration(_Declaration):
    ratio: float | None = Field(default=None, ge=0.0, le=1.0, description="Sampling probability; defaults to 1")


class ParentBasedSamplerDeclaration(_Declaration):
    """Delegate by parent context; every branch defaults per the SDK."""

    root: SamplerDeclaration | None = None
    remote_parent_sampled: SamplerDeclaration | None = None
    remote_parent_not_sampled: SamplerDeclaration | None = None
    local_parent_sampled: SamplerDeclaration | None = None
    local_parent_not_sampled: SamplerDeclaration | None = None


class JaegerRemoteSamplerDeclaration(_Declaration):
    endpoint: str | None = None
    interval: int | None = None
    initial_sampler: SamplerDeclaration | None = None


class SamplerDeclaration(_AlternativesDeclaration):
    """Exactly one sampler kind; parent_based nests further samplers."""

    ALTERNATIVES: ClassVar[tuple[str, ...]] = (
        "always_on",
        "always_off",
        "trace_id_ratio_based",
        "parent_based",
        "jaeger_remote",
    )
    MARKERS: ClassVar[Mapping[str, type[_Declaration]]] = {
        "always_on": AlwaysOnSamplerDeclaration,
        "always_off": AlwaysOffSamplerDeclaration,
        "trace_id_ratio_based": TraceIdRatioBasedSamplerDeclaration,
        "parent_based": ParentBasedSamplerDeclaration,
        "jaeger_remote": JaegerRemoteSamplerDeclaration,
    }

    always_on: AlwaysOnSamplerDeclaration | None = None
    always_off: AlwaysOffSamplerDeclaration | None = None
    trace_id_ratio_based: TraceIdRatioBasedSamplerDeclaration | None = None
    parent_based: ParentBasedSamplerDeclaration | None = None
    jaeger_remote: JaegerRemoteSamplerDeclaration | None = None

    def variant(
        self,
    ) -> (
        AlwaysOnSamplerDeclaration
        | AlwaysOffSamplerDeclaration
        | TraceIdRatioBasedSamplerDeclaration
        | ParentBasedSamplerDeclaration
        | JaegerRemoteSamplerDeclaration
    ):
        chosen = self.declared_alternatives()
        if len(chosen) > 1:
            raise InvalidSamplerError("must not specify multiple sampler types")
        if not chosen:
            raise InvalidSamplerError("invalid sampler configuration: no sampler type selected")
        return chosen[0]  # type: ignore[return-value]


ParentBasedSamplerDeclaration.model_rebuild()
JaegerRemoteSamplerDeclaration.model_rebuild()


# === Views ===


class ViewSelectorDeclaration(_Declaration):
    """Criteria an instrument must meet for the view to apply.

    instrument_type stays a plain string here so an unknown kind is reported
    as an InvalidInstrumentTypeError at build time rather than a decode error.
    """

    instrument_name: str | None = None
    instrument_type: str | None = None
    unit: str | None = None
    meter_name: str | None = None
    meter_version: str | None = None
    meter_schema_url: str | None = None


class DefaultAggregationDeclaration(_Declaration):
    """Marker: keep the instrument's default aggregation."""


class DropAggregationDeclaration(_Declaration):
    """Marker: drop all measurements."""


class SumAggregationDeclaration(_Declaration):
    """Marker: sum aggregation."""


class LastValueAggregationDeclaration(_Declaration):
    """Marker: last value aggregation."""


class ExplicitBucketHistogramDeclaration(_Declaration):
    boundaries: list[float] | None = None
    record_min_max: bool | None = None


class Base2ExponentialBucketHistogramDeclaration(_Declaration):
    max_scale: int | None = None
    max_size: int | None = None
    record_min_max: bool | None = None


class AggregationDeclaration(_AlternativesDeclaration):
    """At most one aggregation override."""

    ALTERNATIVES: ClassVar[tuple[str, ...]] = (
        "default",
        "drop",
        "sum",
        "last_value",
        "explicit_bucket_histogram",
        "base2_exponential_bucket_histogram",
    )
    MARKERS: ClassVar[Mapping[str, type[_Declaration]]] = {
        "default": DefaultAggregationDeclaration,
        "drop": DropAggregationDeclaration,
        "sum": SumAggregationDeclaration,
        "last_value": LastValueAggregationDeclaration,
    }

    default: DefaultAggregationDeclaration | None = None
    drop: DropAggregationDeclaration | None = None
    sum: SumAggregationDeclaration | None = None
    last_value: LastValueAggregationDeclaration | None = None
    explicit_bucket_histogram: ExplicitBucketHistogramDeclaration | None = None
    base2_exponential_bucket_histogram: Base2ExponentialBucketHistogramDeclaration | None = None

    def variant(
        self,
    ) -> (
        DefaultAggregationDeclaration
        | DropAggregationDeclaration
        | SumAggregationDeclaration
        | LastValueAggregationDeclaration
        | ExplicitBucketHistogramDeclaration
        | Base2ExponentialBucketHistogramDeclaration
    ):
        """Return the selected aggregation; an empty block means default."""
        chosen = self.declared_alternatives()
        if len(chosen) > 1:
            raise InvalidViewError("must not specify multiple aggregations")
        if not chosen:
            return DefaultAggregationDeclaration()
        return chosen[0]  # type: ignore[return-value]


class ViewStreamDeclaration(_Declaration):
    """How matched instruments are reported."""

    name: str | None = None
    description: str | None = None
    aggregation: AggregationDeclaration | None = None
    attribute_keys: IncludeExcludeDeclaration | None = None


class ViewDeclaration(_Declaration):
    selector: ViewSelectorDeclaration | None = None
    stream: ViewStreamDeclaration | None = None


# === Providers ===


class SpanLimitsDeclaration(_Declaration):
    attribute_value_length_limit: int | None = Field(default=None, ge=0)
    attribute_count_limit: int | None = Field(default=None, ge=0)
    event_count_limit: int | None = Field(default=None, ge=0)
    link_count_limit: int | None = Field(default=None, ge=0)
    event_attribute_count_limit: int | None = Field(default=None, ge=0)
    link_attribute_count_limit: int | None = Field(default=None, ge=0)


class TracerProviderDeclaration(_Declaration):
    processors: list[SpanProcessorDeclaration] = Field(default_factory=list)
    limits: SpanLimitsDeclaration | None = None
    sampler: SamplerDeclaration | None = None


class MeterProviderDeclaration(_Declaration):
    readers: list[MetricReaderDeclaration] = Field(default_factory=list)
    views: list[ViewDeclaration] | None = None


class LoggerProviderDeclaration(_Declaration):
    processors: list[LogRecordProcessorDeclaration] = Field(default_factory=list)


class PropagatorDeclaration(_Declaration):
    """Ordered propagator names; null and empty entries are skipped."""

    composite: list[str | None] | None = None


class OpenTelemetryConfiguration(_Declaration):
    """Root of a configuration document.

    Example:
        file_format: "0.3"
        resource:
          attributes:
            - name: service.name
              value: checkout
        tracer_provider:
          processors:
            - batch:
                exporter:
                  otlp:
                    protocol: grpc
                    endpoint: localhost:4317
    """

    file_format: str = Field(description="Schema version the document is written against")
    disabled: bool | None = Field(default=None, description="When true every provider is a no-op")
    attribute_limits: AttributeLimitsDeclaration | None = None
    resource: ResourceDeclaration | None = None
    tracer_provider: TracerProviderDeclaration | None = None
    meter_provider: MeterProviderDeclaration | None = None
    logger_provider: LoggerProviderDeclaration | None = None
    propagator: PropagatorDeclaration | None = None
    instrumentation: dict[str, Any] | None = Field(
        default=None,
        description="Instrumentation-library settings, carried through untouched",
    )

    @field_validator("file_format")
    @classmethod
    def validate_file_format(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("file_format must not be empty")
        return v.strip()
