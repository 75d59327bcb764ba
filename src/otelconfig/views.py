# src/otelconfig/views.py
"""Metric views: selector matching, stream overrides and SDK conversion.

A view is compiled into a ViewMatcher, which can be used in two ways:

- called directly with an InstrumentDescriptor, returning the stream the
  instrument would be reported as (useful for tests and ``render``)
- converted with ``to_view()`` into an SDK View handed to the MeterProvider

Selector fields are combined with AND. ``instrument_name`` accepts shell-style
wildcards (``*`` and ``?``) and is compared case-insensitively, since
instrument names are case-insensitive; every other field must match exactly.
"""

from __future__ import annotations

from collections.abc import Container
from dataclasses import dataclass, field
from enum import StrEnum
from fnmatch import fnmatchcase
from typing import NamedTuple

import structlog
from opentelemetry.sdk.metrics import (
    Counter,
    Histogram,
    ObservableCounter,
    ObservableGauge,
    ObservableUpDownCounter,
    UpDownCounter,
)
from opentelemetry.sdk.metrics.view import (
    Aggregation,
    DropAggregation,
    ExplicitBucketHistogramAggregation,
    ExponentialBucketHistogramAggregation,
    LastValueAggregation,
    SumAggregation,
    View,
)
from opentelemetry.sdk.util.instrumentation import InstrumentationScope

from otelconfig.errors import InvalidInstrumentTypeError, InvalidViewError
from otelconfig.model import (
    AggregationDeclaration,
    Base2ExponentialBucketHistogramDeclaration,
    DropAggregationDeclaration,
    ExplicitBucketHistogramDeclaration,
    IncludeExcludeDeclaration,
    LastValueAggregationDeclaration,
    SumAggregationDeclaration,
    ViewDeclaration,
)

logger = structlog.get_logger(__name__)

# Limits enforced by the SDK's exponential histogram
_MIN_EXPONENTIAL_MAX_SIZE = 2
_MIN_EXPONENTIAL_SCALE = -10
_MAX_EXPONENTIAL_SCALE = 20


class InstrumentKind(StrEnum):
    """The six instrument kinds a selector can name."""

    COUNTER = "counter"
    UP_DOWN_COUNTER = "up_down_counter"
    HISTOGRAM = "histogram"
    OBSERVABLE_COUNTER = "observable_counter"
    OBSERVABLE_UP_DOWN_COUNTER = "observable_up_down_counter"
    OBSERVABLE_GAUGE = "observable_gauge"

    @property
    def sdk_class(self) -> type:
        return _SDK_INSTRUMENT_CLASSES[self]


_SDK_INSTRUMENT_CLASSES: dict[InstrumentKind, type] = {
    InstrumentKind.COUNTER: Counter,
    InstrumentKind.UP_DOWN_COUNTER: UpDownCounter,
    InstrumentKind.HISTOGRAM: Histogram,
    InstrumentKind.OBSERVABLE_COUNTER: ObservableCounter,
    InstrumentKind.OBSERVABLE_UP_DOWN_COUNTER: ObservableUpDownCounter,
    InstrumentKind.OBSERVABLE_GAUGE: ObservableGauge,
}


def instrument_kind(value: str) -> InstrumentKind:
    """Parse an instrument_type string.

    Raises:
        InvalidInstrumentTypeError: Not one of the six kinds
    """
    try:
        return InstrumentKind(value)
    except ValueError:
        raise InvalidInstrumentTypeError(value) from None


@dataclass(frozen=True)
class InstrumentDescriptor:
    """What a selector is matched against."""

    name: str
    kind: InstrumentKind
    unit: str = ""
    description: str = ""
    scope: InstrumentationScope = field(default_factory=lambda: InstrumentationScope(""))


@dataclass(frozen=True)
class AttributeKeyFilter(Container[str]):
    """Attribute keys kept by a stream: ``included`` minus ``excluded``.

    ``included=None`` keeps every key not excluded. An empty ``included``
    keeps nothing.
    """

    included: frozenset[str] | None = None
    excluded: frozenset[str] = frozenset()

    def __contains__(self, key: object) -> bool:
        if key in self.excluded:
            return False
        return self.included is None or key in self.included

    @classmethod
    def from_declaration(cls, declaration: IncludeExcludeDeclaration) -> AttributeKeyFilter:
        included = frozenset(declaration.included) if declaration.included is not None else None
        return cls(included=included, excluded=frozenset(declaration.excluded or ()))

    def as_attribute_keys(self) -> Container[str]:
        """Plain set when the kept keys are enumerable, otherwise the filter itself."""
        if self.included is not None:
            return self.included - self.excluded
        return self


@dataclass(frozen=True)
class Stream:
    """How a matched instrument is reported."""

    name: str
    description: str
    unit: str
    attribute_filter: AttributeKeyFilter | None = None
    aggregation: Aggregation | None = None


class ViewMatch(NamedTuple):
    stream: Stream | None
    matched: bool


def compile_aggregation(declaration: AggregationDeclaration | None) -> Aggregation | None:
    """Convert an aggregation override to an SDK aggregation.

    Returns:
        The aggregation, or None to keep the instrument's default

    Raises:
        InvalidViewError: Several overrides, or histogram limits out of range
    """
    if declaration is None:
        return None
    selected = declaration.variant()

    if isinstance(selected, DropAggregationDeclaration):
        return DropAggregation()
    if isinstance(selected, SumAggregationDeclaration):
        return SumAggregation()
    if isinstance(selected, LastValueAggregationDeclaration):
        return LastValueAggregation()
    if isinstance(selected, ExplicitBucketHistogramDeclaration):
        kwargs: dict[str, object] = {}
        if selected.boundaries is not None:
            kwargs["boundaries"] = tuple(selected.boundaries)
        if selected.record_min_max is not None:
            kwargs["record_min_max"] = selected.record_min_max
        return ExplicitBucketHistogramAggregation(**kwargs)  # type: ignore[arg-type]
    if isinstance(selected, Base2ExponentialBucketHistogramDeclaration):
        return _exponential_aggregation(selected)
    return None


def _exponential_aggregation(declaration: Base2ExponentialBucketHistogramDeclaration) -> Aggregation:
    kwargs: dict[str, int] = {}
    if declaration.max_size is not None:
        if declaration.max_size < _MIN_EXPONENTIAL_MAX_SIZE:
            raise InvalidViewError(f"invalid max_size {declaration.max_size}: must be at least {_MIN_EXPONENTIAL_MAX_SIZE}")
        kwargs["max_size"] = declaration.max_size
    if declaration.max_scale is not None:
        if not _MIN_EXPONENTIAL_SCALE <= declaration.max_scale <= _MAX_EXPONENTIAL_SCALE:
            raise InvalidViewError(
                f"invalid max_scale {declaration.max_scale}: must be between {_MIN_EXPONENTIAL_SCALE} and {_MAX_EXPONENTIAL_SCALE}"
            )
        kwargs["max_scale"] = declaration.max_scale
    if declaration.record_min_max is False:
        logger.warning("exponential_histogram_record_min_max_unsupported", record_min_max=False)
    return ExponentialBucketHistogramAggregation(**kwargs)


@dataclass(frozen=True)
class ViewMatcher:
    """A compiled view: selector criteria plus stream overrides.

    Unset selector fields match anything. Unset stream name/description fall
    back to the instrument's own.
    """

    instrument_name: str | None = None
    instrument_kind: InstrumentKind | None = None
    unit: str | None = None
    meter_name: str | None = None
    meter_version: str | None = None
    meter_schema_url: str | None = None
    stream_name: str | None = None
    stream_description: str | None = None
    attribute_filter: AttributeKeyFilter | None = None
    aggregation: Aggregation | None = None

    def matches(self, instrument: InstrumentDescriptor) -> bool:
        if self.instrument_name is not None and not fnmatchcase(
            instrument.name.casefold(), self.instrument_name.casefold()
        ):
            return False
        if self.instrument_kind is not None and instrument.kind != self.instrument_kind:
            return False
        if self.unit is not None and instrument.unit != self.unit:
            return False
        if self.meter_name is not None and instrument.scope.name != self.meter_name:
            return False
        if self.meter_version is not None and instrument.scope.version != self.meter_version:
            return False
        return self.meter_schema_url is None or instrument.scope.schema_url == self.meter_schema_url

    def __call__(self, instrument: InstrumentDescriptor) -> ViewMatch:
        """Return the stream for ``instrument``, or ``(None, False)`` when it does not match."""
        if not self.matches(instrument):
            return ViewMatch(None, False)
        stream = Stream(
            name=self.stream_name if self.stream_name is not None else instrument.name,
            description=self.stream_description if self.stream_description is not None else instrument.description,
            unit=instrument.unit,
            attribute_filter=self.attribute_filter,
            aggregation=self.aggregation,
        )
        return ViewMatch(stream, True)

    def to_view(self) -> View:
        """Convert to an SDK View.

        Raises:
            InvalidViewError: The SDK rejected the combination (for example a
                stream name on a wildcard selector)
        """
        try:
            return View(
                instrument_type=self.instrument_kind.sdk_class if self.instrument_kind is not None else None,
                instrument_name=self.instrument_name,
                meter_name=self.meter_name,
                meter_version=self.meter_version,
                meter_schema_url=self.meter_schema_url,
                instrument_unit=self.unit,
                name=self.stream_name,
                description=self.stream_description,
                attribute_keys=self.attribute_filter.as_attribute_keys() if self.attribute_filter is not None else None,  # type: ignore[arg-type]
                aggregation=self.aggregation,
            )
        except Exception as e:
            raise InvalidViewError(f"view rejected by the SDK: {e}") from e


def compile_view(declaration: ViewDeclaration) -> ViewMatcher:
    """Compile a view declaration.

    Raises:
        InvalidViewError: No selector, or a selector with every field unset, or an
            empty stream name
        InvalidInstrumentTypeError: Unknown instrument_type
    """
    selector = declaration.selector
    if selector is None:
        raise InvalidViewError("view: no selector provided")
    if not selector.model_dump(exclude_none=True):
        raise InvalidViewError("view_selector: empty selector not supported")

    kind = instrument_kind(selector.instrument_type) if selector.instrument_type is not None else None

    stream = declaration.stream
    attribute_filter = None
    aggregation = None
    if stream is not None:
        if stream.name == "":
            raise InvalidViewError("view_stream: name must not be empty")
        if stream.attribute_keys is not None:
            attribute_filter = AttributeKeyFilter.from_declaration(stream.attribute_keys)
        aggregation = compile_aggregation(stream.aggregation)

    return ViewMatcher(
        instrument_name=selector.instrument_name,
        instrument_kind=kind,
        unit=selector.unit,
        meter_name=selector.meter_name,
        meter_version=selector.meter_version,
        meter_schema_url=selector.meter_schema_url,
        stream_name=stream.name if stream is not None else None,
        stream_description=stream.description if stream is not None else None,
        attribute_filter=attribute_filter,
        aggregation=aggregation,
    )
