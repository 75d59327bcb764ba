# tests/test_propagation.py
"""Tests for propagator resolution."""

from unittest.mock import patch

import pytest

from otelconfig.errors import ComponentUnavailableError, UnsupportedPropagatorError
from otelconfig.model import PropagatorDeclaration
from otelconfig.propagation import (
    DEFAULT_PROPAGATORS,
    PROPAGATORS,
    build_propagator,
    create_propagator,
    resolve_propagator_names,
)


class TestResolveNames:
    def test_absent_uses_defaults(self) -> None:
        assert resolve_propagator_names(None) == list(DEFAULT_PROPAGATORS)

    def test_empty_uses_defaults(self) -> None:
        assert resolve_propagator_names([]) == ["tracecontext", "baggage"]
        assert resolve_propagator_names([None, ""]) == ["tracecontext", "baggage"]

    def test_order_kept_and_repeats_dropped(self) -> None:
        assert resolve_propagator_names(["b3", None, "tracecontext", "b3"]) == ["b3", "tracecontext"]


class TestCreatePropagator:
    @pytest.mark.parametrize("name", sorted(PROPAGATORS))
    def test_every_registered_name(self, name: str) -> None:
        assert create_propagator(name).fields

    def test_unknown(self) -> None:
        with pytest.raises(UnsupportedPropagatorError, match="unknown propagator: 'w3c'"):
            create_propagator("w3c")

    def test_missing_package(self) -> None:
        with patch("otelconfig.propagation.importlib.import_module", side_effect=ImportError("gone")):
            with pytest.raises(ComponentUnavailableError, match="opentelemetry-propagator-jaeger"):
                create_propagator("jaeger")


class TestBuildPropagator:
    def test_default_fields(self) -> None:
        result = build_propagator(None)
        assert result.error is None
        assert {"traceparent", "tracestate", "baggage"} <= set(result.propagator.fields)

    def test_composite_order(self) -> None:
        result = build_propagator(PropagatorDeclaration(composite=["b3multi", "tracecontext"]))
        carrier: dict[str, str] = {}
        from opentelemetry import trace
        from opentelemetry.trace import NonRecordingSpan, SpanContext, TraceFlags

        span = NonRecordingSpan(SpanContext(0x1234, 0x5678, is_remote=False, trace_flags=TraceFlags(TraceFlags.SAMPLED)))
        result.propagator.inject(carrier, context=trace.set_span_in_context(span))
        assert "x-b3-traceid" in carrier
        assert "traceparent" in carrier

    def test_unknown_names_reported_alongside_working_ones(self) -> None:
        result = build_propagator(PropagatorDeclaration(composite=["tracecontext", "nope", "also-nope"]))
        assert result.error is not None
        assert [e.name for e in result.error] == ["nope", "also-nope"]
        assert "traceparent" in result.propagator.fields
