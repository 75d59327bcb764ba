# src/otelconfig/propagation.py
"""Text map propagator resolution.

Propagators are looked up by name and imported lazily, so the optional
propagator packages (b3, jaeger, xray, ottrace) only need to be installed when
a document names them.
"""

from __future__ import annotations

import importlib
from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple

import structlog
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.textmap import TextMapPropagator

from otelconfig.errors import (
    ComponentUnavailableError,
    ConfigurationError,
    ConfigurationErrors,
    UnsupportedPropagatorError,
    join_errors,
)
from otelconfig.model import PropagatorDeclaration

logger = structlog.get_logger(__name__)

DEFAULT_PROPAGATORS: tuple[str, ...] = ("tracecontext", "baggage")


class _PropagatorTarget(NamedTuple):
    module: str
    attribute: str
    package: str


PROPAGATORS: dict[str, _PropagatorTarget] = {
    "tracecontext": _PropagatorTarget(
        "opentelemetry.trace.propagation.tracecontext", "TraceContextTextMapPropagator", "opentelemetry-api"
    ),
    "baggage": _PropagatorTarget("opentelemetry.baggage.propagation", "W3CBaggagePropagator", "opentelemetry-api"),
    "b3": _PropagatorTarget("opentelemetry.propagators.b3", "B3SingleFormat", "opentelemetry-propagator-b3"),
    "b3multi": _PropagatorTarget("opentelemetry.propagators.b3", "B3MultiFormat", "opentelemetry-propagator-b3"),
    "jaeger": _PropagatorTarget("opentelemetry.propagators.jaeger", "JaegerPropagator", "opentelemetry-propagator-jaeger"),
    "xray": _PropagatorTarget("opentelemetry.propagators.aws", "AwsXRayPropagator", "opentelemetry-propagator-aws-xray"),
    "ottrace": _PropagatorTarget("opentelemetry.propagators.ot_trace", "OTTracePropagator", "opentelemetry-propagator-ot-trace"),
}


@dataclass(frozen=True)
class PropagatorResult:
    """Composite propagator plus any names that could not be resolved."""

    propagator: TextMapPropagator
    error: ConfigurationErrors | None = None


def create_propagator(name: str) -> TextMapPropagator:
    """Instantiate one propagator by name.

    Raises:
        UnsupportedPropagatorError: Unknown name
        ComponentUnavailableError: The propagator's package is not installed
    """
    try:
        target = PROPAGATORS[name]
    except KeyError:
        raise UnsupportedPropagatorError(name) from None
    try:
        module = importlib.import_module(target.module)
    except ImportError as e:
        raise ComponentUnavailableError(f"propagator {name!r}", target.package, e) from e
    return getattr(module, target.attribute)()  # type: ignore[no-any-return]


def resolve_propagator_names(names: Sequence[str | None] | None) -> list[str]:
    """Drop null and empty entries and repeats; fall back to the defaults when nothing is left."""
    resolved: list[str] = []
    for name in names or ():
        if name and name not in resolved:
            resolved.append(name)
    return resolved or list(DEFAULT_PROPAGATORS)


def build_propagator(declaration: PropagatorDeclaration | None) -> PropagatorResult:
    """Build the global text map propagator.

    Unknown names do not stop the others from being used: the composite holds
    every propagator that resolved and ``error`` lists the rest.
    """
    names = resolve_propagator_names(declaration.composite if declaration is not None else None)
    propagators: list[TextMapPropagator] = []
    errors: list[ConfigurationError] = []
    for name in names:
        try:
            propagators.append(create_propagator(name))
        except ConfigurationError as e:
            errors.append(e)

    logger.debug("propagator_built", propagators=names, errors=len(errors))
    return PropagatorResult(CompositePropagator(propagators), join_errors(errors))
