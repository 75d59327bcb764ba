# src/otelconfig/provider.py
"""Pieces shared by the tracer, meter and logger provider builders.

Every builder follows the same policy: build each processor or reader
independently, collect the ConfigurationErrors, and when anything failed
release what was already built and hand back the signal's no-op provider
together with the joined errors.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

from otelconfig.errors import ConfigurationError, ConfigurationErrors, InvalidTuningParameterError, join_errors
from otelconfig.model import BatchTuningDeclaration

logger = structlog.get_logger(__name__)

P = TypeVar("P")
C = TypeVar("C")
D = TypeVar("D")


def _no_shutdown(timeout_millis: float | None = None) -> None:
    return None


@dataclass(frozen=True)
class ProviderResult(Generic[P]):
    """Outcome of building one signal's provider.

    Attributes:
        provider: The SDK provider, or the API no-op provider on failure
        shutdown: Flushes and stops the provider; accepts a timeout in ms
        error: Everything that went wrong, or None
        is_noop: True when provider is the API no-op provider
    """

    provider: P
    shutdown: Callable[[float | None], None] = _no_shutdown
    error: ConfigurationErrors | None = None
    is_noop: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def noop(cls, provider: P, error: ConfigurationErrors | None = None) -> ProviderResult[P]:
        return cls(provider=provider, shutdown=_no_shutdown, error=error, is_noop=True)


def build_each(
    declarations: Iterable[D],
    build: Callable[[D], C],
    location: str,
) -> tuple[list[C], list[ConfigurationError]]:
    """Build every declaration, collecting errors instead of stopping.

    Each collected error gets a note naming its position in the document,
    e.g. ``at tracer_provider.processors[1]``.
    """
    built: list[C] = []
    errors: list[ConfigurationError] = []
    for index, declaration in enumerate(declarations):
        try:
            built.append(build(declaration))
        except ConfigurationError as e:
            e.add_note(f"at {location}[{index}]")
            errors.append(e)
    return built, errors


def release(components: Iterable[Any], signal: str) -> None:
    """Shut down components built before a sibling failed."""
    for component in components:
        try:
            component.shutdown()
        except Exception as e:
            logger.warning("component_release_failed", signal=signal, component=type(component).__name__, error=str(e))


def fail(noop_provider: P, errors: list[ConfigurationError], signal: str) -> ProviderResult[P]:
    """Result for a builder that collected errors."""
    aggregate = join_errors(errors)
    logger.warning(
        "provider_build_failed",
        signal=signal,
        error_count=len(aggregate) if aggregate is not None else 0,
        errors=[str(e) for e in aggregate or ()],
    )
    return ProviderResult.noop(noop_provider, aggregate)


def batch_kwargs(declaration: BatchTuningDeclaration) -> dict[str, int]:
    """Validate batch tuning and convert it to SDK processor arguments.

    Values are checked in the order batch size, export timeout, queue size,
    schedule delay. Zero or unset leaves the SDK default in place.

    Raises:
        InvalidTuningParameterError: A negative value, or a batch size
            larger than the queue
    """
    checks = (
        ("batch size", declaration.max_export_batch_size, "max_export_batch_size"),
        ("export timeout", declaration.export_timeout, "export_timeout_millis"),
        ("queue size", declaration.max_queue_size, "max_queue_size"),
        ("schedule delay", declaration.schedule_delay, "schedule_delay_millis"),
    )
    kwargs: dict[str, int] = {}
    for parameter, value, keyword in checks:
        if value is None:
            continue
        if value < 0:
            raise InvalidTuningParameterError(parameter, value)
        if value > 0:
            kwargs[keyword] = value

    batch = kwargs.get("max_export_batch_size")
    queue = kwargs.get("max_queue_size")
    if batch is not None and queue is not None and batch > queue:
        raise InvalidTuningParameterError("batch size", batch, f"must not exceed queue size {queue}")
    return kwargs
