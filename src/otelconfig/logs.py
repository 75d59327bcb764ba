# src/otelconfig/logs.py
"""Logger provider construction: log record exporters and processors."""

from __future__ import annotations

from typing import Any

import structlog
from opentelemetry._logs import NoOpLoggerProvider
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import (
    BatchLogRecordProcessor,
    ConsoleLogExporter,
    LogExporter,
    SimpleLogRecordProcessor,
)
from opentelemetry.sdk.resources import Resource

from otelconfig.errors import InvalidTuningParameterError
from otelconfig.model import (
    BatchLogRecordProcessorDeclaration,
    LoggerProviderDeclaration,
    LogRecordExporterDeclaration,
    LogRecordProcessorDeclaration,
    OTLPExporterDeclaration,
)
from otelconfig.otlp import Signal, build_otlp_exporter
from otelconfig.provider import ProviderResult, batch_kwargs, build_each, fail, release

logger = structlog.get_logger(__name__)


def build_log_record_exporter(declaration: LogRecordExporterDeclaration) -> LogExporter:
    selected = declaration.variant()
    if isinstance(selected, OTLPExporterDeclaration):
        return build_otlp_exporter(selected, Signal.LOGS)  # type: ignore[no-any-return]
    return ConsoleLogExporter()


def build_log_record_processor(
    declaration: LogRecordProcessorDeclaration,
) -> BatchLogRecordProcessor | SimpleLogRecordProcessor:
    """Construct a log record processor and its exporter.

    Raises:
        MultipleProcessorTypesError: Both batch and simple declared
        UnsupportedProcessorTypeError: Neither declared
        InvalidTuningParameterError: Bad batch tuning
        ConfigurationError: Any exporter problem
    """
    selected = declaration.variant()
    if isinstance(selected, BatchLogRecordProcessorDeclaration):
        kwargs = batch_kwargs(selected)
        exporter = build_log_record_exporter(selected.exporter)
        try:
            return BatchLogRecordProcessor(exporter, **kwargs)
        except ValueError as e:
            exporter.shutdown()
            raise InvalidTuningParameterError(
                "batch size", kwargs.get("max_export_batch_size", 0), str(e)
            ) from e
    return SimpleLogRecordProcessor(build_log_record_exporter(selected.exporter))


def build_logger_provider(declaration: LoggerProviderDeclaration | None, resource: Resource) -> ProviderResult[Any]:
    """Build the logger provider for a document.

    Returns:
        ProviderResult holding an SDK LoggerProvider, or the no-op provider
        with the collected errors. A missing block yields the no-op provider
        and no error.
    """
    if declaration is None:
        return ProviderResult.noop(NoOpLoggerProvider())

    processors, errors = build_each(declaration.processors, build_log_record_processor, "logger_provider.processors")
    if errors:
        release(processors, "logs")
        return fail(NoOpLoggerProvider(), errors, "logs")

    provider = LoggerProvider(resource=resource)
    for processor in processors:
        provider.add_log_record_processor(processor)
    logger.info("logger_provider_built", processors=len(processors))

    def shutdown(timeout_millis: float | None = None) -> None:
        provider.shutdown()

    return ProviderResult(provider=provider, shutdown=shutdown)
