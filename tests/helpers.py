# tests/helpers.py
"""Exporter doubles and fixture paths shared across the test suite.

The recording exporters stand in for the OTLP exporter classes so building a
full SDK never opens a network connection. Each double keeps the keyword
arguments it was constructed with.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from opentelemetry.sdk._logs.export import LogExporter, LogExportResult
from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from otelconfig.otlp import Signal

FIXTURES_DIR = Path(__file__).parent / "fixtures"
DOCUMENTS_DIR = FIXTURES_DIR / "documents"
TLS_DIR = FIXTURES_DIR / "tls"


class RecordingSpanExporter(SpanExporter):
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.shut_down = False

    def export(self, spans: Sequence[Any]) -> SpanExportResult:
        return SpanExportResult.SUCCESS

    def force_flush(self, timeout_millis: int = 30_000) -> bool:
        return True

    def shutdown(self) -> None:
        self.shut_down = True


class RecordingMetricExporter(MetricExporter):
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.shut_down = False
        super().__init__(
            preferred_temporality=kwargs.get("preferred_temporality"),
            preferred_aggregation=kwargs.get("preferred_aggregation"),
        )

    def export(self, metrics_data: Any, timeout_millis: float = 10_000, **kwargs: Any) -> MetricExportResult:
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs: Any) -> None:
        self.shut_down = True


class RecordingLogExporter(LogExporter):
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.shut_down = False

    def export(self, batch: Sequence[Any]) -> LogExportResult:
        return LogExportResult.SUCCESS

    def force_flush(self, timeout_millis: int = 30_000) -> bool:
        return True

    def shutdown(self) -> None:
        self.shut_down = True


class ExporterRecorder:
    """Hands out recording exporter classes and remembers every instance."""

    _classes = {
        Signal.TRACES: RecordingSpanExporter,
        Signal.METRICS: RecordingMetricExporter,
        Signal.LOGS: RecordingLogExporter,
    }

    def __init__(self) -> None:
        self.created: list[tuple[Signal, str, Any]] = []

    def exporter_class(self, signal: Signal, transport: str) -> type:
        base = self._classes[signal]
        recorder = self

        class Recording(base):  # type: ignore[valid-type,misc]
            def __init__(self, **kwargs: Any) -> None:
                super().__init__(**kwargs)
                recorder.created.append((signal, transport, self))

        return Recording

    def instances(self, signal: Signal) -> list[Any]:
        return [instance for created_signal, _, instance in self.created if created_signal == signal]
