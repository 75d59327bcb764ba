# tests/test_logs.py
"""Tests for logger provider construction."""

import pytest
from opentelemetry._logs import NoOpLoggerProvider
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, SimpleLogRecordProcessor
from opentelemetry.sdk.resources import Resource

from otelconfig.errors import InvalidTuningParameterError, MultipleExportersError, NoValidExporterError
from otelconfig.logs import build_log_record_processor, build_logger_provider
from otelconfig.model import LoggerProviderDeclaration, LogRecordProcessorDeclaration
from otelconfig.otlp import Signal
from tests.helpers import ExporterRecorder

RESOURCE = Resource({"service.name": "log-tests"})


def _processor(data: dict) -> LogRecordProcessorDeclaration:
    return LogRecordProcessorDeclaration.model_validate(data)


class TestBuildLogRecordProcessor:
    def test_simple_console(self) -> None:
        processor = build_log_record_processor(_processor({"simple": {"exporter": {"console": None}}}))
        assert isinstance(processor, SimpleLogRecordProcessor)
        processor.shutdown()

    def test_batch_otlp(self, recording_exporters: ExporterRecorder) -> None:
        processor = build_log_record_processor(
            _processor(
                {
                    "batch": {
                        "schedule_delay": 200,
                        "exporter": {"otlp": {"protocol": "http/protobuf", "endpoint": "https://collector:4318"}},
                    }
                }
            )
        )
        try:
            assert isinstance(processor, BatchLogRecordProcessor)
            (exporter,) = recording_exporters.instances(Signal.LOGS)
            assert exporter.kwargs["endpoint"] == "https://collector:4318/v1/logs"
        finally:
            processor.shutdown()

    def test_negative_tuning(self) -> None:
        with pytest.raises(InvalidTuningParameterError, match="invalid export timeout -5"):
            build_log_record_processor(_processor({"batch": {"export_timeout": -5, "exporter": {"console": None}}}))

    def test_no_exporter(self) -> None:
        with pytest.raises(NoValidExporterError, match="no valid log exporter"):
            build_log_record_processor(_processor({"batch": {"exporter": {}}}))

    def test_multiple_exporters(self) -> None:
        with pytest.raises(MultipleExportersError):
            build_log_record_processor(
                _processor({"simple": {"exporter": {"console": None, "otlp": {"protocol": "grpc"}}}})
            )


class TestBuildLoggerProvider:
    def test_absent_block_is_noop_without_error(self) -> None:
        result = build_logger_provider(None, RESOURCE)
        assert isinstance(result.provider, NoOpLoggerProvider)
        assert result.ok
        assert result.is_noop

    def test_sdk_provider(self, recording_exporters: ExporterRecorder) -> None:
        result = build_logger_provider(
            LoggerProviderDeclaration.model_validate(
                {
                    "processors": [
                        {"simple": {"exporter": {"console": None}}},
                        {"batch": {"exporter": {"otlp": {"protocol": "grpc", "endpoint": "localhost:4317"}}}},
                    ]
                }
            ),
            RESOURCE,
        )
        assert result.ok
        assert isinstance(result.provider, LoggerProvider)
        assert result.provider.resource is RESOURCE
        result.shutdown(1000)
        (exporter,) = recording_exporters.instances(Signal.LOGS)
        assert exporter.shut_down

    def test_errors_collected_and_built_processors_released(self, recording_exporters: ExporterRecorder) -> None:
        result = build_logger_provider(
            LoggerProviderDeclaration.model_validate(
                {
                    "processors": [
                        {"simple": {"exporter": {"otlp": {"protocol": "grpc"}}}},
                        {"simple": {"exporter": {"otlp": {"protocol": "thrift"}}}},
                        {},
                    ]
                }
            ),
            RESOURCE,
        )
        assert isinstance(result.provider, NoOpLoggerProvider)
        assert result.error is not None
        assert len(result.error) == 2
        assert 'unsupported protocol "thrift"' in str(result.error)
        assert "unsupported log processor type" in str(result.error)
        (exporter,) = recording_exporters.instances(Signal.LOGS)
        assert exporter.shut_down
