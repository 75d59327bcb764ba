# tests/schema/test_schema_versions.py
"""Tests for schema version discovery and the built-in adapters."""

from typing import Any

import pytest

from otelconfig.errors import DecodeError, SchemaRegistryError
from otelconfig.loader import load_file, parse_yaml
from otelconfig.schema import (
    BuiltinSchemaVersionsPlugin,
    discover_schema_versions,
    format_key,
    resolve_schema_version,
)
from otelconfig.schema.current import CurrentSchemaVersion
from otelconfig.schema.hookspecs import hookimpl
from otelconfig.schema.legacy import LegacySchemaVersion
from tests.helpers import DOCUMENTS_DIR


class _FutureSchemaVersion:
    name = "future"
    file_formats = frozenset({"1.0"})

    def normalize(self, document: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(document)
        normalized.pop("future_only", None)
        return normalized


class _FuturePlugin:
    @hookimpl
    def otelconfig_get_schema_versions(self) -> list[Any]:
        return [_FutureSchemaVersion()]


class _DuplicatePlugin:
    @hookimpl
    def otelconfig_get_schema_versions(self) -> list[Any]:
        return [CurrentSchemaVersion()]


class _BrokenPlugin:
    @hookimpl
    def otelconfig_get_schema_versions(self) -> list[Any]:
        raise RuntimeError("boom")


class _NotAVersionPlugin:
    @hookimpl
    def otelconfig_get_schema_versions(self) -> list[Any]:
        return [object()]


class TestFormatKey:
    @pytest.mark.parametrize(
        ("file_format", "expected"),
        [("0.3", "0.3"), ("0.3.0", "0.3"), ("1.0-rc.1", "1.0"), (" 0.2 ", "0.2")],
    )
    def test_reduces_to_major_minor(self, file_format: str, expected: str) -> None:
        assert format_key(file_format) == expected


class TestDiscovery:
    """pluggy-based registry construction."""

    def test_builtin_versions(self) -> None:
        registry = discover_schema_versions()
        assert set(registry) == {"0.1", "0.2", "0.3"}
        assert isinstance(registry["0.2"], LegacySchemaVersion)
        assert isinstance(registry["0.3"], CurrentSchemaVersion)

    def test_builtin_plugin_returns_both_adapters(self) -> None:
        names = {version.name for version in BuiltinSchemaVersionsPlugin().otelconfig_get_schema_versions()}
        assert names == {"legacy", "current"}

    def test_extra_plugin_adds_version(self) -> None:
        registry = discover_schema_versions([_FuturePlugin()])
        assert registry["1.0"].name == "future"

    def test_duplicate_file_format_rejected(self) -> None:
        with pytest.raises(SchemaRegistryError) as exc_info:
            discover_schema_versions([_DuplicatePlugin()])
        assert "Duplicate schema version for file_format '0.3'" in str(exc_info.value)

    def test_failing_plugin_is_wrapped(self) -> None:
        with pytest.raises(SchemaRegistryError, match="failed in otelconfig_get_schema_versions: boom"):
            discover_schema_versions([_BrokenPlugin()])

    def test_non_adapter_rejected(self) -> None:
        with pytest.raises(SchemaRegistryError, match="not a SchemaVersion"):
            discover_schema_versions([_NotAVersionPlugin()])

    def test_same_plugin_object_twice_rejected(self) -> None:
        plugin = _FuturePlugin()
        with pytest.raises(SchemaRegistryError, match="Invalid schema plugin"):
            discover_schema_versions([plugin, plugin])

    def test_unknown_file_format(self) -> None:
        with pytest.raises(DecodeError) as exc_info:
            resolve_schema_version("7.1", discover_schema_versions())
        assert "unsupported file_format '7.1'" in str(exc_info.value)
        assert "0.3" in str(exc_info.value)

    def test_loader_uses_extra_plugins(self) -> None:
        config = parse_yaml('file_format: "1.0"\nfuture_only: true', schema_plugins=[_FuturePlugin()])
        assert config.file_format == "1.0"


class TestLegacyAdapter:
    """Legacy shapes are rewritten into the current ones."""

    def test_resource_attribute_map(self) -> None:
        normalized = LegacySchemaVersion().normalize(
            {"file_format": "0.2", "resource": {"attributes": {"service.name": "svc", "answer": 42}}}
        )
        assert normalized["resource"]["attributes"] == [
            {"name": "service.name", "value": "svc"},
            {"name": "answer", "value": 42},
        ]

    def test_header_maps_anywhere(self) -> None:
        document = {
            "file_format": "0.2",
            "logger_provider": {
                "processors": [{"batch": {"exporter": {"otlp": {"protocol": "grpc", "headers": {"api-key": "1"}}}}}]
            },
        }
        normalized = LegacySchemaVersion().normalize(document)
        otlp = normalized["logger_provider"]["processors"][0]["batch"]["exporter"]["otlp"]
        assert otlp["headers"] == [{"name": "api-key", "value": "1"}]

    def test_attribute_key_list(self) -> None:
        normalized = LegacySchemaVersion().normalize(
            {"file_format": "0.2", "meter_provider": {"views": [{"stream": {"attribute_keys": ["a", "b"]}}]}}
        )
        assert normalized["meter_provider"]["views"][0]["stream"]["attribute_keys"] == {"included": ["a", "b"]}

    def test_input_not_mutated(self) -> None:
        document = {"file_format": "0.2", "resource": {"attributes": {"a": "b"}}}
        LegacySchemaVersion().normalize(document)
        assert document["resource"]["attributes"] == {"a": "b"}

    def test_legacy_file_decodes(self) -> None:
        config = load_file(DOCUMENTS_DIR / "v0.2-legacy.yaml")
        assert config.resource is not None
        assert [a.name for a in config.resource.attributes or ()] == ["service.name", "deployment.environment"]
        otlp = config.tracer_provider.processors[0].batch.exporter.otlp  # type: ignore[union-attr]
        assert otlp.headers[0].name == "api-key"  # type: ignore[union-attr,index]
        view_stream = config.meter_provider.views[0].stream  # type: ignore[union-attr,index]
        assert view_stream.attribute_keys.included == ["key1", "key2"]  # type: ignore[union-attr]

    def test_current_format_keeps_lists(self) -> None:
        """The current adapter leaves documents alone."""
        document = {"file_format": "0.3", "resource": {"attributes": [{"name": "a", "value": "b"}]}}
        assert CurrentSchemaVersion().normalize(document) == document
