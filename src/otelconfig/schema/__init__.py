# src/otelconfig/schema/__init__.py
"""Schema version adapters and their discovery.

Built-in adapters cover the legacy (0.1, 0.2) and current (0.3) file formats.
Additional adapters can be supplied as pluggy plugins implementing
``otelconfig_get_schema_versions``.

Usage:
    from otelconfig.schema import discover_schema_versions, resolve_schema_version

    registry = discover_schema_versions()
    adapter = resolve_schema_version("0.3", registry)
    canonical = adapter.normalize(raw_document)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pluggy
import structlog

from otelconfig.errors import DecodeError, SchemaRegistryError
from otelconfig.schema.base import SchemaVersion, format_key
from otelconfig.schema.current import CurrentSchemaVersion
from otelconfig.schema.hookspecs import PROJECT_NAME, OtelconfigSchemaSpec, hookimpl
from otelconfig.schema.legacy import LegacySchemaVersion

logger = structlog.get_logger(__name__)


class BuiltinSchemaVersionsPlugin:
    """Plugin that registers the built-in schema version adapters."""

    @hookimpl
    def otelconfig_get_schema_versions(self) -> list[SchemaVersion]:
        """Return built-in schema version adapters."""
        return [LegacySchemaVersion(), CurrentSchemaVersion()]


def discover_schema_versions(schema_plugins: Iterable[Any] = ()) -> dict[str, SchemaVersion]:
    """Discover schema version adapters via pluggy hooks.

    Args:
        schema_plugins: Optional additional plugin objects implementing
            ``otelconfig_get_schema_versions``.

    Returns:
        Mapping of ``major.minor`` file format to adapter.

    Raises:
        SchemaRegistryError: If a plugin cannot be registered, returns
            something other than adapters, or claims a file format that is
            already taken.
    """
    plugin_manager = pluggy.PluginManager(PROJECT_NAME)
    plugin_manager.add_hookspecs(OtelconfigSchemaSpec)

    for plugin in [BuiltinSchemaVersionsPlugin(), *list(schema_plugins)]:
        try:
            plugin_manager.register(plugin)
            plugin_manager.check_pending()
        except (pluggy.PluginValidationError, ValueError) as e:
            if isinstance(e, pluggy.PluginValidationError):
                plugin_manager.unregister(plugin=plugin)
            raise SchemaRegistryError(f"Invalid schema plugin {type(plugin).__name__}: {e}") from e

    registry: dict[str, SchemaVersion] = {}
    for hook_impl in plugin_manager.hook.otelconfig_get_schema_versions.get_hookimpls():
        plugin_name = type(hook_impl.plugin).__name__
        try:
            versions = hook_impl.plugin.otelconfig_get_schema_versions()
        except Exception as e:
            raise SchemaRegistryError(f"Schema plugin {plugin_name} failed in otelconfig_get_schema_versions: {e}") from e
        if versions is None or isinstance(versions, (str, bytes)):
            raise SchemaRegistryError(
                f"otelconfig_get_schema_versions in plugin {plugin_name} returned {type(versions).__name__}; "
                "expected iterable of schema versions"
            )

        for version in versions:
            if not isinstance(version, SchemaVersion):
                raise SchemaRegistryError(f"Schema plugin {plugin_name} returned {version!r}, which is not a SchemaVersion")
            for file_format in version.file_formats:
                key = format_key(file_format)
                if key in registry:
                    raise SchemaRegistryError(
                        f"Duplicate schema version for file_format '{key}': {registry[key].name} and {version.name}"
                    )
                registry[key] = version

    logger.debug("schema_versions_discovered", file_formats=sorted(registry))
    return registry


def resolve_schema_version(file_format: str, registry: dict[str, SchemaVersion]) -> SchemaVersion:
    """Look up the adapter for a document's file_format.

    Raises:
        DecodeError: If no adapter accepts the file format.
    """
    try:
        return registry[format_key(file_format)]
    except KeyError:
        raise DecodeError(
            f"unsupported file_format {file_format!r}; supported: {', '.join(sorted(registry))}"
        ) from None


__all__ = [
    "BuiltinSchemaVersionsPlugin",
    "SchemaVersion",
    "discover_schema_versions",
    "format_key",
    "resolve_schema_version",
]
