# src/otelconfig/schema/hookspecs.py
"""pluggy hook specifications for schema version adapters.

A schema version adapter knows how to turn a raw document written against one
or more ``file_format`` values into the canonical shape understood by
otelconfig.model. The loader calls these hooks once to discover the
available adapters.

Usage (implementing a schema plugin):
    from otelconfig.schema.hookspecs import hookimpl

    class MySchemaPlugin:
        @hookimpl
        def otelconfig_get_schema_versions(self):
            return [MySchemaVersion()]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from otelconfig.schema.base import SchemaVersion

PROJECT_NAME = "otelconfig"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class OtelconfigSchemaSpec:
    """Hook specifications for schema version plugins."""

    @hookspec
    def otelconfig_get_schema_versions(self) -> list["SchemaVersion"]:  # type: ignore[empty-body]
        """Return schema version adapters.

        Returns:
            List of adapter instances implementing SchemaVersion
        """
