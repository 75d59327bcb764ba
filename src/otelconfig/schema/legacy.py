# src/otelconfig/schema/legacy.py
"""Adapter for the legacy 0.1 and 0.2 file formats.

The legacy formats differ from the current one in three places:

- ``resource.attributes`` is a flat ``name: value`` mapping
- OTLP ``headers`` are a flat ``name: value`` mapping
- view ``stream.attribute_keys`` is a plain list of keys to keep

Everything else already has the canonical shape.
"""

from __future__ import annotations

import copy
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class LegacySchemaVersion:
    """Rewrite legacy-only shapes into their current equivalents."""

    name = "legacy"
    file_formats = frozenset({"0.1", "0.2"})

    def normalize(self, document: dict[str, Any]) -> dict[str, Any]:
        result = copy.deepcopy(document)

        resource = result.get("resource")
        if isinstance(resource, dict) and isinstance(resource.get("attributes"), dict):
            resource["attributes"] = [{"name": name, "value": value} for name, value in resource["attributes"].items()]

        _convert_headers(result)

        meter_provider = result.get("meter_provider")
        if isinstance(meter_provider, dict):
            for view in meter_provider.get("views") or ():
                stream = view.get("stream") if isinstance(view, dict) else None
                if isinstance(stream, dict) and isinstance(stream.get("attribute_keys"), list):
                    stream["attribute_keys"] = {"included": stream["attribute_keys"]}

        logger.debug("legacy_document_normalized", file_format=result.get("file_format"))
        return result


def _convert_headers(node: Any) -> None:
    """Turn every ``headers`` mapping in the tree into a name/value list, in place."""
    if isinstance(node, dict):
        for key, value in node.items():
            if key == "headers" and isinstance(value, dict):
                node[key] = [{"name": name, "value": header_value} for name, header_value in value.items()]
            else:
                _convert_headers(value)
    elif isinstance(node, list):
        for item in node:
            _convert_headers(item)
