# src/otelconfig/keyvalue.py
"""Parser for ``key=value,key2=value2`` strings.

This is the format of OTEL_RESOURCE_ATTRIBUTES and OTEL_EXPORTER_OTLP_HEADERS,
reused by the ``attributes_list`` and ``headers_list`` fields. Values are
percent-decoded, surrounding whitespace is trimmed, and empty items are
skipped.
"""

from __future__ import annotations

from urllib.parse import unquote


def parse_key_value_list(text: str) -> list[tuple[str, str]]:
    """Split a delimited list into ``(key, value)`` pairs, in order.

    Raises:
        ValueError: An item has no ``=`` or an empty key. The message is the
            bare reason, e.g. ``invalid key: ""``.
    """
    pairs: list[tuple[str, str]] = []
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep:
            raise ValueError(f'missing "=" in item "{item}"')
        if not key:
            raise ValueError(f'invalid key: "{key}"')
        pairs.append((unquote(key), unquote(value.strip())))
    return pairs
