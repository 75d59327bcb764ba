# src/otelconfig/schema/base.py
"""Protocol implemented by schema version adapters."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SchemaVersion(Protocol):
    """Adapter from one family of file formats to the canonical document shape.

    Attributes:
        name: Short identifier used in logs
        file_formats: ``major.minor`` versions this adapter accepts
    """

    name: str
    file_formats: frozenset[str]

    def normalize(self, document: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``document`` in the canonical shape.

        Must not mutate the input.
        """
        ...


def format_key(file_format: str) -> str:
    """Reduce a file_format value to its ``major.minor`` lookup key.

    Examples:
        >>> format_key("0.3")
        '0.3'
        >>> format_key("0.3.0")
        '0.3'
        >>> format_key("1.0-rc.1")
        '1.0'
    """
    release = file_format.strip().split("-", 1)[0]
    return ".".join(release.split(".")[:2])
