# src/otelconfig/schema/current.py
"""Adapter for documents written against the current file format."""

from __future__ import annotations

import copy
from typing import Any


class CurrentSchemaVersion:
    """The canonical shape; documents pass through unchanged."""

    name = "current"
    file_formats = frozenset({"0.3"})

    def normalize(self, document: dict[str, Any]) -> dict[str, Any]:
        return copy.deepcopy(document)
