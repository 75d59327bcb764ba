# tests/conftest.py
"""Shared test fixtures and helpers.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/

The recording_exporters fixture swaps the OTLP exporter classes for the
recording doubles in tests/helpers.py.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from unittest.mock import patch

import pytest
from hypothesis import Phase, Verbosity, settings

from tests.helpers import TLS_DIR, ExporterRecorder


@pytest.fixture
def recording_exporters() -> Iterator[ExporterRecorder]:
    """Patch OTLP exporter lookup with recording doubles."""
    recorder = ExporterRecorder()
    with patch("otelconfig.otlp.exporter_class", side_effect=recorder.exporter_class):
        yield recorder


@pytest.fixture
def document_env() -> dict[str, str]:
    """Variables referenced by the fixture documents."""
    return {"TLS_DIR": str(TLS_DIR), "PROMETHEUS_PORT": "0", "OTEL_SERVICE_NAME": "fixture-service"}


# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
