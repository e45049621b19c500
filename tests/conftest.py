# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

from graphloader.core.checkpoint import CheckpointStore
from graphloader.core.counters import LoadCounters
from tests.fixtures.factories import MemoryErrorLog, RecordingWriter

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Timing varies on CI runners
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


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def counters() -> LoadCounters:
    return LoadCounters()


@pytest.fixture
def error_log() -> MemoryErrorLog:
    return MemoryErrorLog()


@pytest.fixture
def writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def checkpoint_store() -> Iterator[CheckpointStore]:
    """Function-scoped in-memory store - fresh per test."""
    store = CheckpointStore.in_memory()
    yield store
    store.close()


@pytest.fixture
def csv_file(tmp_path: Path) -> Path:
    path = tmp_path / "follow.csv"
    path.write_text("src,dst,degree,rank\n1,2,0.5,0\n3,4,1.5,1\n5,6,2.5,2\n", encoding="utf-8")
    return path
