"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import os

import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import get_settings  # noqa: E402
from src.playlist import (  # noqa: E402
    AdaptiveMode,
    CourseAdaptiveSettings,
    GateConfig,
    GateFailStrategy,
    LearningUnitAdaptive,
    PlaylistContext,
    PlaylistEngine,
    StaticEntry,
    StaticLearningUnit,
    StrategyTuning,
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Isolate tests from PLAYLIST_* variables in the developer's shell."""
    for name in list(os.environ):
        if name.upper().startswith("PLAYLIST_"):
            monkeypatch.delenv(name)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def tuning():
    """Default strategy thresholds, independent of settings."""
    return StrategyTuning()


@pytest.fixture
def make_unit():
    """Factory for learning units with optional adaptive metadata."""

    def _make(
        lu_id: str,
        *,
        teaches=(),
        assesses=(),
        skippable: bool = False,
        gate_config: GateConfig | None = None,
        is_gate: bool = False,
        sequence: int = 0,
    ) -> StaticLearningUnit:
        adaptive = None
        if teaches or assesses or skippable or is_gate or gate_config:
            adaptive = LearningUnitAdaptive(
                teaches_nodes=tuple(teaches),
                assesses_nodes=tuple(assesses),
                is_gate=is_gate or gate_config is not None,
                is_skippable=skippable,
                gate_config=gate_config,
            )
        return StaticLearningUnit(
            id=lu_id,
            title=f"Unit {lu_id}",
            sequence=sequence,
            adaptive=adaptive,
        )

    return _make


@pytest.fixture
def make_gate_config():
    """Factory for gate configs; defaults match the catalog defaults."""

    def _make(
        threshold: float = 0.8,
        min_questions: int = 3,
        max_retries: int = 2,
        fail_strategy: GateFailStrategy = GateFailStrategy.HOLD,
    ) -> GateConfig:
        return GateConfig(
            mastery_threshold=threshold,
            min_questions=min_questions,
            max_retries=max_retries,
            fail_strategy=fail_strategy,
        )

    return _make


@pytest.fixture
def make_engine(tuning):
    """Factory for engines on enrollment enr-1 / module mod-1."""

    def _make(units, mode: AdaptiveMode = AdaptiveMode.OFF, node_progress=None) -> PlaylistEngine:
        return PlaylistEngine(
            CourseAdaptiveSettings(mode=mode),
            units,
            "enr-1",
            "mod-1",
            node_progress,
            tuning=tuning,
        )

    return _make


@pytest.fixture
def make_context():
    """Factory for strategy contexts over a static playlist."""

    def _make(
        units,
        *,
        playlist=None,
        index: int = 0,
        progress=None,
        results=None,
    ) -> PlaylistContext:
        units = tuple(units)
        if playlist is None:
            playlist = tuple(
                StaticEntry(entry_id=f"static-{lu.id}", title=lu.title, lu=lu) for lu in units
            )
        return PlaylistContext(
            static_sequence=units,
            playlist=tuple(playlist),
            current_index=index,
            node_progress=dict(progress or {}),
            gate_results=dict(results or {}),
        )

    return _make
