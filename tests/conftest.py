"""
Test fixtures for QHSECast tests.

Provides:
- Settings with zero simulated latency
- Deterministic random source for confidence
- Engine wired to an isolated in-memory store
- Sample entities and a small project population
"""

from typing import Any

import pytest

from qhsecast.config import Settings
from qhsecast.engine.intelligence import QHSEIntelligenceEngine
from qhsecast.services.store import InMemoryResultStore


class FixedRandom:
    """Random source whose perturbation is always `offset`."""

    def __init__(self, offset: float = 0.0):
        self.offset = offset

    def uniform(self, a: float, b: float) -> float:
        return min(b, max(a, self.offset))


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        recommendation_delay_seconds=0,
        change_delay_seconds=0,
        system_insights_delay_seconds=0,
        contextual_help_delay_seconds=0,
        session_debounce_seconds=0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> InMemoryResultStore:
    return InMemoryResultStore(default_ttl=300, capacity=100, clock=clock)


@pytest.fixture
def engine(test_settings, store) -> QHSEIntelligenceEngine:
    return QHSEIntelligenceEngine(store=store, rng=FixedRandom(), config=test_settings)


@pytest.fixture
def healthy_project() -> dict[str, Any]:
    """Every project-quality factor in its good range, no rule triggered."""
    return {
        "id": "PRJ-001",
        "projectNo": "Q-1001",
        "projectTitle": "Compressor Station Upgrade",
        "carsOpen": 0,
        "carsClosed": 4,
        "obsOpen": 0,
        "obsClosed": 6,
        "projectKPIsAchievedPercent": "92%",
        "delayInAuditsNoDays": 0,
        "manhoursBalance": 200,
        "manhoursUsed": 800,
        "projectCompletionPercent": 40,
    }


@pytest.fixture
def troubled_project() -> dict[str, Any]:
    """Four critical factors and four triggered rules (three high, one medium)."""
    return {
        "id": "PRJ-002",
        "projectNo": "Q-1002",
        "projectTitle": "Pipeline Tie-In",
        "carsOpen": 6,
        "carsClosed": 1,
        "obsOpen": 3,
        "obsClosed": 1,
        "projectKPIsAchievedPercent": 55,
        "delayInAuditsNoDays": 15,
        "manhoursBalance": 8,
        "manhoursUsed": 1200,
        "projectCompletionPercent": 60,
    }


@pytest.fixture
def population() -> list[dict[str, Any]]:
    return [
        {
            "id": "P1", "carsOpen": 6, "obsOpen": 2, "projectKPIsAchievedPercent": 60,
            "manhoursBalance": 40, "manhoursUsed": 100, "delayInAuditsNoDays": 10,
            "projectCompletionPercent": 90,
        },
        {
            "id": "P2", "carsOpen": 5, "obsOpen": 0, "projectKPIsAchievedPercent": 65,
            "manhoursBalance": 80, "manhoursUsed": 200, "delayInAuditsNoDays": 0,
            "projectCompletionPercent": 50,
        },
        {
            "id": "P3", "carsOpen": 0, "obsOpen": 0, "projectKPIsAchievedPercent": 90,
            "manhoursBalance": 300, "manhoursUsed": 300, "delayInAuditsNoDays": 0,
            "projectCompletionPercent": 88,
        },
        {
            "id": "P4", "carsOpen": 1, "obsOpen": 1, "projectKPIsAchievedPercent": 85,
            "manhoursBalance": 500, "manhoursUsed": 400, "delayInAuditsNoDays": 2,
            "projectCompletionPercent": 20,
        },
    ]


@pytest.fixture
def fixed_random():
    """Factory for deterministic random sources."""
    return FixedRandom


@pytest.fixture
def make_engine(test_settings, store):
    """Factory for engines with overridable collaborators."""

    def _make(**overrides) -> QHSEIntelligenceEngine:
        overrides.setdefault("store", store)
        overrides.setdefault("rng", FixedRandom())
        overrides.setdefault("config", test_settings)
        return QHSEIntelligenceEngine(**overrides)

    return _make
