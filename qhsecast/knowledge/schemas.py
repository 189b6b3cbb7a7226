"""
Knowledge Schemas — static, immutable engine configuration.

Factor tables, module connections and the reference library are supplied
once at construction time and never mutated afterwards.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Optional

from qhsecast.errors import ConfigurationError


class FactorLevel(StrEnum):
    CRITICAL = "critical"
    WARNING = "warning"
    GOOD = "good"


class FactorDirection(StrEnum):
    ASCENDING = "ascending"     # higher is better (KPIs, compliance rates)
    DESCENDING = "descending"   # higher is worse (open CARs, delays)


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


PRIORITY_ORDER: dict[Priority, int] = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


@dataclass(frozen=True)
class Threshold:
    """Three breakpoints of a factor."""
    critical: float
    warning: float
    good: float


@dataclass(frozen=True)
class FactorDefinition:
    """
    One weighted, thresholded attribute of an entity.

    The direction is explicit. Breakpoints must be ordered consistently
    with it: descending factors need critical >= warning >= good, ascending
    factors need critical <= warning <= good.
    """
    key: str
    weight: float
    threshold: Threshold
    direction: FactorDirection
    impacts: tuple[str, ...] = ()
    recommendations: dict[FactorLevel, str] = field(default_factory=dict)
    attribute: Optional[str] = None     # Entity attribute (defaults to key)

    def __post_init__(self):
        if self.weight < 0:
            raise ConfigurationError(
                f"Factor '{self.key}' has a negative weight",
                details={"factor": self.key, "weight": self.weight},
            )
        t = self.threshold
        if self.direction == FactorDirection.DESCENDING:
            ordered = t.critical >= t.warning >= t.good
        else:
            ordered = t.critical <= t.warning <= t.good
        if not ordered:
            raise ConfigurationError(
                f"Factor '{self.key}' thresholds do not match direction "
                f"'{self.direction.value}'",
                details={
                    "factor": self.key,
                    "critical": t.critical,
                    "warning": t.warning,
                    "good": t.good,
                },
            )

    @property
    def source_attribute(self) -> str:
        return self.attribute or self.key

    def recommendation_for(self, level: FactorLevel) -> str:
        return self.recommendations.get(level, "")


@dataclass(frozen=True)
class ModuleConnection:
    """Which modules a module propagates to, and which events justify it."""
    id: str
    name: str
    impacted_modules: tuple[str, ...] = ()
    trigger_events: tuple[str, ...] = ()


@dataclass(frozen=True)
class ModuleKnowledge:
    """Factor table and advisory content for one module."""
    module_id: str
    name: str
    factors: tuple[FactorDefinition, ...]
    cross_module_recommendations: dict[str, tuple[str, ...]] = field(default_factory=dict)
    relevant_fields: tuple[str, ...] = ()
    reference_topics: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReferenceLibrary:
    """
    Reference identifiers cited as recommendation sources.

    standards maps a topic ("quality", "safety", ...) to its ordered list.
    keywords maps the same topics to query words used by contextual help.
    """
    standards: dict[str, tuple[str, ...]]
    best_practices: tuple[str, ...]
    keywords: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def for_topic(self, topic: str, limit: int) -> list[str]:
        return list(self.standards.get(topic, ())[:limit])
