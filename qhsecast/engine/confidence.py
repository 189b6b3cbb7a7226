"""
Confidence Estimator.

confidence = 0.40·data_quality + 0.35·historical_accuracy + 0.25·context_relevance
             + U(-jitter, +jitter), clamped to [0.40, 0.99]

This is a heuristic blend, not a probability. The historical accuracy input
is a placeholder: history entries are recorded with a fixed accuracy value
because no ground-truth feedback loop exists yet.
"""

import random
from typing import Optional, Protocol, Sequence

from qhsecast.config import Settings, settings as default_settings
from qhsecast.engine.values import Entity, is_populated
from qhsecast.knowledge.schemas import ModuleKnowledge
from qhsecast.services.store import HistoryEntry

# Policy choices, revisit once real outcome feedback exists.
DEFAULT_HISTORICAL_ACCURACY: float = 0.75
RECORDED_ACCURACY: float = 0.80
MIN_HISTORY_FOR_ACCURACY: int = 10
HISTORY_ACCURACY_WINDOW: int = 20
DEFAULT_CONTEXT_RELEVANCE: float = 0.70


class RandomSource(Protocol):
    """Anything with random.Random's uniform()."""

    def uniform(self, a: float, b: float) -> float: ...


class ConfidenceEstimator:
    """Bounded heuristic confidence with an injectable random source."""

    def __init__(
        self,
        rng: Optional[RandomSource] = None,
        config: Optional[Settings] = None,
    ):
        self.rng = rng if rng is not None else random.Random()
        cfg = config if config is not None else default_settings
        self.w_quality = cfg.confidence_weight_data_quality
        self.w_history = cfg.confidence_weight_historical
        self.w_context = cfg.confidence_weight_context
        self.jitter = cfg.confidence_jitter
        self.floor = cfg.confidence_floor
        self.ceiling = cfg.confidence_ceiling

    def base_confidence(
        self,
        data_quality: float,
        historical_accuracy: float,
        context_relevance: float,
    ) -> float:
        return (
            self.w_quality * data_quality
            + self.w_history * historical_accuracy
            + self.w_context * context_relevance
        )

    def estimate_confidence(
        self,
        data_quality: float,
        historical_accuracy: float,
        context_relevance: float,
    ) -> float:
        base = self.base_confidence(data_quality, historical_accuracy, context_relevance)
        perturbation = self.rng.uniform(-self.jitter, self.jitter)
        return min(self.ceiling, max(self.floor, base + perturbation))


def data_quality(entity: Entity) -> float:
    """Fraction of attributes that are non-null, non-empty and not "N/A"."""
    if not entity:
        return 0.0
    filled = sum(1 for value in entity.values() if is_populated(value))
    return filled / len(entity)


def context_relevance(entity: Entity, module: ModuleKnowledge) -> float:
    """Fraction of the module's relevant fields populated on the entity."""
    if not module.relevant_fields:
        return DEFAULT_CONTEXT_RELEVANCE
    filled = sum(1 for name in module.relevant_fields if is_populated(entity.get(name)))
    return filled / len(module.relevant_fields)


def historical_accuracy(history: Sequence[HistoryEntry]) -> float:
    """Rolling mean of recorded accuracy; default until enough history exists."""
    if len(history) < MIN_HISTORY_FOR_ACCURACY:
        return DEFAULT_HISTORICAL_ACCURACY
    recent = list(history)[-HISTORY_ACCURACY_WINDOW:]
    return sum(entry.accuracy for entry in recent) / len(recent)
