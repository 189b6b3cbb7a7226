"""
Score Aggregator & Risk Classifier.

overall = Σ(sub_score_i × weight_i) / Σ(weight_i)
  sub_score: critical → 30, warning → 60, good → 90

The result is rounded and clamped to [0, 100]. Risk thresholds below are
fixed design constants, not learned.
"""

import math
from typing import Sequence

import structlog

from qhsecast.engine.factors import FactorEvaluator
from qhsecast.engine.rules import Rule
from qhsecast.engine.schemas import RiskLevel
from qhsecast.engine.values import Entity
from qhsecast.knowledge.schemas import Priority

logger = structlog.get_logger(__name__)

# Policy choice: score reported when a module's factor weights sum to 0.
NEUTRAL_SCORE: int = 50

CRITICAL_SCORE_BELOW: float = 60.0
HIGH_SCORE_BELOW: float = 75.0
MEDIUM_SCORE_BELOW: float = 85.0
CRITICAL_RULE_COUNT_ABOVE: int = 2

SEVERE_PRIORITIES = frozenset({Priority.HIGH, Priority.CRITICAL})


def clamp_score(value: float) -> int:
    # Halves round up, so 84.5 lands in the low-risk band.
    return int(max(0, min(100, math.floor(value + 0.5))))


class ScoreAggregator:
    """Weighted mean of factor sub-scores for one module."""

    def __init__(self, evaluator: FactorEvaluator):
        self.evaluator = evaluator

    def aggregate_score(self, entity: Entity, module_id: str) -> int:
        weighted = 0.0
        total_weight = 0.0
        for item in self.evaluator.assess_module(entity, module_id):
            weighted += item.assessment.score * item.factor.weight
            total_weight += item.factor.weight

        if total_weight <= 0:
            logger.warning("zero_factor_weight", module_id=module_id, score=NEUTRAL_SCORE)
            return NEUTRAL_SCORE
        return clamp_score(weighted / total_weight)


def classify_risk(score: float, triggered_rules: Sequence[Rule]) -> RiskLevel:
    """Deterministic risk level from the score and severe rule count."""
    severe = sum(1 for r in triggered_rules if r.priority in SEVERE_PRIORITIES)

    if score < CRITICAL_SCORE_BELOW or severe > CRITICAL_RULE_COUNT_ABOVE:
        return RiskLevel.CRITICAL
    if score < HIGH_SCORE_BELOW or severe > 0:
        return RiskLevel.HIGH
    if score < MEDIUM_SCORE_BELOW:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def impact_priority(score: float) -> Priority:
    """Priority of cross-module impacts derived from the source score."""
    if score < CRITICAL_SCORE_BELOW:
        return Priority.HIGH
    if score < HIGH_SCORE_BELOW:
        return Priority.MEDIUM
    return Priority.LOW
