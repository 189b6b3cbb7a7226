"""
Factor Evaluator.

Scores one entity against a module's weighted factor/threshold table.
Pure function of entity + static knowledge.

Assessment (direction-aware, inclusive breakpoints):
  descending: value >= critical → critical; value >= warning → warning
  ascending:  value <= critical → critical; value <= warning → warning
  otherwise good

Missing or unparseable attributes are read as 0 for every factor, so
whether they trigger an insight depends only on the factor's direction.
"""

from dataclasses import dataclass

import structlog

from qhsecast.engine.schemas import Insight
from qhsecast.engine.values import Entity, number_or_zero, parse_number
from qhsecast.knowledge.base import KnowledgeBase
from qhsecast.knowledge.schemas import FactorDefinition, FactorDirection, FactorLevel

logger = structlog.get_logger(__name__)

LEVEL_SCORES: dict[FactorLevel, int] = {
    FactorLevel.CRITICAL: 30,
    FactorLevel.WARNING: 60,
    FactorLevel.GOOD: 90,
}


@dataclass(frozen=True)
class FactorAssessment:
    """Level and sub-score of one factor value."""
    level: FactorLevel
    score: int


@dataclass(frozen=True)
class AssessedFactor:
    factor: FactorDefinition
    value: float
    assessment: FactorAssessment


def assess(value: float, factor: FactorDefinition) -> FactorAssessment:
    t = factor.threshold
    if factor.direction == FactorDirection.DESCENDING:
        if value >= t.critical:
            level = FactorLevel.CRITICAL
        elif value >= t.warning:
            level = FactorLevel.WARNING
        else:
            level = FactorLevel.GOOD
    else:
        if value <= t.critical:
            level = FactorLevel.CRITICAL
        elif value <= t.warning:
            level = FactorLevel.WARNING
        else:
            level = FactorLevel.GOOD
    return FactorAssessment(level=level, score=LEVEL_SCORES[level])


class FactorEvaluator:
    """Evaluates module factor tables against entities."""

    def __init__(self, knowledge: KnowledgeBase):
        self.knowledge = knowledge

    def read_value(self, entity: Entity, factor: FactorDefinition) -> float:
        raw = entity.get(factor.source_attribute)
        if parse_number(raw) is None:
            logger.debug(
                "factor_value_defaulted",
                factor=factor.key,
                attribute=factor.source_attribute,
                raw_value=raw,
            )
        return number_or_zero(raw)

    def assess_module(self, entity: Entity, module_id: str) -> list[AssessedFactor]:
        """Assess every factor of the module (good ones included)."""
        module = self.knowledge.module(module_id)
        assessed: list[AssessedFactor] = []
        for factor in module.factors:
            value = self.read_value(entity, factor)
            assessed.append(AssessedFactor(factor, value, assess(value, factor)))
        return assessed

    def evaluate_factors(self, entity: Entity, module_id: str) -> list[Insight]:
        """One insight per factor whose level is not good."""
        insights: list[Insight] = []
        for item in self.assess_module(entity, module_id):
            level = item.assessment.level
            if level == FactorLevel.GOOD:
                continue
            insights.append(Insight(
                factor=item.factor.key,
                value=item.value,
                level=level,
                message=item.factor.recommendation_for(level),
                impacts=list(item.factor.impacts),
                weight=item.factor.weight,
            ))
        return insights
