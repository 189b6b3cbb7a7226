"""
Population Analyzer — system-wide heuristic signals.

Scans the whole entity population for:
1. Patterns: share of entities meeting a condition, compared (>=) with a
   fixed ratio threshold
2. Correlations: conditional frequency P(B | A) against a fixed bound and
   the unconditional rate P(B)
3. Predictions: simple extrapolation with bounded, fixed confidence
4. System health per QHSE domain and strategic recommendations

All bounds come from PopulationThresholds. Nothing here is fitted to data,
and correlations carry no causal claim.
"""

from typing import Callable, Optional, Sequence

import structlog

from qhsecast.config import PopulationThresholds
from qhsecast.engine.schemas import (
    Correlation,
    Pattern,
    Prediction,
    StrategicRecommendation,
    SystemHealth,
)
from qhsecast.engine.values import Entity, entity_id, optional_number
from qhsecast.knowledge.catalog import HEALTH_SAFETY, PROJECT_QUALITY, QUALITY_MANAGEMENT
from qhsecast.knowledge.schemas import Priority

logger = structlog.get_logger(__name__)

Predicate = Callable[[Entity], bool]

# KPI assumed for environmental/energy health when the entity has none.
DEFAULT_DOMAIN_KPI: float = 70.0
SYSTEM_HEALTH_TARGET: int = 75


def _above(attribute: str, bound: float) -> Predicate:
    def check(entity: Entity) -> bool:
        value = optional_number(entity, attribute)
        return value is not None and value > bound
    return check


def _below(attribute: str, bound: float) -> Predicate:
    def check(entity: Entity) -> bool:
        value = optional_number(entity, attribute)
        return value is not None and value < bound
    return check


def _share(population: Sequence[Entity], predicate: Predicate) -> tuple[int, float]:
    if not population:
        return 0, 0.0
    count = sum(1 for entity in population if predicate(entity))
    return count, count / len(population)


def conditional_frequency(
    population: Sequence[Entity],
    given: Predicate,
    outcome: Predicate,
) -> Optional[tuple[float, float, int]]:
    """
    (P(outcome | given), P(outcome), n_given), or None when no entity
    satisfies `given`.
    """
    conditioned = [entity for entity in population if given(entity)]
    if not conditioned:
        return None
    _, baseline = _share(population, outcome)
    _, frequency = _share(conditioned, outcome)
    return frequency, baseline, len(conditioned)


class PopulationAnalyzer:
    """Population-level patterns, correlations and predictions."""

    def __init__(self, thresholds: Optional[PopulationThresholds] = None):
        self.t = thresholds if thresholds is not None else PopulationThresholds()

    # ── Patterns ──────────────────────────────────────────────────────

    def detect_patterns(self, population: Sequence[Entity]) -> list[Pattern]:
        if not population:
            return []

        checks = (
            (
                "quality-degradation",
                Priority.HIGH,
                _above("carsOpen", self.t.high_cars_open),
                self.t.high_cars_ratio,
                "{count} projects ({pct}%) have high open CARs",
                "Conduct organization-wide quality review and process audit",
            ),
            (
                "audit-scheduling",
                Priority.MEDIUM,
                _above("delayInAuditsNoDays", self.t.audit_delay_days),
                self.t.audit_delay_ratio,
                "{count} projects ({pct}%) have delayed audits",
                "Review audit resource allocation and scheduling process",
            ),
            (
                "resource-constraint",
                Priority.HIGH,
                _below("manhoursBalance", self.t.low_manhours_balance),
                self.t.low_manhours_ratio,
                "{count} projects ({pct}%) facing manhours shortage",
                "Evaluate overall resource allocation and prioritization",
            ),
        )

        patterns: list[Pattern] = []
        for pattern_type, severity, predicate, min_ratio, message, advice in checks:
            count, ratio = _share(population, predicate)
            if count == 0 or ratio < min_ratio:
                continue
            patterns.append(Pattern(
                type=pattern_type,
                severity=severity,
                message=message.format(count=count, pct=round(ratio * 100)),
                recommendation=advice,
                count=count,
                ratio=round(ratio, 4),
            ))

        if patterns:
            logger.info(
                "population_patterns_detected",
                patterns=[p.type for p in patterns],
                population=len(population),
            )
        return patterns

    # ── Correlations ──────────────────────────────────────────────────

    def find_correlations(self, population: Sequence[Entity]) -> list[Correlation]:
        correlations: list[Correlation] = []

        low_kpi_cars = conditional_frequency(
            population,
            given=_below("projectKPIsAchievedPercent", self.t.low_kpi_percent),
            outcome=_above("carsOpen", self.t.high_cars_open),
        )
        if low_kpi_cars is not None:
            frequency, baseline, _ = low_kpi_cars
            if frequency > self.t.low_kpi_high_cars_frequency and frequency > baseline:
                correlations.append(Correlation(
                    modules=[PROJECT_QUALITY, HEALTH_SAFETY],
                    strength="strong",
                    message="Low quality KPIs associated with increased safety risks",
                    confidence=0.82,
                    conditional_frequency=round(frequency, 4),
                    baseline_frequency=round(baseline, 4),
                ))

        closing_open_cars = conditional_frequency(
            population,
            given=_above("projectCompletionPercent", self.t.near_complete_percent),
            outcome=_above("carsOpen", 0),
        )
        if closing_open_cars is not None:
            frequency, baseline, _ = closing_open_cars
            if frequency > self.t.near_complete_open_cars_frequency and frequency > baseline:
                correlations.append(Correlation(
                    modules=[PROJECT_QUALITY, QUALITY_MANAGEMENT],
                    strength="moderate",
                    message="Projects nearing completion still have open quality issues",
                    confidence=0.75,
                    conditional_frequency=round(frequency, 4),
                    baseline_frequency=round(baseline, 4),
                ))

        return correlations

    # ── Predictions ───────────────────────────────────────────────────

    def generate_predictions(self, population: Sequence[Entity]) -> list[Prediction]:
        if not population:
            return []

        low_kpi = _below("projectKPIsAchievedPercent", self.t.at_risk_kpi_percent)
        high_cars = _above("carsOpen", self.t.high_cars_open)
        low_manhours = _below("manhoursBalance", self.t.at_risk_manhours_balance)

        at_risk = [
            entity for entity in population
            if sum((low_kpi(entity), high_cars(entity), low_manhours(entity))) >= 2
        ]

        predictions: list[Prediction] = []
        if at_risk:
            predictions.append(Prediction(
                type="risk-prediction",
                severity=Priority.HIGH,
                message=f"{len(at_risk)} projects predicted to face delivery challenges",
                entity_ids=[eid for eid in map(entity_id, at_risk) if eid is not None],
                confidence=0.84,
                timeframe="60-90 days",
            ))

        usage = [optional_number(entity, "manhoursUsed") or 0.0 for entity in population]
        average_usage = sum(usage) / len(population)
        planned = average_usage * self.t.manhours_planning_multiplier
        predictions.append(Prediction(
            type="resource-forecast",
            severity=Priority.MEDIUM,
            message=f"Average manhours usage trending at {round(average_usage)} per project",
            recommendation=f"Plan for {round(planned)} manhours per new project",
            confidence=0.79,
            timeframe="next project",
        ))
        return predictions

    # ── System health ─────────────────────────────────────────────────

    def calculate_system_health(self, population: Sequence[Entity]) -> SystemHealth:
        if not population:
            return SystemHealth()

        totals = {"quality": 0.0, "safety": 0.0, "environmental": 0.0, "energy": 0.0}
        for entity in population:
            kpi = optional_number(entity, "projectKPIsAchievedPercent")
            cars = optional_number(entity, "carsOpen") or 0.0
            obs = optional_number(entity, "obsOpen") or 0.0
            cars_score = max(0.0, 100 - cars * 10)
            obs_score = max(0.0, 100 - obs * 5)
            domain_kpi = kpi if kpi else DEFAULT_DOMAIN_KPI

            totals["quality"] += ((kpi or 0.0) + cars_score + obs_score) / 3
            totals["safety"] += (cars_score + obs_score) / 2
            totals["environmental"] += domain_kpi
            totals["energy"] += domain_kpi

        n = len(population)
        quality, safety, environmental, energy = (
            round(totals[k] / n) for k in ("quality", "safety", "environmental", "energy")
        )
        return SystemHealth(
            quality=quality,
            safety=safety,
            environmental=environmental,
            energy=energy,
            overall=round((quality + safety + environmental + energy) / 4),
        )

    def strategic_recommendations(
        self,
        health: SystemHealth,
        patterns: Sequence[Pattern],
        correlations: Sequence[Correlation],
    ) -> list[StrategicRecommendation]:
        recommendations: list[StrategicRecommendation] = []

        if health.overall < SYSTEM_HEALTH_TARGET:
            recommendations.append(StrategicRecommendation(
                priority=Priority.CRITICAL,
                category="system-improvement",
                recommendation="Implement comprehensive QHSE improvement program",
                expected_impact="Improve overall system health by 15-20%",
                timeline="3-6 months",
            ))

        if any(p.type == "quality-degradation" for p in patterns):
            recommendations.append(StrategicRecommendation(
                priority=Priority.HIGH,
                category=QUALITY_MANAGEMENT,
                recommendation="Conduct root cause analysis and update quality procedures",
                expected_impact="Reduce open CARs by 30-40%",
                timeline="2-3 months",
            ))

        if any(HEALTH_SAFETY in c.modules for c in correlations):
            recommendations.append(StrategicRecommendation(
                priority=Priority.HIGH,
                category="integrated-management",
                recommendation="Implement integrated quality-safety management approach",
                expected_impact="Improve cross-module coordination and reduce incidents",
                timeline="4-6 months",
            ))

        return recommendations
