"""
Change Detector & Impact Propagator.

Diffs two snapshots of the same entity over an explicit allow-list of
risk-relevant fields, then applies explicit domain rules to decide which
modules must react and how urgently. New change types are added as new
branches in ImpactPropagator, never inferred.
"""

from typing import Any, Iterable, Optional, Sequence

import structlog

from qhsecast.engine.schemas import (
    ChangeAssessment,
    ChangeRecord,
    ChangeType,
    Prediction,
    PropagationTarget,
)
from qhsecast.engine.values import Entity, number_or_zero, parse_number
from qhsecast.knowledge.catalog import (
    ENVIRONMENTAL,
    HEALTH_SAFETY,
    QUALITY_MANAGEMENT,
)
from qhsecast.knowledge.schemas import Priority

logger = structlog.get_logger(__name__)

SIGNIFICANT_FIELDS: tuple[str, ...] = (
    "carsOpen",
    "carsClosed",
    "obsOpen",
    "obsClosed",
    "projectKPIsAchievedPercent",
    "projectCompletionPercent",
    "manhoursBalance",
    "delayInAuditsNoDays",
)

URGENT_CARS_OPEN: float = 5.0
URGENT_KPI_PERCENT: float = 70.0
URGENT_AUDIT_DELAY_DAYS: float = 14.0
LOW_MANHOURS_BALANCE: float = 10.0
MANHOURS_SHORTAGE_BALANCE: float = 100.0


def classify_change(old_value: Any, new_value: Any) -> ChangeType:
    old_num = number_or_zero(old_value)
    new_num = number_or_zero(new_value)
    if new_num > old_num:
        return ChangeType.INCREASED
    if new_num < old_num:
        return ChangeType.DECREASED
    return ChangeType.UNCHANGED


def _dedupe(items: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return list(seen)


class ChangeDetector:
    """Field-level diff restricted to significant fields."""

    def __init__(self, fields: Sequence[str] = SIGNIFICANT_FIELDS):
        self.fields = tuple(fields)

    def detect_changes(self, old_entity: Entity, new_entity: Entity) -> list[ChangeRecord]:
        changes: list[ChangeRecord] = []
        for name in self.fields:
            old_value = old_entity.get(name)
            new_value = new_entity.get(name)
            if old_value == new_value:
                continue
            changes.append(ChangeRecord(
                field=name,
                old_value=old_value,
                new_value=new_value,
                change_type=classify_change(old_value, new_value),
            ))
        return changes


class ImpactPropagator:
    """Domain rules mapping a change to affected modules and urgency."""

    def assess_change_impact(
        self,
        change: ChangeRecord,
        entity: Entity,
        source_module: str,
    ) -> ChangeAssessment:
        affected = [source_module]
        urgent = False
        urgent_action: Optional[str] = None
        new_value = parse_number(change.new_value)

        # ── Open CARs rising ──────────────────────────────────────────
        if change.field == "carsOpen" and change.change_type == ChangeType.INCREASED:
            affected += [QUALITY_MANAGEMENT, HEALTH_SAFETY]
            if new_value is not None and new_value > URGENT_CARS_OPEN:
                urgent = True
                urgent_action = "High CAR count detected - immediate review required"

        # ── KPI below bound ───────────────────────────────────────────
        elif (
            change.field == "projectKPIsAchievedPercent"
            and new_value is not None
            and new_value < URGENT_KPI_PERCENT
        ):
            affected += [QUALITY_MANAGEMENT, ENVIRONMENTAL]
            urgent = True
            urgent_action = "Critical KPI drop - investigate root cause"

        # ── Audit delay past critical ─────────────────────────────────
        elif change.field == "delayInAuditsNoDays" and change.change_type == ChangeType.INCREASED:
            affected.append(QUALITY_MANAGEMENT)
            if new_value is not None and new_value > URGENT_AUDIT_DELAY_DAYS:
                urgent = True
                urgent_action = "Audit delay beyond two weeks - reschedule audits immediately"

        # ── Manhours running out ──────────────────────────────────────
        elif (
            change.field == "manhoursBalance"
            and change.change_type == ChangeType.DECREASED
            and new_value is not None
            and new_value < LOW_MANHOURS_BALANCE
        ):
            affected.append(QUALITY_MANAGEMENT)

        affected = _dedupe(affected)
        reason = f"{change.field} changed from {change.old_value} to {change.new_value}"

        if urgent:
            logger.info(
                "urgent_change_detected",
                field=change.field,
                old_value=change.old_value,
                new_value=change.new_value,
                source_module=source_module,
            )

        return ChangeAssessment(
            affected_modules=affected,
            propagation_needed=[
                PropagationTarget(module=module, reason=reason) for module in affected
            ],
            urgent=urgent,
            urgent_action=urgent_action,
        )

    def predict_from_changes(self, changes: Sequence[ChangeRecord]) -> list[Prediction]:
        """Heuristic forward projections triggered by individual changes."""
        predictions: list[Prediction] = []
        for change in changes:
            if change.field == "carsOpen" and change.change_type == ChangeType.INCREASED:
                predictions.append(Prediction(
                    type="trend",
                    message=(
                        "Increasing CAR trend detected. Predict 2-3 more CARs in "
                        "next 30 days if not addressed"
                    ),
                    confidence=0.78,
                    timeframe="30 days",
                    severity=Priority.MEDIUM,
                ))

            balance = parse_number(change.new_value)
            if (
                change.field == "manhoursBalance"
                and balance is not None
                and balance < MANHOURS_SHORTAGE_BALANCE
            ):
                predictions.append(Prediction(
                    type="resource-shortage",
                    message="Manhours depletion predicted within 45 days at current burn rate",
                    confidence=0.85,
                    timeframe="45 days",
                    severity=Priority.HIGH,
                ))
        return predictions
