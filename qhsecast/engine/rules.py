"""
Rule Engine — declarative rules evaluated against one entity + population.

Rules are explicit objects registered by id, not executable config:
- AttributeRule: all attribute conditions must hold on the entity
- PopulationShareRule: share of the population meeting a condition

Each predicate is evaluated in isolation. A predicate that raises is
logged and counted as not triggered; it never aborts the remaining rules.
A condition on a missing or unparseable attribute is false.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable, Optional, Sequence

import structlog

from qhsecast.engine.schemas import RuleInsight
from qhsecast.engine.values import Entity, optional_number
from qhsecast.errors import ConfigurationError
from qhsecast.knowledge.catalog import (
    ENVIRONMENTAL,
    HEALTH_SAFETY,
    PROJECT_QUALITY,
    QUALITY_MANAGEMENT,
)
from qhsecast.knowledge.schemas import Priority

logger = structlog.get_logger(__name__)


class RuleOperator(StrEnum):
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    NEQ = "neq"


def check_condition(operator: RuleOperator, value: float, threshold: float) -> bool:
    if operator == RuleOperator.GT:
        return value > threshold
    elif operator == RuleOperator.GTE:
        return value >= threshold
    elif operator == RuleOperator.LT:
        return value < threshold
    elif operator == RuleOperator.LTE:
        return value <= threshold
    elif operator == RuleOperator.EQ:
        return abs(value - threshold) < 1e-9
    elif operator == RuleOperator.NEQ:
        return abs(value - threshold) >= 1e-9
    return False


@dataclass(frozen=True)
class Condition:
    """`attribute <operator> threshold` on a numeric entity attribute."""
    attribute: str
    operator: RuleOperator
    threshold: float

    def holds(self, entity: Entity) -> bool:
        value = optional_number(entity, self.attribute)
        if value is None:
            return False
        return check_condition(self.operator, value, self.threshold)


@dataclass(frozen=True, kw_only=True)
class Rule(ABC):
    """A declarative rule. Subclasses implement matches()."""
    rule_id: str
    priority: Priority
    affected_modules: tuple[str, ...]
    message: str
    actions: tuple[str, ...]
    insight: str

    @property
    def population_scope(self) -> bool:
        return False

    @abstractmethod
    def matches(self, entity: Entity, population: Sequence[Entity]) -> bool:
        """True when the rule is triggered."""

    def to_insight(self) -> RuleInsight:
        return RuleInsight(
            rule_id=self.rule_id,
            priority=self.priority,
            message=self.message,
            insight=self.insight,
            affected_modules=list(self.affected_modules),
        )


@dataclass(frozen=True, kw_only=True)
class AttributeRule(Rule):
    conditions: tuple[Condition, ...]

    def matches(self, entity: Entity, population: Sequence[Entity]) -> bool:
        return all(c.holds(entity) for c in self.conditions)


@dataclass(frozen=True, kw_only=True)
class PopulationShareRule(Rule):
    """Fires when more than `min_share` of the population meets `condition`."""
    condition: Condition
    min_share: float

    @property
    def population_scope(self) -> bool:
        return True

    def matches(self, entity: Entity, population: Sequence[Entity]) -> bool:
        if not population:
            return False
        qualifying = sum(1 for member in population if self.condition.holds(member))
        return qualifying > len(population) * self.min_share


class RuleRegistry:
    """Rules tagged by id. Duplicate ids are a configuration error."""

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: dict[str, Rule] = {}
        for rule in rules:
            self.register(rule)

    def register(self, rule: Rule) -> None:
        if rule.rule_id in self._rules:
            raise ConfigurationError(
                f"Duplicate rule id '{rule.rule_id}'",
                details={"rule_id": rule.rule_id},
            )
        self._rules[rule.rule_id] = rule

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def __iter__(self):
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)


class RuleEngine:
    """Evaluates every registered rule against an entity."""

    def __init__(self, registry: RuleRegistry):
        self.registry = registry

    def evaluate_rules(
        self,
        entity: Entity,
        population: Optional[Sequence[Entity]] = None,
    ) -> list[Rule]:
        """
        Subset of rules whose predicate returns True.

        Order follows registration and carries no meaning; callers sort
        by priority.
        """
        population = population or []
        triggered: list[Rule] = []
        for rule in self.registry:
            try:
                fired = bool(rule.matches(entity, population))
            except Exception as exc:
                logger.warning(
                    "rule_evaluation_failed",
                    rule_id=rule.rule_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue
            if fired:
                triggered.append(rule)

        if triggered:
            logger.debug(
                "rules_triggered",
                rule_ids=[r.rule_id for r in triggered],
                n_rules=len(self.registry),
            )
        return triggered


# ── Default catalog ────────────────────────────────────────────────────


DEFAULT_RULES: tuple[Rule, ...] = (
    AttributeRule(
        rule_id="high-cars-safety-risk",
        priority=Priority.HIGH,
        affected_modules=(PROJECT_QUALITY, QUALITY_MANAGEMENT, HEALTH_SAFETY),
        message="High number of open CARs may indicate safety risks",
        actions=(
            "Review recent incident reports for correlation",
            "Schedule safety audit",
            "Prioritize CAR closure for safety-related items",
        ),
        insight=(
            "Pattern analysis suggests correlation between open CARs and "
            "safety incidents in similar projects"
        ),
        conditions=(Condition("carsOpen", RuleOperator.GT, 3),),
    ),
    AttributeRule(
        rule_id="low-kpi-environmental-impact",
        priority=Priority.MEDIUM,
        affected_modules=(PROJECT_QUALITY, ENVIRONMENTAL),
        message="Low quality KPIs may impact environmental compliance",
        actions=(
            "Review environmental monitoring procedures",
            "Check waste management compliance",
            "Verify environmental permits and documentation",
        ),
        insight=(
            "Historical data shows projects with low KPIs have 35% higher "
            "environmental non-conformances"
        ),
        conditions=(Condition("projectKPIsAchievedPercent", RuleOperator.LT, 70),),
    ),
    AttributeRule(
        rule_id="manhours-depletion-risk",
        priority=Priority.HIGH,
        affected_modules=(PROJECT_QUALITY, QUALITY_MANAGEMENT),
        message="Manhours depleting before project completion",
        actions=(
            "Request additional manhours allocation",
            "Prioritize critical quality activities",
            "Review resource utilization efficiency",
        ),
        insight=(
            "Project may require an additional 20-30% manhours based on "
            "completion trajectory"
        ),
        conditions=(
            Condition("manhoursBalance", RuleOperator.LT, 50),
            Condition("projectCompletionPercent", RuleOperator.LT, 80),
        ),
    ),
    AttributeRule(
        rule_id="audit-delay-compliance-risk",
        priority=Priority.HIGH,
        affected_modules=(PROJECT_QUALITY, QUALITY_MANAGEMENT, HEALTH_SAFETY),
        message="Audit delays may affect multiple compliance areas",
        actions=(
            "Reschedule delayed audits immediately",
            "Conduct interim quality checks",
            "Notify stakeholders of potential compliance impact",
        ),
        insight="Projects with audit delays >7 days show 45% increase in final audit findings",
        conditions=(Condition("delayInAuditsNoDays", RuleOperator.GT, 7),),
    ),
    AttributeRule(
        rule_id="project-completion-closure-preparation",
        priority=Priority.MEDIUM,
        affected_modules=(PROJECT_QUALITY, QUALITY_MANAGEMENT, ENVIRONMENTAL, HEALTH_SAFETY),
        message="Project nearing completion - initiate closure activities",
        actions=(
            "Complete all pending audits",
            "Close all open CARs and observations",
            "Finalize environmental documentation",
            "Conduct final safety inspection",
            "Prepare lessons learned documentation",
        ),
        insight="Start closure preparation at 85% completion for smooth project handover",
        conditions=(Condition("projectCompletionPercent", RuleOperator.GT, 85),),
    ),
    PopulationShareRule(
        rule_id="multi-project-pattern-detection",
        priority=Priority.CRITICAL,
        affected_modules=(QUALITY_MANAGEMENT, PROJECT_QUALITY),
        message="Systematic quality issues detected across multiple projects",
        actions=(
            "Conduct root cause analysis across projects",
            "Review and update quality procedures",
            "Implement organization-wide corrective measures",
            "Schedule management review meeting",
        ),
        insight="30%+ projects with high CARs indicates systemic process gaps",
        condition=Condition("carsOpen", RuleOperator.GT, 5),
        min_share=0.3,
    ),
)


def build_default_rules() -> RuleRegistry:
    return RuleRegistry(DEFAULT_RULES)
