"""
Tests for the Rule Engine.

Covers:
- Condition evaluation with all operators
- Default rule catalog against sample projects
- Missing attributes never satisfy a condition
- Population-scope rule
- Failure isolation between rules
- Registry duplicate detection
"""

from dataclasses import FrozenInstanceError, dataclass

import pytest

from qhsecast.engine.rules import (
    DEFAULT_RULES,
    AttributeRule,
    Condition,
    PopulationShareRule,
    Rule,
    RuleEngine,
    RuleOperator,
    RuleRegistry,
    build_default_rules,
    check_condition,
)
from qhsecast.errors import ConfigurationError
from qhsecast.knowledge.catalog import PROJECT_QUALITY
from qhsecast.knowledge.schemas import Priority


def _rule(rule_id: str = "rule_test_001", **overrides) -> AttributeRule:
    fields = dict(
        rule_id=rule_id,
        priority=Priority.HIGH,
        affected_modules=(PROJECT_QUALITY,),
        message="Test rule",
        actions=("Do the thing",),
        insight="Test insight",
        conditions=(Condition("carsOpen", RuleOperator.GT, 3),),
    )
    fields.update(overrides)
    return AttributeRule(**fields)


@dataclass(frozen=True, kw_only=True)
class ExplodingRule(Rule):
    def matches(self, entity, population):
        raise ZeroDivisionError("boom")


# ── Operators ──────────────────────────────────────────────────────────


class TestCheckCondition:

    @pytest.mark.parametrize("operator,value,threshold,expected", [
        (RuleOperator.GT, 4, 3, True),
        (RuleOperator.GT, 3, 3, False),
        (RuleOperator.GTE, 3, 3, True),
        (RuleOperator.LT, 69.9, 70, True),
        (RuleOperator.LT, 70, 70, False),
        (RuleOperator.LTE, 70, 70, True),
        (RuleOperator.EQ, 5, 5, True),
        (RuleOperator.NEQ, 5, 5, False),
    ])
    def test_operators(self, operator, value, threshold, expected):
        assert check_condition(operator, value, threshold) is expected

    def test_missing_attribute_is_false(self):
        assert Condition("carsOpen", RuleOperator.LT, 70).holds({}) is False

    def test_unparseable_attribute_is_false(self):
        assert Condition("carsOpen", RuleOperator.LT, 70).holds({"carsOpen": "N/A"}) is False

    def test_percentage_string(self):
        cond = Condition("projectKPIsAchievedPercent", RuleOperator.LT, 70)
        assert cond.holds({"projectKPIsAchievedPercent": "65%"})


# ── Default catalog ────────────────────────────────────────────────────


class TestDefaultRules:

    def setup_method(self):
        self.engine = RuleEngine(build_default_rules())

    def _ids(self, entity, population=None):
        return [r.rule_id for r in self.engine.evaluate_rules(entity, population)]

    def test_catalog_has_six_rules(self):
        assert len(build_default_rules()) == len(DEFAULT_RULES) == 6

    def test_healthy_project_triggers_nothing(self, healthy_project):
        assert self._ids(healthy_project) == []

    def test_troubled_project(self, troubled_project):
        assert set(self._ids(troubled_project)) == {
            "high-cars-safety-risk",
            "low-kpi-environmental-impact",
            "manhours-depletion-risk",
            "audit-delay-compliance-risk",
        }

    def test_manhours_rule_needs_both_conditions(self):
        assert "manhours-depletion-risk" in self._ids(
            {"manhoursBalance": 40, "projectCompletionPercent": 50}
        )
        assert "manhours-depletion-risk" not in self._ids(
            {"manhoursBalance": 40, "projectCompletionPercent": 95}
        )

    def test_closure_preparation(self):
        assert self._ids({"projectCompletionPercent": 90}) == [
            "project-completion-closure-preparation"
        ]

    def test_empty_entity_triggers_nothing(self):
        """Missing KPI is not 'below 70'; missing balance is not 'below 50'."""
        assert self._ids({}) == []

    def test_population_rule_fires_above_share(self):
        population = [{"carsOpen": 6}, {"carsOpen": 7}, {"carsOpen": 0}]
        assert "multi-project-pattern-detection" in self._ids({}, population)

    def test_population_rule_share_is_strict(self):
        """3 of 10 is exactly 30% and does not fire."""
        population = [{"carsOpen": 9}] * 3 + [{"carsOpen": 0}] * 7
        assert "multi-project-pattern-detection" not in self._ids({}, population)

    def test_population_rule_empty_population(self):
        assert "multi-project-pattern-detection" not in self._ids({}, [])

    def test_population_scope_flag(self):
        scoped = [r.rule_id for r in DEFAULT_RULES if r.population_scope]
        assert scoped == ["multi-project-pattern-detection"]

    def test_to_insight(self, troubled_project):
        rule = build_default_rules().get("high-cars-safety-risk")
        insight = rule.to_insight()
        assert insight.rule_id == "high-cars-safety-risk"
        assert insight.priority == Priority.HIGH
        assert PROJECT_QUALITY in insight.affected_modules


# ── Isolation ──────────────────────────────────────────────────────────


class TestRuleIsolation:

    def test_failing_rule_does_not_abort_others(self):
        registry = RuleRegistry([
            ExplodingRule(
                rule_id="exploding",
                priority=Priority.CRITICAL,
                affected_modules=(),
                message="",
                actions=(),
                insight="",
            ),
            _rule("after-explosion"),
        ])
        triggered = RuleEngine(registry).evaluate_rules({"carsOpen": 9})
        assert [r.rule_id for r in triggered] == ["after-explosion"]

    def test_population_rule_with_malformed_members(self):
        rule = PopulationShareRule(
            rule_id="share",
            priority=Priority.CRITICAL,
            affected_modules=(),
            message="",
            actions=(),
            insight="",
            condition=Condition("carsOpen", RuleOperator.GT, 5),
            min_share=0.3,
        )
        population = [{"carsOpen": "many"}, {"carsOpen": 8}, {}]
        assert rule.matches({}, population) is True


# ── Registry ───────────────────────────────────────────────────────────


class TestRuleRegistry:

    def test_duplicate_id_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            RuleRegistry([_rule("dup"), _rule("dup")])
        assert exc_info.value.details["rule_id"] == "dup"

    def test_register_and_get(self):
        registry = RuleRegistry()
        registry.register(_rule("one"))
        assert registry.get("one").rule_id == "one"
        assert registry.get("missing") is None
        assert len(registry) == 1

    def test_rules_are_immutable(self):
        rule = _rule()
        with pytest.raises(FrozenInstanceError):
            rule.priority = Priority.LOW
