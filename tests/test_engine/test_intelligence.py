"""
QHSE Intelligence Engine Tests.

Tests the full pipeline: factors → rules → score → risk → actions →
confidence → store, plus change analysis, system insights and
contextual help.
"""

import asyncio

import pytest

from qhsecast.engine.rules import AttributeRule, Condition, RuleOperator, RuleRegistry
from qhsecast.engine.schemas import ActionSource, RiskLevel
from qhsecast.errors import AnalysisCancelledError, UnknownModuleError
from qhsecast.knowledge.catalog import (
    ENERGY,
    ENVIRONMENTAL,
    HEALTH_SAFETY,
    PROJECT_QUALITY,
    QUALITY_MANAGEMENT,
)
from qhsecast.knowledge.schemas import PRIORITY_ORDER, Priority


class BrokenStore:
    """Store whose backend is down."""

    def get(self, key):
        raise ConnectionError("store offline")

    def put(self, key, value, ttl=None):
        raise ConnectionError("store offline")

    def append_history(self, entity_id, score, accuracy):
        raise ConnectionError("store offline")

    def history(self):
        raise ConnectionError("store offline")


def _rule(rule_id: str, priority: Priority, actions: tuple[str, ...]) -> AttributeRule:
    return AttributeRule(
        rule_id=rule_id,
        priority=priority,
        affected_modules=(PROJECT_QUALITY,),
        message=rule_id,
        actions=actions,
        insight="",
        conditions=(Condition("carsOpen", RuleOperator.GTE, 0),),
    )


# ── Recommendations ────────────────────────────────────────────────────


class TestGenerateRecommendations:

    @pytest.mark.asyncio
    async def test_healthy_project(self, engine, healthy_project):
        result = await engine.generate_recommendations(healthy_project, PROJECT_QUALITY)
        assert result.overall_score == 90
        assert result.risk_level == RiskLevel.LOW
        assert result.insights == []
        assert result.triggered_rules == []
        assert result.action_items == []
        assert result.entity_id == "PRJ-001"
        assert result.project_name == "Compressor Station Upgrade"
        assert result.source_module == PROJECT_QUALITY

    @pytest.mark.asyncio
    async def test_troubled_project(self, engine, troubled_project):
        result = await engine.generate_recommendations(troubled_project, PROJECT_QUALITY)
        assert result.overall_score == 36
        assert result.risk_level == RiskLevel.CRITICAL
        assert len(result.insights) == 4
        assert {r.rule_id for r in result.triggered_rules} == {
            "high-cars-safety-risk",
            "low-kpi-environmental-impact",
            "manhours-depletion-risk",
            "audit-delay-compliance-risk",
        }

    @pytest.mark.asyncio
    async def test_action_items_sorted_and_capped(self, engine, troubled_project):
        """12 rule actions + 4 critical-factor actions, capped at 10."""
        result = await engine.generate_recommendations(troubled_project, PROJECT_QUALITY)
        actions = result.action_items
        assert len(actions) == 10
        assert all(a.priority == Priority.HIGH for a in actions)
        assert actions[-1].source == ActionSource.INSIGHT
        assert actions[-1].action.startswith("Address cars_open: ")
        assert len({a.action for a in actions}) == 10

    @pytest.mark.asyncio
    async def test_action_items_deduplicated_keep_highest_priority(self, make_engine):
        registry = RuleRegistry([
            _rule("low-first", Priority.LOW, ("Shared action", "Low only")),
            _rule("critical-second", Priority.CRITICAL, ("Shared action",)),
        ])
        engine = make_engine(rules=registry)
        result = await engine.generate_recommendations({"id": "X", "carsOpen": 1}, ENERGY)
        shared = [a for a in result.action_items if a.action == "Shared action"]
        assert len(shared) == 1
        assert shared[0].priority == Priority.CRITICAL
        assert shared[0].rule_id == "critical-second"
        orders = [PRIORITY_ORDER[a.priority] for a in result.action_items]
        assert orders == sorted(orders)

    @pytest.mark.asyncio
    async def test_cross_module_impacts(self, engine, troubled_project):
        result = await engine.generate_recommendations(troubled_project, PROJECT_QUALITY)
        targets = {i.target_module: i for i in result.cross_module_impacts}
        assert set(targets) == {QUALITY_MANAGEMENT, HEALTH_SAFETY, ENVIRONMENTAL, ENERGY}
        assert all(i.priority == Priority.HIGH for i in targets.values())
        assert all(i.source_module == PROJECT_QUALITY for i in targets.values())

    @pytest.mark.asyncio
    async def test_confidence_and_data_quality(self, engine, healthy_project):
        """Fully populated entity, default history accuracy, no perturbation."""
        result = await engine.generate_recommendations(healthy_project, PROJECT_QUALITY)
        assert result.data_quality == 1.0
        assert result.confidence == pytest.approx(0.9125)

    @pytest.mark.asyncio
    async def test_sources(self, engine, healthy_project):
        result = await engine.generate_recommendations(healthy_project, HEALTH_SAFETY)
        assert result.sources == [
            "ISO 45001:2018 Occupational Health & Safety",
            "OSHA Regulations and Guidelines",
            "NEBOSH Safety Management",
            "Continuous improvement methodologies (Kaizen, Six Sigma)",
            "Risk-based thinking and FMEA analysis",
        ]

    @pytest.mark.asyncio
    async def test_population_rule(self, engine, healthy_project):
        population = [{"carsOpen": 8}, {"carsOpen": 9}, {"carsOpen": 0}]
        result = await engine.generate_recommendations(
            healthy_project, PROJECT_QUALITY, population
        )
        assert [r.rule_id for r in result.triggered_rules] == ["multi-project-pattern-detection"]
        assert result.action_items[0].priority == Priority.CRITICAL
        assert result.risk_level == RiskLevel.HIGH

    @pytest.mark.asyncio
    async def test_unknown_module(self, engine, healthy_project):
        with pytest.raises(UnknownModuleError):
            await engine.generate_recommendations(healthy_project, "finance")

    @pytest.mark.asyncio
    async def test_malformed_entity_never_raises(self, engine):
        entity = {"id": "odd", "carsOpen": "several", "projectKPIsAchievedPercent": None}
        result = await engine.generate_recommendations(entity, PROJECT_QUALITY)
        assert 0 <= result.overall_score <= 100

    @pytest.mark.asyncio
    async def test_deterministic_modulo_confidence(self, make_engine, fixed_random, troubled_project):
        first = await make_engine(rng=fixed_random(0.04)).generate_recommendations(
            troubled_project, PROJECT_QUALITY
        )
        second = await make_engine(
            rng=fixed_random(-0.04), store=None
        ).generate_recommendations(troubled_project, PROJECT_QUALITY)
        assert first.overall_score == second.overall_score
        assert first.risk_level == second.risk_level
        assert first.action_items == second.action_items
        assert first.confidence != second.confidence


# ── Store interaction ──────────────────────────────────────────────────


class TestResultStore:

    def test_injected_empty_store_is_kept(self, engine, store):
        assert len(store) == 0
        assert engine.store is store

    @pytest.mark.asyncio
    async def test_identical_inputs_are_memoized(self, engine, store, troubled_project):
        first = await engine.generate_recommendations(troubled_project, PROJECT_QUALITY)
        second = await engine.generate_recommendations(troubled_project, PROJECT_QUALITY)
        assert second is first
        assert len(store.history()) == 1

    @pytest.mark.asyncio
    async def test_changed_entity_is_recomputed(self, engine, store, troubled_project):
        first = await engine.generate_recommendations(troubled_project, PROJECT_QUALITY)
        updated = {**troubled_project, "carsOpen": 0}
        second = await engine.generate_recommendations(updated, PROJECT_QUALITY)
        assert second is not first
        assert second.overall_score > first.overall_score
        assert len(store.history()) == 2
        assert engine.cached_recommendation("PRJ-002", PROJECT_QUALITY) is second

    @pytest.mark.asyncio
    async def test_expired_result_is_recomputed(self, engine, store, clock, healthy_project):
        first = await engine.generate_recommendations(healthy_project, PROJECT_QUALITY)
        clock.advance(301)
        assert engine.cached_recommendation("PRJ-001", PROJECT_QUALITY) is None
        second = await engine.generate_recommendations(healthy_project, PROJECT_QUALITY)
        assert second is not first

    @pytest.mark.asyncio
    async def test_history_records_score(self, engine, store, troubled_project):
        await engine.generate_recommendations(troubled_project, PROJECT_QUALITY)
        entry = store.history()[0]
        assert entry.entity_id == "PRJ-002"
        assert entry.score == 36
        assert entry.accuracy == 0.80

    @pytest.mark.asyncio
    async def test_entity_without_id_is_not_stored(self, engine, store):
        await engine.generate_recommendations({"carsOpen": 1}, PROJECT_QUALITY)
        assert len(store) == 0
        assert store.history() == []

    @pytest.mark.asyncio
    async def test_store_failure_degrades(self, make_engine, troubled_project):
        engine = make_engine(store=BrokenStore())
        result = await engine.generate_recommendations(troubled_project, PROJECT_QUALITY)
        assert result.overall_score == 36
        assert engine.cached_recommendation("PRJ-002", PROJECT_QUALITY) is None


# ── Cancellation ───────────────────────────────────────────────────────


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, engine, store, troubled_project):
        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(AnalysisCancelledError):
            await engine.generate_recommendations(
                troubled_project, PROJECT_QUALITY, cancel=cancel
            )
        assert len(store) == 0
        assert store.history() == []

    @pytest.mark.asyncio
    async def test_cancelled_while_processing(self, make_engine, test_settings, store, troubled_project):
        config = test_settings.model_copy(update={"recommendation_delay_seconds": 0.05})
        engine = make_engine(config=config)
        cancel = asyncio.Event()
        task = asyncio.create_task(
            engine.generate_recommendations(troubled_project, PROJECT_QUALITY, cancel=cancel)
        )
        await asyncio.sleep(0.01)
        cancel.set()
        with pytest.raises(AnalysisCancelledError) as exc_info:
            await task
        assert exc_info.value.details["entity_id"] == "PRJ-002"
        assert len(store) == 0
        assert store.history() == []

    @pytest.mark.asyncio
    async def test_other_operations_honour_cancel(self, engine, population):
        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(AnalysisCancelledError):
            await engine.analyze_change({}, {}, PROJECT_QUALITY, cancel=cancel)
        with pytest.raises(AnalysisCancelledError):
            await engine.get_system_wide_insights(population, cancel=cancel)
        with pytest.raises(AnalysisCancelledError):
            await engine.get_contextual_help("audit", PROJECT_QUALITY, cancel=cancel)


# ── Change analysis ────────────────────────────────────────────────────


class TestAnalyzeChange:

    @pytest.mark.asyncio
    async def test_identical_snapshots(self, engine, troubled_project):
        impact = await engine.analyze_change(
            troubled_project, dict(troubled_project), PROJECT_QUALITY
        )
        assert impact.changes == []
        assert impact.affected_modules == []
        assert impact.urgent_actions == []
        assert impact.predictions == []

    @pytest.mark.asyncio
    async def test_multiple_changes(self, engine):
        old = {"id": "P1", "carsOpen": 2, "projectKPIsAchievedPercent": 80, "manhoursBalance": 150}
        new = {"id": "P1", "carsOpen": 7, "projectKPIsAchievedPercent": 65, "manhoursBalance": 90}
        impact = await engine.analyze_change(old, new, PROJECT_QUALITY)
        assert [c.field for c in impact.changes] == [
            "carsOpen", "projectKPIsAchievedPercent", "manhoursBalance",
        ]
        assert impact.affected_modules == [
            PROJECT_QUALITY, QUALITY_MANAGEMENT, HEALTH_SAFETY, ENVIRONMENTAL,
        ]
        assert len(impact.urgent_actions) == 2
        assert [p.type for p in impact.predictions] == ["trend", "resource-shortage"]
        assert 0.40 <= impact.confidence <= 0.99

    @pytest.mark.asyncio
    async def test_unknown_module(self, engine):
        with pytest.raises(UnknownModuleError):
            await engine.analyze_change({}, {}, "finance")


# ── System-wide insights ───────────────────────────────────────────────


class TestSystemWideInsights:

    @pytest.mark.asyncio
    async def test_population(self, engine, population):
        insights = await engine.get_system_wide_insights(population)
        assert insights.total_entities == 4
        assert insights.health.overall == 78
        assert len(insights.patterns) == 3
        assert [c.strength for c in insights.correlations] == ["strong"]
        assert {p.type for p in insights.predictions} == {"risk-prediction", "resource-forecast"}
        assert len(insights.strategic_recommendations) == 2
        assert insights.analysis_type == "comprehensive"

    @pytest.mark.asyncio
    async def test_empty_population(self, engine):
        insights = await engine.get_system_wide_insights([])
        assert insights.total_entities == 0
        assert insights.patterns == []
        assert insights.correlations == []
        assert insights.predictions == []
        assert insights.strategic_recommendations == []
        assert insights.confidence >= 0.40


# ── Contextual help ────────────────────────────────────────────────────


class TestContextualHelp:

    @pytest.mark.asyncio
    async def test_module_topic(self, engine):
        help_ = await engine.get_contextual_help("How do I reduce consumption?", ENERGY)
        assert help_.relevant_standards == [
            "ISO 50001:2018 Energy Management",
            "LEED Certification Standards",
        ]
        assert len(help_.best_practices) == 2
        assert "ISO 50001:2018 Energy Management" in help_.answer

    @pytest.mark.asyncio
    async def test_query_keywords_add_topics(self, engine):
        help_ = await engine.get_contextual_help("Carbon AUDIT schedule", ENERGY)
        standards = help_.relevant_standards
        assert "ISO 9001:2015 Quality Management Systems" in standards
        assert "ISO 14001:2015 Environmental Management" in standards
        assert "ISO 50001:2018 Energy Management" in standards
        assert not any("45001" in s for s in standards)

    @pytest.mark.asyncio
    async def test_sources_combine_standards_and_practices(self, engine):
        help_ = await engine.get_contextual_help("safety walk", HEALTH_SAFETY)
        assert help_.sources == help_.relevant_standards + help_.best_practices
        assert help_.module_id == HEALTH_SAFETY
        assert help_.query == "safety walk"

    @pytest.mark.asyncio
    async def test_unknown_module(self, engine):
        with pytest.raises(UnknownModuleError):
            await engine.get_contextual_help("audit", "finance")
