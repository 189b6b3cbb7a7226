"""
QHSE Intelligence Engine — orchestrates all engine components.

This is the single entry point for callers. It:
1. Evaluates module factors and declarative rules independently
2. Aggregates factor levels into a 0-100 score and a risk level
3. Derives cross-module impacts and a prioritized action list
4. Blends data quality, history and context into a confidence value
5. Memoizes the result and records history in the injected store

Change analysis and population analysis are separate operations.

Concurrency: every operation is a coroutine whose only suspension point
is the simulated processing delay. Per-call state lives in locals; the
store is the only shared state. Callers may pass an asyncio.Event as
`cancel`; when it is set by the time processing resumes the call raises
AnalysisCancelledError and writes nothing.
"""

import asyncio
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence, TypeVar

import structlog

from qhsecast.config import Settings, settings as default_settings
from qhsecast.engine.changes import ChangeDetector, ImpactPropagator
from qhsecast.engine.confidence import (
    DEFAULT_CONTEXT_RELEVANCE,
    RECORDED_ACCURACY,
    ConfidenceEstimator,
    RandomSource,
    context_relevance,
    data_quality,
    historical_accuracy,
)
from qhsecast.engine.factors import FactorEvaluator
from qhsecast.engine.population import PopulationAnalyzer
from qhsecast.engine.rules import Rule, RuleEngine, RuleRegistry, build_default_rules
from qhsecast.engine.schemas import (
    ActionItem,
    ActionSource,
    ChangeImpact,
    ContextualHelp,
    CrossModuleImpact,
    Insight,
    RecommendationResult,
    SystemInsights,
)
from qhsecast.engine.scoring import ScoreAggregator, classify_risk, impact_priority
from qhsecast.engine.values import Entity, entity_id, is_populated
from qhsecast.errors import AnalysisCancelledError
from qhsecast.knowledge.base import KnowledgeBase, build_default_knowledge
from qhsecast.knowledge.schemas import PRIORITY_ORDER, FactorLevel, ModuleKnowledge, Priority
from qhsecast.services.store import (
    HistoryEntry,
    InMemoryResultStore,
    ResultStore,
    recommendation_key,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Fields whose presence makes an entity useful for population analysis.
POPULATION_FIELDS: tuple[str, ...] = (
    "carsOpen",
    "projectKPIsAchievedPercent",
    "manhoursBalance",
    "delayInAuditsNoDays",
)

# Reference-library matches are curated, so their quality input is fixed.
HELP_SOURCE_QUALITY: float = 0.90
HELP_STANDARDS_PER_TOPIC: int = 2


@dataclass(frozen=True)
class CachedRecommendation:
    fingerprint: str
    result: RecommendationResult


def fingerprint(entity: Entity, module_id: str, population: Sequence[Entity]) -> str:
    """Content hash of the inputs a recommendation depends on."""
    payload = json.dumps(
        {"entity": dict(entity), "module": module_id, "population": [dict(e) for e in population]},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode()).hexdigest()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class QHSEIntelligenceEngine:
    """
    Recommendation and risk-scoring engine.

    All collaborators are injectable: knowledge base, rule registry,
    result store and random source. Defaults build the QHSE catalog and
    an in-memory store.
    """

    def __init__(
        self,
        knowledge: Optional[KnowledgeBase] = None,
        rules: Optional[RuleRegistry] = None,
        store: Optional[ResultStore] = None,
        rng: Optional[RandomSource] = None,
        config: Optional[Settings] = None,
    ):
        self.config = config if config is not None else default_settings
        self.knowledge = knowledge if knowledge is not None else build_default_knowledge()
        self.store: ResultStore = store if store is not None else InMemoryResultStore(
            default_ttl=self.config.cache_ttl_seconds,
            capacity=self.config.history_capacity,
        )
        self.factors = FactorEvaluator(self.knowledge)
        self.rules = RuleEngine(rules if rules is not None else build_default_rules())
        self.aggregator = ScoreAggregator(self.factors)
        self.detector = ChangeDetector()
        self.propagator = ImpactPropagator()
        self.population = PopulationAnalyzer(self.config.population)
        self.confidence = ConfidenceEstimator(rng, self.config)

    # ── Recommendations ───────────────────────────────────────────────

    async def generate_recommendations(
        self,
        entity: Entity,
        module_id: str,
        population: Optional[Sequence[Entity]] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> RecommendationResult:
        """
        Full assessment of one entity for one module.

        Identical inputs within the cache TTL return the memoized result.
        Raises UnknownModuleError for a module without a factor table.
        """
        module = self.knowledge.module(module_id)
        population = list(population or [])
        eid = entity_id(entity)

        with structlog.contextvars.bound_contextvars(entity_id=eid, module_id=module_id):
            key = recommendation_key(eid, module_id) if eid else None
            digest = fingerprint(entity, module_id, population)
            if key is not None:
                cached = self._store_call("get", lambda: self.store.get(key), None)
                if isinstance(cached, CachedRecommendation) and cached.fingerprint == digest:
                    logger.debug("recommendation_cache_hit")
                    return cached.result

            await self._simulate_processing(
                self.config.recommendation_delay_seconds, cancel, "generate_recommendations", eid
            )

            insights = self.factors.evaluate_factors(entity, module_id)
            triggered = self.rules.evaluate_rules(entity, population)
            score = self.aggregator.aggregate_score(entity, module_id)
            risk_level = classify_risk(score, triggered)

            quality = data_quality(entity)
            confidence = self.confidence.estimate_confidence(
                quality,
                historical_accuracy(self._history()),
                context_relevance(entity, module),
            )

            result = RecommendationResult(
                entity_id=eid,
                project_name=entity.get("projectTitle"),
                source_module=module_id,
                generated_at=_now(),
                overall_score=score,
                risk_level=risk_level,
                insights=insights,
                triggered_rules=[rule.to_insight() for rule in triggered],
                cross_module_impacts=self._cross_module_impacts(module, score),
                action_items=self._action_items(triggered, insights),
                confidence=round(confidence, 4),
                data_quality=round(quality, 4),
                sources=self._sources(module),
            )

            if key is not None:
                self._store_call(
                    "put",
                    lambda: self.store.put(key, CachedRecommendation(digest, result)),
                    None,
                )
                self._store_call(
                    "append_history",
                    lambda: self.store.append_history(eid, score, RECORDED_ACCURACY),
                    None,
                )

            logger.info(
                "recommendations_generated",
                overall_score=score,
                risk_level=risk_level.value,
                n_insights=len(insights),
                n_rules_triggered=len(triggered),
                confidence=result.confidence,
            )
            return result

    def cached_recommendation(self, entity_key: str, module_id: str) -> Optional[RecommendationResult]:
        """Latest unexpired result for an entity id, whatever its inputs were."""
        cached = self._store_call(
            "get", lambda: self.store.get(recommendation_key(entity_key, module_id)), None
        )
        return cached.result if isinstance(cached, CachedRecommendation) else None

    # ── Change analysis ───────────────────────────────────────────────

    async def analyze_change(
        self,
        old_entity: Entity,
        new_entity: Entity,
        module_id: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> ChangeImpact:
        """Diff two snapshots and propagate their impact to other modules."""
        module = self.knowledge.module(module_id)
        eid = entity_id(new_entity)

        with structlog.contextvars.bound_contextvars(entity_id=eid, module_id=module_id):
            await self._simulate_processing(
                self.config.change_delay_seconds, cancel, "analyze_change", eid
            )

            changes = self.detector.detect_changes(old_entity, new_entity)
            affected: list[str] = []
            propagation = []
            urgent_actions: list[str] = []
            for change in changes:
                assessment = self.propagator.assess_change_impact(change, new_entity, module_id)
                for target in assessment.affected_modules:
                    if target not in affected:
                        affected.append(target)
                propagation.extend(assessment.propagation_needed)
                if assessment.urgent and assessment.urgent_action:
                    urgent_actions.append(assessment.urgent_action)

            confidence = self.confidence.estimate_confidence(
                data_quality(new_entity),
                historical_accuracy(self._history()),
                context_relevance(new_entity, module),
            )

            impact = ChangeImpact(
                changes=changes,
                affected_modules=affected,
                propagation_needed=propagation,
                urgent_actions=urgent_actions,
                predictions=self.propagator.predict_from_changes(changes),
                confidence=round(confidence, 4),
            )

            logger.info(
                "change_analyzed",
                n_changes=len(changes),
                affected_modules=affected,
                n_urgent=len(urgent_actions),
            )
            return impact

    # ── System-wide analysis ──────────────────────────────────────────

    async def get_system_wide_insights(
        self,
        population: Sequence[Entity],
        cancel: Optional[asyncio.Event] = None,
    ) -> SystemInsights:
        """Health, patterns, correlations, predictions and strategy."""
        population = list(population)
        await self._simulate_processing(
            self.config.system_insights_delay_seconds, cancel, "get_system_wide_insights"
        )

        health = self.population.calculate_system_health(population)
        patterns = self.population.detect_patterns(population)
        correlations = self.population.find_correlations(population)
        predictions = self.population.generate_predictions(population)
        # All-zero health from an empty population is not a signal.
        strategy = (
            self.population.strategic_recommendations(health, patterns, correlations)
            if population else []
        )

        if population:
            quality = sum(data_quality(e) for e in population) / len(population)
            coverage = sum(
                sum(1 for f in POPULATION_FIELDS if is_populated(e.get(f))) / len(POPULATION_FIELDS)
                for e in population
            ) / len(population)
        else:
            quality, coverage = 0.0, 0.0
        confidence = self.confidence.estimate_confidence(
            quality, historical_accuracy(self._history()), coverage
        )

        logger.info(
            "system_insights_generated",
            population=len(population),
            overall_health=health.overall,
            n_patterns=len(patterns),
            n_correlations=len(correlations),
        )
        return SystemInsights(
            generated_at=_now(),
            total_entities=len(population),
            health=health,
            patterns=patterns,
            correlations=correlations,
            predictions=predictions,
            strategic_recommendations=strategy,
            confidence=round(confidence, 4),
        )

    # ── Contextual help ───────────────────────────────────────────────

    async def get_contextual_help(
        self,
        query: str,
        module_id: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> ContextualHelp:
        """Answer a free-text question from the reference library."""
        module = self.knowledge.module(module_id)
        await self._simulate_processing(
            self.config.contextual_help_delay_seconds, cancel, "get_contextual_help"
        )

        library = self.knowledge.references
        query_lower = query.lower()
        topics: list[str] = []
        for topic in library.standards:
            keywords = library.keywords.get(topic, ())
            if topic in module.reference_topics or any(k in query_lower for k in keywords):
                topics.append(topic)

        standards: list[str] = []
        for topic in topics:
            for ref in library.for_topic(topic, HELP_STANDARDS_PER_TOPIC):
                if ref not in standards:
                    standards.append(ref)
        practices = list(library.best_practices[: self.config.best_practice_sources])

        if standards:
            answer = (
                f"Based on {', '.join(standards)} and industry best practices, the "
                f"recommended approach for \"{query}\" in {module.name} context involves "
                "implementing structured processes aligned with international standards. "
                "Specific guidance should be obtained from the referenced standards."
            )
        else:
            answer = (
                f"No specific standard matched \"{query}\" in {module.name} context. "
                "Refer to the listed best practices and the module's factor guidance."
            )

        confidence = self.confidence.estimate_confidence(
            HELP_SOURCE_QUALITY,
            historical_accuracy(self._history()),
            1.0 if standards else DEFAULT_CONTEXT_RELEVANCE,
        )
        return ContextualHelp(
            query=query,
            module_id=module_id,
            answer=answer,
            sources=standards + [p for p in practices if p not in standards],
            relevant_standards=standards,
            best_practices=practices,
            confidence=round(confidence, 4),
        )

    # ── Helpers ───────────────────────────────────────────────────────

    async def _simulate_processing(
        self,
        delay: float,
        cancel: Optional[asyncio.Event],
        operation: str,
        eid: Optional[str] = None,
    ) -> None:
        if cancel is not None and cancel.is_set():
            raise AnalysisCancelledError(operation, eid)
        await asyncio.sleep(delay)
        if cancel is not None and cancel.is_set():
            logger.info("analysis_cancelled", operation=operation)
            raise AnalysisCancelledError(operation, eid)

    def _store_call(self, operation: str, fn: Callable[[], T], fallback: T) -> T:
        """Store outages degrade to a miss / no-op, never a failure."""
        try:
            return fn()
        except Exception as exc:
            logger.warning("result_store_unavailable", operation=operation, error=str(exc))
            return fallback

    def _history(self) -> list[HistoryEntry]:
        return self._store_call("history", self.store.history, [])

    def _cross_module_impacts(self, module: ModuleKnowledge, score: int) -> list[CrossModuleImpact]:
        if self.knowledge.connection(module.module_id) is None:
            return []
        priority = impact_priority(score)
        return [
            CrossModuleImpact(
                source_module=module.module_id,
                target_module=target,
                recommendations=list(advice),
                priority=priority,
            )
            for target, advice in module.cross_module_recommendations.items()
        ]

    def _action_items(self, triggered: Sequence[Rule], insights: Sequence[Insight]) -> list[ActionItem]:
        """Rule actions + critical factor actions, deduplicated and priority-sorted."""
        candidates: list[ActionItem] = []
        for rule in triggered:
            for action in rule.actions:
                candidates.append(ActionItem(
                    priority=rule.priority,
                    action=action,
                    source=ActionSource.RULE,
                    rule_id=rule.rule_id,
                    affected_modules=list(rule.affected_modules),
                ))
        for insight in insights:
            if insight.level != FactorLevel.CRITICAL:
                continue
            candidates.append(ActionItem(
                priority=Priority.HIGH,
                action=f"Address {insight.factor}: {insight.message}",
                source=ActionSource.INSIGHT,
                factor=insight.factor,
                impacts=list(insight.impacts),
            ))

        candidates.sort(key=lambda item: PRIORITY_ORDER[item.priority])
        seen: set[str] = set()
        actions: list[ActionItem] = []
        for item in candidates:
            if item.action in seen:
                continue
            seen.add(item.action)
            actions.append(item)
        return actions[: self.config.max_action_items]

    def _sources(self, module: ModuleKnowledge) -> list[str]:
        library = self.knowledge.references
        sources: list[str] = []
        for topic in module.reference_topics:
            sources.extend(library.for_topic(topic, self.config.sources_per_topic))
        sources.extend(library.best_practices[: self.config.best_practice_sources])
        return list(dict.fromkeys(sources))
