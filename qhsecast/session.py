"""
Module Intelligence Session — per-module, per-entity analysis driver.

Wraps the engine for a caller that edits one entity over time:
- submit(entity) debounces, then diffs against the previous snapshot and
  re-analyses; a newer submit supersedes any analysis still in flight
- the latest results are kept on the session and queried through
  small helpers (factor advice, cross-module impact, priority actions)

Usage:
    session = ModuleIntelligenceSession(engine, PROJECT_QUALITY, population)
    session.submit(project)
    result = await session.wait()
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from qhsecast.engine.intelligence import QHSEIntelligenceEngine
from qhsecast.engine.schemas import (
    ActionItem,
    ChangeImpact,
    ContextualHelp,
    CrossModuleImpact,
    RecommendationResult,
    RiskLevel,
    SystemInsights,
)
from qhsecast.engine.values import Entity, entity_id
from qhsecast.knowledge.schemas import FactorLevel, Priority

logger = structlog.get_logger(__name__)

RISK_COLORS: dict[str, str] = {
    RiskLevel.CRITICAL: "red",
    RiskLevel.HIGH: "orange",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.LOW: "green",
}


@dataclass(frozen=True)
class FactorRecommendation:
    level: FactorLevel
    message: str
    impacts: list[str] = field(default_factory=list)
    actions: list[ActionItem] = field(default_factory=list)


@dataclass(frozen=True)
class RiskSummary:
    level: str
    score: int
    color: str


class ModuleIntelligenceSession:
    """Debounced analysis of one entity in one module."""

    def __init__(
        self,
        engine: QHSEIntelligenceEngine,
        module_id: str,
        population: Optional[Sequence[Entity]] = None,
        debounce: Optional[float] = None,
    ):
        engine.knowledge.module(module_id)
        self.engine = engine
        self.module_id = module_id
        self.population: list[Entity] = list(population or [])
        self.debounce = engine.config.session_debounce_seconds if debounce is None else debounce

        self.recommendations: Optional[RecommendationResult] = None
        self.last_change: Optional[ChangeImpact] = None
        self.system_insights: Optional[SystemInsights] = None

        self._previous: Optional[Entity] = None
        self._task: Optional[asyncio.Task] = None
        self._cancel: Optional[asyncio.Event] = None

    # ── Analysis ──────────────────────────────────────────────────────

    @property
    def is_analyzing(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def change_detected(self) -> bool:
        """True when the last diff against the previous snapshot found changes."""
        return self.last_change is not None and bool(self.last_change.changes)

    def submit(self, entity: Entity) -> asyncio.Task:
        """Schedule analysis of a new snapshot, superseding any in flight."""
        self._supersede()
        self._cancel = asyncio.Event()
        self._task = asyncio.create_task(self._run(entity, self._cancel))
        return self._task

    async def wait(self) -> Optional[RecommendationResult]:
        """Wait for the current analysis and return the latest result."""
        if self._task is not None:
            await self._task
        return self.recommendations

    async def refresh(self) -> Optional[RecommendationResult]:
        """Re-analyse the last submitted snapshot and the population."""
        if self.population:
            await self.refresh_system_insights()
        if self._previous is None:
            return self.recommendations
        self.recommendations = await self.engine.generate_recommendations(
            self._previous, self.module_id, self.population
        )
        return self.recommendations

    async def refresh_system_insights(self) -> SystemInsights:
        self.system_insights = await self.engine.get_system_wide_insights(self.population)
        return self.system_insights

    async def ask(self, query: str) -> ContextualHelp:
        return await self.engine.get_contextual_help(query, self.module_id)

    def close(self) -> None:
        self._supersede()

    def _supersede(self) -> None:
        if self._task is None or self._task.done():
            return
        if self._cancel is not None:
            self._cancel.set()
        self._task.cancel()
        logger.debug("session_analysis_superseded", module_id=self.module_id)

    async def _run(self, entity: Entity, cancel: asyncio.Event) -> RecommendationResult:
        await asyncio.sleep(self.debounce)

        previous = self._previous
        if previous is not None:
            change = await self.engine.analyze_change(
                previous, entity, self.module_id, cancel=cancel
            )
            self.last_change = change
            if change.urgent_actions:
                logger.warning(
                    "urgent_actions_required",
                    entity_id=entity_id(entity),
                    module_id=self.module_id,
                    actions=change.urgent_actions,
                )
        self._previous = entity

        result = await self.engine.generate_recommendations(
            entity, self.module_id, self.population, cancel=cancel
        )
        self.recommendations = result
        return result

    # ── Queries on the latest result ──────────────────────────────────

    def factor_recommendation(self, factor_key: str) -> Optional[FactorRecommendation]:
        if self.recommendations is None:
            return None
        insight = next(
            (i for i in self.recommendations.insights if i.factor == factor_key), None
        )
        if insight is None:
            return None
        return FactorRecommendation(
            level=insight.level,
            message=insight.message,
            impacts=list(insight.impacts),
            actions=[a for a in self.recommendations.action_items if a.factor == factor_key],
        )

    def cross_module_impact(self, target_module: str) -> Optional[CrossModuleImpact]:
        if self.recommendations is None:
            return None
        return next(
            (
                impact for impact in self.recommendations.cross_module_impacts
                if impact.target_module == target_module
            ),
            None,
        )

    def is_module_affected(self, target_module: str) -> bool:
        return self.cross_module_impact(target_module) is not None

    def priority_actions(self, priority: Priority = Priority.HIGH) -> list[ActionItem]:
        """Actions at `priority`, plus every critical action."""
        if self.recommendations is None:
            return []
        return [
            action for action in self.recommendations.action_items
            if action.priority in (priority, Priority.CRITICAL)
        ]

    def risk_summary(self) -> RiskSummary:
        if self.recommendations is None:
            return RiskSummary(level="unknown", score=0, color="gray")
        level = self.recommendations.risk_level
        return RiskSummary(
            level=level.value,
            score=self.recommendations.overall_score,
            color=RISK_COLORS[level],
        )

    def confidence_percent(self) -> int:
        if self.recommendations is None:
            return 0
        return round(self.recommendations.confidence * 100)
