"""
Engine Schemas — results produced per call.

Every result is created fresh by one engine call and is immutable
afterwards (frozen models), so cached values can be shared safely.
"""

from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from qhsecast.knowledge.schemas import FactorLevel, Priority


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChangeType(StrEnum):
    INCREASED = "increased"
    DECREASED = "decreased"
    UNCHANGED = "unchanged"


class ActionSource(StrEnum):
    RULE = "rule"
    INSIGHT = "insight"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Recommendations ────────────────────────────────────────────────────


class Insight(_Frozen):
    """A factor that is not in its good range."""
    factor: str
    value: float
    level: FactorLevel
    message: str
    impacts: list[str] = Field(default_factory=list)
    weight: float


class RuleInsight(_Frozen):
    """Rationale contributed by a triggered rule."""
    rule_id: str
    priority: Priority
    message: str
    insight: str
    affected_modules: list[str] = Field(default_factory=list)


class ActionItem(_Frozen):
    priority: Priority
    action: str
    source: ActionSource
    rule_id: Optional[str] = None
    factor: Optional[str] = None
    affected_modules: list[str] = Field(default_factory=list)
    impacts: list[str] = Field(default_factory=list)


class CrossModuleImpact(_Frozen):
    source_module: str
    target_module: str
    recommendations: list[str] = Field(default_factory=list)
    priority: Priority


class RecommendationResult(_Frozen):
    """Per-entity assessment for one module."""
    entity_id: Optional[str] = None
    project_name: Optional[str] = None
    source_module: str
    generated_at: str

    overall_score: int                  # 0-100
    risk_level: RiskLevel
    insights: list[Insight] = Field(default_factory=list)
    triggered_rules: list[RuleInsight] = Field(default_factory=list)
    cross_module_impacts: list[CrossModuleImpact] = Field(default_factory=list)
    action_items: list[ActionItem] = Field(default_factory=list)

    confidence: float                   # 0-1, heuristic
    data_quality: float                 # 0-1
    analysis_depth: str = "standard"
    sources: list[str] = Field(default_factory=list)


# ── Change impact ──────────────────────────────────────────────────────


class ChangeRecord(_Frozen):
    field: str
    old_value: Any = None
    new_value: Any = None
    change_type: ChangeType


class PropagationTarget(_Frozen):
    module: str
    update_type: str = "dashboard-refresh"
    reason: str


class ChangeAssessment(_Frozen):
    """Impact of a single change."""
    affected_modules: list[str] = Field(default_factory=list)
    propagation_needed: list[PropagationTarget] = Field(default_factory=list)
    urgent: bool = False
    urgent_action: Optional[str] = None


class Prediction(_Frozen):
    type: str
    message: str
    confidence: float
    timeframe: str
    severity: Priority = Priority.MEDIUM
    recommendation: Optional[str] = None
    entity_ids: list[str] = Field(default_factory=list)


class ChangeImpact(_Frozen):
    changes: list[ChangeRecord] = Field(default_factory=list)
    affected_modules: list[str] = Field(default_factory=list)
    propagation_needed: list[PropagationTarget] = Field(default_factory=list)
    urgent_actions: list[str] = Field(default_factory=list)
    predictions: list[Prediction] = Field(default_factory=list)
    confidence: float = 0.0


# ── Population analysis ────────────────────────────────────────────────


class Pattern(_Frozen):
    type: str
    severity: Priority
    message: str
    recommendation: str
    count: int
    ratio: float


class Correlation(_Frozen):
    modules: list[str]
    strength: str                       # "strong" | "moderate"
    correlation: str = "positive"
    message: str
    confidence: float
    conditional_frequency: float        # P(B | A)
    baseline_frequency: float           # P(B)


class SystemHealth(_Frozen):
    quality: int = 0
    safety: int = 0
    environmental: int = 0
    energy: int = 0
    overall: int = 0


class StrategicRecommendation(_Frozen):
    priority: Priority
    category: str
    recommendation: str
    expected_impact: str
    timeline: str


class SystemInsights(_Frozen):
    generated_at: str
    total_entities: int
    health: SystemHealth
    patterns: list[Pattern] = Field(default_factory=list)
    correlations: list[Correlation] = Field(default_factory=list)
    predictions: list[Prediction] = Field(default_factory=list)
    strategic_recommendations: list[StrategicRecommendation] = Field(default_factory=list)
    confidence: float = 0.0
    analysis_type: str = "comprehensive"


# ── Contextual help ────────────────────────────────────────────────────


class ContextualHelp(_Frozen):
    query: str
    module_id: str
    answer: str
    sources: list[str] = Field(default_factory=list)
    relevant_standards: list[str] = Field(default_factory=list)
    best_practices: list[str] = Field(default_factory=list)
    confidence: float = 0.0
