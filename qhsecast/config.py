"""
QHSECast Configuration.

Pydantic Settings v2 — loads from .env, environment variables (prefix QHSE_).
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PopulationThresholds(BaseModel):
    """Fixed bounds used by the population analyzer. Not learned."""

    # Pattern detection (qualifying ratio is compared with >=)
    high_cars_open: float = 3.0
    high_cars_ratio: float = 0.25
    audit_delay_days: float = 7.0
    audit_delay_ratio: float = 0.20
    low_manhours_balance: float = 100.0
    low_manhours_ratio: float = 0.30

    # Correlations
    low_kpi_percent: float = 70.0
    low_kpi_high_cars_frequency: float = 0.5
    near_complete_percent: float = 85.0
    near_complete_open_cars_frequency: float = 0.4

    # Predictions
    at_risk_kpi_percent: float = 75.0
    at_risk_manhours_balance: float = 50.0
    manhours_planning_multiplier: float = 1.2


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="QHSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────────────────
    app_name: str = "QHSECast"
    app_version: str = "1.0.0"
    environment: str = "development"

    # ── Result cache & history ───────────────────────────────────────────
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    history_capacity: int = Field(default=100, gt=0)

    # ── Simulated processing latency (seconds) ───────────────────────────
    recommendation_delay_seconds: float = Field(default=1.2, ge=0)
    change_delay_seconds: float = Field(default=0.8, ge=0)
    system_insights_delay_seconds: float = Field(default=1.5, ge=0)
    contextual_help_delay_seconds: float = Field(default=1.0, ge=0)
    session_debounce_seconds: float = Field(default=0.5, ge=0)

    # ── Recommendations ──────────────────────────────────────────────────
    max_action_items: int = Field(default=10, gt=0)
    sources_per_topic: int = Field(default=3, gt=0)
    best_practice_sources: int = Field(default=2, ge=0)

    # ── Confidence blend ─────────────────────────────────────────────────
    confidence_weight_data_quality: float = 0.40
    confidence_weight_historical: float = 0.35
    confidence_weight_context: float = 0.25
    confidence_jitter: float = Field(default=0.05, ge=0)
    confidence_floor: float = 0.40
    confidence_ceiling: float = 0.99

    # ── Population analysis ──────────────────────────────────────────────
    population: PopulationThresholds = Field(default_factory=PopulationThresholds)

    # ── Operational ──────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "console"


settings = Settings()
