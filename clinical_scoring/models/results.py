from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from clinical_scoring.models.enumerations import (
    AlertSeverity,
    AssessmentKind,
    CircuitStatus,
    Domain,
    EvidenceLevel,
    Priority,
    RiskFactorName,
    RiskLevel,
    ScoreCategory,
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# =============================================================================
# SCORES
# =============================================================================

class DomainScore(_Frozen):
    """Normalized 0-100 score for one domain of one record (100 = best)."""

    domain: Domain
    score: int = Field(..., ge=0, le=100)
    raw_score: int = Field(
        ...,
        ge=0,
        le=100,
        description="Score before polarity inversion (burden for burden domains)"
    )
    items_completed: int = Field(..., ge=0)
    items_total: int = Field(..., ge=0)
    category: str

    @property
    def is_present(self) -> bool:
        return self.items_completed > 0


class DomainContribution(_Frozen):
    score: int = Field(..., ge=0, le=100)
    weight: float = Field(..., ge=0, le=1)
    contribution: float = Field(
        ...,
        ge=0,
        description="score x weight / sum of weights of present domains"
    )


class CompositeScore(_Frozen):
    score: int = Field(..., ge=0, le=100)
    category: ScoreCategory
    breakdown: Dict[Domain, DomainContribution] = Field(default_factory=dict)
    missing_domains: List[Domain] = Field(default_factory=list)


# =============================================================================
# RISK
# =============================================================================

class RiskFactor(_Frozen):
    name: RiskFactorName
    score: float = Field(..., ge=0.0, le=1.0)


class Alert(_Frozen):
    factor: RiskFactorName
    severity: AlertSeverity
    message: str
    action: str


class MonitoringPlan(_Frozen):
    factor: RiskFactorName
    frequency: str
    focus: str


class RiskProfile(_Frozen):
    composite_risk: int = Field(..., ge=0, le=100)
    level: RiskLevel
    factors: List[RiskFactor]
    alerts: List[Alert] = Field(default_factory=list)
    monitoring: List[MonitoringPlan] = Field(default_factory=list)
    readmission_source: str = Field(
        default="baseline",
        description="Which provider produced the readmission factor"
    )

    def factor_score(self, name: RiskFactorName) -> float:
        for factor in self.factors:
            if factor.name == name:
                return factor.score
        return 0.0

    def has_alert(self, severity: Optional[AlertSeverity] = None) -> bool:
        return any(severity is None or a.severity == severity for a in self.alerts)


# =============================================================================
# QUALITY
# =============================================================================

class QualityBreakdown(_Frozen):
    completeness: float = Field(..., ge=0.0, le=1.0)
    consistency: float = Field(..., ge=0.0, le=1.0)
    accuracy: float = Field(..., ge=0.0, le=1.0)
    timeliness: float = Field(..., ge=0.0, le=1.0)
    compliance: float = Field(..., ge=0.0, le=1.0)


class QualityProfile(_Frozen):
    score: int = Field(..., ge=0, le=100)
    category: ScoreCategory
    breakdown: QualityBreakdown
    inconsistencies: List[str] = Field(default_factory=list)


# =============================================================================
# RECOMMENDATIONS
# =============================================================================

class Recommendation(_Frozen):
    category: str
    priority: Priority
    title: str
    description: str
    actions: List[str] = Field(default_factory=list)
    evidence: EvidenceLevel
    timeframe: str
    rule: str = Field(..., description="Name of the rule that produced it")


class RecommendationSummary(_Frozen):
    total: int
    by_priority: Dict[Priority, int] = Field(default_factory=dict)
    by_category: Dict[str, int] = Field(default_factory=dict)
    urgent_actions: int = 0
    estimated_impact: str = "medium"


class ActionPlanItem(_Frozen):
    title: str
    priority: Priority
    actions: List[str]


class ActionPlan(_Frozen):
    immediate: List[ActionPlanItem] = Field(default_factory=list)
    short_term: List[ActionPlanItem] = Field(default_factory=list)
    medium_term: List[ActionPlanItem] = Field(default_factory=list)
    long_term: List[ActionPlanItem] = Field(default_factory=list)


# =============================================================================
# EVALUATION
# =============================================================================

class EvaluationResult(_Frozen):
    """Complete output of one orchestrator evaluation."""

    assessment_kind: AssessmentKind
    domains: List[DomainScore]
    composite: CompositeScore
    risk: RiskProfile
    quality: QualityProfile
    recommendations: List[Recommendation]
    summary: RecommendationSummary
    action_plan: ActionPlan
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# RESILIENCE STATUS
# =============================================================================

class BreakerStatus(_Frozen):
    name: str
    status: CircuitStatus
    failures: int


class CacheStats(_Frozen):
    size: int
    hits: int
    misses: int
    errors: int
    hit_rate: float = Field(..., ge=0.0, le=1.0)


class RateLimiterStatus(_Frozen):
    active_actors: int


class ResilienceStatus(_Frozen):
    rate_limiter: RateLimiterStatus
    circuit_breakers: List[BreakerStatus]
    cache: CacheStats
