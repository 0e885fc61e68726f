"""
Models Package - Clinical Scoring Core
clinical_scoring/models/__init__.py

Indicator records, enumerations and result structures.
"""

from clinical_scoring.models.enumerations import (
    AlertSeverity,
    AssessmentKind,
    CircuitStatus,
    Domain,
    EvidenceLevel,
    Indicator,
    Priority,
    RiskFactorName,
    RiskLevel,
    ScoreCategory,
    ValueKind,
)
from clinical_scoring.models.record import IndicatorRecord, IndicatorValue, ValidationReport
from clinical_scoring.models.results import (
    ActionPlan,
    Alert,
    CompositeScore,
    DomainScore,
    EvaluationResult,
    QualityProfile,
    Recommendation,
    ResilienceStatus,
    RiskFactor,
    RiskProfile,
)

__all__ = [
    "ActionPlan",
    "Alert",
    "AlertSeverity",
    "AssessmentKind",
    "CircuitStatus",
    "CompositeScore",
    "Domain",
    "DomainScore",
    "EvaluationResult",
    "EvidenceLevel",
    "Indicator",
    "IndicatorRecord",
    "IndicatorValue",
    "Priority",
    "QualityProfile",
    "Recommendation",
    "ResilienceStatus",
    "RiskFactor",
    "RiskFactorName",
    "RiskLevel",
    "RiskProfile",
    "ScoreCategory",
    "ValidationReport",
    "ValueKind",
]
