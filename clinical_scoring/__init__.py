"""
Clinical Scoring Core

Real-time scoring, risk stratification, quality assessment and
recommendations for home health assessment records.

    from clinical_scoring import build_orchestrator, IndicatorRecord

    orchestrator = build_orchestrator()
    result = orchestrator.evaluate(record, actor_id="clinician-42")
"""

from clinical_scoring.config import Settings, get_settings
from clinical_scoring.core.exceptions import (
    ConfigurationError,
    DependencyTimeout,
    EvaluationCancelled,
    RateLimitExceeded,
    ScoringCoreError,
    ServiceUnavailable,
    ValidationError,
)
from clinical_scoring.logging_config import configure_logging
from clinical_scoring.models import (
    AssessmentKind,
    EvaluationResult,
    Indicator,
    IndicatorRecord,
    ResilienceStatus,
    ValidationReport,
)
from clinical_scoring.scoring.orchestrator import ScoringOrchestrator, build_orchestrator

__version__ = "1.0.0"

__all__ = [
    "AssessmentKind",
    "ConfigurationError",
    "DependencyTimeout",
    "EvaluationCancelled",
    "EvaluationResult",
    "Indicator",
    "IndicatorRecord",
    "RateLimitExceeded",
    "ResilienceStatus",
    "ScoringCoreError",
    "ScoringOrchestrator",
    "ServiceUnavailable",
    "Settings",
    "ValidationError",
    "ValidationReport",
    "build_orchestrator",
    "configure_logging",
    "get_settings",
]
