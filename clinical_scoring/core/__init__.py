"""
Core Package - Clinical Scoring Core
clinical_scoring/core/__init__.py

Core infrastructure: exceptions.
"""

from clinical_scoring.core.exceptions import (
    ConfigurationError,
    DependencyTimeout,
    EvaluationCancelled,
    RateLimitExceeded,
    ScoringCoreError,
    ServiceUnavailable,
    ValidationError,
)

__all__ = [
    "ConfigurationError",
    "DependencyTimeout",
    "EvaluationCancelled",
    "RateLimitExceeded",
    "ScoringCoreError",
    "ServiceUnavailable",
    "ValidationError",
]
