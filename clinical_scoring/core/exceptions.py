"""
Custom Exceptions - Clinical Scoring Core
clinical_scoring/core/exceptions.py

Typed errors surfaced by the scoring core. Callers receive either a complete
result or one of these.
"""
from typing import List, Optional


class ScoringCoreError(Exception):
    """Base exception for the scoring core."""

    pass


class ValidationError(ScoringCoreError):
    """Record is malformed or missing required fields."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid indicator record: " + "; ".join(self.errors))


class RateLimitExceeded(ScoringCoreError):
    """Actor exceeded its request quota for the current window."""

    def __init__(self, actor_id: str, retry_after: float):
        self.actor_id = actor_id
        self.retry_after = retry_after
        super().__init__(
            f"Rate limit exceeded for actor {actor_id}; retry after {retry_after:.1f}s"
        )


class ServiceUnavailable(ScoringCoreError):
    """Circuit breaker is open for a named dependency."""

    def __init__(self, dependency: str, retry_after: Optional[float] = None, message: Optional[str] = None):
        self.dependency = dependency
        self.retry_after = retry_after
        super().__init__(message or f"{dependency} service is temporarily unavailable")


class DependencyTimeout(ServiceUnavailable):
    """Guarded dependency call did not finish within its timeout."""

    def __init__(self, dependency: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            dependency,
            message=f"{dependency} call timed out after {timeout:.2f}s",
        )


class ConfigurationError(ScoringCoreError):
    """Weight or domain tables are invalid. Raised at startup only."""

    pass


class EvaluationCancelled(ScoringCoreError):
    """Caller cancelled the evaluation before it completed."""

    pass
