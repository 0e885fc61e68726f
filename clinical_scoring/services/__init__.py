"""
Services module for the clinical scoring core.

Resilience components (rate limiter, circuit breakers, fallback chain,
cache) and the collaborator seams (events, record validation).
"""

from clinical_scoring.services.cache import ScoringCache, create_cache, make_cache_key
from clinical_scoring.services.circuit_breaker import CircuitBreakerRegistry
from clinical_scoring.services.events import Event, EventChannel
from clinical_scoring.services.fallback import FallbackChain
from clinical_scoring.services.rate_limiter import RateLimiter
from clinical_scoring.services.validation import ShapeValidator

__all__ = [
    "CircuitBreakerRegistry",
    "Event",
    "EventChannel",
    "FallbackChain",
    "RateLimiter",
    "ScoringCache",
    "ShapeValidator",
    "create_cache",
    "make_cache_key",
]
