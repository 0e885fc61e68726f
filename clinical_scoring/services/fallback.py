"""
Fallback Chain - Clinical Scoring Core
clinical_scoring/services/fallback.py

An ordered list of providers, each guarded by its own breaker entry, tried
until one succeeds. When every provider is unavailable or fails, the static
default is returned.
"""
from functools import partial
from typing import Any, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

import structlog

from clinical_scoring.core.exceptions import ServiceUnavailable
from clinical_scoring.services.circuit_breaker import CircuitBreakerRegistry

logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_SOURCE = "default"


class FallbackChain(Generic[T]):
    """
    Args:
        providers: ``(name, fn)`` pairs. ``name`` doubles as the breaker key.
        default: A value, or a callable receiving the same arguments as the
            providers, used when the chain is exhausted.
        breakers: Registry guarding the providers.
        timeout: Per-provider timeout in seconds, or None for no timeout.
        default_source: Source label reported for the default.
    """

    def __init__(
        self,
        providers: Sequence[Tuple[str, Callable[..., T]]],
        default: Union[T, Callable[..., T]],
        breakers: CircuitBreakerRegistry,
        timeout: Optional[float] = None,
        default_source: str = DEFAULT_SOURCE,
    ):
        self.providers: List[Tuple[str, Callable[..., T]]] = list(providers)
        self.default = default
        self.breakers = breakers
        self.timeout = timeout
        self.default_source = default_source

    def resolve(self, *args: Any, **kwargs: Any) -> Tuple[T, str]:
        """Return ``(value, source_name)`` from the first provider that succeeds."""
        for name, provider in self.providers:
            try:
                value = self.breakers.call(name, partial(provider, *args, **kwargs), self.timeout)
            except ServiceUnavailable as e:
                logger.info("fallback_provider_unavailable", provider=name, reason=str(e))
                continue
            except Exception as e:
                logger.warning(
                    "fallback_provider_failed",
                    provider=name,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            return value, name

        if callable(self.default):
            return self.default(*args, **kwargs), self.default_source
        return self.default, self.default_source
