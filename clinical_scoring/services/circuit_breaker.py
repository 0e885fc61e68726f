"""
Circuit Breaker - Clinical Scoring Core
clinical_scoring/services/circuit_breaker.py

Per-dependency circuit breakers held in one registry.

States:
    closed     calls pass; consecutive failures are counted
    open       calls are rejected with ServiceUnavailable until the reset
               timeout has elapsed since the last failure
    half-open  exactly one trial call is admitted; its outcome closes or
               re-opens the breaker

Transitions happen only when outcomes are reported or when ``before_call``
finds the reset timeout elapsed. Nothing polls.
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, TypeVar

import structlog

from clinical_scoring.core.exceptions import DependencyTimeout, ServiceUnavailable
from clinical_scoring.models.enumerations import CircuitStatus
from clinical_scoring.models.results import BreakerStatus
from clinical_scoring.services.clock import Clock, system_clock

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass
class CircuitState:
    status: CircuitStatus = CircuitStatus.CLOSED
    consecutive_failures: int = 0
    last_failure_at: Optional[float] = None
    last_success_at: Optional[float] = None
    trial_in_flight: bool = False
    # Lifetime counters
    total_calls: int = 0
    total_failures: int = 0
    total_rejections: int = 0
    total_timeouts: int = 0
    state_changes: int = 0


class CircuitBreakerRegistry:
    """Breaker state for every named dependency, guarded by one lock."""

    def __init__(
        self,
        threshold: int = 3,
        reset_timeout: float = 60.0,
        clock: Optional[Clock] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        if threshold < 1:
            raise ValueError(f"threshold must be >= 1, got {threshold}")
        if reset_timeout <= 0:
            raise ValueError(f"reset_timeout must be > 0, got {reset_timeout}")

        self.threshold = threshold
        self.reset_timeout = reset_timeout
        self._clock = clock or system_clock
        self._states: Dict[str, CircuitState] = {}
        self._lock = threading.Lock()
        self._executor = executor

    def _state(self, name: str) -> CircuitState:
        state = self._states.get(name)
        if state is None:
            state = CircuitState()
            self._states[name] = state
        return state

    def _transition(self, name: str, state: CircuitState, status: CircuitStatus) -> None:
        if state.status == status:
            return
        logger.warning(
            "circuit_state_changed",
            dependency=name,
            previous=state.status.value,
            current=status.value,
            failures=state.consecutive_failures,
        )
        state.status = status
        state.state_changes += 1

    def before_call(self, name: str) -> None:
        """
        Admit a call to ``name`` or raise ServiceUnavailable.

        An open breaker whose reset timeout has elapsed moves to half-open and
        admits the caller as its single trial. Other callers are rejected
        until that trial reports.
        """
        with self._lock:
            state = self._state(name)
            now = self._clock()

            if state.status == CircuitStatus.OPEN:
                elapsed = now - (state.last_failure_at or now)
                if elapsed < self.reset_timeout:
                    state.total_rejections += 1
                    raise ServiceUnavailable(name, retry_after=self.reset_timeout - elapsed)
                self._transition(name, state, CircuitStatus.HALF_OPEN)
                state.trial_in_flight = False

            if state.status == CircuitStatus.HALF_OPEN:
                if state.trial_in_flight:
                    state.total_rejections += 1
                    raise ServiceUnavailable(name, message=f"{name} trial call already in flight")
                state.trial_in_flight = True

            state.total_calls += 1

    def report_success(self, name: str) -> None:
        with self._lock:
            state = self._state(name)
            state.consecutive_failures = 0
            state.last_success_at = self._clock()
            state.trial_in_flight = False
            self._transition(name, state, CircuitStatus.CLOSED)

    def report_failure(self, name: str) -> None:
        with self._lock:
            state = self._state(name)
            state.consecutive_failures += 1
            state.total_failures += 1
            state.last_failure_at = self._clock()

            if state.status == CircuitStatus.HALF_OPEN:
                state.trial_in_flight = False
                self._transition(name, state, CircuitStatus.OPEN)
            elif state.consecutive_failures >= self.threshold:
                self._transition(name, state, CircuitStatus.OPEN)

    def report(self, name: str, success: bool) -> None:
        if success:
            self.report_success(name)
        else:
            self.report_failure(name)

    def call(self, name: str, fn: Callable[[], T], timeout: Optional[float] = None) -> T:
        """
        Run ``fn`` behind the breaker for ``name``.

        With a timeout, ``fn`` runs on a worker thread raced against it; a
        timeout is reported as a failure and raised as DependencyTimeout.
        The outcome is always reported before this returns or raises.
        """
        self.before_call(name)

        if timeout is None:
            try:
                result = fn()
            except Exception:
                self.report_failure(name)
                raise
            self.report_success(name)
            return result

        executor = self._executor or _shared_executor()
        future = executor.submit(fn)
        try:
            result = future.result(timeout=timeout)
        except FutureTimeout:
            future.cancel()
            with self._lock:
                self._state(name).total_timeouts += 1
            self.report_failure(name)
            logger.warning("dependency_timeout", dependency=name, timeout=timeout)
            raise DependencyTimeout(name, timeout)
        except Exception:
            self.report_failure(name)
            raise
        self.report_success(name)
        return result

    def status(self, name: str) -> CircuitStatus:
        with self._lock:
            return self._state(name).status

    def failures(self, name: str) -> int:
        with self._lock:
            return self._state(name).consecutive_failures

    def stats(self, name: str) -> Dict[str, int]:
        """Lifetime counters for one dependency."""
        with self._lock:
            state = self._state(name)
            return {
                "total_calls": state.total_calls,
                "total_failures": state.total_failures,
                "total_rejections": state.total_rejections,
                "total_timeouts": state.total_timeouts,
                "state_changes": state.state_changes,
            }

    def snapshot(self) -> List[BreakerStatus]:
        with self._lock:
            return [
                BreakerStatus(
                    name=name,
                    status=state.status,
                    failures=state.consecutive_failures,
                )
                for name, state in sorted(self._states.items())
            ]

    def reset(self, name: Optional[str] = None) -> None:
        with self._lock:
            if name is None:
                self._states.clear()
            else:
                self._states.pop(name, None)


_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def _shared_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="dependency")
        return _executor
