"""
Rate Limiter - Clinical Scoring Core
clinical_scoring/services/rate_limiter.py

Sliding-window admission control per actor. Each actor keeps the timestamps
of admitted requests inside the trailing window; a denied request is not
recorded. Actors whose windows have emptied are swept periodically so the
index does not grow without bound.
"""
import threading
from collections import deque
from typing import Deque, Dict, Optional

import structlog

from clinical_scoring.services.clock import Clock, system_clock

logger = structlog.get_logger(__name__)


class RateLimiter:
    """Per-actor sliding-window limiter guarded by a single lock."""

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        sweep_interval: float = 300.0,
        clock: Optional[Clock] = None,
    ):
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be > 0, got {window_seconds}")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval = sweep_interval
        self._clock = clock or system_clock
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = self._clock()

    def _prune(self, window: Deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep < self.sweep_interval:
            return
        idle = []
        for actor_id, window in self._windows.items():
            self._prune(window, now)
            if not window:
                idle.append(actor_id)
        for actor_id in idle:
            del self._windows[actor_id]
        self._last_sweep = now
        if idle:
            logger.debug("rate_limiter_swept", removed=len(idle), remaining=len(self._windows))

    def admit(self, actor_id: str) -> bool:
        """
        Record and admit a request for ``actor_id`` if under quota.

        Returns:
            True if admitted, False if the actor already has ``max_requests``
            requests inside the trailing window.
        """
        with self._lock:
            now = self._clock()
            self._maybe_sweep(now)

            window = self._windows.get(actor_id)
            if window is None:
                window = deque()
                self._windows[actor_id] = window
            self._prune(window, now)

            if len(window) >= self.max_requests:
                logger.info(
                    "rate_limit_denied",
                    actor_id=actor_id,
                    in_window=len(window),
                    max_requests=self.max_requests,
                )
                return False

            window.append(now)
            return True

    def retry_after(self, actor_id: str) -> float:
        """Seconds until the actor's oldest request leaves the window."""
        with self._lock:
            window = self._windows.get(actor_id)
            if not window:
                return 0.0
            now = self._clock()
            self._prune(window, now)
            if len(window) < self.max_requests:
                return 0.0
            return max(0.0, window[0] + self.window_seconds - now)

    def active_actor_count(self) -> int:
        """Actors with at least one request inside the window."""
        with self._lock:
            now = self._clock()
            count = 0
            for window in self._windows.values():
                self._prune(window, now)
                if window:
                    count += 1
            return count

    def reset(self, actor_id: Optional[str] = None) -> None:
        with self._lock:
            if actor_id is None:
                self._windows.clear()
            else:
                self._windows.pop(actor_id, None)
