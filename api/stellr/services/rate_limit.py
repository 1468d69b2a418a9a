"""Per-user sliding-window throttling for the write endpoints.

Counters live in process memory, so each API worker enforces its own window.
"""

import logging
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, HTTPException

from ..auth.deps import get_current_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after_seconds: int
    remaining: int


class SlidingWindowLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: float = 300.0) -> None:
        self._clock = clock
        self._sweep_every = sweep_every
        self._last_sweep = clock()
        # (route, user) -> (window seconds, hit timestamps)
        self._hits: dict[tuple[str, str], tuple[int, deque[float]]] = {}
        self._lock = threading.Lock()

    def hit(self, route_key: str, user_id: str, limit: int, window_seconds: int) -> RateDecision:
        now = self._clock()
        key = (route_key, user_id)
        with self._lock:
            if now - self._last_sweep >= self._sweep_every:
                self._drop_idle(now)
            _, hits = self._hits.setdefault(key, (window_seconds, deque()))
            while hits and now - hits[0] >= window_seconds:
                hits.popleft()
            if len(hits) >= limit:
                wait = math.ceil(hits[0] + window_seconds - now)
                return RateDecision(allowed=False, retry_after_seconds=max(1, wait), remaining=0)
            hits.append(now)
            return RateDecision(allowed=True, retry_after_seconds=0, remaining=limit - len(hits))

    def _drop_idle(self, now: float) -> None:
        idle = [key for key, (window, hits) in self._hits.items() if not hits or now - hits[-1] >= window]
        for key in idle:
            del self._hits[key]
        self._last_sweep = now
        if idle:
            logger.debug("[rate-limit] dropped %s idle counters", len(idle))

    def tracked(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._last_sweep = self._clock()


limiter = SlidingWindowLimiter()


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    def _dep(user: dict = Depends(get_current_user)) -> None:
        user_id = str(user["id"])
        decision = limiter.hit(route_key, user_id, limit, window_seconds)
        if not decision.allowed:
            logger.info("[rate-limit] %s throttled on %s for %ss", user_id, route_key, decision.retry_after_seconds)
            raise HTTPException(
                status_code=429,
                detail=f"Too many {route_key} requests. Retry in {decision.retry_after_seconds}s",
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )

    return Depends(_dep)
