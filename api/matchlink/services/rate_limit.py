import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, HTTPException, Request

from ..auth.deps import get_current_member

logger = logging.getLogger(__name__)


@dataclass
class RateDecision:
    allowed: bool
    retry_after_seconds: int


class SlidingWindowLimiter:
    """Per-key sliding window kept in process memory."""

    def __init__(self) -> None:
        self._events: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        now = time.time()
        cutoff = now - window_seconds
        with self._lock:
            dq = self._events[key]
            while dq and dq[0] <= cutoff:
                dq.popleft()
            if len(dq) >= limit:
                retry_after = max(1, int(dq[0] + window_seconds - now))
                return RateDecision(allowed=False, retry_after_seconds=retry_after)
            dq.append(now)
            return RateDecision(allowed=True, retry_after_seconds=0)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()


limiter = SlidingWindowLimiter()


def _fallback_identifier(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for", "").strip()
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def member_rate_limit(route_key: str, limit: int, window_seconds: int):
    """Dependency limiting ``route_key`` per authenticated member."""

    def _dep(request: Request, member: dict[str, Any] = Depends(get_current_member)) -> None:
        ident = str(member.get("id") or _fallback_identifier(request))
        decision = limiter.check(f"{route_key}:{ident}", limit=limit, window_seconds=window_seconds)
        if not decision.allowed:
            logger.info("[rate_limit] %s blocked member=%s retry_after=%s", route_key, ident, decision.retry_after_seconds)
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Retry in {decision.retry_after_seconds}s",
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )

    return Depends(_dep)
