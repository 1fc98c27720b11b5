import logging
import math
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request

from api.metrics import metrics


logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    def __init__(self, retry_after_s: float):
        self.retry_after_s = retry_after_s
        super().__init__(f"Rate limit exceeded, retry in {retry_after_s:.0f}s")


class FixedWindowRateLimiter:
    """Per-address request ceiling over fixed windows (default 100 per 15 min)."""

    def __init__(self, max_requests: int = 100, window_s: float = 900.0,
                 clock: Callable[[], float] = time.monotonic):
        self.max_requests = int(max_requests)
        self.window_s = float(window_s)
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._last_prune = clock()

    def hit(self, key: str) -> Optional[float]:
        """Count one request. Returns None if allowed, else seconds until reset."""
        now = self._clock()
        with self._lock:
            self._prune(now)
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_s:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)
            if count > self.max_requests:
                return max(self.window_s - (now - started), 0.0)
        return None

    def _prune(self, now: float) -> None:
        if now - self._last_prune < self.window_s:
            return
        expired = [key for key, (started, _) in self._windows.items() if now - started >= self.window_s]
        for key in expired:
            del self._windows[key]
        self._last_prune = now


def client_address(request: Request, trust_proxy: bool) -> str:
    if trust_proxy:
        forwarded = request.headers.get('x-forwarded-for')
        if forwarded:
            hops = [hop.strip() for hop in forwarded.split(',') if hop.strip()]
            if hops:
                return hops[-1]
    if request.client is not None:
        return request.client.host
    return 'unknown'


def rate_limit_dependency(limiter: Optional[FixedWindowRateLimiter], trust_proxy: bool = False):
    async def enforce(request: Request) -> None:
        if limiter is None:
            return
        address = client_address(request, trust_proxy)
        retry_after = limiter.hit(address)
        if retry_after is not None:
            metrics.record_rate_limited()
            logger.warning("Rate limit exceeded for %s on %s", address, request.url.path)
            raise RateLimitExceeded(math.ceil(retry_after))

    return enforce
