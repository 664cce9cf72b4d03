"""
Rate limiting for the public intake endpoints.

Usage:
    @router.post("/api/bookings", dependencies=[Depends(intake_rate_limit)])
    async def create_booking(...):
        ...

State is per process; each uvicorn worker counts on its own.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Tuple

from fastapi import Depends, HTTPException, Request, status

from .core.config import Settings, get_settings

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────
# In-Memory Rate Limiter (Sliding Window)
# ────────────────────────────────────────────────────────────────

class RateLimiter:
    def __init__(self, cleanup_interval: int = 300):
        # Structure: {(ip_address, endpoint): deque[timestamp]}
        self.requests: Dict[Tuple[str, str], Deque[float]] = defaultdict(deque)
        self.cleanup_interval = cleanup_interval  # Sweep idle clients every 5 minutes
        self.last_cleanup = time.time()

    @staticmethod
    def client_ip(request: Request) -> str:
        """
        Extract client IP, preferring X-Forwarded-For (first hop) for
        requests that came through a reverse proxy.
        """
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    def _cleanup_old_requests(self, now: float, window_seconds: int) -> None:
        """Drop clients whose whole window has expired so idle IPs are forgotten."""
        if now - self.last_cleanup < self.cleanup_interval:
            return

        cutoff = now - window_seconds
        for key in [key for key, window in self.requests.items() if not window or window[-1] <= cutoff]:
            del self.requests[key]

        self.last_cleanup = now
        logger.debug(f"Rate limiter cleanup: {len(self.requests)} clients tracked")

    def hit(self, key: Tuple[str, str], max_requests: int, window_seconds: int = 60) -> Tuple[bool, int]:
        """
        Record a request for key if it fits in the window.

        Returns:
            (is_allowed, retry_after_seconds)
        """
        now = time.time()
        self._cleanup_old_requests(now, window_seconds)

        window = self.requests[key]
        while window and window[0] <= now - window_seconds:
            window.popleft()

        if len(window) >= max_requests:
            retry_after = max(1, int(window[0] + window_seconds - now))
            return False, retry_after

        window.append(now)
        return True, 0

    def clear(self):
        self.requests.clear()
        self.last_cleanup = time.time()


# Global rate limiter instance
_rate_limiter = RateLimiter()


def get_rate_limiter() -> RateLimiter:
    return _rate_limiter


# ────────────────────────────────────────────────────────────────
# FastAPI Dependency
# ────────────────────────────────────────────────────────────────

async def intake_rate_limit(
    request: Request,
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """Reject with 429 once a client exceeds INTAKE_RATE_LIMIT_PER_MINUTE."""
    max_requests = settings.intake_rate_limit_per_minute
    if max_requests <= 0:
        return None

    ip = limiter.client_ip(request)
    is_allowed, retry_after = limiter.hit((ip, request.url.path), max_requests)
    if not is_allowed:
        logger.warning(f"[RATE_LIMIT] Blocked request from {ip} to {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many requests. Limit: {max_requests} per minute",
            headers={"Retry-After": str(retry_after)},
        )
    return None
