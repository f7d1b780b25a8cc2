"""
Rate limiting for the sign up / sign in endpoints.

Per-IP sliding window kept in process memory. One window per limit name,
so a burst of failed sign-ins does not block registration.
"""
import time
import logging
from collections import defaultdict, deque
from typing import Deque, Dict, Tuple

from fastapi import HTTPException, Request, status

from app.services.logging import bookkeeping_logger

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """Counts request timestamps per (limit name, client ip)."""

    def __init__(self, cleanup_interval: int = 60):
        self._hits: Dict[Tuple[str, str], Deque[float]] = defaultdict(deque)
        self._windows: Dict[str, int] = {}
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = time.monotonic()

    def _cleanup_old_entries(self, now: float):
        """Drop ips without requests inside their window."""
        if now - self._last_cleanup < self._cleanup_interval:
            return

        self._last_cleanup = now
        for key in list(self._hits.keys()):
            window = self._hits[key]
            cutoff = now - self._windows.get(key[0], 0)
            while window and window[0] <= cutoff:
                window.popleft()
            if not window:
                del self._hits[key]

    def hit(self, name: str, ip: str, max_requests: int, window_seconds: int) -> Tuple[bool, int]:
        """
        Register a request and report whether it exceeds the limit.

        Returns:
            Tuple of (is_limited, requests_remaining)
        """
        now = time.monotonic()
        self._windows[name] = window_seconds
        self._cleanup_old_entries(now)

        window = self._hits[(name, ip)]
        while window and window[0] <= now - window_seconds:
            window.popleft()

        if len(window) >= max_requests:
            logger.warning(
                "Rate limit exceeded for %s",
                name,
                extra={
                    "event": "rate_limit_exceeded",
                    "limit": name,
                    "ip": ip,
                    "max_requests": max_requests,
                },
            )
            return True, 0

        window.append(now)
        return False, max_requests - len(window)

    def reset(self):
        self._hits.clear()
        self._windows.clear()
        self._last_cleanup = time.monotonic()


rate_limiter = SlidingWindowLimiter()


RATE_LIMITS = {
    "register": {"max_requests": 5, "window_seconds": 60},
    "login": {"max_requests": 10, "window_seconds": 60},
}


def get_client_ip(request: Request) -> str:
    """Get client IP from request, considering proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def check_rate_limit(name: str, request: Request) -> None:
    """Raise 429 when the client exceeded the configured limit for ``name``."""
    config = RATE_LIMITS.get(name)
    if config is None:
        return

    is_limited, _ = rate_limiter.hit(
        name,
        get_client_ip(request),
        max_requests=config["max_requests"],
        window_seconds=config["window_seconds"],
    )
    if is_limited:
        bookkeeping_logger.rate_limit_exceeded(
            operation=name,
            ip=get_client_ip(request),
            limit=config["max_requests"],
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "code": "RATE_LIMITED",
                "message": "Te veel pogingen. Probeer het later opnieuw.",
            },
            headers={"Retry-After": str(config["window_seconds"])},
        )
