"""
Per-service rate limiter.

Implements sliding-window counting over the timestamps of accepted requests.
Each service can cap requests per second, minute, hour and day; a request is
admitted only if every configured window still has room. The limiter never
waits: denied callers surface a rate-limit error.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Any, Optional

from insight_engine.core.api_registry import API_REGISTRY, RateLimitConfig

logger = logging.getLogger(__name__)


# Window length in seconds for each RateLimitConfig field
WINDOWS: Dict[str, float] = {
    "per_second": 1.0,
    "per_minute": 60.0,
    "per_hour": 3600.0,
    "per_day": 86400.0,
}

DEFAULT_RATE_LIMITS: Dict[str, RateLimitConfig] = {
    service.value: config.rate_limits for service, config in API_REGISTRY.items()
}


def configured_windows(config: RateLimitConfig) -> Dict[str, tuple]:
    """Map window name -> (length_seconds, ceiling) for the windows that are set."""
    windows = {}
    for name, length in WINDOWS.items():
        ceiling = getattr(config, name)
        if ceiling is not None:
            windows[name] = (length, ceiling)
    return windows


@dataclass
class RequestWindow:
    """Accepted request timestamps for one service, oldest first."""

    service: str
    timestamps: Deque[float] = field(default_factory=deque)

    # Statistics
    total_requests: int = 0
    total_throttled: int = 0

    def prune(self, now: float, horizon: float) -> None:
        """Drop timestamps older than the largest configured window."""
        while self.timestamps and now - self.timestamps[0] >= horizon:
            self.timestamps.popleft()

    def count_since(self, now: float, length: float) -> int:
        """Count requests accepted within the last `length` seconds."""
        count = 0
        for ts in reversed(self.timestamps):
            if now - ts >= length:
                break
            count += 1
        return count


class RateLimiter:
    """
    Per-service sliding-window rate limiter.

    One instance is shared by every client of the process so that limits
    hold across concurrent calls.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._windows: Dict[str, RequestWindow] = {}
        self._lock = threading.Lock()

    def _get_window(self, service: str) -> RequestWindow:
        if service not in self._windows:
            self._windows[service] = RequestWindow(service=service)
        return self._windows[service]

    def can_proceed(self, service: str, config: Optional[RateLimitConfig] = None) -> bool:
        """
        Admit one request for a service if every configured window has room.

        Args:
            service: Provider name
            config: Ceilings to enforce (defaults to the registry entry)

        Returns:
            True if the request was admitted and recorded, False if denied
        """
        config = config or DEFAULT_RATE_LIMITS.get(service, RateLimitConfig())
        windows = configured_windows(config)

        with self._lock:
            window = self._get_window(service)
            now = self._clock()

            if not windows:
                window.total_requests += 1
                return True

            horizon = max(length for length, _ in windows.values())
            window.prune(now, horizon)

            for name, (length, ceiling) in windows.items():
                if window.count_since(now, length) >= ceiling:
                    window.total_throttled += 1
                    logger.warning(
                        f"Rate limit reached for '{service}': {ceiling} {name.replace('_', ' ')}"
                    )
                    return False

            window.timestamps.append(now)
            window.total_requests += 1
            return True

    def remaining(self, service: str, config: Optional[RateLimitConfig] = None) -> Dict[str, int]:
        """
        Get remaining slack per configured window.

        Returns:
            Dict like {"per_minute": 12, "per_day": 9811}
        """
        config = config or DEFAULT_RATE_LIMITS.get(service, RateLimitConfig())
        with self._lock:
            window = self._windows.get(service) or RequestWindow(service=service)
            now = self._clock()
            return {
                name: max(0, ceiling - window.count_since(now, length))
                for name, (length, ceiling) in configured_windows(config).items()
            }

    def get_stats(self, service: str) -> Dict[str, Any]:
        """Get rate limit statistics for a service."""
        with self._lock:
            window = self._windows.get(service) or RequestWindow(service=service)
            return {
                "service": service,
                "tracked_requests": len(window.timestamps),
                "total_requests": window.total_requests,
                "total_throttled": window.total_throttled,
            }

    def get_all_stats(self) -> Dict[str, Dict[str, Any]]:
        """Get rate limit statistics for all active services."""
        with self._lock:
            services = list(self._windows)
        return {service: self.get_stats(service) for service in services}

    def reset(self, service: Optional[str] = None) -> None:
        """Forget recorded requests for one service, or for all of them."""
        with self._lock:
            if service is None:
                self._windows.clear()
            else:
                self._windows.pop(service, None)
        logger.info(f"Reset rate limit state for '{service or 'all services'}'")
