"""
In-process TTL cache for provider responses.

Entries expire lazily on read; a background sweeper task also removes
expired entries periodically to bound memory. Nothing is persisted across
restarts.
"""
import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float


def make_cache_key(
    service: str,
    method: str,
    endpoint: str,
    params: Optional[Dict[str, Any]] = None,
) -> str:
    """Deterministic hash of (service, method, endpoint, params)."""
    payload = json.dumps(
        [service, method.upper(), endpoint, params or {}],
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResponseCache:
    """Key -> value store where every entry carries its own expiry time."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._entries[key] = CacheEntry(
            key=key, value=value, expires_at=self._clock() + ttl_seconds
        )

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            self.misses += 1
            return None

        self.hits += 1
        return entry.value

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "entries": [
                {
                    "key": entry.key,
                    "expires_at": datetime.fromtimestamp(entry.expires_at).isoformat(),
                }
                for entry in self._entries.values()
            ],
        }

    # -------------------------------------------------------------------------
    # Periodic sweep
    # -------------------------------------------------------------------------

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.cleanup()

    def start_sweeper(self, interval: float = 300.0) -> None:
        """Start the background sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever(interval))
            logger.info(f"Cache sweeper started (every {interval:.0f}s)")

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
