"""
Per-process TTL caches

Serverless instances do not share memory, so these only save repeated
reads within one warm instance.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger()

PUBLISHED_VEHICLES_KEY = "published_vehicles"


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """Dict cache whose entries expire ``ttl_seconds`` after they are set"""

    def __init__(self, ttl_seconds: float, max_entries: int = 1000):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= time.monotonic():
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        if len(self._entries) >= self.max_entries:
            self.cleanup()
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = CacheEntry(value=value, expires_at=time.monotonic() + ttl)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Drop expired entries and return how many were removed"""
        now = time.monotonic()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("cache_cleanup", removed=len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


# Singleton instance
_vehicle_cache: Optional[TTLCache] = None


def get_vehicle_cache() -> TTLCache:
    """Get or create the published-vehicle cache"""
    global _vehicle_cache
    if _vehicle_cache is None:
        from src.config import get_api_config
        _vehicle_cache = TTLCache(ttl_seconds=get_api_config().vehicle_cache_ttl_seconds)
    return _vehicle_cache


def invalidate_vehicle_cache() -> None:
    get_vehicle_cache().invalidate(PUBLISHED_VEHICLES_KEY)
