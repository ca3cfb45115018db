"""In-memory TTL caches, one per data class."""

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from models.constants import TTL

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    expires_at: float  # absolute timestamp, seconds


class TTLCache:
    """
    Key -> value store with per-entry expiry.

    Values are deep-copied on the way in and out so callers can never
    mutate a cached entry in place. Reading an expired entry removes it
    and behaves exactly like a miss.
    """

    def __init__(
        self,
        name: str,
        default_ttl: int,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.default_ttl = default_ttl
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._store[key]
            logger.debug(f"[{self.name}] expired: {key}")
            return None
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._store[key] = CacheEntry(
            value=copy.deepcopy(value), expires_at=self._clock() + ttl
        )

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None

    def delete_matching(self, substring: str) -> int:
        """Delete every entry whose key contains ``substring``."""
        doomed = [k for k in self._store if substring in k]
        for key in doomed:
            del self._store[key]
        return len(doomed)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class CacheRegistry:
    """Holds the process-wide cache for each data class."""

    def __init__(
        self,
        ttl_overrides: Optional[Dict[str, int]] = None,
        clock: Callable[[], float] = time.time,
    ):
        ttls = dict(TTL)
        ttls.update(ttl_overrides or {})
        self.property = TTLCache("property", ttls["property"], clock)
        self.schools = TTLCache("schools", ttls["schools"], clock)
        self.ai = TTLCache("ai", ttls["ai"], clock)
        self.plot_size = TTLCache("plot_size", ttls["plot_size"], clock)
        self.market_data = TTLCache("market_data", ttls["market_data"], clock)

    def all(self):
        return [self.property, self.schools, self.ai, self.plot_size, self.market_data]

    def bust_entity(self, entity_key: str) -> int:
        """Drop every key containing ``entity_key`` across all caches."""
        removed = sum(cache.delete_matching(entity_key) for cache in self.all())
        logger.info(f"Cache bust for {entity_key}: {removed} entries removed")
        return removed

