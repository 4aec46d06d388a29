"""
In-process query cache for backend reads.

Entries are keyed by a QueryKey (the request descriptor) rather than by URL
strings, and invalidation is expressed as QueryPattern objects: a pattern
matches every key whose fields equal the pattern's non-None fields.
"""

import logging
import threading
import time
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Optional, Tuple

from gigcrm.config import config

logger = logging.getLogger(__name__)

# Resource names used in QueryKey.resource
RESOURCE_ASSIGNMENTS_BY_MUSICIAN = 'assignments-by-musician'
RESOURCE_ASSIGNMENTS = 'assignments'
RESOURCE_CONTRACT = 'contract'
RESOURCE_CONTRACT_MUSICIANS = 'contract-musicians'
RESOURCE_CONTRACTS = 'contracts'
RESOURCE_MUSICIAN_CONTRACT_TOKEN = 'musician-contract-token'


@dataclass(frozen=True)
class QueryKey:
    """Typed descriptor of one cached read."""
    resource: str
    planner_id: Optional[int] = None
    contract_id: Optional[int] = None
    token: Optional[str] = None
    extra: Tuple = ()


@dataclass(frozen=True)
class QueryPattern:
    """Selects every QueryKey whose fields equal this pattern's non-None fields."""
    resource: Optional[str] = None
    planner_id: Optional[int] = None
    contract_id: Optional[int] = None
    token: Optional[str] = None

    def matches(self, key: QueryKey) -> bool:
        for f in fields(self):
            wanted = getattr(self, f.name)
            if wanted is not None and getattr(key, f.name) != wanted:
                return False
        return True


def planner_patterns(planner_id: int) -> List[QueryPattern]:
    """Every key derived from a planner: the by-musician grouping and the raw list."""
    return [
        QueryPattern(resource=RESOURCE_ASSIGNMENTS_BY_MUSICIAN, planner_id=planner_id),
        QueryPattern(resource=RESOURCE_ASSIGNMENTS, planner_id=planner_id),
    ]


def contract_patterns(contract_id: int) -> List[QueryPattern]:
    """Every key derived from a contract, plus the contract lists it appears in."""
    return [
        QueryPattern(contract_id=contract_id),
        QueryPattern(resource=RESOURCE_CONTRACTS),
    ]


class QueryCache:
    """
    Cache of decoded backend responses with a freshness window.
    Thread-safe so bulk responses running in a worker pool can invalidate.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = config.CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: Dict[QueryKey, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: QueryKey) -> Optional[Any]:
        """Cached value if present and fresh, else None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Cache MISS: {key}")
                return None
            stored_at, value = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                logger.debug(f"Cache STALE: {key}")
                return None
            logger.debug(f"Cache HIT: {key}")
            return value

    def set(self, key: QueryKey, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)
        logger.debug(f"Cache SET: {key}")

    def fetch(self, key: QueryKey, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value for key, calling loader() on a miss.
        Loader errors propagate and nothing is stored.
        """
        value = self.get(key)
        if value is not None:
            return value
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, *patterns: QueryPattern) -> int:
        """Drop every entry matched by any pattern. Returns the number dropped."""
        with self._lock:
            doomed = [k for k in self._entries if any(p.matches(k) for p in patterns)]
            for k in doomed:
                del self._entries[k]
        if doomed:
            logger.debug(f"Cache INVALIDATE: {len(doomed)} entries for {list(patterns)}")
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries


# Global cache instance
cache = QueryCache()
