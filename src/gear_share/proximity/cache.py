"""
Distance cache

Memoises distances per (requester, provider) pair so a provider browsing
open requests does not recompute every pair on every listing. Entries are
dropped when either party moves.
"""

import threading
from typing import Callable

from gear_share.kernel.logging import get_logger

logger = get_logger(__name__)


class DistanceCache:
    """Thread-safe pair distance memo with per-party invalidation"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._distances: dict[tuple[str, str], float] = {}
        self.hits = 0
        self.misses = 0

    def get_or_compute(
        self, requester_id: str, provider_id: str, compute: Callable[[], float]
    ) -> float:
        key = (requester_id, provider_id)
        with self._lock:
            if key in self._distances:
                self.hits += 1
                return self._distances[key]
        distance = compute()
        with self._lock:
            self.misses += 1
            self._distances[key] = distance
        return distance

    def invalidate(self, party_id: str) -> int:
        """Forget every pair involving a party; returns how many were dropped"""
        with self._lock:
            stale = [k for k in self._distances if party_id in k]
            for key in stale:
                del self._distances[key]
        if stale:
            logger.debug("Distance cache invalidated", party_id=party_id, dropped=len(stale))
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._distances.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._distances)
