"""
Proximity Module

Nearest-first ordering of requests and providers.
"""

from gear_share.proximity.cache import DistanceCache
from gear_share.proximity.ranking import (
    RankCandidate,
    RankedCandidate,
    distance_between,
    haversine_km,
    proxy_distance,
    rank,
)

__all__ = [
    "DistanceCache",
    "RankCandidate",
    "RankedCandidate",
    "distance_between",
    "haversine_km",
    "proxy_distance",
    "rank",
]
