"""
Proximity Ranking

Orders candidates by how close they are to a requester: great-circle
distance when both sides have coordinates, otherwise a categorical proxy
(same district, same province, anywhere else). Advisory only - ranking
decides display order and never stops a distant provider from responding.

Fun fact: The haversine ("half versed sine") was tabulated for ship
navigators in the early 1800s, long before anyone needed to find the
nearest spare cricket bat!
"""

import math
from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, Field

from gear_share.directory.models import Coordinates, Location
from gear_share.kernel.policy import ExchangePolicy

_DEFAULT_POLICY = ExchangePolicy()


class RankCandidate(BaseModel):
    """Something to be ordered: a request, a provider, a school"""

    candidate_id: str
    location: Location | None = None
    created_at: datetime
    item: Any = Field(default=None, description="Opaque record carried through ranking")


class RankedCandidate(BaseModel):
    """A candidate with the distance it was ranked by"""

    candidate_id: str
    distance_km: float
    created_at: datetime
    item: Any = None


def haversine_km(a: Coordinates, b: Coordinates, radius_km: float = 6371.0) -> float:
    """
    Great-circle distance between two points

    d = 2R * asin(sqrt(sin^2(dlat/2) + cos(lat1) * cos(lat2) * sin^2(dlon/2)))

    Example:
        >>> colombo = Coordinates(latitude=6.9271, longitude=79.8612)
        >>> kandy = Coordinates(latitude=7.2906, longitude=80.6337)
        >>> round(haversine_km(colombo, kandy))
        94
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points
    return 2 * radius_km * math.asin(math.sqrt(min(1.0, h)))


def proxy_distance(
    a: Location | None, b: Location | None, policy: ExchangePolicy = _DEFAULT_POLICY
) -> float:
    """Categorical stand-in when coordinates are missing on either side"""
    if a is None or b is None:
        return policy.default_distance
    if a.district == b.district:
        return policy.same_district_distance
    if a.province == b.province:
        return policy.same_province_distance
    return policy.default_distance


def distance_between(
    a: Location | None, b: Location | None, policy: ExchangePolicy = _DEFAULT_POLICY
) -> float:
    """Haversine when both have coordinates, proxy distance otherwise"""
    if a is not None and b is not None and a.coordinates and b.coordinates:
        return haversine_km(a.coordinates, b.coordinates, policy.earth_radius_km)
    return proxy_distance(a, b, policy)


def rank(
    requester_location: Location | None,
    candidates: list[RankCandidate],
    policy: ExchangePolicy = _DEFAULT_POLICY,
    distance_fn: Callable[[RankCandidate], float] | None = None,
) -> list[RankedCandidate]:
    """
    Order candidates nearest first

    Ties are broken by creation time (earlier first), then by candidate id
    so the order is fully deterministic.

    Args:
        requester_location: Where the ranking is relative to
        candidates: Records to order
        policy: Proxy distances and earth radius
        distance_fn: Override distance lookup (e.g. a cached one)

    Example:
        >>> ranked = rank(colombo_school, [kandy_request, gampaha_request])
        >>> [r.candidate_id for r in ranked]
        ['gampaha', 'kandy']
    """
    measure = distance_fn or (
        lambda c: distance_between(requester_location, c.location, policy)
    )
    ranked = [
        RankedCandidate(
            candidate_id=c.candidate_id,
            distance_km=measure(c),
            created_at=c.created_at,
            item=c.item,
        )
        for c in candidates
    ]
    return sorted(ranked, key=lambda r: (r.distance_km, r.created_at, r.candidate_id))
