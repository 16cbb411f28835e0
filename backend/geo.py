"""Safety Spotter Backend — Geofenced incident query.

Pure functions shared by every endpoint that needs to narrow incidents or
missing persons down to a category and a radius around a chosen point:

  distance_km    great-circle distance (haversine)
  within_radius  keep items whose coordinates fall inside a circle
  by_type        keep items of one incident type, or everything
  query          the two-collection query used by the map and list views

Nothing here mutates its inputs or touches shared state.
"""

import math
import logging
from typing import Any, Iterable, NamedTuple, Optional, TypeVar

from pydantic import ValidationError

from config import EARTH_RADIUS_KM, DEFAULT_RADIUS_KM
from models import Coordinate

logger = logging.getLogger("safety.geo")

T = TypeVar("T")

ALL = "all"
MISSING = "missing"

# Distances at or below this count as "at the center" for a zero radius
_TOLERANCE_KM = 1e-9


class QueryResult(NamedTuple):
    incidents: list
    missing_persons: list


def distance_km(p1: Any, p2: Any) -> float:
    """Great-circle distance in kilometres between two points with .lat/.lng."""
    lat1, lat2 = math.radians(p1.lat), math.radians(p2.lat)
    dlat = lat2 - lat1
    dlng = math.radians(p2.lng - p1.lng)
    a = (math.sin(dlat / 2) ** 2
         + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2)
    # Clamp against floating-point overshoot near antipodes
    a = max(0.0, min(1.0, a))
    return EARTH_RADIUS_KM * 2 * math.asin(math.sqrt(a))


def as_coordinate(point: Any) -> Optional[Coordinate]:
    """A Coordinate from a Coordinate, a {"lat", "lng"} dict or any object with .lat/.lng."""
    if point is None or isinstance(point, Coordinate):
        return point
    try:
        if isinstance(point, dict):
            return Coordinate(lat=point["lat"], lng=point["lng"])
        return Coordinate(lat=point.lat, lng=point.lng)
    except (ValidationError, AttributeError, KeyError, TypeError):
        return None


def coordinates_of(item: Any) -> Optional[Coordinate]:
    """Return the item's coordinates, or None when it has no usable location.

    Accepts model instances and plain dicts. Out-of-range or malformed
    coordinates are treated the same as missing ones.
    """
    raw = item.get("coordinates") if isinstance(item, dict) else getattr(item, "coordinates", None)
    return as_coordinate(raw)


def within_radius(items: Iterable[T], center: Any, radius_km: float) -> list[T]:
    """Items whose coordinates lie within ``radius_km`` of ``center``, in input order.

    ``center`` may be a Coordinate, a dict or any object with lat/lng.
    """
    if radius_km < 0 or math.isnan(radius_km):
        raise ValueError(f"radius_km must be non-negative, got {radius_km}")
    point = as_coordinate(center)
    if point is None:
        raise ValueError(f"center must have valid lat/lng, got {center!r}")
    kept = []
    for item in items:
        coords = coordinates_of(item)
        if coords is None:
            continue
        if distance_km(coords, point) <= radius_km + _TOLERANCE_KM:
            kept.append(item)
    return kept


def _type_of(item: Any) -> Optional[str]:
    return item.get("type") if isinstance(item, dict) else getattr(item, "type", None)


def by_type(items: Iterable[T], selector: str) -> list[T]:
    """Items whose type equals ``selector``; ``ALL`` keeps everything."""
    if selector == ALL:
        return list(items)
    return [item for item in items if _type_of(item) == selector]


def incident_selector(category: str) -> Optional[str]:
    """Incident-type predicate for a UI category (None → no incidents at all)."""
    if category == MISSING:
        return None
    return category


def shows_missing_persons(category: str) -> bool:
    """Missing persons are a separate collection, visible only for 'all' and 'missing'."""
    return category in (ALL, MISSING)


def query(
    incidents: Iterable[Any],
    missing_persons: Iterable[Any],
    category: str = ALL,
    center: Any = None,
    radius_km: Optional[float] = None,
) -> QueryResult:
    """Apply the category stage, then the radius stage, to both collections.

    Without a center the radius stage is skipped entirely. A center without
    a radius uses DEFAULT_RADIUS_KM.
    """
    selector = incident_selector(category)
    found_incidents = by_type(incidents, selector) if selector is not None else []
    found_missing = list(missing_persons) if shows_missing_persons(category) else []

    if center is not None:
        radius = DEFAULT_RADIUS_KM if radius_km is None else radius_km
        found_incidents = within_radius(found_incidents, center, radius)
        found_missing = within_radius(found_missing, center, radius)

    return QueryResult(found_incidents, found_missing)
