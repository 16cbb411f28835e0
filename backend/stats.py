"""Safety Spotter Backend — Area statistics, saved-location digests, map markers.

All aggregation goes through geo.within_radius so every view uses the same
geofence semantics.
"""

import logging
from collections import Counter
from typing import Iterable, Optional

from config import (
    ICON_MAP, FALLBACK_ICON, RISK_COLORS, FALLBACK_COLOR,
    MISSING_COLOR, RISK_WEIGHTS, DEFAULT_RADIUS_KM,
)
from geo import coordinates_of, within_radius
from models import (
    Coordinate, Incident, LocationStats, MapMarker,
    MissingPerson, NearbyDigest, SavedLocation,
)

logger = logging.getLogger("safety.stats")

_RISK_ORDER = ["low", "medium", "high", "critical"]


def get_icon(incident_type: str) -> str:
    return ICON_MAP.get(incident_type, FALLBACK_ICON)


def risk_color(risk_level: str) -> str:
    return RISK_COLORS.get(risk_level, FALLBACK_COLOR)


def highest_risk(incidents: Iterable[Incident]) -> Optional[str]:
    levels = [i.riskLevel for i in incidents]
    if not levels:
        return None
    return max(levels, key=_RISK_ORDER.index)


def risk_score(incidents: list[Incident]) -> float:
    """Mean risk weight on a 0-10 scale, +0.5 per urgent incident, capped at 10."""
    if not incidents:
        return 0.0
    base = sum(RISK_WEIGHTS.get(i.riskLevel, 0.0) for i in incidents) / len(incidents)
    urgent = sum(1 for i in incidents if i.isUrgent)
    return round(min(10.0, base + 0.5 * urgent), 1)


def area_stats(
    incidents: list[Incident],
    areas: dict[str, Coordinate],
    radius_km: float = DEFAULT_RADIUS_KM,
    limit: int = 3,
) -> list[LocationStats]:
    """Rank named areas by the risk of incidents within ``radius_km`` of each."""
    stats = []
    for name, center in areas.items():
        nearby = within_radius(incidents, center, radius_km)
        if not nearby:
            continue
        type_counts = Counter(i.type for i in nearby)
        stats.append(LocationStats(
            area=name,
            incidentCount=len(nearby),
            riskScore=risk_score(nearby),
            topIncidentType=type_counts.most_common(1)[0][0],
        ))
    stats.sort(key=lambda s: (-s.riskScore, -s.incidentCount, s.area))
    return stats[:limit]


def nearby_digests(
    locations: list[SavedLocation],
    incidents: list[Incident],
    radius_km: float = DEFAULT_RADIUS_KM,
) -> list[NearbyDigest]:
    """Per saved location: incidents within the radius and their worst risk level."""
    digests = []
    for loc in locations:
        nearby = within_radius(incidents, loc.coordinates, radius_km)
        digests.append(NearbyDigest(
            location=loc,
            incidentCount=len(nearby),
            urgentCount=sum(1 for i in nearby if i.isUrgent),
            highestRisk=highest_risk(nearby),
            incidents=nearby,
        ))
    return digests


def map_markers(incidents: list[Incident], missing_persons: list[MissingPerson]) -> list[MapMarker]:
    """Marker data for every record that has coordinates; the rest are skipped."""
    markers = []
    for inc in incidents:
        coords = coordinates_of(inc)
        if coords is None:
            continue
        markers.append(MapMarker(
            id=inc.id,
            kind="incident",
            lat=coords.lat,
            lng=coords.lng,
            title=inc.title,
            icon=get_icon(inc.type),
            color=risk_color(inc.riskLevel),
        ))
    for person in missing_persons:
        coords = coordinates_of(person)
        if coords is None:
            continue
        markers.append(MapMarker(
            id=person.id,
            kind="missing",
            lat=coords.lat,
            lng=coords.lng,
            title=f"{person.name} ({person.age}세) - {person.lastLocation}",
            icon=ICON_MAP["missing"],
            color=MISSING_COLOR,
        ))
    return markers
