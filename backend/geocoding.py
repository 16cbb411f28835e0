"""Safety Spotter Backend — Address → coordinate resolution.

Every lookup returns one of three explicit outcomes so callers can tell a
missing address apart from a geocoding service that is down:

  Found(coordinates, formatted_address)
  NotFound(query)
  ServiceError(query, reason)
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

import httpx

from cache import geocode_cache
from models import Coordinate

logger = logging.getLogger("safety.geocoding")

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


@dataclass(frozen=True)
class Found:
    coordinates: Coordinate
    formatted_address: str


@dataclass(frozen=True)
class NotFound:
    query: str


@dataclass(frozen=True)
class ServiceError:
    query: str
    reason: str


GeocodeResult = Union[Found, NotFound, ServiceError]


class Geocoder(Protocol):
    async def resolve(self, address: str) -> GeocodeResult: ...


# Seoul district table used when no Maps key is configured
MOCK_ADDRESSES = {
    "강남구 역삼동": (37.5009, 127.0370),
    "서초구 서초동": (37.4943, 127.0176),
    "마포구 홍대입구": (37.5563, 126.9236),
    "송파구 잠실동": (37.5133, 127.1000),
    "종로구 명동": (37.5636, 126.9822),
}


class MockGeocoder:
    """Substring match (in either direction) against a fixed address table."""

    def __init__(self, addresses: Optional[dict[str, tuple[float, float]]] = None):
        self._addresses = MOCK_ADDRESSES if addresses is None else addresses

    async def resolve(self, address: str) -> GeocodeResult:
        normalized = address.strip()
        if not normalized:
            return NotFound(address)
        for key, (lat, lng) in self._addresses.items():
            if key in normalized or normalized in key:
                return Found(Coordinate(lat=lat, lng=lng), key)
        return NotFound(address)


class GoogleGeocoder:
    """Google Geocoding API. Single attempt, no retry; hits are cached."""

    def __init__(self, api_key: str, client: Optional[httpx.AsyncClient] = None, cache=geocode_cache):
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._cache = cache

    async def resolve(self, address: str) -> GeocodeResult:
        query = address.strip()
        if not query:
            return NotFound(address)

        cache_key = f"geocode:{query}"
        cached = self._cache.get(cache_key) if self._cache is not None else None
        if cached is not None:
            return cached

        try:
            r = await self._client.get(
                GOOGLE_GEOCODE_URL,
                params={"address": query, "key": self._api_key, "language": "ko"},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Geocode transport error for '{query}': {e}")
            return ServiceError(query, str(e) or e.__class__.__name__)

        if r.status_code != 200:
            logger.warning(f"Geocode returned HTTP {r.status_code} for '{query}'")
            return ServiceError(query, f"HTTP {r.status_code}")

        try:
            data = r.json()
        except ValueError as e:
            logger.warning(f"Geocode returned invalid JSON for '{query}': {e}")
            return ServiceError(query, "invalid response body")

        status = data.get("status", "")
        if status == "ZERO_RESULTS" or (status == "OK" and not data.get("results")):
            return NotFound(query)
        if status != "OK":
            reason = data.get("error_message") or status or "unknown status"
            logger.warning(f"Geocode service error for '{query}': {reason}")
            return ServiceError(query, reason)

        top = data["results"][0]
        try:
            loc = top["geometry"]["location"]
            result = Found(
                Coordinate(lat=loc["lat"], lng=loc["lng"]),
                top.get("formatted_address", query),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Geocode result for '{query}' is malformed: {e}")
            return ServiceError(query, "malformed result")

        if self._cache is not None:
            self._cache[cache_key] = result
        logger.info(f"Geocoded '{query}' → ({result.coordinates.lat:.4f}, {result.coordinates.lng:.4f})")
        return result


def build_geocoder(api_key: str, client: Optional[httpx.AsyncClient] = None) -> Geocoder:
    if api_key:
        return GoogleGeocoder(api_key, client=client)
    logger.info("GOOGLE_MAPS_API_KEY not set — using built-in address table")
    return MockGeocoder()
