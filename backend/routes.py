"""Safety Spotter Backend — FastAPI Routes"""

import time
import logging
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import (
    GOOGLE_MAPS_API_KEY, SETTINGS_PATH, RATE_LIMIT,
    DEFAULT_RADIUS_KM, EMERGENCY_NUMBERS,
)
from models import (
    AddLocationRequest, ApiKeyRequest, Coordinate, GeocodeResponse,
    Incident, LocationSettings, LocationStats, MapMarker, NearbyDigest,
    PositionRequest, PositionResponse, PreferencesRequest, QueryRequest,
    QueryResponse, ReportRequest, SavedLocation, SelectedLocation,
    SuggestionResponse, SummaryRequest, SummaryResponse, VerificationRequest,
)
import geo
from geocoding import Found, NotFound, Geocoder, MOCK_ADDRESSES, build_geocoder
from feeds import IncidentFeed, IncidentNotFoundError, seeded_feed
from locations import LocationLimitError, LocationNotFoundError, LocationSettingsManager
from position import current_position, reported_position
from stats import area_stats, map_markers, nearby_digests
from store import open_store
from ai import RiskAdvisor
from cache import summary_cache

logger = logging.getLogger("safety")


# ─────────────────────────── App Setup ──────────────────────────

app = FastAPI(title="Safety Spotter API", version="1.0.0")

_allowed_origins = [
    f"http://localhost:{p}" for p in range(5173, 5180)
] + [
    f"http://localhost:{p}" for p in range(8080, 8090)
] + [
    f"http://127.0.0.1:{p}" for p in range(5173, 5180)
] + [
    f"http://127.0.0.1:{p}" for p in range(8080, 8090)
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─────────────────────────── Shared services ────────────────────

client = httpx.AsyncClient(timeout=10.0)
store = open_store(SETTINGS_PATH)
feed = seeded_feed()
location_manager = LocationSettingsManager(store)
advisor = RiskAdvisor(store, summaries=summary_cache)
geocoder = build_geocoder(GOOGLE_MAPS_API_KEY, client=client)


def get_feed() -> IncidentFeed:
    return feed


def get_location_manager() -> LocationSettingsManager:
    return location_manager


def get_advisor() -> RiskAdvisor:
    return advisor


def get_geocoder() -> Geocoder:
    return geocoder


@app.on_event("shutdown")
async def shutdown_event():
    await client.aclose()


# ─────────────────────────── Rate Limiting ──────────────────────

_rate_store: dict[str, list[float]] = {}
RATE_WINDOW = 60  # seconds
_RATE_EVICT_INTERVAL = 300  # evict stale IPs every 5 minutes
_last_rate_evict = 0.0


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    client_ip = request.client.host if request.client else "unknown"
    now = time.time()

    # Periodically evict stale IPs to prevent memory leak
    global _last_rate_evict
    if now - _last_rate_evict > _RATE_EVICT_INTERVAL:
        stale_ips = [ip for ip, timestamps in _rate_store.items()
                     if not timestamps or now - timestamps[-1] > RATE_WINDOW * 2]
        for ip in stale_ips:
            del _rate_store[ip]
        _last_rate_evict = now

    timestamps = [t for t in _rate_store.get(client_ip, []) if now - t < RATE_WINDOW]
    _rate_store[client_ip] = timestamps

    if len(timestamps) >= RATE_LIMIT:
        return JSONResponse(
            status_code=429,
            content={"detail": "Rate limit exceeded. Try again in a minute."},
        )

    timestamps.append(now)
    return await call_next(request)


# ─────────────────────────── Helpers ────────────────────────────

def _center_from_params(lat: Optional[float], lng: Optional[float], name: str = "") -> Optional[SelectedLocation]:
    if lat is None and lng is None:
        return None
    if lat is None or lng is None:
        raise HTTPException(status_code=422, detail="lat and lng must be provided together")
    return SelectedLocation(lat=lat, lng=lng, name=name)


def _run_query(feed: IncidentFeed, category: str, center: Optional[SelectedLocation],
               radius_km: Optional[float]) -> QueryResponse:
    result = geo.query(feed.incidents(), feed.missing_persons(), category, center, radius_km)
    if center is not None and radius_km is None:
        radius_km = DEFAULT_RADIUS_KM
    return QueryResponse(
        incidents=result.incidents,
        missingPersons=result.missing_persons,
        center=center,
        radiusKm=radius_km if center is not None else None,
    )


async def _resolve_address(geocoder: Geocoder, address: str) -> Found:
    result = await geocoder.resolve(address)
    if isinstance(result, Found):
        return result
    if isinstance(result, NotFound):
        raise HTTPException(status_code=404, detail="주소를 찾을 수 없습니다.")
    raise HTTPException(status_code=502, detail=f"Geocoding service unavailable: {result.reason}")


# ─────────────────────────── Incident Query ─────────────────────

@app.get("/api/incidents", response_model=QueryResponse)
async def list_incidents(
    category: str = geo.ALL,
    lat: Optional[float] = Query(default=None, ge=-90.0, le=90.0),
    lng: Optional[float] = Query(default=None, ge=-180.0, le=180.0),
    radiusKm: Optional[float] = Query(default=None, ge=0.0),
    feed: IncidentFeed = Depends(get_feed),
):
    center = _center_from_params(lat, lng)
    response = _run_query(feed, category, center, radiusKm)
    logger.info(
        f"Incident query: category={category} center={'-' if center is None else f'({center.lat:.4f}, {center.lng:.4f})'} "
        f"→ {len(response.incidents)} incidents, {len(response.missingPersons)} missing"
    )
    return response


@app.post("/api/query", response_model=QueryResponse)
async def query_incidents(req: QueryRequest, feed: IncidentFeed = Depends(get_feed)):
    return _run_query(feed, req.category, req.center, req.radiusKm)


@app.get("/api/incidents/{incident_id}", response_model=Incident)
async def get_incident(incident_id: str, feed: IncidentFeed = Depends(get_feed)):
    try:
        return feed.get(incident_id)
    except IncidentNotFoundError:
        raise HTTPException(status_code=404, detail="Incident not found")


@app.get("/api/missing")
async def list_missing_persons(
    lat: Optional[float] = Query(default=None, ge=-90.0, le=90.0),
    lng: Optional[float] = Query(default=None, ge=-180.0, le=180.0),
    radiusKm: Optional[float] = Query(default=None, ge=0.0),
    feed: IncidentFeed = Depends(get_feed),
):
    center = _center_from_params(lat, lng)
    response = _run_query(feed, "missing", center, radiusKm)
    return {"missingPersons": response.missingPersons}


# ─────────────────────────── User Reports ───────────────────────

@app.post("/api/reports", response_model=Incident)
async def submit_report(
    report: ReportRequest,
    feed: IncidentFeed = Depends(get_feed),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """Submit a user report. Without coordinates the location text is geocoded."""
    coordinates = None
    if report.coordinates is None:
        result = await geocoder.resolve(report.location)
        if isinstance(result, Found):
            coordinates = result.coordinates
        else:
            logger.info(f"Report location '{report.location}' not geocoded — stored without coordinates")
    return feed.submit_report(report, coordinates)


@app.post("/api/incidents/{incident_id}/verify", response_model=Incident)
async def verify_incident(
    incident_id: str,
    req: VerificationRequest,
    feed: IncidentFeed = Depends(get_feed),
):
    try:
        return feed.verify(incident_id, req.userId, req.response)
    except IncidentNotFoundError:
        raise HTTPException(status_code=404, detail="Incident not found")


# ─────────────────────────── Saved Locations ────────────────────

@app.get("/api/settings/locations", response_model=LocationSettings)
async def get_location_settings(manager: LocationSettingsManager = Depends(get_location_manager)):
    return manager.get_settings()


@app.put("/api/settings/locations", response_model=LocationSettings)
async def replace_location_settings(
    settings: LocationSettings,
    manager: LocationSettingsManager = Depends(get_location_manager),
):
    try:
        return manager.save(settings)
    except LocationLimitError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


async def _location_coordinates(req: AddLocationRequest, geocoder: Geocoder) -> Coordinate:
    if req.coordinates is not None:
        return req.coordinates
    found = await _resolve_address(geocoder, req.address)
    return found.coordinates


@app.post("/api/settings/locations/home", response_model=SavedLocation)
async def add_home_location(
    req: AddLocationRequest,
    manager: LocationSettingsManager = Depends(get_location_manager),
    geocoder: Geocoder = Depends(get_geocoder),
):
    coordinates = await _location_coordinates(req, geocoder)
    return manager.add_home(req.name, req.address, coordinates)


@app.post("/api/settings/locations/interest", response_model=SavedLocation)
async def add_interest_location(
    req: AddLocationRequest,
    manager: LocationSettingsManager = Depends(get_location_manager),
    geocoder: Geocoder = Depends(get_geocoder),
):
    coordinates = await _location_coordinates(req, geocoder)
    try:
        return manager.add_interest(req.name, req.address, coordinates)
    except LocationLimitError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.delete("/api/settings/locations/{location_id}")
async def remove_location(
    location_id: str,
    manager: LocationSettingsManager = Depends(get_location_manager),
):
    try:
        manager.remove(location_id)
    except LocationNotFoundError:
        raise HTTPException(status_code=404, detail="Location not found")
    return {"status": "removed", "id": location_id}


@app.post("/api/settings/locations/{location_id}/toggle", response_model=SavedLocation)
async def toggle_location(
    location_id: str,
    manager: LocationSettingsManager = Depends(get_location_manager),
):
    try:
        return manager.toggle_active(location_id)
    except LocationNotFoundError:
        raise HTTPException(status_code=404, detail="Location not found")


@app.put("/api/settings/preferences", response_model=LocationSettings)
async def update_preferences(
    req: PreferencesRequest,
    manager: LocationSettingsManager = Depends(get_location_manager),
):
    return manager.set_preferences(req.showOnMap, req.notificationsEnabled)


@app.post("/api/settings/locations/home/current", response_model=SavedLocation)
async def set_home_to_current_position(
    req: PositionRequest,
    manager: LocationSettingsManager = Depends(get_location_manager),
):
    position, is_fallback = await current_position(reported_position(req.lat, req.lng))
    if is_fallback:
        raise HTTPException(status_code=422, detail="현재 위치를 가져올 수 없습니다.")
    return manager.add_home("현재 위치", "현재 위치", position)


# ─────────────────────────── Geocoding & Position ───────────────

@app.get("/api/geocode", response_model=GeocodeResponse)
async def geocode(query: str, geocoder: Geocoder = Depends(get_geocoder)):
    found = await _resolve_address(geocoder, query)
    return GeocodeResponse(
        lat=found.coordinates.lat,
        lng=found.coordinates.lng,
        name=found.formatted_address,
    )


@app.post("/api/position", response_model=PositionResponse)
async def resolve_position(req: PositionRequest):
    position, is_fallback = await current_position(reported_position(req.lat, req.lng))
    return PositionResponse(lat=position.lat, lng=position.lng, isFallback=is_fallback)


# ─────────────────────────── AI (Gemini Proxy) ──────────────────

@app.post("/api/ai/summary", response_model=SummaryResponse)
async def ai_summary(
    req: SummaryRequest,
    feed: IncidentFeed = Depends(get_feed),
    advisor: RiskAdvisor = Depends(get_advisor),
):
    if req.incidentIds:
        try:
            incidents = [feed.get(i) for i in req.incidentIds]
        except IncidentNotFoundError as e:
            raise HTTPException(status_code=404, detail=f"Incident not found: {e}")
    else:
        incidents = _run_query(feed, req.category, req.center, req.radiusKm).incidents
    summary = await advisor.summarize(incidents)
    return SummaryResponse(summary=summary, incidentCount=len(incidents))


@app.get("/api/incidents/{incident_id}/suggestion", response_model=SuggestionResponse)
async def ai_suggestion(
    incident_id: str,
    feed: IncidentFeed = Depends(get_feed),
    advisor: RiskAdvisor = Depends(get_advisor),
):
    try:
        incident = feed.get(incident_id)
    except IncidentNotFoundError:
        raise HTTPException(status_code=404, detail="Incident not found")

    suggestion = await advisor.suggest_action(incident)
    if suggestion.generated:
        feed.attach_suggestion(incident_id, suggestion.text)
    return SuggestionResponse(incidentId=incident_id, suggestion=suggestion.text)


@app.put("/api/settings/ai-key")
async def set_ai_key(req: ApiKeyRequest, advisor: RiskAdvisor = Depends(get_advisor)):
    advisor.set_api_key(req.apiKey)
    return {"status": "ok", "enabled": advisor.enabled}


# ─────────────────────────── Stats & Map ────────────────────────

@app.get("/api/stats/areas", response_model=list[LocationStats])
async def get_area_stats(
    radiusKm: float = Query(default=DEFAULT_RADIUS_KM, ge=0.0),
    limit: int = Query(default=3, ge=1, le=20),
    feed: IncidentFeed = Depends(get_feed),
):
    areas = {name: Coordinate(lat=lat, lng=lng) for name, (lat, lng) in MOCK_ADDRESSES.items()}
    return area_stats(feed.incidents(), areas, radiusKm, limit)


@app.get("/api/stats/nearby", response_model=list[NearbyDigest])
async def get_nearby_digests(
    radiusKm: float = Query(default=DEFAULT_RADIUS_KM, ge=0.0),
    feed: IncidentFeed = Depends(get_feed),
    manager: LocationSettingsManager = Depends(get_location_manager),
):
    """Incidents around each active home/interest location."""
    return nearby_digests(manager.active_locations(), feed.incidents(), radiusKm)


@app.get("/api/map/markers", response_model=list[MapMarker])
async def get_map_markers(
    category: str = geo.ALL,
    lat: Optional[float] = Query(default=None, ge=-90.0, le=90.0),
    lng: Optional[float] = Query(default=None, ge=-180.0, le=180.0),
    radiusKm: Optional[float] = Query(default=None, ge=0.0),
    feed: IncidentFeed = Depends(get_feed),
):
    center = _center_from_params(lat, lng)
    response = _run_query(feed, category, center, radiusKm)
    return map_markers(response.incidents, response.missingPersons)


# ─────────────────────────── Utility Endpoints ──────────────────

@app.get("/api/health")
async def health():
    return {"status": "ok", "ai": advisor.enabled, "version": "1.0.0"}


@app.get("/api/emergency-numbers")
async def emergency_numbers():
    return {"numbers": EMERGENCY_NUMBERS}
