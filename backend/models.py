"""Safety Spotter Backend — Pydantic Models"""

from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

IncidentKind = Literal["crime", "traffic", "fire", "flood", "subway", "disaster", "other"]
IncidentSource = Literal["news", "reports", "emergency"]
TrustLevel = Literal["high", "medium", "low"]
RiskLevel = Literal["low", "medium", "high", "critical"]
FeedbackResponse = Literal["confirmed", "denied", "unsure"]


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class VerificationCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    confirmed: int = 0
    denied: int = 0
    unsure: int = 0


class Incident(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: IncidentKind
    title: str
    description: str
    location: str
    coordinates: Optional[Coordinate] = None
    timestamp: str
    source: IncidentSource
    reportCount: Optional[int] = None
    isUrgent: bool = False
    trustLevel: TrustLevel
    riskLevel: RiskLevel = "medium"
    aiSuggestion: Optional[str] = None
    verificationCount: Optional[VerificationCount] = None


class MissingPerson(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    age: int
    gender: Literal["male", "female"]
    lastLocation: str
    coordinates: Optional[Coordinate] = None
    lastSeenTime: str
    description: Optional[str] = None
    contactInfo: Optional[str] = None
    imageUrl: Optional[str] = None


class SavedLocation(BaseModel):
    id: str
    name: str
    address: str
    coordinates: Coordinate
    type: Literal["home", "interest"]
    isActive: bool = True
    createdAt: str


class LocationSettings(BaseModel):
    homeLocation: Optional[SavedLocation] = None
    interestLocations: list[SavedLocation] = []
    showOnMap: bool = True
    notificationsEnabled: bool = True


class SelectedLocation(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    name: str = ""


class UserFeedback(BaseModel):
    incidentId: str
    userId: str
    response: FeedbackResponse
    timestamp: str


class LocationStats(BaseModel):
    area: str
    incidentCount: int
    riskScore: float
    topIncidentType: str


# ─────────────────────────── Requests ───────────────────────────

class QueryRequest(BaseModel):
    category: str = "all"
    center: Optional[SelectedLocation] = None
    radiusKm: Optional[float] = Field(default=None, ge=0.0)


class ReportRequest(BaseModel):
    type: IncidentKind
    location: str = Field(min_length=1)
    description: str = Field(min_length=1)
    title: str = ""
    coordinates: Optional[Coordinate] = None
    isUrgent: bool = False


class VerificationRequest(BaseModel):
    userId: str = "anonymous"
    response: FeedbackResponse


class AddLocationRequest(BaseModel):
    name: str = Field(min_length=1)
    address: str = Field(min_length=1)
    coordinates: Optional[Coordinate] = None


class PreferencesRequest(BaseModel):
    showOnMap: Optional[bool] = None
    notificationsEnabled: Optional[bool] = None


class PositionRequest(BaseModel):
    lat: Optional[float] = None
    lng: Optional[float] = None

    @model_validator(mode="after")
    def _both_or_neither(self):
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be provided together")
        return self


class SummaryRequest(BaseModel):
    incidentIds: list[str] = []
    category: str = "all"
    center: Optional[SelectedLocation] = None
    radiusKm: Optional[float] = Field(default=None, ge=0.0)


class ApiKeyRequest(BaseModel):
    apiKey: str = Field(min_length=1)


# ─────────────────────────── Responses ──────────────────────────

class QueryResponse(BaseModel):
    incidents: list[Incident]
    missingPersons: list[MissingPerson]
    center: Optional[SelectedLocation] = None
    radiusKm: Optional[float] = None


class GeocodeResponse(BaseModel):
    lat: float
    lng: float
    name: str


class PositionResponse(BaseModel):
    lat: float
    lng: float
    isFallback: bool


class SummaryResponse(BaseModel):
    summary: str
    incidentCount: int


class SuggestionResponse(BaseModel):
    incidentId: str
    suggestion: str


class NearbyDigest(BaseModel):
    location: SavedLocation
    incidentCount: int
    urgentCount: int
    highestRisk: Optional[RiskLevel] = None
    incidents: list[Incident]


class MapMarker(BaseModel):
    id: str
    kind: Literal["incident", "missing"]
    lat: float
    lng: float
    title: str
    icon: str
    color: str
