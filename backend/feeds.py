"""Safety Spotter Backend — Incident & missing-person feeds.

Holds the incidents currently known to the service (seeded news/emergency
items plus user reports) and the missing-person list. Records are frozen
pydantic models; updates such as verifications replace a record with a new
copy instead of mutating it.
"""

import uuid
import logging
import threading
from datetime import datetime, timezone
from typing import Iterable, Optional

from config import MAX_USER_REPORTS
from models import (
    Coordinate, Incident, MissingPerson, ReportRequest,
    UserFeedback, VerificationCount,
)

logger = logging.getLogger("safety.feeds")

TYPE_LABELS = {
    "crime": "범죄",
    "traffic": "교통사고",
    "fire": "화재",
    "flood": "침수",
    "subway": "지하철",
    "disaster": "재난",
    "other": "기타",
}


class IncidentNotFoundError(Exception):
    """Raised when an incident id is unknown."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class IncidentFeed:
    def __init__(
        self,
        incidents: Iterable[Incident] = (),
        missing_persons: Iterable[MissingPerson] = (),
        max_reports: int = MAX_USER_REPORTS,
    ):
        self._incidents: list[Incident] = list(incidents)
        self._missing: list[MissingPerson] = list(missing_persons)
        self._report_ids: list[str] = []
        self._votes: dict[tuple[str, str], UserFeedback] = {}
        self._max_reports = max_reports
        self._lock = threading.Lock()

    def incidents(self) -> list[Incident]:
        """Snapshot, newest first."""
        with self._lock:
            return sorted(self._incidents, key=lambda i: i.timestamp, reverse=True)

    def missing_persons(self) -> list[MissingPerson]:
        with self._lock:
            return list(self._missing)

    def get(self, incident_id: str) -> Incident:
        with self._lock:
            for incident in self._incidents:
                if incident.id == incident_id:
                    return incident
        raise IncidentNotFoundError(incident_id)

    def submit_report(self, report: ReportRequest, coordinates: Optional[Coordinate] = None) -> Incident:
        """Turn a user report into a low-trust incident."""
        label = TYPE_LABELS.get(report.type, TYPE_LABELS["other"])
        incident = Incident(
            id=str(uuid.uuid4())[:8],
            type=report.type,
            title=report.title.strip() or f"{report.location} {label} 제보",
            description=report.description,
            location=report.location,
            coordinates=report.coordinates or coordinates,
            timestamp=_now_iso(),
            source="reports",
            reportCount=1,
            isUrgent=report.isUrgent,
            trustLevel="low",
            riskLevel="high" if report.isUrgent else "medium",
            verificationCount=VerificationCount(),
        )
        with self._lock:
            self._incidents.append(incident)
            self._report_ids.append(incident.id)
            # Keep only the most recent user reports
            if len(self._report_ids) > self._max_reports:
                oldest = self._report_ids.pop(0)
                self._incidents = [i for i in self._incidents if i.id != oldest]

        logger.info(f"User report submitted: {report.type} at {report.location}")
        return incident

    def verify(self, incident_id: str, user_id: str, response: str) -> Incident:
        """Record a user's confirmation vote. A repeat vote replaces the earlier one."""
        with self._lock:
            index = next((n for n, i in enumerate(self._incidents) if i.id == incident_id), None)
            if index is None:
                raise IncidentNotFoundError(incident_id)
            incident = self._incidents[index]
            counts = (incident.verificationCount or VerificationCount()).model_dump()

            previous = self._votes.get((incident_id, user_id))
            if previous is not None:
                counts[previous.response] = max(0, counts[previous.response] - 1)
            counts[response] += 1

            self._votes[(incident_id, user_id)] = UserFeedback(
                incidentId=incident_id,
                userId=user_id,
                response=response,
                timestamp=_now_iso(),
            )
            updated = incident.model_copy(update={"verificationCount": VerificationCount(**counts)})
            self._incidents[index] = updated
        return updated

    def attach_suggestion(self, incident_id: str, suggestion: str) -> Incident:
        with self._lock:
            for n, incident in enumerate(self._incidents):
                if incident.id == incident_id:
                    updated = incident.model_copy(update={"aiSuggestion": suggestion})
                    self._incidents[n] = updated
                    return updated
        raise IncidentNotFoundError(incident_id)


# ─────────────────────────── Seed data ──────────────────────────

SEED_INCIDENTS = [
    Incident(
        id="1",
        type="crime",
        title="강남역 흉기 난동 발생 - 1명 부상, 용의자 검거",
        description="오늘 오후 2시경 강남역 2번 출구 인근에서 흉기를 든 남성이 행인을 위협하며 난동을 부렸습니다. "
                    "경찰이 신속히 출동해 용의자를 검거했으며, 부상자 1명은 병원으로 이송되었습니다.",
        location="강남역 2번 출구",
        coordinates=Coordinate(lat=37.4979, lng=127.0276),
        timestamp="2024-01-10T14:30:00Z",
        source="news",
        isUrgent=True,
        trustLevel="high",
        riskLevel="critical",
    ),
    Incident(
        id="2",
        type="fire",
        title="도곡동 아파트 화재 발생",
        description="15층 건물에서 연기가 목격되고 있습니다. 소방차가 출동 중이며 주민들이 대피하고 있습니다.",
        location="도곡동 래미안아파트",
        coordinates=Coordinate(lat=37.4909, lng=127.0438),
        timestamp="2024-01-10T13:45:00Z",
        source="reports",
        reportCount=32,
        isUrgent=True,
        trustLevel="medium",
        riskLevel="high",
        verificationCount=VerificationCount(confirmed=18, denied=2, unsure=4),
    ),
    Incident(
        id="3",
        type="traffic",
        title="올림픽대로 다중추돌 사고",
        description="오후 1시경 올림픽대로 상행선에서 5중 추돌사고가 발생했습니다. 현재 2차로가 통제되고 있어 정체가 예상됩니다.",
        location="올림픽대로 잠실대교 인근",
        coordinates=Coordinate(lat=37.5186, lng=127.0865),
        timestamp="2024-01-10T13:15:00Z",
        source="news",
        trustLevel="high",
        riskLevel="medium",
    ),
    Incident(
        id="4",
        type="crime",
        title="초등학교 근처 수상한 남성 출몰",
        description="방과 후 시간에 아이들에게 말을 거는 수상한 남성이 목격되고 있습니다. 학부모들의 주의가 필요합니다.",
        location="서초초등학교 정문",
        coordinates=Coordinate(lat=37.4930, lng=127.0160),
        timestamp="2024-01-10T12:30:00Z",
        source="reports",
        reportCount=3,
        trustLevel="low",
        riskLevel="medium",
    ),
    Incident(
        id="5",
        type="disaster",
        title="한강 수위 상승 경보",
        description="집중호우로 인한 한강 수위 상승으로 일부 산책로가 통제되었습니다. 강변 접근 시 주의하시기 바랍니다.",
        location="반포한강공원",
        coordinates=Coordinate(lat=37.5101, lng=126.9959),
        timestamp="2024-01-10T11:20:00Z",
        source="news",
        trustLevel="high",
        riskLevel="high",
    ),
    Incident(
        id="6",
        type="subway",
        title="2호선 신호 장애로 운행 지연",
        description="2호선 외선순환 열차가 신호 장애로 10분 이상 지연 운행 중입니다.",
        location="2호선 전 구간",
        timestamp="2024-01-10T10:50:00Z",
        source="emergency",
        trustLevel="high",
        riskLevel="low",
    ),
]

SEED_MISSING_PERSONS = [
    MissingPerson(
        id="missing-1",
        name="김OO",
        age=8,
        gender="male",
        lastLocation="강남역 2번 출구",
        coordinates=Coordinate(lat=37.4979, lng=127.0276),
        lastSeenTime="2024-01-10T12:30:00Z",
        description="파란색 티셔츠, 검은색 반바지 착용",
    ),
    MissingPerson(
        id="missing-2",
        name="이OO",
        age=65,
        gender="female",
        lastLocation="서초구 서초동",
        coordinates=Coordinate(lat=37.4943, lng=127.0176),
        lastSeenTime="2024-01-10T09:15:00Z",
        description="치매 환자, 흰색 원피스 착용",
    ),
    MissingPerson(
        id="missing-3",
        name="박OO",
        age=12,
        gender="female",
        lastLocation="도곡동 래미안아파트",
        coordinates=Coordinate(lat=37.4909, lng=127.0438),
        lastSeenTime="2024-01-10T15:45:00Z",
        description="분홍색 가방, 노란색 모자 착용",
    ),
]


def seeded_feed() -> IncidentFeed:
    return IncidentFeed(SEED_INCIDENTS, SEED_MISSING_PERSONS)
