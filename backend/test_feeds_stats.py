"""Incident feed updates and the aggregations built on the geofence."""

import pytest

from config import ICON_MAP, MISSING_COLOR, RISK_COLORS
from feeds import IncidentFeed, IncidentNotFoundError, SEED_INCIDENTS, SEED_MISSING_PERSONS, seeded_feed
from models import Coordinate, ReportRequest, SavedLocation
from stats import area_stats, get_icon, highest_risk, map_markers, nearby_digests, risk_score

GANGNAM_STATION = Coordinate(lat=37.4979, lng=127.0276)


def test_feed_lists_newest_first():
    assert [i.id for i in seeded_feed().incidents()] == ["1", "2", "3", "4", "5", "6"]


def test_report_becomes_low_trust_incident():
    feed = seeded_feed()
    report = ReportRequest(type="flood", location="강남역 사거리", description="도로가 침수되었습니다")
    incident = feed.submit_report(report, GANGNAM_STATION)

    assert incident.source == "reports"
    assert incident.trustLevel == "low"
    assert incident.reportCount == 1
    assert incident.coordinates == GANGNAM_STATION
    assert incident.title == "강남역 사거리 침수 제보"
    assert feed.get(incident.id) == incident


def test_report_cap_drops_oldest_reports_only():
    feed = IncidentFeed(SEED_INCIDENTS, max_reports=2)
    made = [
        feed.submit_report(ReportRequest(type="other", location=f"장소{n}", description="내용"))
        for n in range(3)
    ]
    with pytest.raises(IncidentNotFoundError):
        feed.get(made[0].id)
    assert feed.get(made[2].id).id == made[2].id
    assert feed.get("1").id == "1"


def test_verification_counts_one_vote_per_user():
    feed = seeded_feed()
    original = feed.get("4")

    feed.verify("4", "user-a", "confirmed")
    feed.verify("4", "user-b", "confirmed")
    updated = feed.verify("4", "user-a", "denied")

    assert updated.verificationCount.confirmed == 1
    assert updated.verificationCount.denied == 1
    assert original.verificationCount is None


def test_verify_unknown_incident():
    with pytest.raises(IncidentNotFoundError):
        seeded_feed().verify("nope", "user", "unsure")


def test_risk_helpers():
    assert highest_risk([]) is None
    assert highest_risk(SEED_INCIDENTS) == "critical"
    assert risk_score([]) == 0.0
    assert risk_score([SEED_INCIDENTS[0]]) == 10.0
    assert get_icon("fire") == "🔥"
    assert get_icon("volcano") == "⚠️"


def test_area_stats_ranks_by_risk():
    areas = {
        "강남역": GANGNAM_STATION,
        "잠실": Coordinate(lat=37.5133, lng=127.1000),
        "먼 곳": Coordinate(lat=35.1796, lng=129.0756),
    }
    stats = area_stats(list(SEED_INCIDENTS), areas, radius_km=2.0)
    assert [s.area for s in stats] == ["강남역", "잠실"]
    assert stats[0].incidentCount == 3
    assert stats[0].topIncidentType == "crime"
    assert stats[1].topIncidentType == "traffic"


def test_nearby_digests_for_saved_locations():
    home = SavedLocation(id="home", name="우리집", address="강남역", coordinates=GANGNAM_STATION,
                         type="home", createdAt="2024-01-10T00:00:00Z")
    [digest] = nearby_digests([home], list(SEED_INCIDENTS), radius_km=2.0)
    assert [i.id for i in digest.incidents] == ["1", "2", "4"]
    assert digest.urgentCount == 2
    assert digest.highestRisk == "critical"


def test_map_markers_skip_records_without_coordinates():
    markers = map_markers(list(SEED_INCIDENTS), list(SEED_MISSING_PERSONS))
    marker_ids = [m.id for m in markers]
    assert "6" not in marker_ids
    assert len(markers) == 5 + 3

    first = markers[0]
    assert (first.icon, first.color) == (ICON_MAP["crime"], RISK_COLORS["critical"])
    missing = [m for m in markers if m.kind == "missing"]
    assert all(m.color == MISSING_COLOR for m in missing)
