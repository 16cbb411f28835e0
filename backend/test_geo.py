"""Geofenced query: distance, radius, type and combined-query behaviour."""

import math

import pytest
from pydantic import ValidationError

import geo
from feeds import SEED_INCIDENTS, SEED_MISSING_PERSONS
from models import Coordinate, SelectedLocation

SEOUL_CITY_HALL = Coordinate(lat=37.5665, lng=126.9780)
GANGNAM_STATION = Coordinate(lat=37.4979, lng=127.0276)


def ids(items):
    return [item.id for item in items]


# ─────────────────────────── distance_km ────────────────────────

def test_distance_to_self_is_zero():
    for point in (SEOUL_CITY_HALL, GANGNAM_STATION, Coordinate(lat=90, lng=0), Coordinate(lat=-90, lng=180)):
        assert geo.distance_km(point, point) == 0.0


def test_distance_is_symmetric():
    a = Coordinate(lat=-33.8688, lng=151.2093)
    b = Coordinate(lat=51.5074, lng=-0.1278)
    assert geo.distance_km(a, b) == pytest.approx(geo.distance_km(b, a))
    assert geo.distance_km(SEOUL_CITY_HALL, GANGNAM_STATION) == pytest.approx(
        geo.distance_km(GANGNAM_STATION, SEOUL_CITY_HALL)
    )


def test_city_hall_to_gangnam_station():
    assert 8.5 <= geo.distance_km(SEOUL_CITY_HALL, GANGNAM_STATION) <= 9.5


def test_antipodal_and_polar_points_are_finite():
    half_circumference = math.pi * 6371.0
    equator = geo.distance_km(Coordinate(lat=0, lng=0), Coordinate(lat=0, lng=180))
    poles = geo.distance_km(Coordinate(lat=90, lng=0), Coordinate(lat=-90, lng=0))
    assert equator == pytest.approx(half_circumference)
    assert poles == pytest.approx(half_circumference)
    assert not math.isnan(geo.distance_km(Coordinate(lat=45, lng=-45), Coordinate(lat=-45, lng=135)))


def test_dateline_points_coincide():
    assert geo.distance_km(Coordinate(lat=10, lng=180), Coordinate(lat=10, lng=-180)) == pytest.approx(0.0, abs=1e-6)


def test_coordinate_rejects_out_of_range_values():
    with pytest.raises(ValidationError):
        Coordinate(lat=91, lng=0)
    with pytest.raises(ValidationError):
        Coordinate(lat=0, lng=-180.5)


# ─────────────────────────── within_radius ──────────────────────

def test_zero_radius_keeps_only_items_at_center():
    found = geo.within_radius(SEED_INCIDENTS, GANGNAM_STATION, 0)
    assert ids(found) == ["1"]


def test_huge_radius_keeps_every_item_with_coordinates():
    found = geo.within_radius(SEED_INCIDENTS, GANGNAM_STATION, math.inf)
    assert ids(found) == ["1", "2", "3", "4", "5"]


def test_items_without_coordinates_never_match():
    no_coords = [i for i in SEED_INCIDENTS if i.coordinates is None]
    assert no_coords
    for radius in (0, 1, 100, 1e9, math.inf):
        assert geo.within_radius(no_coords, GANGNAM_STATION, radius) == []


def test_radius_filter_is_stable_and_does_not_mutate_input():
    items = list(SEED_INCIDENTS)
    found = geo.within_radius(items, GANGNAM_STATION, 2.0)
    assert ids(found) == ["1", "2", "4"]
    assert items == list(SEED_INCIDENTS)


def test_radius_filter_accepts_plain_dicts_and_skips_bad_coordinates():
    items = [
        {"id": "a", "coordinates": {"lat": 37.4979, "lng": 127.0276}},
        {"id": "b", "coordinates": {"lat": 200, "lng": 127.0}},
        {"id": "c"},
        {"id": "d", "coordinates": None},
    ]
    found = geo.within_radius(items, GANGNAM_STATION, 1.0)
    assert [i["id"] for i in found] == ["a"]


def test_negative_radius_is_rejected():
    with pytest.raises(ValueError):
        geo.within_radius(SEED_INCIDENTS, GANGNAM_STATION, -1)


def test_dict_center_matches_coordinate_center():
    center = {"lat": 37.4979, "lng": 127.0276}
    assert ids(geo.within_radius(SEED_INCIDENTS, center, 2.0)) == ["1", "2", "4"]

    result = geo.query(SEED_INCIDENTS, SEED_MISSING_PERSONS, geo.ALL, center, 0.5)
    assert ids(result.incidents) == ["1"]
    assert ids(result.missing_persons) == ["missing-1"]


@pytest.mark.parametrize("center", [{"lat": 37.5}, {"lat": 95, "lng": 127}, "강남역", object()])
def test_unusable_center_is_rejected(center):
    with pytest.raises(ValueError):
        geo.within_radius(SEED_INCIDENTS, center, 1.0)


# ─────────────────────────── by_type ────────────────────────────

def test_all_selector_is_identity():
    assert geo.by_type(SEED_INCIDENTS, geo.ALL) == list(SEED_INCIDENTS)


def test_type_selector_is_exact_match():
    assert ids(geo.by_type(SEED_INCIDENTS, "crime")) == ["1", "4"]
    assert geo.by_type(SEED_INCIDENTS, "Crime") == []


def test_unknown_type_yields_empty_list():
    assert geo.by_type(SEED_INCIDENTS, "volcano") == []


# ─────────────────────────── query ──────────────────────────────

def test_missing_category_returns_only_missing_persons():
    result = geo.query(SEED_INCIDENTS, SEED_MISSING_PERSONS, geo.MISSING)
    assert result.incidents == []
    assert ids(result.missing_persons) == ["missing-1", "missing-2", "missing-3"]


def test_all_category_filters_both_collections_by_radius_only():
    result = geo.query(SEED_INCIDENTS, SEED_MISSING_PERSONS, geo.ALL, GANGNAM_STATION, 0.5)
    assert ids(result.incidents) == ["1"]
    assert ids(result.missing_persons) == ["missing-1"]


def test_incident_type_hides_missing_persons():
    result = geo.query(SEED_INCIDENTS, SEED_MISSING_PERSONS, "crime", GANGNAM_STATION, 2.0)
    assert ids(result.incidents) == ["1", "4"]
    assert result.missing_persons == []


def test_no_center_skips_radius_stage():
    result = geo.query(SEED_INCIDENTS, SEED_MISSING_PERSONS, geo.ALL)
    assert result.incidents == list(SEED_INCIDENTS)
    assert result.missing_persons == list(SEED_MISSING_PERSONS)


def test_center_without_radius_uses_default(monkeypatch):
    monkeypatch.setattr(geo, "DEFAULT_RADIUS_KM", 0.5)
    center = SelectedLocation(lat=37.4979, lng=127.0276, name="강남역")
    result = geo.query(SEED_INCIDENTS, SEED_MISSING_PERSONS, geo.ALL, center)
    assert ids(result.incidents) == ["1"]


def test_query_is_idempotent():
    args = (SEED_INCIDENTS, SEED_MISSING_PERSONS, geo.ALL, GANGNAM_STATION, 2.0)
    first = geo.query(*args)
    second = geo.query(*args)
    assert first == second
    assert [i.model_dump() for i in first.incidents] == [i.model_dump() for i in second.incidents]
