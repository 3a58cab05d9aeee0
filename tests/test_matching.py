import math
from datetime import datetime, timedelta

import pytest

from docreach.core.catalog import EmergencyCategory, emergency_services
from docreach.core.errors import InvalidLocationError, ValidationError
from docreach.db.models import Role, VerificationStatus
from docreach.services.availability import AvailabilityStore
from docreach.services.matching import (
    MAX_RESPONSE_MINUTES,
    MatchQuery,
    MatchRanker,
    estimate_response_minutes,
)

from conftest import BASE_LAT, BASE_LON, caller, north_of


@pytest.fixture
def ranker(db):
    return MatchRanker(db)


def ids(results):
    return [r.doctor.doctor_id for r in results]


def query(**kwargs):
    return MatchQuery(latitude=BASE_LAT, longitude=BASE_LON, **kwargs)


def test_only_eligible_doctors_are_matched(ranker, factory):
    factory.doctor("eligible")
    factory.doctor("offline", online=False)
    factory.doctor("under-review", status=VerificationStatus.UNDER_REVIEW)
    factory.doctor("rejected", status=VerificationStatus.REJECTED)
    factory.doctor("inactive", is_active=False)
    factory.doctor("expired", available_until=datetime.utcnow() - timedelta(minutes=1))
    factory.doctor("until-later", available_until=datetime.utcnow() + timedelta(hours=1))

    assert sorted(ids(ranker.match(query()))) == ["eligible", "until-later"]
    assert sorted(ids(ranker.match(query(emergency=True)))) == ["eligible", "until-later"]


def test_availability_toggle_is_seen_immediately(ranker, factory, db):
    factory.doctor("doc-1", online=False)
    availability = AvailabilityStore(db)
    me = caller("doc-1", Role.DOCTOR)

    assert ranker.match(query()) == []
    availability.set_availability(me, "doc-1", True)
    assert ids(ranker.match(query())) == ["doc-1"]
    availability.set_availability(me, "doc-1", False)
    assert ranker.match(query()) == []


def test_online_only_never_widens(ranker, factory):
    factory.doctor("on")
    factory.doctor("off", online=False)
    assert ids(ranker.match(query(online_only=False))) == ["on"]


def test_ordinary_search_orders_by_distance(ranker, factory):
    factory.doctor("far", latitude=north_of(5))
    factory.doctor("near", latitude=north_of(1))
    factory.doctor("mid", latitude=north_of(3))
    results = ranker.match(query())
    assert ids(results) == ["near", "mid", "far"]
    assert [r.rank for r in results] == [1, 2, 3]
    assert results[0].distance_km == pytest.approx(1.0, abs=0.01)


def test_default_radius_ordinary_vs_emergency(ranker, factory):
    factory.doctor("at-15km", latitude=north_of(15), specialties="Emergency Medicine")
    factory.doctor("at-25km", latitude=north_of(25), specialties="Emergency Medicine")
    assert ranker.match(query()) == []
    assert ids(ranker.match(query(emergency=True))) == ["at-15km"]
    assert ids(ranker.match(query(max_distance_km=30))) == ["at-15km", "at-25km"]


def test_specialty_filter(ranker, factory):
    factory.doctor("cardio", specialties="Cardiology, Internal Medicine")
    factory.doctor("peds", specialties="Pediatrics")
    assert ids(ranker.match(query(specialty="cardiology"))) == ["cardio"]
    assert ranker.match(query(specialty="Dermatology")) == []


def test_emergency_specialist_ranks_first(ranker, factory):
    factory.doctor("non-specialist", latitude=north_of(1), specialties="Family Medicine")
    factory.doctor("specialist", latitude=north_of(8), specialties="Emergency Medicine")

    emergency = ranker.match(query(emergency=True))
    assert ids(emergency) == ["specialist", "non-specialist"]
    assert emergency[0].is_emergency_specialist is True
    assert emergency[0].emergency_services == ["Emergency Care"]

    # ordinary searches skip the specialist key
    assert ids(ranker.match(query())) == ["non-specialist", "specialist"]


def test_specialists_then_distance_within_groups(ranker, factory):
    factory.doctor("gp-2km", latitude=north_of(2), specialties="Family Medicine")
    factory.doctor("gp-1km", latitude=north_of(1), specialties="Internal Medicine")
    factory.doctor("cardio-9km", latitude=north_of(9), specialties="Cardiology")
    factory.doctor("er-4km", latitude=north_of(4), specialties="Emergency Medicine")
    assert ids(ranker.match(query(emergency=True))) == ["er-4km", "cardio-9km", "gp-1km", "gp-2km"]


def test_emergency_category_filter(ranker, factory):
    factory.doctor("cardio", specialties="Cardiology")
    factory.doctor("peds", latitude=north_of(1), specialties="Pediatrics")
    factory.doctor("er", latitude=north_of(2), specialties="Emergency Medicine")
    cardiac = ranker.match(query(emergency_category=EmergencyCategory.CARDIAC))
    assert ids(cardiac) == ["cardio", "er"]
    pediatric = ranker.match(query(emergency_category=EmergencyCategory.PEDIATRIC))
    assert ids(pediatric) == ["er", "peds"]


def test_require_specialist(ranker, factory):
    factory.doctor("gp", specialties="Family Medicine")
    factory.doctor("critical", latitude=north_of(3), specialties="Critical Care")
    assert ids(ranker.match(query(emergency=True, require_specialist=True))) == ["critical"]


def test_response_estimate_monotonic_and_capped():
    for specialist in (True, False):
        previous = 0
        for tenths in range(0, 400):
            minutes = estimate_response_minutes(tenths / 10.0, specialist)
            assert minutes >= previous
            assert minutes <= MAX_RESPONSE_MINUTES
            previous = minutes
    assert estimate_response_minutes(0, True) == 10
    assert estimate_response_minutes(0, False) == 20
    assert estimate_response_minutes(7.5, True) == 25
    assert estimate_response_minutes(100, False) == 60


def test_pagination_is_stable(ranker, factory):
    # same location: distance and ETA tie, order falls back to doctor id
    for i in range(7):
        factory.doctor(f"doc-{i}", latitude=north_of(2))
    full = ids(ranker.rank(query()))
    assert full == sorted(full)

    pages = [ranker.search(query(page=p, page_size=3)) for p in (1, 2, 3)]
    assert [len(p.results) for p in pages] == [3, 3, 1]
    assert [p.has_more for p in pages] == [True, True, False]
    assert all(p.total == 7 for p in pages)
    assert sum((ids(p.results) for p in pages), []) == full
    assert [r.rank for r in pages[1].results] == [4, 5, 6]
    assert ranker.search(query(page=4, page_size=3)).results == []


def test_invalid_query(ranker):
    with pytest.raises(InvalidLocationError):
        ranker.match(MatchQuery(latitude=95.0, longitude=0.0))
    with pytest.raises(ValidationError):
        ranker.match(query(page=0))
    with pytest.raises(ValidationError):
        ranker.match(query(page_size=0))
    with pytest.raises(ValidationError):
        ranker.match(query(max_distance_km=-1))


def test_no_candidates_is_empty(ranker):
    page = ranker.search(query())
    assert page.results == []
    assert page.total == 0
    assert page.has_more is False


def test_nearest_emergency(ranker, factory):
    for i in range(7):
        factory.doctor(f"doc-{i}", latitude=north_of(i + 1))
    nearest = ranker.nearest_emergency(BASE_LAT, BASE_LON)
    assert ids(nearest) == [f"doc-{i}" for i in range(5)]
    assert len(ranker.nearest_emergency(BASE_LAT, BASE_LON, count=2)) == 2
    with pytest.raises(ValidationError):
        ranker.nearest_emergency(BASE_LAT, BASE_LON, count=0)


@pytest.mark.parametrize("radius", [math.nan, math.inf, 0.0])
def test_non_finite_or_empty_radius_rejected(ranker, factory, radius):
    factory.doctor("far", latitude=north_of(500))
    with pytest.raises(ValidationError) as exc:
        ranker.match(query(max_distance_km=radius))
    assert exc.value.error_code == "INVALID_DISTANCE"


def test_emergency_services_by_specialty_fragment():
    assert emergency_services(["Orthopedic Trauma"]) == ["Trauma Care"]
    assert emergency_services(["Trauma Surgery", "Pediatrics"]) == ["Trauma Care", "Pediatric Care"]
    assert emergency_services(["Pediatric Emergency Medicine"]) == ["Emergency Care"]
    assert emergency_services(["Dermatology"]) == []
