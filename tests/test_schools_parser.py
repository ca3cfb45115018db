"""Unit tests for attended-schools parsing and distance enrichment."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
import json

import pytest
from geo.google_maps import TravelMetric
from models.errors import MalformedResponseError, UpstreamTimeoutError
from models.property import Coordinates
from models.schools import AttendedSchool, AttendedSchoolsResult
from schools.enrichment import (
    AttendedSchoolsService,
    SchoolDistanceEnricher,
    schools_cache_key,
    walking_candidates,
)
from schools.parser import parse_attended_schools_response, parse_school_record
from utils.cache import TTLCache

HOME = Coordinates(latitude=51.5010, longitude=-0.1416)


def record(name, percentage, rating="2", policy="", lat=51.50, lng=-0.14, urn="100001"):
    return {
        "Urn": urn,
        "Percentage": percentage,
        "School": {
            "Name": name,
            "OfstedRatingNumber": rating,
            "AdmissionsPolicy": policy,
            "Lat": lat,
            "Lng": lng,
            "LocratingRatingNumber": 3,
        },
    }


def make_body(area="Westminster 018A", primary=None, secondary=None):
    script = "showAttendedSchoolsData('{}', '{}', '{}');".format(
        area, json.dumps(primary or []), json.dumps(secondary or [])
    )
    return json.dumps({"d": script})


class TestParseSchoolRecord:
    def test_maps_fields(self):
        school = parse_school_record(record("St Mary's Primary", "42.5", rating="1"), "primary")
        assert school.name == "St Mary's Primary"
        assert school.percentage == 42.5
        assert school.ofsted_rating == "Outstanding"
        assert school.ofsted_rating_number == 1
        assert school.locrating_rating_number == "3"
        assert not school.is_grammar

    def test_selective_is_grammar(self):
        school = parse_school_record(record("Queen Elizabeth's", 12, policy="Selective"), "secondary")
        assert school.is_grammar

    def test_unknown_rating(self):
        school = parse_school_record(record("New Academy", 5, rating="9"), "secondary")
        assert school.ofsted_rating is None
        assert school.ofsted_rating_number is None

    def test_missing_school_object_is_skipped(self):
        assert parse_school_record({"Urn": "1", "Percentage": 3}, "primary") is None


class TestParseResponse:
    """Test envelope decoding and phase ordering."""

    def test_parses_both_phases_sorted(self):
        body = make_body(
            primary=[record("Low", 4), record("High", 60), {"Percentage": 30}],
            secondary=[record("Grammar", 8, policy="selective")],
        )
        parsed = parse_attended_schools_response(body)

        assert parsed.area_name == "Westminster 018A"
        assert [s.name for s in parsed.primary_schools] == ["High", "Low"]
        assert parsed.secondary_schools[0].is_grammar
        assert parsed.secondary_schools[0].phase == "secondary"

    def test_empty_arrays(self):
        parsed = parse_attended_schools_response(make_body())
        assert parsed.primary_schools == []
        assert parsed.secondary_schools == []

    def test_not_json(self):
        with pytest.raises(MalformedResponseError):
            parse_attended_schools_response("<html>Service Unavailable</html>")

    def test_missing_d(self):
        with pytest.raises(MalformedResponseError):
            parse_attended_schools_response(json.dumps({"x": 1}))

    def test_missing_call(self):
        with pytest.raises(MalformedResponseError):
            parse_attended_schools_response(json.dumps({"d": "console.log('nothing')"}))


class FakeGoogleMaps:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def distance_matrix(self, origin, destinations, mode="walking"):
        self.calls.append([d.name for d in destinations])
        if self.error:
            raise self.error
        return [TravelMetric(d.name, 800, "0.8 km", 660, "11 mins") for d in destinations]


def school(name, percentage, phase="primary"):
    return AttendedSchool(urn="1", name=name, phase=phase, percentage=percentage, lat=51.51, lng=-0.14)


def success_result():
    return AttendedSchoolsResult(
        success=True,
        area_name="Westminster 018A",
        primary_schools=[school("A", 50), school("B", 0.5)],
        secondary_schools=[school("C", 20, "secondary")],
    )


class TestSchoolDistanceEnricher:
    def test_walking_candidates_filter_and_limit(self):
        schools = [school(str(i), p) for i, p in enumerate([0.4, 10, 3, 1.0, 50])]
        assert [s.percentage for s in walking_candidates(schools, limit=3)] == [50, 10, 3]

    def test_enrich_adds_distances(self):
        google_maps = FakeGoogleMaps()
        result = asyncio.run(SchoolDistanceEnricher(google_maps).enrich(success_result(), HOME))

        a, b = result.primary_schools
        assert a.crow_flies_distance is not None
        assert a.walking_time == 11
        assert a.walking_distance == 800
        # under the attendance threshold: crow-flies only
        assert b.crow_flies_distance is not None
        assert b.walking_time is None
        assert sorted(google_maps.calls) == [["A"], ["C"]]

    def test_walking_failure_keeps_crow_flies(self):
        result = asyncio.run(
            SchoolDistanceEnricher(FakeGoogleMaps(error=UpstreamTimeoutError("slow"))).enrich(success_result(), HOME)
        )
        assert result.primary_schools[0].crow_flies_distance is not None
        assert result.primary_schools[0].walking_time is None


class FakeScraper:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def scrape(self, address, coordinates=None):
        self.calls.append((address, coordinates))
        return self.result


class TestAttendedSchoolsService:
    """Test caching around the browser flow."""

    def test_success_is_cached_by_lowercase_address(self):
        scraper = FakeScraper(success_result())
        cache = TTLCache("schools", 3600)
        service = AttendedSchoolsService(scraper, SchoolDistanceEnricher(FakeGoogleMaps()), cache)

        first = asyncio.run(service.lookup(" 10 Downing Street, London SW1A 2AA ", HOME))
        second = asyncio.run(service.lookup("10 downing street, london sw1a 2aa", HOME))

        assert first.success and second.success
        assert len(scraper.calls) == 1
        assert scraper.calls[0][0] == "10 Downing Street, London SW1A 2AA"
        assert second.primary_schools[0].walking_time == 11
        assert cache.has(schools_cache_key("10 Downing Street, London SW1A 2AA"))

    def test_failure_not_cached(self):
        scraper = FakeScraper(AttendedSchoolsResult.failure("Locrating login failed"))
        service = AttendedSchoolsService(scraper, None, TTLCache("schools", 3600))

        asyncio.run(service.lookup("1 High Street"))
        result = asyncio.run(service.lookup("1 High Street"))

        assert not result.success
        assert result.error == "Locrating login failed"
        assert len(scraper.calls) == 2

    def test_bust_cache(self):
        scraper = FakeScraper(success_result())
        service = AttendedSchoolsService(scraper, None, TTLCache("schools", 3600))
        asyncio.run(service.lookup("1 High Street"))
        asyncio.run(service.lookup("1 High Street", bust_cache=True))
        assert len(scraper.calls) == 2
