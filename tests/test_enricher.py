"""Tests for the enrichment orchestrator with every collaborator faked."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
import json

import pytest
from llm.summarizer import SummaryResult
from main import PropertyEnricher, load_config, main, normalize_listing_url, schools_query
from models.constants import PlotSizeMethod, StationCategory
from models.errors import ScrapeFailedError, UpstreamTimeoutError
from models.property import Address, Coordinates, PropertyListing, ScrapeResult, StationInfo
from models.registry import MarketDataResult, PlotSizeResult
from models.schools import AttendedSchool, AttendedSchoolsResult
from utils.cache import CacheRegistry
from utils.result_store import InMemoryResultStore, JsonFileResultStore, new_record

URL = "https://www.rightmove.co.uk/properties/123456789"
HOME = Coordinates(latitude=51.5010, longitude=-0.1416)


def make_listing():
    return PropertyListing(
        listing_id="123456789",
        source_url=URL,
        price=450000,
        bedrooms=3,
        property_type="terraced",
        address=Address(display_address="Acacia Avenue, London", postcode="SW1A 1AA", street_name="Acacia Avenue"),
    )


class FakeAdapter:
    def __init__(self, result=None):
        self.result = result or ScrapeResult(success=True, listing=make_listing())
        self.calls = 0

    def get_portal_name(self):
        return "rightmove"

    def is_valid_url(self, url):
        return "rightmove.co.uk/properties/" in url

    async def scrape(self, url):
        self.calls += 1
        return self.result


class FakeResolver:
    async def resolve_listing(self, listing):
        listing.coordinates = HOME
        listing.address.door_number = "14"
        return listing


class FakeStationFinder:
    async def nearest_stations(self, coordinates, category):
        if category == StationCategory.RAIL:
            return [StationInfo(name="Vauxhall", operators=["SWR"], walking_time=9, walking_distance=700)]
        return None


class FakePlotSize:
    def __init__(self):
        self.calls = []

    async def resolve(self, address, **kwargs):
        self.calls.append((address, kwargs))
        return PlotSizeResult(plot_size_acres=0.12, uprn="1", method=PlotSizeMethod.NEARBY_LOCATION)


class CrashingMarketData:
    async def get_market_data(self, *args, **kwargs):
        raise RuntimeError("unexpected payload")


class FakeMarketData:
    async def get_market_data(self, postcode, bedrooms, property_type, listing_price, square_footage, bust_cache=False):
        result = MarketDataResult(success=True)
        result.valuation.estimate = 460000
        return result


class FakeSchools:
    def __init__(self, delay=0.0):
        self.delay = delay
        self.calls = []

    async def lookup(self, address, coordinates=None, bust_cache=False):
        self.calls.append((address, coordinates, bust_cache))
        if self.delay:
            await asyncio.sleep(self.delay)
        return AttendedSchoolsResult(
            success=True,
            area_name="Westminster 018A",
            primary_schools=[AttendedSchool(urn="1", name="St Peter's", phase="primary", percentage=40.0)],
        )


class TimingOutSummarizer:
    async def summarize(self, document, model=None, bust_cache=False):
        raise UpstreamTimeoutError("slow")


class FakeSummarizer:
    def __init__(self):
        self.documents = []

    async def summarize(self, document, model=None, bust_cache=False):
        self.documents.append(document)
        return SummaryResult(True, "google/gemini-3-flash-preview", analysis="Buy it.")


def enricher(**overrides):
    collaborators = dict(
        caches=CacheRegistry(),
        store=InMemoryResultStore(),
        adapter=FakeAdapter(),
        resolver=FakeResolver(),
        station_finder=FakeStationFinder(),
        plot_size=FakePlotSize(),
        market_data=FakeMarketData(),
        schools=FakeSchools(),
        summarizer=FakeSummarizer(),
    )
    config = overrides.pop("config", {})
    collaborators.update(overrides)
    return PropertyEnricher(config, **collaborators)


class TestHelpers:
    def test_normalize_listing_url(self):
        assert normalize_listing_url("https://WWW.Rightmove.co.uk/properties/1/?channel=RES#x") == (
            "https://www.rightmove.co.uk/properties/1"
        )

    def test_schools_query_appends_postcode(self):
        assert schools_query(make_listing()) == "Acacia Avenue, London, SW1A 1AA"

    def test_schools_query_keeps_existing_postcode(self):
        listing = make_listing()
        listing.address.display_address = "Acacia Avenue, London SW1A1AA"
        assert schools_query(listing) == "Acacia Avenue, London SW1A1AA"


class TestPropertyEnricher:
    """Test the stage fan-out and merge behaviour."""

    def test_all_stages_merge(self):
        summarizer = FakeSummarizer()
        pipeline = enricher(summarizer=summarizer)
        record = asyncio.run(pipeline.enrich(URL))

        data = record["data"]
        assert record["id"] == "123456789"
        assert data["property"]["coordinates"] == {"latitude": 51.501, "longitude": -0.1416}
        assert data["property"]["address"]["door_number"] == "14"
        assert data["property"]["nearest_stations"][0]["name"] == "Vauxhall"
        assert data["property"]["nearest_tube_stations"] is None
        assert data["plot_size"]["method"] == "uprns-location"
        assert data["market_data"]["valuation"]["estimate"] == 460000
        assert data["schools"]["area_name"] == "Westminster 018A"
        assert data["summary"]["analysis"] == "Buy it."
        assert summarizer.documents[0]["id"] == "123456789"

    def test_failing_stage_does_not_abort_siblings(self):
        pipeline = enricher(market_data=CrashingMarketData(), summarizer=TimingOutSummarizer())
        record = asyncio.run(pipeline.enrich(URL))

        assert "market_data" not in record["data"]
        assert "summary" not in record["data"]
        assert record["data"]["plot_size"]["plot_size_acres"] == 0.12
        assert record["data"]["schools"]["success"]

    def test_stage_timeout(self):
        pipeline = enricher(config={"stage_timeout": 0.05}, schools=FakeSchools(delay=1.0))
        record = asyncio.run(pipeline.enrich(URL))
        assert "schools" not in record["data"]
        assert "plot_size" in record["data"]

    def test_scrape_failure_is_fatal(self):
        adapter = FakeAdapter(ScrapeResult(success=False, error="Access blocked", error_kind="blocked"))
        pipeline = enricher(adapter=adapter)
        with pytest.raises(ScrapeFailedError) as exc:
            asyncio.run(pipeline.enrich(URL))
        assert exc.value.code == "blocked"
        assert pipeline.store.get("123456789") is None

    def test_invalid_url(self):
        adapter = FakeAdapter()
        with pytest.raises(ScrapeFailedError) as exc:
            asyncio.run(enricher(adapter=adapter).enrich("https://example.com/house/1"))
        assert exc.value.code == "invalid_url"
        assert adapter.calls == 0

    def test_listing_cached_between_runs(self):
        adapter = FakeAdapter()
        pipeline = enricher(adapter=adapter)
        asyncio.run(pipeline.enrich(URL))
        asyncio.run(pipeline.enrich(URL + "?channel=RES_BUY"))
        assert adapter.calls == 1

        asyncio.run(pipeline.enrich(URL, bust_cache=True))
        assert adapter.calls == 2

    def test_bust_cache_reaches_stages(self):
        schools = FakeSchools()
        plot_size = FakePlotSize()
        asyncio.run(enricher(schools=schools, plot_size=plot_size).enrich(URL, bust_cache=True))
        assert schools.calls[0][2] is True
        assert plot_size.calls[0][1]["bust_cache"] is True
        assert schools.calls[0][1] == HOME

    def test_observers_see_base_and_each_merge(self):
        pipeline = enricher()
        seen = []
        pipeline.subscribe(lambda record: seen.append(sorted(record["data"])))
        asyncio.run(pipeline.enrich(URL))

        assert seen[0] == ["property"]
        # base record plus one publish per stage that produced data
        assert len(seen) == 1 + 5
        assert seen[-1] == sorted(["property", "plot_size", "market_data", "schools", "summary"])

    def test_market_data_skipped_without_postcode(self):
        listing = make_listing()
        listing.address.postcode = None
        pipeline = enricher(adapter=FakeAdapter(ScrapeResult(success=True, listing=listing)))
        record = asyncio.run(pipeline.enrich(URL))
        assert "market_data" not in record["data"]


class TestEntryPoint:
    def test_load_config_env_overrides(self, tmp_path, monkeypatch):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"propertydata": {"api_key": "from-file", "timeout": 5}}))
        monkeypatch.setenv("PROPERTYDATA_API_KEY", "from-env")
        monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)

        config = asyncio.run(load_config(config_path))
        assert config["propertydata"] == {"api_key": "from-env", "timeout": 5}
        assert "google_maps" not in config or "api_key" not in config["google_maps"]

    def test_load_config_missing_file(self, tmp_path, monkeypatch):
        for var in ("PROPERTYDATA_API_KEY", "GOOGLE_MAPS_API_KEY", "OPENROUTER_API_KEY", "LOCRATING_EMAIL", "LOCRATING_PASSWORD"):
            monkeypatch.delenv(var, raising=False)
        assert asyncio.run(load_config(tmp_path / "missing.json")) == {}

    def test_usage(self, capsys):
        assert asyncio.run(main([])) == 1
        assert "Usage" in capsys.readouterr().out

    def test_list_prints_stored_records_newest_first(self, tmp_path, monkeypatch, capsys):
        import main as main_module

        store = JsonFileResultStore(tmp_path)
        older = new_record("111", "https://www.rightmove.co.uk/properties/111")
        older["timestamp"] = 1000
        newer = new_record("222", "https://www.rightmove.co.uk/properties/222",
                           {"property": {"address": {"display_address": "Acacia Avenue, London"}}})
        newer["timestamp"] = 2000
        store.upsert("111", older)
        store.upsert("222", newer)

        async def fake_load_config(config_path=None):
            return {"output": {"store_folder": str(tmp_path)}}

        monkeypatch.setattr(main_module, "load_config", fake_load_config)
        assert asyncio.run(main(["--list"])) == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert lines == [
            "222  Acacia Avenue, London  https://www.rightmove.co.uk/properties/222",
            "111  -  https://www.rightmove.co.uk/properties/111",
        ]

    def test_list_with_empty_store(self, tmp_path, monkeypatch, capsys):
        import main as main_module

        async def fake_load_config(config_path=None):
            return {"output": {"store_folder": str(tmp_path / "store")}}

        monkeypatch.setattr(main_module, "load_config", fake_load_config)
        assert asyncio.run(main(["--list"])) == 0
        assert "No stored properties" in capsys.readouterr().out
