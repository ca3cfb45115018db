"""Unit tests for market data aggregation."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio

import pytest
from models.errors import MalformedResponseError, UpstreamReportedError, UpstreamTimeoutError
from propertydata.market_data import (
    MarketDataService,
    calculate_margin,
    format_month_year,
    growth_trend,
    market_data_cache_key,
)
from utils.cache import TTLCache

FULL_RESPONSES = {
    "valuation-sale": {"status": "success", "data": {"estimate": 500000, "confidence": "high"}},
    "prices": {"status": "success", "data": {"average": 480000, "points_analysed": 18, "date_latest": "2024-03-15"}},
    "growth": {"status": "success", "data": {"growth_5_year": 12.5}},
    "council-tax": {"status": "success", "data": {"band": "E"}},
    "crime": {"status": "success", "data": {"rating": "Average"}},
    "flood-risk": {"status": "success", "data": {"risk": "Very low", "level": "1"}},
    "conservation-area": {"status": "success", "data": {"in_conservation_area": True}},
}


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeRegistry:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    async def get(self, path, params):
        self.calls.append((path, dict(params)))
        outcome = self.responses.get(path, UpstreamReportedError(f"/{path} unavailable"))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def fetch(service, **kwargs):
    args = dict(postcode="SW1A 2AA", bedrooms=3, property_type="terraced", listing_price=520000, square_footage=1200.0)
    args.update(kwargs)
    return asyncio.run(service.get_market_data(**args))


class TestHelpers:
    """Test margin, trend and formatting helpers."""

    def test_within_band_is_fairly_priced(self):
        assert calculate_margin(509000, 500000) == "Fairly priced"
        assert calculate_margin(491000, 500000) == "Fairly priced"

    def test_band_edge_is_not_fair(self):
        assert calculate_margin(510000, 500000) == "Overpriced by 2%"

    def test_rounds_half_up(self):
        assert calculate_margin(512500, 500000) == "Overpriced by 3%"

    def test_underpriced(self):
        assert calculate_margin(450000, 500000) == "Underpriced by 10%"

    def test_custom_band(self):
        assert calculate_margin(520000, 500000, band_percent=5) == "Fairly priced"

    def test_missing_inputs(self):
        assert calculate_margin(None, 500000) is None
        assert calculate_margin(500000, None) is None

    def test_growth_trend(self):
        assert growth_trend(10.5) == "up"
        assert growth_trend(10) == "stable"
        assert growth_trend(-5.1) == "down"
        assert growth_trend(None) is None

    def test_format_month_year(self):
        assert format_month_year("2024-03-15") == "Mar 2024"
        assert format_month_year("not a date") == ""
        assert format_month_year(None) == ""

    def test_cache_key(self):
        assert market_data_cache_key("sw1a 2aa", 3, "flat") == "marketData::SW1A2AA::3::flat"
        assert market_data_cache_key("SW1A 2AA", None, "flat") == "marketData::SW1A2AA::unknown::flat"


class TestMarketDataService:
    """Test endpoint fan-out, tolerance and caching."""

    def test_full_aggregation(self):
        registry = FakeRegistry(FULL_RESPONSES)
        result = fetch(MarketDataService(registry, TTLCache("market_data", 3600)))

        assert result.success
        assert not result.cached
        assert result.valuation.estimate == 500000
        assert result.valuation.margin == "Overpriced by 4%"
        assert result.comparables.count == 18
        assert result.comparables.time_range == "Mar 2024"
        assert result.growth.trend == "up"
        assert result.ownership.council_tax_band == "E"
        assert result.ownership.is_conservation_area is True
        assert result.risks.flood_risk == "Very low"
        assert len(registry.calls) == 7

    def test_valuation_params_include_bedrooms_and_area(self):
        registry = FakeRegistry(FULL_RESPONSES)
        fetch(MarketDataService(registry, TTLCache("market_data", 3600)))
        params = dict(registry.calls)["valuation-sale"]
        assert params == {"postcode": "SW1A 2AA", "bedrooms": 3, "internal_area": 1200.0}

    def test_partial_failure_still_succeeds(self):
        responses = dict(FULL_RESPONSES)
        responses["valuation-sale"] = UpstreamTimeoutError("timed out")
        responses["crime"] = {"status": "success", "data": ["unexpected"]}
        result = fetch(MarketDataService(FakeRegistry(responses), TTLCache("market_data", 3600)))

        assert result.success
        assert result.valuation.estimate is None
        assert result.valuation.margin is None
        assert result.risks.crime_rating is None
        assert result.ownership.council_tax_band == "E"

    def test_growth_falls_back_to_per_year(self):
        responses = dict(FULL_RESPONSES)
        responses["growth"] = {"status": "success", "data": {"per_year": -1.5}}
        result = fetch(MarketDataService(FakeRegistry(responses), TTLCache("market_data", 3600)))
        assert result.growth.five_year == pytest.approx(-7.5)
        assert result.growth.trend == "down"

    def test_cache_hit_marks_cached(self):
        registry = FakeRegistry(FULL_RESPONSES)
        service = MarketDataService(registry, TTLCache("market_data", 3600))
        fetch(service)
        second = fetch(service)

        assert second.cached
        assert second.valuation.estimate == 500000
        assert len(registry.calls) == 7

    def test_total_failure_cached_briefly(self):
        clock = FakeClock()
        registry = FakeRegistry({"prices": MalformedResponseError("bad body")})
        service = MarketDataService(registry, TTLCache("market_data", 7 * 86400, clock=clock))

        first = fetch(service)
        assert not first.success
        assert first.error

        clock.now += 299
        again = fetch(service)
        assert again.cached
        assert not again.success
        assert len(registry.calls) == 7

        clock.now += 2
        fetch(service)
        assert len(registry.calls) == 14

    def test_bust_cache(self):
        registry = FakeRegistry(FULL_RESPONSES)
        service = MarketDataService(registry, TTLCache("market_data", 3600))
        fetch(service)
        fetch(service, bust_cache=True)
        assert len(registry.calls) == 14
