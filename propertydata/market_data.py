"""Market insight aggregation over seven PropertyData endpoints."""

import asyncio
import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from models.constants import FAIR_PRICE_BAND_PERCENT, MARKET_DATA_FAILURE_TTL
from models.errors import EnrichmentError
from models.registry import MarketDataResult
from utils.cache import TTLCache
from utils.postcode import compact_postcode

from .client import PropertyDataClient
from .responses import (
    parse_conservation_area,
    parse_council_tax_band,
    parse_crime_rating,
    parse_flood_risk,
    parse_growth,
    parse_prices,
    parse_valuation,
)

logger = logging.getLogger(__name__)

COMPARABLE_POINTS = 20


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_margin(
    listing_price: Optional[int],
    estimate: Optional[int],
    band_percent: float = FAIR_PRICE_BAND_PERCENT,
) -> Optional[str]:
    """
    Describe the asking price relative to the valuation estimate.

    Within +/- ``band_percent`` is "Fairly priced"; outside it the
    difference is reported as a whole percentage.
    """
    if not listing_price or not estimate:
        return None

    percentage = (listing_price - estimate) / estimate * 100
    if abs(percentage) < band_percent:
        return "Fairly priced"
    if percentage > 0:
        return f"Overpriced by {_round_half_up(percentage)}%"
    return f"Underpriced by {_round_half_up(abs(percentage))}%"


def growth_trend(five_year: Optional[float]) -> Optional[str]:
    if five_year is None:
        return None
    if five_year > 10:
        return "up"
    if five_year < -5:
        return "down"
    return "stable"


def format_month_year(date_text: Optional[str]) -> str:
    """'2024-03-15' -> 'Mar 2024'; empty string when unparseable."""
    if not date_text:
        return ""
    try:
        return datetime.fromisoformat(date_text[:10]).strftime("%b %Y")
    except ValueError:
        return ""


def market_data_cache_key(postcode: str, bedrooms: Optional[int], property_type: str) -> str:
    beds = bedrooms if bedrooms is not None else "unknown"
    return f"marketData::{compact_postcode(postcode)}::{beds}::{property_type}"


class MarketDataService:
    """
    Fetches valuation, comparables, growth, council tax, crime, flood
    risk and conservation-area data concurrently. Every request still
    goes through the client's shared serial queue, so "concurrently"
    means queued back to back rather than simultaneous.

    Each endpoint is tolerated independently; the result is successful
    when at least one section produced data.
    """

    def __init__(
        self,
        client: PropertyDataClient,
        cache: TTLCache,
        band_percent: float = FAIR_PRICE_BAND_PERCENT,
    ):
        self.client = client
        self.cache = cache
        self.band_percent = band_percent

    async def get_market_data(
        self,
        postcode: str,
        bedrooms: Optional[int],
        property_type: str,
        listing_price: Optional[int],
        square_footage: Optional[float],
        bust_cache: bool = False,
    ) -> MarketDataResult:
        key = market_data_cache_key(postcode, bedrooms, property_type)
        if bust_cache:
            self.cache.delete(key)

        cached = self.cache.get(key)
        if cached is not None:
            result = MarketDataResult.from_dict(cached)
            result.cached = True
            return result

        valuation_params: Dict[str, Any] = {"postcode": postcode}
        prices_params: Dict[str, Any] = {"postcode": postcode, "points": COMPARABLE_POINTS}
        if bedrooms:
            valuation_params["bedrooms"] = bedrooms
            prices_params["bedrooms"] = bedrooms
        if square_footage:
            valuation_params["internal_area"] = square_footage

        endpoints = [
            ("valuation-sale", valuation_params),
            ("prices", prices_params),
            ("growth", {"postcode": postcode}),
            ("council-tax", {"postcode": postcode}),
            ("crime", {"postcode": postcode}),
            ("flood-risk", {"postcode": postcode}),
            ("conservation-area", {"postcode": postcode}),
        ]
        responses = await asyncio.gather(
            *(self.client.get(path, params) for path, params in endpoints),
            return_exceptions=True,
        )
        by_path = dict(zip((path for path, _ in endpoints), responses))

        result = MarketDataResult()
        errors = []

        def section(path: str, apply) -> None:
            response = by_path[path]
            if isinstance(response, BaseException):
                if not isinstance(response, EnrichmentError):
                    raise response
                logger.warning(f"Market data /{path} failed: {response}")
                errors.append(response)
                return
            try:
                apply(response)
            except EnrichmentError as e:
                logger.warning(f"Market data /{path} unusable: {e}")
                errors.append(e)

        def apply_valuation(payload):
            valuation = parse_valuation(payload)
            result.valuation.estimate = valuation.estimate
            result.valuation.confidence = valuation.confidence
            result.valuation.margin = calculate_margin(
                listing_price, valuation.estimate, self.band_percent
            )

        def apply_prices(payload):
            prices = parse_prices(payload)
            result.comparables.average_price = prices.average
            result.comparables.count = prices.points_analysed
            result.comparables.time_range = format_month_year(prices.date_latest)

        def apply_growth(payload):
            growth = parse_growth(payload)
            five_year = growth.growth_5_year
            if five_year is None and growth.per_year is not None:
                five_year = growth.per_year * 5
            result.growth.five_year = five_year
            result.growth.trend = growth_trend(five_year)

        def apply_council_tax(payload):
            result.ownership.council_tax_band = parse_council_tax_band(payload)

        def apply_crime(payload):
            result.risks.crime_rating = parse_crime_rating(payload)

        def apply_flood_risk(payload):
            flood = parse_flood_risk(payload)
            result.risks.flood_risk = flood.risk
            result.risks.flood_risk_level = flood.level

        def apply_conservation(payload):
            result.ownership.is_conservation_area = parse_conservation_area(payload)

        section("valuation-sale", apply_valuation)
        section("prices", apply_prices)
        section("growth", apply_growth)
        section("council-tax", apply_council_tax)
        section("crime", apply_crime)
        section("flood-risk", apply_flood_risk)
        section("conservation-area", apply_conservation)

        result.success = result.has_data()
        if result.success:
            self.cache.set(key, result.to_dict())
            logger.info(f"Market data for {postcode}: {len(errors)} of {len(endpoints)} endpoints failed")
        else:
            result.error = errors[0].message if errors else "No market data available"
            # Short-lived entry so a failing postcode is not hammered
            self.cache.set(key, result.to_dict(), MARKET_DATA_FAILURE_TTL)
            logger.warning(f"Market data unavailable for {postcode}: {result.error}")

        return result
