"""Enrichment constants: cache TTLs, model allow-list, inspection grades."""

from enum import Enum
from typing import Dict, List

# Cache lifetimes in seconds, one per data class
TTL: Dict[str, int] = {
    "property": 60 * 60 * 24,  # listings rarely change intraday
    "schools": 60 * 60 * 24 * 7,  # attendance is static per academic year
    "ai": 60 * 60 * 24,
    "plot_size": 60 * 60 * 24 * 30,  # title plot sizes are stable
    "market_data": 60 * 60 * 24 * 7,
}

# Failed market-data aggregations are cached briefly to avoid hammering the API
MARKET_DATA_FAILURE_TTL = 300

# Registry provider
PROPERTYDATA_BASE_URL = "https://api.propertydata.co.uk"
PROPERTYDATA_THROTTLE_CODE = "X14"
PROPERTYDATA_NO_TITLE_CODE = "2101"
PROPERTYDATA_MIN_GAP_SECONDS = 1.2
PROPERTYDATA_TIMEOUT = 20.0
PROPERTYDATA_MAX_THROTTLE_RETRIES = 2

# Price within this percentage of the estimate counts as fairly priced
FAIR_PRICE_BAND_PERCENT = 2.0

# Summarization
DEFAULT_SUMMARY_MODEL = "google/gemini-3-flash-preview"
ALLOWED_SUMMARY_MODELS: List[str] = [
    "google/gemini-3-flash-preview",
    "anthropic/claude-opus-4.6",
]
SUMMARY_TIMEOUT = 240.0

# Attendance below this percentage is hidden from enrichment and display
MIN_ATTENDANCE_PERCENT = 1.0

# Browser flow
LOCATION_POLL_ITERATIONS = 20
LOCATION_POLL_INTERVAL = 1.0
MIN_ATTENDANCE_BODY_BYTES = 200


class PlotSizeMethod(str, Enum):
    """How a plot-size match was found. Anything but ADDRESS_MATCH is approximate."""

    ADDRESS_MATCH = "address-match-uprn"
    NEARBY_LOCATION = "uprns-location"
    NEARBY_POSTCODE = "uprns-postcode"


class StationCategory(str, Enum):
    """Nearby-search place categories."""

    RAIL = "train_station"
    SUBWAY = "subway_station"


# Inspection rating code -> label (1 is best)
OFSTED_RATINGS: Dict[str, str] = {
    "1": "Outstanding",
    "2": "Good",
    "3": "Requires Improvement",
    "4": "Inadequate",
}
