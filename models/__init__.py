"""Data models for listings and enrichment results."""

from .constants import OFSTED_RATINGS, TTL, PlotSizeMethod, StationCategory
from .errors import (
    ConfigurationMissingError,
    EnrichmentError,
    MalformedResponseError,
    ScrapeFailedError,
    UpstreamReportedError,
    UpstreamThrottledError,
    UpstreamTimeoutError,
)
from .property import (
    Address,
    Coordinates,
    EpcRating,
    PropertyListing,
    ScrapeResult,
    StationInfo,
)
from .registry import MarketDataResult, PlotSizeResult
from .schools import AttendedSchool, AttendedSchoolsResult

__all__ = [
    "Address",
    "AttendedSchool",
    "AttendedSchoolsResult",
    "ConfigurationMissingError",
    "Coordinates",
    "EnrichmentError",
    "EpcRating",
    "MalformedResponseError",
    "MarketDataResult",
    "OFSTED_RATINGS",
    "PlotSizeMethod",
    "PlotSizeResult",
    "PropertyListing",
    "ScrapeFailedError",
    "ScrapeResult",
    "StationCategory",
    "StationInfo",
    "TTL",
    "UpstreamReportedError",
    "UpstreamThrottledError",
    "UpstreamTimeoutError",
]
