"""Geocoding, proximity and station metadata."""

from .commute import CommuteCalculator
from .google_maps import GoogleMapsClient
from .postcodes import PostcodesIoClient
from .proximity import StationFinder
from .rail_api import WikidataClient
from .resolver import CoordinateResolver
from .station_lines import StationMetadataResolver
from .tfl_api import TflClient

__all__ = [
    "CommuteCalculator",
    "CoordinateResolver",
    "GoogleMapsClient",
    "PostcodesIoClient",
    "StationFinder",
    "StationMetadataResolver",
    "TflClient",
    "WikidataClient",
]
