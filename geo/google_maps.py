"""Google Maps Platform client: geocoding, nearby search, distance matrix."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from models.errors import ConfigurationMissingError, MalformedResponseError, UpstreamReportedError
from models.property import Coordinates
from utils.http import fetch_json

logger = logging.getLogger(__name__)

GOOGLE_MAPS_BASE_URL = "https://maps.googleapis.com/maps/api"


@dataclass
class Place:
    name: str
    lat: float
    lng: float


@dataclass
class ReverseGeocodeResult:
    formatted_address: str
    street_number: Optional[str] = None
    street_name: Optional[str] = None
    postcode: Optional[str] = None


@dataclass
class TravelMetric:
    destination: str
    distance_meters: int
    distance_text: str
    duration_seconds: int
    duration_text: str


def parse_address_components(result: Dict[str, Any]) -> ReverseGeocodeResult:
    """
    Pull street number, route and postal code out of a geocoder result.

    A ``premise`` component stands in for the street number when the
    latter is absent.
    """
    street_number = None
    premise = None
    street_name = None
    postcode = None

    for component in result.get("address_components") or []:
        types = component.get("types") or []
        name = component.get("long_name")
        if "street_number" in types:
            street_number = name
        if "route" in types:
            street_name = name
        if "postal_code" in types:
            postcode = name
        if "premise" in types:
            premise = name

    return ReverseGeocodeResult(
        formatted_address=result.get("formatted_address", ""),
        street_number=street_number or premise,
        street_name=street_name,
        postcode=postcode,
    )


def first_row_elements(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Element dicts of the first Distance Matrix row; non-dict entries become {} to keep positions."""
    rows = data.get("rows")
    if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
        return []
    elements = rows[0].get("elements")
    if not isinstance(elements, list):
        return []
    return [e if isinstance(e, dict) else {} for e in elements]


def metric_value(part: Any) -> Optional[float]:
    value = part.get("value") if isinstance(part, dict) else None
    return value if isinstance(value, (int, float)) else None


class GoogleMapsClient:
    """
    Thin async wrapper over the Geocoding, Places Nearby Search and
    Distance Matrix web services.

    Methods raise typed errors on failure and return empty values
    (None or []) only when Google reports ZERO_RESULTS.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = GOOGLE_MAPS_BASE_URL,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationMissingError("GOOGLE_MAPS_API_KEY is not configured")

        data = await fetch_json(
            f"{self.base_url}/{endpoint}",
            params={**params, "key": self.api_key},
            timeout=self.timeout,
            transport=self._transport,
        )
        if not isinstance(data, dict) or "status" not in data:
            raise MalformedResponseError(f"Google {endpoint}: response has no status")

        status = data["status"]
        if status not in ("OK", "ZERO_RESULTS"):
            raise UpstreamReportedError(
                f"Google {endpoint} status {status}: {data.get('error_message', '')}".strip(),
                status=status,
            )
        return data

    async def reverse_geocode(self, latitude: float, longitude: float) -> Optional[ReverseGeocodeResult]:
        data = await self._get(
            "geocode/json",
            {"latlng": f"{latitude},{longitude}", "result_type": "street_address|premise"},
        )
        results = data.get("results") or []
        if not results:
            return None
        parsed = parse_address_components(results[0])
        logger.info(
            f"Reverse geocode {latitude},{longitude}: {parsed.formatted_address} "
            f"(number={parsed.street_number}, street={parsed.street_name})"
        )
        return parsed

    async def geocode(self, address: str) -> Optional[Coordinates]:
        data = await self._get("geocode/json", {"address": address, "region": "uk"})
        results = data.get("results") or []
        if not results:
            return None
        location = (results[0].get("geometry") or {}).get("location") or {}
        if "lat" not in location or "lng" not in location:
            raise MalformedResponseError("Google geocode result has no location")
        return Coordinates(latitude=location["lat"], longitude=location["lng"])

    async def nearby_search(self, latitude: float, longitude: float, place_type: str) -> List[Place]:
        """Places of ``place_type`` ranked by distance; [] on ZERO_RESULTS."""
        data = await self._get(
            "place/nearbysearch/json",
            {"location": f"{latitude},{longitude}", "rankby": "distance", "type": place_type},
        )
        places = []
        for result in data.get("results") or []:
            if not isinstance(result, dict):
                continue
            location = (result.get("geometry") or {}).get("location") or {}
            if not result.get("name") or "lat" not in location or "lng" not in location:
                continue
            places.append(Place(name=result["name"], lat=location["lat"], lng=location["lng"]))
        return places

    async def distance_matrix(
        self,
        origin: Coordinates,
        destinations: Sequence[Place],
        mode: str = "walking",
    ) -> List[TravelMetric]:
        """
        Travel metrics from ``origin`` to each destination.

        Destinations without a usable route are left out, so the result
        can be shorter than ``destinations``; match on ``destination``.
        """
        if not destinations:
            return []

        data = await self._get(
            "distancematrix/json",
            {
                "origins": f"{origin.latitude},{origin.longitude}",
                "destinations": "|".join(f"{d.lat},{d.lng}" for d in destinations),
                "mode": mode,
                "units": "metric",
            },
        )
        metrics = []
        for destination, element in zip(destinations, first_row_elements(data)):
            distance_meters = metric_value(element.get("distance"))
            duration_seconds = metric_value(element.get("duration"))
            if element.get("status") != "OK" or distance_meters is None or duration_seconds is None:
                continue
            metrics.append(
                TravelMetric(
                    destination=destination.name,
                    distance_meters=distance_meters,
                    distance_text=element["distance"].get("text", ""),
                    duration_seconds=duration_seconds,
                    duration_text=element["duration"].get("text", ""),
                )
            )
        return metrics

    async def transit_duration(
        self, origin: str, destination: str, departure_time: int
    ) -> Optional[int]:
        """Public-transport journey time in seconds, or None without a route."""
        data = await self._get(
            "distancematrix/json",
            {
                "origins": origin,
                "destinations": destination,
                "mode": "transit",
                "departure_time": departure_time,
            },
        )
        elements = first_row_elements(data)
        if not elements or elements[0].get("status") != "OK":
            return None
        return metric_value(elements[0].get("duration"))
