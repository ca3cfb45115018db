"""Nearest-station enrichment."""

import asyncio
import logging
from typing import List, Optional

from models.constants import StationCategory
from models.errors import EnrichmentError
from models.property import Coordinates, StationInfo
from utils.geometry import haversine_km

from .google_maps import GoogleMapsClient, Place, TravelMetric
from .station_lines import StationMetadataResolver, operator_display_names

logger = logging.getLogger(__name__)

DEFAULT_STATION_COUNT = 3
# Extra candidates requested so that de-duplication still leaves enough
OVERFETCH_FACTOR = 2


def dedupe_by_name(places: List[Place]) -> List[Place]:
    seen = set()
    unique = []
    for place in places:
        if place.name in seen:
            continue
        seen.add(place.name)
        unique.append(place)
    return unique


class StationFinder:
    """
    Finds the nearest stations of a category and decorates them with
    walking metrics and line/operator metadata.

    ``None`` means the provider failed; ``[]`` means it answered and
    there is nothing nearby. Callers must not treat these alike.
    """

    def __init__(
        self,
        google_maps: GoogleMapsClient,
        metadata: StationMetadataResolver,
        count: int = DEFAULT_STATION_COUNT,
    ):
        self.google_maps = google_maps
        self.metadata = metadata
        self.count = count

    async def find_nearby(
        self,
        latitude: float,
        longitude: float,
        category: StationCategory,
        count: Optional[int] = None,
    ) -> Optional[List[Place]]:
        """
        Up to ``count`` distinct stations ranked by crow-flies distance.

        Duplicates (same name) are removed before the count is applied.
        """
        count = self.count if count is None else count
        try:
            places = await self.google_maps.nearby_search(latitude, longitude, category.value)
        except EnrichmentError as e:
            logger.warning(f"Nearby {category.value} search failed: {e}")
            return None

        candidates = places[: count * OVERFETCH_FACTOR]
        candidates.sort(key=lambda p: haversine_km(latitude, longitude, p.lat, p.lng))
        return dedupe_by_name(candidates)[:count]

    async def travel_metrics(self, origin: Coordinates, destinations: List[Place]) -> Optional[List[TravelMetric]]:
        try:
            return await self.google_maps.distance_matrix(origin, destinations, mode="walking")
        except EnrichmentError as e:
            logger.warning(f"Walking distances unavailable: {e}")
            return None

    async def _metadata(self, name: str, category: StationCategory) -> List[str]:
        if category == StationCategory.SUBWAY:
            return await self.metadata.tube_lines(name)
        return operator_display_names(await self.metadata.train_operators(name))

    async def nearest_stations(
        self,
        coordinates: Coordinates,
        category: StationCategory,
        count: Optional[int] = None,
    ) -> Optional[List[StationInfo]]:
        """
        Nearest stations with walking time (minutes) and distance (meters).

        Stations Google could not route to keep their place in the list
        without walking figures.
        """
        places = await self.find_nearby(coordinates.latitude, coordinates.longitude, category, count)
        if places is None:
            return None
        if not places:
            logger.info(f"No {category.value} near {coordinates.latitude},{coordinates.longitude}")
            return []

        metrics, metadata = await asyncio.gather(
            self.travel_metrics(coordinates, places),
            asyncio.gather(*(self._metadata(p.name, category) for p in places)),
        )
        by_name = {m.destination: m for m in metrics or []}

        stations = []
        for place, meta in zip(places, metadata):
            walking = by_name.get(place.name)
            station = StationInfo(
                name=place.name,
                walking_time=round(walking.duration_seconds / 60) if walking else None,
                walking_distance=walking.distance_meters if walking else None,
            )
            if category == StationCategory.SUBWAY:
                station.lines = meta
            else:
                station.operators = meta
            stations.append(station)

        logger.info(f"Found {len(stations)} {category.value} stations: {[s.name for s in stations]}")
        return stations
