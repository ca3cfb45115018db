"""Distances from the property to its attended schools, plus the cached lookup."""

import asyncio
import logging
from typing import List, Optional

from geo.google_maps import GoogleMapsClient, Place
from models.constants import MIN_ATTENDANCE_PERCENT
from models.errors import EnrichmentError
from models.property import Coordinates
from models.schools import AttendedSchool, AttendedSchoolsResult
from utils.cache import TTLCache
from utils.geometry import haversine_km

from .flow import AttendedSchoolsScraper

logger = logging.getLogger(__name__)

WALKING_SCHOOLS_PER_PHASE = 5


def schools_cache_key(address: str) -> str:
    return address.strip().lower()


def add_crow_flies_distances(result: AttendedSchoolsResult, origin: Coordinates) -> None:
    for school in result.all_schools:
        school.crow_flies_distance = round(
            haversine_km(origin.latitude, origin.longitude, school.lat, school.lng), 2
        )


def walking_candidates(schools: List[AttendedSchool], limit: int = WALKING_SCHOOLS_PER_PHASE) -> List[AttendedSchool]:
    """Most-attended schools at or above the attendance threshold."""
    eligible = [s for s in schools if s.percentage >= MIN_ATTENDANCE_PERCENT]
    eligible.sort(key=lambda s: s.percentage, reverse=True)
    return eligible[:limit]


class SchoolDistanceEnricher:
    """Crow-flies distance for every school, walking figures for the top few per phase."""

    def __init__(self, google_maps: GoogleMapsClient, per_phase: int = WALKING_SCHOOLS_PER_PHASE):
        self.google_maps = google_maps
        self.per_phase = per_phase

    async def enrich(self, result: AttendedSchoolsResult, origin: Coordinates) -> AttendedSchoolsResult:
        if not result.success:
            return result
        add_crow_flies_distances(result, origin)
        await asyncio.gather(
            self._add_walking(result.primary_schools, origin),
            self._add_walking(result.secondary_schools, origin),
        )
        return result

    async def _add_walking(self, schools: List[AttendedSchool], origin: Coordinates) -> None:
        top = walking_candidates(schools, self.per_phase)
        if not top:
            return
        try:
            metrics = await self.google_maps.distance_matrix(
                origin, [Place(name=s.name, lat=s.lat, lng=s.lng) for s in top], mode="walking"
            )
        except EnrichmentError as e:
            logger.warning(f"Walking distances to schools unavailable: {e}")
            return

        for metric in metrics:
            school = next((s for s in schools if s.name == metric.destination), None)
            if school is not None:
                school.walking_time = round(metric.duration_seconds / 60)
                school.walking_distance = metric.distance_meters


class AttendedSchoolsService:
    """
    Cached entry point for the schools stage.

    Only successful, distance-enriched results are cached (keyed by the
    lowercase address) so a failed browser run is retried next time.
    """

    def __init__(
        self,
        scraper: AttendedSchoolsScraper,
        enricher: Optional[SchoolDistanceEnricher],
        cache: TTLCache,
    ):
        self.scraper = scraper
        self.enricher = enricher
        self.cache = cache

    async def lookup(
        self,
        address: str,
        coordinates: Optional[Coordinates] = None,
        bust_cache: bool = False,
    ) -> AttendedSchoolsResult:
        key = schools_cache_key(address)
        if bust_cache:
            logger.info(f"Schools cache bust for \"{address}\"")
            self.cache.delete(key)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Schools cache HIT for \"{address}\"")
            return AttendedSchoolsResult.from_dict(cached)

        logger.info(f"Schools cache MISS for \"{address}\"")
        result = await self.scraper.scrape(address.strip(), coordinates)
        if not result.success:
            logger.warning(f"Attended schools unavailable: {result.error}")
            return result

        if self.enricher is not None and coordinates is not None:
            await self.enricher.enrich(result, coordinates)
        self.cache.set(key, result.to_dict())
        return result
