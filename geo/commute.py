"""Public-transport commute times to configured benchmark destinations."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from models.errors import EnrichmentError

from .google_maps import GoogleMapsClient

logger = logging.getLogger(__name__)


@dataclass
class CommuteTime:
    destination: str
    duration_seconds: int
    duration_text: str
    benchmark_diff_seconds: Optional[int]
    benchmark_diff_text: Optional[str]
    is_faster: bool
    arrival_time: str  # HH:MM


def next_wednesday_0640(now: datetime) -> datetime:
    """Departure used for every commute: the coming Wednesday at 06:40."""
    days_ahead = (2 - now.weekday()) % 7 or 7
    departure = now + timedelta(days=days_ahead)
    return departure.replace(hour=6, minute=40, second=0, microsecond=0)


def format_duration(seconds: int) -> str:
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}min"
    return f"{minutes} min"


def format_diff(seconds: int) -> str:
    minutes = abs(seconds) // 60
    if minutes == 0:
        return "same"
    unit = "min" if minutes == 1 else "mins"
    return f"saves {minutes} {unit}" if seconds < 0 else f"+{minutes} {unit}"


class CommuteCalculator:
    """
    Args:
        google_maps: Client used for transit distance-matrix requests
        destinations: Dicts with ``name``, ``address`` and optional
            ``benchmark_seconds`` (journey time to beat)
        now: Clock, injectable for tests
    """

    def __init__(
        self,
        google_maps: GoogleMapsClient,
        destinations: List[Dict[str, Any]],
        now: Callable[[], datetime] = datetime.now,
    ):
        self.google_maps = google_maps
        self.destinations = destinations
        self._now = now

    async def calculate(self, origin_address: str) -> Dict[str, CommuteTime]:
        """Commute per destination name; destinations without a route are left out."""
        if not self.destinations:
            return {}

        departure = int(next_wednesday_0640(self._now()).timestamp())
        results = await asyncio.gather(
            *(self._one(origin_address, dest, departure) for dest in self.destinations)
        )
        return {c.destination: c for c in results if c is not None}

    async def _one(self, origin: str, destination: Dict[str, Any], departure: int) -> Optional[CommuteTime]:
        name = destination["name"]
        try:
            duration = await self.google_maps.transit_duration(origin, destination["address"], departure)
        except EnrichmentError as e:
            logger.warning(f"Commute to {name} failed: {e}")
            return None
        if duration is None:
            return None

        benchmark = destination.get("benchmark_seconds")
        diff = duration - benchmark if benchmark is not None else None
        return CommuteTime(
            destination=name,
            duration_seconds=duration,
            duration_text=format_duration(duration),
            benchmark_diff_seconds=diff,
            benchmark_diff_text=format_diff(diff) if diff is not None else None,
            is_faster=diff is not None and diff < 0,
            arrival_time=datetime.fromtimestamp(departure + duration).strftime("%H:%M"),
        )
