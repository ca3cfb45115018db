"""Coordinate acquisition on the Locrating map by racing location signals."""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from models.constants import LOCATION_POLL_INTERVAL, LOCATION_POLL_ITERATIONS

logger = logging.getLogger(__name__)

# Signal sources, highest priority first
GEOCODE = "geocode"
MARKER = "marker"
MAP_MOVED = "map_moved"
STATIC_CENTER = "static_center"

# Seconds to let the map settle once a signal wins
SETTLE_SECONDS = {GEOCODE: 3.0, MARKER: 2.0, MAP_MOVED: 2.0, STATIC_CENTER: 1.0}

CENTER_MOVE_THRESHOLD = 0.0001
STATIC_CENTER_AFTER = 10

ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

LatLng = Tuple[float, float]


@dataclass
class LocationSignal:
    lat: float
    lng: float
    source: str
    iteration: int


def parse_nominatim_body(body: str) -> Optional[LatLng]:
    """First result of a Nominatim search response, or None."""
    match = ARRAY_PATTERN.search(body or "")
    if not match:
        return None
    try:
        results = json.loads(match.group(0))
        first = results[0]
        return float(first["lat"]), float(first["lon"])
    except (json.JSONDecodeError, IndexError, KeyError, TypeError, ValueError):
        return None


def as_latlng(value: Any) -> Optional[LatLng]:
    if not isinstance(value, dict):
        return None
    try:
        return float(value["lat"]), float(value["lng"])
    except (KeyError, TypeError, ValueError):
        return None


class LocationSignalRace:
    """
    Polls the map for a location until one signal wins.

    Priority per iteration: an intercepted geocode response, then the
    home marker, then a map center that moved away from its pre-search
    position, then (late in the budget) the unmoved center itself.

    Args:
        probe: Coroutine returning ``{"marker": {lat, lng} | None,
            "center": {lat, lng} | None}`` from the page
        iterations: Hard cap on polls
        interval: Seconds slept before each poll
        sleep: Injectable sleep for tests
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[Dict[str, Any]]],
        iterations: int = LOCATION_POLL_ITERATIONS,
        interval: float = LOCATION_POLL_INTERVAL,
        static_after: int = STATIC_CENTER_AFTER,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.probe = probe
        self.iterations = iterations
        self.interval = interval
        self.static_after = static_after
        self._sleep = sleep
        self._geocoded: Optional[LatLng] = None
        self.resolved = False

    def offer_geocode(self, lat: float, lng: float) -> None:
        """Called from the response listener; ignored once the race is over."""
        if self.resolved or self._geocoded is not None:
            return
        logger.info(f"Intercepted geocode result: {lat}, {lng}")
        self._geocoded = (lat, lng)

    def _finish(self, position: LatLng, source: str, iteration: int) -> LocationSignal:
        self.resolved = True
        logger.info(f"Location from {source} after {iteration} polls: {position[0]}, {position[1]}")
        return LocationSignal(lat=position[0], lng=position[1], source=source, iteration=iteration)

    async def run(self, start_center: Optional[LatLng]) -> Optional[LocationSignal]:
        """
        Poll until a signal wins or the budget runs out.

        Args:
            start_center: Map center recorded before the search was submitted;
                None (center unreadable) counts as 0,0 so any real center has moved

        Returns:
            The winning LocationSignal, or None when every poll came up empty
        """
        origin = start_center if start_center is not None else (0.0, 0.0)
        for i in range(self.iterations):
            await self._sleep(self.interval)
            if self._geocoded is not None:
                return self._finish(self._geocoded, GEOCODE, i + 1)

            state = await self.probe() or {}
            marker = as_latlng(state.get("marker"))
            if marker is not None:
                return self._finish(marker, MARKER, i + 1)

            center = as_latlng(state.get("center"))
            if center is None:
                continue
            if (
                abs(center[0] - origin[0]) > CENTER_MOVE_THRESHOLD
                or abs(center[1] - origin[1]) > CENTER_MOVE_THRESHOLD
            ):
                return self._finish(center, MAP_MOVED, i + 1)
            if i >= self.static_after and center[0] != 0:
                return self._finish(center, STATIC_CENTER, i + 1)

        self.resolved = True
        logger.warning(f"No location signal after {self.iterations} polls")
        return None
