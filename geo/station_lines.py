"""Line and operator metadata for stations: static table, live API, heuristics."""

import logging
import re
from typing import Awaitable, Callable, Dict, List

from models.errors import EnrichmentError
from utils.fallback import first_non_empty

from .rail_api import WikidataClient
from .station_data import (
    LONDON_TERMINAL_HEURISTICS,
    OPERATOR_DISPLAY_NAMES,
    REGIONAL_HEURISTICS,
    TRAIN_STATION_OPERATORS,
    TUBE_STATION_LINES,
)
from .tfl_api import TflClient

logger = logging.getLogger(__name__)


def _normalize(name: str) -> str:
    name = name.upper().replace(".", "")
    return re.sub(r"\s+", " ", name).strip()


def lookup_table(station_name: str, table: Dict[str, List[str]]) -> List[str]:
    """
    Find ``station_name`` in ``table`` tolerating naming drift.

    Exact (case-insensitive) match first, then the longest key contained
    in the name, then the first key that contains the name.
    """
    name = _normalize(station_name)
    if not name:
        return []

    normalized = {_normalize(key): values for key, values in table.items()}
    if name in normalized:
        return list(normalized[name])

    contained = [key for key in normalized if key in name]
    if contained:
        return list(normalized[max(contained, key=len)])

    for key, values in normalized.items():
        if name in key:
            return list(values)
    return []


def operators_from_heuristics(station_name: str) -> List[str]:
    """Guess operators from well-known place names in the station name."""
    upper = station_name.upper()
    operators: List[str] = []

    rules = list(REGIONAL_HEURISTICS)
    if "LONDON" in upper:
        rules = list(LONDON_TERMINAL_HEURISTICS) + rules

    for needles, names in rules:
        if any(needle in upper for needle in needles):
            operators.extend(n for n in names if n not in operators)
    return operators


def operator_display_name(operator: str) -> str:
    return OPERATOR_DISPLAY_NAMES.get(operator, operator)


def operator_display_names(operators: List[str]) -> List[str]:
    return [operator_display_name(op) for op in operators]


class StationMetadataResolver:
    """
    Per-station metadata cascade. Tiers run in order and the first
    non-empty answer wins outright; a failing live tier counts as empty.
    """

    def __init__(self, tfl: TflClient, wikidata: WikidataClient):
        self.tfl = tfl
        self.wikidata = wikidata

    @staticmethod
    def _tolerant(label: str, fetch: Callable[[str], Awaitable[List[str]]], station_name: str):
        async def run() -> List[str]:
            try:
                return await fetch(station_name)
            except EnrichmentError as e:
                logger.warning(f"{label} lookup failed for {station_name}: {e}")
                return []

        return run

    async def tube_lines(self, station_name: str) -> List[str]:
        return list(
            await first_non_empty(
                [
                    lambda: lookup_table(station_name, TUBE_STATION_LINES),
                    self._tolerant("TfL", self.tfl.get_lines, station_name),
                ]
            )
        )

    async def train_operators(self, station_name: str) -> List[str]:
        return list(
            await first_non_empty(
                [
                    lambda: lookup_table(station_name, TRAIN_STATION_OPERATORS),
                    self._tolerant("Wikidata", self.wikidata.get_rail_operators, station_name),
                    lambda: operators_from_heuristics(station_name),
                ]
            )
        )
