"""TfL Unified API: tube/DLR/Overground/Elizabeth line lookup by station name."""

import logging
import re
from typing import List, Optional
from urllib.parse import quote

import httpx

from models.errors import MalformedResponseError
from utils.http import fetch_json

from .station_data import TFL_LINE_NAMES

logger = logging.getLogger(__name__)

TFL_BASE_URL = "https://api.tfl.gov.uk"
TFL_MODES = "tube,dlr,overground,elizabeth-line"


def clean_station_query(name: str) -> str:
    return re.sub(r"\s+(station|tube|underground)$", "", name.strip(), flags=re.IGNORECASE)


class TflClient:
    """Search-then-detail lookup of the lines serving a station."""

    def __init__(
        self,
        base_url: str = TFL_BASE_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def get_lines(self, station_name: str) -> List[str]:
        """
        Line names for ``station_name``; [] when TfL does not know it.

        Raises the utils.http errors on transport or decoding failure.
        """
        query = clean_station_query(station_name)
        search = await fetch_json(
            f"{self.base_url}/StopPoint/Search",
            params={"query": query, "modes": TFL_MODES, "maxResults": 3},
            timeout=self.timeout,
            transport=self._transport,
        )
        matches = search.get("matches") if isinstance(search, dict) else None
        matches = [m for m in matches or [] if isinstance(m, dict)]
        if not matches:
            return []

        upper_query = query.upper()
        match = next(
            (
                m
                for m in matches
                if upper_query in (m.get("name") or "").upper()
                or (m.get("name") or "").upper().replace(" STATION", "") in upper_query
            ),
            matches[0],
        )
        if not match.get("id"):
            raise MalformedResponseError(f"TfL search match for {query} has no id")

        detail = await fetch_json(
            f"{self.base_url}/StopPoint/{quote(str(match['id']))}",
            timeout=self.timeout,
            transport=self._transport,
        )
        lines: List[str] = []
        for line in (detail.get("lines") if isinstance(detail, dict) else None) or []:
            if not isinstance(line, dict):
                continue
            name = TFL_LINE_NAMES.get(line.get("id", ""), line.get("name"))
            if name and name not in lines:
                lines.append(name)
        logger.debug(f"TfL lines for {station_name}: {lines}")
        return lines
