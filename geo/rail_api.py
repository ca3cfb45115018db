"""Wikidata lookup of National Rail station operators."""

import logging
import re
from typing import List, Optional

import httpx

from models.errors import MalformedResponseError
from utils.http import fetch_json

from .station_data import WIKIDATA_OPERATORS

logger = logging.getLogger(__name__)

WIKIDATA_API_URL = "https://www.wikidata.org/w/api.php"

# operator, part of
OPERATOR_PROPERTIES = ("P137", "P361")


class WikidataClient:
    """Finds a station entity and maps its operator claims to TOC names."""

    def __init__(
        self,
        api_url: str = WIKIDATA_API_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    async def get_rail_operators(self, station_name: str) -> List[str]:
        query = re.sub(r"\s+(station|railway)$", "", station_name.strip(), flags=re.IGNORECASE)

        search = await fetch_json(
            self.api_url,
            params={
                "action": "wbsearchentities",
                "search": f"{query} railway station",
                "format": "json",
                "language": "en",
                "type": "item",
            },
            timeout=self.timeout,
            transport=self._transport,
        )
        hits = search.get("search") if isinstance(search, dict) else None
        hits = [h for h in hits or [] if isinstance(h, dict)]
        if not hits:
            return []

        upper_query = query.upper()
        match = next(
            (
                h
                for h in hits
                if upper_query in (h.get("label") or "").upper()
                or "railway station" in (h.get("description") or "").lower()
            ),
            hits[0],
        )
        entity_id = match.get("id")
        if not entity_id:
            raise MalformedResponseError(f"Wikidata search hit for {query} has no id")

        entities = await fetch_json(
            self.api_url,
            params={"action": "wbgetentities", "ids": entity_id, "format": "json", "props": "claims"},
            timeout=self.timeout,
            transport=self._transport,
        )
        found = entities.get("entities") if isinstance(entities, dict) else None
        entity = found.get(entity_id) if isinstance(found, dict) else None
        claims = entity.get("claims") if isinstance(entity, dict) else None
        if not isinstance(claims, dict):
            claims = {}

        operators: List[str] = []
        for prop in OPERATOR_PROPERTIES:
            for claim in claims.get(prop) or []:
                if not isinstance(claim, dict):
                    continue
                value = ((claim.get("mainsnak") or {}).get("datavalue") or {}).get("value") or {}
                name = WIKIDATA_OPERATORS.get(value.get("id", "")) if isinstance(value, dict) else None
                if name and name not in operators:
                    operators.append(name)
        logger.debug(f"Wikidata operators for {station_name}: {operators}")
        return operators
