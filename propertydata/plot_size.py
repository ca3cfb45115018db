"""Plot-size resolution cascade over the PropertyData registry endpoints."""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Set

from models.constants import PROPERTYDATA_NO_TITLE_CODE, PlotSizeMethod
from models.errors import ConfigurationMissingError, EnrichmentError
from models.property import Coordinates
from models.registry import PlotSizeResult
from utils.cache import TTLCache
from utils.fallback import first_non_null
from utils.geometry import haversine_km
from utils.postcode import normalize_postcode

from .client import PropertyDataClient
from .responses import (
    UprnCandidate,
    parse_address_matches,
    parse_plot_size,
    parse_title_number,
    parse_uprns,
)

logger = logging.getLogger(__name__)

MAX_FALLBACK_CANDIDATES = 3
LOCATION_SEARCH_RESULTS = 30
POSTCODE_SEARCH_RESULTS = 100


@dataclass
class PlotQuery:
    """Normalized inputs for one cascade run."""

    address: str
    postcode: Optional[str] = None
    street: str = ""  # uppercased
    number_token: str = ""  # leading digits of the door number
    coordinates: Optional[Coordinates] = None

    @classmethod
    def build(
        cls,
        address: str,
        postcode: Optional[str],
        street_name: Optional[str],
        door_number: Optional[str],
        coordinates: Optional[Coordinates],
    ) -> "PlotQuery":
        number = re.match(r"^\d+", (door_number or "").strip())
        return cls(
            address=address,
            postcode=normalize_postcode(postcode) if postcode else None,
            street=(street_name or "").strip().upper(),
            number_token=number.group(0) if number else "",
            coordinates=coordinates,
        )


def plot_size_cache_key(
    address: str, postcode: Optional[str], coordinates: Optional[Coordinates]
) -> str:
    """plotSize::<lower address>::<normalized postcode>::<lat 5dp>::<lng 5dp>"""
    pc = normalize_postcode(postcode) if postcode else ""
    lat = f"{coordinates.latitude:.5f}" if coordinates else ""
    lng = f"{coordinates.longitude:.5f}" if coordinates else ""
    return f"plotSize::{address.strip().lower()}::{pc}::{lat}::{lng}"


def address_has_number_and_street(address: str, number_token: str, street: str) -> bool:
    """True when ``address`` mentions ``street`` and, if given, the door number as a whole word."""
    upper = address.upper()
    if street not in upper:
        return False
    if not number_token:
        return True
    return re.search(rf"\b{re.escape(number_token)}\b", upper) is not None


def order_by_distance(candidates: List[UprnCandidate], coordinates: Coordinates) -> List[UprnCandidate]:
    """Nearest first; candidates without a position keep provider order at the end."""
    located = [c for c in candidates if c.lat is not None and c.lng is not None]
    unlocated = [c for c in candidates if c.lat is None or c.lng is None]
    located.sort(
        key=lambda c: haversine_km(coordinates.latitude, coordinates.longitude, c.lat, c.lng)
    )
    return located + unlocated


class PlotSizeResolver:
    """
    Resolves a plot size (acres) through three decreasing-precision strategies:

    1. address-match-uprn on the full address string
    2. UPRNs near the coordinate pair
    3. UPRNs with a strict postcode match

    Each strategy returns a PlotSizeResult or None; the first non-None
    wins. Registry errors inside a strategy move on to the next
    candidate or strategy. Only a missing API key propagates.
    """

    def __init__(self, client: PropertyDataClient, cache: TTLCache):
        self.client = client
        self.cache = cache

    async def resolve(
        self,
        address: str,
        postcode: Optional[str] = None,
        street_name: Optional[str] = None,
        door_number: Optional[str] = None,
        coordinates: Optional[Coordinates] = None,
        bust_cache: bool = False,
    ) -> PlotSizeResult:
        """
        Resolve the plot size for a property.

        Args:
            address: Full display address
            postcode: Postcode, any formatting
            street_name: Street name used to partition nearby candidates
            door_number: Door number; its leading digits are matched
            coordinates: Property position, enables the location strategy
            bust_cache: Delete the cached entry before resolving

        Returns:
            PlotSizeResult; all fields None when every strategy failed

        Raises:
            ConfigurationMissingError: PropertyData API key is not configured
        """
        key = plot_size_cache_key(address, postcode, coordinates)
        if bust_cache:
            self.cache.delete(key)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Plot size cache hit: {key}")
            return PlotSizeResult.from_dict(cached)

        query = PlotQuery.build(address, postcode, street_name, door_number, coordinates)
        tried: Set[str] = set()

        result = await first_non_null(
            [
                lambda: self.by_address_match(query, tried),
                lambda: self.by_location(query, tried),
                lambda: self.by_postcode(query, tried),
            ]
        )
        if result is None:
            logger.info(f"Plot size unavailable for '{address}'")
            result = PlotSizeResult()
        else:
            logger.info(
                f"Plot size {result.plot_size_acres} acres via {result.method.value} "
                f"(uprn {result.uprn}, title {result.title_number})"
            )

        self.cache.set(key, result.to_dict())
        return result

    # ---- strategies -------------------------------------------------

    async def by_address_match(self, query: PlotQuery, tried: Set[str]) -> Optional[PlotSizeResult]:
        try:
            payload = await self.client.get("address-match-uprn", {"address": query.address})
            matches = parse_address_matches(payload)
        except ConfigurationMissingError:
            raise
        except EnrichmentError as e:
            logger.warning(f"address-match-uprn failed: {e}")
            return None

        if not matches:
            logger.debug("address-match-uprn returned no candidates")
            return None
        return await self._try_candidates([matches[0]], [], PlotSizeMethod.ADDRESS_MATCH, tried)

    async def by_location(self, query: PlotQuery, tried: Set[str]) -> Optional[PlotSizeResult]:
        if query.coordinates is None:
            return None

        coords = query.coordinates
        try:
            payload = await self.client.get(
                "uprns",
                {
                    "location": f"{coords.latitude},{coords.longitude}",
                    "results": LOCATION_SEARCH_RESULTS,
                },
            )
            rows = parse_uprns(payload)
        except ConfigurationMissingError:
            raise
        except EnrichmentError as e:
            logger.warning(f"uprns by location failed: {e}")
            return None

        if not rows:
            return None

        exact = []
        if query.street and query.number_token:
            exact = [
                r
                for r in rows
                if (r.primary or "").strip() == query.number_token
                and (r.street or "").upper() == query.street
            ]
        same_street = (
            [r for r in rows if (r.street or "").upper() == query.street] if query.street else []
        )
        fallback = same_street or order_by_distance(rows, coords)

        return await self._try_candidates(exact, fallback, PlotSizeMethod.NEARBY_LOCATION, tried)

    async def by_postcode(self, query: PlotQuery, tried: Set[str]) -> Optional[PlotSizeResult]:
        if not query.postcode:
            return None

        try:
            payload = await self.client.get(
                "uprns",
                {"postcode": query.postcode, "strict": True, "results": POSTCODE_SEARCH_RESULTS},
            )
            rows = parse_uprns(payload)
        except ConfigurationMissingError:
            raise
        except EnrichmentError as e:
            logger.warning(f"uprns by postcode failed: {e}")
            return None

        if not rows:
            return None

        def is_exact(row: UprnCandidate) -> bool:
            if not row.address:
                return False
            if query.street:
                return address_has_number_and_street(row.address, query.number_token, query.street)
            if query.number_token:
                return re.search(rf"\b{re.escape(query.number_token)}\b", row.address) is not None
            return False

        exact = [r for r in rows if is_exact(r)]
        same_street = (
            [r for r in rows if (r.street or "").upper() == query.street] if query.street else []
        )
        fallback = same_street or rows

        return await self._try_candidates(exact, fallback, PlotSizeMethod.NEARBY_POSTCODE, tried)

    # ---- candidate lookups -----------------------------------------

    async def _try_candidates(
        self,
        exact: List[UprnCandidate],
        fallback: List[UprnCandidate],
        fallback_method: PlotSizeMethod,
        tried: Set[str],
    ) -> Optional[PlotSizeResult]:
        """
        Try the first exact candidate alone (tagged as an address match),
        then up to three untried fallback candidates.
        """
        if exact:
            candidate = exact[0]
            if candidate.uprn not in tried:
                result = await self._lookup(candidate, PlotSizeMethod.ADDRESS_MATCH, tried)
                if result is not None:
                    return result

        remaining = [c for c in fallback if c.uprn not in tried][:MAX_FALLBACK_CANDIDATES]
        for candidate in remaining:
            result = await self._lookup(candidate, fallback_method, tried)
            if result is not None:
                return result
        return None

    async def _lookup(
        self, candidate: UprnCandidate, method: PlotSizeMethod, tried: Set[str]
    ) -> Optional[PlotSizeResult]:
        tried.add(candidate.uprn)
        title_number = await self.uprn_to_title(candidate.uprn)
        if not title_number:
            return None
        plot_size = await self.title_to_plot_size(title_number)
        if plot_size is None:
            return None
        return PlotSizeResult(
            plot_size_acres=plot_size,
            uprn=candidate.uprn,
            title_number=title_number,
            matched_address=candidate.address,
            method=method,
        )

    async def uprn_to_title(self, uprn: str) -> Optional[str]:
        """Title number for a UPRN; None when it has no title or the lookup fails."""
        try:
            return parse_title_number(await self.client.get("uprn-title", {"uprn": uprn}))
        except ConfigurationMissingError:
            raise
        except EnrichmentError as e:
            if str(e.code) == PROPERTYDATA_NO_TITLE_CODE:
                logger.debug(f"UPRN {uprn} has no registered title")
            else:
                logger.warning(f"uprn-title failed for {uprn}: {e}")
            return None

    async def title_to_plot_size(self, title_number: str) -> Optional[float]:
        try:
            return parse_plot_size(await self.client.get("title", {"title": title_number}))
        except ConfigurationMissingError:
            raise
        except EnrichmentError as e:
            logger.warning(f"title lookup failed for {title_number}: {e}")
            return None
