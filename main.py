"""Property listing enrichment: scrape, resolve, enrich concurrently, report."""

import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import urlsplit, urlunsplit

from geo import (
    CommuteCalculator,
    CoordinateResolver,
    GoogleMapsClient,
    PostcodesIoClient,
    StationFinder,
    StationMetadataResolver,
    TflClient,
    WikidataClient,
)
from llm import PropertySummarizer
from models.constants import FAIR_PRICE_BAND_PERCENT, StationCategory
from models.errors import EnrichmentError, ScrapeFailedError
from models.property import PropertyListing
from portals import PortalAdapter, get_adapter
from propertydata import MarketDataService, PlotSizeResolver, PropertyDataClient
from schools import AttendedSchoolsScraper, AttendedSchoolsService, SchoolDistanceEnricher
from utils.activity_log import ActivityLog, ActivityLogHandler
from utils.cache import CacheRegistry
from utils.markdown_generator import ReportGenerator
from utils.record_merge import apply_stage_update
from utils.result_store import JsonFileResultStore, new_record

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_STAGE_TIMEOUT = 300

# (section, key) -> environment variable; the environment wins over config.json
ENV_OVERRIDES = {
    ("propertydata", "api_key"): "PROPERTYDATA_API_KEY",
    ("google_maps", "api_key"): "GOOGLE_MAPS_API_KEY",
    ("llm_settings", "api_key"): "OPENROUTER_API_KEY",
    ("schools", "email"): "LOCRATING_EMAIL",
    ("schools", "password"): "LOCRATING_PASSWORD",
}

Stage = Callable[[], Awaitable[Optional[Dict[str, Any]]]]
Observer = Callable[[Dict[str, Any]], None]


def normalize_listing_url(url: str) -> str:
    """Listing URL without query string, fragment or trailing slash."""
    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme, parts.netloc.lower(), parts.path.rstrip("/"), "", ""))


def schools_query(listing: PropertyListing) -> Optional[str]:
    """Address typed into the schools map, with the postcode appended when missing."""
    address = listing.address
    query = address.display_address.strip()
    if not query:
        return address.postcode
    if address.postcode and address.postcode.replace(" ", "") not in query.upper().replace(" ", ""):
        query = f"{query}, {address.postcode}"
    return query


class PropertyEnricher:
    """
    Runs the enrichment pipeline for one listing URL at a time.

    The primary scrape is the only fatal step. Coordinates are resolved
    before the base record is stored; every other stage then runs
    concurrently and merges its own section into the stored record as
    soon as it finishes.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        caches: Optional[CacheRegistry] = None,
        store=None,
        adapter: Optional[PortalAdapter] = None,
        resolver: Optional[CoordinateResolver] = None,
        station_finder: Optional[StationFinder] = None,
        plot_size: Optional[PlotSizeResolver] = None,
        market_data: Optional[MarketDataService] = None,
        schools: Optional[AttendedSchoolsService] = None,
        summarizer: Optional[PropertySummarizer] = None,
        commute: Optional[CommuteCalculator] = None,
    ):
        """
        Initialize the enricher. Collaborators not passed in are built from ``config``.

        Args:
            config: Configuration dictionary from config.json
        """
        self.config = config
        self.caches = caches or CacheRegistry(config.get("cache"))
        self.stage_timeout = config.get("stage_timeout", DEFAULT_STAGE_TIMEOUT)
        self.adapter = adapter
        self._observers: List[Observer] = []

        output_config = config.get("output", {})
        self.store = store or JsonFileResultStore(Path(output_config.get("store_folder", "output/store")))

        maps_config = config.get("google_maps", {})
        google_maps = GoogleMapsClient(maps_config.get("api_key"))
        self.resolver = resolver or CoordinateResolver(PostcodesIoClient(), google_maps)
        self.station_finder = station_finder or StationFinder(
            google_maps,
            StationMetadataResolver(TflClient(), WikidataClient()),
            count=maps_config.get("station_count", 3),
        )

        pd_config = config.get("propertydata", {})
        client = None
        if plot_size is None or market_data is None:
            client = PropertyDataClient.from_config(pd_config)
        self.plot_size = plot_size or PlotSizeResolver(client, self.caches.plot_size)
        self.market_data = market_data or MarketDataService(
            client,
            self.caches.market_data,
            band_percent=pd_config.get("fair_price_band_percent", FAIR_PRICE_BAND_PERCENT),
        )

        schools_config = config.get("schools", {})
        if schools is None and schools_config.get("enabled", True):
            schools = AttendedSchoolsService(
                AttendedSchoolsScraper.from_config(config),
                SchoolDistanceEnricher(google_maps),
                self.caches.schools,
            )
        self.schools = schools

        if summarizer is None and config.get("llm_settings", {}).get("enabled", False):
            summarizer = PropertySummarizer.from_config(config, self.caches.ai)
        self.summarizer = summarizer

        destinations = config.get("commute", {}).get("destinations", [])
        if commute is None and destinations:
            commute = CommuteCalculator(google_maps, destinations)
        self.commute = commute

    def subscribe(self, observer: Observer) -> None:
        """Register a callback receiving every merged record."""
        self._observers.append(observer)

    def _publish(self, record: Dict[str, Any]) -> None:
        for observer in self._observers:
            observer(record)

    async def scrape_listing(self, url: str, bust_cache: bool = False) -> PropertyListing:
        """
        Primary scrape plus coordinate resolution, cached per normalized URL.

        Raises:
            ScrapeFailedError: If the URL is invalid or the page could not be scraped
        """
        adapter = self.adapter or get_adapter(self.config, url)
        if not adapter.is_valid_url(url):
            raise ScrapeFailedError(f"Invalid {adapter.get_portal_name()} URL format", code="invalid_url")

        cache_key = normalize_listing_url(url)
        if bust_cache:
            self.caches.bust_entity(cache_key)

        cached = self.caches.property.get(cache_key)
        if cached is not None:
            logger.info(f"Property cache HIT for {cache_key}")
            return PropertyListing.from_dict(cached)

        logger.info(f"Property cache MISS for {cache_key}, scraping")
        result = await adapter.scrape(url)
        if not result.success:
            raise ScrapeFailedError(result.error or "Scrape failed", code=result.error_kind)

        listing = await self.resolver.resolve_listing(result.listing)
        self.caches.property.set(cache_key, listing.to_dict())
        return listing

    async def enrich(self, url: str, bust_cache: bool = False) -> Dict[str, Any]:
        """
        Scrape ``url`` and run every enrichment stage.

        Args:
            url: Listing URL
            bust_cache: Drop cached results for this listing before running

        Returns:
            The final stored record ``{id, url, timestamp, data}``
        """
        listing = await self.scrape_listing(url, bust_cache)
        record_id = listing.listing_id

        record = self.store.upsert(record_id, new_record(record_id, url, {"property": listing.to_dict()}))
        self._publish(record)

        stages = self._build_stages(listing, bust_cache)
        logger.info(f"Running {len(stages)} enrichment stages for {record_id}: {', '.join(stages)}")
        await asyncio.gather(*(self._run_stage(name, stage, record_id) for name, stage in stages.items()))

        return self.store.get(record_id)

    def _build_stages(self, listing: PropertyListing, bust_cache: bool) -> Dict[str, Stage]:
        stages: Dict[str, Stage] = {
            "proximity": lambda: self._proximity_stage(listing),
            "plot_size": lambda: self._plot_size_stage(listing, bust_cache),
            "market_data": lambda: self._market_data_stage(listing, bust_cache),
        }
        if self.schools is not None:
            stages["schools"] = lambda: self._schools_stage(listing, bust_cache)
        if self.commute is not None:
            stages["commute"] = lambda: self._commute_stage(listing)
        if self.summarizer is not None:
            stages["summary"] = lambda: self._summary_stage(listing, bust_cache)
        return stages

    async def _run_stage(self, name: str, stage: Stage, record_id: str) -> None:
        """Run one stage; its failure is logged and never reaches sibling stages."""
        try:
            update = await asyncio.wait_for(stage(), timeout=self.stage_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Stage {name} timed out after {self.stage_timeout}s")
            return
        except EnrichmentError as e:
            logger.error(f"Stage {name} failed ({e.error_code}): {e}")
            return
        except Exception as e:
            logger.error(f"Stage {name} crashed: {e}")
            return

        if not update:
            logger.info(f"Stage {name} produced no data")
            return
        merged = apply_stage_update(self.store, record_id, update)
        if merged is not None:
            logger.info(f"Stage {name} merged into {record_id}")
            self._publish(merged)

    async def _proximity_stage(self, listing: PropertyListing) -> Optional[Dict[str, Any]]:
        if listing.coordinates is None:
            return None
        rail, tube = await asyncio.gather(
            self.station_finder.nearest_stations(listing.coordinates, StationCategory.RAIL),
            self.station_finder.nearest_stations(listing.coordinates, StationCategory.SUBWAY),
        )
        return {
            "property": {
                "nearest_stations": [asdict(s) for s in rail] if rail is not None else None,
                "nearest_tube_stations": [asdict(s) for s in tube] if tube is not None else None,
            }
        }

    async def _plot_size_stage(self, listing: PropertyListing, bust_cache: bool) -> Optional[Dict[str, Any]]:
        address = listing.address
        if not address.display_address and not address.postcode:
            return None
        result = await self.plot_size.resolve(
            address.display_address,
            postcode=address.postcode,
            street_name=address.street_name,
            door_number=address.door_number,
            coordinates=listing.coordinates,
            bust_cache=bust_cache,
        )
        return {"plot_size": result.to_dict()}

    async def _market_data_stage(self, listing: PropertyListing, bust_cache: bool) -> Optional[Dict[str, Any]]:
        if not listing.address.postcode:
            logger.info(f"No postcode for {listing.listing_id}, skipping market data")
            return None
        result = await self.market_data.get_market_data(
            listing.address.postcode,
            listing.bedrooms,
            listing.property_type,
            listing.price,
            listing.square_footage,
            bust_cache=bust_cache,
        )
        return {"market_data": result.to_dict()}

    async def _schools_stage(self, listing: PropertyListing, bust_cache: bool) -> Optional[Dict[str, Any]]:
        query = schools_query(listing)
        if not query:
            return None
        result = await self.schools.lookup(query, listing.coordinates, bust_cache=bust_cache)
        return {"schools": result.to_dict()}

    async def _commute_stage(self, listing: PropertyListing) -> Optional[Dict[str, Any]]:
        origin = listing.address.postcode or listing.address.display_address
        if not origin:
            return None
        commutes = await self.commute.calculate(origin)
        return {"commute": {name: asdict(c) for name, c in commutes.items()}}

    async def _summary_stage(self, listing: PropertyListing, bust_cache: bool) -> Optional[Dict[str, Any]]:
        document = {"id": listing.listing_id, **listing.to_dict()}
        result = await self.summarizer.summarize(
            document, self.config.get("llm_settings", {}).get("model"), bust_cache=bust_cache
        )
        return {"summary": asdict(result)}


async def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load config.json and apply environment overrides for secrets.

    A missing file yields an empty config so environment-only setups work.
    """
    config_path = config_path or Path(__file__).parent / "config.json"
    config: Dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            config = json.load(f)
    else:
        logger.warning(f"{config_path} not found, using defaults and environment")

    for (section, key), env_var in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config.setdefault(section, {})[key] = value

    return config


USAGE = "Usage: python main.py <rightmove-listing-url> [--bust-cache] | python main.py --list"


def print_stored_records(store) -> int:
    """Print stored properties, newest first."""
    records = store.list()
    if not records:
        print("No stored properties")
    for record in records:
        address = ((record.get("data") or {}).get("property") or {}).get("address") or {}
        print(f"{record['id']}  {address.get('display_address') or '-'}  {record.get('url')}")
    return 0


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the property enricher."""
    args = sys.argv[1:] if argv is None else argv
    urls = [a for a in args if not a.startswith("--")]
    list_only = "--list" in args and not urls
    if (len(urls) != 1 and not list_only) or "--help" in args:
        print(USAGE)
        return 1
    bust_cache = "--bust-cache" in args

    try:
        config = await load_config()
    except json.JSONDecodeError as e:
        logger.error(f"config.json is not valid JSON: {e}")
        return 1

    if list_only:
        store_folder = config.get("output", {}).get("store_folder", "output/store")
        return print_stored_records(JsonFileResultStore(Path(store_folder)))

    activity_log = ActivityLog(config.get("activity_log", {}).get("max_entries", 100))
    logging.getLogger().addHandler(ActivityLogHandler(activity_log))

    enricher = PropertyEnricher(config)
    try:
        record = await enricher.enrich(urls[0], bust_cache=bust_cache)
    except ScrapeFailedError as e:
        logger.error(f"Could not scrape listing ({e.code}): {e}")
        return 1

    output_config = config.get("output", {})
    if output_config.get("write_report", True):
        report = ReportGenerator(output_config.get("output_folder", "output/reports"))
        path = report.generate_report_file(record)
        print(f"Report written to {path}")

    warnings = [e for e in activity_log.entries() if e["level"] != "info"]
    logger.info(f"Enrichment complete for {record['id']} ({len(warnings)} warnings/errors)")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
