"""Abstract base class for portal-specific listing adapters."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from crawl4ai import AsyncWebCrawler

from models.property import PropertyListing, ScrapeResult

logger = logging.getLogger(__name__)


class PortalAdapter(ABC):
    """
    Abstract base class for listing portal adapters.

    Each portal implements URL validation, listing-id extraction and HTML
    parsing. Fetching is shared: ``scrape`` validates the URL before any
    network access, fetches the page with crawl4ai and maps the outcome
    onto a ScrapeResult.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize adapter with configuration.

        Args:
            config: Full configuration dictionary from config.json
        """
        self.config = config

    @abstractmethod
    def get_portal_name(self) -> str:
        """
        Return portal identifier.

        Returns:
            Portal name (e.g., "rightmove")
        """
        pass

    @abstractmethod
    def extract_listing_id(self, url: str) -> Optional[str]:
        """
        Extract the portal's listing ID from a listing URL.

        Returns:
            Listing ID, or None when the URL is not a listing URL
        """
        pass

    @abstractmethod
    def parse_listing_html(self, html: str, url: str, listing_id: str) -> Optional[PropertyListing]:
        """
        Build a listing from the detail page HTML.

        Returns:
            PropertyListing, or None when the page held nothing usable
        """
        pass

    def is_valid_url(self, url: str) -> bool:
        return self.extract_listing_id(url) is not None

    def get_crawler_config(self) -> Dict[str, Any]:
        """
        Get portal-specific crawler configuration for detail pages.

        Returns:
            Dict with crawl4ai ``arun`` parameters
        """
        return {
            "wait_for": "css:main",
            "delay_before_return_html": 2.0,
        }

    async def scrape(self, url: str, crawler: Optional[AsyncWebCrawler] = None) -> ScrapeResult:
        """
        Fetch and parse one listing.

        Args:
            url: Listing URL
            crawler: Open crawler to reuse; a short-lived one is started otherwise

        Returns:
            ScrapeResult with ``error_kind`` one of invalid_url, blocked,
            network or parse on failure
        """
        listing_id = self.extract_listing_id(url)
        if listing_id is None:
            return ScrapeResult(
                success=False,
                error=f"Invalid {self.get_portal_name()} URL format",
                error_kind="invalid_url",
            )

        try:
            if crawler is None:
                async with AsyncWebCrawler(headless=True, verbose=False) as own_crawler:
                    result = await own_crawler.arun(url=url, **self.get_crawler_config())
            else:
                result = await crawler.arun(url=url, **self.get_crawler_config())
        except Exception as e:
            logger.error(f"Network error fetching {url}: {e}")
            return ScrapeResult(success=False, error=f"Network error: {e}", error_kind="network")

        status = getattr(result, "status_code", None)
        if status == 403:
            return ScrapeResult(
                success=False,
                error=f"Access blocked by {self.get_portal_name()} - try again later",
                error_kind="blocked",
            )
        if not result.success:
            logger.warning(f"Failed to fetch {url}: {result.error_message}")
            return ScrapeResult(
                success=False,
                error=f"HTTP error: {status}" if status else f"Network error: {result.error_message}",
                error_kind="network",
            )

        listing = self.parse_listing_html(result.html, url, listing_id)
        if listing is None:
            return ScrapeResult(
                success=False, error="Failed to parse property data from page", error_kind="parse"
            )

        logger.info(f"Scraped {self.get_portal_name()} listing {listing_id}")
        return ScrapeResult(success=True, listing=listing)
