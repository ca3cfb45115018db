"""Coordinate and locality resolution for a listing."""

import logging
from typing import Optional

from models.errors import EnrichmentError
from models.property import Coordinates, PropertyListing
from utils.fallback import first_non_null
from utils.postcode import is_valid_postcode, normalize_postcode, split_postcode

from .google_maps import GoogleMapsClient, ReverseGeocodeResult
from .postcodes import PostcodesIoClient

logger = logging.getLogger(__name__)


class CoordinateResolver:
    """
    Best-effort resolution of coordinates and door numbers.

    Every public method swallows provider failures (logging them) and
    returns None for the affected sub-result; nothing here raises.
    """

    def __init__(self, postcodes: PostcodesIoClient, google_maps: GoogleMapsClient):
        self.postcodes = postcodes
        self.google_maps = google_maps

    async def resolve(self, query: str) -> Optional[Coordinates]:
        """
        Coordinates for a postcode or a free-text address.

        Postcodes go to postcodes.io; anything else to the Google geocoder.
        """
        query = (query or "").strip()
        if not query:
            return None
        try:
            if is_valid_postcode(query):
                return await self.postcodes.lookup(normalize_postcode(query))
            return await self.google_maps.geocode(query)
        except EnrichmentError as e:
            logger.warning(f"Could not resolve coordinates for '{query}': {e}")
            return None

    async def reverse_resolve(self, latitude: float, longitude: float) -> Optional[ReverseGeocodeResult]:
        try:
            return await self.google_maps.reverse_geocode(latitude, longitude)
        except EnrichmentError as e:
            logger.warning(f"Reverse geocoding failed for {latitude},{longitude}: {e}")
            return None

    async def resolve_listing(self, listing: PropertyListing) -> PropertyListing:
        """
        Fill in coordinates and the door number on ``listing`` in place.

        Coordinates come from the scrape if present, else the postcode,
        else the display address. The door number is reverse-geocoded only
        when coordinates are known and the listing still lacks one.
        """
        address = listing.address
        embedded = listing.coordinates

        listing.coordinates = await first_non_null(
            [
                lambda: embedded,
                lambda: self.resolve(address.postcode) if address.postcode else None,
                lambda: self.resolve(address.display_address) if address.display_address else None,
            ]
        )
        if listing.coordinates is None:
            logger.warning(f"No coordinates for listing {listing.listing_id}")
            return listing
        if embedded is None:
            logger.info(
                f"Resolved coordinates for {listing.listing_id}: "
                f"{listing.coordinates.latitude:.5f},{listing.coordinates.longitude:.5f}"
            )

        if address.door_number:
            return listing

        reverse = await self.reverse_resolve(listing.coordinates.latitude, listing.coordinates.longitude)
        if reverse is None:
            return listing

        if reverse.street_number:
            address.door_number = reverse.street_number
        if reverse.street_name and not address.street_name:
            address.street_name = reverse.street_name
        if reverse.postcode and not address.postcode:
            address.postcode = normalize_postcode(reverse.postcode)
            parts = split_postcode(address.postcode)
            if parts:
                address.postcode_outward, address.postcode_inward = parts
        return listing
