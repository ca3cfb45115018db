"""Rightmove.co.uk portal adapter."""

import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from models.property import Address, Coordinates, EpcRating, PropertyListing
from portals.base import PortalAdapter
from utils.postcode import extract_postcode, normalize_postcode, split_postcode

logger = logging.getLogger(__name__)

LISTING_ID_PATTERNS = [
    re.compile(r"rightmove\.co\.uk/properties/(\d+)"),
    re.compile(r"rightmove\.co\.uk/property-for-sale/property-(\d+)"),
    re.compile(r"rightmove\.co\.uk/property-to-rent/property-(\d+)"),
]

PRICE_SELECTORS = [
    'article [data-testid="price"]',
    '[data-testid="price"]',
    ".propertyHeaderPrice",
    'h1[class*="price"]',
    'span[class*="price"]',
]
ADDRESS_SELECTORS = [
    '[data-testid="address-label"]',
    'h1[itemprop="streetAddress"]',
    "address",
]
DESCRIPTION_SELECTORS = [
    '[data-testid="truncated-description-text"]',
    ".property-description",
    '[itemprop="description"]',
]
FEATURE_SELECTOR = '[data-testid="key-features-list"] li, .key-features li'
IMAGE_SELECTOR = 'img[src*="media.rightmove"], [data-testid="gallery-image"] img'

# Checked in order; "semi-detached" must win over "detached"
PROPERTY_TYPES = [
    ("semi-detached", ("semi-detached", "semi detached")),
    ("detached", ("detached",)),
    ("terraced", ("terraced", "terrace house")),
    ("flat", ("flat", "apartment")),
    ("bungalow", ("bungalow",)),
    ("maisonette", ("maisonette",)),
    ("cottage", ("cottage",)),
    ("townhouse", ("townhouse", "town house")),
]

EPC_CURRENT_PATTERNS = [
    re.compile(r'"currentEnergyRating"\s*:\s*"([A-G])"', re.IGNORECASE),
    re.compile(r'"epcRating"\s*:\s*"([A-G])"', re.IGNORECASE),
    re.compile(r'"energyRating"\s*:\s*"([A-G])"', re.IGNORECASE),
    re.compile(r'"eerCurrentRating"\s*:\s*"([A-G])"', re.IGNORECASE),
]
EPC_POTENTIAL_PATTERNS = [
    re.compile(r'"potentialEnergyRating"\s*:\s*"([A-G])"', re.IGNORECASE),
    re.compile(r'"eerPotentialRating"\s*:\s*"([A-G])"', re.IGNORECASE),
]

MAX_FEATURES = 15
MAX_IMAGES = 10
MAX_DESCRIPTION_CHARS = 2000


def _first_match(patterns: List[re.Pattern], text: str) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _count(value: Optional[str]) -> Optional[int]:
    """Room counts outside 0-20 are treated as noise."""
    if value is None:
        return None
    number = int(value)
    return number if 0 <= number <= 20 else None


class RightmoveAdapter(PortalAdapter):
    """Adapter for Rightmove UK listing pages."""

    def get_portal_name(self) -> str:
        """Return portal identifier."""
        return "rightmove"

    def extract_listing_id(self, url: str) -> Optional[str]:
        if "rightmove.co.uk" not in (urlparse(url).hostname or ""):
            return None
        for pattern in LISTING_ID_PATTERNS:
            match = pattern.search(url)
            if match:
                return match.group(1)
        return None

    def _page_model_script(self, soup: BeautifulSoup) -> str:
        """Text of the script carrying ``window.PAGE_MODEL``, or ''."""
        for script in soup.find_all("script"):
            content = script.string or script.get_text() or ""
            if "PAGE_MODEL" in content or "propertyData" in content:
                return content
        return ""

    def parse_listing_html(self, html: str, url: str, listing_id: str) -> Optional[PropertyListing]:
        """
        Parse a Rightmove detail page.

        Structured fields (postcode parts, coordinates, EPC, room counts)
        come from the embedded PAGE_MODEL script; price, address and text
        content come from the rendered DOM.

        Returns:
            PropertyListing, or None if neither a price nor an address was found
        """
        soup = BeautifulSoup(html, "html.parser")
        model = self._page_model_script(soup)
        body_text = soup.body.get_text(" ", strip=True) if soup.body else soup.get_text(" ", strip=True)

        price = self._parse_price(soup)
        display_address = self._parse_display_address(soup)
        if price is None and not display_address:
            logger.warning(f"No price or address found for listing {listing_id}")
            return None

        listing = PropertyListing(
            listing_id=listing_id,
            source_url=url,
            price=price,
            price_qualifier=self._parse_price_qualifier(body_text),
            listing_type="rent" if "property-to-rent" in url else "sale",
            bedrooms=_count(_first_match([re.compile(r'"bedrooms"\s*:\s*(\d+)')], model)),
            bathrooms=_count(_first_match([re.compile(r'"bathrooms"\s*:\s*(\d+)')], model)),
            square_footage=self._parse_square_footage(model, body_text),
            property_type=self._detect_property_type(body_text),
            address=self._parse_address(soup, model, display_address),
            coordinates=self._parse_coordinates(model),
            epc=self._parse_epc(model, body_text),
            description=self._parse_description(soup),
            features=self._parse_features(soup),
            images=self._parse_images(soup),
        )
        listing.calculate_price_per_sqft()
        return listing

    def _parse_price(self, soup: BeautifulSoup) -> Optional[int]:
        for selector in PRICE_SELECTORS:
            element = soup.select_one(selector)
            if element is None:
                continue
            cleaned = re.sub(r"[£,\s]|pcm|pw|pa", "", element.get_text(strip=True), flags=re.IGNORECASE)
            match = re.match(r"\d+", cleaned)
            if match and int(match.group(0)) > 0:
                return int(match.group(0))
        return None

    def _parse_price_qualifier(self, body_text: str) -> Optional[str]:
        text = body_text.lower()
        if "guide price" in text:
            return "guide_price"
        if "offers over" in text:
            return "offers_over"
        if "offers in region" in text or "oiro" in text:
            return "offers_in_region"
        return None

    def _parse_display_address(self, soup: BeautifulSoup) -> str:
        for selector in ADDRESS_SELECTORS:
            element = soup.select_one(selector)
            if element is not None:
                text = element.get_text(" ", strip=True)
                if len(text) > 3:
                    return text

        # "3 bed house for sale in <address> - <price>"
        og_title = soup.find("meta", attrs={"property": "og:title"})
        content = og_title.get("content", "") if og_title else ""
        if " in " in content:
            return content.split(" in ", 1)[1].split(" - ")[0].strip()
        return ""

    def _parse_address(self, soup: BeautifulSoup, model: str, display_address: str) -> Address:
        postcode = None
        outcode = re.search(r'"outcode"\s*:\s*"([A-Z]{1,2}\d{1,2}[A-Z]?)"', model, re.IGNORECASE)
        incode = re.search(r'"incode"\s*:\s*"(\d[A-Z]{2})"', model, re.IGNORECASE)
        if outcode and incode:
            postcode = normalize_postcode(outcode.group(1) + incode.group(1))
        if postcode is None:
            direct = re.search(r'"postcode"\s*:\s*"([A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2})"', model, re.IGNORECASE)
            if direct:
                postcode = normalize_postcode(direct.group(1))
        if postcode is None:
            postcode = extract_postcode(display_address)
        if postcode is None:
            meta_text = " ".join(
                (tag.get("content") or "")
                for tag in soup.find_all("meta", attrs={"name": "description"})
                + soup.find_all("meta", attrs={"property": "og:title"})
            )
            postcode = extract_postcode(meta_text)

        street_name = None
        display_match = re.search(r'"displayAddress"\s*:\s*"([^"]+)"', model)
        if display_match:
            street_name = display_match.group(1).split(",")[0].strip()

        door_number = None
        building = re.search(r'"(?:buildingNumber|buildingName|propertyNumber)"\s*:\s*"([^"]+)"', model)
        if building:
            door_number = building.group(1)

        parts = split_postcode(postcode) if postcode else None
        return Address(
            display_address=display_address,
            street_name=street_name,
            door_number=door_number,
            postcode=postcode,
            postcode_outward=parts[0] if parts else None,
            postcode_inward=parts[1] if parts else None,
        )

    def _parse_coordinates(self, model: str) -> Optional[Coordinates]:
        lat = re.search(r'"latitude"\s*:\s*(-?[\d.]+)', model)
        lng = re.search(r'"longitude"\s*:\s*(-?[\d.]+)', model)
        if not lat or not lng:
            return None
        try:
            latitude, longitude = float(lat.group(1)), float(lng.group(1))
        except ValueError:
            return None
        if latitude == 0 or longitude == 0:
            return None
        return Coordinates(latitude=latitude, longitude=longitude)

    def _parse_epc(self, model: str, body_text: str) -> Optional[EpcRating]:
        current = _first_match(EPC_CURRENT_PATTERNS, model)
        potential = _first_match(EPC_POTENTIAL_PATTERNS, model)
        graph = re.search(r'"epcGraphs"\s*:\s*\[\s*\{\s*"url"\s*:\s*"([^"]+)"', model)

        if current is None:
            pair = re.search(r"Current\s*([A-G])\s*\|?\s*Potential\s*([A-G])", body_text, re.IGNORECASE)
            if pair:
                current, potential = pair.group(1), pair.group(2)
            else:
                text_match = re.search(r"EPC\s*(?:Rating)?[:\s]*([A-G])\b", body_text, re.IGNORECASE)
                current = text_match.group(1) if text_match else None

        if not (current or potential or graph):
            return None
        return EpcRating(
            current_rating=current.upper() if current else None,
            potential_rating=potential.upper() if potential else None,
            graph_url=graph.group(1) if graph else None,
        )

    def _parse_square_footage(self, model: str, body_text: str) -> Optional[float]:
        size = re.search(r'"size"\s*:\s*\{\s*"magnitude"\s*:\s*(\d+)', model)
        if size:
            return float(size.group(1))
        text_match = re.search(r"(\d{1,4}(?:,\d{3})?)\s*(?:sq\.?\s*ft|square\s*feet)", body_text, re.IGNORECASE)
        if text_match:
            return float(text_match.group(1).replace(",", ""))
        return None

    def _detect_property_type(self, body_text: str) -> str:
        text = body_text.lower()
        for property_type, needles in PROPERTY_TYPES:
            if any(needle in text for needle in needles):
                return property_type
        return "unknown"

    def _parse_description(self, soup: BeautifulSoup) -> str:
        for selector in DESCRIPTION_SELECTORS:
            element = soup.select_one(selector)
            if element is not None:
                text = element.get_text(" ", strip=True)
                if len(text) > 20:
                    return text[:MAX_DESCRIPTION_CHARS]
        return ""

    def _parse_features(self, soup: BeautifulSoup) -> List[str]:
        features = []
        for item in soup.select(FEATURE_SELECTOR):
            text = item.get_text(" ", strip=True)
            if 2 < len(text) < 200:
                features.append(text)
        return features[:MAX_FEATURES]

    def _parse_images(self, soup: BeautifulSoup) -> List[str]:
        images: List[str] = []
        og_image = soup.find("meta", attrs={"property": "og:image"})
        if og_image and og_image.get("content"):
            images.append(og_image["content"])
        for img in soup.select(IMAGE_SELECTOR):
            src = img.get("src") or img.get("data-src")
            if src and src not in images:
                images.append(src)
        return images[:MAX_IMAGES]

