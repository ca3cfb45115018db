"""Property listing data model."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

# Fields enrichment stages may back-fill or replace after the primary scrape.
# Everything else on the listing is write-once.
ENRICHMENT_FIELDS = frozenset({"coordinates", "nearest_stations", "nearest_tube_stations"})
ADDRESS_ENRICHMENT_FIELDS = frozenset({"door_number", "street_name"})


@dataclass
class Coordinates:
    latitude: float
    longitude: float


@dataclass
class Address:
    """Listing address; every component is independently nullable."""

    display_address: str = ""
    street_name: Optional[str] = None
    door_number: Optional[str] = None
    postcode: Optional[str] = None
    postcode_outward: Optional[str] = None
    postcode_inward: Optional[str] = None


@dataclass
class EpcRating:
    """Energy performance certificate grades (A-G)."""

    current_rating: Optional[str] = None
    potential_rating: Optional[str] = None
    graph_url: Optional[str] = None


@dataclass
class StationInfo:
    """A nearby station with line/operator metadata and walking metrics."""

    name: str
    lines: Optional[List[str]] = None  # tube/metro lines
    operators: Optional[List[str]] = None  # train operating companies
    walking_time: Optional[int] = None  # minutes
    walking_distance: Optional[int] = None  # meters


@dataclass
class PropertyListing:
    """Listing record produced by the primary scrape and enriched in place."""

    # Core identifiers
    listing_id: str
    source_url: str
    source_portal: str = "rightmove"
    scraped_at: datetime = field(default_factory=datetime.now)

    # Price
    price: Optional[int] = None
    price_per_sqft: Optional[int] = None
    price_qualifier: Optional[str] = None
    listing_type: str = "sale"

    # Property details
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    square_footage: Optional[float] = None
    property_type: str = "unknown"

    # Location
    address: Address = field(default_factory=Address)
    coordinates: Optional[Coordinates] = None

    # Energy data
    epc: Optional[EpcRating] = None

    # Listing content
    description: str = ""
    features: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)

    # Enrichment slots: None until the proximity stage runs (or if its
    # provider failed), [] when it ran and found nothing
    nearest_stations: Optional[List[StationInfo]] = None
    nearest_tube_stations: Optional[List[StationInfo]] = None

    def calculate_price_per_sqft(self) -> Optional[int]:
        """Calculate price per square foot."""
        if self.price and self.square_footage and self.square_footage > 0:
            self.price_per_sqft = round(self.price / self.square_footage)
            return self.price_per_sqft
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary (null fields are kept)."""
        result = asdict(self)
        result["scraped_at"] = self.scraped_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PropertyListing":
        """Create instance from dictionary."""
        data = dict(data)

        if isinstance(data.get("scraped_at"), str):
            data["scraped_at"] = datetime.fromisoformat(data["scraped_at"])
        if isinstance(data.get("address"), dict):
            data["address"] = Address(**data["address"])
        if isinstance(data.get("coordinates"), dict):
            data["coordinates"] = Coordinates(**data["coordinates"])
        if isinstance(data.get("epc"), dict):
            data["epc"] = EpcRating(**data["epc"])
        for key in ("nearest_stations", "nearest_tube_stations"):
            if isinstance(data.get(key), list):
                data[key] = [
                    StationInfo(**s) if isinstance(s, dict) else s for s in data[key]
                ]

        # Filter to only valid fields
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in valid_fields}

        return cls(**filtered_data)


@dataclass
class ScrapeResult:
    """Outcome of the primary listing scrape."""

    success: bool
    listing: Optional[PropertyListing] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None  # invalid_url | blocked | network | parse
