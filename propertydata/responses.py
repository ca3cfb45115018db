"""Boundary parsers for PropertyData endpoint payloads.

Each parser takes the decoded JSON object returned by
PropertyDataClient.get (already known to be a success envelope) and
returns typed values. Anything with an unexpected shape raises
MalformedResponseError so callers never handle raw payloads.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from models.errors import MalformedResponseError


@dataclass
class UprnCandidate:
    """A registry identifier candidate with whatever address parts came with it."""

    uprn: str
    address: Optional[str] = None
    primary: Optional[str] = None  # building number or name
    street: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


@dataclass
class ValuationPayload:
    estimate: Optional[int] = None
    confidence: Optional[str] = None


@dataclass
class PricesPayload:
    average: Optional[int] = None
    points_analysed: int = 0
    date_latest: Optional[str] = None


@dataclass
class GrowthPayload:
    per_year: Optional[float] = None
    growth_5_year: Optional[float] = None


@dataclass
class FloodRiskPayload:
    risk: Optional[str] = None
    level: Optional[str] = None


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace(",", "").strip())
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    number = _as_float(value)
    return int(round(number)) if number is not None else None


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _data_object(payload: Dict[str, Any], endpoint: str) -> Dict[str, Any]:
    data = payload.get("data")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedResponseError(f"/{endpoint}: expected 'data' object, got {type(data).__name__}")
    return data


def _candidate(row: Any) -> Optional[UprnCandidate]:
    if not isinstance(row, dict):
        return None
    uprn = row.get("uprn")
    if uprn is None:
        return None
    parts = row.get("addressParts") if isinstance(row.get("addressParts"), dict) else {}
    lat = row.get("lat", row.get("latitude"))
    lng = row.get("lng", row.get("longitude"))
    address = row.get("address")
    return UprnCandidate(
        uprn=str(uprn),
        address=address if isinstance(address, str) else None,
        primary=_as_str(parts.get("primary")),
        street=_as_str(parts.get("street")),
        lat=_as_float(lat),
        lng=_as_float(lng),
    )


def parse_address_matches(payload: Dict[str, Any]) -> List[UprnCandidate]:
    """
    Parse /address-match-uprn.

    Observed shapes: ``{data: [...]}``, ``{data: {matches: [...]}}`` and
    ``{matches: [...]}``. Rows without a uprn are skipped.
    """
    data = payload.get("data")
    rows = None
    if isinstance(data, dict) and isinstance(data.get("matches"), list):
        rows = data["matches"]
    elif isinstance(payload.get("matches"), list):
        rows = payload["matches"]
    elif isinstance(data, list):
        rows = data

    if rows is None:
        return []
    return [c for c in (_candidate(r) for r in rows) if c is not None]


def parse_uprns(payload: Dict[str, Any]) -> List[UprnCandidate]:
    """Parse /uprns (location or postcode search), preserving provider order."""
    data = payload.get("data")
    if data is None:
        return []
    if not isinstance(data, list):
        raise MalformedResponseError(f"/uprns: expected 'data' list, got {type(data).__name__}")
    return [c for c in (_candidate(r) for r in data) if c is not None]


def parse_title_number(payload: Dict[str, Any]) -> Optional[str]:
    """Parse /uprn-title; the first title number, or None when there are none."""
    titles = _data_object(payload, "uprn-title").get("title_data")
    if not isinstance(titles, list) or not titles:
        return None
    first = titles[0]
    if not isinstance(first, dict):
        raise MalformedResponseError("/uprn-title: title_data entries must be objects")
    number = first.get("title_number")
    return str(number) if number else None


def parse_plot_size(payload: Dict[str, Any]) -> Optional[float]:
    """Parse /title; plot size in acres."""
    return _as_float(_data_object(payload, "title").get("plot_size"))


def parse_valuation(payload: Dict[str, Any]) -> ValuationPayload:
    data = _data_object(payload, "valuation-sale")
    return ValuationPayload(
        estimate=_as_int(data.get("estimate")),
        confidence=_as_str(data.get("confidence")),
    )


def parse_prices(payload: Dict[str, Any]) -> PricesPayload:
    data = _data_object(payload, "prices")
    return PricesPayload(
        average=_as_int(data.get("average")),
        points_analysed=_as_int(data.get("points_analysed")) or 0,
        date_latest=_as_str(data.get("date_latest")),
    )


def parse_growth(payload: Dict[str, Any]) -> GrowthPayload:
    data = _data_object(payload, "growth")
    return GrowthPayload(
        per_year=_as_float(data.get("per_year")),
        growth_5_year=_as_float(data.get("growth_5_year")),
    )


def parse_council_tax_band(payload: Dict[str, Any]) -> Optional[str]:
    return _as_str(_data_object(payload, "council-tax").get("band"))


def parse_crime_rating(payload: Dict[str, Any]) -> Optional[str]:
    return _as_str(_data_object(payload, "crime").get("rating"))


def parse_flood_risk(payload: Dict[str, Any]) -> FloodRiskPayload:
    data = _data_object(payload, "flood-risk")
    return FloodRiskPayload(risk=_as_str(data.get("risk")), level=_as_str(data.get("level")))


def parse_conservation_area(payload: Dict[str, Any]) -> bool:
    return bool(_data_object(payload, "conservation-area").get("in_conservation_area", False))
