"""Registry lookup results: plot size and market data."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from .constants import PlotSizeMethod


@dataclass
class PlotSizeResult:
    """
    Outcome of the plot-size cascade.

    A result with ``plot_size_acres`` of None means every strategy was
    exhausted. ``method`` records which strategy matched; anything other
    than an address match is approximate and must be flagged when shown.
    """

    plot_size_acres: Optional[float] = None
    uprn: Optional[str] = None
    title_number: Optional[str] = None
    matched_address: Optional[str] = None
    method: Optional[PlotSizeMethod] = None

    @property
    def found(self) -> bool:
        return self.plot_size_acres is not None

    @property
    def is_approximate(self) -> bool:
        return self.method is not None and self.method != PlotSizeMethod.ADDRESS_MATCH

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["method"] = self.method.value if self.method else None
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlotSizeResult":
        data = dict(data)
        if data.get("method"):
            data["method"] = PlotSizeMethod(data["method"])
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: v for k, v in data.items() if k in valid_fields})


@dataclass
class Valuation:
    estimate: Optional[int] = None
    margin: Optional[str] = None  # "Fairly priced" / "Overpriced by N%" / "Underpriced by N%"
    confidence: Optional[str] = None


@dataclass
class Growth:
    five_year: Optional[float] = None
    trend: Optional[str] = None  # up | down | stable


@dataclass
class Ownership:
    council_tax_band: Optional[str] = None
    tenure: Optional[str] = None
    is_conservation_area: bool = False


@dataclass
class Risks:
    crime_rating: Optional[str] = None
    flood_risk: Optional[str] = None
    flood_risk_level: Optional[str] = None


@dataclass
class Comparables:
    average_price: Optional[int] = None
    count: int = 0
    time_range: str = ""


@dataclass
class MarketDataResult:
    """Aggregated registry market insights for one postcode/bedrooms/type."""

    success: bool = False
    cached: bool = False
    error: Optional[str] = None

    valuation: Valuation = field(default_factory=Valuation)
    growth: Growth = field(default_factory=Growth)
    ownership: Ownership = field(default_factory=Ownership)
    risks: Risks = field(default_factory=Risks)
    comparables: Comparables = field(default_factory=Comparables)

    def has_data(self) -> bool:
        return (
            self.valuation.estimate is not None
            or self.ownership.council_tax_band is not None
            or self.risks.crime_rating is not None
            or self.risks.flood_risk is not None
            or self.growth.five_year is not None
            or self.comparables.count > 0
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketDataResult":
        return cls(
            success=data.get("success", False),
            cached=data.get("cached", False),
            error=data.get("error"),
            valuation=Valuation(**(data.get("valuation") or {})),
            growth=Growth(**(data.get("growth") or {})),
            ownership=Ownership(**(data.get("ownership") or {})),
            risks=Risks(**(data.get("risks") or {})),
            comparables=Comparables(**(data.get("comparables") or {})),
        )
