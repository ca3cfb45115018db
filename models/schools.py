"""Attended-schools data model."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class AttendedSchool:
    """A school attended by pupils from the looked-up neighbourhood."""

    urn: str
    name: str
    phase: str  # "primary" | "secondary"
    percentage: float  # share of local pupils attending, 0-100
    ofsted_rating: Optional[str] = None
    ofsted_rating_number: Optional[int] = None
    admissions_policy: str = ""
    is_grammar: bool = False
    lat: float = 0.0
    lng: float = 0.0
    locrating_rating_number: str = "0"

    # Populated by distance enrichment
    crow_flies_distance: Optional[float] = None  # km
    walking_time: Optional[int] = None  # minutes
    walking_distance: Optional[int] = None  # meters


@dataclass
class AttendedSchoolsResult:
    """Outcome of the attended-schools browser flow."""

    success: bool
    area_name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    primary_schools: List[AttendedSchool] = field(default_factory=list)
    secondary_schools: List[AttendedSchool] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failure(
        cls, error: str, lat: Optional[float] = None, lng: Optional[float] = None
    ) -> "AttendedSchoolsResult":
        return cls(success=False, lat=lat, lng=lng, error=error)

    @property
    def all_schools(self) -> List[AttendedSchool]:
        return self.primary_schools + self.secondary_schools

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttendedSchoolsResult":
        data = dict(data)
        for key in ("primary_schools", "secondary_schools"):
            data[key] = [
                AttendedSchool(**s) if isinstance(s, dict) else s
                for s in data.get(key) or []
            ]
        return cls(**data)
