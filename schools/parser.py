"""
Parser for the attended-schools API envelope.

The endpoint answers with ``{"d": "<javascript>"}`` where the script is a
single call::

    showAttendedSchoolsData('<area>', '<primary JSON array>', '<secondary JSON array>')
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.constants import OFSTED_RATINGS
from models.errors import MalformedResponseError
from models.schools import AttendedSchool

logger = logging.getLogger(__name__)

CALL_PATTERN = re.compile(
    r"showAttendedSchoolsData\s*\(\s*'([^']+)'\s*,\s*'(\[[\s\S]*?\])'\s*,\s*'(\[[\s\S]*?\])'\s*\)"
)


@dataclass
class ParsedAttendance:
    area_name: str
    primary_schools: List[AttendedSchool] = field(default_factory=list)
    secondary_schools: List[AttendedSchool] = field(default_factory=list)


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_school_record(raw: Dict[str, Any], phase: str) -> Optional[AttendedSchool]:
    """
    Map one raw attendance record onto an AttendedSchool.

    Returns None when the nested ``School`` object is missing.
    """
    school = raw.get("School") if isinstance(raw, dict) else None
    if not isinstance(school, dict):
        logger.debug(f"Skipping {phase} record without School object: {raw!r:.120}")
        return None

    rating_number = _to_int(school.get("OfstedRatingNumber"))
    rating = OFSTED_RATINGS.get(str(rating_number))
    policy = school.get("AdmissionsPolicy") or ""

    return AttendedSchool(
        urn=str(raw.get("Urn") or ""),
        name=school.get("Name") or "Unknown",
        phase=phase,
        percentage=_to_float(raw.get("Percentage")),
        ofsted_rating=rating,
        ofsted_rating_number=rating_number if rating else None,
        admissions_policy=policy,
        is_grammar=policy.lower() == "selective",
        lat=_to_float(school.get("Lat")),
        lng=_to_float(school.get("Lng")),
        locrating_rating_number=str(school.get("LocratingRatingNumber") or "0"),
    )


def _parse_phase(array_literal: str, phase: str) -> List[AttendedSchool]:
    try:
        records = json.loads(array_literal)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid {phase} schools array: {e}")
    if not isinstance(records, list):
        raise MalformedResponseError(f"Expected a list of {phase} schools")

    schools = [s for s in (parse_school_record(r, phase) for r in records) if s is not None]
    schools.sort(key=lambda s: s.percentage, reverse=True)
    return schools


def parse_attended_schools_response(body: str) -> ParsedAttendance:
    """
    Decode a captured attended-schools response body.

    Args:
        body: Raw response text (JSON envelope with a ``d`` script string)

    Returns:
        ParsedAttendance with both phases sorted by percentage, highest first

    Raises:
        MalformedResponseError: If the envelope or the embedded call is unusable
    """
    try:
        envelope = json.loads(body)
    except (TypeError, json.JSONDecodeError):
        raise MalformedResponseError("Attended schools response is not JSON")

    script = envelope.get("d") if isinstance(envelope, dict) else None
    if not isinstance(script, str):
        raise MalformedResponseError("Attended schools response has no 'd' payload")

    match = CALL_PATTERN.search(script)
    if not match:
        raise MalformedResponseError("showAttendedSchoolsData call not found in response")

    area_name, primary_json, secondary_json = match.groups()
    return ParsedAttendance(
        area_name=area_name,
        primary_schools=_parse_phase(primary_json, "primary"),
        secondary_schools=_parse_phase(secondary_json, "secondary"),
    )
