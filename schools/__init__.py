"""Attended-schools lookup through an authenticated Locrating browser session."""

from .enrichment import AttendedSchoolsService, SchoolDistanceEnricher
from .flow import AttendedSchoolsScraper
from .location import LocationSignalRace
from .parser import parse_attended_schools_response
from .session import SessionManager

__all__ = [
    "AttendedSchoolsScraper",
    "AttendedSchoolsService",
    "LocationSignalRace",
    "SchoolDistanceEnricher",
    "SessionManager",
    "parse_attended_schools_response",
]
