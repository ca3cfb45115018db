"""Utility modules for caching, scheduling, merging and output."""

from .activity_log import ActivityLog, ActivityLogHandler
from .cache import CacheRegistry, TTLCache
from .markdown_generator import ReportGenerator
from .rate_limiter import SerialRequestQueue
from .result_store import InMemoryResultStore, JsonFileResultStore

__all__ = [
    "ActivityLog",
    "ActivityLogHandler",
    "CacheRegistry",
    "InMemoryResultStore",
    "JsonFileResultStore",
    "ReportGenerator",
    "SerialRequestQueue",
    "TTLCache",
]
