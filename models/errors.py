"""Error taxonomy for upstream providers and enrichment stages."""

from typing import Optional, Union


class EnrichmentError(Exception):
    """Base class for enrichment failures."""

    error_code = "ENRICHMENT_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[Union[str, int]] = None,
        status: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


class ConfigurationMissingError(EnrichmentError):
    """A credential or required setting is absent. Never retried."""

    error_code = "CONFIG_MISSING"


class UpstreamThrottledError(EnrichmentError):
    """Provider signalled throttling and retries were exhausted."""

    error_code = "THROTTLED"


class UpstreamTimeoutError(EnrichmentError):
    """Call exceeded its timeout budget."""

    error_code = "TIMEOUT"


class UpstreamReportedError(EnrichmentError):
    """Valid response envelope carrying an error status."""

    error_code = "UPSTREAM_ERROR"


class MalformedResponseError(EnrichmentError):
    """Non-JSON, truncated, or unexpectedly shaped response body."""

    error_code = "MALFORMED_RESPONSE"


# Registry client errors share the base class; kept as a name callers can catch.
PropertyDataError = EnrichmentError


class ScrapeFailedError(EnrichmentError):
    """Primary listing scrape failed; ``code`` holds the failure kind. Fatal for the run."""

    error_code = "SCRAPE_FAILED"
