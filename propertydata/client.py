"""HTTP client for the PropertyData registry and market API."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Union

import httpx

from models.constants import (
    PROPERTYDATA_BASE_URL,
    PROPERTYDATA_MAX_THROTTLE_RETRIES,
    PROPERTYDATA_MIN_GAP_SECONDS,
    PROPERTYDATA_THROTTLE_CODE,
    PROPERTYDATA_TIMEOUT,
)
from models.errors import (
    ConfigurationMissingError,
    MalformedResponseError,
    UpstreamReportedError,
    UpstreamThrottledError,
    UpstreamTimeoutError,
)
from utils.rate_limiter import SerialRequestQueue

logger = logging.getLogger(__name__)

ParamValue = Union[str, int, float, bool, None]


def build_query(params: Dict[str, ParamValue]) -> Dict[str, str]:
    """Drop empty values and stringify the rest (booleans as lowercase)."""
    query = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            query[key] = "true" if value else "false"
        else:
            query[key] = str(value)
    return query


class PropertyDataClient:
    """
    Rate-limited PropertyData client.

    Every call, from every caller in the process, passes through one
    shared SerialRequestQueue. A throttle response (code X14) re-enters
    the queue instead of retrying in place, so the gap discipline also
    spaces out retries.

    Args:
        api_key: Bearer token; a missing key fails each call with
            ConfigurationMissingError
        queue: Shared queue; created with the default gap if omitted
        base_url: API root
        timeout: Per-call timeout in seconds
        max_throttle_retries: Re-queues allowed after a throttle response
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: Optional[str],
        queue: Optional[SerialRequestQueue] = None,
        base_url: str = PROPERTYDATA_BASE_URL,
        timeout: float = PROPERTYDATA_TIMEOUT,
        max_throttle_retries: int = PROPERTYDATA_MAX_THROTTLE_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.queue = queue or SerialRequestQueue(PROPERTYDATA_MIN_GAP_SECONDS, name="propertydata")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_throttle_retries = max_throttle_retries
        self._transport = transport

    @classmethod
    def from_config(
        cls, config: Dict[str, Any], transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "PropertyDataClient":
        queue = SerialRequestQueue(
            config.get("min_gap_seconds", PROPERTYDATA_MIN_GAP_SECONDS), name="propertydata"
        )
        return cls(
            api_key=config.get("api_key"),
            queue=queue,
            base_url=config.get("base_url", PROPERTYDATA_BASE_URL),
            timeout=config.get("timeout", PROPERTYDATA_TIMEOUT),
            max_throttle_retries=config.get("max_throttle_retries", PROPERTYDATA_MAX_THROTTLE_RETRIES),
            transport=transport,
        )

    async def get(
        self,
        path: str,
        params: Dict[str, ParamValue],
        timeout: Optional[float] = None,
        max_throttle_retries: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Call ``GET /<path>`` and return the decoded JSON object.

        Raises:
            ConfigurationMissingError: No API key configured
            UpstreamThrottledError: Still throttled after all retries
            UpstreamTimeoutError: The call exceeded its timeout (not retried)
            UpstreamReportedError: HTTP error or ``status: "error"`` payload
            MalformedResponseError: Body is not a JSON object
        """
        if not self.api_key:
            raise ConfigurationMissingError("PropertyData API key is not configured")

        retries = self.max_throttle_retries if max_throttle_retries is None else max_throttle_retries
        call_timeout = self.timeout if timeout is None else timeout

        attempt = 0
        while True:
            try:
                return await self.queue.run(lambda: self._fetch(path, params, call_timeout))
            except UpstreamReportedError as e:
                if str(e.code) != PROPERTYDATA_THROTTLE_CODE:
                    raise
                if attempt >= retries:
                    raise UpstreamThrottledError(
                        f"PropertyData throttled /{path} after {attempt + 1} attempts",
                        code=e.code,
                        status=e.status,
                    ) from e
                attempt += 1
                logger.warning(f"PropertyData throttled /{path}, re-queueing (retry {attempt}/{retries})")

    async def _fetch(self, path: str, params: Dict[str, ParamValue], timeout: float) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            response = await asyncio.wait_for(
                self._send(url, build_query(params), headers, timeout), timeout=timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise UpstreamTimeoutError(f"PropertyData /{path} timed out after {timeout}s") from e
        except httpx.HTTPError as e:
            raise UpstreamReportedError(f"PropertyData request failed: {e}") from e

        try:
            payload = json.loads(response.text) if response.text else {}
        except json.JSONDecodeError as e:
            raise MalformedResponseError(
                f"PropertyData returned non-JSON response (HTTP {response.status_code})"
            ) from e

        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"PropertyData /{path} returned {type(payload).__name__}, expected an object"
            )

        if response.status_code >= 400:
            raise UpstreamReportedError(
                payload.get("message") or f"PropertyData HTTP error ({response.status_code})",
                code=payload.get("code"),
                status=payload.get("status"),
            )

        if payload.get("status") == "error":
            raise UpstreamReportedError(
                payload.get("message") or "PropertyData error",
                code=payload.get("code"),
                status=payload.get("status"),
            )

        return payload

    async def _send(self, url: str, params: Dict[str, str], headers: Dict[str, str], timeout: float) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), transport=self._transport
        ) as client:
            return await client.get(url, params=params, headers=headers)
