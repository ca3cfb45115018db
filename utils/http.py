"""Shared JSON-over-HTTP helper mapping transport failures onto the error taxonomy."""

import logging
from typing import Any, Dict, Optional

import httpx

from models.errors import MalformedResponseError, UpstreamReportedError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


async def fetch_json(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    method: str = "GET",
    json_body: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Fetch ``url`` and decode its JSON body.

    Raises:
        UpstreamTimeoutError: Request exceeded ``timeout``
        UpstreamReportedError: Transport failure or HTTP status >= 400
            (``code`` holds the HTTP status)
        MalformedResponseError: Body is not valid JSON
    """
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport) as client:
            response = await client.request(method, url, params=params, headers=headers, json=json_body)
    except httpx.TimeoutException as e:
        raise UpstreamTimeoutError(f"Request to {url} timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise UpstreamReportedError(f"Request to {url} failed: {e}") from e

    if response.status_code >= 400:
        raise UpstreamReportedError(
            f"HTTP {response.status_code} from {url}", code=response.status_code
        )

    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(f"Non-JSON response from {url}") from e
