"""postcodes.io lookup: postcode -> coordinates."""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from models.errors import MalformedResponseError, UpstreamReportedError
from models.property import Coordinates
from utils.http import fetch_json
from utils.postcode import compact_postcode

logger = logging.getLogger(__name__)

POSTCODES_IO_URL = "https://api.postcodes.io/postcodes"


class PostcodesIoClient:
    """Free, keyless postcode centroid lookup."""

    def __init__(
        self,
        base_url: str = POSTCODES_IO_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def lookup(self, postcode: str) -> Optional[Coordinates]:
        """
        Return the centroid of ``postcode``.

        Returns None when the postcode is unknown (HTTP 404). Other
        failures raise from utils.http.fetch_json.
        """
        url = f"{self.base_url}/{quote(compact_postcode(postcode))}"
        try:
            data = await fetch_json(url, timeout=self.timeout, transport=self._transport)
        except UpstreamReportedError as e:
            if e.code == 404:
                logger.info(f"postcodes.io: unknown postcode {postcode}")
                return None
            raise

        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            return None
        lat, lng = result.get("latitude"), result.get("longitude")
        if lat is None or lng is None:
            # Terminated postcodes come back without a position
            return None
        if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
            raise MalformedResponseError(f"postcodes.io returned non-numeric position for {postcode}")
        return Coordinates(latitude=float(lat), longitude=float(lng))
