"""Portal adapter factory and exports."""

import logging
from typing import Any, Dict, Optional

from portals.base import PortalAdapter

logger = logging.getLogger(__name__)

SUPPORTED_PORTALS = ("rightmove",)


def get_adapter(config: Dict[str, Any], url: Optional[str] = None) -> PortalAdapter:
    """
    Factory function to get the portal adapter for a listing.

    Args:
        config: Configuration dictionary from config.json
        url: Listing URL; its host picks the portal when given

    Returns:
        Portal adapter instance

    Raises:
        ValueError: If portal is not supported

    Example:
        >>> adapter = get_adapter({}, "https://www.rightmove.co.uk/properties/123")
        >>> adapter.get_portal_name()
        'rightmove'
    """
    portal = config.get("portal", "rightmove").lower()
    if url and "rightmove.co.uk" in url:
        portal = "rightmove"

    if portal == "rightmove":
        from portals.rightmove.adapter import RightmoveAdapter

        logger.debug("Initializing Rightmove adapter")
        return RightmoveAdapter(config)

    raise ValueError(
        f"Unsupported portal: {portal}. Supported portals: {', '.join(SUPPORTED_PORTALS)}"
    )


__all__ = ["get_adapter", "PortalAdapter"]
