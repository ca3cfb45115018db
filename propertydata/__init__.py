"""PropertyData registry client, plot-size cascade and market data."""

from .client import PropertyDataClient
from .market_data import MarketDataService
from .plot_size import PlotSizeResolver

__all__ = [
    "MarketDataService",
    "PlotSizeResolver",
    "PropertyDataClient",
]
