"""Market reference data, deal payloads, and session market-data overrides."""

from .deals import AccrualTerms, Deal, FixingDate, load_deals
from .overrides import (
    MarketDataOverride,
    MarketDataOverrideStore,
    OverrideMarketData,
    rate_curve_override,
    spot_override,
    vol_surface_override,
)
from .reference import (
    AssetMarketData,
    CurvePoint,
    ReferenceMarketData,
    SpotQuote,
    VolSurface,
    default_reference_data,
)

__all__ = [
    "AccrualTerms",
    "AssetMarketData",
    "CurvePoint",
    "Deal",
    "FixingDate",
    "MarketDataOverride",
    "MarketDataOverrideStore",
    "OverrideMarketData",
    "ReferenceMarketData",
    "SpotQuote",
    "VolSurface",
    "default_reference_data",
    "load_deals",
    "rate_curve_override",
    "spot_override",
    "vol_surface_override",
]
