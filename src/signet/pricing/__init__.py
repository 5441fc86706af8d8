"""Pricing - display price resolution and depth estimation."""

from signet.pricing.depth import DepthEstimator, walk_book
from signet.pricing.resolver import PriceResolver, suggest_limit_price

__all__ = [
    "DepthEstimator",
    "PriceResolver",
    "suggest_limit_price",
    "walk_book",
]
