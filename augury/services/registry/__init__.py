from .feeds import ManualPriceFeed, PriceFeed, PriceReading, StoredPriceFeed
from .service import PredictionRegistry

__all__ = [
    "ManualPriceFeed",
    "PredictionRegistry",
    "PriceFeed",
    "PriceReading",
    "StoredPriceFeed",
]
