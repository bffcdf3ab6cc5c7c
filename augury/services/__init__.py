"""Services module."""

from augury.services.guard import ReentrancyGuard, non_reentrant
from augury.services.providers import (
    MAX_PAPER_TRANSFERS,
    Clock,
    PaperPayoutGateway,
    PayoutGateway,
    PayoutRecord,
    system_clock,
)
from augury.services.registry import (
    ManualPriceFeed,
    PredictionRegistry,
    PriceFeed,
    PriceReading,
    StoredPriceFeed,
)
from augury.services.round_service import (
    MAX_SWEEP_BATCH,
    RoundPhase,
    RoundSettlementEngine,
)

__all__ = [
    "Clock",
    "ManualPriceFeed",
    "MAX_PAPER_TRANSFERS",
    "MAX_SWEEP_BATCH",
    "non_reentrant",
    "PaperPayoutGateway",
    "PayoutGateway",
    "PayoutRecord",
    "PredictionRegistry",
    "PriceFeed",
    "PriceReading",
    "ReentrancyGuard",
    "RoundPhase",
    "RoundSettlementEngine",
    "StoredPriceFeed",
    "system_clock",
]
