"""Database models module."""

from augury.models.distribution import RoundDistribution
from augury.models.ledger import (
    LEDGER_PAYOUT,
    LEDGER_STAKE,
    LEDGER_WITHDRAWAL,
    LedgerEntry,
)
from augury.models.prediction import DataSource, Forecaster, Prediction
from augury.models.price_point import PricePoint
from augury.models.protocol_settings import SETTINGS_ROW_ID, ProtocolSettings
from augury.models.round import Round
from augury.models.wager import Wager

__all__ = [
    "DataSource",
    "Forecaster",
    "LedgerEntry",
    "LEDGER_PAYOUT",
    "LEDGER_STAKE",
    "LEDGER_WITHDRAWAL",
    "Prediction",
    "PricePoint",
    "ProtocolSettings",
    "Round",
    "RoundDistribution",
    "SETTINGS_ROW_ID",
    "Wager",
]
