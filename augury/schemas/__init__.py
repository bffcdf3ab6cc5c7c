"""Pydantic schemas module."""

from augury.schemas.common import BaseSchema
from augury.schemas.prediction import DataSourceResponse, PredictionResponse
from augury.schemas.round import DistributionReport, DistributionWork, RoundResponse
from augury.schemas.settings import BalanceResponse, ProtocolSettingsResponse
from augury.schemas.wager import WagerResponse, WagerSide

__all__ = [
    "BalanceResponse",
    "BaseSchema",
    "DataSourceResponse",
    "DistributionReport",
    "DistributionWork",
    "PredictionResponse",
    "ProtocolSettingsResponse",
    "RoundResponse",
    "WagerResponse",
    "WagerSide",
]
