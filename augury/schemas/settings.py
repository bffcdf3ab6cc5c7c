"""Protocol settings and balance Pydantic schemas."""

from augury.schemas.common import BaseSchema


class ProtocolSettingsResponse(BaseSchema):
    """Current protocol settings."""

    operator: str
    paused: bool
    fee_percent: int
    accuracy_threshold: int
    auto_distribution: bool
    min_stake: int
    max_stake: int
    round_duration: int
    min_confidence: int
    max_forecast_age: int


class BalanceResponse(BaseSchema):
    """Pooled balance breakdown."""

    held: int
    locked: int
    free: int
