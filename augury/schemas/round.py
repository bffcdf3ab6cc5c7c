"""Round Pydantic schemas."""

from typing import Optional

from augury.schemas.common import BaseSchema


class RoundResponse(BaseSchema):
    """Round details as seen by queries."""

    id: int
    prediction_id: int
    predicted_price: int
    confidence: int
    analysis_ref: str
    start_price: int
    end_price: Optional[int]
    start_time: int
    end_time: int
    resolved: bool
    forecast_won: bool
    fee_percent: Optional[int]
    total_correct: int
    total_incorrect: int
    total_pool: int
    distributed: bool


class DistributionWork(BaseSchema):
    """Answer to the automated trigger's "is there distributable work?" check."""

    has_work: bool
    round_ids: list[int]


class DistributionReport(BaseSchema):
    """Outcome of one sweep over a batch of round ids."""

    distributed: list[int]
    skipped: list[int]
    deferred: list[int]
