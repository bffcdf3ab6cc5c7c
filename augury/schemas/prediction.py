"""Prediction registry Pydantic schemas."""

from augury.schemas.common import BaseSchema


class PredictionResponse(BaseSchema):
    """Stored forecast."""

    id: int
    forecaster: str
    predicted_price: int
    confidence: int
    analysis_ref: str
    timestamp: int
    active: bool


class DataSourceResponse(BaseSchema):
    """Weighted data-source metadata."""

    name: str
    weight: int
    active: bool
    updated_at: int
