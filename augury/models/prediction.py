"""Prediction registry database models."""

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    String,
)

from augury.database.base import Base


class Prediction(Base):
    """A timestamped forecast submitted by an authorized forecaster."""

    __tablename__ = "predictions"

    id = Column(Integer, primary_key=True, autoincrement=False)
    forecaster = Column(String(128), nullable=False, index=True)
    predicted_price = Column(BigInteger, nullable=False)
    confidence = Column(Integer, nullable=False)
    analysis_ref = Column(String(256), nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("predicted_price > 0", name="positive_predicted_price"),
        Index("idx_predictions_active", "active"),
    )

    def __repr__(self) -> str:
        return f"<Prediction {self.id} {self.predicted_price} @ {self.confidence}%>"


class Forecaster(Base):
    """Identity allowed (or no longer allowed) to submit predictions."""

    __tablename__ = "forecasters"

    address = Column(String(128), primary_key=True)
    authorized = Column(Boolean, nullable=False, default=True)
    updated_at = Column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<Forecaster {self.address} authorized={self.authorized}>"


class DataSource(Base):
    """Weighted data-source metadata; governance only."""

    __tablename__ = "data_sources"

    name = Column(String(64), primary_key=True)
    weight = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("weight BETWEEN 0 AND 100", name="valid_source_weight"),
    )

    def __repr__(self) -> str:
        return f"<DataSource {self.name} weight={self.weight}>"
