"""Round database model."""

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import relationship

from augury.database.base import Base


class Round(Base):
    """One forecast-vs-reality contest with a fixed betting window."""

    __tablename__ = "rounds"

    id = Column(Integer, primary_key=True, autoincrement=False)

    # Forecast snapshot
    prediction_id = Column(Integer, nullable=False)
    predicted_price = Column(BigInteger, nullable=False)
    confidence = Column(Integer, nullable=False)
    analysis_ref = Column(String(256), nullable=False)

    # Reference prices
    start_price = Column(BigInteger, nullable=False)
    end_price = Column(BigInteger, nullable=True)

    # Window (unix seconds)
    start_time = Column(BigInteger, nullable=False)
    end_time = Column(BigInteger, nullable=False)

    # Resolution
    resolved = Column(Boolean, nullable=False, default=False)
    forecast_won = Column(Boolean, nullable=False, default=False)
    fee_percent = Column(Integer, nullable=True)
    resolved_at = Column(BigInteger, nullable=True)

    # Pool
    total_correct = Column(BigInteger, nullable=False, default=0)
    total_incorrect = Column(BigInteger, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    wagers = relationship(
        "Wager", back_populates="round", order_by="Wager.placed_at"
    )
    distribution = relationship(
        "RoundDistribution", back_populates="round", uselist=False
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="valid_round_window"),
        CheckConstraint(
            "total_correct >= 0 AND total_incorrect >= 0",
            name="non_negative_round_totals",
        ),
        Index("idx_rounds_resolved", "resolved"),
    )

    @property
    def total_pool(self) -> int:
        return self.total_correct + self.total_incorrect

    @property
    def distributed(self) -> bool:
        return self.distribution is not None

    @property
    def winning_total(self) -> int:
        """Total staked on the side matching the outcome (resolved rounds only)."""
        return self.total_correct if self.forecast_won else self.total_incorrect

    def __repr__(self) -> str:
        state = "resolved" if self.resolved else "open"
        return f"<Round {self.id} {state} pool={self.total_pool}>"
