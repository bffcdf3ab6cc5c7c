"""Wager database model."""

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import relationship

from augury.database.base import Base


class Wager(Base):
    """One participant's stake on one side of one round."""

    __tablename__ = "wagers"

    # (round, participant) is the key: at most one wager per participant per round
    round_id = Column(
        Integer,
        ForeignKey("rounds.id", ondelete="RESTRICT"),
        primary_key=True,
    )
    participant = Column(String(128), primary_key=True)

    # Wager details
    side = Column(String(9), nullable=False)
    amount = Column(BigInteger, nullable=False)
    placed_at = Column(BigInteger, nullable=False)

    # Claim
    claimed = Column(Boolean, nullable=False, default=False)
    reward = Column(BigInteger, nullable=True)
    claimed_at = Column(BigInteger, nullable=True)

    # Relationships
    round = relationship("Round", back_populates="wagers")

    __table_args__ = (
        CheckConstraint(
            "side IN ('correct', 'incorrect')",
            name="valid_wager_side",
        ),
        CheckConstraint("amount > 0", name="positive_wager_amount"),
        Index("idx_wagers_participant", "participant"),
    )

    def __repr__(self) -> str:
        return f"<Wager round={self.round_id} {self.participant} {self.side} {self.amount}>"
