"""Round distribution database model."""

from sqlalchemy import BigInteger, Column, ForeignKey, Integer
from sqlalchemy.orm import relationship

from augury.database.base import Base


class RoundDistribution(Base):
    """Marks a round as distributed and fixes its payout denominator."""

    __tablename__ = "round_distributions"

    round_id = Column(
        Integer,
        ForeignKey("rounds.id", ondelete="RESTRICT"),
        primary_key=True,
    )

    reward_pool = Column(BigInteger, nullable=False, default=0)
    winning_total = Column(BigInteger, nullable=False, default=0)
    fee_amount = Column(BigInteger, nullable=False, default=0)
    distributed_at = Column(BigInteger, nullable=False)

    round = relationship("Round", back_populates="distribution")

    def __repr__(self) -> str:
        return f"<RoundDistribution round={self.round_id} pool={self.reward_pool}>"
