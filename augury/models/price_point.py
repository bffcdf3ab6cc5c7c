"""Price point database model."""

from sqlalchemy import BigInteger, CheckConstraint, Column, Index, Integer, String

from augury.database.base import Base


class PricePoint(Base):
    """Reference price published by an operator or an external collector."""

    __tablename__ = "price_points"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Price data
    price = Column(BigInteger, nullable=False)
    source = Column(String(32), nullable=False, default="operator")

    # Timestamp
    recorded_at = Column(BigInteger, nullable=False)

    # Indexes
    __table_args__ = (
        CheckConstraint("price > 0", name="positive_price"),
        Index("idx_price_points_recorded_at", "recorded_at"),
    )

    def __repr__(self) -> str:
        return f"<PricePoint {self.price} @ {self.recorded_at}>"
