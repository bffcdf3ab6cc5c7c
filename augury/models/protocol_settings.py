"""Protocol settings database model."""

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Column, Integer, String

from augury.database.base import Base

SETTINGS_ROW_ID = 1


class ProtocolSettings(Base):
    """Process-wide settings read by every resolution and payout."""

    __tablename__ = "protocol_settings"

    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID)

    operator = Column(String(128), nullable=False)
    paused = Column(Boolean, nullable=False, default=False)

    fee_percent = Column(Integer, nullable=False)
    accuracy_threshold = Column(Integer, nullable=False)
    auto_distribution = Column(Boolean, nullable=False, default=True)

    min_stake = Column(BigInteger, nullable=False)
    max_stake = Column(BigInteger, nullable=False)
    round_duration = Column(BigInteger, nullable=False)

    min_confidence = Column(Integer, nullable=False)
    max_forecast_age = Column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint("fee_percent BETWEEN 0 AND 30", name="valid_fee_percent"),
        CheckConstraint(
            "accuracy_threshold BETWEEN 0 AND 20",
            name="valid_accuracy_threshold",
        ),
        CheckConstraint(
            "min_stake > 0 AND min_stake <= max_stake",
            name="valid_stake_limits",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ProtocolSettings fee={self.fee_percent}% "
            f"threshold={self.accuracy_threshold}% auto={self.auto_distribution}>"
        )
