"""Ledger entry database model."""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
)

from augury.database.base import Base

LEDGER_STAKE = "stake"
LEDGER_PAYOUT = "payout"
LEDGER_WITHDRAWAL = "withdrawal"


class LedgerEntry(Base):
    """Append-only record of a fund movement through the pooled balance."""

    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(10), nullable=False)
    account = Column(String(128), nullable=False)
    amount = Column(BigInteger, nullable=False)
    round_id = Column(Integer, ForeignKey("rounds.id"), nullable=True)
    created_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "kind IN ('stake', 'payout', 'withdrawal')",
            name="valid_ledger_kind",
        ),
        CheckConstraint("amount > 0", name="positive_ledger_amount"),
        Index("idx_ledger_kind", "kind"),
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.kind} {self.account} {self.amount}>"
