"""Injected capabilities: clock and payout gateway."""

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Protocol

logger = logging.getLogger(__name__)

# Paper transfers kept in memory; older records are dropped
MAX_PAPER_TRANSFERS = 1000

# Returns the current time as unix seconds
Clock = Callable[[], int]


def system_clock() -> int:
    """Wall-clock time in unix seconds."""
    return int(time.time())


class PayoutGateway(Protocol):
    """Moves funds out of the pooled balance to a recipient."""

    def transfer(self, recipient: str, amount: int) -> None:
        """Send ``amount`` base units to ``recipient``; raise on failure."""
        ...


@dataclass
class PayoutRecord:
    recipient: str
    amount: int
    timestamp: int


@dataclass
class PaperPayoutGateway:
    """Records transfers instead of sending them (paper mode)."""

    clock: Clock = system_clock
    transfers: deque[PayoutRecord] = field(
        default_factory=lambda: deque(maxlen=MAX_PAPER_TRANSFERS)
    )
    # Lifetime totals survive records falling out of the window
    sent: dict[str, int] = field(default_factory=dict)

    def transfer(self, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Transfer amount must be non-negative, got {amount}")
        self.transfers.append(PayoutRecord(recipient, amount, self.clock()))
        self.sent[recipient] = self.sent.get(recipient, 0) + amount
        logger.info(f"[PAPER] Transferred {amount} to {recipient}")

    def total_sent_to(self, recipient: str) -> int:
        return self.sent.get(recipient, 0)
