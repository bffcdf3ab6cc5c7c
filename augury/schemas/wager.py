"""Wager Pydantic schemas."""

from enum import Enum
from typing import Optional

from augury.schemas.common import BaseSchema


class WagerSide(str, Enum):
    """Side of a wager: the forecast proves correct, or it does not."""

    CORRECT = "correct"
    INCORRECT = "incorrect"


class WagerResponse(BaseSchema):
    """Wager response schema."""

    round_id: int
    participant: str
    side: WagerSide
    amount: int
    placed_at: int
    claimed: bool
    reward: Optional[int]
    claimed_at: Optional[int]
