"""Reference price feed boundary."""

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.orm import Session, sessionmaker

from augury.database import atomic, get_db_context
from augury.exceptions import InvalidPriceError, PriceUnavailableError
from augury.models import PricePoint
from augury.services.providers import Clock, system_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceReading:
    """One externally fed price and when it was observed."""

    price: int
    updated_at: int


class PriceFeed(Protocol):
    """External provider of the current asset price."""

    def latest_reading(self) -> PriceReading:
        """Most recent reading; raise PriceUnavailableError if there is none."""
        ...


class ManualPriceFeed:
    """
    Price feed updated in-process by whoever holds it.

    Used in paper mode and tests; a production deployment plugs in its own
    PriceFeed implementation.
    """

    def __init__(
        self,
        price: Optional[int] = None,
        updated_at: Optional[int] = None,
        clock: Clock = system_clock,
    ):
        self._clock = clock
        self._lock = threading.Lock()
        self._reading: Optional[PriceReading] = None
        if price is not None:
            self.update(price, updated_at)

    def update(self, price: int, updated_at: Optional[int] = None) -> PriceReading:
        """Publish a new price, stamped now unless a time is given."""
        reading = PriceReading(
            price=price,
            updated_at=self._clock() if updated_at is None else updated_at,
        )
        with self._lock:
            self._reading = reading
        logger.debug(f"Price feed updated: {reading.price} @ {reading.updated_at}")
        return reading

    def latest_reading(self) -> PriceReading:
        with self._lock:
            reading = self._reading
        if reading is None:
            raise PriceUnavailableError("Price feed has no reading yet")
        return reading


class StoredPriceFeed:
    """
    Price feed backed by the price_points table.

    Prices are published by the operator CLI or any collector sharing the
    database, so every process (scheduler, API, CLI) reads the same value.
    """

    def __init__(self, session_factory: sessionmaker, clock: Clock = system_clock):
        self._session_factory = session_factory
        self._clock = clock

    def publish(
        self,
        db: Session,
        price: int,
        source: str = "operator",
        recorded_at: Optional[int] = None,
    ) -> PricePoint:
        """Store a new reference price, stamped now unless a time is given."""
        if price <= 0:
            raise InvalidPriceError(f"Cannot publish non-positive price {price}")

        with atomic(db):
            point = PricePoint(
                price=price,
                source=source,
                recorded_at=self._clock() if recorded_at is None else recorded_at,
            )
            db.add(point)

        logger.info(f"Price published by {source}: {point.price} @ {point.recorded_at}")
        return point

    def latest_reading(self) -> PriceReading:
        with get_db_context(self._session_factory) as db:
            point = (
                db.query(PricePoint)
                .order_by(PricePoint.recorded_at.desc(), PricePoint.id.desc())
                .first()
            )
            if point is None:
                raise PriceUnavailableError("No price has been published yet")
            return PriceReading(price=point.price, updated_at=point.recorded_at)
