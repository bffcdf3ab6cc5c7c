"""Prediction registry: forecast submissions and reference price reads."""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from augury.config import RegistryConfig
from augury.database.session import atomic
from augury.exceptions import (
    ConfidenceOutOfBoundsError,
    EmptyAnalysisReferenceError,
    InvalidPriceError,
    NoValidPredictionError,
    NotRegistryAdminError,
    ParameterOutOfBoundsError,
    StalePriceError,
    UnauthorizedForecasterError,
)
from augury.models import DataSource, Forecaster, Prediction
from augury.services.guard import ReentrancyGuard, non_reentrant
from augury.services.providers import Clock, system_clock
from augury.services.registry.feeds import PriceFeed, PriceReading

logger = logging.getLogger(__name__)


class PredictionRegistry:
    """
    Validates and stores forecasts, and answers the two reads the round
    engine depends on: the latest valid forecast and the current reference
    price.

    Governance (forecaster authorization, prediction deactivation, data
    source weights) is restricted to the registry admin.
    """

    def __init__(
        self,
        price_feed: PriceFeed,
        admin: str,
        config: Optional[RegistryConfig] = None,
        clock: Clock = system_clock,
        guard: Optional[ReentrancyGuard] = None,
    ):
        self.price_feed = price_feed
        self.admin = admin
        self.config = config or RegistryConfig()
        self.clock = clock
        self._guard = guard or ReentrancyGuard()

    @property
    def guard(self) -> ReentrancyGuard:
        """Guard serializing registry writes; shared with the settlement engine."""
        return self._guard

    @guard.setter
    def guard(self, guard: ReentrancyGuard) -> None:
        self._guard = guard

    # ========================================================================
    # SUBMISSION
    # ========================================================================

    @non_reentrant
    def submit(
        self,
        db: Session,
        forecaster: str,
        predicted_price: int,
        confidence: int,
        analysis_ref: str,
    ) -> Prediction:
        """
        Store a forecast from an authorized forecaster.

        Process:
        1. Check the forecaster is authorized
        2. Validate confidence bounds, price and analysis reference
        3. Assign the next prediction id and stamp it with the current time
        """
        if not self.is_authorized(db, forecaster):
            raise UnauthorizedForecasterError(
                f"{forecaster} is not an authorized forecaster"
            )

        if not (self.config.min_confidence <= confidence <= self.config.max_confidence):
            raise ConfidenceOutOfBoundsError(
                f"Confidence must be between {self.config.min_confidence} and "
                f"{self.config.max_confidence}, got {confidence}"
            )

        if predicted_price <= 0:
            raise ParameterOutOfBoundsError(
                f"Predicted price must be positive, got {predicted_price}"
            )

        if not analysis_ref or not analysis_ref.strip():
            raise EmptyAnalysisReferenceError("Analysis reference must not be empty")

        with atomic(db):
            next_id = (db.scalar(select(func.max(Prediction.id))) or 0) + 1
            prediction = Prediction(
                id=next_id,
                forecaster=forecaster,
                predicted_price=predicted_price,
                confidence=confidence,
                analysis_ref=analysis_ref.strip(),
                timestamp=self.clock(),
                active=True,
            )
            db.add(prediction)

        logger.info(
            f"Prediction {prediction.id} submitted by {forecaster}: "
            f"{predicted_price} @ {confidence}%"
        )
        return prediction

    # ========================================================================
    # READS
    # ========================================================================

    def latest(self, db: Session) -> Prediction:
        """Most recent active prediction still inside the validity window."""
        prediction = db.scalar(
            select(Prediction)
            .where(Prediction.active.is_(True))
            .order_by(Prediction.id.desc())
            .limit(1)
        )
        if prediction is None:
            raise NoValidPredictionError("No active prediction available")

        age = self.clock() - prediction.timestamp
        if age > self.config.prediction_validity_seconds:
            raise NoValidPredictionError(
                f"Latest prediction {prediction.id} expired {age}s ago "
                f"(validity {self.config.prediction_validity_seconds}s)"
            )
        return prediction

    def current_reference_price(self) -> int:
        """Latest fed price, rejected if non-positive or stale."""
        return self.current_reading().price

    def current_reading(self) -> PriceReading:
        reading = self.price_feed.latest_reading()

        if reading.price <= 0:
            raise InvalidPriceError(f"Price feed returned non-positive price {reading.price}")

        age = self.clock() - reading.updated_at
        if age > self.config.price_staleness_seconds:
            raise StalePriceError(
                f"Reference price is {age}s old "
                f"(max {self.config.price_staleness_seconds}s)"
            )
        return reading

    def get_prediction(self, db: Session, prediction_id: int) -> Optional[Prediction]:
        """Get a prediction by id."""
        return db.get(Prediction, prediction_id)

    def is_authorized(self, db: Session, forecaster: str) -> bool:
        record = db.get(Forecaster, forecaster)
        return bool(record and record.authorized)

    def list_data_sources(self, db: Session, active_only: bool = False) -> list[DataSource]:
        query = select(DataSource).order_by(DataSource.name)
        if active_only:
            query = query.where(DataSource.active.is_(True))
        return list(db.scalars(query).all())

    # ========================================================================
    # GOVERNANCE
    # ========================================================================

    def _require_admin(self, caller: str) -> None:
        if caller != self.admin:
            raise NotRegistryAdminError(f"{caller} is not the registry admin")

    @non_reentrant
    def authorize_forecaster(
        self,
        db: Session,
        caller: str,
        forecaster: str,
        authorized: bool = True,
    ) -> Forecaster:
        """Grant or revoke a forecaster's right to submit."""
        self._require_admin(caller)
        if not forecaster:
            raise ParameterOutOfBoundsError("Forecaster address must not be empty")

        with atomic(db):
            record = db.get(Forecaster, forecaster)
            if record is None:
                record = Forecaster(address=forecaster)
                db.add(record)
            record.authorized = authorized
            record.updated_at = self.clock()

        logger.info(
            f"Forecaster {forecaster} {'authorized' if authorized else 'revoked'}"
        )
        return record

    def revoke_forecaster(self, db: Session, caller: str, forecaster: str) -> Forecaster:
        return self.authorize_forecaster(db, caller, forecaster, authorized=False)

    @non_reentrant
    def deactivate_prediction(
        self, db: Session, caller: str, prediction_id: int
    ) -> Prediction:
        """Withdraw a prediction so latest() no longer returns it."""
        self._require_admin(caller)

        with atomic(db):
            prediction = db.get(Prediction, prediction_id)
            if prediction is None:
                raise ParameterOutOfBoundsError(f"Prediction {prediction_id} not found")
            prediction.active = False

        logger.info(f"Prediction {prediction_id} deactivated")
        return prediction

    @non_reentrant
    def set_data_source(
        self,
        db: Session,
        caller: str,
        name: str,
        weight: int,
        active: bool = True,
    ) -> DataSource:
        """Create or update weighted data-source metadata."""
        self._require_admin(caller)
        if not name or not name.strip():
            raise ParameterOutOfBoundsError("Data source name must not be empty")
        if not (0 <= weight <= 100):
            raise ParameterOutOfBoundsError(
                f"Data source weight must be between 0 and 100, got {weight}"
            )

        with atomic(db):
            source = db.get(DataSource, name)
            if source is None:
                source = DataSource(name=name)
                db.add(source)
            source.weight = weight
            source.active = active
            source.updated_at = self.clock()

        logger.info(f"Data source {name}: weight={weight} active={active}")
        return source
