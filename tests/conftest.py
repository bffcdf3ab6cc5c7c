"""Shared fixtures: in-memory database, fake clock, price feed and payout gateway."""

from typing import Callable, Optional

import pytest

from augury.config import ProtocolConfig, RegistryConfig
from augury.database import create_db_engine, create_session_factory, get_db_context, init_db
from augury.services import ManualPriceFeed, PredictionRegistry, RoundSettlementEngine

UNIT = 10**8

OPERATOR = "operator"
REGISTRY_ADMIN = "registry-admin"
FORECASTER = "oracle-1"
ALICE = "alice"
BOB = "bob"
CAROL = "carol"

START_TIME = 1_700_000_000
ROUND_DURATION = 24 * 60 * 60


def tokens(amount: float) -> int:
    """Whole tokens (or dollars) to base units."""
    return int(round(amount * UNIT))


class FakeClock:
    """Settable clock returning unix seconds."""

    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


class RecordingGateway:
    """Payout gateway that records transfers and can be told to fail."""

    def __init__(self) -> None:
        self.transfers: list[tuple[str, int]] = []
        self.fail = False
        self.on_transfer: Optional[Callable[[str, int], None]] = None

    def transfer(self, recipient: str, amount: int) -> None:
        if self.on_transfer is not None:
            self.on_transfer(recipient, amount)
        if self.fail:
            raise ConnectionError("payout rail unavailable")
        self.transfers.append((recipient, amount))

    def total_sent_to(self, recipient: str) -> int:
        return sum(amount for to, amount in self.transfers if to == recipient)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def db(session_factory):
    with get_db_context(session_factory) as session:
        yield session


@pytest.fixture
def price_feed(clock) -> ManualPriceFeed:
    return ManualPriceFeed(price=tokens(45000), clock=clock)


@pytest.fixture
def registry(price_feed, clock) -> PredictionRegistry:
    return PredictionRegistry(
        price_feed, admin=REGISTRY_ADMIN, config=RegistryConfig(), clock=clock
    )


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def protocol_config() -> ProtocolConfig:
    return ProtocolConfig()


@pytest.fixture
def engine(db, registry, gateway, clock, protocol_config) -> RoundSettlementEngine:
    engine = RoundSettlementEngine(registry, gateway, clock=clock)
    engine.initialize_settings(db, OPERATOR, protocol_config)
    return engine


@pytest.fixture
def forecaster(db, registry) -> str:
    registry.authorize_forecaster(db, REGISTRY_ADMIN, FORECASTER)
    return FORECASTER


@pytest.fixture
def submit_forecast(db, registry, forecaster):
    """Submit a forecast from the authorized forecaster."""

    def _submit(price: int = tokens(46000), confidence: int = 80, ref: str = "ipfs://analysis-1"):
        return registry.submit(db, forecaster, price, confidence, ref)

    return _submit


@pytest.fixture
def open_round(db, engine, submit_forecast):
    """Round 1: forecast 46000, reference 45000 at start."""
    submit_forecast()
    return engine.start_round(db, OPERATOR)


@pytest.fixture
def resolve(db, engine, clock, price_feed):
    """Close the betting window, publish an end price and resolve."""

    def _resolve(round_id: int, end_price: int):
        round_ = engine.get_round(db, round_id)
        if clock() < round_.end_time:
            clock.now = round_.end_time
        price_feed.update(end_price)
        return engine.resolve_round(db, OPERATOR, round_id)

    return _resolve
