"""Wiring of the database, registry and settlement engine for one process."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from augury.config import Settings
from augury.database import create_db_engine, create_session_factory, get_db_context, init_db
from augury.services import (
    Clock,
    ManualPriceFeed,
    PaperPayoutGateway,
    PayoutGateway,
    PredictionRegistry,
    PriceFeed,
    ReentrancyGuard,
    RoundSettlementEngine,
    StoredPriceFeed,
    system_clock,
)

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Everything a job, request handler or CLI command needs."""

    settings: Settings
    db_engine: Engine
    session_factory: sessionmaker
    price_feed: PriceFeed
    registry: PredictionRegistry
    engine: RoundSettlementEngine

    @property
    def operator(self) -> str:
        return self.settings.operator_address


def build_runtime(
    settings: Settings,
    price_feed: Optional[PriceFeed] = None,
    payout_gateway: Optional[PayoutGateway] = None,
    clock: Clock = system_clock,
) -> Runtime:
    """
    Create tables, wire services and make sure the settings row exists.

    Live mode needs an explicit payout gateway; paper mode records payouts
    in memory. Without an explicit price feed, prices are read from the
    price_points table (or an in-process feed when configured, paper mode
    only).
    """
    if price_feed is None and settings.price_feed == "manual" and not settings.paper_mode:
        raise RuntimeError(
            "The in-process price feed cannot be used in live mode. "
            "Set PRICE_FEED=stored or supply a price feed."
        )
    if payout_gateway is None:
        if not settings.paper_mode:
            raise RuntimeError(
                "Live mode requires a payout gateway. Set PAPER_MODE=true or supply one."
            )
        payout_gateway = PaperPayoutGateway(clock=clock)

    if not settings.database_url:
        settings.data_dir.mkdir(parents=True, exist_ok=True)

    db_engine = create_db_engine(settings.get_database_url())
    init_db(db_engine)
    session_factory = create_session_factory(db_engine)

    if price_feed is None:
        if settings.price_feed == "manual":
            price_feed = ManualPriceFeed(clock=clock)
        else:
            price_feed = StoredPriceFeed(session_factory, clock=clock)

    # One guard for both services: no registry write may run mid-transfer
    guard = ReentrancyGuard()
    registry = PredictionRegistry(
        price_feed,
        admin=settings.get_registry_admin(),
        config=settings.registry,
        clock=clock,
        guard=guard,
    )
    engine = RoundSettlementEngine(registry, payout_gateway, clock=clock, guard=guard)

    with get_db_context(session_factory) as db:
        engine.initialize_settings(db, settings.operator_address, settings.protocol)

    logger.info(
        f"Runtime ready ({'paper' if settings.paper_mode else 'live'} mode, "
        f"operator={settings.operator_address})"
    )
    return Runtime(
        settings=settings,
        db_engine=db_engine,
        session_factory=session_factory,
        price_feed=price_feed,
        registry=registry,
        engine=engine,
    )
