"""FastAPI query server for rounds, wagers, settings and balances."""

import logging
from typing import Any, Generator

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from augury import __version__
from augury.exceptions import AuguryError, NoValidPredictionError, RoundNotFoundError
from augury.runtime import Runtime
from augury.schemas import (
    BalanceResponse,
    DataSourceResponse,
    DistributionWork,
    PredictionResponse,
    ProtocolSettingsResponse,
    RoundResponse,
    WagerResponse,
)

logger = logging.getLogger(__name__)


def create_app(runtime: Runtime) -> FastAPI:
    """Build the query API bound to one runtime."""
    app = FastAPI(title="Augury API", version=__version__)
    engine = runtime.engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime.settings.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_db() -> Generator[Session, None, None]:
        db = runtime.session_factory()
        try:
            yield db
        finally:
            db.close()

    @app.exception_handler(AuguryError)
    async def augury_error_handler(request: Request, exc: AuguryError) -> JSONResponse:
        not_found = (RoundNotFoundError, NoValidPredictionError)
        status_code = 404 if isinstance(exc, not_found) else 409
        logger.debug(f"{request.url.path} -> {status_code} {exc.code}: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code},
        )

    # ========================================================================
    # Health
    # ========================================================================

    @app.get("/health", tags=["Health"])
    def health_check(db: Session = Depends(get_db)) -> dict[str, Any]:
        """Health check for load balancers and monitoring."""
        try:
            db.execute(text("SELECT 1"))
            db_connected = True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            db_connected = False

        return {
            "status": "healthy" if db_connected else "degraded",
            "service": "augury-api",
            "version": __version__,
            "database": "connected" if db_connected else "disconnected",
            "mode": "paper" if runtime.settings.paper_mode else "live",
        }

    # ========================================================================
    # Protocol
    # ========================================================================

    @app.get("/api/settings", response_model=ProtocolSettingsResponse)
    def get_protocol_settings(db: Session = Depends(get_db)):
        return engine.get_settings(db)

    @app.get("/api/balance", response_model=BalanceResponse)
    def get_balance(db: Session = Depends(get_db)):
        """Held, locked (unresolved rounds) and free pooled balance."""
        return engine.get_balance(db)

    @app.get("/api/distribution/pending", response_model=DistributionWork)
    def get_pending_distribution(db: Session = Depends(get_db)):
        return engine.check_distribution_work(db)

    # ========================================================================
    # Rounds
    # ========================================================================

    @app.get("/api/rounds/latest", response_model=RoundResponse)
    def get_latest_round(db: Session = Depends(get_db)):
        round_ = engine.latest_round(db)
        if round_ is None:
            raise HTTPException(status_code=404, detail="No rounds yet")
        return round_

    @app.get("/api/rounds/{round_id}", response_model=RoundResponse)
    def get_round(round_id: int, db: Session = Depends(get_db)):
        return engine.get_round(db, round_id)

    @app.get(
        "/api/rounds/{round_id}/wagers/{participant}",
        response_model=WagerResponse,
    )
    def get_wager(round_id: int, participant: str, db: Session = Depends(get_db)):
        """A participant's wager in a round."""
        engine.get_round(db, round_id)
        wager = engine.get_wager(db, round_id, participant)
        if wager is None:
            raise HTTPException(
                status_code=404,
                detail=f"No wager from {participant} in round {round_id}",
            )
        return wager

    # ========================================================================
    # Registry
    # ========================================================================

    @app.get("/api/predictions/latest", response_model=PredictionResponse)
    def get_latest_prediction(db: Session = Depends(get_db)):
        """Forecast the next round would open with."""
        return runtime.registry.latest(db)

    @app.get("/api/data-sources", response_model=list[DataSourceResponse])
    def list_data_sources(active_only: bool = False, db: Session = Depends(get_db)):
        return runtime.registry.list_data_sources(db, active_only=active_only)

    return app
