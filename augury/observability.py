"""Logfire cloud observability initialization and instrumentation."""

import logging
from typing import Optional

import logfire
from fastapi import FastAPI
from sqlalchemy.engine import Engine

from augury import __version__
from augury.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(
    settings: Settings,
    engine: Optional[Engine] = None,
    app: Optional[FastAPI] = None,
) -> bool:
    """
    Initialize Logfire and instrument the settlement stack.

    Must be called once at process startup, before any jobs or requests run.

    Instruments:
    - SQLAlchemy (every settlement transaction and query)
    - FastAPI (query API requests), when an app is given
    - Python logging (bridged to Logfire)

    Args:
        settings: Application settings containing the Logfire token
        engine: Database engine to instrument
        app: FastAPI application to instrument

    Returns:
        True if Logfire was configured, False if it was skipped or failed.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="augury",
            service_version=__version__,
            environment="paper" if settings.paper_mode else "live",
        )

        if engine is not None:
            logfire.instrument_sqlalchemy(engine=engine)

        if app is not None:
            logfire.instrument_fastapi(app)

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        try:
            logfire.instrument_system_metrics()
        except Exception as metrics_error:
            logger.debug(f"System metrics instrumentation skipped: {metrics_error}")

        logger.info("Logfire cloud tracking initialized")
        return True

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
