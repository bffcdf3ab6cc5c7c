"""Job scheduler using APScheduler."""

import logging
from typing import NoReturn, Optional

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from augury.database import get_db_context
from augury.exceptions import ExternalDataError
from augury.models import Round
from augury.runtime import Runtime
from augury.schemas import DistributionReport
from augury.services import RoundPhase

logger = logging.getLogger(__name__)


def distribution_sweep_job(runtime: Runtime) -> Optional[DistributionReport]:
    """Check for undistributed rounds and sweep them."""
    with get_db_context(runtime.session_factory) as db:
        work = runtime.engine.check_distribution_work(db)
        if not work.has_work:
            logger.debug("Distribution sweep: nothing to do")
            return None

        report = runtime.engine.execute_distribution(db, work.round_ids)
        logger.info(
            f"Distribution sweep: {len(report.distributed)} distributed, "
            f"{len(report.skipped)} skipped, {len(report.deferred)} deferred"
        )
        return report


def auto_resolve_job(runtime: Runtime) -> Optional[Round]:
    """Resolve the latest round once its betting window has closed."""
    with get_db_context(runtime.session_factory) as db:
        engine = runtime.engine
        round_ = engine.latest_round(db)
        if round_ is None or engine.round_phase(round_) is not RoundPhase.CLOSED:
            return None

        try:
            return engine.resolve_round(db, runtime.operator, round_.id)
        except ExternalDataError as e:
            logger.warning(f"Auto-resolve of round {round_.id} deferred: {e}")
            return None


def build_scheduler(
    runtime: Runtime,
    scheduler: Optional[BaseScheduler] = None,
) -> BaseScheduler:
    """Register the settlement jobs on a scheduler (blocking by default)."""
    scheduler = scheduler or BlockingScheduler()
    config = runtime.settings.scheduler

    scheduler.add_job(
        distribution_sweep_job,
        IntervalTrigger(minutes=config.distribution_sweep_minutes),
        args=[runtime],
        id="distribution-sweep",
        name="Distribution Sweep",
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        f"Registered job: Distribution Sweep (every {config.distribution_sweep_minutes} min)"
    )

    if config.auto_resolve:
        scheduler.add_job(
            auto_resolve_job,
            IntervalTrigger(minutes=config.resolve_check_minutes),
            args=[runtime],
            id="auto-resolve",
            name="Round Auto-Resolve",
            max_instances=1,
            coalesce=True,
        )
        logger.info(
            f"Registered job: Round Auto-Resolve (every {config.resolve_check_minutes} min)"
        )

    return scheduler


def start_scheduler(runtime: Runtime) -> NoReturn:
    """Start the blocking scheduler with the settlement jobs."""
    scheduler = build_scheduler(runtime)

    try:
        logger.info("Scheduler starting...")
        logger.info(f"{len(scheduler.get_jobs())} jobs registered")
        logger.info("Press Ctrl+C to stop\n")

        scheduler.start()

    except (KeyboardInterrupt, SystemExit):
        logger.info("\nReceived interrupt signal")
        scheduler.shutdown()
        logger.info("Scheduler stopped cleanly")
