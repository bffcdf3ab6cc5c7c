"""Augury CLI entry point."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path.cwd() / ".env"
load_dotenv(env_file)

from augury import __version__
from augury.config import get_settings
from augury.database import get_db_context
from augury.exceptions import AuguryError
from augury.runtime import Runtime, build_runtime
from augury.services import StoredPriceFeed

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# Augury Configuration
# Operational parameters for the round settlement engine.
# Identities and secrets belong in .env, not here.
# Amounts are integer base units (8 decimals); durations are seconds.

protocol:
  fee_percent: 3
  accuracy_threshold: 5
  auto_distribution: true
  min_stake: 1000000
  max_stake: 10000000000
  round_duration_seconds: 86400
  min_confidence: 60
  max_forecast_age_seconds: 3600

registry:
  min_confidence: 50
  max_confidence: 100
  prediction_validity_seconds: 86400
  price_staleness_seconds: 3600

scheduler:
  distribution_sweep_minutes: 5
  resolve_check_minutes: 1
  auto_resolve: true

api:
  host: 127.0.0.1
  port: 8000
  allowed_origins:
    - http://localhost:3000
"""


def _init_logfire(runtime: Runtime, app=None) -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from augury.observability import initialize_logfire

        initialize_logfire(runtime.settings, engine=runtime.db_engine, app=app)
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory, configuration file and database."""
    data_dir = Path("data").resolve()

    try:
        data_dir.mkdir(exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        get_settings.cache_clear()
        settings = get_settings()
        build_runtime(settings)

        print(f"\n✓ Augury initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Set OPERATOR_ADDRESS (and REGISTRY_ADMIN_ADDRESS) in .env")
        print("2. Review and customize data/config.yaml if needed")
        print("3. Run 'python -m augury config' to verify configuration")
        print("4. Publish a price with 'python -m augury price <base units>'")
        print("5. Run 'python -m augury run' to start the settlement jobs\n")

        return 0

    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Augury Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}")
        print(f"Database: {settings.get_database_url()}")
        print(f"Mode: {'PAPER' if settings.paper_mode else 'LIVE'}")
        print(f"Price Feed: {settings.price_feed}\n")

        print("Identities:")
        print(f"  Operator: {settings.operator_address}")
        print(f"  Registry Admin: {settings.get_registry_admin()}\n")

        protocol = settings.protocol
        print("Protocol:")
        print(f"  Fee: {protocol.fee_percent}%")
        print(f"  Accuracy Threshold: {protocol.accuracy_threshold}%")
        print(f"  Auto Distribution: {protocol.auto_distribution}")
        print(f"  Stake Limits: {protocol.min_stake:,} - {protocol.max_stake:,}")
        print(f"  Round Duration: {protocol.round_duration_seconds}s")
        print(f"  Min Forecast Confidence: {protocol.min_confidence}%")
        print(f"  Max Forecast Age: {protocol.max_forecast_age_seconds}s\n")

        registry = settings.registry
        print("Registry:")
        print(f"  Confidence Bounds: {registry.min_confidence}-{registry.max_confidence}%")
        print(f"  Prediction Validity: {registry.prediction_validity_seconds}s")
        print(f"  Price Staleness: {registry.price_staleness_seconds}s\n")

        print("Scheduler (minutes):")
        print(f"  Distribution Sweep: {settings.scheduler.distribution_sweep_minutes}")
        print(f"  Resolve Check: {settings.scheduler.resolve_check_minutes}")
        print(f"  Auto Resolve: {settings.scheduler.auto_resolve}\n")

        print(f"Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


def cmd_status(args: argparse.Namespace) -> int:
    """Display protocol settings, latest round and balances."""
    try:
        runtime = build_runtime(get_settings())
        engine = runtime.engine

        with runtime.session_factory() as db:
            protocol = engine.get_settings(db)
            balance = engine.get_balance(db)
            round_ = engine.latest_round(db)
            work = engine.check_distribution_work(db)

            print("\n=== Augury Status ===\n")
            print(f"Paused: {protocol.paused}")
            print(f"Fee: {protocol.fee_percent}%  Threshold: {protocol.accuracy_threshold}%")
            print(f"Auto Distribution: {protocol.auto_distribution}\n")

            print("Balance:")
            print(f"  Held: {balance.held:,}")
            print(f"  Locked: {balance.locked:,}")
            print(f"  Free: {balance.free:,}\n")

            if round_ is None:
                print("Latest Round: (None)\n")
            else:
                print(f"Latest Round: #{round_.id} ({engine.round_phase(round_).value})")
                print(f"  Predicted: {round_.predicted_price:,} @ {round_.confidence}%")
                print(f"  Start Price: {round_.start_price:,}")
                if round_.end_price is not None:
                    outcome = "correct" if round_.forecast_won else "incorrect"
                    print(f"  End Price: {round_.end_price:,} (forecast {outcome})")
                print(f"  Pool: {round_.total_pool:,} "
                      f"(correct {round_.total_correct:,} / incorrect {round_.total_incorrect:,})\n")

            print(f"Rounds awaiting distribution: {len(work.round_ids)}\n")

        return 0

    except Exception as e:
        logger.error(f"Failed to read status: {e}")
        print(f"\n❌ Failed to read status: {e}\n")
        return 1


def cmd_price(args: argparse.Namespace) -> int:
    """Publish a reference price to the price_points table."""
    try:
        runtime = build_runtime(get_settings())
        if not isinstance(runtime.price_feed, StoredPriceFeed):
            print("\n❌ Publishing prices needs PRICE_FEED=stored\n")
            return 1

        with get_db_context(runtime.session_factory) as db:
            point = runtime.price_feed.publish(db, args.price, source=args.source)

        print(f"\n✓ Price {point.price:,} published at {point.recorded_at}\n")
        return 0

    except AuguryError as e:
        print(f"\n❌ {e}\n")
        return 1
    except Exception as e:
        logger.error(f"Failed to publish price: {e}")
        print(f"\n❌ Failed to publish price: {e}\n")
        return 1


def cmd_authorize(args: argparse.Namespace) -> int:
    """Authorize or revoke a forecaster as the registry admin."""
    try:
        runtime = build_runtime(get_settings())
        admin = runtime.settings.get_registry_admin()

        with get_db_context(runtime.session_factory) as db:
            if args.revoke:
                runtime.registry.revoke_forecaster(db, admin, args.forecaster)
            else:
                runtime.registry.authorize_forecaster(db, admin, args.forecaster)

        print(f"\n✓ {args.forecaster} {'revoked' if args.revoke else 'authorized'}\n")
        return 0

    except AuguryError as e:
        print(f"\n❌ {e}\n")
        return 1
    except Exception as e:
        logger.error(f"Failed to update forecaster: {e}")
        print(f"\n❌ Failed to update forecaster: {e}\n")
        return 1


def cmd_forecast(args: argparse.Namespace) -> int:
    """Submit a forecast on behalf of an authorized forecaster."""
    try:
        runtime = build_runtime(get_settings())

        with get_db_context(runtime.session_factory) as db:
            prediction = runtime.registry.submit(
                db, args.forecaster, args.price, args.confidence, args.ref
            )

        print(f"\n✓ Prediction #{prediction.id} recorded: "
              f"{prediction.predicted_price:,} @ {prediction.confidence}%\n")
        return 0

    except AuguryError as e:
        print(f"\n❌ {e}\n")
        return 1
    except Exception as e:
        logger.error(f"Failed to submit forecast: {e}")
        print(f"\n❌ Failed to submit forecast: {e}\n")
        return 1


def cmd_start(args: argparse.Namespace) -> int:
    """Start a round from the latest forecast."""
    try:
        runtime = build_runtime(get_settings())

        with get_db_context(runtime.session_factory) as db:
            round_ = runtime.engine.start_round(db, runtime.operator)

        print(f"\n✓ Round #{round_.id} started, ends at {round_.end_time}\n")
        return 0

    except AuguryError as e:
        print(f"\n❌ {e}\n")
        return 1
    except Exception as e:
        logger.error(f"Failed to start round: {e}")
        print(f"\n❌ Failed to start round: {e}\n")
        return 1


def cmd_resolve(args: argparse.Namespace) -> int:
    """Resolve an ended round against the current reference price."""
    try:
        runtime = build_runtime(get_settings())

        with get_db_context(runtime.session_factory) as db:
            round_ = runtime.engine.resolve_round(db, runtime.operator, args.round_id)

        outcome = "correct" if round_.forecast_won else "incorrect"
        print(f"\n✓ Round #{round_.id} resolved at {round_.end_price:,} "
              f"(forecast {outcome})\n")
        return 0

    except AuguryError as e:
        print(f"\n❌ {e}\n")
        return 1
    except Exception as e:
        logger.error(f"Failed to resolve round: {e}")
        print(f"\n❌ Failed to resolve round: {e}\n")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Start the settlement scheduler."""
    try:
        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        settings = get_settings()
        runtime = build_runtime(settings)
        _init_logfire(runtime)

        print("\n=== Augury Settlement Engine ===\n")
        print(f"Version: {__version__}")
        print(f"Mode: {'PAPER' if settings.paper_mode else 'LIVE'}")
        print(f"Operator: {settings.operator_address}")
        print(f"Data Directory: {settings.data_dir}\n")

        if args.once:
            from augury.scheduler import auto_resolve_job, distribution_sweep_job

            print("Running resolve check and distribution sweep once...\n")
            auto_resolve_job(runtime)
            distribution_sweep_job(runtime)
            print("\nRun complete.\n")
            return 0

        from augury.scheduler import start_scheduler

        print("Starting scheduler...\n")
        start_scheduler(runtime)

        return 0

    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except Exception as e:
        logger.error(f"Failed to start system: {e}", exc_info=True)
        print(f"\nFailed to start: {e}\n")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the read-only query API."""
    try:
        import uvicorn

        from augury.api import create_app

        settings = get_settings()
        runtime = build_runtime(settings)
        app = create_app(runtime)
        _init_logfire(runtime, app=app)

        uvicorn.run(
            app,
            host=args.host or settings.api.host,
            port=args.port or settings.api.port,
        )
        return 0

    except Exception as e:
        logger.error(f"Failed to serve API: {e}", exc_info=True)
        print(f"\nFailed to serve API: {e}\n")
        return 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Augury: round-based forecast settlement engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Augury {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory, configuration and database",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_status = subparsers.add_parser(
        "status",
        help="Display protocol settings, latest round and balances",
    )
    parser_status.set_defaults(func=cmd_status)

    parser_price = subparsers.add_parser(
        "price",
        help="Publish a reference price (base units)",
    )
    parser_price.add_argument("price", type=int, help="Price in base units")
    parser_price.add_argument("--source", default="operator", help="Price source label")
    parser_price.set_defaults(func=cmd_price)

    parser_authorize = subparsers.add_parser(
        "authorize",
        help="Authorize a forecaster (registry admin)",
    )
    parser_authorize.add_argument("forecaster", help="Forecaster address")
    parser_authorize.add_argument(
        "--revoke",
        action="store_true",
        help="Revoke instead of authorize",
    )
    parser_authorize.set_defaults(func=cmd_authorize)

    parser_forecast = subparsers.add_parser(
        "forecast",
        help="Submit a forecast as an authorized forecaster",
    )
    parser_forecast.add_argument("forecaster", help="Forecaster address")
    parser_forecast.add_argument("price", type=int, help="Predicted price in base units")
    parser_forecast.add_argument("confidence", type=int, help="Confidence percent")
    parser_forecast.add_argument("ref", help="Analysis reference (e.g. ipfs://...)")
    parser_forecast.set_defaults(func=cmd_forecast)

    parser_start = subparsers.add_parser(
        "start",
        help="Start a round from the latest forecast",
    )
    parser_start.set_defaults(func=cmd_start)

    parser_resolve = subparsers.add_parser(
        "resolve",
        help="Resolve an ended round",
    )
    parser_resolve.add_argument("round_id", type=int, help="Round number")
    parser_resolve.set_defaults(func=cmd_resolve)

    parser_run = subparsers.add_parser(
        "run",
        help="Start the settlement scheduler",
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_run.add_argument(
        "--once",
        action="store_true",
        help="Run the resolve check and distribution sweep once then exit",
    )
    parser_run.set_defaults(func=cmd_run)

    parser_serve = subparsers.add_parser(
        "serve",
        help="Serve the read-only query API",
    )
    parser_serve.add_argument("--host", default=None, help="Bind address")
    parser_serve.add_argument("--port", type=int, default=None, help="Bind port")
    parser_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
