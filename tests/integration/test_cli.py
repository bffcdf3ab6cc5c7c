"""
Integration Tests: Operator CLI

Test cases:
- Publish a price, authorize a forecaster, submit a forecast, start a round
- Domain errors are reported with a non-zero exit code
- Price publishing needs the stored price feed
"""

import pytest

from augury.__main__ import main
from augury.config import get_settings
from augury.database import get_db_context
from augury.runtime import build_runtime
from tests.conftest import FORECASTER, OPERATOR, REGISTRY_ADMIN


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("OPERATOR_ADDRESS", OPERATOR)
    monkeypatch.setenv("REGISTRY_ADMIN_ADDRESS", REGISTRY_ADMIN)
    monkeypatch.setenv("PAPER_MODE", "true")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("PRICE_FEED", raising=False)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


def test_operator_round_flow(cli_env):
    assert main(["price", "4500000000000"]) == 0
    assert main(["authorize", FORECASTER]) == 0
    assert main(["forecast", FORECASTER, "4600000000000", "80", "ipfs://analysis"]) == 0
    assert main(["start"]) == 0

    runtime = build_runtime(get_settings())
    try:
        with get_db_context(runtime.session_factory) as db:
            round_ = runtime.engine.latest_round(db)
            assert round_.id == 1
            assert round_.start_price == 4_500_000_000_000
            assert round_.predicted_price == 4_600_000_000_000
    finally:
        runtime.db_engine.dispose()


def test_resolve_before_end_fails(cli_env, capsys):
    main(["price", "4500000000000"])
    main(["authorize", FORECASTER])
    main(["forecast", FORECASTER, "4600000000000", "80", "ipfs://analysis"])
    main(["start"])
    capsys.readouterr()

    assert main(["resolve", "1"]) == 1
    assert "ends at" in capsys.readouterr().out


def test_start_without_price_fails(cli_env, capsys):
    main(["authorize", FORECASTER])
    main(["forecast", FORECASTER, "4600000000000", "80", "ipfs://analysis"])

    assert main(["start"]) == 1
    assert "No price has been published" in capsys.readouterr().out


def test_unauthorized_forecast_fails(cli_env):
    assert main(["forecast", "stranger", "4600000000000", "80", "ipfs://analysis"]) == 1


def test_revoke_forecaster(cli_env):
    main(["authorize", FORECASTER])
    assert main(["authorize", FORECASTER, "--revoke"]) == 0
    assert main(["forecast", FORECASTER, "4600000000000", "80", "ipfs://analysis"]) == 1


def test_zero_price_rejected(cli_env):
    assert main(["price", "0"]) == 1


def test_price_needs_stored_feed(cli_env, monkeypatch, capsys):
    monkeypatch.setenv("PRICE_FEED", "manual")
    get_settings.cache_clear()

    assert main(["price", "4500000000000"]) == 1
    assert "PRICE_FEED=stored" in capsys.readouterr().out
