"""Fixtures wiring a full runtime against a file-backed SQLite database."""

import pytest

from augury.config import Settings
from augury.database import get_db_context
from augury.runtime import build_runtime
from tests.conftest import OPERATOR, REGISTRY_ADMIN


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        operator_address=OPERATOR,
        registry_admin_address=REGISTRY_ADMIN,
        _env_file=None,
    )


@pytest.fixture
def runtime(app_settings, price_feed, gateway, clock):
    runtime = build_runtime(
        app_settings, price_feed=price_feed, payout_gateway=gateway, clock=clock
    )
    yield runtime
    runtime.db_engine.dispose()


@pytest.fixture
def rt_db(runtime):
    with get_db_context(runtime.session_factory) as session:
        yield session
