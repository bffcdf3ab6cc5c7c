"""
Integration Tests: Query API

Test cases:
- Health check
- Settings, balance and pending distribution endpoints
- Round and wager lookups, including 404s for unknown ids
"""

import pytest
from fastapi.testclient import TestClient

from augury.api import create_app
from augury.schemas import WagerSide
from tests.conftest import ALICE, BOB, FORECASTER, OPERATOR, REGISTRY_ADMIN, tokens


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as client:
        yield client


@pytest.fixture
def staked_round(runtime, rt_db):
    runtime.registry.authorize_forecaster(rt_db, REGISTRY_ADMIN, FORECASTER)
    runtime.registry.submit(rt_db, FORECASTER, tokens(46000), 80, "ipfs://analysis")
    round_ = runtime.engine.start_round(rt_db, OPERATOR)
    runtime.engine.place_wager(rt_db, ALICE, round_.id, WagerSide.CORRECT, tokens(1))
    runtime.engine.place_wager(rt_db, BOB, round_.id, WagerSide.INCORRECT, tokens(2))
    return round_


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["mode"] == "paper"


def test_settings(client):
    response = client.get("/api/settings")
    assert response.status_code == 200
    body = response.json()
    assert body["operator"] == OPERATOR
    assert body["fee_percent"] == 3
    assert body["accuracy_threshold"] == 5
    assert body["paused"] is False


def test_latest_round_when_empty(client):
    assert client.get("/api/rounds/latest").status_code == 404


def test_unknown_round(client):
    response = client.get("/api/rounds/5")
    assert response.status_code == 404
    assert response.json()["code"] == "round_not_found"


def test_round_details(client, staked_round):
    response = client.get(f"/api/rounds/{staked_round.id}")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == 1
    assert body["predicted_price"] == tokens(46000)
    assert body["start_price"] == tokens(45000)
    assert body["end_price"] is None
    assert body["total_correct"] == tokens(1)
    assert body["total_incorrect"] == tokens(2)
    assert body["total_pool"] == tokens(3)
    assert body["resolved"] is False
    assert body["distributed"] is False

    assert client.get("/api/rounds/latest").json()["id"] == 1


def test_wager_lookup(client, staked_round):
    response = client.get(f"/api/rounds/{staked_round.id}/wagers/{ALICE}")
    assert response.status_code == 200
    body = response.json()
    assert body["side"] == "correct"
    assert body["amount"] == tokens(1)
    assert body["claimed"] is False

    assert client.get(f"/api/rounds/{staked_round.id}/wagers/nobody").status_code == 404
    assert client.get(f"/api/rounds/9/wagers/{ALICE}").status_code == 404


def test_balance_and_pending(client, staked_round, runtime, rt_db, clock, price_feed):
    body = client.get("/api/balance").json()
    assert body == {"held": tokens(3), "locked": tokens(3), "free": 0}

    clock.now = staked_round.end_time
    price_feed.update(tokens(46100))
    runtime.engine.resolve_round(rt_db, OPERATOR, staked_round.id)

    pending = client.get("/api/distribution/pending").json()
    assert pending == {"has_work": True, "round_ids": [staked_round.id]}
    assert client.get("/api/balance").json()["free"] == tokens(3)


def test_latest_prediction(client, runtime, rt_db):
    response = client.get("/api/predictions/latest")
    assert response.status_code == 404
    assert response.json()["code"] == "no_valid_prediction"

    runtime.registry.authorize_forecaster(rt_db, REGISTRY_ADMIN, FORECASTER)
    runtime.registry.submit(rt_db, FORECASTER, tokens(46000), 80, "ipfs://analysis")

    body = client.get("/api/predictions/latest").json()
    assert body["id"] == 1
    assert body["forecaster"] == FORECASTER
    assert body["predicted_price"] == tokens(46000)
    assert body["active"] is True


def test_data_sources(client, runtime, rt_db):
    runtime.registry.set_data_source(rt_db, REGISTRY_ADMIN, "exchange-a", 70)
    runtime.registry.set_data_source(rt_db, REGISTRY_ADMIN, "exchange-b", 30, active=False)

    all_sources = client.get("/api/data-sources").json()
    assert [s["name"] for s in all_sources] == ["exchange-a", "exchange-b"]

    active = client.get("/api/data-sources", params={"active_only": True}).json()
    assert [(s["name"], s["weight"]) for s in active] == [("exchange-a", 70)]
