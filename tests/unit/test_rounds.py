"""
Unit Tests: Round Lifecycle

Test cases:
- Starting rounds (sequencing, forecast freshness and confidence)
- Placing wagers (window, stake bounds, duplicates, side totals)
- Resolution (timing, outcome, fee snapshot)
"""

import pytest

from augury.exceptions import (
    AlreadyResolvedError,
    DuplicateWagerError,
    LowConfidenceError,
    NotOperatorError,
    NoValidPredictionError,
    ParameterOutOfBoundsError,
    PreviousRoundActiveError,
    RoundClosedError,
    RoundNotEndedError,
    RoundNotFoundError,
    StakeOutOfBoundsError,
    StaleForecastError,
    StalePriceError,
)
from augury.models import Wager
from augury.schemas import WagerSide
from augury.services import RoundPhase
from tests.conftest import ALICE, BOB, OPERATOR, ROUND_DURATION, START_TIME, tokens


# ============================================================================
# Starting rounds
# ============================================================================


def test_start_first_round(db, engine, open_round):
    assert open_round.id == 1
    assert open_round.prediction_id == 1
    assert open_round.predicted_price == tokens(46000)
    assert open_round.start_price == tokens(45000)
    assert open_round.confidence == 80
    assert open_round.start_time == START_TIME
    assert open_round.end_time == START_TIME + ROUND_DURATION
    assert open_round.resolved is False
    assert open_round.total_pool == 0
    assert engine.round_phase(open_round) is RoundPhase.OPEN


def test_start_round_requires_operator(db, engine, submit_forecast):
    submit_forecast()
    with pytest.raises(NotOperatorError):
        engine.start_round(db, ALICE)


def test_start_round_without_forecast(db, engine):
    with pytest.raises(NoValidPredictionError):
        engine.start_round(db, OPERATOR)


def test_start_round_rejects_stale_forecast(db, engine, submit_forecast, clock, price_feed):
    submit_forecast()
    clock.advance(60 * 60 + 1)
    price_feed.update(tokens(45000))

    with pytest.raises(StaleForecastError):
        engine.start_round(db, OPERATOR)
    assert engine.latest_round(db) is None


def test_start_round_rejects_low_confidence(db, engine, submit_forecast):
    submit_forecast(confidence=59)
    with pytest.raises(LowConfidenceError):
        engine.start_round(db, OPERATOR)


def test_start_round_accepts_minimum_confidence(db, engine, submit_forecast):
    submit_forecast(confidence=60)
    assert engine.start_round(db, OPERATOR).id == 1


def test_start_round_rejects_stale_price(db, engine, submit_forecast, clock):
    clock.advance(60 * 60 + 1)
    submit_forecast()
    with pytest.raises(StalePriceError):
        engine.start_round(db, OPERATOR)


def test_start_round_while_previous_active(db, engine, open_round, submit_forecast):
    submit_forecast()
    with pytest.raises(PreviousRoundActiveError):
        engine.start_round(db, OPERATOR)


def test_start_round_while_previous_unresolved_after_end(
    db, engine, open_round, submit_forecast, clock, price_feed
):
    clock.now = open_round.end_time + 10
    price_feed.update(tokens(45500))
    submit_forecast()
    with pytest.raises(PreviousRoundActiveError):
        engine.start_round(db, OPERATOR)


def test_next_round_after_resolution(db, engine, open_round, resolve, submit_forecast):
    resolve(open_round.id, tokens(46100))
    submit_forecast(price=tokens(47000))

    second = engine.start_round(db, OPERATOR)

    assert second.id == 2
    assert second.prediction_id == 2
    assert second.start_price == tokens(46100)
    assert engine.latest_round(db).id == 2


# ============================================================================
# Wagers
# ============================================================================


def test_place_wager_updates_side_totals(db, engine, open_round):
    engine.place_wager(db, ALICE, open_round.id, WagerSide.CORRECT, tokens(1))
    engine.place_wager(db, BOB, open_round.id, "incorrect", tokens(2))

    round_ = engine.get_round(db, open_round.id)
    assert round_.total_correct == tokens(1)
    assert round_.total_incorrect == tokens(2)
    assert round_.total_pool == tokens(3)

    wager = engine.get_wager(db, open_round.id, ALICE)
    assert wager.side == "correct"
    assert wager.amount == tokens(1)
    assert wager.claimed is False


def test_place_wager_unknown_round(db, engine):
    with pytest.raises(RoundNotFoundError):
        engine.place_wager(db, ALICE, 7, WagerSide.CORRECT, tokens(1))


def test_place_wager_after_window(db, engine, open_round, clock):
    clock.now = open_round.end_time
    with pytest.raises(RoundClosedError):
        engine.place_wager(db, ALICE, open_round.id, WagerSide.CORRECT, tokens(1))
    assert engine.round_phase(open_round) is RoundPhase.CLOSED


def test_place_wager_just_before_end(db, engine, open_round, clock):
    clock.now = open_round.end_time - 1
    engine.place_wager(db, ALICE, open_round.id, WagerSide.INCORRECT, tokens(1))


def test_place_wager_on_resolved_round(db, engine, open_round, resolve):
    resolve(open_round.id, tokens(46100))
    with pytest.raises(RoundClosedError):
        engine.place_wager(db, ALICE, open_round.id, WagerSide.CORRECT, tokens(1))


@pytest.mark.parametrize("amount", [999_999, tokens(100) + 1])
def test_place_wager_stake_bounds(db, engine, open_round, amount):
    with pytest.raises(StakeOutOfBoundsError):
        engine.place_wager(db, ALICE, open_round.id, WagerSide.CORRECT, amount)


@pytest.mark.parametrize("amount", [1_000_000, tokens(100)])
def test_place_wager_accepts_stake_limits(db, engine, open_round, amount):
    engine.place_wager(db, ALICE, open_round.id, WagerSide.CORRECT, amount)


def test_place_wager_twice(db, engine, open_round):
    engine.place_wager(db, ALICE, open_round.id, WagerSide.CORRECT, tokens(1))
    with pytest.raises(DuplicateWagerError):
        engine.place_wager(db, ALICE, open_round.id, WagerSide.INCORRECT, tokens(1))

    round_ = engine.get_round(db, open_round.id)
    assert round_.total_correct == tokens(1)
    assert round_.total_incorrect == 0


def test_place_wager_invalid_side(db, engine, open_round):
    with pytest.raises(ParameterOutOfBoundsError):
        engine.place_wager(db, ALICE, open_round.id, "maybe", tokens(1))
    assert db.query(Wager).count() == 0


# ============================================================================
# Resolution
# ============================================================================


def test_resolve_correct_forecast(db, engine, open_round, resolve, price_feed):
    resolved = resolve(open_round.id, tokens(46100))

    assert resolved.resolved is True
    assert resolved.forecast_won is True
    assert resolved.end_price == tokens(46100)
    assert resolved.fee_percent == 3
    assert engine.round_phase(resolved) is RoundPhase.RESOLVED


def test_resolve_before_end(db, engine, open_round, clock):
    clock.now = open_round.end_time - 1
    with pytest.raises(RoundNotEndedError):
        engine.resolve_round(db, OPERATOR, open_round.id)


def test_resolve_twice(db, engine, open_round, resolve):
    resolve(open_round.id, tokens(46100))
    with pytest.raises(AlreadyResolvedError):
        engine.resolve_round(db, OPERATOR, open_round.id)


def test_resolve_requires_operator(db, engine, open_round, clock):
    clock.now = open_round.end_time
    with pytest.raises(NotOperatorError):
        engine.resolve_round(db, ALICE, open_round.id)


def test_resolve_with_stale_price_leaves_round_open(db, engine, open_round, clock):
    clock.now = open_round.end_time
    with pytest.raises(StalePriceError):
        engine.resolve_round(db, OPERATOR, open_round.id)
    assert engine.get_round(db, open_round.id).resolved is False


def test_resolve_uses_threshold_at_resolution(db, engine, open_round, resolve):
    engine.set_accuracy_threshold(db, OPERATOR, 3)
    resolved = resolve(open_round.id, tokens(48000))
    assert resolved.forecast_won is False


def test_resolve_threshold_boundary_is_correct(db, engine, open_round, resolve):
    engine.set_accuracy_threshold(db, OPERATOR, 3)
    resolved = resolve(open_round.id, tokens(47350))
    assert resolved.forecast_won is True


def test_fee_snapshot_survives_later_changes(db, engine, open_round, resolve):
    resolve(open_round.id, tokens(46100))
    engine.set_fee_percent(db, OPERATOR, 10)

    round_ = engine.get_round(db, open_round.id)
    assert round_.fee_percent == 3
