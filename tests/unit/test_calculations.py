"""
Unit Tests: Settlement Arithmetic

Test cases:
- Deviation truncates to whole percent of the start reference
- Threshold comparison is inclusive
- Fee deduction from the total pool
- Proportional reward share with truncation
"""

import pytest

from augury.services.calculations import (
    calculate_deviation_pct,
    calculate_reward,
    calculate_reward_pool,
    is_forecast_correct,
)
from tests.conftest import tokens


def test_deviation_truncates():
    # |46000 - 46100| * 100 / 45000 = 0.22 -> 0
    assert calculate_deviation_pct(tokens(46000), tokens(46100), tokens(45000)) == 0
    # |46000 - 48000| * 100 / 45000 = 4.44 -> 4
    assert calculate_deviation_pct(tokens(46000), tokens(48000), tokens(45000)) == 4


def test_deviation_is_symmetric():
    above = calculate_deviation_pct(tokens(46000), tokens(47000), tokens(45000))
    below = calculate_deviation_pct(tokens(47000), tokens(46000), tokens(45000))
    assert above == below == 2


def test_deviation_rejects_non_positive_reference():
    with pytest.raises(ValueError):
        calculate_deviation_pct(tokens(1), tokens(1), 0)


def test_threshold_is_inclusive():
    # |46000 - 47350| * 100 / 45000 = 3 exactly
    assert is_forecast_correct(tokens(46000), tokens(47350), tokens(45000), 3)
    assert not is_forecast_correct(tokens(46000), tokens(47350), tokens(45000), 2)


def test_zero_threshold_requires_sub_percent_accuracy():
    assert is_forecast_correct(tokens(46000), tokens(46100), tokens(45000), 0)
    assert not is_forecast_correct(tokens(46000), tokens(46500), tokens(45000), 0)


def test_reward_pool_deducts_fee():
    assert calculate_reward_pool(tokens(3), 3) == 291_000_000
    assert calculate_reward_pool(tokens(3), 0) == tokens(3)
    assert calculate_reward_pool(0, 3) == 0


def test_reward_pool_truncates():
    assert calculate_reward_pool(101, 3) == 97  # 97.97 -> 97


def test_reward_pool_rejects_bad_fee():
    with pytest.raises(ValueError):
        calculate_reward_pool(100, 101)


def test_reward_share():
    pool = calculate_reward_pool(tokens(3), 3)
    assert calculate_reward(pool, tokens(1), tokens(1)) == 291_000_000
    assert calculate_reward(pool, tokens(1), tokens(2)) == 145_500_000


def test_reward_shares_never_exceed_pool():
    pool = 1_000
    winners = [1, 1, 1]
    paid = sum(calculate_reward(pool, amount, sum(winners)) for amount in winners)
    assert paid == 999
    assert paid <= pool


def test_reward_requires_winners():
    with pytest.raises(ValueError):
        calculate_reward(1_000, 1, 0)
