"""Integer settlement arithmetic: deviation, outcome, reward pool and payout share.

These pure functions are used by the round engine at resolution, distribution
and claim time. All values are non-negative integers in base units and every
division truncates.
"""


def calculate_deviation_pct(predicted: int, actual: int, reference: int) -> int:
    """Absolute deviation of predicted from actual, in whole percent of reference."""
    if reference <= 0:
        raise ValueError(f"Reference price must be positive, got {reference}")
    if predicted < 0 or actual < 0:
        raise ValueError(
            f"Prices must be non-negative, got predicted={predicted} actual={actual}"
        )

    return abs(predicted - actual) * 100 // reference


def is_forecast_correct(
    predicted: int,
    actual: int,
    reference: int,
    accuracy_threshold: int,
) -> bool:
    """A forecast is correct when its deviation is at most the threshold (inclusive)."""
    return calculate_deviation_pct(predicted, actual, reference) <= accuracy_threshold


def calculate_reward_pool(total_pool: int, fee_percent: int) -> int:
    """Pool left for winners after the protocol fee."""
    if total_pool < 0:
        raise ValueError(f"Total pool must be non-negative, got {total_pool}")
    if not (0 <= fee_percent <= 100):
        raise ValueError(f"Fee percent must be between 0 and 100, got {fee_percent}")

    return total_pool * (100 - fee_percent) // 100


def calculate_reward(reward_pool: int, wager_amount: int, winning_total: int) -> int:
    """Proportional share of the reward pool for one winning wager."""
    if winning_total <= 0:
        raise ValueError(f"Winning-side total must be positive, got {winning_total}")
    if wager_amount > winning_total:
        raise ValueError(
            f"Wager amount {wager_amount} exceeds winning-side total {winning_total}"
        )

    return reward_pool * wager_amount // winning_total
