"""Position recommendation from the forecast delta."""

from __future__ import annotations

import math

THRESHOLD_PERCENT = 5.0


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def recommend(asset_name: str, last_actual_price: float, last_predicted_price: float) -> str:
    """Map the predicted move into a textual recommendation.

    Moves above +5% suggest increasing by half the move, below -5% suggest
    reducing by half the move, anything in between means hold.
    """
    delta = (last_predicted_price - last_actual_price) / last_actual_price * 100

    if delta > THRESHOLD_PERCENT:
        return (
            f"Consider increasing your {asset_name} position by "
            f"{_round_half_up(delta / 2)}% based on current simulation data."
        )
    if delta < -THRESHOLD_PERCENT:
        return (
            f"Consider reducing your {asset_name} position by "
            f"{_round_half_up(abs(delta) / 2)}% based on current simulation data."
        )
    return (
        f"Your current {asset_name} position appears optimal based on simulation data. "
        "Consider maintaining current levels."
    )
