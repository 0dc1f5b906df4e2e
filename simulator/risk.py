"""Bounds and risk estimation for a forecast.

Deterministic formulas are plain functions. The stochastic inputs (the
volatility and volume scores and the yield/gas draws) come from an injected
RandomSource, and the two scores can also be passed explicitly.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from core.models.simulations import Tier
from core.protocols import RandomSource
from simulator.series import PriceSeries

BOUND_MULTIPLIERS: dict[str, float] = {
    "Low": 0.05,
    "Medium": 0.15,
    "High": 0.25,
}

CONFIDENCE_DAMPING = 0.3
TRANSACTION_COST_PERCENT = 0.3
YIELD_RANGE = (5.0, 15.0)
# Gas fee is base_gas_price times a factor in this range
GAS_FEE_FACTOR_RANGE = (3.0, 5.0)


@dataclass(frozen=True)
class RiskEstimate:
    confidence_percent: int
    volatility_score: float
    volatility_tier: Tier
    upper_bounds: list[float]
    lower_bounds: list[float]
    yield_percent: float
    gas_fee_estimate: float
    impermanent_loss_percent: float
    volume_score: float
    liquidity_impact_tier: Tier
    break_even_price: float


def volatility_tier(score: float) -> Tier:
    if score < 0.3:
        return "Low"
    if score < 0.7:
        return "Medium"
    return "High"


def liquidity_impact_tier(volume_score: float) -> Tier:
    """Low trading volume means a high price impact."""
    if volume_score < 0.3:
        return "High"
    if volume_score < 0.7:
        return "Medium"
    return "Low"


def apply_bounds(predictions: Sequence[float], tier: Tier) -> tuple[list[float], list[float]]:
    """Return (upper_bounds, lower_bounds) for a known volatility tier."""
    try:
        multiplier = BOUND_MULTIPLIERS[tier]
    except KeyError:
        raise ValueError(f"Unknown volatility tier: {tier!r}") from None
    upper = [p * (1 + multiplier) for p in predictions]
    lower = [p * (1 - multiplier) for p in predictions]
    return upper, lower


def confidence_percent(volatility_score: float) -> int:
    return round((1 - volatility_score * CONFIDENCE_DAMPING) * 100)


def percent_change(start: float, end: float) -> float:
    return (end - start) / start * 100


def impermanent_loss_percent(last_actual: float, last_predicted: float) -> float:
    """Constant-product AMM impermanent loss for the forecast deviation."""
    deviation = abs(percent_change(last_actual, last_predicted)) / 100
    loss = 2 * math.sqrt(deviation + 1) / (deviation + 1) - 1
    return abs(loss * 100)


def break_even_price(entry_price: float, transaction_cost_percent: float = TRANSACTION_COST_PERCENT) -> float:
    return entry_price * (1 + transaction_cost_percent / 100)


def estimate_risk(
    series: PriceSeries,
    predictions: Sequence[float],
    base_gas_price: float,
    rng: RandomSource,
    volatility_score: float | None = None,
    volume_score: float | None = None,
    transaction_cost_percent: float = TRANSACTION_COST_PERCENT,
) -> RiskEstimate:
    """Derive confidence, bounds and auxiliary metrics for a forecast.

    Random draws happen in a fixed order: volatility score, yield, gas fee,
    volume score. A score passed explicitly skips its draw.
    """
    if not predictions:
        raise ValueError("predictions must not be empty")

    if volatility_score is None:
        volatility_score = rng.random()
    tier = volatility_tier(volatility_score)
    upper, lower = apply_bounds(predictions, tier)

    yield_low, yield_high = YIELD_RANGE
    yield_value = yield_low + rng.random() * (yield_high - yield_low)
    gas_low, gas_high = GAS_FEE_FACTOR_RANGE
    gas_fee = base_gas_price * (gas_low + rng.random() * (gas_high - gas_low))

    if volume_score is None:
        volume_score = rng.random()

    last_actual = series.last_price
    return RiskEstimate(
        confidence_percent=confidence_percent(volatility_score),
        volatility_score=volatility_score,
        volatility_tier=tier,
        upper_bounds=upper,
        lower_bounds=lower,
        yield_percent=yield_value,
        gas_fee_estimate=gas_fee,
        impermanent_loss_percent=impermanent_loss_percent(last_actual, predictions[-1]),
        volume_score=volume_score,
        liquidity_impact_tier=liquidity_impact_tier(volume_score),
        break_even_price=break_even_price(last_actual, transaction_cost_percent),
    )
