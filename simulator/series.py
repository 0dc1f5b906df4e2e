"""Synthetic historical price series anchored to a current price."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta

from core.errors import InvalidInput
from core.protocols import RandomSource

# Hard positivity floor for every generated or predicted price
PRICE_FLOOR = 0.01


@dataclass(frozen=True)
class PricePoint:
    date: str  # YYYY-MM-DD
    price: float


@dataclass
class PriceSeries:
    """Chronologically ordered (date, price) pairs owned by one simulation run."""

    points: list[PricePoint] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def dates(self) -> list[str]:
        return [p.date for p in self.points]

    @property
    def prices(self) -> list[float]:
        return [p.price for p in self.points]

    @property
    def last_price(self) -> float:
        return self.points[-1].price


def date_range(start: date, days: int) -> list[str]:
    """Consecutive ISO date labels starting at `start`."""
    return [(start + timedelta(days=i)).isoformat() for i in range(days)]


def generate_price_series(
    base_price: float,
    days: int,
    volatility_factor: float,
    rng: RandomSource,
    start_date: date | None = None,
) -> PriceSeries:
    """Generate `days` synthetic daily prices starting at `base_price`.

    Each day's return mixes a bounded random walk scaled by the volatility
    factor with a slow sinusoidal cycle, so the series is not pure noise.
    Prices never drop below PRICE_FLOOR.
    """
    if days <= 0:
        raise InvalidInput(f"days must be positive, got {days}")
    if base_price <= 0:
        raise InvalidInput(f"base_price must be positive, got {base_price}")
    if not 0 < volatility_factor < 1:
        raise InvalidInput(f"volatility_factor must be in (0, 1), got {volatility_factor}")

    if start_date is None:
        start_date = date.today() - timedelta(days=days)

    prices = [max(base_price, PRICE_FLOOR)]
    for i in range(1, days):
        random_walk = rng.uniform(-1.0, 1.0)
        cycle = math.sin(i / 10) * 0.5
        change = random_walk * volatility_factor + cycle * volatility_factor / 2
        prices.append(max(prices[-1] * (1 + change), PRICE_FLOOR))

    labels = date_range(start_date, days)
    return PriceSeries([PricePoint(d, p) for d, p in zip(labels, prices)])
