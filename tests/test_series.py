import math
import random
from datetime import date

import pytest

from conftest import ScriptedRandom
from core.errors import InvalidInput
from simulator.series import PRICE_FLOOR, date_range, generate_price_series


@pytest.mark.parametrize("seed", range(20))
@pytest.mark.parametrize("volatility_factor", [0.01, 0.3, 0.99])
def test_prices_are_always_positive(seed, volatility_factor):
    series = generate_price_series(5.0, 60, volatility_factor, random.Random(seed))
    assert len(series) == 60
    assert all(p > 0 for p in series.prices)


def test_floor_holds_under_worst_case_draws():
    # Every draw is the most negative random walk
    series = generate_price_series(0.02, 200, 0.99, ScriptedRandom([0.0]))
    assert min(series.prices) == PRICE_FLOOR
    assert all(p >= PRICE_FLOOR for p in series.prices)


def test_series_starts_at_base_price_with_consecutive_dates():
    series = generate_price_series(
        3245.67, 30, 0.03, random.Random(1), start_date=date(2024, 1, 30),
    )
    assert series.prices[0] == 3245.67
    assert series.dates[0] == "2024-01-30"
    assert series.dates[1] == "2024-01-31"
    assert series.dates[2] == "2024-02-01"
    assert series.dates[-1] == "2024-02-28"


def test_same_seed_gives_same_series():
    a = generate_price_series(100.0, 30, 0.05, random.Random(7))
    b = generate_price_series(100.0, 30, 0.05, random.Random(7))
    assert a.prices == b.prices


def test_neutral_draw_follows_cycle_only():
    # uniform(-1, 1) with u=0.5 is 0, leaving only the sinusoidal term
    series = generate_price_series(100.0, 2, 0.1, ScriptedRandom([0.5]))
    expected = 100.0 * (1 + math.sin(1 / 10) * 0.5 * 0.1 / 2)
    assert series.prices[1] == pytest.approx(expected, abs=1e-12)


@pytest.mark.parametrize(
    "base_price, days, factor",
    [(0, 30, 0.03), (-1, 30, 0.03), (100, 0, 0.03), (100, -5, 0.03), (100, 30, 0), (100, 30, 1.0)],
)
def test_invalid_input_is_rejected(base_price, days, factor):
    rng = ScriptedRandom([0.5])
    with pytest.raises(InvalidInput):
        generate_price_series(base_price, days, factor, rng)
    assert rng.calls == 0


def test_date_range_crosses_month_end():
    assert date_range(date(2024, 2, 28), 3) == ["2024-02-28", "2024-02-29", "2024-03-01"]
