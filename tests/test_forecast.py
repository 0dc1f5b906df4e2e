import math
import random

import numpy as np
import pytest

from core.errors import InsufficientData, InvalidInput
from simulator.forecast import (
    ExponentialSmoothingModel,
    TrendForecaster,
    WindowRegressionModel,
    build_training_windows,
)
from simulator.series import PricePoint, PriceSeries, generate_price_series


def make_series(prices):
    return PriceSeries([PricePoint(f"2024-01-{i + 1:02d}", p) for i, p in enumerate(prices)])


def test_training_windows_pair_each_window_with_next_price():
    inputs, targets = build_training_windows([1, 2, 3, 4, 5], window_size=3)
    assert inputs.tolist() == [[1, 2, 3], [2, 3, 4]]
    assert targets.tolist() == [4, 5]


def test_insufficient_data_when_series_not_longer_than_window():
    forecaster = TrendForecaster(window_size=10)
    with pytest.raises(InsufficientData):
        forecaster.forecast(make_series([100.0] * 5), future_days=7)
    with pytest.raises(InsufficientData):
        forecaster.forecast(make_series([100.0] * 10), future_days=7)


def test_forecast_length_matches_horizon():
    series = generate_price_series(3245.67, 30, 0.03, random.Random(3))
    predictions = TrendForecaster(window_size=10).forecast(series, future_days=7)
    assert len(predictions) == 7
    assert all(math.isfinite(p) and p > 0 for p in predictions)


def test_linear_trend_is_extrapolated():
    # An exact arithmetic progression is fit perfectly by a linear window model
    prices = [100.0 + 2.0 * i for i in range(30)]
    predictions = TrendForecaster(window_size=10).forecast(make_series(prices), future_days=3)
    assert predictions == pytest.approx([160.0, 162.0, 164.0], rel=1e-6)


def test_constant_series_predicts_constant():
    predictions = TrendForecaster(window_size=5).forecast(make_series([42.0] * 20), future_days=4)
    assert predictions == pytest.approx([42.0] * 4, rel=1e-9)


def test_fit_minimises_squared_error_on_training_windows():
    rng = random.Random(11)
    prices = [50 + rng.uniform(-5, 5) for _ in range(40)]
    inputs, targets = build_training_windows(prices, 4)
    model = WindowRegressionModel.fit(inputs, targets)

    fitted = np.array([model.predict_next(row) for row in inputs])
    fitted_error = float(np.sum((fitted - targets) ** 2))

    # Perturbing the intercept can only make the least-squares fit worse
    worse = WindowRegressionModel(model.coefficients, model.intercept + 0.01, model.scale)
    worse_fitted = np.array([worse.predict_next(row) for row in inputs])
    assert fitted_error <= float(np.sum((worse_fitted - targets) ** 2))


def test_forecast_is_autoregressive():
    series = generate_price_series(13.0, 30, 0.05, random.Random(5))
    forecaster = TrendForecaster(window_size=10)
    model = forecaster.fit(series)
    predictions = forecaster.forecast(series, future_days=3)

    window = series.prices[-10:]
    first = model.predict_next(window)
    second = model.predict_next(window[1:] + [first])
    assert predictions[0] == pytest.approx(max(first, 0.01))
    assert predictions[1] == pytest.approx(max(second, 0.01))


def test_non_positive_horizon_is_invalid():
    with pytest.raises(InvalidInput):
        TrendForecaster(window_size=3).forecast(make_series([1.0] * 10), future_days=0)


def test_exponential_smoothing_weights_recent_prices():
    model = ExponentialSmoothingModel(alpha=0.5)
    assert model.predict_next([10.0, 20.0]) == 15.0
    assert model.predict_next([10.0, 10.0, 10.0]) == 10.0


def test_non_finite_fit_falls_back_to_smoothing(monkeypatch):
    def broken_fit(cls, inputs, targets):
        return cls(np.array([np.nan] * inputs.shape[1]), 0.0, 1.0)

    monkeypatch.setattr(WindowRegressionModel, "fit", classmethod(broken_fit))
    forecaster = TrendForecaster(window_size=3)
    assert isinstance(forecaster.fit(make_series([1.0, 2.0, 3.0, 4.0, 5.0])), ExponentialSmoothingModel)
