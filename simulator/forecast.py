"""Windowed trend forecaster.

A linear model maps the last `window_size` prices to the next price. It is
fit by least squares on every sliding window of the historical series, then
run autoregressively: each prediction is appended to the window and the
oldest price dropped. Errors compound over the horizon; that is expected.

A fresh model is fit for every forecast so runs never share state.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from core.errors import InsufficientData, InvalidInput
from simulator.series import PRICE_FLOOR, PriceSeries

logger = logging.getLogger(__name__)


def build_training_windows(
    prices: Sequence[float],
    window_size: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Return (inputs, targets): each window of prices and the price after it."""
    count = len(prices) - window_size
    if count <= 0:
        raise InsufficientData(
            f"Need more than {window_size} prices to build a training window, got {len(prices)}"
        )
    values = np.asarray(prices, dtype=float)
    inputs = np.stack([values[i:i + window_size] for i in range(count)])
    targets = values[window_size:]
    return inputs, targets


@dataclass(frozen=True)
class WindowRegressionModel:
    """Fitted linear map from a price window to the next price.

    Prices are divided by `scale` (the training mean) before the linear map
    so the fit is well conditioned for both $13 and $3000 assets.
    """

    coefficients: np.ndarray
    intercept: float
    scale: float

    @classmethod
    def fit(cls, inputs: np.ndarray, targets: np.ndarray) -> WindowRegressionModel:
        scale = float(np.mean(targets)) or 1.0
        design = np.hstack([inputs / scale, np.ones((inputs.shape[0], 1))])
        solution, *_ = np.linalg.lstsq(design, targets / scale, rcond=None)
        return cls(coefficients=solution[:-1], intercept=float(solution[-1]), scale=scale)

    @property
    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.coefficients))) and math.isfinite(self.intercept)

    def predict_next(self, window: Sequence[float]) -> float:
        x = np.asarray(window, dtype=float) / self.scale
        return float((x @ self.coefficients + self.intercept) * self.scale)


@dataclass(frozen=True)
class ExponentialSmoothingModel:
    """Fallback model: exponentially weighted level of the window."""

    alpha: float = 0.5

    def predict_next(self, window: Sequence[float]) -> float:
        level = window[0]
        for price in window[1:]:
            level = self.alpha * price + (1 - self.alpha) * level
        return float(level)


class TrendForecaster:
    """Fit-and-predict forecaster over a fixed window size."""

    def __init__(self, window_size: int = 10) -> None:
        if window_size <= 0:
            raise InvalidInput(f"window_size must be positive, got {window_size}")
        self.window_size = window_size

    def fit(self, series: PriceSeries) -> WindowRegressionModel | ExponentialSmoothingModel:
        inputs, targets = build_training_windows(series.prices, self.window_size)
        try:
            model = WindowRegressionModel.fit(inputs, targets)
        except np.linalg.LinAlgError:
            logger.warning("Least-squares fit did not converge, using exponential smoothing")
            return ExponentialSmoothingModel()
        if not model.is_finite:
            logger.warning("Least-squares fit is not finite, using exponential smoothing")
            return ExponentialSmoothingModel()
        return model

    def forecast(self, series: PriceSeries, future_days: int) -> list[float]:
        """Predict `future_days` prices following the end of `series`."""
        if future_days <= 0:
            raise InvalidInput(f"future_days must be positive, got {future_days}")

        model = self.fit(series)
        predictions = _roll_forward(model, series.prices[-self.window_size:], future_days)

        if not all(math.isfinite(p) for p in predictions):
            logger.warning("Regression diverged over the horizon, using exponential smoothing")
            predictions = _roll_forward(
                ExponentialSmoothingModel(), series.prices[-self.window_size:], future_days
            )
        return predictions


def _roll_forward(model, window: list[float], steps: int) -> list[float]:
    window = list(window)
    predictions = []
    for _ in range(steps):
        value = model.predict_next(window)
        if math.isfinite(value):
            value = max(value, PRICE_FLOOR)
        predictions.append(value)
        window = window[1:] + [value]
    return predictions
