"""Simulation engine -- runs one price simulation for an asset end to end.

1. Read the asset's current price from the store
2. Generate a synthetic historical series anchored to it
3. Fit the trend forecaster and predict the horizon
4. Estimate bounds and risk metrics, build a recommendation
5. Persist the complete SimulationResult in one write

Steps 2-4 are pure and run in a worker thread so a slow fit never stalls
the event loop (and with it the market ticker).
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta

from core.bus import AsyncIOBus
from core.config import SimulationConfig
from core.errors import AssetNotFound, InsufficientData, InvalidInput, NotFound, SimulationFailed
from core.models.events import Event, EventTypes
from core.models.simulations import FullSeries, SimulationResult
from core.protocols import RandomSource, RecordStore
from simulator.forecast import TrendForecaster
from simulator.recommendation import recommend
from simulator.risk import estimate_risk
from simulator.series import date_range, generate_price_series

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForecastPoint:
    date: str
    predicted_price: float
    upper_bound: float
    lower_bound: float


def _money(value: float) -> float:
    return round(value, 2)


class SimulationEngine:
    """Runs, lists and deletes price simulations.

    Usage:
        engine = SimulationEngine(store, config.simulation, bus=bus)
        result = await engine.run_simulation(owner_id=1, asset_name="Ethereum")
    """

    def __init__(
        self,
        store: RecordStore,
        settings: SimulationConfig | None = None,
        bus: AsyncIOBus | None = None,
        rng_factory: Callable[[], RandomSource] = random.Random,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._settings = settings or SimulationConfig()
        self._bus = bus
        self._rng_factory = rng_factory
        self._today = today

    async def run_simulation(self, owner_id: int, asset_name: str) -> SimulationResult:
        """Run a simulation against the asset's current price and persist it.

        Raises AssetNotFound, InvalidInput or InsufficientData for caller
        errors; anything else is wrapped in SimulationFailed. Nothing is
        persisted unless the whole run succeeds.
        """
        record = self._store.get_market_data(asset_name)
        if record is None:
            raise AssetNotFound(asset_name)

        logger.info(
            "Starting simulation: owner=%s asset=%s price=%.2f",
            owner_id, asset_name, record.price,
        )

        try:
            result = await asyncio.to_thread(
                self._build_result, owner_id, asset_name, record.price, self._rng_factory()
            )
            saved = self._store.save_simulation(result)
        except (InvalidInput, InsufficientData):
            raise
        except Exception as exc:
            logger.exception("Simulation failed for %s", asset_name)
            await self._publish(EventTypes.SIMULATION_FAILED, {
                "owner_id": owner_id,
                "asset_name": asset_name,
                "error": str(exc),
            })
            raise SimulationFailed(f"Simulation for {asset_name} failed: {exc}", cause=exc) from exc

        logger.info(
            "Simulation complete: id=%s %s | predicted %.2f | %s volatility | confidence %d%%",
            saved.id, asset_name, saved.last_predicted_price,
            saved.volatility_tier, saved.confidence_percent,
        )
        await self._publish(EventTypes.SIMULATION_COMPLETED, {
            "simulation_id": saved.id,
            "owner_id": owner_id,
            "asset_name": asset_name,
            "last_predicted_price": saved.last_predicted_price,
            "recommendation": saved.recommendation_text,
        })
        return saved

    def _build_result(
        self,
        owner_id: int,
        asset_name: str,
        current_price: float,
        rng: RandomSource,
    ) -> SimulationResult:
        settings = self._settings
        historical_days = settings.historical_days
        future_days = settings.forecast_days
        start = self._today() - timedelta(days=historical_days)

        series = generate_price_series(
            current_price, historical_days, settings.volatility_factor, rng, start_date=start,
        )
        predictions = TrendForecaster(settings.window_size).forecast(series, future_days)
        risk = estimate_risk(
            series,
            predictions,
            base_gas_price=settings.gas_price_for(asset_name),
            rng=rng,
            transaction_cost_percent=settings.transaction_cost_percent,
        )

        last_actual = series.last_price
        last_predicted = predictions[-1]
        points = [
            ForecastPoint(d, p, u, lo)
            for d, p, u, lo in zip(
                date_range(start + timedelta(days=historical_days), future_days),
                predictions,
                risk.upper_bounds,
                risk.lower_bounds,
            )
        ]

        history_gap: list[float | None] = [None] * historical_days
        full_series = FullSeries(
            dates=series.dates + [p.date for p in points],
            actual=[_money(p) for p in series.prices] + [None] * future_days,
            predicted=history_gap + [_money(p.predicted_price) for p in points],
            upper_bound=history_gap + [_money(p.upper_bound) for p in points],
            lower_bound=history_gap + [_money(p.lower_bound) for p in points],
        )

        return SimulationResult(
            owner_id=owner_id,
            asset_name=asset_name,
            last_predicted_price=_money(last_predicted),
            confidence_percent=risk.confidence_percent,
            volatility_tier=risk.volatility_tier,
            upper_bound=_money(points[-1].upper_bound),
            lower_bound=_money(points[-1].lower_bound),
            recommendation_text=recommend(asset_name, last_actual, last_predicted),
            yield_percent=_money(risk.yield_percent),
            gas_fee_estimate=_money(risk.gas_fee_estimate),
            impermanent_loss_percent=_money(risk.impermanent_loss_percent),
            liquidity_impact_tier=risk.liquidity_impact_tier,
            break_even_price=_money(risk.break_even_price),
            full_series=full_series,
        )

    def list_simulations(self, owner_id: int | None = None) -> list[SimulationResult]:
        return self._store.list_simulations(owner_id)

    def get_simulation(self, simulation_id: int) -> SimulationResult:
        result = self._store.get_simulation(simulation_id)
        if result is None:
            raise NotFound(f"Simulation {simulation_id} not found")
        return result

    async def delete_simulation(self, simulation_id: int) -> None:
        if not self._store.delete_simulation(simulation_id):
            raise NotFound(f"Simulation {simulation_id} not found")
        logger.info("Deleted simulation: %s", simulation_id)
        await self._publish(EventTypes.SIMULATION_DELETED, {"simulation_id": simulation_id})

    async def _publish(self, event_type: str, payload: dict) -> None:
        if self._bus is None:
            return
        await self._bus.publish(Event(type=event_type, source="simulator", payload=payload))
