"""Pydantic data models shared across all components."""

from core.models.events import Event, EventTypes
from core.models.market import GasTiers, MarketDataMessage, MarketDataRecord
from core.models.simulations import FullSeries, SimulationResult, Tier

__all__ = [
    "Event",
    "EventTypes",
    "GasTiers",
    "MarketDataMessage",
    "MarketDataRecord",
    "FullSeries",
    "SimulationResult",
    "Tier",
]
