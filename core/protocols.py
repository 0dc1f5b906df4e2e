"""Core protocols -- the seams where collaborators can be swapped.

All protocols use Python's structural subtyping (typing.Protocol):
if your class has the right methods, it implements the protocol.
No inheritance required.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.models.market import MarketDataRecord
from core.models.simulations import SimulationResult


# ---------------------------------------------------------------------------
# 1. RandomSource -- every random draw goes through one of these
# ---------------------------------------------------------------------------

@runtime_checkable
class RandomSource(Protocol):
    """Source of uniform random numbers.

    `random.Random` satisfies this; tests pass a seeded instance or a
    scripted sequence to get exact numeric outputs.
    """

    def random(self) -> float:
        """Return the next float in [0.0, 1.0)."""
        ...

    def uniform(self, a: float, b: float) -> float:
        """Return a float N such that a <= N <= b."""
        ...


# ---------------------------------------------------------------------------
# 2. RecordStore -- persistence for market data and simulation results
# ---------------------------------------------------------------------------

@runtime_checkable
class RecordStore(Protocol):
    """Key-by-id record storage.

    Default implementation: Store (SQLite). Writes of a single record must be
    atomic.
    """

    def save_market_data(self, record: MarketDataRecord) -> MarketDataRecord:
        ...

    def get_market_data(self, asset_name: str) -> MarketDataRecord | None:
        ...

    def list_market_data(self) -> list[MarketDataRecord]:
        ...

    def update_market_data(self, asset_name: str, changes: dict) -> MarketDataRecord | None:
        ...

    def save_simulation(self, result: SimulationResult) -> SimulationResult:
        ...

    def get_simulation(self, simulation_id: int) -> SimulationResult | None:
        ...

    def list_simulations(self, owner_id: int | None = None) -> list[SimulationResult]:
        ...

    def delete_simulation(self, simulation_id: int) -> bool:
        ...


# ---------------------------------------------------------------------------
# 3. Subscriber -- one open push-channel connection
# ---------------------------------------------------------------------------

@runtime_checkable
class Subscriber(Protocol):
    """A push-channel connection that receives market snapshots.

    aiohttp's WebSocketResponse implements this directly.
    """

    @property
    def closed(self) -> bool:
        ...

    async def send_str(self, data: str) -> None:
        ...
