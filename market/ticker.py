"""Market ticker -- nudges tracked assets' market data every period."""

from __future__ import annotations

import logging
import random

from core.errors import TickFailure
from core.models.events import EventTypes
from core.models.market import MarketDataRecord
from core.protocols import RandomSource
from market.service import MarketDataService
from simulator.series import PRICE_FLOOR

logger = logging.getLogger(__name__)


class MarketTicker:
    """Applies small symmetric random moves to each tracked asset.

    Price moves by at most `max_price_move` (relative), the 24h change by at
    most `max_change_move` percentage points. One asset failing does not
    stop the others; it is simply retried on the next tick.
    """

    def __init__(
        self,
        service: MarketDataService,
        tracked_assets: list[str],
        rng: RandomSource | None = None,
        max_price_move: float = 0.005,
        max_change_move: float = 0.1,
    ) -> None:
        self._service = service
        self._tracked_assets = list(tracked_assets)
        self._rng = rng or random.Random()
        self._max_price_move = max_price_move
        self._max_change_move = max_change_move

    @property
    def tracked_assets(self) -> list[str]:
        return list(self._tracked_assets)

    def perturb(self, record: MarketDataRecord) -> dict:
        """Changes for one tick of `record`."""
        move = self._rng.uniform(-self._max_price_move, self._max_price_move)
        changes: dict = {"price": max(round(record.price * (1 + move), 2), PRICE_FLOOR)}
        if record.change_24h_percent is not None:
            delta = self._rng.uniform(-self._max_change_move, self._max_change_move)
            changes["change_24h_percent"] = round(record.change_24h_percent + delta, 1)
        return changes

    async def tick(self) -> list[MarketDataRecord]:
        """Run one tick over every tracked asset and signal the broadcast."""
        updated: list[MarketDataRecord] = []
        failures: list[TickFailure] = []

        for asset_name in self._tracked_assets:
            try:
                record = await self._service.mutate(asset_name, self.perturb)
            except Exception as exc:
                failure = TickFailure(asset_name, exc)
                logger.error("%s", failure.message, exc_info=exc)
                failures.append(failure)
                continue
            if record is None:
                logger.debug("Tracked asset %s has no market data, skipping", asset_name)
                continue
            updated.append(record)

        logger.debug(
            "Tick complete: %d updated, %d failed", len(updated), len(failures),
        )
        self._service.notify(EventTypes.MARKET_TICK, {
            "updated": [r.asset_name for r in updated],
            "failed": [f.asset_name for f in failures],
        })
        return updated
