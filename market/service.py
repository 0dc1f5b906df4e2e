"""Market data service -- the single write path for market data records.

Both the ticker and API-driven updates go through `mutate()`, which holds a
per-asset lock across read, compute and write so two writers never race on
the same record.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from pydantic import ValidationError

from core.bus import AsyncIOBus
from core.errors import AssetNotFound, InvalidInput
from core.models.events import Event, EventTypes
from core.models.market import MarketDataRecord
from core.protocols import RecordStore

logger = logging.getLogger(__name__)

# Fields an update may change, keyed by both field name and JSON alias
_UPDATABLE = ("ticker", "price", "change_24h_percent", "volume_24h", "gas_price_gwei", "gas_tiers")
_FIELD_NAMES: dict[str, str] = {}
for _name in _UPDATABLE:
    _info = MarketDataRecord.model_fields[_name]
    _FIELD_NAMES[_name] = _name
    if _info.alias:
        _FIELD_NAMES[_info.alias] = _name


def normalize_changes(changes: dict) -> dict:
    """Map camelCase or snake_case keys to field names, rejecting the rest."""
    normalized = {}
    unknown = []
    for key, value in changes.items():
        name = _FIELD_NAMES.get(key)
        if name is None:
            unknown.append(key)
        else:
            normalized[name] = value
    if unknown:
        raise InvalidInput(f"Unknown or read-only market data fields: {', '.join(sorted(unknown))}")
    return normalized


class MarketDataService:
    """Serialized access to market data records."""

    def __init__(self, store: RecordStore, bus: AsyncIOBus | None = None) -> None:
        self._store = store
        self._bus = bus
        self._locks: dict[str, asyncio.Lock] = {}
        self._background: set[asyncio.Task] = set()

    def lock(self, asset_name: str) -> asyncio.Lock:
        if asset_name not in self._locks:
            self._locks[asset_name] = asyncio.Lock()
        return self._locks[asset_name]

    def seed(self, records: list[dict]) -> int:
        """Insert seed records for assets that have no record yet."""
        inserted = 0
        for raw in records:
            record = MarketDataRecord.model_validate(raw)
            if self._store.get_market_data(record.asset_name) is None:
                self._store.save_market_data(record)
                inserted += 1
        if inserted:
            logger.info("Seeded market data for %d asset(s)", inserted)
        return inserted

    def snapshot(self) -> list[MarketDataRecord]:
        """All current records, read in one pass on the loop thread."""
        return self._store.list_market_data()

    def get(self, asset_name: str) -> MarketDataRecord:
        record = self._store.get_market_data(asset_name)
        if record is None:
            raise AssetNotFound(asset_name)
        return record

    async def mutate(
        self,
        asset_name: str,
        compute: Callable[[MarketDataRecord], dict],
    ) -> MarketDataRecord | None:
        """Apply `compute(current) -> changes` under the asset's lock.

        Returns the updated record, or None if the asset has no record.
        """
        async with self.lock(asset_name):
            current = self._store.get_market_data(asset_name)
            if current is None:
                return None
            return self._store.update_market_data(asset_name, compute(current))

    async def update(self, asset_name: str, changes: dict) -> MarketDataRecord:
        """API-driven partial update, followed by a broadcast signal."""
        fields = normalize_changes(changes)
        try:
            record = await self.mutate(asset_name, lambda _current: fields)
        except ValidationError as exc:
            raise InvalidInput(f"Invalid market data update: {exc.errors()[0]['msg']}") from exc
        if record is None:
            raise AssetNotFound(asset_name)

        logger.info("Market data updated via API: %s %s", asset_name, sorted(fields))
        self.notify(EventTypes.MARKET_UPDATED, {"asset_name": asset_name})
        return record

    def notify(self, event_type: str, payload: dict | None = None) -> None:
        """Publish a market event in the background.

        The caller never waits for subscribers, so a slow broadcast cannot
        hold up the ticker or an API response.
        """
        if self._bus is None:
            return
        event = Event(type=event_type, source="market", payload=payload or {})
        task = asyncio.create_task(self._bus.publish(event))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for in-flight background notifications (used at shutdown and in tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
