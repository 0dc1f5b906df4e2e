"""Broadcast gate -- throttled fan-out of market snapshots to subscribers.

Every signal (tick or API update) asks the gate to broadcast. The gate sends
only if more than `throttle_seconds` passed since its last broadcast, and then
sends the same serialized snapshot to every open subscriber. New subscribers
get one snapshot at connect time regardless of the throttle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from core.errors import BroadcastSendFailure
from core.models.events import Event
from core.models.market import MarketDataMessage, MarketDataRecord
from core.protocols import Subscriber

logger = logging.getLogger(__name__)


@dataclass
class BroadcastState:
    """Mutable throttle state owned by one gate."""

    last_broadcast_at: float | None = None
    broadcast_count: int = 0
    skipped_count: int = 0


class SubscriberRegistry:
    """The set of live push-channel connections."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def add(self, subscriber: Subscriber) -> None:
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)

    def remove(self, subscriber: Subscriber) -> bool:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)
            return True
        return False

    def __contains__(self, subscriber: object) -> bool:
        return subscriber in self._subscribers

    def __len__(self) -> int:
        return len(self._subscribers)

    def __iter__(self) -> Iterator[Subscriber]:
        # Iterate over a copy; sends may deregister subscribers
        return iter(list(self._subscribers))


class BroadcastGate:
    """Throttles and fans out MARKET_DATA messages.

    Usage:
        gate = BroadcastGate(snapshot=service.snapshot, throttle_seconds=5)
        bus.subscribe(EventTypes.MARKET_TICK, gate.handle_event)
        await gate.connect(websocket)
    """

    def __init__(
        self,
        snapshot: Callable[[], list[MarketDataRecord]],
        subscribers: SubscriberRegistry | None = None,
        throttle_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        state: BroadcastState | None = None,
    ) -> None:
        self._snapshot = snapshot
        self.subscribers = subscribers or SubscriberRegistry()
        self._throttle = throttle_seconds
        self._clock = clock
        self.state = state or BroadcastState()

    async def handle_event(self, event: Event) -> None:
        """Bus callback for market.tick / market.updated."""
        await self.maybe_broadcast()

    async def maybe_broadcast(self) -> bool:
        """Broadcast the current snapshot unless throttled. Returns True if sent."""
        now = self._clock()
        last = self.state.last_broadcast_at
        if last is not None and now - last <= self._throttle:
            self.state.skipped_count += 1
            logger.debug(
                "Skipping broadcast, too soon since last update (%.3fs <= %.3fs)",
                now - last, self._throttle,
            )
            return False

        # A failed snapshot read leaves the throttle untouched
        message = self._message()

        # Claim the slot before any await so concurrent signals can't double-send
        self.state.last_broadcast_at = now
        self.state.broadcast_count += 1

        targets = [s for s in self.subscribers if not s.closed]
        for stale in (s for s in self.subscribers if s.closed):
            self.subscribers.remove(stale)

        results = await asyncio.gather(*(self._send(s, message) for s in targets))
        logger.info(
            "Broadcast market data to %d/%d subscriber(s)", sum(results), len(targets),
        )
        return True

    async def connect(self, subscriber: Subscriber) -> bool:
        """Register a subscriber and push it the current snapshot.

        Does not read or reset the throttle state.
        """
        self.subscribers.add(subscriber)
        logger.info("Subscriber connected (%d total)", len(self.subscribers))
        return await self._send(subscriber, self._message())

    def disconnect(self, subscriber: Subscriber) -> None:
        if self.subscribers.remove(subscriber):
            logger.info("Subscriber disconnected (%d remaining)", len(self.subscribers))

    def _message(self) -> str:
        return MarketDataMessage(data=self._snapshot()).to_json()

    async def _send(self, subscriber: Subscriber, message: str) -> bool:
        try:
            await subscriber.send_str(message)
        except Exception as exc:
            failure = BroadcastSendFailure(f"Send to subscriber failed: {exc!r}")
            logger.warning("%s; deregistering", failure.message)
            self.subscribers.remove(subscriber)
            return False
        return True
