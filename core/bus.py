"""AsyncIOBus -- in-process pub/sub linking market and simulation events.

The market ticker and API updates publish here so the broadcast gate can
react without the publisher waiting on it. Simulation lifecycle events go
through the same bus and, together with market updates, land in a daily
JSONL audit file when an events directory is configured.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Iterable
from datetime import timezone
from pathlib import Path
from typing import Any, Callable, Coroutine

from core.models.events import Event

logger = logging.getLogger(__name__)

Callback = Callable[[Event], Coroutine[Any, Any, None]]

WILDCARD = "*"


class AsyncIOBus:
    """Async pub/sub with per-type counters and an optional audit trail.

    Usage:
        bus = AsyncIOBus(events_dir=home / "events", audit_exclude={"market.tick"})
        bus.subscribe("market.tick", gate.handle_event)
        await bus.publish(Event(type="market.tick", source="market"))
    """

    def __init__(
        self,
        events_dir: Path | None = None,
        audit_exclude: Iterable[str] = (),
    ) -> None:
        self._handlers: dict[str, list[Callback]] = {WILDCARD: []}
        self._events_dir = events_dir
        self._audit_exclude = frozenset(audit_exclude)
        self.published: Counter[str] = Counter()
        if events_dir is not None:
            events_dir.mkdir(parents=True, exist_ok=True)

    def subscribe(self, event_type: str, callback: Callback) -> None:
        """Register `callback` for `event_type` ("*" receives everything)."""
        self._handlers.setdefault(event_type, []).append(callback)
        logger.debug("Subscribed %s to '%s'", getattr(callback, "__qualname__", callback), event_type)

    def unsubscribe(self, event_type: str, callback: Callback) -> None:
        handlers = self._handlers.get(event_type, [])
        if callback in handlers:
            handlers.remove(callback)

    def subscriber_count(self, event_type: str | None = None) -> int:
        if event_type is None:
            return sum(len(h) for h in self._handlers.values())
        return len(self._handlers.get(event_type, []))

    async def publish(self, event: Event) -> None:
        """Audit the event, then run every matching handler concurrently.

        Handler failures are logged and never reach the publisher.
        """
        self.published[event.type] += 1
        if event.type not in self._audit_exclude:
            self._append_audit(event)

        handlers = [*self._handlers.get(event.type, ()), *self._handlers[WILDCARD]]
        if not handlers:
            logger.debug("No handlers for %s", event.type)
            return

        logger.debug("Dispatching %s (%s) to %d handler(s)", event.type, event.id, len(handlers))
        await asyncio.gather(*(self._invoke(h, event) for h in handlers))

    async def _invoke(self, handler: Callback, event: Event) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception("Handler for %s (%s) failed", event.type, event.id)

    def _append_audit(self, event: Event) -> None:
        if self._events_dir is None:
            return
        day = event.timestamp.astimezone(timezone.utc).strftime("%Y-%m-%d")
        path = self._events_dir / f"{day}.jsonl"
        try:
            with open(path, "a") as f:
                f.write(event.model_dump_json() + "\n")
        except OSError:
            logger.exception("Could not append %s to audit log %s", event.type, path)
