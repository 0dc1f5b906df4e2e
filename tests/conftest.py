from __future__ import annotations

import random

import pytest

from core.data.store import Store
from core.models.market import GasTiers, MarketDataRecord


class ScriptedRandom:
    """RandomSource that replays fixed values in order.

    `uniform(a, b)` maps the next value u in [0, 1) to a + (b - a) * u.
    """

    def __init__(self, values: list[float]) -> None:
        self._values = list(values)
        self.calls = 0

    def random(self) -> float:
        value = self._values[self.calls % len(self._values)]
        self.calls += 1
        return value

    def uniform(self, a: float, b: float) -> float:
        return a + (b - a) * self.random()


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSubscriber:
    """Subscriber double that records every message it is sent."""

    def __init__(self, fail: bool = False) -> None:
        self.messages: list[str] = []
        self.closed = False
        self.fail = fail

    async def send_str(self, data: str) -> None:
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.messages.append(data)


@pytest.fixture
def store(tmp_path):
    s = Store(tmp_path)
    yield s
    s.close()


@pytest.fixture
def seeded_store(store):
    store.save_market_data(MarketDataRecord(
        asset_name="Ethereum",
        ticker="ETH",
        price=3245.67,
        change_24h_percent=2.4,
        volume_24h=12345678,
        gas_price_gwei=34.2,
        gas_tiers=GasTiers(slow=24, average=34, fast=48),
    ))
    store.save_market_data(MarketDataRecord(
        asset_name="Chainlink",
        ticker="LINK",
        price=13.0,
        change_24h_percent=-1.2,
        volume_24h=98765432,
    ))
    return store


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def clock():
    return FakeClock()
