import asyncio

import pytest

from conftest import FakeClock, RecordingSubscriber, ScriptedRandom
from core.bus import AsyncIOBus
from core.errors import AssetNotFound, InvalidInput
from core.models.events import EventTypes
from market.broadcast import BroadcastGate
from market.service import MarketDataService, normalize_changes
from market.ticker import MarketTicker


def test_tick_moves_stay_within_bounds(seeded_store, rng):
    service = MarketDataService(seeded_store)
    ticker = MarketTicker(service, ["Ethereum", "Chainlink"], rng=rng)

    for _ in range(50):
        before = {r.asset_name: r for r in seeded_store.list_market_data()}
        asyncio.run(ticker.tick())
        for after in seeded_store.list_market_data():
            prev = before[after.asset_name]
            assert after.price > 0
            assert abs(after.price - prev.price) <= prev.price * 0.005 + 0.005
            assert abs(after.change_24h_percent - prev.change_24h_percent) <= 0.1 + 0.05


def test_tick_with_scripted_draws(seeded_store):
    # u=1.0 -> +max move for price, +max move for change
    service = MarketDataService(seeded_store)
    ticker = MarketTicker(service, ["Ethereum"], rng=ScriptedRandom([1.0]))
    updated = asyncio.run(ticker.tick())

    assert [r.asset_name for r in updated] == ["Ethereum"]
    eth = seeded_store.get_market_data("Ethereum")
    assert eth.price == round(3245.67 * 1.005, 2)
    assert eth.change_24h_percent == 2.5
    # untouched fields survive the update
    assert eth.gas_tiers.fast == 48
    assert seeded_store.get_market_data("Chainlink").price == 13.0


def test_tick_clamps_price_to_floor(store):
    service = MarketDataService(store)
    service.seed([{"asset_name": "Dust", "ticker": "DST", "price": 0.01}])
    ticker = MarketTicker(service, ["Dust"], rng=ScriptedRandom([0.0]), max_price_move=0.9)
    asyncio.run(ticker.tick())
    assert store.get_market_data("Dust").price == 0.01


def test_one_failing_asset_does_not_stop_the_tick(seeded_store, monkeypatch):
    service = MarketDataService(seeded_store)
    ticker = MarketTicker(service, ["Ethereum", "Chainlink"], rng=ScriptedRandom([1.0]))
    original = seeded_store.update_market_data

    def flaky(asset_name, changes):
        if asset_name == "Ethereum":
            raise OSError("store unavailable")
        return original(asset_name, changes)

    monkeypatch.setattr(seeded_store, "update_market_data", flaky)
    updated = asyncio.run(ticker.tick())

    assert [r.asset_name for r in updated] == ["Chainlink"]
    assert seeded_store.get_market_data("Ethereum").price == 3245.67
    assert seeded_store.get_market_data("Chainlink").price == round(13.0 * 1.005, 2)


def test_untracked_or_missing_assets_are_skipped(seeded_store, rng):
    service = MarketDataService(seeded_store)
    ticker = MarketTicker(service, ["Ethereum", "Bitcoin"], rng=rng)
    updated = asyncio.run(ticker.tick())
    assert [r.asset_name for r in updated] == ["Ethereum"]


def test_tick_signals_the_gate_through_the_bus(seeded_store, rng):
    bus = AsyncIOBus()
    service = MarketDataService(seeded_store, bus=bus)
    clock = FakeClock()
    gate = BroadcastGate(snapshot=service.snapshot, clock=clock)
    bus.subscribe(EventTypes.MARKET_TICK, gate.handle_event)
    sub = RecordingSubscriber()
    gate.subscribers.add(sub)
    ticker = MarketTicker(service, ["Ethereum"], rng=rng)

    async def scenario():
        await ticker.tick()
        await service.drain()
        clock.advance(1)
        await ticker.tick()
        await service.drain()

    asyncio.run(scenario())
    assert gate.state.broadcast_count == 1
    assert len(sub.messages) == 1


def test_api_update_accepts_camel_case(seeded_store):
    service = MarketDataService(seeded_store)
    record = asyncio.run(service.update("Chainlink", {"price": 14.5, "change24hPercent": 3.1}))
    assert record.price == 14.5
    assert record.change_24h_percent == 3.1
    assert seeded_store.get_market_data("Chainlink").price == 14.5


def test_api_update_rejects_bad_input(seeded_store):
    service = MarketDataService(seeded_store)
    with pytest.raises(InvalidInput):
        asyncio.run(service.update("Chainlink", {"price": -3}))
    with pytest.raises(InvalidInput):
        asyncio.run(service.update("Chainlink", {"assetName": "Other"}))
    with pytest.raises(AssetNotFound):
        asyncio.run(service.update("Dogecoin", {"price": 1}))
    assert seeded_store.get_market_data("Chainlink").price == 13.0


def test_api_update_and_tick_are_serialized(seeded_store, rng):
    service = MarketDataService(seeded_store)
    ticker = MarketTicker(service, ["Ethereum"], rng=rng)

    async def scenario():
        await asyncio.gather(
            ticker.tick(),
            service.update("Ethereum", {"volume24h": 1.0}),
            ticker.tick(),
        )

    asyncio.run(scenario())
    eth = seeded_store.get_market_data("Ethereum")
    assert eth.volume_24h == 1.0
    assert eth.price > 0


def test_normalize_changes():
    assert normalize_changes({"gasPriceGwei": 30, "volume_24h": 5}) == {
        "gas_price_gwei": 30,
        "volume_24h": 5,
    }
    with pytest.raises(InvalidInput):
        normalize_changes({"id": 4})


def test_seed_is_idempotent(store):
    service = MarketDataService(store)
    seed = [{"asset_name": "Ethereum", "ticker": "ETH", "price": 3245.67}]
    assert service.seed(seed) == 1
    assert service.seed(seed) == 0
    assert len(store.list_market_data()) == 1
