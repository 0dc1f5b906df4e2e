"""ChainFolio entrypoint -- wires all components together and starts the server.

Usage:
    python main.py
    python main.py --config /path/to/config.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from aiohttp import web

from core.bus import AsyncIOBus
from core.config import AppConfig, load_config
from core.data.store import Store
from core.models.events import EventTypes
from market.broadcast import BroadcastGate
from market.service import MarketDataService
from market.ticker import MarketTicker
from scheduler.runner import RecurringTask
from server import create_app
from simulator.engine import SimulationEngine


def setup_logging(level: str) -> None:
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # Quiet down noisy libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ChainFolio portfolio dashboard backend")
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to config.yaml (default: ~/.chainfolio/config.yaml)",
    )
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Path to .env file (default: ~/.chainfolio/.env)",
    )
    return parser.parse_args()


def build_services(config: AppConfig, store: Store) -> dict:
    """Construct and wire the market and simulation services."""
    events_dir = config.home_path / "events" if config.logging.audit_events else None
    bus = AsyncIOBus(events_dir=events_dir, audit_exclude=config.logging.audit_exclude)

    market = MarketDataService(store=store, bus=bus)
    market.seed(config.market.seed)

    gate = BroadcastGate(
        snapshot=market.snapshot,
        throttle_seconds=config.market.throttle_seconds,
    )
    bus.subscribe(EventTypes.MARKET_TICK, gate.handle_event)
    bus.subscribe(EventTypes.MARKET_UPDATED, gate.handle_event)

    ticker = MarketTicker(
        service=market,
        tracked_assets=config.market.tracked_assets,
        max_price_move=config.market.max_price_move,
        max_change_move=config.market.max_change_move,
    )
    engine = SimulationEngine(store=store, settings=config.simulation, bus=bus)

    return {"bus": bus, "market": market, "gate": gate, "ticker": ticker, "engine": engine}


async def run(config_path: str | None = None, env_path: str | None = None) -> None:
    """Initialize all components and start the server."""
    config = load_config(config_path=config_path, env_path=env_path)
    logging.getLogger().setLevel(getattr(logging, config.logging.level.upper(), logging.INFO))
    logger = logging.getLogger("chainfolio")
    logger.info("Configuration loaded from %s", config.home_path)

    store = Store(config.home_path)
    services = build_services(config, store)

    app = create_app(
        config=config,
        market=services["market"],
        engine=services["engine"],
        gate=services["gate"],
    )

    ticker_task = RecurringTask(
        "market-ticker",
        config.market.tick_seconds,
        services["ticker"].tick,
    )
    await ticker_task.start()

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, config.server.host, config.server.port)
    await site.start()

    logger.info(
        "ChainFolio running at http://%s:%d (push channel at /api/ws)",
        config.server.host,
        config.server.port,
    )
    logger.info("State directory: %s", config.home_path)

    # Run until interrupted
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        logger.info("Shutting down...")
        await ticker_task.stop()
        await services["market"].drain()
        await runner.cleanup()
        store.close()
        logger.info("Shutdown complete")


def main() -> None:
    args = parse_args()
    setup_logging("INFO")
    try:
        asyncio.run(run(config_path=args.config, env_path=args.env))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
