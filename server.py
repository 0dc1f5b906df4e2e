"""Lightweight aiohttp server -- market data, simulations and the push channel.

REST routes live under /api, the market data push channel is a WebSocket at
/api/ws. Domain errors map to HTTP statuses in one place (`_error_response`).
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from aiohttp import WSMsgType, web

from core.errors import (
    AssetNotFound,
    ChainFolioError,
    InsufficientData,
    InvalidInput,
    NotFound,
    SimulationFailed,
)

if TYPE_CHECKING:
    from core.config import AppConfig
    from market.broadcast import BroadcastGate
    from market.service import MarketDataService
    from simulator.engine import SimulationEngine

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[ChainFolioError], int] = {
    InvalidInput: 400,
    InsufficientData: 422,
    AssetNotFound: 404,
    NotFound: 404,
    SimulationFailed: 500,
}


def create_app(
    config: AppConfig,
    market: MarketDataService,
    engine: SimulationEngine,
    gate: BroadcastGate,
) -> web.Application:
    """Create and configure the aiohttp application."""
    app = web.Application()

    # Store references for route handlers
    app["config"] = config
    app["market"] = market
    app["engine"] = engine
    app["gate"] = gate

    app.router.add_get("/health", handle_health)
    app.router.add_get("/api/market-data", handle_get_market_data)
    app.router.add_patch("/api/market-data/{asset}", handle_update_market_data)
    app.router.add_get("/api/simulations", handle_list_simulations)
    app.router.add_post("/api/simulations", handle_run_simulation)
    app.router.add_get("/api/simulations/{simulation_id}", handle_get_simulation)
    app.router.add_delete("/api/simulations/{simulation_id}", handle_delete_simulation)
    app.router.add_get("/api/ws", handle_market_stream)

    return app


def _error_response(error: ChainFolioError) -> web.Response:
    status = _STATUS_BY_ERROR.get(type(error), 500)
    return web.json_response(error.to_dict(), status=status)


async def _read_json(request: web.Request) -> dict:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise InvalidInput("Invalid JSON") from None
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def _int_param(value: str | None, name: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise InvalidInput(f"{name} must be an integer") from None


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------

async def handle_health(request: web.Request) -> web.Response:
    """GET /health -- health check."""
    gate: BroadcastGate = request.app["gate"]
    return web.json_response({
        "status": "ok",
        "subscribers": len(gate.subscribers),
        "broadcasts": gate.state.broadcast_count,
    })


async def handle_get_market_data(request: web.Request) -> web.Response:
    """GET /api/market-data[?asset=Ethereum] -- one record or all of them."""
    market: MarketDataService = request.app["market"]
    asset = request.query.get("asset")

    if asset:
        try:
            record = market.get(asset)
        except AssetNotFound as exc:
            return _error_response(exc)
        return web.json_response(record.to_json_dict())

    return web.json_response([r.to_json_dict() for r in market.snapshot()])


async def handle_update_market_data(request: web.Request) -> web.Response:
    """PATCH /api/market-data/{asset} -- partial update, then broadcast.

    Body: {"price": 3300.5, "change24hPercent": 1.2}
    """
    market: MarketDataService = request.app["market"]
    asset = request.match_info["asset"]

    try:
        body = await _read_json(request)
        record = await market.update(asset, body)
    except ChainFolioError as exc:
        return _error_response(exc)

    return web.json_response(record.to_json_dict())


async def handle_list_simulations(request: web.Request) -> web.Response:
    """GET /api/simulations[?ownerId=1] -- list stored simulation results."""
    engine: SimulationEngine = request.app["engine"]
    try:
        owner_id = _int_param(request.query.get("ownerId"), "ownerId")
    except InvalidInput as exc:
        return _error_response(exc)

    results = engine.list_simulations(owner_id)
    return web.json_response([r.to_json_dict() for r in results])


async def handle_run_simulation(request: web.Request) -> web.Response:
    """POST /api/simulations -- run and persist a new simulation.

    Body: {"ownerId": 1, "assetName": "Ethereum"}
    """
    engine: SimulationEngine = request.app["engine"]

    try:
        body = await _read_json(request)
        owner_id = body.get("ownerId")
        asset_name = body.get("assetName")
        if not isinstance(owner_id, int) or isinstance(owner_id, bool):
            raise InvalidInput("ownerId must be an integer")
        if not isinstance(asset_name, str) or not asset_name:
            raise InvalidInput("assetName must be a non-empty string")
        result = await engine.run_simulation(owner_id, asset_name)
    except ChainFolioError as exc:
        return _error_response(exc)

    return web.json_response(result.to_json_dict(), status=201)


async def handle_get_simulation(request: web.Request) -> web.Response:
    """GET /api/simulations/{id} -- fetch one simulation result."""
    engine: SimulationEngine = request.app["engine"]
    try:
        simulation_id = _int_param(request.match_info["simulation_id"], "id")
        result = engine.get_simulation(simulation_id)
    except ChainFolioError as exc:
        return _error_response(exc)
    return web.json_response(result.to_json_dict())


async def handle_delete_simulation(request: web.Request) -> web.Response:
    """DELETE /api/simulations/{id} -- delete a simulation result."""
    engine: SimulationEngine = request.app["engine"]
    try:
        simulation_id = _int_param(request.match_info["simulation_id"], "id")
        await engine.delete_simulation(simulation_id)
    except ChainFolioError as exc:
        return _error_response(exc)
    return web.Response(status=204)


async def handle_market_stream(request: web.Request) -> web.WebSocketResponse:
    """GET /api/ws -- WebSocket push channel for MARKET_DATA snapshots.

    The client gets a snapshot immediately on connect and then one per
    non-throttled tick. Incoming messages are only logged.
    """
    gate: BroadcastGate = request.app["gate"]

    ws = web.WebSocketResponse()
    await ws.prepare(request)

    try:
        await gate.connect(ws)
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                logger.debug("Received WebSocket message: %s", msg.data)
            elif msg.type == WSMsgType.ERROR:
                logger.warning("WebSocket error: %s", ws.exception())
    finally:
        gate.disconnect(ws)

    return ws
