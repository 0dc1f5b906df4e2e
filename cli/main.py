"""ChainFolio CLI -- the `chainfolio` command.

Usage:
    chainfolio start                          Start the server
    chainfolio market [--asset NAME]          Show current market data
    chainfolio simulate ASSET [--owner ID]    Run a price simulation
    chainfolio simulations [--owner ID]       List stored simulations
    chainfolio delete ID                      Delete a simulation
"""

from __future__ import annotations

import argparse
import os
import sys

import httpx

DEFAULT_URL = "http://127.0.0.1:5000"


def get_base_url(args: argparse.Namespace) -> str:
    return (args.url or os.environ.get("CHAINFOLIO_URL") or DEFAULT_URL).rstrip("/")


def _client(args: argparse.Namespace) -> httpx.Client:
    return httpx.Client(base_url=get_base_url(args), timeout=30.0)


def _fail(response: httpx.Response) -> None:
    try:
        body = response.json()
        message = f"{body.get('error', 'Error')}: {body.get('message', '')}"
    except ValueError:
        message = response.text or response.reason_phrase
    print(f"  Request failed ({response.status_code}) {message}")
    sys.exit(1)


def format_market_row(record: dict) -> str:
    change = record.get("change24hPercent")
    change_text = f"{change:+.1f}%" if change is not None else "n/a"
    line = f"  {record['assetName']:<12} {record['ticker']:<6} {record['price']:>12,.2f}  {change_text:>7}"
    if record.get("gasPriceGwei") is not None:
        line += f"  gas {record['gasPriceGwei']} gwei"
    return line


def format_simulation(result: dict) -> str:
    lines = [
        f"  Simulation #{result['id']} -- {result['assetName']} (owner {result['ownerId']})",
        f"    Predicted price:   {result['lastPredictedPrice']:,.2f}"
        f"  [{result['lowerBound']:,.2f} .. {result['upperBound']:,.2f}]",
        f"    Confidence:        {result['confidencePercent']}%  ({result['volatilityTier']} volatility)",
        f"    Yield:             {result['yieldPercent']:.2f}%",
        f"    Gas fee estimate:  {result['gasFeeEstimate']:,.2f}",
        f"    Impermanent loss:  {result['impermanentLossPercent']:.2f}%",
        f"    Liquidity impact:  {result['liquidityImpactTier']}",
        f"    Break-even price:  {result['breakEvenPrice']:,.2f}",
        f"    {result['recommendationText']}",
    ]
    return "\n".join(lines)


def cmd_start(args: argparse.Namespace) -> None:
    """Start the server in the foreground."""
    import asyncio

    from main import run, setup_logging

    setup_logging("INFO")
    try:
        asyncio.run(run(config_path=args.config, env_path=args.env))
    except KeyboardInterrupt:
        pass


def cmd_market(args: argparse.Namespace) -> None:
    params = {"asset": args.asset} if args.asset else None
    with _client(args) as client:
        response = client.get("/api/market-data", params=params)
    if response.status_code != 200:
        _fail(response)

    data = response.json()
    records = data if isinstance(data, list) else [data]
    for record in records:
        print(format_market_row(record))


def cmd_simulate(args: argparse.Namespace) -> None:
    with _client(args) as client:
        response = client.post(
            "/api/simulations",
            json={"ownerId": args.owner, "assetName": args.asset},
        )
    if response.status_code != 201:
        _fail(response)
    print(format_simulation(response.json()))


def cmd_simulations(args: argparse.Namespace) -> None:
    params = {"ownerId": args.owner} if args.owner is not None else None
    with _client(args) as client:
        response = client.get("/api/simulations", params=params)
    if response.status_code != 200:
        _fail(response)

    results = response.json()
    if not results:
        print("  No simulations stored.")
        return
    for result in results:
        print(
            f"  #{result['id']:<5} {result['assetName']:<12} "
            f"{result['lastPredictedPrice']:>12,.2f}  {result['volatilityTier']:<6} "
            f"{result['createdAt']}"
        )


def cmd_delete(args: argparse.Namespace) -> None:
    with _client(args) as client:
        response = client.delete(f"/api/simulations/{args.id}")
    if response.status_code != 204:
        _fail(response)
    print(f"  Deleted simulation #{args.id}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chainfolio", description="ChainFolio portfolio dashboard")
    parser.add_argument("--url", default=None, help=f"Server URL (default: $CHAINFOLIO_URL or {DEFAULT_URL})")
    sub = parser.add_subparsers(dest="command")

    start = sub.add_parser("start", help="Start the server")
    start.add_argument("--config", "-c", default=None, help="Path to config.yaml")
    start.add_argument("--env", default=None, help="Path to .env file")
    start.set_defaults(func=cmd_start)

    market = sub.add_parser("market", help="Show current market data")
    market.add_argument("--asset", default=None, help="Only this asset")
    market.set_defaults(func=cmd_market)

    simulate = sub.add_parser("simulate", help="Run a price simulation")
    simulate.add_argument("asset", help="Asset name, e.g. Ethereum")
    simulate.add_argument("--owner", type=int, default=1, help="Owner id (default: 1)")
    simulate.set_defaults(func=cmd_simulate)

    simulations = sub.add_parser("simulations", help="List stored simulations")
    simulations.add_argument("--owner", type=int, default=None, help="Filter by owner id")
    simulations.set_defaults(func=cmd_simulations)

    delete = sub.add_parser("delete", help="Delete a simulation")
    delete.add_argument("id", type=int, help="Simulation id")
    delete.set_defaults(func=cmd_delete)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return
    try:
        args.func(args)
    except httpx.ConnectError:
        print(f"  Could not connect to {get_base_url(args)}. Is the server running?")
        sys.exit(1)


if __name__ == "__main__":
    main()
