"""Command-line interface for the Scallop risk queries."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
from decimal import Decimal
from typing import Any

from .config import load_config
from .errors import ScallopRiskError
from .logging_setup import configure_logging
from .services import ScallopQuery


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="scallop-risk",
        description="Risk and yield metrics for the Scallop lending market",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    market_parser = sub.add_parser("market", help="Pool and collateral metrics")
    market_parser.add_argument(
        "coins", nargs="*", help="Coin names (default: every configured coin)"
    )

    obligation_parser = sub.add_parser("obligation", help="Risk account of an obligation")
    obligation_parser.add_argument("obligation_id", help="Obligation object id")

    lending_parser = sub.add_parser("lending", help="Supplied position of a wallet in one pool")
    lending_parser.add_argument("coin", help="Coin name")
    lending_parser.add_argument("owner", help="Wallet address")

    spool_parser = sub.add_parser("spool", help="Staking pool metrics")
    spool_parser.add_argument("market_coin", help="Market coin name, e.g. ssui")

    incentive_parser = sub.add_parser("incentive", help="Borrow incentive pool metrics")
    incentive_parser.add_argument("coin", help="Coin name")

    portfolio_parser = sub.add_parser("portfolio", help="Full portfolio of a wallet")
    portfolio_parser.add_argument("owner", help="Wallet address")

    return parser


def to_jsonable(value: Any) -> Any:
    """Convert query results to JSON-ready data; decimals become strings."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


async def _query(query: ScallopQuery, args: argparse.Namespace) -> Any:
    if args.command == "market":
        return await query.get_market_pools(args.coins or None)
    if args.command == "obligation":
        return await query.get_obligation_account(args.obligation_id)
    if args.command == "lending":
        return await query.get_lending(args.coin, args.owner)
    if args.command == "spool":
        return await query.get_spool(args.market_coin)
    if args.command == "incentive":
        return await query.get_borrow_incentive_pool(args.coin)
    if args.command == "portfolio":
        return await query.get_user_portfolio(args.owner)
    raise ValueError(f"Unknown command: {args.command}")


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command and print its result as JSON."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    async with ScallopQuery.from_config(config) as query:
        result = await _query(query, args)

    json.dump(to_jsonable(result), sys.stdout, indent=2)
    sys.stdout.write("\n")


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except ScallopRiskError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(2)
