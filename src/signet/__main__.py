"""Signet - Entry Point

Usage:
    python -m signet [--config PATH] [--log-level LEVEL] COMMAND

Commands:
    price TOKEN                    - Show the display price for a token
    depth TOKEN --side --size      - Estimate a fill against the live book
    credentials                    - Derive or create L2 API credentials
    health                         - Check CLOB reachability
    version                        - Show version

Examples:
    python -m signet price 7132...
    python -m signet depth 7132... --side BUY --size 250
    SIGNET_WALLET_PRIVATE_KEY=0x... python -m signet credentials
"""

import argparse
import asyncio
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

import structlog

from signet import __version__


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="signet",
        description="Polymarket CLOB order execution and signing engine",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Signet {__version__}",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (TOML)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    price = subparsers.add_parser("price", help="Show the display price for a token")
    price.add_argument("token_id", help="CLOB token id")

    depth = subparsers.add_parser("depth", help="Estimate a fill against the live book")
    depth.add_argument("token_id", help="CLOB token id")
    depth.add_argument("--side", choices=["BUY", "SELL"], default="BUY")
    depth.add_argument("--size", type=_decimal_arg, required=True, help="Shares to fill")

    subparsers.add_parser("credentials", help="Derive or create L2 API credentials")
    subparsers.add_parser("health", help="Check CLOB reachability")
    subparsers.add_parser("version", help="Show version")

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def _decimal_arg(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise argparse.ArgumentTypeError(f"not a number: {value}") from e


def find_config_file(specified: Path | None) -> Path | None:
    """Find configuration file."""
    if specified and specified.exists():
        return specified

    search_paths = [
        Path("config/default.toml"),
        Path("signet.toml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def _build_engine(args: argparse.Namespace):
    from signet.app import TradingEngine
    from signet.core.config import ConfigManager
    from signet.core.logging import setup_logging

    config_path = find_config_file(args.config)
    config = ConfigManager(config_path)

    log_level = args.log_level or config.get_str("signet.log_level", "WARNING")
    json_output = args.json_logs or config.get_bool("signet.log_json", False)
    setup_logging(level=log_level, json_output=json_output)

    structlog.get_logger().debug(
        "config_loaded",
        version=__version__,
        config=str(config_path) if config_path else "defaults",
    )
    return TradingEngine(config)


async def show_price(args: argparse.Namespace) -> int:
    """Print the display price and top of book for a token."""
    engine = _build_engine(args)
    await engine.start()
    try:
        book = await engine.clob.get_order_book(args.token_id)
    finally:
        await engine.stop()

    price = engine.resolver.resolve(
        book.best_bid,
        book.best_ask,
        book.last_trade_price,
        context=args.token_id,
    )
    print(f"Best bid:   {book.best_bid if book.best_bid is not None else '-'}")
    print(f"Best ask:   {book.best_ask if book.best_ask is not None else '-'}")
    print(f"Last trade: {book.last_trade_price if book.last_trade_price is not None else '-'}")
    print(f"Price:      {price if price is not None else 'unavailable'}")
    return 0


async def show_depth(args: argparse.Namespace) -> int:
    """Print a depth walk for a hypothetical order."""
    from signet.domain.order import OrderSide

    engine = _build_engine(args)
    await engine.start()
    try:
        estimate = await engine.depth_estimator.estimate(
            args.token_id, OrderSide(args.side), args.size
        )
    finally:
        await engine.stop()

    for level in estimate.levels:
        print(f"  {level.price:>6}  used {level.used:>10} of {level.available:>10}")
    average = estimate.estimated_average_price
    print(f"Fillable:  {estimate.fillable_size} of {estimate.requested_size}")
    print(f"Average:   {average.quantize(Decimal('0.0001')) if average is not None else '-'}")
    print(f"Total:     {estimate.estimated_total_value}")
    if estimate.insufficient_liquidity:
        print("Warning: not enough liquidity to fill the full size")
        return 1
    return 0


async def fetch_credentials(args: argparse.Namespace) -> int:
    """Derive (or create) L2 credentials for the configured wallet."""
    from signet.integrations.wallet import LocalWalletSigner

    engine = _build_engine(args)
    wallet = LocalWalletSigner.from_config(engine.config)
    await engine.start()
    try:
        creds = await engine.session.credentials.get_credentials(wallet)
    finally:
        await engine.stop()

    # secret and passphrase stay in the credential store
    print(f"Address: {wallet.address}")
    print(f"API key: {creds.api_key}")
    return 0


async def check_health(args: argparse.Namespace) -> int:
    """Check health status."""
    engine = _build_engine(args)
    await engine.start()
    try:
        result = await engine.health_check()
    finally:
        await engine.stop()

    print(f"Status: {result.status.value}")
    print(f"Message: {result.message}")
    for key, value in result.details.items():
        print(f"  {key}: {value}")
    return 0 if result.status.value == "healthy" else 1


COMMANDS = {
    "price": show_price,
    "depth": show_depth,
    "credentials": fetch_credentials,
    "health": check_health,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    from signet.core.retry import SignetError

    args = parse_args(argv)

    if args.command == "version":
        print(f"Signet {__version__}")
        return 0

    handler = COMMANDS.get(args.command)
    if handler is None:
        build_parser().print_help()
        return 2

    try:
        return asyncio.run(handler(args))
    except SignetError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
