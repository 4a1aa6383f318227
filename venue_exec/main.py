"""
Execute a single trade intent from the command line.

    python -m venue_exec.main --venue bybit --symbol ETH/USDT --side buy --amount 10 --leverage 5
    python -m venue_exec.main --venue solana_jupiter --symbol <mint> --side sell --action close

Prints the result as one JSON object and exits 0 on success, 1 on failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from typing import List, Optional

from pydantic import ValidationError

from venue_exec.config import resolve_credentials
from venue_exec.contracts import ExecutionConstraints, ExecutionResult, IntentAction, TradeIntent, Venue
from venue_exec.errors import ConfigError
from venue_exec.execution import ExecutionCoordinator, build_default_sink
from venue_exec.venues import build_default_adapters


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Execute one trade intent on a single venue")
    parser.add_argument("--venue", required=True, choices=[v.value for v in Venue])
    parser.add_argument("--symbol", required=True, help="Pair, coin or mint address")
    parser.add_argument("--side", required=True, help="buy/sell (long/short accepted)")
    parser.add_argument("--amount", type=str, default=None, help="Order size in UI units")
    parser.add_argument("--leverage", type=int, default=None)
    parser.add_argument("--price", type=str, default=None, help="Limit price (default: market)")
    parser.add_argument("--action", choices=[a.value for a in IntentAction], default=IntentAction.OPEN.value)
    parser.add_argument("--reduce-only", action="store_true")
    parser.add_argument("--slippage-bps", type=int, default=None)
    parser.add_argument("--time-limit", type=float, default=None, help="Confirmation wait in seconds")
    parser.add_argument("--min-liquidity", type=str, default=None)
    parser.add_argument("--api-key", default=None)
    parser.add_argument("--api-secret", default=None)
    parser.add_argument("--private-key", default=None)
    parser.add_argument("--wallet-address", default=None)
    parser.add_argument("--verbose", action="store_true")
    return parser


def _emit(payload: dict) -> None:
    sys.stdout.write(json.dumps(payload, default=str) + "\n")


def _invalid_input(venue: Venue, symbol: str, message: str) -> ExecutionResult:
    return ExecutionResult(
        intent_id=uuid.uuid4().hex,
        venue=venue,
        symbol=symbol.strip(),
        success=False,
        status="invalid_input",
        error=message,
        stage="validate",
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    venue = Venue(args.venue)
    sink = build_default_sink()
    try:
        credentials = resolve_credentials(
            venue,
            api_key=args.api_key,
            api_secret=args.api_secret,
            private_key=args.private_key,
            wallet_address=args.wallet_address,
        )
        intent = TradeIntent(
            venue=venue,
            symbol=args.symbol,
            side=args.side,
            amount=args.amount,
            leverage=args.leverage,
            price=args.price,
            action=args.action,
            reduce_only=args.reduce_only,
            constraints=ExecutionConstraints(
                max_slippage_bps=args.slippage_bps,
                time_limit_seconds=args.time_limit,
                min_liquidity=args.min_liquidity,
            ),
            credentials=credentials,
        )
    except (ConfigError, ValidationError) as exc:
        # Rejected before any venue call; still recorded.
        message = exc.message if isinstance(exc, ConfigError) else str(exc)
        result = _invalid_input(venue, args.symbol, message)
        sink.record(result)
        _emit(result.to_output())
        return 1

    coordinator = ExecutionCoordinator(build_default_adapters(), sink)
    result = coordinator.execute(intent)
    _emit(result.to_output())
    return 0 if result.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
