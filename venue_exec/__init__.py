"""Multi-venue trade execution: Bybit, Hyperliquid and Solana/Jupiter."""

from venue_exec.contracts import (
    ApiKeyCredentials,
    ExecutionConstraints,
    ExecutionResult,
    IntentAction,
    Side,
    TradeIntent,
    Venue,
    WalletCredentials,
)
from venue_exec.errors import ExecutionError, ExecutionFailed

__all__ = [
    "ApiKeyCredentials",
    "ExecutionConstraints",
    "ExecutionError",
    "ExecutionFailed",
    "ExecutionResult",
    "IntentAction",
    "Side",
    "TradeIntent",
    "Venue",
    "WalletCredentials",
]
