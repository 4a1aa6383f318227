"""
Central configuration for the execution engine.

Endpoints and tunables live here; secrets are resolved separately by
``resolve_credentials`` so they only ever sit on a single intent.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from venue_exec.contracts import ApiKeyCredentials, Venue, WalletCredentials
from venue_exec.errors import ConfigError

# ---------------------------------------------------------------------------
# Load .env from project root
# ---------------------------------------------------------------------------
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
SOL_MINT = "So11111111111111111111111111111111111111112"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "y", "on"}


# ---------------------------------------------------------------------------
# Venue configuration
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class BybitConfig:
    """Bybit V5 REST settings."""

    base_url: str = field(
        default_factory=lambda: os.getenv("BYBIT_BASE_URL", "https://api.bybit.com")
    )
    category: str = "linear"           # USDT perpetuals
    recv_window: int = 5000            # Request validity window (ms)
    timeout_seconds: float = field(default_factory=lambda: _env_float("BYBIT_TIMEOUT", 10.0))
    fetch_fills: bool = True           # Look up cumExecQty/avgPrice after placement

    def validate(self) -> None:
        if not self.base_url.startswith("http"):
            raise ValueError(f"Invalid Bybit base URL: {self.base_url}")
        if self.recv_window <= 0:
            raise ValueError("recv_window must be positive")


@dataclass(frozen=True)
class HyperliquidConfig:
    """Hyperliquid info/exchange endpoint settings."""

    base_url: str = field(
        default_factory=lambda: os.getenv("HYPERLIQUID_BASE_URL", "https://api.hyperliquid.xyz")
    )
    vault_address: Optional[str] = field(
        default_factory=lambda: os.getenv("HYPERLIQUID_VAULT_ADDRESS") or None
    )
    market_slippage: float = 0.05      # Aggressive IOC price offset from mid
    timeout_seconds: float = field(
        default_factory=lambda: _env_float("HYPERLIQUID_TIMEOUT", 10.0)
    )

    @property
    def info_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/info"

    @property
    def exchange_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/exchange"

    @property
    def is_mainnet(self) -> bool:
        return "testnet" not in self.base_url

    def validate(self) -> None:
        if not 0.0 < self.market_slippage < 1.0:
            raise ValueError("market_slippage must be within (0, 1)")


@dataclass(frozen=True)
class SolanaConfig:
    """Solana RPC and Jupiter aggregator settings."""

    rpc_url: str = field(
        default_factory=lambda: os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com")
    )
    jupiter_url: str = field(
        default_factory=lambda: os.getenv("JUPITER_API_URL", "https://quote-api.jup.ag/v6")
    )
    quote_mint: str = USDC_MINT
    commitment: str = "confirmed"
    open_slippage_bps: int = 50
    close_slippage_bps: int = 100
    broadcast_attempts: int = 3
    broadcast_backoff_seconds: float = 0.5
    confirm_timeout_seconds: float = field(
        default_factory=lambda: _env_float("SOLANA_CONFIRM_TIMEOUT", 60.0)
    )
    poll_interval_seconds: float = 2.0
    timeout_seconds: float = 30.0

    def validate(self) -> None:
        if self.commitment not in {"processed", "confirmed", "finalized"}:
            raise ValueError(f"Unsupported commitment level: {self.commitment}")
        if self.broadcast_attempts < 1:
            raise ValueError("broadcast_attempts must be >= 1")
        if self.confirm_timeout_seconds <= 0:
            raise ValueError("confirm_timeout_seconds must be positive")


@dataclass(frozen=True)
class LedgerConfig:
    """Where the debug trace and trade ledger are written."""

    trace_dir: Path = field(
        default_factory=lambda: Path(os.getenv("VENUE_EXEC_TRACE_DIR", str(_PROJECT_ROOT / "logs")))
    )
    ledger_path: Path = field(
        default_factory=lambda: Path(
            os.getenv("VENUE_EXEC_LEDGER_PATH", str(_PROJECT_ROOT / "logs" / "trades.jsonl"))
        )
    )
    enabled: bool = field(default_factory=lambda: not _env_bool("VENUE_EXEC_DISABLE_LEDGER"))


# ---------------------------------------------------------------------------
# Singleton accessors
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_bybit_config() -> BybitConfig:
    cfg = BybitConfig()
    cfg.validate()
    return cfg


@lru_cache(maxsize=1)
def get_hyperliquid_config() -> HyperliquidConfig:
    cfg = HyperliquidConfig()
    cfg.validate()
    return cfg


@lru_cache(maxsize=1)
def get_solana_config() -> SolanaConfig:
    cfg = SolanaConfig()
    cfg.validate()
    return cfg


@lru_cache(maxsize=1)
def get_ledger_config() -> LedgerConfig:
    return LedgerConfig()


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------
def resolve_credentials(
    venue: Venue,
    *,
    api_key: Optional[str] = None,
    api_secret: Optional[str] = None,
    private_key: Optional[str] = None,
    wallet_address: Optional[str] = None,
) -> ApiKeyCredentials | WalletCredentials:
    """Resolve credentials from explicit args or environment."""
    if venue == Venue.BYBIT:
        key = api_key or os.getenv("BYBIT_API_KEY")
        secret = api_secret or os.getenv("BYBIT_API_SECRET")
        if not key or not secret:
            raise ConfigError(
                "Missing Bybit keys. Pass api_key/api_secret or set BYBIT_API_KEY/BYBIT_API_SECRET.",
                stage="authenticate",
            )
        return ApiKeyCredentials(api_key=key, api_secret=secret)

    if venue == Venue.HYPERLIQUID:
        key = private_key or os.getenv("HYPERLIQUID_PRIVATE_KEY")
        address = wallet_address or os.getenv("HYPERLIQUID_WALLET_ADDRESS") or None
        env_name = "HYPERLIQUID_PRIVATE_KEY"
    else:
        key = private_key or os.getenv("SOLANA_PRIVATE_KEY")
        address = wallet_address
        env_name = "SOLANA_PRIVATE_KEY"

    if not key:
        raise ConfigError(
            f"Missing private key for {venue.value}. Pass private_key or set {env_name}.",
            stage="authenticate",
        )
    return WalletCredentials(private_key=key, wallet_address=address)
