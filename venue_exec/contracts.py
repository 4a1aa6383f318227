"""Venue-agnostic domain models for the execution boundary."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator


class Venue(str, Enum):
    """Supported execution venues."""

    BYBIT = "bybit"
    HYPERLIQUID = "hyperliquid"
    SOLANA_JUPITER = "solana_jupiter"


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class IntentAction(str, Enum):
    """Whether the intent opens/adjusts exposure or liquidates a holding."""

    OPEN = "open"
    CLOSE = "close"


_SIDE_ALIASES = {"buy": "buy", "long": "buy", "b": "buy", "sell": "sell", "short": "sell", "s": "sell"}


class ApiKeyCredentials(BaseModel):
    """API key pair for centralized venues."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["api_key"] = "api_key"
    api_key: str = Field(min_length=1)
    api_secret: SecretStr


class WalletCredentials(BaseModel):
    """Private key (and optional account address) for on-chain venues."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["wallet"] = "wallet"
    private_key: SecretStr
    wallet_address: Optional[str] = None


VenueCredentials = Annotated[
    Union[ApiKeyCredentials, WalletCredentials],
    Field(discriminator="kind"),
]


class ExecutionConstraints(BaseModel):
    """Caller-supplied execution bounds."""

    model_config = ConfigDict(frozen=True)

    max_slippage_bps: Optional[int] = Field(default=None, gt=0, le=10_000)
    time_limit_seconds: Optional[float] = Field(default=None, gt=0)
    min_liquidity: Optional[Decimal] = Field(default=None, ge=0)


class TradeIntent(BaseModel):
    """Venue-agnostic instruction to trade.

    Immutable once built. ``credentials`` never appears in dumps or reprs.
    """

    model_config = ConfigDict(frozen=True)

    intent_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    venue: Venue
    symbol: str = Field(min_length=1)
    side: Side
    amount: Optional[Decimal] = Field(default=None, gt=0)
    leverage: Optional[int] = Field(default=None, ge=1)
    action: IntentAction = IntentAction.OPEN
    price: Optional[Decimal] = Field(default=None, gt=0)
    reduce_only: bool = False
    constraints: ExecutionConstraints = Field(default_factory=ExecutionConstraints)
    credentials: Optional[VenueCredentials] = Field(default=None, exclude=True, repr=False)

    @field_validator("symbol", mode="before")
    @classmethod
    def _strip_symbol(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("side", mode="before")
    @classmethod
    def _normalise_side(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _SIDE_ALIASES.get(value.strip().lower(), value)
        return value

    @model_validator(mode="after")
    def _require_amount_for_open(self) -> "TradeIntent":
        if self.action == IntentAction.OPEN and self.amount is None:
            raise ValueError("amount is required unless action=close")
        return self

    def log_view(self) -> Dict[str, Any]:
        """JSON-safe view for logs and ledgers (credentials excluded)."""
        return self.model_dump(mode="json", exclude_none=True)


@dataclass(frozen=True)
class MarketRef:
    """Venue-native market identity resolved for one execution."""

    venue: Venue
    symbol: str
    asset_index: Optional[int] = None
    mint: Optional[str] = None
    decimals: Optional[int] = None


@dataclass(frozen=True)
class Quote:
    """Aggregator quote, consumed immediately to build a swap."""

    input_mint: str
    output_mint: str
    input_amount: int
    output_amount: int
    price_impact_pct: float
    slippage_bps: int
    route: Tuple[str, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass
class SignedOrder:
    """Signed venue payload. Submission consumes it exactly once."""

    venue: Venue
    payload: Any
    signature: Any
    raw: Optional[bytes] = field(default=None, repr=False)
    _consumed: bool = field(default=False, init=False, repr=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> Any:
        if self._consumed:
            raise RuntimeError(f"{self.venue.value} signed order already submitted")
        self._consumed = True
        return self.payload


class ExecutionResult(BaseModel):
    """The single cross-venue output of one execution attempt."""

    model_config = ConfigDict(frozen=True)

    intent_id: str
    venue: Venue
    symbol: str
    side: Optional[Side] = None
    action: IntentAction = IntentAction.OPEN
    success: bool
    status: str
    order_id: Optional[str] = None
    tx_hash: Optional[str] = None
    executed_amount: Optional[Decimal] = None
    executed_price: Optional[Decimal] = None
    fees: Optional[Decimal] = None
    slippage: Optional[float] = None
    execution_time: Optional[float] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    stage: Optional[str] = None
    retryable: bool = False
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_output(self) -> Dict[str, Any]:
        """Canonical ``{success, ...identifiers}`` object for programmatic callers."""
        payload = self.model_dump(mode="json", exclude_none=True)
        details = payload.pop("details", {}) or {}
        output: Dict[str, Any] = {"success": payload.pop("success")}
        output.update(payload)
        for key, value in details.items():
            output.setdefault(key, value)
        return output
