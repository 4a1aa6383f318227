"""Adapter contract shared by every venue.

An adapter implements the lifecycle steps; the coordinator drives them in
order, owns the failure boundary and produces the single result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Protocol

from venue_exec.contracts import MarketRef, Quote, SignedOrder, TradeIntent, Venue
from venue_exec.venues.settlement import SettlementTracker

TraceFn = Callable[[str, Dict[str, Any]], None]


def _no_trace(event: str, payload: Dict[str, Any]) -> None:
    return None


def as_decimal(value: Any) -> Optional[Decimal]:
    """Parse a venue numeric field, treating empty/zero as "not reported"."""
    if value is None or value == "":
        return None
    try:
        dec = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not dec.is_finite() or dec == 0:
        return None
    return dec


@dataclass
class ExecutionContext:
    """Mutable per-execution state. Never shared between executions."""

    intent: TradeIntent
    trace: TraceFn = _no_trace
    stage: str = "validate"
    signer: Any = None
    market: Optional[MarketRef] = None
    quote: Optional[Quote] = None
    order_id: Optional[str] = None
    tx_hash: Optional[str] = None
    last_response: Any = None
    settlement: Optional[SettlementTracker] = None
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)
    state: Dict[str, Any] = field(default_factory=dict)

    def enter(self, stage: str) -> None:
        self.stage = stage
        self.trace("stage", {"intent_id": self.intent.intent_id, "stage": stage})

    def record_exchange(
        self,
        method: str,
        url: str,
        *,
        request: Any,
        status_code: Optional[int],
        response: Any,
    ) -> None:
        self.last_response = response
        self.trace(
            "http",
            {
                "intent_id": self.intent.intent_id,
                "stage": self.stage,
                "method": method,
                "url": url,
                "request": request,
                "status_code": status_code,
                "response": response,
            },
        )

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        self.trace("warning", {"intent_id": self.intent.intent_id, "stage": self.stage, "message": message})

    def start_settlement(self) -> SettlementTracker:
        def _on_change(state) -> None:
            self.details["settlement"] = tracker.history
            self.trace("settlement", {"intent_id": self.intent.intent_id, "state": state.value})

        tracker = SettlementTracker(on_change=_on_change)
        self.settlement = tracker
        return tracker


@dataclass(frozen=True)
class Outcome:
    """What an adapter observed at the end of its lifecycle."""

    status: str
    success: bool = True
    order_id: Optional[str] = None
    tx_hash: Optional[str] = None
    executed_amount: Optional[Decimal] = None
    executed_price: Optional[Decimal] = None
    fees: Optional[Decimal] = None
    slippage: Optional[float] = None
    message: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class VenueAdapter(Protocol):
    """Per-venue lifecycle steps.

    ``prepare`` may short-circuit with an ``Outcome`` (e.g. nothing to
    close); ``quote`` returns ``None`` on venues without an aggregator.
    Every step raises ``ExecutionError`` subclasses on failure.
    """

    venue: Venue

    def authenticate(self, ctx: ExecutionContext) -> None:
        ...

    def resolve_market(self, ctx: ExecutionContext) -> MarketRef:
        ...

    def prepare(self, ctx: ExecutionContext) -> Optional[Outcome]:
        ...

    def quote(self, ctx: ExecutionContext) -> Optional[Quote]:
        ...

    def build_order(self, ctx: ExecutionContext) -> Any:
        ...

    def sign(self, ctx: ExecutionContext, order: Any) -> SignedOrder:
        ...

    def submit(self, ctx: ExecutionContext, signed: SignedOrder) -> Any:
        ...

    def confirm(self, ctx: ExecutionContext, receipt: Any) -> Outcome:
        ...
