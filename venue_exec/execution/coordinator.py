"""
Execution coordinator.

Drives one venue adapter through authenticate → resolve → prepare → quote →
build → sign → submit → confirm for a single intent, inside a single failure
boundary. Whatever happens, one ``ExecutionResult`` is produced and handed
to the ledger sink exactly once before control returns to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from venue_exec.contracts import ExecutionResult, TradeIntent, Venue
from venue_exec.errors import ExecutionError, ExecutionFailed, InputError
from venue_exec.execution.ledger import InMemoryLedgerSink, LedgerSink, scrub_payload
from venue_exec.venues.base import ExecutionContext, Outcome, VenueAdapter

logger = logging.getLogger(__name__)


class ExecutionCoordinator:
    def __init__(
        self,
        adapters: Union[Mapping[Venue, VenueAdapter], Iterable[VenueAdapter]],
        sink: Optional[LedgerSink] = None,
        *,
        clock=time.monotonic,
    ) -> None:
        if isinstance(adapters, Mapping):
            self._adapters: Dict[Venue, VenueAdapter] = dict(adapters)
        else:
            self._adapters = {adapter.venue: adapter for adapter in adapters}
        self._sink: LedgerSink = sink if sink is not None else InMemoryLedgerSink()
        self._clock = clock

    @property
    def sink(self) -> LedgerSink:
        return self._sink

    @property
    def venues(self) -> List[Venue]:
        return list(self._adapters)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def execute(self, intent: TradeIntent) -> ExecutionResult:
        """Run one intent to completion. Never raises."""
        started = self._clock()
        venue = intent.venue.value
        ctx = ExecutionContext(intent=intent, trace=lambda event, payload: self._trace(venue, event, payload))

        try:
            ctx.enter("validate")
            adapter = self._adapters.get(intent.venue)
            if adapter is None:
                raise InputError(f"no adapter registered for venue {venue}")
            if intent.credentials is None:
                raise InputError(f"no credentials supplied for venue {venue}")
            result = self._run(adapter, ctx, started)
        except ExecutionError as exc:
            result = self._failure(ctx, exc, started)
        except Exception as exc:
            logger.exception("Unexpected error executing %s at stage=%s", intent.intent_id, ctx.stage)
            result = self._failure(ctx, exc, started)

        self._record(result)
        return result

    def execute_or_raise(self, intent: TradeIntent) -> ExecutionResult:
        """Like ``execute`` but raises ``ExecutionFailed`` once the failure is recorded."""
        result = self.execute(intent)
        if not result.success:
            raise ExecutionFailed(result)
        return result

    async def execute_async(self, intent: TradeIntent) -> ExecutionResult:
        return await asyncio.to_thread(self.execute, intent)

    async def execute_many(self, intents: Iterable[TradeIntent]) -> List[ExecutionResult]:
        """Run independent intents concurrently; results keep input order."""
        return list(await asyncio.gather(*(self.execute_async(i) for i in intents)))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _run(self, adapter: VenueAdapter, ctx: ExecutionContext, started: float) -> ExecutionResult:
        ctx.enter("authenticate")
        adapter.authenticate(ctx)

        ctx.enter("resolve")
        ctx.market = adapter.resolve_market(ctx)

        ctx.enter("prepare")
        early = adapter.prepare(ctx)
        if early is not None:
            return self._from_outcome(ctx, early, started)

        ctx.enter("quote")
        ctx.quote = adapter.quote(ctx)

        ctx.enter("build")
        order = adapter.build_order(ctx)

        ctx.enter("sign")
        signed = adapter.sign(ctx, order)

        ctx.enter("submit")
        receipt = adapter.submit(ctx, signed)

        ctx.enter("confirm")
        outcome = adapter.confirm(ctx, receipt)
        return self._from_outcome(ctx, outcome, started)

    def _from_outcome(self, ctx: ExecutionContext, outcome: Outcome, started: float) -> ExecutionResult:
        intent = ctx.intent
        details: Dict[str, Any] = dict(ctx.details)
        details.update(outcome.details)
        if ctx.warnings:
            details["warnings"] = list(ctx.warnings)
        if outcome.message:
            details.setdefault("message", outcome.message)

        result = ExecutionResult(
            intent_id=intent.intent_id,
            venue=intent.venue,
            symbol=ctx.market.symbol if ctx.market else intent.symbol,
            side=intent.side,
            action=intent.action,
            success=outcome.success,
            status=outcome.status,
            order_id=outcome.order_id or ctx.order_id,
            tx_hash=outcome.tx_hash or ctx.tx_hash,
            executed_amount=outcome.executed_amount,
            executed_price=outcome.executed_price,
            fees=outcome.fees,
            slippage=outcome.slippage,
            execution_time=round(self._clock() - started, 6),
            stage=ctx.stage,
            details=details,
        )
        logger.info(
            "Execution %s %s %s %s: %s order_id=%s tx=%s",
            intent.intent_id, intent.venue.value, intent.side.value, result.symbol,
            result.status, result.order_id, result.tx_hash,
        )
        return result

    def _failure(self, ctx: ExecutionContext, exc: Exception, started: float) -> ExecutionResult:
        intent = ctx.intent
        if isinstance(exc, ExecutionError):
            status, retryable, code = exc.status, exc.retryable, exc.code
            stage = exc.stage or ctx.stage
            raw = exc.raw if exc.raw is not None else ctx.last_response
            message = exc.message
        else:
            status, retryable, code = "error", False, None
            stage, raw = ctx.stage, ctx.last_response
            message = f"{type(exc).__name__}: {exc}"

        details: Dict[str, Any] = dict(ctx.details)
        if ctx.warnings:
            details["warnings"] = list(ctx.warnings)
        if raw is not None:
            details["raw"] = scrub_payload(raw)

        logger.error(
            "Execution %s failed at stage=%s venue=%s: %s | intent=%s raw=%s",
            intent.intent_id, stage, intent.venue.value, message,
            intent.log_view(), scrub_payload(raw),
        )
        return ExecutionResult(
            intent_id=intent.intent_id,
            venue=intent.venue,
            symbol=ctx.market.symbol if ctx.market else intent.symbol,
            side=intent.side,
            action=intent.action,
            success=False,
            status=status,
            order_id=ctx.order_id,
            tx_hash=ctx.tx_hash,
            execution_time=round(self._clock() - started, 6),
            error=message,
            error_code=str(code) if code is not None else None,
            stage=stage,
            retryable=retryable,
            details=details,
        )

    def _trace(self, venue: str, event: str, payload: Dict[str, Any]) -> None:
        try:
            self._sink.trace(venue, event, payload)
        except Exception as exc:
            logger.warning("Ledger trace for %s failed: %s", venue, exc)

    def _record(self, result: ExecutionResult) -> None:
        try:
            self._sink.record(result)
        except Exception as exc:
            logger.warning("Ledger record for %s failed: %s", result.intent_id, exc)
