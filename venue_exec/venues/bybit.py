"""
Bybit V5 linear-perpetual adapter.

Places market orders with HMAC-signed requests. Leverage is set before the
order when the intent asks for more than 1x; "leverage not modified" is
treated as success and any other leverage failure is a warning only.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from venue_exec.config import BybitConfig, get_bybit_config
from venue_exec.contracts import (
    ApiKeyCredentials,
    IntentAction,
    MarketRef,
    Quote,
    SignedOrder,
    Venue,
)
from venue_exec.errors import ExecutionError, InputError, VenueRejectedError
from venue_exec.signing.clock import MonotonicMillis
from venue_exec.signing.hmac_signer import HmacSigner
from venue_exec.venues.base import ExecutionContext, Outcome, as_decimal
from venue_exec.venues.http import JsonHttpClient, compact_json

logger = logging.getLogger(__name__)

LEVERAGE_NOT_MODIFIED = 110043

_SEPARATORS = re.compile(r"[/\-_:\s]")


def format_symbol(symbol: str) -> str:
    """``eth/usdt`` -> ``ETHUSDT``."""
    return _SEPARATORS.sub("", symbol).upper()


def format_qty(amount: Decimal) -> str:
    return f"{amount.normalize():f}"


class BybitAdapter:
    venue = Venue.BYBIT

    def __init__(
        self,
        config: Optional[BybitConfig] = None,
        *,
        http: Optional[JsonHttpClient] = None,
        clock: Optional[MonotonicMillis] = None,
    ) -> None:
        self._cfg = config or get_bybit_config()
        self._http = http or JsonHttpClient(timeout=self._cfg.timeout_seconds)
        self._clock = clock or MonotonicMillis()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def authenticate(self, ctx: ExecutionContext) -> None:
        creds = ctx.intent.credentials
        if not isinstance(creds, ApiKeyCredentials):
            raise InputError("Bybit requires api_key credentials", stage="authenticate")
        if ctx.intent.action == IntentAction.CLOSE and ctx.intent.amount is None:
            raise InputError("Bybit close requires an explicit amount", stage="authenticate")
        ctx.signer = HmacSigner(
            creds.api_key,
            creds.api_secret.get_secret_value(),
            recv_window=self._cfg.recv_window,
            clock=self._clock,
        )

    def resolve_market(self, ctx: ExecutionContext) -> MarketRef:
        formatted = format_symbol(ctx.intent.symbol)
        if not formatted.isalnum():
            raise InputError(f"Invalid Bybit symbol: {ctx.intent.symbol!r}", stage="resolve")
        return MarketRef(venue=self.venue, symbol=formatted)

    def prepare(self, ctx: ExecutionContext) -> Optional[Outcome]:
        leverage = ctx.intent.leverage
        if leverage is not None and leverage > 1:
            self._set_leverage(ctx, leverage)
        return None

    def quote(self, ctx: ExecutionContext) -> Optional[Quote]:
        return None

    def build_order(self, ctx: ExecutionContext) -> Dict[str, Any]:
        intent = ctx.intent
        order: Dict[str, Any] = {
            "category": self._cfg.category,
            "symbol": ctx.market.symbol,
            "side": intent.side.value.capitalize(),
            "orderType": "Market",
            "qty": format_qty(intent.amount),
            "orderLinkId": intent.intent_id[:36],
        }
        if intent.price is not None:
            order["orderType"] = "Limit"
            order["price"] = format_qty(intent.price)
            order["timeInForce"] = "IOC"
        if intent.reduce_only or intent.action == IntentAction.CLOSE:
            order["reduceOnly"] = True
        return order

    def sign(self, ctx: ExecutionContext, order: Dict[str, Any]) -> SignedOrder:
        body = compact_json(order)
        headers = ctx.signer.sign(body)
        return SignedOrder(
            venue=self.venue,
            payload={"body": body, "headers": headers},
            signature=headers["X-BAPI-SIGN"],
        )

    def submit(self, ctx: ExecutionContext, signed: SignedOrder) -> Dict[str, Any]:
        payload = signed.consume()
        resp = self._http.request(
            "POST",
            self._url("/v5/order/create"),
            ctx=ctx,
            data=payload["body"],
            headers=payload["headers"],
        )
        result = self._checked(resp, "order rejected")
        order_id = result.get("orderId")
        if not order_id:
            raise VenueRejectedError("Bybit order response carried no orderId", raw=resp)
        ctx.order_id = str(order_id)
        logger.info("Bybit order placed: %s %s id=%s", ctx.market.symbol, ctx.intent.side.value, order_id)
        return result

    def confirm(self, ctx: ExecutionContext, receipt: Dict[str, Any]) -> Outcome:
        details: Dict[str, Any] = {"order_link_id": receipt.get("orderLinkId")}
        status = "accepted"
        executed_amount = executed_price = fees = None

        if self._cfg.fetch_fills:
            try:
                fill = self._fetch_order(ctx, ctx.order_id)
            except ExecutionError as exc:
                # Order is placed; a failed lookup only loses fill detail.
                logger.warning("Bybit order lookup failed for %s: %s", ctx.order_id, exc)
                ctx.warn(f"fill lookup failed: {exc}")
                fill = None
            if fill:
                executed_amount = as_decimal(fill.get("cumExecQty"))
                executed_price = as_decimal(fill.get("avgPrice"))
                fees = as_decimal(fill.get("cumExecFee"))
                details["order_status"] = fill.get("orderStatus")
                if fill.get("orderStatus") == "Filled":
                    status = "filled"

        return Outcome(
            status=status,
            order_id=ctx.order_id,
            executed_amount=executed_amount,
            executed_price=executed_price,
            fees=fees,
            details=details,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _url(self, path: str) -> str:
        return f"{self._cfg.base_url.rstrip('/')}{path}"

    def _signed_post(self, ctx: ExecutionContext, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = compact_json(payload)
        return self._http.request(
            "POST", self._url(path), ctx=ctx, data=body, headers=ctx.signer.sign(body)
        )

    def _signed_get(self, ctx: ExecutionContext, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        query = urlencode(params)
        return self._http.request(
            "GET", f"{self._url(path)}?{query}", ctx=ctx, headers=ctx.signer.sign(query)
        )

    @staticmethod
    def _checked(resp: Any, context: str) -> Dict[str, Any]:
        if not isinstance(resp, dict):
            raise VenueRejectedError(f"Bybit {context}: unexpected payload", raw=resp)
        code = resp.get("retCode")
        if code != 0:
            raise VenueRejectedError(
                f"Bybit {context}: {resp.get('retMsg')} (code {code})", raw=resp, code=code
            )
        result = resp.get("result")
        return result if isinstance(result, dict) else {}

    def _set_leverage(self, ctx: ExecutionContext, leverage: int) -> None:
        payload = {
            "category": self._cfg.category,
            "symbol": ctx.market.symbol,
            "buyLeverage": str(leverage),
            "sellLeverage": str(leverage),
        }
        resp = self._signed_post(ctx, "/v5/position/set-leverage", payload)
        code = resp.get("retCode") if isinstance(resp, dict) else None
        if code == 0:
            logger.info("Bybit leverage set to %dx for %s", leverage, ctx.market.symbol)
        elif code == LEVERAGE_NOT_MODIFIED:
            logger.info("Bybit leverage already %dx for %s", leverage, ctx.market.symbol)
        else:
            msg = resp.get("retMsg") if isinstance(resp, dict) else resp
            logger.warning("Bybit leverage not set for %s: %s (code %s)", ctx.market.symbol, msg, code)
            ctx.warn(f"leverage not set: {msg} (code {code})")

    def _fetch_order(self, ctx: ExecutionContext, order_id: Optional[str]) -> Optional[Dict[str, Any]]:
        params = {"category": self._cfg.category, "symbol": ctx.market.symbol, "orderId": order_id}
        result = self._checked(self._signed_get(ctx, "/v5/order/realtime", params), "order lookup")
        rows = result.get("list") or []
        return rows[0] if rows and isinstance(rows[0], dict) else None
