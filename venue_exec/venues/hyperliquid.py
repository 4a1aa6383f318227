"""
Hyperliquid perpetuals adapter.

Orders are L1 actions: a msgpack-hashed action signed as an EIP-712 phantom
agent and posted to ``/exchange``. Without an explicit price the order is an
aggressive IOC limit 5% through the mid, which fills like a market order.
"""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from venue_exec.config import HyperliquidConfig, get_hyperliquid_config
from venue_exec.contracts import (
    IntentAction,
    MarketRef,
    Quote,
    Side,
    SignedOrder,
    Venue,
    WalletCredentials,
)
from venue_exec.errors import InputError, MarketNotFoundError, VenueRejectedError
from venue_exec.signing.clock import MonotonicMillis
from venue_exec.signing.l1_signer import L1ActionSigner, float_to_wire
from venue_exec.venues.base import ExecutionContext, Outcome, as_decimal
from venue_exec.venues.http import JsonHttpClient

logger = logging.getLogger(__name__)

# Longest first so "-USDT" wins over "USDT".
QUOTE_SUFFIXES = ("/USDT", "-USDT", "/USDC", "-USDC", "-PERP", "USDT", "USDC")


def candidate_names(symbol: str) -> List[str]:
    upper = symbol.strip().upper()
    names = [upper]
    for suffix in QUOTE_SUFFIXES:
        if upper.endswith(suffix) and len(upper) > len(suffix):
            names.append(upper[: -len(suffix)])
    return names


def resolve_asset(universe: Sequence[Dict[str, Any]], symbol: str) -> Tuple[int, Dict[str, Any]]:
    """Return ``(asset_index, meta_entry)`` for ``symbol``."""
    wanted = set(candidate_names(symbol))
    for index, entry in enumerate(universe):
        if not isinstance(entry, dict):
            continue
        if str(entry.get("name", "")).upper() in wanted:
            return index, entry
    raise MarketNotFoundError(f"asset not found: {symbol}", stage="resolve")


def aggressive_price(mid: float, side: Side, slippage: float, sz_decimals: int) -> float:
    px = mid * (1 + slippage) if side == Side.BUY else mid * (1 - slippage)
    # 5 significant figures, then at most (6 - szDecimals) decimals.
    return round(float(f"{px:.5g}"), max(0, 6 - sz_decimals))


def order_size(amount: Decimal, sz_decimals: int) -> Decimal:
    step = Decimal(1).scaleb(-sz_decimals)
    return amount.quantize(step, rounding=ROUND_DOWN)


class HyperliquidAdapter:
    venue = Venue.HYPERLIQUID

    def __init__(
        self,
        config: Optional[HyperliquidConfig] = None,
        *,
        http: Optional[JsonHttpClient] = None,
        clock: Optional[MonotonicMillis] = None,
    ) -> None:
        self._cfg = config or get_hyperliquid_config()
        self._http = http or JsonHttpClient(timeout=self._cfg.timeout_seconds)
        self._clock = clock or MonotonicMillis()

    def authenticate(self, ctx: ExecutionContext) -> None:
        creds = ctx.intent.credentials
        if not isinstance(creds, WalletCredentials):
            raise InputError("Hyperliquid requires wallet credentials", stage="authenticate")
        if ctx.intent.action == IntentAction.CLOSE and ctx.intent.amount is None:
            raise InputError("Hyperliquid close requires an explicit amount", stage="authenticate")
        signer = L1ActionSigner(creds.private_key.get_secret_value(), is_mainnet=self._cfg.is_mainnet)
        if creds.wallet_address and creds.wallet_address.lower() != signer.address.lower():
            # Agent (API) wallets sign on behalf of a different master account.
            logger.info("Signing for %s with agent key %s", creds.wallet_address, signer.address)
        ctx.signer = signer

    def resolve_market(self, ctx: ExecutionContext) -> MarketRef:
        meta = self._info(ctx, {"type": "meta"})
        universe = meta.get("universe") if isinstance(meta, dict) else None
        if not isinstance(universe, list):
            raise VenueRejectedError("Hyperliquid meta response carried no universe", raw=meta)
        index, entry = resolve_asset(universe, ctx.intent.symbol)
        return MarketRef(
            venue=self.venue,
            symbol=str(entry["name"]),
            asset_index=index,
            decimals=int(entry.get("szDecimals", 0)),
        )

    def prepare(self, ctx: ExecutionContext) -> Optional[Outcome]:
        leverage = ctx.intent.leverage
        if leverage is not None and leverage > 1:
            self._update_leverage(ctx, leverage)

        if ctx.intent.price is not None:
            ctx.state["limit_price"] = float(ctx.intent.price)
            return None

        mids = self._info(ctx, {"type": "allMids"})
        mid_raw = mids.get(ctx.market.symbol) if isinstance(mids, dict) else None
        if mid_raw is None:
            raise MarketNotFoundError(f"no mid price for {ctx.market.symbol}", stage="prepare")
        mid = float(mid_raw)
        ctx.state["mid_price"] = mid
        ctx.state["limit_price"] = aggressive_price(
            mid, ctx.intent.side, self._cfg.market_slippage, ctx.market.decimals or 0
        )
        return None

    def quote(self, ctx: ExecutionContext) -> Optional[Quote]:
        return None

    def build_order(self, ctx: ExecutionContext) -> Dict[str, Any]:
        intent = ctx.intent
        size = order_size(intent.amount, ctx.market.decimals or 0)
        if size <= 0:
            raise InputError(
                f"amount {intent.amount} rounds to zero at {ctx.market.decimals} size decimals",
                stage="build",
            )
        try:
            order = {
                "a": ctx.market.asset_index,
                "b": intent.side == Side.BUY,
                "p": float_to_wire(ctx.state["limit_price"]),
                "s": float_to_wire(size),
                "r": intent.reduce_only or intent.action == IntentAction.CLOSE,
                "t": {"limit": {"tif": "Ioc"}},
            }
        except ValueError as exc:
            raise InputError(str(exc), stage="build") from exc
        return {"type": "order", "orders": [order], "grouping": "na"}

    def sign(self, ctx: ExecutionContext, order: Dict[str, Any]) -> SignedOrder:
        nonce = self._clock.next()
        signature = ctx.signer.sign_action(order, nonce, vault_address=self._cfg.vault_address)
        return SignedOrder(
            venue=self.venue,
            payload={
                "action": order,
                "nonce": nonce,
                "signature": signature,
                "vaultAddress": self._cfg.vault_address,
            },
            signature=signature,
        )

    def submit(self, ctx: ExecutionContext, signed: SignedOrder) -> Dict[str, Any]:
        resp = self._http.request("POST", self._cfg.exchange_url, ctx=ctx, json_body=signed.consume())
        if not isinstance(resp, dict) or resp.get("status") != "ok":
            detail = resp.get("response") if isinstance(resp, dict) else resp
            raise VenueRejectedError(f"Hyperliquid order rejected: {detail}", raw=resp)
        return resp

    def confirm(self, ctx: ExecutionContext, receipt: Dict[str, Any]) -> Outcome:
        response = receipt.get("response") or {}
        data = response.get("data") if isinstance(response, dict) else None
        statuses = (data or {}).get("statuses") or []

        filled = next((s["filled"] for s in statuses if isinstance(s, dict) and "filled" in s), None)
        resting = next((s["resting"] for s in statuses if isinstance(s, dict) and "resting" in s), None)
        errors = [s["error"] for s in statuses if isinstance(s, dict) and "error" in s]
        for err in errors:
            logger.warning("Hyperliquid order status error for %s: %s", ctx.market.symbol, err)
            ctx.warn(f"order status error: {err}")

        oid = (filled or resting or {}).get("oid")
        if oid is not None:
            ctx.order_id = str(oid)

        details: Dict[str, Any] = {"statuses": statuses, "limit_price": ctx.state.get("limit_price")}
        if "mid_price" in ctx.state:
            details["mid_price"] = ctx.state["mid_price"]

        return Outcome(
            status="filled" if filled else "accepted",
            order_id=ctx.order_id,
            executed_amount=as_decimal(filled.get("totalSz")) if filled else None,
            executed_price=as_decimal(filled.get("avgPx")) if filled else None,
            details=details,
        )

    # ------------------------------------------------------------------
    def _info(self, ctx: ExecutionContext, body: Dict[str, Any]) -> Any:
        return self._http.request("POST", self._cfg.info_url, ctx=ctx, json_body=body)

    def _update_leverage(self, ctx: ExecutionContext, leverage: int) -> None:
        action = {
            "type": "updateLeverage",
            "asset": ctx.market.asset_index,
            "isCross": True,
            "leverage": leverage,
        }
        nonce = self._clock.next()
        payload = {
            "action": action,
            "nonce": nonce,
            "signature": ctx.signer.sign_action(action, nonce, vault_address=self._cfg.vault_address),
            "vaultAddress": self._cfg.vault_address,
        }
        resp = self._http.request("POST", self._cfg.exchange_url, ctx=ctx, json_body=payload)
        if isinstance(resp, dict) and resp.get("status") == "ok":
            logger.info("Hyperliquid leverage set to %dx for %s", leverage, ctx.market.symbol)
            return
        detail = resp.get("response") if isinstance(resp, dict) else resp
        logger.warning("Hyperliquid leverage not set for %s: %s", ctx.market.symbol, detail)
        ctx.warn(f"leverage not set: {detail}")
