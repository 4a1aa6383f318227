"""
Solana spot swaps routed through the Jupiter aggregator.

Jupiter builds the transaction; this adapter only signs it with the holder's
key, broadcasts it and waits for the configured commitment. Every
submission walks the settlement state machine to exactly one terminal
state.
"""

from __future__ import annotations

import logging
import time
from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, Optional

from solders.pubkey import Pubkey

from venue_exec.config import SOL_MINT, USDC_MINT, SolanaConfig, get_solana_config
from venue_exec.contracts import IntentAction, MarketRef, Quote, Side, SignedOrder, Venue, WalletCredentials
from venue_exec.errors import (
    InputError,
    MarketNotFoundError,
    SettlementFailedError,
    SettlementTimeoutError,
    TransportError,
    VenueRejectedError,
)
from venue_exec.signing.tx_signer import SolanaTransactionSigner
from venue_exec.venues.base import ExecutionContext, Outcome
from venue_exec.venues.http import JsonHttpClient
from venue_exec.venues.settlement import SettlementState
from venue_exec.venues.solana_rpc import JupiterClient, SolanaRpcClient, commitment_reached

logger = logging.getLogger(__name__)

MINT_ALIASES = {"SOL": SOL_MINT, "WSOL": SOL_MINT, "USDC": USDC_MINT}
KNOWN_DECIMALS = {USDC_MINT: 6, SOL_MINT: 9}

EXPLORER_URL = "https://solscan.io/tx/{}"


class SolanaJupiterAdapter:
    venue = Venue.SOLANA_JUPITER

    def __init__(
        self,
        config: Optional[SolanaConfig] = None,
        *,
        http: Optional[JsonHttpClient] = None,
        rpc: Optional[SolanaRpcClient] = None,
        jupiter: Optional[JupiterClient] = None,
        sleep=time.sleep,
        monotonic=time.monotonic,
    ) -> None:
        self._cfg = config or get_solana_config()
        http = http or JsonHttpClient(timeout=self._cfg.timeout_seconds, sleep=sleep)
        self._rpc = rpc or SolanaRpcClient(self._cfg, http, sleep=sleep)
        self._jupiter = jupiter or JupiterClient(self._cfg, http)
        self._sleep = sleep
        self._monotonic = monotonic

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def authenticate(self, ctx: ExecutionContext) -> None:
        creds = ctx.intent.credentials
        if not isinstance(creds, WalletCredentials):
            raise InputError("Solana requires wallet credentials", stage="authenticate")
        signer = SolanaTransactionSigner.from_private_key(creds.private_key.get_secret_value())
        if creds.wallet_address and creds.wallet_address != signer.pubkey:
            raise InputError(
                f"wallet address {creds.wallet_address} does not match key {signer.pubkey}",
                stage="authenticate",
            )
        ctx.signer = signer

    def resolve_market(self, ctx: ExecutionContext) -> MarketRef:
        symbol = ctx.intent.symbol
        mint = MINT_ALIASES.get(symbol.upper(), symbol)
        try:
            Pubkey.from_string(mint)
        except ValueError as exc:
            raise MarketNotFoundError(f"invalid mint address: {symbol}", stage="resolve") from exc
        if mint == self._cfg.quote_mint:
            raise InputError("cannot swap the quote mint against itself", stage="resolve")
        return MarketRef(venue=self.venue, symbol=symbol, mint=mint, decimals=KNOWN_DECIMALS.get(mint))

    def prepare(self, ctx: ExecutionContext) -> Optional[Outcome]:
        intent = ctx.intent
        mint = ctx.market.mint
        quote_mint = self._cfg.quote_mint
        max_bps = intent.constraints.max_slippage_bps

        if intent.action == IntentAction.CLOSE:
            balance = self._rpc.get_token_balance(ctx, ctx.signer.pubkey, mint)
            logger.info("Solana balance for %s: %s", mint, balance.ui_amount)
            if balance.amount <= 0:
                return Outcome(
                    status="no_position",
                    message="no position to close",
                    details={"message": "no position to close", "mint": mint},
                )
            ctx.state.update(
                input_mint=mint,
                output_mint=quote_mint,
                raw_amount=balance.amount,
                input_decimals=balance.decimals,
                output_decimals=self._decimals(ctx, quote_mint),
                slippage_bps=max_bps or self._cfg.close_slippage_bps,
            )
            return None

        if intent.side == Side.BUY:
            input_mint, output_mint = quote_mint, mint
        else:
            input_mint, output_mint = mint, quote_mint
        input_decimals = self._decimals(ctx, input_mint)
        raw_amount = int((intent.amount.scaleb(input_decimals)).to_integral_value(rounding=ROUND_DOWN))
        if raw_amount <= 0:
            raise InputError(f"amount {intent.amount} is below one base unit", stage="prepare")
        ctx.state.update(
            input_mint=input_mint,
            output_mint=output_mint,
            raw_amount=raw_amount,
            input_decimals=input_decimals,
            output_decimals=self._decimals(ctx, output_mint),
            slippage_bps=max_bps or self._cfg.open_slippage_bps,
        )
        return None

    def quote(self, ctx: ExecutionContext) -> Quote:
        state = ctx.state
        quote = self._jupiter.get_quote(
            ctx, state["input_mint"], state["output_mint"], state["raw_amount"], state["slippage_bps"]
        )
        min_liquidity = ctx.intent.constraints.min_liquidity
        if min_liquidity is not None:
            out_ui = Decimal(quote.output_amount).scaleb(-state["output_decimals"])
            if out_ui < min_liquidity:
                raise VenueRejectedError(
                    f"quote output {out_ui} below min_liquidity {min_liquidity}",
                    raw=quote.raw,
                    code="min_liquidity",
                )
        logger.info(
            "Jupiter quote %s -> %s: in=%d out=%d impact=%s%%",
            quote.input_mint, quote.output_mint, quote.input_amount, quote.output_amount,
            quote.price_impact_pct,
        )
        return quote

    def build_order(self, ctx: ExecutionContext) -> str:
        swap_tx = self._jupiter.build_swap(ctx, ctx.quote, ctx.signer.pubkey)
        ctx.start_settlement().advance(SettlementState.BUILT)
        return swap_tx

    def sign(self, ctx: ExecutionContext, order: str) -> SignedOrder:
        raw, signature = ctx.signer.sign_serialized(order)
        ctx.settlement.advance(SettlementState.SIGNED)
        ctx.tx_hash = signature
        return SignedOrder(venue=self.venue, payload=raw, signature=signature, raw=raw)

    def submit(self, ctx: ExecutionContext, signed: SignedOrder) -> str:
        raw = signed.consume()
        try:
            signature = self._rpc.send_transaction(ctx, raw, signed.signature)
        except TransportError as exc:
            return self._reconcile_unacknowledged(ctx, signed.signature, exc)
        if signature != signed.signature:
            logger.warning("RPC returned signature %s, expected %s", signature, signed.signature)
        ctx.settlement.advance(SettlementState.BROADCAST)
        logger.info("Transaction sent: %s", signed.signature)
        return signed.signature

    def confirm(self, ctx: ExecutionContext, signature: str) -> Outcome:
        tracker = ctx.settlement
        tracker.advance(SettlementState.PENDING)
        limit = ctx.intent.constraints.time_limit_seconds or self._cfg.confirm_timeout_seconds
        deadline = self._monotonic() + limit

        while True:
            status = self._poll_status(ctx, signature)
            if status is not None:
                if status.get("err") is not None:
                    tracker.advance(SettlementState.FAILED)
                    raise SettlementFailedError(
                        f"Transaction failed: {status['err']}", stage="confirm", raw=status
                    )
                if commitment_reached(status.get("confirmationStatus"), self._cfg.commitment):
                    tracker.advance(SettlementState.CONFIRMED)
                    break

            remaining = deadline - self._monotonic()
            if remaining <= 0:
                tracker.advance(SettlementState.TIMED_OUT)
                raise SettlementTimeoutError(
                    f"confirmation not observed within {limit:g}s; transaction {signature} may still land",
                    stage="confirm",
                    raw=status,
                )
            self._sleep(min(self._cfg.poll_interval_seconds, remaining))

        return self._confirmed_outcome(ctx, signature)

    # ------------------------------------------------------------------
    def _poll_status(self, ctx: ExecutionContext, signature: str) -> Optional[Dict[str, Any]]:
        # A failed lookup says nothing about the transaction itself.
        try:
            return self._rpc.get_signature_status(ctx, signature)
        except (TransportError, VenueRejectedError) as exc:
            logger.warning("Status poll for %s failed: %s", signature, exc)
            return None

    def _reconcile_unacknowledged(self, ctx: ExecutionContext, signature: str, exc: TransportError) -> str:
        """Every resend failed at transport level, but the bytes may have landed.

        One status lookup decides: a known signature continues to confirmation,
        an unknown one ends as timed out rather than as a retryable transport
        failure.
        """
        tracker = ctx.settlement
        tracker.advance(SettlementState.BROADCAST)
        status = self._poll_status(ctx, signature)
        if status is not None:
            logger.info("Transaction %s found on chain despite broadcast errors", signature)
            return signature

        tracker.advance(SettlementState.PENDING)
        tracker.advance(SettlementState.TIMED_OUT)
        raise SettlementTimeoutError(
            f"broadcast of {signature} not acknowledged ({exc.message}); transaction may still land",
            stage="submit",
            raw=exc.raw,
        ) from exc

    def _decimals(self, ctx: ExecutionContext, mint: str) -> int:
        if mint in KNOWN_DECIMALS:
            return KNOWN_DECIMALS[mint]
        return self._rpc.get_mint_decimals(ctx, mint)

    def _confirmed_outcome(self, ctx: ExecutionContext, signature: str) -> Outcome:
        state = ctx.state
        quote = ctx.quote
        in_ui = Decimal(quote.input_amount).scaleb(-(state["input_decimals"] or 0))
        out_ui = Decimal(quote.output_amount).scaleb(-state["output_decimals"])
        # Amount and price are expressed in the traded token, priced in the quote mint.
        if state["output_mint"] == ctx.market.mint:
            amount, price = out_ui, (in_ui / out_ui if out_ui else None)
        else:
            amount, price = in_ui, (out_ui / in_ui if in_ui else None)
        details: Dict[str, Any] = {
            "amount_in": str(in_ui),
            "amount_out": str(out_ui),
            "input_mint": state["input_mint"],
            "output_mint": state["output_mint"],
            "route": list(quote.route),
            "explorer": EXPLORER_URL.format(signature),
        }
        return Outcome(
            status="confirmed",
            tx_hash=signature,
            executed_amount=amount,
            executed_price=price,
            slippage=quote.price_impact_pct,
            details=details,
        )
