"""Solana JSON-RPC and Jupiter v6 HTTP clients."""

from __future__ import annotations

import base64
import itertools
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from venue_exec.config import SolanaConfig
from venue_exec.contracts import Quote
from venue_exec.errors import TransportError, VenueRejectedError
from venue_exec.venues.http import JsonHttpClient

logger = logging.getLogger(__name__)

_ALREADY_PROCESSED = ("already been processed", "alreadyprocessed")

COMMITMENT_RANK = {"processed": 0, "confirmed": 1, "finalized": 2}


def commitment_reached(observed: Optional[str], required: str) -> bool:
    if observed is None:
        return False
    return COMMITMENT_RANK.get(observed, -1) >= COMMITMENT_RANK.get(required, 1)


@dataclass(frozen=True)
class TokenBalance:
    amount: int
    decimals: Optional[int]

    @property
    def ui_amount(self) -> Decimal:
        if not self.amount or self.decimals is None:
            return Decimal(0)
        return Decimal(self.amount).scaleb(-self.decimals)


class SolanaRpcClient:
    def __init__(self, config: SolanaConfig, http: JsonHttpClient, *, sleep=time.sleep) -> None:
        self._cfg = config
        self._http = http
        self._sleep = sleep
        self._ids = itertools.count(1)

    def call(self, ctx, method: str, params: List[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        resp = self._http.request("POST", self._cfg.rpc_url, ctx=ctx, json_body=body)
        if not isinstance(resp, dict):
            raise VenueRejectedError(f"RPC {method}: unexpected payload", raw=resp)
        error = resp.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            code = error.get("code") if isinstance(error, dict) else None
            raise VenueRejectedError(f"RPC {method}: {message}", raw=resp, code=code)
        return resp.get("result")

    def get_token_balance(self, ctx, owner: str, mint: str) -> TokenBalance:
        result = self.call(
            ctx,
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed", "commitment": self._cfg.commitment}],
        )
        accounts = (result or {}).get("value") or []
        if not accounts:
            return TokenBalance(amount=0, decimals=None)
        try:
            token_amount = accounts[0]["account"]["data"]["parsed"]["info"]["tokenAmount"]
            return TokenBalance(amount=int(token_amount["amount"]), decimals=int(token_amount["decimals"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise VenueRejectedError("Unparseable token account response", raw=result) from exc

    def get_mint_decimals(self, ctx, mint: str) -> int:
        result = self.call(ctx, "getTokenSupply", [mint])
        try:
            return int(result["value"]["decimals"])
        except (KeyError, TypeError, ValueError) as exc:
            raise VenueRejectedError(f"Unparseable token supply for {mint}", raw=result) from exc

    def send_transaction(self, ctx, raw_tx: bytes, signature: str) -> str:
        """Broadcast signed bytes, retrying transport failures.

        Resending identical bytes cannot double-spend: the signature is the
        transaction id, so a resend either lands once or is reported as
        already processed.
        """
        encoded = base64.b64encode(raw_tx).decode("ascii")
        params = [
            encoded,
            {
                "encoding": "base64",
                "skipPreflight": False,
                "preflightCommitment": self._cfg.commitment,
                "maxRetries": 3,
            },
        ]
        attempts = self._cfg.broadcast_attempts
        delay = self._cfg.broadcast_backoff_seconds
        for attempt in range(1, attempts + 1):
            try:
                result = self.call(ctx, "sendTransaction", params)
                return str(result or signature)
            except TransportError as exc:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "Broadcast of %s failed (attempt %d/%d): %s, resending in %.1fs",
                    signature, attempt, attempts, exc, delay,
                )
                self._sleep(delay)
                delay *= 2
            except VenueRejectedError as exc:
                if attempt > 1 and _is_already_processed(exc):
                    logger.info("Transaction %s already processed on resend", signature)
                    return signature
                raise
        raise TransportError(f"broadcast of {signature} exhausted {attempts} attempts")

    def get_signature_status(self, ctx, signature: str) -> Optional[Dict[str, Any]]:
        result = self.call(
            ctx, "getSignatureStatuses", [[signature], {"searchTransactionHistory": True}]
        )
        values = (result or {}).get("value") or [None]
        status = values[0]
        return status if isinstance(status, dict) else None


def _is_already_processed(exc: VenueRejectedError) -> bool:
    text = str(exc).lower().replace(" ", "")
    return any(marker.replace(" ", "") in text for marker in _ALREADY_PROCESSED)


class JupiterClient:
    def __init__(self, config: SolanaConfig, http: JsonHttpClient) -> None:
        self._cfg = config
        self._http = http

    def _url(self, path: str) -> str:
        return f"{self._cfg.jupiter_url.rstrip('/')}{path}"

    def get_quote(self, ctx, input_mint: str, output_mint: str, amount: int, slippage_bps: int) -> Quote:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
        }
        resp = self._http.request("GET", self._url("/quote"), ctx=ctx, params=params)
        if not isinstance(resp, dict) or resp.get("error"):
            detail = resp.get("error") if isinstance(resp, dict) else resp
            raise VenueRejectedError(f"Quote error: {detail}", raw=resp, code=_error_code(resp))
        try:
            return Quote(
                input_mint=str(resp["inputMint"]),
                output_mint=str(resp["outputMint"]),
                input_amount=int(resp["inAmount"]),
                output_amount=int(resp["outAmount"]),
                price_impact_pct=float(resp.get("priceImpactPct") or 0.0),
                slippage_bps=int(resp.get("slippageBps", slippage_bps)),
                route=tuple(
                    str(step.get("swapInfo", {}).get("label", "?"))
                    for step in resp.get("routePlan") or []
                    if isinstance(step, dict)
                ),
                raw=resp,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise VenueRejectedError("Malformed Jupiter quote", raw=resp) from exc

    def build_swap(self, ctx, quote: Quote, user_pubkey: str) -> str:
        body = {
            "quoteResponse": quote.raw,
            "userPublicKey": user_pubkey,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
            "prioritizationFeeLamports": "auto",
        }
        resp = self._http.request("POST", self._url("/swap"), ctx=ctx, json_body=body)
        if not isinstance(resp, dict) or resp.get("error") or not resp.get("swapTransaction"):
            detail = resp.get("error") if isinstance(resp, dict) else resp
            raise VenueRejectedError(f"Swap build error: {detail}", raw=resp, code=_error_code(resp))
        return str(resp["swapTransaction"])


def _error_code(resp: Any) -> Optional[str]:
    if isinstance(resp, dict):
        code = resp.get("errorCode") or resp.get("code")
        return str(code) if code is not None else None
    return None
