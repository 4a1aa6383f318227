from __future__ import annotations

import base64
import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


@dataclass
class FakeCall:
    method: str
    url: str
    params: Optional[Dict[str, Any]]
    json_body: Any
    data: Optional[str]
    headers: Dict[str, str] = field(default_factory=dict)
    attempts: int = 1


class FakeHttp:
    """Stands in for ``JsonHttpClient``; ``responder`` maps a call to a payload.

    A responder may return an exception instance, which is raised instead.
    """

    def __init__(self, responder: Callable[[FakeCall], Any]) -> None:
        self._responder = responder
        self.calls: List[FakeCall] = []

    def request(
        self,
        method,
        url,
        *,
        ctx=None,
        params=None,
        json_body=None,
        data=None,
        headers=None,
        attempts=1,
        backoff_seconds=0.5,
    ):
        call = FakeCall(method, url, params, json_body, data, dict(headers or {}), attempts)
        self.calls.append(call)
        response = self._responder(call)
        if isinstance(response, Exception):
            raise response
        if ctx is not None:
            ctx.record_exchange(method, url, request=json_body or data or params, status_code=200, response=response)
        return copy.deepcopy(response)

    def urls(self) -> List[str]:
        return [c.url for c in self.calls]


class ScriptedClock:
    """Monotonic clock advancing a fixed step on every read."""

    def __init__(self, start: float = 0.0, step: float = 1.0) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


def fixed_keypair(seed_byte: int = 7) -> Keypair:
    return Keypair.from_seed(bytes([seed_byte]) * 32)


def unsigned_swap_tx(payer: Pubkey) -> str:
    """A base64 v0 transaction paying from ``payer``, as Jupiter would return."""
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.default(), lamports=1))
    message = MessageV0.try_compile(payer, [ix], [], Hash.default())
    tx = VersionedTransaction.populate(message, [Signature.default()])
    return base64.b64encode(bytes(tx)).decode("ascii")


def rpc_ok(result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": 1, "result": result}


def rpc_error(message: str, code: int = -32002) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}}


def token_accounts(amount: int, decimals: int) -> Dict[str, Any]:
    if amount == 0:
        return rpc_ok({"context": {"slot": 1}, "value": []})
    return rpc_ok(
        {
            "context": {"slot": 1},
            "value": [
                {
                    "pubkey": "11111111111111111111111111111111",
                    "account": {
                        "data": {
                            "parsed": {
                                "info": {
                                    "tokenAmount": {
                                        "amount": str(amount),
                                        "decimals": decimals,
                                        "uiAmount": amount / 10**decimals,
                                    }
                                }
                            }
                        }
                    },
                }
            ],
        }
    )


def jupiter_quote(input_mint: str, output_mint: str, in_amount: int, out_amount: int) -> Dict[str, Any]:
    return {
        "inputMint": input_mint,
        "outputMint": output_mint,
        "inAmount": str(in_amount),
        "outAmount": str(out_amount),
        "priceImpactPct": "0.0012",
        "slippageBps": 100,
        "routePlan": [{"swapInfo": {"label": "Orca"}, "percent": 100}],
    }
