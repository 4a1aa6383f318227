"""Hyperliquid L1 action signing.

The action is content-addressed as
``keccak256(msgpack(action) || nonce_be64 || vault_flag [|| vault_address])``
and that hash is signed as the ``connectionId`` of an EIP-712 "phantom
agent" message. Key order inside ``action`` matters: msgpack preserves dict
insertion order and the venue re-hashes the exact structure it receives.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

import msgpack
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import keccak, to_hex

from venue_exec.errors import SigningError

_ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_AGENT_TYPES = {
    "Agent": [
        {"name": "source", "type": "string"},
        {"name": "connectionId", "type": "bytes32"},
    ],
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
}


def address_to_bytes(address: str) -> bytes:
    return bytes.fromhex(address[2:] if address.startswith("0x") else address)


def action_hash(action: Dict[str, Any], vault_address: Optional[str], nonce: int) -> bytes:
    data = msgpack.packb(action)
    data += nonce.to_bytes(8, "big")
    if vault_address is None:
        data += b"\x00"
    else:
        data += b"\x01"
        data += address_to_bytes(vault_address)
    return keccak(data)


def phantom_agent(connection_id: bytes, *, is_mainnet: bool) -> Dict[str, Any]:
    return {"source": "a" if is_mainnet else "b", "connectionId": connection_id}


def l1_typed_data(agent: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "domain": {
            "chainId": 1337,
            "name": "Exchange",
            "verifyingContract": _ZERO_ADDRESS,
            "version": "1",
        },
        "types": _AGENT_TYPES,
        "primaryType": "Agent",
        "message": agent,
    }


def float_to_wire(value: float | Decimal | str) -> str:
    """Render a price/size the way the venue hashes it (no trailing zeros)."""
    dec = Decimal(str(value))
    rounded = Decimal(f"{dec:.8f}")
    if abs(rounded - dec) >= Decimal("1e-12"):
        raise ValueError(f"float_to_wire causes rounding: {value}")
    if rounded == 0:
        return "0"
    return f"{rounded.normalize():f}"


class L1ActionSigner:
    """Signs Hyperliquid exchange actions with an EVM account key."""

    def __init__(self, private_key: str, *, is_mainnet: bool = True) -> None:
        key = (private_key or "").strip()
        if not key:
            raise SigningError("invalid key format: empty private key", stage="authenticate")
        if not key.startswith("0x"):
            key = f"0x{key}"
        try:
            self._account = Account.from_key(key)
        except Exception as exc:
            raise SigningError("invalid key format for EVM account", stage="authenticate") from exc
        self._is_mainnet = is_mainnet

    @property
    def address(self) -> str:
        return self._account.address

    def sign_action(
        self,
        action: Dict[str, Any],
        nonce: int,
        *,
        vault_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        connection_id = action_hash(action, vault_address, nonce)
        payload = l1_typed_data(phantom_agent(connection_id, is_mainnet=self._is_mainnet))
        signed = self._account.sign_message(encode_typed_data(full_message=payload))
        return {"r": to_hex(signed.r), "s": to_hex(signed.s), "v": signed.v}

    def __repr__(self) -> str:
        return f"L1ActionSigner(address={self.address})"
