"""Solana secret key decoding.

Keys arrive as hex, base58 or a JSON byte array. Decoders are tried in a
fixed order; each one either produces a keypair or reports why it did not,
and only when every decoder fails is a single ``KeyFormatError`` raised.
"""

from __future__ import annotations

import json
import logging
import string
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import base58
from solders.keypair import Keypair

from venue_exec.errors import KeyFormatError

logger = logging.getLogger(__name__)

_HEX_DIGITS = set(string.hexdigits)


@dataclass(frozen=True)
class DecodeAttempt:
    encoding: str
    keypair: Optional[Keypair] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.keypair is not None


def keypair_from_bytes(secret: bytes) -> Keypair:
    """32 bytes is a seed; 64 bytes is a full (secret || public) keypair."""
    if len(secret) == 32:
        return Keypair.from_seed(secret)
    if len(secret) == 64:
        return Keypair.from_bytes(secret)
    raise ValueError(f"expected 32 or 64 bytes, got {len(secret)}")


def _attempt(encoding: str, secret_fn: Callable[[], bytes]) -> DecodeAttempt:
    try:
        return DecodeAttempt(encoding, keypair=keypair_from_bytes(secret_fn()))
    except Exception as exc:
        return DecodeAttempt(encoding, reason=str(exc) or type(exc).__name__)


def decode_hex(raw: str) -> DecodeAttempt:
    text = raw[2:] if raw.lower().startswith("0x") else raw
    if not text or len(text) % 2 or not set(text) <= _HEX_DIGITS:
        return DecodeAttempt("hex", reason="not a hex string")
    return _attempt("hex", lambda: bytes.fromhex(text))


def decode_base58(raw: str) -> DecodeAttempt:
    return _attempt("base58", lambda: base58.b58decode(raw))


def decode_json_array(raw: str) -> DecodeAttempt:
    if not raw.startswith("["):
        return DecodeAttempt("json_array", reason="not a JSON array")

    def _bytes() -> bytes:
        values = json.loads(raw)
        if not isinstance(values, list) or not all(isinstance(v, int) for v in values):
            raise ValueError("JSON key must be an array of integers")
        return bytes(values)

    return _attempt("json_array", _bytes)


KEY_DECODERS: Tuple[Callable[[str], DecodeAttempt], ...] = (
    decode_hex,
    decode_base58,
    decode_json_array,
)


def parse_solana_keypair(raw: str) -> Tuple[Keypair, str]:
    """Return ``(keypair, encoding)`` or raise ``KeyFormatError``."""
    text = (raw or "").strip()
    if not text:
        raise KeyFormatError("invalid key format: empty key", stage="authenticate")

    attempts: List[DecodeAttempt] = []
    for decoder in KEY_DECODERS:
        result = decoder(text)
        if result.ok:
            logger.debug("Decoded Solana key as %s", result.encoding)
            return result.keypair, result.encoding
        attempts.append(result)

    tried = ", ".join(f"{a.encoding}: {a.reason}" for a in attempts)
    raise KeyFormatError(f"invalid key format ({tried})", stage="authenticate")
