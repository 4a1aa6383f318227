"""Signing primitives: HMAC for CEX requests, L1 actions, Solana transactions."""

from venue_exec.signing.clock import MonotonicMillis
from venue_exec.signing.hmac_signer import HmacSigner, hmac_sha256_hexdigest
from venue_exec.signing.keys import parse_solana_keypair
from venue_exec.signing.l1_signer import L1ActionSigner, action_hash, float_to_wire
from venue_exec.signing.tx_signer import SolanaTransactionSigner

__all__ = [
    "HmacSigner",
    "L1ActionSigner",
    "MonotonicMillis",
    "SolanaTransactionSigner",
    "action_hash",
    "float_to_wire",
    "hmac_sha256_hexdigest",
    "parse_solana_keypair",
]
