"""Signs aggregator-built Solana versioned transactions."""

from __future__ import annotations

import base64
import binascii
from typing import Tuple

from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from venue_exec.errors import SigningError
from venue_exec.signing.keys import parse_solana_keypair


class SolanaTransactionSigner:
    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_private_key(cls, raw: str) -> "SolanaTransactionSigner":
        keypair, _ = parse_solana_keypair(raw)
        return cls(keypair)

    @property
    def pubkey(self) -> str:
        return str(self._keypair.pubkey())

    def sign_serialized(self, encoded_tx: str) -> Tuple[bytes, str]:
        """Sign a base64 transaction, returning ``(wire_bytes, signature)``.

        The transaction's fee payer must be this key; anything else is
        refused before a signature is produced.
        """
        try:
            tx = VersionedTransaction.from_bytes(base64.b64decode(encoded_tx, validate=True))
        except (binascii.Error, ValueError, TypeError) as exc:
            raise SigningError("swap transaction is not valid base64 transaction bytes", stage="sign") from exc

        account_keys = tx.message.account_keys
        if not account_keys or account_keys[0] != self._keypair.pubkey():
            payer = str(account_keys[0]) if account_keys else "<none>"
            raise SigningError(
                f"transaction fee payer {payer} does not match key holder {self.pubkey}",
                stage="sign",
            )

        try:
            signed = VersionedTransaction(tx.message, [self._keypair])
        except Exception as exc:
            raise SigningError(f"failed to sign transaction: {exc}", stage="sign") from exc
        return bytes(signed), str(signed.signatures[0])

    def __repr__(self) -> str:
        return f"SolanaTransactionSigner(pubkey={self.pubkey})"
