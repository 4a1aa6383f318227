"""HMAC-SHA256 request signing for the Bybit V5 REST API."""

from __future__ import annotations

import hashlib
import hmac
from typing import Dict, Optional

from venue_exec.errors import SigningError
from venue_exec.signing.clock import MonotonicMillis

RECV_WINDOW_MS = 5000


def hmac_sha256_hexdigest(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def bybit_sign_payload(timestamp: int | str, api_key: str, recv_window: int | str, body_or_query: str) -> str:
    """Return the exact string Bybit expects to be signed."""
    return f"{timestamp}{api_key}{recv_window}{body_or_query}"


class HmacSigner:
    """Signs request bodies/query strings with a fresh timestamp per call."""

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        *,
        recv_window: int = RECV_WINDOW_MS,
        clock: Optional[MonotonicMillis] = None,
    ) -> None:
        if not api_key or not api_key.strip():
            raise SigningError("API key is empty", stage="authenticate")
        if not api_secret or not api_secret.strip():
            raise SigningError("API secret is empty", stage="authenticate")
        self._api_key = api_key.strip()
        self._api_secret = api_secret.strip()
        self._recv_window = str(int(recv_window))
        self._clock = clock or MonotonicMillis()

    @property
    def api_key(self) -> str:
        return self._api_key

    def sign(self, body_or_query: str, *, timestamp: Optional[int] = None) -> Dict[str, str]:
        """Return the authentication headers for one request.

        The timestamp is drawn here, immediately before the call, so a
        re-issued request never reuses a previous timestamp.
        """
        ts = str(timestamp if timestamp is not None else self._clock.next())
        signature = hmac_sha256_hexdigest(
            self._api_secret,
            bybit_sign_payload(ts, self._api_key, self._recv_window, body_or_query),
        )
        return {
            "X-BAPI-API-KEY": self._api_key,
            "X-BAPI-TIMESTAMP": ts,
            "X-BAPI-SIGN": signature,
            "X-BAPI-RECV-WINDOW": self._recv_window,
        }

    def __repr__(self) -> str:
        return f"HmacSigner(api_key={self._api_key[:4]}***)"
