"""Thin JSON-over-HTTP client shared by the venue adapters."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

import requests

from venue_exec.errors import TransportError, VenueRejectedError

logger = logging.getLogger(__name__)


def compact_json(payload: Any) -> str:
    """Serialize exactly as signed: no whitespace between tokens."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class JsonHttpClient:
    """Sends one request and returns decoded JSON.

    A request is attempted once unless the caller asks for more attempts;
    only network-level failures and 429/5xx responses are retried.
    Every exchange is reported to the execution's trace.
    """

    _BACKOFF_MAX_DELAY = 8.0

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        sleep=time.sleep,
    ) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()
        self._sleep = sleep

    @property
    def session(self) -> requests.Session:
        return self._session

    def request(
        self,
        method: str,
        url: str,
        *,
        ctx=None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        data: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        attempts: int = 1,
        backoff_seconds: float = 0.5,
    ) -> Any:
        if json_body is not None and data is None:
            data = compact_json(json_body)
        traced = json_body if json_body is not None else (data or params)
        send_headers = {"Content-Type": "application/json"}
        if headers:
            send_headers.update(headers)

        delay = backoff_seconds
        for attempt in range(1, max(1, attempts) + 1):
            try:
                resp = self._session.request(
                    method.upper(),
                    url,
                    params=params,
                    data=data,
                    headers=send_headers,
                    timeout=self._timeout,
                )
            except requests.exceptions.RequestException as net_err:
                if ctx is not None:
                    ctx.record_exchange(
                        method, url, request=traced, status_code=None,
                        response={"error": net_err.__class__.__name__},
                    )
                if attempt < attempts:
                    logger.warning(
                        "Network error (attempt %d/%d): %s, retrying in %.1fs",
                        attempt, attempts, net_err.__class__.__name__, delay,
                    )
                    self._sleep(delay)
                    delay = min(delay * 2, self._BACKOFF_MAX_DELAY)
                    continue
                raise TransportError(f"{method.upper()} {url} failed: {net_err}") from net_err

            payload = self._decode(resp)
            if ctx is not None:
                ctx.record_exchange(
                    method, url, request=traced,
                    status_code=resp.status_code, response=payload,
                )

            if resp.status_code == 429 or resp.status_code >= 500:
                if attempt < attempts:
                    logger.warning(
                        "HTTP %d from %s (attempt %d/%d), retrying in %.1fs",
                        resp.status_code, url, attempt, attempts, delay,
                    )
                    self._sleep(delay)
                    delay = min(delay * 2, self._BACKOFF_MAX_DELAY)
                    continue
                raise TransportError(
                    f"HTTP {resp.status_code} from {url}", raw=payload, code=resp.status_code
                )
            if resp.status_code >= 400 and not isinstance(payload, (dict, list)):
                raise VenueRejectedError(
                    f"HTTP {resp.status_code} from {url}: {payload}", raw=payload, code=resp.status_code
                )
            if not isinstance(payload, (dict, list)):
                raise VenueRejectedError(f"Non-JSON response from {url}", raw=payload)
            return payload

        raise TransportError(f"{method.upper()} {url} exhausted {attempts} attempts")

    @staticmethod
    def _decode(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return (resp.text or "")[:2000]
