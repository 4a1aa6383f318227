"""Exception hierarchy for the execution engine.

Every failure an adapter can hit maps onto one of these classes so the
coordinator can turn it into a typed ``ExecutionResult`` without inspecting
venue names or message strings.
"""

from __future__ import annotations

from typing import Any


class ExecutionError(Exception):
    """Base class for failures raised inside an execution attempt."""

    retryable: bool = False
    default_status: str = "failed"

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        raw: Any = None,
        code: str | int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.raw = raw
        self.code = code

    @property
    def status(self) -> str:
        return self.default_status


class ConfigError(ExecutionError):
    """Missing credentials or endpoint configuration."""

    default_status = "invalid_input"


class InputError(ExecutionError):
    """Malformed or missing intent fields. Raised before any network call."""

    default_status = "invalid_input"


class KeyFormatError(InputError):
    """Private key material could not be decoded in any supported encoding."""


class SigningError(InputError):
    """Signing could not be performed with the supplied key material."""


class MarketNotFoundError(ExecutionError):
    """Requested symbol does not exist on the venue."""

    default_status = "market_not_found"


class VenueRejectedError(ExecutionError):
    """Venue accepted the request at transport level but rejected it."""

    default_status = "rejected"


class TransportError(ExecutionError):
    """Network failure or timeout talking to a venue."""

    retryable = True
    default_status = "transport_error"


class SettlementFailedError(ExecutionError):
    """Transaction landed on chain but carried an execution error."""

    default_status = "failed"


class SettlementTimeoutError(ExecutionError):
    """Confirmation, or acknowledgement of the broadcast, was not observed in time.

    The transaction may still land, so the outcome is unknown rather than
    failed.
    """

    retryable = True
    default_status = "timed_out"


class ExecutionFailed(Exception):
    """Raised by ``execute_or_raise`` after the failed result was recorded."""

    def __init__(self, result: Any) -> None:
        super().__init__(getattr(result, "error", None) or "execution failed")
        self.result = result
