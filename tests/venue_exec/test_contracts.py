from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from venue_exec.contracts import (
    ApiKeyCredentials,
    ExecutionResult,
    IntentAction,
    Side,
    SignedOrder,
    TradeIntent,
    Venue,
    WalletCredentials,
)


def _intent(**overrides) -> TradeIntent:
    fields = dict(venue="bybit", symbol=" ETH/USDT ", side="buy", amount="10")
    fields.update(overrides)
    return TradeIntent(**fields)


def test_intent_normalises_fields() -> None:
    intent = _intent(side="Long")

    assert intent.venue == Venue.BYBIT
    assert intent.symbol == "ETH/USDT"
    assert intent.side == Side.BUY
    assert intent.amount == Decimal("10")
    assert intent.action == IntentAction.OPEN
    assert intent.intent_id


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": "0"},
        {"amount": "-1"},
        {"amount": None},
        {"leverage": 0},
        {"side": "hold"},
        {"symbol": "  "},
        {"venue": "binance"},
    ],
)
def test_invalid_intents_rejected(overrides) -> None:
    with pytest.raises(ValidationError):
        _intent(**overrides)


def test_close_does_not_require_amount() -> None:
    intent = _intent(amount=None, action="close")
    assert intent.amount is None


def test_intent_is_frozen() -> None:
    intent = _intent()
    with pytest.raises(ValidationError):
        intent.amount = Decimal("1")


def test_credentials_never_dumped_or_repr() -> None:
    intent = _intent(credentials=ApiKeyCredentials(api_key="key", api_secret="hunter2"))

    assert "credentials" not in intent.model_dump()
    assert "credentials" not in intent.log_view()
    assert "hunter2" not in repr(intent)
    assert intent.credentials.api_secret.get_secret_value() == "hunter2"


def test_credentials_discriminated_by_kind() -> None:
    intent = _intent(credentials={"kind": "wallet", "private_key": "abc"})
    assert isinstance(intent.credentials, WalletCredentials)
    assert "abc" not in repr(intent.credentials)


def test_signed_order_consumed_once() -> None:
    signed = SignedOrder(venue=Venue.BYBIT, payload={"body": "{}"}, signature="sig")

    assert signed.consume() == {"body": "{}"}
    assert signed.consumed
    with pytest.raises(RuntimeError):
        signed.consume()


def test_to_output_is_flat_and_drops_empty_fields() -> None:
    result = ExecutionResult(
        intent_id="i1",
        venue=Venue.SOLANA_JUPITER,
        symbol="BONK",
        success=True,
        status="no_position",
        details={"message": "no position to close", "status": "ignored"},
    )

    output = result.to_output()

    assert next(iter(output)) == "success"
    assert output["success"] is True
    assert output["message"] == "no position to close"
    assert output["status"] == "no_position"
    assert "tx_hash" not in output
    assert output["venue"] == "solana_jupiter"
