from __future__ import annotations

import hashlib
import hmac
import json
from decimal import Decimal

import pytest

from venue_exec.config import BybitConfig
from venue_exec.contracts import ApiKeyCredentials, TradeIntent, Venue, WalletCredentials
from venue_exec.errors import TransportError
from venue_exec.execution import ExecutionCoordinator, InMemoryLedgerSink
from venue_exec.signing.clock import MonotonicMillis
from venue_exec.venues.bybit import BybitAdapter, format_symbol

from venue_fakes import FakeHttp

API_KEY = "bybit-key"
API_SECRET = "bybit-secret"


def _intent(**overrides) -> TradeIntent:
    fields = dict(
        venue=Venue.BYBIT,
        symbol="ETH/USDT",
        side="buy",
        amount=Decimal("10"),
        leverage=5,
        credentials=ApiKeyCredentials(api_key=API_KEY, api_secret=API_SECRET),
    )
    fields.update(overrides)
    return TradeIntent(**fields)


def _responder(leverage=None, order=None, realtime=None):
    leverage = leverage or {"retCode": 0, "retMsg": "OK", "result": {}}
    order = order or {"retCode": 0, "retMsg": "OK", "result": {"orderId": "ord-1", "orderLinkId": "link-1"}}
    realtime = realtime or {
        "retCode": 0,
        "result": {
            "list": [
                {"orderId": "ord-1", "orderStatus": "Filled", "cumExecQty": "10", "avgPrice": "2500.5", "cumExecFee": "13.75"}
            ]
        },
    }

    def respond(call):
        if "set-leverage" in call.url:
            return leverage
        if "order/create" in call.url:
            return order
        if "order/realtime" in call.url:
            return realtime
        raise AssertionError(f"unexpected url {call.url}")

    return respond


def _coordinator(http: FakeHttp, sink: InMemoryLedgerSink | None = None) -> ExecutionCoordinator:
    adapter = BybitAdapter(
        BybitConfig(base_url="https://bybit.test"),
        http=http,
        clock=MonotonicMillis(time_fn=lambda: 1_700_000_000.0),
    )
    return ExecutionCoordinator([adapter], sink or InMemoryLedgerSink())


def _expected_sign(call) -> str:
    signed = call.data if call.method == "POST" else call.url.split("?", 1)[1]
    message = f"{call.headers['X-BAPI-TIMESTAMP']}{API_KEY}5000{signed}"
    return hmac.new(API_SECRET.encode(), message.encode(), hashlib.sha256).hexdigest()


@pytest.mark.parametrize("raw, expected", [("ETH/USDT", "ETHUSDT"), ("eth-usdt", "ETHUSDT"), ("BTC_USDT", "BTCUSDT")])
def test_format_symbol(raw, expected) -> None:
    assert format_symbol(raw) == expected


def test_eth_buy_sets_leverage_then_places_market_order() -> None:
    http = FakeHttp(_responder())
    sink = InMemoryLedgerSink()

    result = _coordinator(http, sink).execute(_intent())

    assert result.success is True
    assert result.status == "filled"
    assert result.order_id == "ord-1"
    assert result.executed_amount == Decimal("10")
    assert result.executed_price == Decimal("2500.5")
    assert result.fees == Decimal("13.75")

    leverage_call, order_call, lookup_call = http.calls
    assert "/v5/position/set-leverage" in leverage_call.url
    assert json.loads(leverage_call.data) == {
        "category": "linear",
        "symbol": "ETHUSDT",
        "buyLeverage": "5",
        "sellLeverage": "5",
    }
    body = json.loads(order_call.data)
    assert body["category"] == "linear"
    assert body["symbol"] == "ETHUSDT"
    assert body["side"] == "Buy"
    assert body["orderType"] == "Market"
    assert body["qty"] == "10"
    assert body["orderLinkId"] == result.intent_id
    assert "reduceOnly" not in body
    assert lookup_call.method == "GET"

    timestamps = [int(c.headers["X-BAPI-TIMESTAMP"]) for c in http.calls]
    assert timestamps == sorted(set(timestamps))
    for call in http.calls:
        assert call.headers["X-BAPI-SIGN"] == _expected_sign(call)

    assert len(sink.get_results()) == 1


def test_leverage_not_modified_is_treated_as_success() -> None:
    http = FakeHttp(_responder(leverage={"retCode": 110043, "retMsg": "leverage not modified"}))

    result = _coordinator(http).execute(_intent())

    assert result.success is True
    assert "warnings" not in result.details
    assert any("order/create" in url for url in http.urls())


def test_other_leverage_failure_is_only_a_warning() -> None:
    http = FakeHttp(_responder(leverage={"retCode": 10001, "retMsg": "params error"}))

    result = _coordinator(http).execute(_intent())

    assert result.success is True
    assert result.details["warnings"] == ["leverage not set: params error (code 10001)"]


def test_no_leverage_call_at_1x() -> None:
    http = FakeHttp(_responder())

    _coordinator(http).execute(_intent(leverage=1))

    assert not any("set-leverage" in url for url in http.urls())


def test_order_rejection_is_recorded_once() -> None:
    http = FakeHttp(_responder(order={"retCode": 110007, "retMsg": "ab not enough for new order"}))
    sink = InMemoryLedgerSink()

    result = _coordinator(http, sink).execute(_intent())

    assert result.success is False
    assert result.status == "rejected"
    assert result.error_code == "110007"
    assert result.stage == "submit"
    assert result.retryable is False
    assert "ab not enough" in result.error
    assert result.details["raw"]["retCode"] == 110007
    assert sink.get_results() == [result]


def test_fill_lookup_failure_keeps_order_accepted() -> None:
    def respond(call):
        if "order/realtime" in call.url:
            return TransportError("read timed out")
        return _responder()(call)

    result = _coordinator(FakeHttp(respond)).execute(_intent())

    assert result.success is True
    assert result.status == "accepted"
    assert result.order_id == "ord-1"
    assert result.executed_amount is None


def test_transport_error_on_submit_is_retryable_failure() -> None:
    def respond(call):
        if "order/create" in call.url:
            return TransportError("connection reset")
        return _responder()(call)

    http = FakeHttp(respond)
    result = _coordinator(http).execute(_intent())

    assert result.status == "transport_error"
    assert result.retryable is True
    assert sum("order/create" in url for url in http.urls()) == 1


def test_reduce_only_close_and_limit_price() -> None:
    http = FakeHttp(_responder())

    _coordinator(http).execute(
        _intent(action="close", side="sell", leverage=None, price=Decimal("2600"))
    )

    body = json.loads(http.calls[0].data)
    assert body["reduceOnly"] is True
    assert body["orderType"] == "Limit"
    assert body["price"] == "2600"
    assert body["timeInForce"] == "IOC"


def test_wallet_credentials_rejected_before_network() -> None:
    http = FakeHttp(_responder())

    result = _coordinator(http).execute(
        _intent(credentials=WalletCredentials(private_key="0x" + "11" * 32))
    )

    assert result.status == "invalid_input"
    assert result.stage == "authenticate"
    assert http.calls == []
