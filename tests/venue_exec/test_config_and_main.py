from __future__ import annotations

import json

import pytest

from venue_exec import main as cli
from venue_exec.config import (
    BybitConfig,
    HyperliquidConfig,
    SolanaConfig,
    resolve_credentials,
)
from venue_exec.contracts import ApiKeyCredentials, Venue, WalletCredentials
from venue_exec.errors import ConfigError
from venue_exec.execution import InMemoryLedgerSink
from venue_exec.signing.clock import MonotonicMillis
from venue_exec.venues.bybit import BybitAdapter

from venue_fakes import FakeHttp


class TestConfig:
    def test_bybit_credentials_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("BYBIT_API_KEY", "env-key")
        monkeypatch.setenv("BYBIT_API_SECRET", "env-secret")

        creds = resolve_credentials(Venue.BYBIT)

        assert isinstance(creds, ApiKeyCredentials)
        assert creds.api_key == "env-key"
        assert creds.api_secret.get_secret_value() == "env-secret"

    def test_explicit_args_win_over_env(self, monkeypatch) -> None:
        monkeypatch.setenv("SOLANA_PRIVATE_KEY", "from-env")

        creds = resolve_credentials(Venue.SOLANA_JUPITER, private_key="explicit")

        assert isinstance(creds, WalletCredentials)
        assert creds.private_key.get_secret_value() == "explicit"

    def test_missing_credentials_raise_config_error(self, monkeypatch) -> None:
        monkeypatch.delenv("HYPERLIQUID_PRIVATE_KEY", raising=False)

        with pytest.raises(ConfigError) as excinfo:
            resolve_credentials(Venue.HYPERLIQUID)

        assert excinfo.value.status == "invalid_input"
        assert "HYPERLIQUID_PRIVATE_KEY" in excinfo.value.message

    def test_testnet_detection(self) -> None:
        assert HyperliquidConfig(base_url="https://api.hyperliquid.xyz").is_mainnet
        assert not HyperliquidConfig(base_url="https://api.hyperliquid-testnet.xyz").is_mainnet
        assert HyperliquidConfig(base_url="https://api.hyperliquid.xyz/").exchange_url == "https://api.hyperliquid.xyz/exchange"

    def test_validation_rejects_bad_values(self) -> None:
        with pytest.raises(ValueError):
            SolanaConfig(commitment="instant").validate()
        with pytest.raises(ValueError):
            BybitConfig(base_url="ftp://bybit").validate()
        with pytest.raises(ValueError):
            HyperliquidConfig(market_slippage=1.5).validate()


class TestMain:
    @pytest.fixture
    def bybit_http(self, monkeypatch):
        def respond(call):
            if "order/create" in call.url:
                return {"retCode": 0, "result": {"orderId": "cli-1", "orderLinkId": "x"}}
            if "order/realtime" in call.url:
                return {"retCode": 0, "result": {"list": []}}
            return {"retCode": 0}

        http = FakeHttp(respond)
        adapter = BybitAdapter(BybitConfig(base_url="https://bybit.test"), http=http, clock=MonotonicMillis())
        monkeypatch.setattr(cli, "build_default_adapters", lambda: {Venue.BYBIT: adapter})
        monkeypatch.setattr(cli, "build_default_sink", InMemoryLedgerSink)
        return http

    def test_success_prints_json_and_exits_zero(self, bybit_http, capsys) -> None:
        code = cli.main(
            ["--venue", "bybit", "--symbol", "ETH/USDT", "--side", "buy", "--amount", "10",
             "--leverage", "5", "--api-key", "k", "--api-secret", "s"]
        )

        output = json.loads(capsys.readouterr().out)
        assert code == 0
        assert output["success"] is True
        assert output["order_id"] == "cli-1"
        assert output["status"] == "accepted"

    def test_missing_keys_exit_one(self, bybit_http, monkeypatch, capsys) -> None:
        monkeypatch.delenv("BYBIT_API_KEY", raising=False)
        monkeypatch.delenv("BYBIT_API_SECRET", raising=False)

        code = cli.main(["--venue", "bybit", "--symbol", "ETHUSDT", "--side", "buy", "--amount", "1"])

        output = json.loads(capsys.readouterr().out)
        assert code == 1
        assert output["success"] is False
        assert "Missing Bybit keys" in output["error"]
        assert bybit_http.calls == []

    def test_invalid_amount_exit_one(self, bybit_http, capsys) -> None:
        code = cli.main(
            ["--venue", "bybit", "--symbol", "ETHUSDT", "--side", "buy", "--amount", "-3",
             "--api-key", "k", "--api-secret", "s"]
        )

        assert code == 1
        assert json.loads(capsys.readouterr().out)["status"] == "invalid_input"

    @pytest.mark.parametrize(
        "extra",
        [
            ["--amount", "-3", "--api-key", "k", "--api-secret", "s"],
            ["--amount", "1"],
        ],
    )
    def test_input_failures_are_recorded_in_ledger(self, bybit_http, monkeypatch, capsys, extra) -> None:
        monkeypatch.delenv("BYBIT_API_KEY", raising=False)
        monkeypatch.delenv("BYBIT_API_SECRET", raising=False)
        sink = InMemoryLedgerSink()
        monkeypatch.setattr(cli, "build_default_sink", lambda: sink)

        code = cli.main(["--venue", "bybit", "--symbol", "ETHUSDT", "--side", "buy", *extra])

        output = json.loads(capsys.readouterr().out)
        [recorded] = sink.get_results()
        assert code == 1
        assert recorded.status == "invalid_input"
        assert recorded.stage == "validate"
        assert recorded.intent_id == output["intent_id"]
        assert bybit_http.calls == []

    def test_rejection_exit_one(self, monkeypatch, capsys) -> None:
        http = FakeHttp(lambda call: {"retCode": 110007, "retMsg": "insufficient balance"})
        adapter = BybitAdapter(BybitConfig(base_url="https://bybit.test"), http=http)
        monkeypatch.setattr(cli, "build_default_adapters", lambda: {Venue.BYBIT: adapter})
        monkeypatch.setattr(cli, "build_default_sink", InMemoryLedgerSink)

        code = cli.main(
            ["--venue", "bybit", "--symbol", "ETHUSDT", "--side", "sell", "--amount", "1",
             "--api-key", "k", "--api-secret", "s"]
        )

        output = json.loads(capsys.readouterr().out)
        assert code == 1
        assert output["status"] == "rejected"
        assert output["error_code"] == "110007"
