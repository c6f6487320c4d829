"""Tests for the bridge orchestrator and the quoting client."""

from __future__ import annotations

import logging
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest
import requests
from conftest import make_proxy_pool

from chainbase_ops.config import AutomationSettings
from chainbase_ops.constants import L2_STANDARD_BRIDGE
from chainbase_ops.exceptions import BridgeQuoteError
from chainbase_ops.operations.bridge import BridgeOrchestrator
from chainbase_ops.operations.quotes import BridgeQuoteClient, bridge_eth_calldata
from chainbase_ops.types import BridgeDirection, Network, OperationStatus

DEPOSIT = BridgeDirection.SEPOLIA_TO_CHAINBASE
WITHDRAWAL = BridgeDirection.CHAINBASE_TO_SEPOLIA
ROUTER = "0x1111111111111111111111111111111111111111"


def _route_response(route_id: str = "OptimismDeposit", to: str = ROUTER) -> dict[str, Any]:
    return {
        "results": [
            {"id": "SomethingElse", "result": {}},
            {
                "id": route_id,
                "result": {
                    "initiatingTransaction": {
                        "to": to,
                        "data": "0xabcdef",
                        "value": "0x2710",
                        "chainId": 11155111,
                    }
                },
            },
        ]
    }


class FakeHttpSession:
    """Records POSTs and replays queued responses or exceptions."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.posts: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> Any:
        self.posts.append({"url": url, **kwargs})
        outcome = self.outcomes.pop(0) if self.outcomes else requests.ConnectionError("gone")
        if isinstance(outcome, BaseException):
            raise outcome
        status, body = outcome
        return SimpleNamespace(status_code=status, json=lambda: body)


def _orchestrator(session, http, sleeper, rng, settings=None) -> BridgeOrchestrator:
    return BridgeOrchestrator(
        session, settings, http_session=http, sleep=sleeper, rng=rng
    )


def _bridge_settings(**bridge: Any) -> AutomationSettings:
    return AutomationSettings.from_config(
        {
            "general": {"gas_price_multiplier": 1.0},
            "gas": {"min_gwei": 1, "max_gwei": 50},
            "operations": {"bridge": bridge},
        }
    )


class TestAmounts:
    def test_generated_amounts_stay_in_range_with_fixed_precision(
        self, make_session, sleeper, rng
    ):
        orchestrator = _orchestrator(make_session(), FakeHttpSession(), sleeper, rng)

        for _ in range(1000):
            amount = orchestrator.generate_amount(DEPOSIT)
            _, _, fraction = amount.ether.partition(".")
            assert len(fraction) == 7
            assert Decimal("0.0001") <= Decimal(amount.ether) <= Decimal("0.0004")
            assert amount.wei == int(Decimal(amount.ether) * 10**18)

    def test_direction_override(self, make_session, sleeper, rng):
        settings = _bridge_settings(
            chainbase_to_sepolia={"amount": {"min": 0.5, "max": 0.5, "decimals": 2}}
        )
        orchestrator = _orchestrator(make_session(custom=settings), None, sleeper, rng)

        assert orchestrator.generate_amount(WITHDRAWAL).ether == "0.50"


class TestQuoteClient:
    def _client(self, http, proxy=None) -> BridgeQuoteClient:
        settings = AutomationSettings()
        return BridgeQuoteClient(
            settings.bridge,
            {network: settings.network(network) for network in Network},
            session=http,
            proxy=proxy,
        )

    def test_parse_route_extracts_initiating_transaction(self):
        route = BridgeQuoteClient.parse_route(_route_response(), DEPOSIT)

        assert route.destination_address == ROUTER
        assert route.call_data == "0xabcdef"
        assert route.declared_value == 10_000
        assert route.declared_chain_id == 11155111
        assert not route.fallback

    def test_parse_route_missing_identifier(self):
        with pytest.raises(BridgeQuoteError, match="Could not find OptimismWithdrawal route"):
            BridgeQuoteClient.parse_route(_route_response(), WITHDRAWAL)

    def test_parse_route_rejects_empty_results(self):
        with pytest.raises(BridgeQuoteError):
            BridgeQuoteClient.parse_route({"results": []}, DEPOSIT)

    def test_payload_and_proxy_forwarding(self):
        http = FakeHttpSession((200, _route_response()))
        client = self._client(http, proxy=make_proxy_pool())

        client.fetch_route(DEPOSIT, 12345, 3, 4, ROUTER)

        post = http.posts[0]
        assert post["json"]["amount"] == "12345"
        assert post["json"]["fromChainId"] == "11155111"
        assert post["json"]["toChainId"] == "2233"
        assert post["json"]["fromGasPrice"] == "3"
        assert post["json"]["recipient"] == ROUTER
        assert post["proxies"]["http"] == "http://10.0.0.1:8080"
        assert post["headers"]["content-type"] == "application/json"

    def test_deposit_has_no_default_fallback(self):
        with pytest.raises(BridgeQuoteError, match="No fallback route configured"):
            self._client(FakeHttpSession()).fallback_route(DEPOSIT, 777)

    def test_configured_fallback_route(self):
        settings = _bridge_settings(
            sepolia_to_chainbase={"fallback": {"to": ROUTER, "data": "0x1234"}}
        )
        client = BridgeQuoteClient(
            settings.bridge,
            {network: settings.network(network) for network in Network},
            session=FakeHttpSession(),
        )

        route = client.fallback_route(DEPOSIT, 777)

        assert route.destination_address == ROUTER
        assert route.call_data == "0x1234"
        assert route.declared_chain_id == 11155111

    def test_fallback_route_uses_bridge_eth_call(self):
        route = self._client(FakeHttpSession()).fallback_route(WITHDRAWAL, 777)

        assert route.fallback
        assert route.destination_address.lower() == L2_STANDARD_BRIDGE.lower()
        assert route.call_data == bridge_eth_calldata()
        assert route.declared_value == 777
        assert route.declared_chain_id == 2233

    def test_bridge_eth_calldata_layout(self):
        data = bridge_eth_calldata()
        # selector, uint32 head word, bytes offset word, bytes length word
        assert len(data) == 2 + 8 + 64 * 3
        assert int(data[10:74], 16) == 200_000


class TestRouteResolution:
    def test_quote_failure_twice_falls_back(self, make_session, sleeper, rng, caplog):
        http = FakeHttpSession((500, {}), (200, {"results": []}))
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        with caplog.at_level(logging.WARNING):
            route = orchestrator.resolve_route(WITHDRAWAL, 1000)

        assert route.fallback
        assert len(http.posts) == 2
        assert "Falling back to hardcoded transaction details" in caplog.text

    def test_missing_route_id_twice_uses_fallback(self, make_session, sleeper, rng):
        http = FakeHttpSession(
            (200, _route_response("SomeOtherRoute")), (200, _route_response("SomeOtherRoute"))
        )
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        route = orchestrator.resolve_route(WITHDRAWAL, 4321)

        assert route.fallback
        assert len(http.posts) == 2
        assert route.as_transaction(4321) == {
            "to": route.destination_address,
            "value": 4321,
            "data": bridge_eth_calldata(),
        }

    def test_second_attempt_succeeds(self, make_session, sleeper, rng):
        http = FakeHttpSession((503, {}), (200, _route_response()))
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        route = orchestrator.resolve_route(DEPOSIT, 1000)

        assert not route.fallback
        assert route.destination_address == ROUTER

    def test_connection_error_rotates_proxy_before_retry(self, make_session, sleeper, rng):
        proxy = make_proxy_pool()
        http = FakeHttpSession(
            requests.exceptions.ProxyError("Cannot connect to proxy"),
            (200, _route_response()),
        )
        orchestrator = _orchestrator(make_session(proxy=proxy), http, sleeper, rng)

        route = orchestrator.resolve_route(DEPOSIT, 1000)

        assert not route.fallback
        assert proxy.generation == 1
        assert http.posts[1]["proxies"]["https"] == "http://10.0.0.2:8080"


class TestBridgeDirection:
    def test_unsettled_deposit_is_soft_success(
        self, make_session, fake_eths, sleeper, rng, caplog
    ):
        http = FakeHttpSession((200, _route_response()))
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        with caplog.at_level(logging.WARNING):
            result = orchestrator.bridge(DEPOSIT)

        assert result.status is OperationStatus.SUCCESS
        assert result.settled is False
        assert result.tx_hash is not None
        assert sleeper.calls == [30.0] * 20
        assert fake_eths[Network.COMPANION].calls["get_balance"] == 21
        assert "Bridge monitoring timed out after 600 seconds" in caplog.text
        assert len(fake_eths[Network.HOME].sent) == 1

    def test_deposit_without_fallback_fails_before_sending(
        self, make_session, fake_eths, sleeper, rng
    ):
        http = FakeHttpSession(
            requests.exceptions.ConnectionError("ECONNRESET"),
            requests.exceptions.ConnectionError("ECONNRESET"),
        )
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        result = orchestrator.bridge(DEPOSIT)

        assert result.status is OperationStatus.FAILED
        assert result.error == "No fallback route configured for sepolia_to_chainbase"
        assert len(http.posts) == 2
        assert fake_eths[Network.HOME].sent == []
        assert sleeper.calls == []

    def test_deposit_uses_configured_fallback(self, make_session, fake_eths, sleeper, rng):
        settings = _bridge_settings(
            max_polls=0, sepolia_to_chainbase={"fallback": {"to": ROUTER}}
        )
        http = FakeHttpSession((500, {}), (500, {}))
        orchestrator = _orchestrator(make_session(custom=settings), http, sleeper, rng)

        result = orchestrator.bridge(DEPOSIT)

        assert result.success
        assert result.route is not None and result.route.fallback
        assert fake_eths[Network.HOME].estimated[0]["to"] == ROUTER
        assert len(fake_eths[Network.HOME].sent) == 1

    def test_failed_baseline_read_is_retried_before_monitoring(
        self, make_session, fake_eths, sleeper, rng
    ):
        companion = fake_eths[Network.COMPANION]
        companion.fail("get_balance", ValueError("header not found"))
        http = FakeHttpSession((200, _route_response()))
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        result = orchestrator.bridge(DEPOSIT)

        # The existing balance must not be mistaken for the bridged funds
        assert result.success
        assert result.settled is False
        assert sleeper.calls == [30.0] * 20

    def test_unknown_baseline_skips_monitoring(self, make_session, fake_eths, sleeper, rng):
        fake_eths[Network.COMPANION].fail(
            "get_balance", ValueError("header not found"), ValueError("header not found")
        )
        http = FakeHttpSession((200, _route_response()))
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        result = orchestrator.bridge(DEPOSIT)

        assert result.success
        assert result.settled is False
        assert sleeper.calls == []
        assert len(fake_eths[Network.HOME].sent) == 1

    def test_settlement_detected(self, make_session, fake_eths, sleeper, rng):
        start = 10**18
        fake_eths[Network.COMPANION].balances = [start, start, start + 5]
        http = FakeHttpSession((200, _route_response()))
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        result = orchestrator.bridge(DEPOSIT)

        assert result.success
        assert result.settled is True
        assert sleeper.calls == [30.0, 30.0]

    def test_withdrawal_is_not_monitored(self, make_session, fake_eths, sleeper, rng):
        http = FakeHttpSession((200, _route_response("OptimismWithdrawal")))
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        result = orchestrator.bridge(WITHDRAWAL)

        assert result.success
        assert result.settled is None
        assert sleeper.calls == []
        assert len(fake_eths[Network.COMPANION].sent) == 1
        assert fake_eths[Network.HOME].calls["get_balance"] == 1

    def test_insufficient_balance_sends_nothing(self, make_session, fake_eths, sleeper, rng):
        fake_eths[Network.HOME].balances = [10]
        http = FakeHttpSession((200, _route_response()))
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        result = orchestrator.bridge(DEPOSIT)

        assert result.status is OperationStatus.FAILED
        assert "Insufficient sepolia balance" in result.error
        assert fake_eths[Network.HOME].sent == []
        assert http.posts == []

    def test_disabled_direction_is_skipped(self, make_session, sleeper, rng):
        settings = _bridge_settings(sepolia_to_chainbase={"enabled": False})
        orchestrator = _orchestrator(
            make_session(custom=settings), FakeHttpSession(), sleeper, rng
        )

        result = orchestrator.bridge(DEPOSIT)

        assert result.status is OperationStatus.SKIPPED
        assert not result.success

    def test_failed_submission_reports_message(self, make_session, fake_eths, sleeper, rng):
        fake_eths[Network.COMPANION].fail(
            "send_raw_transaction", ValueError("insufficient funds for gas * price + value")
        )
        http = FakeHttpSession((200, _route_response("OptimismWithdrawal")))
        orchestrator = _orchestrator(make_session(), http, sleeper, rng)

        result = orchestrator.bridge(WITHDRAWAL)

        assert result.status is OperationStatus.FAILED
        assert result.error == "Insufficient funds for transaction"


class TestBatch:
    def test_cooldown_between_operations_only(self, make_session, fake_eths, sleeper, rng):
        settings = _bridge_settings(repeat_times=2, max_polls=0)
        http = FakeHttpSession(
            (200, _route_response()),
            (200, _route_response("OptimismWithdrawal")),
            (200, _route_response()),
            (200, _route_response("OptimismWithdrawal")),
        )
        orchestrator = _orchestrator(make_session(custom=settings), http, sleeper, rng)

        summary = orchestrator.run_batch()

        assert summary.total == 4
        assert summary.success_count == 4
        assert summary.success
        assert sleeper.calls == [60.0, 60.0, 60.0]
        assert [result.direction for result in summary.results] == [
            DEPOSIT,
            WITHDRAWAL,
            DEPOSIT,
            WITHDRAWAL,
        ]

    def test_batch_succeeds_when_any_operation_does(
        self, make_session, fake_eths, sleeper, rng
    ):
        settings = _bridge_settings(max_polls=0, cooldown=0)
        fake_eths[Network.HOME].balances = [0]
        http = FakeHttpSession((200, _route_response("OptimismWithdrawal")))
        orchestrator = _orchestrator(make_session(custom=settings), http, sleeper, rng)

        summary = orchestrator.run_batch()

        assert summary.total == 2
        assert summary.success_count == 1
        assert summary.success
        assert sleeper.calls == []

    def test_batch_fails_when_every_operation_fails(
        self, make_session, fake_eths, sleeper, rng
    ):
        fake_eths[Network.HOME].balances = [0]
        fake_eths[Network.COMPANION].balances = [0]
        orchestrator = _orchestrator(make_session(), FakeHttpSession(), sleeper, rng)

        summary = orchestrator.run_batch()

        assert summary.total == 2
        assert summary.success_count == 0
        assert not summary.success

    def test_disabled_bridge_runs_nothing(self, make_session, sleeper, rng):
        settings = _bridge_settings(enabled=False)
        orchestrator = _orchestrator(make_session(custom=settings), FakeHttpSession(), sleeper, rng)

        summary = orchestrator.run_batch()

        assert summary.total == 0
        assert summary.success

    def test_nonces_reread_at_batch_start(self, make_session, fake_eths, sleeper, rng):
        settings = _bridge_settings(cooldown=0, max_polls=0, chainbase_to_sepolia={"enabled": False})
        http = FakeHttpSession((200, _route_response()), (200, _route_response()))
        session = make_session(custom=settings)
        orchestrator = _orchestrator(session, http, sleeper, rng)

        orchestrator.run_batch()
        orchestrator.run_batch()

        assert fake_eths[Network.HOME].calls["get_transaction_count"] == 2
