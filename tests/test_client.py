from __future__ import annotations

import pytest
from pydantic import SecretStr

from snaptrade_client.client import SnapTradeClient
from snaptrade_client.models import ApiResponse, PartnerCredentials, ResponseMeta, UserCredentials


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch):
    credentials = PartnerCredentials(client_id="PARTNER", consumer_key=SecretStr("key"))
    instance = SnapTradeClient(credentials, base_url="https://example.test", timeout=12)
    sent = []

    async def fake_send(descriptor):
        sent.append(descriptor)
        return ApiResponse(data={"ok": True}, meta=ResponseMeta(status=200, status_text="OK"))

    monkeypatch.setattr(instance.dispatcher, "send", fake_send)
    instance.sent = sent
    return instance


@pytest.fixture
def user() -> UserCredentials:
    return UserCredentials(user_id="user-1", user_secret=SecretStr("secret"))


def test_client_configures_dispatcher():
    credentials = PartnerCredentials(client_id="PARTNER", consumer_key=SecretStr("key"))
    client = SnapTradeClient(credentials, base_url="https://example.test/", timeout=12)
    assert client.dispatcher.base_url == "https://example.test"
    assert client.dispatcher.timeout == 12


@pytest.mark.asyncio
async def test_partner_scoped_calls_carry_only_client_params(client):
    result = await client.fetch_brokerages()
    descriptor = client.sent[0]

    assert result.unwrap() == {"ok": True}
    assert descriptor.method == "GET"
    assert descriptor.endpoint == "/api/v1/brokerages"
    assert list(descriptor.query_params) == ["timestamp", "clientId"]
    assert descriptor.query_params["clientId"] == "PARTNER"
    assert descriptor.body is None


@pytest.mark.asyncio
async def test_user_scoped_calls_append_user_params_in_order(client, user):
    await client.fetch_orders_history(user, "acc-1", status="open", days=30, timeout=5)
    descriptor = client.sent[0]

    assert descriptor.endpoint == "/api/v1/accounts/acc-1/orders"
    assert list(descriptor.query_params) == ["timestamp", "clientId", "userId", "userSecret", "status", "days"]
    assert descriptor.query_params["userSecret"] == "secret"
    assert descriptor.timeout == 5


@pytest.mark.asyncio
async def test_path_parameters_are_quoted(client, user):
    await client.fetch_account(user, "acc/../1")
    await client.get_symbol_detail_by_ticker("BRK.B")

    assert client.sent[0].endpoint == "/api/v1/accounts/acc%2F..%2F1"
    assert client.sent[1].endpoint == "/api/v1/symbols/BRK.B"


@pytest.mark.asyncio
async def test_register_user_body(client):
    await client.register_user("bob")
    await client.register_user("alice", rsa_public_key="ssh-rsa AAA")

    assert client.sent[0].method == "POST"
    assert client.sent[0].endpoint == "/api/v1/snapTrade/registerUser"
    assert client.sent[0].body == {"userId": "bob"}
    assert client.sent[1].body == {"userId": "alice", "rsaPublicKey": "ssh-rsa AAA"}


@pytest.mark.asyncio
async def test_generate_redirect_uri_only_sends_given_options(client, user):
    await client.generate_redirect_uri(user)
    await client.generate_redirect_uri(user, broker="QUESTRADE", immediate_redirect=True)

    assert client.sent[0].body is None
    assert client.sent[1].body == {"broker": "QUESTRADE", "immediateRedirect": True}


@pytest.mark.asyncio
async def test_list_params_are_comma_joined(client, user):
    await client.fetch_user_holdings(user, authorization_ids=["a1", "a2"])
    await client.fetch_user_holdings(user)
    await client.fetch_brokerage_authorization_types(["QUESTRADE", "ALPACA"])
    await client.fetch_symbols_quote(user, "acc-1", ["AAPL", "MSFT"], use_ticker=True)

    assert client.sent[0].query_params["brokerage_authorizations"] == "a1,a2"
    assert "brokerage_authorizations" not in client.sent[1].query_params
    assert client.sent[2].query_params["brokerage"] == "QUESTRADE,ALPACA"
    assert client.sent[3].query_params["symbols"] == "AAPL,MSFT"
    assert client.sent[3].query_params["use_ticker"] is True


@pytest.mark.asyncio
async def test_trading_and_connection_endpoints(client, user):
    order = {"account_id": "acc-1", "action": "BUY", "order_type": "Market", "units": 1}

    await client.cancel_open_order(user, "acc-1", "brk-9")
    await client.order_impact(user, order)
    await client.place_order(user, "trade-1")
    await client.place_trade_with_no_validation(user, order)
    await client.multiple_trades_order_impact(user, "pg-1", "ct-1")
    await client.delete_authorization(user, "auth-1")

    calls = [(d.method, d.endpoint, d.body) for d in client.sent]
    assert calls == [
        ("POST", "/api/v1/accounts/acc-1/orders/cancel", {"brokerage_order_id": "brk-9"}),
        ("POST", "/api/v1/trade/impact", order),
        ("POST", "/api/v1/trade/trade-1", None),
        ("POST", "/api/v1/trade/place", order),
        ("GET", "/api/v1/portfolioGroups/pg-1/calculatedtrades/ct-1", None),
        ("DELETE", "/api/v1/authorizations/auth-1", None),
    ]


@pytest.mark.asyncio
async def test_reference_and_reporting_endpoints(client, user):
    await client.get_api_status()
    await client.list_users()
    await client.partner_data()
    await client.fetch_exchange_rates()
    await client.get_currency_pair("USD-CAD")
    await client.search_symbols("AAP")
    await client.fetch_performance_information(user, "2024-01-01", "2024-02-01", accounts=["a", "b"], detailed=True)
    await client.fetch_transaction_history(user, start_date="2024-01-01")

    endpoints = [d.endpoint for d in client.sent]
    assert endpoints == [
        "/api/v1/",
        "/api/v1/snapTrade/listUsers",
        "/api/v1/snapTrade/partners/",
        "/api/v1/currencies/rates",
        "/api/v1/currencies/rates/USD-CAD",
        "/api/v1/symbols",
        "/api/v1/performance/custom",
        "/api/v1/activities",
    ]
    assert client.sent[5].body == {"substring": "AAP"}
    performance = client.sent[6].query_params
    assert [k for k in performance if k not in ("timestamp", "clientId", "userId", "userSecret")] == [
        "startDate",
        "endDate",
        "accounts",
        "detailed",
    ]
    assert "endDate" not in client.sent[7].query_params
