from __future__ import annotations

from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from snaptrade_client.models import ApiResult, PartnerCredentials, UserCredentials
from snaptrade_client.request import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    Dispatcher,
    build_query_params,
    describe,
)


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def _csv(values: Sequence[str] | None) -> str | None:
    if not values:
        return None
    return ",".join(values)


def _compact(payload: dict[str, Any]) -> dict[str, Any] | None:
    cleaned = {key: value for key, value in payload.items() if value is not None}
    return cleaned or None


class SnapTradeClient:
    """Async client for the SnapTrade API; one method per remote endpoint."""

    def __init__(
        self,
        credentials: PartnerCredentials,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.credentials = credentials
        self.dispatcher = Dispatcher.for_partner(credentials, base_url=base_url, timeout=timeout)

    async def _call(
        self,
        method: str,
        endpoint: str,
        *,
        user: UserCredentials | None = None,
        params: dict[str, Any] | None = None,
        data: Any = None,
        timeout: float | None = None,
    ) -> ApiResult:
        descriptor = describe(
            endpoint,
            method,
            build_query_params(self.credentials.client_id, user=user, extra=params),
            body=data,
            timeout=timeout,
        )
        return await self.dispatcher.send(descriptor)

    # API status

    async def get_api_status(self) -> ApiResult:
        return await self._call("GET", "/api/v1/")

    # Authentication

    async def register_user(self, user_id: str, rsa_public_key: str | None = None) -> ApiResult:
        """Register ``user_id``; the response carries the user secret needed by every user-scoped call."""
        return await self._call(
            "POST",
            "/api/v1/snapTrade/registerUser",
            data=_compact({"userId": user_id, "rsaPublicKey": rsa_public_key}),
        )

    async def delete_user(self, user: UserCredentials) -> ApiResult:
        return await self._call("POST", "/api/v1/snapTrade/deleteUser", user=user)

    async def generate_redirect_uri(
        self,
        user: UserCredentials,
        *,
        broker: str | None = None,
        immediate_redirect: bool | None = None,
        custom_redirect: str | None = None,
        reconnect: str | None = None,
        connection_type: str | None = None,
    ) -> ApiResult:
        """Login link for the SnapTrade connection portal."""
        return await self._call(
            "POST",
            "/api/v1/snapTrade/login",
            user=user,
            data=_compact(
                {
                    "broker": broker,
                    "immediateRedirect": immediate_redirect,
                    "customRedirect": custom_redirect,
                    "reconnect": reconnect,
                    "connectionType": connection_type,
                }
            ),
        )

    async def list_users(self) -> ApiResult:
        return await self._call("GET", "/api/v1/snapTrade/listUsers")

    async def retrieve_jwt(self, user: UserCredentials) -> ApiResult:
        """Fetch the encrypted JWT. Decrypting it is left to the caller."""
        return await self._call("GET", "/api/v1/snapTrade/encryptedJWT", user=user)

    # Account information

    async def fetch_user_holdings(
        self,
        user: UserCredentials,
        authorization_ids: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> ApiResult:
        return await self._call(
            "GET",
            "/api/v1/holdings",
            user=user,
            params={"brokerage_authorizations": _csv(authorization_ids)},
            timeout=timeout,
        )

    async def fetch_account_holdings(
        self, user: UserCredentials, account_id: str, timeout: float | None = None
    ) -> ApiResult:
        return await self._call(
            "GET", f"/api/v1/accounts/{_segment(account_id)}/holdings", user=user, timeout=timeout
        )

    async def fetch_user_accounts(self, user: UserCredentials, timeout: float | None = None) -> ApiResult:
        return await self._call("GET", "/api/v1/accounts", user=user, timeout=timeout)

    async def fetch_account(self, user: UserCredentials, account_id: str, timeout: float | None = None) -> ApiResult:
        return await self._call("GET", f"/api/v1/accounts/{_segment(account_id)}", user=user, timeout=timeout)

    async def fetch_account_balances(
        self, user: UserCredentials, account_id: str, timeout: float | None = None
    ) -> ApiResult:
        return await self._call(
            "GET", f"/api/v1/accounts/{_segment(account_id)}/balances", user=user, timeout=timeout
        )

    async def fetch_account_positions(
        self, user: UserCredentials, account_id: str, timeout: float | None = None
    ) -> ApiResult:
        return await self._call(
            "GET", f"/api/v1/accounts/{_segment(account_id)}/positions", user=user, timeout=timeout
        )

    # Trading

    async def fetch_orders_history(
        self,
        user: UserCredentials,
        account_id: str,
        status: str | None = None,
        days: int | None = None,
        timeout: float | None = None,
    ) -> ApiResult:
        return await self._call(
            "GET",
            f"/api/v1/accounts/{_segment(account_id)}/orders",
            user=user,
            params={"status": status, "days": days},
            timeout=timeout,
        )

    async def cancel_open_order(
        self,
        user: UserCredentials,
        account_id: str,
        brokerage_order_id: str,
        timeout: float | None = None,
    ) -> ApiResult:
        return await self._call(
            "POST",
            f"/api/v1/accounts/{_segment(account_id)}/orders/cancel",
            user=user,
            data={"brokerage_order_id": brokerage_order_id},
            timeout=timeout,
        )

    async def fetch_symbols_quote(
        self,
        user: UserCredentials,
        account_id: str,
        symbols: Sequence[str] | str,
        use_ticker: bool | None = None,
        timeout: float | None = None,
    ) -> ApiResult:
        joined = symbols if isinstance(symbols, str) else _csv(symbols)
        return await self._call(
            "GET",
            f"/api/v1/accounts/{_segment(account_id)}/quotes",
            user=user,
            params={"symbols": joined, "use_ticker": use_ticker},
            timeout=timeout,
        )

    async def multiple_trades_order_impact(
        self,
        user: UserCredentials,
        portfolio_group_id: str,
        calculated_trade_id: str,
        timeout: float | None = None,
    ) -> ApiResult:
        return await self._call(
            "GET",
            f"/api/v1/portfolioGroups/{_segment(portfolio_group_id)}"
            f"/calculatedtrades/{_segment(calculated_trade_id)}",
            user=user,
            timeout=timeout,
        )

    async def order_impact(
        self, user: UserCredentials, order: dict[str, Any], timeout: float | None = None
    ) -> ApiResult:
        """Preview an order; ``order`` follows the remote schema (account_id, action, order_type, ...)."""
        return await self._call("POST", "/api/v1/trade/impact", user=user, data=order, timeout=timeout)

    async def place_order(self, user: UserCredentials, trade_id: str, timeout: float | None = None) -> ApiResult:
        return await self._call("POST", f"/api/v1/trade/{_segment(trade_id)}", user=user, timeout=timeout)

    async def place_trade_with_no_validation(
        self, user: UserCredentials, order: dict[str, Any], timeout: float | None = None
    ) -> ApiResult:
        return await self._call("POST", "/api/v1/trade/place", user=user, data=order, timeout=timeout)

    # Connections

    async def fetch_brokerage_authorizations(
        self, user: UserCredentials, timeout: float | None = None
    ) -> ApiResult:
        return await self._call("GET", "/api/v1/authorizations", user=user, timeout=timeout)

    async def fetch_authorization(
        self, user: UserCredentials, authorization_id: str, timeout: float | None = None
    ) -> ApiResult:
        return await self._call(
            "GET", f"/api/v1/authorizations/{_segment(authorization_id)}", user=user, timeout=timeout
        )

    async def delete_authorization(
        self, user: UserCredentials, authorization_id: str, timeout: float | None = None
    ) -> ApiResult:
        return await self._call(
            "DELETE", f"/api/v1/authorizations/{_segment(authorization_id)}", user=user, timeout=timeout
        )

    # Reference data

    async def fetch_brokerages(self) -> ApiResult:
        return await self._call("GET", "/api/v1/brokerages")

    async def fetch_currencies(self) -> ApiResult:
        return await self._call("GET", "/api/v1/currencies")

    async def fetch_exchange_rates(self) -> ApiResult:
        return await self._call("GET", "/api/v1/currencies/rates")

    async def get_currency_pair(self, currency_pair: str) -> ApiResult:
        return await self._call("GET", f"/api/v1/currencies/rates/{_segment(currency_pair)}")

    async def search_symbols(self, substring: str) -> ApiResult:
        return await self._call("POST", "/api/v1/symbols", data={"substring": substring})

    async def get_symbol_detail_by_id(self, symbol_id: str) -> ApiResult:
        return await self._call("GET", f"/api/v1/symbols/{_segment(symbol_id)}")

    async def get_symbol_detail_by_ticker(self, ticker: str) -> ApiResult:
        return await self._call("GET", f"/api/v1/symbols/{_segment(ticker)}")

    async def fetch_security_types(self) -> ApiResult:
        return await self._call("GET", "/api/v1/securityTypes")

    async def fetch_brokerage_authorization_types(self, brokerages: Sequence[str] | None = None) -> ApiResult:
        return await self._call(
            "GET",
            "/api/v1/brokerageAuthorizationTypes",
            params={"brokerage": _csv(brokerages)},
        )

    async def fetch_stock_exchanges(self) -> ApiResult:
        return await self._call("GET", "/api/v1/exchanges")

    async def partner_data(self) -> ApiResult:
        return await self._call("GET", "/api/v1/snapTrade/partners/")

    # Portfolio management

    async def fetch_portfolio_groups(self, user: UserCredentials, timeout: float | None = None) -> ApiResult:
        return await self._call("GET", "/api/v1/portfolioGroups", user=user, timeout=timeout)

    async def fetch_portfolio_group_positions(
        self, user: UserCredentials, portfolio_group_id: str, timeout: float | None = None
    ) -> ApiResult:
        return await self._call(
            "GET",
            f"/api/v1/portfolioGroups/{_segment(portfolio_group_id)}/positions",
            user=user,
            timeout=timeout,
        )

    # Reporting

    async def fetch_transaction_history(
        self,
        user: UserCredentials,
        start_date: str | None = None,
        end_date: str | None = None,
        accounts: Sequence[str] | None = None,
        timeout: float | None = None,
    ) -> ApiResult:
        return await self._call(
            "GET",
            "/api/v1/activities",
            user=user,
            params={"startDate": start_date, "endDate": end_date, "accounts": _csv(accounts)},
            timeout=timeout,
        )

    async def fetch_performance_information(
        self,
        user: UserCredentials,
        start_date: str,
        end_date: str,
        accounts: Sequence[str] | None = None,
        detailed: bool | None = None,
        frequency: str | None = None,
        timeout: float | None = None,
    ) -> ApiResult:
        return await self._call(
            "GET",
            "/api/v1/performance/custom",
            user=user,
            params={
                "startDate": start_date,
                "endDate": end_date,
                "accounts": _csv(accounts),
                "detailed": detailed,
                "frequency": frequency,
            },
            timeout=timeout,
        )
