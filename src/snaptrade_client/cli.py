from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel, ValidationError
from rich.logging import RichHandler

from snaptrade_client.auth import AuthManager
from snaptrade_client.client import SnapTradeClient
from snaptrade_client.config import RuntimeConfig, default_config_path, load_runtime_config
from snaptrade_client.errors import ErrorCode, SnapTradeError
from snaptrade_client.models import ApiFailure, ApiResponse, UserCredentials
from snaptrade_client.output import emit_error, emit_success, map_unexpected_error, stderr_console


app = typer.Typer(no_args_is_help=True, help="SnapTrade API client")
auth_app = typer.Typer(no_args_is_help=True)
api_app = typer.Typer(no_args_is_help=True)
users_app = typer.Typer(no_args_is_help=True)
accounts_app = typer.Typer(no_args_is_help=True)
reference_app = typer.Typer(no_args_is_help=True)

app.add_typer(auth_app, name="auth")
app.add_typer(api_app, name="api")
app.add_typer(users_app, name="users")
app.add_typer(accounts_app, name="accounts")
app.add_typer(reference_app, name="reference")


@dataclass
class AppRuntime:
    json_mode: bool
    config: RuntimeConfig
    auth: AuthManager

    def client(self) -> SnapTradeClient:
        return SnapTradeClient(
            self.auth.partner_credentials(),
            base_url=self.config.app.base_url,
            timeout=self.config.app.timeout_seconds,
        )

    def user(self) -> UserCredentials:
        return self.auth.user_credentials()


def _serialize(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_serialize(item) for item in data]
    if isinstance(data, dict):
        return {k: _serialize(v) for k, v in data.items()}
    return data


def _runtime(ctx: typer.Context) -> AppRuntime:
    runtime = ctx.obj
    if runtime is None:
        raise RuntimeError("CLI runtime not initialized")
    return runtime


def _parse_csv(raw: str | None, *, option: str) -> list[str] | None:
    if raw is None:
        return None
    parsed: list[str] = []
    for item in raw.split(","):
        value = item.strip()
        if value and value not in parsed:
            parsed.append(value)
    if not parsed:
        raise SnapTradeError(code=ErrorCode.VALIDATION_ERROR, message=f"{option} requires at least one value")
    return parsed


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=stderr_console, show_path=False)],
        force=True,
    )
    # httpx logs full request URLs, which carry userSecret.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _run_command(ctx: typer.Context, command: str, func) -> None:
    runtime = _runtime(ctx)
    try:
        result = func()
        if inspect.iscoroutine(result):
            result = asyncio.run(result)
    except SnapTradeError as err:
        emit_error(err, command, runtime.json_mode)
        raise typer.Exit(err.exit_code)
    except ValidationError as err:
        cli_err = SnapTradeError(code=ErrorCode.VALIDATION_ERROR, message=str(err))
        emit_error(cli_err, command, runtime.json_mode)
        raise typer.Exit(cli_err.exit_code)
    except Exception as exc:  # pragma: no cover
        cli_err = map_unexpected_error(exc)
        emit_error(cli_err, command, runtime.json_mode)
        raise typer.Exit(cli_err.exit_code)

    if isinstance(result, ApiFailure):
        err = result.to_error()
        details = {"kind": result.kind.value, "status": result.status, "body": result.body}
        emit_error(err, command, runtime.json_mode, details=details)
        raise typer.Exit(err.exit_code)

    payload = _serialize(result.data if isinstance(result, ApiResponse) else result)
    if payload is not None and not isinstance(payload, (dict, list)):
        payload = {"value": payload}
    emit_success(command, payload, runtime.json_mode)


@app.callback()
def main(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Emit machine-readable JSON output"),
    profile: str = typer.Option("default", "--profile", help="Credential/profile namespace"),
    config: Path = typer.Option(default_config_path(), "--config", help="Config path"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logs"),
) -> None:
    _configure_logging(verbose)
    try:
        runtime_cfg = load_runtime_config(config_path=config, profile=profile)
    except SnapTradeError as err:
        emit_error(err, "global options", json_output)
        raise typer.Exit(err.exit_code)

    ctx.obj = AppRuntime(
        json_mode=json_output,
        config=runtime_cfg,
        auth=AuthManager(profile=runtime_cfg.app.profile),
    )


@auth_app.command("set")
def auth_set(
    ctx: typer.Context,
    client_id: str = typer.Option(..., "--client-id", prompt=True, help="SnapTrade client id"),
    consumer_key: str = typer.Option(..., "--consumer-key", prompt=True, hide_input=True, help="SnapTrade consumer key"),
) -> None:
    runtime = _runtime(ctx)

    def _do():
        runtime.auth.save_partner(client_id, consumer_key)
        return {"profile": runtime.auth.profile, "partner": runtime.auth.partner_status()}

    _run_command(ctx, "auth set", _do)


@auth_app.command("set-user")
def auth_set_user(
    ctx: typer.Context,
    user_id: str = typer.Option(..., "--user-id", prompt=True, help="SnapTrade user id"),
    user_secret: str = typer.Option(..., "--user-secret", prompt=True, hide_input=True, help="SnapTrade user secret"),
) -> None:
    runtime = _runtime(ctx)

    def _do():
        runtime.auth.save_user(user_id, user_secret)
        return {"profile": runtime.auth.profile, "user": runtime.auth.user_status()}

    _run_command(ctx, "auth set-user", _do)


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)

    def _do():
        return {
            "profile": runtime.auth.profile,
            "partner": runtime.auth.partner_status(),
            "user": runtime.auth.user_status(),
        }

    _run_command(ctx, "auth status", _do)


@auth_app.command("forget")
def auth_forget(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)

    def _do():
        runtime.auth.forget()
        return {"profile": runtime.auth.profile, "forgotten": True}

    _run_command(ctx, "auth forget", _do)


@api_app.command("status")
def api_status(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "api status", lambda: runtime.client().get_api_status())


@users_app.command("register")
def users_register(
    ctx: typer.Context,
    user_id: str = typer.Argument(..., help="Partner-side identifier for the new user"),
    save: bool = typer.Option(False, "--save", help="Store the returned user secret in the keyring"),
) -> None:
    runtime = _runtime(ctx)

    async def _do():
        result = await runtime.client().register_user(user_id)
        if save and isinstance(result, ApiResponse) and isinstance(result.data, dict):
            secret = result.data.get("userSecret")
            if secret:
                runtime.auth.save_user(result.data.get("userId") or user_id, secret)
        return result

    _run_command(ctx, "users register", _do)


@users_app.command("list")
def users_list(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "users list", lambda: runtime.client().list_users())


@users_app.command("delete")
def users_delete(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "users delete", lambda: runtime.client().delete_user(runtime.user()))


@users_app.command("login-uri")
def users_login_uri(
    ctx: typer.Context,
    broker: str | None = typer.Option(None, "--broker", help="Preselect a brokerage slug"),
    reconnect: str | None = typer.Option(None, "--reconnect", help="Authorization id to reconnect"),
    custom_redirect: str | None = typer.Option(None, "--custom-redirect", help="Redirect URL after connecting"),
    immediate_redirect: bool | None = typer.Option(
        None, "--immediate-redirect/--no-immediate-redirect", help="Skip the portal success screen"
    ),
    connection_type: str | None = typer.Option(None, "--connection-type", help="read or trade"),
) -> None:
    runtime = _runtime(ctx)
    _run_command(
        ctx,
        "users login-uri",
        lambda: runtime.client().generate_redirect_uri(
            runtime.user(),
            broker=broker,
            immediate_redirect=immediate_redirect,
            custom_redirect=custom_redirect,
            reconnect=reconnect,
            connection_type=connection_type,
        ),
    )


@accounts_app.command("list")
def accounts_list(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "accounts list", lambda: runtime.client().fetch_user_accounts(runtime.user()))


@accounts_app.command("get")
def accounts_get(ctx: typer.Context, account_id: str = typer.Argument(...)) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "accounts get", lambda: runtime.client().fetch_account(runtime.user(), account_id))


@accounts_app.command("balances")
def accounts_balances(ctx: typer.Context, account_id: str = typer.Argument(...)) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "accounts balances", lambda: runtime.client().fetch_account_balances(runtime.user(), account_id))


@accounts_app.command("positions")
def accounts_positions(ctx: typer.Context, account_id: str = typer.Argument(...)) -> None:
    runtime = _runtime(ctx)
    _run_command(
        ctx, "accounts positions", lambda: runtime.client().fetch_account_positions(runtime.user(), account_id)
    )


@accounts_app.command("holdings")
def accounts_holdings(
    ctx: typer.Context,
    account_id: str | None = typer.Argument(None, help="Limit to one account"),
    authorizations: str | None = typer.Option(None, "--authorizations", help="Comma-separated authorization ids"),
) -> None:
    runtime = _runtime(ctx)

    def _do():
        client = runtime.client()
        if account_id:
            return client.fetch_account_holdings(runtime.user(), account_id)
        return client.fetch_user_holdings(
            runtime.user(), authorization_ids=_parse_csv(authorizations, option="--authorizations")
        )

    _run_command(ctx, "accounts holdings", _do)


@accounts_app.command("orders")
def accounts_orders(
    ctx: typer.Context,
    account_id: str = typer.Argument(...),
    status: str | None = typer.Option(None, "--status", help="all|open|executed"),
    days: int | None = typer.Option(None, "--days", min=1, help="Look-back window in days"),
) -> None:
    runtime = _runtime(ctx)
    _run_command(
        ctx,
        "accounts orders",
        lambda: runtime.client().fetch_orders_history(runtime.user(), account_id, status=status, days=days),
    )


@accounts_app.command("quotes")
def accounts_quotes(
    ctx: typer.Context,
    account_id: str = typer.Argument(...),
    symbols: str = typer.Option(..., "--symbols", help="Comma-separated symbols"),
    use_ticker: bool = typer.Option(False, "--use-ticker", help="Treat symbols as tickers rather than ids"),
) -> None:
    runtime = _runtime(ctx)

    def _do():
        parsed = _parse_csv(symbols, option="--symbols")
        return runtime.client().fetch_symbols_quote(
            runtime.user(), account_id, parsed, use_ticker=use_ticker or None
        )

    _run_command(ctx, "accounts quotes", _do)


@reference_app.command("brokerages")
def reference_brokerages(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "reference brokerages", lambda: runtime.client().fetch_brokerages())


@reference_app.command("currencies")
def reference_currencies(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "reference currencies", lambda: runtime.client().fetch_currencies())


@reference_app.command("rates")
def reference_rates(
    ctx: typer.Context,
    pair: str | None = typer.Argument(None, help="Currency pair such as USD-CAD"),
) -> None:
    runtime = _runtime(ctx)

    def _do():
        client = runtime.client()
        if pair:
            return client.get_currency_pair(pair)
        return client.fetch_exchange_rates()

    _run_command(ctx, "reference rates", _do)


@reference_app.command("symbols")
def reference_symbols(ctx: typer.Context, query: str = typer.Argument(..., help="Substring to search for")) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "reference symbols", lambda: runtime.client().search_symbols(query))


@reference_app.command("exchanges")
def reference_exchanges(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "reference exchanges", lambda: runtime.client().fetch_stock_exchanges())


@reference_app.command("security-types")
def reference_security_types(ctx: typer.Context) -> None:
    runtime = _runtime(ctx)
    _run_command(ctx, "reference security-types", lambda: runtime.client().fetch_security_types())


@app.command("activities")
def activities(
    ctx: typer.Context,
    start_date: str | None = typer.Option(None, "--start-date", help="YYYY-MM-DD"),
    end_date: str | None = typer.Option(None, "--end-date", help="YYYY-MM-DD"),
    accounts: str | None = typer.Option(None, "--accounts", help="Comma-separated account ids"),
) -> None:
    runtime = _runtime(ctx)
    _run_command(
        ctx,
        "activities",
        lambda: runtime.client().fetch_transaction_history(
            runtime.user(),
            start_date=start_date,
            end_date=end_date,
            accounts=_parse_csv(accounts, option="--accounts"),
        ),
    )


def run() -> None:
    app()


if __name__ == "__main__":
    run()
