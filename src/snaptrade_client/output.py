from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.pretty import Pretty
from rich.table import Table

from snaptrade_client.errors import ErrorCode, SnapTradeError
from snaptrade_client.models import OutputEnvelope


stdout_console = Console(stderr=False)
stderr_console = Console(stderr=True)


def _format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    return str(value)


def _render_rows(data: list[Any]) -> None:
    if not data:
        stdout_console.print("[dim](empty)[/dim]")
        return

    if not all(isinstance(item, dict) for item in data):
        for item in data:
            stdout_console.print(f"- {_format_value(item)}")
        return

    keys: list[str] = []
    for item in data:
        for key in item:
            if key not in keys:
                keys.append(key)

    table = Table()
    for key in keys:
        table.add_column(str(key))
    for item in data:
        table.add_row(*[_format_value(item.get(key)) for key in keys])
    stdout_console.print(table)


def emit_success(command: str, data: dict[str, Any] | list[Any] | None, json_mode: bool) -> None:
    envelope = OutputEnvelope.success(command=command, data=data)
    if json_mode:
        typer.echo(envelope.model_dump_json())
        return
    stdout_console.print(f"[green]OK[/green] {command}")
    if isinstance(data, list):
        _render_rows(data)
    elif data is not None:
        stdout_console.print(Pretty(data))


def emit_error(err: SnapTradeError, command: str, json_mode: bool, details: dict[str, Any] | None = None) -> None:
    envelope = OutputEnvelope.failure(
        command=command,
        code=err.code.value,
        message=err.message,
        retriable=err.retriable,
        details=details,
    )
    if json_mode:
        typer.echo(envelope.model_dump_json())
        return
    stderr_console.print(f"[red]{err.code.value}[/red] {err.message}")


def map_unexpected_error(exc: Exception) -> SnapTradeError:
    return SnapTradeError(code=ErrorCode.INTERNAL_ERROR, message=str(exc), retriable=False)
