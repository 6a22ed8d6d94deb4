from __future__ import annotations

import json

from snaptrade_client.errors import ErrorCode, SnapTradeError
from snaptrade_client.output import emit_error, emit_success, map_unexpected_error


class Recorder:
    def __init__(self):
        self.calls = []

    def print(self, value):
        self.calls.append(value)


def test_emit_success_and_error_non_json(monkeypatch):
    out = Recorder()
    err = Recorder()
    monkeypatch.setattr("snaptrade_client.output.stdout_console", out)
    monkeypatch.setattr("snaptrade_client.output.stderr_console", err)

    emit_success("cmd", {"x": 1}, json_mode=False)
    emit_success("cmd", [{"id": "a"}, {"id": "b", "name": "B"}], json_mode=False)
    emit_success("cmd", [], json_mode=False)
    assert len(out.calls) == 6

    api_err = SnapTradeError(code=ErrorCode.AUTH_REQUIRED, message="no auth")
    emit_error(api_err, "cmd", json_mode=False)
    assert err.calls == ["[red]AUTH_REQUIRED[/red] no auth"]


def test_emit_json_envelopes(capsys):
    emit_success("accounts list", [{"id": "acc-1"}], json_mode=True)
    success = json.loads(capsys.readouterr().out)
    assert success["ok"] is True
    assert success["data"] == [{"id": "acc-1"}]
    assert success["meta"]["timestamp"].endswith("Z")

    emit_error(
        SnapTradeError(code=ErrorCode.RATE_LIMITED, message="slow down", retriable=True),
        "accounts list",
        json_mode=True,
        details={"status": 429},
    )
    failure = json.loads(capsys.readouterr().out)
    assert failure["ok"] is False
    assert failure["error"] == {
        "code": "RATE_LIMITED",
        "message": "slow down",
        "retriable": True,
        "details": {"status": 429},
    }


def test_map_unexpected_error():
    mapped = map_unexpected_error(RuntimeError("boom"))
    assert mapped.code == ErrorCode.INTERNAL_ERROR
    assert "boom" in mapped.message
