from __future__ import annotations

from snaptrade_client.errors import ErrorCode, SnapTradeError


def test_error_string_and_exit_code():
    err = SnapTradeError(code=ErrorCode.AUTH_REQUIRED, message="missing")
    assert str(err) == "AUTH_REQUIRED: missing"
    assert err.exit_code == 3


def test_network_failures_share_an_exit_code():
    timeout = SnapTradeError(code=ErrorCode.TIMEOUT, message="slow", retriable=True)
    transport = SnapTradeError(code=ErrorCode.TRANSPORT_ERROR, message="refused", retriable=True)
    assert timeout.exit_code == transport.exit_code == 7
