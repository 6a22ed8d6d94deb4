from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import SecretStr

from snaptrade_client.errors import ErrorCode, SnapTradeError
from snaptrade_client.models import (
    ApiFailure,
    ApiResponse,
    ApiResult,
    FailureKind,
    PartnerCredentials,
    RequestDescriptor,
    ResponseMeta,
    UserCredentials,
)
from snaptrade_client.signing import canonical_query, sign_request


DEFAULT_BASE_URL = "https://api.passiv.com"
DEFAULT_TIMEOUT_SECONDS = 30.0
SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")
BODY_METHODS = ("POST", "PUT")
SIGNATURE_HEADER = "Signature"
logger = logging.getLogger(__name__)


def build_query_params(
    client_id: str,
    user: UserCredentials | None = None,
    extra: Mapping[str, Any] | None = None,
    timestamp: int | None = None,
) -> dict[str, Any]:
    params: dict[str, Any] = {
        "timestamp": int(time.time()) if timestamp is None else timestamp,
        "clientId": client_id,
    }
    if user is not None:
        secret = user.user_secret.get_secret_value()
        params["userId"] = user.user_id
        if secret:
            params["userSecret"] = secret
    if extra:
        params.update({key: value for key, value in extra.items() if value is not None})
    return params


def describe(
    endpoint: str,
    method: str,
    query_params: Mapping[str, Any],
    body: Any = None,
    timeout: float | None = None,
) -> RequestDescriptor:
    normalized = method.upper().strip()
    if normalized not in SUPPORTED_METHODS:
        raise SnapTradeError(
            code=ErrorCode.VALIDATION_ERROR,
            message=f"Unsupported HTTP method: {method}. Use one of {', '.join(SUPPORTED_METHODS)}.",
        )
    if body is not None and normalized not in BODY_METHODS:
        raise SnapTradeError(code=ErrorCode.VALIDATION_ERROR, message=f"{normalized} requests cannot carry a body")
    return RequestDescriptor(
        endpoint=endpoint,
        method=normalized,
        query_params=dict(query_params),
        body=body,
        timeout=timeout,
    )


class Dispatcher:
    """Signs and sends one request per call; no retries, no shared session."""

    def __init__(
        self,
        consumer_key: str | SecretStr,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._consumer_key = consumer_key if isinstance(consumer_key, SecretStr) else SecretStr(consumer_key)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def for_partner(
        cls,
        credentials: PartnerCredentials,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> "Dispatcher":
        return cls(consumer_key=credentials.consumer_key, base_url=base_url, timeout=timeout)

    def prepare(self, descriptor: RequestDescriptor) -> tuple[str, dict[str, str]]:
        query = canonical_query(descriptor.query_params)
        headers = {SIGNATURE_HEADER: sign_request(descriptor, query, self._consumer_key)}
        url = f"{self.base_url}{descriptor.endpoint}"
        if query:
            url = f"{url}?{query}"
        return url, headers

    async def send(self, descriptor: RequestDescriptor) -> ApiResult:
        url, headers = self.prepare(descriptor)
        timeout = descriptor.timeout or self.timeout

        logger.debug("%s %s (timeout=%ss)", descriptor.method, descriptor.endpoint, timeout)
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.request(descriptor.method, url, headers=headers, json=descriptor.body)
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out after %ss", descriptor.method, descriptor.endpoint, timeout)
            return ApiFailure(kind=FailureKind.TIMEOUT, detail=f"Request timed out after {timeout}s: {exc}")
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", descriptor.method, descriptor.endpoint, exc)
            return ApiFailure(kind=FailureKind.TRANSPORT, detail=str(exc))

        logger.debug("%s %s -> %s", descriptor.method, descriptor.endpoint, response.status_code)
        if not response.is_success:
            return ApiFailure(kind=FailureKind.REMOTE, status=response.status_code, body=_error_body(response))

        try:
            data = response.json() if response.content else None
        except ValueError:
            logger.warning("%s %s returned an undecodable body", descriptor.method, descriptor.endpoint)
            return ApiFailure(kind=FailureKind.DECODE, status=response.status_code, body=response.text)

        return ApiResponse(
            data=data,
            meta=ResponseMeta(status=response.status_code, status_text=response.reason_phrase),
        )


def _error_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


async def request(
    *,
    endpoint: str,
    method: str,
    credentials: PartnerCredentials,
    user: UserCredentials | None = None,
    extra_params: Mapping[str, Any] | None = None,
    data: Any = None,
    timeout: float | None = None,
    base_url: str = DEFAULT_BASE_URL,
) -> ApiResult:
    """Build, sign and send a single request for ``credentials``."""
    descriptor = describe(
        endpoint,
        method,
        build_query_params(credentials.client_id, user=user, extra=extra_params),
        body=data,
        timeout=timeout,
    )
    dispatcher = Dispatcher.for_partner(credentials, base_url=base_url)
    return await dispatcher.send(descriptor)
