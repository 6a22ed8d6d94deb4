from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal, NoReturn

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from snaptrade_client.errors import ErrorCode, SnapTradeError


HttpMethod = Literal["GET", "POST", "PUT", "DELETE"]


class PartnerCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1)
    consumer_key: SecretStr


class UserCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    user_secret: SecretStr


class RequestDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    endpoint: str
    method: HttpMethod
    query_params: dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    timeout: float | None = Field(default=None, gt=0)


class SigningMaterial(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: Any = None
    path: str
    query: str

    @classmethod
    def from_descriptor(cls, descriptor: RequestDescriptor, query: str) -> "SigningMaterial":
        return cls(content=descriptor.body, path=descriptor.endpoint, query=query)

    def as_signing_object(self) -> dict[str, Any]:
        return {"content": self.content, "path": self.path, "query": self.query}


class ResponseMeta(BaseModel):
    status: int
    status_text: str


class ApiResponse(BaseModel):
    ok: Literal[True] = True
    data: Any = None
    meta: ResponseMeta

    def unwrap(self) -> Any:
        return self.data

    def as_legacy(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "meta": {"status": self.meta.status, "statusText": self.meta.status_text},
        }


class FailureKind(str, Enum):
    REMOTE = "remote"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    DECODE = "decode"


class ApiFailure(BaseModel):
    ok: Literal[False] = False
    kind: FailureKind
    status: int | None = None
    body: Any = None
    detail: str | None = None

    def as_legacy(self) -> Any:
        return self.body

    def to_error(self) -> SnapTradeError:
        if self.kind == FailureKind.TIMEOUT:
            return SnapTradeError(code=ErrorCode.TIMEOUT, message=self.detail or "Request timed out", retriable=True)
        if self.kind == FailureKind.TRANSPORT:
            return SnapTradeError(
                code=ErrorCode.TRANSPORT_ERROR,
                message=self.detail or "Request could not be sent",
                retriable=True,
            )
        if self.kind == FailureKind.DECODE:
            return SnapTradeError(code=ErrorCode.DECODE_ERROR, message=f"Undecodable response body: {self.body!r}")

        if self.status == 429:
            return SnapTradeError(code=ErrorCode.RATE_LIMITED, message="SnapTrade API rate limit", retriable=True)
        if self.status in (401, 403):
            return SnapTradeError(code=ErrorCode.AUTH_REQUIRED, message=f"SnapTrade auth failed: {self.body}")
        return SnapTradeError(code=ErrorCode.REMOTE_REJECTED, message=f"SnapTrade API error {self.status}: {self.body}")

    def raise_for_failure(self) -> NoReturn:
        raise self.to_error()

    def unwrap(self) -> NoReturn:
        self.raise_for_failure()


ApiResult = ApiResponse | ApiFailure


class AuthStatus(BaseModel):
    scope: str
    authenticated: bool
    detail: str | None = None


class ErrorDetail(BaseModel):
    code: str
    message: str
    retriable: bool = False
    details: dict[str, Any] | None = None


class OutputEnvelope(BaseModel):
    ok: bool
    command: str
    data: dict[str, Any] | list[Any] | None = None
    error: ErrorDetail | None = None
    meta: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, command: str, data: dict[str, Any] | list[Any] | None) -> "OutputEnvelope":
        return cls(
            ok=True,
            command=command,
            data=data,
            meta={"timestamp": datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")},
        )

    @classmethod
    def failure(
        cls,
        command: str,
        code: str,
        message: str,
        retriable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> "OutputEnvelope":
        return cls(
            ok=False,
            command=command,
            error=ErrorDetail(code=code, message=message, retriable=retriable, details=details),
            meta={"timestamp": datetime.now(UTC).isoformat(timespec="seconds").replace("+00:00", "Z")},
        )
