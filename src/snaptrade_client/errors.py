from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    RATE_LIMITED = "RATE_LIMITED"
    REMOTE_REJECTED = "REMOTE_REJECTED"
    TIMEOUT = "TIMEOUT"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


EXIT_CODE_MAP: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 2,
    ErrorCode.AUTH_REQUIRED: 3,
    ErrorCode.RATE_LIMITED: 4,
    ErrorCode.REMOTE_REJECTED: 5,
    ErrorCode.TIMEOUT: 7,
    ErrorCode.TRANSPORT_ERROR: 7,
    ErrorCode.DECODE_ERROR: 8,
    ErrorCode.INTERNAL_ERROR: 10,
}


@dataclass
class SnapTradeError(Exception):
    code: ErrorCode
    message: str
    retriable: bool = False

    @property
    def exit_code(self) -> int:
        return EXIT_CODE_MAP.get(self.code, 10)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
