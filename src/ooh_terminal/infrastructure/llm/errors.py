"""Structured error kinds produced at the inference boundary."""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    PERMANENT = "permanent"

    @property
    def retryable(self) -> bool:
        return self is not ErrorKind.PERMANENT


class ProviderError(Exception):
    """Failure of an inference call, classified once where it happens."""

    def __init__(self, kind: ErrorKind, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"[{self.kind.value} {self.status_code}] {base}"
        return f"[{self.kind.value}] {base}"


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised by an operation onto an ``ErrorKind``."""
    if isinstance(exc, ProviderError):
        return exc.kind
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return ErrorKind.UNAVAILABLE
    return ErrorKind.PERMANENT
