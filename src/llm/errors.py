# src/llm/errors.py — v1
"""Typed generation errors and the classification used by the retry policy.

Backends should raise GenerationError with an explicit kind. Anything else is
classified from its type and message text.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from genflow.core.errors import GenflowError


class GenerationErrorKind(str, Enum):
    """Failure classes of a generation call."""

    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    AUTH_FAILED = "auth_failed"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


RETRYABLE_KINDS: frozenset[GenerationErrorKind] = frozenset(
    {
        GenerationErrorKind.TIMEOUT,
        GenerationErrorKind.RATE_LIMIT,
        GenerationErrorKind.NETWORK,
    }
)

_USER_MESSAGES: dict[GenerationErrorKind, str] = {
    GenerationErrorKind.TIMEOUT: "The generation service did not respond in time.",
    GenerationErrorKind.RATE_LIMIT: "Too many requests; the service is rate limiting.",
    GenerationErrorKind.NETWORK: "Could not reach the generation service.",
    GenerationErrorKind.AUTH_FAILED: "The API key is invalid or has expired.",
    GenerationErrorKind.INVALID_RESPONSE: "The generation service returned an unexpected response.",
    GenerationErrorKind.UNKNOWN: "An unknown generation error occurred.",
}


class GenerationError(GenflowError):
    """Error raised by a generation backend."""

    def __init__(
        self,
        kind: GenerationErrorKind,
        message: str | None = None,
        details: str | None = None,
    ) -> None:
        self.kind = kind
        self.user_message = message or _USER_MESSAGES[kind]
        self.details = details
        super().__init__(f"[{kind.value}] {self.user_message}")

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @classmethod
    def timeout(cls, details: str | None = None) -> GenerationError:
        return cls(GenerationErrorKind.TIMEOUT, details=details)

    @classmethod
    def rate_limit(cls, details: str | None = None) -> GenerationError:
        return cls(GenerationErrorKind.RATE_LIMIT, details=details)

    @classmethod
    def network(cls, details: str | None = None) -> GenerationError:
        return cls(GenerationErrorKind.NETWORK, details=details)

    @classmethod
    def auth_failed(cls, details: str | None = None) -> GenerationError:
        return cls(GenerationErrorKind.AUTH_FAILED, details=details)

    @classmethod
    def invalid_response(cls, details: str | None = None) -> GenerationError:
        return cls(GenerationErrorKind.INVALID_RESPONSE, details=details)

    @classmethod
    def from_exception(cls, error: BaseException) -> GenerationError:
        """Wrap an arbitrary exception, keeping its message as details."""
        if isinstance(error, GenerationError):
            return error
        return cls(classify_error(error), details=str(error))


def classify_error(error: BaseException) -> GenerationErrorKind:
    """Classify an exception into a generation error kind."""
    if isinstance(error, GenerationError):
        return error.kind
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return GenerationErrorKind.TIMEOUT
    if isinstance(error, ConnectionError):
        return GenerationErrorKind.NETWORK

    msg = str(error).lower()

    if "timeout" in msg or "timed out" in msg:
        return GenerationErrorKind.TIMEOUT
    if "rate limit" in msg or "429" in msg:
        return GenerationErrorKind.RATE_LIMIT
    if (
        "unauthorized" in msg
        or "401" in msg
        or "invalid api key" in msg
        or "authentication" in msg
    ):
        return GenerationErrorKind.AUTH_FAILED
    if any(
        token in msg
        for token in ("network", "econnrefused", "enotfound", "fetch failed", "connection")
    ):
        return GenerationErrorKind.NETWORK
    return GenerationErrorKind.UNKNOWN


def is_retryable_error(error: BaseException) -> bool:
    """Return True if the error is transient and worth retrying."""
    return classify_error(error) in RETRYABLE_KINDS
