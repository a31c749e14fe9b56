"""
Error Classification

Defines the error taxonomy shared by the resolver, the tools and the
endpoint selector. Data-source failures are caught where they happen and
turned into structured ``{"error": ...}`` payloads; only provider-fatal
conditions escape a conversation turn.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of data-source failures."""

    UNAVAILABLE = "unavailable"     # No data source / endpoint answered
    TIMEOUT = "timeout"             # A single call exceeded its budget
    RATE_LIMITED = "rate_limited"   # Provider signalled quota exhaustion
    MALFORMED = "malformed"         # Response did not match the expected shape
    UNKNOWN = "unknown"             # No handler for the requested tool/endpoint


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNAVAILABLE
    recoverable: bool = True
    retry_after_seconds: Optional[float] = None
    provider: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class BubblesError(Exception):
    """Base class for classified data-source errors."""

    category: ErrorCategory = ErrorCategory.UNAVAILABLE
    recoverable: bool = True

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        retry_after: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.retry_after = retry_after
        self.context = ErrorContext(
            category=self.category,
            recoverable=self.recoverable,
            retry_after_seconds=retry_after,
            provider=provider,
            details=details or {},
        )


class UnavailableError(BubblesError):
    """Every tier or candidate was exhausted."""

    category = ErrorCategory.UNAVAILABLE


class EndpointUnavailableError(UnavailableError):
    """No JSON-RPC candidate passed its liveness probe."""

    recoverable = False

    def __init__(self, message: str = "no endpoint available", candidates: Optional[list] = None):
        super().__init__(message, details={"candidates": list(candidates or [])})


class DataTimeoutError(BubblesError):
    """A single outbound call exceeded its timeout."""

    category = ErrorCategory.TIMEOUT


class RateLimitedError(BubblesError):
    """Upstream API answered 429."""

    category = ErrorCategory.RATE_LIMITED

    def __init__(self, message: str = "Rate limit exceeded", provider: Optional[str] = None, retry_after: float = 2.0):
        super().__init__(message, provider=provider, retry_after=retry_after)


class MalformedResponseError(BubblesError):
    """Upstream payload did not have the expected shape."""

    category = ErrorCategory.MALFORMED
    recoverable = False


class UnknownToolError(BubblesError):
    """A tool name with no registered handler."""

    category = ErrorCategory.UNKNOWN
    recoverable = False

    def __init__(self, tool_name: str):
        super().__init__("unknown tool", details={"tool": tool_name})
        self.tool_name = tool_name


class UnclassifiableTransactionError(ValueError):
    """Neither side of a transaction is a large holder.

    Pressure classification is only defined when at least one endpoint is in
    the large-holder set; callers filter transactions before classifying.
    """


class TurnAbortedError(Exception):
    """Provider-fatal condition that ends a conversation turn.

    ``status`` is the HTTP status surfaced to the caller (429 rate limited,
    402 quota exhausted, 401 missing or rejected credentials, 502 other
    provider failure).
    """

    def __init__(self, message: str, status: int, reason: str):
        super().__init__(message)
        self.message = message
        self.status = status
        self.reason = reason


def classify_error(error: BaseException) -> ErrorContext:
    """
    Classify an exception and return its error context.

    Already-classified errors keep their context; httpx and asyncio failures
    are mapped by type and status code.
    """
    if isinstance(error, BubblesError):
        return error.context

    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorContext(category=ErrorCategory.TIMEOUT, recoverable=True)

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            return ErrorContext(
                category=ErrorCategory.RATE_LIMITED,
                recoverable=True,
                retry_after_seconds=2.0,
            )
        if status == 404:
            return ErrorContext(
                category=ErrorCategory.UNKNOWN,
                recoverable=False,
                details={"status": status},
            )
        return ErrorContext(
            category=ErrorCategory.UNAVAILABLE,
            recoverable=status >= 500,
            details={"status": status},
        )

    if isinstance(error, httpx.TransportError):
        return ErrorContext(category=ErrorCategory.UNAVAILABLE, recoverable=True)

    if isinstance(error, (ValueError, KeyError, TypeError)):
        return ErrorContext(category=ErrorCategory.MALFORMED, recoverable=False)

    message = str(error).lower()
    if any(p in message for p in ("rate limit", "too many requests", "429")):
        return ErrorContext(category=ErrorCategory.RATE_LIMITED, recoverable=True)
    if any(p in message for p in ("timeout", "timed out")):
        return ErrorContext(category=ErrorCategory.TIMEOUT, recoverable=True)

    return ErrorContext(category=ErrorCategory.UNAVAILABLE, recoverable=True)


def error_payload(error: BaseException, **extra: Any) -> Dict[str, Any]:
    """Structured ``{error, category}`` dict for a failed call."""
    ctx = classify_error(error)
    if isinstance(error, BubblesError):
        message = error.message
    elif isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        message = "request timed out"
    elif isinstance(error, httpx.HTTPStatusError):
        message = f"upstream returned HTTP {error.response.status_code}"
    else:
        message = str(error) or error.__class__.__name__

    payload: Dict[str, Any] = {"error": message, "category": ctx.category.value}
    payload.update(extra)
    return payload
