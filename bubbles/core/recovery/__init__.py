"""
Error Recovery Module

Provides the error taxonomy, classification helpers and the shared backoff
policy used for resilient reads against W-Chain data sources.
"""

from .errors import (
    BubblesError,
    DataTimeoutError,
    EndpointUnavailableError,
    ErrorCategory,
    ErrorContext,
    MalformedResponseError,
    RateLimitedError,
    TurnAbortedError,
    UnavailableError,
    UnclassifiableTransactionError,
    UnknownToolError,
    classify_error,
    error_payload,
)
from .strategies import BackoffPolicy, RetryConfig

__all__ = [
    # Errors
    "BubblesError",
    "DataTimeoutError",
    "EndpointUnavailableError",
    "ErrorCategory",
    "ErrorContext",
    "MalformedResponseError",
    "RateLimitedError",
    "TurnAbortedError",
    "UnavailableError",
    "UnclassifiableTransactionError",
    "UnknownToolError",
    "classify_error",
    "error_payload",
    # Strategies
    "BackoffPolicy",
    "RetryConfig",
]
