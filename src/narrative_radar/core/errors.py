"""
Structured error types for narrative-radar.

Provides a typed hierarchy of errors with metadata for retry decisions,
fallback decisions, and structured logging.

The error hierarchy drives the model-call state machine. Instead of
inspecting raw status codes at every call site, each error knows:
- **Category:** What kind of error (network, provider, parse, config, ...)
- **Failure kind:** TRANSIENT, SERVER or FATAL, which selects retry,
  fallback or abort
- **Context:** Model, URL, HTTP status and custom metadata
- **Cause:** Chained underlying exception

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       RadarError                                 │
        │  (category, failure kind, context, cause)                        │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError     ServerError        FatalRequestError         │
        │  (retry same model) (next model)       (abort chain)             │
        │       │                                                          │
        │  AuthenticationError  (401)                                      │
        │  TimeoutError         (408, transport timeout)                   │
        │  RateLimitError       (429)                                      │
        │  NetworkError         (connection failures)                      │
        │                                                                  │
        │  ParseError         ConfigError        BudgetExhaustedError      │
        │  (PARSE)            (CONFIG)           (BUDGET)                  │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Classifying a provider status code:

    >>> classify_status(429)
    <FailureKind.TRANSIENT: 'TRANSIENT'>
    >>> classify_status(502)
    <FailureKind.SERVER: 'SERVER'>
    >>> classify_status(400)
    <FailureKind.FATAL: 'FATAL'>

    Building the matching error:

    >>> err = error_for_status(503, "upstream overloaded", model="z-ai/glm-4.7")
    >>> type(err).__name__
    'ServerError'
    >>> err.context.http_status
    503

Tags:
    error-handling, exception-hierarchy, retry-logic, fallback,
    narrative-radar, observability
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and log routing."""

    NETWORK = "NETWORK"           # Connection, timeout, rate limit
    AUTH = "AUTH"                 # Credentials rejected
    PROVIDER = "PROVIDER"         # Upstream 5xx
    REQUEST = "REQUEST"           # Upstream rejected the request (4xx)
    PARSE = "PARSE"               # Malformed model output
    CONFIG = "CONFIG"             # Missing key, empty model chain
    BUDGET = "BUDGET"             # Cost ceiling exceeded
    STORAGE = "STORAGE"           # Snapshot files
    INTERNAL = "INTERNAL"


class FailureKind(str, Enum):
    """How the model-call chain reacts to a failed attempt.

    TRANSIENT: retry the same model after a backoff.
    SERVER: skip the remaining retries and advance to the next model.
    FATAL: abandon the whole chain and propagate.
    """

    TRANSIENT = "TRANSIENT"
    SERVER = "SERVER"
    FATAL = "FATAL"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are serialized by ``to_dict()``; anything that
    does not have a typed field goes into ``metadata``.

    Examples:
        >>> ctx = ErrorContext(model="z-ai/glm-4.7", http_status=429)
        >>> ctx.to_dict()
        {'model': 'z-ai/glm-4.7', 'http_status': 429}
    """

    model: str | None = None
    attempt: int | None = None
    url: str | None = None
    http_status: int | None = None
    path: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["model", "attempt", "url", "http_status", "path"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RadarError(Exception):
    """
    Base exception for all narrative-radar errors.

    Subclasses set ``default_category`` and ``failure_kind`` so a raise site
    only has to pick the right type.

    Examples:
        >>> error = RadarError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.failure_kind
        <FailureKind.FATAL: 'FATAL'>

        Adding context fluently:

        >>> error = RadarError("Call failed").with_context(model="gpt-4o", attempt=2)
        >>> error.context.attempt
        2
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    failure_kind: FailureKind = FailureKind.FATAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RadarError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "failure_kind": self.failure_kind.value,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (retry the same model)
# =============================================================================


class TransientError(RadarError):
    """
    Temporary failure that may succeed when the same request is repeated.

    The model-call chain retries these on the same model, with a linear
    backoff, up to its retry cap. Once the cap is exhausted the chain moves
    on to the next model.
    """

    default_category = ErrorCategory.NETWORK
    failure_kind = FailureKind.TRANSIENT


class AuthenticationError(TransientError):
    """401 from the provider.

    The routing provider returns intermittent 401s under load, so this is
    treated as transient rather than as a configuration error.
    """

    default_category = ErrorCategory.AUTH


class TimeoutError(TransientError):
    """408 from the provider, or a transport-level timeout."""


class RateLimitError(TransientError):
    """429 from the provider."""


class NetworkError(TransientError):
    """Connection could not be established or was dropped."""


# =============================================================================
# SERVER / FATAL ERRORS
# =============================================================================


class ServerError(RadarError):
    """5xx from the provider. The next model in the chain is tried."""

    default_category = ErrorCategory.PROVIDER
    failure_kind = FailureKind.SERVER


class FatalRequestError(RadarError):
    """Any other 4xx. No retry or fallback can fix it."""

    default_category = ErrorCategory.REQUEST
    failure_kind = FailureKind.FATAL


class ParseError(RadarError):
    """Model output could not be parsed into a JSON object.

    Attributes:
        excerpt: Bounded head/tail excerpt of the offending text.
    """

    default_category = ErrorCategory.PARSE
    failure_kind = FailureKind.FATAL

    def __init__(self, message: str, *, excerpt: str = "", **kwargs: Any):
        super().__init__(message, **kwargs)
        self.excerpt = excerpt

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["excerpt"] = self.excerpt
        return result


class ConfigError(RadarError):
    """Missing or invalid configuration."""

    default_category = ErrorCategory.CONFIG
    failure_kind = FailureKind.FATAL


class StorageError(RadarError):
    """A snapshot or report file is missing or unreadable."""

    default_category = ErrorCategory.STORAGE
    failure_kind = FailureKind.FATAL


class BudgetExhaustedError(RadarError):
    """Raised when recorded model spend would exceed the configured ceiling.

    Attributes:
        max_cost_usd: Maximum allowed spend.
        spent_usd: Spend already recorded.
        requested_usd: Spend that would have been added.
    """

    default_category = ErrorCategory.BUDGET
    failure_kind = FailureKind.FATAL

    def __init__(self, max_cost_usd: float, spent_usd: float, requested_usd: float) -> None:
        self.max_cost_usd = max_cost_usd
        self.spent_usd = spent_usd
        self.requested_usd = requested_usd
        super().__init__(
            f"Cost budget exhausted: ${spent_usd:.6f} spent + ${requested_usd:.6f} requested "
            f"> ${max_cost_usd:.6f} max"
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

TRANSIENT_STATUS_CODES = frozenset({401, 408, 429})

_TRANSIENT_TYPES: dict[int, type[TransientError]] = {
    401: AuthenticationError,
    408: TimeoutError,
    429: RateLimitError,
}


def classify_status(status: int) -> FailureKind:
    """Map an HTTP status code from the provider to a failure kind.

    401/408/429 are transient, 5xx is a server failure, every other
    status is fatal.
    """
    if status in TRANSIENT_STATUS_CODES:
        return FailureKind.TRANSIENT
    if 500 <= status <= 599:
        return FailureKind.SERVER
    return FailureKind.FATAL


def error_for_status(
    status: int,
    message: str,
    *,
    model: str | None = None,
    url: str | None = None,
    retry_after: int | None = None,
) -> RadarError:
    """Build the error type that matches a provider status code."""
    context = ErrorContext(model=model, url=url, http_status=status)
    kind = classify_status(status)
    if kind is FailureKind.TRANSIENT:
        return _TRANSIENT_TYPES[status](message, context=context, retry_after=retry_after)
    if kind is FailureKind.SERVER:
        return ServerError(message, context=context)
    return FatalRequestError(message, context=context)


def failure_kind(error: Exception) -> FailureKind:
    """Failure kind of an arbitrary exception.

    Unknown exceptions are fatal: the chain only recovers from failures it
    knows how to classify.
    """
    if isinstance(error, RadarError):
        return error.failure_kind
    return FailureKind.FATAL


__all__ = [
    "ErrorCategory",
    "FailureKind",
    "ErrorContext",
    "RadarError",
    # Transient
    "TransientError",
    "AuthenticationError",
    "TimeoutError",
    "RateLimitError",
    "NetworkError",
    # Server / fatal
    "ServerError",
    "FatalRequestError",
    "ParseError",
    "ConfigError",
    "BudgetExhaustedError",
    "StorageError",
    # Utilities
    "TRANSIENT_STATUS_CODES",
    "classify_status",
    "error_for_status",
    "failure_kind",
]
