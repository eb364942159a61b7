"""Tests for narrative_radar.core.errors module."""

import pytest

from narrative_radar.core.errors import (
    AuthenticationError,
    BudgetExhaustedError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    FailureKind,
    FatalRequestError,
    NetworkError,
    ParseError,
    RadarError,
    RateLimitError,
    ServerError,
    TimeoutError,
    TransientError,
    classify_status,
    error_for_status,
    failure_kind,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.model is None
        assert ctx.metadata == {}

    def test_to_dict_includes_set_fields(self):
        ctx = ErrorContext(model="z-ai/glm-4.7", http_status=429, metadata={"key": "value"})
        d = ctx.to_dict()
        assert d["model"] == "z-ai/glm-4.7"
        assert d["http_status"] == 429
        assert d["key"] == "value"
        assert "url" not in d


class TestRadarError:
    """Test base RadarError class."""

    def test_defaults(self):
        error = RadarError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.category == ErrorCategory.INTERNAL
        assert error.failure_kind is FailureKind.FATAL

    def test_with_context_fluent(self):
        error = RadarError("Call failed").with_context(model="gpt-4o", attempt=2, run_id="abc")
        assert error.context.model == "gpt-4o"
        assert error.context.attempt == 2
        assert error.context.metadata["run_id"] == "abc"

    def test_cause_is_chained(self):
        original = ValueError("boom")
        error = RadarError("wrapped", cause=original)
        assert error.__cause__ is original
        assert error.to_dict()["cause"] == "boom"

    def test_to_dict(self):
        error = ServerError("upstream down", context=ErrorContext(model="m", http_status=503))
        d = error.to_dict()
        assert d["error_type"] == "ServerError"
        assert d["failure_kind"] == "SERVER"
        assert d["context"] == {"model": "m", "http_status": 503}


class TestHierarchy:
    """Failure kinds drive the caller's state machine."""

    @pytest.mark.parametrize("cls", [AuthenticationError, TimeoutError, RateLimitError, NetworkError])
    def test_transient_subclasses(self, cls):
        error = cls("x")
        assert isinstance(error, TransientError)
        assert error.failure_kind is FailureKind.TRANSIENT

    def test_server_advances_chain(self):
        assert ServerError("x").failure_kind is FailureKind.SERVER

    @pytest.mark.parametrize("cls", [FatalRequestError, ConfigError])
    def test_fatal(self, cls):
        assert cls("x").failure_kind is FailureKind.FATAL

    def test_parse_error_keeps_excerpt(self):
        error = ParseError("bad output", excerpt="not json")
        assert error.excerpt == "not json"
        assert error.category == ErrorCategory.PARSE
        assert error.to_dict()["excerpt"] == "not json"

    def test_budget_error_message(self):
        error = BudgetExhaustedError(max_cost_usd=1.0, spent_usd=0.9, requested_usd=0.2)
        assert error.failure_kind is FailureKind.FATAL
        assert "Cost budget exhausted" in str(error)
        assert error.spent_usd == 0.9


class TestClassifyStatus:
    @pytest.mark.parametrize("status", [401, 408, 429])
    def test_transient(self, status):
        assert classify_status(status) is FailureKind.TRANSIENT

    @pytest.mark.parametrize("status", [500, 502, 503, 504, 599])
    def test_server(self, status):
        assert classify_status(status) is FailureKind.SERVER

    @pytest.mark.parametrize("status", [400, 402, 403, 404, 422])
    def test_fatal(self, status):
        assert classify_status(status) is FailureKind.FATAL


class TestErrorForStatus:
    @pytest.mark.parametrize(
        ("status", "cls"),
        [
            (401, AuthenticationError),
            (408, TimeoutError),
            (429, RateLimitError),
            (502, ServerError),
            (400, FatalRequestError),
        ],
    )
    def test_type(self, status, cls):
        error = error_for_status(status, "msg", model="m", url="http://x")
        assert type(error) is cls
        assert error.context.http_status == status
        assert error.context.model == "m"

    def test_retry_after_kept(self):
        error = error_for_status(429, "slow down", retry_after=7)
        assert error.retry_after == 7


class TestUtilities:
    def test_unknown_exception_is_fatal(self):
        assert failure_kind(KeyError("x")) is FailureKind.FATAL

    def test_radar_error_kind(self):
        assert failure_kind(RateLimitError("x")) is FailureKind.TRANSIENT
