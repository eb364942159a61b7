"""OpenRouter chat-completions provider.

One ``complete()`` call is one HTTP round trip. Status codes are turned into
typed errors (``error_for_status``) so the caller's chain can decide between
retry, fallback and abort; this module never retries on its own.

Wire format
───────────
Request::

    POST {base_url}/chat/completions
    {"model": "...", "messages": [{"role": "system", ...}, {"role": "user", ...}],
     "temperature": 0.3, "max_tokens": 16384,
     "response_format": {"type": "json_object"}}        # json_mode only

Response::

    {"model": "...", "choices": [{"message": {"content": "..."}, "finish_reason": "stop"}],
     "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}}

A 200 whose body carries ``{"error": {"code": 502, ...}}`` is mapped through
``error_for_status`` like a non-2xx status (502 when the code is missing).

Example::

    provider = OpenRouterProvider(api_key="sk-or-...")
    resp = provider.complete(
        [Message.system("You are terse."), Message.user("Say hi")],
        model="z-ai/glm-4.7",
    )
"""

from __future__ import annotations

import time
from typing import Any

import httpx

from narrative_radar.core.errors import (
    ConfigError,
    ErrorContext,
    NetworkError,
    ParseError,
    TimeoutError,
    error_for_status,
)
from narrative_radar.core.logging import get_logger
from narrative_radar.llm.protocol import LLMResponse, Message, TokenUsage

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


def _retry_after(response: httpx.Response) -> int | None:
    value = response.headers.get("retry-after")
    if value and value.isdigit():
        return int(value)
    return None


def _error_message(response: httpx.Response) -> str:
    """Best-effort message from an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.text[:500]


def _error_code(error: Any) -> int:
    """HTTP-like status from an error carried in a 200 body; 502 when absent."""
    code = error.get("code") if isinstance(error, dict) else None
    try:
        return int(code) if code else 502
    except (TypeError, ValueError):
        return 502


def _body_error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error)


class OpenRouterProvider:
    """HTTP provider for OpenAI-compatible chat-completion endpoints.

    Args:
        api_key: Bearer token.
        base_url: API root; ``/chat/completions`` is appended.
        timeout: Transport timeout in seconds; the only timeout applied.
        app_name: Sent as ``X-Title``.
        app_url: Sent as ``HTTP-Referer``.
        client: Pre-built ``httpx.Client`` (tests inject one with a
            ``MockTransport``).
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        app_name: str | None = None,
        app_url: str | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ConfigError("OpenRouter API key is not configured (set RADAR_OPENROUTER_API_KEY)")

        headers = {"Authorization": f"Bearer {api_key}"}
        if app_name:
            headers["X-Title"] = app_name
        if app_url:
            headers["HTTP-Referer"] = app_url

        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = headers

    @classmethod
    def from_settings(cls, settings: Any, client: httpx.Client | None = None) -> OpenRouterProvider:
        return cls(
            settings.openrouter_api_key.get_secret_value(),
            base_url=settings.openrouter_base_url,
            timeout=settings.request_timeout,
            app_name=settings.app_name,
            app_url=settings.app_url,
            client=client,
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> OpenRouterProvider:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def complete(
        self,
        messages: list[Message],
        model: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 16_384,
        json_mode: bool = False,
    ) -> LLMResponse:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        url = self.completions_url
        start = time.monotonic()
        try:
            response = self._client.post(url, json=payload, headers=self._headers)
        except httpx.TimeoutException as e:
            raise TimeoutError(
                f"Request to {model} timed out",
                context=ErrorContext(model=model, url=url),
                cause=e,
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"Transport failure calling {model}: {e}",
                context=ErrorContext(model=model, url=url),
                cause=e,
            ) from e

        latency_ms = (time.monotonic() - start) * 1000

        if response.is_error:
            raise error_for_status(
                response.status_code,
                f"{model} returned HTTP {response.status_code}: {_error_message(response)}",
                model=model,
                url=url,
                retry_after=_retry_after(response),
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ParseError(
                f"{model} returned a non-JSON response body",
                excerpt=response.text[:200],
                context=ErrorContext(model=model, url=url, http_status=response.status_code),
                cause=e,
            ) from e
        if not isinstance(body, dict):
            raise ParseError(
                f"{model} returned an unexpected response body",
                excerpt=response.text[:200],
                context=ErrorContext(model=model, url=url, http_status=response.status_code),
            )

        error = body.get("error")
        if error:
            raise error_for_status(
                _error_code(error),
                f"{model} returned an error body: {_body_error_message(error)}",
                model=model,
                url=url,
                retry_after=_retry_after(response),
            )

        choices = body.get("choices") or []
        if isinstance(choices, list):
            first = choices[0] if choices else {}
        else:
            first = None
        message = (first.get("message") or {}) if isinstance(first, dict) else None
        usage = body.get("usage") or {}
        if not isinstance(message, dict) or not isinstance(usage, dict):
            raise ParseError(
                f"{model} returned a malformed completion",
                excerpt=response.text[:200],
                context=ErrorContext(model=model, url=url, http_status=response.status_code),
            )
        content = message.get("content") or ""

        logger.debug(
            "openrouter.response",
            model=model,
            status=response.status_code,
            latency_ms=round(latency_ms, 1),
        )

        return LLMResponse(
            content=content,
            model=body.get("model") or model,
            usage=TokenUsage.from_dict(usage),
            metadata={"provider": "openrouter", "id": body.get("id"), "latency_ms": latency_ms},
            finish_reason=first.get("finish_reason") or "stop",
        )
