"""Resilient Model Caller — one logical request over a fallback chain.

The chain is an ordered list of models (primary first). Each failed attempt
is classified by its error's failure kind:

* **TRANSIENT** (401/408/429, transport timeouts): retry the *same* model
  after a linear backoff, up to ``max_retries`` additional attempts.
* **SERVER** (5xx): no retry; advance to the next model.
* **FATAL** (other 4xx, unknown exceptions): abandon the chain and re-raise.

A success anywhere short-circuits the chain and is tagged with the model
that served it. When the chain runs out, the last observed error is raised.

ARCHITECTURE
────────────
::

    for model in chain:
        retries = 0
        loop:
            attempt ──ok──────────────────────────────▶ ModelCallResult(model_used=model)
               │
               ├─ TRANSIENT and retries < cap ──sleep(base * attempt)──▶ attempt again
               ├─ TRANSIENT and cap reached ─────────▶ next model
               ├─ SERVER ────────────────────────────▶ next model
               └─ FATAL ─────────────────────────────▶ raise
    raise last error

Attempts are strictly sequential; the backoff sleep blocks this call only.

Example::

    caller = ResilientModelCaller(
        provider,
        models=["z-ai/glm-4.7", "deepseek/deepseek-chat-v3.1"],
        max_retries=2,
    )
    result = caller.call(SYSTEM_PROMPT, user_prompt, json_mode=True)
    result.model_used   # "deepseek/deepseek-chat-v3.1" if the primary 5xx'd
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import Any

from narrative_radar.core.errors import ConfigError, FailureKind, failure_kind
from narrative_radar.core.logging import get_logger
from narrative_radar.core.retry import LinearBackoff, RetryStrategy
from narrative_radar.llm.pricing import estimate_cost
from narrative_radar.llm.protocol import LLMProvider, Message, ModelCallResult

logger = get_logger(__name__)


class ResilientModelCaller:
    """Tiered retry/fallback wrapper around an ``LLMProvider``.

    Args:
        provider: Transport performing single round trips.
        models: Ordered chain, primary first.
        max_retries: Additional attempts per model after the first on
            transient errors. Ignored when ``strategy`` is given.
        base_delay: Backoff after the first failed attempt; grows linearly.
        strategy: Explicit retry strategy.
        temperature: Sampling temperature sent with every attempt.
        max_tokens: Completion token cap sent with every attempt.
        sleep: Sleep function (tests pass a recorder).
    """

    def __init__(
        self,
        provider: LLMProvider,
        models: Sequence[str],
        *,
        max_retries: int = 2,
        base_delay: float = 1.0,
        strategy: RetryStrategy | None = None,
        temperature: float = 0.3,
        max_tokens: int = 16_384,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        chain = [m for m in models if m]
        if not chain:
            raise ConfigError("Model chain is empty")
        self.provider = provider
        self.models = chain
        self.strategy = strategy or LinearBackoff(max_retries=max_retries, base_delay=base_delay)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        provider: LLMProvider | None = None,
        **kwargs: Any,
    ) -> ResilientModelCaller:
        """Build a caller from ``RadarSettings``; defaults to the OpenRouter provider."""
        if provider is None:
            from narrative_radar.llm.openrouter import OpenRouterProvider

            provider = OpenRouterProvider.from_settings(settings)
        return cls(
            provider,
            settings.model_chain,
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            **kwargs,
        )

    @property
    def primary_model(self) -> str:
        return self.models[0]

    def call(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        json_mode: bool = False,
    ) -> ModelCallResult:
        """Run one logical request through the chain.

        Args:
            system_prompt: System message content.
            user_prompt: User message content.
            model: Explicit override. The chain becomes this single model;
                transient retries still apply, fallback does not.
            json_mode: Ask the provider for an object-shaped response.

        Raises:
            FatalRequestError: On the first fatal failure.
            RadarError: The last observed error once every model is exhausted.
        """
        chain = [model] if model else list(self.models)
        messages = [Message.system(system_prompt), Message.user(user_prompt)]
        log = logger.bind(chain=chain, json_mode=json_mode)

        start = time.monotonic()
        total_attempts = 0
        last_error: Exception | None = None

        for index, current in enumerate(chain):
            retries = 0
            while True:
                total_attempts += 1
                try:
                    response = self.provider.complete(
                        messages,
                        current,
                        temperature=self.temperature,
                        max_tokens=self.max_tokens,
                        json_mode=json_mode,
                    )
                except Exception as e:
                    last_error = e
                    kind = failure_kind(e)

                    if kind is FailureKind.FATAL:
                        log.error(
                            "model_call.fatal",
                            model=current,
                            attempt=retries + 1,
                            error=str(e),
                            error_type=type(e).__name__,
                        )
                        raise

                    if kind is FailureKind.TRANSIENT and self.strategy.should_retry(retries):
                        retries += 1
                        delay = self.strategy.next_delay(retries)
                        log.warning(
                            "model_call.retry",
                            model=current,
                            attempt=retries,
                            next_in_s=delay,
                            error=str(e),
                        )
                        self._sleep(delay)
                        continue

                    log.warning(
                        "model_call.fallback",
                        model=current,
                        reason=kind.value,
                        attempts_on_model=retries + 1,
                        next_model=chain[index + 1] if index + 1 < len(chain) else None,
                        error=str(e),
                    )
                    break

                latency_ms = (time.monotonic() - start) * 1000
                cost = estimate_cost(
                    current, response.usage.prompt_tokens, response.usage.completion_tokens
                )
                result = ModelCallResult(
                    content=response.content,
                    model_used=current,
                    usage=response.usage,
                    cost_usd=cost,
                    attempts=total_attempts,
                    latency_ms=latency_ms,
                )
                log.info(
                    "model_call.succeeded",
                    model_used=current,
                    fell_back=current != chain[0],
                    attempts=total_attempts,
                    latency_ms=round(latency_ms, 1),
                    prompt_tokens=response.usage.prompt_tokens,
                    completion_tokens=response.usage.completion_tokens,
                    cost_usd=round(cost, 6),
                )
                return result

        if last_error is None:
            raise ConfigError("Model chain is empty")
        log.error("model_call.exhausted", attempts=total_attempts, error=str(last_error))
        raise last_error
