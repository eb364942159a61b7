"""LLM Provider Protocol — the transport seam of the model caller.

A provider performs exactly one network round trip per ``complete()`` call
and either returns an ``LLMResponse`` or raises a ``RadarError`` subclass
whose failure kind tells the caller whether to retry, fall back or abort.
Retry and fallback live above this seam, in ``caller.py``.

ARCHITECTURE
────────────
::

    LLMProvider (Protocol)
      └── .complete(messages, model, *, temperature, max_tokens, json_mode)
              → LLMResponse  |  raises TransientError / ServerError / FatalRequestError

    Message(role, content)        — chat message
    Role                          — system | user | assistant
    TokenUsage(prompt, completion, total)
    LLMResponse(content, model, usage, metadata)
    ModelCallResult               — what the caller hands back (model_used, cost)

Related modules:
    openrouter.py — HTTP provider (chat-completions schema)
    mock.py       — scripted provider for tests
    caller.py     — retry/fallback chain

Tags:
    narrative-radar, llm, protocol, provider-interface, messages
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class Role(str, Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single message in a conversation."""

    role: Role
    content: str

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(role=Role.ASSISTANT, content=content)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class TokenUsage:
    """Token usage statistics for an LLM call.

    Attributes:
        prompt_tokens: Tokens in the input.
        completion_tokens: Tokens in the output.
        total_tokens: Total tokens consumed.
    """

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TokenUsage:
        """Read a provider ``usage`` block; missing fields count as 0."""
        data = data or {}
        prompt = int(data.get("prompt_tokens") or 0)
        completion = int(data.get("completion_tokens") or 0)
        total = int(data.get("total_tokens") or (prompt + completion))
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class LLMResponse:
    """Response from one provider round trip.

    Attributes:
        content: Generated text.
        model: Model identifier that served the request.
        usage: Token usage statistics.
        metadata: Provider-specific metadata.
        finish_reason: Why generation stopped.
    """

    content: str
    model: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    metadata: dict[str, Any] = field(default_factory=dict)
    finish_reason: str = "stop"


@dataclass(frozen=True)
class ModelCallResult:
    """Normalized result of one logical model call.

    ``model_used`` names the model that actually served the response, which
    differs from the primary when the chain fell back.
    """

    content: str
    model_used: str
    usage: TokenUsage
    cost_usd: float
    attempts: int = 1
    latency_ms: float = 0.0

    @property
    def tokens_prompt(self) -> int:
        return self.usage.prompt_tokens

    @property
    def tokens_completion(self) -> int:
        return self.usage.completion_tokens

    @property
    def tokens_total(self) -> int:
        return self.usage.total_tokens

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "model_used": self.model_used,
            "usage": self.usage.to_dict(),
            "cost_usd": self.cost_usd,
            "attempts": self.attempts,
            "latency_ms": self.latency_ms,
        }


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol for chat-completion transports.

    Implementors
    ------------
    * ``OpenRouterProvider`` — HTTP(S) chat-completions endpoint
    * ``MockLLMProvider``    — scripted, for tests
    """

    def complete(
        self,
        messages: list[Message],
        model: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 16_384,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Perform one round trip.

        Raises
        ------
        TransientError
            401/408/429 or transport timeouts/connection failures.
        ServerError
            5xx.
        FatalRequestError
            Any other 4xx.
        """
        ...
