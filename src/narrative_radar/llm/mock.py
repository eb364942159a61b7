"""Mock LLM Provider — scripted provider for testing the caller chain.

``MockLLMProvider`` returns predictable results without network calls. Each
model can be given its own script: an ordered list of outcomes, where an
outcome is either response text or an exception instance to raise. This is
enough to drive every path of the retry/fallback state machine.

ARCHITECTURE
────────────
::

    MockLLMProvider
      ├── .complete(messages, model) → LLMResponse or raises scripted error
      ├── .calls                     → list of all calls made
      ├── .call_count                → total calls
      └── .calls_for(model)          → calls made against one model

    Resolution order per call:
      1. next unconsumed entry in ``script[model]``
      2. next unconsumed entry in ``sequence`` (shared by all models)
      3. ``default_response``

Example::

    provider = MockLLMProvider(script={
        "A": [ServerError("502")],
        "B": [ServerError("503")],
        "C": ['{"narratives": []}'],
    })
    caller = ResilientModelCaller(provider, ["A", "B", "C"])
    assert caller.call("sys", "user").model_used == "C"
    assert provider.call_count == 3

Tags:
    narrative-radar, llm, mock, testing, deterministic
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from narrative_radar.llm.protocol import LLMResponse, Message, TokenUsage

Outcome = Union[str, BaseException]


@dataclass
class MockLLMProvider:
    """Deterministic LLM provider for testing.

    Attributes:
        default_response: Text returned when no script entry applies.
        script: Per-model outcomes, consumed in order.
        sequence: Outcomes shared by all models, consumed in order.
        tokens_per_char: Approximate tokens per character (for usage).
    """

    default_response: str = "{}"
    script: dict[str, list[Outcome]] = field(default_factory=dict)
    sequence: list[Outcome] = field(default_factory=list)
    tokens_per_char: float = 0.25

    calls: list[dict[str, Any]] = field(default_factory=list, repr=False)
    _positions: dict[str, int] = field(default_factory=dict, repr=False)
    _sequence_index: int = field(default=0, repr=False)

    def complete(
        self,
        messages: list[Message],
        model: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 16_384,
        json_mode: bool = False,
    ) -> LLMResponse:
        self.calls.append({
            "messages": [m.to_dict() for m in messages],
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "json_mode": json_mode,
        })

        outcome = self._next_outcome(model)
        if isinstance(outcome, BaseException):
            raise outcome

        prompt_text = " ".join(m.content for m in messages)
        prompt_tokens = max(1, int(len(prompt_text) * self.tokens_per_char))
        completion_tokens = max(1, int(len(outcome) * self.tokens_per_char))
        return LLMResponse(
            content=outcome,
            model=model,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            metadata={"provider": "mock"},
        )

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def calls_for(self, model: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["model"] == model]

    @property
    def models_called(self) -> list[str]:
        """Model of every call, in call order."""
        return [c["model"] for c in self.calls]

    def reset(self) -> None:
        """Reset call tracking and script positions."""
        self.calls.clear()
        self._positions.clear()
        self._sequence_index = 0

    def _next_outcome(self, model: str) -> Outcome:
        scripted = self.script.get(model)
        if scripted:
            pos = self._positions.get(model, 0)
            if pos < len(scripted):
                self._positions[model] = pos + 1
                return scripted[pos]

        if self._sequence_index < len(self.sequence):
            outcome = self.sequence[self._sequence_index]
            self._sequence_index += 1
            return outcome

        return self.default_response
