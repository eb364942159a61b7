"""Static per-model price table.

Prices are USD per token. The table is read-only. An unknown model is
priced at ``DEFAULT_PRICE``, a conservative rate above every listed model.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ModelPrice:
    input_per_token: float
    output_per_token: float


def _per_million(input_usd: float, output_usd: float) -> ModelPrice:
    return ModelPrice(input_usd / 1_000_000, output_usd / 1_000_000)


MODEL_PRICING: Mapping[str, ModelPrice] = MappingProxyType({
    "z-ai/glm-4.7": _per_million(0.40, 1.50),
    "deepseek/deepseek-chat-v3.1": _per_million(0.27, 1.10),
    "openai/gpt-4o-mini": _per_million(0.15, 0.60),
    "openai/gpt-4o": _per_million(2.50, 10.00),
    "anthropic/claude-3.5-haiku": _per_million(0.80, 4.00),
})

DEFAULT_PRICE = ModelPrice(input_per_token=0.001, output_per_token=0.003)


def price_for(model: str) -> ModelPrice:
    return MODEL_PRICING.get(model, DEFAULT_PRICE)


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Estimated USD cost of one call from its reported token usage."""
    price = price_for(model)
    return prompt_tokens * price.input_per_token + completion_tokens * price.output_per_token
