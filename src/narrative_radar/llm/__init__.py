"""Radar LLM — provider protocol, transport and resilient caller.

Manifesto:
    Every narrative pass asks a model for one JSON object. Providers flap,
    rate-limit and return commentary around the JSON. This subpackage keeps
    the transport (``OpenRouterProvider``) dumb and puts retry, fallback,
    cost accounting and tolerant parsing in one place.

Tags:
    narrative-radar, llm, provider-protocol, fallback, retry, parsing
"""

from narrative_radar.llm.caller import ResilientModelCaller
from narrative_radar.llm.ledger import CostLedger, LedgerEntry
from narrative_radar.llm.mock import MockLLMProvider
from narrative_radar.llm.openrouter import OpenRouterProvider
from narrative_radar.llm.parsing import parse_llm_json
from narrative_radar.llm.pricing import MODEL_PRICING, ModelPrice, estimate_cost
from narrative_radar.llm.protocol import (
    LLMProvider,
    LLMResponse,
    Message,
    ModelCallResult,
    Role,
    TokenUsage,
)

__all__ = [
    # Protocol
    "LLMProvider",
    "LLMResponse",
    "Message",
    "ModelCallResult",
    "Role",
    "TokenUsage",
    # Providers
    "OpenRouterProvider",
    "MockLLMProvider",
    # Caller
    "ResilientModelCaller",
    "parse_llm_json",
    # Cost
    "MODEL_PRICING",
    "ModelPrice",
    "estimate_cost",
    "CostLedger",
    "LedgerEntry",
]
