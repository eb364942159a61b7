"""
Narrative clustering: anomalies in, named narratives out.

Sends a condensed, JSON-serialised view of the scored signal layers to the
model chain and turns the returned object into ``Narrative`` records. The
model output is normalised rather than trusted:

- unknown ``stage`` falls back to EMERGING, unknown ``momentum`` to stable
- ``confidence`` is clamped to [0, 100]; a missing one defaults to 50
- ids are run-local (``n-1``, ``n-2``, ...), slugs derive from the name
- missing evidence/related lists become empty lists

A response with no recoverable JSON object raises ``ParseError``; the
orchestrating pass decides whether to degrade to an empty narrative set.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from narrative_radar.core.logging import get_logger
from narrative_radar.llm.caller import ResilientModelCaller
from narrative_radar.llm.parsing import parse_llm_json
from narrative_radar.llm.protocol import ModelCallResult
from narrative_radar.narratives.models import Momentum, Narrative, SignalRefs, Stage

logger = get_logger(__name__)

DEFAULT_ECOSYSTEM = "Solana"

SYSTEM_PROMPT = """You are an {ecosystem} ecosystem intelligence analyst. Your job is to identify emerging narratives by clustering signals across up to four layers:

0. SOCIAL: Social sentiment and community engagement
1. LEADING (developer activity): Commits, stars and new repos that precede market movement by 2-4 weeks
2. COINCIDENT (capital and onchain activity): TVL, DEX volume, program transactions
3. CONFIRMING (market data): Price and volume validation

Signal Stage Classification:
- EARLY: Only Layer 0-1 signals fire (devs building, market hasn't noticed)
- EMERGING: Layer 1 + 2 align (builders + capital moving together)
- GROWING: All layers align with increasing momentum
- MAINSTREAM: All layers, high confidence (likely already priced in)

Momentum:
- accelerating: Signal strength increasing over the period
- stable: Signal strength consistent
- decelerating: Signal strength decreasing

Rules:
- Identify 3-10 distinct narratives from the data
- Each narrative must be backed by at least 2 concrete signals
- Confidence (0-100) reflects how strongly the data supports the narrative
- Be specific to {ecosystem}, not generic crypto narratives
- Output valid JSON only"""

USER_PROMPT = """Analyze these {ecosystem} ecosystem signals and identify emerging narratives.

DATA:
{data}

Respond with a JSON object containing a "narratives" array where each narrative has:
- name: string (concise, specific name like "{ecosystem} DePIN Expansion" not "DePIN")
- description: string (2-3 sentences explaining the narrative)
- stage: "EARLY" | "EMERGING" | "GROWING" | "MAINSTREAM"
- momentum: "accelerating" | "stable" | "decelerating"
- confidence: number (0-100)
- leading_signals: string[]
- coincident_signals: string[]
- confirming_signals: string[]
- social_signals: string[]
- related_repos: string[] (owner/name format)
- related_tokens: string[] (symbols)
- related_protocols: string[] (protocol names)"""


@dataclass
class ClusteringResult:
    narratives: list[Narrative] = field(default_factory=list)
    model_used: str | None = None
    tokens_used: int = 0
    cost_usd: float = 0.0
    call: ModelCallResult | None = None


def build_prompts(condensed: Mapping[str, Any], ecosystem: str = DEFAULT_ECOSYSTEM) -> tuple[str, str]:
    """System and user prompt for one clustering call."""
    data = json.dumps(condensed, indent=2, default=str)
    return (
        SYSTEM_PROMPT.format(ecosystem=ecosystem),
        USER_PROMPT.format(ecosystem=ecosystem, data=data),
    )


def str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            return 50.0
    return max(0.0, min(100.0, float(value)))


def narratives_from_payload(payload: Mapping[str, Any]) -> list[Narrative]:
    """Normalise a parsed ``{"narratives": [...]}`` object.

    Entries that are not objects, or have no name, are dropped.
    """
    raw_items = payload.get("narratives")
    if not isinstance(raw_items, list):
        return []

    narratives: list[Narrative] = []
    for raw in raw_items:
        if not isinstance(raw, Mapping):
            continue
        name = str(raw.get("name") or "").strip()
        if not name:
            continue
        narratives.append(
            Narrative(
                id=f"n-{len(narratives) + 1}",
                name=name,
                description=str(raw.get("description") or ""),
                stage=Stage.parse(raw.get("stage")),
                momentum=Momentum.parse(raw.get("momentum")),
                confidence=_confidence(raw.get("confidence")),
                signals=SignalRefs(
                    leading=str_list(raw.get("leading_signals")),
                    coincident=str_list(raw.get("coincident_signals")),
                    confirming=str_list(raw.get("confirming_signals")),
                    social=str_list(raw.get("social_signals")),
                ),
                related_repos=str_list(raw.get("related_repos")),
                related_tokens=str_list(raw.get("related_tokens")),
                related_protocols=str_list(raw.get("related_protocols")),
            )
        )
    return narratives


def cluster_narratives(
    condensed: Mapping[str, Any],
    caller: ResilientModelCaller,
    *,
    model: str | None = None,
    ecosystem: str = DEFAULT_ECOSYSTEM,
) -> ClusteringResult:
    """Ask the model chain to cluster ``condensed`` into narratives.

    Args:
        condensed: JSON-serialisable view of the scored signal layers.
        caller: Model chain to call.
        model: Explicit model; disables fallback.
        ecosystem: Name used in the prompts.

    Raises:
        ParseError: The response holds no JSON object.
        RadarError: The chain failed.
    """
    system_prompt, user_prompt = build_prompts(condensed, ecosystem)
    logger.info("clustering.request", data_chars=len(user_prompt), model=model)

    call = caller.call(system_prompt, user_prompt, model=model, json_mode=True)
    narratives = narratives_from_payload(parse_llm_json(call.content))

    logger.info(
        "clustering.complete",
        narratives=len(narratives),
        model_used=call.model_used,
        tokens=call.tokens_total,
        cost_usd=round(call.cost_usd, 4),
    )
    return ClusteringResult(
        narratives=narratives,
        model_used=call.model_used,
        tokens_used=call.tokens_total,
        cost_usd=call.cost_usd,
        call=call,
    )
