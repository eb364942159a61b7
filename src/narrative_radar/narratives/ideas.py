"""
Build-idea generation: narratives in, concrete project suggestions out.

Runs after clustering through the same caller and tolerant parser. Each
narrative is condensed to its name, stage, momentum, confidence and the
first few related repos/tokens/protocols before it is sent.

Normalisation:

- unknown ``difficulty`` falls back to intermediate
- ``narrative`` is mapped from the name the model used to the narrative id
- ids are run-local (``idea-1``, ``idea-2``, ...); at most ``MAX_IDEAS`` are kept
- entries without a title are dropped

No narratives means no model call.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from narrative_radar.core.logging import get_logger
from narrative_radar.llm.caller import ResilientModelCaller
from narrative_radar.llm.parsing import parse_llm_json
from narrative_radar.llm.protocol import ModelCallResult
from narrative_radar.narratives.clustering import DEFAULT_ECOSYSTEM, str_list
from narrative_radar.narratives.models import BuildIdea, Difficulty, Narrative

logger = get_logger(__name__)

MAX_IDEAS = 15
RELATED_LIMIT = 5

SYSTEM_PROMPT = """You are an {ecosystem} ecosystem intelligence analyst. Your job is to generate actionable build ideas based on detected narratives.

Rules:
- Generate 1-3 build ideas per narrative (max {max_ideas} total)
- Each idea must be specific and actionable (not "build a DeFi app")
- Include a concrete tech stack suggestion
- "why_now" must explain timing: why this opportunity exists NOW
- Reference existing projects that are adjacent but don't solve this exact problem
- Difficulty levels:
  - beginner: Can be built in a hackathon (2-3 days), uses standard SDKs
  - intermediate: 2-4 weeks, requires domain knowledge
  - advanced: 1-3 months, deep protocol integration or novel architecture
- Output valid JSON only"""

USER_PROMPT = """Based on these detected {ecosystem} narratives, generate build ideas.

NARRATIVES:
{data}

Respond with a JSON object containing an "ideas" array where each idea has:
- title: string (specific, actionable project name)
- narrative: string (the name of the narrative this relates to)
- description: string (2-3 sentences, what it does and why it matters)
- difficulty: "beginner" | "intermediate" | "advanced"
- timeframe: string (e.g., "2-3 days", "2-4 weeks", "1-3 months")
- tech_stack: string[] (specific technologies)
- existing_projects: string[] (adjacent projects to reference)
- why_now: string (timing rationale)"""


@dataclass
class IdeasResult:
    ideas: list[BuildIdea] = field(default_factory=list)
    model_used: str | None = None
    tokens_used: int = 0
    cost_usd: float = 0.0
    call: ModelCallResult | None = None


def condense_narratives(narratives: Sequence[Narrative]) -> list[dict[str, Any]]:
    return [
        {
            "name": n.name,
            "description": n.description,
            "stage": n.stage.value,
            "momentum": n.momentum.value,
            "confidence": n.confidence,
            "relatedRepos": n.related_repos[:RELATED_LIMIT],
            "relatedTokens": n.related_tokens[:RELATED_LIMIT],
            "relatedProtocols": n.related_protocols[:RELATED_LIMIT],
        }
        for n in narratives
    ]


def build_prompts(narratives: Sequence[Narrative], ecosystem: str = DEFAULT_ECOSYSTEM) -> tuple[str, str]:
    data = json.dumps(condense_narratives(narratives), indent=2)
    return (
        SYSTEM_PROMPT.format(ecosystem=ecosystem, max_ideas=MAX_IDEAS),
        USER_PROMPT.format(ecosystem=ecosystem, data=data),
    )


def ideas_from_payload(payload: Mapping[str, Any], narratives: Sequence[Narrative]) -> list[BuildIdea]:
    """Normalise a parsed ``{"ideas": [...]}`` object against this run's narratives."""
    raw_items = payload.get("ideas")
    if not isinstance(raw_items, list):
        return []

    ids_by_name = {n.name: n.id for n in narratives}
    ideas: list[BuildIdea] = []
    for raw in raw_items:
        if len(ideas) >= MAX_IDEAS:
            break
        if not isinstance(raw, Mapping):
            continue
        title = str(raw.get("title") or "").strip()
        if not title:
            continue
        narrative = str(raw.get("narrative") or "")
        ideas.append(
            BuildIdea(
                id=f"idea-{len(ideas) + 1}",
                title=title,
                narrative=ids_by_name.get(narrative, narrative),
                description=str(raw.get("description") or ""),
                difficulty=Difficulty.parse(raw.get("difficulty")),
                timeframe=str(raw.get("timeframe") or ""),
                tech_stack=str_list(raw.get("tech_stack")),
                existing_projects=str_list(raw.get("existing_projects")),
                why_now=str(raw.get("why_now") or ""),
            )
        )
    return ideas


def generate_build_ideas(
    narratives: Sequence[Narrative],
    caller: ResilientModelCaller,
    *,
    model: str | None = None,
    ecosystem: str = DEFAULT_ECOSYSTEM,
) -> IdeasResult:
    """Ask the model chain for build ideas grounded in ``narratives``.

    Raises:
        ParseError: The response holds no JSON object.
        RadarError: The chain failed.
    """
    if not narratives:
        logger.warning("ideas.skipped", reason="no_narratives")
        return IdeasResult()

    system_prompt, user_prompt = build_prompts(narratives, ecosystem)
    logger.info("ideas.request", narratives=len(narratives), data_chars=len(user_prompt))

    call = caller.call(system_prompt, user_prompt, model=model, json_mode=True)
    ideas = ideas_from_payload(parse_llm_json(call.content), narratives)

    logger.info(
        "ideas.complete",
        ideas=len(ideas),
        model_used=call.model_used,
        tokens=call.tokens_total,
        cost_usd=round(call.cost_usd, 4),
    )
    return IdeasResult(
        ideas=ideas,
        model_used=call.model_used,
        tokens_used=call.tokens_total,
        cost_usd=call.cost_usd,
        call=call,
    )
