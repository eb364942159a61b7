"""
Side-by-side model comparison on one stored snapshot.

Re-runs clustering over the signals of a past snapshot once per model, each
call pinned to its model (no fallback), then resolves model B's narratives
against model A's with the same identity rules used across runs.

Metrics (over matched pairs unless noted):

- ``narrative_overlap``: matched pairs / distinct slugs across both sides
- ``stage_agreement``: share of pairs with the same stage
- ``avg_confidence_delta``: mean absolute confidence difference
- ``unique_to_a`` / ``unique_to_b``: names with no counterpart
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from pathlib import Path

from pydantic import Field

from narrative_radar.core.logging import get_logger
from narrative_radar.eval.snapshots import Snapshot, write_json
from narrative_radar.llm.caller import ResilientModelCaller
from narrative_radar.llm.ledger import CostLedger
from narrative_radar.narratives.clustering import DEFAULT_ECOSYSTEM, cluster_narratives
from narrative_radar.narratives.identity import (
    MATCH_THRESHOLD,
    NameNormalizer,
    match_narratives,
    unclaimed_previous,
)
from narrative_radar.narratives.models import CamelModel, Narrative

logger = get_logger(__name__)


class ComparisonAnalysis(CamelModel):
    narrative_overlap: float = 0.0
    stage_agreement: float = 0.0
    avg_confidence_delta: float = 0.0
    unique_to_a: list[str] = Field(default_factory=list)
    unique_to_b: list[str] = Field(default_factory=list)


class ModelRun(CamelModel):
    model: str
    narratives: list[Narrative] = Field(default_factory=list)
    tokens_used: int = 0
    cost_usd: float = 0.0
    latency_ms: float = 0.0


class ModelComparison(CamelModel):
    date: str
    models: tuple[ModelRun, ModelRun]
    analysis: ComparisonAnalysis


def compute_comparison(
    a: Sequence[Narrative],
    b: Sequence[Narrative],
    *,
    threshold: float = MATCH_THRESHOLD,
    normalizer: NameNormalizer | None = None,
) -> ComparisonAnalysis:
    """Agreement metrics between two narrative sets for the same data."""
    matches = match_narratives(a, b, threshold=threshold, normalizer=normalizer)
    pairs = [m for m in matches if m.previous is not None]

    distinct_slugs = {n.slug for n in a} | {n.slug for n in b}
    stage_matches = sum(1 for m in pairs if m.current.stage == m.previous.stage)
    deltas = [abs(m.current.confidence - m.previous.confidence) for m in pairs]

    return ComparisonAnalysis(
        narrative_overlap=len(pairs) / len(distinct_slugs) if distinct_slugs else 0.0,
        stage_agreement=stage_matches / len(pairs) if pairs else 0.0,
        avg_confidence_delta=sum(deltas) / len(deltas) if deltas else 0.0,
        unique_to_a=[m.current.name for m in matches if m.previous is None],
        unique_to_b=[n.name for n in unclaimed_previous(matches, b)],
    )


def _run_model(
    condensed: dict,
    caller: ResilientModelCaller,
    model: str,
    ecosystem: str,
    ledger: CostLedger | None,
) -> ModelRun:
    logger.info("compare.model_start", model=model)
    if ledger is not None:
        ledger.check()
    start = time.monotonic()
    result = cluster_narratives(condensed, caller, model=model, ecosystem=ecosystem)
    if ledger is not None and result.call is not None:
        ledger.record(result.call, label=f"compare:{model}")
    return ModelRun(
        model=model,
        narratives=result.narratives,
        tokens_used=result.tokens_used,
        cost_usd=result.cost_usd,
        latency_ms=(time.monotonic() - start) * 1000,
    )


def run_comparison(
    snapshot: Snapshot,
    caller: ResilientModelCaller,
    model_a: str,
    model_b: str,
    *,
    ecosystem: str = DEFAULT_ECOSYSTEM,
    ledger: CostLedger | None = None,
) -> ModelComparison:
    """Cluster one snapshot's signals with two models and compare the results.

    Model errors and parse errors propagate. With a ``ledger``, each call is
    checked against its ceiling first and recorded as ``compare:<model>``.
    """
    condensed = snapshot.signals or {}
    run_a = _run_model(condensed, caller, model_a, ecosystem, ledger)
    run_b = _run_model(condensed, caller, model_b, ecosystem, ledger)
    analysis = compute_comparison(run_a.narratives, run_b.narratives)

    logger.info(
        "compare.complete",
        date=snapshot.date,
        model_a=model_a,
        model_b=model_b,
        overlap=round(analysis.narrative_overlap, 3),
        stage_agreement=round(analysis.stage_agreement, 3),
    )
    return ModelComparison(date=snapshot.date, models=(run_a, run_b), analysis=analysis)


def comparison_output_path(reports_dir: Path | str, date: str) -> Path:
    return Path(reports_dir) / "eval" / f"{date}-comparison.json"


def write_comparison(comparison: ModelComparison, path: Path | str) -> Path:
    return write_json(comparison.model_dump(mode="json", by_alias=True, exclude_none=True), path)
