"""
One narrative pass: score → cluster → build ideas → resolve history → diff.

This is the composition root for the three core pieces. Collection of the
layers happens before this is called; the pass works on in-memory
populations only and touches no files.

Failure policy
──────────────
A terminal model failure (chain exhausted, fatal request) or unparseable
output propagates by default. With ``degrade_on_failure=True`` it is logged,
recorded on the result, and the pass continues with an empty narrative set,
so every previous narrative shows up as removed in the diff. A failure in
idea generation keeps the narratives and leaves the idea list empty.

With a cost ledger, its ceiling is checked before each model call and a
reached ceiling always raises.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from narrative_radar.core.anomaly import DEFAULT_THRESHOLD
from narrative_radar.core.errors import RadarError
from narrative_radar.core.logging import LogContext, get_logger
from narrative_radar.core.settings import get_settings
from narrative_radar.core.timestamps import generate_ulid, to_iso8601, utc_now
from narrative_radar.llm.caller import ResilientModelCaller
from narrative_radar.llm.ledger import CostLedger
from narrative_radar.narratives.clustering import DEFAULT_ECOSYSTEM, ClusteringResult, cluster_narratives
from narrative_radar.narratives.history import compute_report_diff, populate_history
from narrative_radar.narratives.ideas import IdeasResult, generate_build_ideas
from narrative_radar.narratives.identity import MATCH_THRESHOLD, NameNormalizer
from narrative_radar.narratives.models import BuildIdea, Narrative, ReportDiff
from narrative_radar.pipeline.scoring import ScoredSignals, SignalLayer, score_layers

logger = get_logger(__name__)


@dataclass
class RunResult:
    run_id: str
    generated_at: str
    scored: ScoredSignals
    narratives: list[Narrative] = field(default_factory=list)
    diff: ReportDiff = field(default_factory=ReportDiff)
    ideas: list[BuildIdea] = field(default_factory=list)
    clustering: ClusteringResult | None = None
    idea_generation: IdeasResult | None = None
    error: RadarError | None = None

    @property
    def degraded(self) -> bool:
        return self.error is not None

    @property
    def tokens_used(self) -> int:
        return sum(step.tokens_used for step in (self.clustering, self.idea_generation) if step)

    @property
    def cost_usd(self) -> float:
        return sum(step.cost_usd for step in (self.clustering, self.idea_generation) if step)

    def snapshot_dict(self, date: str | None = None) -> dict[str, Any]:
        """camelCase document for the dated snapshot file."""
        return {
            "date": date or self.generated_at[:10],
            "generatedAt": self.generated_at,
            "narratives": [n.to_json_dict() for n in self.narratives],
            "buildIdeas": [idea.to_json_dict() for idea in self.ideas],
            "signals": self.scored.condensed(),
            "meta": {
                "runId": self.run_id,
                "modelUsed": self.clustering.model_used if self.clustering else None,
                "tokensUsed": self.tokens_used,
                "costUsd": self.cost_usd,
                "anomalies": self.scored.summary,
                "degraded": self.degraded,
            },
        }


def run_narrative_pass(
    layers: Sequence[SignalLayer[Any]],
    caller: ResilientModelCaller,
    previous: Sequence[Narrative] = (),
    *,
    threshold: float = DEFAULT_THRESHOLD,
    match_threshold: float = MATCH_THRESHOLD,
    normalizer: NameNormalizer | None = None,
    now: datetime | None = None,
    degrade_on_failure: bool = False,
    ledger: CostLedger | None = None,
    generate_ideas: bool = True,
    ecosystem: str = DEFAULT_ECOSYSTEM,
) -> RunResult:
    """Run one pass over fully collected signal layers.

    Args:
        layers: Complete populations for this run.
        caller: Model chain for clustering and idea generation.
        previous: Narratives of the prior snapshot.
        threshold: Anomaly z-score threshold.
        match_threshold: Fuzzy identity threshold.
        normalizer: Name normalizer (stop words) for identity resolution.
        now: Run timestamp; stamps ``stage_changed_at``.
        degrade_on_failure: Continue with no narratives on model/parse failure.
        ledger: Records each model call's cost; checked before every call.
        ecosystem: Name used in the model prompts.
        generate_ideas: Ask for build ideas once narratives exist.

    Raises:
        RadarError: Model or parse failure, unless ``degrade_on_failure``.
        BudgetExhaustedError: The ledger's ceiling is already reached.
    """
    now = now or utc_now()
    run_id = generate_ulid(now)
    generated_at = to_iso8601(now)

    with LogContext(run_id=run_id):
        scored = score_layers(layers, threshold)
        result = RunResult(run_id=run_id, generated_at=generated_at, scored=scored)

        if ledger is not None:
            ledger.check()

        try:
            clustering = cluster_narratives(scored.condensed(), caller, ecosystem=ecosystem)
        except RadarError as e:
            if not degrade_on_failure:
                raise
            logger.error("narrative_pass.degraded", step="clustering", **e.to_dict())
            result.error = e
        else:
            result.clustering = clustering
            result.narratives = clustering.narratives
            if ledger is not None and clustering.call is not None:
                ledger.record(clustering.call, label="clustering")

        if generate_ideas and result.narratives:
            if ledger is not None:
                ledger.check()
            try:
                idea_run = generate_build_ideas(result.narratives, caller, ecosystem=ecosystem)
            except RadarError as e:
                if not degrade_on_failure:
                    raise
                logger.error("narrative_pass.degraded", step="ideas", **e.to_dict())
                result.error = e
            else:
                result.idea_generation = idea_run
                result.ideas = idea_run.ideas
                if ledger is not None and idea_run.call is not None:
                    ledger.record(idea_run.call, label="ideas")

        populate_history(
            result.narratives, previous, generated_at, threshold=match_threshold, normalizer=normalizer
        )
        result.diff = compute_report_diff(
            result.narratives, previous, threshold=match_threshold, normalizer=normalizer
        )

        logger.info(
            "narrative_pass.complete",
            narratives=len(result.narratives),
            new=len(result.diff.new_narratives),
            removed=len(result.diff.removed_narratives),
            transitions=len(result.diff.stage_transitions),
            ideas=len(result.ideas),
            degraded=result.degraded,
        )
        return result


def run_from_settings(
    layers: Sequence[SignalLayer[Any]],
    previous: Sequence[Narrative] = (),
    *,
    settings: Any = None,
    caller: ResilientModelCaller | None = None,
    **kwargs: Any,
) -> RunResult:
    """``run_narrative_pass`` with thresholds, stop words and cost ceiling from settings.

    The caller defaults to the OpenRouter chain built from the same settings.
    Remaining keyword arguments (``now``, ``degrade_on_failure``, ...) pass
    through unchanged.
    """
    settings = settings or get_settings()
    kwargs.setdefault("generate_ideas", settings.generate_ideas)
    return run_narrative_pass(
        layers,
        caller or ResilientModelCaller.from_settings(settings),
        previous,
        threshold=settings.anomaly_threshold,
        match_threshold=settings.match_threshold,
        normalizer=NameNormalizer(settings.stop_words),
        ledger=CostLedger.from_settings(settings),
        **kwargs,
    )
