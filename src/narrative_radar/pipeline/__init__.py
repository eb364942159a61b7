"""Pipeline — signal-layer scoring and the narrative pass that composes the core."""

from narrative_radar.pipeline.run import RunResult, run_from_settings, run_narrative_pass
from narrative_radar.pipeline.scoring import (
    LayerScore,
    ScoredSignals,
    SignalLayer,
    new_repo_clusters,
    score_layer,
    score_layers,
)

__all__ = [
    "RunResult",
    "run_narrative_pass",
    "run_from_settings",
    "LayerScore",
    "ScoredSignals",
    "SignalLayer",
    "score_layer",
    "score_layers",
    "new_repo_clusters",
]
