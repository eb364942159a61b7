"""Narratives — data model, cross-run identity and history.

Tags:
    narrative-radar, narratives, identity-resolution, history, clustering, ideas
"""

from narrative_radar.narratives.clustering import (
    ClusteringResult,
    cluster_narratives,
    narratives_from_payload,
)
from narrative_radar.narratives.history import compute_report_diff, populate_history
from narrative_radar.narratives.ideas import IdeasResult, generate_build_ideas, ideas_from_payload
from narrative_radar.narratives.identity import (
    MATCH_THRESHOLD,
    NameNormalizer,
    jaccard_similarity,
    match_narratives,
)
from narrative_radar.narratives.models import (
    BuildIdea,
    ConfidenceChange,
    Difficulty,
    Momentum,
    Narrative,
    NarrativeMatch,
    ReportDiff,
    SignalRefs,
    Stage,
    StageTransition,
    slugify,
)

__all__ = [
    "ClusteringResult",
    "cluster_narratives",
    "narratives_from_payload",
    "IdeasResult",
    "generate_build_ideas",
    "ideas_from_payload",
    "compute_report_diff",
    "populate_history",
    "MATCH_THRESHOLD",
    "NameNormalizer",
    "jaccard_similarity",
    "match_narratives",
    "BuildIdea",
    "ConfidenceChange",
    "Difficulty",
    "Momentum",
    "Narrative",
    "NarrativeMatch",
    "ReportDiff",
    "SignalRefs",
    "Stage",
    "StageTransition",
    "slugify",
]
