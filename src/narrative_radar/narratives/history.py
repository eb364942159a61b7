"""
History annotations and report diffs.

Both functions run the identity resolver over ``(current, previous)``:

* ``populate_history`` writes ``is_new`` / ``previous_stage`` /
  ``stage_changed_at`` onto the current narratives (the only mutation a
  narrative sees after clustering).
* ``compute_report_diff`` is pure and can be called repeatedly.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from narrative_radar.core.timestamps import to_iso8601, utc_now_iso
from narrative_radar.narratives.identity import (
    MATCH_THRESHOLD,
    NameNormalizer,
    match_narratives,
    unclaimed_previous,
)
from narrative_radar.narratives.models import (
    ConfidenceChange,
    Narrative,
    NarrativeMatch,
    ReportDiff,
    StageTransition,
)


def populate_history(
    current: Sequence[Narrative],
    previous: Sequence[Narrative],
    now: datetime | str | None = None,
    *,
    threshold: float = MATCH_THRESHOLD,
    normalizer: NameNormalizer | None = None,
) -> list[NarrativeMatch]:
    """Annotate ``current`` in place against the previous run.

    Unmatched narratives get ``is_new=True``. Matched ones get
    ``is_new=False`` and the previous stage; ``stage_changed_at`` is stamped
    with ``now`` only when the stage differs.

    Returns the matches so callers can reuse them.
    """
    if isinstance(now, datetime):
        stamp = to_iso8601(now)
    else:
        stamp = now or utc_now_iso()

    matches = match_narratives(current, previous, threshold=threshold, normalizer=normalizer)
    for match in matches:
        narrative = match.current
        if match.previous is None:
            narrative.is_new = True
            continue
        narrative.is_new = False
        narrative.previous_stage = match.previous.stage
        if narrative.stage != match.previous.stage:
            narrative.stage_changed_at = stamp
    return matches


def compute_report_diff(
    current: Sequence[Narrative],
    previous: Sequence[Narrative],
    *,
    threshold: float = MATCH_THRESHOLD,
    normalizer: NameNormalizer | None = None,
) -> ReportDiff:
    """New, removed, stage-shifted and confidence-shifted narratives.

    Names in the diff are the current run's names for matched pairs.
    """
    matches = match_narratives(current, previous, threshold=threshold, normalizer=normalizer)
    paired = [m for m in matches if m.previous is not None]

    return ReportDiff(
        new_narratives=[m.current.name for m in matches if m.previous is None],
        removed_narratives=[p.name for p in unclaimed_previous(matches, previous)],
        stage_transitions=[
            StageTransition(name=m.current.name, from_stage=m.previous.stage, to_stage=m.current.stage)
            for m in paired
            if m.current.stage != m.previous.stage
        ],
        confidence_changes=[
            ConfidenceChange(name=m.current.name, delta=m.current.confidence - m.previous.confidence)
            for m in paired
            if m.current.confidence != m.previous.confidence
        ],
    )
