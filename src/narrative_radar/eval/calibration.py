"""
Confidence calibration over historical snapshots.

Treats each narrative's stated confidence as a predicted probability that it
will still exist in the next snapshot, and scores those predictions:

- For every consecutive pair ``(earlier, later)``, the later narratives are
  resolved against the earlier ones. An earlier narrative that was claimed
  "persisted" (outcome 1), otherwise it did not (outcome 0).
- Observations land in ten fixed confidence buckets, index
  ``floor(clamp(confidence, 0, 99) / 10)`` (so 100 falls in ``[90, 100]``).
- Brier score is the mean of ``(confidence / 100 - outcome) ** 2`` over all
  observations: 0 is perfect, 1 is maximally wrong.
- Among persisted narratives, a bucket counts how many advanced to a later
  stage, and what fraction both said "accelerating" and advanced.

Fewer than two snapshots is not an error: the report has all-zero
statistics.

Example::

    report = run_calibration(Path("reports"))
    report.brier_score          # 0.18
    report.buckets[7].persistence_rate
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from pathlib import Path

from pydantic import Field

from narrative_radar.core.logging import get_logger
from narrative_radar.eval.snapshots import Snapshot, load_snapshots, write_json
from narrative_radar.narratives.identity import MATCH_THRESHOLD, NameNormalizer, match_narratives
from narrative_radar.narratives.models import CamelModel, Momentum

logger = get_logger(__name__)

BUCKET_COUNT = 10
BUCKET_WIDTH = 10


class CalibrationBucket(CamelModel):
    range: tuple[int, int]
    total: int = 0
    persisted: int = 0
    persistence_rate: float = 0.0
    stage_advanced: int = 0
    momentum_accuracy: float = 0.0


class DateRange(CamelModel):
    from_date: str = Field(default="", alias="from")
    to_date: str = Field(default="", alias="to")


class CalibrationReport(CamelModel):
    report_count: int = 0
    date_range: DateRange = Field(default_factory=DateRange)
    buckets: list[CalibrationBucket] = Field(default_factory=list)
    overall_persistence_rate: float = 0.0
    brier_score: float = 0.0
    observations: int = 0

    @property
    def populated_buckets(self) -> list[CalibrationBucket]:
        return [b for b in self.buckets if b.total > 0]


def empty_buckets() -> list[CalibrationBucket]:
    return [
        CalibrationBucket(range=(low, low + BUCKET_WIDTH))
        for low in range(0, BUCKET_COUNT * BUCKET_WIDTH, BUCKET_WIDTH)
    ]


def bucket_index(confidence: float) -> int:
    """Bucket for a confidence value; out-of-range values are clamped."""
    clamped = max(0.0, min(99.0, float(confidence)))
    return math.floor(clamped / BUCKET_WIDTH)


def brier_score(observations: Sequence[tuple[float, bool]]) -> float:
    """Mean squared error of ``(confidence/100, outcome)`` pairs; 0.0 when empty."""
    if not observations:
        return 0.0
    return sum((conf / 100 - (1.0 if outcome else 0.0)) ** 2 for conf, outcome in observations) / len(
        observations
    )


def compute_calibration(
    snapshots: Sequence[Snapshot],
    *,
    threshold: float = MATCH_THRESHOLD,
    normalizer: NameNormalizer | None = None,
) -> CalibrationReport:
    """Fold consecutive snapshot pairs into a calibration report.

    ``snapshots`` must be in date order (``load_snapshots`` returns them so).
    """
    date_range = DateRange(
        from_date=snapshots[0].date if snapshots else "",
        to_date=snapshots[-1].date if snapshots else "",
    )
    buckets = empty_buckets()
    if len(snapshots) < 2:
        return CalibrationReport(report_count=len(snapshots), date_range=date_range, buckets=buckets)

    observations: list[tuple[float, bool]] = []
    accelerating_hits = [0] * BUCKET_COUNT

    for earlier, later in zip(snapshots, snapshots[1:]):
        matches = match_narratives(
            later.narratives, earlier.narratives, threshold=threshold, normalizer=normalizer
        )
        successor = {id(m.previous): m.current for m in matches if m.previous is not None}

        for narrative in earlier.narratives:
            idx = bucket_index(narrative.confidence)
            bucket = buckets[idx]
            nxt = successor.get(id(narrative))
            persisted = nxt is not None

            bucket.total += 1
            observations.append((narrative.confidence, persisted))
            if not persisted:
                continue

            bucket.persisted += 1
            advanced = nxt.stage.advanced_from(narrative.stage)
            if advanced:
                bucket.stage_advanced += 1
                if narrative.momentum is Momentum.ACCELERATING:
                    accelerating_hits[idx] += 1

    for idx, bucket in enumerate(buckets):
        if bucket.total:
            bucket.persistence_rate = bucket.persisted / bucket.total
        if bucket.persisted:
            bucket.momentum_accuracy = accelerating_hits[idx] / bucket.persisted

    total_persisted = sum(1 for _, outcome in observations if outcome)
    report = CalibrationReport(
        report_count=len(snapshots),
        date_range=date_range,
        buckets=buckets,
        overall_persistence_rate=total_persisted / len(observations) if observations else 0.0,
        brier_score=brier_score(observations),
        observations=len(observations),
    )
    logger.info(
        "calibration.computed",
        reports=report.report_count,
        observations=report.observations,
        brier_score=round(report.brier_score, 4),
        persistence_rate=round(report.overall_persistence_rate, 4),
    )
    return report


def default_output_path(reports_dir: Path | str) -> Path:
    return Path(reports_dir) / "eval" / "calibration.json"


def write_calibration_report(report: CalibrationReport, path: Path | str) -> Path:
    """Write the report as camelCase JSON."""
    return write_json(report.model_dump(mode="json", by_alias=True), path)


def run_calibration(
    reports_dir: Path | str,
    output: Path | str | None = None,
    *,
    threshold: float = MATCH_THRESHOLD,
    normalizer: NameNormalizer | None = None,
) -> tuple[CalibrationReport, Path]:
    """Load snapshots, compute calibration and write it.

    Returns the report and the path it was written to
    (``<reports_dir>/eval/calibration.json`` by default).
    """
    snapshots = load_snapshots(reports_dir)
    report = compute_calibration(snapshots, threshold=threshold, normalizer=normalizer)
    path = write_calibration_report(report, output or default_output_path(reports_dir))
    logger.info("calibration.written", path=str(path))
    return report, path
