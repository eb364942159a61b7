"""
Z-score anomaly detection over an in-run population.

Pure math, no I/O and no model calls. Each function takes the full
population for one metric in one run; a z-score only means something
relative to the peers it was computed against, so scores are never
persisted across runs.

Manifesto:
    "Is this entity unusual relative to its peers this period?" is the
    cheapest statistically defensible anomaly signal. It needs no stored
    baseline, works for any numeric field, and degrades to a defined
    zero-anomaly result when the population carries no information:

    - **Empty or single-item population:** no anomalies
    - **Zero variance:** every z-score is exactly 0, no anomalies
    - **Threshold:** ``|z| >= threshold`` (inclusive)

Architecture:
    ::

        records ──extract──▶ values ──▶ mean, population σ
                                              │
              ┌───────────────────────────────┴───────────────┐
              ▼                                               ▼
        enrich_with_z_scores                           detect_anomalies
        write(record, z) for every record              |z| >= threshold,
                                                       strongest first
                                                              │
                                                              ▼
                                               detect_multi_metric_anomalies
                                               grouped per record

Examples:
    >>> from narrative_radar.core.anomaly import detect_anomalies
    >>> repos = [{"repo": f"r{i}", "commits": 10} for i in range(9)]
    >>> repos.append({"repo": "hot", "commits": 200})
    >>> hits = detect_anomalies(repos, lambda r: r["commits"], "commits")
    >>> [(h.item["repo"], round(h.z_score, 2)) for h in hits]
    [('hot', 3.0)]

Tags:
    anomaly-detection, z-score, statistics, scoring, narrative-radar
"""

from __future__ import annotations

import statistics
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from narrative_radar.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 2.0


@dataclass(frozen=True)
class AnomalyResult(Generic[T]):
    """One record flagged on one metric.

    Attributes:
        item: The original record (not a copy).
        metric_name: Label of the metric that flagged it.
        value: Extracted metric value.
        mean: Population mean for the metric.
        std_dev: Population standard deviation for the metric.
        z_score: Signed z-score.
        threshold: Threshold the score was compared against.
    """

    item: T
    metric_name: str
    value: float
    mean: float
    std_dev: float
    z_score: float
    threshold: float

    @property
    def abs_z(self) -> float:
        return abs(self.z_score)


@dataclass(frozen=True)
class MetricDefinition(Generic[T]):
    """Accessor/writer pair for one scored field.

    ``write`` is optional: a metric can be used for detection only.
    """

    name: str
    extract: Callable[[T], float]
    write: Callable[[T, float], None] | None = None


@dataclass
class EntityAnomalies(Generic[T]):
    """All anomalies raised against one record across several metrics."""

    item: T
    anomalies: list[AnomalyResult[T]] = field(default_factory=list)

    @property
    def metrics(self) -> list[str]:
        return [a.metric_name for a in self.anomalies]

    @property
    def metric_count(self) -> int:
        return len(self.anomalies)

    @property
    def max_abs_z(self) -> float:
        return max((a.abs_z for a in self.anomalies), default=0.0)


def z_score(value: float, mean: float, std_dev: float) -> float:
    """Standard score of ``value``; 0.0 when the population has no spread."""
    if std_dev == 0:
        return 0.0
    return (value - mean) / std_dev


def population_stats(values: Sequence[float]) -> tuple[float, float]:
    """Mean and population standard deviation.

    Returns ``(0.0, 0.0)`` for an empty population. ``statistics`` works in
    exact arithmetic, so a uniform population yields a spread of exactly 0.
    """
    if not values:
        return 0.0, 0.0
    mean = statistics.fmean(values)
    if len(values) < 2:
        return mean, 0.0
    return mean, statistics.pstdev(values)


def enrich_with_z_scores(
    items: Sequence[T],
    extract: Callable[[T], float],
    write: Callable[[T, float], None],
) -> None:
    """Write every item's z-score through ``write``.

    Mutates items in place; order and membership are untouched. A uniform
    population writes 0 for every item.
    """
    values = [float(extract(item)) for item in items]
    mean, std_dev = population_stats(values)
    for item, value in zip(items, values):
        write(item, z_score(value, mean, std_dev))


def detect_anomalies(
    items: Sequence[T],
    extract: Callable[[T], float],
    metric_name: str,
    threshold: float = DEFAULT_THRESHOLD,
) -> list[AnomalyResult[T]]:
    """Records whose ``|z| >= threshold``, strongest signal first.

    The sort is stable, so equal ``|z|`` keeps input order. Fewer than two
    items, or a population without variance, yields an empty list.
    """
    if len(items) < 2:
        return []

    values = [float(extract(item)) for item in items]
    mean, std_dev = population_stats(values)
    if std_dev == 0:
        return []

    results = [
        AnomalyResult(
            item=item,
            metric_name=metric_name,
            value=value,
            mean=mean,
            std_dev=std_dev,
            z_score=z_score(value, mean, std_dev),
            threshold=threshold,
        )
        for item, value in zip(items, values)
    ]
    flagged = [r for r in results if r.abs_z >= threshold]
    flagged.sort(key=lambda r: r.abs_z, reverse=True)

    if flagged:
        logger.debug(
            "anomaly.detected",
            metric=metric_name,
            population=len(items),
            flagged=len(flagged),
            threshold=threshold,
        )
    return flagged


def detect_multi_metric_anomalies(
    items: Sequence[T],
    metrics: Iterable[MetricDefinition[T]],
    threshold: float = DEFAULT_THRESHOLD,
) -> list[EntityAnomalies[T]]:
    """Run ``detect_anomalies`` per metric and group the hits per record.

    Records are grouped by identity, so unhashable records work. Groups are
    ordered by first appearance (metric order, then strength within a
    metric); ``metric_count`` tells how many dimensions flagged a record.
    """
    groups: dict[int, EntityAnomalies[T]] = {}
    for metric in metrics:
        for anomaly in detect_anomalies(items, metric.extract, metric.name, threshold):
            key = id(anomaly.item)
            if key not in groups:
                groups[key] = EntityAnomalies(item=anomaly.item)
            groups[key].anomalies.append(anomaly)
    return list(groups.values())


def score_metrics(items: Sequence[T], metrics: Iterable[MetricDefinition[T]]) -> None:
    """Write z-scores for every metric that has a writer."""
    for metric in metrics:
        if metric.write is not None:
            enrich_with_z_scores(items, metric.extract, metric.write)


def attribute_metric(name: str, field_name: str, z_field: str | None = None) -> MetricDefinition[Any]:
    """Metric over an attribute of plain objects (dataclasses, models).

    ``z_field`` names the attribute that receives the z-score.
    """
    write = None
    if z_field is not None:
        def write(item: Any, z: float) -> None:
            setattr(item, z_field, z)

    return MetricDefinition(
        name=name,
        extract=lambda item: float(getattr(item, field_name)),
        write=write,
    )


__all__ = [
    "DEFAULT_THRESHOLD",
    "AnomalyResult",
    "MetricDefinition",
    "EntityAnomalies",
    "z_score",
    "population_stats",
    "enrich_with_z_scores",
    "detect_anomalies",
    "detect_multi_metric_anomalies",
    "score_metrics",
    "attribute_metric",
]
