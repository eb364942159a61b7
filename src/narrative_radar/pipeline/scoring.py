"""
Per-layer scoring: z-scores in place, anomalies deduplicated per entity.

A signal layer is one population of records (repositories, protocols,
tokens, social topics) plus the metrics scored on it. Scoring a layer:

1. writes every metric's z-score into its records through the metric's writer
2. runs detection per metric and groups the hits per record
3. deduplicates by the layer's entity key, so a repo anomalous on commits
   and stars is reported once with both metrics attached

Layers are independent; the population for each must be complete before it
is scored.

Example::

    repos = SignalLayer(
        name="leading",
        items=repo_signals,
        metrics=[
            attribute_metric("commits", "commits_delta", "commits_z"),
            attribute_metric("stars", "stars_delta", "stars_z"),
        ],
        key=lambda r: r.repo,
        extras={"newRepoClusters": new_repo_clusters},
    )
    scored = score_layers([repos], threshold=2.0)
    scored.summary   # {"leading": 3, "total": 3}
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import asdict, dataclass, field, is_dataclass
from operator import attrgetter, itemgetter
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from narrative_radar.core.anomaly import (
    DEFAULT_THRESHOLD,
    EntityAnomalies,
    MetricDefinition,
    detect_multi_metric_anomalies,
    score_metrics,
)
from narrative_radar.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


def default_summary(item: Any) -> dict[str, Any]:
    """Plain dict view of a record for the condensed model input."""
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json")
    if is_dataclass(item) and not isinstance(item, type):
        return asdict(item)
    if isinstance(item, dict):
        return dict(item)
    return {"value": str(item)}


def new_repo_clusters(
    repos: Sequence[Any],
    *,
    topics: Callable[[Any], Sequence[str]] = attrgetter("topics"),
    key: Callable[[Any], str] = attrgetter("repo"),
    is_new: Callable[[Any], bool] = attrgetter("new_repo"),
    min_count: int = 2,
) -> list[dict[str, Any]]:
    """Topics shared by at least ``min_count`` new repos, most shared first.

    Ties keep first-seen topic order.

    >>> new_repo_clusters([{"repo": "a/x", "topics": ["depin"], "new_repo": True},
    ...                    {"repo": "b/y", "topics": ["depin"], "new_repo": True}],
    ...                   topics=itemgetter("topics"), key=itemgetter("repo"),
    ...                   is_new=itemgetter("new_repo"))
    [{'topic': 'depin', 'repos': ['a/x', 'b/y'], 'count': 2}]
    """
    by_topic: dict[str, list[str]] = {}
    for repo in repos:
        if not is_new(repo):
            continue
        for topic in topics(repo) or ():
            by_topic.setdefault(topic, []).append(key(repo))

    clusters = [
        {"topic": topic, "repos": names, "count": len(names)}
        for topic, names in by_topic.items()
        if len(names) >= min_count
    ]
    clusters.sort(key=itemgetter("count"), reverse=True)
    return clusters


@dataclass
class SignalLayer(Generic[T]):
    """One population of records and the metrics scored on it.

    Attributes:
        name: Layer label (``leading``, ``coincident``, ...).
        items: Full population for this run.
        metrics: Metrics to score and detect on.
        key: Entity key used to deduplicate anomalies.
        summarize: Record to JSON-able dict for the condensed view.
        extras: Named summaries computed over the whole population after
            scoring and added to the layer's condensed view.
    """

    name: str
    items: Sequence[T]
    metrics: Sequence[MetricDefinition[T]]
    key: Callable[[T], str]
    summarize: Callable[[T], dict[str, Any]] = default_summary
    extras: Mapping[str, Callable[[Sequence[T]], Any]] = field(default_factory=dict)


@dataclass
class LayerScore(Generic[T]):
    name: str
    population: int
    anomalies: list[EntityAnomalies[T]] = field(default_factory=list)
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def anomalous_items(self) -> list[T]:
        return [a.item for a in self.anomalies]

    @property
    def flag_counts(self) -> dict[str, int]:
        """Metric name to number of records it flagged."""
        counts: dict[str, int] = {}
        for group in self.anomalies:
            for metric in group.metrics:
                counts[metric] = counts.get(metric, 0) + 1
        return counts


@dataclass
class ScoredSignals:
    layers: dict[str, LayerScore[Any]] = field(default_factory=dict)
    summarizers: dict[str, Callable[[Any], dict[str, Any]]] = field(default_factory=dict, repr=False)

    @property
    def total_anomalies(self) -> int:
        return sum(len(layer.anomalies) for layer in self.layers.values())

    @property
    def summary(self) -> dict[str, int]:
        counts = {name: len(layer.anomalies) for name, layer in self.layers.items()}
        counts["total"] = self.total_anomalies
        return counts

    def condensed(self) -> dict[str, Any]:
        """Per-layer anomalies with their z-scores, ready for the model."""
        view: dict[str, Any] = {}
        for name, layer in self.layers.items():
            summarize = self.summarizers.get(name, default_summary)
            view[name] = {
                "population": layer.population,
                "anomalies": [
                    {
                        **summarize(group.item),
                        "flagged": {a.metric_name: round(a.z_score, 2) for a in group.anomalies},
                    }
                    for group in layer.anomalies
                ],
                **layer.extras,
            }
        return view


def score_layer(layer: SignalLayer[T], threshold: float = DEFAULT_THRESHOLD) -> LayerScore[T]:
    """Score one layer in place and return its deduplicated anomalies."""
    score_metrics(layer.items, layer.metrics)
    grouped = detect_multi_metric_anomalies(layer.items, layer.metrics, threshold)

    by_key: dict[str, EntityAnomalies[T]] = {}
    for group in grouped:
        k = layer.key(group.item)
        if k in by_key:
            by_key[k].anomalies.extend(group.anomalies)
        else:
            by_key[k] = group

    result = LayerScore(
        name=layer.name,
        population=len(layer.items),
        anomalies=list(by_key.values()),
        extras={name: build(layer.items) for name, build in layer.extras.items()},
    )
    logger.info(
        "scoring.layer_scored",
        layer=layer.name,
        population=result.population,
        anomalies=len(result.anomalies),
        flags=result.flag_counts,
    )
    return result


def score_layers(
    layers: Sequence[SignalLayer[Any]],
    threshold: float = DEFAULT_THRESHOLD,
) -> ScoredSignals:
    """Score every layer; empty layers are kept with no anomalies."""
    scored = ScoredSignals()
    for layer in layers:
        scored.layers[layer.name] = score_layer(layer, threshold)
        scored.summarizers[layer.name] = layer.summarize
    logger.info("scoring.complete", **scored.summary)
    return scored
