"""Tests for per-layer scoring."""

from dataclasses import dataclass, field

import pytest

from narrative_radar.core.anomaly import attribute_metric
from narrative_radar.pipeline.scoring import (
    SignalLayer,
    default_summary,
    new_repo_clusters,
    score_layer,
    score_layers,
)


@dataclass
class RepoSignal:
    repo: str
    commits_delta: float = 0.0
    stars_delta: float = 0.0
    commits_z: float = 0.0
    stars_z: float = 0.0
    topics: list[str] = field(default_factory=list)
    new_repo: bool = False


COMMITS = attribute_metric("commits", "commits_delta", "commits_z")
STARS = attribute_metric("stars", "stars_delta", "stars_z")


def _repos(commit_outlier: int | None = 9, star_outlier: int | None = None, n: int = 10) -> list[RepoSignal]:
    repos = [RepoSignal(f"org/r{i}") for i in range(n)]
    if commit_outlier is not None:
        repos[commit_outlier].commits_delta = 10.0
    if star_outlier is not None:
        repos[star_outlier].stars_delta = 10.0
    return repos


def _layer(repos, key=lambda r: r.repo, name="leading") -> SignalLayer:
    return SignalLayer(name=name, items=repos, metrics=[COMMITS, STARS], key=key)


class TestScoreLayer:
    def test_writes_z_scores_for_every_record(self):
        repos = _repos()
        score_layer(_layer(repos))
        assert repos[9].commits_z == pytest.approx(3.0)
        assert repos[0].commits_z == pytest.approx(-1 / 3)
        assert all(r.stars_z == 0.0 for r in repos)

    def test_single_entity_two_metrics(self):
        repos = _repos(commit_outlier=9, star_outlier=9)
        result = score_layer(_layer(repos))

        [group] = result.anomalies
        assert group.item is repos[9]
        assert sorted(group.metrics) == ["commits", "stars"]
        assert result.flag_counts == {"commits": 1, "stars": 1}

    def test_dedupes_by_entity_key(self):
        repos = _repos(commit_outlier=9, star_outlier=8)
        result = score_layer(_layer(repos, key=lambda r: "same" if r.repo in ("org/r8", "org/r9") else r.repo))

        [group] = result.anomalies
        assert sorted(group.metrics) == ["commits", "stars"]

    def test_distinct_keys_kept_apart(self):
        repos = _repos(commit_outlier=9, star_outlier=8)
        result = score_layer(_layer(repos))
        assert {r.repo for r in result.anomalous_items} == {"org/r8", "org/r9"}

    def test_threshold(self):
        result = score_layer(_layer(_repos()), threshold=3.5)
        assert result.anomalies == []

    def test_empty_layer(self):
        result = score_layer(_layer([]))
        assert result.population == 0
        assert result.anomalies == []


class TestScoreLayers:
    def test_summary_and_condensed(self):
        scored = score_layers([_layer(_repos(), name="leading"), _layer([], name="coincident")])

        assert scored.summary == {"leading": 1, "coincident": 0, "total": 1}
        view = scored.condensed()
        assert view["coincident"] == {"population": 0, "anomalies": []}
        [entry] = view["leading"]["anomalies"]
        assert entry["repo"] == "org/r9"
        assert entry["flagged"] == {"commits": 3.0}

    def test_custom_summarizer(self):
        layer = _layer(_repos())
        layer.summarize = lambda r: {"name": r.repo}
        [entry] = score_layers([layer]).condensed()["leading"]["anomalies"]
        assert entry == {"name": "org/r9", "flagged": {"commits": 3.0}}


class TestDefaultSummary:
    def test_shapes(self):
        assert default_summary({"a": 1}) == {"a": 1}
        assert default_summary(RepoSignal("x"))["repo"] == "x"
        assert default_summary(5) == {"value": "5"}


class TestNewRepoClusters:
    def test_shared_topics_sorted_by_count(self):
        repos = [
            RepoSignal("a/one", topics=["gaming", "depin"], new_repo=True),
            RepoSignal("b/two", topics=["depin"], new_repo=True),
            RepoSignal("c/three", topics=["depin", "gaming"], new_repo=True),
            RepoSignal("d/four", topics=["ai"], new_repo=True),
        ]

        clusters = new_repo_clusters(repos)

        assert clusters == [
            {"topic": "depin", "repos": ["a/one", "b/two", "c/three"], "count": 3},
            {"topic": "gaming", "repos": ["a/one", "c/three"], "count": 2},
        ]

    def test_only_new_repos_count(self):
        repos = [
            RepoSignal("a/one", topics=["depin"], new_repo=True),
            RepoSignal("b/two", topics=["depin"], new_repo=False),
        ]
        assert new_repo_clusters(repos) == []

    def test_ties_keep_first_seen_order(self):
        repos = [
            RepoSignal("a/one", topics=["zk", "ai"], new_repo=True),
            RepoSignal("b/two", topics=["zk", "ai"], new_repo=True),
        ]
        assert [c["topic"] for c in new_repo_clusters(repos)] == ["zk", "ai"]

    def test_in_condensed_view(self):
        repos = _repos()
        repos[0].new_repo = repos[1].new_repo = True
        repos[0].topics = repos[1].topics = ["restaking"]
        layer = SignalLayer(
            name="leading",
            items=repos,
            metrics=[COMMITS],
            key=lambda r: r.repo,
            extras={"newRepoClusters": new_repo_clusters},
        )

        view = score_layers([layer]).condensed()["leading"]

        assert view["population"] == 10
        assert view["newRepoClusters"] == [
            {"topic": "restaking", "repos": ["org/r0", "org/r1"], "count": 2}
        ]

    def test_no_extras_by_default(self):
        assert set(score_layers([_layer(_repos())]).condensed()["leading"]) == {"population", "anomalies"}
