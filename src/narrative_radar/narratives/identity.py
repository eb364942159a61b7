"""
Cross-run narrative identity resolution.

Two runs share no stable key, so "the same" narrative is found in two
deterministic greedy passes:

1. **Slug pass:** an unclaimed previous narrative with an identical slug.
2. **Fuzzy pass:** for each narrative still unmatched, the unclaimed
   previous narrative whose normalized name has the highest Jaccard
   similarity, provided it reaches the threshold (0.4).

Current narratives are processed in the given order, and a claimed previous
narrative leaves the candidate pool, so each previous narrative is matched
at most once. This is greedy, not an optimal bipartite assignment; narrative
counts per run are small.

Examples:
    >>> normalizer = NameNormalizer()
    >>> sorted(normalizer.tokens("Solana DePIN Expansion"))
    ['depin', 'expansion']
    >>> jaccard_similarity({"depin", "expansion"}, {"depin", "growth"})
    0.3333333333333333

Tags:
    identity-resolution, fuzzy-matching, jaccard, narratives, narrative-radar
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from narrative_radar.core.logging import get_logger
from narrative_radar.core.settings import DEFAULT_STOP_WORDS
from narrative_radar.narratives.models import Narrative, NarrativeMatch

logger = get_logger(__name__)

MATCH_THRESHOLD = 0.4

_PUNCT_RE = re.compile(r"[^a-z0-9\s]")
_SPACE_RE = re.compile(r"\s+")


class NameNormalizer:
    """Turns a narrative name into a bag of words.

    Lowercases, strips punctuation, drops stop words and collapses
    whitespace. The stop-word list includes the ecosystem's own name by
    default, since nearly every narrative is prefixed with it.
    """

    def __init__(self, stop_words: Iterable[str] = DEFAULT_STOP_WORDS) -> None:
        self.stop_words = frozenset(w.strip().lower() for w in stop_words if w.strip())

    def normalize(self, name: str) -> str:
        cleaned = _PUNCT_RE.sub("", name.lower())
        words = [w for w in _SPACE_RE.split(cleaned) if w and w not in self.stop_words]
        return " ".join(words)

    def tokens(self, name: str) -> frozenset[str]:
        return frozenset(self.normalize(name).split())


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """|a ∩ b| / |a ∪ b|; 0.0 when either side is empty."""
    set_a, set_b = set(a), set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def match_narratives(
    current: Sequence[Narrative],
    previous: Sequence[Narrative],
    *,
    threshold: float = MATCH_THRESHOLD,
    normalizer: NameNormalizer | None = None,
) -> list[NarrativeMatch]:
    """Resolve each current narrative to at most one previous narrative.

    Returns one ``NarrativeMatch`` per current narrative, in input order.
    Ties on the fuzzy score go to the earlier previous narrative.
    """
    normalizer = normalizer or NameNormalizer()
    claimed: set[int] = set()

    by_slug: dict[str, list[int]] = {}
    for idx, prev in enumerate(previous):
        by_slug.setdefault(prev.slug, []).append(idx)

    matches = [NarrativeMatch(current=curr) for curr in current]

    for match in matches:
        for idx in by_slug.get(match.current.slug, []):
            if idx not in claimed:
                claimed.add(idx)
                match.previous = previous[idx]
                match.score = 1.0
                match.method = "slug"
                break

    prev_tokens = [normalizer.tokens(p.name) for p in previous]
    for match in matches:
        if match.previous is not None:
            continue
        curr_tokens = normalizer.tokens(match.current.name)
        best_idx, best_score = -1, 0.0
        for idx, tokens in enumerate(prev_tokens):
            if idx in claimed:
                continue
            score = jaccard_similarity(curr_tokens, tokens)
            if score >= threshold and score > best_score:
                best_idx, best_score = idx, score
        if best_idx >= 0:
            claimed.add(best_idx)
            match.previous = previous[best_idx]
            match.score = best_score
            match.method = "fuzzy"

    logger.debug(
        "identity.resolved",
        current=len(current),
        previous=len(previous),
        by_slug=sum(1 for m in matches if m.method == "slug"),
        by_fuzzy=sum(1 for m in matches if m.method == "fuzzy"),
        unmatched=sum(1 for m in matches if m.previous is None),
    )
    return matches


def unclaimed_previous(
    matches: Sequence[NarrativeMatch],
    previous: Sequence[Narrative],
) -> list[Narrative]:
    """Previous narratives no current narrative was resolved to, in order."""
    claimed = {id(m.previous) for m in matches if m.previous is not None}
    return [p for p in previous if id(p) not in claimed]


__all__ = [
    "MATCH_THRESHOLD",
    "NameNormalizer",
    "jaccard_similarity",
    "match_narratives",
    "unclaimed_previous",
]
