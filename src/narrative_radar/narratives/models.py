"""
Narrative data model.

``Narrative`` is the one record that crosses the JSON boundary: it is built
fresh every run from the clustering response, annotated once by the history
pass, then written into the dated snapshot. Snapshot files use camelCase
keys (``previousStage``, ``relatedRepos``); Python code uses snake_case
attributes. Both spellings are accepted on input.

Run-to-run identity is never carried by ``id`` (run-local, ``n-1``..).
Matching goes through ``slug`` and the normalized name only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Deterministic slug: lowercase, non-alphanumeric runs to ``-``, trimmed.

    >>> slugify("Solana DePIN Expansion!")
    'solana-depin-expansion'
    """
    return _SLUG_RE.sub("-", name.lower()).strip("-")


class Stage(str, Enum):
    """How many independent signal layers corroborate a narrative."""

    EARLY = "EARLY"
    EMERGING = "EMERGING"
    GROWING = "GROWING"
    MAINSTREAM = "MAINSTREAM"

    @property
    def rank(self) -> int:
        return _STAGE_ORDER.index(self)

    def advanced_from(self, other: Stage) -> bool:
        return self.rank > other.rank

    @classmethod
    def parse(cls, value: object, default: Stage | None = None) -> Stage:
        """Stage from free text; unknown values fall back to ``default`` (EMERGING)."""
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return default or cls.EMERGING


_STAGE_ORDER = [Stage.EARLY, Stage.EMERGING, Stage.GROWING, Stage.MAINSTREAM]


class Momentum(str, Enum):
    ACCELERATING = "accelerating"
    STABLE = "stable"
    DECELERATING = "decelerating"

    @classmethod
    def parse(cls, value: object, default: Momentum | None = None) -> Momentum:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default or cls.STABLE


class CamelModel(BaseModel):
    """Base for records serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> dict:
        """camelCase dict for snapshot files, unset history fields omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SignalRefs(CamelModel):
    """Free-text evidence strings per signal layer."""

    leading: list[str] = Field(default_factory=list)
    coincident: list[str] = Field(default_factory=list)
    confirming: list[str] = Field(default_factory=list)
    social: list[str] = Field(default_factory=list)


class Narrative(CamelModel):
    """One named cluster of correlated anomalies."""

    id: str
    name: str
    slug: str = ""
    description: str = ""
    stage: Stage = Stage.EMERGING
    momentum: Momentum = Momentum.STABLE
    confidence: float = 50
    signals: SignalRefs = Field(default_factory=SignalRefs)
    related_repos: list[str] = Field(default_factory=list)
    related_tokens: list[str] = Field(default_factory=list)
    related_protocols: list[str] = Field(default_factory=list)

    # Set by the history pass.
    previous_stage: Stage | None = None
    stage_changed_at: str | None = None
    is_new: bool | None = None

    @field_validator("stage", mode="before")
    @classmethod
    def _lenient_stage(cls, value: Any) -> Any:
        return value if isinstance(value, Stage) else Stage.parse(value)

    @field_validator("momentum", mode="before")
    @classmethod
    def _lenient_momentum(cls, value: Any) -> Any:
        return value if isinstance(value, Momentum) else Momentum.parse(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0, min(100, value))
        return value

    @model_validator(mode="after")
    def _derive_slug(self) -> Narrative:
        if not self.slug:
            self.slug = slugify(self.name)
        return self


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @classmethod
    def parse(cls, value: object) -> Difficulty:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.INTERMEDIATE


class BuildIdea(CamelModel):
    """A project suggestion derived from one narrative.

    ``narrative`` holds the id of the narrative it came from when the model
    named a narrative of this run, otherwise the name as returned.
    """

    id: str
    title: str
    narrative: str = ""
    description: str = ""
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    timeframe: str = ""
    tech_stack: list[str] = Field(default_factory=list)
    existing_projects: list[str] = Field(default_factory=list)
    why_now: str = ""

    @field_validator("difficulty", mode="before")
    @classmethod
    def _lenient_difficulty(cls, value: Any) -> Any:
        return value if isinstance(value, Difficulty) else Difficulty.parse(value)


@dataclass
class NarrativeMatch:
    """A current narrative and the previous one it was resolved to, if any."""

    current: Narrative
    previous: Narrative | None = None
    score: float = 0.0
    method: Literal["slug", "fuzzy"] | None = None

    @property
    def matched(self) -> bool:
        return self.previous is not None


class StageTransition(CamelModel):
    name: str
    from_stage: Stage = Field(alias="from")
    to_stage: Stage = Field(alias="to")


class ConfidenceChange(CamelModel):
    name: str
    delta: float


class ReportDiff(CamelModel):
    """What changed between two narrative collections."""

    new_narratives: list[str] = Field(default_factory=list)
    removed_narratives: list[str] = Field(default_factory=list)
    stage_transitions: list[StageTransition] = Field(default_factory=list)
    confidence_changes: list[ConfidenceChange] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.new_narratives
            or self.removed_narratives
            or self.stage_transitions
            or self.confidence_changes
        )


__all__ = [
    "slugify",
    "CamelModel",
    "Stage",
    "Momentum",
    "SignalRefs",
    "Narrative",
    "Difficulty",
    "BuildIdea",
    "NarrativeMatch",
    "StageTransition",
    "ConfidenceChange",
    "ReportDiff",
]
