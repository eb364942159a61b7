"""Tests for build-idea generation."""

import json

import pytest

from narrative_radar.core.errors import ParseError, ServerError
from narrative_radar.narratives.ideas import (
    MAX_IDEAS,
    build_prompts,
    condense_narratives,
    generate_build_ideas,
    ideas_from_payload,
)
from narrative_radar.narratives.models import BuildIdea, Difficulty

IDEAS_PAYLOAD = {
    "ideas": [
        {
            "title": "DePIN Dashboard",
            "narrative": "Solana DePIN",
            "description": "Real-time DePIN metrics.",
            "difficulty": "intermediate",
            "timeframe": "2-4 weeks",
            "tech_stack": ["Next.js", "Helius"],
            "existing_projects": ["helium-explorer"],
            "why_now": "DePIN growth accelerating",
        }
    ]
}


@pytest.fixture
def depin(make_narrative):
    return make_narrative(
        "Solana DePIN",
        id="n-1",
        related_repos=[f"org/r{i}" for i in range(8)],
        related_tokens=["HNT"],
    )


class TestIdeasFromPayload:
    def test_full_entry(self, depin):
        [idea] = ideas_from_payload(IDEAS_PAYLOAD, [depin])

        assert idea.id == "idea-1"
        assert idea.title == "DePIN Dashboard"
        assert idea.narrative == "n-1"
        assert idea.difficulty is Difficulty.INTERMEDIATE
        assert idea.tech_stack == ["Next.js", "Helius"]
        assert idea.why_now == "DePIN growth accelerating"

    def test_unknown_narrative_name_kept(self, depin):
        [idea] = ideas_from_payload({"ideas": [{"title": "X", "narrative": "Unknown"}]}, [depin])
        assert idea.narrative == "Unknown"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("expert", "intermediate"), ("BEGINNER", "beginner"), (None, "intermediate")],
    )
    def test_difficulty_normalised(self, depin, raw, expected):
        [idea] = ideas_from_payload({"ideas": [{"title": "X", "difficulty": raw}]}, [depin])
        assert idea.difficulty.value == expected

    def test_untitled_and_non_objects_dropped(self, depin):
        payload = {"ideas": [{"title": ""}, "junk", {"title": "Kept"}]}
        [idea] = ideas_from_payload(payload, [depin])
        assert idea.title == "Kept"
        assert idea.id == "idea-1"
        assert idea.tech_stack == []

    def test_capped(self, depin):
        payload = {"ideas": [{"title": f"Idea {i}"} for i in range(MAX_IDEAS + 5)]}
        assert len(ideas_from_payload(payload, [depin])) == MAX_IDEAS

    def test_missing_ideas_key(self, depin):
        assert ideas_from_payload({"narratives": []}, [depin]) == []

    def test_camel_case_output(self, depin):
        [idea] = ideas_from_payload(IDEAS_PAYLOAD, [depin])
        data = idea.to_json_dict()
        assert data["techStack"] == ["Next.js", "Helius"]
        assert data["whyNow"] == "DePIN growth accelerating"
        assert BuildIdea.model_validate(data) == idea


class TestPrompts:
    def test_related_lists_truncated(self, depin):
        [entry] = condense_narratives([depin])
        assert entry["relatedRepos"] == [f"org/r{i}" for i in range(5)]
        assert entry["stage"] == "EMERGING"

    def test_ecosystem_and_data(self, depin):
        system, user = build_prompts([depin], ecosystem="Base")
        assert "Base ecosystem" in system
        assert '"name": "Solana DePIN"' in user


class TestGenerateBuildIdeas:
    def test_no_narratives_no_call(self, make_caller):
        caller, provider = make_caller(["A"])
        result = generate_build_ideas([], caller)
        assert result.ideas == []
        assert result.tokens_used == 0
        assert provider.call_count == 0

    def test_success(self, make_caller, depin):
        caller, provider = make_caller(["A"], default_response=json.dumps(IDEAS_PAYLOAD))

        result = generate_build_ideas([depin], caller)

        assert [i.title for i in result.ideas] == ["DePIN Dashboard"]
        assert result.model_used == "A"
        assert result.tokens_used == result.call.tokens_total
        assert provider.calls[0]["json_mode"] is True

    def test_falls_back_like_clustering(self, make_caller, depin):
        caller, provider = make_caller(
            ["A", "B"], script={"A": [ServerError("502")], "B": [json.dumps(IDEAS_PAYLOAD)]}
        )
        assert generate_build_ideas([depin], caller).model_used == "B"

    def test_unparseable_raises(self, make_caller, depin):
        caller, _ = make_caller(["A"], default_response="garbage")
        with pytest.raises(ParseError):
            generate_build_ideas([depin], caller)
