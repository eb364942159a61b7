"""
Tests for a full narrative pass.

Tests verify:
- Scoring output reaches the model as the condensed view
- History and diff are computed against the previous narratives
- Model failures propagate unless the pass is told to degrade
- The cost ledger is checked and charged
- Build ideas follow clustering under the same failure policy
"""

import json
from dataclasses import dataclass
from datetime import UTC, datetime

import pytest

from narrative_radar.core.anomaly import attribute_metric
from narrative_radar.core.errors import BudgetExhaustedError, ParseError, ServerError
from narrative_radar.core.settings import RadarSettings
from narrative_radar.llm.ledger import CostLedger
from narrative_radar.narratives.models import Stage
from narrative_radar.pipeline.run import run_from_settings, run_narrative_pass
from narrative_radar.pipeline.scoring import SignalLayer

NOW = datetime(2026, 2, 1, 6, 0, tzinfo=UTC)

IDEAS_PAYLOAD = {
    "ideas": [
        {
            "title": "Validator DePIN Toolkit",
            "narrative": "Solana DePIN Expansion",
            "difficulty": "advanced",
            "tech_stack": ["Rust", "Anchor"],
        }
    ]
}


@dataclass
class ProtocolSignal:
    protocol: str
    tvl_delta: float = 0.0
    tvl_z: float = 0.0


@pytest.fixture
def layers():
    items = [ProtocolSignal(f"p{i}") for i in range(10)]
    items[3].tvl_delta = 50.0
    return [
        SignalLayer(
            name="coincident",
            items=items,
            metrics=[attribute_metric("tvl", "tvl_delta", "tvl_z")],
            key=lambda p: p.protocol,
        )
    ]


class TestRunNarrativePass:
    def test_happy_path(self, layers, make_caller, narratives_payload, make_narrative):
        caller, provider = make_caller(["A"], default_response=json.dumps(narratives_payload))
        previous = [
            make_narrative("DePIN Expansion", stage=Stage.EARLY, confidence=60),
            make_narrative("Meme Coins"),
        ]

        result = run_narrative_pass(layers, caller, previous, now=NOW)

        assert not result.degraded
        assert result.generated_at == "2026-02-01T06:00:00Z"
        depin, gaming = result.narratives
        assert depin.is_new is False
        assert depin.previous_stage is Stage.EARLY
        assert depin.stage_changed_at == "2026-02-01T06:00:00Z"
        assert gaming.is_new is True
        assert result.diff.new_narratives == ["Gaming Infrastructure"]
        assert result.diff.removed_narratives == ["Meme Coins"]

        user_prompt = provider.calls[0]["messages"][1]["content"]
        assert '"protocol": "p3"' in user_prompt
        assert result.scored.summary["coincident"] == 1

    def test_failure_propagates_by_default(self, layers, make_caller):
        caller, _ = make_caller(["A"], script={"A": [ServerError("502")]})
        with pytest.raises(ServerError):
            run_narrative_pass(layers, caller, now=NOW)

    def test_degrades_to_empty_narratives(self, layers, make_caller, make_narrative):
        caller, _ = make_caller(["A"], default_response="no json here")
        previous = [make_narrative("DePIN Growth")]

        result = run_narrative_pass(layers, caller, previous, now=NOW, degrade_on_failure=True)

        assert result.degraded
        assert isinstance(result.error, ParseError)
        assert result.narratives == []
        assert result.diff.removed_narratives == ["DePIN Growth"]
        assert result.snapshot_dict()["meta"]["degraded"] is True

    def test_ledger_charged(self, layers, make_caller, narratives_payload):
        caller, _ = make_caller(["A"], default_response=json.dumps(narratives_payload))
        ledger = CostLedger()

        result = run_narrative_pass(layers, caller, now=NOW, ledger=ledger)

        assert ledger.call_count == 2
        assert ledger.by_label() == {
            "clustering": pytest.approx(result.clustering.cost_usd),
            "ideas": pytest.approx(result.idea_generation.cost_usd),
        }
        assert result.cost_usd == pytest.approx(ledger.spent_usd)

    def test_exhausted_ledger_blocks_call(self, layers, make_caller):
        caller, provider = make_caller(["A"])
        ledger = CostLedger(max_cost_usd=0.001)
        ledger.record(caller.call("sys", "user"), label="earlier")
        provider.reset()
        assert ledger.spent_usd > 0.001

        with pytest.raises(BudgetExhaustedError):
            run_narrative_pass(layers, caller, now=NOW, ledger=ledger, degrade_on_failure=True)
        assert provider.call_count == 0

    def test_snapshot_dict(self, layers, make_caller, narratives_payload):
        caller, _ = make_caller(["A"], default_response=json.dumps(narratives_payload))
        doc = run_narrative_pass(layers, caller, now=NOW).snapshot_dict()

        assert doc["date"] == "2026-02-01"
        assert doc["generatedAt"] == "2026-02-01T06:00:00Z"
        assert doc["narratives"][0]["slug"] == "solana-depin-expansion"
        assert doc["meta"]["modelUsed"] == "A"
        assert doc["signals"]["coincident"]["population"] == 10


class TestRunFromSettings:
    def test_settings_drive_thresholds(self, layers, make_caller, narratives_payload):
        caller, _ = make_caller(["A"], default_response=json.dumps(narratives_payload))
        settings = RadarSettings(anomaly_threshold=3.5, max_cost_usd=10.0)

        result = run_from_settings(layers, settings=settings, caller=caller, now=NOW)

        # z = 3.0 for the outlier, below the 3.5 threshold
        assert result.scored.summary["total"] == 0
        assert len(result.narratives) == 2

    def test_stop_words_from_settings(self, layers, make_caller, narratives_payload, make_narrative):
        caller, _ = make_caller(["A"], default_response=json.dumps(narratives_payload))
        settings = RadarSettings(stop_words=["depin", "expansion"])
        previous = [make_narrative("DePIN Expansion")]

        result = run_from_settings(layers, previous, settings=settings, caller=caller, now=NOW)

        # every shared word is now a stop word, so nothing is left to match on
        assert result.narratives[0].is_new is True

    def test_cost_ceiling_from_settings(self, layers, make_caller):
        caller, provider = make_caller(["A"])
        settings = RadarSettings(max_cost_usd=0.0)
        result = run_from_settings(layers, settings=settings, caller=caller, now=NOW)
        # a zero ceiling still allows the first call; nothing has been spent yet
        assert provider.call_count == 1
        assert result.narratives == []


class TestBuildIdeasStep:
    def test_ideas_follow_clustering(self, layers, make_caller, narratives_payload):
        caller, provider = make_caller(
            ["A"], sequence=[json.dumps(narratives_payload), json.dumps(IDEAS_PAYLOAD)]
        )

        result = run_narrative_pass(layers, caller, now=NOW)

        assert provider.call_count == 2
        assert '"name": "Solana DePIN Expansion"' in provider.calls[1]["messages"][1]["content"]
        [idea] = result.ideas
        assert idea.narrative == "n-1"
        doc = result.snapshot_dict()
        assert doc["buildIdeas"][0]["title"] == "Validator DePIN Toolkit"
        assert doc["meta"]["tokensUsed"] == result.clustering.tokens_used + result.idea_generation.tokens_used

    def test_disabled(self, layers, make_caller, narratives_payload):
        caller, provider = make_caller(["A"], default_response=json.dumps(narratives_payload))
        result = run_narrative_pass(layers, caller, now=NOW, generate_ideas=False)
        assert provider.call_count == 1
        assert result.ideas == []

    def test_skipped_without_narratives(self, layers, make_caller):
        caller, provider = make_caller(["A"], default_response='{"narratives": []}')
        run_narrative_pass(layers, caller, now=NOW)
        assert provider.call_count == 1

    def test_failure_propagates_by_default(self, layers, make_caller, narratives_payload):
        caller, _ = make_caller(["A"], sequence=[json.dumps(narratives_payload), ServerError("502")])
        with pytest.raises(ServerError):
            run_narrative_pass(layers, caller, now=NOW)

    def test_degrade_keeps_narratives(self, layers, make_caller, narratives_payload):
        caller, _ = make_caller(["A"], sequence=[json.dumps(narratives_payload), "not json"])

        result = run_narrative_pass(layers, caller, now=NOW, degrade_on_failure=True)

        assert result.degraded
        assert isinstance(result.error, ParseError)
        assert len(result.narratives) == 2
        assert result.ideas == []
        assert result.idea_generation is None

    def test_ceiling_checked_before_ideas(self, layers, make_caller, narratives_payload):
        caller, provider = make_caller(["A"], default_response=json.dumps(narratives_payload))
        ledger = CostLedger(max_cost_usd=0.001)

        with pytest.raises(BudgetExhaustedError):
            run_narrative_pass(layers, caller, now=NOW, ledger=ledger)
        assert provider.call_count == 1

    def test_setting_disables_ideas(self, layers, make_caller, narratives_payload):
        caller, provider = make_caller(["A"], default_response=json.dumps(narratives_payload))
        run_from_settings(layers, settings=RadarSettings(generate_ideas=False), caller=caller, now=NOW)
        assert provider.call_count == 1


class TestRunId:
    def test_time_sortable(self, layers, make_caller):
        caller, _ = make_caller(["A"])
        first = run_narrative_pass(layers, caller, now=NOW)
        later = run_narrative_pass(layers, caller, now=datetime(2026, 2, 2, tzinfo=UTC))

        assert len(first.run_id) == 26
        assert first.run_id < later.run_id
        assert first.snapshot_dict()["meta"]["runId"] == first.run_id
