"""
Shared pytest fixtures and configuration for narrative-radar tests.

This module provides:
- Narrative and snapshot factories
- A scripted provider + caller pair with a recording sleep
- Settings isolated from the developer's environment
- Auto-marking of tests by location

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.

    def test_something(make_narrative, write_snapshot):
        ...
"""

import json
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

# Ensure narrative_radar package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from narrative_radar.core.settings import get_settings
from narrative_radar.llm.caller import ResilientModelCaller
from narrative_radar.llm.mock import MockLLMProvider
from narrative_radar.narratives.models import Narrative, Stage


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Drop RADAR_* variables and the cached settings around every test."""
    import os

    for key in list(os.environ):
        if key.startswith("RADAR_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Narrative factories
# =============================================================================


@pytest.fixture
def make_narrative() -> Callable[..., Narrative]:
    """Factory for narratives with sensible defaults.

    Example:
        n = make_narrative("DePIN Expansion", stage=Stage.GROWING, confidence=80)
    """
    counter = {"n": 0}

    def _make(name: str, **kwargs: Any) -> Narrative:
        counter["n"] += 1
        kwargs.setdefault("id", f"n-{counter['n']}")
        kwargs.setdefault("stage", Stage.EMERGING)
        kwargs.setdefault("confidence", 50)
        return Narrative(name=name, **kwargs)

    return _make


@pytest.fixture
def reports_dir(tmp_path: Path) -> Path:
    path = tmp_path / "reports"
    path.mkdir()
    return path


@pytest.fixture
def write_snapshot(reports_dir: Path) -> Callable[..., Path]:
    """Write a dated snapshot file from narratives (or raw dicts)."""

    def _write(date: str, narratives: list, **extra: Any) -> Path:
        doc = {
            "date": date,
            "narratives": [
                n.to_json_dict() if isinstance(n, Narrative) else n for n in narratives
            ],
            **extra,
        }
        path = reports_dir / f"{date}.json"
        path.write_text(json.dumps(doc), encoding="utf-8")
        return path

    return _write


# =============================================================================
# Model caller fixtures
# =============================================================================


@pytest.fixture
def sleeps() -> list[float]:
    """Records backoff delays instead of sleeping."""
    return []


@pytest.fixture
def make_caller(sleeps: list[float]) -> Callable[..., tuple[ResilientModelCaller, MockLLMProvider]]:
    """Build a caller over a scripted mock provider.

    Example:
        caller, provider = make_caller(["A", "B"], script={"A": [ServerError("502")]})
    """

    def _make(models: list[str], **provider_kwargs: Any) -> tuple[ResilientModelCaller, MockLLMProvider]:
        provider = MockLLMProvider(**provider_kwargs)
        caller = ResilientModelCaller(provider, models, max_retries=2, base_delay=1.0, sleep=sleeps.append)
        return caller, provider

    return _make


NARRATIVES_PAYLOAD = {
    "narratives": [
        {
            "name": "Solana DePIN Expansion",
            "description": "Builders and capital are converging on DePIN.",
            "stage": "EMERGING",
            "momentum": "accelerating",
            "confidence": 72,
            "leading_signals": ["helium commits up 4x"],
            "coincident_signals": ["TVL +30%"],
            "confirming_signals": [],
            "related_repos": ["helium/helium-program-library"],
            "related_tokens": ["HNT"],
            "related_protocols": ["Helium"],
        },
        {
            "name": "Gaming Infrastructure",
            "description": "Game SDK activity is rising.",
            "stage": "EARLY",
            "momentum": "stable",
            "confidence": 41,
        },
    ]
}


@pytest.fixture
def narratives_payload() -> dict:
    return json.loads(json.dumps(NARRATIVES_PAYLOAD))
