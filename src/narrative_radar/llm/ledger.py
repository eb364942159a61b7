"""Cost Ledger — running tally of model spend within one run.

The caller estimates a cost for every successful call; the ledger adds them
up per label (clustering, compare:model-a, ...) and, when a ceiling is
configured, refuses further calls once the ceiling would be crossed. The
figures are estimates from the static price table, not billing records.

ARCHITECTURE
────────────
::

    CostLedger(max_cost_usd=None)
    ├── .record(result, label)   → track one ModelCallResult
    ├── .check(estimated_usd)    → raise BudgetExhaustedError if over
    ├── .spent_usd / .remaining_usd / .utilization
    ├── .by_model()              → {model_used: cost}
    └── .to_dict()

Example::

    ledger = CostLedger(max_cost_usd=0.50)
    ledger.check()
    result = caller.call(system, user)
    ledger.record(result, label="clustering")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from narrative_radar.core.errors import BudgetExhaustedError
from narrative_radar.core.logging import get_logger
from narrative_radar.llm.protocol import ModelCallResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class LedgerEntry:
    label: str
    model_used: str
    prompt_tokens: int
    completion_tokens: int
    cost_usd: float
    attempts: int


@dataclass
class CostLedger:
    """Tracks and optionally caps estimated model spend.

    Attributes:
        max_cost_usd: Ceiling in USD; ``None`` means unlimited.
        warn_at: Fraction (0.0–1.0) of the ceiling at which to warn.
    """

    max_cost_usd: float | None = None
    warn_at: float = 0.8

    entries: list[LedgerEntry] = field(default_factory=list, repr=False)

    @classmethod
    def from_settings(cls, settings: Any) -> CostLedger:
        return cls(max_cost_usd=settings.max_cost_usd)

    @property
    def spent_usd(self) -> float:
        return sum(e.cost_usd for e in self.entries)

    @property
    def prompt_tokens(self) -> int:
        return sum(e.prompt_tokens for e in self.entries)

    @property
    def completion_tokens(self) -> int:
        return sum(e.completion_tokens for e in self.entries)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def call_count(self) -> int:
        return len(self.entries)

    @property
    def remaining_usd(self) -> float | None:
        if self.max_cost_usd is None:
            return None
        return max(0.0, self.max_cost_usd - self.spent_usd)

    @property
    def utilization(self) -> float:
        """Spend as a fraction of the ceiling; 0.0 when uncapped."""
        if self.max_cost_usd is None:
            return 0.0
        if self.max_cost_usd <= 0:
            return 1.0
        return min(1.0, self.spent_usd / self.max_cost_usd)

    def record(self, result: ModelCallResult, label: str = "") -> LedgerEntry:
        entry = LedgerEntry(
            label=label,
            model_used=result.model_used,
            prompt_tokens=result.tokens_prompt,
            completion_tokens=result.tokens_completion,
            cost_usd=result.cost_usd,
            attempts=result.attempts,
        )
        self.entries.append(entry)

        if self.max_cost_usd is not None and self.utilization >= self.warn_at:
            logger.warning(
                "cost_ledger.warning",
                spent_usd=round(self.spent_usd, 6),
                max_cost_usd=self.max_cost_usd,
                utilization=round(self.utilization, 3),
            )
        return entry

    def check(self, estimated_usd: float = 0.0) -> None:
        """Raise ``BudgetExhaustedError`` if ``spent + estimated`` exceeds the ceiling."""
        if self.max_cost_usd is None:
            return
        if self.spent_usd + estimated_usd > self.max_cost_usd:
            raise BudgetExhaustedError(
                max_cost_usd=self.max_cost_usd,
                spent_usd=self.spent_usd,
                requested_usd=estimated_usd,
            )

    def by_model(self) -> dict[str, float]:
        totals: dict[str, float] = {}
        for e in self.entries:
            totals[e.model_used] = totals.get(e.model_used, 0.0) + e.cost_usd
        return totals

    def by_label(self) -> dict[str, float]:
        totals: dict[str, float] = {}
        for e in self.entries:
            totals[e.label] = totals.get(e.label, 0.0) + e.cost_usd
        return totals

    def reset(self) -> None:
        self.entries.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_cost_usd": self.max_cost_usd,
            "spent_usd": self.spent_usd,
            "remaining_usd": self.remaining_usd,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "call_count": self.call_count,
            "by_model": self.by_model(),
        }
