"""Settings for narrative-radar.

``RadarBaseSettings`` carries the fields every entry point needs (debug
and log level); ``RadarSettings`` adds the model chain, the
anomaly and identity thresholds and the report directory.

Configuration is explicit, validated and environment-driven:

    - **Pydantic validation:** Type-checked at startup, not mid-run
    - **Environment-driven:** ``RADAR_`` prefixed env vars and ``.env`` files
    - **Sensible defaults:** Works out of the box except for the API key

Examples:
    >>> from narrative_radar.core.settings import RadarSettings
    >>> settings = RadarSettings(model="openai/gpt-4o-mini", fallback_models=[])
    >>> settings.model_chain
    ['openai/gpt-4o-mini']

Tags:
    settings, configuration, pydantic, environment, narrative-radar
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_STOP_WORDS: tuple[str, ...] = (
    "the", "a", "an", "on", "in", "of", "for", "and", "solana",
)


class RadarBaseSettings(BaseSettings):
    """Common settings shared by the library and the CLI.

    Fields
    ──────
    debug        : Force DEBUG logging regardless of log_level
    log_level    : Structlog log level
    """

    model_config = SettingsConfigDict(
        env_prefix="RADAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"


class RadarSettings(RadarBaseSettings):
    """Runtime configuration for scoring, model calls and identity resolution."""

    # ── Model provider ───────────────────────────────────────────
    openrouter_api_key: SecretStr = SecretStr("")
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    app_name: str = "narrative-radar"
    app_url: str = "https://github.com/narrative-radar/narrative-radar"

    model: str = "z-ai/glm-4.7"
    fallback_models: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["deepseek/deepseek-chat-v3.1", "openai/gpt-4o-mini"],
    )
    max_retries: int = Field(default=2, ge=0, description="Additional attempts per model after the first")
    retry_base_delay: float = Field(default=1.0, ge=0.0, description="Seconds; multiplied by attempt number")
    request_timeout: float = Field(default=120.0, gt=0.0)
    temperature: float = 0.3
    max_tokens: int = 16_384
    max_cost_usd: float | None = None

    # ── Analysis ─────────────────────────────────────────────────
    anomaly_threshold: float = 2.0
    match_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    stop_words: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_STOP_WORDS))
    generate_ideas: bool = True

    # ── Output ───────────────────────────────────────────────────
    reports_dir: Path = Path("./reports")

    @field_validator("fallback_models", "stop_words", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @property
    def model_chain(self) -> list[str]:
        """Primary model followed by fallbacks, duplicates removed."""
        chain: list[str] = []
        for name in [self.model, *self.fallback_models]:
            if name and name not in chain:
                chain.append(name)
        return chain


@lru_cache(maxsize=1)
def get_settings() -> RadarSettings:
    """Process-wide settings instance."""
    return RadarSettings()
