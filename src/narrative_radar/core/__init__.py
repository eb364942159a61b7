"""Radar Core -- settings, logging, errors, retry and the anomaly engine.

Architecture::

    errors.py       Typed error hierarchy (TRANSIENT / SERVER / FATAL)
    logging.py      structlog configuration and context binding
    settings.py     RADAR_* environment settings (pydantic-settings)
    retry.py        Retry strategies (linear backoff)
    timestamps.py   UTC helpers
    anomaly.py      In-run z-score anomaly detection

Nothing here imports from the other subpackages.
"""

from narrative_radar.core.anomaly import (
    AnomalyResult,
    EntityAnomalies,
    MetricDefinition,
    detect_anomalies,
    detect_multi_metric_anomalies,
    enrich_with_z_scores,
    z_score,
)
from narrative_radar.core.errors import (
    ConfigError,
    FailureKind,
    FatalRequestError,
    ParseError,
    RadarError,
    ServerError,
    TransientError,
)
from narrative_radar.core.logging import configure_logging, get_logger
from narrative_radar.core.settings import RadarSettings, get_settings

__all__ = [
    "AnomalyResult",
    "EntityAnomalies",
    "MetricDefinition",
    "detect_anomalies",
    "detect_multi_metric_anomalies",
    "enrich_with_z_scores",
    "z_score",
    "ConfigError",
    "FailureKind",
    "FatalRequestError",
    "ParseError",
    "RadarError",
    "ServerError",
    "TransientError",
    "configure_logging",
    "get_logger",
    "RadarSettings",
    "get_settings",
]
