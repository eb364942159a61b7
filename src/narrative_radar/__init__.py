"""
narrative-radar - ecosystem signal intelligence.

Scores per-entity ecosystem metrics, clusters the anomalies into named
narratives through a resilient multi-model chain, and tracks those
narratives across runs that share no stable identifier.

Subpackages:
- narrative_radar.core: settings, logging, errors, retry, anomaly engine
- narrative_radar.llm: provider protocol, OpenRouter transport, caller chain
- narrative_radar.narratives: data model, identity resolution, history
- narrative_radar.eval: calibration and model comparison over snapshots
- narrative_radar.pipeline: scoring and one narrative pass
- narrative_radar.cli: ``narrative-radar`` command
"""

__version__ = "0.1.0"
