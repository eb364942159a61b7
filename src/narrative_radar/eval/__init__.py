"""Offline evaluation over stored snapshots: calibration and model comparison."""

from narrative_radar.eval.calibration import (
    CalibrationBucket,
    CalibrationReport,
    compute_calibration,
    run_calibration,
    write_calibration_report,
)
from narrative_radar.eval.compare import (
    ComparisonAnalysis,
    ModelComparison,
    compute_comparison,
    run_comparison,
)
from narrative_radar.eval.snapshots import Snapshot, load_snapshots, read_snapshot

__all__ = [
    "CalibrationBucket",
    "CalibrationReport",
    "compute_calibration",
    "run_calibration",
    "write_calibration_report",
    "ComparisonAnalysis",
    "ModelComparison",
    "compute_comparison",
    "run_comparison",
    "Snapshot",
    "load_snapshots",
    "read_snapshot",
]
