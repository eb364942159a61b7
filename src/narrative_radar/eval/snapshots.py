"""
Dated snapshot documents.

Each run writes one JSON document per calendar date, named ``YYYY-MM-DD.json``
under the reports directory. Offline evaluation reads them back; only the
narratives matter here, the signal payload is carried as an opaque mapping.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError

from narrative_radar.core.errors import ErrorContext, StorageError
from narrative_radar.core.logging import get_logger
from narrative_radar.narratives.models import BuildIdea, CamelModel, Narrative

logger = get_logger(__name__)

SNAPSHOT_NAME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}\.json$")


class Snapshot(CamelModel):
    """One dated report document."""

    date: str = ""
    generated_at: str | None = None
    narratives: list[Narrative] = Field(default_factory=list)
    build_ideas: list[BuildIdea] = Field(default_factory=list)
    signals: dict[str, Any] | None = None
    meta: dict[str, Any] | None = None


def snapshot_path(reports_dir: Path | str, date: str) -> Path:
    return Path(reports_dir) / f"{date}.json"


def read_snapshot(path: Path | str) -> Snapshot:
    """Read one snapshot; ``date`` defaults to the file stem.

    Raises:
        StorageError: The file is missing, not JSON, or not a snapshot.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        snapshot = Snapshot.model_validate(raw)
    except (OSError, ValueError, ValidationError) as e:
        raise StorageError(
            f"Cannot read snapshot {path}: {e}",
            context=ErrorContext(path=str(path)),
            cause=e,
        ) from e
    if not snapshot.date:
        snapshot.date = path.stem
    return snapshot


def load_snapshots(reports_dir: Path | str) -> list[Snapshot]:
    """All dated snapshots in ``reports_dir``, oldest first.

    Only ``YYYY-MM-DD.json`` files are considered. Corrupt files are logged
    and skipped; a missing directory yields an empty list.
    """
    reports_dir = Path(reports_dir)
    if not reports_dir.is_dir():
        logger.warning("snapshots.dir_missing", reports_dir=str(reports_dir))
        return []

    snapshots: list[Snapshot] = []
    for path in sorted(p for p in reports_dir.iterdir() if SNAPSHOT_NAME_RE.match(p.name)):
        try:
            snapshot = read_snapshot(path)
        except StorageError as e:
            logger.warning("snapshots.skipped_corrupt", path=str(path), error=str(e.cause or e))
            continue
        # File name is authoritative for ordering.
        snapshot.date = path.stem
        snapshots.append(snapshot)

    logger.debug("snapshots.loaded", reports_dir=str(reports_dir), count=len(snapshots))
    return snapshots


def write_json(data: Any, path: Path | str) -> Path:
    """Write ``data`` as indented JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


def write_snapshot(snapshot: Snapshot, reports_dir: Path | str) -> Path:
    return write_json(snapshot.to_json_dict(), snapshot_path(reports_dir, snapshot.date))
