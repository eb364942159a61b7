"""
CLI layer for narrative-radar.

Terminal transport only: argument parsing, coloured output and tables.
The work is done by ``narrative_radar.eval`` and ``narrative_radar.narratives``.

Entry point::

    narrative-radar calibrate --reports-dir ./reports
"""

from narrative_radar.cli.app import app

__all__ = ["app"]
