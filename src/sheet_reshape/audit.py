"""Audit artifact persistence — reshape report + run manifest."""

from __future__ import annotations

from pathlib import Path

from sheet_reshape.io import write_json
from sheet_reshape.models import ReshapeReport, RunManifest

REPORT_FILENAME = "reshape_report.json"
MANIFEST_FILENAME = "run_manifest.json"


def write_reshape_report(out_dir: Path, report: ReshapeReport) -> Path:
    """Write ``reshape_report.json`` into *out_dir* and return the path."""
    return write_json(out_dir / REPORT_FILENAME, report.to_dict())


def write_run_manifest(out_dir: Path, manifest: RunManifest) -> Path:
    """Write ``run_manifest.json`` into *out_dir* and return the path."""
    return write_json(out_dir / MANIFEST_FILENAME, manifest.to_dict())
