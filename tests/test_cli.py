"""CLI integration tests for sheet-reshape."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pandas as pd
from openpyxl import load_workbook
from typer.testing import CliRunner

import sheet_reshape.cli as cli_mod
from sheet_reshape.backends import FileBackend
from sheet_reshape.cli import app

runner = CliRunner()
EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"
WIDE_CSV = EXAMPLES_DIR / "market_share_wide.csv"
PROFILE = EXAMPLES_DIR / "market_share.profile"


def _read_json(path: Path) -> dict:  # type: ignore[type-arg]
    return json.loads(path.read_text(encoding="utf-8"))


def _melt_args(source: Path, out_dir: Path, *extra: str) -> list[str]:
    return [
        "melt", "--source", str(source), "--ids-first", "3",
        "--category", "Vendor", "--value", "Market Share",
        "--out-dir", str(out_dir), *extra,
    ]


def test_version_flag_prints_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "sheet-reshape v0.2.0" in result.output


def test_melt_writes_long_sheet_and_artifacts(tmp_path: Path) -> None:
    book = tmp_path / "book.xlsx"
    out_dir = tmp_path / "out"

    result = runner.invoke(app, _melt_args(WIDE_CSV, out_dir, "--dest", str(book), "--quiet"))

    assert result.exit_code == 0, result.output
    ws = load_workbook(book)["Long"]
    assert ws.max_row == 13
    assert [c.value for c in ws[1]] == ["Date", "Year", "Month", "Vendor", "Market Share"]
    assert [c.value for c in ws[2]] == ["2010-07", 2010, "Jul", "Apple", 30.1]
    assert ws["E11"].value is None

    report = _read_json(out_dir / "reshape_report.json")
    assert report["direction"] == "wide_to_long"
    assert report["rows_in"] == 4
    assert report["rows_out"] == 12
    assert report["categories"] == ["Apple", "Google", "Microsoft"]
    assert report["missing_cells"] == 1

    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["command"] == "melt"
    assert manifest["status"] == "success"
    assert manifest["sheet_name"] == "Long"
    assert manifest["destination"] == str(book)
    assert len(manifest["sha256"]) == 64


def test_pivot_restores_wide_sheet_in_same_workbook(tmp_path: Path) -> None:
    book = tmp_path / "book.xlsx"
    out_dir = tmp_path / "out"
    runner.invoke(app, _melt_args(WIDE_CSV, out_dir, "--dest", str(book), "--quiet"))

    result = runner.invoke(
        app,
        [
            "pivot", "--source", str(book), "--range", "Long",
            "--id", "Date", "--id", "Year", "--id", "Month",
            "--category", "Vendor", "--value", "Market Share",
            "--out-dir", str(out_dir), "--quiet",
        ],
    )

    assert result.exit_code == 0, result.output
    assert load_workbook(book).sheetnames == ["Long", "Wide"]
    restored = FileBackend().fetch_table(str(book), "Wide")
    original = FileBackend().fetch_table(str(WIDE_CSV))
    pd.testing.assert_frame_equal(restored, original)

    report = _read_json(out_dir / "reshape_report.json")
    assert report["direction"] == "long_to_wide"
    assert report["rows_in"] == 12
    assert report["rows_out"] == 4


def test_check_with_profile_prints_summary_without_writing(tmp_path: Path) -> None:
    source = tmp_path / "wide.csv"
    shutil.copy(WIDE_CSV, source)
    before = source.read_bytes()
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app, ["check", "--source", str(source), "--profile", str(PROFILE), "--out-dir", str(out_dir)]
    )

    assert result.exit_code == 0, result.output
    assert "Reshape Start" in result.output
    assert "Reshape Check" in result.output
    assert source.read_bytes() == before
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["command"] == "check melt"
    assert manifest["destination"] == ""
    assert _read_json(out_dir / "reshape_report.json")["identifier_columns"] == [
        "Date", "Year", "Month",
    ]


def test_cli_options_override_profile(tmp_path: Path) -> None:
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        [
            "check", "--source", str(WIDE_CSV), "--profile", str(PROFILE),
            "--id", "Date", "--out-dir", str(out_dir), "--quiet",
        ],
    )

    assert result.exit_code == 0, result.output
    report = _read_json(out_dir / "reshape_report.json")
    assert report["identifier_columns"] == ["Date"]
    assert report["categories"] == ["Year", "Month", "Apple", "Google", "Microsoft"]


def test_melt_prints_panels_when_not_quiet(tmp_path: Path) -> None:
    result = runner.invoke(
        app, _melt_args(WIDE_CSV, tmp_path / "out", "--dest", str(tmp_path / "long.csv"))
    )

    assert result.exit_code == 0, result.output
    assert "Reshape Start" in result.output
    assert "Reshape Complete" in result.output
    assert "Carried 1 empty measure cell" in result.output
    long = pd.read_csv(tmp_path / "long.csv")
    assert len(long) == 12


def test_unknown_identifier_exits_2_and_writes_failure_artifacts(tmp_path: Path) -> None:
    out_dir = tmp_path / "out"
    dest = tmp_path / "book.xlsx"

    result = runner.invoke(
        app,
        [
            "melt", "--source", str(WIDE_CSV), "--id", "Quarter",
            "--dest", str(dest), "--out-dir", str(out_dir), "--quiet",
        ],
    )

    assert result.exit_code == 2
    assert not dest.exists()
    report = _read_json(out_dir / "reshape_report.json")
    assert report["rows_in"] == 4
    assert report["rows_out"] == 0
    assert "Quarter" in report["warnings"][0]
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "failed"
    assert manifest["error_code"] == 2


def test_missing_identifier_selection_exits_2(tmp_path: Path) -> None:
    out_dir = tmp_path / "out"

    result = runner.invoke(app, ["check", "--source", str(WIDE_CSV), "--out-dir", str(out_dir)])

    assert result.exit_code == 2
    assert "No identifier columns given" in _read_json(out_dir / "run_manifest.json")["error_message"]


def test_pivot_duplicate_key_exits_2(tmp_path: Path) -> None:
    source = tmp_path / "long.csv"
    source.write_text("k,variable,value\nx,a,1\nx,a,2\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        ["pivot", "--source", str(source), "--id", "k", "--dest", str(tmp_path / "w.xlsx"),
         "--out-dir", str(out_dir), "--quiet"],
    )

    assert result.exit_code == 2
    assert "Duplicate entry" in _read_json(out_dir / "run_manifest.json")["error_message"]


def test_missing_source_exits_2(tmp_path: Path) -> None:
    out_dir = tmp_path / "out"

    result = runner.invoke(app, _melt_args(tmp_path / "nope.csv", out_dir, "--quiet"))

    assert result.exit_code == 2
    manifest = _read_json(out_dir / "run_manifest.json")
    assert "Cannot read" in manifest["error_message"]
    assert manifest["sha256"] == ""


def test_refuses_to_overwrite_source_csv(tmp_path: Path) -> None:
    source = tmp_path / "wide.csv"
    shutil.copy(WIDE_CSV, source)
    before = source.read_bytes()
    out_dir = tmp_path / "out"

    result = runner.invoke(app, _melt_args(source, out_dir, "--quiet"))

    assert result.exit_code == 2
    assert source.read_bytes() == before
    assert "Refusing to overwrite" in _read_json(out_dir / "run_manifest.json")["error_message"]


def test_bad_profile_exits_2(tmp_path: Path) -> None:
    profile = tmp_path / "bad.profile"
    profile.write_text("vendor=Apple\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app,
        ["check", "--source", str(WIDE_CSV), "--profile", str(profile), "--out-dir", str(out_dir)],
    )

    assert result.exit_code == 2
    assert (out_dir / "reshape_report.json").exists()
    assert "Unknown profile key" in _read_json(out_dir / "run_manifest.json")["error_message"]


def test_unexpected_error_exits_1(tmp_path: Path, monkeypatch) -> None:  # type: ignore[no-untyped-def]
    def _boom(*_args: object, **_kwargs: object) -> None:
        raise RuntimeError("kaboom")

    monkeypatch.setattr(cli_mod, "melt_with_report", _boom)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app, _melt_args(WIDE_CSV, out_dir, "--dest", str(tmp_path / "b.xlsx"), "--quiet")
    )

    assert result.exit_code == 1
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["error_code"] == 1
    assert "Unexpected internal error: kaboom" in manifest["error_message"]


def test_corrupt_workbook_source_exits_2_with_artifacts(tmp_path: Path) -> None:
    source = tmp_path / "bad.xlsx"
    source.write_bytes(b"not a zip")
    out_dir = tmp_path / "out"

    result = runner.invoke(
        app, _melt_args(source, out_dir, "--dest", str(tmp_path / "b.xlsx"), "--quiet")
    )

    assert result.exit_code == 2
    assert (out_dir / "reshape_report.json").exists()
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["status"] == "failed"
    assert "Cannot read" in manifest["error_message"]


def test_corrupt_workbook_destination_exits_2(tmp_path: Path) -> None:
    dest = tmp_path / "bad.xlsx"
    dest.write_bytes(b"not a zip")
    out_dir = tmp_path / "out"

    result = runner.invoke(app, _melt_args(WIDE_CSV, out_dir, "--dest", str(dest), "--quiet"))

    assert result.exit_code == 2
    manifest = _read_json(out_dir / "run_manifest.json")
    assert manifest["error_code"] == 2
    assert "Cannot write" in manifest["error_message"]
    assert dest.read_bytes() == b"not a zip"
