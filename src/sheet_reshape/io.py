"""I/O helpers — load local tables, write CSV tables and JSON artifacts."""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Literal

import pandas as pd
from openpyxl import load_workbook

from sheet_reshape.ranges import Grid

CSV_SUFFIXES = (".csv",)
EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")

# ── Loading ──────────────────────────────────────────────────────


def _require_file(path: Path) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.is_dir():
        raise ValueError(f"Input path is a directory, not a file: {path}")
    return path


def load_table(path: Path, delimiter: str | None = None) -> pd.DataFrame:
    """Load a CSV file as an all-string DataFrame.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If *path* is a directory, the extension is not ``.csv``, or
        decoding/parsing fails for every supported encoding.
    """
    path = _require_file(path)

    suffix = path.suffix.lower()
    if suffix not in CSV_SUFFIXES:
        raise ValueError(f"Unsupported file type: {suffix!r}. Use .csv or .xlsx")

    last_exc: Exception | None = None
    sep = delimiter if delimiter else None
    engine: Literal["c", "python"] = "c" if delimiter else "python"
    for encoding in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            return pd.read_csv(
                path,
                dtype="string",
                sep=sep,
                engine=engine,
                encoding=encoding,
                encoding_errors="strict",
                na_filter=True,
                keep_default_na=True,
            )
        except (UnicodeDecodeError, pd.errors.ParserError) as exc:
            last_exc = exc
    raise ValueError(f"Could not read CSV {path} (decode or parse failed)") from last_exc


def read_csv_grid(path: Path, delimiter: str | None = None) -> Grid:
    """Return a CSV file as ``[header, *rows]``."""
    df = load_table(path, delimiter=delimiter)
    return [list(df.columns), *(list(row) for row in df.itertuples(index=False, name=None))]


def read_workbook_grid(path: Path, sheet_name: str | None = None) -> Grid:
    """Return the cell values of one workbook sheet (default: the first).

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the extension is not an Excel workbook or the sheet is missing.
    """
    path = _require_file(path)
    suffix = path.suffix.lower()
    if suffix not in EXCEL_SUFFIXES:
        raise ValueError(f"Unsupported file type: {suffix!r}. Use .csv or .xlsx")

    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        if sheet_name is None:
            ws = wb.worksheets[0]
        elif sheet_name in wb.sheetnames:
            ws = wb[sheet_name]
        else:
            raise ValueError(
                f"Sheet {sheet_name!r} not found in {path.name} "
                f"(available: {', '.join(wb.sheetnames)})"
            )
        return [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


# ── Writing ──────────────────────────────────────────────────────


def write_table_csv(path: Path, df: pd.DataFrame) -> Path:
    """Write *df* as UTF-8 CSV to *path* (atomic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    df.to_csv(tmp_path, index=False, encoding="utf-8")
    tmp_path.replace(path)
    return path


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
