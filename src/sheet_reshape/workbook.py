"""Excel sheet writer — puts a reshaped table into a named workbook sheet."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any, cast

import pandas as pd
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)
VALUE_FONT = Font(name="Calibri", size=11)

DATE_FMT = 'yyyy-mm-dd'
# Excel sheet titles: max 31 chars, none of []:*?/\
_INVALID_TITLE_RE = re.compile(r"[\[\]:*?/\\]")
_MAX_TITLE_LEN = 31

_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")


# ── Helpers ──────────────────────────────────────────────────────


def validate_sheet_title(name: str) -> str:
    """Return *name* if it is a legal Excel sheet title, else raise ``ValueError``."""
    if not name or not name.strip():
        raise ValueError("Sheet name must not be empty")
    if len(name) > _MAX_TITLE_LEN:
        raise ValueError(f"Sheet name {name!r} is longer than {_MAX_TITLE_LEN} characters")
    if _INVALID_TITLE_RE.search(name):
        raise ValueError(f"Sheet name {name!r} contains one of []:*?/\\")
    return name


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            cell = row[0]
            width = max(width, len(str(cell.value or "")))
        width += 4
        ws.column_dimensions[letter].width = min(width, 30)


def _apply_date_formats(ws: Worksheet, df: pd.DataFrame) -> None:
    if ws.max_row < 2:
        return
    for c_idx, name in enumerate(df.columns, 1):
        if not pd.api.types.is_datetime64_any_dtype(df[name]):
            continue
        for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=c_idx, max_col=c_idx):
            for cell in row:
                cell.number_format = DATE_FMT


def _excel_value(val: Any) -> Any:
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return val

    if isinstance(val, pd.Timestamp):
        dt = val.to_pydatetime()
        return dt.replace(tzinfo=None) if dt.tzinfo else dt

    if isinstance(val, datetime) and val.tzinfo:
        return val.replace(tzinfo=None)

    item = getattr(val, "item", None)
    if callable(item) and not isinstance(val, str):
        val = item()

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"

    return val


def _fill_sheet(ws: Worksheet, df: pd.DataFrame) -> None:
    col_names = [str(c) for c in df.columns]

    if not col_names:
        ws.cell(row=1, column=1, value="No data").font = VALUE_FONT
        ws.column_dimensions["A"].width = 18
        return

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))
    _apply_date_formats(ws, df)
    ws.freeze_panes = "A2"
    if len(df) > 0:
        ws.auto_filter.ref = ws.dimensions
    _auto_width(ws)


# ── Public API ───────────────────────────────────────────────────


def write_sheet(path: Path, sheet_name: str, df: pd.DataFrame) -> Path:
    """Write *df* into *sheet_name* of the workbook at *path* and return the path.

    The workbook is created if absent. An existing sheet with the same name is
    replaced in place; other sheets are kept.
    """
    validate_sheet_title(sheet_name)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.exists():
        wb = load_workbook(path)
        position = None
        if sheet_name in wb.sheetnames:
            position = wb.sheetnames.index(sheet_name)
            wb.remove(wb[sheet_name])
        ws = wb.create_sheet(title=sheet_name, index=position)
    else:
        wb = Workbook()
        ws = cast(Worksheet, wb.active)
        ws.title = sheet_name

    _fill_sheet(ws, df)

    tmp_path = path.with_name(f"{path.stem}.tmp{path.suffix}")
    wb.save(tmp_path)
    tmp_path.replace(path)
    return path
