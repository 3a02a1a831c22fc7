"""A1 range selectors and grid <-> table conversion."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

import pandas as pd
from openpyxl.utils import get_column_letter
from openpyxl.utils.cell import range_boundaries

Grid = list[list[Any]]

_CELLS_RE = re.compile(r"^\$?[A-Za-z]{1,3}\$?\d+$|.*:")


# ── Range selectors ─────────────────────────────────────────────


@dataclass(frozen=True)
class CellRange:
    """A parsed ``Sheet!A1:D20`` selector. Bounds are 1-based; ``None`` is open."""

    sheet: str | None = None
    min_col: int | None = None
    min_row: int | None = None
    max_col: int | None = None
    max_row: int | None = None

    @property
    def is_whole_sheet(self) -> bool:
        return all(b is None for b in (self.min_col, self.min_row, self.max_col, self.max_row))

    def a1(self) -> str:
        """Render the cell part (no sheet name), or ``""`` for a whole sheet."""
        if self.is_whole_sheet:
            return ""
        start = f"{_col(self.min_col or 1)}{self.min_row or 1}"
        end_col = _col(self.max_col) if self.max_col else ""
        end_row = str(self.max_row) if self.max_row else ""
        if not end_col and not end_row:
            return start
        if not end_col:
            end_col = _col(self.min_col or 1)
        return f"{start}:{end_col}{end_row}"

    def apply(self, grid: Sequence[Sequence[Any]]) -> Grid:
        """Cut the selected block out of a full-sheet *grid*."""
        row_start = (self.min_row or 1) - 1
        col_start = (self.min_col or 1) - 1
        rows = list(grid)[row_start:self.max_row]
        return [list(r)[col_start:self.max_col] for r in rows]


def _col(index: int | None) -> str:
    return get_column_letter(index) if index else ""


def _unquote_sheet(name: str) -> str:
    name = name.strip()
    if len(name) >= 2 and name.startswith("'") and name.endswith("'"):
        return name[1:-1].replace("''", "'")
    return name


def parse_range(selector: str | None) -> CellRange:
    """Parse ``"Sheet!A1:F20"``, ``"Sheet"``, ``"'My sheet'!B:D"`` or ``"A1:C10"``.

    Without ``!`` the selector is a cell range only when it is a single cell
    or contains ``:``; anything else is a sheet name. A sheet that looks like a
    cell (``Q1``) is selected with a trailing ``!`` (``"Q1!"``).

    Raises
    ------
    ValueError
        If the selector cannot be parsed.
    """
    if selector is None or not selector.strip():
        return CellRange()
    selector = selector.strip()

    if "!" in selector:
        sheet_part, cells = selector.rsplit("!", 1)
        sheet = _unquote_sheet(sheet_part)
        if not sheet:
            raise ValueError(f"Invalid range selector: {selector!r} (empty sheet name)")
        if not cells.strip():
            return CellRange(sheet=sheet)
        bounds = _boundaries(cells.strip(), selector)
        return CellRange(sheet, *bounds)

    # Bare letters ("Jul", "Q") name a sheet, not a whole column.
    if not _CELLS_RE.match(selector):
        return CellRange(sheet=_unquote_sheet(selector))
    try:
        bounds = range_boundaries(selector.replace("$", ""))
    except (ValueError, TypeError):
        return CellRange(sheet=_unquote_sheet(selector))
    return CellRange(None, *bounds)


def _boundaries(cells: str, selector: str) -> tuple[int | None, int | None, int | None, int | None]:
    try:
        min_col, min_row, max_col, max_row = range_boundaries(cells.replace("$", ""))
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Invalid range selector: {selector!r}") from exc
    return min_col, min_row, max_col, max_row


# ── Grid → table ────────────────────────────────────────────────


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _header_name(value: Any) -> str:
    if _is_missing(value):
        return ""
    return str(value).strip()


def infer_numeric_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Convert text columns whose every present value parses as a number."""
    df = df.copy()
    for col in df.columns:
        series = df[col]
        if pd.api.types.is_numeric_dtype(series) or pd.api.types.is_bool_dtype(series):
            continue
        present = series.dropna()
        if present.empty:
            continue
        if any(isinstance(v, bool) for v in present):
            continue
        converted = pd.to_numeric(series, errors="coerce")
        if int(converted.notna().sum()) == len(present):
            df[col] = converted
    return df


def grid_to_table(rows: Sequence[Sequence[Any]]) -> pd.DataFrame:
    """Build a rectangular table from a header row plus (possibly ragged) data rows.

    Trailing cells trimmed by the spreadsheet API are padded with ``None``.

    Raises
    ------
    ValueError
        On blank or duplicate header names, or data beyond the header width.
    """
    if not rows:
        return pd.DataFrame()

    header = [_header_name(h) for h in rows[0]]
    while header and header[-1] == "":
        header.pop()
    width = len(header)

    blank = [get_column_letter(i) for i, name in enumerate(header, 1) if name == ""]
    if blank:
        raise ValueError(f"Blank header in column(s): {', '.join(blank)}")
    duplicates = sorted({name for name in header if header.count(name) > 1})
    if duplicates:
        raise ValueError(f"Duplicate header(s): {', '.join(duplicates)}")

    records: Grid = []
    for row_no, raw in enumerate(rows[1:], start=2):
        cells = [None if _is_missing(v) else v for v in raw]
        if any(c is not None for c in cells[width:]):
            raise ValueError(f"Row {row_no} has values beyond the {width} header columns")
        cells = cells[:width]
        cells.extend([None] * (width - len(cells)))
        records.append(cells)

    df = pd.DataFrame(records, columns=header, dtype=object)
    return infer_numeric_columns(df).infer_objects()


# ── Table → grid ────────────────────────────────────────────────


def _grid_value(value: Any) -> Any:
    if _is_missing(value):
        return ""
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    item = getattr(value, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)):
            return converted
    if isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def table_to_grid(df: pd.DataFrame) -> Grid:
    """Return ``[header, *rows]`` with JSON-safe scalar cells."""
    grid: Grid = [[str(c) for c in df.columns]]
    for row in df.itertuples(index=False, name=None):
        grid.append([_grid_value(v) for v in row])
    return grid
