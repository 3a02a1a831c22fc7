"""Table sources and sinks — local files and Google Sheets.

Both backends expose the same two calls:

* ``fetch_table(location, range_selector)`` returns a rectangular table.
* ``persist_table(destination, sheet_name, table)`` writes it to a named
  sheet, creating the destination/sheet when absent.

Every failure inside a backend surfaces as :class:`SourceUnavailable` or
:class:`SinkUnavailable` with the original exception chained.
"""

from __future__ import annotations

import json
import os
import re
import zipfile
from pathlib import Path
from typing import Any, Protocol

import gspread
import pandas as pd
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from openpyxl.utils.exceptions import InvalidFileException

from sheet_reshape.errors import SinkUnavailable, SourceUnavailable
from sheet_reshape.io import (
    CSV_SUFFIXES,
    read_csv_grid,
    read_workbook_grid,
    write_table_csv,
)
from sheet_reshape.ranges import grid_to_table, parse_range, table_to_grid
from sheet_reshape.workbook import write_sheet

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]
ENV_SERVICE_ACCOUNT = "GOOGLE_SERVICE_ACCOUNT"
ENV_SERVICE_ACCOUNT_FILE = "GOOGLE_SERVICE_ACCOUNT_FILE"

_SHEETS_URL_RE = re.compile(r"https://docs\.google\.com/spreadsheets/d/([A-Za-z0-9_-]+)")
_SHEETS_KEY_RE = re.compile(r"^[A-Za-z0-9_-]{25,}$")

# .xlsm/.xltx/.xltm are readable sources only; saving drops macros and template type.
WORKBOOK_SINK_SUFFIXES = (".xlsx",)
_FILE_ERRORS = (OSError, ValueError, zipfile.BadZipFile, InvalidFileException)


class TableSource(Protocol):
    def fetch_table(self, location: str, range_selector: str | None = None) -> pd.DataFrame: ...


class TableSink(Protocol):
    def persist_table(self, destination: str, sheet_name: str, table: pd.DataFrame) -> None: ...


# ── Local files ──────────────────────────────────────────────────


class FileBackend:
    """CSV and Excel workbooks on the local filesystem."""

    def __init__(self, delimiter: str | None = None) -> None:
        self.delimiter = delimiter

    def fetch_table(self, location: str, range_selector: str | None = None) -> pd.DataFrame:
        path = Path(location)
        try:
            cell_range = parse_range(range_selector)
            if path.suffix.lower() in CSV_SUFFIXES:
                grid = read_csv_grid(path, delimiter=self.delimiter)
            else:
                grid = read_workbook_grid(path, cell_range.sheet)
            return grid_to_table(cell_range.apply(grid))
        except _FILE_ERRORS as exc:
            raise SourceUnavailable(f"Cannot read {path}: {exc}") from exc

    def persist_table(self, destination: str, sheet_name: str, table: pd.DataFrame) -> None:
        path = Path(destination)
        suffix = path.suffix.lower()
        try:
            if suffix in CSV_SUFFIXES:
                write_table_csv(path, table)
            elif suffix in WORKBOOK_SINK_SUFFIXES:
                write_sheet(path, sheet_name, table)
            else:
                raise ValueError(f"Unsupported destination type: {suffix!r}. Use .csv or .xlsx")
        except _FILE_ERRORS as exc:
            raise SinkUnavailable(f"Cannot write {path}: {exc}") from exc


# ── Google Sheets ────────────────────────────────────────────────


def spreadsheet_key(location: str) -> str | None:
    """Return the spreadsheet key of a Sheets URL or bare key, else ``None``."""
    match = _SHEETS_URL_RE.match(location.strip())
    if match:
        return match.group(1)
    if _SHEETS_KEY_RE.match(location.strip()) and not Path(location).suffix:
        return location.strip()
    return None


def load_credentials(env: dict[str, str] | None = None) -> Credentials:
    """Build service-account credentials from the environment.

    ``GOOGLE_SERVICE_ACCOUNT`` (inline JSON) wins over
    ``GOOGLE_SERVICE_ACCOUNT_FILE`` (path to a key file).

    Raises
    ------
    ValueError
        If neither variable is usable.
    """
    env = dict(os.environ) if env is None else env
    inline = env.get(ENV_SERVICE_ACCOUNT)
    if inline:
        try:
            info = json.loads(inline)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid service account JSON in {ENV_SERVICE_ACCOUNT}") from exc
        return Credentials.from_service_account_info(info, scopes=SCOPES)

    key_file = env.get(ENV_SERVICE_ACCOUNT_FILE)
    if key_file and Path(key_file).is_file():
        return Credentials.from_service_account_file(key_file, scopes=SCOPES)

    raise ValueError(
        f"No service account configured: set {ENV_SERVICE_ACCOUNT} or {ENV_SERVICE_ACCOUNT_FILE}"
    )


class GoogleSheetsBackend:
    """Spreadsheets reached through ``gspread``; locations are keys or URLs."""

    def __init__(self, client: gspread.Client | None = None) -> None:
        self._client = client

    @property
    def client(self) -> gspread.Client:
        if self._client is None:
            self._client = gspread.authorize(load_credentials())
        return self._client

    def _open(self, location: str) -> gspread.Spreadsheet:
        key = spreadsheet_key(location)
        if key is None:
            raise ValueError(f"Not a Google Sheets key or URL: {location!r}")
        return self.client.open_by_key(key)

    def fetch_table(self, location: str, range_selector: str | None = None) -> pd.DataFrame:
        try:
            cell_range = parse_range(range_selector)
            spreadsheet = self._open(location)
            if cell_range.sheet is None:
                worksheet = spreadsheet.sheet1
            else:
                worksheet = spreadsheet.worksheet(cell_range.sheet)
            cells = cell_range.a1() or None
            values: Any = worksheet.get(
                cells, value_render_option=gspread.utils.ValueRenderOption.unformatted
            )
            return grid_to_table([list(row) for row in values])
        except (gspread.exceptions.GSpreadException, GoogleAuthError, OSError, ValueError) as exc:
            raise SourceUnavailable(f"Cannot read {location} {range_selector or ''}: {exc}") from exc

    def persist_table(self, destination: str, sheet_name: str, table: pd.DataFrame) -> None:
        grid = table_to_grid(table)
        rows, cols = len(grid), max(len(grid[0]), 1)
        try:
            spreadsheet = self._open(destination)
            try:
                worksheet = spreadsheet.worksheet(sheet_name)
                worksheet.clear()
                if worksheet.row_count < rows or worksheet.col_count < cols:
                    worksheet.resize(rows=max(rows, worksheet.row_count),
                                     cols=max(cols, worksheet.col_count))
            except gspread.exceptions.WorksheetNotFound:
                worksheet = spreadsheet.add_worksheet(title=sheet_name, rows=rows, cols=cols)
            worksheet.update(
                values=grid, range_name="A1",
                value_input_option=gspread.utils.ValueInputOption.raw,
            )
        except (gspread.exceptions.GSpreadException, GoogleAuthError, OSError, ValueError) as exc:
            raise SinkUnavailable(f"Cannot write {destination} / {sheet_name}: {exc}") from exc


# ── Selection ────────────────────────────────────────────────────


def backend_for(location: str, kind: str = "auto") -> FileBackend | GoogleSheetsBackend:
    """Pick a backend for *location*: ``auto``, ``file`` or ``gsheets``."""
    if kind == "file":
        return FileBackend()
    if kind == "gsheets":
        return GoogleSheetsBackend()
    if kind != "auto":
        raise ValueError(f"Unknown backend: {kind!r}. Use auto, file, or gsheets.")
    if spreadsheet_key(location) is not None:
        return GoogleSheetsBackend()
    return FileBackend()
