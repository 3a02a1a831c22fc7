"""CLI entry point for sheet-reshape."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import NoReturn

import pandas as pd
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table as RichTable

from sheet_reshape import DEFAULT_CATEGORY_NAME, DEFAULT_VALUE_NAME, __version__
from sheet_reshape.audit import write_reshape_report, write_run_manifest
from sheet_reshape.backends import FileBackend, backend_for
from sheet_reshape.errors import BackendError, ReshapeError
from sheet_reshape.models import Direction, ReshapeReport, RunManifest
from sheet_reshape.profile import ReshapeOptions, load_profile
from sheet_reshape.reshape import melt_with_report, pivot_with_report, resolve_identifier_columns
from sheet_reshape.utils import local_sha256, utcnow_iso

app = typer.Typer(
    name="sreshape",
    help="sheet-reshape — Reshape spreadsheet tables between wide and long form.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


class BackendOption(str, Enum):
    auto = "auto"
    file = "file"
    gsheets = "gsheets"


class DirectionOption(str, Enum):
    melt = "melt"
    pivot = "pivot"


_DIRECTIONS: dict[str, Direction] = {"melt": "wide_to_long", "pivot": "long_to_wide"}
_DEFAULT_SHEETS = {"melt": "Long", "pivot": "Wide"}


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {escape(msg)}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sheet-reshape v{__version__}")
        raise typer.Exit()


@dataclass
class _Run:
    """Everything needed to write the audit artifacts of one invocation."""

    command: str
    out_dir: Path
    source: str
    destination: str
    created_at: str
    range_selector: str = ""
    sheet_name: str = ""

    def manifest(
        self,
        report: ReshapeReport,
        *,
        status: str = "success",
        error_code: int | None = None,
        error_message: str = "",
    ) -> Path:
        manifest = RunManifest(
            version=__version__,
            run_id=self.created_at,
            command=self.command,
            source=self.source,
            range_selector=self.range_selector,
            destination=self.destination,
            sheet_name=self.sheet_name,
            created_at_utc=self.created_at,
            rows_in=report.rows_in,
            rows_out=report.rows_out,
            sha256=local_sha256(self.source),
            status=status,
            error_code=error_code,
            error_message=error_message,
        )
        return write_run_manifest(self.out_dir, manifest)

    def fail(
        self, message: str, *, direction: Direction, rows_in: int = 0, code: int = 2
    ) -> NoReturn:
        """Write failure artifacts, report the error and exit with *code*."""
        report = ReshapeReport(direction=direction, rows_in=rows_in, rows_out=0, warnings=[message])
        report_path = write_reshape_report(self.out_dir, report)
        manifest_path = self.manifest(
            report, status="failed", error_code=code, error_message=message
        )
        _err(message)
        console.print(f"  Report   -> {report_path}")
        console.print(f"  Manifest -> {manifest_path}")
        raise typer.Exit(code=code)


def _identifier_columns(table: pd.DataFrame, options: ReshapeOptions) -> list[str]:
    if options.ids is None and options.ids_first is None:
        raise ValueError("No identifier columns given: pass --id (repeatable) or --ids-first N")
    return resolve_identifier_columns(
        [str(c) for c in table.columns], names=options.ids, leading=options.ids_first
    )


def _same_csv(source: str, destination: str) -> bool:
    src, dst = Path(source), Path(destination)
    return dst.suffix.lower() == ".csv" and src.exists() and src.resolve() == dst.resolve()


def _execute(
    operation: str,
    *,
    source: str,
    destination: str | None,
    cli_options: ReshapeOptions,
    profile: Path | None,
    backend: BackendOption,
    delimiter: str | None,
    out_dir: Path,
    quiet: bool,
    write_output: bool,
    command: str,
) -> None:
    echo = _printer(quiet)
    direction = _DIRECTIONS[operation]
    out_dir.mkdir(parents=True, exist_ok=True)
    run = _Run(
        command=command,
        out_dir=out_dir,
        source=source,
        destination=(destination or source) if write_output else "",
        created_at=utcnow_iso(),
    )
    try:
        options = cli_options.override(load_profile(profile))
    except ValueError as exc:
        run.fail(str(exc), direction=direction)
    run.range_selector = options.range or ""
    if write_output:
        run.sheet_name = options.sheet or _DEFAULT_SHEETS[operation]
    category = options.category or DEFAULT_CATEGORY_NAME
    value = options.value or DEFAULT_VALUE_NAME

    if not quiet:
        target = escape(f"{run.destination} [{run.sheet_name}]") if write_output else "(dry run)"
        console.print(Panel(
            f"[bold]sheet-reshape[/bold] v{__version__}  [dim]{operation}[/dim]\n"
            f"Source: {escape(source)} {escape(run.range_selector)}\nOutput: {target}",
            title="Reshape Start", border_style="blue",
        ))

    # ── Load ─────────────────────────────────────────────────────
    echo("[blue]>[/blue] Loading source table …")
    try:
        source_backend = backend_for(source, backend.value)
        if isinstance(source_backend, FileBackend):
            source_backend.delimiter = delimiter
        table = source_backend.fetch_table(source, options.range)
    except (BackendError, ValueError) as exc:
        run.fail(str(exc), direction=direction)

    echo(f"  {len(table)} rows x {len(table.columns)} columns")

    try:
        # ── Reshape ──────────────────────────────────────────────
        try:
            ids = _identifier_columns(table, options)
            if operation == "melt":
                echo("[blue]>[/blue] Reshaping wide -> long …")
                result, report = melt_with_report(table, ids, category, value)
            else:
                echo("[blue]>[/blue] Reshaping long -> wide …")
                result, report = pivot_with_report(table, ids, category, value)
        except (ReshapeError, ValueError, TypeError) as exc:
            run.fail(str(exc), direction=direction, rows_in=len(table))

        report_path = write_reshape_report(out_dir, report)
        echo(f"  Identifiers: {', '.join(report.identifier_columns) or 'none'}")
        if not quiet:
            for w in report.warnings:
                console.print(f"  [yellow]![/yellow] {escape(w)}")
        echo(f"  {report.rows_in} rows -> {report.rows_out} rows")
        echo(f"  Report -> {report_path}")

        # ── Write ────────────────────────────────────────────────
        if write_output:
            if _same_csv(source, run.destination):
                run.fail(
                    "Refusing to overwrite the source CSV; pass --dest",
                    direction=direction, rows_in=len(table),
                )
            echo(f"[blue]>[/blue] Writing sheet {run.sheet_name!r} …")
            try:
                sink = backend_for(run.destination, backend.value)
                sink.persist_table(run.destination, run.sheet_name, result)
            except (BackendError, ValueError) as exc:
                run.fail(str(exc), direction=direction, rows_in=len(table))

        manifest_path = run.manifest(report)
        echo(f"  Manifest -> {manifest_path}")

        if not write_output and not quiet:
            _print_check_summary(report, result)
        elif not quiet:
            console.print(Panel(
                f"[green]Done[/green] — {report.rows_out} rows -> "
                f"{escape(f'{run.destination} [{run.sheet_name}]')}",
                title="Reshape Complete", border_style="green",
            ))
    except typer.Exit:
        raise
    except Exception as exc:
        run.fail(
            f"Unexpected internal error: {exc}", direction=direction, rows_in=len(table), code=1
        )


def _print_check_summary(report: ReshapeReport, result: pd.DataFrame) -> None:
    tbl = RichTable(title="Reshape Check", show_lines=True)
    tbl.add_column("Check", style="bold")
    tbl.add_column("Result")

    tbl.add_row("Direction", report.direction)
    tbl.add_row("Rows in", str(report.rows_in))
    tbl.add_row("Rows out", str(report.rows_out))
    tbl.add_row("Identifiers", ", ".join(report.identifier_columns) or "none")
    tbl.add_row("Categories", ", ".join(report.categories) or "none")
    tbl.add_row("Output columns", ", ".join(str(c) for c in result.columns))
    tbl.add_row("Missing cells", str(report.missing_cells))
    for w in report.warnings:
        tbl.add_row("Warning", f"[yellow]{escape(w)}[/yellow]")
    tbl.add_row("Status", "[green]PASS[/green]")
    console.print(tbl)


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """sheet-reshape CLI."""


# ── Shared options ───────────────────────────────────────────────

_SOURCE = typer.Option(
    ..., "--source", "-s",
    help="Source table: .csv/.xlsx path, Google Sheets URL, or spreadsheet key.",
)
_RANGE = typer.Option(
    None, "--range", "-r",
    help="Cell range to read, e.g. 'Market Share!A1:F200' or 'Sheet1'.",
)
_IDS = typer.Option(
    None, "--id", "-k",
    help="Identifier column kept as-is (repeatable). E.g. --id Date --id Year",
)
_IDS_FIRST = typer.Option(
    None, "--ids-first",
    help="Treat the first N columns as identifiers (instead of --id).",
    min=0,
)
_PROFILE = typer.Option(
    None, "--profile",
    help="Profile file with saved options (key=value lines).",
)
_BACKEND = typer.Option(
    BackendOption.auto, "--backend",
    help="Storage backend: auto, file, or gsheets.",
)
_DELIMITER = typer.Option(
    None, "--delimiter",
    help="CSV delimiter (sniffed when omitted).",
)
_OUT_DIR = typer.Option(
    Path("output"), "--out-dir", "-o",
    help="Output directory for reshape report + manifest.",
)


# ── melt command ─────────────────────────────────────────────────


@app.command()
def melt(
    source: str = _SOURCE,
    range_selector: str | None = _RANGE,
    dest: str | None = typer.Option(
        None, "--dest", "-d",
        help="Destination: .xlsx/.csv path or Google Sheets URL/key (default: source).",
    ),
    sheet: str | None = typer.Option(
        None, "--sheet",
        help="Destination sheet name (created if absent). Default: Long.",
    ),
    ids: list[str] | None = _IDS,
    ids_first: int | None = _IDS_FIRST,
    category: str | None = typer.Option(
        None, "--category", "-c",
        help=f"Name of the new category column. Default: {DEFAULT_CATEGORY_NAME}.",
    ),
    value: str | None = typer.Option(
        None, "--value", "-v",
        help=f"Name of the new value column. Default: {DEFAULT_VALUE_NAME}.",
    ),
    profile: Path | None = _PROFILE,
    backend: BackendOption = _BACKEND,
    delimiter: str | None = _DELIMITER,
    out_dir: Path = _OUT_DIR,
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Reshape a wide table into long form and write it to a sheet."""
    cli_options = ReshapeOptions(
        ids=list(ids) if ids else None, ids_first=ids_first, category=category,
        value=value, sheet=sheet, range=range_selector,
    )
    _execute(
        "melt",
        source=source, destination=dest, cli_options=cli_options, profile=profile,
        backend=backend, delimiter=delimiter, out_dir=out_dir, quiet=quiet,
        write_output=True, command="melt",
    )


# ── pivot command ────────────────────────────────────────────────


@app.command()
def pivot(
    source: str = _SOURCE,
    range_selector: str | None = _RANGE,
    dest: str | None = typer.Option(
        None, "--dest", "-d",
        help="Destination: .xlsx/.csv path or Google Sheets URL/key (default: source).",
    ),
    sheet: str | None = typer.Option(
        None, "--sheet",
        help="Destination sheet name (created if absent). Default: Wide.",
    ),
    ids: list[str] | None = _IDS,
    ids_first: int | None = _IDS_FIRST,
    category: str | None = typer.Option(
        None, "--category", "-c",
        help=f"Column holding category labels. Default: {DEFAULT_CATEGORY_NAME}.",
    ),
    value: str | None = typer.Option(
        None, "--value", "-v",
        help=f"Column holding values. Default: {DEFAULT_VALUE_NAME}.",
    ),
    profile: Path | None = _PROFILE,
    backend: BackendOption = _BACKEND,
    delimiter: str | None = _DELIMITER,
    out_dir: Path = _OUT_DIR,
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Reshape a long table back into wide form and write it to a sheet."""
    cli_options = ReshapeOptions(
        ids=list(ids) if ids else None, ids_first=ids_first, category=category,
        value=value, sheet=sheet, range=range_selector,
    )
    _execute(
        "pivot",
        source=source, destination=dest, cli_options=cli_options, profile=profile,
        backend=backend, delimiter=delimiter, out_dir=out_dir, quiet=quiet,
        write_output=True, command="pivot",
    )


# ── check command ────────────────────────────────────────────────


@app.command()
def check(
    source: str = _SOURCE,
    direction: DirectionOption = typer.Option(
        DirectionOption.melt, "--direction",
        help="Which reshape to check: melt (wide->long) or pivot (long->wide).",
    ),
    range_selector: str | None = _RANGE,
    ids: list[str] | None = _IDS,
    ids_first: int | None = _IDS_FIRST,
    category: str | None = typer.Option(
        None, "--category", "-c",
        help="Category column name.",
    ),
    value: str | None = typer.Option(
        None, "--value", "-v",
        help="Value column name.",
    ),
    profile: Path | None = _PROFILE,
    backend: BackendOption = _BACKEND,
    delimiter: str | None = _DELIMITER,
    out_dir: Path = _OUT_DIR,
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes report + manifest.",
    ),
) -> None:
    """Run a reshape without writing the table.

    Writes reshape_report.json + run_manifest.json only.
    Exit 0 = OK, exit 2 = contract failure.
    """
    cli_options = ReshapeOptions(
        ids=list(ids) if ids else None, ids_first=ids_first, category=category,
        value=value, sheet=None, range=range_selector,
    )
    _execute(
        direction.value,
        source=source, destination=None, cli_options=cli_options, profile=profile,
        backend=backend, delimiter=delimiter, out_dir=out_dir, quiet=quiet,
        write_output=False, command=f"check {direction.value}",
    )
