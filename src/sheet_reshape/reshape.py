"""Wide <-> long reshaping — pure functions, no side effects."""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import Any

import pandas as pd

from sheet_reshape import DEFAULT_CATEGORY_NAME, DEFAULT_VALUE_NAME
from sheet_reshape.errors import ColumnNotFound, DuplicateKey, EmptyMeasureSet, NameCollision
from sheet_reshape.models import ReshapeReport

# ── Column selection ────────────────────────────────────────────


def resolve_identifier_columns(
    columns: Sequence[str],
    names: Sequence[str] | None = None,
    leading: int | None = None,
) -> list[str]:
    """Resolve the identifier columns once against the table's current columns.

    Either pass explicit *names* or the number of *leading* columns that act
    as identifiers (e.g. ``leading=3`` for a Date/Year/Month prefix).
    """
    if (names is None) == (leading is None):
        raise ValueError("Specify exactly one of identifier names or a leading column count")
    if names is not None:
        if isinstance(names, str):
            raise TypeError("identifier names must be a sequence of strings")
        return list(names)
    if isinstance(leading, bool) or not isinstance(leading, int):
        raise TypeError("leading column count must be an integer")
    if leading < 0 or leading > len(columns):
        raise ValueError(f"leading column count must be between 0 and {len(columns)}, got {leading}")
    return list(columns)[:leading]


# ── Validation helpers ──────────────────────────────────────────


def _check_unique_columns(df: pd.DataFrame) -> None:
    duplicated = df.columns[df.columns.duplicated()]
    if len(duplicated):
        raise NameCollision(
            [str(c) for c in dict.fromkeys(duplicated)], "table has duplicate column names"
        )


def _check_unique_identifiers(ids: list[str]) -> None:
    repeated = [name for name in dict.fromkeys(ids) if ids.count(name) > 1]
    if repeated:
        raise NameCollision(repeated, "identifier column listed more than once")


def _require_columns(df: pd.DataFrame, names: Sequence[Hashable]) -> None:
    missing = [str(n) for n in names if n not in df.columns]
    if missing:
        raise ColumnNotFound(missing, [str(c) for c in df.columns])


def _check_new_names(ids: list[str], category: Hashable, value: Hashable) -> None:
    if category == value:
        raise NameCollision([str(category)], "category and value columns need distinct names")
    clashing = [str(n) for n in (category, value) if n in ids]
    if clashing:
        raise NameCollision(clashing, "already used as an identifier column")


# ── Wide → long ─────────────────────────────────────────────────


def widen_to_long(
    table: pd.DataFrame,
    identifier_columns: Sequence[str],
    category_name: str = DEFAULT_CATEGORY_NAME,
    value_name: str = DEFAULT_VALUE_NAME,
) -> pd.DataFrame:
    """Collapse every non-identifier column into ``(category, value)`` rows.

    Output rows follow the input row order and, within a row, the
    left-to-right order of the measure columns. Missing cells are kept.

    Raises
    ------
    ColumnNotFound
        An identifier column is absent from *table*.
    NameCollision
        *category_name* / *value_name* clash with an identifier or each
        other, or the table/identifier list repeats a name.
    EmptyMeasureSet
        Every column is an identifier.
    """
    ids = list(identifier_columns)
    _check_unique_columns(table)
    _check_unique_identifiers(ids)
    _require_columns(table, ids)
    _check_new_names(ids, category_name, value_name)

    id_set = set(ids)
    measures = [c for c in table.columns if c not in id_set]
    if not measures:
        raise EmptyMeasureSet(ids)

    frame = table.reset_index(drop=True)
    n_rows, n_measures = len(frame), len(measures)

    long = frame.loc[frame.index.repeat(n_measures), ids].reset_index(drop=True)
    long[category_name] = pd.Series(list(measures) * n_rows, dtype=object)

    # Row-major flattening: row 0 measures left to right, then row 1, ...
    flat = frame[measures].to_numpy(dtype=object).reshape(-1)
    dtypes = {frame[c].dtype for c in measures}
    value_dtype: Any = dtypes.pop() if len(dtypes) == 1 else object
    long[value_name] = pd.Series(flat, dtype=value_dtype)
    return long


# ── Long → wide ─────────────────────────────────────────────────


def lengthen_to_wide(
    table: pd.DataFrame,
    identifier_columns: Sequence[str],
    category_column: str = DEFAULT_CATEGORY_NAME,
    value_column: str = DEFAULT_VALUE_NAME,
) -> pd.DataFrame:
    """Spread ``(category, value)`` rows back into one column per category.

    One output row per distinct identifier tuple (first-appearance order);
    category columns follow first-seen label order. Absent combinations are
    filled with a missing marker.

    Raises
    ------
    ColumnNotFound
        An identifier, category or value column is absent.
    NameCollision
        The category/value column is also an identifier, or a category label
        equals an identifier column name.
    DuplicateKey
        An ``(identifiers, category)`` pair occurs more than once.
    """
    ids = list(identifier_columns)
    _check_unique_columns(table)
    _check_unique_identifiers(ids)
    _require_columns(table, [*ids, category_column, value_column])
    _check_new_names(ids, category_column, value_column)

    frame = table.reset_index(drop=True)
    col_codes, uniques = pd.factorize(frame[category_column], sort=False, use_na_sentinel=False)
    categories = list(uniques)

    clashing = [str(label) for label in categories if label in ids]
    if clashing:
        raise NameCollision(clashing, "category label matches an identifier column")

    duplicated = frame.duplicated(subset=[*ids, category_column], keep="first")
    if duplicated.any():
        offending = frame.loc[duplicated.idxmax()]
        raise DuplicateKey(tuple(offending[c] for c in ids), offending[category_column])

    if frame.empty:
        return frame.loc[:, ids].reset_index(drop=True)

    if ids:
        row_codes = frame.groupby(ids, sort=False, dropna=False).ngroup().to_numpy()
    else:
        row_codes = pd.Series(0, index=frame.index).to_numpy()
    first_seen = ~pd.Series(row_codes).duplicated().to_numpy()
    keys = frame.loc[first_seen, ids].reset_index(drop=True)

    # Codes are dense and numbered in first-seen order, so the sorted unstack
    # keeps both row and column order.
    cells = frame[value_column].set_axis(pd.MultiIndex.from_arrays([row_codes, col_codes]))
    grid = cells.unstack()
    grid = grid.reset_index(drop=True)
    if frame[value_column].dtype == object:
        grid = grid.infer_objects()

    wide = pd.concat([keys, grid], axis=1) if ids else grid
    wide.columns = pd.Index([*ids, *categories])
    return wide


# ── Reporting wrappers ──────────────────────────────────────────


def melt_with_report(
    table: pd.DataFrame,
    identifier_columns: Sequence[str],
    category_name: str = DEFAULT_CATEGORY_NAME,
    value_name: str = DEFAULT_VALUE_NAME,
) -> tuple[pd.DataFrame, ReshapeReport]:
    """Run :func:`widen_to_long` and return ``(long_df, report)``."""
    long = widen_to_long(table, identifier_columns, category_name, value_name)
    ids = list(identifier_columns)
    measures = [c for c in table.columns if c not in set(ids)]

    warnings: list[str] = []
    kinds = sorted({str(table[c].dtype) for c in measures})
    if len(kinds) > 1:
        warnings.append(
            f"Measure columns hold mixed types ({', '.join(kinds)}); "
            f"'{value_name}' keeps the original values"
        )
    missing = int(long[value_name].isna().sum())
    if missing:
        suffix = "" if missing == 1 else "s"
        warnings.append(f"Carried {missing} empty measure cell{suffix} into '{value_name}'")

    report = ReshapeReport(
        direction="wide_to_long",
        rows_in=len(table),
        rows_out=len(long),
        identifier_columns=[str(c) for c in ids],
        categories=[str(c) for c in measures],
        missing_cells=missing,
        warnings=warnings,
    )
    return long, report


def pivot_with_report(
    table: pd.DataFrame,
    identifier_columns: Sequence[str],
    category_column: str = DEFAULT_CATEGORY_NAME,
    value_column: str = DEFAULT_VALUE_NAME,
) -> tuple[pd.DataFrame, ReshapeReport]:
    """Run :func:`lengthen_to_wide` and return ``(wide_df, report)``."""
    wide = lengthen_to_wide(table, identifier_columns, category_column, value_column)
    ids = list(identifier_columns)
    categories = list(wide.columns[len(ids):])

    warnings: list[str] = []
    filled = len(wide) * len(categories) - len(table)
    if filled:
        suffix = "" if filled == 1 else "s"
        warnings.append(f"Filled {filled} absent (identifier, category) cell{suffix} with blanks")

    missing = int(wide[categories].isna().sum().sum()) if categories else 0
    report = ReshapeReport(
        direction="long_to_wide",
        rows_in=len(table),
        rows_out=len(wide),
        identifier_columns=[str(c) for c in ids],
        categories=[str(c) for c in categories],
        missing_cells=missing,
        warnings=warnings,
    )
    return wide, report
