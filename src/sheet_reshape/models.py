"""Data models / typed records used across the package."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from numbers import Integral
from typing import Any, Literal

Direction = Literal["wide_to_long", "long_to_wide"]
_DIRECTIONS: tuple[str, ...] = ("wide_to_long", "long_to_wide")


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


@dataclass
class ReshapeReport:
    """Audit record emitted alongside every reshape.

    Contract invariants: ``rows_out == rows_in * len(categories)`` when
    melting, ``rows_out <= rows_in`` when pivoting.
    """

    direction: Direction = "wide_to_long"
    rows_in: int = 0
    rows_out: int = 0
    identifier_columns: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    missing_cells: int = 0
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.direction not in _DIRECTIONS:
            raise ValueError(f"direction must be one of {', '.join(_DIRECTIONS)}")
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.missing_cells = _to_non_negative_int(self.missing_cells, "missing_cells")
        self.identifier_columns = _to_string_list(self.identifier_columns, "identifier_columns")
        self.categories = _to_string_list(self.categories, "categories")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.direction == "wide_to_long":
            if self.rows_out != self.rows_in * len(self.categories):
                raise ValueError("rows_out must equal rows_in * len(categories) when melting")
        elif self.rows_out > self.rows_in:
            raise ValueError("rows_out must be <= rows_in when pivoting")

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "identifier_columns": list(self.identifier_columns),
            "categories": list(self.categories),
            "missing_cells": self.missing_cells,
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "sheet-reshape"
    version: str = ""
    run_id: str = ""
    command: str = ""
    source: str = ""
    range_selector: str = ""
    destination: str = ""
    sheet_name: str = ""
    created_at_utc: str = ""
    rows_in: int = 0
    rows_out: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        if self.status not in ("success", "failed"):
            raise ValueError("status must be 'success' or 'failed'")
        if self.error_code is not None:
            self.error_code = _to_non_negative_int(self.error_code, "error_code")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "run_id": self.run_id,
            "command": self.command,
            "source": self.source,
            "range_selector": self.range_selector,
            "destination": self.destination,
            "sheet_name": self.sheet_name,
            "created_at_utc": self.created_at_utc,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }
