"""Error taxonomy for reshaping and for table sources/sinks."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

# ── Reshape contract violations ─────────────────────────────────


class ReshapeError(ValueError):
    """Caller contract violation detected before any output row is built."""


class ColumnNotFound(ReshapeError):
    def __init__(self, columns: Sequence[str], available: Sequence[str]) -> None:
        self.columns = list(columns)
        self.available = list(available)
        super().__init__(
            f"Column(s) not found: {', '.join(map(str, self.columns))} "
            f"(available: {', '.join(map(str, self.available)) or 'none'})"
        )


class NameCollision(ReshapeError):
    def __init__(self, names: Sequence[str], reason: str) -> None:
        self.names = list(names)
        super().__init__(f"Column name collision on {', '.join(map(str, self.names))}: {reason}")


class EmptyMeasureSet(ReshapeError):
    def __init__(self, identifier_columns: Sequence[str]) -> None:
        self.identifier_columns = list(identifier_columns)
        super().__init__(
            "No measure columns left to reshape: every column is an identifier "
            f"({', '.join(map(str, self.identifier_columns))})"
        )


class DuplicateKey(ReshapeError):
    def __init__(self, key: tuple[Any, ...], category: Any) -> None:
        self.key = key
        self.category = category
        super().__init__(
            f"Duplicate entry for identifiers {key!r} and category {category!r}; "
            "each (identifiers, category) pair must appear at most once"
        )


# ── Collaborator failures ───────────────────────────────────────


class BackendError(RuntimeError):
    """Opaque failure of a table source or sink."""


class SourceUnavailable(BackendError):
    pass


class SinkUnavailable(BackendError):
    pass
