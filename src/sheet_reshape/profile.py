"""Profile files — saved reshape options as ``key=value`` lines.

Example::

    # market share tutorial
    ids=Date,Year,Month
    category=Vendor
    value=Market Share
    sheet=Long
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

PROFILE_KEYS: tuple[str, ...] = ("ids", "ids_first", "category", "value", "sheet", "range")


@dataclass
class ReshapeOptions:
    """Reshape options gathered from the command line or a profile."""

    ids: list[str] | None = None
    ids_first: int | None = None
    category: str | None = None
    value: str | None = None
    sheet: str | None = None
    range: str | None = None

    def override(self, base: ReshapeOptions) -> ReshapeOptions:
        """Return options where every value set on *self* wins over *base*."""
        merged = {
            f.name: getattr(self, f.name) if getattr(self, f.name) is not None
            else getattr(base, f.name)
            for f in fields(self)
        }
        # The identifier selector is one choice: names or a leading count.
        if self.ids is not None or self.ids_first is not None:
            merged["ids"], merged["ids_first"] = self.ids, self.ids_first
        return ReshapeOptions(**merged)


def _split_names(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def parse_profile(text: str) -> ReshapeOptions:
    """Parse profile *text*; blank lines and ``#`` comments are ignored."""
    options = ReshapeOptions()
    for line_no, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            raise ValueError(f"Invalid profile line {line_no}: {stripped!r} (expected key=value)")
        key, value = stripped.split("=", 1)
        key = key.strip().lower().replace("-", "_")
        value = value.strip()
        if key not in PROFILE_KEYS:
            raise ValueError(
                f"Unknown profile key {key!r} on line {line_no} "
                f"(expected one of: {', '.join(PROFILE_KEYS)})"
            )
        if not value:
            raise ValueError(f"Empty value for {key!r} on line {line_no}")

        if key == "ids":
            options.ids = _split_names(value)
        elif key == "ids_first":
            try:
                options.ids_first = int(value)
            except ValueError as exc:
                raise ValueError(f"ids_first must be an integer, got {value!r}") from exc
        else:
            setattr(options, key, value)
    return options


def load_profile(profile: Path | None) -> ReshapeOptions:
    """Read a profile file; ``None`` yields empty options."""
    if not profile:
        return ReshapeOptions()
    if not profile.exists():
        raise ValueError(f"Profile not found: {profile} (expected lines like category=Vendor)")
    if profile.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {profile}: {exc}") from exc
    return parse_profile(text)
