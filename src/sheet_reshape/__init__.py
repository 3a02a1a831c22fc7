"""sheet-reshape — Reshape spreadsheet tables between wide and long form."""

__version__ = "0.2.0"

DEFAULT_CATEGORY_NAME = "variable"
DEFAULT_VALUE_NAME = "value"
