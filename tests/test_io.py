from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest
from openpyxl import Workbook

from sheet_reshape.io import (
    load_table,
    read_csv_grid,
    read_workbook_grid,
    write_json,
    write_table_csv,
)


def test_load_table_csv_uses_sniffing_and_string_dtype(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    csv_path = tmp_path / "data.csv"
    csv_path.write_text("a;b\n1;2\n", encoding="utf-8")
    expected = pd.DataFrame({"a": ["1"], "b": ["2"]})

    calls: list[dict[str, object]] = []

    def _fake_read_csv(path: Path, **kwargs: object) -> pd.DataFrame:
        calls.append({"path": path, **kwargs})
        return expected

    monkeypatch.setattr(pd, "read_csv", _fake_read_csv)

    result = load_table(csv_path)

    assert result.equals(expected)
    assert len(calls) == 1
    assert calls[0]["path"] == csv_path
    assert calls[0]["dtype"] == "string"
    assert calls[0]["sep"] is None
    assert calls[0]["engine"] == "python"
    assert calls[0]["encoding"] == "utf-8-sig"


def test_load_table_csv_with_delimiter_uses_explicit_sep_and_c_engine(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    csv_path = tmp_path / "data.csv"
    csv_path.write_text("a|b\n1|2\n", encoding="utf-8")

    calls: list[dict[str, object]] = []

    def _fake_read_csv(path: Path, **kwargs: object) -> pd.DataFrame:
        calls.append({"path": path, **kwargs})
        return pd.DataFrame({"a": ["1"], "b": ["2"]})

    monkeypatch.setattr(pd, "read_csv", _fake_read_csv)

    load_table(csv_path, delimiter="|")

    assert calls[0]["sep"] == "|"
    assert calls[0]["engine"] == "c"


def test_load_table_csv_retries_encoding_on_unicode_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    csv_path = tmp_path / "data.csv"
    csv_path.write_bytes(b"x")
    expected = pd.DataFrame({"a": ["1"]})

    encodings: list[str] = []

    def _fake_read_csv(path: Path, **kwargs: object) -> pd.DataFrame:
        del path
        encoding = kwargs.get("encoding")
        assert isinstance(encoding, str)
        encodings.append(encoding)
        if encoding in {"utf-8-sig", "utf-8"}:
            raise UnicodeDecodeError("utf-8", b"x", 0, 1, "bad")
        return expected

    monkeypatch.setattr(pd, "read_csv", _fake_read_csv)

    result = load_table(csv_path)

    assert result.equals(expected)
    assert encodings == ["utf-8-sig", "utf-8", "latin-1"]


def test_load_table_csv_wraps_parser_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    csv_path = tmp_path / "broken.csv"
    csv_path.write_text('not,a,valid"\n', encoding="utf-8")

    def _fake_read_csv(path: Path, **kwargs: object) -> pd.DataFrame:
        del path, kwargs
        raise pd.errors.ParserError("malformed csv")

    monkeypatch.setattr(pd, "read_csv", _fake_read_csv)

    with pytest.raises(ValueError, match="decode or parse failed"):
        load_table(csv_path)


def test_load_table_rejects_missing_directory_and_other_types(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_table(tmp_path / "absent.csv")

    input_dir = tmp_path / "fake.csv"
    input_dir.mkdir()
    with pytest.raises(ValueError, match="not a file"):
        load_table(input_dir)

    other = tmp_path / "data.json"
    other.write_text("{}", encoding="utf-8")
    with pytest.raises(ValueError, match="Unsupported file type"):
        load_table(other)


def test_load_table_csv_latin1_fallback_reads_non_utf_chars(tmp_path: Path) -> None:
    csv_path = tmp_path / "latin1.csv"
    csv_path.write_bytes("name,city\nAndré,Paris\n".encode("latin-1"))

    result = load_table(csv_path)

    assert result.iloc[0]["name"] == "André"


def test_read_csv_grid_returns_header_and_rows(tmp_path: Path) -> None:
    csv_path = tmp_path / "wide.csv"
    csv_path.write_text("Date,Apple\n2010-07,30.1\n2010-08,\n", encoding="utf-8")

    grid = read_csv_grid(csv_path)

    assert grid[0] == ["Date", "Apple"]
    assert grid[1] == ["2010-07", "30.1"]
    assert grid[2][0] == "2010-08"
    assert pd.isna(grid[2][1])


def test_read_workbook_grid_reads_named_or_first_sheet(tmp_path: Path) -> None:
    path = tmp_path / "book.xlsx"
    wb = Workbook()
    first = wb.active
    assert first is not None
    first.title = "Wide"
    first.append(["Date", "Apple"])
    first.append(["2010-07", 30.1])
    other = wb.create_sheet("Notes")
    other.append(["hello"])
    wb.save(path)

    assert read_workbook_grid(path) == [["Date", "Apple"], ["2010-07", 30.1]]
    assert read_workbook_grid(path, "Notes") == [["hello"]]
    with pytest.raises(ValueError, match="Sheet 'Missing' not found"):
        read_workbook_grid(path, "Missing")


def test_write_table_csv_is_atomic(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "long.csv"
    df = pd.DataFrame({"k": ["a"], "v": [1.5]})

    out = write_table_csv(path, df)

    assert out == path
    assert path.read_text(encoding="utf-8") == "k,v\na,1.5\n"
    assert not path.with_suffix(path.suffix + ".tmp").exists()


def test_write_json_is_atomic_and_deterministic(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "artifact.json"
    payload = {
        "b": 1,
        "a": datetime(2024, 1, 2, 3, 4, 5),
        "path": Path("foo/bar"),
    }

    out = write_json(path, payload)

    assert out == path
    text = path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert '"a": "2024-01-02T03:04:05"' in text
    assert '"path": "foo/bar"' in text
    assert text.index('"a"') < text.index('"b"') < text.index('"path"')
    assert not path.with_suffix(path.suffix + ".tmp").exists()


def test_write_json_serializes_item_scalar(tmp_path: Path) -> None:
    path = tmp_path / "artifact.json"
    value = pd.Series([7], dtype="int64").iloc[0]

    write_json(path, {"value": value})

    assert '"value": 7' in path.read_text(encoding="utf-8")


def test_write_json_raises_on_unknown_type(tmp_path: Path) -> None:
    class Unknown:
        pass

    with pytest.raises(TypeError, match="not JSON serializable"):
        write_json(tmp_path / "artifact.json", {"x": Unknown()})
