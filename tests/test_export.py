"""Tests for the CSV exporter."""

from __future__ import annotations

import csv
from pathlib import Path

import pytest

from sqlbridge.export import CsvFileExporter, ExportError


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.anyio
async def test_save_csv_writes_rows_and_returns_absolute_path(tmp_path: Path) -> None:
    exporter = CsvFileExporter(tmp_path / "exports")
    rows = (
        {"id": 1, "email": "alice@example.com", "active": True},
        {"id": 2, "email": None, "active": False},
    )

    response = await exporter.save_csv(rows, "accounts")

    assert response.success is True
    assert response.file_path == str((tmp_path / "exports" / "accounts.csv").resolve())
    with open(response.file_path, newline="", encoding="utf-8") as handle:
        written = list(csv.reader(handle))
    assert written == [
        ["id", "email", "active"],
        ["1", "alice@example.com", "true"],
        ["2", "", "false"],
    ]


@pytest.mark.anyio
async def test_save_csv_uses_union_of_columns(tmp_path: Path) -> None:
    exporter = CsvFileExporter(tmp_path)

    response = await exporter.save_csv(({"a": 1}, {"b": 2}), "mixed.csv")

    assert response.file_path is not None
    content = Path(response.file_path).read_text(encoding="utf-8").splitlines()
    assert content == ["a,b", "1,", ",2"]


@pytest.mark.anyio
@pytest.mark.parametrize("filename", ["../escape.csv", "sub/dir.csv", "   "])
async def test_save_csv_rejects_bad_filenames(tmp_path: Path, filename: str) -> None:
    exporter = CsvFileExporter(tmp_path)

    response = await exporter.save_csv(({"a": 1},), filename)

    assert response.success is False
    assert response.error
    assert list(tmp_path.iterdir()) == []


@pytest.mark.anyio
async def test_save_csv_rejects_empty_rows(tmp_path: Path) -> None:
    response = await CsvFileExporter(tmp_path).save_csv((), "empty.csv")

    assert response.success is False
    assert response.error == "There are no rows to export."


def test_resolve_path_keeps_existing_suffix(tmp_path: Path) -> None:
    exporter = CsvFileExporter(tmp_path)

    assert exporter.resolve_path("Report.CSV") == (tmp_path / "Report.CSV").resolve()
    with pytest.raises(ExportError):
        exporter.resolve_path("..")


@pytest.mark.anyio
async def test_save_csv_keeps_integer_columns_with_gaps(tmp_path: Path) -> None:
    exporter = CsvFileExporter(tmp_path)

    rows = ({"id": 1, "n": 1}, {"id": 2, "n": None}, {"id": 3})

    response = await exporter.save_csv(rows, "gaps.csv")

    assert response.file_path is not None
    content = Path(response.file_path).read_text(encoding="utf-8").splitlines()
    assert content == ["id,n", "1,1", "2,", "3,"]
