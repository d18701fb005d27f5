"""CSV persistence for tabular query results."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol, Sequence

import pandas as pd

from .models import Row, SaveCsvResponse

LOG = logging.getLogger(__name__)


class ExportError(RuntimeError):
    """Raised when a CSV file cannot be written."""


class CsvExporter(Protocol):
    """Interface implemented by CSV writers."""

    async def save_csv(self, rows: Sequence[Row], filename: str) -> SaveCsvResponse: ...


class CsvFileExporter:
    """Writes result rows into a CSV file under a fixed export directory."""

    def __init__(self, directory: str | Path, *, encoding: str = "utf-8") -> None:
        self._directory = Path(directory).expanduser()
        self._encoding = encoding

    @property
    def directory(self) -> Path:
        return self._directory

    async def save_csv(self, rows: Sequence[Row], filename: str) -> SaveCsvResponse:
        try:
            path = await asyncio.to_thread(self._write, rows, filename)
        except ExportError as exc:
            return SaveCsvResponse(success=False, error=str(exc))
        LOG.info("Saved CSV export", extra={"path": str(path), "rows": len(rows)})
        return SaveCsvResponse(success=True, file_path=str(path))

    def resolve_path(self, filename: str) -> Path:
        """Map an operator-chosen filename onto the export directory."""

        name = filename.strip()
        if not name:
            raise ExportError("Provide a filename for the CSV export.")
        if Path(name).name != name or name in {".", ".."}:
            raise ExportError(f"Filename '{filename}' must not contain a directory.")
        if not name.lower().endswith(".csv"):
            name = f"{name}.csv"
        return (self._directory / name).resolve()

    def _write(self, rows: Sequence[Row], filename: str) -> Path:
        if not rows:
            raise ExportError("There are no rows to export.")
        path = self.resolve_path(filename)
        records = [{str(key): _format_cell(value) for key, value in row.items()} for row in rows]
        # object dtype keeps integer columns with gaps from turning into floats.
        frame = pd.DataFrame(records, columns=_collect_columns(rows), dtype=object)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            frame.to_csv(path, index=False, na_rep="", encoding=self._encoding, lineterminator="\n")
        except OSError as exc:
            raise ExportError(f"Failed to save CSV: {exc}") from exc
        return path


def _collect_columns(rows: Sequence[Row]) -> list[str]:
    columns: dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(str(key), None)
    return list(columns)


def _format_cell(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


__all__ = ["CsvExporter", "CsvFileExporter", "ExportError"]
