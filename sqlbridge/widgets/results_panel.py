"""Results pane showing the displayed query/export/invocation result."""

from __future__ import annotations

import json

from textual.app import ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Static

from sqlbridge.models import ErrorKind, Failure, QueryResult, Success


class ResultsPanel(Container):
    """Renders a :data:`QueryResult` as a message line plus an optional table."""

    DEFAULT_CSS = """
    ResultsPanel {
        height: auto;
        min-height: 6;
        border: round $primary 40%;
        padding: 0 1;
    }

    ResultsPanel #result-message.error {
        color: $error;
    }

    ResultsPanel #result-message.cancelled {
        color: $warning;
    }

    ResultsPanel #result-table {
        height: 12;
    }
    """

    def __init__(self, *, result_limit: int = 500) -> None:
        super().__init__(id="results-panel")
        self._result_limit = result_limit
        self._shown: QueryResult | None = None

    def compose(self) -> ComposeResult:
        yield Static("", id="result-message")
        yield DataTable(id="result-table", zebra_stripes=True)

    def on_mount(self) -> None:
        table = self.query_one("#result-table", DataTable)
        table.cursor_type = "row"
        table.display = False

    def show(self, result: QueryResult | None) -> None:
        if result is self._shown:
            return
        self._shown = result
        message = self.query_one("#result-message", Static)
        table = self.query_one("#result-table", DataTable)
        message.remove_class("error", "cancelled")
        table.clear(columns=True)
        table.display = False
        if result is None:
            message.update("")
            return
        if isinstance(result, Failure):
            message.add_class("cancelled" if result.kind is ErrorKind.CANCELLED else "error")
            message.update(f"✖ {result.message}")
            return
        message.update(summarize(result))
        if result.has_rows:
            self._fill_table(table, result)

    def _fill_table(self, table: DataTable, result: Success) -> None:
        columns = result.columns
        table.add_columns(*columns)
        for row in (result.rows or ())[: self._result_limit]:
            table.add_row(*(format_cell(row.get(column)) for column in columns))
        table.display = True


def summarize(result: Success) -> str:
    """One-line description of a successful result."""

    if result.output is not None:
        return f"✔ {result.output.strip() or 'Executable finished without output.'}"
    if result.rows:
        text = f"✔ {len(result.rows)} row(s)"
        return f"{text} · {result.message}" if result.message else text
    if result.message:
        return f"✔ {result.message}"
    if result.affected is not None:
        return f"✔ Query executed successfully. {result.affected} row(s) affected."
    return "✔ Query executed successfully."


def format_cell(value: object) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, str)):
        return str(value)
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


__all__ = ["ResultsPanel", "format_cell", "summarize"]
