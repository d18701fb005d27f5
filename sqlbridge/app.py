"""Textual application entry point for sqlbridge."""

from __future__ import annotations

import argparse
import logging
from typing import Callable, Sequence

from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, VerticalScroll
from textual.widgets import Button, Footer, Header, Input, Select, Static

from .connections import AsyncpgDatabaseBackend, DemoConnectionBackend
from .export import CsvFileExporter
from .invocation import SubprocessLauncher
from .models import SessionSnapshot, SessionState, Success
from .query import AsyncpgQueryExecutor, DemoQueryExecutor
from .session import SessionController
from .settings import AdminSettings, TomlSettingsStore, load_settings
from .widgets import AdminSettingsScreen, ResultsPanel, StatusBar

LOG = logging.getLogger(__name__)

_CREDENTIAL_FIELDS = ("host", "port", "user", "password")


def build_controller(settings: AdminSettings, *, demo: bool = False) -> SessionController:
    """Wire the controller with real (or demo) collaborators."""

    if demo:
        backend = DemoConnectionBackend()
        executor = DemoQueryExecutor()
    else:
        backend = AsyncpgDatabaseBackend()
        executor = AsyncpgQueryExecutor()
    return SessionController(
        backend=backend,
        executor=executor,
        exporter=CsvFileExporter(settings.export.directory),
        launcher=SubprocessLauncher(timeout=settings.launcher.timeout_seconds),
        settings_store=TomlSettingsStore(),
        settings=settings,
    )


class SqlBridgeApp(App[None]):
    """Single-screen front-end whose controls mirror the controller guards."""

    TITLE = "SQL Query Explorer"
    CSS = """
    #form {
        padding: 1 2;
    }
    .section-title {
        text-style: bold;
        margin-top: 1;
    }
    .row {
        height: auto;
    }
    .row > Input {
        width: 1fr;
    }
    .row > Button {
        margin-right: 1;
    }
    """

    BINDINGS = [
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+t", "test_connection", "Test connection"),
        ("ctrl+e", "run_query", "Execute"),
        ("escape", "cancel_query", "Cancel query"),
        ("ctrl+s", "admin_settings", "Admin settings"),
    ]

    def __init__(self, controller: SessionController) -> None:
        super().__init__()
        self._controller = controller
        self._unsubscribe: Callable[[], None] | None = None
        self._shown_databases: tuple[str, ...] = ()

    @property
    def controller(self) -> SessionController:
        """Expose the session controller for tests."""

        return self._controller

    def compose(self) -> ComposeResult:
        yield Header()
        with VerticalScroll(id="form"):
            yield Static("Database Connection", classes="section-title")
            with Horizontal(classes="row"):
                yield Input(placeholder="Host (e.g. localhost)", id="host")
                yield Input(placeholder="Port (default: 5432)", id="port", type="integer")
            with Horizontal(classes="row"):
                yield Input(placeholder="Username", id="user")
                yield Input(placeholder="Password", id="password", password=True)
            with Container(id="database-section"):
                yield Static("Select Database", classes="section-title")
                yield Select([], id="database", prompt="Select a database")
            yield Static("SQL Query", classes="section-title")
            yield Input(placeholder="SELECT * FROM users", id="sql")
            with Horizontal(classes="row"):
                yield Button("Execute Query", id="run-query", variant="primary")
                yield Button("Cancel Query", id="cancel-query", variant="error")
                yield Button("Test Connection", id="test-connection")
                yield Button("Admin Settings", id="admin-settings")
            yield ResultsPanel()
            with Horizontal(classes="row", id="export-section"):
                yield Input(placeholder="results.csv", id="csv-filename")
                yield Button("Save CSV", id="save-csv")
            with Container(id="execute-section"):
                yield Static("Execute File", classes="section-title")
                with Horizontal(classes="row"):
                    yield Input(placeholder="Path to executable", id="executable-path")
                    yield Input(placeholder="Parameters (use {csv} for the saved file)", id="executable-params")
                    yield Button("Execute", id="execute-file")
        yield StatusBar(self._controller)
        yield Footer()

    async def on_mount(self) -> None:
        self._unsubscribe = self._controller.subscribe(self._handle_snapshot)
        self.run_worker(self._controller.load_settings(), name="load-settings")

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    # Actions.

    def action_test_connection(self) -> None:
        if self._controller.can_probe:
            self.run_worker(self._controller.test_connection(), name="test-connection")

    def action_run_query(self) -> None:
        if not self._controller.can_submit:
            return
        sql = self.query_one("#sql", Input).value
        if not sql.strip():
            self.notify("Enter SQL to run.", severity="warning")
            return
        self.run_worker(self._controller.submit_query(sql), name="run-query")

    def action_cancel_query(self) -> None:
        self._controller.cancel_query()

    def action_admin_settings(self) -> None:
        self.push_screen(AdminSettingsScreen(self._controller.settings), self._apply_admin_settings)

    def _apply_admin_settings(self, settings: AdminSettings | None) -> None:
        self.call_after_refresh(self._resync)
        if settings is not None:
            self.run_worker(self._save_admin_settings(settings), name="save-settings")

    async def _save_admin_settings(self, settings: AdminSettings) -> None:
        if await self._controller.save_settings(settings):
            self.notify("Settings saved.")
        else:
            self.notify("Failed to save settings.", severity="error")

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        button = event.button.id
        if button == "run-query":
            self.action_run_query()
        elif button == "cancel-query":
            self.action_cancel_query()
        elif button == "test-connection":
            self.action_test_connection()
        elif button == "admin-settings":
            self.action_admin_settings()
        elif button == "save-csv":
            filename = self.query_one("#csv-filename", Input).value
            self.run_worker(self._controller.export_csv(filename), name="save-csv")
        elif button == "execute-file":
            self.run_worker(self._controller.invoke_executable(), name="execute-file")

    def on_input_changed(self, event: Input.Changed) -> None:
        field = event.input.id or ""
        if field in _CREDENTIAL_FIELDS:
            if getattr(self._controller.credentials, field) != event.value:
                self._controller.update_credentials(**{field: event.value})
        elif field == "executable-path":
            self._controller.set_executable(path=event.value)
        elif field == "executable-params":
            self._controller.set_executable(params=event.value)
        elif field == "csv-filename":
            self._sync_export_controls(self._controller.snapshot())

    def on_select_changed(self, event: Select.Changed) -> None:
        value = event.value if isinstance(event.value, str) else ""
        if value == self._controller.credentials.database:
            return
        try:
            self._controller.select_database(value)
        except ValueError as exc:
            self.notify(str(exc), severity="error")

    # Snapshot rendering.

    def _resync(self) -> None:
        self._handle_snapshot(self._controller.snapshot())

    def _handle_snapshot(self, snapshot: SessionSnapshot) -> None:
        if isinstance(self.screen, AdminSettingsScreen):
            # The form is hidden behind the modal; resynced on dismissal.
            return
        try:
            self._sync_credentials(snapshot)
            self._sync_databases(snapshot)
            self._sync_query_controls(snapshot)
            self._sync_export_controls(snapshot)
            self._sync_execute_controls(snapshot)
            self.query_one(ResultsPanel).show(snapshot.result)
        except Exception:
            LOG.exception("Failed to render session snapshot")

    def _sync_credentials(self, snapshot: SessionSnapshot) -> None:
        for field in _CREDENTIAL_FIELDS:
            widget = self.query_one(f"#{field}", Input)
            value = getattr(snapshot.credentials, field)
            if widget.value != value:
                widget.value = value

    def _sync_databases(self, snapshot: SessionSnapshot) -> None:
        section = self.query_one("#database-section")
        section.display = bool(snapshot.databases)
        if snapshot.databases != self._shown_databases:
            self._shown_databases = snapshot.databases
            select = self.query_one("#database", Select)
            select.set_options((name, name) for name in snapshot.databases)
            if snapshot.credentials.database in snapshot.databases:
                select.value = snapshot.credentials.database

    def _sync_query_controls(self, snapshot: SessionSnapshot) -> None:
        idle = snapshot.state is SessionState.IDLE
        self.query_one("#run-query", Button).disabled = not idle
        self.query_one("#test-connection", Button).disabled = not idle
        cancel = self.query_one("#cancel-query", Button)
        cancel.display = snapshot.state in (SessionState.EXECUTING, SessionState.CANCELLING)
        cancel.disabled = snapshot.state is not SessionState.EXECUTING

    def _sync_export_controls(self, snapshot: SessionSnapshot) -> None:
        section = self.query_one("#export-section")
        section.display = isinstance(snapshot.result, Success) and snapshot.result.has_rows
        filename = self.query_one("#csv-filename", Input).value
        self.query_one("#save-csv", Button).disabled = not self._controller.can_export(filename)

    def _sync_execute_controls(self, snapshot: SessionSnapshot) -> None:
        section = self.query_one("#execute-section")
        section.display = snapshot.export_record is not None
        defaults = self._controller.settings.executable
        path_input = self.query_one("#executable-path", Input)
        params_input = self.query_one("#executable-params", Input)
        if defaults.path:
            path_input.placeholder = defaults.path
        if defaults.default_params:
            params_input.placeholder = defaults.default_params
        self.query_one("#execute-file", Button).disabled = not self._controller.can_invoke


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sqlbridge", description="Run SQL, export CSV, hand it to a tool.")
    parser.add_argument("--demo", action="store_true", help="Use the offline demo backend.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--log-file", help="Write logs to this file (the TUI owns the terminal).")
    return parser.parse_args(argv)


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.DEBUG if args.debug else logging.INFO
    if args.log_file:
        logging.basicConfig(
            filename=args.log_file,
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    else:
        logging.getLogger("sqlbridge").setLevel(level)


def main(argv: Sequence[str] | None = None) -> None:
    """Invoke the Textual application."""

    args = _parse_args(argv)
    _configure_logging(args)
    controller = build_controller(load_settings(), demo=args.demo)
    SqlBridgeApp(controller).run()


if __name__ == "__main__":
    main()
