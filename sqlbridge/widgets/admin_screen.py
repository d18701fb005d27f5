"""Modal screen for editing the saved admin settings."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static

from sqlbridge.settings import AdminSettings

_DATABASE_FIELDS = ("host", "port", "user", "password")


class AdminSettingsScreen(ModalScreen[AdminSettings | None]):
    """Edit connection defaults and the executable; dismisses with the new settings or ``None``."""

    DEFAULT_CSS = """
    AdminSettingsScreen {
        align: center middle;
    }

    AdminSettingsScreen #admin-container {
        width: 70;
        height: auto;
        border: round $primary;
        background: $surface;
        padding: 1 2;
    }

    AdminSettingsScreen .section-title {
        text-style: bold;
        margin-top: 1;
    }

    AdminSettingsScreen #admin-buttons {
        height: auto;
        margin-top: 1;
    }
    """

    BINDINGS = [("escape", "dismiss_without_saving", "Cancel")]

    def __init__(self, settings: AdminSettings) -> None:
        super().__init__()
        self._settings = settings

    def compose(self) -> ComposeResult:
        database = self._settings.database
        executable = self._settings.executable
        with Container(id="admin-container"):
            yield Static("Admin Settings", classes="section-title")
            yield Static("Database defaults", classes="section-title")
            yield Input(database.host, placeholder="Host", id="admin-host")
            yield Input(database.port, placeholder="Port", id="admin-port")
            yield Input(database.user, placeholder="Username", id="admin-user")
            yield Input(database.password, placeholder="Password", id="admin-password", password=True)
            yield Static("Executable", classes="section-title")
            yield Input(executable.path, placeholder="Path to executable", id="admin-executable-path")
            yield Input(
                executable.default_params,
                placeholder="Default parameters (use {csv} for the saved file)",
                id="admin-executable-params",
            )
            with Horizontal(id="admin-buttons"):
                yield Button("Save", id="admin-save", variant="primary")
                yield Button("Cancel", id="admin-cancel")

    def collect(self) -> AdminSettings:
        """Settings as currently entered in the form."""

        database = {field: self.query_one(f"#admin-{field}", Input).value for field in _DATABASE_FIELDS}
        return self._settings.with_database(**database).with_executable(
            path=self.query_one("#admin-executable-path", Input).value,
            default_params=self.query_one("#admin-executable-params", Input).value,
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "admin-save":
            self.dismiss(self.collect())
        else:
            self.dismiss(None)

    def action_dismiss_without_saving(self) -> None:
        self.dismiss(None)


__all__ = ["AdminSettingsScreen"]
