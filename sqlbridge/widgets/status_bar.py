"""Status bar widget that mirrors session information."""

from __future__ import annotations

from typing import Callable

from textual.widgets import Static

from sqlbridge.models import SessionSnapshot
from sqlbridge.session import SessionController


class StatusBar(Static):
    """Compact status strip rendered above Textual's footer."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-3;
        color: $text;
    }
    """

    def __init__(self, controller: SessionController) -> None:
        super().__init__("", id="status-bar")
        self._controller = controller
        self._unsubscribe: Callable[[], None] | None = None

    async def on_mount(self) -> None:
        self._unsubscribe = self._controller.subscribe(self._handle_session_update)

    def on_unmount(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def _handle_session_update(self, snapshot: SessionSnapshot) -> None:
        self.update(describe_snapshot(snapshot))


def describe_snapshot(snapshot: SessionSnapshot) -> str:
    """Render the one-line status text for a session snapshot."""

    credentials = snapshot.credentials
    target = credentials.host or "—"
    if credentials.port:
        target = f"{target}:{credentials.port}"
    parts = [
        f"State: {snapshot.state.value}",
        f"Server: {target}",
        f"Connected: {'yes' if snapshot.connected else 'no'}",
        f"Database: {credentials.database or '—'}",
    ]
    if snapshot.export_record:
        parts.append(f"Last CSV: {snapshot.export_record.absolute_path}")
    return " | ".join(parts)


__all__ = ["StatusBar", "describe_snapshot"]
