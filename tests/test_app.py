"""App-level tests driving the Textual front-end against the demo backend."""

from __future__ import annotations

from pathlib import Path

import pytest
from textual.widgets import Button, Input

from sqlbridge.app import SqlBridgeApp, build_controller
from sqlbridge.connections import DemoConnectionBackend
from sqlbridge.export import CsvFileExporter
from sqlbridge.invocation import SubprocessLauncher
from sqlbridge.models import SettingsResponse
from sqlbridge.query import DemoQueryExecutor
from sqlbridge.session import SessionController
from sqlbridge.settings import AdminSettings, ExportSettings
from sqlbridge.widgets import AdminSettingsScreen
from sqlbridge.widgets.status_bar import describe_snapshot


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def controller(tmp_path: Path) -> SessionController:
    return SessionController(
        backend=DemoConnectionBackend(["db1", "db2"], latency=0),
        executor=DemoQueryExecutor(row_count=2, delay=0),
        exporter=CsvFileExporter(tmp_path),
        launcher=SubprocessLauncher(timeout=5),
    )


def test_build_controller_uses_settings_for_export_directory(tmp_path: Path) -> None:
    settings = AdminSettings(export=ExportSettings(directory=str(tmp_path)))

    controller = build_controller(settings, demo=True)

    assert controller.settings is settings
    assert controller.can_submit is True


@pytest.mark.anyio
async def test_sections_follow_controller_guards(controller: SessionController) -> None:
    app = SqlBridgeApp(controller)

    async with app.run_test() as pilot:
        assert app.query_one("#database-section").display is False
        assert app.query_one("#export-section").display is False
        assert app.query_one("#execute-section").display is False
        assert app.query_one("#cancel-query", Button).display is False

        await controller.test_connection()
        await pilot.pause()
        assert app.query_one("#database-section").display is True

        await controller.submit_query("SELECT 1")
        await pilot.pause()
        assert app.query_one("#export-section").display is True
        assert app.query_one("#save-csv", Button).disabled is True

        app.query_one("#csv-filename", Input).value = "out.csv"
        await pilot.pause()
        assert app.query_one("#save-csv", Button).disabled is False

        await controller.export_csv("out.csv")
        await pilot.pause()
        assert app.query_one("#execute-section").display is True
        assert app.query_one("#execute-file", Button).disabled is True


@pytest.mark.anyio
async def test_credential_inputs_update_controller(controller: SessionController) -> None:
    app = SqlBridgeApp(controller)
    assert app.controller is controller

    async with app.run_test() as pilot:
        app.query_one("#host", Input).value = "db.example"
        await pilot.pause()

        assert controller.credentials.host == "db.example"


def test_status_line_describes_snapshot(controller: SessionController) -> None:
    controller.update_credentials(host="db", port="5432")

    line = describe_snapshot(controller.snapshot())

    assert "State: idle" in line
    assert "Server: db:5432" in line
    assert "Connected: no" in line
    assert "Last CSV" not in line


class _MemorySettingsStore:
    def __init__(self) -> None:
        self.saved: list[AdminSettings] = []

    async def load(self) -> SettingsResponse:
        return SettingsResponse(success=True, settings=AdminSettings())

    async def save(self, settings: AdminSettings) -> SettingsResponse:
        self.saved.append(settings)
        return SettingsResponse(success=True, settings=settings)


def _controller_with_store(tmp_path: Path, store: _MemorySettingsStore) -> SessionController:
    return SessionController(
        backend=DemoConnectionBackend(["db1"], latency=0),
        executor=DemoQueryExecutor(row_count=1, delay=0),
        exporter=CsvFileExporter(tmp_path),
        launcher=SubprocessLauncher(timeout=5),
        settings_store=store,
    )


@pytest.mark.anyio
async def test_admin_screen_saves_edited_settings(tmp_path: Path) -> None:
    store = _MemorySettingsStore()
    controller = _controller_with_store(tmp_path, store)
    app = SqlBridgeApp(controller)

    async with app.run_test(size=(120, 50)) as pilot:
        await app.workers.wait_for_complete()
        app.action_admin_settings()
        await pilot.pause()
        screen = app.screen
        assert isinstance(screen, AdminSettingsScreen)

        screen.query_one("#admin-host", Input).value = "saved-host"
        screen.query_one("#admin-executable-path", Input).value = "/usr/bin/tool"
        screen.query_one("#admin-executable-params", Input).value = "--in {csv}"
        screen.query_one("#admin-save", Button).press()
        await pilot.pause()
        await app.workers.wait_for_complete()
        await pilot.pause()

        assert not isinstance(app.screen, AdminSettingsScreen)
        assert app.query_one("#executable-path", Input).placeholder == "/usr/bin/tool"

    assert len(store.saved) == 1
    assert store.saved[0].database.host == "saved-host"
    assert controller.settings.executable.default_params == "--in {csv}"
    assert controller.credentials.host == ""


@pytest.mark.anyio
async def test_admin_screen_cancel_keeps_settings(tmp_path: Path) -> None:
    store = _MemorySettingsStore()
    controller = _controller_with_store(tmp_path, store)
    app = SqlBridgeApp(controller)

    async with app.run_test(size=(120, 50)) as pilot:
        await app.workers.wait_for_complete()
        app.action_admin_settings()
        await pilot.pause()
        app.screen.query_one("#admin-host", Input).value = "ignored"
        app.screen.query_one("#admin-cancel", Button).press()
        await pilot.pause()

        assert not isinstance(app.screen, AdminSettingsScreen)

    assert store.saved == []
    assert controller.settings.database.host == ""
