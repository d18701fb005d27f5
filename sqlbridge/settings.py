"""Admin settings loading helpers."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import tomllib

from pydantic import BaseModel, ConfigDict, Field

from .models import SettingsResponse

SETTINGS_FILE = Path.home() / ".config" / "sqlbridge" / "settings.toml"
DEFAULT_EXPORT_DIR = Path.home() / "sqlbridge-exports"

LOG = logging.getLogger(__name__)


class DatabaseDefaults(BaseModel):
    """Credential defaults used to pre-fill the connection form."""

    host: str = ""
    port: str = ""
    user: str = ""
    password: str = ""


class ExecutableDefaults(BaseModel):
    """Executable invoked with the exported CSV."""

    model_config = ConfigDict(populate_by_name=True)

    path: str = ""
    default_params: str = Field(default="", alias="defaultParams")


class ExportSettings(BaseModel):
    directory: str = str(DEFAULT_EXPORT_DIR)


class LauncherSettings(BaseModel):
    timeout_seconds: float = 60.0


class AdminSettings(BaseModel):
    """Shape of the settings file."""

    database: DatabaseDefaults = Field(default_factory=DatabaseDefaults)
    executable: ExecutableDefaults = Field(default_factory=ExecutableDefaults)
    export: ExportSettings = Field(default_factory=ExportSettings)
    launcher: LauncherSettings = Field(default_factory=LauncherSettings)

    def with_database(self, **updates: object) -> AdminSettings:
        """Return a copy with database defaults changed."""

        database = self.database.model_copy(update=updates)
        return self.model_copy(update={"database": database})

    def with_executable(self, **updates: object) -> AdminSettings:
        """Return a copy with executable defaults changed."""

        executable = self.executable.model_copy(update=updates)
        return self.model_copy(update={"executable": executable})


class SettingsStore(Protocol):
    """Interface implemented by settings persistence backends."""

    async def load(self) -> SettingsResponse: ...

    async def save(self, settings: AdminSettings) -> SettingsResponse: ...


def load_settings() -> AdminSettings:
    """Load settings from disk; fall back to defaults if missing or malformed."""

    try:
        data = _read_settings_file()
    except FileNotFoundError:
        return AdminSettings()
    except (tomllib.TOMLDecodeError, OSError):
        LOG.warning("Ignoring unreadable settings file", extra={"path": str(SETTINGS_FILE)})
        return AdminSettings()
    return AdminSettings(**data)


def save_settings(settings: AdminSettings) -> None:
    """Persist settings to disk."""

    SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = ["[database]"]
    for key in ("host", "port", "user", "password"):
        lines.append(f"{key} = {_quote(getattr(settings.database, key))}")
    lines.append("")
    lines.append("[executable]")
    lines.append(f"path = {_quote(settings.executable.path)}")
    lines.append(f"default_params = {_quote(settings.executable.default_params)}")
    lines.append("")
    lines.append("[export]")
    lines.append(f"directory = {_quote(settings.export.directory)}")
    lines.append("")
    lines.append("[launcher]")
    lines.append(f"timeout_seconds = {float(settings.launcher.timeout_seconds)}")
    SETTINGS_FILE.write_text("\n".join(lines) + "\n")


class TomlSettingsStore:
    """Settings store backed by ``settings.toml``."""

    async def load(self) -> SettingsResponse:
        try:
            settings = await asyncio.to_thread(load_settings)
        except ValueError as exc:
            return SettingsResponse(success=False, error=str(exc))
        return SettingsResponse(success=True, settings=settings)

    async def save(self, settings: AdminSettings) -> SettingsResponse:
        try:
            await asyncio.to_thread(save_settings, settings)
        except OSError as exc:
            LOG.warning("Failed to save settings", extra={"path": str(SETTINGS_FILE)}, exc_info=True)
            return SettingsResponse(success=False, error=f"Failed to save settings: {exc}")
        return SettingsResponse(success=True, settings=settings)


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _read_settings_file() -> dict[str, object]:
    with SETTINGS_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    database = raw.get("database")
    if isinstance(database, dict):
        parsed: dict[str, str] = {}
        for key in ("host", "port", "user", "password"):
            value = database.get(key)
            # Ports are often written as bare integers.
            if isinstance(value, (str, int)) and not isinstance(value, bool):
                parsed[key] = str(value)
        data["database"] = DatabaseDefaults(**parsed)
    executable = raw.get("executable")
    if isinstance(executable, dict):
        exec_data: dict[str, str] = {}
        path = executable.get("path")
        if isinstance(path, str):
            exec_data["path"] = path
        params = executable.get("default_params", executable.get("defaultParams"))
        if isinstance(params, str):
            exec_data["default_params"] = params
        data["executable"] = ExecutableDefaults(**exec_data)
    export = raw.get("export")
    if isinstance(export, dict):
        directory = export.get("directory")
        if isinstance(directory, str) and directory:
            data["export"] = ExportSettings(directory=directory)
    launcher = raw.get("launcher")
    if isinstance(launcher, dict):
        timeout = launcher.get("timeout_seconds")
        if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout > 0:
            data["launcher"] = LauncherSettings(timeout_seconds=float(timeout))
    return data


__all__ = [
    "AdminSettings",
    "DatabaseDefaults",
    "ExecutableDefaults",
    "ExportSettings",
    "LauncherSettings",
    "SETTINGS_FILE",
    "SettingsStore",
    "TomlSettingsStore",
    "load_settings",
    "save_settings",
]
