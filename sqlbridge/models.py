"""Shared dataclasses used across the session controller and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Union

if TYPE_CHECKING:
    from .settings import AdminSettings

Row = Mapping[str, Any]
Rows = tuple[Row, ...]


@dataclass(frozen=True, slots=True)
class Credentials:
    """Connection descriptor edited by the operator."""

    host: str = ""
    port: str = ""
    user: str = ""
    password: str = ""
    database: str = ""

    def without_database(self) -> Credentials:
        """Payload used for probing and enumeration."""

        return replace(self, database="")

    def is_blank(self) -> bool:
        return not any((self.host, self.port, self.user, self.password, self.database))


class SessionState(str, Enum):
    """Lifecycle of the single in-flight network operation."""

    IDLE = "idle"
    PROBING = "probing"
    LISTING = "listing"
    EXECUTING = "executing"
    CANCELLING = "cancelling"


class ErrorKind(str, Enum):
    """Failure taxonomy surfaced to the display layer."""

    CONNECTION = "connection"
    QUERY = "query"
    CANCELLED = "cancelled"
    EXPORT = "export"
    INVOCATION = "invocation"


@dataclass(frozen=True, slots=True)
class Success:
    """Successful outcome; at most one of rows/affected/output is populated."""

    rows: Rows | None = None
    affected: int | None = None
    message: str | None = None
    output: str | None = None

    @property
    def success(self) -> bool:
        return True

    @property
    def has_rows(self) -> bool:
        return bool(self.rows)

    @property
    def columns(self) -> tuple[str, ...]:
        if not self.rows:
            return ()
        return tuple(str(key) for key in self.rows[0].keys())


@dataclass(frozen=True, slots=True)
class Failure:
    """Normalized failure shown instead of a result."""

    message: str
    kind: ErrorKind = ErrorKind.QUERY

    @property
    def success(self) -> bool:
        return False

    @property
    def has_rows(self) -> bool:
        return False


QueryResult = Union[Success, Failure]


@dataclass(frozen=True, slots=True)
class ExportRecord:
    """Location of the most recently persisted CSV file."""

    filename: str
    absolute_path: str


@dataclass(frozen=True, slots=True)
class InvocationTemplate:
    """Executable path plus its parameter tokens, resolved per invocation."""

    path: str
    params: tuple[str, ...] = ()


# Collaborator responses.


@dataclass(frozen=True, slots=True)
class ProbeResponse:
    success: bool
    message: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class DatabasesResponse:
    success: bool
    databases: tuple[str, ...] = ()
    error: str | None = None


@dataclass(frozen=True, slots=True)
class QueryResponse:
    """Executor output; ``data`` is a row tuple, an affected-row count or ``None``."""

    success: bool
    data: Rows | int | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SaveCsvResponse:
    success: bool
    file_path: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ExecuteFileResponse:
    success: bool
    output: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SettingsResponse:
    success: bool
    settings: AdminSettings | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Immutable view of the controller pushed to listeners."""

    state: SessionState
    credentials: Credentials
    connected: bool
    databases: tuple[str, ...]
    result: QueryResult | None
    export_record: ExportRecord | None
    exporting: bool = False
    invoking: bool = False


__all__ = [
    "Credentials",
    "DatabasesResponse",
    "ErrorKind",
    "ExecuteFileResponse",
    "ExportRecord",
    "Failure",
    "InvocationTemplate",
    "ProbeResponse",
    "QueryResponse",
    "QueryResult",
    "Row",
    "Rows",
    "SaveCsvResponse",
    "SessionSnapshot",
    "SessionState",
    "SettingsResponse",
    "Success",
]
