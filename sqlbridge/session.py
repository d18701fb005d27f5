"""Session controller sequencing probe, enumeration, query, export and invocation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Mapping

from .cancellation import CancellationToken
from .connections import DatabaseBackend
from .export import CsvExporter
from .invocation import ProcessLauncher, build_template
from .models import (
    Credentials,
    ErrorKind,
    ExportRecord,
    Failure,
    InvocationTemplate,
    QueryResponse,
    QueryResult,
    SaveCsvResponse,
    SessionSnapshot,
    SessionState,
    Success,
)
from .query import QueryExecutor
from .settings import AdminSettings, SettingsStore

LOG = logging.getLogger(__name__)

SessionListener = Callable[[SessionSnapshot], None]

PROBE_SUCCESS_MESSAGE = "Connection successful"
PROBE_FAILED_MESSAGE = "Failed to test connection. Please try again."
ENUMERATION_FAILED_MESSAGE = "Failed to fetch databases. Please check your connection and try again."
QUERY_FAILED_MESSAGE = "Failed to execute query. Please try again."
QUERY_CANCELLED_MESSAGE = "Query cancelled by user."
EXPORT_SUCCESS_MESSAGE = "CSV file saved successfully"
EXPORT_FAILED_MESSAGE = "Failed to save CSV"
INVOCATION_FAILED_MESSAGE = "Failed to execute file"


class SessionController:
    """Owns the operator's session and routes every mutation through guarded operations.

    Probe, enumeration and query execution share one state machine, so at most
    one of them is in flight. Export and invocation each allow a single
    request at a time. Every collaborator failure is converted into a
    :class:`Failure` before it reaches listeners.
    """

    def __init__(
        self,
        *,
        backend: DatabaseBackend,
        executor: QueryExecutor,
        exporter: CsvExporter,
        launcher: ProcessLauncher,
        settings_store: SettingsStore | None = None,
        settings: AdminSettings | None = None,
    ) -> None:
        self._backend = backend
        self._executor = executor
        self._exporter = exporter
        self._launcher = launcher
        self._settings_store = settings_store
        self._settings = settings or AdminSettings()
        self._settings_requested = False
        self._credentials = Credentials()
        self._state = SessionState.IDLE
        self._connected = False
        self._databases: tuple[str, ...] = ()
        self._result: QueryResult | None = None
        self._enumeration_failure: Failure | None = None
        self._token: CancellationToken | None = None
        self._export_record: ExportRecord | None = None
        self._exporting = False
        self._invoking = False
        self._executable_path = ""
        self._executable_params = ""
        self._last_invocation: InvocationTemplate | None = None
        self._listeners: set[SessionListener] = set()

    # Read-only views.

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def databases(self) -> tuple[str, ...]:
        """Last enumeration, kept even after a later failure."""

        return self._databases

    @property
    def visible_databases(self) -> tuple[str, ...]:
        """Databases offered for selection; empty until connected."""

        return self._databases if self._connected else ()

    @property
    def result(self) -> QueryResult | None:
        return self._result

    @property
    def export_record(self) -> ExportRecord | None:
        return self._export_record

    @property
    def settings(self) -> AdminSettings:
        return self._settings

    @property
    def last_invocation(self) -> InvocationTemplate | None:
        return self._last_invocation

    @property
    def executable_path(self) -> str:
        """Operator-entered executable path, falling back to the admin default."""

        return self._executable_path or self._settings.executable.path

    @property
    def executable_params(self) -> str:
        """Operator-entered parameter template, falling back to the admin default."""

        return self._executable_params or self._settings.executable.default_params

    # Guards.

    @property
    def can_probe(self) -> bool:
        return self._state is SessionState.IDLE

    @property
    def can_submit(self) -> bool:
        return self._state is SessionState.IDLE

    @property
    def can_cancel(self) -> bool:
        return self._state is SessionState.EXECUTING

    def can_export(self, filename: str) -> bool:
        if self._exporting or not filename:
            return False
        return isinstance(self._result, Success) and self._result.has_rows

    @property
    def can_invoke(self) -> bool:
        if self._invoking or self._export_record is None:
            return False
        return bool(self.executable_path)

    # Operator edits.

    def update_credentials(self, **fields: str) -> Credentials:
        """Replace host/port/user/password fields."""

        unknown = set(fields) - {"host", "port", "user", "password"}
        if unknown:
            raise ValueError(f"Unknown credential field(s): {', '.join(sorted(unknown))}")
        self._credentials = replace(self._credentials, **fields)
        self._notify()
        return self._credentials

    def select_database(self, name: str) -> Credentials:
        """Select one of the enumerated databases ('' clears the selection)."""

        if name and name not in self._databases:
            raise ValueError(f"Database '{name}' is not in the fetched list.")
        self._credentials = replace(self._credentials, database=name)
        self._notify()
        return self._credentials

    def set_executable(self, *, path: str | None = None, params: str | None = None) -> None:
        if path is not None:
            self._executable_path = path
        if params is not None:
            self._executable_params = params
        self._notify()

    # Settings loader.

    async def load_settings(self) -> AdminSettings | None:
        """Fetch admin settings once and pre-fill untouched credentials."""

        if self._settings_requested or self._settings_store is None:
            return None
        self._settings_requested = True
        try:
            response = await self._settings_store.load()
        except Exception:
            LOG.warning("Failed to load saved settings", exc_info=True)
            return None
        if not response.success or response.settings is None:
            LOG.warning("Failed to load saved settings: %s", response.error or "no settings returned")
            return None
        self._settings = response.settings
        if self._credentials.is_blank():
            defaults = response.settings.database
            self._credentials = Credentials(
                host=defaults.host,
                port=defaults.port,
                user=defaults.user,
                password=defaults.password,
            )
        self._notify()
        return self._settings

    async def save_settings(self, settings: AdminSettings) -> bool:
        """Persist edited admin settings and use them for later fallbacks."""

        if self._settings_store is None:
            LOG.debug("No settings store configured")
            return False
        try:
            response = await self._settings_store.save(settings)
        except Exception:
            LOG.exception("Failed to save settings")
            return False
        if not response.success:
            LOG.warning("Failed to save settings: %s", response.error or "unknown error")
            return False
        self._settings = response.settings or settings
        self._notify()
        return True

    # Connection probe + enumeration.

    async def test_connection(self) -> QueryResult | None:
        """Probe the server, then enumerate its databases on success."""

        if self._state is not SessionState.IDLE:
            LOG.debug("Ignoring connection test while %s", self._state.value)
            return None
        self._result = None
        self._connected = False
        self._transition(SessionState.PROBING)
        try:
            try:
                response = await self._backend.test_connection(self._credentials.without_database())
            except Exception:
                LOG.exception("Connection probe failed", extra={"host": self._credentials.host})
                self._result = Failure(PROBE_FAILED_MESSAGE, ErrorKind.CONNECTION)
                return self._result
            if not response.success:
                self._result = Failure(response.error or PROBE_FAILED_MESSAGE, ErrorKind.CONNECTION)
                return self._result
            self._result = Success(message=response.message or PROBE_SUCCESS_MESSAGE)
            self._transition(SessionState.LISTING)
            await self._enumerate()
            return self._result
        finally:
            self._transition(SessionState.IDLE)

    async def fetch_databases(self) -> tuple[str, ...] | None:
        """Re-run database enumeration with the current credentials."""

        if self._state is not SessionState.IDLE:
            LOG.debug("Ignoring database refresh while %s", self._state.value)
            return None
        self._transition(SessionState.LISTING)
        try:
            await self._enumerate()
        finally:
            self._transition(SessionState.IDLE)
        return self._databases

    async def _enumerate(self) -> bool:
        try:
            response = await self._backend.list_databases(self._credentials.without_database())
        except Exception:
            LOG.exception("Database enumeration failed", extra={"host": self._credentials.host})
            response = None
        if response is None or not response.success:
            error = response.error if response is not None else None
            self._enumeration_failure = Failure(error or ENUMERATION_FAILED_MESSAGE, ErrorKind.CONNECTION)
            self._result = self._enumeration_failure
            self._connected = False
            return False
        self._databases = tuple(response.databases)
        self._connected = True
        if self._enumeration_failure is not None and self._result is self._enumeration_failure:
            self._result = None
        self._enumeration_failure = None
        if self._credentials.database and self._credentials.database not in self._databases:
            self._credentials = replace(self._credentials, database="")
        return True

    # Query session.

    async def submit_query(self, sql: str) -> QueryResult | None:
        """Run ``sql`` with the current credentials; ignored unless idle."""

        if self._state is not SessionState.IDLE:
            LOG.debug("Rejecting query submission while %s", self._state.value)
            return None
        token = CancellationToken()
        self._token = token
        self._result = None
        self._transition(SessionState.EXECUTING)
        try:
            self._result = await self._await_query(self._credentials, sql, token)
        finally:
            self._token = None
            self._transition(SessionState.IDLE)
        return self._result

    def cancel_query(self) -> bool:
        """Signal the running query's token; returns ``False`` when nothing was signalled."""

        if self._state is not SessionState.EXECUTING or self._token is None:
            return False
        return self._token.cancel()

    async def _await_query(
        self,
        credentials: Credentials,
        sql: str,
        token: CancellationToken,
    ) -> QueryResult:
        task = asyncio.ensure_future(self._executor.execute(credentials, sql, token))
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.add_done_callback(_discard_outcome)
            raise
        finally:
            waiter.cancel()
        if token.cancelled:
            self._transition(SessionState.CANCELLING)
            # The statement may still be running server-side; stop waiting only.
            task.add_done_callback(_discard_outcome)
            return Failure(QUERY_CANCELLED_MESSAGE, ErrorKind.CANCELLED)
        try:
            return _result_from_response(task.result())
        except Exception:
            LOG.exception("Query execution failed", extra={"database": credentials.database})
            return Failure(QUERY_FAILED_MESSAGE, ErrorKind.QUERY)

    # Export pipeline.

    async def export_csv(self, filename: str) -> QueryResult | None:
        """Persist the displayed rows as CSV and remember where they went."""

        result = self._result
        if not self.can_export(filename) or not isinstance(result, Success) or result.rows is None:
            LOG.debug("Export unavailable", extra={"csv_filename": filename})
            return None
        rows = result.rows
        self._exporting = True
        self._notify()
        try:
            try:
                response = await self._exporter.save_csv(rows, filename)
            except Exception as exc:
                LOG.exception("CSV export failed", extra={"csv_filename": filename})
                response = SaveCsvResponse(success=False, error=str(exc) or None)
            if response.success and response.file_path:
                self._export_record = ExportRecord(filename=filename, absolute_path=response.file_path)
                self._result = Success(rows=rows, message=EXPORT_SUCCESS_MESSAGE)
            else:
                self._result = Failure(response.error or EXPORT_FAILED_MESSAGE, ErrorKind.EXPORT)
        finally:
            self._exporting = False
            self._notify()
        return self._result

    # Invocation bridge.

    async def invoke_executable(self) -> QueryResult | None:
        """Run the configured executable with ``{csv}`` replaced by the last export path."""

        record = self._export_record
        if not self.can_invoke or record is None:
            LOG.debug("Invocation unavailable")
            return None
        template = build_template(self.executable_path, self.executable_params, record.absolute_path)
        self._last_invocation = template
        self._invoking = True
        self._notify()
        try:
            try:
                response = await self._launcher.execute_file(template.path, template.params)
            except Exception as exc:
                LOG.exception("Executable invocation failed", extra={"executable": template.path})
                self._result = Failure(str(exc) or INVOCATION_FAILED_MESSAGE, ErrorKind.INVOCATION)
            else:
                if response.success:
                    self._result = Success(output=response.output)
                else:
                    self._result = Failure(response.error or INVOCATION_FAILED_MESSAGE, ErrorKind.INVOCATION)
        finally:
            self._invoking = False
            self._notify()
        return self._result

    # Listeners.

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self._state,
            credentials=self._credentials,
            connected=self._connected,
            databases=self.visible_databases,
            result=self._result,
            export_record=self._export_record,
            exporting=self._exporting,
            invoking=self._invoking,
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Subscribe to session updates; returns an unsubscribe handle."""

        self._listeners.add(listener)
        listener(self.snapshot())

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def _transition(self, state: SessionState) -> None:
        if state is not self._state:
            LOG.debug("Session %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in tuple(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                LOG.exception("Session listener failed")


def _result_from_response(response: QueryResponse) -> QueryResult:
    if not response.success:
        return Failure(response.error or QUERY_FAILED_MESSAGE, ErrorKind.QUERY)
    data: Any = response.data
    if data is None:
        return Success()
    if isinstance(data, int) and not isinstance(data, bool):
        return Success(affected=data)
    rows = tuple(data)
    if not all(isinstance(row, Mapping) for row in rows):
        raise TypeError(f"Expected rows of mappings, got {type(data).__name__}")
    return Success(rows=rows)


def _discard_outcome(task: asyncio.Future[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOG.debug("Discarding error from abandoned query", exc_info=exc)


__all__ = [
    "ENUMERATION_FAILED_MESSAGE",
    "EXPORT_FAILED_MESSAGE",
    "EXPORT_SUCCESS_MESSAGE",
    "INVOCATION_FAILED_MESSAGE",
    "PROBE_FAILED_MESSAGE",
    "QUERY_CANCELLED_MESSAGE",
    "QUERY_FAILED_MESSAGE",
    "SessionController",
    "SessionListener",
]
