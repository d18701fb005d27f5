"""Query execution services backing the query session."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Protocol

import asyncpg

from .cancellation import CancellationToken
from .connections import ConnectionBackendError, connect_kwargs
from .models import Credentials, QueryResponse, Row

LOG = logging.getLogger(__name__)


class QueryExecutionError(RuntimeError):
    """Raised when a query fails to execute."""


class QueryExecutor(Protocol):
    """Interface implemented by query executors."""

    async def execute(
        self,
        credentials: Credentials,
        sql: str,
        token: CancellationToken,
    ) -> QueryResponse: ...


class AsyncpgQueryExecutor:
    """Runs SQL statements against PostgreSQL via asyncpg."""

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout

    async def execute(
        self,
        credentials: Credentials,
        sql: str,
        token: CancellationToken,
    ) -> QueryResponse:
        try:
            data = await self._run(credentials, sql, token)
        except (QueryExecutionError, ConnectionBackendError) as exc:
            return QueryResponse(success=False, error=str(exc))
        return QueryResponse(success=True, data=data)

    async def _run(
        self,
        credentials: Credentials,
        sql: str,
        token: CancellationToken,
    ) -> tuple[Row, ...] | int | None:
        statement = sql.strip()
        if not statement:
            raise QueryExecutionError("Provide SQL to execute.")
        kwargs = connect_kwargs(credentials, timeout=self._connect_timeout)
        try:
            conn = await asyncpg.connect(**kwargs)
        except Exception as exc:
            raise QueryExecutionError(f"Failed to connect to {kwargs['host']}: {exc}") from exc
        try:
            if token.cancelled:
                # Nothing sent yet; skip the round-trip.
                return None
            prepared = await conn.prepare(statement)
            records = await prepared.fetch()
            if prepared.get_attributes():
                return _records_to_rows(records)
            return _affected_from_status(prepared.get_statusmsg())
        except Exception as exc:
            raise QueryExecutionError(str(exc)) from exc
        finally:
            try:
                await conn.close()
            except Exception:  # pragma: no cover - best effort cleanup
                LOG.debug("Ignoring error while closing connection", exc_info=True)


class DemoQueryExecutor:
    """Returns fake result sets when the demo backend is active."""

    def __init__(self, *, row_count: int = 5, delay: float = 0.5) -> None:
        self._row_count = row_count
        self._delay = delay

    async def execute(
        self,
        credentials: Credentials,
        sql: str,
        token: CancellationToken,
    ) -> QueryResponse:
        statement = sql.strip()
        if not statement:
            return QueryResponse(success=False, error="Provide SQL to execute.")
        await asyncio.sleep(self._delay)
        database = credentials.database or "demo"
        rows = tuple(
            {"id": idx + 1, "database": database, "value": f"{database}_{idx}"}
            for idx in range(self._row_count)
        )
        return QueryResponse(success=True, data=rows)


def _records_to_rows(records: Iterable[asyncpg.Record]) -> tuple[Row, ...]:
    rows: list[Row] = []
    for record in records:
        rows.append({str(key): record[key] for key in record.keys()})
    return tuple(rows)


def _affected_from_status(status: str | None) -> int | None:
    """Parse the affected-row count out of a command tag like ``INSERT 0 3``."""

    if not status:
        return None
    tail = status.rsplit(None, 1)[-1]
    if tail.isdigit():
        return int(tail)
    return None


__all__ = [
    "AsyncpgQueryExecutor",
    "DemoQueryExecutor",
    "QueryExecutionError",
    "QueryExecutor",
]
