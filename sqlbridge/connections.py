"""Connection backends used for probing and database enumeration."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence, runtime_checkable

import asyncpg

from .models import Credentials, DatabasesResponse, ProbeResponse

LOG = logging.getLogger(__name__)

MAINTENANCE_DATABASE = "postgres"


class ConnectionBackendError(RuntimeError):
    """Raised when a backend cannot connect or list databases."""


@runtime_checkable
class DatabaseBackend(Protocol):
    """Protocol implemented by connection backends."""

    async def test_connection(self, credentials: Credentials) -> ProbeResponse:
        """Round-trip to the server without running operator SQL."""

    async def list_databases(self, credentials: Credentials) -> DatabasesResponse:
        """Return the databases visible to the login, in server order."""


def connect_kwargs(credentials: Credentials, *, timeout: float) -> dict[str, object]:
    """Translate operator credentials into ``asyncpg.connect`` keyword arguments."""

    kwargs: dict[str, object] = {"host": credentials.host or "localhost"}
    port = credentials.port.strip()
    if port:
        try:
            kwargs["port"] = int(port)
        except ValueError as exc:
            raise ConnectionBackendError(f"Invalid port '{credentials.port}'.") from exc
    if credentials.user:
        kwargs["user"] = credentials.user
    if credentials.password:
        kwargs["password"] = credentials.password
    kwargs["database"] = credentials.database or MAINTENANCE_DATABASE
    kwargs["timeout"] = timeout
    return kwargs


class AsyncpgDatabaseBackend:
    """Connection backend that talks to PostgreSQL via asyncpg."""

    _PROBE_QUERY = "SELECT 1"

    _DATABASES_QUERY = """
        SELECT datname
        FROM pg_database
        WHERE NOT datistemplate AND datallowconn
    """

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout

    async def test_connection(self, credentials: Credentials) -> ProbeResponse:
        try:
            conn = await self._connect(credentials)
            try:
                await conn.fetchval(self._PROBE_QUERY)
            finally:
                await self._close(conn)
        except ConnectionBackendError as exc:
            return ProbeResponse(success=False, error=str(exc))
        except Exception as exc:
            return ProbeResponse(success=False, error=f"Connection failed: {exc}")
        return ProbeResponse(success=True, message="Connection successful")

    async def list_databases(self, credentials: Credentials) -> DatabasesResponse:
        try:
            conn = await self._connect(credentials)
            try:
                rows = await conn.fetch(self._DATABASES_QUERY)
            finally:
                await self._close(conn)
        except ConnectionBackendError as exc:
            return DatabasesResponse(success=False, error=str(exc))
        except Exception as exc:
            return DatabasesResponse(success=False, error=f"Failed to fetch databases: {exc}")
        return DatabasesResponse(success=True, databases=tuple(str(row["datname"]) for row in rows))

    async def _connect(self, credentials: Credentials):
        kwargs = connect_kwargs(credentials, timeout=self._connect_timeout)
        try:
            return await asyncpg.connect(**kwargs)
        except Exception as exc:
            raise ConnectionBackendError(
                f"Failed to connect to {kwargs['host']}: {exc}"
            ) from exc

    @staticmethod
    async def _close(conn) -> None:  # type: ignore[no-untyped-def]
        try:
            await conn.close()
        except Exception:  # pragma: no cover - best effort cleanup
            LOG.debug("Ignoring error while closing connection", exc_info=True)


DEMO_DATABASES: tuple[str, ...] = ("postgres", "analytics", "inventory")


class DemoConnectionBackend:
    """Offline backend that accepts any credentials and lists preset databases."""

    def __init__(
        self,
        databases: Sequence[str] | None = None,
        *,
        latency: float = 0.05,
    ) -> None:
        self._databases = tuple(databases) if databases is not None else DEMO_DATABASES
        self._latency = latency

    async def test_connection(self, credentials: Credentials) -> ProbeResponse:
        await asyncio.sleep(self._latency)
        return ProbeResponse(success=True, message=f"Connected to demo server at {credentials.host or 'localhost'}")

    async def list_databases(self, credentials: Credentials) -> DatabasesResponse:
        await asyncio.sleep(self._latency)
        return DatabasesResponse(success=True, databases=self._databases)


__all__ = [
    "AsyncpgDatabaseBackend",
    "ConnectionBackendError",
    "DatabaseBackend",
    "DEMO_DATABASES",
    "DemoConnectionBackend",
    "MAINTENANCE_DATABASE",
    "connect_kwargs",
]
