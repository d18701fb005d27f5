"""Tests for the connection backends."""

from __future__ import annotations

from typing import Any

import pytest

from sqlbridge.connections import (
    AsyncpgDatabaseBackend,
    ConnectionBackendError,
    DemoConnectionBackend,
    MAINTENANCE_DATABASE,
    connect_kwargs,
)
from sqlbridge.models import Credentials


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _FakeConnection:
    def __init__(self, databases: list[str]) -> None:
        self._databases = databases
        self.closed = False

    async def fetchval(self, query: str) -> int:
        assert query == "SELECT 1"
        return 1

    async def fetch(self, query: str) -> list[dict[str, str]]:
        assert "pg_database" in query
        return [{"datname": name} for name in self._databases]

    async def close(self) -> None:
        self.closed = True


def test_connect_kwargs_uses_maintenance_database_when_unset() -> None:
    kwargs = connect_kwargs(Credentials(host="", port=" 6543 ", user="me"), timeout=2.0)

    assert kwargs == {
        "host": "localhost",
        "port": 6543,
        "user": "me",
        "database": MAINTENANCE_DATABASE,
        "timeout": 2.0,
    }


def test_connect_kwargs_rejects_non_numeric_port() -> None:
    with pytest.raises(ConnectionBackendError):
        connect_kwargs(Credentials(port="five"), timeout=1.0)


@pytest.mark.anyio
async def test_asyncpg_backend_probes_and_lists_in_server_order(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_conn = _FakeConnection(["zeta", "alpha", "postgres"])

    async def _fake_connect(**kwargs: Any) -> _FakeConnection:
        return fake_conn

    monkeypatch.setattr("sqlbridge.connections.asyncpg.connect", _fake_connect)
    backend = AsyncpgDatabaseBackend()
    credentials = Credentials(host="localhost", user="postgres")

    probe = await backend.test_connection(credentials)
    listing = await backend.list_databases(credentials)

    assert probe.success is True
    assert listing.success is True
    assert listing.databases == ("zeta", "alpha", "postgres")
    assert fake_conn.closed is True


@pytest.mark.anyio
async def test_asyncpg_backend_surfaces_connection_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _broken_connect(**kwargs: Any) -> None:
        raise OSError("connection refused")

    monkeypatch.setattr("sqlbridge.connections.asyncpg.connect", _broken_connect)
    backend = AsyncpgDatabaseBackend()

    probe = await backend.test_connection(Credentials(host="db"))
    listing = await backend.list_databases(Credentials(host="db"))

    assert probe.success is False
    assert probe.error and "connection refused" in probe.error
    assert listing.success is False
    assert listing.databases == ()


@pytest.mark.anyio
async def test_demo_backend_lists_presets() -> None:
    backend = DemoConnectionBackend(["one", "two"], latency=0)

    probe = await backend.test_connection(Credentials(host="example"))
    listing = await backend.list_databases(Credentials())

    assert probe.success is True
    assert listing.databases == ("one", "two")
