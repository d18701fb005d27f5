"""Executable invocation with the exported CSV path substituted into its parameters."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Protocol, Sequence

from .models import ExecuteFileResponse, InvocationTemplate

LOG = logging.getLogger(__name__)

CSV_PLACEHOLDER = "{csv}"


class LaunchError(RuntimeError):
    """Raised when an executable cannot be started or does not finish."""


class ProcessLauncher(Protocol):
    """Interface implemented by process launchers."""

    async def execute_file(self, path: str, parameters: Sequence[str]) -> ExecuteFileResponse: ...


def tokenize_params(template: str) -> tuple[str, ...]:
    """Split a parameter template on single spaces.

    There is no quoting: consecutive spaces produce empty tokens and a token
    can never contain a space. An empty template yields one empty token.
    """

    return tuple(template.split(" "))


def substitute_csv_path(tokens: Iterable[str], csv_path: str) -> tuple[str, ...]:
    """Replace the first ``{csv}`` in every token with ``csv_path``."""

    return tuple(token.replace(CSV_PLACEHOLDER, csv_path, 1) for token in tokens)


def build_template(path: str, params: str, csv_path: str) -> InvocationTemplate:
    return InvocationTemplate(path=path, params=substitute_csv_path(tokenize_params(params), csv_path))


class SubprocessLauncher:
    """Runs a local executable and captures its output."""

    def __init__(self, *, timeout: float = 60.0, encoding: str = "utf-8") -> None:
        self._timeout = timeout
        self._encoding = encoding

    async def execute_file(self, path: str, parameters: Sequence[str]) -> ExecuteFileResponse:
        try:
            returncode, stdout, stderr = await self._run(path, parameters)
        except LaunchError as exc:
            return ExecuteFileResponse(success=False, error=str(exc))
        if returncode != 0:
            detail = stderr.strip() or f"Process exited with code {returncode}"
            return ExecuteFileResponse(success=False, output=stdout, error=detail)
        return ExecuteFileResponse(success=True, output=stdout)

    async def _run(self, path: str, parameters: Sequence[str]) -> tuple[int, str, str]:
        LOG.info("Launching executable", extra={"executable": path, "arguments": list(parameters)})
        try:
            process = await asyncio.create_subprocess_exec(
                path,
                *parameters,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise LaunchError(f"Failed to start '{path}': {exc}") from exc
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise LaunchError(f"'{path}' did not finish within {self._timeout:g} seconds.") from exc
        return (
            process.returncode if process.returncode is not None else -1,
            stdout.decode(self._encoding, errors="replace"),
            stderr.decode(self._encoding, errors="replace"),
        )


__all__ = [
    "CSV_PLACEHOLDER",
    "LaunchError",
    "ProcessLauncher",
    "SubprocessLauncher",
    "build_template",
    "substitute_csv_path",
    "tokenize_params",
]
