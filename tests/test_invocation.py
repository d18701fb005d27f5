"""Tests for parameter substitution and the subprocess launcher."""

from __future__ import annotations

import sys

import pytest

from sqlbridge.invocation import SubprocessLauncher, build_template, substitute_csv_path, tokenize_params

CSV_PATH = "/tmp/out.csv"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.parametrize(
    ("template", "expected"),
    [
        ("{csv}", ("/tmp/out.csv",)),
        ("--file={csv}", ("--file=/tmp/out.csv",)),
        ("plain", ("plain",)),
        ("{csv} {csv}", ("/tmp/out.csv", "/tmp/out.csv")),
        ("--in {csv}", ("--in", "/tmp/out.csv")),
        ("{csv}{csv}", ("/tmp/out.csv{csv}",)),
    ],
)
def test_substitution(template: str, expected: tuple[str, ...]) -> None:
    assert substitute_csv_path(tokenize_params(template), CSV_PATH) == expected


def test_tokenize_splits_on_single_spaces_only() -> None:
    assert tokenize_params("a  b") == ("a", "", "b")
    assert tokenize_params('"quoted arg"') == ('"quoted', 'arg"')
    assert tokenize_params("") == ("",)


def test_build_template_keeps_path() -> None:
    template = build_template("/usr/bin/tool", "-x {csv}", CSV_PATH)

    assert template.path == "/usr/bin/tool"
    assert template.params == ("-x", CSV_PATH)


@pytest.mark.anyio
async def test_launcher_captures_stdout() -> None:
    launcher = SubprocessLauncher(timeout=30)

    response = await launcher.execute_file(sys.executable, ["-c", "import sys; print(sys.argv[1])", CSV_PATH])

    assert response.success is True
    assert response.output is not None
    assert response.output.strip() == CSV_PATH


@pytest.mark.anyio
async def test_launcher_reports_non_zero_exit() -> None:
    launcher = SubprocessLauncher(timeout=30)

    response = await launcher.execute_file(
        sys.executable,
        ["-c", "import sys; sys.stderr.write('bad input'); sys.exit(3)"],
    )

    assert response.success is False
    assert response.error == "bad input"


@pytest.mark.anyio
async def test_launcher_reports_missing_executable(tmp_path) -> None:  # type: ignore[no-untyped-def]
    launcher = SubprocessLauncher()

    response = await launcher.execute_file(str(tmp_path / "missing-tool"), [])

    assert response.success is False
    assert response.error and "Failed to start" in response.error


@pytest.mark.anyio
async def test_launcher_times_out() -> None:
    launcher = SubprocessLauncher(timeout=0.2)

    response = await launcher.execute_file(sys.executable, ["-c", "import time; time.sleep(5)"])

    assert response.success is False
    assert response.error and "did not finish" in response.error
