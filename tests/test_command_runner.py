"""Tests for the command runner"""

import asyncio
import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from remote_runner.errors import ToolExecutionError
from remote_runner.services.command_runner import CommandRunner
from remote_runner.services.serializer import ExecutionSerializer

PY = sys.executable


@pytest.fixture
def runner():
    return CommandRunner(timeout=10)


@pytest.mark.asyncio
async def test_combines_stdout_and_stderr(runner):
    script = "import sys; sys.stdout.write('out\\n'); sys.stdout.flush(); sys.stderr.write('err\\n')"
    result = await runner.run(PY, "-c", script)

    assert result.succeeded
    assert result.returncode == 0
    assert b"out\n" in result.output
    assert b"err\n" in result.output
    assert result.args == [PY, "-c", script]


@pytest.mark.asyncio
async def test_nonzero_exit_raises_with_output(runner):
    with pytest.raises(ToolExecutionError) as exc_info:
        await runner.run(PY, "-c", "print('Failure [INSTALL_FAILED]'); raise SystemExit(3)")

    assert exc_info.value.message == "exit status 3"
    assert b"Failure [INSTALL_FAILED]" in exc_info.value.output
    assert exc_info.value.body.startswith(b"exit status 3\n")


@pytest.mark.asyncio
async def test_missing_executable(runner):
    with pytest.raises(ToolExecutionError, match="executable file not found"):
        await runner.run("definitely-not-a-real-tool-xyz", "install")


@pytest.mark.asyncio
async def test_runs_in_given_cwd(runner, tmp_path: Path):
    result = await runner.run(PY, "-c", "import os; print(os.getcwd())", cwd=tmp_path)
    assert Path(result.output.decode().strip()).resolve() == tmp_path.resolve()


@pytest.mark.asyncio
async def test_timeout_kills_and_keeps_partial_output():
    runner = CommandRunner(timeout=0.5)
    script = "import sys, time; print('started'); sys.stdout.flush(); time.sleep(30)"

    with pytest.raises(ToolExecutionError, match="timed out after 0.5s") as exc_info:
        await runner.run(PY, "-c", script)

    assert b"started" in exc_info.value.output


@pytest.mark.asyncio
async def test_passes_arguments_to_subprocess(tmp_path: Path):
    """stderr is merged into the stdout pipe"""
    process = MagicMock()
    process.stdout.read = AsyncMock(side_effect=[b"Success\n", b""])
    process.wait = AsyncMock(return_value=0)
    process.returncode = 0

    with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=process)) as mock_exec:
        result = await CommandRunner().run("adb", "install", "-r", "/tmp/test_abcde.apk", cwd=tmp_path)

    mock_exec.assert_called_once_with(
        "adb", "install", "-r", "/tmp/test_abcde.apk",
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        cwd=str(tmp_path),
    )
    assert result.output == b"Success\n"


@pytest.mark.asyncio
async def test_cancel_kills_child_before_lock_is_released():
    serializer = ExecutionSerializer()
    runner = CommandRunner(timeout=None)
    spawned = []
    returncode_at_release = []
    real_exec = asyncio.create_subprocess_exec

    async def spawn(*args, **kwargs):
        process = await real_exec(*args, **kwargs)
        spawned.append(process)
        return process

    async def run_locked():
        async with serializer.hold("ios"):
            try:
                await runner.run(PY, "-c", "import time; time.sleep(30)")
            finally:
                returncode_at_release.append(spawned[0].returncode)

    with patch("asyncio.create_subprocess_exec", side_effect=spawn):
        task = asyncio.create_task(run_locked())
        while not spawned:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert not serializer.locked
    # reaped while the lock was still held
    assert returncode_at_release[0] is not None
    with pytest.raises(ProcessLookupError):
        os.kill(spawned[0].pid, 0)
