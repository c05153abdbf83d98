"""Command runner - execute external tools with combined output and a deadline"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import anyio

from remote_runner.errors import ToolExecutionError
from remote_runner.models.schemas import CommandResult

logger = logging.getLogger("remote-runner.commands")

READ_CHUNK_SIZE = 64 * 1024


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill ``process`` and reap it, even inside a cancelled request scope."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    with anyio.CancelScope(shield=True):
        await process.wait()


class CommandRunner:
    """Runs one command at a time per call; stdout and stderr are merged."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    async def run(self, *args: str, cwd: Path | None = None) -> CommandResult:
        """Run ``args`` and return its result.

        Args:
            args: executable followed by its arguments
            cwd: working directory of the child; the server's own working
                directory is never changed

        Raises:
            ToolExecutionError: the executable is missing, the command exits
                non-zero, or it outlives ``self.timeout`` seconds
        """
        logger.debug("Running %s (cwd=%s)", " ".join(args), cwd)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=str(cwd) if cwd is not None else None,
            )
        except FileNotFoundError as e:
            raise ToolExecutionError(f'exec: "{args[0]}": executable file not found') from e
        except OSError as e:
            raise ToolExecutionError(str(e)) from e

        chunks: list[bytes] = []

        async def _drain() -> None:
            while True:
                chunk = await process.stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                chunks.append(chunk)
            await process.wait()

        try:
            await asyncio.wait_for(_drain(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await _kill(process)
            logger.warning("%s timed out after %ss", args[0], self.timeout)
            raise ToolExecutionError(
                f"command timed out after {self.timeout:g}s", b"".join(chunks)
            ) from None
        except BaseException:
            # The child must be gone before the caller releases the execution lock.
            await _kill(process)
            logger.warning("%s cancelled, process %d killed", args[0], process.pid)
            raise

        result = CommandResult(args=list(args), returncode=process.returncode, output=b"".join(chunks))
        if not result.succeeded:
            logger.warning("%s exited with status %d", args[0], result.returncode)
            raise ToolExecutionError(f"exit status {result.returncode}", result.output)
        return result
