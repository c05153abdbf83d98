"""Shared fixtures - a scripted stand-in for external tools."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable

import pytest

from remote_runner.config import ServerConfig
from remote_runner.errors import ToolExecutionError
from remote_runner.models.schemas import CommandResult
from remote_runner.services.command_runner import CommandRunner

SECRET = "s3cret-token"


class FakeCommands(CommandRunner):
    """Records every call and answers from ``handler(args, cwd) -> (returncode, output)``.

    Also tracks how many commands are running at once so tests can check
    that tool invocations never overlap.
    """

    def __init__(
        self,
        handler: Callable[[tuple[str, ...], Path | None], tuple[int, bytes]] | None = None,
        delay: float = 0.0,
        tracked: set[str] | None = None,
    ) -> None:
        super().__init__(timeout=None)
        self.handler = handler or (lambda args, cwd: (0, b"ok\n"))
        self.delay = delay
        self.calls: list[tuple[tuple[str, ...], Path | None]] = []
        self.active = 0
        self.max_active = 0
        # executables counted in active/max_active; None counts every call
        self.tracked = tracked

    async def run(self, *args: str, cwd: Path | None = None) -> CommandResult:
        self.calls.append((args, cwd))
        counted = self.tracked is None or args[0] in self.tracked
        if counted:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            returncode, output = self.handler(args, cwd)
        finally:
            if counted:
                self.active -= 1
        if returncode != 0:
            raise ToolExecutionError(f"exit status {returncode}", output)
        return CommandResult(args=list(args), returncode=returncode, output=output)


@pytest.fixture
def config(tmp_path: Path) -> ServerConfig:
    return ServerConfig(secret=SECRET, temp_dir=tmp_path, enable_ios=True, command_timeout=None)


@pytest.fixture
def commands() -> FakeCommands:
    return FakeCommands()


async def body_of(*chunks: bytes):
    for chunk in chunks:
        yield chunk
