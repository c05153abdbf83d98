"""iOS runner - unpack a source tarball and run xcodebuild test per scheme"""

from __future__ import annotations

import json
import logging
import shutil
from contextlib import AsyncExitStack
from pathlib import Path
from typing import AsyncIterable, AsyncIterator

from remote_runner.config import ServerConfig
from remote_runner.errors import EnvironmentSetupError, PlatformUnsupportedError, ToolExecutionError
from remote_runner.models.schemas import IOSTestParams
from remote_runner.services.artifact_receiver import receive_artifact
from remote_runner.services.command_runner import CommandRunner
from remote_runner.services.serializer import ExecutionSerializer
from remote_runner.services.tokens import random_alphanumeric_string

logger = logging.getLogger("remote-runner.ios")

SUFFIX_LENGTH = 5
SOURCE_ARCHIVE = "source.tgz"

TEST_PASSED = b"!!TEST PASSED!!\n"
TEST_FAILED = b"!!TEST FAILED!!\n"
ALL_TESTS_PASSED = b"!!ALL TESTS PASSED!!\n"


def _quote(value: str) -> str:
    """Double-quote ``value`` with quotes and control characters escaped."""
    return json.dumps(value, ensure_ascii=False)


class IOSTestSession:
    """An unpacked source tree waiting for its schemes to be tested.

    Owns the staging directory: it is removed when :meth:`stream` finishes
    or when :meth:`close` is called, whichever comes first.
    """

    def __init__(
        self,
        runner: IOSTestRunner,
        params: IOSTestParams,
        workdir: Path,
        cleanup: AsyncExitStack,
    ) -> None:
        self.runner = runner
        self.params = params
        self.workdir = workdir
        self._cleanup = cleanup

    async def stream(self) -> AsyncIterator[bytes]:
        """Test each scheme in order, yielding output as each one finishes."""
        async with self._cleanup:
            async with self.runner.serializer.hold("ios"):
                failed = False
                for scheme in self.params.test_schemes:
                    start_msg = f"ios: Testing scheme {_quote(scheme)} on destination {_quote(self.params.test_destination)}"
                    logger.info(start_msg)
                    yield start_msg.encode("utf-8") + b"\n"

                    try:
                        result = await self.runner.commands.run(
                            self.runner.config.xcodebuild_path,
                            "test",
                            "-destination", self.params.test_destination,
                            "-scheme", scheme,
                            cwd=self.workdir,
                        )
                    except ToolExecutionError as e:
                        failed = True
                        yield TEST_FAILED + e.body
                        continue

                    yield TEST_PASSED + result.output

                if not failed:
                    yield ALL_TESTS_PASSED

    async def close(self) -> None:
        await self._cleanup.aclose()


class IOSTestRunner:
    """Prepares iOS test sessions; commands run with an explicit ``cwd``."""

    def __init__(
        self,
        config: ServerConfig,
        serializer: ExecutionSerializer,
        commands: CommandRunner,
    ) -> None:
        self.config = config
        self.serializer = serializer
        self.commands = commands

    def _make_workdir(self) -> Path:
        workdir = self.config.temp_dir / random_alphanumeric_string(SUFFIX_LENGTH)
        try:
            workdir.mkdir(mode=0o755)
        except OSError as e:
            raise EnvironmentSetupError(str(e)) from e
        return workdir

    async def prepare(self, params: IOSTestParams, body: AsyncIterable[bytes]) -> IOSTestSession:
        """Stage and unpack the uploaded tarball.

        Raises:
            PlatformUnsupportedError: iOS testing is disabled on this server
            EnvironmentSetupError: the staging directory could not be created
            StagingError: the upload could not be staged
            ToolExecutionError: the archive could not be extracted
        """
        if not self.config.enable_ios:
            raise PlatformUnsupportedError("ios tests are not supported on this server")

        cleanup = AsyncExitStack()
        try:
            workdir = self._make_workdir()
            cleanup.callback(shutil.rmtree, workdir, ignore_errors=True)

            archive = await cleanup.enter_async_context(receive_artifact(body, workdir / SOURCE_ARCHIVE))

            logger.info("ios: Unpacking source")
            await self.commands.run(self.config.tar_path, "xf", str(archive), cwd=workdir)
        except BaseException:
            await cleanup.aclose()
            raise

        return IOSTestSession(self, params, workdir, cleanup.pop_all())
