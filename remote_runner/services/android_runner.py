"""Android runner - install an APK and run its instrumentation tests"""

import logging
from pathlib import Path
from typing import AsyncIterable

from remote_runner.config import ServerConfig
from remote_runner.models.schemas import AndroidTestParams
from remote_runner.services.artifact_receiver import receive_artifact
from remote_runner.services.command_runner import CommandRunner
from remote_runner.services.serializer import ExecutionSerializer
from remote_runner.services.tokens import random_alphanumeric_string

logger = logging.getLogger("remote-runner.android")

SUFFIX_LENGTH = 5


class AndroidTestRunner:
    """Stages the uploaded APK, then installs and instruments it via adb."""

    def __init__(
        self,
        config: ServerConfig,
        serializer: ExecutionSerializer,
        commands: CommandRunner,
    ) -> None:
        self.config = config
        self.serializer = serializer
        self.commands = commands

    def staging_path(self) -> Path:
        return self.config.temp_dir / f"test_{random_alphanumeric_string(SUFFIX_LENGTH)}.apk"

    async def run(self, params: AndroidTestParams, body: AsyncIterable[bytes]) -> bytes:
        """Install the APK from ``body`` and return the instrumentation output.

        Steps:
        1. stage the body at ``<temp_dir>/test_<suffix>.apk``
        2. take the execution lock
        3. ``adb install -r <apk>``
        4. ``adb shell am instrument -w <package>/<runner class>``

        The staged file is removed on every exit path; the package stays on
        the device.

        Raises:
            StagingError: the upload could not be staged
            ToolExecutionError: install or instrumentation failed
        """
        async with receive_artifact(body, self.staging_path()) as apk_path:
            logger.info("android: Installing and running %s", params.test_package)

            async with self.serializer.hold("android"):
                adb = self.config.adb_path
                await self.commands.run(adb, "install", "-r", str(apk_path))

                target = f"{params.test_package}/{self.config.android_runner_class}"
                result = await self.commands.run(adb, "shell", "am", "instrument", "-w", target)

        return result.output
