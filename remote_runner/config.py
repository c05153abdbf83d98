"""Server configuration."""

from __future__ import annotations

import logging
import platform
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger("remote-runner.config")

DEFAULT_PORT = 8080
DEFAULT_COMMAND_TIMEOUT = 3600.0
DEFAULT_ANDROID_RUNNER = "android.support.test.runner.AndroidJUnitRunner"


def _default_temp_dir() -> Path:
    return Path(tempfile.gettempdir())


def _ios_supported() -> bool:
    return platform.system() == "Darwin"


@dataclass
class ServerConfig:
    """Configuration for the remote test runner."""

    secret: str = field(default="", repr=False)
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    temp_dir: Path = field(default_factory=_default_temp_dir)
    # Seconds per external command; None waits forever.
    command_timeout: float | None = DEFAULT_COMMAND_TIMEOUT
    android_runner_class: str = DEFAULT_ANDROID_RUNNER
    adb_path: str = "adb"
    tar_path: str = "tar"
    xcodebuild_path: str = "xcodebuild"
    enable_ios: bool = field(default_factory=_ios_supported)

    def __post_init__(self) -> None:
        if not self.secret:
            raise ValueError("secret must not be empty")
        if self.command_timeout is not None and self.command_timeout <= 0:
            raise ValueError("command_timeout must be positive")
        if not self.android_runner_class:
            raise ValueError("android_runner_class must not be empty")
        self.temp_dir = Path(self.temp_dir)
