"""Error taxonomy - each error knows the HTTP status it is reported with."""

from __future__ import annotations


class RunnerError(Exception):
    """Base class for errors that end a request with a plain-text body."""

    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    @property
    def body(self) -> bytes:
        return self.message.encode("utf-8", errors="replace")


class AuthorizationError(RunnerError):
    status_code = 401

    @property
    def body(self) -> bytes:
        return b""


class QueryValidationError(RunnerError):
    """Missing required parameter or malformed query string."""

    status_code = 400


class StagingError(RunnerError):
    """The uploaded artifact could not be written to temp storage."""

    status_code = 400


class ToolExecutionError(RunnerError):
    """An external command failed; ``output`` holds its combined stdout/stderr."""

    status_code = 400

    def __init__(self, message: str, output: bytes = b"") -> None:
        super().__init__(message)
        self.output = output

    @property
    def body(self) -> bytes:
        return self.message.encode("utf-8", errors="replace") + b"\n" + self.output


class EnvironmentSetupError(RunnerError):
    """Staging directory could not be prepared."""

    status_code = 500


class PlatformUnsupportedError(RunnerError):
    status_code = 500
