"""Remote test runner - request and result models"""

from enum import Enum

from pydantic import BaseModel, Field

from remote_runner.errors import QueryValidationError


def _first(query: dict[str, list[str]], key: str) -> str:
    """Return the first value for ``key``, or an empty string when absent."""
    values = query.get(key)
    return values[0] if values else ""


def _require(query: dict[str, list[str]], key: str) -> str:
    value = _first(query, key)
    if value == "":
        raise QueryValidationError(f"must specify '{key}'")
    return value


# === Dispatch ===


class TestType(str, Enum):
    __test__ = False

    ANDROID = "android"
    IOS = "ios"

    @classmethod
    def from_query(cls, query: dict[str, list[str]]) -> "TestType":
        try:
            return cls(_first(query, "test_type"))
        except ValueError:
            raise QueryValidationError("must specify 'test_type'") from None


# === Runner parameters ===


class AndroidTestParams(BaseModel):
    """Parameters of an Android instrumentation run"""

    test_package: str = Field(..., min_length=1, description="Package holding the instrumentation tests")

    @classmethod
    def from_query(cls, query: dict[str, list[str]]) -> "AndroidTestParams":
        return cls(test_package=_require(query, "test_package"))


class IOSTestParams(BaseModel):
    """Parameters of an xcodebuild test run"""

    test_destination: str = Field(..., min_length=1, description="xcodebuild -destination specifier")
    test_schemes: list[str] = Field(..., min_length=1, description="Schemes to test, in order")

    @classmethod
    def from_query(cls, query: dict[str, list[str]]) -> "IOSTestParams":
        destination = _require(query, "test_destination")
        # Empty segments are kept; xcodebuild rejects them itself.
        schemes = _require(query, "test_schemes").split(",")
        return cls(test_destination=destination, test_schemes=schemes)


# === Command results ===


class CommandResult(BaseModel):
    """Outcome of one external command"""

    args: list[str]
    returncode: int
    output: bytes = b""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0
