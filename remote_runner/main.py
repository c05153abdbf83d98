"""Remote Test Runner - FastAPI application and CLI entry point.

Usage:
    remote-runner --secret <secret> [--port 8080] [--no-ios] [-v]
    python -m remote_runner --secret <secret>
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from remote_runner.auth import SharedSecretMiddleware
from remote_runner.config import DEFAULT_ANDROID_RUNNER, DEFAULT_COMMAND_TIMEOUT, DEFAULT_PORT, ServerConfig
from remote_runner.errors import RunnerError
from remote_runner.routers.dispatch_router import router as dispatch_router
from remote_runner.services.android_runner import AndroidTestRunner
from remote_runner.services.command_runner import CommandRunner
from remote_runner.services.ios_runner import IOSTestRunner
from remote_runner.services.serializer import ExecutionSerializer

logger = logging.getLogger("remote-runner")

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Make sure the staging root exists before serving."""
    config: ServerConfig = app.state.config
    config.temp_dir.mkdir(parents=True, exist_ok=True)
    logger.info(
        "Server started on http://%s:%d (staging in %s, ios %s)",
        config.host,
        config.port,
        config.temp_dir,
        "enabled" if config.enable_ios else "disabled",
    )
    yield
    logger.info("Server stopped")


async def runner_error_handler(request: Request, exc: RunnerError) -> Response:
    return Response(content=exc.body, status_code=exc.status_code, media_type="text/plain; charset=utf-8")


async def global_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Anything the runners did not classify ends the request with a 500."""
    logger.exception("Unhandled exception: %s", exc)
    return PlainTextResponse(str(exc), status_code=500)


def create_app(
    config: ServerConfig,
    serializer: ExecutionSerializer | None = None,
    commands: CommandRunner | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if serializer is None:
        serializer = ExecutionSerializer()
    if commands is None:
        commands = CommandRunner(timeout=config.command_timeout)

    app = FastAPI(
        title="Remote Test Runner",
        version=VERSION,
        description="Install and run uploaded Android and iOS test builds",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.config = config
    app.state.serializer = serializer
    app.state.android_runner = AndroidTestRunner(config, serializer, commands)
    app.state.ios_runner = IOSTestRunner(config, serializer, commands)

    app.add_middleware(SharedSecretMiddleware, secret=config.secret)
    app.add_exception_handler(RunnerError, runner_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(dispatch_router)
    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="remote-runner",
        description="HTTP trigger for Android instrumentation and xcodebuild test runs.",
    )
    parser.add_argument("--secret", default="", help="Request secret expected in the Authorization header")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Bind port (default: {DEFAULT_PORT})")
    parser.add_argument("--temp-dir", type=Path, default=None, help="Staging root (default: system temp dir)")
    parser.add_argument(
        "--command-timeout", type=float, default=DEFAULT_COMMAND_TIMEOUT,
        help=f"Seconds allowed per external command, 0 to wait forever (default: {DEFAULT_COMMAND_TIMEOUT:g})",
    )
    parser.add_argument(
        "--android-runner", default=DEFAULT_ANDROID_RUNNER,
        help=f"Instrumentation runner class (default: {DEFAULT_ANDROID_RUNNER})",
    )
    parser.add_argument("--adb", default="adb", help="adb executable")
    parser.add_argument("--tar", default="tar", help="tar executable")
    parser.add_argument("--xcodebuild", default="xcodebuild", help="xcodebuild executable")
    parser.add_argument(
        "--ios", action=argparse.BooleanOptionalAction, default=None,
        help="Accept iOS test requests (default: only on macOS)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    overrides = {}
    if args.temp_dir is not None:
        overrides["temp_dir"] = args.temp_dir
    if args.ios is not None:
        overrides["enable_ios"] = args.ios
    return ServerConfig(
        secret=args.secret,
        host=args.host,
        port=args.port,
        command_timeout=args.command_timeout or None,
        android_runner_class=args.android_runner,
        adb_path=args.adb,
        tar_path=args.tar,
        xcodebuild_path=args.xcodebuild,
        **overrides,
    )


def cli(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.secret:
        parser.print_usage(sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_level="debug" if args.verbose else "info")
