"""Artifact receiver - stream an uploaded body into an exclusively created file"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterable, AsyncIterator

from starlette.requests import ClientDisconnect

from remote_runner.errors import StagingError

logger = logging.getLogger("remote-runner.artifacts")


@asynccontextmanager
async def receive_artifact(body: AsyncIterable[bytes], destination: Path) -> AsyncIterator[Path]:
    """Write ``body`` to ``destination`` and remove the file when the block exits.

    The file is created with ``O_EXCL`` semantics: an existing file at
    ``destination`` is left untouched and the upload is refused.

    Args:
        body: request body chunks (e.g. ``Request.stream()``)
        destination: path of the staging file to create

    Yields:
        the staged file path

    Raises:
        StagingError: the file exists or could not be created, or the body
            could not be read or written
    """
    try:
        fh = open(destination, "xb")
    except OSError as e:
        raise StagingError(str(e)) from e

    try:
        size = 0
        try:
            with fh:
                async for chunk in body:
                    fh.write(chunk)
                    size += len(chunk)
        except ClientDisconnect as e:
            raise StagingError("client disconnected before the upload finished") from e
        except OSError as e:
            raise StagingError(str(e)) from e

        logger.debug("Staged %d bytes at %s", size, destination)
        yield destination
    finally:
        destination.unlink(missing_ok=True)
