"""Execution serializer - one device-touching run at a time"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger("remote-runner.serializer")


class ExecutionSerializer:
    """Wraps a single lock shared by the Android and iOS runners.

    One instance lives on ``app.state`` and is handed to both runners, so
    tests can substitute an instrumented subclass.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, label: str) -> AsyncIterator[None]:
        if self._lock.locked():
            logger.debug("%s: waiting for execution lock", label)
        async with self._lock:
            logger.debug("%s: execution lock acquired", label)
            try:
                yield
            finally:
                logger.debug("%s: execution lock released", label)
