"""Swappable slot holding the active command-generation backend.

Request handlers take shared (read) access for the duration of one
generation call. The reload path takes exclusive access to swap in a new
backend. Because the swap waits for every reader to let go, the previous
backend is guaranteed idle once ``replace`` returns and can be closed.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from chitin.providers.base import CommandGenerator

logger = logging.getLogger(__name__)


class BackendRegistry:
    """
    Reader/writer guarded reference to the current backend.

    Readers never wait on each other. A pending ``replace`` blocks new
    readers until the swap is done so that a reload cannot be starved by
    steady traffic; readers already holding the backend keep it until their
    call finishes.

    Must be used from a single event loop.
    """

    def __init__(self, backend: CommandGenerator):
        self._backend = backend
        self._readers = 0
        self._writer_waiting = 0
        self._writing = False
        self._cond = asyncio.Condition()

    @property
    def backend(self) -> CommandGenerator:
        """The active backend (unguarded peek, for logging and status)."""
        return self._backend

    @property
    def active_readers(self) -> int:
        return self._readers

    @asynccontextmanager
    async def current(self) -> AsyncIterator[CommandGenerator]:
        """
        Hold shared access to the active backend.

        Usage:
            async with registry.current() as backend:
                command = await asyncio.to_thread(backend.generate, context)
        """
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writing and not self._writer_waiting)
            self._readers += 1
            backend = self._backend
        try:
            yield backend
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    async def replace(self, new_backend: CommandGenerator) -> CommandGenerator:
        """
        Swap in a new backend under exclusive access.

        Returns:
            The backend that was active before the swap
        """
        async with self._cond:
            self._writer_waiting += 1
            try:
                await self._cond.wait_for(lambda: self._readers == 0 and not self._writing)
            except BaseException:
                self._writer_waiting -= 1
                self._cond.notify_all()
                raise
            self._writer_waiting -= 1
            self._writing = True
            try:
                old_backend = self._backend
                self._backend = new_backend
            finally:
                self._writing = False
                self._cond.notify_all()

        logger.info(
            "Backend replaced: %s -> %s",
            getattr(old_backend, "name", type(old_backend).__name__),
            getattr(new_backend, "name", type(new_backend).__name__),
        )
        return old_backend
