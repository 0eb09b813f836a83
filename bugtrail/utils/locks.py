"""Asyncio reader/writer lock.

asyncio ships a mutex but no shared/exclusive lock. The ticketing
providers need one around their credential slot: ticket creation and
connection checks read concurrently, while authentication replaces the
credentials exclusively.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class AsyncReadWriteLock:
    """Shared/exclusive lock for coroutines.

    Any number of readers may hold the lock at once. A writer holds it
    alone. Waiting writers block new readers, so a steady stream of reads
    cannot starve authentication.

    Usage:
        lock = AsyncReadWriteLock()

        async with lock.read():
            snapshot = self._value

        async with lock.write():
            self._value = new_value
    """

    def __init__(self) -> None:
        self._condition = asyncio.Condition()
        self._readers = 0
        self._writer_active = False
        self._writers_waiting = 0

    @property
    def readers(self) -> int:
        """Number of readers currently holding the lock."""
        return self._readers

    @property
    def writer_active(self) -> bool:
        """Whether a writer currently holds the lock."""
        return self._writer_active

    async def acquire_read(self) -> None:
        async with self._condition:
            await self._condition.wait_for(
                lambda: not self._writer_active and self._writers_waiting == 0
            )
            self._readers += 1

    async def release_read(self) -> None:
        async with self._condition:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a matching acquire_read()")
            self._readers -= 1
            if self._readers == 0:
                self._condition.notify_all()

    async def acquire_write(self) -> None:
        async with self._condition:
            self._writers_waiting += 1
            try:
                await self._condition.wait_for(
                    lambda: not self._writer_active and self._readers == 0
                )
            except BaseException:
                # Cancelled while queued: readers gated on this writer may proceed.
                self._writers_waiting -= 1
                self._condition.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer_active = True

    async def release_write(self) -> None:
        async with self._condition:
            if not self._writer_active:
                raise RuntimeError("release_write() called without a matching acquire_write()")
            self._writer_active = False
            self._condition.notify_all()

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        """Hold the lock in shared mode for the body of the block."""
        await self.acquire_read()
        try:
            yield
        finally:
            await self.release_read()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        """Hold the lock in exclusive mode for the body of the block."""
        await self.acquire_write()
        try:
            yield
        finally:
            await self.release_write()


__all__ = ["AsyncReadWriteLock"]
