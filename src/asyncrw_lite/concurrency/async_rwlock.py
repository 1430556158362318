"""Asyncio reader-writer lock: many concurrent readers OR one writer.

Acquiring never blocks a thread. reader_lock() / writer_lock() return
an asyncio.Future that resolves to a Guard once the lock is granted.
If the lock is free the future is already done when it is returned.

State is one integer plus two wait queues:

    status == 0    idle
    status == -1   one writer holds the lock
    status == n>0  n readers hold the lock

Policy:
  - Writer priority: once any writer is waiting, new readers queue
    behind it even if only readers currently hold the lock.
  - Writers are granted FIFO among themselves.
  - Queued readers carry no order. When the last writer drains they
    are all granted together in one batch.

Every decision (grant, enqueue, cancel, batch wake) happens under one
threading.Lock. Futures are completed after that lock is dropped, so a
continuation that re-enters the lock cannot deadlock. Completion runs
inline when the releasing code is on the waiter's loop thread and via
call_soon_threadsafe otherwise, so a Guard may be released from a
worker thread.

Usage:
    lock = AsyncReaderWriterLock()

    async with lock.read():
        value = shared[key]

    guard = await lock.writer_lock(source.token)
    with guard:
        shared[key] = value

Not reentrant: a task holding the lock must not acquire it again.

Prefer read() / write() over awaiting reader_lock() / writer_lock()
directly. If the awaiting task is cancelled after the grant was
delivered but before the task resumed, the await raises CancelledError
while the future already holds a Guard; read() and write() release it.
A caller awaiting the raw future must do the same:

    fut = lock.writer_lock()
    try:
        guard = await fut
    except asyncio.CancelledError:
        if fut.done() and not fut.cancelled():
            fut.result().release()
        raise
"""
from __future__ import annotations

import asyncio
import enum
import logging
import threading
from collections import deque
from contextlib import asynccontextmanager
from functools import partial
from typing import AsyncIterator

from asyncrw_lite.concurrency.cancellation import (
    CancellationRegistration,
    CancellationToken,
)

log = logging.getLogger(__name__)

_IDLE = 0
_WRITE_HELD = -1

_CANCEL_MSG = "lock request cancelled"


class LockMode(enum.Enum):
    READER = "reader"
    WRITER = "writer"


class GuardReleasedError(RuntimeError):
    """Raised when a Guard is released more than once."""


class Guard:
    """Occupancy token for one successful acquisition.

    Release exactly once, either explicitly or by leaving a ``with`` /
    ``async with`` block. A second release raises GuardReleasedError
    and leaves the lock untouched.
    """

    __slots__ = ("_owner", "_mode", "_released")

    def __init__(self, owner: AsyncReaderWriterLock, mode: LockMode) -> None:
        self._owner = owner
        self._mode = mode
        self._released = False

    @property
    def mode(self) -> LockMode:
        return self._mode

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        self._owner._release(self)

    def __enter__(self) -> Guard:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    async def __aenter__(self) -> Guard:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"<Guard {self._mode.value} {state}>"


class _Waiter:
    """A queued request. settled flips exactly once, under the lock's mutex."""

    __slots__ = ("mode", "future", "registration", "settled")

    def __init__(self, mode: LockMode, future: asyncio.Future) -> None:
        self.mode = mode
        self.future = future
        self.registration: CancellationRegistration | None = None
        self.settled = False


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class AsyncReaderWriterLock:
    """Reader-writer lock for asyncio with writer priority and batch reader wake."""

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._status: int = _IDLE
        self._writers: deque[_Waiter] = deque()
        self._readers: set[_Waiter] = set()

    # -- acquisition ---------------------------------------------------

    def reader_lock(
        self, token: CancellationToken | None = None
    ) -> asyncio.Future[Guard]:
        """Request shared access. Must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        with self._mutex:
            if self._status >= 0 and not self._writers:
                self._status += 1
                log.debug("reader granted immediately (readers=%d)", self._status)
                return self._completed(loop, LockMode.READER)
            if token is not None and token.is_cancelled:
                return self._precancelled(loop, LockMode.READER)
            waiter = _Waiter(LockMode.READER, loop.create_future())
            self._readers.add(waiter)
            log.debug("reader queued (status=%d, pending=%d)",
                      self._status, len(self._readers))
        self._watch(waiter, token)
        return waiter.future

    def writer_lock(
        self, token: CancellationToken | None = None
    ) -> asyncio.Future[Guard]:
        """Request exclusive access. Must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        with self._mutex:
            if self._status == _IDLE:
                self._status = _WRITE_HELD
                log.debug("writer granted immediately")
                return self._completed(loop, LockMode.WRITER)
            if token is not None and token.is_cancelled:
                return self._precancelled(loop, LockMode.WRITER)
            waiter = _Waiter(LockMode.WRITER, loop.create_future())
            self._writers.append(waiter)
            log.debug("writer queued (status=%d, pending=%d)",
                      self._status, len(self._writers))
        self._watch(waiter, token)
        return waiter.future

    @asynccontextmanager
    async def read(self, token: CancellationToken | None = None) -> AsyncIterator[Guard]:
        """Hold a reader guard for the duration of the block."""
        guard = await self._await_grant(self.reader_lock(token))
        with guard:
            yield guard

    @asynccontextmanager
    async def write(self, token: CancellationToken | None = None) -> AsyncIterator[Guard]:
        """Hold the writer guard for the duration of the block."""
        guard = await self._await_grant(self.writer_lock(token))
        with guard:
            yield guard

    @staticmethod
    async def _await_grant(fut: asyncio.Future[Guard]) -> Guard:
        # A task cancelled after its grant landed but before it resumed
        # sees CancelledError over a finished future; hand the guard back.
        try:
            return await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                fut.result().release()
            raise

    # -- introspection -------------------------------------------------

    @property
    def status(self) -> int:
        """-1 if write-held, 0 if idle, otherwise the number of readers."""
        return self._status

    @property
    def pending_readers(self) -> int:
        return len(self._readers)

    @property
    def pending_writers(self) -> int:
        return len(self._writers)

    def locked(self) -> bool:
        return self._status != _IDLE

    def __repr__(self) -> str:
        if self._status == _WRITE_HELD:
            state = "write-locked"
        elif self._status > 0:
            state = f"read-locked({self._status})"
        else:
            state = "unlocked"
        return (
            f"<AsyncReaderWriterLock [{state}, "
            f"waiting writers:{len(self._writers)} readers:{len(self._readers)}]>"
        )

    # -- release -------------------------------------------------------

    def _release(self, guard: Guard) -> None:
        writer: _Waiter | None = None
        readers: list[_Waiter] = []

        with self._mutex:
            if guard._released:
                raise GuardReleasedError(f"{guard.mode.value} guard already released")
            guard._released = True

            if guard.mode is LockMode.READER:
                self._status -= 1
                if self._status == _IDLE and self._writers:
                    self._status = _WRITE_HELD
                    writer = self._pop_writer()
            elif self._writers:
                # ownership moves straight to the next writer; status stays -1
                writer = self._pop_writer()
            elif self._readers:
                readers = self._take_readers()
                self._status = len(readers)
            else:
                self._status = _IDLE

        if writer is not None:
            log.debug("writer granted on release")
            self._resolve(writer, Guard(self, LockMode.WRITER))
        if readers:
            log.debug("batch wake of %d readers on writer release", len(readers))
        for waiter in readers:
            self._resolve(waiter, Guard(self, LockMode.READER))

    # -- cancellation --------------------------------------------------

    def _cancel(self, waiter: _Waiter) -> None:
        """Withdraw a queued waiter. No-op if a grant already settled it."""
        readers: list[_Waiter] = []

        with self._mutex:
            if waiter.settled:
                return
            waiter.settled = True
            if waiter.mode is LockMode.READER:
                self._readers.discard(waiter)
            else:
                self._writers.remove(waiter)
                # Readers queued only because of this writer; nothing else
                # would wake them while other readers still hold the lock.
                if self._status > 0 and not self._writers and self._readers:
                    readers = self._take_readers()
                    self._status += len(readers)

        log.debug("%s request cancelled", waiter.mode.value)
        self._resolve(waiter, None)
        if readers:
            log.debug("batch wake of %d readers after writer cancel", len(readers))
        for reader in readers:
            self._resolve(reader, Guard(self, LockMode.READER))

    def _on_future_done(self, waiter: _Waiter, future: asyncio.Future) -> None:
        # the awaiting task was cancelled, which cancels the future too
        if future.cancelled():
            self._cancel(waiter)

    def _watch(self, waiter: _Waiter, token: CancellationToken | None) -> None:
        waiter.future.add_done_callback(partial(self._on_future_done, waiter))
        if token is None or not token.can_be_cancelled:
            return
        # Registered outside the mutex: an already-fired token runs the
        # callback inline, and the callback takes the mutex.
        registration = token.register(partial(self._cancel, waiter))
        with self._mutex:
            if not waiter.settled:
                waiter.registration = registration
                return
        registration.dispose()

    # -- helpers -------------------------------------------------------

    def _pop_writer(self) -> _Waiter:
        waiter = self._writers.popleft()
        waiter.settled = True
        return waiter

    def _take_readers(self) -> list[_Waiter]:
        batch = list(self._readers)
        self._readers.clear()
        for waiter in batch:
            waiter.settled = True
        return batch

    def _completed(self, loop: asyncio.AbstractEventLoop, mode: LockMode) -> asyncio.Future[Guard]:
        future = loop.create_future()
        future.set_result(Guard(self, mode))
        return future

    def _precancelled(self, loop: asyncio.AbstractEventLoop, mode: LockMode) -> asyncio.Future[Guard]:
        log.debug("%s request cancelled before queueing", mode.value)
        future = loop.create_future()
        future.cancel(msg=_CANCEL_MSG)
        return future

    def _resolve(self, waiter: _Waiter, guard: Guard | None) -> None:
        """Complete a settled waiter's future with guard (None means cancelled)."""
        loop = waiter.future.get_loop()
        if _running_loop() is loop:
            self._deliver(waiter, guard)
            return
        try:
            loop.call_soon_threadsafe(self._deliver, waiter, guard)
        except RuntimeError:
            # loop is closed; nobody is left to await the grant
            log.warning("dropping %s grant for a closed event loop", waiter.mode.value)
            if waiter.registration is not None:
                waiter.registration.dispose()
            if guard is not None:
                guard.release()

    def _deliver(self, waiter: _Waiter, guard: Guard | None) -> None:
        if waiter.registration is not None:
            waiter.registration.dispose()
        future = waiter.future
        if guard is None:
            future.cancel(msg=_CANCEL_MSG)
        elif future.done():
            # grant raced with cancellation of the awaiting task
            log.debug("%s grant abandoned, releasing", guard.mode.value)
            guard.release()
        else:
            future.set_result(guard)
