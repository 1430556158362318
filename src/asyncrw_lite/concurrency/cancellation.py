"""One-shot cancellation signals for lock requests.

A CancellationSource owns the signal; a CancellationToken is the
read-only view handed to whoever might be cancelled. Callbacks are
registered on the token and run at most once, when the source fires.

Usage:
    source = CancellationSource()
    fut = lock.writer_lock(source.token)
    source.cancel()          # fut resolves as cancelled if still queued

Timeouts compose on top of this: source.cancel_after(0.5) arms an
event-loop timer that fires the signal.
"""
from __future__ import annotations

import asyncio
import itertools
import threading
from typing import Callable


class CancellationRegistration:
    """Handle for one registered callback. dispose() unregisters it.

    After dispose() returns the callback will not be invoked (unless it
    is already running on another thread). Disposing twice is harmless.
    """

    __slots__ = ("_source", "_key")

    def __init__(self, source: CancellationSource | None, key: int) -> None:
        self._source = source
        self._key = key

    def dispose(self) -> None:
        source = self._source
        if source is None:
            return
        self._source = None
        source._unregister(self._key)

    def __enter__(self) -> CancellationRegistration:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()


class CancellationToken:
    """Read-only view of a CancellationSource."""

    __slots__ = ("_source",)

    def __init__(self, source: CancellationSource | None = None) -> None:
        self._source = source

    @classmethod
    def none(cls) -> CancellationToken:
        """A token that can never be cancelled."""
        return cls(None)

    @property
    def is_cancelled(self) -> bool:
        return self._source is not None and self._source.is_cancelled

    @property
    def can_be_cancelled(self) -> bool:
        return self._source is not None

    def register(self, callback: Callable[[], None]) -> CancellationRegistration:
        """Run callback once when the token fires.

        If the token has already fired, callback runs synchronously
        before register() returns.
        """
        if self._source is None:
            return CancellationRegistration(None, 0)
        return self._source._register(callback)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.is_cancelled})"


class CancellationSource:
    """Thread-safe one-shot signal.

    cancel() may be called from any thread; callbacks run on the
    calling thread, outside the source's internal lock, so a callback
    is free to take other locks or register more callbacks.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._keys = itertools.count(1)
        self._token = CancellationToken(self)

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Fire the signal. Only the first call runs callbacks.

        Every registered callback runs even if an earlier one raises;
        the first exception is re-raised afterwards.
        """
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        first_error: BaseException | None = None
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error

    def cancel_after(self, delay: float) -> asyncio.TimerHandle:
        """Arm a timer on the running loop that cancels after delay seconds.

        The returned handle can be cancelled to disarm the timeout.
        """
        if delay < 0:
            raise ValueError("delay must be non-negative")
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self.cancel)

    def _register(self, callback: Callable[[], None]) -> CancellationRegistration:
        with self._lock:
            if not self._cancelled:
                key = next(self._keys)
                self._callbacks[key] = callback
                return CancellationRegistration(self, key)
        callback()
        return CancellationRegistration(None, 0)

    def _unregister(self, key: int) -> None:
        with self._lock:
            self._callbacks.pop(key, None)

    def __repr__(self) -> str:
        return (
            f"CancellationSource(cancelled={self._cancelled}, "
            f"callbacks={len(self._callbacks)})"
        )
