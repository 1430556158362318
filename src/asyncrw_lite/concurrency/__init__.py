"""Asyncio reader-writer lock and its cancellation signal.

  - AsyncReaderWriterLock: many readers OR one writer, awaited not blocked
  - Guard: single-release token handed out on every grant
  - CancellationSource / CancellationToken: one-shot signal that withdraws
    a queued request
"""
from asyncrw_lite.concurrency.async_rwlock import (
    AsyncReaderWriterLock,
    Guard,
    GuardReleasedError,
    LockMode,
)
from asyncrw_lite.concurrency.cancellation import (
    CancellationRegistration,
    CancellationSource,
    CancellationToken,
)

__all__ = [
    "AsyncReaderWriterLock",
    "CancellationRegistration",
    "CancellationSource",
    "CancellationToken",
    "Guard",
    "GuardReleasedError",
    "LockMode",
]
