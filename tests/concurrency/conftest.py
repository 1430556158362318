"""Shared fixtures for the async reader-writer lock tests.

Requires: pip install pytest-asyncio
"""
from __future__ import annotations

import asyncio

import pytest

from asyncrw_lite.concurrency.async_rwlock import AsyncReaderWriterLock
from asyncrw_lite.concurrency.cancellation import CancellationSource


@pytest.fixture()
def rwlock() -> AsyncReaderWriterLock:
    return AsyncReaderWriterLock()


@pytest.fixture()
def source() -> CancellationSource:
    return CancellationSource()


@pytest.fixture()
def never_completes():
    """Assert a future stays pending while the loop gets a chance to run."""

    async def _check(fut: asyncio.Future, timeout: float = 0.05) -> None:
        done, _ = await asyncio.wait([fut], timeout=timeout)
        assert not done, f"{fut!r} completed but should still be pending"

    return _check
