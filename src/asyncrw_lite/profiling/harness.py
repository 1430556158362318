"""Stress harness for AsyncReaderWriterLock.

Runs a generated workload of reader and writer requests on a single
event loop. Each task walks its script: request the lock (with an
optional cancellation deadline), hold it for the scripted time, release.

A monitor counts live holders on every enter/exit and records a
violation whenever a writer overlaps another holder. After the run the
lock must be idle with empty queues; anything else is also a violation.

If profile=True the whole run is wrapped in cProfile and the top
functions by cumulative time come back with the result.
"""
from __future__ import annotations

import asyncio
import cProfile
import io
import logging
import pstats
import time
from dataclasses import dataclass

from asyncrw_lite.concurrency.async_rwlock import AsyncReaderWriterLock, LockMode
from asyncrw_lite.concurrency.cancellation import CancellationSource
from asyncrw_lite.profiling.load_generator import LoadGenerator, LockOp

log = logging.getLogger(__name__)


@dataclass(slots=True)
class StressResult:
    """Counts and timings from a single stress run."""
    total_ops: int
    reads: int
    writes: int
    cancelled: int
    max_concurrent_readers: int
    max_concurrent_writers: int
    violations: int
    total_time_ms: float
    ops_per_sec: float
    final_status: int
    cprofile_stats: str | None = None


class _Monitor:
    """Tracks live holders. Single loop, so no locking needed."""

    __slots__ = (
        "readers", "writers", "max_readers", "max_writers",
        "violations", "reads", "writes", "cancelled",
    )

    def __init__(self) -> None:
        self.readers = 0
        self.writers = 0
        self.max_readers = 0
        self.max_writers = 0
        self.violations = 0
        self.reads = 0
        self.writes = 0
        self.cancelled = 0

    def enter(self, mode: LockMode) -> None:
        if mode is LockMode.READER:
            self.readers += 1
            self.reads += 1
        else:
            self.writers += 1
            self.writes += 1
        if self.writers > 1 or (self.writers and self.readers):
            self.violations += 1
            log.error("exclusion violated: readers=%d writers=%d",
                      self.readers, self.writers)
        self.max_readers = max(self.max_readers, self.readers)
        self.max_writers = max(self.max_writers, self.writers)

    def exit(self, mode: LockMode) -> None:
        if mode is LockMode.READER:
            self.readers -= 1
        else:
            self.writers -= 1


async def _run_task(lock: AsyncReaderWriterLock, ops: list[LockOp], monitor: _Monitor) -> None:
    for op in ops:
        token = None
        timer = None
        if op.cancel_after_ms is not None:
            source = CancellationSource()
            timer = source.cancel_after(op.cancel_after_ms / 1000)
            token = source.token

        if op.mode is LockMode.READER:
            fut = lock.reader_lock(token)
        else:
            fut = lock.writer_lock(token)
        if not fut.done():
            await asyncio.wait([fut])
        if timer is not None:
            timer.cancel()

        if fut.cancelled():
            monitor.cancelled += 1
            continue

        with fut.result() as guard:
            monitor.enter(guard.mode)
            try:
                await asyncio.sleep(op.hold_ms / 1000)
            finally:
                monitor.exit(guard.mode)


async def _run_all(scripts: list[list[LockOp]], monitor: _Monitor) -> AsyncReaderWriterLock:
    lock = AsyncReaderWriterLock()
    await asyncio.gather(*(_run_task(lock, ops, monitor) for ops in scripts))
    return lock


def run_stress(
    num_tasks: int = 50,
    ops_per_task: int = 100,
    write_ratio: float = 0.2,
    cancel_ratio: float = 0.05,
    max_hold_ms: float = 1.0,
    seed: int = 42,
    profile: bool = False,
) -> StressResult:
    """Run a seeded workload against a fresh lock and return the counts."""
    gen = LoadGenerator(
        num_tasks=num_tasks,
        ops_per_task=ops_per_task,
        write_ratio=write_ratio,
        cancel_ratio=cancel_ratio,
        max_hold_ms=max_hold_ms,
        seed=seed,
    )
    scripts = gen.generate()
    monitor = _Monitor()
    cprofile_text = None

    t_start = time.perf_counter()
    if profile:
        pr = cProfile.Profile()
        pr.enable()
        lock = asyncio.run(_run_all(scripts, monitor))
        pr.disable()
        s = io.StringIO()
        ps = pstats.Stats(pr, stream=s).sort_stats("cumulative")
        ps.print_stats(30)
        cprofile_text = s.getvalue()
    else:
        lock = asyncio.run(_run_all(scripts, monitor))
    total_ms = (time.perf_counter() - t_start) * 1000

    violations = monitor.violations
    if lock.status != 0 or lock.pending_readers or lock.pending_writers:
        log.error("lock not idle after run: %r", lock)
        violations += 1

    total_ops = gen.total_ops
    ops_per_sec = total_ops / (total_ms / 1000) if total_ms > 0 else 0

    return StressResult(
        total_ops=total_ops,
        reads=monitor.reads,
        writes=monitor.writes,
        cancelled=monitor.cancelled,
        max_concurrent_readers=monitor.max_readers,
        max_concurrent_writers=monitor.max_writers,
        violations=violations,
        total_time_ms=total_ms,
        ops_per_sec=ops_per_sec,
        final_status=lock.status,
        cprofile_stats=cprofile_text,
    )
