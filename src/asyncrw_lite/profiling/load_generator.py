"""Generate seeded lock workloads for the stress harness.

Workload shape:
  - num_tasks concurrent tasks, each running ops_per_task lock requests
  - write_ratio of requests are writers, the rest readers
  - cancel_ratio of requests carry a cancellation deadline; a request
    whose deadline fires while it is still queued is withdrawn
  - hold times are uniform in [0, max_hold_ms]; 0 still yields to the
    loop once so other tasks interleave

Everything is derived from one random.Random(seed), so a run with the
same parameters replays the same request sequence per task.
"""
from __future__ import annotations

import random
from dataclasses import dataclass

from asyncrw_lite.concurrency.async_rwlock import LockMode


@dataclass(slots=True)
class LockOp:
    """One lock request in a task's script."""
    mode: LockMode
    hold_ms: float
    cancel_after_ms: float | None = None


class LoadGenerator:
    """Build per-task request scripts for run_stress()."""

    __slots__ = (
        "_rng", "_num_tasks", "_ops_per_task",
        "_write_ratio", "_cancel_ratio", "_max_hold_ms",
    )

    def __init__(
        self,
        num_tasks: int = 50,
        ops_per_task: int = 100,
        write_ratio: float = 0.2,
        cancel_ratio: float = 0.05,
        max_hold_ms: float = 1.0,
        seed: int = 42,
    ) -> None:
        if num_tasks <= 0 or ops_per_task <= 0:
            raise ValueError("num_tasks and ops_per_task must be positive")
        if not 0.0 <= write_ratio <= 1.0:
            raise ValueError("write_ratio must be between 0 and 1")
        if not 0.0 <= cancel_ratio <= 1.0:
            raise ValueError("cancel_ratio must be between 0 and 1")
        if max_hold_ms < 0:
            raise ValueError("max_hold_ms must be non-negative")
        self._rng = random.Random(seed)
        self._num_tasks = num_tasks
        self._ops_per_task = ops_per_task
        self._write_ratio = write_ratio
        self._cancel_ratio = cancel_ratio
        self._max_hold_ms = max_hold_ms

    @property
    def num_tasks(self) -> int:
        return self._num_tasks

    @property
    def total_ops(self) -> int:
        return self._num_tasks * self._ops_per_task

    def _make_op(self) -> LockOp:
        mode = LockMode.WRITER if self._rng.random() < self._write_ratio else LockMode.READER
        hold = self._rng.uniform(0, self._max_hold_ms)
        cancel_after = None
        if self._rng.random() < self._cancel_ratio:
            # deadlines land around one hold time so some fire and some don't
            cancel_after = self._rng.uniform(0, max(self._max_hold_ms, 0.1))
        return LockOp(mode=mode, hold_ms=hold, cancel_after_ms=cancel_after)

    def generate(self) -> list[list[LockOp]]:
        """All scripts up front, one list per task."""
        return [
            [self._make_op() for _ in range(self._ops_per_task)]
            for _ in range(self._num_tasks)
        ]
