"""Tests for the stress workload generator."""
from __future__ import annotations

import pytest

from asyncrw_lite.concurrency.async_rwlock import LockMode
from asyncrw_lite.profiling.load_generator import LoadGenerator


class TestLoadGenerator:
    def test_shape(self) -> None:
        gen = LoadGenerator(num_tasks=7, ops_per_task=11)
        scripts = gen.generate()
        assert len(scripts) == 7
        assert all(len(ops) == 11 for ops in scripts)
        assert gen.total_ops == 77
        assert gen.num_tasks == 7

    def test_same_seed_same_workload(self) -> None:
        a = LoadGenerator(num_tasks=5, ops_per_task=20, seed=7).generate()
        b = LoadGenerator(num_tasks=5, ops_per_task=20, seed=7).generate()
        assert a == b

    def test_different_seed_different_workload(self) -> None:
        a = LoadGenerator(num_tasks=5, ops_per_task=20, seed=1).generate()
        b = LoadGenerator(num_tasks=5, ops_per_task=20, seed=2).generate()
        assert a != b

    def test_read_only_workload(self) -> None:
        scripts = LoadGenerator(write_ratio=0.0, num_tasks=5, ops_per_task=50).generate()
        assert all(op.mode is LockMode.READER for ops in scripts for op in ops)

    def test_write_only_workload(self) -> None:
        scripts = LoadGenerator(write_ratio=1.0, num_tasks=5, ops_per_task=50).generate()
        assert all(op.mode is LockMode.WRITER for ops in scripts for op in ops)

    def test_cancel_ratio_zero_means_no_deadlines(self) -> None:
        scripts = LoadGenerator(cancel_ratio=0.0, num_tasks=5, ops_per_task=50).generate()
        assert all(op.cancel_after_ms is None for ops in scripts for op in ops)

    def test_cancel_ratio_one_means_every_deadline(self) -> None:
        scripts = LoadGenerator(cancel_ratio=1.0, num_tasks=5, ops_per_task=50).generate()
        assert all(op.cancel_after_ms is not None for ops in scripts for op in ops)

    def test_hold_times_within_bounds(self) -> None:
        scripts = LoadGenerator(max_hold_ms=2.5, num_tasks=5, ops_per_task=50).generate()
        assert all(0.0 <= op.hold_ms <= 2.5 for ops in scripts for op in ops)

    @pytest.mark.parametrize("kwargs", [
        {"num_tasks": 0},
        {"ops_per_task": -1},
        {"write_ratio": 1.5},
        {"cancel_ratio": -0.1},
        {"max_hold_ms": -1.0},
    ])
    def test_rejects_bad_parameters(self, kwargs) -> None:
        with pytest.raises(ValueError):
            LoadGenerator(**kwargs)
