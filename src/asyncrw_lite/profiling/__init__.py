"""Stress harness and load generation for the async reader-writer lock."""

from asyncrw_lite.profiling.harness import StressResult, run_stress
from asyncrw_lite.profiling.load_generator import LoadGenerator, LockOp
from asyncrw_lite.profiling.report import format_report

__all__ = [
    "LoadGenerator",
    "LockOp",
    "StressResult",
    "format_report",
    "run_stress",
]
