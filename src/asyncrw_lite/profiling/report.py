"""Report generation for stress results.

Formats StressResult data into a human-readable block for terminal
output.
"""
from __future__ import annotations

from asyncrw_lite.profiling.harness import StressResult


def format_report(result: StressResult, label: str = "Stress") -> str:
    """Format a StressResult as a readable report string."""

    def _pct(n: int) -> str:
        if result.total_ops <= 0:
            return "0.0%"
        return f"{n / result.total_ops * 100:.1f}%"

    lines = [
        f"=== {label} ===",
        f"Requests:          {result.total_ops:,}",
        f"Total time:        {result.total_time_ms:.1f} ms",
        f"Throughput:        {result.ops_per_sec:,.0f} ops/sec",
        "",
        "Outcomes:",
        f"  Reads granted:   {result.reads:,} ({_pct(result.reads)})",
        f"  Writes granted:  {result.writes:,} ({_pct(result.writes)})",
        f"  Cancelled:       {result.cancelled:,} ({_pct(result.cancelled)})",
        "",
        "Occupancy:",
        f"  Max readers:     {result.max_concurrent_readers}",
        f"  Max writers:     {result.max_concurrent_writers}",
        f"  Final status:    {result.final_status}",
        f"  Violations:      {result.violations}",
    ]
    return "\n".join(lines)
