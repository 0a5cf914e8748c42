"""Stage timing for GenArch runs.

Records wall-clock time per pipeline stage (architecture, mutation,
development). Disabled monitors do nothing.

Usage:
    from genarch.perf import PerfMonitor

    perf = PerfMonitor(enabled=True)
    population = generate_population(config, perf=perf)
    print(perf.report())
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict


@dataclass
class StageStats:
    """Timing statistics for one stage."""
    total_time: float = 0.0
    call_count: int = 0

    @property
    def mean_time(self) -> float:
        return self.total_time / self.call_count if self.call_count > 0 else 0.0


class PerfMonitor:
    """Lightweight per-stage wall-clock monitor."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._stats: Dict[str, StageStats] = {}

    @contextmanager
    def track(self, stage: str):
        """Time the enclosed block under ``stage``."""
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.record(stage, time.perf_counter() - t0)

    def record(self, stage: str, elapsed: float) -> None:
        """Manually record a timing measurement."""
        if not self.enabled:
            return
        stats = self._stats.setdefault(stage, StageStats())
        stats.total_time += elapsed
        stats.call_count += 1

    def get_stats(self) -> Dict[str, StageStats]:
        return dict(self._stats)

    def summary(self) -> dict:
        """Summary dict in insertion (pipeline) order, JSON-serializable."""
        total = sum(s.total_time for s in self._stats.values())
        result = {}
        for name, stats in self._stats.items():
            result[name] = {
                'total_s': round(stats.total_time, 4),
                'calls': stats.call_count,
                'pct': round(stats.total_time / total * 100, 1) if total > 0 else 0.0,
            }
        result['_total_s'] = round(total, 4)
        return result

    def report(self, title: str = "Stage Timings") -> str:
        """Human-readable table of stage timings."""
        total = sum(s.total_time for s in self._stats.values())
        lines = [
            f"{title}",
            f"{'Stage':<16} {'Total (s)':>10} {'Calls':>6} {'%':>6}",
        ]
        for name, stats in self._stats.items():
            pct = stats.total_time / total * 100 if total > 0 else 0.0
            lines.append(
                f"{name:<16} {stats.total_time:>10.4f} {stats.call_count:>6} {pct:>5.1f}%"
            )
        lines.append(f"{'TOTAL':<16} {total:>10.4f}")
        return '\n'.join(lines)

    def reset(self) -> None:
        self._stats.clear()
