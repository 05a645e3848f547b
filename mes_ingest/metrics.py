"""
Load metrics: per-table batch statistics, phase timers and row counters.

The loader records one entry per INSERT batch; format_summary() prints the
block shown after a load.
"""
import time
from dataclasses import dataclass, field
from typing import Dict, Optional
from threading import Lock


@dataclass
class TimerMetric:
    start_time: Optional[float] = None
    total_time: float = 0.0
    count: int = 0

    def start(self):
        self.start_time = time.perf_counter()

    def stop(self) -> float:
        if self.start_time is None:
            return 0.0
        duration = time.perf_counter() - self.start_time
        self.total_time += duration
        self.count += 1
        self.start_time = None
        return duration


@dataclass
class CounterMetric:
    count: int = 0
    start_time: float = field(default_factory=time.perf_counter)

    def rate(self) -> float:
        elapsed = time.perf_counter() - self.start_time
        return self.count / elapsed if elapsed > 0 else 0.0


@dataclass
class BatchStats:
    """INSERT batches issued against one table."""
    batches: int = 0
    rows: int = 0
    ignored: int = 0
    seconds: float = 0.0
    slowest: float = 0.0

    def add(self, rows: int, ignored: int, seconds: float):
        self.batches += 1
        self.rows += rows
        self.ignored += ignored
        self.seconds += seconds
        self.slowest = max(self.slowest, seconds)

    @property
    def average(self) -> float:
        return self.seconds / self.batches if self.batches else 0.0


class MetricsCollector:
    """
    Shared by the database layer and the loader; guarded by a lock so a
    collector can outlive several loads.
    """

    def __init__(self):
        self._timers: Dict[str, TimerMetric] = {}
        self._counters: Dict[str, CounterMetric] = {}
        self._tables: Dict[str, BatchStats] = {}
        self._lock = Lock()
        self._start_time = time.perf_counter()

    def start_timer(self, name: str):
        with self._lock:
            self._timers.setdefault(name, TimerMetric()).start()

    def stop_timer(self, name: str) -> float:
        """Stop a named timer; unknown or idle timers return 0."""
        with self._lock:
            if name in self._timers:
                return self._timers[name].stop()
        return 0.0

    def record_count(self, name: str, amount: int = 1):
        with self._lock:
            self._counters.setdefault(name, CounterMetric()).count += amount

    def get_count(self, name: str) -> int:
        with self._lock:
            counter = self._counters.get(name)
            return counter.count if counter else 0

    def record_batch(self, table: str, rows: int, seconds: float, ignored: int = 0):
        """Record one INSERT batch against a table."""
        with self._lock:
            self._tables.setdefault(table, BatchStats()).add(rows, ignored, seconds)

    def table_stats(self, table: str) -> BatchStats:
        """Batch statistics for a table (empty when nothing was inserted)."""
        with self._lock:
            stats = self._tables.get(table)
            if stats is None:
                return BatchStats()
            return BatchStats(stats.batches, stats.rows, stats.ignored, stats.seconds, stats.slowest)

    def elapsed_time(self) -> float:
        return time.perf_counter() - self._start_time

    def format_summary(self) -> str:
        with self._lock:
            lines = ["", "Performance Metrics:", "=" * 50]
            lines.append(f"Total execution time: {format_duration(self.elapsed_time())}")
            lines.append("")

            if self._tables:
                lines.append("Batches:")
                for table, stats in sorted(self._tables.items()):
                    line = (
                        f"  {table}: {stats.batches} batches, {stats.rows:,} rows, "
                        f"avg {stats.average:.3f}s, slowest {stats.slowest:.3f}s"
                    )
                    if stats.ignored:
                        line += f", {stats.ignored:,} ignored"
                    lines.append(line)
                lines.append("")

            if self._counters:
                lines.append("Throughput:")
                for name, counter in sorted(self._counters.items()):
                    lines.append(f"  {name}: {counter.count:,} ({counter.rate():.1f}/s)")
                lines.append("")

            timed = [(n, t) for n, t in sorted(self._timers.items()) if t.count > 0]
            if timed:
                lines.append("Phases:")
                for name, timer in timed:
                    lines.append(f"  {name}: {timer.total_time:.2f}s")
                lines.append("")

            lines.append("=" * 50)
            return "\n".join(lines)


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"
