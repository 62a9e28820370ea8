"""Delta engine: turns two snapshots into utilization rates."""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from proctop.models import (
    CpuCounters,
    MemoryCounters,
    ProcessUsage,
    SystemReport,
    SystemSnapshot,
)

logger = logging.getLogger(__name__)


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def cpu_total_diff(prev: CpuCounters, cur: CpuCounters) -> int:
    """Jiffies elapsed across all cores, 0 on counter reset."""
    return max(0, cur.total - prev.total)


def cpu_utilization(prev: CpuCounters, cur: CpuCounters) -> float:
    """
    Aggregate CPU utilization between two counter samples.

    A stalled or reset counter (no elapsed jiffies) yields 0.0. The result is
    always within [0, 100].
    """
    total_diff = cpu_total_diff(prev, cur)
    if total_diff == 0:
        return 0.0
    idle_diff = max(0, cur.idle_total - prev.idle_total)
    return _clamp_percent((total_diff - idle_diff) * 100 / total_diff)


def memory_utilization(memory: MemoryCounters) -> float:
    if memory.total <= 0:
        return 0.0
    return memory.used * 100 / memory.total


class DeltaEngine:
    """
    Per-process CPU accounting across sampling cycles.

    Holds the only state that outlives a cycle: the last cumulative CPU time
    observed for each live pid. A pid seen for the first time reports 0% for
    that cycle instead of its whole lifetime squeezed into one interval.
    Entries for pids missing from the latest enumeration are purged, so a
    recycled pid starts again from zero.
    """

    def __init__(self) -> None:
        self._history: dict[int, int] = {}

    @property
    def history(self) -> Mapping[int, int]:
        """Read-only view of pid -> last cumulative CPU time."""
        return MappingProxyType(self._history)

    def process_utilization(self, pid: int, cpu_time: int, total_diff: int) -> float:
        """
        CPU share of one process since its previous observation.

        Args:
            pid: Process identifier.
            cpu_time: Current cumulative utime + stime in jiffies.
            total_diff: Jiffies elapsed across all cores this cycle.
        """
        previous = self._history.get(pid)
        self._history[pid] = cpu_time
        if previous is None or total_diff <= 0:
            return 0.0
        diff = max(0, cpu_time - previous)
        return _clamp_percent(diff * 100 / total_diff)

    def prune(self, live_pids: Iterable[int]) -> None:
        """Forget every pid not in live_pids."""
        live = set(live_pids)
        for pid in [pid for pid in self._history if pid not in live]:
            del self._history[pid]

    def compute(self, previous: SystemSnapshot | None, current: SystemSnapshot) -> SystemReport:
        """
        Build the report for one cycle.

        Without a previous snapshot this is the baseline cycle: every rate is
        0.0 and history is seeded from the current snapshot.
        """
        if previous is None:
            total_diff = 0
            cpu_percent = 0.0
        else:
            total_diff = cpu_total_diff(previous.cpu, current.cpu)
            cpu_percent = cpu_utilization(previous.cpu, current.cpu)

        memory = current.memory
        processes = [
            ProcessUsage(
                pid=proc.pid,
                name=proc.name,
                cpu_percent=self.process_utilization(proc.pid, proc.cpu_time, total_diff),
                memory_percent=proc.rss_kb * 100 / memory.total if memory.total > 0 else 0.0,
                rss_kb=proc.rss_kb,
            )
            for proc in current.processes
        ]
        self.prune(current.pids)

        logger.debug(
            "cycle: total_diff=%d cpu=%.2f%% processes=%d tracked=%d",
            total_diff,
            cpu_percent,
            len(processes),
            len(self._history),
        )
        return SystemReport(
            cpu_percent=cpu_percent,
            memory_percent=memory_utilization(memory),
            memory_used_kb=memory.used,
            memory_total_kb=memory.total,
            uptime_seconds=current.uptime_seconds,
            processes=processes,
        )
