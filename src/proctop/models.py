"""Data models for proctop."""

from dataclasses import dataclass, fields


@dataclass(slots=True, frozen=True)
class CpuCounters:
    """Aggregate CPU time counters from the first line of /proc/stat, in jiffies."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0
    guest: int = 0
    guest_nice: int = 0

    @classmethod
    def zero(cls) -> "CpuCounters":
        return cls()

    @property
    def total(self) -> int:
        """Sum of all ten counters."""
        return sum(getattr(self, f.name) for f in fields(self))

    @property
    def idle_total(self) -> int:
        """Time spent idle, including time waiting on I/O."""
        return self.idle + self.iowait


@dataclass(slots=True, frozen=True)
class MemoryCounters:
    """Memory summary from /proc/meminfo, in kilobytes."""

    total: int = 0
    free: int = 0
    buffers: int = 0
    cached: int = 0
    available: int = 0

    @classmethod
    def zero(cls) -> "MemoryCounters":
        return cls()

    @property
    def used(self) -> int:
        return max(0, self.total - self.available)


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Raw per-process counters captured in one cycle."""

    pid: int
    name: str
    cpu_time: int  # utime + stime, jiffies
    rss_kb: int


@dataclass(slots=True, frozen=True)
class SystemSnapshot:
    """Everything read from procfs at one point in time."""

    cpu: CpuCounters
    memory: MemoryCounters
    uptime_seconds: float
    processes: tuple[ProcessSample, ...]

    @property
    def pids(self) -> frozenset[int]:
        return frozenset(proc.pid for proc in self.processes)


@dataclass(slots=True, frozen=True)
class ProcessUsage:
    """Utilization of a single process over one sampling interval."""

    pid: int
    name: str
    cpu_percent: float  # share of all cores, 0.0 - 100.0
    memory_percent: float
    rss_kb: int


@dataclass(slots=True, frozen=True)
class SystemReport:
    """Result of comparing two snapshots."""

    cpu_percent: float
    memory_percent: float
    memory_used_kb: int
    memory_total_kb: int
    uptime_seconds: float
    processes: list[ProcessUsage]
