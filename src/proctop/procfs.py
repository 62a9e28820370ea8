"""Snapshot reader for the Linux procfs accounting interface."""

import logging
from pathlib import Path

from proctop.models import CpuCounters, MemoryCounters, ProcessSample, SystemSnapshot

logger = logging.getLogger(__name__)

DEFAULT_PROC_ROOT = Path("/proc")

# Offsets into the fields that follow the closing ")" of /proc/<pid>/stat.
# Field 3 (state) is index 0, so utime (14) and stime (15) are 11 and 12.
_UTIME_INDEX = 11
_STIME_INDEX = 12

_CPU_FIELD_COUNT = 10
_CPU_MIN_FIELDS = 4


class SourceUnavailableError(RuntimeError):
    """Raised when the procfs root cannot be used at all."""


def read_text(path: Path) -> str | None:
    """Read a procfs file, returning None if it cannot be opened or read."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        # Missing, vanished (process exited) or permission denied
        return None


def parse_cpu_line(line: str) -> CpuCounters | None:
    """
    Parse the aggregate ``cpu`` line of /proc/stat.

    Kernels older than 2.6.33 report fewer than ten counters; missing ones
    are treated as zero. Returns None if the line is not a usable cpu line.
    """
    parts = line.split()
    if not parts or parts[0] != "cpu":
        return None
    values = parts[1 : _CPU_FIELD_COUNT + 1]
    if len(values) < _CPU_MIN_FIELDS:
        return None
    try:
        counters = [int(value) for value in values]
    except ValueError:
        return None
    counters.extend([0] * (_CPU_FIELD_COUNT - len(counters)))
    return CpuCounters(*counters)


def parse_meminfo(text: str) -> MemoryCounters | None:
    """Parse /proc/meminfo. Returns None if MemTotal is missing."""
    values: dict[str, int] = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        if not sep:
            continue
        amount = rest.split()
        if not amount:
            continue
        try:
            values[key.strip()] = int(amount[0])
        except ValueError:
            continue

    if "MemTotal" not in values:
        return None

    free = values.get("MemFree", 0)
    buffers = values.get("Buffers", 0)
    cached = values.get("Cached", 0)
    # MemAvailable appeared in 3.14; estimate it the way older tools did
    available = values.get("MemAvailable", free + buffers + cached)
    return MemoryCounters(
        total=values["MemTotal"],
        free=free,
        buffers=buffers,
        cached=cached,
        available=available,
    )


def parse_uptime(text: str) -> float | None:
    parts = text.split()
    if not parts:
        return None
    try:
        return float(parts[0])
    except ValueError:
        return None


def parse_pid_stat(text: str) -> tuple[str, int] | None:
    """
    Parse /proc/<pid>/stat into (name, utime + stime).

    The name sits between the first "(" and the last ")" and may itself
    contain spaces and parentheses, so it is sliced out rather than split.
    """
    start = text.find("(")
    end = text.rfind(")")
    if start == -1 or end <= start:
        return None
    name = text[start + 1 : end]
    rest = text[end + 1 :].split()
    if len(rest) <= _STIME_INDEX:
        return None
    try:
        utime = int(rest[_UTIME_INDEX])
        stime = int(rest[_STIME_INDEX])
    except ValueError:
        return None
    return name, utime + stime


def parse_vm_rss(text: str) -> int | None:
    """
    Return VmRSS in kB from /proc/<pid>/status.

    A missing line (kernel threads, zombies) is 0; a VmRSS line without a
    number is malformed and yields None.
    """
    for line in text.splitlines():
        if line.startswith("VmRSS:"):
            parts = line.split()
            if len(parts) >= 2 and parts[1].isdecimal():
                return int(parts[1])
            return None
    return 0


class ProcfsReader:
    """
    Captures SystemSnapshots from a procfs tree.

    Unreadable global records degrade to zeroed counters, processes that exit
    between enumeration and read are dropped, and malformed process records
    are skipped for the current cycle.
    """

    def __init__(self, proc_root: Path | str = DEFAULT_PROC_ROOT) -> None:
        self._root = Path(proc_root)

    @property
    def root(self) -> Path:
        return self._root

    def check(self) -> None:
        """
        Verify the accounting source can be opened.

        Raises:
            SourceUnavailableError: if the root or its stat record is unreadable.
        """
        if not self._root.is_dir():
            raise SourceUnavailableError(f"{self._root} is not a directory")
        if read_text(self._root / "stat") is None:
            raise SourceUnavailableError(f"cannot read {self._root / 'stat'}")

    def capture(self) -> SystemSnapshot:
        """Read one snapshot of CPU, memory, uptime and all live processes."""
        return SystemSnapshot(
            cpu=self.read_cpu(),
            memory=self.read_memory(),
            uptime_seconds=self.read_uptime(),
            processes=tuple(self.read_processes()),
        )

    def read_cpu(self) -> CpuCounters:
        text = read_text(self._root / "stat")
        counters = parse_cpu_line(text.partition("\n")[0]) if text is not None else None
        if counters is None:
            logger.warning("CPU counters unavailable under %s, using zeros", self._root)
            return CpuCounters.zero()
        return counters

    def read_memory(self) -> MemoryCounters:
        text = read_text(self._root / "meminfo")
        memory = parse_meminfo(text) if text is not None else None
        if memory is None:
            logger.warning("Memory counters unavailable under %s, using zeros", self._root)
            return MemoryCounters.zero()
        return memory

    def read_uptime(self) -> float:
        text = read_text(self._root / "uptime")
        uptime = parse_uptime(text) if text is not None else None
        return uptime if uptime is not None else 0.0

    def list_pids(self) -> list[int]:
        """Enumerate the numeric entries of the procfs root in pid order."""
        try:
            entries = [entry.name for entry in self._root.iterdir()]
        except OSError:
            return []
        return sorted(int(name) for name in entries if name.isdecimal() and int(name) > 0)

    def read_process(self, pid: int) -> ProcessSample | None:
        """Read a single process, or None if it vanished or is malformed."""
        pid_dir = self._root / str(pid)

        stat_text = read_text(pid_dir / "stat")
        if stat_text is None:
            return None
        parsed = parse_pid_stat(stat_text)
        if parsed is None:
            logger.debug("Skipping pid %d: malformed stat record", pid)
            return None
        name, cpu_time = parsed

        status_text = read_text(pid_dir / "status")
        if status_text is None:
            return None
        rss_kb = parse_vm_rss(status_text)
        if rss_kb is None:
            logger.debug("Skipping pid %d: malformed VmRSS in status record", pid)
            return None

        return ProcessSample(pid=pid, name=name, cpu_time=cpu_time, rss_kb=rss_kb)

    def read_processes(self) -> list[ProcessSample]:
        processes: list[ProcessSample] = []
        for pid in self.list_pids():
            sample = self.read_process(pid)
            if sample is not None:
                processes.append(sample)
        return processes
