"""Shared fixtures: a writable fake procfs tree."""

import shutil
from pathlib import Path

import pytest


class FakeProcfs:
    """Builds the subset of /proc that proctop reads, under a temp directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)
        self.set_cpu(user=100, system=100, idle=800)
        self.set_meminfo(total=8000000, free=1000000, available=2000000)
        self.set_uptime(3600.5)

    def set_cpu(self, user=0, nice=0, system=0, idle=0, iowait=0, irq=0, softirq=0, steal=0):
        counters = [user, nice, system, idle, iowait, irq, softirq, steal, 0, 0]
        line = "cpu  " + " ".join(str(c) for c in counters)
        per_core = "cpu0 " + " ".join(str(c) for c in counters)
        (self.root / "stat").write_text(f"{line}\n{per_core}\nctxt 12345\nbtime 1700000000\n")

    def set_meminfo(self, total, free, available=None, buffers=0, cached=0):
        lines = [
            f"MemTotal:       {total} kB",
            f"MemFree:        {free} kB",
        ]
        if available is not None:
            lines.append(f"MemAvailable:   {available} kB")
        lines.append(f"Buffers:        {buffers} kB")
        lines.append(f"Cached:         {cached} kB")
        lines.append("SwapTotal:      0 kB")
        (self.root / "meminfo").write_text("\n".join(lines) + "\n")

    def set_uptime(self, seconds: float) -> None:
        (self.root / "uptime").write_text(f"{seconds:.2f} {seconds * 3:.2f}\n")

    def add_process(self, pid: int, name: str, utime: int = 0, stime: int = 0, rss_kb: int | None = 0):
        pid_dir = self.root / str(pid)
        pid_dir.mkdir(exist_ok=True)
        (pid_dir / "stat").write_text(
            f"{pid} ({name}) S 1 {pid} {pid} 0 -1 4194560 100 0 0 0 "
            f"{utime} {stime} 0 0 20 0 1 0 100 1000 200 18446744073709551615\n"
        )
        status = f"Name:\t{name[:15]}\nState:\tS (sleeping)\nPid:\t{pid}\n"
        if rss_kb is not None:
            status += f"VmRSS:\t{rss_kb:>8} kB\n"
        status += "Threads:\t1\n"
        (pid_dir / "status").write_text(status)

    def remove_process(self, pid: int) -> None:
        shutil.rmtree(self.root / str(pid))


@pytest.fixture
def fake_proc(tmp_path: Path) -> FakeProcfs:
    """A fake procfs with CPU, memory and uptime records and no processes."""
    return FakeProcfs(tmp_path / "proc")
