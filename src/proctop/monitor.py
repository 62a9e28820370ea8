"""System monitoring driver for proctop."""

import logging
from dataclasses import dataclass

import psutil

from proctop.engine import DeltaEngine
from proctop.models import SystemReport, SystemSnapshot
from proctop.procfs import ProcfsReader

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class KillResult:
    """Outcome of a termination request."""

    pid: int
    ok: bool
    message: str


class SystemMonitor:
    """
    Samples procfs once per call and compares it against the previous sample.

    Runs on the caller's thread; the caller decides the cadence. The first
    poll is a baseline and reports 0% CPU everywhere.
    """

    def __init__(self, reader: ProcfsReader | None = None, engine: DeltaEngine | None = None) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            reader: Snapshot source. Defaults to the live /proc tree.
            engine: Delta engine holding per-process history.
        """
        self._reader = reader or ProcfsReader()
        self._engine = engine or DeltaEngine()
        self._previous: SystemSnapshot | None = None

    @property
    def engine(self) -> DeltaEngine:
        return self._engine

    @property
    def previous(self) -> SystemSnapshot | None:
        """The snapshot the next poll will be compared against."""
        return self._previous

    def poll(self) -> SystemReport:
        """Capture a snapshot, compute rates, and retain it for the next poll."""
        snapshot = self._reader.capture()
        report = self._engine.compute(self._previous, snapshot)
        self._previous = snapshot
        return report


def terminate_process(pid: int) -> KillResult:
    """
    Send SIGTERM to pid.

    Only delivery of the signal is reported; the process is not waited on.
    Never raises.
    """
    try:
        psutil.Process(pid).terminate()
    except psutil.NoSuchProcess:
        result = KillResult(pid, False, f"No such process: {pid}")
    except psutil.AccessDenied:
        result = KillResult(pid, False, f"Permission denied: {pid}")
    except (psutil.Error, ValueError, OSError) as exc:
        result = KillResult(pid, False, f"Failed to signal {pid}: {exc}")
    else:
        result = KillResult(pid, True, f"Process {pid} terminated.")

    logger.info("kill %d: %s", pid, result.message)
    return result
