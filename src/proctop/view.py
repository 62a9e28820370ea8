"""Ranking and view state for the process table."""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from proctop.models import ProcessUsage

MIN_REFRESH = 1
MAX_REFRESH = 10
DEFAULT_ROWS = 20
NAME_WIDTH = 24
ELLIPSIS = "…"


class SortKey(Enum):
    """Sort keys for the process table."""

    CPU = "cpu"
    MEM = "mem"

    def toggled(self) -> "SortKey":
        return SortKey.MEM if self is SortKey.CPU else SortKey.CPU


def clamp_refresh(seconds: int) -> int:
    return max(MIN_REFRESH, min(MAX_REFRESH, seconds))


@dataclass(slots=True)
class ViewState:
    """User-controlled presentation settings."""

    sort_key: SortKey = SortKey.CPU
    filter_text: str = ""
    refresh_interval: int = MIN_REFRESH
    row_budget: int = DEFAULT_ROWS

    def __post_init__(self) -> None:
        self.refresh_interval = clamp_refresh(self.refresh_interval)

    def toggle_sort(self) -> SortKey:
        self.sort_key = self.sort_key.toggled()
        return self.sort_key

    def adjust_refresh(self, step: int) -> int:
        """Move the refresh interval by step seconds, clamped to the allowed range."""
        self.refresh_interval = clamp_refresh(self.refresh_interval + step)
        return self.refresh_interval

    def set_filter(self, text: str) -> None:
        """Replace the name filter. Blank input clears it."""
        self.filter_text = text.strip()


# Ascending sort on negated fields: active key descending, the other field
# descending on ties, then pid
_SORT_KEYS = {
    SortKey.CPU: lambda p: (-p.cpu_percent, -p.rss_kb, p.pid),
    SortKey.MEM: lambda p: (-p.rss_kb, -p.cpu_percent, p.pid),
}


def rank(
    processes: Iterable[ProcessUsage],
    key: SortKey,
    filter_text: str = "",
    limit: int | None = None,
) -> list[ProcessUsage]:
    """
    Filter, sort and truncate processes for display.

    Args:
        processes: Rows to rank.
        key: Primary sort field, always descending.
        filter_text: Case-sensitive literal substring the name must contain.
            Empty keeps everything.
        limit: Maximum number of rows to return.
    """
    if filter_text:
        processes = [p for p in processes if filter_text in p.name]
    ranked = sorted(processes, key=_SORT_KEYS[key])
    if limit is not None:
        ranked = ranked[: max(0, limit)]
    return ranked


def truncate_name(name: str, width: int = NAME_WIDTH) -> str:
    if len(name) <= width:
        return name
    return name[: width - 1] + ELLIPSIS


def format_percent(value: float) -> str:
    return f"{value:.2f}"


def format_kb(value: int) -> str:
    return f"{value:d}"


def format_uptime(seconds: float) -> str:
    """Format uptime as HH:MM:SS, prefixed with a day count once past a day."""
    seconds = max(0.0, seconds)
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if days > 0:
        unit = "day" if days == 1 else "days"
        return f"{days} {unit}, {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
