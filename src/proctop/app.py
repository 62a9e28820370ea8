"""proctop - Main Textual application."""

import logging
import sys
from enum import Enum

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.screen import ModalScreen
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Input, Label, Static

from proctop.config import Config, config_from_args, configure_logging, parse_args
from proctop.models import ProcessUsage, SystemReport
from proctop.monitor import KillResult, SystemMonitor, terminate_process
from proctop.procfs import ProcfsReader, SourceUnavailableError
from proctop.view import (
    NAME_WIDTH,
    ViewState,
    format_kb,
    format_percent,
    format_uptime,
    rank,
    truncate_name,
)

logger = logging.getLogger(__name__)

KILL_PAUSE_SECONDS = 2.0


class LoopState(Enum):
    """Where the sampling loop currently is."""

    SAMPLING = "sampling"
    RENDERING = "rendering"
    AWAITING_INPUT = "awaiting_input"
    TERMINATED = "terminated"


def usage_bar(percent: float, color: str, width: int = 20) -> str:
    filled = min(width, max(0, int(percent * width / 100)))
    return f"[{color}]█[/{color}]" * filled + "[dim]░[/dim]" * (width - filled)


def kill_from_input(text: str) -> KillResult:
    """Validate a typed pid and send it SIGTERM."""
    text = text.strip()
    # Plain ASCII digits only; int() would also take "1_000" and other scripts
    if not (text.isascii() and text.isdecimal()):
        return KillResult(0, False, f"Invalid PID: {text!r}")
    pid = int(text)
    if pid <= 0:
        return KillResult(pid, False, f"Invalid PID: {pid}")
    return terminate_process(pid)


class HeaderStats(Static):
    """Header widget showing CPU, memory and uptime."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("Loading system info...", **kwargs)
        self._report: SystemReport | None = None
        self._shown = 0

    def update_stats(self, report: SystemReport, shown: int) -> None:
        """Update the statistics from a cycle report."""
        self._report = report
        self._shown = shown
        self.update(self._stats_text())

    def _stats_text(self) -> str:
        report = self._report
        if report is None:
            return "Loading system info..."
        mem_used_gb = report.memory_used_kb / (1024**2)
        mem_total_gb = report.memory_total_kb / (1024**2)
        # Escaped brackets around the bars so they are not read as markup
        return (
            f"CPU \\[{usage_bar(report.cpu_percent, 'green')}] {format_percent(report.cpu_percent)}%\n"
            f"Mem \\[{usage_bar(report.memory_percent, 'cyan')}] {format_percent(report.memory_percent)}% "
            f"{mem_used_gb:.1f}G/{mem_total_gb:.1f}G\n"
            f"Uptime: {format_uptime(report.uptime_seconds)}  "
            f"Tasks: {len(report.processes)} ({self._shown} shown)"
        )


class ProcessTable(Container):
    """Container for the ranked process table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._current_pids: list[int] = []

    @property
    def current_pids(self) -> list[int]:
        """Pids currently displayed, top row first."""
        return list(self._current_pids)

    def compose(self) -> ComposeResult:
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("NAME", key="name", width=NAME_WIDTH)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("MEM%", key="mem", width=8)
        table.add_column("RSS(KB)", key="rss", width=10)

    def update_processes(self, processes: list[ProcessUsage]) -> None:
        """Replace the rows with processes, already ranked and truncated."""
        table = self.query_one("#process-table", DataTable)
        table.clear()
        for proc in processes:
            table.add_row(
                str(proc.pid),
                truncate_name(proc.name),
                format_percent(proc.cpu_percent),
                format_percent(proc.memory_percent),
                format_kb(proc.rss_kb),
                key=str(proc.pid),
            )
        self._current_pids = [proc.pid for proc in processes]


class PromptScreen(ModalScreen[str | None]):
    """Single-line prompt. Dismisses with the entered text, or None on escape."""

    DEFAULT_CSS = """
    PromptScreen {
        align: center middle;
    }

    #prompt {
        width: 50;
        height: auto;
        padding: 1 2;
        border: thick $primary;
        background: $surface;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, prompt: str, placeholder: str = "") -> None:
        super().__init__()
        self._prompt = prompt
        self._placeholder = placeholder

    def compose(self) -> ComposeResult:
        with Vertical(id="prompt"):
            yield Label(self._prompt)
            yield Input(placeholder=self._placeholder, id="prompt-input")

    def on_mount(self) -> None:
        self.query_one("#prompt-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.dismiss(event.value)

    def action_cancel(self) -> None:
        self.dismiss(None)


class ProctopApp(App):
    """Main proctop application."""

    TITLE = "proctop"
    SUB_TITLE = "procfs process monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
    }

    #status-line {
        height: auto;
        padding: 0 1;
        background: $panel;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("k", "kill", "Kill PID"),
        ("s", "toggle_sort", "Sort"),
        ("f", "filter", "Filter"),
        Binding("plus", "slower", "+1s"),
        Binding("minus", "faster", "-1s"),
    ]

    def __init__(self, config: Config | None = None, monitor: SystemMonitor | None = None) -> None:
        """
        Initialize the ProctopApp.

        Args:
            config: Startup settings. Defaults to Config().
            monitor: Sampling driver. Defaults to one reading config.proc_root.
        """
        super().__init__()
        self._settings = config or Config()
        self._monitor = monitor or SystemMonitor(ProcfsReader(self._settings.proc_root))
        self.view_state = ViewState(
            refresh_interval=self._settings.refresh_interval,
            row_budget=self._settings.row_budget,
        )
        self.loop_state = LoopState.SAMPLING
        self.last_report: SystemReport | None = None
        self.last_message = ""
        self._cycle_timer: Timer | None = None
        self._prompt_open = False
        # Held directly so redraws work while a prompt screen is on top
        self._header_stats: HeaderStats | None = None
        self._process_table: ProcessTable | None = None
        self._status_line: Static | None = None

    def compose(self) -> ComposeResult:
        self._header_stats = HeaderStats(id="header-stats")
        self._process_table = ProcessTable()
        self._status_line = Static(self.status_text(), id="status-line", markup=False)
        yield self._header_stats
        yield self._process_table
        yield self._status_line
        yield Footer()

    def on_mount(self) -> None:
        # Baseline cycle once every widget is mounted
        self.call_after_refresh(self._run_cycle)

    def status_text(self) -> str:
        state = self.view_state
        filter_part = f"'{state.filter_text}'" if state.filter_text else "none"
        line = (
            f"[q] Quit | [k] Kill PID | [s] Sort: {state.sort_key.value.upper()} | "
            f"[f] Filter: {filter_part} | [+/-] Refresh: {state.refresh_interval}s"
        )
        if self.last_message:
            line = f"{line}\n{self.last_message}"
        return line

    def _schedule_cycle(self, delay: float) -> None:
        if self._cycle_timer is not None:
            self._cycle_timer.stop()
        self._cycle_timer = self.set_timer(delay, self._run_cycle)

    def _cancel_cycle(self) -> None:
        if self._cycle_timer is not None:
            self._cycle_timer.stop()
            self._cycle_timer = None

    def _run_cycle(self) -> None:
        """Sample, render, then wait for the next tick."""
        self._cycle_timer = None
        if self.loop_state is LoopState.TERMINATED or self._prompt_open:
            return

        self.loop_state = LoopState.SAMPLING
        try:
            self.last_report = self._monitor.poll()
        except Exception:
            # Keep the loop alive; the previous report stays on screen
            logger.exception("Sampling cycle failed")

        # A kill outcome is shown until the first redraw after its pause
        self.last_message = ""
        self._redraw()
        self._schedule_cycle(self.view_state.refresh_interval)

    def _redraw(self) -> None:
        """Rank the last report and push it to the widgets."""
        if self._process_table is None or self._header_stats is None or self._status_line is None:
            return
        self.loop_state = LoopState.RENDERING
        report = self.last_report
        if report is not None:
            state = self.view_state
            rows = rank(report.processes, state.sort_key, state.filter_text, state.row_budget)
            self._process_table.update_processes(rows)
            self._header_stats.update_stats(report, len(rows))
        self._status_line.update(self.status_text())
        self.loop_state = LoopState.AWAITING_INPUT

    def _open_prompt(self, screen: PromptScreen, callback) -> None:
        """Pause sampling while the user answers a prompt."""
        self._prompt_open = True
        self._cancel_cycle()
        self.push_screen(screen, callback)

    def _close_prompt(self, delay: float | None = None) -> None:
        self._prompt_open = False
        self._redraw()
        self._schedule_cycle(self.view_state.refresh_interval if delay is None else delay)

    def action_toggle_sort(self) -> None:
        key = self.view_state.toggle_sort()
        logger.info("sort key: %s", key.value)
        self._redraw()

    def action_slower(self) -> None:
        self.view_state.adjust_refresh(1)
        self._redraw()

    def action_faster(self) -> None:
        self.view_state.adjust_refresh(-1)
        self._redraw()

    def action_filter(self) -> None:
        if self._prompt_open:
            return
        self._open_prompt(
            PromptScreen("Enter filter substring:", placeholder="empty clears the filter"),
            self._apply_filter,
        )

    def _apply_filter(self, value: str | None) -> None:
        if value is not None:
            self.view_state.set_filter(value)
            logger.info("filter: %r", self.view_state.filter_text)
        self._close_prompt()

    def action_kill(self) -> None:
        if self._prompt_open:
            return
        self._open_prompt(PromptScreen("Enter PID to kill:", placeholder="pid"), self._apply_kill)

    def _apply_kill(self, value: str | None) -> None:
        if value is None:
            self._close_prompt()
            return
        result = kill_from_input(value)
        self.last_message = result.message
        self.notify(result.message, severity="information" if result.ok else "error")
        # Hold the outcome on screen before the next redraw
        self._close_prompt(max(KILL_PAUSE_SECONDS, self.view_state.refresh_interval))

    def action_quit(self) -> None:
        """Stop sampling and exit cleanly."""
        self.loop_state = LoopState.TERMINATED
        self._cancel_cycle()
        self.exit(return_code=0)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the proctop application."""
    config = config_from_args(parse_args(argv))
    configure_logging(config)

    reader = ProcfsReader(config.proc_root)
    try:
        reader.check()
    except SourceUnavailableError as exc:
        print(f"proctop: {exc}", file=sys.stderr)
        return 1

    logger.info("starting: root=%s interval=%ds", config.proc_root, config.refresh_interval)
    app = ProctopApp(config, SystemMonitor(reader))
    app.run()
    return app.return_code or 0


if __name__ == "__main__":
    sys.exit(main())
