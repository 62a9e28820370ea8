"""Tests for the proctop application."""

import subprocess
import sys

import pytest

from proctop.app import (
    HeaderStats,
    LoopState,
    ProcessTable,
    PromptScreen,
    ProctopApp,
    kill_from_input,
    main,
    usage_bar,
)
from proctop.config import Config


@pytest.fixture
def populated_proc(fake_proc):
    fake_proc.add_process(1, "systemd", utime=100, stime=50, rss_kb=9000)
    fake_proc.add_process(42, "firefox", utime=400, stime=100, rss_kb=500000)
    fake_proc.add_process(100, "Web Content", utime=10, stime=10, rss_kb=250000)
    return fake_proc


def make_app(proc, interval: int = 1, rows: int = 20) -> ProctopApp:
    return ProctopApp(Config(refresh_interval=interval, row_budget=rows, proc_root=proc.root))


def test_usage_bar_width():
    """Test the bar always has the same number of cells."""
    for percent in (0.0, 37.5, 100.0, 250.0):
        bar = usage_bar(percent, "green")
        assert bar.count("█") + bar.count("░") == 20


def test_kill_from_input_rejects_garbage():
    """Test non-numeric and non-positive pids are reported as failures."""
    assert not kill_from_input("abc").ok
    assert kill_from_input("abc").message == "Invalid PID: 'abc'"
    assert not kill_from_input("0").ok
    assert not kill_from_input("-5").ok


def test_kill_from_input_rejects_non_plain_digits(monkeypatch):
    """Test underscores and non-ASCII digits are not read as pids."""
    sent = []
    monkeypatch.setattr("proctop.app.terminate_process", sent.append)

    assert kill_from_input("1_000").message == "Invalid PID: '1_000'"
    assert not kill_from_input("١٢٣").ok
    assert not kill_from_input("+42").ok
    assert sent == []


def test_main_fails_without_source(tmp_path, capsys):
    """Test startup exits non-zero when procfs cannot be opened."""
    code = main(["--proc-root", str(tmp_path / "missing")])

    assert code == 1
    assert "proctop:" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_app_creation(fake_proc):
    """Test ProctopApp can be instantiated."""
    app = make_app(fake_proc, interval=3, rows=7)
    assert app.title == "proctop"
    assert app.view_state.refresh_interval == 3
    assert app.view_state.row_budget == 7
    assert app.loop_state is LoopState.SAMPLING


@pytest.mark.asyncio
async def test_app_compose(populated_proc):
    """Test ProctopApp composes correctly."""
    app = make_app(populated_proc)
    async with app.run_test() as pilot:
        assert pilot.app.query_one("#header-stats") is not None
        assert pilot.app.query_one("#process-table") is not None
        assert pilot.app.query_one("#status-line") is not None


@pytest.mark.asyncio
async def test_baseline_cycle(populated_proc):
    """Test the first cycle renders every process at 0% CPU."""
    app = make_app(populated_proc)
    async with app.run_test() as pilot:
        await pilot.pause()

        assert app.last_report is not None
        assert all(p.cpu_percent == 0.0 for p in app.last_report.processes)
        # All CPU ties, so RSS decides the order
        assert pilot.app.query_one(ProcessTable).current_pids == [42, 100, 1]
        assert app.loop_state is LoopState.AWAITING_INPUT


@pytest.mark.asyncio
async def test_cycle_computes_rates(populated_proc):
    """Test a later cycle reports per-process CPU against the baseline."""
    app = make_app(populated_proc, interval=2)
    async with app.run_test() as pilot:
        await pilot.pause()
        assert app.last_report is not None

        populated_proc.set_cpu(user=250, system=100, idle=850)
        populated_proc.add_process(100, "Web Content", utime=60, stime=20, rss_kb=250000)
        # One timer tick lands at 2s, the next not before 4s
        await pilot.pause(3.0)

        assert app.last_report.cpu_percent == pytest.approx(75.0)
        usage = {p.pid: p.cpu_percent for p in app.last_report.processes}
        assert usage[100] == pytest.approx(30.0)
        assert pilot.app.query_one(ProcessTable).current_pids[0] == 100


@pytest.mark.asyncio
async def test_timer_keeps_sampling(populated_proc):
    """Test the loop samples again after the refresh interval."""
    app = make_app(populated_proc)
    async with app.run_test() as pilot:
        await pilot.pause()
        first = app.last_report

        await pilot.pause(1.5)

        assert app.last_report is not first


@pytest.mark.asyncio
async def test_row_budget(populated_proc):
    """Test no more rows than the budget are shown."""
    app = make_app(populated_proc, rows=2)
    async with app.run_test() as pilot:
        await pilot.pause()
        assert pilot.app.query_one(ProcessTable).current_pids == [42, 100]


@pytest.mark.asyncio
async def test_header_stats(populated_proc):
    """Test the header shows aggregate figures."""
    app = make_app(populated_proc)
    async with app.run_test() as pilot:
        await pilot.pause()
        header = pilot.app.query_one("#header-stats", HeaderStats)
        text = header._stats_text()

        assert "75.00%" in text  # memory
        assert "01:00:00" in text
        assert "Tasks: 3 (3 shown)" in text


@pytest.mark.asyncio
async def test_app_quit_binding(fake_proc):
    """Test that 'q' quits cleanly with exit code 0."""
    app = make_app(fake_proc)
    async with app.run_test() as pilot:
        await pilot.press("q")
        assert app.loop_state is LoopState.TERMINATED
    assert app.return_code == 0


@pytest.mark.asyncio
async def test_app_sort_binding(populated_proc):
    """Test that 's' toggles the sort key and reorders the table."""
    app = make_app(populated_proc, interval=2)
    async with app.run_test() as pilot:
        await pilot.pause()
        assert app.last_report is not None

        # The smallest process becomes the busiest one on the next cycle
        populated_proc.set_cpu(user=250, system=100, idle=850)
        populated_proc.add_process(1, "systemd", utime=200, stime=50, rss_kb=9000)
        await pilot.pause(3.0)
        table = pilot.app.query_one(ProcessTable)
        assert table.current_pids == [1, 42, 100]

        await pilot.press("s")

        assert app.view_state.sort_key.value == "mem"
        assert "Sort: MEM" in app.status_text()
        assert table.current_pids == [42, 100, 1]

        await pilot.press("s")
        assert app.view_state.sort_key.value == "cpu"
        assert table.current_pids == [1, 42, 100]


@pytest.mark.asyncio
async def test_refresh_bindings_clamp(fake_proc):
    """Test '+' and '-' adjust the interval within bounds."""
    app = make_app(fake_proc, interval=1)
    async with app.run_test() as pilot:
        await pilot.press("minus")
        assert app.view_state.refresh_interval == 1

        await pilot.press("plus")
        await pilot.press("plus")
        assert app.view_state.refresh_interval == 3
        assert "Refresh: 3s" in app.status_text()


@pytest.mark.asyncio
async def test_filter_prompt(populated_proc):
    """Test 'f' reads a filter that narrows the table."""
    app = make_app(populated_proc)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("f")
        await pilot.pause()
        assert isinstance(app.screen, PromptScreen)

        await pilot.press(*"fire")
        await pilot.press("enter")
        await pilot.pause()

        assert not isinstance(app.screen, PromptScreen)
        assert app.view_state.filter_text == "fire"
        assert pilot.app.query_one(ProcessTable).current_pids == [42]
        assert "Filter: 'fire'" in app.status_text()


@pytest.mark.asyncio
async def test_filter_replaced_and_cleared(populated_proc):
    """Test a new filter replaces the old one and blank input clears it."""
    app = make_app(populated_proc)
    async with app.run_test() as pilot:
        await pilot.pause()
        app.view_state.set_filter("fire")

        await pilot.press("f")
        await pilot.pause()
        await pilot.press("enter")
        await pilot.pause()

        assert app.view_state.filter_text == ""
        assert len(pilot.app.query_one(ProcessTable).current_pids) == 3


@pytest.mark.asyncio
async def test_sampling_paused_while_prompt_open(populated_proc):
    """Test no cycle runs while the user is typing."""
    app = make_app(populated_proc)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("k")
        await pilot.pause()
        report = app.last_report

        await pilot.pause(1.5)

        assert app.last_report is report
        assert isinstance(app.screen, PromptScreen)


@pytest.mark.asyncio
async def test_kill_prompt_invalid_pid(fake_proc):
    """Test a bad pid is reported inline and the loop continues."""
    app = make_app(fake_proc)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("k")
        await pilot.pause()
        await pilot.press("x", "y", "enter")
        await pilot.pause()

        assert app.last_message == "Invalid PID: 'xy'"
        assert "Invalid PID" in app.status_text()
        assert app.loop_state is LoopState.AWAITING_INPUT


@pytest.mark.asyncio
async def test_kill_outcome_held_before_next_cycle(populated_proc):
    """Test the kill outcome stays up for two seconds even at a 1s interval."""
    app = make_app(populated_proc, interval=1)
    async with app.run_test() as pilot:
        await pilot.pause()
        await pilot.press("k")
        await pilot.pause()
        await pilot.press("x", "enter")
        await pilot.pause()
        report = app.last_report

        await pilot.pause(1.5)

        assert app.last_report is report
        assert app.last_message == "Invalid PID: 'x'"
        assert "Invalid PID: 'x'" in app.status_text()

        await pilot.pause(1.0)

        assert app.last_report is not report
        assert app.last_message == ""
        assert "Invalid PID" not in app.status_text()


@pytest.mark.asyncio
async def test_kill_prompt_terminates_process(fake_proc):
    """Test 'k' sends SIGTERM to the entered pid."""
    child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])
    app = make_app(fake_proc)
    try:
        async with app.run_test() as pilot:
            await pilot.pause()
            await pilot.press("k")
            await pilot.pause()
            await pilot.press(*str(child.pid))
            await pilot.press("enter")
            await pilot.pause()

            assert app.last_message == f"Process {child.pid} terminated."
        assert child.wait(timeout=5) != 0
    finally:
        if child.poll() is None:
            child.kill()
            child.wait()
