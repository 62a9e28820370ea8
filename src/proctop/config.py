"""Command-line configuration and logging setup for proctop."""

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path

from textual.logging import TextualHandler

from proctop.procfs import DEFAULT_PROC_ROOT
from proctop.view import DEFAULT_ROWS, MAX_REFRESH, MIN_REFRESH, clamp_refresh


@dataclass
class Config:
    refresh_interval: int = MIN_REFRESH
    row_budget: int = DEFAULT_ROWS
    proc_root: Path = DEFAULT_PROC_ROOT
    log_file: Path | None = None
    log_level: str = "WARNING"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="proctop", description="Live procfs process monitor")
    ap.add_argument(
        "--interval",
        type=int,
        default=MIN_REFRESH,
        help=f"initial refresh interval in seconds ({MIN_REFRESH}-{MAX_REFRESH})",
    )
    ap.add_argument("--rows", type=int, default=DEFAULT_ROWS, help="number of process rows to show")
    ap.add_argument("--proc-root", type=str, default=str(DEFAULT_PROC_ROOT), help="procfs mount point")
    ap.add_argument("--log-file", type=str, default=None, help="write log records to this file")
    ap.add_argument(
        "--log-level",
        type=str.upper,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return ap.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> Config:
    cfg = Config()
    cfg.refresh_interval = clamp_refresh(args.interval)
    cfg.row_budget = max(1, args.rows)
    cfg.proc_root = Path(args.proc_root)
    if args.log_file:
        cfg.log_file = Path(args.log_file).expanduser()
    cfg.log_level = args.log_level
    return cfg


def configure_logging(cfg: Config) -> None:
    """
    Route log records to a file, or to the Textual devtools console.

    Writing to stderr would draw over the full-screen display.
    """
    handler: logging.Handler
    if cfg.log_file is not None:
        handler = logging.FileHandler(cfg.log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler = TextualHandler()
    logging.basicConfig(level=cfg.log_level, handlers=[handler], force=True)
