from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path

import httpx
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .config import AppConfig, load_config
from .errors import FatalError
from .query import CLIENT_TIMEOUT, QueryEngine
from .render_loop import RenderLoop
from .ui import Display, TerminalInput

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dashclock",
        description="Full-screen terminal clock with a cycling Prometheus chart panel.",
    )
    parser.add_argument(
        "--file",
        default="dashclock.json",
        help="Prometheus sources in JSON format (default: dashclock.json).",
    )
    parser.add_argument(
        "--refresh",
        type=int,
        default=15,
        help="Refresh rate for metrics, in seconds (default: 15).",
    )
    parser.add_argument(
        "--timezone",
        default="Asia/Singapore",
        help="IANA timezone for the clock and chart labels (default: Asia/Singapore).",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Show a fixed clock value (font alignment work).",
    )
    parser.add_argument(
        "--window",
        type=int,
        default=60,
        help="Number of chart intervals to show (default: 60).",
    )
    parser.add_argument(
        "--step",
        type=int,
        default=60,
        help="Seconds between chart points (default: 60).",
    )
    parser.add_argument(
        "--legacy-colors",
        action="store_true",
        help="Use the historical order-dependent line color scan.",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to this file instead of stderr.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug messages.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def setup_logging(log_file: str | None, *, verbose: bool = False) -> logging.Handler:
    handler: logging.Handler
    if log_file:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return handler


@contextlib.contextmanager
def quiet_console(handler: logging.Handler):
    """Hold a stderr RichHandler at ERROR while the full-screen view is up."""
    if not isinstance(handler, RichHandler):
        yield
        return
    previous = handler.level
    handler.setLevel(max(previous, logging.ERROR))
    try:
        yield
    finally:
        handler.setLevel(previous)


async def run_dashboard(cfg: AppConfig, display: Display) -> None:
    async with httpx.AsyncClient(
        timeout=CLIENT_TIMEOUT,
        headers={"User-Agent": f"dashclock/{__version__}"},
        follow_redirects=True,
    ) as client:
        loop = RenderLoop(cfg, QueryEngine(client), display)
        with TerminalInput(loop.key_pressed, loop.resized):
            await loop.run()


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    handler = setup_logging(args.log_file, verbose=args.verbose)

    try:
        cfg = load_config(
            Path(args.file),
            timezone_name=args.timezone,
            refresh_seconds=args.refresh,
            window_length=args.window,
            step_seconds=args.step,
            test_mode=args.test,
            legacy_colors=args.legacy_colors,
        )
        with quiet_console(handler), Display() as display:
            asyncio.run(run_dashboard(cfg, display))
    except FatalError as e:
        logger.error("%s", e)
        if args.log_file:
            print(f"dashclock: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0
