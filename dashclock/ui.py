from __future__ import annotations

import asyncio
import contextlib
import math
import os
import signal
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

import plotext as plt
from rich.console import Console, RenderableType
from rich.layout import Layout
from rich.live import Live
from rich.text import Text

from .config import DatasourceDescriptor
from .errors import DisplayError
from .glyphs import clock_label, render_glyphs, right_align
from .layout import LayoutDescriptor, panel_sizes
from .query import AlignedSeries
from .status import Level, SeriesColors, SourceError

CLOCK_STYLE = "yellow"
DATE_STYLE = "white"
ERROR_STYLE = "red"

ERROR_LABEL = "PROM ERROR"
X_TICKS = 6

KEY_UP = "<Up>"
KEY_DOWN = "<Down>"
KEY_LEFT = "<Left>"
KEY_RIGHT = "<Right>"
KEY_SPACE = "<Space>"
KEY_CTRL_C = "<C-c>"
KEY_ESCAPE = "<Escape>"

_ESCAPES = {
    "\x1b[A": KEY_UP,
    "\x1b[B": KEY_DOWN,
    "\x1b[C": KEY_RIGHT,
    "\x1b[D": KEY_LEFT,
    "\x1bOA": KEY_UP,
    "\x1bOB": KEY_DOWN,
    "\x1bOC": KEY_RIGHT,
    "\x1bOD": KEY_LEFT,
}


def decode_keys(data: str) -> list[str]:
    """Split raw terminal input into key ids (``q``, ``<Left>``, ...)."""
    keys: list[str] = []
    i = 0
    while i < len(data):
        ch = data[i]
        if ch == "\x1b":
            seq = data[i : i + 3]
            if seq in _ESCAPES:
                keys.append(_ESCAPES[seq])
                i += 3
                continue
            keys.append(KEY_ESCAPE)
        elif ch == " ":
            keys.append(KEY_SPACE)
        elif ch == "\x03":
            keys.append(KEY_CTRL_C)
        elif ch.isprintable():
            keys.append(ch)
        i += 1
    return keys


@dataclass(frozen=True)
class ClockFace:
    hhmm: str
    day: str
    month: str
    weekday: str


def clock_face(now: datetime, tz: ZoneInfo, *, test_mode: bool = False) -> ClockFace:
    if test_mode:
        # Fixed wide digits for font alignment work.
        return ClockFace(hhmm="2359", day="28", month="Mar", weekday="Wed")
    local = now.astimezone(tz)
    return ClockFace(
        hhmm=local.strftime("%H%M"),
        day=local.strftime("%d"),
        month=local.strftime("%b"),
        weekday=local.strftime("%a"),
    )


def _block(lines: list[str], style: str) -> Text:
    return Text("\n".join(lines), style=style, no_wrap=True, overflow="crop")


def render_clock(desc: LayoutDescriptor, face: ClockFace) -> Text:
    glyphs = render_glyphs(clock_label(face.hhmm, desc.clock_font), desc.clock_font)
    return _block(right_align(glyphs, desc.clock_display_width), CLOCK_STYLE)


def render_date(desc: LayoutDescriptor, face: ClockFace) -> Text:
    rows: list[str] = []
    for part in (face.weekday, face.day, face.month):
        rows.extend(right_align(render_glyphs(part, desc.date_font), desc.date_display_width))
    return _block(rows, DATE_STYLE)


def format_value(value: float, unit: str) -> str:
    if math.isnan(value):
        return f"NaN{unit}"
    if math.isinf(value):
        return f"{'+' if value > 0 else '-'}Inf{unit}"
    return f"{value:.0f}{unit}"


def render_metric(desc: LayoutDescriptor, source: DatasourceDescriptor, series: AlignedSeries, outcome: SeriesColors | SourceError) -> Text:
    """Big-glyph title and latest value, for profiles with a label font."""
    font = desc.label_font
    title = render_glyphs(source.title, font) if source.title else []
    if isinstance(outcome, SourceError):
        text = _block(title, ERROR_STYLE)
        text.append("\n")
        text.append_text(_block(render_glyphs(ERROR_LABEL, font), ERROR_STYLE))
        return text
    value = render_glyphs(format_value(series.last, source.unit), font)
    text = _block(title, DATE_STYLE)
    text.append("\n")
    text.append_text(_block(value, outcome.status))
    return text


def chart_title(desc: LayoutDescriptor, source: DatasourceDescriptor, series: AlignedSeries, outcome: SeriesColors | SourceError) -> str:
    if isinstance(outcome, SourceError):
        return outcome.message
    if desc.has_label:
        return ""
    return f"{source.title} {format_value(series.last, source.unit)}"


def _tick_positions(count: int) -> list[int]:
    if count <= 1:
        return [0] if count else []
    n = min(X_TICKS, count)
    step = (count - 1) / max(1, n - 1)
    return sorted({int(round(i * step)) for i in range(n)})


def render_chart(
    series: AlignedSeries,
    outcome: SeriesColors | SourceError,
    *,
    title: str,
    width: int,
    height: int,
) -> Text:
    plt.clear_figure()
    plt.plotsize(max(10, width), max(4, height))
    plt.theme("clear")
    if title:
        plt.title(title)

    if isinstance(outcome, SeriesColors):
        xs = [i for i, p in enumerate(series.points) if p.plottable]
        ys = [series.points[i].value for i in xs]
        if xs:
            plt.plot(xs, ys, color=outcome.line_color, marker="braille")
            for level in (Level.WARN, Level.ERROR):
                marked = [i for i in xs if outcome.points[i] is level]
                if marked:
                    plt.scatter(marked, [series.points[i].value for i in marked], color=level.color, marker="dot")
        ticks = _tick_positions(len(series))
        plt.xticks(ticks, [series.points[i].label for i in ticks])
        plt.xlim(0, max(1, len(series) - 1))

    return Text.from_ansi(plt.build(), no_wrap=True, overflow="crop")


def render_advisory(desc: LayoutDescriptor) -> Text:
    return Text(desc.advisory, style=ERROR_STYLE)


def compose_frame(
    desc: LayoutDescriptor,
    *,
    clock: RenderableType,
    date: RenderableType,
    metric: RenderableType | None,
    chart: RenderableType,
) -> Layout:
    sizes = panel_sizes(desc)
    root = Layout(name="root")
    top = Layout(name="top", size=sizes.top_height)
    root.split_column(top, Layout(chart, name="chart", ratio=1))

    row: list[Layout] = []
    if sizes.metric_width:
        row.append(Layout(metric or Text(""), name="metric", size=sizes.metric_width))
    row.append(Layout(clock, name="clock", ratio=1))
    row.append(Layout(date, name="date", size=sizes.date_width))
    top.split_row(*row)
    return root


class Display:
    """Owns the terminal: the full-screen Live view and the current frame parts."""

    def __init__(self, console: Console | None = None, *, screen: bool = True) -> None:
        self.console = console or Console()
        self._screen = screen
        self._live: Live | None = None
        self._desc: LayoutDescriptor | None = None
        self._clock: RenderableType = Text("")
        self._date: RenderableType = Text("")
        self._metric: RenderableType | None = None
        self._chart: RenderableType = Text("")

    def __enter__(self) -> "Display":
        if not self.console.is_terminal:
            raise DisplayError("failed to initialize display: output is not a terminal")
        self._live = Live(
            console=self.console,
            screen=self._screen,
            auto_refresh=False,
            transient=False,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        live, self._live = self._live, None
        if live is not None:
            live.__exit__(*exc_info)

    def size(self) -> tuple[int, int]:
        size = self.console.size
        return size.width, size.height

    def clear(self, desc: LayoutDescriptor) -> None:
        self._desc = desc
        self._clock = Text("")
        self._date = Text("")
        self._metric = None
        self._chart = Text("")

    def show_advisory(self, desc: LayoutDescriptor) -> None:
        self._desc = desc
        self._update(render_advisory(desc))

    def show_clock(self, desc: LayoutDescriptor, face: ClockFace) -> None:
        self._desc = desc
        self._clock = render_clock(desc, face)
        self._date = render_date(desc, face)
        self._refresh()

    def show_data(
        self,
        desc: LayoutDescriptor,
        source: DatasourceDescriptor,
        series: AlignedSeries,
        outcome: SeriesColors | SourceError,
    ) -> None:
        self._desc = desc
        sizes = panel_sizes(desc)
        if desc.has_label:
            self._metric = render_metric(desc, source, series, outcome)
        self._chart = render_chart(
            series,
            outcome,
            title=chart_title(desc, source, series, outcome),
            width=desc.width,
            height=sizes.chart_height,
        )
        self._refresh()

    def _refresh(self) -> None:
        if self._desc is None or not self._desc.supported:
            return
        self._update(
            compose_frame(self._desc, clock=self._clock, date=self._date, metric=self._metric, chart=self._chart)
        )

    def _update(self, renderable: RenderableType) -> None:
        if self._live is not None:
            self._live.update(renderable, refresh=True)


class TerminalInput:
    """Feeds key presses and resizes from the controlling tty into callbacks."""

    def __init__(
        self,
        on_key: Callable[[str], None],
        on_resize: Callable[[], None],
        *,
        stream=None,
    ) -> None:
        self._on_key = on_key
        self._on_resize = on_resize
        self._stream = stream or sys.stdin
        self._fd: int | None = None
        self._old_termios: list | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def __enter__(self) -> "TerminalInput":
        self._loop = asyncio.get_running_loop()
        if self._stream.isatty():
            import termios
            import tty

            fd = self._stream.fileno()
            self._old_termios = termios.tcgetattr(fd)
            tty.setcbreak(fd)
            self._fd = fd
            self._loop.add_reader(fd, self._on_readable)
        with contextlib.suppress(NotImplementedError, AttributeError):
            self._loop.add_signal_handler(signal.SIGWINCH, self._on_resize)
        return self

    def __exit__(self, *exc_info) -> None:
        loop = self._loop
        if loop is None:
            return
        with contextlib.suppress(NotImplementedError, AttributeError):
            loop.remove_signal_handler(signal.SIGWINCH)
        if self._fd is None:
            return
        try:
            import termios

            loop.remove_reader(self._fd)
            if self._old_termios is not None:
                termios.tcsetattr(self._fd, termios.TCSADRAIN, self._old_termios)
        finally:
            self._fd = None
            self._old_termios = None

    def _on_readable(self) -> None:
        if self._fd is None:
            return
        try:
            data = os.read(self._fd, 64)
        except OSError:
            return
        for key in decode_keys(data.decode("utf-8", errors="ignore")):
            self._on_key(key)
