"""Tests for key decoding, glyph blocks and frame composition."""

from __future__ import annotations

import io
import math
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import plotext as plt
import pytest
from rich.console import Console

from dashclock.config import DatasourceDescriptor
from dashclock.errors import DisplayError
from dashclock.glyphs import clock_label, render_glyphs, right_align
from dashclock.layout import FONT_LARGE_IMPACT, FONT_STANDARD, layout
from dashclock.query import SENTINEL, AlignedPoint, AlignedSeries, align, build_range, parse_matrix
from dashclock.status import SourceError, colorize
from dashclock.ui import (
    ClockFace,
    Display,
    chart_title,
    clock_face,
    compose_frame,
    decode_keys,
    format_value,
    render_chart,
    render_clock,
    render_date,
    render_metric,
)

SOURCE = DatasourceDescriptor("CPU", "cpu", "http://prom:9090", "%", 10, 40)
FACE = ClockFace(hhmm="2359", day="28", month="Mar", weekday="Wed")


def _series(*values: float) -> AlignedSeries:
    return AlignedSeries(tuple(AlignedPoint(v, f"12:{i:02d}") for i, v in enumerate(values)))


# ── decode_keys ────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("raw", "keys"),
    [
        ("q", ["q"]),
        ("\x03", ["<C-c>"]),
        (" ", ["<Space>"]),
        ("`12", ["`", "1", "2"]),
        ("\x1b[A\x1b[B\x1b[C\x1b[D", ["<Up>", "<Down>", "<Right>", "<Left>"]),
        ("\x1bOC", ["<Right>"]),
        ("\x1b", ["<Escape>"]),
        ("\n", []),
    ],
)
def test_decode_keys(raw: str, keys: list[str]) -> None:
    assert decode_keys(raw) == keys


# ── Glyphs ─────────────────────────────────────────────────────────────────


def test_right_align_keeps_right_edge() -> None:
    one = right_align(render_glyphs("1", FONT_STANDARD), 30)
    twelve = right_align(render_glyphs("12", FONT_STANDARD), 30)
    assert {len(line) for line in one} == {30}
    assert {len(line) for line in twelve} == {30}


def test_right_align_leaves_wide_blocks() -> None:
    assert right_align(["abcdef"], 3) == ["abcdef"]


def test_render_glyphs_block_is_rectangular() -> None:
    lines = render_glyphs("23:59", FONT_STANDARD)
    assert len(lines) > 1
    assert len({len(line) for line in lines}) == 1


def test_clock_label_spacing() -> None:
    assert clock_label("2359", FONT_LARGE_IMPACT) == "2  3  :  5  9"
    assert clock_label("2359", FONT_STANDARD) == "23:59"


def test_clock_face_in_timezone() -> None:
    now = datetime(2024, 3, 28, 15, 59, tzinfo=timezone.utc)
    face = clock_face(now, ZoneInfo("Asia/Singapore"))
    assert face == ClockFace(hhmm="2359", day="28", month="Mar", weekday="Thu")


def test_clock_face_test_mode() -> None:
    face = clock_face(datetime.now(timezone.utc), ZoneInfo("UTC"), test_mode=True)
    assert face.hhmm == "2359"
    assert face.weekday == "Wed"


# ── Panels ─────────────────────────────────────────────────────────────────


def test_format_value() -> None:
    assert format_value(42.6, "%") == "43%"
    assert format_value(SENTINEL, "") == "-999"


@pytest.mark.parametrize(
    ("value", "expected"),
    [(math.nan, "NaN%"), (math.inf, "+Inf%"), (-math.inf, "-Inf%")],
)
def test_format_value_non_finite(value: float, expected: str) -> None:
    assert format_value(value, "%") == expected


def test_chart_title_nan_value() -> None:
    series = _series(1, math.nan)
    assert chart_title(layout(80, 24), SOURCE, series, colorize(series, 10, 40)) == "CPU NaN%"


def test_render_metric_inf_value() -> None:
    series = _series(1, math.inf)
    text = render_metric(layout(240, 30), SOURCE, series, colorize(series, 10, 40))
    assert text.plain.strip()


def test_chart_title_modes() -> None:
    series = _series(1, 2, 3)
    colors = colorize(series, 10, 40)
    assert chart_title(layout(80, 24), SOURCE, series, colors) == "CPU 3%"
    assert chart_title(layout(240, 30), SOURCE, series, colors) == ""
    err = SourceError("CPU", "http://prom:9090")
    assert chart_title(layout(80, 24), SOURCE, AlignedSeries(), err) == "CPU PROM ERROR http://prom:9090"


def test_render_metric_uses_status_color() -> None:
    desc = layout(240, 30)
    series = _series(1, 50)
    text = render_metric(desc, SOURCE, series, colorize(series, 10, 40))
    assert "red" in {str(span.style) for span in text.spans} | {str(text.style)}


def test_render_metric_source_error() -> None:
    desc = layout(240, 30)
    text = render_metric(desc, SOURCE, AlignedSeries(), SourceError("CPU", "http://prom:9090"))
    assert text.plain.strip()


def test_render_chart_produces_text() -> None:
    series = _series(5, SENTINEL, 20, 50, 3)
    text = render_chart(series, colorize(series, 10, 40), title="CPU 3%", width=60, height=10)
    assert text.plain.strip()


def test_render_chart_all_missing() -> None:
    series = _series(SENTINEL, SENTINEL)
    text = render_chart(series, colorize(series, 10, 40), title="", width=40, height=8)
    assert isinstance(text.plain, str)


def test_render_chart_skips_non_finite_points() -> None:
    series = _series(5, math.inf, 20, -math.inf, math.nan, 50, 3)
    text = render_chart(series, colorize(series, 10, 40), title="", width=60, height=10)
    assert text.plain.strip()


def test_render_chart_only_non_finite_points() -> None:
    series = _series(math.nan, math.inf)
    text = render_chart(series, colorize(series, 10, 40), title="", width=40, height=8)
    assert isinstance(text.plain, str)


def test_non_finite_backend_values_reach_the_panels() -> None:
    tz = ZoneInfo("Asia/Singapore")
    rng = build_range(datetime(2024, 3, 28, 15, 59, tzinfo=timezone.utc), 4, 60)
    start = rng.start.timestamp()
    payload = {
        "status": "success",
        "data": {
            "resultType": "matrix",
            "result": [{"metric": {}, "values": [[start + k * 60, v] for k, v in enumerate(["1", "+Inf", "-Inf", "20", "NaN"])]}],
        },
    }
    series = align(parse_matrix(payload), rng, 4, tz)
    colors = colorize(series, 10, 40)
    assert colors.status == "red"
    desc = layout(80, 24)
    title = chart_title(desc, SOURCE, series, colors)
    assert title == "CPU NaN%"
    text = render_chart(series, colors, title=title, width=desc.width, height=10)
    assert text.plain.strip()


def test_plotext_functional_api() -> None:
    for name in ("clear_figure", "plotsize", "theme", "title", "plot", "scatter", "xticks", "xlim", "build"):
        assert callable(getattr(plt, name, None)), name


def test_compose_frame_renders() -> None:
    desc = layout(80, 24)
    frame = compose_frame(
        desc,
        clock=render_clock(desc, FACE),
        date=render_date(desc, FACE),
        metric=None,
        chart=render_chart(_series(1, 2), colorize(_series(1, 2), 0, 0), title="x", width=80, height=13),
    )
    console = Console(file=io.StringIO(), width=80, height=24, record=True)
    console.print(frame)
    assert console.export_text().strip()


# ── Display ────────────────────────────────────────────────────────────────


def test_display_requires_terminal() -> None:
    console = Console(file=io.StringIO())
    with pytest.raises(DisplayError):
        with Display(console):
            pass


def test_display_frame_cycle() -> None:
    console = Console(file=io.StringIO(), force_terminal=True, width=80, height=24)
    desc = layout(80, 24)
    series = _series(1, 2, 3)
    with Display(console, screen=False) as display:
        assert display.size() == (80, 24)
        display.clear(desc)
        display.show_clock(desc, FACE)
        display.show_data(desc, SOURCE, series, colorize(series, 10, 40))
        display.show_data(desc, SOURCE, AlignedSeries(), SourceError("CPU", "http://prom:9090"))
        display.show_advisory(layout(10, 5))
