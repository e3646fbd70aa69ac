"""Tests for threshold coloring of aligned series."""

from __future__ import annotations

import math

import pytest

from dashclock.config import DatasourceDescriptor
from dashclock.query import SENTINEL, AlignedPoint, AlignedSeries
from dashclock.status import (
    STATUS_ERROR,
    STATUS_NEUTRAL,
    STATUS_WARN,
    Level,
    LineColorPolicy,
    SeriesColors,
    SourceError,
    classify,
    colorize,
    evaluate,
    status_color,
)


def _series(*values: float) -> AlignedSeries:
    return AlignedSeries(tuple(AlignedPoint(v, f"00:{i:02d}") for i, v in enumerate(values)))


# ── Line color ─────────────────────────────────────────────────────────────


def test_missing_beats_later_error() -> None:
    colors = colorize(_series(5, SENTINEL, 50), 10, 40)
    assert colors.line is Level.MISSING
    assert colors.line_color == "magenta"


def test_legacy_scan_lets_later_error_overwrite_missing() -> None:
    colors = colorize(_series(5, SENTINEL, 50), 10, 40, policy=LineColorPolicy.LEGACY)
    assert colors.line is Level.ERROR


def test_legacy_warn_does_not_override_stronger() -> None:
    colors = colorize(_series(20, 50), 10, 40, policy=LineColorPolicy.LEGACY)
    assert colors.line is Level.ERROR


def test_legacy_first_point_over_warn_stays_warn() -> None:
    # Historical quirk: the warn branch wins the first comparison even for an
    # error-level value, and later values never upgrade it.
    colors = colorize(_series(50, 5), 10, 40, policy=LineColorPolicy.LEGACY)
    assert colors.line is Level.WARN


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        ((1, 2, 3), Level.NEUTRAL),
        ((1, 20, 3), Level.WARN),
        ((1, 50, 20), Level.ERROR),
        ((SENTINEL, 1, 2), Level.MISSING),
        ((50, 20, SENTINEL), Level.MISSING),
    ],
)
def test_line_is_worst_in_window(values: tuple[float, ...], expected: Level) -> None:
    assert colorize(_series(*values), 10, 40).line is expected


def test_point_levels() -> None:
    colors = colorize(_series(5, 20, 50, SENTINEL), 10, 40)
    assert colors.points == (Level.NEUTRAL, Level.WARN, Level.ERROR, Level.MISSING)


def test_thresholds_off_renders_neutral() -> None:
    colors = colorize(_series(5, SENTINEL, 5000), 0, 0)
    assert colors.line is Level.NEUTRAL
    assert set(colors.points) == {Level.NEUTRAL}
    assert colors.status == STATUS_NEUTRAL


# ── Status color ───────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("last", "expected"),
    [
        (5, STATUS_NEUTRAL),
        (10, STATUS_NEUTRAL),
        (11, STATUS_WARN),
        (41, STATUS_ERROR),
        (-1, STATUS_ERROR),
        (SENTINEL, STATUS_ERROR),
        (math.nan, STATUS_ERROR),
        (math.inf, STATUS_ERROR),
        (-math.inf, STATUS_ERROR),
    ],
)
def test_status_color(last: float, expected: str) -> None:
    assert status_color(last, 10, 40) == expected


def test_status_uses_last_point_only() -> None:
    assert colorize(_series(99, 99, 5), 10, 40).status == STATUS_NEUTRAL


def test_classify_is_strict_greater() -> None:
    assert classify(10, 10, 40) is Level.NEUTRAL
    assert classify(40, 10, 40) is Level.WARN


def test_classify_non_finite() -> None:
    assert classify(math.nan, 10, 40) is Level.MISSING
    assert classify(math.inf, 10, 40) is Level.ERROR
    assert classify(-math.inf, 10, 40) is Level.NEUTRAL


def test_colorize_nan_last_point() -> None:
    colors = colorize(_series(5, 20, math.nan), 10, 40)
    assert colors.points == (Level.NEUTRAL, Level.WARN, Level.MISSING)
    assert colors.line is Level.MISSING
    assert colors.status == STATUS_ERROR


def test_colorize_inf_last_point() -> None:
    colors = colorize(_series(5, math.inf), 10, 40)
    assert colors.line is Level.ERROR
    assert colors.status == STATUS_ERROR


# ── Source errors ──────────────────────────────────────────────────────────


def test_empty_series_is_source_error() -> None:
    src = DatasourceDescriptor("CPU", "cpu", "http://prom:9090", "%", 10, 40)
    outcome = evaluate(src, AlignedSeries())
    assert isinstance(outcome, SourceError)
    assert outcome.title == "CPU"
    assert outcome.endpoint == "http://prom:9090"
    assert outcome.message == "CPU PROM ERROR http://prom:9090"


def test_evaluate_uses_source_thresholds() -> None:
    src = DatasourceDescriptor("CPU", "cpu", "http://prom:9090", "%", 10, 40)
    outcome = evaluate(src, _series(1, 20))
    assert isinstance(outcome, SeriesColors)
    assert outcome.line is Level.WARN
    assert outcome.status == STATUS_WARN


def test_colorize_rejects_empty() -> None:
    with pytest.raises(ValueError):
        colorize(AlignedSeries(), 10, 40)
