from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from .config import DatasourceDescriptor
from .query import SENTINEL, AlignedSeries


class Level(Enum):
    NEUTRAL = ("neutral", 0, "green")
    WARN = ("warn", 1, "yellow")
    ERROR = ("error", 2, "red")
    MISSING = ("missing", 3, "magenta")

    def __init__(self, key: str, severity: int, color: str) -> None:
        self.key = key
        self.severity = severity
        self.color = color


class LineColorPolicy(Enum):
    SEVERITY = "severity"
    LEGACY = "legacy"


STATUS_NEUTRAL = "white"
STATUS_WARN = "yellow"
STATUS_ERROR = "red"


def classify(value: float, warn: float, error: float) -> Level:
    # NaN compares false against both thresholds; treat it as no data.
    if value == SENTINEL or math.isnan(value):
        return Level.MISSING
    if value > error:
        return Level.ERROR
    if value > warn:
        return Level.WARN
    return Level.NEUTRAL


def worst_level(levels: list[Level]) -> Level:
    if not levels:
        return Level.NEUTRAL
    return max(levels, key=lambda lv: lv.severity)


def legacy_line_level(values: list[float], warn: float, error: float) -> Level:
    """Reproduce the historical single-pass scan.

    Warn only sticks while nothing has been recorded yet; a missing or
    error-level point replaces whatever came before it, so the last of those
    wins rather than the worst.
    """
    level = Level.NEUTRAL
    for v in values:
        if v > warn and level is Level.NEUTRAL:
            level = Level.WARN
        elif v == SENTINEL:
            level = Level.MISSING
        elif v > error:
            level = Level.ERROR
    return level


def status_color(last: float, warn: float, error: float) -> str:
    if math.isnan(last) or last > error or last < 0:
        return STATUS_ERROR
    if last > warn:
        return STATUS_WARN
    return STATUS_NEUTRAL


@dataclass(frozen=True)
class SeriesColors:
    line: Level
    points: tuple[Level, ...]
    status: str

    @property
    def line_color(self) -> str:
        return self.line.color


@dataclass(frozen=True)
class SourceError:
    title: str
    endpoint: str

    @property
    def message(self) -> str:
        return f"{self.title} PROM ERROR {self.endpoint}"


def colorize(
    series: AlignedSeries,
    warn: float,
    error: float,
    *,
    policy: LineColorPolicy = LineColorPolicy.SEVERITY,
) -> SeriesColors:
    if series.failed:
        raise ValueError("Cannot colorize an empty series")
    if warn <= 0:
        return SeriesColors(
            line=Level.NEUTRAL,
            points=tuple(Level.NEUTRAL for _ in series),
            status=STATUS_NEUTRAL,
        )

    points = tuple(classify(v, warn, error) for v in series.values)
    if policy is LineColorPolicy.LEGACY:
        line = legacy_line_level(series.values, warn, error)
    else:
        line = worst_level(list(points))
    return SeriesColors(line=line, points=points, status=status_color(series.last, warn, error))


def evaluate(
    source: DatasourceDescriptor,
    series: AlignedSeries,
    *,
    policy: LineColorPolicy = LineColorPolicy.SEVERITY,
) -> SeriesColors | SourceError:
    if series.failed:
        return SourceError(title=source.title, endpoint=source.endpoint)
    return colorize(series, source.warn_threshold, source.error_threshold, policy=policy)
