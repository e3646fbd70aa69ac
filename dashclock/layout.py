from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Figlet fonts for each profile.
FONT_LARGE_IMPACT = "doh"
FONT_BLOCK = "colossal"
FONT_STANDARD = "standard"
FONT_SMALL = "mini"
FONT_TINY = "term"


class Support(Enum):
    SUPPORTED = "supported"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class Rect:
    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return max(0, self.x1 - self.x0)

    @property
    def height(self) -> int:
        return max(0, self.y1 - self.y0)


EMPTY_RECT = Rect(0, 0, 0, 0)


@dataclass(frozen=True)
class LayoutDescriptor:
    width: int
    height: int
    support: Support
    clock_rect: Rect = EMPTY_RECT
    date_rect: Rect = EMPTY_RECT
    chart_rect: Rect = EMPTY_RECT
    metric_rect: Rect = EMPTY_RECT
    clock_font: str = ""
    date_font: str = ""
    label_font: str = ""
    clock_display_width: int = 0
    date_display_width: int = 0

    @property
    def supported(self) -> bool:
        return self.support is Support.SUPPORTED

    @property
    def has_label(self) -> bool:
        return bool(self.label_font)

    @property
    def advisory(self) -> str:
        return f"Unsupported terminal size of {self.width} x {self.height}\nResize or (q)uit"


def layout(width: int, height: int) -> LayoutDescriptor:
    """Map terminal geometry to widget rectangles and fonts.

    Rules are checked in order and the first match wins. The display widths
    are the pad widths used to right-anchor the clock and date glyph blocks.
    """
    w, h = width, height

    # 8" LCD panel
    if w == 240 and h == 30:
        return LayoutDescriptor(
            width=w,
            height=h,
            support=Support.SUPPORTED,
            clock_rect=Rect(100, -3, w - 28, 17),
            date_rect=Rect(w - 30, -1, w + 1, 17),
            chart_rect=Rect(0, 16, w + 1, h + 1),
            metric_rect=Rect(0, 4, w - 140, 17),
            clock_font=FONT_LARGE_IMPACT,
            date_font=FONT_STANDARD,
            label_font=FONT_STANDARD,
            clock_display_width=109,
            date_display_width=29,
        )
    if w >= 131 and h >= 30:
        return LayoutDescriptor(
            width=w,
            height=h,
            support=Support.SUPPORTED,
            clock_rect=Rect(0, -3, w - 28, 17),
            date_rect=Rect(w - 30, -1, w + 1, 17),
            chart_rect=Rect(0, 17, w + 1, h + 1),
            metric_rect=Rect(0, 4, w - 140, 17),
            clock_font=FONT_LARGE_IMPACT,
            date_font=FONT_STANDARD,
            clock_display_width=w - 28 - 4,
            date_display_width=29,
        )
    if w >= 68 and h >= 20:
        return LayoutDescriptor(
            width=w,
            height=h,
            support=Support.SUPPORTED,
            clock_rect=Rect(0, 0, w - 16, 11),
            date_rect=Rect(w - 18, -1, w + 1, 11),
            chart_rect=Rect(0, 11, w + 1, h + 1),
            metric_rect=Rect(0, 4, w - 140, 11),
            clock_font=FONT_BLOCK,
            date_font=FONT_SMALL,
            clock_display_width=w - 16 - 4,
            date_display_width=17,
        )
    if w >= 40 and h >= 16:
        return LayoutDescriptor(
            width=w,
            height=h,
            support=Support.SUPPORTED,
            clock_rect=Rect(-2, -1, w - 4, 6),
            date_rect=Rect(w - 5, 1, w + 1, 6),
            chart_rect=Rect(0, 6, w + 1, h + 1),
            metric_rect=Rect(0, 4, w - 140, 6),
            clock_font=FONT_STANDARD,
            date_font=FONT_TINY,
            clock_display_width=w - 6 - 2,
            date_display_width=4,
        )
    return LayoutDescriptor(width=w, height=h, support=Support.UNSUPPORTED)


@dataclass(frozen=True)
class PanelSizes:
    top_height: int
    metric_width: int
    clock_width: int
    date_width: int
    chart_height: int


def panel_sizes(desc: LayoutDescriptor) -> PanelSizes:
    """Clip the (possibly off-screen) rectangles to a row/column grid."""
    w, h = desc.width, desc.height
    top = max(1, min(h - 1, desc.chart_rect.y0))
    metric = max(0, desc.clock_rect.x0) if desc.has_label else 0
    date = max(1, w - max(0, desc.date_rect.x0))
    clock = max(1, w - metric - date)
    return PanelSizes(
        top_height=top,
        metric_width=metric,
        clock_width=clock,
        date_width=date,
        chart_height=max(1, h - top),
    )
