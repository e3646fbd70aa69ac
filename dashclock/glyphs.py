from __future__ import annotations

from functools import lru_cache

import pyfiglet

from .layout import FONT_LARGE_IMPACT


@lru_cache(maxsize=16)
def _figlet(font: str) -> pyfiglet.Figlet:
    return pyfiglet.Figlet(font=font, width=1000)


def render_glyphs(text: str, font: str) -> list[str]:
    """Render ``text`` as block letters, one string per output row."""
    rendered = _figlet(font).renderText(text)
    lines = [line.rstrip() for line in rendered.rstrip("\n").split("\n")]
    while lines and not lines[-1]:
        lines.pop()
    block = max((len(line) for line in lines), default=0)
    return [line.ljust(block) for line in lines]


def right_align(lines: list[str], width: int) -> list[str]:
    # Pad the whole block by the same amount so its right edge stays put.
    longest = max((len(line) for line in lines), default=0)
    if longest >= width:
        return list(lines)
    pad = " " * (width - longest)
    return [pad + line for line in lines]


def clock_label(hhmm: str, font: str) -> str:
    if font == FONT_LARGE_IMPACT:
        # doh glyphs touch each other
        return f"{hhmm[0]}  {hhmm[1]}  :  {hhmm[2]}  {hhmm[3]}"
    return f"{hhmm[0]}{hhmm[1]}:{hhmm[2]}{hhmm[3]}"
