"""Formatting and drawing utility helpers."""

from __future__ import annotations

import re
from typing import Any, Callable, List, Optional, Protocol, Tuple

from dateutil import parser as dateutil_parser


class TextWidthProvider(Protocol):
    def text_width(self, text: str, size: int, bold: bool = False) -> float:
        ...


class PdfPathCanvas(Protocol):
    k: float
    h: float

    def rect(self, x: float, y: float, width: float, height: float, style: str) -> None:
        ...

    def _out(self, value: str) -> None:
        ...


_DATE_TOKENS = re.compile(r"yyyy|yy|MMM|MM|dd|d")
_DATE_DIRECTIVES = {
    "yyyy": "%Y",
    "yy": "%y",
    "MMM": "%b",
    "MM": "%m",
    "dd": "%d",
    "d": "%d",
}
_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})$")


def fmt_money(amount: float, symbol: str, decimals: int = 2) -> str:
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.{max(0, decimals)}f}"


def fmt_percent(value: float) -> str:
    return f"{fmt_qty(value)}%"


def fmt_qty(qty: Any) -> str:
    try:
        quantity = float(qty)
        if quantity.is_integer():
            return str(int(quantity))
        return str(quantity)
    except Exception:
        return str(qty)


def safe_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except Exception:
        return default


def date_pattern_to_strftime(pattern: str) -> str:
    """Translate a 'MM/dd/yyyy' style pattern into a strftime format."""
    return _DATE_TOKENS.sub(lambda match: _DATE_DIRECTIVES[match.group(0)], pattern)


def fmt_date(raw: str, pattern: Optional[str] = None) -> str:
    """Parse a date string and return it formatted as 'Mar 14, 2025'.

    When ``pattern`` is given (for example ``dd/MM/yyyy``) it is used instead.
    """
    raw = raw.strip()
    if not raw:
        return raw
    try:
        dt = dateutil_parser.parse(raw)
    except (ValueError, OverflowError):
        return raw
    fmt = date_pattern_to_strftime(pattern) if pattern else "%b %d, %Y"
    return dt.strftime(fmt)


def parse_hex_color(value: Optional[str]) -> Optional[Tuple[int, int, int]]:
    if not value:
        return None
    match = _HEX_COLOR.match(value.strip())
    if not match:
        return None
    digits = match.group(1)
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def split_lines(text: str) -> List[str]:
    if not text:
        return []
    return [line for line in text.split("\n") if line.strip() != ""]


def _split_long_word(word: str, fits: Callable[[str], bool]) -> Tuple[List[str], str]:
    pieces: List[str] = []
    chunk = ""
    for char in word:
        if chunk and not fits(chunk + char):
            pieces.append(chunk)
            chunk = char
        else:
            chunk += char
    return pieces, chunk


def wrap_text(
    fonts_obj: TextWidthProvider,
    text: str,
    max_width: float,
    font_size: int,
    bold: bool = False,
) -> List[str]:
    """Break text into lines no wider than ``max_width``; words too long for a line are split by character."""

    def fits(value: str) -> bool:
        return fonts_obj.text_width(value, font_size, bold=bold) <= max_width

    lines: List[str] = []
    for paragraph in text.split("\n"):
        words = paragraph.split()
        if not words:
            lines.append(paragraph)
            continue
        current = ""
        for word in words:
            candidate = f"{current} {word}" if current else word
            if fits(candidate):
                current = candidate
            elif current:
                lines.append(current)
                current = word
            else:
                pieces, current = _split_long_word(word, fits)
                lines.extend(pieces)
        if current:
            lines.append(current)
    return lines or [text]


KAPPA = 0.5522847498307936


def round_rect(
    pdf: PdfPathCanvas,
    x: float,
    y: float,
    width: float,
    height: float,
    radius: float,
    fill: bool = True,
) -> None:
    radius = max(0.0, min(radius, width / 2.0, height / 2.0))
    if radius == 0:
        pdf.rect(x, y, width, height, "F" if fill else "S")
        return

    def point(px: float, py: float) -> str:
        return f"{px * pdf.k:.2f} {(pdf.h - py) * pdf.k:.2f}"

    bend = radius * (1 - KAPPA)
    right, bottom = x + width, y + height
    # Clockwise from the top edge: edge end, two bezier controls, arc end.
    corners = [
        ((right - radius, y), (right - bend, y), (right, y + bend), (right, y + radius)),
        ((right, bottom - radius), (right, bottom - bend), (right - bend, bottom), (right - radius, bottom)),
        ((x + radius, bottom), (x + bend, bottom), (x, bottom - bend), (x, bottom - radius)),
        ((x, y + radius), (x, y + bend), (x + bend, y), (x + radius, y)),
    ]
    pdf._out(f"{point(x + radius, y)} m")
    for edge_end, control_1, control_2, arc_end in corners:
        pdf._out(f"{point(*edge_end)} l")
        pdf._out(f"{point(*control_1)} {point(*control_2)} {point(*arc_end)} c")
    pdf._out("f" if fill else "S")
