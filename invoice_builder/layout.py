"""Page geometry, typography and color themes for rendered invoices (points)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

Color = Tuple[int, int, int]

PAGE_SIZES: Dict[str, Tuple[float, float]] = {
    "letter": (612.0, 792.0),
    "a4": (595.28, 841.89),
    "legal": (612.0, 1008.0),
}
PAGE_W, PAGE_H = PAGE_SIZES["letter"]

MARGIN_X = 40.0
TOP_Y = 50.0
BOTTOM_MARGIN = 50.0
FOOTER_Y_OFFSET = 25.0

FONT_SIZE_TITLE = 24
FONT_SIZE_HEADING = 14
FONT_SIZE_NORMAL = 10
FONT_SIZE_SMALL = 8

LOGO_MAX_W = 120.0
LOGO_MAX_H = 60.0
ADDR_LINE_H = 12.0
NAME_LINE_H = 13.0
DESC_LINE_H = 11.0

ITEMS_START_Y_FIRST = 260.0
ITEMS_START_Y_CONT = 80.0
BAR_H = 22.0
BAR_RADIUS = 4.0
BAR_TEXT_OFFSET = 14.0
ITEM_ROW_H = 24.0
ITEM_TO_QTY_GUTTER = 10.0

TOTAL_ROW_H = 18.0
TOTALS_LABEL_W = 110.0
# Space kept free below the last row for the totals block.
TOTALS_RESERVE = 120.0
BOX_RADIUS = 4.0
BALANCE_BOX_W = 220.0
BALANCE_BOX_H = 26.0
NOTES_GAP = 28.0
NOTES_LINE_H = 13.0

COL_AMOUNT_W = 80.0
COL_TAX_W = 65.0
COL_DISCOUNT_W = 65.0
COL_PRICE_W = 75.0
COL_QTY_W = 45.0

COLOR_TEXT: Color = (30, 41, 59)
COLOR_TEXT_ALT: Color = (71, 85, 105)
COLOR_LABEL: Color = (100, 116, 139)
COLOR_MUTED: Color = (148, 163, 184)
COLOR_RULE: Color = (226, 232, 240)
COLOR_WHITE: Color = (255, 255, 255)
COLOR_SKY: Color = (14, 165, 233)
COLOR_PANEL: Color = (241, 245, 249)
COLOR_ZEBRA: Color = (248, 250, 252)


@dataclass(frozen=True)
class Theme:
    name: str
    accent: Color
    title_text: str = "INVOICE"
    title_color: Color = COLOR_SKY
    bar_fill: Optional[Color] = COLOR_PANEL
    bar_text: Color = COLOR_TEXT
    header_band: bool = False
    zebra: Optional[Color] = None
    box_fill: Optional[Color] = COLOR_PANEL

    def with_accent(self, accent: Optional[Color]) -> "Theme":
        if accent is None or not self.header_band:
            return self
        return Theme(
            name=self.name,
            accent=accent,
            title_text=self.title_text,
            title_color=self.title_color,
            bar_fill=accent,
            bar_text=self.bar_text,
            header_band=self.header_band,
            zebra=self.zebra,
            box_fill=self.box_fill,
        )


THEMES: Dict[str, Theme] = {
    "standard": Theme(name="standard", accent=COLOR_SKY),
    "professional": Theme(
        name="professional",
        accent=COLOR_SKY,
        title_color=COLOR_WHITE,
        bar_fill=COLOR_SKY,
        bar_text=COLOR_WHITE,
        header_band=True,
        zebra=COLOR_ZEBRA,
    ),
    "minimal": Theme(
        name="minimal",
        accent=COLOR_TEXT_ALT,
        title_text="Invoice",
        title_color=COLOR_TEXT_ALT,
        bar_fill=None,
        bar_text=COLOR_LABEL,
        box_fill=None,
    ),
}


def page_dimensions(page_size: str, orientation: str) -> Tuple[float, float]:
    try:
        width, height = PAGE_SIZES[page_size.lower()]
    except KeyError as exc:
        raise ValueError(f"Unsupported page size {page_size!r}.") from exc
    if orientation == "landscape":
        return height, width
    if orientation != "portrait":
        raise ValueError(f"Unsupported orientation {orientation!r}.")
    return width, height
