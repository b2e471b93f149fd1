"""Invoice PDF rendering logic."""

from __future__ import annotations

import io
import logging
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from fpdf import FPDF  # type: ignore

from .fonts import FontManager
from .formatting import fmt_date, fmt_money, fmt_percent, fmt_qty, parse_hex_color, round_rect, split_lines, wrap_text
from .layout import (
    ADDR_LINE_H,
    BALANCE_BOX_H,
    BALANCE_BOX_W,
    BAR_H,
    BAR_RADIUS,
    BAR_TEXT_OFFSET,
    BOTTOM_MARGIN,
    BOX_RADIUS,
    COL_AMOUNT_W,
    COL_DISCOUNT_W,
    COL_PRICE_W,
    COL_QTY_W,
    COL_TAX_W,
    COLOR_LABEL,
    COLOR_MUTED,
    COLOR_RULE,
    COLOR_TEXT,
    COLOR_TEXT_ALT,
    COLOR_WHITE,
    DESC_LINE_H,
    FONT_SIZE_HEADING,
    FONT_SIZE_NORMAL,
    FONT_SIZE_SMALL,
    FONT_SIZE_TITLE,
    FOOTER_Y_OFFSET,
    ITEM_ROW_H,
    ITEM_TO_QTY_GUTTER,
    ITEMS_START_Y_CONT,
    ITEMS_START_Y_FIRST,
    LOGO_MAX_H,
    LOGO_MAX_W,
    MARGIN_X,
    NAME_LINE_H,
    NOTES_GAP,
    NOTES_LINE_H,
    THEMES,
    TOP_Y,
    TOTAL_ROW_H,
    TOTALS_LABEL_W,
    Theme,
)
from .logo import LogoError, decode_data_url
from .models import DiscountKind, EnterpriseProfile, Invoice, InvoiceTotals, LineItem, TaxRule
from .storage import MISSING, QuotaStore, Slot, WriteResult
from .totals import compute_invoice_totals, tax_breakdown

logger = logging.getLogger(__name__)

HEADER_BAND_H = 120.0


@dataclass
class PdfOptions:
    template: str = "standard"
    page_size: str = "a4"
    orientation: str = "portrait"
    file_name: str = ""
    compress: bool = True
    include_header: bool = True
    include_footer: bool = True
    date_format: str = ""

    def __post_init__(self) -> None:
        if self.template not in THEMES:
            raise ValueError(f"Unknown PDF template {self.template!r}.")
        if self.page_size.lower() not in ("a4", "letter", "legal"):
            raise ValueError(f"Unsupported page size {self.page_size!r}.")
        if self.orientation not in ("portrait", "landscape"):
            raise ValueError(f"Unsupported orientation {self.orientation!r}.")

    def resolved_file_name(self, invoice: Invoice) -> str:
        if self.file_name:
            return self.file_name
        number = invoice.settings.invoice_number or "draft"
        return f"invoice-{number}.pdf"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PdfOptions":
        known = {item.name for item in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PdfResult:
    data: bytes
    file_name: str


class _InvoicePDF(FPDF):
    footer_callback: Optional[Callable[[], None]] = None

    def footer(self) -> None:
        if self.footer_callback is not None:
            self.footer_callback()


@dataclass(frozen=True)
class _Column:
    label: str
    right: float


class InvoiceRenderer:
    def __init__(
        self,
        invoice: Invoice,
        tax_rules: Sequence[TaxRule],
        options: Optional[PdfOptions] = None,
        brand_color: Optional[str] = None,
    ) -> None:
        if invoice.business is None or not invoice.business.name.strip():
            raise ValueError("Business information is required")

        self.invoice = invoice
        self.options = options or PdfOptions()
        self.settings = invoice.settings
        self.currency = invoice.settings.currency
        self.theme: Theme = THEMES[self.options.template].with_accent(parse_hex_color(brand_color))

        self.pdf = _InvoicePDF(
            orientation="L" if self.options.orientation == "landscape" else "P",
            unit="pt",
            format=self.options.page_size.lower(),
        )
        self.pdf.set_auto_page_break(False)
        self.pdf.set_compression(self.options.compress)
        self.pdf.set_title(f"Invoice {self.settings.invoice_number}".strip())
        self.pdf.set_creator("invoice_builder")
        self.page_w = self.pdf.w
        self.page_h = self.pdf.h
        self.bottom = self.page_h - BOTTOM_MARGIN

        self.fonts = FontManager(self.pdf)
        if self.options.include_footer:
            self.pdf.footer_callback = self._draw_footer
        self.pdf.add_page()

        self.items: List[LineItem] = list(invoice.items)
        self.totals: InvoiceTotals = compute_invoice_totals(self.items, tax_rules)
        self.tax_lines: Dict[str, float] = tax_breakdown(self.items, tax_rules)
        self.columns, self.item_max_width = self._layout_columns()

    def _money(self, amount: float) -> str:
        return fmt_money(amount, self.currency.symbol, self.currency.decimals)

    def _layout_columns(self) -> Tuple[Dict[str, _Column], float]:
        right = self.page_w - MARGIN_X - 8
        columns: Dict[str, _Column] = {"amount": _Column("Amount", right)}
        cursor = right - COL_AMOUNT_W
        if self.settings.show_taxes:
            columns["tax"] = _Column("Tax", cursor)
            cursor -= COL_TAX_W
        if self.settings.show_discounts:
            columns["discount"] = _Column("Discount", cursor)
            cursor -= COL_DISCOUNT_W
        columns["price"] = _Column("Price", cursor)
        cursor -= COL_PRICE_W
        columns["qty"] = _Column("Qty", cursor)
        cursor -= COL_QTY_W
        return columns, cursor - (MARGIN_X + 8) - ITEM_TO_QTY_GUTTER

    def _draw_logo(self, x: float, y: float) -> float:
        if not self.invoice.logo:
            return 0.0
        try:
            raw = decode_data_url(self.invoice.logo)
            info = self.pdf.image(io.BytesIO(raw), x=x, y=y, w=LOGO_MAX_W, h=LOGO_MAX_H, keep_aspect_ratio=True)
        except (LogoError, OSError, ValueError) as exc:
            logger.warning("Skipping logo: %s", exc)
            return 0.0
        rendered_h = getattr(info, "rendered_height", None)
        return float(rendered_h) if rendered_h else LOGO_MAX_H

    def _draw_header(self) -> float:
        theme = self.theme
        business = self.invoice.business
        right = self.page_w - MARGIN_X
        on_band = theme.header_band and self.options.include_header
        name_color = COLOR_WHITE if on_band else COLOR_TEXT
        detail_color = COLOR_WHITE if on_band else COLOR_TEXT_ALT

        if on_band:
            self.pdf.set_fill_color(*theme.accent)
            self.pdf.rect(0, 0, self.page_w, HEADER_BAND_H, "F")

        left_y = TOP_Y
        if self.options.include_header and business is not None:
            logo_h = self._draw_logo(MARGIN_X, TOP_Y - 20)
            if logo_h:
                left_y = TOP_Y - 20 + logo_h + 18
            self.fonts.draw_text(MARGIN_X, left_y, business.name, FONT_SIZE_HEADING, name_color, bold=True)
            left_y += NAME_LINE_H + 2
            for line in business.address_lines():
                self.fonts.draw_text(MARGIN_X, left_y, line, FONT_SIZE_SMALL, detail_color)
                left_y += ADDR_LINE_H

        title_y = TOP_Y + 4
        self.fonts.draw_text_right(right, title_y, theme.title_text, FONT_SIZE_TITLE, theme.title_color)
        right_y = title_y + 22
        meta = []
        if self.settings.invoice_number:
            meta.append(("Invoice #:", self.settings.invoice_number))
        issue = fmt_date(self.settings.issue_date, self.options.date_format or None)
        if issue:
            meta.append(("Date:", issue))
        due = fmt_date(self.settings.due_date, self.options.date_format or None)
        if due:
            meta.append(("Due Date:", due))
        for label, value in meta:
            value_w = self.fonts.text_width(value, FONT_SIZE_NORMAL)
            self.fonts.draw_text_right(right - value_w - 6, right_y, label, FONT_SIZE_NORMAL, detail_color, bold=True)
            self.fonts.draw_text_right(right, right_y, value, FONT_SIZE_NORMAL, detail_color)
            right_y += NAME_LINE_H

        y = max(left_y, right_y, HEADER_BAND_H if on_band else 0.0) + 20
        customer = self.invoice.customer
        if customer is not None and customer.name:
            self.fonts.draw_text(MARGIN_X, y, "Bill To:", FONT_SIZE_SMALL, COLOR_LABEL)
            y += NAME_LINE_H
            self.fonts.draw_text(MARGIN_X, y, customer.name, FONT_SIZE_NORMAL, COLOR_TEXT, bold=True)
            y += NAME_LINE_H
            for line in customer.address_lines():
                self.fonts.draw_text(MARGIN_X, y, line, FONT_SIZE_SMALL, COLOR_TEXT_ALT)
                y += ADDR_LINE_H
        return y

    def _draw_table_header(self, items_y: float) -> None:
        bar_y = items_y - BAR_H - 6
        text_y = bar_y + BAR_TEXT_OFFSET
        width = self.page_w - 2 * MARGIN_X
        if self.theme.bar_fill is not None:
            self.pdf.set_fill_color(*self.theme.bar_fill)
            round_rect(self.pdf, MARGIN_X, bar_y, width, BAR_H, BAR_RADIUS, fill=True)
        else:
            self.pdf.set_draw_color(*COLOR_RULE)
            self.pdf.line(MARGIN_X, bar_y + BAR_H, MARGIN_X + width, bar_y + BAR_H)

        color = self.theme.bar_text
        self.fonts.draw_text(MARGIN_X + 8, text_y, "Item", FONT_SIZE_SMALL, color, bold=True)
        for column in self.columns.values():
            self.fonts.draw_text_right(column.right, text_y, column.label, FONT_SIZE_SMALL, color, bold=True)

    def _item_lines(self, item: LineItem) -> Tuple[List[str], List[str]]:
        name = item.name.strip() or "-"
        name_lines = wrap_text(self.fonts, name, self.item_max_width, FONT_SIZE_NORMAL, bold=True)
        desc_lines: List[str] = []
        for paragraph in split_lines(item.description):
            desc_lines.extend(wrap_text(self.fonts, paragraph.strip(), self.item_max_width, FONT_SIZE_SMALL))
        return name_lines, desc_lines

    def _discount_text(self, item: LineItem) -> str:
        if not item.discount:
            return "-"
        if item.discount_kind == DiscountKind.PERCENTAGE:
            return fmt_percent(item.discount)
        return self._money(item.discount)

    def _new_page(self) -> None:
        self.pdf.add_page()

    def _draw_items(self, start_y: float) -> float:
        x_item = MARGIN_X + 8
        y = start_y
        for index, item in enumerate(self.items):
            name_lines, desc_lines = self._item_lines(item)
            row_h = ITEM_ROW_H + (len(name_lines) - 1) * NAME_LINE_H + len(desc_lines) * DESC_LINE_H
            if y + row_h > self.bottom and y > ITEMS_START_Y_CONT:
                self._new_page()
                y = ITEMS_START_Y_CONT
                self._draw_table_header(y)

            if self.theme.zebra is not None and index % 2 == 1:
                self.pdf.set_fill_color(*self.theme.zebra)
                self.pdf.rect(MARGIN_X, y - 15, self.page_w - 2 * MARGIN_X, row_h, "F")

            line_y = y
            for line in name_lines:
                self.fonts.draw_text(x_item, line_y, line, FONT_SIZE_NORMAL, COLOR_TEXT, bold=True)
                line_y += NAME_LINE_H
            for line in desc_lines:
                self.fonts.draw_text(x_item, line_y - 2, line, FONT_SIZE_SMALL, COLOR_LABEL)
                line_y += DESC_LINE_H

            line_totals = self.totals.line_totals[item.id]
            cells = {
                "qty": fmt_qty(item.quantity),
                "price": self._money(item.unit_price),
                "discount": self._discount_text(item),
                "tax": self._money(line_totals.tax_amount) if line_totals.tax_amount else "-",
                "amount": self._money(line_totals.total),
            }
            for key, column in self.columns.items():
                self.fonts.draw_text_right(column.right, y, cells[key], FONT_SIZE_NORMAL, COLOR_TEXT)

            y += row_h
        return y

    def _totals_rows(self) -> List[Tuple[str, float]]:
        rows = [("Subtotal:", self.totals.subtotal)]
        if self.settings.show_discounts and self.totals.total_discount:
            rows.append(("Discount:", -self.totals.total_discount))
        if self.settings.show_taxes:
            for name, amount in self.tax_lines.items():
                rows.append((f"{name}:", amount))
        rows.append(("Total:", self.totals.grand_total))
        return rows

    def _draw_totals(self, start_y: float) -> float:
        rows = self._totals_rows()
        needed = len(rows) * TOTAL_ROW_H + BALANCE_BOX_H + 24
        y = start_y
        if y + needed > self.bottom:
            self._new_page()
            y = ITEMS_START_Y_CONT

        amount_right = self.columns["amount"].right
        label_right = amount_right - TOTALS_LABEL_W
        for label, amount in rows:
            bold = label == "Total:"
            self.fonts.draw_text_right(label_right, y, label, FONT_SIZE_NORMAL, COLOR_LABEL, bold=bold)
            self.fonts.draw_text_right(amount_right, y, self._money(amount), FONT_SIZE_NORMAL, COLOR_TEXT, bold=bold)
            y += TOTAL_ROW_H

        box_x = amount_right + 8 - BALANCE_BOX_W
        box_y = y - 8
        if self.theme.box_fill is not None:
            self.pdf.set_fill_color(*self.theme.box_fill)
            round_rect(self.pdf, box_x, box_y, BALANCE_BOX_W, BALANCE_BOX_H, BOX_RADIUS, fill=True)
        else:
            self.pdf.set_draw_color(*COLOR_RULE)
            self.pdf.line(box_x, box_y, box_x + BALANCE_BOX_W, box_y)
        text_y = box_y + 17
        balance = self._money(self.totals.grand_total)
        self.fonts.draw_text_right(label_right, text_y, "Balance Due:", FONT_SIZE_NORMAL, self.theme.accent, bold=True)
        self.fonts.draw_text_right(amount_right, text_y, balance, FONT_SIZE_NORMAL, self.theme.accent, bold=True)
        return box_y + BALANCE_BOX_H

    def _draw_notes(self, label: str, text: str, start_y: float) -> float:
        note_lines = split_lines(text.strip())
        if not note_lines:
            return start_y

        continuation_top = ITEMS_START_Y_CONT
        y = start_y + NOTES_GAP
        if y + NOTES_LINE_H > self.bottom:
            self._new_page()
            y = continuation_top

        self.fonts.draw_text(MARGIN_X, y, label, FONT_SIZE_NORMAL, COLOR_TEXT, bold=True)
        y += NOTES_LINE_H + 2
        width = self.page_w - 2 * MARGIN_X
        for paragraph in note_lines:
            for line in wrap_text(self.fonts, paragraph, width, FONT_SIZE_NORMAL):
                if y > self.bottom:
                    self._new_page()
                    y = continuation_top
                self.fonts.draw_text(MARGIN_X, y, line, FONT_SIZE_NORMAL, COLOR_TEXT_ALT)
                y += NOTES_LINE_H
        return y

    def _draw_footer(self) -> None:
        y = self.page_h - FOOTER_Y_OFFSET
        self.pdf.set_draw_color(*COLOR_RULE)
        self.pdf.line(MARGIN_X, y - 14, self.page_w - MARGIN_X, y - 14)

        business = self.invoice.business
        left = "Thank you for your business!"
        if business is not None and business.website:
            left = f"{left}  {business.website}"
        self.fonts.draw_text(MARGIN_X, y, left, FONT_SIZE_SMALL, COLOR_MUTED)
        page_label = f"Page {self.pdf.page_no()} of {self.pdf.str_alias_nb_pages}"
        self.fonts.draw_text_right(self.page_w - MARGIN_X, y, page_label, FONT_SIZE_SMALL, COLOR_MUTED)

    def render(self) -> bytes:
        header_end = self._draw_header()
        items_y = max(ITEMS_START_Y_FIRST, header_end + BAR_H + 16)
        self._draw_table_header(items_y)
        y = self._draw_items(items_y)
        y = self._draw_totals(y + 8)
        y = self._draw_notes("Notes", self.settings.notes, y)
        self._draw_notes("Terms & Conditions", self.settings.terms, y)

        pdf_blob = self.pdf.output()
        if isinstance(pdf_blob, (bytes, bytearray)):
            return bytes(pdf_blob)
        raise RuntimeError(f"Unexpected PDF output type: {type(pdf_blob).__name__}")


def options_for_profile(profile: EnterpriseProfile, options: Optional[PdfOptions] = None) -> PdfOptions:
    """Fill in the profile's date format unless the options already name one."""
    options = options or PdfOptions()
    if options.date_format:
        return options
    return replace(options, date_format=profile.settings.date_format)


def render_invoice(
    invoice: Invoice,
    tax_rules: Sequence[TaxRule],
    options: Optional[PdfOptions] = None,
    brand_color: Optional[str] = None,
) -> bytes:
    return InvoiceRenderer(invoice, tax_rules, options, brand_color).render()


def generate_pdf(
    invoice: Invoice,
    tax_rules: Sequence[TaxRule],
    options: Optional[PdfOptions] = None,
    brand_color: Optional[str] = None,
    store: Optional[QuotaStore] = None,
) -> PdfResult:
    """Render an invoice and, when a store is given, record the export in the PDF cache slot."""
    options = options or PdfOptions()
    data = render_invoice(invoice, tax_rules, options, brand_color)
    result = PdfResult(data=data, file_name=options.resolved_file_name(invoice))
    if store is not None:
        remember_export(store, invoice, result)
    return result


def remember_export(store: QuotaStore, invoice: Invoice, result: PdfResult) -> WriteResult:
    entry = {
        "fileName": result.file_name,
        "invoiceNumber": invoice.settings.invoice_number,
        "size": len(result.data),
        "generatedAt": datetime.now(timezone.utc).isoformat(timespec="seconds"),
    }
    outcome = store.write(Slot.PDF_CACHE, entry)
    if not outcome:
        logger.warning("Export record not saved: %s", outcome.detail)
    return outcome


def last_export(store: QuotaStore) -> Optional[Dict[str, Any]]:
    entry = store.read(Slot.PDF_CACHE)
    if entry is MISSING or not isinstance(entry, dict):
        return None
    return entry


def load_pdf_options(store: QuotaStore) -> PdfOptions:
    payload = store.read(Slot.PREFERENCES)
    if payload is MISSING or not isinstance(payload, dict):
        return PdfOptions()
    try:
        return PdfOptions.from_dict(payload)
    except (TypeError, ValueError):
        logger.warning("Stored PDF preferences are invalid; using defaults")
        return PdfOptions()


def save_pdf_options(store: QuotaStore, options: PdfOptions) -> WriteResult:
    return store.write(Slot.PREFERENCES, options.to_dict())
