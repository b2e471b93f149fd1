"""Public package API for building invoices."""

from __future__ import annotations

from typing import Optional, Sequence

from .models import Invoice, InvoiceTotals, LineItem, LineTotals, TaxRule
from .storage import MISSING, MemoryStorage, QuotaStore, Slot, UsageInfo, WriteResult
from .totals import compute_invoice_totals, compute_line_totals


def render_invoice(invoice: Invoice, tax_rules: Sequence[TaxRule], options=None, brand_color: Optional[str] = None) -> bytes:
    from .rendering import render_invoice as _render_invoice

    return _render_invoice(invoice, tax_rules, options, brand_color)


__all__ = [
    "Invoice",
    "InvoiceTotals",
    "LineItem",
    "LineTotals",
    "MISSING",
    "MemoryStorage",
    "QuotaStore",
    "Slot",
    "TaxRule",
    "UsageInfo",
    "WriteResult",
    "compute_invoice_totals",
    "compute_line_totals",
    "render_invoice",
]
