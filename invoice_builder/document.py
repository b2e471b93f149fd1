"""Parsing and validation of invoice documents supplied as JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .models import BusinessInfo, Customer, Invoice, InvoiceSettings, LineItem, TaxRule
from .layout import PAGE_H
from .pagination import estimate_page_count, max_items_for_pages

ValidationError = Dict[str, Any]


@dataclass
class InvoiceDocument:
    invoice: Invoice
    taxes: List[TaxRule] = field(default_factory=list)
    brand_color: Optional[str] = None


def _error(code: str, detail: str, **extra: Any) -> ValidationError:
    return {"error": code, "detail": detail, **extra}


def load_invoice_document(
    body: bytes,
    max_pages: int,
    page_height: float = PAGE_H,
) -> Tuple[Optional[InvoiceDocument], Optional[ValidationError]]:
    try:
        payload = json.loads(body.decode("utf-8"))
    except UnicodeDecodeError:
        return None, _error("invalid_encoding", "Document must be UTF-8 encoded JSON.")
    except json.JSONDecodeError as exc:
        return None, _error("invalid_json", f"{exc.msg} (line {exc.lineno}, column {exc.colno})")

    if not isinstance(payload, dict):
        return None, _error("invalid_payload", "JSON root must be an object.")

    items = payload.get("items", payload.get("products", []))
    if items is None:
        items = []
    if not isinstance(items, list):
        return None, _error("invalid_payload", "'items' must be an array.")

    taxes = payload.get("taxes", [])
    if taxes is None:
        taxes = []
    if not isinstance(taxes, list):
        return None, _error("invalid_payload", "'taxes' must be an array.")

    for section in ("business", "customer", "settings"):
        value = payload.get(section)
        if value is not None and not isinstance(value, dict):
            return None, _error("invalid_payload", f"'{section}' must be an object.")

    estimated_pages = estimate_page_count(len(items), page_height)
    if estimated_pages > max_pages:
        return None, _error(
            "invoice_too_large",
            f"Invoice would render {estimated_pages} pages; maximum is {max_pages}.",
            max_items=max_items_for_pages(max_pages, page_height),
        )

    try:
        line_items = [LineItem.from_dict(item) for item in items]
        for item in line_items:
            item.validate()
        tax_rules = [TaxRule.from_dict(tax) for tax in taxes]
        for rule in tax_rules:
            rule.validate()
    except (AttributeError, OverflowError, TypeError, ValueError) as exc:
        return None, _error("invalid_payload", str(exc))

    ids = [item.id for item in line_items]
    if len(set(ids)) != len(ids):
        return None, _error("invalid_payload", "Line item ids must be unique.")

    business = payload.get("business")
    customer = payload.get("customer")
    invoice = Invoice(
        items=line_items,
        customer=Customer.from_dict(customer) if customer else None,
        settings=InvoiceSettings.from_dict(payload.get("settings") or {}),
        business=BusinessInfo.from_dict(business) if business else None,
        logo=payload.get("logo") or None,
    )
    return InvoiceDocument(invoice=invoice, taxes=tax_rules, brand_color=payload.get("brandColor") or None), None
