"""Per-line and invoice-level totals.

Amounts are plain floats and are never rounded here; rounding happens only
when a value is formatted for display.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Sequence

from .models import DiscountKind, InvoiceTotals, LineItem, LineTotals, TaxKind, TaxRule

logger = logging.getLogger(__name__)


def _index_rules(tax_rules: Iterable[TaxRule]) -> Dict[str, TaxRule]:
    # First rule wins on a duplicate id, matching EnterpriseProfile.find_tax.
    rules: Dict[str, TaxRule] = {}
    for rule in tax_rules:
        rules.setdefault(rule.id, rule)
    return rules


def resolve_tax(item: LineItem, rules: Mapping[str, TaxRule]) -> Optional[TaxRule]:
    """Return the enabled rule an item refers to, or None for no tax."""
    if not item.tax_id:
        return None
    rule = rules.get(item.tax_id)
    if rule is None:
        logger.debug("Line item %s references unknown tax %s; treating as untaxed.", item.id, item.tax_id)
        return None
    if not rule.enabled:
        return None
    return rule


def _line_totals(item: LineItem, rules: Mapping[str, TaxRule]) -> LineTotals:
    subtotal = item.quantity * item.unit_price

    discount_amount = 0.0
    if item.discount and item.discount > 0:
        if item.discount_kind == DiscountKind.PERCENTAGE:
            discount_amount = subtotal * (item.discount / 100.0)
        else:
            discount_amount = min(item.discount, subtotal)

    taxable_amount = subtotal - discount_amount

    tax_amount = 0.0
    rule = resolve_tax(item, rules)
    if rule is not None:
        if rule.kind == TaxKind.PERCENTAGE:
            tax_amount = taxable_amount * (rule.rate / 100.0)
        else:
            tax_amount = rule.rate

    # Tax-included prices already embed the tax; it is reported but not added.
    total = subtotal if item.tax_included else taxable_amount + tax_amount

    return LineTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        total=total,
    )


def compute_line_totals(item: LineItem, tax_rules: Iterable[TaxRule]) -> LineTotals:
    return _line_totals(item, _index_rules(tax_rules))


def compute_invoice_totals(items: Sequence[LineItem], tax_rules: Iterable[TaxRule]) -> InvoiceTotals:
    rules = _index_rules(tax_rules)

    subtotal = 0.0
    total_discount = 0.0
    total_taxable = 0.0
    total_tax = 0.0
    grand_total = 0.0
    line_totals: Dict[str, LineTotals] = {}

    for item in items:
        totals = _line_totals(item, rules)
        line_totals[item.id] = totals
        subtotal += totals.subtotal
        total_discount += totals.discount_amount
        total_taxable += totals.taxable_amount
        total_tax += totals.tax_amount
        grand_total += totals.total

    return InvoiceTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        total_taxable_amount=total_taxable,
        total_tax=total_tax,
        grand_total=grand_total,
        line_totals=line_totals,
    )


def tax_breakdown(items: Sequence[LineItem], tax_rules: Iterable[TaxRule]) -> Dict[str, float]:
    """Sum tax amounts per rule name, in rule order, skipping rules that add nothing."""
    rules = _index_rules(tax_rules)
    amounts: Dict[str, float] = {}
    for item in items:
        rule = resolve_tax(item, rules)
        if rule is None:
            continue
        amounts[rule.id] = amounts.get(rule.id, 0.0) + _line_totals(item, rules).tax_amount

    breakdown: Dict[str, float] = {}
    for rule_id, rule in rules.items():
        amount = amounts.get(rule_id, 0.0)
        if amount:
            label = rule.name or rule_id
            breakdown[label] = breakdown.get(label, 0.0) + amount
    return breakdown
