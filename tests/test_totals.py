import unittest

from invoice_builder.models import DiscountKind, LineItem, TaxKind, TaxRule
from invoice_builder.totals import compute_invoice_totals, compute_line_totals, tax_breakdown

VAT = TaxRule(id="vat", name="VAT", rate=5.0, kind=TaxKind.PERCENTAGE, enabled=True)
ECO = TaxRule(id="eco", name="Eco fee", rate=2.5, kind=TaxKind.FIXED, enabled=True)
OFF = TaxRule(id="off", name="Old tax", rate=20.0, kind=TaxKind.PERCENTAGE, enabled=False)
RULES = [VAT, ECO, OFF]


class LineTotalsTests(unittest.TestCase):
    def test_plain_item(self) -> None:
        totals = compute_line_totals(LineItem(id="a", quantity=3, unit_price=10.0), RULES)

        self.assertAlmostEqual(totals.subtotal, 30.0)
        self.assertEqual(totals.discount_amount, 0)
        self.assertAlmostEqual(totals.taxable_amount, 30.0)
        self.assertEqual(totals.tax_amount, 0)
        self.assertAlmostEqual(totals.total, 30.0)

    def test_percentage_discount_and_percentage_tax(self) -> None:
        item = LineItem(
            id="a",
            quantity=2,
            unit_price=50.0,
            discount=10.0,
            discount_kind=DiscountKind.PERCENTAGE,
            tax_id="vat",
        )

        totals = compute_line_totals(item, RULES)

        self.assertAlmostEqual(totals.subtotal, 100.0)
        self.assertAlmostEqual(totals.discount_amount, 10.0)
        self.assertAlmostEqual(totals.taxable_amount, 90.0)
        self.assertAlmostEqual(totals.tax_amount, 4.5)
        self.assertAlmostEqual(totals.total, 94.5)

    def test_fixed_discount_is_capped_at_subtotal(self) -> None:
        item = LineItem(id="a", quantity=1, unit_price=20.0, discount=25.0, discount_kind=DiscountKind.FIXED)

        totals = compute_line_totals(item, RULES)

        self.assertAlmostEqual(totals.discount_amount, 20.0)
        self.assertAlmostEqual(totals.taxable_amount, 0.0)
        self.assertAlmostEqual(totals.total, 0.0)

    def test_percentage_discount_is_not_clamped(self) -> None:
        item = LineItem(id="a", quantity=1, unit_price=10.0, discount=150.0)

        totals = compute_line_totals(item, RULES)

        self.assertAlmostEqual(totals.discount_amount, 15.0)
        self.assertAlmostEqual(totals.taxable_amount, -5.0)

    def test_zero_discount_is_ignored(self) -> None:
        item = LineItem(id="a", quantity=4, unit_price=2.5, discount=0.0, discount_kind=DiscountKind.FIXED)

        self.assertEqual(compute_line_totals(item, RULES).discount_amount, 0)

    def test_fixed_tax_is_flat(self) -> None:
        item = LineItem(id="a", quantity=10, unit_price=3.0, tax_id="eco")

        totals = compute_line_totals(item, RULES)

        self.assertAlmostEqual(totals.tax_amount, 2.5)
        self.assertAlmostEqual(totals.total, 32.5)

    def test_tax_included_total_equals_subtotal(self) -> None:
        item = LineItem(
            id="a",
            quantity=2,
            unit_price=50.0,
            discount=10.0,
            tax_id="vat",
            tax_included=True,
        )

        totals = compute_line_totals(item, RULES)

        self.assertAlmostEqual(totals.total, totals.subtotal)
        self.assertAlmostEqual(totals.tax_amount, 4.5)

    def test_disabled_and_unknown_taxes_contribute_nothing(self) -> None:
        disabled = LineItem(id="a", quantity=1, unit_price=100.0, tax_id="off")
        dangling = LineItem(id="b", quantity=1, unit_price=100.0, tax_id="deleted-tax")

        self.assertEqual(compute_line_totals(disabled, RULES).tax_amount, 0)
        self.assertEqual(compute_line_totals(dangling, RULES).tax_amount, 0)
        self.assertAlmostEqual(compute_line_totals(dangling, RULES).total, 100.0)

    def test_is_deterministic_and_does_not_mutate_input(self) -> None:
        item = LineItem(id="a", quantity=3, unit_price=9.99, discount=5.0, tax_id="vat")
        before = item.copy()

        first = compute_line_totals(item, RULES)
        second = compute_line_totals(item, RULES)

        self.assertEqual(first, second)
        self.assertEqual(item, before)


class InvoiceTotalsTests(unittest.TestCase):
    def _items(self):
        return [
            LineItem(id="a", quantity=3, unit_price=10.0),
            LineItem(id="b", quantity=2, unit_price=50.0, discount=10.0, tax_id="vat"),
            LineItem(id="c", quantity=1, unit_price=20.0, discount=25.0, discount_kind=DiscountKind.FIXED),
            LineItem(id="d", quantity=5, unit_price=4.0, tax_id="eco", tax_included=True),
        ]

    def test_empty_invoice_is_all_zero(self) -> None:
        totals = compute_invoice_totals([], RULES)

        self.assertEqual(totals.subtotal, 0)
        self.assertEqual(totals.total_discount, 0)
        self.assertEqual(totals.total_taxable_amount, 0)
        self.assertEqual(totals.total_tax, 0)
        self.assertEqual(totals.grand_total, 0)
        self.assertEqual(dict(totals.line_totals), {})

    def test_grand_total_is_sum_of_line_totals(self) -> None:
        items = self._items()

        totals = compute_invoice_totals(items, RULES)

        expected = sum(compute_line_totals(item, RULES).total for item in items)
        self.assertAlmostEqual(totals.grand_total, expected)
        self.assertAlmostEqual(totals.subtotal, 30.0 + 100.0 + 20.0 + 20.0)
        self.assertAlmostEqual(totals.total_discount, 30.0)
        self.assertAlmostEqual(totals.total_tax, 4.5 + 2.5)
        self.assertAlmostEqual(totals.grand_total, 30.0 + 94.5 + 0.0 + 20.0)

    def test_every_item_has_one_entry(self) -> None:
        items = self._items()

        totals = compute_invoice_totals(items, RULES)

        self.assertEqual(set(totals.line_totals), {"a", "b", "c", "d"})
        self.assertEqual(totals.line_totals["b"], compute_line_totals(items[1], RULES))

    def test_result_is_order_independent(self) -> None:
        items = self._items()

        forward = compute_invoice_totals(items, RULES)
        backward = compute_invoice_totals(list(reversed(items)), RULES)

        self.assertAlmostEqual(forward.grand_total, backward.grand_total)
        self.assertAlmostEqual(forward.total_tax, backward.total_tax)
        self.assertEqual(dict(forward.line_totals), dict(backward.line_totals))

    def test_to_dict_uses_persisted_field_names(self) -> None:
        payload = compute_invoice_totals(self._items()[:1], RULES).to_dict()

        self.assertEqual(payload["grandTotal"], 30.0)
        self.assertEqual(payload["productTotals"]["a"]["taxableAmount"], 30.0)


class DuplicateTaxIdTests(unittest.TestCase):
    def test_first_rule_with_an_id_wins(self) -> None:
        rules = [
            TaxRule(id="t", name="VAT", rate=5.0, enabled=True),
            TaxRule(id="t", name="Old", rate=10.0, enabled=False),
        ]
        item = LineItem(id="a", quantity=1, unit_price=100.0, tax_id="t")

        self.assertAlmostEqual(compute_line_totals(item, rules).tax_amount, 5.0)
        self.assertAlmostEqual(compute_invoice_totals([item], rules).grand_total, 105.0)
        self.assertEqual(tax_breakdown([item], rules), {"VAT": 5.0})


class TaxBreakdownTests(unittest.TestCase):
    def test_groups_tax_by_rule_name(self) -> None:
        items = [
            LineItem(id="a", quantity=1, unit_price=100.0, tax_id="vat"),
            LineItem(id="b", quantity=1, unit_price=100.0, tax_id="vat"),
            LineItem(id="c", quantity=1, unit_price=100.0, tax_id="eco"),
            LineItem(id="d", quantity=1, unit_price=100.0, tax_id="off"),
            LineItem(id="e", quantity=1, unit_price=100.0),
        ]

        breakdown = tax_breakdown(items, RULES)

        self.assertEqual(list(breakdown), ["VAT", "Eco fee"])
        self.assertAlmostEqual(breakdown["VAT"], 10.0)
        self.assertAlmostEqual(breakdown["Eco fee"], 2.5)


if __name__ == "__main__":
    unittest.main()
