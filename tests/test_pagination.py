import unittest

from invoice_builder.layout import PAGE_SIZES
from invoice_builder.pagination import estimate_page_count, max_items_for_pages, page_capacities


class PaginationTests(unittest.TestCase):
    def test_page_capacities_follow_page_height(self) -> None:
        self.assertEqual(page_capacities(), (20, 27))
        self.assertEqual(page_capacities(PAGE_SIZES["a4"][1]), (22, 29))

    def test_estimate_page_count_boundary_values(self) -> None:
        self.assertEqual(estimate_page_count(0), 1)
        self.assertEqual(estimate_page_count(15), 1)
        self.assertEqual(estimate_page_count(16), 2)
        self.assertEqual(estimate_page_count(42), 2)
        self.assertEqual(estimate_page_count(43), 3)

    def test_max_items_for_pages_matches_capacity_rules(self) -> None:
        self.assertEqual(max_items_for_pages(1), 15)
        self.assertEqual(max_items_for_pages(2), 42)
        self.assertEqual(max_items_for_pages(3), 69)

    def test_estimate_and_maximum_agree(self) -> None:
        for pages in (1, 2, 5):
            limit = max_items_for_pages(pages)
            self.assertEqual(estimate_page_count(limit), pages)
            self.assertEqual(estimate_page_count(limit + 1), pages + 1)


if __name__ == "__main__":
    unittest.main()
