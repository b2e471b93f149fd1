import json
import unittest
from unittest.mock import patch

from invoice_builder.storage import (
    MISSING,
    MemoryStorage,
    QuotaStore,
    Rejection,
    SerializationError,
    Slot,
    UsageInfo,
    serialize,
)

QUOTAS = {
    Slot.ENTERPRISE: 100,
    Slot.TEMPLATES: 100,
    Slot.CURRENT_INVOICE: 50,
    Slot.PDF_CACHE: 20,
    Slot.PREFERENCES: 20,
}


def blob(size: int) -> str:
    """A JSON string payload that serializes to exactly ``size`` bytes."""
    return "x" * (size - 2)


class QuotaStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = MemoryStorage()
        self.store = QuotaStore(self.backend, quotas=QUOTAS, total_quota=150, prefix="test")

    def test_read_of_unwritten_slot_is_missing(self) -> None:
        self.assertIs(self.store.read(Slot.ENTERPRISE), MISSING)
        self.assertFalse(MISSING)

    def test_empty_payloads_are_not_missing(self) -> None:
        for payload in ("", [], {}, None, 0):
            self.assertTrue(self.store.write(Slot.PREFERENCES, payload))
            self.assertEqual(self.store.read(Slot.PREFERENCES), payload)
            self.assertIsNot(self.store.read(Slot.PREFERENCES), MISSING)

    def test_write_then_read_returns_payload(self) -> None:
        payload = {"name": "ACME", "taxes": [1, 2]}

        result = self.store.write(Slot.ENTERPRISE, payload)

        self.assertTrue(result.ok)
        self.assertEqual(result.size, len(serialize(payload)))
        self.assertEqual(self.store.read(Slot.ENTERPRISE), payload)

    def test_keys_are_prefixed(self) -> None:
        self.store.write(Slot.CURRENT_INVOICE, [1])

        self.assertEqual(self.backend.keys(), ["test_current_invoice"])

    def test_serialization_is_compact_utf8(self) -> None:
        self.assertEqual(serialize({"a": [1, 2], "b": "é"}), '{"a":[1,2],"b":"é"}'.encode("utf-8"))

    def test_write_replaces_payload_wholesale(self) -> None:
        self.store.write(Slot.ENTERPRISE, {"a": 1, "b": 2})
        self.store.write(Slot.ENTERPRISE, {"c": 3})

        self.assertEqual(self.store.read(Slot.ENTERPRISE), {"c": 3})

    def test_oversized_write_is_rejected_without_mutation(self) -> None:
        self.store.write(Slot.CURRENT_INVOICE, "before")

        result = self.store.write(Slot.CURRENT_INVOICE, blob(51))

        self.assertFalse(result)
        self.assertEqual(result.reason, Rejection.QUOTA_EXCEEDED)
        self.assertEqual(result.size, 51)
        self.assertEqual(self.store.read(Slot.CURRENT_INVOICE), "before")

    def test_oversized_first_write_leaves_slot_missing(self) -> None:
        result = self.store.write(Slot.PDF_CACHE, blob(21))

        self.assertEqual(result.reason, Rejection.QUOTA_EXCEEDED)
        self.assertIs(self.store.read(Slot.PDF_CACHE), MISSING)

    def test_write_exactly_at_quota_is_accepted(self) -> None:
        self.assertTrue(self.store.write(Slot.CURRENT_INVOICE, blob(50)))
        self.assertEqual(self.store.size(Slot.CURRENT_INVOICE), 50)

    def test_aggregate_quota_rejects_write_that_fits_its_slot(self) -> None:
        self.assertTrue(self.store.write(Slot.ENTERPRISE, blob(100)))
        self.assertTrue(self.store.write(Slot.CURRENT_INVOICE, blob(40)))

        result = self.store.write(Slot.TEMPLATES, blob(20))

        self.assertFalse(result)
        self.assertEqual(result.reason, Rejection.AGGREGATE_QUOTA_EXCEEDED)
        self.assertIs(self.store.read(Slot.TEMPLATES), MISSING)
        self.assertEqual(self.store.read(Slot.ENTERPRISE), blob(100))
        self.assertEqual(self.store.read(Slot.CURRENT_INVOICE), blob(40))
        self.assertEqual(self.store.total_size(), 140)

    def test_aggregate_projection_replaces_the_slots_old_size(self) -> None:
        self.store.write(Slot.ENTERPRISE, blob(100))
        self.store.write(Slot.CURRENT_INVOICE, blob(50))

        # 150 in use; shrinking then regrowing the same slot stays within the total.
        self.assertTrue(self.store.write(Slot.ENTERPRISE, blob(90)))
        self.assertTrue(self.store.write(Slot.ENTERPRISE, blob(100)))
        self.assertEqual(self.store.total_size(), 150)

    def test_unserializable_payload_raises_without_mutation(self) -> None:
        self.store.write(Slot.ENTERPRISE, {"ok": True})

        with self.assertRaises(SerializationError):
            self.store.write(Slot.ENTERPRISE, {"bad": object()})
        with self.assertRaises(SerializationError):
            self.store.write(Slot.ENTERPRISE, {"nan": float("nan")})

        self.assertEqual(self.store.read(Slot.ENTERPRISE), {"ok": True})

    def test_backend_refusal_is_a_rejection(self) -> None:
        self.backend.fail_writes = True

        result = self.store.write(Slot.ENTERPRISE, {"a": 1})

        self.assertFalse(result)
        self.assertEqual(result.reason, Rejection.STORAGE_FAILURE)
        self.assertIs(self.store.read(Slot.ENTERPRISE), MISSING)

    def test_backend_read_failure_is_reported_as_missing(self) -> None:
        self.store.write(Slot.ENTERPRISE, {"a": 1})

        with patch.object(self.backend, "get", side_effect=OSError("boom")):
            with self.assertLogs("invoice_builder.storage", level="ERROR"):
                self.assertIs(self.store.read(Slot.ENTERPRISE), MISSING)

    def test_corrupt_bytes_are_reported_as_missing(self) -> None:
        self.backend.set("test_enterprise", b"{not json")

        with self.assertLogs("invoice_builder.storage", level="ERROR"):
            self.assertIs(self.store.read(Slot.ENTERPRISE), MISSING)

    def test_remove_then_read_is_missing_and_frees_usage(self) -> None:
        self.store.write(Slot.ENTERPRISE, blob(100))

        self.store.remove(Slot.ENTERPRISE)

        self.assertIs(self.store.read(Slot.ENTERPRISE), MISSING)
        self.assertEqual(self.store.usage(Slot.ENTERPRISE).size_bytes, 0)
        self.assertEqual(self.store.global_usage().size_bytes, 0)

    def test_remove_is_idempotent(self) -> None:
        self.store.remove(Slot.TEMPLATES)
        self.store.remove(Slot.TEMPLATES)

        self.assertIs(self.store.read(Slot.TEMPLATES), MISSING)

    def test_usage_reports_percentages(self) -> None:
        self.store.write(Slot.ENTERPRISE, blob(85))

        usage = self.store.usage(Slot.ENTERPRISE)
        total = self.store.global_usage()

        self.assertEqual(usage.size_bytes, 85)
        self.assertEqual(usage.quota_bytes, 100)
        self.assertAlmostEqual(usage.percent_used, 85.0)
        self.assertTrue(usage.approaching_limit)
        self.assertFalse(usage.at_limit)
        self.assertEqual(total.quota_bytes, 150)
        self.assertAlmostEqual(total.percent_used, 85 / 150 * 100)

    def test_clear_removes_every_slot(self) -> None:
        self.store.write(Slot.ENTERPRISE, {"a": 1})
        self.store.write(Slot.TEMPLATES, [])

        self.store.clear()

        self.assertEqual(self.store.total_size(), 0)
        self.assertEqual(self.backend.keys(), [])

    def test_export_and_import(self) -> None:
        self.store.write(Slot.ENTERPRISE, {"a": 1})
        self.store.write(Slot.TEMPLATES, [{"id": "t"}])
        exported = self.store.export()

        other = QuotaStore(MemoryStorage(), quotas=QUOTAS, total_quota=150, prefix="test")
        self.assertTrue(other.import_(exported))

        self.assertEqual(json.loads(exported)["current_invoice"], None)
        self.assertEqual(other.read(Slot.ENTERPRISE), {"a": 1})
        self.assertEqual(other.read(Slot.TEMPLATES), [{"id": "t"}])
        self.assertIs(other.read(Slot.CURRENT_INVOICE), MISSING)

    def test_import_skips_unknown_and_oversized_slots(self) -> None:
        document = json.dumps({"bogus": 1, "pdf_cache": blob(40), "preferences": {"x": 1}})

        self.assertTrue(self.store.import_(document))

        self.assertIs(self.store.read(Slot.PDF_CACHE), MISSING)
        self.assertEqual(self.store.read(Slot.PREFERENCES), {"x": 1})

    def test_import_rejects_malformed_documents(self) -> None:
        self.assertFalse(self.store.import_("{nope"))
        self.assertFalse(self.store.import_("[1, 2]"))


class UsageInfoTests(unittest.TestCase):
    def test_thresholds(self) -> None:
        self.assertFalse(UsageInfo(80, 100).approaching_limit)
        self.assertTrue(UsageInfo(81, 100).approaching_limit)
        self.assertTrue(UsageInfo(95, 100).at_limit)
        self.assertFalse(UsageInfo(94, 100).at_limit)

    def test_zero_quota_reports_zero_percent(self) -> None:
        self.assertEqual(UsageInfo(0, 0).percent_used, 0.0)


class DefaultQuotaTests(unittest.TestCase):
    def test_default_quotas(self) -> None:
        store = QuotaStore(MemoryStorage())

        self.assertEqual(store.quotas[Slot.ENTERPRISE], 2048)
        self.assertEqual(store.quotas[Slot.TEMPLATES], 3072)
        self.assertEqual(store.quotas[Slot.CURRENT_INVOICE], 1024)
        self.assertEqual(store.quotas[Slot.PDF_CACHE], 512)
        self.assertEqual(store.total_quota, 6656)
        self.assertEqual(store.key_for(Slot.ENTERPRISE), "pdf-receipt-generator_enterprise")


if __name__ == "__main__":
    unittest.main()
