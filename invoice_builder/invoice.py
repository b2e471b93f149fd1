"""The working invoice: editing operations persisted to the current invoice slot."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Optional

from .enterprise import EnterpriseRepository, format_invoice_number
from .models import (
    Customer,
    EnterpriseProfile,
    Invoice,
    InvoiceSettings,
    InvoiceStatus,
    InvoiceTotals,
    LineItem,
    Template,
    new_id,
)
from .storage import MISSING, QuotaStore, Slot, UsageInfo, WriteResult
from .totals import compute_invoice_totals

logger = logging.getLogger(__name__)


def new_invoice(profile: EnterpriseProfile, issue_date: Optional[date] = None) -> Invoice:
    settings = InvoiceSettings(
        invoice_number=format_invoice_number(profile),
        issue_date=(issue_date or date.today()).isoformat(),
        currency=profile.settings.currency,
    )
    return Invoice(
        settings=settings,
        business=replace(profile.business),
        logo=profile.logo if profile.settings.show_logo else None,
    )


class InvoiceSession:
    """Holds the invoice being edited and writes it back after every change.

    A rejected write does not undo the edit: the in-memory invoice stays
    current and the caller decides how to warn the user.
    """

    def __init__(self, store: QuotaStore, profile: EnterpriseProfile) -> None:
        self.store = store
        self.profile = profile
        self.is_dirty = False
        self.invoice = self._load()

    def _load(self) -> Invoice:
        payload = self.store.read(Slot.CURRENT_INVOICE)
        if payload is MISSING or not isinstance(payload, dict):
            return new_invoice(self.profile)
        try:
            return Invoice.from_dict(payload)
        except (TypeError, ValueError):
            logger.exception("Stored working invoice is malformed; starting a new one")
            return new_invoice(self.profile)

    def _persist(self, dirty: bool = True) -> WriteResult:
        self.is_dirty = dirty
        result = self.store.write(Slot.CURRENT_INVOICE, self.invoice.to_dict())
        if not result:
            logger.warning("Working invoice not saved: %s", result.detail)
        return result

    @property
    def has_items(self) -> bool:
        return bool(self.invoice.items)

    def add_item(self, item: LineItem) -> WriteResult:
        item.validate()
        if not item.id or self.invoice.find_item(item.id) is not None:
            item = item.copy(id=new_id())
        self.invoice.items.append(item)
        return self._persist()

    def update_item(self, item_id: str, **changes: Any) -> WriteResult:
        for index, item in enumerate(self.invoice.items):
            if item.id == item_id:
                updated = item.copy(**changes)
                updated.validate()
                self.invoice.items[index] = updated
                break
        else:
            raise KeyError(item_id)
        return self._persist()

    def remove_item(self, item_id: str) -> WriteResult:
        self.invoice.items = [item for item in self.invoice.items if item.id != item_id]
        return self._persist()

    def update_customer(self, customer: Customer) -> WriteResult:
        self.invoice.customer = customer
        return self._persist()

    def update_settings(self, **changes: Any) -> WriteResult:
        self.invoice.settings = replace(self.invoice.settings, **changes)
        return self._persist()

    def apply_template(self, template: Template) -> WriteResult:
        for item in template.items:
            self.invoice.items.append(item.copy(id=new_id()))
        return self._persist()

    def totals(self) -> InvoiceTotals:
        return compute_invoice_totals(self.invoice.items, self.profile.taxes)

    def reset(self) -> WriteResult:
        self.invoice = new_invoice(self.profile)
        return self._persist(dirty=False)

    def finalize(self, enterprise: Optional[EnterpriseRepository] = None) -> WriteResult:
        """Mark the invoice final and advance the profile's invoice number.

        A refused profile write is returned ahead of the invoice write, so the
        caller learns that the advanced number was not saved.
        """
        self.invoice.status = InvoiceStatus.FINAL
        numbering: Optional[WriteResult] = None
        if enterprise is not None:
            self.profile, numbering = enterprise.advance_invoice_number(self.profile)
        result = self._persist(dirty=False)
        if numbering is not None and not numbering:
            logger.warning("Invoice number not advanced in storage: %s", numbering.detail)
            return numbering
        return result

    def storage_info(self) -> UsageInfo:
        return self.store.usage(Slot.CURRENT_INVOICE)
