"""Business profile persistence."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Tuple

from .logo import extract_dominant_color
from .models import EnterpriseProfile, EnterpriseSettings, TaxKind, TaxRule
from .storage import MISSING, QuotaStore, Slot, UsageInfo, WriteResult

logger = logging.getLogger(__name__)


def default_profile() -> EnterpriseProfile:
    return EnterpriseProfile(
        initialized=False,
        settings=EnterpriseSettings(),
        taxes=[TaxRule(id="tax-1", name="Tax", rate=0.0, kind=TaxKind.PERCENTAGE, enabled=False)],
        default_tax_id="tax-1",
    )


def format_invoice_number(profile: EnterpriseProfile) -> str:
    return f"{profile.settings.invoice_number_prefix}{profile.settings.next_invoice_number}"


class EnterpriseRepository:
    def __init__(self, store: QuotaStore) -> None:
        self.store = store

    def load(self) -> EnterpriseProfile:
        payload = self.store.read(Slot.ENTERPRISE)
        if payload is MISSING or not isinstance(payload, dict):
            return default_profile()
        try:
            return EnterpriseProfile.from_dict(payload)
        except (TypeError, ValueError):
            logger.exception("Stored business profile is malformed; using defaults")
            return default_profile()

    def save(self, profile: EnterpriseProfile) -> WriteResult:
        result = self.store.write(Slot.ENTERPRISE, profile.to_dict())
        if not result:
            logger.warning("Business profile not saved: %s", result.detail)
        return result

    def reset(self) -> WriteResult:
        return self.save(default_profile())

    def update_logo(self, profile: EnterpriseProfile, data_url: Optional[str]) -> Tuple[EnterpriseProfile, WriteResult]:
        brand_color = profile.settings.brand_color
        if data_url:
            brand_color = extract_dominant_color(data_url)
        updated = replace(
            profile,
            logo=data_url,
            settings=replace(profile.settings, brand_color=brand_color),
        )
        return updated, self.save(updated)

    def next_invoice_number(self, profile: Optional[EnterpriseProfile] = None) -> str:
        return format_invoice_number(profile or self.load())

    def advance_invoice_number(self, profile: EnterpriseProfile) -> Tuple[EnterpriseProfile, WriteResult]:
        """Bump the next invoice number and save; the caller gets the write outcome."""
        updated = replace(
            profile,
            settings=replace(profile.settings, next_invoice_number=profile.settings.next_invoice_number + 1),
        )
        return updated, self.save(updated)

    def storage_info(self) -> UsageInfo:
        return self.store.usage(Slot.ENTERPRISE)
