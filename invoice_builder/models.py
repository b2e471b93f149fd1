"""Invoice, business profile and template data models."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .formatting import safe_float


class DiscountKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class TaxKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    FINAL = "final"


def new_id() -> str:
    return uuid.uuid4().hex


def _text(data: Mapping[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    return default if value is None else str(value)


def _optional_text(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Storage slots are a few KB; omit empty optional fields.
    return {key: value for key, value in payload.items() if value not in (None, "")}


@dataclass
class LineItem:
    """One row of an invoice: a quantity of a product or service at a price."""

    id: str = field(default_factory=new_id)
    name: str = ""
    quantity: int = 1
    unit_price: float = 0.0
    description: str = ""
    discount: Optional[float] = None
    discount_kind: DiscountKind = DiscountKind.PERCENTAGE
    tax_id: Optional[str] = None
    tax_included: bool = False

    def validate(self) -> None:
        if not math.isfinite(self.unit_price):
            raise ValueError(f"Line item {self.id!r}: unit price must be a finite number.")
        if self.discount is not None and not math.isfinite(self.discount):
            raise ValueError(f"Line item {self.id!r}: discount must be a finite number.")
        if self.quantity < 1:
            raise ValueError(f"Line item {self.id!r}: quantity must be at least 1.")
        if self.unit_price < 0:
            raise ValueError(f"Line item {self.id!r}: unit price cannot be negative.")
        if self.discount is not None and self.discount < 0:
            raise ValueError(f"Line item {self.id!r}: discount cannot be negative.")

    def copy(self, **changes: Any) -> "LineItem":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LineItem":
        raw_price = data.get("price", data.get("unitPrice", 0.0))
        raw_discount = data.get("discount")
        return cls(
            id=_text(data, "id") or new_id(),
            name=_text(data, "name"),
            description=_text(data, "description"),
            quantity=int(safe_float(data.get("quantity", 1), 1.0)),
            unit_price=safe_float(raw_price, 0.0),
            discount=None if raw_discount in (None, "") else safe_float(raw_discount, 0.0),
            discount_kind=DiscountKind(data.get("discountType") or DiscountKind.PERCENTAGE.value),
            tax_id=_optional_text(data, "taxId"),
            tax_included=bool(data.get("taxIncluded", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = _compact(
            {
                "id": self.id,
                "name": self.name,
                "description": self.description,
                "quantity": self.quantity,
                "price": self.unit_price,
                "discount": self.discount,
                "taxId": self.tax_id,
            }
        )
        if self.discount is not None:
            payload["discountType"] = self.discount_kind.value
        if self.tax_included:
            payload["taxIncluded"] = True
        return payload


@dataclass
class TaxRule:
    id: str
    name: str
    rate: float
    kind: TaxKind = TaxKind.PERCENTAGE
    enabled: bool = True

    def validate(self) -> None:
        if not math.isfinite(self.rate):
            raise ValueError(f"Tax {self.id!r}: rate must be a finite number.")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaxRule":
        return cls(
            id=_text(data, "id"),
            name=_text(data, "name"),
            rate=safe_float(data.get("rate", 0.0), 0.0),
            kind=TaxKind(data.get("type") or TaxKind.PERCENTAGE.value),
            enabled=bool(data.get("enabled", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "rate": self.rate,
            "type": self.kind.value,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class LineTotals:
    subtotal: float
    discount_amount: float
    taxable_amount: float
    tax_amount: float
    total: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "subtotal": self.subtotal,
            "discountAmount": self.discount_amount,
            "taxableAmount": self.taxable_amount,
            "taxAmount": self.tax_amount,
            "total": self.total,
        }


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: float = 0.0
    total_discount: float = 0.0
    total_taxable_amount: float = 0.0
    total_tax: float = 0.0
    grand_total: float = 0.0
    line_totals: Mapping[str, LineTotals] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "totalDiscount": self.total_discount,
            "totalTaxableAmount": self.total_taxable_amount,
            "totalTax": self.total_tax,
            "grandTotal": self.grand_total,
            "productTotals": {key: value.to_dict() for key, value in self.line_totals.items()},
        }


@dataclass(frozen=True)
class Currency:
    code: str = "USD"
    symbol: str = "$"
    name: str = "US Dollar"
    decimals: int = 2

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Currency":
        if not data:
            return cls()
        return cls(
            code=_text(data, "code", "USD").upper(),
            symbol=_text(data, "symbol", "$"),
            name=_text(data, "name"),
            decimals=int(safe_float(data.get("decimals", 2), 2.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "symbol": self.symbol, "name": self.name, "decimals": self.decimals}


@dataclass
class Customer:
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = ""
    tax_number: str = ""

    def address_lines(self) -> List[str]:
        locality = " ".join(part for part in (self.state, self.zip) if part)
        city_line = ", ".join(part for part in (self.city, locality) if part)
        lines = [self.address, city_line, self.country, self.email, self.phone]
        if self.tax_number:
            lines.append(f"Tax ID: {self.tax_number}")
        return [line for line in lines if line]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Customer":
        return cls(
            name=_text(data, "name"),
            email=_text(data, "email"),
            phone=_text(data, "phone"),
            address=_text(data, "address"),
            city=_text(data, "city"),
            state=_text(data, "state"),
            zip=_text(data, "zip"),
            country=_text(data, "country"),
            tax_number=_text(data, "taxNumber"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "name": self.name,
                "email": self.email,
                "phone": self.phone,
                "address": self.address,
                "city": self.city,
                "state": self.state,
                "zip": self.zip,
                "country": self.country,
                "taxNumber": self.tax_number,
            }
        )


@dataclass
class BusinessInfo:
    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""
    tax_number: str = ""
    registration_number: str = ""

    def address_lines(self) -> List[str]:
        locality = " ".join(part for part in (self.state, self.zip) if part)
        city_line = ", ".join(part for part in (self.city, locality) if part)
        lines = [self.address, city_line, self.country, self.phone, self.email, self.website]
        if self.tax_number:
            lines.append(f"Tax ID: {self.tax_number}")
        if self.registration_number:
            lines.append(f"Reg. No: {self.registration_number}")
        return [line for line in lines if line]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BusinessInfo":
        return cls(
            name=_text(data, "name"),
            address=_text(data, "address"),
            city=_text(data, "city"),
            state=_text(data, "state"),
            zip=_text(data, "zip"),
            country=_text(data, "country"),
            phone=_text(data, "phone"),
            email=_text(data, "email"),
            website=_text(data, "website"),
            tax_number=_text(data, "taxNumber"),
            registration_number=_text(data, "registrationNumber"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "name": self.name,
                "address": self.address,
                "city": self.city,
                "state": self.state,
                "zip": self.zip,
                "country": self.country,
                "phone": self.phone,
                "email": self.email,
                "website": self.website,
                "taxNumber": self.tax_number,
                "registrationNumber": self.registration_number,
            }
        )


@dataclass
class EnterpriseSettings:
    currency: Currency = field(default_factory=Currency)
    date_format: str = "MM/dd/yyyy"
    invoice_number_prefix: str = "INV-"
    next_invoice_number: int = 1001
    show_logo: bool = True
    brand_color: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EnterpriseSettings":
        return cls(
            currency=Currency.from_dict(data.get("currency")),
            date_format=_text(data, "dateFormat", "MM/dd/yyyy"),
            invoice_number_prefix=_text(data, "invoiceNumberPrefix", "INV-"),
            next_invoice_number=int(safe_float(data.get("nextInvoiceNumber", 1001), 1001.0)),
            show_logo=bool(data.get("showLogo", True)),
            brand_color=_optional_text(data, "brandColor"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "currency": self.currency.to_dict(),
                "dateFormat": self.date_format,
                "invoiceNumberPrefix": self.invoice_number_prefix,
                "nextInvoiceNumber": self.next_invoice_number,
                "showLogo": self.show_logo,
                "brandColor": self.brand_color,
            }
        )


@dataclass
class EnterpriseProfile:
    """Business details configured once and reused for every invoice."""

    initialized: bool = False
    business: BusinessInfo = field(default_factory=BusinessInfo)
    settings: EnterpriseSettings = field(default_factory=EnterpriseSettings)
    taxes: List[TaxRule] = field(default_factory=list)
    default_tax_id: Optional[str] = None
    logo: Optional[str] = None

    def find_tax(self, tax_id: Optional[str]) -> Optional[TaxRule]:
        for rule in self.taxes:
            if rule.id == tax_id:
                return rule
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EnterpriseProfile":
        tax_settings = data.get("taxSettings", {}) or {}
        return cls(
            initialized=bool(data.get("initialized", False)),
            business=BusinessInfo.from_dict(data.get("businessInfo", {}) or {}),
            settings=EnterpriseSettings.from_dict(data.get("settings", {}) or {}),
            taxes=[TaxRule.from_dict(tax) for tax in tax_settings.get("taxes", []) or []],
            default_tax_id=_optional_text(tax_settings, "defaultTax"),
            logo=_optional_text(data, "logo"),
        )

    def to_dict(self) -> Dict[str, Any]:
        tax_settings: Dict[str, Any] = {"taxes": [rule.to_dict() for rule in self.taxes]}
        if self.default_tax_id:
            tax_settings["defaultTax"] = self.default_tax_id
        return _compact(
            {
                "initialized": self.initialized,
                "businessInfo": self.business.to_dict(),
                "settings": self.settings.to_dict(),
                "taxSettings": tax_settings,
                "logo": self.logo,
            }
        )


@dataclass
class InvoiceSettings:
    invoice_number: str = ""
    issue_date: str = ""
    due_date: str = ""
    currency: Currency = field(default_factory=Currency)
    notes: str = ""
    terms: str = ""
    show_discounts: bool = True
    show_taxes: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InvoiceSettings":
        return cls(
            invoice_number=_text(data, "invoiceNumber"),
            issue_date=_text(data, "issueDate"),
            due_date=_text(data, "dueDate"),
            currency=Currency.from_dict(data.get("currency")),
            notes=_text(data, "notes"),
            terms=_text(data, "terms"),
            show_discounts=bool(data.get("showDiscounts", True)),
            show_taxes=bool(data.get("showTaxes", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "invoiceNumber": self.invoice_number,
                "issueDate": self.issue_date,
                "dueDate": self.due_date,
                "currency": self.currency.to_dict(),
                "notes": self.notes,
                "terms": self.terms,
                "showDiscounts": self.show_discounts,
                "showTaxes": self.show_taxes,
            }
        )


@dataclass
class Invoice:
    items: List[LineItem] = field(default_factory=list)
    customer: Optional[Customer] = None
    settings: InvoiceSettings = field(default_factory=InvoiceSettings)
    business: Optional[BusinessInfo] = None
    logo: Optional[str] = None
    status: InvoiceStatus = InvoiceStatus.DRAFT

    def find_item(self, item_id: str) -> Optional[LineItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Invoice":
        customer = data.get("customer")
        business = data.get("business")
        return cls(
            items=[LineItem.from_dict(item) for item in data.get("products", []) or []],
            customer=Customer.from_dict(customer) if customer else None,
            settings=InvoiceSettings.from_dict(data.get("settings", {}) or {}),
            business=BusinessInfo.from_dict(business) if business else None,
            logo=_optional_text(data, "logo"),
            status=InvoiceStatus(data.get("status") or InvoiceStatus.DRAFT.value),
        )

    def to_dict(self) -> Dict[str, Any]:
        # Totals are derived on demand and never persisted.
        return _compact(
            {
                "products": [item.to_dict() for item in self.items],
                "customer": self.customer.to_dict() if self.customer else None,
                "settings": self.settings.to_dict(),
                "business": self.business.to_dict() if self.business else None,
                "logo": self.logo,
                "status": self.status.value,
            }
        )


@dataclass
class Template:
    """A named, reusable set of line items."""

    id: str
    name: str
    items: List[LineItem] = field(default_factory=list)
    category: Optional[str] = None
    created: str = ""
    last_used: Optional[str] = None
    use_count: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Template":
        metadata = data.get("metadata", {}) or {}
        return cls(
            id=_text(data, "id"),
            name=_text(data, "name"),
            items=[LineItem.from_dict(item) for item in data.get("products", []) or []],
            category=_optional_text(data, "category"),
            created=_text(metadata, "created"),
            last_used=_optional_text(metadata, "lastUsed"),
            use_count=int(safe_float(metadata.get("useCount", 0), 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {"created": self.created, "useCount": self.use_count}
        if self.last_used:
            metadata["lastUsed"] = self.last_used
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "category": self.category,
                "products": [item.to_dict() for item in self.items],
                "metadata": metadata,
            }
        )
