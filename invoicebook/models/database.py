"""
Versioned Database Models

The database file ({root}/database.json) holds everything that is NOT a
document: customers, the business profile, the product catalog and settings
(including the numbering counters). It is small, loaded once and rewritten
wholesale on every mutation.

DESIGN DECISION: documents are never embedded here. The database only keeps
the counters that documents draw their numbers from.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field, model_validator

from invoicebook.models.base import CamelModel, new_id, utcnow


CURRENT_DATABASE_VERSION = "1.3.0"
CURRENT_DOCUMENT_VERSION = "1.0.0"

DEFAULT_DOCUMENT_NUMBER_FORMAT = "{PREFIX}-{YEAR}-{NUMBER:4}"


# =============================================================================
# ENUMS
# =============================================================================

class CurrencyCode(str, Enum):
    EUR = "EUR"
    USD = "USD"
    GBP = "GBP"
    CHF = "CHF"
    CAD = "CAD"
    AUD = "AUD"


class ThemePreference(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class LanguagePreference(str, Enum):
    EN_US = "en-US"
    NL_NL = "nl-NL"


# =============================================================================
# ADDRESS BOOK
# =============================================================================

class Address(CamelModel):
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class AddressUpdate(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class Customer(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=1, max_length=200)
    phone: str = ""
    company: Optional[str] = None
    address: Address = Field(default_factory=Address)
    notes: Optional[str] = Field(default=None, max_length=2000)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CreateCustomerRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=1, max_length=200)
    phone: str = ""
    company: Optional[str] = None
    address: Address = Field(default_factory=Address)
    notes: Optional[str] = Field(default=None, max_length=2000)


class UpdateCustomerRequest(CamelModel):
    """Only fields that were provided are applied; the address merges."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = None
    company: Optional[str] = None
    address: Optional[AddressUpdate] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


# =============================================================================
# BUSINESS PROFILE
# =============================================================================

class BankDetails(CamelModel):
    bank_name: str = ""
    account_holder: str = ""
    iban: str = ""
    bic: Optional[str] = None


class BankDetailsUpdate(CamelModel):
    bank_name: Optional[str] = None
    account_holder: Optional[str] = None
    iban: Optional[str] = None
    bic: Optional[str] = None


class Business(CamelModel):
    """The user's own business, printed on every document."""

    name: str = Field(..., min_length=1, max_length=200)
    address: Address
    phone: str
    email: str
    website: Optional[str] = None
    tax_id: Optional[str] = None
    chamber_of_commerce: Optional[str] = None
    logo: Optional[str] = None
    bank_details: Optional[BankDetails] = None
    updated_at: datetime = Field(default_factory=utcnow)


class UpdateBusinessRequest(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    address: Optional[AddressUpdate] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    tax_id: Optional[str] = None
    chamber_of_commerce: Optional[str] = None
    logo: Optional[str] = None
    bank_details: Optional[BankDetailsUpdate] = None


# =============================================================================
# PRODUCT CATALOG
# =============================================================================

class Product(CamelModel):
    id: str = Field(default_factory=new_id)
    description: str = Field(..., min_length=1, max_length=500)
    default_price: Decimal = Field(..., ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CreateProductRequest(CamelModel):
    description: str = Field(..., min_length=1, max_length=500)
    default_price: Decimal = Field(..., ge=0)


class UpdateProductRequest(CamelModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    default_price: Optional[Decimal] = Field(default=None, ge=0)


# =============================================================================
# SETTINGS
# =============================================================================

class DocumentLabels(CamelModel):
    """User-editable label text printed on documents."""

    model_config = ConfigDict(str_strip_whitespace=False)

    offer_title: str = "Quote"
    invoice_title: str = "Invoice"

    document_date_label: str = "Date"
    due_date_label: str = "Due Date"
    offer_number_label: str = "Quote Number"
    invoice_number_label: str = "Invoice Number"

    customer_section_title_offer: str = "Customer Details"
    customer_section_title_invoice: str = "Billing Address"

    intro_section_label: str = "Description"

    description_label: str = "Description"
    quantity_label: str = "Qty"
    unit_price_label: str = "Unit Price"
    amount_label: str = "Amount"

    subtotal_label: str = "Subtotal"
    tax_label: str = "VAT"
    total_label: str = "Total"

    notes_section_label: str = "Additional Information"

    payment_terms_title_offer: str = "Terms"
    payment_terms_title_invoice: str = "Payment Terms"

    tel_label: str = "Tel:"
    email_label: str = "E-mail:"
    kvk_label: str = "CoC:"
    vat_id_label: str = "VAT:"
    iban_label: str = "IBAN:"

    # {company}, {email} and {phone} are substituted at render time
    thank_you_text: str = "Thank you for your business with {company}!"
    questions_text_offer: str = (
        "If you have questions about this quote, please contact us at {email} or {phone}."
    )
    questions_text_invoice: str = (
        "If you have questions about this invoice, please contact us at {email} or {phone}."
    )


class DatabaseSettings(CamelModel):
    """
    Settings record stored inside the database.

    Counters hold the NEXT number to hand out. `*_counters_by_year` maps a
    year string ("2026") to the next per-year number; a missing year means 1.
    """

    currency: CurrencyCode = CurrencyCode.EUR
    currency_symbol: str = "€"
    default_tax_rate: Decimal = Field(default=Decimal("21"), ge=0, le=100)
    default_payment_term_days: int = Field(default=14, ge=0)

    offer_prefix: str = "OFF"
    offer_number_format: str = DEFAULT_DOCUMENT_NUMBER_FORMAT
    next_offer_number: int = Field(default=1, ge=1)
    offer_counters_by_year: dict[str, int] = Field(default_factory=dict)

    invoice_prefix: str = "INV"
    invoice_number_format: str = DEFAULT_DOCUMENT_NUMBER_FORMAT
    next_invoice_number: int = Field(default=1, ge=1)
    invoice_counters_by_year: dict[str, int] = Field(default_factory=dict)

    default_intro_text: Optional[str] = None
    default_notes_text: Optional[str] = None
    default_footer_text: Optional[str] = None
    labels: DocumentLabels = Field(default_factory=DocumentLabels)

    theme: ThemePreference = ThemePreference.SYSTEM
    language: LanguagePreference = LanguagePreference.EN_US
    date_format: str = "DD-MM-YYYY"
    fiscal_year_start_month: int = Field(default=1, ge=1, le=12)

    updated_at: datetime = Field(default_factory=utcnow)


class UpdateSettingsRequest(CamelModel):
    """Partial settings update. Labels merge key by key."""

    currency: Optional[CurrencyCode] = None
    currency_symbol: Optional[str] = None
    default_tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    default_payment_term_days: Optional[int] = Field(default=None, ge=0)

    offer_prefix: Optional[str] = None
    offer_number_format: Optional[str] = None
    next_offer_number: Optional[int] = Field(default=None, ge=1)
    offer_counters_by_year: Optional[dict[str, int]] = None

    invoice_prefix: Optional[str] = None
    invoice_number_format: Optional[str] = None
    next_invoice_number: Optional[int] = Field(default=None, ge=1)
    invoice_counters_by_year: Optional[dict[str, int]] = None

    default_intro_text: Optional[str] = None
    default_notes_text: Optional[str] = None
    default_footer_text: Optional[str] = None
    labels: Optional[dict[str, str]] = None

    theme: Optional[ThemePreference] = None
    language: Optional[LanguagePreference] = None
    date_format: Optional[str] = None
    fiscal_year_start_month: Optional[int] = Field(default=None, ge=1, le=12)


# =============================================================================
# DATABASE ROOT
# =============================================================================

class VersionedDatabase(CamelModel):
    """
    The whole database file.

    `version` always names the newest migration applied to the content.
    """

    version: str = CURRENT_DATABASE_VERSION
    customers: list[Customer] = Field(default_factory=list)
    business: Optional[Business] = None
    products: list[Product] = Field(default_factory=list)
    settings: DatabaseSettings = Field(default_factory=DatabaseSettings)
    updated_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'VersionedDatabase':
        for name, records in (("customer", self.customers), ("product", self.products)):
            ids = [record.id for record in records]
            if len(ids) != len(set(ids)):
                raise ValueError(f"Duplicate {name} id in database")
        return self

    def find_customer(self, customer_id: str) -> Optional[Customer]:
        return next((c for c in self.customers if c.id == customer_id), None)

    def find_product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)


def empty_database(now: Optional[datetime] = None) -> VersionedDatabase:
    """Fresh database at the current version."""
    now = now or utcnow()
    return VersionedDatabase(
        version=CURRENT_DATABASE_VERSION,
        settings=DatabaseSettings(updated_at=now),
        updated_at=now,
    )
