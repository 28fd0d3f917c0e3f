"""
Data Models Package

All pydantic models used by InvoiceBook. Anything written to disk or handed
to the adapter layer conforms to one of these schemas.
"""

from invoicebook.models.base import CamelModel, to_cents, utcnow
from invoicebook.models.database import (
    CURRENT_DATABASE_VERSION,
    CURRENT_DOCUMENT_VERSION,
    DEFAULT_DOCUMENT_NUMBER_FORMAT,
    Address,
    AddressUpdate,
    BankDetails,
    BankDetailsUpdate,
    Business,
    CreateCustomerRequest,
    CreateProductRequest,
    CurrencyCode,
    Customer,
    DatabaseSettings,
    DocumentLabels,
    LanguagePreference,
    Product,
    ThemePreference,
    UpdateBusinessRequest,
    UpdateCustomerRequest,
    UpdateProductRequest,
    UpdateSettingsRequest,
    VersionedDatabase,
    empty_database,
)
from invoicebook.models.document import (
    INVOICE_STATUSES,
    OFFER_STATUSES,
    TERMINAL_STATUSES,
    ConvertOfferRequest,
    CreateDocumentRequest,
    CustomerSnapshot,
    Document,
    DocumentEnvelope,
    DocumentItem,
    DocumentItemInput,
    DocumentStatus,
    DocumentSummary,
    DocumentType,
    StatusLogEntry,
    UpdateDocumentRequest,
    statuses_for,
)
from invoicebook.models.financial import (
    AgingBucket,
    DashboardStats,
    DatePreset,
    DateRange,
    FinancialOverview,
    FinancialOverviewRequest,
    MonthlyRevenue,
    PeriodComparison,
    PeriodSummary,
    Quarter,
    RevenuePoint,
    StatusBreakdown,
    TimeGranularity,
    VatBreakdown,
)
from invoicebook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from invoicebook.models.validation import ValidationIssue, ValidationResult

__all__ = [
    # Base
    "CamelModel",
    "to_cents",
    "utcnow",
    # Database models
    "CURRENT_DATABASE_VERSION",
    "CURRENT_DOCUMENT_VERSION",
    "DEFAULT_DOCUMENT_NUMBER_FORMAT",
    "Address",
    "AddressUpdate",
    "BankDetails",
    "BankDetailsUpdate",
    "Business",
    "CreateCustomerRequest",
    "CreateProductRequest",
    "CurrencyCode",
    "Customer",
    "DatabaseSettings",
    "DocumentLabels",
    "LanguagePreference",
    "Product",
    "ThemePreference",
    "UpdateBusinessRequest",
    "UpdateCustomerRequest",
    "UpdateProductRequest",
    "UpdateSettingsRequest",
    "VersionedDatabase",
    "empty_database",
    # Document models
    "INVOICE_STATUSES",
    "OFFER_STATUSES",
    "TERMINAL_STATUSES",
    "ConvertOfferRequest",
    "CreateDocumentRequest",
    "CustomerSnapshot",
    "Document",
    "DocumentEnvelope",
    "DocumentItem",
    "DocumentItemInput",
    "DocumentStatus",
    "DocumentSummary",
    "DocumentType",
    "StatusLogEntry",
    "UpdateDocumentRequest",
    "statuses_for",
    # Financial models
    "AgingBucket",
    "DashboardStats",
    "DatePreset",
    "DateRange",
    "FinancialOverview",
    "FinancialOverviewRequest",
    "MonthlyRevenue",
    "PeriodComparison",
    "PeriodSummary",
    "Quarter",
    "RevenuePoint",
    "StatusBreakdown",
    "TimeGranularity",
    "VatBreakdown",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
