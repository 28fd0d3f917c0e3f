"""
Document Models (offers and invoices)

An offer and an invoice share one shape, distinguished by `document_type`.
That makes converting an offer into an invoice a copy, not a translation.

INVARIANTS enforced on every construction (including reads from disk):
- item.total == quantity * unit_price (to the cent)
- subtotal == sum(item.total), total == subtotal + tax_amount
- status_history[0].from_status is None
- every later entry starts where the previous one ended
- the last entry ends at the current status
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from invoicebook.models.base import CamelModel, new_id, to_cents


# =============================================================================
# ENUMS
# =============================================================================

class DocumentType(str, Enum):
    """Kind of document. Each kind has its own directory and counters."""
    OFFER = "offer"
    INVOICE = "invoice"

    @property
    def directory(self) -> str:
        return "offers" if self is DocumentType.OFFER else "invoices"


class DocumentStatus(str, Enum):
    """
    Union of offer and invoice statuses.

    Which values are legal depends on the document type, see
    OFFER_STATUSES / INVOICE_STATUSES.
    """
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


OFFER_STATUSES = frozenset({
    DocumentStatus.DRAFT,
    DocumentStatus.SENT,
    DocumentStatus.ACCEPTED,
    DocumentStatus.REJECTED,
    DocumentStatus.CANCELLED,
})

INVOICE_STATUSES = frozenset({
    DocumentStatus.DRAFT,
    DocumentStatus.SENT,
    DocumentStatus.PAID,
    DocumentStatus.OVERDUE,
    DocumentStatus.CANCELLED,
})

TERMINAL_STATUSES = frozenset({
    DocumentStatus.PAID,
    DocumentStatus.REJECTED,
    DocumentStatus.CANCELLED,
})


def statuses_for(document_type: DocumentType) -> frozenset[DocumentStatus]:
    if document_type is DocumentType.OFFER:
        return OFFER_STATUSES
    return INVOICE_STATUSES


# =============================================================================
# DOCUMENT PARTS
# =============================================================================

class DocumentItem(CamelModel):
    """Single line item. `total` is always recomputed, never trusted."""

    id: str = Field(default_factory=new_id)
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., ge=0)
    unit_price: Decimal = Field(..., ge=0)
    total: Decimal = Field(default=Decimal("0.00"))

    @model_validator(mode='after')
    def compute_total(self) -> 'DocumentItem':
        self.total = to_cents(self.quantity * self.unit_price)
        return self


class CustomerSnapshot(CamelModel):
    """
    Copy of the customer taken at creation time.

    Editing the customer later must never change what a sent invoice says.
    """

    name: str = Field(..., min_length=1)
    company: Optional[str] = None
    street: Optional[str] = None
    postal_code: str = ""
    city: str = ""
    country: Optional[str] = None


class StatusLogEntry(CamelModel):
    """One transition in the append-only status audit trail."""

    timestamp: datetime
    from_status: Optional[DocumentStatus] = None
    to_status: DocumentStatus
    note: Optional[str] = None


# =============================================================================
# DOCUMENT
# =============================================================================

class Document(CamelModel):
    """Full offer or invoice, stored one per file."""

    id: str = Field(default_factory=new_id)
    document_type: DocumentType
    document_title: str = ""
    document_number: str = Field(..., min_length=1, max_length=100)

    customer_id: str
    customer: CustomerSnapshot

    items: list[DocumentItem] = Field(default_factory=list)
    subtotal: Decimal
    tax_rate: Decimal = Field(..., ge=0, le=100)
    tax_amount: Decimal
    total: Decimal

    payment_term_days: int = Field(..., ge=0)
    due_date: datetime

    intro_text: Optional[str] = None
    notes_text: Optional[str] = None
    footer_text: Optional[str] = None

    status: DocumentStatus
    status_history: list[StatusLogEntry] = Field(..., min_length=1)

    created_at: datetime
    updated_at: datetime

    converted_from_offer_id: Optional[str] = None
    converted_to_invoice_id: Optional[str] = None

    @model_validator(mode='after')
    def validate_totals(self) -> 'Document':
        """Totals must agree with the line items to the cent."""
        expected_subtotal = to_cents(sum((item.total for item in self.items), Decimal("0")))
        if to_cents(self.subtotal) != expected_subtotal:
            raise ValueError(
                f"Subtotal {self.subtotal} does not match line items ({expected_subtotal})"
            )
        if to_cents(self.total) != to_cents(self.subtotal + self.tax_amount):
            raise ValueError("Total must equal subtotal plus tax amount")
        return self

    @model_validator(mode='after')
    def validate_history(self) -> 'Document':
        """The status history must form an unbroken chain ending at `status`."""
        history = self.status_history
        if history[0].from_status is not None:
            raise ValueError("First status history entry must have no previous status")

        for previous, entry in zip(history, history[1:]):
            if entry.from_status != previous.to_status:
                raise ValueError(
                    f"Status history is broken: {previous.to_status.value} "
                    f"followed by a transition from "
                    f"{entry.from_status.value if entry.from_status else None}"
                )

        if history[-1].to_status != self.status:
            raise ValueError("Current status does not match the status history")
        return self

    @property
    def year(self) -> str:
        """Year directory the document file lives in."""
        return str(self.created_at.year)

    @property
    def file_name(self) -> str:
        return f"{self.document_number}.json"

    def to_summary(self) -> 'DocumentSummary':
        return DocumentSummary(
            id=self.id,
            document_type=self.document_type,
            document_number=self.document_number,
            customer_id=self.customer_id,
            customer_name=self.customer.name,
            total=self.total,
            status=self.status,
            due_date=self.due_date,
            created_at=self.created_at,
        )


class DocumentSummary(CamelModel):
    """Lightweight row for list views."""

    id: str
    document_type: DocumentType
    document_number: str
    customer_id: str
    customer_name: str
    total: Decimal
    status: DocumentStatus
    due_date: datetime
    created_at: datetime


class DocumentEnvelope(CamelModel):
    """What is actually written to disk for each document."""

    version: str
    document: Document


# =============================================================================
# REQUEST MODELS (payloads coming from the adapter layer)
# =============================================================================

class DocumentItemInput(CamelModel):
    """Line item as submitted. The total is computed server side."""

    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., ge=0)
    unit_price: Decimal = Field(..., ge=0)


class CreateDocumentRequest(CamelModel):
    document_type: DocumentType
    document_title: Optional[str] = None
    customer_id: str = Field(..., min_length=1)
    items: list[DocumentItemInput] = Field(default_factory=list)
    payment_term_days: Optional[int] = Field(default=None, ge=0)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    intro_text: Optional[str] = None
    notes_text: Optional[str] = None
    footer_text: Optional[str] = None


class UpdateDocumentRequest(CamelModel):
    """Only the fields that are set are applied."""

    document_title: Optional[str] = None
    customer_id: Optional[str] = None
    items: Optional[list[DocumentItemInput]] = None
    payment_term_days: Optional[int] = Field(default=None, ge=0)
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    intro_text: Optional[str] = None
    notes_text: Optional[str] = None
    footer_text: Optional[str] = None
    status: Optional[DocumentStatus] = None
    status_note: Optional[str] = Field(default=None, max_length=1000)


class ConvertOfferRequest(CamelModel):
    offer_id: str = Field(..., min_length=1)
    payment_term_days: Optional[int] = Field(default=None, ge=0)
    notes_text: Optional[str] = None
    footer_text: Optional[str] = None
