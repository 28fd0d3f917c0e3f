"""
Shared fixtures.

Every test gets its own storage root under pytest's tmp_path; nothing
touches the user's real data directory.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from invoicebook.lifecycle import build_items, compute_totals, initial_history
from invoicebook.models import (
    CustomerSnapshot,
    Document,
    DocumentItemInput,
    DocumentStatus,
    DocumentType,
    StatusLogEntry,
)
from invoicebook.orchestrator import InvoiceBook
from invoicebook.services.storage import DatabaseStore, JsonDocumentRepository, StorageRootPointer


NOW = datetime(2026, 5, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def root(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def store(root) -> DatabaseStore:
    return DatabaseStore(root)


@pytest.fixture
def repository(root) -> JsonDocumentRepository:
    return JsonDocumentRepository(root)


@pytest.fixture
def pointer(tmp_path, root) -> StorageRootPointer:
    return StorageRootPointer(tmp_path / "pointer" / "storage-root.json", root)


@pytest.fixture
def book(root, pointer) -> InvoiceBook:
    return InvoiceBook(root, pointer=pointer)


@pytest.fixture
def customer_payload() -> dict:
    return {
        "name": "Jan de Vries",
        "email": "jan@acme.nl",
        "phone": "+31 20 123 4567",
        "company": "Acme BV",
        "address": {
            "street": "Keizersgracht 1",
            "city": "Amsterdam",
            "postalCode": "1015 AA",
            "country": "Netherlands",
        },
    }


@pytest.fixture
def make_document():
    """Factory for documents built in memory (no storage involved)."""

    def _make(
        document_type: DocumentType = DocumentType.INVOICE,
        number: str = "INV-2026-0001",
        status: DocumentStatus = DocumentStatus.DRAFT,
        created_at: datetime = NOW,
        amount: Decimal = Decimal("100.00"),
        tax_rate: Decimal = Decimal("21"),
        payment_term_days: int = 14,
        customer_id: str = "customer-1",
        customer_name: str = "Acme BV",
    ) -> Document:
        items = build_items([
            DocumentItemInput(description="Consulting", quantity=Decimal("1"), unit_price=amount)
        ])
        subtotal, tax_amount, total = compute_totals(items, tax_rate)
        history = initial_history(created_at)
        if status != DocumentStatus.DRAFT:
            history.append(StatusLogEntry(
                timestamp=created_at + timedelta(hours=1),
                from_status=DocumentStatus.DRAFT,
                to_status=status,
            ))
        return Document(
            document_type=document_type,
            document_title="Invoice" if document_type is DocumentType.INVOICE else "Quote",
            document_number=number,
            customer_id=customer_id,
            customer=CustomerSnapshot(name=customer_name, postal_code="1015 AA", city="Amsterdam"),
            items=items,
            subtotal=subtotal,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            total=total,
            payment_term_days=payment_term_days,
            due_date=created_at + timedelta(days=payment_term_days),
            status=status,
            status_history=history,
            created_at=created_at,
            updated_at=created_at,
        )

    return _make
