"""
Offer -> Invoice conversion.

Conversion touches two files and cannot be one atomic write. The order is
fixed:

1. Write the new invoice (fresh invoice number, draft, linked back to the
   offer). It is valid on its own even if step 2 never happens.
2. Rewrite the offer: status accepted, linked forward to the invoice.

If step 2 fails the caller gets PartialConversionError carrying the invoice,
and can retry only the offer update (link_converted_offer) without creating
a second invoice.
"""

from datetime import datetime
from typing import Optional

from invoicebook.lifecycle.status import apply_status_change, initial_history
from invoicebook.lifecycle.totals import compute_due_date
from invoicebook.models.base import new_id
from invoicebook.models.database import DatabaseSettings
from invoicebook.models.document import (
    ConvertOfferRequest,
    Document,
    DocumentItem,
    DocumentStatus,
    DocumentType,
    StatusLogEntry,
)


class PartialConversionError(Exception):
    """The invoice was written but the offer could not be linked to it."""

    http_status = 500

    def __init__(self, invoice: Document, offer_id: str, cause: Exception):
        self.invoice = invoice
        self.offer_id = offer_id
        self.cause = cause
        super().__init__(
            f"Invoice {invoice.document_number} was created but offer {offer_id} "
            f"could not be updated: {cause}"
        )


def build_invoice_from_offer(
    offer: Document,
    invoice_number: str,
    settings: DatabaseSettings,
    now: datetime,
    request: Optional[ConvertOfferRequest] = None,
) -> Document:
    """
    New draft invoice carrying the offer's items, customer snapshot and texts.

    The invoice gets its own id, number and due date; the items get new ids.
    """
    payment_term_days = offer.payment_term_days
    notes_text = offer.notes_text
    footer_text = offer.footer_text
    if request:
        if request.payment_term_days is not None:
            payment_term_days = request.payment_term_days
        if request.notes_text is not None:
            notes_text = request.notes_text
        if request.footer_text is not None:
            footer_text = request.footer_text

    items = [
        DocumentItem(
            id=new_id(),
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
        )
        for item in offer.items
    ]

    return Document(
        document_type=DocumentType.INVOICE,
        document_title=settings.labels.invoice_title,
        document_number=invoice_number,
        customer_id=offer.customer_id,
        customer=offer.customer.model_copy(deep=True),
        items=items,
        subtotal=offer.subtotal,
        tax_rate=offer.tax_rate,
        tax_amount=offer.tax_amount,
        total=offer.total,
        payment_term_days=payment_term_days,
        due_date=compute_due_date(now, payment_term_days),
        intro_text=offer.intro_text,
        notes_text=notes_text,
        footer_text=footer_text,
        status=DocumentStatus.DRAFT,
        status_history=initial_history(now, note=f"Converted from offer {offer.document_number}"),
        created_at=now,
        updated_at=now,
        converted_from_offer_id=offer.id,
    )


def mark_offer_converted(
    offer: Document,
    invoice: Document,
    now: datetime,
    enforce_terminal: bool = False,
) -> None:
    """
    Set the offer to accepted and link it to `invoice`, in place.

    An offer that is already accepted still gets a history entry so the
    trail records which invoice it turned into.
    """
    note = f"Converted to invoice {invoice.document_number}"
    entry = apply_status_change(
        offer,
        DocumentStatus.ACCEPTED,
        now,
        note=note,
        enforce_terminal=enforce_terminal,
    )
    if entry is None:
        offer.status_history.append(
            StatusLogEntry(
                timestamp=now,
                from_status=offer.status,
                to_status=offer.status,
                note=note,
            )
        )
    offer.converted_to_invoice_id = invoice.id
    offer.updated_at = now
