"""
Dashboard statistics.

A quick read-time summary for the start screen. Like the financial overview
it is recomputed from the documents on every request. Earnings here are
gross (invoice totals including VAT).
"""

from datetime import datetime
from typing import Iterable

from invoicebook.lifecycle.status import days_past_due
from invoicebook.models.base import ZERO, to_cents
from invoicebook.models.document import Document, DocumentStatus, DocumentType
from invoicebook.models.financial import DashboardStats, OverdueInvoice, TopCustomer, TopInvoice
from invoicebook.reports.financial import is_outstanding, is_recognized


OVERDUE_LIST_SIZE = 5
TOP_LIST_SIZE = 3


def paid_date(invoice: Document) -> datetime:
    """When the invoice was first marked paid (falls back to its last update)."""
    for entry in invoice.status_history:
        if entry.to_status == DocumentStatus.PAID:
            return entry.timestamp
    return invoice.updated_at


def _top_invoice(invoice: Document) -> TopInvoice:
    return TopInvoice(
        id=invoice.id,
        document_number=invoice.document_number,
        customer_name=invoice.customer.name,
        total=invoice.total,
        paid_date=paid_date(invoice),
    )


def build_dashboard(
    documents: Iterable[Document],
    customer_count: int,
    now: datetime,
) -> DashboardStats:
    documents = list(documents)
    invoices = [d for d in documents if d.document_type is DocumentType.INVOICE]
    offer_count = sum(1 for d in documents if d.document_type is DocumentType.OFFER)

    paid = [inv for inv in invoices if is_recognized(inv)]
    paid.sort(key=lambda inv: inv.total, reverse=True)

    this_year = [inv for inv in paid if inv.created_at.year == now.year]
    this_month = [inv for inv in this_year if inv.created_at.month == now.month]

    outstanding = [
        inv for inv in invoices
        if inv.status in (DocumentStatus.SENT, DocumentStatus.OVERDUE)
    ]
    overdue = [inv for inv in invoices if is_outstanding(inv) and inv.due_date < now]

    overdue_rows = sorted(
        (
            OverdueInvoice(
                id=inv.id,
                document_number=inv.document_number,
                customer_name=inv.customer.name,
                total=inv.total,
                due_date=inv.due_date,
                days_overdue=days_past_due(inv, now),
            )
            for inv in overdue
        ),
        key=lambda row: row.days_overdue,
        reverse=True,
    )

    by_customer: dict[str, TopCustomer] = {}
    for inv in paid:
        entry = by_customer.get(inv.customer_id)
        if entry is None:
            by_customer[inv.customer_id] = TopCustomer(
                id=inv.customer_id,
                name=inv.customer.name,
                company=inv.customer.company,
                total_revenue=inv.total,
                invoice_count=1,
            )
        else:
            entry.total_revenue += inv.total
            entry.invoice_count += 1
    top_customers = sorted(by_customer.values(), key=lambda c: c.total_revenue, reverse=True)

    issued = [
        inv for inv in invoices
        if inv.status not in (DocumentStatus.DRAFT, DocumentStatus.CANCELLED)
    ]
    average = (
        to_cents(sum((inv.total for inv in issued), ZERO) / len(issued))
        if issued else ZERO
    )

    return DashboardStats(
        total_earnings_all_time=sum((inv.total for inv in paid), ZERO),
        total_earnings_this_year=sum((inv.total for inv in this_year), ZERO),
        total_earnings_this_month=sum((inv.total for inv in this_month), ZERO),
        total_customers=customer_count,
        total_invoices=len(invoices),
        total_offers=offer_count,
        outstanding_amount=sum((inv.total for inv in outstanding), ZERO),
        overdue_amount=sum((inv.total for inv in overdue), ZERO),
        overdue_count=len(overdue),
        overdue_invoices=overdue_rows[:OVERDUE_LIST_SIZE],
        top_paid_invoices=[_top_invoice(inv) for inv in paid[:TOP_LIST_SIZE]],
        top_customers=top_customers[:TOP_LIST_SIZE],
        average_invoice_value=average,
        biggest_invoice_ever=_top_invoice(paid[0]) if paid else None,
    )
