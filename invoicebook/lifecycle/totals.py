"""
Line items, totals and due dates.

Amounts are never taken from the caller: item totals, subtotal, tax and
total are always recomputed here, rounded half up to the cent.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from invoicebook.models.base import ZERO, to_cents
from invoicebook.models.database import Customer
from invoicebook.models.document import CustomerSnapshot, DocumentItem, DocumentItemInput


def build_items(inputs: list[DocumentItemInput]) -> list[DocumentItem]:
    """Fresh items (new ids, computed totals) from submitted line items."""
    return [
        DocumentItem(
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
        )
        for item in inputs
    ]


def compute_totals(items: list[DocumentItem], tax_rate: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    """
    Returns:
        (subtotal, tax_amount, total)
    """
    subtotal = to_cents(sum((item.total for item in items), ZERO))
    tax_amount = to_cents(subtotal * Decimal(tax_rate) / Decimal(100))
    return subtotal, tax_amount, subtotal + tax_amount


def compute_due_date(start: datetime, payment_term_days: int) -> datetime:
    return start + timedelta(days=payment_term_days)


def snapshot_customer(customer: Customer) -> CustomerSnapshot:
    """Copy the printable customer fields into a document."""
    address = customer.address
    return CustomerSnapshot(
        name=customer.name,
        company=customer.company,
        street=address.street,
        postal_code=address.postal_code,
        city=address.city,
        country=address.country,
    )
