"""
Document lifecycle: totals, the status state machine and conversion.
"""

from invoicebook.lifecycle.conversion import (
    PartialConversionError,
    build_invoice_from_offer,
    mark_offer_converted,
)
from invoicebook.lifecycle.status import (
    INITIAL_STATUS,
    OPEN_INVOICE_STATUSES,
    InvalidTransitionError,
    apply_status_change,
    check_transition,
    days_past_due,
    effective_status,
    initial_history,
    is_overdue,
)
from invoicebook.lifecycle.totals import (
    build_items,
    compute_due_date,
    compute_totals,
    snapshot_customer,
)

__all__ = [
    "INITIAL_STATUS",
    "OPEN_INVOICE_STATUSES",
    "InvalidTransitionError",
    "PartialConversionError",
    "apply_status_change",
    "build_invoice_from_offer",
    "build_items",
    "check_transition",
    "compute_due_date",
    "compute_totals",
    "days_past_due",
    "effective_status",
    "initial_history",
    "is_overdue",
    "mark_offer_converted",
    "snapshot_customer",
]
