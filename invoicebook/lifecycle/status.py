"""
Status Lifecycle

    offer:    draft -> sent -> accepted | rejected | cancelled
    invoice:  draft -> sent -> paid | overdue | cancelled

Every change appends one StatusLogEntry. History entries are never edited
or removed.

DESIGN DECISION: `overdue` is observed, not scheduled. effective_status()
reports a sent invoice past its due date as overdue at read time; the status
is only stored as overdue when the user sets it explicitly.

Terminal states (paid, rejected, cancelled) may be left again unless
LifecycleSettings.enforce_terminal_states is on, so a mistaken cancellation
can be undone.
"""

from datetime import datetime
from typing import Optional

from invoicebook.models.document import (
    TERMINAL_STATUSES,
    Document,
    DocumentStatus,
    DocumentType,
    StatusLogEntry,
    statuses_for,
)


INITIAL_STATUS = DocumentStatus.DRAFT

# Invoices in these states are still owed
OPEN_INVOICE_STATUSES = frozenset({DocumentStatus.SENT, DocumentStatus.OVERDUE})


class InvalidTransitionError(Exception):
    """Status not allowed for the document type, or leaving a locked terminal state."""

    http_status = 400


def initial_history(now: datetime, note: Optional[str] = None) -> list[StatusLogEntry]:
    return [StatusLogEntry(timestamp=now, from_status=None, to_status=INITIAL_STATUS, note=note)]


def check_transition(
    document: Document,
    new_status: DocumentStatus,
    enforce_terminal: bool = False,
) -> None:
    """
    Raises:
        InvalidTransitionError: If the move is not allowed
    """
    allowed = statuses_for(document.document_type)
    if new_status not in allowed:
        raise InvalidTransitionError(
            f"'{new_status.value}' is not a valid {document.document_type.value} status. "
            f"Valid statuses: {', '.join(sorted(s.value for s in allowed))}"
        )
    if enforce_terminal and document.status in TERMINAL_STATUSES and new_status != document.status:
        raise InvalidTransitionError(
            f"{document.document_number} is {document.status.value}; "
            f"terminal statuses cannot be changed"
        )


def apply_status_change(
    document: Document,
    new_status: DocumentStatus,
    now: datetime,
    note: Optional[str] = None,
    enforce_terminal: bool = False,
) -> Optional[StatusLogEntry]:
    """
    Move `document` to `new_status` in place, appending a history entry.

    Returns:
        The appended entry, or None when the status did not change
    """
    check_transition(document, new_status, enforce_terminal)
    if new_status == document.status:
        return None

    entry = StatusLogEntry(
        timestamp=now,
        from_status=document.status,
        to_status=new_status,
        note=note,
    )
    document.status_history.append(entry)
    document.status = new_status
    document.updated_at = now
    return entry


def is_overdue(document: Document, now: datetime) -> bool:
    """A sent (or explicitly overdue) invoice whose due date has passed."""
    if document.document_type is not DocumentType.INVOICE:
        return False
    if document.status == DocumentStatus.OVERDUE:
        return True
    return document.status == DocumentStatus.SENT and document.due_date < now


def effective_status(document: Document, now: datetime) -> DocumentStatus:
    if is_overdue(document, now):
        return DocumentStatus.OVERDUE
    return document.status


def days_past_due(document: Document, now: datetime) -> int:
    """Whole days since the due date (negative while not yet due)."""
    return (now - document.due_date).days
