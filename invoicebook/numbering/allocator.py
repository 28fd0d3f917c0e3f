"""
Document Number Allocation

Counters live in the database settings and hold the NEXT number to hand
out, per document type:

    next_invoice_number          lifetime counter
    invoice_counters_by_year     {"2026": 7}, a missing year means 1

allocate_document_number() must be called inside a DatabaseStore
transaction: the counters it advances are persisted by the same write that
commits the rest of the transaction, so two creations can never draw the
same number.

Reconciliation: if the rendered number already has a file on disk (counters
edited by hand, a restored backup...), both counters are advanced and the
next candidate is tried.
"""

from datetime import datetime
from typing import Callable, Optional

import structlog
from pydantic import Field

from invoicebook.audit import AuditLogger
from invoicebook.models.base import CamelModel
from invoicebook.models.database import DatabaseSettings
from invoicebook.models.document import DocumentType
from invoicebook.numbering.template import build_variables, format_document_number
from invoicebook.services.storage.interface import DuplicateError


logger = structlog.get_logger(__name__)

MAX_RECONCILE_ATTEMPTS = 100


class AllocatedNumber(CamelModel):
    document_number: str
    year: str
    number: int
    number_year: int
    skipped: list[str] = Field(default_factory=list)


def counters_for(
    settings: DatabaseSettings,
    document_type: DocumentType,
) -> tuple[str, str, int, dict[str, int]]:
    """(prefix, template, lifetime counter, per-year counters) of a type."""
    if document_type is DocumentType.OFFER:
        return (
            settings.offer_prefix,
            settings.offer_number_format,
            settings.next_offer_number,
            settings.offer_counters_by_year,
        )
    return (
        settings.invoice_prefix,
        settings.invoice_number_format,
        settings.next_invoice_number,
        settings.invoice_counters_by_year,
    )


def _advance(settings: DatabaseSettings, document_type: DocumentType, year: str) -> None:
    if document_type is DocumentType.OFFER:
        settings.next_offer_number += 1
        counters = settings.offer_counters_by_year
    else:
        settings.next_invoice_number += 1
        counters = settings.invoice_counters_by_year
    counters[year] = counters.get(year, 1) + 1


def allocate_document_number(
    settings: DatabaseSettings,
    document_type: DocumentType,
    when: datetime,
    is_taken: Callable[[str, str], bool],
    audit_logger: Optional[AuditLogger] = None,
) -> AllocatedNumber:
    """
    Render the next number for `document_type` and advance its counters.

    Args:
        settings: Database settings, mutated in place
        document_type: Offer and invoice counters are independent
        when: Creation timestamp (UTC); picks the year bucket and date parts
        is_taken: (year, document_number) -> whether a file already exists

    Raises:
        DuplicateError: No free number within MAX_RECONCILE_ATTEMPTS
            (e.g. a template without a counter placeholder)
    """
    year = str(when.year)
    skipped: list[str] = []

    for _ in range(MAX_RECONCILE_ATTEMPTS):
        prefix, template, number, by_year = counters_for(settings, document_type)
        number_year = by_year.get(year, 1)
        candidate = format_document_number(
            template, build_variables(prefix, number, number_year, when)
        )

        _advance(settings, document_type, year)

        if not is_taken(year, candidate):
            return AllocatedNumber(
                document_number=candidate,
                year=year,
                number=number,
                number_year=number_year,
                skipped=skipped,
            )

        skipped.append(candidate)
        logger.warning(
            "document_number_taken",
            document_type=document_type.value,
            document_number=candidate,
        )
        if audit_logger:
            audit_logger.log_number_reconciled(document_type.value, candidate)

    raise DuplicateError(
        f"Could not find a free {document_type.value} number after "
        f"{MAX_RECONCILE_ATTEMPTS} attempts (last tried {skipped[-1]}). "
        f"Check the number format and counters in settings."
    )
