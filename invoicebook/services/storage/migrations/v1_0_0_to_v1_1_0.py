"""
v1.0.0 -> v1.1.0: document number templates.

Adds `offerNumberFormat` / `invoiceNumberFormat` (defaulting to the format
that was hard-coded before templates existed) and empty per-year counters,
which fill up on first use.
"""

from invoicebook.models.database import DEFAULT_DOCUMENT_NUMBER_FORMAT


from_version = "1.0.0"
to_version = "1.1.0"


def migrate(data: dict) -> dict:
    if data.get("version") != from_version:
        return data

    settings = dict(data.get("settings") or {})
    settings.setdefault("offerNumberFormat", DEFAULT_DOCUMENT_NUMBER_FORMAT)
    settings.setdefault("invoiceNumberFormat", DEFAULT_DOCUMENT_NUMBER_FORMAT)
    settings.setdefault("offerCountersByYear", {})
    settings.setdefault("invoiceCountersByYear", {})

    return {**data, "version": to_version, "settings": settings}
