"""
v1.2.0 -> v1.3.0: settings added after the first release.

Older files may lack the language, the fiscal year start month, the default
notes text and the company detail labels printed in document footers.
Values already present are kept.
"""

from invoicebook.models.database import DocumentLabels


from_version = "1.2.0"
to_version = "1.3.0"

COMPANY_DETAIL_LABELS = ("telLabel", "emailLabel", "kvkLabel", "vatIdLabel", "ibanLabel")


def migrate(data: dict) -> dict:
    if data.get("version") != from_version:
        return data

    settings = dict(data.get("settings") or {})
    settings.setdefault("language", "en-US")
    settings.setdefault("fiscalYearStartMonth", 1)
    settings.setdefault("defaultNotesText", None)

    defaults = DocumentLabels().to_storage()
    labels = dict(settings.get("labels") or {})
    for key in COMPANY_DETAIL_LABELS:
        labels.setdefault(key, defaults[key])
    settings["labels"] = labels

    return {**data, "version": to_version, "settings": settings}
