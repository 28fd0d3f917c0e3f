"""
Services Package

Persistence for InvoiceBook. Storage is the only service: there is no
network backend, everything lives on the local filesystem.
"""

from invoicebook.services.storage import (
    DatabaseStore,
    DocumentStorageInterface,
    JsonDocumentRepository,
    StorageRootPointer,
)

__all__ = [
    "DatabaseStore",
    "DocumentStorageInterface",
    "JsonDocumentRepository",
    "StorageRootPointer",
]
