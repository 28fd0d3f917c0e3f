"""
Storage Services Package

Everything InvoiceBook persists lives under one storage root on the local
filesystem: the versioned database file plus one JSON file per document.
All writes go through the atomic writer.
"""

from invoicebook.services.storage.interface import (
    CorruptDocumentError,
    DocumentStorageInterface,
    DuplicateError,
    MigrationFailedError,
    NotFoundError,
    RootRetiredError,
    StorageError,
    VersionTooNewError,
    WriteFailedError,
)
from invoicebook.services.storage.atomic import (
    atomic_copy,
    atomic_write_bytes,
    atomic_write_json,
    read_json,
)
from invoicebook.services.storage.database_store import DATABASE_FILE_NAME, DatabaseStore
from invoicebook.services.storage.document_repository import JsonDocumentRepository
from invoicebook.services.storage.root import (
    StorageRootPointer,
    copy_tree_atomically,
    remove_tree,
    verify_root,
)

__all__ = [
    # Interfaces
    "DocumentStorageInterface",
    # Exceptions
    "CorruptDocumentError",
    "DuplicateError",
    "MigrationFailedError",
    "NotFoundError",
    "RootRetiredError",
    "StorageError",
    "VersionTooNewError",
    "WriteFailedError",
    # Atomic writer
    "atomic_copy",
    "atomic_write_bytes",
    "atomic_write_json",
    "read_json",
    # Local filesystem implementation
    "DATABASE_FILE_NAME",
    "DatabaseStore",
    "JsonDocumentRepository",
    "StorageRootPointer",
    "copy_tree_atomically",
    "remove_tree",
    "verify_root",
]
