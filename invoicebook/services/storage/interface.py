"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for document storage.
This allows us to:
1. Keep the lifecycle and reporting code decoupled from the file layout
2. Add an id -> path index later without touching callers
3. Use a different backend in tests if ever needed

The interface is intentionally small: create/read/update/delete and
"list everything of a type". Filtering happens in memory.
"""

from abc import ABC, abstractmethod
from typing import Optional

from invoicebook.models.document import Document, DocumentSummary, DocumentType


class DocumentStorageInterface(ABC):
    """
    Abstract interface for offer/invoice storage operations.
    """

    @abstractmethod
    async def save(self, document: Document) -> None:
        """
        Persist a document, overwriting any previous version of it.

        Raises:
            WriteFailedError: If the write fails (previous content survives)
        """
        pass

    @abstractmethod
    async def load(self, document_type: DocumentType, document_id: str) -> Optional[Document]:
        """
        Load a document by id.

        Returns:
            The document if found, None otherwise
        """
        pass

    @abstractmethod
    async def load_by_number(
        self,
        document_type: DocumentType,
        document_number: str,
    ) -> Optional[Document]:
        """Load a document by its human-facing number."""
        pass

    @abstractmethod
    async def list_documents(
        self,
        document_type: Optional[DocumentType] = None,
    ) -> list[Document]:
        """
        Load every document of a type (or of all types).

        Returns:
            Documents sorted by creation time, newest first
        """
        pass

    @abstractmethod
    async def list_summaries(
        self,
        document_type: Optional[DocumentType] = None,
    ) -> list[DocumentSummary]:
        """Same as list_documents, reduced to list-view summaries."""
        pass

    @abstractmethod
    async def delete(self, document: Document) -> None:
        """
        Remove a document.

        Raises:
            NotFoundError: If the document file does not exist
        """
        pass

    @abstractmethod
    def number_exists(
        self,
        document_type: DocumentType,
        year: str,
        document_number: str,
    ) -> bool:
        """Whether a document file with this number already exists in a year."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""

    http_status = 500


class NotFoundError(StorageError):
    """Entity not found in storage."""

    http_status = 404


class DuplicateError(StorageError):
    """Attempted to create an entity that already exists."""

    http_status = 409


class VersionTooNewError(StorageError):
    """A file declares a format version this code cannot read."""

    def __init__(self, path: str, found_version: str, supported_version: str):
        self.path = path
        self.found_version = found_version
        self.supported_version = supported_version
        super().__init__(
            f"{path} has version {found_version}, newer than the supported "
            f"{supported_version}. Upgrade InvoiceBook to open it."
        )


class MigrationFailedError(StorageError):
    """A migration step raised. The file on disk was not touched."""

    def __init__(self, from_version: str, to_version: str, cause: Exception):
        self.from_version = from_version
        self.to_version = to_version
        super().__init__(f"Migration v{from_version} -> v{to_version} failed: {cause}")


class CorruptDocumentError(StorageError):
    """A file could not be parsed or does not match the expected schema."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt file {path}: {reason}")


class WriteFailedError(StorageError):
    """Disk full, permission denied, ... The previous file content survives."""

    def __init__(self, path: str, cause: Exception):
        self.path = path
        super().__init__(f"Failed to write {path}: {cause}")


class RootRetiredError(StorageError):
    """A write reached a store whose storage root has been replaced."""

    http_status = 409

    def __init__(self, root: str):
        self.root = root
        super().__init__(f"Storage root {root} is no longer active. Retry the operation.")
