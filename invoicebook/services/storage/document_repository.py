"""
JSON Document Repository

One file per offer/invoice:

    {root}/offers/{year}/{documentNumber}.json
    {root}/invoices/{year}/{documentNumber}.json

Each file is a versioned envelope ({"version", "document"}) so documents can
be migrated independently of the database file.

TRADEOFFS:
- The id is not part of the path, so load-by-id scans the year directories
  (fine for a few thousand documents per type)
- Listing parses every file; there is no index to keep in sync
- A single unreadable file is skipped with a warning instead of hiding the
  rest of the corpus. A file from a NEWER release is not skipped: that is
  fatal, the user must upgrade
"""

import asyncio
import shutil
import weakref
from pathlib import Path
from typing import Iterator, Optional

import structlog
from pydantic import ValidationError

from invoicebook.audit import AuditLogger
from invoicebook.models.database import CURRENT_DOCUMENT_VERSION
from invoicebook.models.document import Document, DocumentEnvelope, DocumentSummary, DocumentType
from invoicebook.services.storage.atomic import atomic_write_json, read_json
from invoicebook.services.storage.interface import (
    CorruptDocumentError,
    DocumentStorageInterface,
    NotFoundError,
    RootRetiredError,
    WriteFailedError,
)
from invoicebook.services.storage.migrations import migrate_document_envelope, parse_version


logger = structlog.get_logger(__name__)


class JsonDocumentRepository(DocumentStorageInterface):
    """
    Document storage on the local filesystem.

    Writes to the same document id are serialized with a per-id lock; writes
    to different documents touch disjoint files and may run concurrently.
    """

    def __init__(self, root: Path, audit_logger: Optional[AuditLogger] = None):
        self._root = Path(root)
        self._audit_logger = audit_logger
        # A lock lives only while someone holds or awaits it
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._retired = False

    @property
    def root(self) -> Path:
        return self._root

    # =========================================================================
    # PATHS
    # =========================================================================

    def type_directory(self, document_type: DocumentType) -> Path:
        return self._root / document_type.directory

    def path_for(self, document_type: DocumentType, year: str, document_number: str) -> Path:
        return self.type_directory(document_type) / str(year) / f"{document_number}.json"

    def document_path(self, document: Document) -> Path:
        return self.path_for(document.document_type, document.year, document.document_number)

    def number_exists(self, document_type: DocumentType, year: str, document_number: str) -> bool:
        return self.path_for(document_type, year, document_number).exists()

    def iter_files(self, document_type: Optional[DocumentType] = None) -> Iterator[Path]:
        """Every document file of a type (or of all types), oldest year first."""
        for doc_type in _types(document_type):
            type_dir = self.type_directory(doc_type)
            if not type_dir.is_dir():
                continue
            year_dirs = sorted(
                d for d in type_dir.iterdir()
                if d.is_dir() and not d.name.startswith(".")
            )
            for year_dir in year_dirs:
                for path in sorted(year_dir.glob("*.json")):
                    if not path.name.startswith(".") and path.is_file():
                        yield path

    # =========================================================================
    # WRITES
    # =========================================================================

    def retire(self) -> None:
        """Refuse every later write or delete (the root was moved away)."""
        self._retired = True

    def lock_for(self, document_id: str) -> asyncio.Lock:
        """
        Lock serializing writes to one document.

        Hold it across a whole read-modify-write cycle and call write() inside.
        """
        lock = self._locks.get(document_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[document_id] = lock
        return lock

    async def save(self, document: Document) -> None:
        """Write the document's envelope atomically (create or overwrite)."""
        async with self.lock_for(document.id):
            self.write(document)

    def write(self, document: Document) -> None:
        """
        Unlocked write, for callers that already serialize access.

        Document creation calls this from inside the database transaction so
        the file and the consumed number are committed together.
        """
        if self._retired:
            raise RootRetiredError(str(self._root))
        envelope = DocumentEnvelope(version=CURRENT_DOCUMENT_VERSION, document=document)
        atomic_write_json(self.document_path(document), envelope)

    async def delete(self, document: Document) -> None:
        path = self.document_path(document)
        async with self.lock_for(document.id):
            if self._retired:
                raise RootRetiredError(str(self._root))
            if not path.exists():
                raise NotFoundError(f"{document.document_type.value.capitalize()} file not found: {path}")
            try:
                path.unlink()
            except OSError as e:
                raise WriteFailedError(str(path), e) from e

    def delete_all(self) -> None:
        """Remove both document trees."""
        for doc_type in DocumentType:
            type_dir = self.type_directory(doc_type)
            if type_dir.exists():
                shutil.rmtree(type_dir)

    # =========================================================================
    # READS
    # =========================================================================

    def read_file(self, path: Path) -> Document:
        """
        Parse one document file, migrating its envelope if needed.

        Raises:
            CorruptDocumentError: Unparseable JSON, malformed version or schema mismatch
            VersionTooNewError: Envelope written by a newer release
        """
        raw = read_json(path)
        if not isinstance(raw, dict) or "document" not in raw:
            raise CorruptDocumentError(str(path), "not a document envelope")
        version = raw.get("version")
        if not isinstance(version, str):
            raise CorruptDocumentError(str(path), f"envelope version {version!r} is not a string")
        try:
            parse_version(version)
        except ValueError as e:
            raise CorruptDocumentError(str(path), str(e)) from e

        migrated, applied = migrate_document_envelope(raw, source=str(path))

        try:
            envelope = DocumentEnvelope.model_validate(migrated)
        except ValidationError as e:
            raise CorruptDocumentError(str(path), str(e)) from e

        document = envelope.document
        if path.parent.parent.name != document.document_type.directory:
            raise CorruptDocumentError(
                str(path),
                f"{document.document_type.value} stored under {path.parent.parent.name}/",
            )

        if applied:
            atomic_write_json(path, envelope)
            for from_version, to_version in applied:
                if self._audit_logger:
                    self._audit_logger.log_migration(
                        "document", from_version, to_version, entity_id=document.id
                    )
        return document

    def _scan(self, document_type: Optional[DocumentType] = None) -> Iterator[Document]:
        for path in self.iter_files(document_type):
            try:
                document = self.read_file(path)
            except (CorruptDocumentError, OSError) as e:
                logger.warning("corrupt_document_skipped", path=str(path), error=str(e))
                if self._audit_logger:
                    self._audit_logger.log_corrupt_document(str(path), str(e))
                continue
            yield document

    async def load(self, document_type: DocumentType, document_id: str) -> Optional[Document]:
        for document in self._scan(document_type):
            if document.id == document_id:
                return document
        return None

    async def load_by_number(
        self,
        document_type: DocumentType,
        document_number: str,
    ) -> Optional[Document]:
        type_dir = self.type_directory(document_type)
        if not type_dir.is_dir():
            return None
        for year_dir in sorted(type_dir.iterdir()):
            path = year_dir / f"{document_number}.json"
            if year_dir.is_dir() and path.is_file():
                return self.read_file(path)
        return None

    async def list_documents(
        self,
        document_type: Optional[DocumentType] = None,
    ) -> list[Document]:
        documents = list(self._scan(document_type))
        documents.sort(key=lambda d: d.created_at, reverse=True)
        return documents

    async def list_summaries(
        self,
        document_type: Optional[DocumentType] = None,
    ) -> list[DocumentSummary]:
        return [d.to_summary() for d in await self.list_documents(document_type)]


def _types(document_type: Optional[DocumentType]) -> list[DocumentType]:
    return [document_type] if document_type else list(DocumentType)
