"""
Versioned Database Store

Owns {root}/database.json: customers, business profile, product catalog and
settings (numbering counters included).

DESIGN DECISION: The whole database is small, so it is loaded once, held in
memory and rewritten wholesale on every mutation. All mutations go through
one asyncio.Lock per store, so two read-modify-write cycles can never
interleave and silently drop each other's changes.

Mutations run against a deep copy. The copy only replaces the in-memory
state after the atomic write succeeded, so a failed write leaves both the
file and the in-memory database exactly as they were.
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, TypeVar

import structlog
from pydantic import ValidationError

from invoicebook.audit import AuditLogger
from invoicebook.models.base import utcnow
from invoicebook.models.database import VersionedDatabase, empty_database
from invoicebook.services.storage.atomic import atomic_write_json, read_json
from invoicebook.services.storage.interface import CorruptDocumentError, RootRetiredError
from invoicebook.services.storage.migrations import migrate_database


logger = structlog.get_logger(__name__)

DATABASE_FILE_NAME = "database.json"

T = TypeVar("T")


class DatabaseStore:
    """
    Loads, migrates and persists the versioned database of one storage root.

    Usage:
        store = DatabaseStore(root)
        db = await store.load()

        async with store.transaction() as db:
            db.customers.append(customer)

        count = await store.update(lambda db: len(db.customers))
    """

    def __init__(self, root: Path, audit_logger: Optional[AuditLogger] = None):
        self._root = Path(root)
        self._audit_logger = audit_logger
        self._database: Optional[VersionedDatabase] = None
        self._lock = asyncio.Lock()
        self._retired = False

    @property
    def root(self) -> Path:
        return self._root

    @property
    def path(self) -> Path:
        return self._root / DATABASE_FILE_NAME

    @property
    def is_loaded(self) -> bool:
        return self._database is not None

    def retire(self) -> None:
        """
        Refuse every later write. Called with the lock held once the data
        has been copied to a new root, so a writer still queued on this
        store fails instead of writing to the old root.
        """
        self._retired = True

    async def load(self) -> VersionedDatabase:
        """
        Return the database, reading it from disk on first use.

        A missing file is created empty. An older file is migrated and
        written back immediately so migration is a one-time cost.

        Raises:
            VersionTooNewError: The file was written by a newer release
            MigrationFailedError: A migration step failed (file untouched)
            CorruptDocumentError: The file is not a valid database
        """
        async with self._lock:
            return self._load_unlocked()

    async def get(self) -> VersionedDatabase:
        """
        Current database state for reading.

        The returned object is never mutated afterwards: transactions work on
        a copy and swap it in.
        """
        if self._database is not None:
            return self._database
        return await self.load()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[VersionedDatabase]:
        """
        Serialized read-modify-write cycle.

        Yields a deep copy of the database. When the block exits normally the
        copy is stamped, re-validated and atomically written; if the block
        raises, nothing is written and the in-memory state is unchanged.
        """
        async with self._lock:
            self._ensure_active()
            current = self._load_unlocked()
            working = current.model_copy(deep=True)
            yield working

            working.updated_at = utcnow()
            try:
                validated = VersionedDatabase.model_validate(working.model_dump())
            except ValidationError as e:
                raise CorruptDocumentError(str(self.path), f"mutation produced invalid data: {e}") from e

            atomic_write_json(self.path, validated)
            self._database = validated

    async def update(self, mutator: Callable[[VersionedDatabase], T]) -> T:
        """
        Apply a synchronous mutation and persist the whole database.

        Returns whatever the mutator returns.
        """
        async with self.transaction() as db:
            result = mutator(db)
        return result

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[VersionedDatabase]:
        """
        Hold the write lock without writing, e.g. while the file is copied
        elsewhere. Yields the current (read-only) database.
        """
        async with self._lock:
            self._ensure_active()
            yield self._load_unlocked()

    async def reset(self) -> VersionedDatabase:
        """Overwrite the database with an empty one."""
        async with self._lock:
            self._ensure_active()
            database = empty_database()
            atomic_write_json(self.path, database)
            self._database = database
            return database

    def _ensure_active(self) -> None:
        if self._retired:
            raise RootRetiredError(str(self._root))

    def _load_unlocked(self) -> VersionedDatabase:
        if self._database is not None:
            return self._database

        if not self.path.exists():
            database = empty_database()
            atomic_write_json(self.path, database)
            self._database = database
            logger.info("database_created", path=str(self.path))
            if self._audit_logger:
                self._audit_logger.log_database_created(str(self._root))
            return database

        raw = read_json(self.path)
        if not isinstance(raw, dict):
            raise CorruptDocumentError(str(self.path), "top level is not an object")

        migrated, applied = migrate_database(raw, source=str(self.path))

        try:
            database = VersionedDatabase.model_validate(migrated)
        except ValidationError as e:
            raise CorruptDocumentError(str(self.path), str(e)) from e

        if applied:
            atomic_write_json(self.path, database)
            for from_version, to_version in applied:
                logger.info(
                    "database_migrated",
                    path=str(self.path),
                    from_version=from_version,
                    to_version=to_version,
                )
                if self._audit_logger:
                    self._audit_logger.log_migration("database", from_version, to_version)

        self._database = database
        return database
