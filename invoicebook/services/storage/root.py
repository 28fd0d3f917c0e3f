"""
Storage Root Pointer

The active storage root is recorded in a small JSON file outside the root
itself (StorageSettings.pointer_file). Changing roots copies the whole tree
through the atomic writer and only then rewrites the pointer, so the pointer
never names a root without a database file.
"""

import shutil
from pathlib import Path

import structlog

from invoicebook.models.base import utcnow
from invoicebook.services.storage.atomic import atomic_copy, atomic_write_json, read_json
from invoicebook.services.storage.database_store import DATABASE_FILE_NAME
from invoicebook.services.storage.interface import CorruptDocumentError, StorageError


logger = structlog.get_logger(__name__)


class StorageRootPointer:
    """Reads and writes the file that names the active storage root."""

    def __init__(self, pointer_file: Path, default_root: Path):
        self._pointer_file = Path(pointer_file)
        self._default_root = Path(default_root)

    @property
    def pointer_file(self) -> Path:
        return self._pointer_file

    def read(self) -> Path:
        """
        Active root, or the default root when no pointer was written yet.

        An unreadable pointer falls back to the default root with a warning.
        """
        if not self._pointer_file.exists():
            return self._default_root
        try:
            data = read_json(self._pointer_file)
        except (CorruptDocumentError, OSError) as e:
            logger.warning("storage_pointer_unreadable", path=str(self._pointer_file), error=str(e))
            return self._default_root

        root = data.get("root") if isinstance(data, dict) else None
        if not root:
            logger.warning("storage_pointer_empty", path=str(self._pointer_file))
            return self._default_root
        return Path(root)

    def write(self, root: Path) -> None:
        atomic_write_json(
            self._pointer_file,
            {"root": str(Path(root)), "updatedAt": utcnow().isoformat()},
        )


def copy_tree_atomically(source_root: Path, target_root: Path, files: list[Path]) -> int:
    """
    Copy `files` (all under `source_root`) to the same relative paths under
    `target_root`, each through the atomic writer.

    Returns:
        Number of files copied
    """
    source_root = Path(source_root)
    target_root = Path(target_root)
    copied = 0
    for path in files:
        relative = Path(path).relative_to(source_root)
        atomic_copy(path, target_root / relative)
        copied += 1
    return copied


def verify_root(root: Path) -> None:
    """Raise StorageError unless `root` holds a database file."""
    if not (Path(root) / DATABASE_FILE_NAME).is_file():
        raise StorageError(f"No {DATABASE_FILE_NAME} found in {root}")


def remove_tree(root: Path) -> bool:
    """
    Best-effort removal of an old storage tree.

    Only InvoiceBook's own files are removed (database.json and the two
    document directories); anything else the user keeps there survives.
    Returns False if something could not be removed.
    """
    root = Path(root)
    ok = True
    targets = [Path(DATABASE_FILE_NAME), Path("offers"), Path("invoices")]
    for relative in targets:
        target = root / relative
        try:
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()
        except OSError as e:
            ok = False
            logger.warning("old_storage_cleanup_failed", path=str(target), error=str(e))
    return ok
