"""
Atomic File Writer

Every file InvoiceBook persists goes through this module.

The pattern: write to a temporary file in the target's directory, flush and
fsync it, then os.replace() it over the target. os.replace is atomic on a
single filesystem, so a reader (or a crash) only ever sees the old bytes or
the new bytes. Temporary files are hidden ('.' prefix) and end in '.tmp' so
directory scans never mistake them for documents.

The rename is retried briefly on PermissionError: on Windows a virus scanner
or indexer can hold the target open for a moment.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from invoicebook.services.storage.interface import CorruptDocumentError, WriteFailedError


TEMP_SUFFIX = ".tmp"


@retry(
    retry=retry_if_exception_type(PermissionError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, max=0.5),
    reraise=True,
)
def _replace(source: str, target: Path) -> None:
    os.replace(source, target)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Atomically replace `path` with `data`.

    The parent directory is created if missing. On any failure the temporary
    file is removed, the target is left untouched and WriteFailedError is
    raised.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteFailedError(str(path), e) from e

    fd = None
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=TEMP_SUFFIX,
        )
        with os.fdopen(fd, "wb") as handle:
            fd = None
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        _replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise WriteFailedError(str(path), e) from e
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass


def serialize(value: Any) -> bytes:
    """JSON-encode a value (pydantic models use their on-disk aliases)."""
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    return (json.dumps(value, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def atomic_write_json(path: Path, value: Any) -> None:
    """Serialize `value` to JSON and write it atomically to `path`."""
    try:
        data = serialize(value)
    except (TypeError, ValueError) as e:
        raise WriteFailedError(str(path), e) from e
    atomic_write_bytes(path, data)


def atomic_copy(source: Path, target: Path) -> None:
    """Copy a file byte for byte using the atomic write discipline."""
    try:
        data = Path(source).read_bytes()
    except OSError as e:
        raise WriteFailedError(str(target), e) from e
    atomic_write_bytes(target, data)


def read_json(path: Path) -> Any:
    """
    Read and parse a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        CorruptDocumentError: If the content is not valid JSON
    """
    path = Path(path)
    raw = path.read_bytes()
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptDocumentError(str(path), f"invalid JSON ({e})") from e
