"""
Forward-only migrations for the database file and document envelopes.

Every step is a pure function on the parsed JSON (plain dicts) that returns
the next shape. Steps run in strict sequence, never skipping a version, and
each one returns its input unchanged when the version does not match, so
running a step twice is harmless.

The caller writes the result back only after the whole chain succeeded.
A failing step therefore leaves the file on disk untouched.
"""

from types import ModuleType

import structlog

from invoicebook.models.database import CURRENT_DATABASE_VERSION, CURRENT_DOCUMENT_VERSION
from invoicebook.services.storage.interface import MigrationFailedError, VersionTooNewError
from invoicebook.services.storage.migrations import (
    v1_0_0_to_v1_1_0,
    v1_1_0_to_v1_2_0,
    v1_2_0_to_v1_3_0,
)


logger = structlog.get_logger(__name__)

# Database migrations in order. To add one: create v{from}_to_v{to}.py with
# from_version, to_version and migrate(), append it here and bump
# CURRENT_DATABASE_VERSION.
DATABASE_MIGRATIONS: list[ModuleType] = [
    v1_0_0_to_v1_1_0,
    v1_1_0_to_v1_2_0,
    v1_2_0_to_v1_3_0,
]

# Document envelopes have not changed shape since 1.0.0.
DOCUMENT_MIGRATIONS: list[ModuleType] = []


def parse_version(version: str) -> tuple[int, ...]:
    try:
        return tuple(int(part) for part in str(version).split("."))
    except ValueError:
        raise ValueError(f"Invalid version string: {version!r}")


def compare_versions(a: str, b: str) -> int:
    """
    Compare two semantic versions.

    Returns:
        negative if a < b, 0 if equal, positive if a > b
    """
    parts_a = parse_version(a)
    parts_b = parse_version(b)
    width = max(len(parts_a), len(parts_b))
    parts_a += (0,) * (width - len(parts_a))
    parts_b += (0,) * (width - len(parts_b))
    return (parts_a > parts_b) - (parts_a < parts_b)


def needs_migration(version: str, current_version: str = CURRENT_DATABASE_VERSION) -> bool:
    return compare_versions(version, current_version) < 0


def run_migrations(
    data: dict,
    current_version: str = CURRENT_DATABASE_VERSION,
    migrations: list[ModuleType] = DATABASE_MIGRATIONS,
    source: str = "database",
) -> tuple[dict, list[tuple[str, str]]]:
    """
    Bring `data` up to `current_version`.

    Returns:
        (migrated_data, applied_steps) where applied_steps lists
        (from_version, to_version) pairs in the order they ran

    Raises:
        VersionTooNewError: The data is newer than this code understands
        MigrationFailedError: A step raised, or the chain has a gap
    """
    version = data.get("version")
    if not isinstance(version, str):
        raise MigrationFailedError(str(version), current_version, ValueError("missing version"))

    try:
        comparison = compare_versions(version, current_version)
    except ValueError as e:
        raise MigrationFailedError(version, current_version, e) from e
    if comparison > 0:
        raise VersionTooNewError(source, version, current_version)
    if comparison == 0:
        return data, []

    logger.info("migration_started", source=source, from_version=version, to_version=current_version)

    applied: list[tuple[str, str]] = []
    for step in migrations:
        if compare_versions(version, step.from_version) != 0:
            continue
        try:
            data = step.migrate(data)
        except Exception as e:
            raise MigrationFailedError(step.from_version, step.to_version, e) from e
        if data.get("version") != step.to_version:
            raise MigrationFailedError(
                step.from_version,
                step.to_version,
                ValueError(f"step produced version {data.get('version')!r}"),
            )
        applied.append((step.from_version, step.to_version))
        version = step.to_version

    if compare_versions(version, current_version) != 0:
        raise MigrationFailedError(
            version,
            current_version,
            ValueError(f"no migration registered from v{version}"),
        )

    logger.info("migration_completed", source=source, steps=len(applied), version=version)
    return data, applied


def migrate_database(data: dict, source: str = "database") -> tuple[dict, list[tuple[str, str]]]:
    return run_migrations(data, CURRENT_DATABASE_VERSION, DATABASE_MIGRATIONS, source)


def migrate_document_envelope(data: dict, source: str = "document") -> tuple[dict, list[tuple[str, str]]]:
    return run_migrations(data, CURRENT_DOCUMENT_VERSION, DOCUMENT_MIGRATIONS, source)


__all__ = [
    "DATABASE_MIGRATIONS",
    "DOCUMENT_MIGRATIONS",
    "compare_versions",
    "migrate_database",
    "migrate_document_envelope",
    "needs_migration",
    "parse_version",
    "run_migrations",
]
