"""
Tests for the JSON document repository.
"""

import asyncio
import gc
import json
from datetime import datetime, timezone

import pytest

from invoicebook.models import CURRENT_DOCUMENT_VERSION, DocumentType
from invoicebook.services.storage import NotFoundError, VersionTooNewError


class TestDocumentRepository:

    def test_save_writes_envelope_at_expected_path(self, repository, root, make_document):
        document = make_document()
        asyncio.run(repository.save(document))

        path = root / "invoices" / "2026" / "INV-2026-0001.json"
        assert path.is_file()
        envelope = json.loads(path.read_text(encoding="utf-8"))
        assert envelope["version"] == CURRENT_DOCUMENT_VERSION
        assert envelope["document"]["id"] == document.id
        assert envelope["document"]["documentNumber"] == "INV-2026-0001"

    def test_offers_and_invoices_are_separate(self, repository, root, make_document):
        offer = make_document(document_type=DocumentType.OFFER, number="OFF-2026-0001")
        asyncio.run(repository.save(offer))
        assert (root / "offers" / "2026" / "OFF-2026-0001.json").is_file()
        assert repository.number_exists(DocumentType.OFFER, "2026", "OFF-2026-0001")
        assert not repository.number_exists(DocumentType.INVOICE, "2026", "OFF-2026-0001")

    def test_load_by_id_and_number(self, repository, make_document):
        document = make_document()

        async def scenario():
            await repository.save(document)
            by_id = await repository.load(DocumentType.INVOICE, document.id)
            by_number = await repository.load_by_number(DocumentType.INVOICE, "INV-2026-0001")
            missing = await repository.load(DocumentType.INVOICE, "nope")
            return by_id, by_number, missing

        by_id, by_number, missing = asyncio.run(scenario())
        assert by_id == document
        assert by_number == document
        assert missing is None

    def test_list_is_newest_first(self, repository, make_document):
        older = make_document(number="INV-2025-0009", created_at=datetime(2025, 11, 1, tzinfo=timezone.utc))
        newer = make_document(number="INV-2026-0001", created_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
        newest = make_document(number="INV-2026-0002", created_at=datetime(2026, 3, 1, tzinfo=timezone.utc))

        async def scenario():
            for document in (newer, older, newest):
                await repository.save(document)
            return await repository.list_summaries(DocumentType.INVOICE)

        summaries = asyncio.run(scenario())
        assert [s.document_number for s in summaries] == ["INV-2026-0002", "INV-2026-0001", "INV-2025-0009"]

    def test_corrupt_file_is_skipped(self, repository, root, make_document):
        good = make_document()
        asyncio.run(repository.save(good))
        (root / "invoices" / "2026" / "INV-2026-0099.json").write_text("{broken", encoding="utf-8")
        (root / "invoices" / "2026" / "INV-2026-0098.json").write_text('{"version": "1.0.0"}', encoding="utf-8")

        documents = asyncio.run(repository.list_documents(DocumentType.INVOICE))
        assert [d.id for d in documents] == [good.id]

    @pytest.mark.parametrize("version", [None, 3, "", "one.two"])
    def test_malformed_envelope_version_is_skipped(self, repository, root, make_document, version):
        good = make_document(number="INV-2026-0001")
        broken = make_document(number="INV-2026-0002")

        async def scenario():
            await repository.save(good)
            await repository.save(broken)
            path = root / "invoices" / "2026" / "INV-2026-0002.json"
            envelope = json.loads(path.read_text(encoding="utf-8"))
            if version is None:
                del envelope["version"]
            else:
                envelope["version"] = version
            path.write_text(json.dumps(envelope), encoding="utf-8")
            listed = await repository.list_documents(DocumentType.INVOICE)
            by_id = await repository.load(DocumentType.INVOICE, good.id)
            return listed, by_id

        listed, by_id = asyncio.run(scenario())
        assert [d.id for d in listed] == [good.id]
        assert by_id == good

    def test_schema_mismatch_is_skipped(self, repository, root, make_document):
        good = make_document()
        asyncio.run(repository.save(good))
        bad = json.loads((root / "invoices" / "2026" / "INV-2026-0001.json").read_text(encoding="utf-8"))
        bad["document"]["total"] = "not money"
        (root / "invoices" / "2026" / "INV-2026-0002.json").write_text(json.dumps(bad), encoding="utf-8")

        documents = asyncio.run(repository.list_documents())
        assert len(documents) == 1

    def test_temp_and_hidden_files_are_ignored(self, repository, root, make_document):
        asyncio.run(repository.save(make_document()))
        year_dir = root / "invoices" / "2026"
        (year_dir / ".INV-2026-0001.json.abc123.tmp").write_text("{", encoding="utf-8")
        (year_dir / ".hidden.json").write_text("{", encoding="utf-8")

        assert len(list(repository.iter_files())) == 1

    def test_document_in_wrong_directory_is_skipped(self, repository, root, make_document):
        offer = make_document(document_type=DocumentType.OFFER, number="OFF-2026-0001")
        asyncio.run(repository.save(offer))
        misplaced = root / "invoices" / "2026" / "OFF-2026-0001.json"
        misplaced.parent.mkdir(parents=True)
        misplaced.write_bytes((root / "offers" / "2026" / "OFF-2026-0001.json").read_bytes())

        assert asyncio.run(repository.list_documents(DocumentType.INVOICE)) == []

    def test_newer_document_version_is_fatal(self, repository, root, make_document):
        asyncio.run(repository.save(make_document()))
        path = root / "invoices" / "2026" / "INV-2026-0001.json"
        envelope = json.loads(path.read_text(encoding="utf-8"))
        envelope["version"] = "5.0.0"
        path.write_text(json.dumps(envelope), encoding="utf-8")

        with pytest.raises(VersionTooNewError):
            asyncio.run(repository.list_documents())

    def test_delete(self, repository, root, make_document):
        document = make_document()

        async def scenario():
            await repository.save(document)
            await repository.delete(document)
            return await repository.list_documents()

        assert asyncio.run(scenario()) == []
        assert not (root / "invoices" / "2026" / "INV-2026-0001.json").exists()

    def test_delete_missing_file(self, repository, make_document):
        with pytest.raises(NotFoundError):
            asyncio.run(repository.delete(make_document()))

    def test_empty_root_lists_nothing(self, repository):
        assert asyncio.run(repository.list_documents()) == []


class TestDocumentLocks:

    def test_lock_is_shared_while_held(self, repository):
        async def scenario():
            lock = repository.lock_for("doc-1")
            async with lock:
                assert repository.lock_for("doc-1") is lock
                assert repository.lock_for("doc-2") is not lock

        asyncio.run(scenario())

    def test_idle_locks_are_released(self, repository, make_document):
        documents = [make_document(number=f"INV-2026-{n:04d}") for n in range(1, 6)]

        async def scenario():
            for document in documents:
                await repository.save(document)
            for document in documents:
                await repository.delete(document)

        asyncio.run(scenario())
        gc.collect()
        assert len(repository._locks) == 0
