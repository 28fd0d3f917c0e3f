"""
Integration tests for the directory flow and storage root management.
"""

import asyncio
import json
import logging
from decimal import Decimal

import pytest
import structlog

from invoicebook.audit import AuditLogger, configure_logging
from invoicebook.models import DocumentType
from invoicebook.models.audit import AuditEventType
from invoicebook.orchestrator import InvoiceBook, open_invoice_book
from invoicebook.services.storage import NotFoundError, RootRetiredError
from invoicebook.validation import ValidationFailedError


class RecordingAuditLogger(AuditLogger):
    """Keeps events in memory instead of only logging them."""

    def __init__(self):
        super().__init__()
        self.events = []

    def log(self, event):
        self.events.append(event)
        return super().log(event)


def _invoice_payload(customer_id):
    return {
        "documentType": "invoice",
        "customerId": customer_id,
        "items": [{"description": "Consulting", "quantity": "4", "unitPrice": "95"}],
    }


BUSINESS = {
    "name": "Studio Noord",
    "address": {"street": "Oudegracht 10", "city": "Utrecht", "postalCode": "3511 AB", "country": "NL"},
    "phone": "+31 30 000 0000",
    "email": "hello@studionoord.nl",
}


class TestCustomers:

    def test_create_and_list(self, book, customer_payload):
        async def scenario():
            await book.directory.create_customer({**customer_payload, "name": "Zeta"})
            await book.directory.create_customer(customer_payload)
            return await book.directory.list_customers()

        customers = asyncio.run(scenario())
        assert [c.name for c in customers] == ["Jan de Vries", "Zeta"]
        assert customers[0].address.postal_code == "1015 AA"

    def test_update_merges_address(self, book, customer_payload):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            await book.directory.update_customer(customer.id, {"email": "new@acme.nl", "address": {"city": "Haarlem"}})
            return await book.directory.get_customer(customer.id)

        customer = asyncio.run(scenario())
        assert customer.email == "new@acme.nl"
        assert customer.address.city == "Haarlem"
        assert customer.address.street == "Keizersgracht 1"

    def test_invalid_payload(self, book):
        with pytest.raises(ValidationFailedError, match="email"):
            asyncio.run(book.directory.create_customer({"name": "No Email"}))

    def test_invalid_update_is_not_saved(self, book, customer_payload):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            with pytest.raises(ValidationFailedError):
                await book.directory.update_customer(customer.id, {"name": None})
            return await book.directory.get_customer(customer.id)

        assert asyncio.run(scenario()).name == "Jan de Vries"

    def test_unknown_customer(self, book):
        with pytest.raises(NotFoundError):
            asyncio.run(book.directory.update_customer("missing", {"name": "X"}))
        with pytest.raises(NotFoundError):
            asyncio.run(book.directory.delete_customer("missing"))

    def test_delete(self, book, customer_payload):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            await book.directory.delete_customer(customer.id)
            return await book.directory.list_customers()

        assert asyncio.run(scenario()) == []


class TestProducts:

    def test_product_lifecycle(self, book):
        async def scenario():
            product = await book.directory.create_product({"description": "Hourly rate", "defaultPrice": "95.00"})
            updated = await book.directory.update_product(product.id, {"defaultPrice": "105"})
            listed = await book.directory.list_products()
            await book.directory.delete_product(product.id)
            remaining = await book.directory.list_products()
            return updated, listed, remaining

        updated, listed, remaining = asyncio.run(scenario())
        assert updated.default_price == Decimal("105")
        assert updated.description == "Hourly rate"
        assert len(listed) == 1
        assert remaining == []

    def test_negative_price_rejected(self, book):
        with pytest.raises(ValidationFailedError):
            asyncio.run(book.directory.create_product({"description": "X", "defaultPrice": "-1"}))


class TestBusinessProfile:

    def test_first_save_requires_contact_details(self, book):
        with pytest.raises(ValidationFailedError, match="Business"):
            asyncio.run(book.directory.update_business({"name": "Studio Noord"}))

    def test_missing_profile(self, book):
        with pytest.raises(NotFoundError):
            asyncio.run(book.directory.get_business())

    def test_partial_updates_merge(self, book):
        async def scenario():
            await book.directory.update_business(BUSINESS)
            await book.directory.update_business({"bankDetails": {"iban": "NL91ABNA0417164300"}})
            await book.directory.update_business({"bankDetails": {"bic": "ABNANL2A"}, "address": {"city": "Amersfoort"}})
            return await book.directory.get_business()

        business = asyncio.run(scenario())
        assert business.name == "Studio Noord"
        assert business.bank_details.iban == "NL91ABNA0417164300"
        assert business.bank_details.bic == "ABNANL2A"
        assert business.address.city == "Amersfoort"
        assert business.address.street == "Oudegracht 10"


class TestSettings:

    def test_labels_merge_and_apply_to_new_documents(self, book, customer_payload):
        async def scenario():
            settings = await book.directory.update_settings({"labels": {"invoiceTitle": "Factuur"}})
            customer = await book.directory.create_customer(customer_payload)
            invoice = await book.documents.create_document(_invoice_payload(customer.id))
            return settings, invoice

        settings, invoice = asyncio.run(scenario())
        assert settings.labels.invoice_title == "Factuur"
        assert settings.labels.offer_title == "Quote"
        assert invoice.document_title == "Factuur"

    def test_snake_case_label_keys(self, book):
        settings = asyncio.run(book.directory.update_settings({"labels": {"total_label": "Totaal"}}))
        assert settings.labels.total_label == "Totaal"

    @pytest.mark.parametrize("payload", [
        {"invoiceNumberFormat": "{PREFIX}-{CLIENT}"},
        {"offerNumberFormat": ""},
        {"invoicePrefix": "INV/"},
        {"invoicePrefix": ".inv"},
        {"offerNumberFormat": ".{PREFIX}-{NUMBER}"},
        {"invoicePrefix": "", "invoiceNumberFormat": "{PREFIX}.{NUMBER}"},
        {"labels": {"unknownLabel": "x"}},
        {"fiscalYearStartMonth": 0},
        {"invoiceCountersByYear": {"2026": 0}},
    ])
    def test_invalid_updates_change_nothing(self, book, root, payload):
        async def scenario():
            await book.open()
            before = (root / "database.json").read_bytes()
            with pytest.raises(ValidationFailedError):
                await book.directory.update_settings(payload)
            return before

        before = asyncio.run(scenario())
        assert (root / "database.json").read_bytes() == before

    def test_hidden_number_prefix_never_reaches_a_document(self, book, customer_payload):
        """A number starting with '.' would be invisible to every listing."""
        async def scenario():
            with pytest.raises(ValidationFailedError, match="cannot start with"):
                await book.directory.update_settings({"invoicePrefix": ".inv"})
            customer = await book.directory.create_customer(customer_payload)
            invoice = await book.documents.create_document(_invoice_payload(customer.id))
            listed = await book.documents.list_documents(DocumentType.INVOICE)
            return invoice, listed

        invoice, listed = asyncio.run(scenario())
        assert invoice.document_number.startswith("INV-")
        assert [d.id for d in listed] == [invoice.id]

    def test_counter_edit(self, book):
        settings = asyncio.run(book.directory.update_settings({
            "nextInvoiceNumber": 50,
            "invoiceCountersByYear": {"2026": 12},
        }))
        assert settings.next_invoice_number == 50
        assert settings.invoice_counters_by_year == {"2026": 12}


class TestStorageRoot:

    def _populate(self, book, customer_payload):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            return await book.documents.create_document(_invoice_payload(customer.id))

        return scenario()

    def test_change_root_copies_everything(self, book, root, pointer, tmp_path, customer_payload):
        new_root = tmp_path / "moved"

        async def scenario():
            invoice = await self._populate(book, customer_payload)
            await book.change_storage_root(new_root)
            documents = await book.documents.list_documents()
            customers = await book.directory.list_customers()
            return invoice, documents, customers

        invoice, documents, customers = asyncio.run(scenario())

        assert book.root == new_root
        assert pointer.read() == new_root
        assert (new_root / "database.json").is_file()
        assert (new_root / "invoices" / invoice.year / f"{invoice.document_number}.json").is_file()
        assert [d.id for d in documents] == [invoice.id]
        assert len(customers) == 1
        # old data kept unless asked otherwise
        assert (root / "database.json").is_file()

    def test_change_root_and_delete_old(self, book, root, tmp_path, customer_payload):
        new_root = tmp_path / "moved"

        async def scenario():
            await self._populate(book, customer_payload)
            await book.change_storage_root(new_root, delete_old=True)
            return await book.documents.list_documents()

        documents = asyncio.run(scenario())
        assert len(documents) == 1
        assert not (root / "database.json").exists()
        assert not (root / "invoices").exists()

    def test_writes_go_to_new_root(self, book, root, tmp_path, customer_payload):
        new_root = tmp_path / "moved"

        async def scenario():
            await book.open()
            await book.change_storage_root(new_root)
            await book.directory.create_customer(customer_payload)

        asyncio.run(scenario())
        moved = json.loads((new_root / "database.json").read_text(encoding="utf-8"))
        original = json.loads((root / "database.json").read_text(encoding="utf-8"))
        assert len(moved["customers"]) == 1
        assert original["customers"] == []

    def test_edit_queued_during_move_is_not_lost(self, book, root, tmp_path, customer_payload):
        """An edit waiting on its document while the root moves fails loudly."""
        new_root = tmp_path / "moved"

        async def settle():
            for _ in range(10):
                await asyncio.sleep(0)

        async def scenario():
            invoice = await self._populate(book, customer_payload)
            old_flow = book.documents
            in_progress = book.repository.lock_for(invoice.id)
            await in_progress.acquire()

            move = asyncio.create_task(book.change_storage_root(new_root))
            await settle()
            late_edit = asyncio.create_task(old_flow.update_document(invoice.id, {"notesText": "late"}))
            await settle()
            in_progress.release()

            await move
            with pytest.raises(RootRetiredError):
                await late_edit
            with pytest.raises(RootRetiredError):
                await old_flow.update_document(invoice.id, {"notesText": "later"})

            retried = await book.documents.update_document(invoice.id, {"notesText": "retried"})
            return invoice, retried

        invoice, retried = asyncio.run(scenario())
        assert retried.notes_text == "retried"
        moved = json.loads(
            (new_root / "invoices" / invoice.year / f"{invoice.document_number}.json").read_text(encoding="utf-8")
        )
        assert moved["document"]["notesText"] == "retried"

    def test_same_root_rejected(self, book, root):
        with pytest.raises(ValidationFailedError, match="same"):
            asyncio.run(book.change_storage_root(root))

    def test_open_invoice_book_follows_pointer(self, tmp_path, monkeypatch, customer_payload):
        pointer_file = tmp_path / "cfg" / "storage-root.json"
        monkeypatch.setenv("INVOICEBOOK_STORAGE_DEFAULT_ROOT", str(tmp_path / "default"))
        monkeypatch.setenv("INVOICEBOOK_STORAGE_POINTER_FILE", str(pointer_file))

        async def scenario():
            first = await open_invoice_book()
            await first.directory.create_customer(customer_payload)
            await first.change_storage_root(tmp_path / "elsewhere")
            second = await open_invoice_book()
            return first, second, await second.directory.list_customers()

        first, second, customers = asyncio.run(scenario())
        assert second.root == tmp_path / "elsewhere"
        assert len(customers) == 1


class TestReset:

    def test_reset_all_data(self, book, root, customer_payload):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            await book.documents.create_document(_invoice_payload(customer.id))
            await book.reset_all_data()
            return (
                await book.directory.list_customers(),
                await book.documents.list_documents(),
                await book.directory.get_settings(),
            )

        customers, documents, settings = asyncio.run(scenario())
        assert customers == []
        assert documents == []
        assert settings.next_invoice_number == 1
        assert (root / "invoices").is_dir()
        assert (root / "offers").is_dir()


class TestAuditTrail:

    def test_mutations_are_audited(self, root, pointer, customer_payload):
        audit = RecordingAuditLogger()
        book = InvoiceBook(root, pointer=pointer, audit_logger=audit)

        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document({**_invoice_payload(customer.id), "documentType": "offer"})
            await book.documents.convert_offer({"offerId": offer.id})

        asyncio.run(scenario())
        types = [event.event_type for event in audit.events]

        assert types[0] == AuditEventType.DATABASE_CREATED
        assert AuditEventType.CUSTOMER_CREATED in types
        assert types.count(AuditEventType.DOCUMENT_CREATED) == 2
        assert types[-1] == AuditEventType.OFFER_CONVERTED
        created = [e for e in audit.events if e.event_type == AuditEventType.DOCUMENT_CREATED]
        converted = audit.events[-1]
        assert created[-1].correlation_id == converted.correlation_id
        assert created[-1].entity_type == DocumentType.INVOICE.value


class TestStartupLogging:
    """open_invoice_book applies the logging settings before anything logs."""

    @pytest.fixture(autouse=True)
    def storage_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("INVOICEBOOK_STORAGE_DEFAULT_ROOT", str(tmp_path / "default"))
        monkeypatch.setenv("INVOICEBOOK_STORAGE_POINTER_FILE", str(tmp_path / "cfg" / "storage-root.json"))
        previous = logging.getLogger().level
        yield
        configure_logging(logging.getLevelName(previous), json_logs=True)

    def test_level_and_renderer_from_environment(self, monkeypatch):
        monkeypatch.setenv("INVOICEBOOK_LOG_LEVEL", "warning")
        monkeypatch.setenv("INVOICEBOOK_JSON_LOGS", "false")

        asyncio.run(open_invoice_book())

        assert logging.getLogger().level == logging.WARNING
        assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)

    def test_debug_mode_forces_debug_level(self, monkeypatch):
        monkeypatch.setenv("INVOICEBOOK_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("INVOICEBOOK_DEBUG_MODE", "true")

        asyncio.run(open_invoice_book())

        assert logging.getLogger().level == logging.DEBUG
        assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)
