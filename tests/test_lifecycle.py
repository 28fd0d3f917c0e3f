"""
Tests for totals, the status lifecycle and offer -> invoice conversion.
"""

import asyncio
import random
from datetime import timedelta
from decimal import Decimal

import pytest

from invoicebook.lifecycle import (
    InvalidTransitionError,
    PartialConversionError,
    apply_status_change,
    build_items,
    compute_totals,
    effective_status,
)
from invoicebook.models import DocumentItemInput, DocumentStatus, DocumentType, to_cents
from invoicebook.orchestrator import DocumentFlow
from invoicebook.services.storage import WriteFailedError
from invoicebook.validation import ValidationFailedError


def _items(*lines):
    return build_items([
        DocumentItemInput(description=f"Line {n}", quantity=Decimal(q), unit_price=Decimal(p))
        for n, (q, p) in enumerate(lines)
    ])


QUANTITIES = ["0", "1", "2", "0.5", "3.333", "12"]
PRICES = ["0", "0.01", "9.99", "19.995", "100", "1250.50"]
TAX_RATES = ["0", "6.5", "9", "21"]


class TestTotals:

    def test_totals(self):
        subtotal, tax, total = compute_totals(_items(("2", "19.99")), Decimal("21"))
        assert subtotal == Decimal("39.98")
        assert tax == Decimal("8.40")
        assert total == Decimal("48.38")

    def test_tax_rounds_half_up(self):
        # 12.50 * 9% = 1.125
        subtotal, tax, total = compute_totals(_items(("1", "12.50")), Decimal("9"))
        assert tax == Decimal("1.13")
        assert total == Decimal("13.63")

    def test_fractional_quantities(self):
        subtotal, _, _ = compute_totals(_items(("1.5", "80"), ("0.25", "10")), Decimal("0"))
        assert subtotal == Decimal("122.50")

    def test_no_items(self):
        assert compute_totals([], Decimal("21")) == (Decimal("0.00"), Decimal("0.00"), Decimal("0.00"))

    @pytest.mark.parametrize("seed", range(25))
    def test_invariants_hold_for_generated_items(self, seed):
        rng = random.Random(seed)
        lines = [(rng.choice(QUANTITIES), rng.choice(PRICES)) for _ in range(rng.randint(1, 8))]
        # every set carries at least one zero line
        lines.append(("0", rng.choice(PRICES)) if seed % 2 else (rng.choice(QUANTITIES), "0"))
        rate = Decimal(rng.choice(TAX_RATES))

        items = _items(*lines)
        subtotal, tax, total = compute_totals(items, rate)

        for item, (quantity, price) in zip(items, lines):
            assert item.total == to_cents(Decimal(quantity) * Decimal(price))
        assert subtotal == sum(item.total for item in items)
        assert tax == to_cents(subtotal * rate / 100)
        assert total == subtotal + tax


class TestStatusLifecycle:

    def test_change_appends_history(self, make_document, now):
        document = make_document()
        entry = apply_status_change(document, DocumentStatus.SENT, now, note="emailed")

        assert document.status == DocumentStatus.SENT
        assert len(document.status_history) == 2
        assert entry.from_status == DocumentStatus.DRAFT
        assert entry.to_status == DocumentStatus.SENT
        assert entry.note == "emailed"

    def test_same_status_is_a_no_op(self, make_document, now):
        document = make_document(status=DocumentStatus.SENT)
        assert apply_status_change(document, DocumentStatus.SENT, now) is None
        assert len(document.status_history) == 2

    def test_status_must_belong_to_type(self, make_document, now):
        offer = make_document(document_type=DocumentType.OFFER, number="OFF-2026-0001")
        with pytest.raises(InvalidTransitionError, match="not a valid offer status"):
            apply_status_change(offer, DocumentStatus.PAID, now)
        assert offer.status == DocumentStatus.DRAFT

    def test_terminal_states_can_be_left_by_default(self, make_document, now):
        document = make_document(status=DocumentStatus.CANCELLED)
        apply_status_change(document, DocumentStatus.DRAFT, now)
        assert document.status == DocumentStatus.DRAFT

    def test_terminal_states_locked_when_enforced(self, make_document, now):
        document = make_document(status=DocumentStatus.PAID)
        with pytest.raises(InvalidTransitionError, match="terminal"):
            apply_status_change(document, DocumentStatus.SENT, now, enforce_terminal=True)

    def test_sent_invoice_past_due_reads_as_overdue(self, make_document, now):
        document = make_document(status=DocumentStatus.SENT, created_at=now - timedelta(days=20))
        assert effective_status(document, now) == DocumentStatus.OVERDUE
        assert document.status == DocumentStatus.SENT

    def test_offers_are_never_overdue(self, make_document, now):
        offer = make_document(
            document_type=DocumentType.OFFER,
            number="OFF-2026-0001",
            status=DocumentStatus.SENT,
            created_at=now - timedelta(days=60),
        )
        assert effective_status(offer, now) == DocumentStatus.SENT


def _offer_payload(customer_id):
    return {
        "documentType": "offer",
        "customerId": customer_id,
        "items": [
            {"description": "Website", "quantity": "1", "unitPrice": "1500"},
            {"description": "Hosting", "quantity": "12", "unitPrice": "10"},
        ],
        "introText": "As discussed",
        "paymentTermDays": 30,
    }


class TestDocumentFlow:

    def test_create_offer(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            return await book.documents.create_document(_offer_payload(customer.id), now=now)

        offer = asyncio.run(scenario())
        assert offer.document_number == "OFF-2026-0001"
        assert offer.document_title == "Quote"
        assert offer.status == DocumentStatus.DRAFT
        assert offer.subtotal == Decimal("1620.00")
        assert offer.tax_amount == Decimal("340.20")
        assert offer.due_date == now + timedelta(days=30)
        assert offer.customer.name == "Jan de Vries"
        assert offer.customer.city == "Amsterdam"

    def test_update_recomputes_totals(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            return await book.documents.update_document(
                offer.id,
                {"items": [{"description": "Website", "quantity": "2", "unitPrice": "100"}], "taxRate": "9"},
            )

        updated = asyncio.run(scenario())
        assert updated.subtotal == Decimal("200.00")
        assert updated.tax_amount == Decimal("18.00")
        assert updated.total == Decimal("218.00")

    def test_tax_rate_only_update_recomputes(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            return await book.documents.update_document(offer.id, {"taxRate": 0})

        updated = asyncio.run(scenario())
        assert updated.tax_amount == Decimal("0.00")
        assert updated.total == updated.subtotal

    def test_payment_term_moves_due_date(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            return await book.documents.update_document(offer.id, {"paymentTermDays": 7})

        updated = asyncio.run(scenario())
        assert updated.due_date == now + timedelta(days=7)

    def test_status_update_is_persisted_with_history(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            await book.documents.change_status(offer.id, DocumentStatus.SENT, note="mailed")
            await book.documents.change_status(offer.id, DocumentStatus.REJECTED)
            return await book.documents.get_document(DocumentType.OFFER, offer.id)

        offer = asyncio.run(scenario())
        assert offer.status == DocumentStatus.REJECTED
        assert [e.to_status for e in offer.status_history] == [
            DocumentStatus.DRAFT, DocumentStatus.SENT, DocumentStatus.REJECTED,
        ]
        assert offer.status_history[1].note == "mailed"

    def test_history_is_append_only_across_updates(self, book, customer_payload, now):
        """K status changes through update_document leave K + 1 chained entries."""
        transitions = [
            DocumentStatus.SENT,
            DocumentStatus.OVERDUE,
            DocumentStatus.CANCELLED,
            DocumentStatus.DRAFT,
            DocumentStatus.SENT,
            DocumentStatus.PAID,
        ]

        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            invoice = await book.documents.create_document(
                {**_offer_payload(customer.id), "documentType": "invoice"}, now=now
            )
            for step, status in enumerate(transitions):
                await book.documents.update_document(
                    invoice.id,
                    {"status": status.value, "statusNote": f"step {step}"},
                    now=now + timedelta(hours=step + 1),
                )
            return await book.documents.get_document(DocumentType.INVOICE, invoice.id)

        invoice = asyncio.run(scenario())
        history = invoice.status_history

        assert len(history) == len(transitions) + 1
        assert history[0].from_status is None
        for previous, entry in zip(history, history[1:]):
            assert entry.from_status == previous.to_status
        assert [e.to_status for e in history[1:]] == transitions
        assert invoice.status == DocumentStatus.PAID

    def test_zero_lines_are_accepted(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            created = await book.documents.create_document({
                "documentType": "invoice",
                "customerId": customer.id,
                "items": [
                    {"description": "Free intake", "quantity": "0", "unitPrice": "50"},
                    {"description": "Goodwill", "quantity": "3", "unitPrice": "0"},
                    {"description": "Work", "quantity": "2", "unitPrice": "40"},
                ],
            }, now=now)
            reloaded = await book.documents.get_document(DocumentType.INVOICE, created.id)
            return created, reloaded

        created, reloaded = asyncio.run(scenario())
        assert [item.total for item in created.items] == [Decimal("0.00"), Decimal("0.00"), Decimal("80.00")]
        assert created.subtotal == Decimal("80.00")
        assert created.total == Decimal("96.80")
        assert reloaded == created

    def test_customer_edit_does_not_touch_snapshot(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            await book.directory.update_customer(customer.id, {"name": "Someone Else"})
            await book.directory.delete_customer(customer.id)
            return await book.documents.get_document(DocumentType.OFFER, offer.id)

        offer = asyncio.run(scenario())
        assert offer.customer.name == "Jan de Vries"

    def test_list_filters_by_effective_status(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            invoice = await book.documents.create_document(
                {**_offer_payload(customer.id), "documentType": "invoice", "paymentTermDays": 5},
                now=now - timedelta(days=10),
            )
            await book.documents.change_status(invoice.id, DocumentStatus.SENT)
            return await book.documents.list_documents(status=DocumentStatus.OVERDUE, now=now)

        summaries = asyncio.run(scenario())
        assert len(summaries) == 1

    def test_delete_document(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            await book.documents.delete_document(offer.id)
            return await book.documents.list_documents()

        assert asyncio.run(scenario()) == []


class TestConversion:

    def test_convert_offer(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            invoice = await book.documents.convert_offer({"offerId": offer.id, "paymentTermDays": 14})
            offer = await book.documents.get_document(DocumentType.OFFER, offer.id)
            return offer, invoice

        offer, invoice = asyncio.run(scenario())

        assert invoice.document_type == DocumentType.INVOICE
        assert invoice.document_number.startswith("INV-")
        assert invoice.status == DocumentStatus.DRAFT
        assert invoice.converted_from_offer_id == offer.id
        assert invoice.total == offer.total
        assert invoice.payment_term_days == 14
        assert invoice.intro_text == "As discussed"
        assert {i.id for i in invoice.items}.isdisjoint({i.id for i in offer.items})

        assert offer.status == DocumentStatus.ACCEPTED
        assert offer.converted_to_invoice_id == invoice.id
        assert invoice.document_number in offer.status_history[-1].note

    def test_offer_cannot_be_converted_twice(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            await book.documents.convert_offer({"offerId": offer.id})
            with pytest.raises(ValidationFailedError, match="already converted"):
                await book.documents.convert_offer({"offerId": offer.id})
            return await book.documents.list_documents(DocumentType.INVOICE)

        assert len(asyncio.run(scenario())) == 1

    def test_rejected_offer_locked_when_enforced(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            await book.documents.change_status(offer.id, DocumentStatus.REJECTED)
            strict = DocumentFlow(book.database, book.repository, enforce_terminal_states=True)
            with pytest.raises(InvalidTransitionError):
                await strict.convert_offer({"offerId": offer.id})
            return await book.documents.list_documents(DocumentType.INVOICE)

        assert asyncio.run(scenario()) == []

    def test_partial_conversion_can_be_completed(self, book, customer_payload, now, monkeypatch):
        """The invoice survives a failed offer update and the link can be retried."""
        flow = book.documents

        async def fail_link(offer_id, invoice_id, now=None):
            raise WriteFailedError("offer.json", OSError("disk full"))

        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await flow.create_document(_offer_payload(customer.id), now=now)

            monkeypatch.setattr(flow, "link_converted_offer", fail_link)
            with pytest.raises(PartialConversionError) as exc_info:
                await flow.convert_offer({"offerId": offer.id})
            monkeypatch.undo()

            invoice = exc_info.value.invoice
            unlinked = await flow.get_document(DocumentType.OFFER, offer.id)
            stored_invoice = await flow.get_document(DocumentType.INVOICE, invoice.id)

            linked = await flow.link_converted_offer(offer.id, invoice.id)
            again = await flow.link_converted_offer(offer.id, invoice.id)
            return exc_info.value, unlinked, stored_invoice, linked, again

        error, unlinked, stored_invoice, linked, again = asyncio.run(scenario())

        assert error.offer_id == unlinked.id
        assert unlinked.status == DocumentStatus.DRAFT
        assert unlinked.converted_to_invoice_id is None
        assert stored_invoice.converted_from_offer_id == unlinked.id
        assert linked.converted_to_invoice_id == stored_invoice.id
        assert linked.status == DocumentStatus.ACCEPTED
        assert len(again.status_history) == len(linked.status_history)

    def test_accepted_offer_gets_conversion_note(self, book, customer_payload, now):
        async def scenario():
            customer = await book.directory.create_customer(customer_payload)
            offer = await book.documents.create_document(_offer_payload(customer.id), now=now)
            await book.documents.change_status(offer.id, DocumentStatus.ACCEPTED)
            invoice = await book.documents.convert_offer({"offerId": offer.id})
            return await book.documents.get_document(DocumentType.OFFER, offer.id), invoice

        offer, invoice = asyncio.run(scenario())
        last = offer.status_history[-1]
        assert last.from_status == DocumentStatus.ACCEPTED
        assert last.to_status == DocumentStatus.ACCEPTED
        assert invoice.document_number in last.note
