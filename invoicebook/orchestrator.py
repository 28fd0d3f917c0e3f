"""
Main Orchestrator for InvoiceBook

This module ties together all the components and defines the operations
the adapter layer (HTTP routes, desktop shell) calls:
1. Documents (create / update / delete / list, status changes, offer -> invoice)
2. Directory (customers, products, business profile, settings)
3. Reporting (financial overview, dashboard)
4. Storage root management (move the data, reset everything)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written before validation passed
- Document numbers are only consumed inside the database transaction
- Every mutation is audited
- Nothing is silently retried; every failure reaches the caller

Payloads may be plain dicts (camelCase or snake_case keys) or the request
models themselves.
"""

from contextlib import AsyncExitStack
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel

from invoicebook.audit import AuditLogger, configure_logging, create_correlation_id
from invoicebook.config import get_settings
from invoicebook.lifecycle import (
    PartialConversionError,
    apply_status_change,
    build_invoice_from_offer,
    build_items,
    check_transition,
    compute_due_date,
    compute_totals,
    effective_status,
    initial_history,
    mark_offer_converted,
    snapshot_customer,
)
from invoicebook.models.audit import AuditEventType
from invoicebook.models.base import utcnow
from invoicebook.models.database import (
    Address,
    BankDetails,
    Business,
    CreateCustomerRequest,
    CreateProductRequest,
    Customer,
    DatabaseSettings,
    DocumentLabels,
    Product,
    UpdateBusinessRequest,
    UpdateCustomerRequest,
    UpdateProductRequest,
    UpdateSettingsRequest,
    VersionedDatabase,
)
from invoicebook.models.document import (
    ConvertOfferRequest,
    CreateDocumentRequest,
    Document,
    DocumentStatus,
    DocumentSummary,
    DocumentType,
    UpdateDocumentRequest,
)
from invoicebook.models.financial import DashboardStats, FinancialOverview, FinancialOverviewRequest
from invoicebook.models.validation import ValidationIssue
from invoicebook.numbering import (
    allocate_document_number,
    build_variables,
    counters_for,
    file_name_errors,
    format_document_number,
    preview_document_number,
)
from invoicebook.reports import build_dashboard, build_financial_overview
from invoicebook.services.storage import (
    DatabaseStore,
    JsonDocumentRepository,
    NotFoundError,
    StorageRootPointer,
    copy_tree_atomically,
    remove_tree,
    verify_root,
)
from invoicebook.validation import (
    DocumentValidator,
    SettingsValidator,
    ValidationFailedError,
    ensure_valid,
    parse_request,
)


logger = structlog.get_logger(__name__)

Payload = Union[dict[str, Any], BaseModel]


def _merge(model, update, exclude: tuple[str, ...] = ()):
    """Copy of `model` with every field that was explicitly set on `update`."""
    changes = {
        name: getattr(update, name)
        for name in update.model_fields_set
        if name not in exclude
    }
    return model.model_copy(update=changes)


def _revalidate(model):
    """
    Run a model's validators again after in-place edits or a merge.

    Raises:
        ValidationFailedError: The edited record broke a field rule
    """
    return parse_request(type(model), model.model_dump())


class DocumentFlow:
    """
    Offer and invoice operations.

    Creation flow:
    1. Validate the request (schema, then semantics)
    2. Open a database transaction
    3. Snapshot the customer, compute totals
    4. Allocate the number (advances the counters in the transaction)
    5. Write the document file
    6. Leave the transaction -> counters persisted

    If step 6 fails after step 5 the file exists but its number was not
    consumed; the allocator sees the file next time and skips the number.
    """

    def __init__(
        self,
        database: DatabaseStore,
        documents: JsonDocumentRepository,
        validator: Optional[DocumentValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        enforce_terminal_states: bool = False,
    ):
        self._database = database
        self._documents = documents
        self._validator = validator or DocumentValidator()
        self._audit_logger = audit_logger
        self._enforce_terminal = enforce_terminal_states

    # =========================================================================
    # READS
    # =========================================================================

    async def get_document(self, document_type: DocumentType, document_id: str) -> Document:
        document = await self._documents.load(document_type, document_id)
        if document is None:
            raise NotFoundError(f"{document_type.value.capitalize()} not found: {document_id}")
        return document

    async def find_document(self, document_id: str) -> Document:
        """Look a document up by id without knowing its type."""
        for document_type in DocumentType:
            document = await self._documents.load(document_type, document_id)
            if document is not None:
                return document
        raise NotFoundError(f"Document not found: {document_id}")

    async def get_by_number(self, document_type: DocumentType, document_number: str) -> Document:
        document = await self._documents.load_by_number(document_type, document_number)
        if document is None:
            raise NotFoundError(f"{document_type.value.capitalize()} not found: {document_number}")
        return document

    async def list_documents(
        self,
        document_type: Optional[DocumentType] = None,
        status: Optional[DocumentStatus] = None,
        customer_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[DocumentSummary]:
        """
        Summaries, newest first, optionally filtered in memory.

        The status filter matches the effective status, so a sent invoice past
        its due date is found under OVERDUE.
        """
        now = now or utcnow()
        documents = await self._documents.list_documents(document_type)
        if customer_id:
            documents = [d for d in documents if d.customer_id == customer_id]
        if status:
            documents = [d for d in documents if effective_status(d, now) == status]
        return [d.to_summary() for d in documents]

    # =========================================================================
    # WRITES
    # =========================================================================

    async def create_document(self, payload: Payload, now: Optional[datetime] = None) -> Document:
        request = parse_request(CreateDocumentRequest, payload)
        result = ensure_valid(self._validator.validate_create(request))
        now = now or utcnow()
        document_type = request.document_type

        async with self._database.transaction() as db:
            customer = db.find_customer(request.customer_id)
            if customer is None:
                raise NotFoundError(f"Customer not found: {request.customer_id}")
            settings = db.settings

            items = build_items(request.items)
            tax_rate = request.tax_rate if request.tax_rate is not None else settings.default_tax_rate
            subtotal, tax_amount, total = compute_totals(items, tax_rate)
            payment_term_days = (
                request.payment_term_days
                if request.payment_term_days is not None
                else settings.default_payment_term_days
            )

            allocated = allocate_document_number(
                settings,
                document_type,
                now,
                is_taken=lambda year, number: self._documents.number_exists(document_type, year, number),
                audit_logger=self._audit_logger,
            )

            labels = settings.labels
            default_title = labels.offer_title if document_type is DocumentType.OFFER else labels.invoice_title

            document = Document(
                document_type=document_type,
                document_title=request.document_title or default_title,
                document_number=allocated.document_number,
                customer_id=customer.id,
                customer=snapshot_customer(customer),
                items=items,
                subtotal=subtotal,
                tax_rate=tax_rate,
                tax_amount=tax_amount,
                total=total,
                payment_term_days=payment_term_days,
                due_date=compute_due_date(now, payment_term_days),
                intro_text=_default(request.intro_text, settings.default_intro_text),
                notes_text=_default(request.notes_text, settings.default_notes_text),
                footer_text=_default(request.footer_text, settings.default_footer_text),
                status=DocumentStatus.DRAFT,
                status_history=initial_history(now),
                created_at=now,
                updated_at=now,
            )
            self._documents.write(document)

        logger.info(
            "document_created",
            document_type=document_type.value,
            document_number=document.document_number,
            warnings=result.warnings,
        )
        if self._audit_logger:
            self._audit_logger.log_document_created(
                document_id=document.id,
                document_type=document_type.value,
                document_number=document.document_number,
                total=str(document.total),
            )
        return document

    async def update_document(
        self,
        document_id: str,
        payload: Payload,
        now: Optional[datetime] = None,
    ) -> Document:
        """
        Apply only the fields that were provided, then rewrite the whole file.

        Changing items or the tax rate recomputes all totals. Changing the
        payment term recomputes the due date from the creation date.
        """
        request = parse_request(UpdateDocumentRequest, payload)
        now = now or utcnow()

        current = await self.find_document(document_id)
        # Read before taking the document lock: nothing awaits the database
        # lock while holding a document lock.
        db = await self._database.get()
        async with self._documents.lock_for(current.id):
            document = await self.get_document(current.document_type, current.id)
            ensure_valid(self._validator.validate_update(request, document))
            previous_status = document.status

            if request.customer_id and request.customer_id != document.customer_id:
                customer = db.find_customer(request.customer_id)
                if customer is None:
                    raise NotFoundError(f"Customer not found: {request.customer_id}")
                document.customer_id = customer.id
                document.customer = snapshot_customer(customer)

            if request.document_title is not None:
                document.document_title = request.document_title
            for field in ("intro_text", "notes_text", "footer_text"):
                if field in request.model_fields_set:
                    setattr(document, field, getattr(request, field))

            if request.items is not None or request.tax_rate is not None:
                if request.items is not None:
                    document.items = build_items(request.items)
                if request.tax_rate is not None:
                    document.tax_rate = request.tax_rate
                document.subtotal, document.tax_amount, document.total = compute_totals(
                    document.items, document.tax_rate
                )

            if request.payment_term_days is not None and request.payment_term_days != document.payment_term_days:
                document.payment_term_days = request.payment_term_days
                document.due_date = compute_due_date(document.created_at, request.payment_term_days)

            status_entry = None
            if request.status is not None:
                status_entry = apply_status_change(
                    document,
                    request.status,
                    now,
                    note=request.status_note,
                    enforce_terminal=self._enforce_terminal,
                )

            document.updated_at = now
            document = _revalidate(document)
            self._documents.write(document)

        if self._audit_logger:
            self._audit_logger.log_record_changed(
                AuditEventType.DOCUMENT_UPDATED,
                entity_type=document.document_type.value,
                entity_id=document.id,
                label=document.document_number,
                fields=sorted(request.model_fields_set),
            )
            if status_entry is not None:
                self._audit_logger.log_status_changed(
                    document_id=document.id,
                    document_type=document.document_type.value,
                    document_number=document.document_number,
                    from_status=previous_status.value,
                    to_status=document.status.value,
                    note=status_entry.note,
                )
        return document

    async def change_status(
        self,
        document_id: str,
        status: DocumentStatus,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Document:
        return await self.update_document(
            document_id,
            UpdateDocumentRequest(status=status, status_note=note),
            now=now,
        )

    async def delete_document(self, document_id: str) -> None:
        document = await self.find_document(document_id)
        await self._documents.delete(document)
        if self._audit_logger:
            self._audit_logger.log_record_changed(
                AuditEventType.DOCUMENT_DELETED,
                entity_type=document.document_type.value,
                entity_id=document.id,
                label=document.document_number,
            )

    # =========================================================================
    # CONVERSION
    # =========================================================================

    async def convert_offer(self, payload: Payload, now: Optional[datetime] = None) -> Document:
        """
        Turn an offer into a new draft invoice.

        Raises:
            NotFoundError: Unknown offer
            ValidationFailedError: The offer was already converted
            InvalidTransitionError: The offer is locked in a terminal state
            PartialConversionError: Invoice written, offer not linked. Retry
                with link_converted_offer(offer_id, invoice.id)
        """
        request = parse_request(ConvertOfferRequest, payload)
        now = now or utcnow()
        correlation_id = create_correlation_id()

        offer = await self.get_document(DocumentType.OFFER, request.offer_id)
        ensure_valid(self._validator.validate_conversion(offer))
        check_transition(offer, DocumentStatus.ACCEPTED, self._enforce_terminal)

        async with self._database.transaction() as db:
            allocated = allocate_document_number(
                db.settings,
                DocumentType.INVOICE,
                now,
                is_taken=lambda year, number: self._documents.number_exists(
                    DocumentType.INVOICE, year, number
                ),
                audit_logger=self._audit_logger,
            )
            invoice = build_invoice_from_offer(offer, allocated.document_number, db.settings, now, request)
            self._documents.write(invoice)

        if self._audit_logger:
            self._audit_logger.log_document_created(
                document_id=invoice.id,
                document_type=DocumentType.INVOICE.value,
                document_number=invoice.document_number,
                total=str(invoice.total),
                correlation_id=correlation_id,
            )

        try:
            await self.link_converted_offer(offer.id, invoice.id, now=now)
        except Exception as e:
            logger.error(
                "conversion_incomplete",
                offer_id=offer.id,
                invoice_id=invoice.id,
                error=str(e),
            )
            if self._audit_logger:
                self._audit_logger.log_conversion_incomplete(
                    offer_id=offer.id,
                    invoice_id=invoice.id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise PartialConversionError(invoice, offer.id, e) from e

        if self._audit_logger:
            self._audit_logger.log_offer_converted(
                offer_id=offer.id,
                offer_number=offer.document_number,
                invoice_id=invoice.id,
                invoice_number=invoice.document_number,
                correlation_id=correlation_id,
            )
        return invoice

    async def link_converted_offer(
        self,
        offer_id: str,
        invoice_id: str,
        now: Optional[datetime] = None,
    ) -> Document:
        """
        Second half of a conversion: accept the offer and point it at the
        invoice. Safe to call again; an offer already linked to this invoice
        is returned unchanged.
        """
        now = now or utcnow()
        invoice = await self.get_document(DocumentType.INVOICE, invoice_id)

        async with self._documents.lock_for(offer_id):
            offer = await self.get_document(DocumentType.OFFER, offer_id)
            if offer.converted_to_invoice_id == invoice.id:
                return offer
            if offer.converted_to_invoice_id:
                raise ValidationFailedError([ValidationIssue(
                    field="offer_id",
                    issue_type="already_converted",
                    message=(
                        f"Offer {offer.document_number} is already linked to "
                        f"invoice {offer.converted_to_invoice_id}"
                    ),
                    severity="error",
                )])
            mark_offer_converted(offer, invoice, now, self._enforce_terminal)
            offer = _revalidate(offer)
            self._documents.write(offer)
        return offer


class DirectoryFlow:
    """
    Customers, products, the business profile and settings.

    Everything here lives in the database file, so every write is one
    DatabaseStore transaction. Updates merge: only provided fields change.
    """

    def __init__(
        self,
        database: DatabaseStore,
        validator: Optional[SettingsValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._database = database
        self._validator = validator or SettingsValidator()
        self._audit_logger = audit_logger

    def _audit(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        label: str,
        fields: Optional[list[str]] = None,
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log_record_changed(event_type, entity_type, entity_id, label, fields)

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    async def list_customers(self) -> list[Customer]:
        db = await self._database.get()
        return sorted(db.customers, key=lambda c: c.name.lower())

    async def get_customer(self, customer_id: str) -> Customer:
        db = await self._database.get()
        customer = db.find_customer(customer_id)
        if customer is None:
            raise NotFoundError(f"Customer not found: {customer_id}")
        return customer

    async def create_customer(self, payload: Payload) -> Customer:
        request = parse_request(CreateCustomerRequest, payload)
        now = utcnow()
        customer = Customer(**request.model_dump(), created_at=now, updated_at=now)
        await self._database.update(lambda db: db.customers.append(customer))
        self._audit(AuditEventType.CUSTOMER_CREATED, "customer", customer.id, customer.name)
        return customer

    async def update_customer(self, customer_id: str, payload: Payload) -> Customer:
        request = parse_request(UpdateCustomerRequest, payload)

        def apply(db: VersionedDatabase) -> Customer:
            for index, customer in enumerate(db.customers):
                if customer.id == customer_id:
                    updated = _merge(customer, request, exclude=("address",))
                    if request.address is not None:
                        updated.address = _merge(customer.address, request.address)
                    updated.updated_at = utcnow()
                    db.customers[index] = _revalidate(updated)
                    return db.customers[index]
            raise NotFoundError(f"Customer not found: {customer_id}")

        customer = await self._database.update(apply)
        self._audit(
            AuditEventType.CUSTOMER_UPDATED, "customer", customer.id, customer.name,
            sorted(request.model_fields_set),
        )
        return customer

    async def delete_customer(self, customer_id: str) -> None:
        """
        Existing documents keep their customer snapshot, so deleting a
        customer never changes what was already sent.
        """
        def apply(db: VersionedDatabase) -> Customer:
            customer = db.find_customer(customer_id)
            if customer is None:
                raise NotFoundError(f"Customer not found: {customer_id}")
            db.customers = [c for c in db.customers if c.id != customer_id]
            return customer

        customer = await self._database.update(apply)
        self._audit(AuditEventType.CUSTOMER_DELETED, "customer", customer.id, customer.name)

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    async def list_products(self) -> list[Product]:
        db = await self._database.get()
        return sorted(db.products, key=lambda p: p.description.lower())

    async def get_product(self, product_id: str) -> Product:
        db = await self._database.get()
        product = db.find_product(product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}")
        return product

    async def create_product(self, payload: Payload) -> Product:
        request = parse_request(CreateProductRequest, payload)
        now = utcnow()
        product = Product(**request.model_dump(), created_at=now, updated_at=now)
        await self._database.update(lambda db: db.products.append(product))
        self._audit(AuditEventType.PRODUCT_CREATED, "product", product.id, product.description)
        return product

    async def update_product(self, product_id: str, payload: Payload) -> Product:
        request = parse_request(UpdateProductRequest, payload)

        def apply(db: VersionedDatabase) -> Product:
            for index, product in enumerate(db.products):
                if product.id == product_id:
                    updated = _merge(product, request)
                    updated.updated_at = utcnow()
                    db.products[index] = _revalidate(updated)
                    return db.products[index]
            raise NotFoundError(f"Product not found: {product_id}")

        product = await self._database.update(apply)
        self._audit(
            AuditEventType.PRODUCT_UPDATED, "product", product.id, product.description,
            sorted(request.model_fields_set),
        )
        return product

    async def delete_product(self, product_id: str) -> None:
        def apply(db: VersionedDatabase) -> Product:
            product = db.find_product(product_id)
            if product is None:
                raise NotFoundError(f"Product not found: {product_id}")
            db.products = [p for p in db.products if p.id != product_id]
            return product

        product = await self._database.update(apply)
        self._audit(AuditEventType.PRODUCT_DELETED, "product", product.id, product.description)

    # =========================================================================
    # BUSINESS PROFILE
    # =========================================================================

    async def get_business(self) -> Business:
        db = await self._database.get()
        if db.business is None:
            raise NotFoundError("Business profile has not been set up yet")
        return db.business

    async def update_business(self, payload: Payload) -> Business:
        """
        Create the profile on first call, merge into it afterwards.

        Address and bank details merge field by field.
        """
        request = parse_request(UpdateBusinessRequest, payload)

        def apply(db: VersionedDatabase) -> Business:
            existing = db.business
            ensure_valid(self._validator.validate_business_update(request, existing))

            if existing is None:
                data = request.model_dump(exclude={"address", "bank_details"}, exclude_none=True)
                business = Business(
                    **data,
                    address=Address(**request.address.model_dump(exclude_none=True)),
                    bank_details=(
                        BankDetails(**request.bank_details.model_dump(exclude_none=True))
                        if request.bank_details else None
                    ),
                )
            else:
                business = _merge(existing, request, exclude=("address", "bank_details"))
                if request.address is not None:
                    business.address = _merge(existing.address, request.address)
                if request.bank_details is not None:
                    business.bank_details = _merge(
                        existing.bank_details or BankDetails(), request.bank_details
                    )

            business.updated_at = utcnow()
            db.business = _revalidate(business)
            return db.business

        business = await self._database.update(apply)
        self._audit(
            AuditEventType.BUSINESS_UPDATED, "business", None, business.name,
            sorted(request.model_fields_set),
        )
        return business

    # =========================================================================
    # SETTINGS
    # =========================================================================

    async def get_settings(self) -> DatabaseSettings:
        db = await self._database.get()
        return db.settings

    async def update_settings(self, payload: Payload) -> DatabaseSettings:
        """
        Merge a partial settings update. Labels merge key by key; number
        templates are validated before anything is written.
        """
        request = parse_request(UpdateSettingsRequest, payload)
        ensure_valid(self._validator.validate_settings_update(request))

        def apply(db: VersionedDatabase) -> DatabaseSettings:
            current = db.settings
            updated = _merge(current, request, exclude=("labels",))
            if request.labels:
                labels = current.labels.model_dump()
                for key, value in request.labels.items():
                    field = _label_field(key)
                    if field is None:
                        raise ValidationFailedError([ValidationIssue(
                            field=f"labels.{key}",
                            issue_type="unknown_label",
                            message=f"Unknown label: {key}",
                            severity="error",
                        )])
                    labels[field] = value
                updated.labels = parse_request(DocumentLabels, labels)
            _ensure_storable_numbers(updated)
            updated.updated_at = utcnow()
            db.settings = _revalidate(updated)
            return db.settings

        settings = await self._database.update(apply)
        self._audit(
            AuditEventType.SETTINGS_UPDATED, "settings", None, "settings",
            sorted(request.model_fields_set),
        )
        return settings

    async def preview_next_number(
        self,
        document_type: DocumentType,
        template: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """What the next document of a type would be numbered (nothing consumed)."""
        now = now or utcnow()
        db = await self._database.get()
        prefix, current_template, number, by_year = counters_for(db.settings, document_type)
        return preview_document_number(
            template or current_template,
            prefix,
            number,
            by_year.get(str(now.year), 1),
            now,
        )


class ReportingFlow:
    """
    Read-only reports. Everything is recomputed from the document files on
    each call.
    """

    def __init__(self, database: DatabaseStore, documents: JsonDocumentRepository):
        self._database = database
        self._documents = documents

    async def financial_overview(
        self,
        payload: Optional[Payload] = None,
        now: Optional[datetime] = None,
    ) -> FinancialOverview:
        request = parse_request(FinancialOverviewRequest, payload or {})
        now = now or utcnow()
        db = await self._database.get()
        invoices = await self._documents.list_documents(DocumentType.INVOICE)
        return build_financial_overview(
            invoices,
            request,
            now,
            fiscal_year_start_month=db.settings.fiscal_year_start_month,
        )

    async def dashboard(self, now: Optional[datetime] = None) -> DashboardStats:
        now = now or utcnow()
        db = await self._database.get()
        documents = await self._documents.list_documents()
        return build_dashboard(documents, customer_count=len(db.customers), now=now)


def _default(value: Optional[str], fallback: Optional[str]) -> Optional[str]:
    return value if value is not None else fallback


def _ensure_storable_numbers(settings: DatabaseSettings) -> None:
    """Reject prefix and template combinations whose numbers cannot be file names."""
    now = utcnow()
    issues = []
    for document_type in DocumentType:
        prefix, template, number, by_year = counters_for(settings, document_type)
        rendered = format_document_number(
            template, build_variables(prefix, number, by_year.get(str(now.year), 1), now)
        )
        for message in file_name_errors(rendered):
            issues.append(ValidationIssue(
                field=f"{document_type.value}_number_format",
                issue_type="invalid_template",
                message=message,
                severity="error",
            ))
    if issues:
        raise ValidationFailedError(issues)


def _label_field(key: str) -> Optional[str]:
    """Accept a label key in camelCase (on-disk) or snake_case."""
    fields = DocumentLabels.model_fields
    if key in fields:
        return key
    for name, info in fields.items():
        if info.alias == key:
            return name
    return None


# =============================================================================
# APPLICATION
# =============================================================================

def create_app_components(
    root: Path,
    audit_logger: Optional[AuditLogger] = None,
) -> tuple[DocumentFlow, DirectoryFlow, ReportingFlow, DatabaseStore, JsonDocumentRepository]:
    """
    Factory function to create all components for one storage root.

    Returns:
        (document_flow, directory_flow, reporting_flow, database, documents)
    """
    audit_logger = audit_logger or AuditLogger()
    lifecycle = get_settings().lifecycle

    database = DatabaseStore(root, audit_logger=audit_logger)
    documents = JsonDocumentRepository(root, audit_logger=audit_logger)

    document_flow = DocumentFlow(
        database,
        documents,
        audit_logger=audit_logger,
        enforce_terminal_states=lifecycle.enforce_terminal_states,
    )
    directory_flow = DirectoryFlow(database, audit_logger=audit_logger)
    reporting_flow = ReportingFlow(database, documents)

    return document_flow, directory_flow, reporting_flow, database, documents


class InvoiceBook:
    """
    The whole application for the active storage root.

    Usage:
        book = await open_invoice_book()
        customer = await book.directory.create_customer({...})
        invoice = await book.documents.create_document({...})
        overview = await book.reporting.financial_overview({"preset": "Q1"})
    """

    def __init__(
        self,
        root: Path,
        pointer: Optional[StorageRootPointer] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._pointer = pointer
        self._audit_logger = audit_logger or AuditLogger()
        self._bind(Path(root))

    def _bind(self, root: Path) -> None:
        (
            self.documents,
            self.directory,
            self.reporting,
            self._database,
            self._repository,
        ) = create_app_components(root, self._audit_logger)
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    @property
    def database(self) -> DatabaseStore:
        return self._database

    @property
    def repository(self) -> JsonDocumentRepository:
        return self._repository

    async def open(self) -> VersionedDatabase:
        """Load (creating or migrating) the database of the active root."""
        return await self._database.load()

    async def change_storage_root(self, new_root: Union[str, Path], delete_old: bool = False) -> Path:
        """
        Move all data to `new_root`.

        1. Copy database.json and every document through the atomic writer
        2. Verify the new root has a database file
        3. Rewrite the root pointer atomically
        4. Switch the live stores to the new root
        5. Optionally remove the old files (failure is logged, not raised)

        Database writes and every document lock are held while copying. The
        old stores are then retired: a write still queued on them raises
        RootRetiredError instead of landing in the old root.
        """
        new_root = Path(new_root).expanduser()
        old_root = self._root
        if new_root.resolve() == old_root.resolve():
            raise ValidationFailedError([ValidationIssue(
                field="new_root",
                issue_type="unchanged",
                message="New path is the same as the current path",
                severity="error",
            )])

        async with self._database.exclusive():
            document_ids = sorted({d.id for d in await self._repository.list_documents()})
            async with AsyncExitStack() as held:
                for document_id in document_ids:
                    await held.enter_async_context(self._repository.lock_for(document_id))
                files = [self._database.path, *self._repository.iter_files()]
                copied = copy_tree_atomically(old_root, new_root, files)
                verify_root(new_root)
                if self._pointer:
                    self._pointer.write(new_root)
                self._repository.retire()
            self._database.retire()
            self._bind(new_root)

        logger.info("storage_root_changed", old_root=str(old_root), new_root=str(new_root), files=copied)
        await self._database.load()

        deleted = False
        if delete_old:
            deleted = remove_tree(old_root)

        self._audit_logger.log_storage_root_changed(str(old_root), str(new_root), deleted)
        return new_root

    async def reset_all_data(self) -> VersionedDatabase:
        """Delete every document and start over with an empty database."""
        async with self._database.exclusive():
            self._repository.delete_all()
            for document_type in DocumentType:
                self._repository.type_directory(document_type).mkdir(parents=True, exist_ok=True)
        database = await self._database.reset()
        self._audit_logger.log_data_reset(str(self._root))
        return database


async def open_invoice_book(root: Optional[Union[str, Path]] = None) -> InvoiceBook:
    """
    Open the active storage root (or `root`, if given) and load its database.

    Logging is configured from the app settings first; debug mode forces
    DEBUG whatever the configured level.
    """
    settings = get_settings()
    app = settings.app
    configure_logging("DEBUG" if app.debug_mode else app.log_level, app.json_logs)

    storage = settings.storage
    pointer = StorageRootPointer(storage.pointer_file, storage.default_root)
    book = InvoiceBook(Path(root) if root else pointer.read(), pointer=pointer)
    await book.open()
    return book
