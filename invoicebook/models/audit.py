"""
Audit Models for InvoiceBook

Every significant change to the user's data is logged as an AuditEvent.
This provides:
1. Traceability of who-changed-what on documents and the address book
2. Debugging information when a file turns out corrupt or a write fails
3. A record of one-time operations (migrations, storage moves)

DESIGN DECISION: Audit events are append-only. They go to the local
structured log; the document's own status history is the durable trail.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from invoicebook.models.base import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Database lifecycle
    DATABASE_CREATED = "database_created"
    MIGRATION_APPLIED = "migration_applied"
    DATA_RESET = "data_reset"
    STORAGE_ROOT_CHANGED = "storage_root_changed"

    # Address book and catalog
    CUSTOMER_CREATED = "customer_created"
    CUSTOMER_UPDATED = "customer_updated"
    CUSTOMER_DELETED = "customer_deleted"
    PRODUCT_CREATED = "product_created"
    PRODUCT_UPDATED = "product_updated"
    PRODUCT_DELETED = "product_deleted"
    BUSINESS_UPDATED = "business_updated"
    SETTINGS_UPDATED = "settings_updated"

    # Documents
    DOCUMENT_CREATED = "document_created"
    DOCUMENT_UPDATED = "document_updated"
    DOCUMENT_DELETED = "document_deleted"
    STATUS_CHANGED = "status_changed"
    OFFER_CONVERTED = "offer_converted"
    CONVERSION_INCOMPLETE = "conversion_incomplete"
    DOCUMENT_NUMBER_RECONCILED = "document_number_reconciled"

    # Storage health
    CORRUPT_DOCUMENT_SKIPPED = "corrupt_document_skipped"
    WRITE_FAILED = "write_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'invoice', 'customer', 'database')"
    )
    entity_id: Optional[str] = None

    # For tracking related events (e.g., both writes of one conversion)
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.document_created(document)
        event = AuditEventBuilder.status_changed(document, entry)
    """

    @staticmethod
    def database_created(root: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATABASE_CREATED,
            entity_type="database",
            description=f"Empty database created at {root}",
            details={"root": root},
        )

    @staticmethod
    def migration_applied(
        entity_type: str,
        from_version: str,
        to_version: str,
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_APPLIED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Migrated {entity_type} from v{from_version} to v{to_version}",
            details={"from_version": from_version, "to_version": to_version},
        )

    @staticmethod
    def record_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        label: str,
        fields: Optional[list[str]] = None,
    ) -> AuditEvent:
        verb = event_type.value.rsplit("_", 1)[-1]
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{entity_type.capitalize()} {verb}: {label}",
            details={"fields": fields} if fields else {},
        )

    @staticmethod
    def document_created(
        document_id: str,
        document_type: str,
        document_number: str,
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_CREATED,
            entity_type=document_type,
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"{document_type.capitalize()} {document_number} created",
            details={"document_number": document_number, "total": total},
        )

    @staticmethod
    def status_changed(
        document_id: str,
        document_type: str,
        document_number: str,
        from_status: Optional[str],
        to_status: str,
        note: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATUS_CHANGED,
            entity_type=document_type,
            entity_id=document_id,
            description=f"{document_number}: {from_status} -> {to_status}",
            details={
                "from_status": from_status,
                "to_status": to_status,
                "note": note,
            },
        )

    @staticmethod
    def offer_converted(
        offer_id: str,
        offer_number: str,
        invoice_id: str,
        invoice_number: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OFFER_CONVERTED,
            entity_type="offer",
            entity_id=offer_id,
            correlation_id=correlation_id,
            description=f"Offer {offer_number} converted to invoice {invoice_number}",
            details={"invoice_id": invoice_id, "invoice_number": invoice_number},
        )

    @staticmethod
    def conversion_incomplete(
        offer_id: str,
        invoice_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONVERSION_INCOMPLETE,
            severity=AuditSeverity.ERROR,
            entity_type="offer",
            entity_id=offer_id,
            correlation_id=correlation_id,
            description="Invoice written but the offer could not be linked to it",
            details={"invoice_id": invoice_id},
            error_message=error_message,
        )

    @staticmethod
    def document_number_reconciled(
        document_type: str,
        taken_number: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_NUMBER_RECONCILED,
            severity=AuditSeverity.WARNING,
            entity_type=document_type,
            description=f"Number {taken_number} already on disk, counters advanced",
            details={"taken_number": taken_number},
        )

    @staticmethod
    def corrupt_document_skipped(path: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CORRUPT_DOCUMENT_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="document_file",
            description=f"Skipped unreadable document file {path}",
            details={"path": path},
            error_message=error_message,
        )

    @staticmethod
    def storage_root_changed(old_root: str, new_root: str, deleted_old: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ROOT_CHANGED,
            entity_type="storage_root",
            description=f"Storage root changed to {new_root}",
            details={
                "old_root": old_root,
                "new_root": new_root,
                "deleted_old": deleted_old,
            },
        )

    @staticmethod
    def data_reset(root: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="database",
            description=f"All data under {root} was reset",
            details={"root": root},
        )
