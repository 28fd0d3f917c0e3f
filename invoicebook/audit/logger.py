"""
Audit Logger

DESIGN DECISION: Every significant change to the user's data is logged.
This provides:
1. Complete traceability
2. Debugging capability when a file on disk turns out bad
3. A record of one-time operations such as migrations

The audit logger:
- Never raises: a broken log sink must not fail a write that succeeded
- Supports correlation IDs to trace related events (e.g. both writes of a conversion)
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from invoicebook.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Route structlog output through stdlib logging at the given level.

    Call once at process start. With json_logs=False, events are rendered
    for a human reading a terminal.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=numeric_level)
    logging.getLogger().setLevel(numeric_level)

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
    )


class AuditLogger:
    """
    Central audit logging service.

    Writes every event to the structured local log.
    """

    def __init__(self, logger_name: str = "invoicebook.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the log sink failed (the failure is swallowed).
        """
        log_dict = event.to_log_dict()
        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False
        return True

    def log_database_created(self, root: str) -> None:
        self.log(AuditEventBuilder.database_created(root))

    def log_migration(
        self,
        entity_type: str,
        from_version: str,
        to_version: str,
        entity_id: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.migration_applied(
            entity_type=entity_type,
            from_version=from_version,
            to_version=to_version,
            entity_id=entity_id,
        ))

    def log_record_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[str],
        label: str,
        fields: Optional[list[str]] = None,
    ) -> None:
        """Log a create/update/delete on customers, products, business or settings."""
        self.log(AuditEventBuilder.record_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            label=label,
            fields=fields,
        ))

    def log_document_created(
        self,
        document_id: str,
        document_type: str,
        document_number: str,
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.document_created(
            document_id=document_id,
            document_type=document_type,
            document_number=document_number,
            total=total,
            correlation_id=correlation_id,
        ))

    def log_status_changed(
        self,
        document_id: str,
        document_type: str,
        document_number: str,
        from_status: Optional[str],
        to_status: str,
        note: Optional[str] = None,
    ) -> None:
        self.log(AuditEventBuilder.status_changed(
            document_id=document_id,
            document_type=document_type,
            document_number=document_number,
            from_status=from_status,
            to_status=to_status,
            note=note,
        ))

    def log_offer_converted(
        self,
        offer_id: str,
        offer_number: str,
        invoice_id: str,
        invoice_number: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.offer_converted(
            offer_id=offer_id,
            offer_number=offer_number,
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            correlation_id=correlation_id,
        ))

    def log_conversion_incomplete(
        self,
        offer_id: str,
        invoice_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.conversion_incomplete(
            offer_id=offer_id,
            invoice_id=invoice_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_number_reconciled(self, document_type: str, taken_number: str) -> None:
        self.log(AuditEventBuilder.document_number_reconciled(document_type, taken_number))

    def log_corrupt_document(self, path: str, error_message: str) -> None:
        self.log(AuditEventBuilder.corrupt_document_skipped(path, error_message))

    def log_storage_root_changed(self, old_root: str, new_root: str, deleted_old: bool) -> None:
        self.log(AuditEventBuilder.storage_root_changed(old_root, new_root, deleted_old))

    def log_data_reset(self, root: str) -> None:
        self.log(AuditEventBuilder.data_reset(root))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step operation (e.g., converting an offer).
    """
    return uuid4()
