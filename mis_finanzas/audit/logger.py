"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of every backend write
2. Visibility into failures that are deliberately swallowed
   (automated savings, duplicate cleanup, seeding)

The audit logger:
- Never raises; a broken log line must not break a user action
- Supports correlation IDs to tie a transaction to its auto-savings
"""

import logging
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from mis_finanzas.models.audit import AuditEvent, AuditEventBuilder


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


def configure_logging(debug: bool = False) -> None:
    """Route structlog output through a stdlib handler at the right level."""
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )


class AuditLogger:
    """
    Central audit logging service.

    Writes typed AuditEvents as structured log lines.
    """

    def __init__(self, name: str = "mis_finanzas.audit"):
        self._logger = structlog.get_logger(name)
        self._events: list[AuditEvent] = []
        self._keep_history = False

    def keep_history(self, enabled: bool = True) -> None:
        """Retain logged events in memory (used by tests and diagnostics)."""
        self._keep_history = enabled
        if not enabled:
            self._events.clear()

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the log line could not be written.
        """
        if self._keep_history:
            self._events.append(event)

        log_dict = event.to_log_dict()

        try:
            if event.severity.value in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif event.severity.value == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif event.severity.value == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            logging.getLogger(__name__).error(
                "Failed to write audit event %s: %s", event.event_id, e
            )
            return False

        return True

    def log_transaction_created(
        self,
        transaction_id: str,
        amount: Decimal,
        category_name: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a user-created transaction."""
        self.log(AuditEventBuilder.transaction_created(
            transaction_id=transaction_id,
            amount=amount,
            category_name=category_name,
            correlation_id=correlation_id,
        ))

    def log_transaction_updated(self, transaction_id: str, fields: list[str]) -> None:
        self.log(AuditEventBuilder.transaction_updated(transaction_id, fields))

    def log_transaction_deleted(self, transaction_id: str) -> None:
        self.log(AuditEventBuilder.transaction_deleted(transaction_id))

    def log_transaction_rejected(self, reason: str) -> None:
        self.log(AuditEventBuilder.transaction_rejected(reason))

    def log_round_up_applied(
        self,
        main_transaction_id: str,
        saving_transaction_id: str,
        original_amount: Decimal,
        saved_amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a round-up auxiliary transaction."""
        self.log(AuditEventBuilder.round_up_applied(
            main_transaction_id=main_transaction_id,
            saving_transaction_id=saving_transaction_id,
            original_amount=original_amount,
            saved_amount=saved_amount,
            correlation_id=correlation_id,
        ))

    def log_retention_applied(
        self,
        main_transaction_id: str,
        saving_transaction_id: str,
        income_amount: Decimal,
        percentage: int,
        saved_amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a retention auxiliary transaction."""
        self.log(AuditEventBuilder.retention_applied(
            main_transaction_id=main_transaction_id,
            saving_transaction_id=saving_transaction_id,
            income_amount=income_amount,
            percentage=percentage,
            saved_amount=saved_amount,
            correlation_id=correlation_id,
        ))

    def log_auto_savings_failed(
        self,
        main_transaction_id: str,
        stage: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.auto_savings_failed(
            main_transaction_id=main_transaction_id,
            stage=stage,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_invested_amount_reconciled(
        self,
        cached_amount: Decimal,
        authoritative_amount: Decimal,
    ) -> None:
        self.log(AuditEventBuilder.invested_amount_reconciled(
            cached_amount=cached_amount,
            authoritative_amount=authoritative_amount,
        ))

    def log_savings_config_changed(self, changes: dict[str, Any]) -> None:
        self.log(AuditEventBuilder.savings_config_changed(changes))

    def log_category_created(self, category_id: str, name: str, category_type: str) -> None:
        self.log(AuditEventBuilder.category_created(category_id, name, category_type))

    def log_categories_seeded(self, owner_id: str, names: list[str]) -> None:
        self.log(AuditEventBuilder.categories_seeded(owner_id, names))

    def log_category_seeding_failed(self, owner_id: str, error_message: str) -> None:
        self.log(AuditEventBuilder.category_seeding_failed(owner_id, error_message))

    def log_duplicates_removed(self, ids: list[str]) -> None:
        self.log(AuditEventBuilder.duplicate_categories_removed(ids))

    def log_duplicate_cleanup_failed(self, ids: list[str], error_message: str) -> None:
        self.log(AuditEventBuilder.duplicate_cleanup_failed(ids, error_message))

    def log_receipt_uploaded(self, path: str, size: int) -> None:
        self.log(AuditEventBuilder.receipt_uploaded(path, size))

    def log_receipt_deleted(self, path: str) -> None:
        self.log(AuditEventBuilder.receipt_deleted(path))

    def log_bizum_sent(self, recipient_code: str, amount: Decimal, currency: str) -> None:
        self.log(AuditEventBuilder.bizum_sent(recipient_code, amount, currency))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_remote_service_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed backend call."""
        self.log(AuditEventBuilder.remote_service_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., recording a transaction).
    Pass it through all subsequent operations.
    """
    return uuid4()
