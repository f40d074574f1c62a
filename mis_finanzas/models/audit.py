"""
Audit Models for Mis Finanzas

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of every write against the backend
2. Debugging information when a savings rule fails silently
3. A record of background housekeeping (seeding, duplicate cleanup)

DESIGN DECISION: Audit events are typed. Services build them through
AuditEventBuilder so the same event always carries the same fields.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    TRANSACTION_REJECTED = "transaction_rejected"

    # Automated savings
    ROUND_UP_APPLIED = "round_up_applied"
    RETENTION_APPLIED = "retention_applied"
    AUTO_SAVINGS_FAILED = "auto_savings_failed"
    INVESTED_AMOUNT_RECONCILED = "invested_amount_reconciled"
    SAVINGS_CONFIG_CHANGED = "savings_config_changed"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORIES_SEEDED = "categories_seeded"
    DUPLICATE_CATEGORIES_REMOVED = "duplicate_categories_removed"
    DUPLICATE_CLEANUP_FAILED = "duplicate_cleanup_failed"
    CATEGORY_SEEDING_FAILED = "category_seeding_failed"

    # Receipts
    RECEIPT_UPLOADED = "receipt_uploaded"
    RECEIPT_DELETED = "receipt_deleted"

    # Transfers
    BIZUM_SENT = "bizum_sent"

    # System events
    SYSTEM_ERROR = "system_error"
    REMOTE_SERVICE_ERROR = "remote_service_error"


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

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'category', 'receipt')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Backend ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a transaction and its round-up)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
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
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(tx_id, amount, category)
        event = AuditEventBuilder.round_up_applied(main_id, aux_id, diff)
    """

    @staticmethod
    def transaction_created(
        transaction_id: str,
        amount: Decimal,
        category_name: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction created: {amount}",
            details={
                "amount": str(amount),
                "category": category_name,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def transaction_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transaction",
            description="Transaction rejected by validation",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def round_up_applied(
        main_transaction_id: str,
        saving_transaction_id: str,
        original_amount: Decimal,
        saved_amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROUND_UP_APPLIED,
            entity_type="transaction",
            entity_id=saving_transaction_id,
            correlation_id=correlation_id,
            description=f"Round-up saved {saved_amount} from {original_amount}",
            details={
                "main_transaction_id": main_transaction_id,
                "original_amount": str(original_amount),
                "saved_amount": str(saved_amount),
            },
        )

    @staticmethod
    def retention_applied(
        main_transaction_id: str,
        saving_transaction_id: str,
        income_amount: Decimal,
        percentage: int,
        saved_amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RETENTION_APPLIED,
            entity_type="transaction",
            entity_id=saving_transaction_id,
            correlation_id=correlation_id,
            description=f"Retention of {percentage}% saved {saved_amount}",
            details={
                "main_transaction_id": main_transaction_id,
                "income_amount": str(income_amount),
                "percentage": percentage,
                "saved_amount": str(saved_amount),
            },
        )

    @staticmethod
    def auto_savings_failed(
        main_transaction_id: str,
        stage: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AUTO_SAVINGS_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="transaction",
            entity_id=main_transaction_id,
            correlation_id=correlation_id,
            description=f"Automated savings failed while {stage}",
            error_message=error_message,
            details={"stage": stage},
        )

    @staticmethod
    def invested_amount_reconciled(
        cached_amount: Decimal,
        authoritative_amount: Decimal,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INVESTED_AMOUNT_RECONCILED,
            severity=AuditSeverity.WARNING,
            entity_type="savings",
            description="Cached invested amount replaced by transaction history total",
            details={
                "cached_amount": str(cached_amount),
                "authoritative_amount": str(authoritative_amount),
            },
        )

    @staticmethod
    def savings_config_changed(changes: dict[str, Any]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVINGS_CONFIG_CHANGED,
            entity_type="savings",
            description=f"Savings configuration changed: {', '.join(sorted(changes))}",
            details={k: str(v) for k, v in changes.items()},
        )

    @staticmethod
    def category_created(
        category_id: str,
        name: str,
        category_type: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            description=f"Category created: {name} ({category_type})",
            details={"name": name, "type": category_type},
        )

    @staticmethod
    def categories_seeded(owner_id: str, names: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            entity_type="category",
            description=f"Seeded {len(names)} default categories",
            details={"owner_id": owner_id, "names": names},
        )

    @staticmethod
    def category_seeding_failed(owner_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_SEEDING_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="category",
            description="Seeding default categories failed",
            error_message=error_message,
            details={"owner_id": owner_id},
        )

    @staticmethod
    def duplicate_categories_removed(ids: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_CATEGORIES_REMOVED,
            entity_type="category",
            description=f"Removed {len(ids)} duplicate categories",
            details={"ids": ids},
        )

    @staticmethod
    def duplicate_cleanup_failed(ids: list[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_CLEANUP_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="category",
            description=f"Could not remove {len(ids)} duplicate categories",
            error_message=error_message,
            details={"ids": ids},
        )

    @staticmethod
    def receipt_uploaded(path: str, size: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            entity_type="receipt",
            entity_id=path,
            description=f"Receipt uploaded: {path}",
            details={"size_bytes": size},
            is_user_action=True,
        )

    @staticmethod
    def receipt_deleted(path: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_DELETED,
            entity_type="receipt",
            entity_id=path,
            description=f"Receipt deleted: {path}",
            is_user_action=True,
        )

    @staticmethod
    def bizum_sent(
        recipient_code: str,
        amount: Decimal,
        currency: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BIZUM_SENT,
            entity_type="bizum",
            entity_id=recipient_code,
            description=f"Bizum of {amount} {currency} sent to {recipient_code}",
            details={"amount": str(amount), "currency": currency},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def remote_service_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Remote service error during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
            correlation_id=correlation_id,
        )
