"""
Data Models Package

This package contains all Pydantic models used in Mis Finanzas.
All data flowing through the system must conform to these schemas.
"""

from mis_finanzas.models.finance import (
    Amount,
    BalanceSummary,
    BizumRecipient,
    Category,
    FileItem,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
)
from mis_finanzas.models.savings import (
    AppliedSaving,
    AutoSavingsResult,
    FundChoice,
    InterceptionStage,
    SavingsConfiguration,
    SavingsConfigurationUpdate,
    SavingsRule,
    SavingsSummary,
)
from mis_finanzas.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Amount",
    "BalanceSummary",
    "BizumRecipient",
    "Category",
    "FileItem",
    "Transaction",
    "TransactionCreate",
    "TransactionType",
    "TransactionUpdate",
    # Savings models
    "AppliedSaving",
    "AutoSavingsResult",
    "FundChoice",
    "InterceptionStage",
    "SavingsConfiguration",
    "SavingsConfigurationUpdate",
    "SavingsRule",
    "SavingsSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
