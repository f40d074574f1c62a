"""
Main Orchestrator for Mis Finanzas

This module ties together all the components and defines the
end-to-end flows for:
1. Recording a transaction (validate → write → automated savings)
2. Editing and deleting transactions
3. The savings page (authoritative total, history, cache repair)
4. Dashboard totals and CSV export

DESIGN DECISION: The orchestrator enforces the boundaries:
- The user's transaction is written before any savings rule runs
- A savings failure never turns a saved transaction into an error
- Every step is audited under one correlation ID

This is the "glue" that lets the presentation layer express an intent
("record this") as one call.
"""

from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from mis_finanzas.audit import AuditLogger, configure_logging, create_correlation_id
from mis_finanzas.config import Settings, get_settings
from mis_finanzas.export import export_transactions_csv, write_transactions_csv
from mis_finanzas.models.finance import (
    BalanceSummary,
    Category,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
)
from mis_finanzas.models.savings import AutoSavingsResult, SavingsSummary
from mis_finanzas.queries import summarize
from mis_finanzas.services.backend import (
    DataBackend,
    ObjectStorage,
    SupabaseBackend,
    SupabaseConnection,
    SupabaseObjectStorage,
)
from mis_finanzas.services.bizum import BizumService
from mis_finanzas.services.categories import CategoryResolver
from mis_finanzas.services.receipts import ReceiptService
from mis_finanzas.services.savings import SavingsInterceptor, SavingsLedger
from mis_finanzas.services.savings_store import SavingsConfigStore
from mis_finanzas.services.transactions import (
    TransactionValidationError,
    TransactionWriter,
)


class TransactionFlow:
    """
    Orchestrates the transaction flows.

    Flow for record_transaction():
    1. Validate → reject bad input before touching the backend
    2. Category → fall back to a default category of the chosen type
    3. Write → persist the main transaction (errors propagate)
    4. Intercept → apply round-up / retention (errors are absorbed)

    The caller re-reads the list afterwards to see both rows.
    """

    def __init__(
        self,
        writer: TransactionWriter,
        categories: CategoryResolver,
        interceptor: SavingsInterceptor,
        ledger: SavingsLedger,
        store: SavingsConfigStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._writer = writer
        self._categories = categories
        self._interceptor = interceptor
        self._ledger = ledger
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def store(self) -> SavingsConfigStore:
        return self._store

    @property
    def categories(self) -> CategoryResolver:
        return self._categories

    async def record_transaction(
        self,
        data: Union[TransactionCreate, dict[str, Any]],
        category_type: TransactionType = TransactionType.EXPENSE,
        owner_id: Optional[str] = None,
    ) -> tuple[Transaction, AutoSavingsResult]:
        """
        Record a user transaction and run the savings rules on it.

        Args:
            data: The new transaction
            category_type: Type of the default category used when
                           data carries no category_id
            owner_id: Owner (defaults to the session owner)

        Returns:
            (transaction, auto_savings_result)

        Raises:
            TransactionValidationError: If the input is invalid
            NotAuthenticatedError: Without a session
            RemoteError: If the main write fails
        """
        correlation_id = create_correlation_id()

        if not isinstance(data, TransactionCreate):
            try:
                data = TransactionCreate.model_validate(data)
            except ValidationError as e:
                self._audit_logger.log_transaction_rejected(str(e))
                raise TransactionValidationError(f"Invalid transaction: {e}") from e

        if not data.category_id:
            category = await self._categories.default_category(category_type, owner_id)
            data = data.model_copy(update={"category_id": category.id})

        transaction = await self._writer.create(
            data,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )

        result = await self._interceptor.intercept(
            transaction,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        return transaction, result

    async def list_transactions(self, owner_id: Optional[str] = None) -> list[Transaction]:
        return await self._writer.list_transactions(owner_id)

    async def list_categories(self, owner_id: Optional[str] = None) -> list[Category]:
        return await self._categories.list_categories(owner_id)

    async def update_transaction(
        self,
        transaction_id: str,
        changes: Union[TransactionUpdate, dict[str, Any]],
    ) -> Transaction:
        """Edit a transaction. Savings rules do not run again on edits."""
        return await self._writer.update(transaction_id, changes)

    async def delete_transaction(self, transaction_id: str) -> None:
        await self._writer.delete(transaction_id)

    async def dashboard(self, owner_id: Optional[str] = None) -> BalanceSummary:
        """Balance, income and expense totals over every transaction."""
        return summarize(await self._writer.list_transactions(owner_id))

    async def savings_summary(self, owner_id: Optional[str] = None) -> SavingsSummary:
        """Authoritative invested amount; repairs the cached figure if needed."""
        return await self._ledger.summary(owner_id)

    async def export_csv(
        self,
        directory: Optional[Union[str, Path]] = None,
        owner_id: Optional[str] = None,
    ) -> Union[str, Path]:
        """
        Export every transaction as CSV.

        Returns the CSV text, or the written file's path when a
        directory is given.

        Raises:
            EmptyExportError: If there are no transactions
        """
        transactions = await self._writer.list_transactions(owner_id)
        if directory is None:
            return export_transactions_csv(transactions)
        return write_transactions_csv(transactions, directory)


def create_app_components(
    settings: Optional[Settings] = None,
    backend: Optional[DataBackend] = None,
    object_storage: Optional[ObjectStorage] = None,
    store: Optional[SavingsConfigStore] = None,
) -> tuple[TransactionFlow, ReceiptService, BizumService]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from (defaults to get_settings())
        backend: Data backend; a Supabase backend is created when omitted
        object_storage: Receipt bucket; Supabase Storage when omitted
        store: Savings configuration store; file-backed when omitted

    Returns:
        (transaction_flow, receipt_service, bizum_service)
    """
    settings = settings or get_settings()
    configure_logging(settings.app.debug_mode)
    audit_logger = AuditLogger()

    if backend is None or object_storage is None:
        connection = SupabaseConnection(settings.supabase)
        backend = backend or SupabaseBackend(connection)
        object_storage = object_storage or SupabaseObjectStorage(connection)

    store = store or SavingsConfigStore(
        path=settings.savings.config_path,
        key=settings.savings.storage_key,
        default_retention_percentage=settings.savings.default_retention_percentage,
        audit_logger=audit_logger,
    )

    categories = CategoryResolver(
        backend,
        audit_logger=audit_logger,
        savings_category_name=settings.savings.category_name,
        savings_category_icon=settings.savings.category_icon,
        seed_threshold=settings.app.seed_threshold,
    )
    writer = TransactionWriter(
        backend,
        categories,
        audit_logger=audit_logger,
        base_currency=settings.app.base_currency,
    )
    interceptor = SavingsInterceptor(categories, writer, store, audit_logger=audit_logger)
    ledger = SavingsLedger(
        writer,
        store,
        savings_category_name=settings.savings.category_name,
        audit_logger=audit_logger,
    )

    transaction_flow = TransactionFlow(
        writer=writer,
        categories=categories,
        interceptor=interceptor,
        ledger=ledger,
        store=store,
        audit_logger=audit_logger,
    )
    receipt_service = ReceiptService(object_storage, backend.auth, audit_logger=audit_logger)
    bizum_service = BizumService(
        backend,
        audit_logger=audit_logger,
        base_currency=settings.app.base_currency,
    )

    return transaction_flow, receipt_service, bizum_service
