"""
Transaction Writer

Thin, validated access to the owner's transactions.

DESIGN DECISION: The writer only persists. It knows nothing about
savings rules; the orchestrator runs the interceptor after a create.
This keeps the interceptor free to call back into the writer for its
auxiliary rows without recursion.

Every transaction is returned joined with its category, because the
direction (income or expense) lives on the category.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import ValidationError

from mis_finanzas.audit import AuditLogger
from mis_finanzas.config import get_settings
from mis_finanzas.models.finance import (
    Category,
    Transaction,
    TransactionCreate,
    TransactionUpdate,
)
from mis_finanzas.services.backend.interface import (
    DataBackend,
    Join,
    NotAuthenticatedError,
    NotFoundError,
    RemoteError,
)
from mis_finanzas.services.categories import CategoryResolver


TRANSACTIONS = "transactions"
CATEGORY_JOIN = Join("category", "categories", "category_id")


class TransactionValidationError(Exception):
    """Transaction input was rejected before reaching the backend."""
    pass


def _to_transaction(row: dict[str, Any]) -> Transaction:
    """Parse a backend row; a row we can't read is a backend fault."""
    try:
        return Transaction.model_validate(row)
    except ValidationError as e:
        raise RemoteError(f"Malformed transaction row {row.get('id')}: {e}") from e


class TransactionWriter:
    """
    Creates, reads, updates and deletes transactions.
    """

    def __init__(
        self,
        backend: DataBackend,
        categories: CategoryResolver,
        audit_logger: Optional[AuditLogger] = None,
        base_currency: Optional[str] = None,
    ):
        self._backend = backend
        self._categories = categories
        self._audit_logger = audit_logger or AuditLogger()
        self._base_currency = base_currency or get_settings().app.base_currency

    async def _resolve_owner(self, owner_id: Optional[str]) -> str:
        owner = owner_id or await self._backend.auth.current_owner()
        if owner is None:
            raise NotAuthenticatedError()
        return owner

    async def _fetch_one(self, transaction_id: str) -> Optional[Transaction]:
        rows = await self._backend.query(
            TRANSACTIONS,
            filters={"id": transaction_id},
            join=CATEGORY_JOIN,
            limit=1,
        )
        return _to_transaction(rows[0]) if rows else None

    async def _insert(self, row: dict[str, Any]) -> Transaction:
        rows = await self._backend.insert(TRANSACTIONS, [row])
        if not rows:
            raise RemoteError("Backend returned no row for new transaction")

        # Re-read to pick up the joined category
        transaction = await self._fetch_one(rows[0]["id"])
        if transaction is None:
            transaction = _to_transaction(rows[0])
        return transaction

    async def list_transactions(self, owner_id: Optional[str] = None) -> list[Transaction]:
        """
        All of the owner's transactions with their category, newest first.

        Without a session the list is empty.
        """
        owner = owner_id or await self._backend.auth.current_owner()
        if owner is None:
            return []

        rows = await self._backend.query(
            TRANSACTIONS,
            filters={"user_id": owner},
            order_by="date",
            descending=True,
            join=CATEGORY_JOIN,
        )
        return [_to_transaction(row) for row in rows]

    async def get_transaction(self, transaction_id: str) -> Transaction:
        """
        Raises:
            NotFoundError: If no transaction has this ID
        """
        transaction = await self._fetch_one(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    async def create(
        self,
        data: Union[TransactionCreate, dict[str, Any]],
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Validate and insert a user transaction.

        Args:
            data: The new transaction (model or plain dict)
            owner_id: Owner to file it under (defaults to the session owner)
            correlation_id: Ties the audit line to follow-up savings events

        Returns:
            The persisted transaction joined with its category

        Raises:
            TransactionValidationError: If the amount is not a positive
                                        number or the category doesn't exist
            NotAuthenticatedError: If there is no owner
            RemoteError: If the insert fails
        """
        if not isinstance(data, TransactionCreate):
            try:
                data = TransactionCreate.model_validate(data)
            except ValidationError as e:
                self._audit_logger.log_transaction_rejected(str(e))
                raise TransactionValidationError(f"Invalid transaction: {e}") from e

        owner = await self._resolve_owner(owner_id)

        if not data.category_id:
            self._audit_logger.log_transaction_rejected("missing category")
            raise TransactionValidationError("A transaction needs a category")

        category = await self._categories.get_category(data.category_id)
        if category is None:
            self._audit_logger.log_transaction_rejected(
                f"unknown category {data.category_id}"
            )
            raise TransactionValidationError(f"Category {data.category_id} not found")

        row = data.model_dump(mode="json")
        row["currency"] = data.currency or self._base_currency
        row["user_id"] = owner

        transaction = await self._insert(row)
        self._audit_logger.log_transaction_created(
            transaction_id=transaction.id,
            amount=transaction.amount,
            category_name=category.name,
            correlation_id=correlation_id,
        )
        return transaction

    async def insert_auxiliary(
        self,
        owner_id: str,
        amount: Decimal,
        description: str,
        category: Category,
        date: datetime,
        currency: Optional[str] = None,
    ) -> Transaction:
        """
        Insert a transaction generated by a savings rule.

        The category is already known, so no lookup or audit line here;
        the interceptor logs the rule that produced it.

        Raises:
            RemoteError: If the insert fails
        """
        row = {
            "amount": str(amount),
            "description": description,
            "category_id": category.id,
            "date": date.isoformat(),
            "currency": currency or self._base_currency,
            "user_id": owner_id,
        }
        return await self._insert(row)

    async def update(
        self,
        transaction_id: str,
        changes: Union[TransactionUpdate, dict[str, Any]],
    ) -> Transaction:
        """
        Apply a partial update and return the updated transaction.

        Raises:
            TransactionValidationError: If the changes are invalid
            NotFoundError: If no transaction has this ID
            RemoteError: If the update fails
        """
        if not isinstance(changes, TransactionUpdate):
            try:
                changes = TransactionUpdate.model_validate(changes)
            except ValidationError as e:
                raise TransactionValidationError(f"Invalid update: {e}") from e

        fields = changes.to_changes()
        if not fields:
            return await self.get_transaction(transaction_id)

        row = await self._backend.update(TRANSACTIONS, transaction_id, fields)
        if row is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")

        self._audit_logger.log_transaction_updated(transaction_id, sorted(fields))
        return await self.get_transaction(transaction_id)

    async def delete(self, transaction_id: str) -> None:
        """
        Delete a transaction. Auto-generated savings rows are left alone.

        Raises:
            RemoteError: If the delete fails
        """
        await self._backend.delete(TRANSACTIONS, transaction_id)
        self._audit_logger.log_transaction_deleted(transaction_id)
