"""
Automated Savings

Two pieces live here:
1. SavingsInterceptor: runs after every user-created transaction and
   writes round-up or retention transactions into the savings category
2. SavingsLedger: recomputes the invested amount from history and
   repairs the cached figure

DESIGN DECISION: The interceptor never fails the user's transaction.
The main row is already written when it runs; a failure in either rule
is logged, recorded on the result and the run ends. Nothing is unwound.

Both rules are checked on every run. In practice only one can match,
since round-up needs an expense and retention needs an income.

The cached total is read and written with no await in between, so
concurrent runs add up to exactly the sum of what they applied.
"""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from mis_finanzas.audit import AuditLogger, create_correlation_id
from mis_finanzas.models.finance import Category, Transaction, TransactionType
from mis_finanzas.models.savings import (
    AppliedSaving,
    AutoSavingsResult,
    InterceptionStage,
    SavingsRule,
    SavingsSummary,
)
from mis_finanzas.queries.summary import savings_transactions
from mis_finanzas.services.categories import CategoryResolver
from mis_finanzas.services.savings_store import SavingsConfigStore
from mis_finanzas.services.transactions import TransactionWriter


CENT = Decimal("0.01")


def compute_round_up(amount: Decimal) -> Decimal:
    """
    Difference between amount and the next whole unit.

    12.50 -> 0.50, 20.00 -> 0.00
    """
    amount = Decimal(amount)
    if amount <= 0:
        return Decimal("0.00")
    ceiling = amount.to_integral_value(rounding=ROUND_CEILING)
    return (ceiling - amount).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_retention(amount: Decimal, percentage: int) -> Decimal:
    """
    Share of an income set aside, rounded half-up to cents.

    1000.00 at 10% -> 100.00
    """
    amount = Decimal(amount)
    if amount <= 0 or percentage <= 0:
        return Decimal("0.00")
    return (amount * Decimal(percentage) / Decimal(100)).quantize(
        CENT, rounding=ROUND_HALF_UP
    )


class SavingsInterceptor:
    """
    Post-transaction hook for the round-up and retention rules.

    Usage:
        interceptor = SavingsInterceptor(categories, writer, store)
        result = await interceptor.intercept(transaction)
        if not result.succeeded:
            ...  # the main transaction is still saved
    """

    def __init__(
        self,
        categories: CategoryResolver,
        writer: TransactionWriter,
        store: SavingsConfigStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._categories = categories
        self._writer = writer
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()

    async def _write_saving(
        self,
        transaction: Transaction,
        owner_id: str,
        amount: Decimal,
        description: str,
    ) -> Transaction:
        savings_category: Category = (
            await self._categories.find_or_create_savings_category(owner_id)
        )
        return await self._writer.insert_auxiliary(
            owner_id=owner_id,
            amount=amount,
            description=description,
            category=savings_category,
            date=transaction.date,
            currency=transaction.currency,
        )

    def _credit(self, result: AutoSavingsResult, amount: Decimal) -> None:
        # get + set with no suspension point
        result.invested_amount = self._store.add_to_invested_amount(amount)

    async def intercept(
        self,
        transaction: Transaction,
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AutoSavingsResult:
        """
        Apply the enabled savings rules to a freshly written transaction.

        Never raises for rule failures; check result.error instead.
        """
        correlation_id = correlation_id or create_correlation_id()
        owner = owner_id or transaction.user_id
        config = self._store.get()

        result = AutoSavingsResult(
            transaction_id=transaction.id,
            stage=InterceptionStage.MAIN_WRITTEN,
            invested_amount=config.invested_amount,
        )

        try:
            # Round-up
            result.stage = InterceptionStage.EVALUATING_ROUNDING
            if (
                config.round_up_enabled
                and transaction.type == TransactionType.EXPENSE
                and transaction.amount > 0
            ):
                diff = compute_round_up(transaction.amount)
                if diff > 0:
                    saving = await self._write_saving(
                        transaction,
                        owner,
                        diff,
                        f"Round-up: {transaction.description}",
                    )
                    self._credit(result, diff)
                    result.applied.append(AppliedSaving(
                        rule=SavingsRule.ROUND_UP,
                        amount=diff,
                        transaction=saving,
                    ))
                    self._audit_logger.log_round_up_applied(
                        main_transaction_id=transaction.id,
                        saving_transaction_id=saving.id,
                        original_amount=transaction.amount,
                        saved_amount=diff,
                        correlation_id=correlation_id,
                    )

            # Retention
            result.stage = InterceptionStage.EVALUATING_RETENTION
            if (
                config.retention_enabled
                and transaction.type == TransactionType.INCOME
                and transaction.amount > 0
            ):
                percentage = config.retention_percentage
                retained = compute_retention(transaction.amount, percentage)
                if retained > 0:
                    saving = await self._write_saving(
                        transaction,
                        owner,
                        retained,
                        f"Automatic retention ({percentage}%)",
                    )
                    self._credit(result, retained)
                    result.applied.append(AppliedSaving(
                        rule=SavingsRule.RETENTION,
                        amount=retained,
                        transaction=saving,
                    ))
                    self._audit_logger.log_retention_applied(
                        main_transaction_id=transaction.id,
                        saving_transaction_id=saving.id,
                        income_amount=transaction.amount,
                        percentage=percentage,
                        saved_amount=retained,
                        correlation_id=correlation_id,
                    )
        except Exception as e:
            result.failed_stage = result.stage
            result.error = str(e) or type(e).__name__
            self._audit_logger.log_auto_savings_failed(
                main_transaction_id=transaction.id,
                stage=result.stage.value,
                error_message=result.error,
                correlation_id=correlation_id,
            )

        result.stage = InterceptionStage.DONE
        return result


class SavingsLedger:
    """
    Authoritative view of the money set aside by the savings rules.

    The invested amount is the sum of every transaction filed under the
    savings category. The store only caches it; summary() repairs the
    cache when the two disagree (e.g. after a savings row was deleted
    or written from another device).
    """

    def __init__(
        self,
        writer: TransactionWriter,
        store: SavingsConfigStore,
        savings_category_name: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._writer = writer
        self._store = store
        self._label = savings_category_name
        self._audit_logger = audit_logger or AuditLogger()

    async def summary(self, owner_id: Optional[str] = None) -> SavingsSummary:
        """
        Recompute the invested amount and reconcile the cached figure.

        Raises:
            RemoteError: If the transactions cannot be read
        """
        transactions = await self._writer.list_transactions(owner_id)
        history = savings_transactions(transactions, self._label)
        authoritative = sum((t.amount for t in history), Decimal("0")).quantize(CENT)

        cached = self._store.get().invested_amount
        if cached != authoritative:
            self._store.set_invested_amount(authoritative)
            self._audit_logger.log_invested_amount_reconciled(
                cached_amount=cached,
                authoritative_amount=authoritative,
            )

        return SavingsSummary(
            authoritative_amount=authoritative,
            cached_amount=cached,
            history=history,
        )
